"""
Custom exception classes and error handlers
Provides consistent error responses across the application
"""

from fastapi import HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from typing import Any, Dict, Optional
import logging

logger = logging.getLogger(__name__)

class StorefrontException(HTTPException):
    """Base exception class for the storefront application"""

    def __init__(
        self,
        status_code: int,
        detail: str,
        error_code: Optional[str] = None,
        headers: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(status_code=status_code, detail=detail, headers=headers)
        self.error_code = error_code

class BadRequestException(StorefrontException):
    """400 Bad Request"""

    def __init__(self, detail: str, error_code: str = "BAD_REQUEST"):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=detail,
            error_code=error_code
        )

class UnauthorizedException(StorefrontException):
    """401 Unauthorized"""

    def __init__(self, detail: str = "Unauthorized", error_code: str = "UNAUTHORIZED"):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            error_code=error_code,
            headers={"WWW-Authenticate": "Bearer"}
        )

class ForbiddenException(StorefrontException):
    """403 Forbidden"""

    def __init__(self, detail: str = "Forbidden", error_code: str = "FORBIDDEN"):
        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=detail,
            error_code=error_code
        )

class NotFoundException(StorefrontException):
    """404 Not Found"""

    def __init__(self, detail: str = "Not found", error_code: str = "NOT_FOUND"):
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=detail,
            error_code=error_code
        )

class ConflictException(StorefrontException):
    """409 Conflict"""

    def __init__(self, detail: str, error_code: str = "CONFLICT"):
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            detail=detail,
            error_code=error_code
        )

class ValidationException(StorefrontException):
    """422 Unprocessable Entity"""

    def __init__(self, detail: str, error_code: str = "VALIDATION_ERROR"):
        super().__init__(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=detail,
            error_code=error_code
        )

class UpstreamFailureException(StorefrontException):
    """502 Bad Gateway - database or payment gateway call failed"""

    def __init__(
        self,
        detail: str = "Upstream service failed",
        error_code: str = "UPSTREAM_FAILURE"
    ):
        super().__init__(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=detail,
            error_code=error_code
        )

# Business logic exceptions
class UnauthenticatedException(UnauthorizedException):
    """Neither a bearer identity nor a guest id was supplied"""

    def __init__(self, detail: str = "Authentication or guest session required"):
        super().__init__(detail=detail, error_code="UNAUTHENTICATED")

class NoActiveSessionException(BadRequestException):
    """Checkout attempted without any session"""

    def __init__(self, detail: str = "No session found"):
        super().__init__(detail=detail, error_code="NO_ACTIVE_SESSION")

class EmptyCartException(BadRequestException):
    """Nothing to check out"""

    def __init__(self, detail: str = "Cart is empty"):
        super().__init__(detail=detail, error_code="EMPTY_CART")

class ProductUnavailableException(BadRequestException):
    """Cart references a product that can no longer be sold"""

    def __init__(self, product_name: str):
        super().__init__(
            detail=f"{product_name} is no longer available",
            error_code="PRODUCT_UNAVAILABLE"
        )

class InvalidAddressException(BadRequestException):
    """Address missing or owned by someone else"""

    def __init__(self, detail: str = "Invalid address"):
        super().__init__(detail=detail, error_code="INVALID_ADDRESS")

class PaymentNotFoundException(NotFoundException):
    """No payment record for the gateway order id"""

    def __init__(self, detail: str = "Invalid Razorpay Order ID"):
        super().__init__(detail=detail, error_code="PAYMENT_NOT_FOUND")

class InvalidSignatureException(BadRequestException):
    """Gateway signature did not match"""

    def __init__(self, detail: str = "Payment verification failed"):
        super().__init__(detail=detail, error_code="INVALID_SIGNATURE")

class CheckoutConflictException(ConflictException):
    """Cart items were consumed by a concurrent checkout"""

    def __init__(self, detail: str = "Cart changed while checking out, please retry"):
        super().__init__(detail=detail, error_code="CHECKOUT_CONFLICT")

# Exception handlers
def _error_body(request: Request, code: str, message: Any) -> Dict[str, Any]:
    return {
        "error": {
            "code": code,
            "message": message,
            "request_id": getattr(request.state, "request_id", None)
        }
    }

async def storefront_exception_handler(request: Request, exc: StorefrontException) -> JSONResponse:
    """Render typed exceptions with their stable error code"""
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(request, exc.error_code, exc.detail),
        headers=exc.headers
    )

async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Surface request validation errors verbatim"""
    errors = [
        {"field": ".".join(str(part) for part in error["loc"]), "message": error["msg"]}
        for error in exc.errors()
    ]
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=_error_body(request, "VALIDATION_ERROR", errors)
    )

async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Never leak internals for unexpected errors"""
    logger.exception(f"Unhandled exception: {str(exc)}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=_error_body(request, "INTERNAL_ERROR", "An unexpected error occurred")
    )

def register_exception_handlers(app) -> None:
    """Attach all handlers to the FastAPI app"""
    app.add_exception_handler(StorefrontException, storefront_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
