"""Rate limiting using slowapi"""

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded

from storefront.core.config import settings

def get_rate_limit_key(request: Request) -> str:
    """Rate limit per guest session when present, else per client IP"""
    guest_id = (
        request.cookies.get(settings.GUEST_COOKIE_NAME)
        or request.headers.get(settings.GUEST_HEADER_NAME)
    )
    if guest_id:
        return f"guest:{guest_id}"

    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        ip = forwarded.split(",")[0].strip()
    else:
        ip = request.client.host if request.client else "unknown"

    return f"ip:{ip}"

limiter = Limiter(
    key_func=get_rate_limit_key,
    default_limits=[settings.RATE_LIMIT_DEFAULT],
    storage_uri=settings.RATE_LIMIT_STORAGE_URI,
    strategy="fixed-window",
    enabled=settings.RATE_LIMIT_ENABLED,
)

async def custom_rate_limit_handler(request: Request, exc: RateLimitExceeded) -> Response:
    return JSONResponse(
        status_code=429,
        content={
            "error": {
                "code": "RATE_LIMIT_EXCEEDED",
                "message": f"Too many requests. {exc.detail}",
                "request_id": getattr(request.state, "request_id", None)
            }
        }
    )

checkout_limit = limiter.limit(settings.RATE_LIMIT_CHECKOUT)
payment_verify_limit = limiter.limit(settings.RATE_LIMIT_PAYMENT_VERIFY)
