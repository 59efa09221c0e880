"""Security headers middleware"""

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

DOCS_PREFIXES = ("/api/docs", "/api/redoc", "/api/openapi.json")

class SecurityMiddleware(BaseHTTPMiddleware):
    """Attach security headers to every response"""

    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)

        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"

        if request.url.path.startswith(DOCS_PREFIXES):
            # Swagger UI pulls its assets from a CDN
            response.headers["Content-Security-Policy"] = (
                "default-src 'self' 'unsafe-inline' https: data: blob:; "
                "img-src 'self' data: https:"
            )
        else:
            response.headers["Content-Security-Policy"] = "default-src 'none'; frame-ancestors 'none'"

        return response
