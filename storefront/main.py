"""Main FastAPI application with all middleware"""

from fastapi import FastAPI
from contextlib import asynccontextmanager
from slowapi.errors import RateLimitExceeded
import logging

from storefront.core.config import settings
from storefront.core.database import close_db
from storefront.core.exceptions import register_exception_handlers
from storefront.core.middleware import setup_middleware
from storefront.middleware.rate_limit import limiter, custom_rate_limit_handler

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager"""
    logger.info(f"Starting up {settings.APP_NAME} ({settings.ENVIRONMENT})...")

    yield

    logger.info(f"Shutting down {settings.APP_NAME}...")
    await close_db()

def create_app() -> FastAPI:
    app = FastAPI(
        title=settings.APP_NAME,
        description="Cart, checkout and payment API",
        version=settings.APP_VERSION,
        docs_url="/api/docs",
        redoc_url="/api/redoc",
        openapi_url="/api/openapi.json",
        lifespan=lifespan
    )

    # Add rate limiter
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, custom_rate_limit_handler)
    register_exception_handlers(app)

    setup_middleware(app)

    # Include routers
    from storefront.api.v1 import api_router
    app.include_router(api_router, prefix="/api/v1")

    # Health check
    @app.get("/health")
    async def health_check():
        return {"status": "healthy", "version": settings.APP_VERSION}

    return app

app = create_app()

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "storefront.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        workers=settings.WORKERS
    )
