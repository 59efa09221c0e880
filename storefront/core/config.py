"""
Application configuration management using Pydantic Settings
Handles all environment variables and application settings
"""

from pydantic_settings import BaseSettings
from typing import List
from functools import lru_cache

class Settings(BaseSettings):
    """Main application settings"""

    # Application Settings
    APP_NAME: str = "Storefront API"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    ENVIRONMENT: str = "development"

    # Server Settings
    HOST: str = "0.0.0.0"
    PORT: int = 8000
    WORKERS: int = 4

    # Database Configuration
    DATABASE_URL: str
    DATABASE_POOL_SIZE: int = 20
    DATABASE_MAX_OVERFLOW: int = 40
    DATABASE_POOL_TIMEOUT: int = 30
    DATABASE_ECHO: bool = False

    # Security Settings
    SECRET_KEY: str
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 30

    # Guest sessions
    GUEST_COOKIE_NAME: str = "guest_id"
    GUEST_HEADER_NAME: str = "X-Guest-Id"
    GUEST_COOKIE_MAX_AGE: int = 60 * 60 * 24 * 30  # 30 days

    # CORS Configuration
    ALLOWED_HOSTS: List[str] = ["localhost", "127.0.0.1"]
    CORS_ORIGINS: List[str] = ["http://localhost:3000"]
    CORS_ALLOW_CREDENTIALS: bool = True
    CORS_ALLOW_METHODS: List[str] = ["*"]
    CORS_ALLOW_HEADERS: List[str] = ["*"]

    # Payment Gateway (Razorpay)
    RAZORPAY_KEY_ID: str
    RAZORPAY_KEY_SECRET: str
    RAZORPAY_WEBHOOK_SECRET: str
    RAZORPAY_FETCH_PAYMENT_DETAILS: bool = True
    CURRENCY: str = "INR"

    # Celery Configuration
    CELERY_BROKER_URL: str = "redis://localhost:6379/0"
    CELERY_RESULT_BACKEND: str = "redis://localhost:6379/0"
    CELERY_TIMEZONE: str = "Asia/Kolkata"
    WEBHOOK_REPLAY_INTERVAL_SECONDS: int = 5 * 60
    WEBHOOK_REPLAY_BATCH_SIZE: int = 100

    # Business Logic Settings
    ADDRESS_FIRST_IS_DEFAULT: bool = True
    MAX_ITEM_QUANTITY_PER_ADD: int = 10

    # Pagination
    DEFAULT_PAGE_SIZE: int = 20
    MAX_PAGE_SIZE: int = 100

    # Rate Limiting
    RATE_LIMIT_ENABLED: bool = True
    RATE_LIMIT_STORAGE_URI: str = "memory://"
    RATE_LIMIT_DEFAULT: str = "1000/hour"
    RATE_LIMIT_CHECKOUT: str = "10/minute"
    RATE_LIMIT_PAYMENT_VERIFY: str = "30/minute"

    class Config:
        env_file = ".env"
        case_sensitive = True

    @property
    def database_url_async(self) -> str:
        """Convert sync database URL to async"""
        if self.DATABASE_URL.startswith("postgresql://"):
            return self.DATABASE_URL.replace("postgresql://", "postgresql+asyncpg://")
        elif self.DATABASE_URL.startswith("sqlite://"):
            return self.DATABASE_URL.replace("sqlite://", "sqlite+aiosqlite://")
        return self.DATABASE_URL

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT == "production"

@lru_cache()
def get_settings() -> Settings:
    """
    Create cached settings instance
    This ensures settings are loaded only once
    """
    return Settings()

# Global settings instance
settings = get_settings()
