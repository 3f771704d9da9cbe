from typing import List, Union
import logging

from pydantic import AnyHttpUrl, Field, validator
from pydantic_settings import BaseSettings

logger = logging.getLogger(__name__)

class Settings(BaseSettings):
    PROJECT_NAME: str = "Marketplace"
    API_V1_STR: str = "/api/v1"
    # Must be overridden through .env or the environment in production
    SECRET_KEY: str = Field(
        default="dev-only-secret-key-please-change-in-production",
        description="JWT signing key"
    )
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24 * 7  # 7 days
    
    # CORS
    BACKEND_CORS_ORIGINS: List[Union[str, AnyHttpUrl]] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]

    @validator("BACKEND_CORS_ORIGINS", pre=True)
    def assemble_cors_origins(cls, v: Union[str, List[str]]) -> Union[List[str], str]:
        if isinstance(v, str) and not v.startswith("["):
            return [i.strip() for i in v.split(",")]
        elif isinstance(v, (list, str)):
            return v
        raise ValueError(v)

    # Database
    SQLITE_DATABASE_URI: str = "sqlite:///./marketplace.db"

    # Seed administrator, created on startup when both are set
    FIRST_ADMIN_EMAIL: str = ""
    FIRST_ADMIN_PASSWORD: str = ""

    # Redis holds carts and review votes
    REDIS_URL: str = "redis://localhost:6379/0"
    CART_TTL_SECONDS: int = 60 * 60 * 24 * 7
    MAX_CART_ITEM_QUANTITY: int = 10

    # Stripe
    STRIPE_SECRET_KEY: str = ""
    STRIPE_WEBHOOK_SECRET: str = ""
    CURRENCY: str = "usd"
    DEFAULT_PLATFORM_FEE_PERCENT: float = 7.0

    # Email (Resend)
    RESEND_API_KEY: str = ""
    EMAIL_FROM: str = "Marketplace <orders@example.com>"

    # Public site used in email links
    APP_URL: str = "http://localhost:3000"

    # Shared secret for /cron endpoints
    CRON_SECRET: str = ""

    # Uploaded product images
    MEDIA_DIR: str = "media"

    # Scheduled jobs
    SCHEDULER_ENABLED: bool = True
    LOW_STOCK_CHECK_HOUR: int = 9  # daily, 0-23
    REVIEW_REQUEST_HOUR: int = 10  # daily, 0-23

    class Config:
        case_sensitive = True
        env_file = ".env"
        extra = "ignore"


settings = Settings()
logger.info(f"Settings loaded: API_V1_STR={settings.API_V1_STR}, CORS={settings.BACKEND_CORS_ORIGINS}")
