from typing import List
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Pricing Configuration
    SHIPPING_RATE: float = 99
    FREE_SHIPPING_THRESHOLD: float = 699
    CURRENCY_SYMBOL: str = "₹"

    # Durable Store Keys
    CART_STORAGE_KEY: str = "cart"
    COUPON_STORAGE_KEY: str = "appliedCoupon"

    # Storage Backend
    STORAGE_BACKEND: str = "memory"  # memory | mongo
    MONGODB_URI: str = "mongodb://localhost:27017"
    MONGODB_DB_NAME: str = "storefront_db"
    MONGODB_COLLECTION: str = "cart_storage"

    # Application Settings
    BACKEND_CORS_ORIGINS: List[str] = ["http://localhost:3000", "http://localhost:8000"]
    API_V1_PREFIX: str = "/api"
    PROJECT_NAME: str = "Storefront Cart"
    LOG_LEVEL: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore"
    )


# Global settings instance
settings = Settings()
