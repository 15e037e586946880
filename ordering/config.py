"""
Configuration management for the restaurant ordering service
"""
from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    # Application
    APP_NAME: str = "Restaurant Ordering"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False

    # Database
    DATABASE_URL: str = "sqlite:///./ordering.db"

    # Restaurant local time (business hours, pickup dates, daily offers)
    TIMEZONE: str = "Europe/Budapest"
    RESTAURANT_NAME: str = "Kiscsibe Etterem"

    # Capacity slots
    DEFAULT_SLOT_MAX_ORDERS: int = 8
    SLOT_INTERVAL_MINUTES: int = 30
    SLOT_BUFFER_MINUTES: int = 0       # 0 disables the kitchen catch-up buffer
    SLOT_BUFFER_LOAD_RATIO: float = 1.0  # booked/max at which a slot counts as heavy

    # Order codes
    ORDER_CODE_LENGTH: int = 6

    # Email (Resend HTTP API)
    RESEND_API_KEY: str = ""
    RESEND_API_URL: str = "https://api.resend.com/emails"
    EMAIL_FROM: str = "Kiscsibe Etterem <rendeles@kiscsibe-etterem.hu>"
    ADMIN_EMAIL: str = ""
    NOTIFICATION_TIMEOUT_SECONDS: float = 5.0

    # Loyalty
    LOYALTY_MILESTONE_EVERY: int = 5
    LOYALTY_SILVER_ORDERS: int = 10
    LOYALTY_GOLD_ORDERS: int = 20
    LOYALTY_REWARD_VALID_DAYS: int = 30

    # CORS
    CORS_ORIGINS: list[str] = ["http://localhost:5173", "http://localhost:3000"]

    class Config:
        env_file = ".env"
        case_sensitive = True


@lru_cache()
def get_settings() -> Settings:
    return Settings()
