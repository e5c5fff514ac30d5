from functools import lru_cache
from typing import List
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # App
    APP_ENV: str = "development"
    CORS_ORIGINS: List[str] = ["*"]

    # Sessions
    JWT_SECRET: str = "change-me"
    JWT_ALGORITHM: str = "HS256"
    SESSION_TTL_DAYS: int = 7
    SESSION_COOKIE_NAME: str = "session_token"
    CSRF_COOKIE_NAME: str = "XSRF-TOKEN"
    COOKIE_SECURE: bool = True
    COOKIE_SAMESITE: str = "lax"

    # Database
    DATABASE_URL: str = ""

    # Plans
    DEFAULT_FREE_LIMIT: int = 50
    PRO_FILE_LIMIT: int = 999999
    VALID_PROMO_CODES: str = "PRO2025,SCALPEL-TRIAL"

    # Payments
    RAZORPAY_WEBHOOK_SECRET: str = ""

    # Upload
    MAX_FILE_SIZE_BYTES: int = 10 * 1024 * 1024
    MAX_FILES_PER_UPLOAD: int = 50
    ALLOWED_CONTENT_TYPES: List[str] = [
        "image/png",
        "image/jpeg",
        "application/pdf",
        "text/plain",
        "application/zip",
    ]
    TMP_DIR: str = ""
    PROCESSING_TIMEOUT_SEC: float = 120.0
    ZIP_COMPRESSION_LEVEL: int = 6

    # Rate limits (requests / window seconds)
    GENERAL_RATE_LIMIT: int = 200
    GENERAL_RATE_WINDOW_SEC: int = 60
    AUTH_RATE_LIMIT: int = 10
    AUTH_RATE_WINDOW_SEC: int = 15 * 60
    PROMO_RATE_LIMIT: int = 5
    PROMO_RATE_WINDOW_SEC: int = 60
    PROCESSING_RATE_LIMIT: int = 5
    PROCESSING_RATE_WINDOW_SEC: int = 60

    @property
    def promo_codes(self) -> List[str]:
        return [c.strip().upper() for c in self.VALID_PROMO_CODES.split(",") if c.strip()]


@lru_cache
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
