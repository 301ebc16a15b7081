import os
import warnings
from typing import List

from dotenv import load_dotenv

load_dotenv()


def _split_csv(value: str) -> List[str]:
    return [part.strip() for part in value.split(",") if part.strip()]


class Settings:
    # Database
    DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite:///./inventory.db")

    # Bearer tokens issued by the identity service
    JWT_SECRET_KEY: str = os.getenv("JWT_SECRET_KEY", "")
    ALGORITHM: str = os.getenv("ALGORITHM", "HS256")
    ACCESS_TOKEN_EXPIRE_MINUTES: int = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "600"))

    ENVIRONMENT: str = os.getenv("ENVIRONMENT", "development")
    DEBUG: bool = ENVIRONMENT == "development"

    if not JWT_SECRET_KEY:
        if ENVIRONMENT == "production":
            raise ValueError("JWT_SECRET_KEY must be set in production")
        warnings.warn(
            "JWT_SECRET_KEY not set, using development default.",
            RuntimeWarning,
        )
        JWT_SECRET_KEY = "development-only-secret-change-me"

    TIMEZONE: str = os.getenv("TIMEZONE", "Asia/Jakarta")
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    CORS_ORIGINS: List[str] = _split_csv(os.getenv("CORS_ORIGINS", "http://localhost:3000"))

    # Compare-and-swap retries for a single stock write
    STOCK_WRITE_ATTEMPTS: int = int(os.getenv("STOCK_WRITE_ATTEMPTS", "3"))


settings = Settings()
