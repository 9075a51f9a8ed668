# hyperlocal/core/config.py
import warnings
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv
from pydantic_settings import BaseSettings, SettingsConfigDict

env_path = Path(__file__).resolve().parent.parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

_INSECURE_JWT_KEY = "insecure-development-key-change-me-in-production"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # MongoDB
    MONGO_URL: str = "mongodb://localhost:27017"
    MONGO_DB_NAME: str = "hyperlocal"

    # Auth
    JWT_SECRET_KEY: Optional[str] = None
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24

    # Razorpay
    RAZORPAY_KEY_ID: Optional[str] = None
    RAZORPAY_KEY_SECRET: Optional[str] = None
    RAZORPAY_API_URL: str = "https://api.razorpay.com/v1"
    PAYMENT_CURRENCY: str = "INR"

    # Mail
    SMTP_SERVER: str = "smtp.gmail.com"
    SMTP_PORT: int = 465
    SMTP_USER: Optional[str] = None
    SMTP_PASSWORD: Optional[str] = None
    MAIL_FROM_NAME: str = "Hyperlocal AI"
    SUPPORT_EMAIL: str = "support@hyperlocalai.com"

    # Frontend
    FRONTEND_URL: str = "http://localhost:5173"
    CORS_ORIGINS: List[str] = ["http://localhost:5173"]

    # Job queues
    EMAIL_MAX_ATTEMPTS: int = 3
    NOTIFICATION_MAX_ATTEMPTS: int = 1
    QUEUE_BACKOFF_SECONDS: List[float] = [2.0, 5.0, 10.0]

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FILE: Optional[str] = None

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    @property
    def jwt_secret(self) -> str:
        if not self.JWT_SECRET_KEY:
            warnings.warn(
                "JWT_SECRET_KEY not set! Using insecure default - DO NOT USE IN PRODUCTION",
                RuntimeWarning,
                stacklevel=2,
            )
            return _INSECURE_JWT_KEY
        return self.JWT_SECRET_KEY

    @property
    def mail_sender(self) -> str:
        return f'"{self.MAIL_FROM_NAME}" <{self.SMTP_USER or self.SUPPORT_EMAIL}>'


settings = Settings()
