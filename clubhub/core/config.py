from __future__ import annotations

from pathlib import Path
from typing import List

from dotenv import load_dotenv
from pydantic_settings import BaseSettings, SettingsConfigDict

BASE_DIR = Path(__file__).resolve().parent.parent.parent  # project root
ENV_PATH = BASE_DIR / ".env"

load_dotenv(dotenv_path=ENV_PATH)


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        extra="ignore",
        case_sensitive=False,
    )

    DATABASE_URL: str
    DB_ECHO: bool = False

    JWT_SECRET: str
    JWT_ALG: str = "HS256"
    JWT_ACCESS_MINUTES: int = 360

    ENVIRONMENT: str = "development"

    CLIENT_BASE_URL: str = "http://localhost:5173"
    SERVER_BASE_URL: str = "http://localhost:8000"
    CORS_ORIGINS: List[str] = ["http://localhost:5173", "http://127.0.0.1:5173"]

    UPLOAD_DIR: str = "uploads"
    RECEIPT_MAX_BYTES: int = 5 * 1024 * 1024

    # shadow "registrations" collection and receipt pre-generation
    REGISTRATION_MIRROR_ENABLED: bool = True
    RECEIPT_PDF_PREGENERATE: bool = True

    EMAIL_TOKEN_TTL_MINUTES: int = 60
    PASSWORD_RESET_TTL_MINUTES: int = 60
    EMAIL_TRANSPORT_TTL_SECONDS: int = 300

    CLUB_NAME: str = "ISS Yemen"
    CLUB_TAGLINE: str = "International Students Society - Yemen"
    CLUB_CONTACT_EMAIL: str = "info@issyemen.org"
    DEFAULT_CURRENCY: str = "RM"
    PAYMENT_CURRENCY: str = "MYR"

    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "plain"

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT.lower() == "production"


settings = Settings()
