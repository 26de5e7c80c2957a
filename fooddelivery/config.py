"""Runtime configuration and logging setup.

Settings are read once from the environment (or a local ``.env`` file) and
cached. ``JWT_SECRET`` and ``DATABASE_URL`` have no defaults so a misconfigured
process fails when the app is created rather than on the first request.
"""
import logging
import sys
from enum import Enum
from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class MailBackend(str, Enum):
    LOG = "log"
    SENDGRID = "sendgrid"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    app_name: str = Field(default="Food Delivery API")
    app_version: str = Field(default="1.0.0")
    debug: bool = Field(default=False, description="Verbose logging and error details")

    # Required: no usable defaults
    jwt_secret: str = Field(..., min_length=1, description="HMAC key used to sign bearer tokens")
    database_url: str = Field(..., min_length=1, description="SQLAlchemy connection URL")

    jwt_algorithm: str = Field(default="HS256")
    token_lifetime_days: int = Field(default=7, gt=0)

    mail_backend: MailBackend = Field(default=MailBackend.LOG)
    sendgrid_api_key: str | None = Field(default=None)
    mail_from: str = Field(default="no-reply@fooddelivery.local")
    app_base_url: str = Field(default="http://localhost:8080", description="Used to build links in emails")

    upload_dir: str = Field(default="uploads", description="Directory for profile images")
    cors_origins: str = Field(default="*", description="Comma-separated list of allowed origins")

    @field_validator("mail_backend", mode="before")
    @classmethod
    def normalize_backend(cls, v):
        if isinstance(v, str):
            return v.lower()
        return v

    @property
    def token_lifetime_seconds(self) -> int:
        return self.token_lifetime_days * 24 * 60 * 60

    @property
    def cors_origins_list(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]


@lru_cache()
def get_settings() -> Settings:
    """Load settings once per process."""
    return Settings()


def setup_logging(level: int = logging.INFO) -> logging.Logger:
    settings = get_settings()
    if settings.debug:
        level = logging.DEBUG

    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)-8s | %(name)-24s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
    )
    # Keep SQL echo out of the application log
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    return logging.getLogger("fooddelivery")
