import logging
from typing import Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_CORS_ORIGIN = "https://e-commerce-frontend-taupe-nine.vercel.app"


class Settings(BaseSettings):
    """Read from the environment (or a local .env); DATABASE_URL and database_url both work."""

    # Database
    database_url: Optional[str] = None
    database_name: str = "ecommerce"

    # Admin shared secret; empty locks the admin routes
    admin_key: str = ""

    # Server
    port: int = 3000
    cors_origin: str = DEFAULT_CORS_ORIGIN
    log_level: str = "INFO"

    # Image uploads
    aws_access_key_id: Optional[str] = None
    aws_secret_access_key: Optional[str] = None
    aws_region: str = "us-east-2"
    aws_bucket_name: Optional[str] = None
    upload_folder: str = "ecommerce_products"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        upper = v.upper()
        if upper not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Invalid log_level '{v}'")
        return upper


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
