"""Application configuration from environment variables."""

from pathlib import Path

from pydantic import ConfigDict, Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = ConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Database
    database_url: str = Field(
        default="sqlite:///./rab_ledger.db",
        description="SQLAlchemy connection string",
    )
    database_echo: bool = Field(default=False, description="Log SQL queries")

    # Auth
    jwt_secret: str = Field(
        default="change-this-secret-in-production", description="Secret used to sign tokens"
    )
    jwt_algorithm: str = Field(default="HS256", description="Token signing algorithm")
    token_expiration_minutes: int = Field(
        default=480, description="Lifetime of an issued bearer token in minutes"
    )

    # Receipts
    receipts_dir: Path = Field(
        default=Path("storage/receipts"), description="Root directory for stored receipts"
    )
    max_receipt_bytes: int = Field(
        default=2 * 1024 * 1024, description="Maximum size of a single receipt file"
    )
    allowed_receipt_types: list[str] = Field(
        default=["image/jpeg", "image/png", "image/webp", "application/pdf"],
        description="Accepted receipt content types",
    )

    # Programs
    max_program_members: int = Field(default=5, description="Maximum roster size per program")

    # Logging
    log_level: str = Field(default="INFO", description="Logging level")
    log_file: str = Field(default="logs/server.log", description="Server log file path")

    # API
    api_title: str = Field(default="RAB Ledger API", description="API title")
    api_version: str = Field(default="0.1.0", description="API version")
    api_prefix: str = Field(default="/api", description="Prefix for all API routes")


# Global settings instance
settings = Settings()
