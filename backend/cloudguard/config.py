"""
CloudGuard Application Configuration
Environment-driven settings for the API server, analysis service and operational tools
"""

import os
from functools import lru_cache
from typing import List, Optional

from pydantic import AliasChoices, Field, validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings"""

    # Application
    app_name: str = "CloudGuard"
    app_version: str = "1.0.0"
    debug: bool = False

    # Security
    secret_key: str = Field(
        default="change-me-in-production-cloudguard-dev-secret",  # pragma: allowlist secret
        description="Signing key for access tokens",
    )
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 60 * 12

    # Database
    database_url: str = Field(
        default="sqlite:///./cloudguard.db",
        validation_alias=AliasChoices("CLOUDGUARD_DATABASE_URL", "DATABASE_URL"),
    )
    neon_database_url: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("CLOUDGUARD_NEON_DATABASE_URL", "NEON_DATABASE_URL"),
    )
    database_ssl_mode: Optional[str] = None

    # Redis/Celery
    redis_url: str = "redis://localhost:6379"
    job_dispatch_interval_seconds: int = 60

    # Analysis service (hosted chat-completion API)
    openai_api_key: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("CLOUDGUARD_OPENAI_API_KEY", "OPENAI_API_KEY"),
    )
    openai_base_url: str = "https://api.openai.com/v1"
    # gpt-4o is the model the analysis prompts were written against
    openai_model: str = "gpt-4o"
    openai_timeout: float = 60.0

    # Trial
    trial_days: int = 7

    # Allowed hosts for CORS (configurable via environment)
    allowed_origins: List[str] = Field(
        default_factory=lambda: os.getenv("CLOUDGUARD_ALLOWED_ORIGINS", "http://localhost:5173").split(",")
    )

    # Logging
    log_level: str = "INFO"

    @validator("secret_key")
    def secret_key_must_be_strong(cls, v):
        if len(v) < 32:
            raise ValueError("Secret key must be at least 32 characters long")
        return v

    @validator("allowed_origins")
    def validate_origins(cls, v):
        for origin in v:
            if not origin.startswith(("https://", "http://localhost", "http://127.0.0.1")):
                raise ValueError("All origins must use HTTPS (except localhost)")
        return v

    class Config:
        env_file = ".env"
        env_prefix = "CLOUDGUARD_"
        extra = "ignore"
        populate_by_name = True


class RDSSettings(BaseSettings):
    """Connection parameters for an AWS RDS target, read from .env.rds"""

    hostname: str
    port: int = 5432
    database: str = "postgres"
    username: str = "postgres"
    password: str
    ssl: bool = True

    class Config:
        env_file = ".env.rds"
        env_prefix = "RDS_"
        extra = "ignore"

    @property
    def url(self) -> str:
        url = f"postgresql://{self.username}:{self.password}@{self.hostname}:{self.port}/{self.database}"
        if self.ssl:
            url += "?sslmode=require"
        return url


@lru_cache()
def get_settings() -> Settings:
    """Get cached application settings"""
    return Settings()


# Security middleware configuration
SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "X-XSS-Protection": "1; mode=block",
    "Referrer-Policy": "strict-origin-when-cross-origin",
    "Permissions-Policy": "geolocation=(), microphone=(), camera=()",
}
