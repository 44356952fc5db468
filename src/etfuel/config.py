"""
Application configuration with environment-driven settings.
"""

from enum import Enum
from functools import lru_cache
from typing import Any, Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class IdentityProviderType(str, Enum):
    """Supported identity provider backends."""

    FIREBASE = "firebase"
    MEMORY = "memory"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "etfuel"
    app_env: Literal["dev", "qa", "uat", "prod"] = "dev"
    debug: bool = False
    log_level: str = "INFO"
    app_url: str = Field(
        default="http://localhost:3000",
        description="Public URL of the web client, used in password reset links",
    )

    # CORS
    cors_origins: str = Field(
        default="http://localhost:3000",
        description="Comma-separated list of allowed CORS origins",
    )

    # Identity provider selection
    identity_provider: IdentityProviderType = Field(
        default=IdentityProviderType.FIREBASE,
        description="Backend for accounts and profile records",
    )

    # Firebase service account
    firebase_project_id: str = Field(default="", description="Firebase project ID")
    firebase_client_email: str = Field(
        default="",
        description="Service account client email",
    )
    firebase_private_key: str = Field(
        default="",
        description="Service account private key (PEM, newline-escaped)",
    )

    # Passwords
    password_hash_rounds: int = Field(
        default=12,
        ge=4,
        le=31,
        description="bcrypt cost factor for profile password hashes",
    )

    # In-memory provider
    memory_token_secret: str = Field(
        default="change-me-local-identity-provider-signing-secret",
        description="Signing key for tokens issued by the in-memory provider",
    )
    memory_token_ttl_seconds: int = Field(default=3600, ge=60)

    @field_validator("firebase_private_key", mode="before")
    @classmethod
    def normalize_private_key(cls, v: Any) -> Any:
        """Strip wrapping quotes and expand escaped newlines."""
        if not isinstance(v, str):
            return v
        key = v.strip()
        if len(key) >= 2 and key[0] == key[-1] and key[0] in ("'", '"'):
            key = key[1:-1]
        return key.replace("\\n", "\n")

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse CORS origins into a list."""
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    @property
    def is_development(self) -> bool:
        return self.app_env == "dev"

    @property
    def password_reset_url(self) -> str:
        return f"{self.app_url.rstrip('/')}/reset-password"

    def firebase_service_account(self) -> dict[str, str]:
        """Service account mapping accepted by ``firebase_admin.credentials.Certificate``."""
        return {
            "type": "service_account",
            "project_id": self.firebase_project_id,
            "client_email": self.firebase_client_email,
            "private_key": self.firebase_private_key,
            "token_uri": "https://oauth2.googleapis.com/token",
        }


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
