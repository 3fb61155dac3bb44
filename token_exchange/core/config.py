"""
Application configuration models and helpers.

Centralizes settings management so both the FastAPI app and the Lambda
entrypoint share a consistent configuration surface.
"""

from functools import lru_cache
from pathlib import Path
from typing import Annotated, Literal, Optional

import os

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


def _load_env_file(path: str = ".env") -> None:
    """Best-effort load key=value pairs from a .env file into the environment."""
    env_path = Path(path)
    if not env_path.exists():
        return
    for raw_line in env_path.read_text().splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        key, sep, value = line.partition("=")
        if not sep:
            continue
        key = key.strip()
        if not key or key in os.environ:
            continue
        os.environ[key] = value.strip().strip('"').strip("'")


_load_env_file()


class _Settings(BaseSettings):
    model_config = SettingsConfigDict(populate_by_name=True, extra="ignore")


class CommunicationSettings(_Settings):
    """Configuration for the Azure Communication Services identity API."""

    connection_string: str = Field(..., validation_alias="ACS_CONNECTION_STRING")
    scopes: Annotated[tuple[str, ...], NoDecode] = Field(
        ("chat", "voip"),
        validation_alias="ACS_TOKEN_SCOPES",
    )
    token_lifetime_minutes: Optional[int] = Field(
        None,
        validation_alias="ACS_TOKEN_LIFETIME_MINUTES",
        ge=60,
        le=1440,
        description="Custom token lifetime requested from the issuer.",
    )
    min_validity_seconds: int = Field(
        3600,
        validation_alias="TOKEN_MIN_VALIDITY_SECONDS",
        ge=0,
        description="Cached tokens expiring sooner than this are refreshed.",
    )

    @field_validator("scopes", mode="before")
    @classmethod
    def _split_scopes(
        cls, value: str | tuple[str, ...] | list[str]
    ) -> tuple[str, ...]:
        """Support providing scopes as a comma-separated string."""
        if isinstance(value, tuple):
            return value
        if isinstance(value, list):
            return tuple(value)
        return tuple(scope.strip() for scope in value.split(",") if scope.strip())


class StorageSettings(_Settings):
    """Settings for the user mapping table."""

    backend: Literal["dynamodb", "sqlite"] = Field(
        "dynamodb", validation_alias="USER_STORE_BACKEND"
    )
    region_name: str = Field("us-east-1", validation_alias="AWS_REGION")
    table_name: str = Field("UserMappings", validation_alias="USER_MAPPINGS_TABLE")
    sqlite_path: str = Field(
        "data/user_mappings.db",
        validation_alias="USER_MAPPINGS_DB_PATH",
        description="Database file used when the sqlite backend is selected.",
    )


class SecuritySettings(_Settings):
    """Security-related configuration."""

    token_encryption_secret: Optional[str] = Field(
        None,
        validation_alias="TOKEN_ENCRYPTION_SECRET",
        description=(
            "Secret used to derive the symmetric key for encrypting stored tokens."
        ),
    )


class HeaderSettings(_Settings):
    """Names of the identity headers injected by the upstream gateway."""

    user_id_header: str = Field(
        "x-ms-client-principal-id", validation_alias="IDENTITY_USER_ID_HEADER"
    )
    provider_header: str = Field(
        "x-ms-client-principal-idp", validation_alias="IDENTITY_PROVIDER_HEADER"
    )


class AppSettings(_Settings):
    """Root settings object for the token exchange service."""

    environment: str = Field("development", validation_alias="APP_ENV")
    log_level: str = Field("INFO", validation_alias="APP_LOG_LEVEL")
    communication: CommunicationSettings = Field(default_factory=CommunicationSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    security: SecuritySettings = Field(default_factory=SecuritySettings)
    headers: HeaderSettings = Field(default_factory=HeaderSettings)


@lru_cache()
def get_settings() -> AppSettings:
    """Return a cached settings object."""
    return AppSettings()  # type: ignore[call-arg]


__all__ = [
    "AppSettings",
    "CommunicationSettings",
    "HeaderSettings",
    "SecuritySettings",
    "StorageSettings",
    "get_settings",
]
