"""
Domain models for the external-identity to communication-user mapping.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator


class UserRecord(BaseModel):
    """Represents the mapping row stored for one external user."""

    external_user_id: str = Field(
        ..., min_length=1, description="Trusted external identity; also the store key."
    )
    identity_provider: str = Field(
        "", description="Label of the upstream authentication provider."
    )
    backing_user_id: Optional[str] = Field(
        None, description="Communication user id assigned by the token issuer."
    )
    token: Optional[str] = None
    token_expiry: Optional[datetime] = None

    @field_validator("token_expiry")
    @classmethod
    def _ensure_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    @model_validator(mode="after")
    def _token_fields_paired(self) -> "UserRecord":
        if (self.token is None) != (self.token_expiry is None):
            raise ValueError("token and token_expiry must be set together.")
        return self

    def has_token_valid_until(self, min_expiry: datetime) -> bool:
        """True when a token exists and does not expire before ``min_expiry``."""
        if not self.token or self.token_expiry is None:
            return False
        return self.token_expiry >= min_expiry


class TokenResult(BaseModel):
    """Outcome of resolving a token for an external user."""

    backing_user_id: str
    token: str
    token_expiry: datetime
    is_new_user: bool = False
    from_cache: bool = False


__all__ = ["TokenResult", "UserRecord"]
