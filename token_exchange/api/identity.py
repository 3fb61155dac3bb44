"""Extraction of the caller identity asserted by the upstream gateway."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping

from token_exchange.core.config import HeaderSettings
from token_exchange.core.errors import UnauthenticatedError

MISSING_IDENTITY_MESSAGE = "Missing identity headers; the request was not authenticated."
DUPLICATE_RECORD_MESSAGE = "Found more than one user entry!"


@dataclass(frozen=True)
class CallerIdentity:
    external_user_id: str
    identity_provider: str


def extract_identity(headers: Mapping[str, str], settings: HeaderSettings) -> CallerIdentity:
    """Read the user id and provider headers, matching names case-insensitively."""
    normalized = {str(key).lower(): value for key, value in headers.items()}
    user_id = (normalized.get(settings.user_id_header.lower()) or "").strip()
    provider = (normalized.get(settings.provider_header.lower()) or "").strip()
    if not user_id or not provider:
        raise UnauthenticatedError(MISSING_IDENTITY_MESSAGE)
    return CallerIdentity(external_user_id=user_id, identity_provider=provider)


__all__ = [
    "CallerIdentity",
    "DUPLICATE_RECORD_MESSAGE",
    "MISSING_IDENTITY_MESSAGE",
    "extract_identity",
]
