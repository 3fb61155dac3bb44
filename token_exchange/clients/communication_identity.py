"""
Azure Communication Services identity client wrapper.

Creates communication users and issues access tokens for them. Only the two
operations the exchange needs are exposed: mint a new user together with its
first token, and issue a fresh token for a user that already exists.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterable, Union

from azure.communication.identity import (
    CommunicationTokenScope,
    CommunicationUserIdentifier,
)
from azure.communication.identity.aio import CommunicationIdentityClient
from azure.core.exceptions import AzureError

from token_exchange.core.config import CommunicationSettings
from token_exchange.core.errors import TokenIssuerError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IssuedToken:
    token: str
    expires_on: datetime


@dataclass(frozen=True)
class IssuedIdentity:
    backing_user_id: str
    token: str
    expires_on: datetime


def _to_utc_datetime(expires_on: Union[datetime, int, float]) -> datetime:
    """Normalize the SDK's expiry (epoch seconds or datetime) to aware UTC."""
    if isinstance(expires_on, datetime):
        if expires_on.tzinfo is None:
            return expires_on.replace(tzinfo=timezone.utc)
        return expires_on.astimezone(timezone.utc)
    return datetime.fromtimestamp(expires_on, tz=timezone.utc)


class CommunicationIdentityIssuer:
    """Mint communication users and refresh their access tokens."""

    def __init__(
        self,
        settings: CommunicationSettings,
        client: CommunicationIdentityClient | None = None,
    ) -> None:
        self._settings = settings
        self._client = client or CommunicationIdentityClient.from_connection_string(
            settings.connection_string
        )

    def _token_options(self) -> Dict[str, Any]:
        if self._settings.token_lifetime_minutes is None:
            return {}
        return {
            "token_expires_in": timedelta(minutes=self._settings.token_lifetime_minutes)
        }

    @staticmethod
    def _scopes(scopes: Iterable[str]) -> list[CommunicationTokenScope]:
        return [CommunicationTokenScope(scope) for scope in scopes]

    async def mint(self, scopes: Iterable[str]) -> IssuedIdentity:
        """Create a new communication user and an initial token for it."""
        try:
            user, access_token = await self._client.create_user_and_token(
                scopes=self._scopes(scopes), **self._token_options()
            )
        except AzureError as exc:
            raise TokenIssuerError("Failed to create communication user.") from exc

        backing_user_id = user.properties["id"]
        logger.info("Created communication user %s", backing_user_id)
        return IssuedIdentity(
            backing_user_id=backing_user_id,
            token=access_token.token,
            expires_on=_to_utc_datetime(access_token.expires_on),
        )

    async def refresh(self, backing_user_id: str, scopes: Iterable[str]) -> IssuedToken:
        """Issue a new token for an existing communication user."""
        try:
            access_token = await self._client.get_token(
                CommunicationUserIdentifier(backing_user_id),
                scopes=self._scopes(scopes),
                **self._token_options(),
            )
        except AzureError as exc:
            raise TokenIssuerError(
                f"Failed to issue token for communication user {backing_user_id}."
            ) from exc

        return IssuedToken(
            token=access_token.token,
            expires_on=_to_utc_datetime(access_token.expires_on),
        )

    async def close(self) -> None:
        """Release the underlying HTTP transport."""
        await self._client.close()


__all__ = ["CommunicationIdentityIssuer", "IssuedIdentity", "IssuedToken"]
