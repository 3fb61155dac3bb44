"""
Exchange an external user identity for a communication access token.

The service reuses the cached token while it is valid for at least the minimum
validity window, mints a new communication user for unseen external users, and
refreshes tokens that are missing or about to expire.

Concurrent first requests for the same external user are not serialized: each
may mint its own communication user and the last write to the store wins.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Protocol, Sequence

from token_exchange.clients.communication_identity import IssuedIdentity, IssuedToken
from token_exchange.core.errors import UnauthenticatedError
from token_exchange.models.user_record import TokenResult, UserRecord
from token_exchange.services.user_mappings import UserMappingStore

logger = logging.getLogger(__name__)

DEFAULT_SCOPES: tuple[str, ...] = ("chat", "voip")
DEFAULT_MIN_VALIDITY = timedelta(hours=1)


class TokenIssuer(Protocol):
    async def mint(self, scopes: Sequence[str]) -> IssuedIdentity:
        ...

    async def refresh(self, backing_user_id: str, scopes: Sequence[str]) -> IssuedToken:
        ...


class TokenExchangeService:
    """Resolve a valid communication token for an external user."""

    def __init__(
        self,
        store: UserMappingStore,
        issuer: TokenIssuer,
        scopes: Sequence[str] = DEFAULT_SCOPES,
        min_validity: timedelta = DEFAULT_MIN_VALIDITY,
    ) -> None:
        self._store = store
        self._issuer = issuer
        self._scopes = tuple(scopes)
        self._min_validity = min_validity

    async def resolve(
        self, *, external_user_id: str, identity_provider: str = ""
    ) -> TokenResult:
        """Return a cached, minted or refreshed token for ``external_user_id``."""
        if not external_user_id:
            raise UnauthenticatedError("External user id is required.")

        record = await self._store.get(external_user_id)
        is_new_user = False
        changed = False

        if record is None or not record.backing_user_id:
            minted = await self._issuer.mint(self._scopes)
            record = UserRecord(
                external_user_id=external_user_id,
                identity_provider=identity_provider,
                backing_user_id=minted.backing_user_id,
                token=minted.token,
                token_expiry=minted.expires_on,
            )
            is_new_user = True
            changed = True
            logger.info(
                "Minted communication user %s for external user %s",
                minted.backing_user_id,
                external_user_id,
            )

        min_expiry = datetime.now(timezone.utc) + self._min_validity
        if not record.has_token_valid_until(min_expiry):
            refreshed = await self._issuer.refresh(record.backing_user_id, self._scopes)
            record = UserRecord(
                external_user_id=record.external_user_id,
                identity_provider=record.identity_provider,
                backing_user_id=record.backing_user_id,
                token=refreshed.token,
                token_expiry=refreshed.expires_on,
            )
            changed = True
            logger.info(
                "Refreshed token for communication user %s", record.backing_user_id
            )

        if changed:
            await self._store.upsert(record)
        else:
            logger.debug("Serving cached token for external user %s", external_user_id)

        return TokenResult(
            backing_user_id=record.backing_user_id,
            token=record.token,
            token_expiry=record.token_expiry,
            is_new_user=is_new_user,
            from_cache=not changed,
        )


__all__ = [
    "DEFAULT_MIN_VALIDITY",
    "DEFAULT_SCOPES",
    "TokenExchangeService",
    "TokenIssuer",
]
