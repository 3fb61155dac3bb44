"""
Persistence of external-user to communication-user mappings.

Each external user owns exactly one item whose partition and sort keys are both
the external user id. Access tokens are stored encrypted.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Protocol

from token_exchange.core.errors import MultipleRecordsError, StoreError
from token_exchange.models.user_record import UserRecord
from token_exchange.services.token_cipher import TokenCipherService

logger = logging.getLogger(__name__)


class RecordBackend(Protocol):
    """Key-value table operations shared by the DynamoDB and SQLite clients."""

    def query_items(self, partition_key: str) -> list[Dict[str, Any]]:
        ...

    def put_item(self, item: Dict[str, Any]) -> None:
        ...


class UserMappingStore:
    """Read and write ``UserRecord`` items keyed by external user id."""

    def __init__(self, backend: RecordBackend, token_cipher: TokenCipherService) -> None:
        self._backend = backend
        self._cipher = token_cipher

    async def get(self, external_user_id: str) -> Optional[UserRecord]:
        """Return the stored record, or ``None`` when the user is unknown."""
        items = await asyncio.to_thread(self._backend.query_items, external_user_id)
        if not items:
            return None
        if len(items) > 1:
            raise MultipleRecordsError(external_user_id, len(items))
        return self._from_item(external_user_id, items[0])

    async def upsert(self, record: UserRecord) -> None:
        """Insert or replace the item for ``record.external_user_id``."""
        item = self._to_item(record)
        await asyncio.to_thread(self._backend.put_item, item)

    def _to_item(self, record: UserRecord) -> Dict[str, Any]:
        item: Dict[str, Any] = {
            "pk": record.external_user_id,
            "sk": record.external_user_id,
            "identity_provider": record.identity_provider,
            "updated_at": datetime.now(timezone.utc).isoformat(),
        }
        if record.backing_user_id:
            item["backing_user_id"] = record.backing_user_id
        if record.token and record.token_expiry is not None:
            item["token_encrypted"] = self._cipher.encrypt(record.token)
            item["token_expiry"] = record.token_expiry.isoformat()
        return item

    def _from_item(self, external_user_id: str, item: Dict[str, Any]) -> UserRecord:
        token: Optional[str] = None
        encrypted_token = item.get("token_encrypted")
        if encrypted_token:
            try:
                token = self._cipher.decrypt(encrypted_token)
            except ValueError:
                logger.warning(
                    "Stored token for %s could not be decrypted; it will be reissued.",
                    external_user_id,
                )
        elif item.get("token"):
            # Rows written before encryption was introduced.
            token = item["token"]

        try:
            expiry_raw = item.get("token_expiry")
            token_expiry = datetime.fromisoformat(expiry_raw) if expiry_raw else None
            if token is None or token_expiry is None:
                token, token_expiry = None, None

            return UserRecord(
                external_user_id=external_user_id,
                identity_provider=item.get("identity_provider") or "",
                backing_user_id=item.get("backing_user_id") or None,
                token=token,
                token_expiry=token_expiry,
            )
        except (TypeError, ValueError) as exc:
            raise StoreError(
                f"Stored mapping for external user {external_user_id} is malformed."
            ) from exc


__all__ = ["RecordBackend", "UserMappingStore"]
