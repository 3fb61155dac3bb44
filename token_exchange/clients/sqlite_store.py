"""SQLite-backed substitute for the DynamoDB user mapping table."""

from __future__ import annotations

import json
import sqlite3
from pathlib import Path
from typing import Any, Dict

from token_exchange.core.errors import StoreError


class SQLiteStore:
    """Simple key-value store using a normalized table keyed by (pk, sk)."""

    def __init__(self, db_path: str) -> None:
        self._db_path = Path(db_path)
        if self._db_path.parent and not self._db_path.parent.exists():
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        return conn

    def _ensure_schema(self) -> None:
        try:
            with self._connect() as conn:
                conn.execute(
                    """
                    CREATE TABLE IF NOT EXISTS user_mappings (
                        pk TEXT NOT NULL,
                        sk TEXT NOT NULL,
                        data TEXT NOT NULL,
                        PRIMARY KEY (pk, sk)
                    )
                    """
                )
        except sqlite3.Error as exc:
            raise StoreError(f"Failed to prepare {self._db_path}.") from exc

    def put_item(self, item: Dict[str, Any]) -> None:
        pk = item.get("pk")
        sk = item.get("sk")
        if not pk or not sk:
            raise ValueError("Item must include 'pk' and 'sk' keys")

        try:
            with self._connect() as conn:
                conn.execute(
                    """
                    INSERT INTO user_mappings (pk, sk, data)
                    VALUES (?, ?, ?)
                    ON CONFLICT(pk, sk) DO UPDATE SET data = excluded.data
                    """,
                    (pk, sk, json.dumps(item)),
                )
        except sqlite3.Error as exc:
            raise StoreError(f"Failed to write item to {self._db_path}.") from exc

    def query_items(self, partition_key: str) -> list[Dict[str, Any]]:
        try:
            with self._connect() as conn:
                rows = conn.execute(
                    "SELECT data FROM user_mappings WHERE pk = ?",
                    (partition_key,),
                ).fetchall()
        except sqlite3.Error as exc:
            raise StoreError(f"Failed to query {self._db_path}.") from exc
        return [json.loads(row["data"]) for row in rows]


__all__ = ["SQLiteStore"]
