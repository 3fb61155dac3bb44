"""
Utility wrapper for storing user mappings in DynamoDB.
"""

from __future__ import annotations

from typing import Any, Dict

import boto3
from boto3.dynamodb.conditions import Key
from botocore.exceptions import BotoCoreError, ClientError

from token_exchange.core.config import StorageSettings
from token_exchange.core.errors import StoreError


class DynamoDBClient:
    """Key-value access to the user mapping table keyed by (pk, sk)."""

    def __init__(self, settings: StorageSettings) -> None:
        self._settings = settings
        self._resource = boto3.resource("dynamodb", region_name=settings.region_name)
        self._table = self._resource.Table(settings.table_name)

    def put_item(self, item: Dict[str, Any]) -> None:
        """Put an item in the DynamoDB table, replacing any existing one."""
        try:
            self._table.put_item(Item=item)
        except (BotoCoreError, ClientError) as exc:
            raise StoreError(f"Failed to write item to {self._settings.table_name}.") from exc

    def query_items(self, partition_key: str) -> list[Dict[str, Any]]:
        """Query items that share the same partition key."""
        try:
            response = self._table.query(
                KeyConditionExpression=Key("pk").eq(partition_key)
            )
        except (BotoCoreError, ClientError) as exc:
            raise StoreError(f"Failed to query {self._settings.table_name}.") from exc
        return response.get("Items", [])


__all__ = ["DynamoDBClient"]
