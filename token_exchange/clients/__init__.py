"""Expose constructed client wrappers."""

from .communication_identity import (
    CommunicationIdentityIssuer,
    IssuedIdentity,
    IssuedToken,
)
from .dynamodb import DynamoDBClient
from .sqlite_store import SQLiteStore

__all__ = [
    "CommunicationIdentityIssuer",
    "DynamoDBClient",
    "IssuedIdentity",
    "IssuedToken",
    "SQLiteStore",
]
