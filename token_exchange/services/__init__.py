"""Service layer exports."""

from .token_cipher import TokenCipherService
from .token_exchange import TokenExchangeService
from .user_mappings import RecordBackend, UserMappingStore

__all__ = [
    "RecordBackend",
    "TokenCipherService",
    "TokenExchangeService",
    "UserMappingStore",
]
