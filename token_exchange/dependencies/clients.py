"""
Factory functions to provide shared clients and services as FastAPI dependencies.
"""

from datetime import timedelta
from functools import lru_cache

from token_exchange.clients import (
    CommunicationIdentityIssuer,
    DynamoDBClient,
    SQLiteStore,
)
from token_exchange.core.config import get_settings
from token_exchange.services import (
    RecordBackend,
    TokenCipherService,
    TokenExchangeService,
    UserMappingStore,
)


@lru_cache()
def _settings():
    """Internal helper to cache settings for client factories."""
    return get_settings()


@lru_cache()
def get_token_cipher_service() -> TokenCipherService:
    """Provide symmetric encryption helper for token storage."""
    settings = _settings()
    secret = (
        settings.security.token_encryption_secret
        or settings.communication.connection_string
    )
    return TokenCipherService(secret=secret)


@lru_cache()
def get_record_backend() -> RecordBackend:
    """Provide the configured key-value table client."""
    settings = _settings()
    if settings.storage.backend == "sqlite":
        return SQLiteStore(settings.storage.sqlite_path)
    return DynamoDBClient(settings.storage)


@lru_cache()
def get_user_mapping_store() -> UserMappingStore:
    """Provide the user mapping store."""
    return UserMappingStore(
        backend=get_record_backend(),
        token_cipher=get_token_cipher_service(),
    )


@lru_cache()
def get_identity_issuer() -> CommunicationIdentityIssuer:
    """Create a singleton communication identity client."""
    return CommunicationIdentityIssuer(_settings().communication)


@lru_cache()
def get_token_exchange_service() -> TokenExchangeService:
    """Build the token exchange service from the shared clients."""
    communication = _settings().communication
    return TokenExchangeService(
        store=get_user_mapping_store(),
        issuer=get_identity_issuer(),
        scopes=communication.scopes,
        min_validity=timedelta(seconds=communication.min_validity_seconds),
    )


async def close_clients() -> None:
    """Close clients holding network resources, if they were created."""
    if get_identity_issuer.cache_info().currsize:
        await get_identity_issuer().close()
        get_identity_issuer.cache_clear()
        get_token_exchange_service.cache_clear()


__all__ = [
    "close_clients",
    "get_identity_issuer",
    "get_record_backend",
    "get_token_cipher_service",
    "get_token_exchange_service",
    "get_user_mapping_store",
]
