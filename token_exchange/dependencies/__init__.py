"""Expose dependency helpers for FastAPI routers."""

from .clients import (
    close_clients,
    get_identity_issuer,
    get_record_backend,
    get_token_cipher_service,
    get_token_exchange_service,
    get_user_mapping_store,
)
from .config import get_app_settings

__all__ = [
    "close_clients",
    "get_app_settings",
    "get_identity_issuer",
    "get_record_backend",
    "get_token_cipher_service",
    "get_token_exchange_service",
    "get_user_mapping_store",
]
