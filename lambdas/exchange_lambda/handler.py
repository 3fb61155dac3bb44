"""
AWS Lambda entrypoint for exchanging gateway identities for communication tokens.

Invoked through an API Gateway proxy integration; responds with the same status
codes and bodies as the HTTP route.
"""

from __future__ import annotations

import asyncio
import json
import logging
from datetime import timedelta
from functools import lru_cache
from typing import Any, Dict

from token_exchange.api.identity import (
    DUPLICATE_RECORD_MESSAGE,
    CallerIdentity,
    extract_identity,
)
from token_exchange.clients import CommunicationIdentityIssuer
from token_exchange.core.config import get_settings
from token_exchange.core.errors import (
    DependencyError,
    MultipleRecordsError,
    UnauthenticatedError,
)
from token_exchange.core.logging import configure_logging
from token_exchange.dependencies import get_user_mapping_store
from token_exchange.models.user_record import TokenResult
from token_exchange.schemas import TokenExchangeResponse
from token_exchange.services import TokenExchangeService, UserMappingStore

logger = logging.getLogger(__name__)

configure_logging(get_settings().log_level)


@lru_cache()
def _bootstrap() -> UserMappingStore:
    """Initialize shared singletons for the Lambda runtime."""
    return get_user_mapping_store()


def _build_issuer() -> CommunicationIdentityIssuer:
    return CommunicationIdentityIssuer(get_settings().communication)


async def _exchange(identity: CallerIdentity) -> TokenResult:
    # Each invocation runs in a fresh event loop, so the async issuer client
    # is created and closed per call while the store stays warm.
    communication = get_settings().communication
    issuer = _build_issuer()
    try:
        service = TokenExchangeService(
            store=_bootstrap(),
            issuer=issuer,
            scopes=communication.scopes,
            min_validity=timedelta(seconds=communication.min_validity_seconds),
        )
        return await service.resolve(
            external_user_id=identity.external_user_id,
            identity_provider=identity.identity_provider,
        )
    finally:
        await issuer.close()


def _text_response(status_code: int, body: str) -> Dict[str, Any]:
    return {
        "statusCode": status_code,
        "headers": {"Content-Type": "text/plain; charset=utf-8"},
        "body": body,
    }


def _json_response(status_code: int, payload: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "statusCode": status_code,
        "headers": {"Content-Type": "application/json"},
        "body": json.dumps(payload),
    }


def lambda_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """AWS Lambda handler invoked by API Gateway."""
    logger.info(
        'Processing token exchange for path "%s"',
        event.get("path") or event.get("rawPath"),
    )

    try:
        identity = extract_identity(event.get("headers") or {}, get_settings().headers)
    except UnauthenticatedError as exc:
        return _text_response(401, str(exc))

    try:
        result = asyncio.run(_exchange(identity))
    except MultipleRecordsError as exc:
        logger.error(
            "Found %s mappings for external user %s", exc.count, exc.external_user_id
        )
        return _text_response(500, DUPLICATE_RECORD_MESSAGE)
    except DependencyError as exc:
        logger.exception("Token exchange failed for %s", identity.external_user_id)
        return _json_response(502, {"detail": str(exc)})

    response = TokenExchangeResponse.from_result(result)
    return _json_response(200, response.model_dump(mode="json", by_alias=True))


__all__ = ["lambda_handler"]
