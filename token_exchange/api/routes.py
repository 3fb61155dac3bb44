"""
FastAPI routes for the token exchange service.
"""

from __future__ import annotations

import logging
from http import HTTPStatus
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import PlainTextResponse

from token_exchange.api.identity import (
    DUPLICATE_RECORD_MESSAGE,
    extract_identity,
)
from token_exchange.core.config import AppSettings
from token_exchange.core.errors import (
    DependencyError,
    MultipleRecordsError,
    UnauthenticatedError,
)
from token_exchange.dependencies import get_app_settings, get_token_exchange_service
from token_exchange.schemas import TokenExchangeResponse
from token_exchange.services import TokenExchangeService

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/health", status_code=HTTPStatus.OK)
async def healthcheck() -> dict:
    """Simple health endpoint for monitoring."""
    return {"status": "ok"}


@router.post(
    "/token/exchange",
    status_code=HTTPStatus.OK,
    response_model=TokenExchangeResponse,
)
async def exchange_token(
    request: Request,
    settings: Annotated[AppSettings, Depends(get_app_settings)],
    service: Annotated[TokenExchangeService, Depends(get_token_exchange_service)],
):
    """
    Exchange the gateway-asserted identity for a communication access token.

    Identity headers are trusted as-is; the gateway in front of this service is
    responsible for authenticating the caller.
    """
    logger.info('Processing token exchange for url "%s"', request.url)

    try:
        identity = extract_identity(request.headers, settings.headers)
    except UnauthenticatedError as exc:
        return PlainTextResponse(str(exc), status_code=HTTPStatus.UNAUTHORIZED)

    try:
        result = await service.resolve(
            external_user_id=identity.external_user_id,
            identity_provider=identity.identity_provider,
        )
    except MultipleRecordsError as exc:
        logger.error(
            "Found %s mappings for external user %s", exc.count, exc.external_user_id
        )
        return PlainTextResponse(
            DUPLICATE_RECORD_MESSAGE, status_code=HTTPStatus.INTERNAL_SERVER_ERROR
        )
    except DependencyError as exc:
        logger.exception("Token exchange failed for %s", identity.external_user_id)
        raise HTTPException(
            status_code=HTTPStatus.BAD_GATEWAY,
            detail=str(exc),
        ) from exc

    return TokenExchangeResponse.from_result(result)


__all__ = ["router"]
