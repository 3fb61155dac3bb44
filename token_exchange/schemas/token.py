"""Schemas returned by the token exchange endpoint."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from token_exchange.models.user_record import TokenResult


class TokenExchangeResponse(BaseModel):
    """JSON body returned to the caller after a successful exchange."""

    model_config = ConfigDict(populate_by_name=True)

    user_id: str = Field(..., alias="userId", description="Communication user id.")
    token: str = Field(..., description="Access token scoped for chat and voip.")
    expires_on: datetime = Field(..., alias="expiresOn")
    is_new_user: bool = Field(..., alias="isNewUser")
    from_cache: bool = Field(..., alias="fromCache")

    @classmethod
    def from_result(cls, result: TokenResult) -> "TokenExchangeResponse":
        return cls(
            user_id=result.backing_user_id,
            token=result.token,
            expires_on=result.token_expiry,
            is_new_user=result.is_new_user,
            from_cache=result.from_cache,
        )


__all__ = ["TokenExchangeResponse"]
