from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from azure.communication.identity import CommunicationUserIdentifier
from azure.core.credentials import AccessToken
from azure.core.exceptions import HttpResponseError

from token_exchange.clients.communication_identity import CommunicationIdentityIssuer
from token_exchange.core.config import CommunicationSettings
from token_exchange.core.errors import DependencyError, TokenIssuerError

EXPIRES_ON = datetime(2030, 1, 1, tzinfo=timezone.utc)


class DummyIdentityClient:
    def __init__(self) -> None:
        self.created: list[dict] = []
        self.issued: list[tuple[str, dict]] = []
        self.closed = False
        self.error: Exception | None = None

    async def create_user_and_token(self, scopes, **kwargs):
        if self.error is not None:
            raise self.error
        self.created.append({"scopes": list(scopes), **kwargs})
        return (
            CommunicationUserIdentifier("8:acs:new-user"),
            AccessToken("minted-token", int(EXPIRES_ON.timestamp())),
        )

    async def get_token(self, user, scopes, **kwargs):
        if self.error is not None:
            raise self.error
        self.issued.append((user.properties["id"], {"scopes": list(scopes), **kwargs}))
        return AccessToken("refreshed-token", int(EXPIRES_ON.timestamp()))

    async def close(self) -> None:
        self.closed = True


def _settings(**overrides) -> CommunicationSettings:
    return CommunicationSettings(
        connection_string="endpoint=https://example.communication.azure.com/;accesskey=a2V5",
        **overrides,
    )


@pytest.mark.asyncio
async def test_mint_returns_user_and_utc_expiry() -> None:
    client = DummyIdentityClient()
    issuer = CommunicationIdentityIssuer(_settings(), client=client)

    minted = await issuer.mint(("chat", "voip"))

    assert minted.backing_user_id == "8:acs:new-user"
    assert minted.token == "minted-token"
    assert minted.expires_on == EXPIRES_ON
    assert client.created == [{"scopes": ["chat", "voip"]}]


@pytest.mark.asyncio
async def test_refresh_targets_existing_user_with_custom_lifetime() -> None:
    client = DummyIdentityClient()
    issuer = CommunicationIdentityIssuer(
        _settings(token_lifetime_minutes=120), client=client
    )

    refreshed = await issuer.refresh("8:acs:existing", ("chat", "voip"))

    assert refreshed.token == "refreshed-token"
    assert refreshed.expires_on == EXPIRES_ON
    user_id, options = client.issued[0]
    assert user_id == "8:acs:existing"
    assert options["token_expires_in"] == timedelta(minutes=120)


@pytest.mark.asyncio
async def test_azure_errors_become_issuer_errors() -> None:
    client = DummyIdentityClient()
    client.error = HttpResponseError(message="429 Too Many Requests")
    issuer = CommunicationIdentityIssuer(_settings(), client=client)

    with pytest.raises(TokenIssuerError) as excinfo:
        await issuer.mint(("chat", "voip"))

    assert isinstance(excinfo.value, DependencyError)
    assert isinstance(excinfo.value.__cause__, HttpResponseError)


@pytest.mark.asyncio
async def test_close_releases_client() -> None:
    client = DummyIdentityClient()
    issuer = CommunicationIdentityIssuer(_settings(), client=client)

    await issuer.close()

    assert client.closed is True


def test_scopes_accept_comma_separated_string() -> None:
    settings = _settings(scopes="chat, voip,")
    assert settings.scopes == ("chat", "voip")


def test_token_lifetime_is_bounded() -> None:
    with pytest.raises(ValueError):
        _settings(token_lifetime_minutes=30)
