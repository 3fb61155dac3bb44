from datetime import datetime

import httpx
import pytest

from _fakes import FakeIssuer, FakeRecordBackend, issuer_failure
from token_exchange.main import app
from token_exchange.services.token_cipher import TokenCipherService
from token_exchange.services.token_exchange import TokenExchangeService
from token_exchange.services.user_mappings import UserMappingStore

IDENTITY_HEADERS = {
    "X-MS-CLIENT-PRINCIPAL-ID": "u1",
    "X-MS-CLIENT-PRINCIPAL-IDP": "aad",
}


@pytest.fixture()
def exchange_overrides():
    from token_exchange import dependencies

    backend = FakeRecordBackend()
    issuer = FakeIssuer()
    store = UserMappingStore(backend, TokenCipherService(secret="secret-key"))
    service = TokenExchangeService(store=store, issuer=issuer)

    app.dependency_overrides[dependencies.get_token_exchange_service] = lambda: service

    yield backend, issuer

    app.dependency_overrides.clear()


async def _post(headers: dict) -> httpx.Response:
    async with httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app), base_url="http://testserver"
    ) as client:
        return await client.post("/api/token/exchange", headers=headers)


@pytest.mark.anyio
async def test_exchange_mints_for_new_user(exchange_overrides):
    backend, issuer = exchange_overrides

    response = await _post(IDENTITY_HEADERS)

    assert response.status_code == 200
    data = response.json()
    assert data["userId"] == "b1"
    assert data["token"] == "t1"
    assert data["isNewUser"] is True
    assert data["fromCache"] is False
    assert datetime.fromisoformat(data["expiresOn"].replace("Z", "+00:00"))
    assert len(issuer.mint_calls) == 1
    assert [item["pk"] for item in backend.writes] == ["u1"]


@pytest.mark.anyio
async def test_exchange_serves_cached_token(exchange_overrides):
    backend, issuer = exchange_overrides

    first = await _post(IDENTITY_HEADERS)
    second = await _post(IDENTITY_HEADERS)

    assert second.status_code == 200
    data = second.json()
    assert data["fromCache"] is True
    assert data["isNewUser"] is False
    assert data["token"] == first.json()["token"]
    assert data["expiresOn"] == first.json()["expiresOn"]
    assert len(backend.writes) == 1


@pytest.mark.anyio
async def test_headers_are_matched_case_insensitively(exchange_overrides):
    response = await _post(
        {"x-ms-client-principal-id": "u1", "x-ms-client-principal-idp": "github"}
    )

    assert response.status_code == 200


@pytest.mark.anyio
@pytest.mark.parametrize(
    "headers",
    [
        {},
        {"X-MS-CLIENT-PRINCIPAL-ID": "u1"},
        {"X-MS-CLIENT-PRINCIPAL-IDP": "aad"},
        {"X-MS-CLIENT-PRINCIPAL-ID": "  ", "X-MS-CLIENT-PRINCIPAL-IDP": "aad"},
    ],
)
async def test_missing_identity_headers_return_401(exchange_overrides, headers):
    backend, issuer = exchange_overrides

    response = await _post(headers)

    assert response.status_code == 401
    assert response.headers["content-type"].startswith("text/plain")
    assert backend.queries == []
    assert issuer.mint_calls == []
    assert issuer.refresh_calls == []


@pytest.mark.anyio
async def test_duplicate_records_return_500(exchange_overrides):
    backend, issuer = exchange_overrides
    backend.seed({"pk": "u1", "sk": "u1", "backing_user_id": "b-a"})
    backend.seed({"pk": "u1", "sk": "dup", "backing_user_id": "b-b"})

    response = await _post(IDENTITY_HEADERS)

    assert response.status_code == 500
    assert response.text == "Found more than one user entry!"
    assert backend.writes == []
    assert issuer.mint_calls == []


@pytest.mark.anyio
async def test_dependency_failure_returns_502(exchange_overrides):
    backend, issuer = exchange_overrides
    issuer.fail_with = issuer_failure()

    response = await _post(IDENTITY_HEADERS)

    assert response.status_code == 502
    assert response.json()["detail"] == "issuer throttled the request"
    assert backend.writes == []


@pytest.mark.anyio
async def test_healthcheck():
    async with httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app), base_url="http://testserver"
    ) as client:
        response = await client.get("/api/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


@pytest.mark.anyio
async def test_malformed_stored_row_returns_502(exchange_overrides):
    backend, issuer = exchange_overrides
    backend.seed(
        {
            "pk": "u1",
            "sk": "u1",
            "backing_user_id": "b-a",
            "token": "stale",
            "token_expiry": "not-a-date",
        }
    )

    response = await _post(IDENTITY_HEADERS)

    assert response.status_code == 502
    assert "malformed" in response.json()["detail"]
    assert backend.writes == []
    assert issuer.refresh_calls == []
