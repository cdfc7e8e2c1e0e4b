"""
Tests for the plain HTTP routes: the OAuth flow and the health probes.

The ASGI app is driven in memory through httpx.ASGITransport. Sentry's token
endpoint and API are mocked with pytest-httpx (which leaves ASGITransport
alone).
"""

from urllib.parse import parse_qs, urlsplit

import httpx
import pytest

from sentry_mcp.auth import validate_token
from sentry_mcp.config import settings
from sentry_mcp.oauth import AuthRequest, decode_state, encode_state
from sentry_mcp.server import create_server

TOKEN_URL = "https://sentry.io/oauth/token/"
ORGANIZATIONS_URL = "https://sentry.io/api/0/organizations/"

TOKEN_RESPONSE = {
    "access_token": "sntrys_access",
    "refresh_token": "sntrys_refresh",
    "token_type": "bearer",
    "expires_in": 2591999,
    "expires_at": "2025-05-13T19:54:21.764000Z",
    "scope": "org:read project:read",
    "user": {"id": "1234", "name": "Jane Doe", "email": "jane@example.com"},
}


@pytest.fixture
def oauth_settings(monkeypatch):
    monkeypatch.setattr(settings, "client_id", "gateway-client")
    monkeypatch.setattr(settings, "client_secret", "gateway-secret")
    monkeypatch.setattr(settings, "token_url", TOKEN_URL)
    monkeypatch.setattr(settings, "authorize_url", "https://sentry.io/oauth/authorize/")


@pytest.fixture
async def http_client():
    app = create_server().http_app(transport="streamable-http")
    async with httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app), base_url="http://testserver"
    ) as client:
        yield client


def _client_state(**overrides) -> str:
    fields = {
        "client_id": "mcp-client",
        "redirect_uri": "https://client.example.com/cb",
        "scope": ["org:read"],
        "state": "client-state",
    }
    fields.update(overrides)
    return encode_state(AuthRequest(**fields))


class TestAuthorize:
    async def test_redirects_to_sentry(self, http_client, oauth_settings):
        response = await http_client.get(
            "/authorize",
            params={
                "response_type": "code",
                "client_id": "mcp-client",
                "redirect_uri": "https://client.example.com/cb",
                "state": "client-state",
            },
        )

        assert response.status_code == 302
        location = urlsplit(response.headers["location"])
        assert f"{location.scheme}://{location.netloc}{location.path}" == "https://sentry.io/oauth/authorize/"

        query = parse_qs(location.query)
        assert query["client_id"] == ["gateway-client"]
        assert query["redirect_uri"] == ["http://testserver/callback"]
        assert query["response_type"] == ["code"]
        assert query["scope"] == [settings.scopes]

        carried = decode_state(query["state"][0])
        assert carried.client_id == "mcp-client"
        assert carried.redirect_uri == "https://client.example.com/cb"
        assert carried.state == "client-state"

    async def test_missing_client_id_is_400(self, http_client, oauth_settings):
        response = await http_client.get("/authorize", params={"redirect_uri": "https://x/cb"})

        assert response.status_code == 400
        assert response.text == "Invalid request"


class TestCallback:
    async def test_issues_session_token(self, http_client, oauth_settings, httpx_mock, organization_payload):
        httpx_mock.add_response(method="POST", url=TOKEN_URL, json=TOKEN_RESPONSE)
        httpx_mock.add_response(url=ORGANIZATIONS_URL, json=[organization_payload])

        response = await http_client.get("/callback", params={"code": "abc", "state": _client_state()})

        assert response.status_code == 302
        location = urlsplit(response.headers["location"])
        assert f"{location.scheme}://{location.netloc}{location.path}" == "https://client.example.com/cb"
        query = parse_qs(location.query)
        assert query["state"] == ["client-state"]

        grant = validate_token(f"Bearer {query['code'][0]}")
        assert grant.subject == "1234"
        assert grant.name == "Jane Doe"
        assert grant.context.access_token == "sntrys_access"
        assert grant.context.organization_slug == "sentry-mcp-evals"

        token_request, org_request = httpx_mock.get_requests()
        form = parse_qs(token_request.content.decode())
        assert form["redirect_uri"] == ["http://testserver/callback"]
        assert form["client_secret"] == ["gateway-secret"]
        assert org_request.headers["Authorization"] == "Bearer sntrys_access"

    async def test_garbage_state_is_400(self, http_client, oauth_settings, httpx_mock):
        response = await http_client.get("/callback", params={"code": "abc", "state": "garbage"})

        assert response.status_code == 400
        assert response.text == "Invalid state"
        assert httpx_mock.get_requests() == []

    async def test_state_without_client_is_400(self, http_client, oauth_settings, httpx_mock):
        response = await http_client.get(
            "/callback", params={"code": "abc", "state": _client_state(client_id="")}
        )

        assert response.status_code == 400
        assert response.text == "Invalid state"

    async def test_failed_exchange_is_returned(self, http_client, oauth_settings, httpx_mock):
        httpx_mock.add_response(method="POST", url=TOKEN_URL, status_code=401, json={"error": "invalid_client"})

        response = await http_client.get("/callback", params={"code": "abc", "state": _client_state()})

        assert response.status_code == 400
        assert "invalid_client" not in response.text

    async def test_missing_code_is_400(self, http_client, oauth_settings, httpx_mock):
        response = await http_client.get("/callback", params={"state": _client_state()})

        assert response.status_code == 400
        assert response.text == "Missing code"

    async def test_no_organizations_is_400(self, http_client, oauth_settings, httpx_mock):
        httpx_mock.add_response(method="POST", url=TOKEN_URL, json=TOKEN_RESPONSE)
        httpx_mock.add_response(url=ORGANIZATIONS_URL, json=[])

        response = await http_client.get("/callback", params={"code": "abc", "state": _client_state()})

        assert response.status_code == 400
        assert response.text == "No organizations found"

    async def test_organization_lookup_failure_is_502(self, http_client, oauth_settings, httpx_mock):
        httpx_mock.add_response(method="POST", url=TOKEN_URL, json=TOKEN_RESPONSE)
        httpx_mock.add_response(url=ORGANIZATIONS_URL, status_code=500, text="boom")

        response = await http_client.get("/callback", params={"code": "abc", "state": _client_state()})

        assert response.status_code == 502


class TestProbes:
    async def test_health(self, http_client):
        response = await http_client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "healthy"}

    async def test_ready(self, http_client, oauth_settings):
        response = await http_client.get("/ready")

        assert response.status_code == 200
        assert response.json() == {"status": "ready"}

    async def test_not_ready_without_credentials(self, http_client, monkeypatch):
        monkeypatch.setattr(settings, "client_secret", "")

        response = await http_client.get("/ready")

        assert response.status_code == 503
        assert response.json()["status"] == "not_ready"
