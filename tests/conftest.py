"""
Shared test fixtures for the Sentry MCP test suite.

Key fixtures:
- make_token: A factory function to generate session tokens with any claims
- make_auth_header: Same, as a ready-to-send "Bearer <token>" header value
- session_context: The SessionContext most handler tests run as
- api: A SentryApiClient pointed at sentry.io (requests are mocked with
  pytest-httpx's httpx_mock fixture)
- *_payload: Realistic Sentry API response bodies

Testing approach:
- test_auth.py / test_oauth.py: the session token and OAuth helpers in isolation
- test_utils.py / test_formatting.py: pure functions
- test_sentry_api.py: the API client against mocked HTTP responses
- test_dispatcher.py: tool calls end to end, minus the MCP transport
- test_routes.py / test_server.py: the ASGI app in memory, via httpx.ASGITransport
"""

import copy
import datetime

import jwt
import pytest

from sentry_mcp.config import settings
from sentry_mcp.context import SessionContext
from sentry_mcp.sentry_api import SentryApiClient

# ---------------------------------------------------------------------------
# Known test secret
# ---------------------------------------------------------------------------
# This must match settings.jwt_secret_key so that tokens generated in tests
# are accepted by validate_token(). The default is "dev-secret-change-me".
TEST_SECRET = settings.jwt_secret_key
TEST_ALGORITHM = settings.jwt_algorithm

ACCESS_TOKEN = "sntrys_test_access_token"
ORGANIZATION_SLUG = "sentry-mcp-evals"
API = "https://sentry.io/api/0"


# ---------------------------------------------------------------------------
# Token factory fixture
# ---------------------------------------------------------------------------
@pytest.fixture
def make_token():
    """
    Factory fixture to generate session tokens for testing.

    Usage in tests:
        def test_something(make_token):
            token = make_token(sub="1234", organization_slug="my-org")
            # token is a raw JWT string (not "Bearer ..." prefixed)
    """

    def _make_token(
        sub: str = "1234",
        name: str = "Test User",
        access_token: str | None = ACCESS_TOKEN,
        organization_slug: str | None = ORGANIZATION_SLUG,
        secret: str = TEST_SECRET,
        algorithm: str = TEST_ALGORITHM,
        exp_hours: float = 1.0,
        extra_claims: dict | None = None,
        include_exp: bool = True,
        include_sub: bool = True,
    ) -> str:
        """
        Generate a signed session token with the given claims.

        Args:
            sub: Subject claim (the Sentry user id)
            access_token: Sentry access token claim (None omits it)
            organization_slug: Default organization claim
            secret: Signing key
            algorithm: JWT algorithm
            exp_hours: Hours until expiration (negative = already expired)
            extra_claims: Additional claims to include in the payload
            include_exp: Whether to include the exp claim
            include_sub: Whether to include the sub claim
        """
        now = datetime.datetime.now(datetime.timezone.utc)
        payload: dict = {"name": name, "organization_slug": organization_slug}

        if include_sub:
            payload["sub"] = sub

        if access_token is not None:
            payload["access_token"] = access_token

        if include_exp:
            payload["exp"] = now + datetime.timedelta(hours=exp_hours)

        payload["iat"] = now

        if extra_claims:
            payload.update(extra_claims)

        return jwt.encode(payload, secret, algorithm=algorithm)

    return _make_token


@pytest.fixture
def make_auth_header(make_token):
    """Convenience fixture that returns a full "Bearer <token>" string."""

    def _make_auth_header(**kwargs) -> str:
        return f"Bearer {make_token(**kwargs)}"

    return _make_auth_header


# ---------------------------------------------------------------------------
# Session and client fixtures
# ---------------------------------------------------------------------------
@pytest.fixture
def session_context() -> SessionContext:
    return SessionContext(access_token=ACCESS_TOKEN, organization_slug=ORGANIZATION_SLUG)


@pytest.fixture
def api() -> SentryApiClient:
    return SentryApiClient(ACCESS_TOKEN, host="sentry.io", timeout=5.0)


# ---------------------------------------------------------------------------
# Sentry API payloads
# ---------------------------------------------------------------------------
ORGANIZATION = {"id": "4509106740723712", "slug": ORGANIZATION_SLUG, "name": "sentry-mcp-evals"}

TEAM = {"id": "4509106740854784", "slug": "the-goats", "name": "the-goats"}

PROJECT = {"id": "4509106749636608", "slug": "cloudflare-mcp", "name": "cloudflare-mcp"}

CLIENT_KEY = {
    "id": "d20df0a1ab5031c7f3c7edca9c02814d",
    "name": "Default",
    "dsn": {
        "public": "https://d20df0a1ab5031c7f3c7edca9c02814d@o4509106732793856.ingest.us.sentry.io/4509106749636608",
    },
}

RELEASE = {
    "id": 1402755016,
    "version": "8ce89484-0fec-4913-a2cd-e8e2d41dee36",
    "shortVersion": "8ce89484-0fec-4913-a2cd-e8e2d41dee36",
    "dateCreated": "2025-04-13T19:54:21.764000Z",
    "dateReleased": None,
    "firstEvent": "2025-04-13T19:54:21Z",
    "lastEvent": "2025-04-13T20:28:23Z",
    "newGroups": 0,
    "lastCommit": None,
    "lastDeploy": None,
    "projects": [PROJECT],
}

ISSUE = {
    "id": "6507376925",
    "shortId": "CLOUDFLARE-MCP-41",
    "title": "Error: Tool list_organizations is already registered",
    "culprit": "Object.fetch(index)",
    "permalink": "https://sentry-mcp-evals.sentry.io/issues/6507376925/",
    "status": "unresolved",
    "platform": "javascript",
    "project": {"id": "4509106749636608", "name": "CLOUDFLARE-MCP", "slug": "cloudflare-mcp"},
    "type": "error",
    "count": "25",
    "userCount": 1,
    "firstSeen": "2025-04-03T22:51:19.403000Z",
    "lastSeen": "2025-04-12T11:34:11Z",
}

EVENT = {
    "id": "7ca573c0f4814912aaa9bdc77d1a7d51",
    "title": "Error: Tool list_organizations is already registered",
    "message": "",
    "dateCreated": "2025-04-08T21:15:04Z",
    "culprit": "Object.fetch(index)",
    "platform": "javascript",
    "entries": [
        {
            "type": "exception",
            "data": {
                "values": [
                    {
                        "type": "Error",
                        "value": "Tool list_organizations is already registered",
                        "mechanism": {"type": "cloudflare", "handled": False},
                        "stacktrace": {
                            "frames": [
                                {
                                    "filename": "index.js",
                                    "function": "Object.fetch",
                                    "lineNo": 7809,
                                    "colNo": 27,
                                    "context": [
                                        [7808, "  async fetch(request, env, ctx) {"],
                                        [7809, "    return handler.fetch(request, env, ctx);"],
                                        [7810, "  },"],
                                    ],
                                },
                            ]
                        },
                    }
                ]
            },
        },
        {"type": "breadcrumbs", "data": {"values": []}},
    ],
}

ERROR_SEARCH = {
    "data": [
        {
            "issue": "CLOUDFLARE-MCP-41",
            "issue.id": 6507376925,
            "project": "cloudflare-mcp",
            "title": "Error: Tool list_organizations is already registered",
            "count()": 2,
            "last_seen()": "2025-04-07T12:23:39+00:00",
        }
    ],
    "meta": {"fields": {"issue": "string", "count()": "integer"}},
}

SPAN_SEARCH = {
    "data": [
        {
            "id": "07752c6aeb027c8f",
            "trace": "6a477f5b0f31ef7b6b9b5e1dea66c91d",
            "span.op": "http.server",
            "span.description": "GET /trpc/bottleList",
            "span.duration": 12.0,
            "transaction": "GET /trpc/bottleList",
            "project": "peated",
            "timestamp": "2025-04-13T14:19:18+00:00",
        }
    ],
    "meta": {"fields": {"span.duration": "duration"}},
}


@pytest.fixture
def organization_payload() -> dict:
    return copy.deepcopy(ORGANIZATION)


@pytest.fixture
def team_payload() -> dict:
    return copy.deepcopy(TEAM)


@pytest.fixture
def project_payload() -> dict:
    return copy.deepcopy(PROJECT)


@pytest.fixture
def client_key_payload() -> dict:
    return copy.deepcopy(CLIENT_KEY)


@pytest.fixture
def release_payload() -> dict:
    return copy.deepcopy(RELEASE)


@pytest.fixture
def issue_payload() -> dict:
    return copy.deepcopy(ISSUE)


@pytest.fixture
def event_payload() -> dict:
    return copy.deepcopy(EVENT)


@pytest.fixture
def error_search_payload() -> dict:
    return copy.deepcopy(ERROR_SEARCH)


@pytest.fixture
def span_search_payload() -> dict:
    return copy.deepcopy(SPAN_SEARCH)
