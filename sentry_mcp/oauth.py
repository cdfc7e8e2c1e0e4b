"""
Upstream half of the OAuth flow: Sentry's authorize URL, the code exchange,
and the `state` codec that carries the MCP client's request through Sentry.

The flow, end to end:

    MCP client --/authorize--> gateway --redirect--> Sentry consent screen
    Sentry --/callback?code&state--> gateway --POST code--> Sentry token endpoint
    gateway --redirect with session token--> MCP client redirect_uri

Nothing is stored server-side between /authorize and /callback. The client's
request rides along in `state`, which is plain base64 JSON: it is not a trust
boundary, so /callback checks the decoded record before using it.
"""

import base64
import binascii
import logging
from urllib.parse import urlencode

import httpx
from pydantic import BaseModel, ConfigDict, ValidationError
from pydantic.alias_generators import to_camel
from starlette.responses import PlainTextResponse, Response

from sentry_mcp.auth import InvalidStateError

logger = logging.getLogger("sentry-mcp.oauth")

AUTH_FAILED_MESSAGE = (
    "There was an issue authenticating your account and retrieving an access token. "
    "Please try again."
)


class AuthRequest(BaseModel):
    """
    An MCP client's pending authorization request.

    Serialized with camelCase keys (clientId, redirectUri, ...) when it is
    packed into `state`.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    response_type: str = "code"
    client_id: str = ""
    redirect_uri: str = ""
    scope: list[str] = []
    state: str = ""
    code_challenge: str | None = None
    code_challenge_method: str | None = None

    @classmethod
    def from_query(cls, query) -> "AuthRequest":
        """Build a request from /authorize query parameters."""
        return cls(
            response_type=query.get("response_type") or "code",
            client_id=query.get("client_id") or "",
            redirect_uri=query.get("redirect_uri") or "",
            scope=(query.get("scope") or "").split(),
            state=query.get("state") or "",
            code_challenge=query.get("code_challenge"),
            code_challenge_method=query.get("code_challenge_method"),
        )


class TokenUser(BaseModel):
    id: str
    name: str
    email: str


class TokenResponse(BaseModel):
    """Sentry's answer to a successful code exchange."""

    access_token: str
    refresh_token: str
    token_type: str
    expires_in: int
    expires_at: str
    scope: str
    user: TokenUser


def encode_state(request: AuthRequest) -> str:
    """Pack an authorization request into an opaque `state` string."""
    raw = request.model_dump_json(by_alias=True).encode("utf-8")
    return base64.urlsafe_b64encode(raw).decode("ascii")


def decode_state(state: str | None) -> AuthRequest:
    """
    Unpack a `state` string produced by encode_state().

    Raises:
        InvalidStateError: if the value is missing, not base64, not JSON,
                           or not shaped like an authorization request
    """
    if not state:
        raise InvalidStateError("Missing state")
    try:
        raw = base64.urlsafe_b64decode(state.encode("ascii"))
        return AuthRequest.model_validate_json(raw)
    except (binascii.Error, UnicodeError, ValueError, ValidationError) as e:
        logger.warning("Could not decode OAuth state: %s", e)
        raise InvalidStateError() from e


def get_upstream_authorize_url(
    upstream_url: str,
    client_id: str,
    scope: str,
    redirect_uri: str,
    state: str | None = None,
) -> str:
    """Build the Sentry authorization URL the user is redirected to."""
    params = {
        "client_id": client_id,
        "redirect_uri": redirect_uri,
        "scope": scope,
    }
    if state:
        params["state"] = state
    params["response_type"] = "code"
    separator = "&" if "?" in upstream_url else "?"
    return f"{upstream_url}{separator}{urlencode(params)}"


async def exchange_code_for_access_token(
    code: str | None,
    client_id: str,
    client_secret: str,
    redirect_uri: str,
    token_url: str,
    *,
    timeout: float = 30.0,
    transport: httpx.AsyncBaseTransport | None = None,
) -> tuple[TokenResponse, None] | tuple[None, Response]:
    """
    Trade an authorization code for a Sentry access token.

    Never raises for expected failures. Returns either (token, None) or
    (None, response) where the response is ready to send back:

    - 400 when the code is missing or Sentry rejects it
    - 500 when Sentry's answer isn't a valid token response
    - 502 when the token endpoint can't be reached
    """
    if not code:
        return None, PlainTextResponse("Missing code", status_code=400)

    try:
        async with httpx.AsyncClient(timeout=timeout, transport=transport) as client:
            resp = await client.post(
                token_url,
                data={
                    "grant_type": "authorization_code",
                    "client_id": client_id,
                    "client_secret": client_secret,
                    "code": code,
                    "redirect_uri": redirect_uri,
                },
            )
    except httpx.HTTPError as e:
        logger.error("Token endpoint unreachable: %s", e)
        return None, PlainTextResponse(AUTH_FAILED_MESSAGE, status_code=502)

    if not resp.is_success:
        # The upstream body stays in our logs; the caller gets the generic message.
        logger.warning("Code exchange rejected (%s): %s", resp.status_code, resp.text)
        return None, PlainTextResponse(AUTH_FAILED_MESSAGE, status_code=400)

    try:
        return TokenResponse.model_validate(resp.json()), None
    except (ValueError, ValidationError):
        logger.exception("Failed to parse token response")
        return None, PlainTextResponse(AUTH_FAILED_MESSAGE, status_code=500)
