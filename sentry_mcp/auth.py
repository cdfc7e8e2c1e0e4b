"""
Session tokens: minting at the end of the OAuth flow, validation on every
HTTP request.

When a user finishes the Sentry OAuth flow, the gateway packs what a session
needs into a signed JWT and hands it to the MCP client. The client presents
it as a Bearer token on every MCP request, and validate_token() turns it back
into a SessionContext.

Token structure (JWT payload):
    {
        "sub": "1234",                     # Sentry user id
        "name": "Jane Doe",                # Sentry user name (for logs)
        "access_token": "sntrys_...",      # Sentry access token
        "organization_slug": "my-org",     # Default organization (may be null)
        "iat": 1738790000,
        "exp": 1738800000
    }

The token is signed with HS256, so anyone holding SENTRY_JWT_SECRET_KEY can
mint sessions. The Sentry access token inside it is readable by whoever holds
the JWT, just like the access token itself would be.
"""

import datetime
from dataclasses import dataclass

import jwt

from sentry_mcp.config import settings
from sentry_mcp.context import SessionContext


class AuthError(Exception):
    """
    Raised when authentication or the authorization flow fails.

    Attributes:
        message: Human-readable error description
        status_code: HTTP status code to return
    """

    def __init__(self, message: str, status_code: int = 401):
        self.message = message
        self.status_code = status_code
        super().__init__(message)


class InvalidStateError(AuthError):
    """The OAuth `state` parameter didn't decode to an authorization request."""

    def __init__(self, message: str = "Invalid state"):
        super().__init__(message, status_code=400)


@dataclass(frozen=True)
class SessionGrant:
    """
    Validated session token claims.

    Attributes:
        subject: The Sentry user id the session belongs to
        name: The Sentry user name
        context: The SessionContext tool calls will run with
    """

    subject: str
    name: str
    context: SessionContext


def issue_session_token(
    user_id: str,
    name: str,
    access_token: str,
    organization_slug: str | None,
    exp_hours: float | None = None,
    secret: str | None = None,
    algorithm: str | None = None,
) -> str:
    """Mint a signed session token for an authenticated Sentry user."""
    now = datetime.datetime.now(datetime.timezone.utc)
    ttl = settings.session_ttl_hours if exp_hours is None else exp_hours
    payload = {
        "sub": user_id,
        "name": name,
        "access_token": access_token,
        "organization_slug": organization_slug,
        "iat": now,
        "exp": now + datetime.timedelta(hours=ttl),
    }
    return jwt.encode(
        payload,
        secret or settings.jwt_secret_key,
        algorithm=algorithm or settings.jwt_algorithm,
    )


def validate_token(authorization_header: str | None) -> SessionGrant:
    """
    Validate a Bearer session token from the Authorization header.

    Args:
        authorization_header: The raw Authorization header value,
                              expected format: "Bearer <jwt-token>"

    Returns:
        SessionGrant with the session's subject and context

    Raises:
        AuthError: If any validation step fails
    """
    if not authorization_header:
        raise AuthError("Missing Authorization header")

    parts = authorization_header.split(" ", 1)
    if len(parts) != 2 or parts[0].lower() != "bearer":
        raise AuthError("Invalid Authorization header format, expected 'Bearer <token>'")

    token = parts[1]

    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm],
            options={"require": ["exp", "sub"]},
        )
    except jwt.ExpiredSignatureError:
        raise AuthError("Token has expired")
    except jwt.InvalidTokenError as e:
        raise AuthError(f"Invalid token: {e}")

    access_token = payload.get("access_token")
    if not isinstance(access_token, str) or not access_token:
        raise AuthError("Invalid token: missing access_token claim")

    organization_slug = payload.get("organization_slug")
    if organization_slug is not None and not isinstance(organization_slug, str):
        raise AuthError("Invalid organization_slug claim: must be a string")

    return SessionGrant(
        subject=str(payload["sub"]),
        name=str(payload.get("name") or ""),
        context=SessionContext(
            access_token=access_token,
            organization_slug=organization_slug or None,
        ),
    )
