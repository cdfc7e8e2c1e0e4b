"""
Application configuration loaded from environment variables.

Uses pydantic-settings to define typed configuration that automatically reads
from environment variables. All config comes from the environment (or a local
.env file), never hardcoded in source code.

Two deployment shapes share these settings:
- stdio: a single local process. SENTRY_AUTH_TOKEN (and optionally
  SENTRY_ORGANIZATION_SLUG) provide the session context directly.
- HTTP (sse / streamable-http): a hosted gateway. SENTRY_CLIENT_ID and
  SENTRY_CLIENT_SECRET identify the gateway as an OAuth application in Sentry,
  and SENTRY_JWT_SECRET_KEY signs the session tokens it hands to MCP clients.
"""

from typing import Literal

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """
    Gateway configuration with environment variable bindings.

    Each field maps to an environment variable with the SENTRY_ prefix.
    For example, `host` reads from SENTRY_HOST, `client_secret` reads
    from SENTRY_CLIENT_SECRET.
    """

    # --- Upstream (Sentry) settings ---

    # The Sentry host. "sentry.io" is the multi-tenant SaaS; anything else is
    # treated as a self-hosted install, which changes the shape of web URLs.
    host: str = "sentry.io"

    # Personal access token used by the stdio transport. Not used over HTTP,
    # where each session brings its own token from the OAuth flow.
    auth_token: str | None = None

    # Default organization for the stdio transport. When unset, every
    # organization-scoped tool needs an explicit organizationSlug.
    organization_slug: str | None = None

    # Upper bound (seconds) for every call to the Sentry API.
    request_timeout: float = 30.0

    # --- OAuth settings (HTTP transports) ---

    client_id: str = ""
    client_secret: str = ""
    authorize_url: str = "https://sentry.io/oauth/authorize/"
    token_url: str = "https://sentry.io/oauth/token/"
    # https://docs.sentry.io/api/permissions/
    scopes: str = "org:read project:read project:write team:write event:read"

    # --- Session token settings ---

    # Signs the session tokens minted at the end of the OAuth flow.
    # Default is for local development only - NEVER use this in production.
    jwt_secret_key: str = "dev-secret-change-me"
    jwt_algorithm: str = "HS256"
    session_ttl_hours: float = 8.0

    # --- Error reporting ---

    # In "production" upstream response bodies are kept out of tool results.
    environment: str = "development"
    # Maximum number of characters of an upstream error body shown to callers.
    error_body_limit: int = 500

    # --- Server settings ---

    transport: Literal["stdio", "sse", "streamable-http"] = "stdio"
    server_host: str = "0.0.0.0"
    server_port: int = 8080
    log_level: str = "info"

    model_config = {
        "env_prefix": "SENTRY_",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
    }

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"


# Singleton instance: import this from other modules.
settings = Settings()
