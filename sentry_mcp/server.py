"""
MCP server for Sentry, built on FastMCP v2.

This module wires everything together:
- One MCP tool per entry in sentry_mcp.tools, each backed by the dispatcher
- Session authentication: on HTTP transports every MCP request must carry the
  session token minted by /callback as a Bearer token
- The OAuth routes that mint those tokens (/authorize, /callback)
- Health and readiness HTTP endpoints
- Structured JSON logging to stderr

Architecture:
    HTTP transports (sse, streamable-http):

    1. The MCP client sends the user to /authorize, which redirects to Sentry
    2. Sentry redirects back to /callback with a code; we exchange it for a
       Sentry access token, pick the user's first organization as the default,
       and redirect to the client with a signed session token
    3. The client sends "Authorization: Bearer <session token>" on every MCP
       request. SessionMiddleware validates it and publishes the resulting
       SessionContext through a ContextVar
    4. GatewayTool.run() reads the SessionContext and hands the call to a
       ToolDispatcher bound to it

    stdio: there is no HTTP request to authenticate. The session comes from
    SENTRY_AUTH_TOKEN / SENTRY_ORGANIZATION_SLUG and is fixed on every tool
    when the server is created.

Running the server:
    SENTRY_TRANSPORT=streamable-http python -m sentry_mcp.server
    SENTRY_AUTH_TOKEN=... python -m sentry_mcp.server          # stdio
"""

import json
import logging
import sys
import uuid
from contextvars import ContextVar
from typing import Any, Sequence
from urllib.parse import urlencode

from fastmcp import FastMCP
from fastmcp.exceptions import ToolError
from fastmcp.server.dependencies import get_http_request
from fastmcp.server.middleware import CallNext, Middleware, MiddlewareContext
from fastmcp.tools.tool import Tool, ToolResult
from mcp.types import CallToolRequestParams, ListToolsRequest, TextContent, ToolAnnotations
from pydantic import PrivateAttr
from starlette.requests import Request
from starlette.responses import JSONResponse, PlainTextResponse, RedirectResponse, Response

from sentry_mcp.auth import AuthError, InvalidStateError, SessionGrant, issue_session_token, validate_token
from sentry_mcp.config import settings
from sentry_mcp.context import SessionContext
from sentry_mcp.dispatcher import ToolDispatcher
from sentry_mcp.errors import ApiConnectionError, ApiError, ApiSchemaError, ApiTimeoutError, ToolRejected
from sentry_mcp.oauth import (
    AuthRequest,
    decode_state,
    encode_state,
    exchange_code_for_access_token,
    get_upstream_authorize_url,
)
from sentry_mcp.sentry_api import SentryApiClient
from sentry_mcp.tools import TOOL_DEFINITIONS, ToolDefinition

# ---------------------------------------------------------------------------
# Structured JSON Logging
# ---------------------------------------------------------------------------
# One JSON object per line, on stderr: with the stdio transport, stdout is
# the MCP protocol stream and must carry nothing else.


class JSONLogFormatter(logging.Formatter):
    """
    Formats log records as single-line JSON objects.

    Example output:

        {"timestamp": "2026-02-06 10:30:00,123", "level": "INFO", "logger": "sentry-mcp",
         "message": "Session authenticated", "request_id": "1a2b3c4d", "subject": "1234"}
    """

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        # Structured fields passed via logger.info("msg", extra={"log_data": {...}})
        if hasattr(record, "log_data"):
            log_entry.update(record.log_data)
        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_entry, default=str)


def configure_logging(level: str = settings.log_level) -> None:
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(JSONLogFormatter())
    logging.basicConfig(
        level=getattr(logging, level.upper()),
        handlers=[handler],
    )


configure_logging()
logger = logging.getLogger("sentry-mcp")


# ---------------------------------------------------------------------------
# Session Authentication Middleware
# ---------------------------------------------------------------------------
# The SessionContext for the request in flight. Set by SessionMiddleware for
# HTTP transports; unset (None) under stdio.
current_session: ContextVar[SessionContext | None] = ContextVar("current_session", default=None)


class SessionMiddleware(Middleware):
    """
    Session token authentication for HTTP transports.

    Every tools/list and tools/call request is authenticated independently.
    A valid token publishes its SessionContext for the duration of the
    request; an invalid or missing one rejects the request.
    """

    def _get_auth_header(self) -> str | None:
        """
        Extract the Authorization header from the current HTTP request.

        Returns None if no HTTP request is available (e.g., stdio transport).
        """
        try:
            request = get_http_request()
            return request.headers.get("authorization")
        except RuntimeError:
            return None

    def _authenticate(self, request_id: str) -> SessionGrant:
        auth_header = self._get_auth_header()
        try:
            grant = validate_token(auth_header)
        except AuthError as e:
            logger.warning(
                "Authentication failed",
                extra={
                    "log_data": {
                        "request_id": request_id,
                        "decision": "rejected",
                        "reason": e.message,
                    }
                },
            )
            raise
        logger.info(
            "Session authenticated",
            extra={
                "log_data": {
                    "request_id": request_id,
                    "subject": grant.subject,
                    "organization": grant.context.organization_slug,
                    "decision": "authenticated",
                }
            },
        )
        return grant

    async def on_list_tools(
        self,
        context: MiddlewareContext[ListToolsRequest],
        call_next: CallNext[ListToolsRequest, Sequence[Tool]],
    ) -> Sequence[Tool]:
        self._authenticate(str(uuid.uuid4())[:8])
        return await call_next(context)

    async def on_call_tool(
        self,
        context: MiddlewareContext[CallToolRequestParams],
        call_next: CallNext[CallToolRequestParams, ToolResult],
    ) -> ToolResult:
        request_id = str(uuid.uuid4())[:8]
        grant = self._authenticate(request_id)

        logger.info(
            "Tool call authorized",
            extra={
                "log_data": {
                    "request_id": request_id,
                    "subject": grant.subject,
                    "tool": context.message.name,
                    "decision": "allowed",
                }
            },
        )
        token = current_session.set(grant.context)
        try:
            return await call_next(context)
        finally:
            current_session.reset(token)


# ---------------------------------------------------------------------------
# Tools
# ---------------------------------------------------------------------------


class GatewayTool(Tool):
    """
    An MCP tool backed by the dispatcher.

    The advertised schema comes from the ToolDefinition; execution always
    goes through ToolDispatcher so validation, error rendering and logging
    are the same for every tool.
    """

    # Fixed session (stdio). When None the session comes from current_session.
    _session: SessionContext | None = PrivateAttr(default=None)

    @classmethod
    def from_definition(
        cls, definition: ToolDefinition, session: SessionContext | None = None
    ) -> "GatewayTool":
        tool = cls(
            name=definition.name,
            description=definition.description,
            parameters=definition.input_schema(),
            annotations=ToolAnnotations(
                readOnlyHint=definition.read_only,
                destructiveHint=False,
                openWorldHint=True,
            ),
        )
        tool._session = session
        return tool

    def dispatcher(self, session: SessionContext) -> ToolDispatcher:
        return ToolDispatcher(session)

    async def run(self, arguments: dict[str, Any]) -> ToolResult:
        session = self._session or current_session.get()
        if session is None:
            raise ToolError("No authenticated session for this request")

        try:
            result = await self.dispatcher(session).call(self.name, arguments)
        except ToolRejected as e:
            raise ToolError(str(e)) from e

        if result.is_error:
            raise ToolError(result.text)
        return ToolResult(content=[TextContent(type="text", text=result.text)])


# ---------------------------------------------------------------------------
# OAuth routes
# ---------------------------------------------------------------------------


def _callback_url(request: Request) -> str:
    return f"{str(request.base_url).rstrip('/')}/callback"


async def authorize(request: Request) -> Response:
    """Start the OAuth flow: send the user to Sentry's consent screen."""
    auth_request = AuthRequest.from_query(request.query_params)
    if not auth_request.client_id:
        return PlainTextResponse("Invalid request", status_code=400)

    url = get_upstream_authorize_url(
        settings.authorize_url,
        client_id=settings.client_id,
        scope=settings.scopes,
        redirect_uri=_callback_url(request),
        state=encode_state(auth_request),
    )
    return RedirectResponse(url, status_code=302)


async def callback(request: Request) -> Response:
    """
    Finish the OAuth flow.

    Exchanges Sentry's code for an access token, picks a default
    organization, and redirects back to the MCP client with a session token
    as the authorization code.
    """
    try:
        auth_request = decode_state(request.query_params.get("state"))
    except InvalidStateError as e:
        return PlainTextResponse(e.message, status_code=e.status_code)
    if not auth_request.client_id or not auth_request.redirect_uri:
        return PlainTextResponse("Invalid state", status_code=400)

    token, error_response = await exchange_code_for_access_token(
        request.query_params.get("code"),
        client_id=settings.client_id,
        client_secret=settings.client_secret,
        redirect_uri=_callback_url(request),
        token_url=settings.token_url,
        timeout=settings.request_timeout,
    )
    if error_response is not None:
        return error_response

    api = SentryApiClient(token.access_token)
    try:
        organizations = await api.list_organizations()
    except (ApiError, ApiSchemaError, ApiTimeoutError, ApiConnectionError):
        logger.exception(
            "Could not list organizations after code exchange",
            extra={"log_data": {"subject": token.user.id}},
        )
        return PlainTextResponse("Failed to fetch organizations from Sentry", status_code=502)
    if not organizations:
        return PlainTextResponse("No organizations found", status_code=400)

    session_token = issue_session_token(
        user_id=token.user.id,
        name=token.user.name,
        access_token=token.access_token,
        organization_slug=organizations[0].slug,
    )
    logger.info(
        "Session issued",
        extra={
            "log_data": {
                "subject": token.user.id,
                "client_id": auth_request.client_id,
                "organization": organizations[0].slug,
            }
        },
    )

    params = {"code": session_token}
    if auth_request.state:
        params["state"] = auth_request.state
    separator = "&" if "?" in auth_request.redirect_uri else "?"
    return RedirectResponse(
        f"{auth_request.redirect_uri}{separator}{urlencode(params)}", status_code=302
    )


# ---------------------------------------------------------------------------
# Health and Readiness Endpoints
# ---------------------------------------------------------------------------
# Plain HTTP endpoints for probes. They carry no session and expose nothing
# sensitive.


async def health_check(request: Request) -> Response:
    """Liveness probe: is the server process alive and responsive?"""
    return JSONResponse({"status": "healthy"})


async def readiness_check(request: Request) -> Response:
    """Readiness probe: can this instance complete the OAuth flow?"""
    if not settings.client_id or not settings.client_secret:
        return JSONResponse(
            {"status": "not_ready", "reason": "OAuth client credentials missing"},
            status_code=503,
        )
    return JSONResponse({"status": "ready"})


# ---------------------------------------------------------------------------
# Server factory
# ---------------------------------------------------------------------------


def create_server(session: SessionContext | None = None) -> FastMCP:
    """
    Build the MCP server.

    With a session (stdio), every tool runs as that session and no
    authentication middleware is installed. Without one, requests must
    authenticate with a session token.
    """
    server = FastMCP(
        name="sentry-mcp",
        instructions=(
            "Access issues, errors, transactions, releases and projects in Sentry. "
            "Organization-scoped tools default to the organization chosen when you signed in."
        ),
        middleware=[] if session is not None else [SessionMiddleware()],
    )
    for definition in TOOL_DEFINITIONS:
        server.add_tool(GatewayTool.from_definition(definition, session))

    server.custom_route("/authorize", methods=["GET"])(authorize)
    server.custom_route("/callback", methods=["GET"])(callback)
    server.custom_route("/health", methods=["GET"])(health_check)
    server.custom_route("/ready", methods=["GET"])(readiness_check)
    return server


mcp = create_server()


# ---------------------------------------------------------------------------
# Server entry point
# ---------------------------------------------------------------------------
def main() -> None:
    if settings.transport == "stdio":
        if not settings.auth_token:
            logger.error("SENTRY_AUTH_TOKEN is required for the stdio transport")
            sys.exit(1)
        logger.info("Starting MCP server (transport=stdio, host=%s)", settings.host)
        server = create_server(SessionContext(settings.auth_token, settings.organization_slug))
        server.run(transport="stdio")
        return

    logger.info(
        "Starting MCP server on %s:%d (transport=%s)",
        settings.server_host,
        settings.server_port,
        settings.transport,
    )
    mcp.run(
        transport=settings.transport,
        host=settings.server_host,
        port=settings.server_port,
        log_level=settings.log_level,
    )


if __name__ == "__main__":
    main()
