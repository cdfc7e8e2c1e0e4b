"""
Tool dispatcher: the single boundary between MCP tool calls and handlers.

Every call moves through the same states:

    received -> validated -> executing -> succeeded | upstream-failed
    received -> rejected

Rejection (unknown tool, arguments that break the tool's contract) raises
ToolRejected before any handler runs. Once a handler is executing, every
exception it raises is caught here, logged with a short error reference id,
and rendered into a ToolResult with is_error=True. Nothing is retried.
"""

import logging
import uuid
from dataclasses import dataclass
from typing import Any, Mapping

from sentry_mcp.config import settings
from sentry_mcp.context import SessionContext
from sentry_mcp.errors import (
    ApiConnectionError,
    ApiError,
    ApiSchemaError,
    ApiTimeoutError,
    ToolRejected,
    UserInputError,
)
from sentry_mcp.handlers import TOOL_HANDLERS, ToolHandler
from sentry_mcp.sentry_api import SentryApiClient
from sentry_mcp.tools import TOOL_REGISTRY, ToolDefinition

logger = logging.getLogger("sentry-mcp.dispatcher")


@dataclass(frozen=True)
class ToolResult:
    text: str
    is_error: bool = False


def _truncate(text: str, limit: int) -> str:
    if len(text) <= limit:
        return text
    return f"{text[:limit]}... (truncated)"


def render_error(error: Exception, error_id: str) -> str:
    """Turn a handler exception into the text shown to the caller."""
    if isinstance(error, UserInputError):
        return (
            "**Input Error**\n\n"
            "It looks like there was a problem with the input you provided.\n\n"
            f"{error}\n\n"
            "You may be able to resolve the issue by addressing the concern and trying again."
        )

    if isinstance(error, ApiError):
        output = (
            "**Error**\n\n"
            "There was a problem communicating with the Sentry API.\n\n"
            f"**Error ID**: {error_id}\n\n"
            f"{error.status_line}"
        )
        if error.body and not settings.is_production:
            output += f"\n\n```\n{_truncate(error.body, settings.error_body_limit)}\n```"
        return output

    if isinstance(error, ApiSchemaError):
        return (
            "**Error**\n\n"
            "The Sentry API returned a response in an unexpected format.\n\n"
            f"**Error ID**: {error_id}"
        )

    if isinstance(error, ApiTimeoutError):
        return (
            "**Error**\n\n"
            f"The Sentry API did not respond within {error.timeout:g} seconds. "
            "Please try again.\n\n"
            f"**Error ID**: {error_id}"
        )

    if isinstance(error, ApiConnectionError):
        return (
            "**Error**\n\n"
            "Could not connect to the Sentry API. Please try again.\n\n"
            f"**Error ID**: {error_id}"
        )

    return (
        "**Error**\n\n"
        "It looks like there was a problem communicating with the Sentry API.\n\n"
        "Please report the following to the user:\n\n"
        f"**Error ID**: {error_id}"
    )


class ToolDispatcher:
    """
    Routes tool calls for one session to their handlers.

    The SessionContext is fixed at construction, so a dispatcher never acts
    for anyone else. The API client defaults to one bound to the session's
    access token; tests inject their own.
    """

    def __init__(
        self,
        context: SessionContext,
        api: SentryApiClient | None = None,
        registry: Mapping[str, ToolDefinition] = TOOL_REGISTRY,
        handlers: Mapping[str, ToolHandler] = TOOL_HANDLERS,
    ):
        self.context = context
        self.api = api or SentryApiClient(context.access_token)
        self.registry = registry
        self.handlers = handlers

    def resolve(self, name: str, arguments: Any) -> tuple[ToolHandler, dict[str, Any]]:
        """
        Look up a tool and validate its arguments.

        Raises:
            ToolRejected: if the tool is unknown or the arguments are invalid
        """
        definition = self.registry.get(name)
        handler = self.handlers.get(name)
        if definition is None or handler is None:
            raise ToolRejected(name, "unknown tool")
        return handler, definition.validate(arguments)

    async def call(self, name: str, arguments: Any = None) -> ToolResult:
        handler, params = self.resolve(name, arguments)

        logger.info("Tool call started", extra={"log_data": {"tool": name}})
        try:
            text = await handler(self.context, self.api, params)
        except Exception as e:
            error_id = str(uuid.uuid4())[:8]
            log_data = {"tool": name, "error_id": error_id, "error_type": type(e).__name__}
            if isinstance(e, UserInputError):
                logger.info("Tool call rejected input", extra={"log_data": log_data})
            else:
                logger.error("Tool call failed", exc_info=True, extra={"log_data": log_data})
            return ToolResult(render_error(e, error_id), is_error=True)

        logger.info("Tool call finished", extra={"log_data": {"tool": name}})
        return ToolResult(text)
