"""
Exception hierarchy for the gateway.

Errors fall into four groups, and the tool dispatcher renders each group
differently:

- Client-contract errors (UserInputError, ToolRejected): the caller passed
  something we can't work with. The message is written for the caller.
- Upstream transport errors (ApiError and friends): Sentry answered with a
  non-2xx status, timed out, or could not be reached.
- Schema errors (ApiSchemaError): Sentry answered 2xx but the body doesn't
  look like what we expect. This means the integration drifted, not that the
  caller made a mistake.
- Authorization-flow errors live in sentry_mcp.auth (AuthError) because they
  map to HTTP status codes rather than tool results.
"""


class UserInputError(Exception):
    """Raised by tool handlers when the caller's input is unusable."""


class MissingArgumentError(UserInputError):
    """Raised when a value the caller must supply is empty."""


class ToolRejected(Exception):
    """
    Raised when a tool call fails validation against its contract.

    This happens before any handler runs: unknown tool names, missing
    required parameters, wrong types, or values outside an enum.
    """

    def __init__(self, tool_name: str, message: str):
        self.tool_name = tool_name
        self.message = message
        super().__init__(f"Invalid call to '{tool_name}': {message}")


class ApiError(Exception):
    """
    A non-2xx response from the Sentry API.

    This is the single error path for upstream HTTP failures. The response
    body is kept for operators; callers see a truncated copy at most.
    """

    def __init__(self, status_code: int, status_text: str, body: str = ""):
        self.status_code = status_code
        self.status_text = status_text
        self.body = body
        super().__init__(f"API request failed: {status_code} {status_text}\n{body}")

    @property
    def status_line(self) -> str:
        return f"API request failed: {self.status_code} {self.status_text}"


class ApiTimeoutError(Exception):
    """The Sentry API did not answer within the configured timeout."""

    def __init__(self, url: str, timeout: float):
        self.url = url
        self.timeout = timeout
        super().__init__(f"Request to {url} timed out after {timeout:g}s")


class ApiConnectionError(Exception):
    """The Sentry API could not be reached at all."""


class ApiSchemaError(Exception):
    """A Sentry API response didn't match the expected shape."""

    def __init__(self, path: str, detail: str):
        self.path = path
        self.detail = detail
        super().__init__(f"Unexpected response from {path}: {detail}")
