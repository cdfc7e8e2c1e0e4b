"""
Tool definitions: the closed catalog of operations the gateway exposes.

Each ToolDefinition carries the tool's name, the description shown to the
calling agent, and its parameter contract. The contract does two jobs:

- It renders the JSON Schema advertised in tools/list (input_schema()).
- It validates incoming arguments before any handler runs (validate()).

The handler for each tool lives in sentry_mcp.handlers under the same name.
Adding a tool means adding a definition here and a handler there; the
dispatcher refuses anything not listed in TOOL_REGISTRY.
"""

from dataclasses import dataclass, field
from typing import Any

from sentry_mcp.errors import ToolRejected

# JSON Schema type name -> Python type accepted for it
_TYPE_CHECKS: dict[str, type] = {
    "string": str,
    "integer": int,
    "boolean": bool,
}


@dataclass(frozen=True)
class Param:
    """One named field of a tool's parameter contract."""

    description: str
    type: str = "string"
    required: bool = False
    enum: tuple[str, ...] | None = None
    default: Any = None

    def schema(self) -> dict[str, Any]:
        prop: dict[str, Any] = {"type": self.type, "description": self.description}
        if self.enum is not None:
            prop["enum"] = list(self.enum)
        if self.default is not None:
            prop["default"] = self.default
        return prop


@dataclass(frozen=True)
class ToolDefinition:
    name: str
    description: str
    params: dict[str, Param] = field(default_factory=dict)
    # False for tools that change state upstream
    read_only: bool = True

    def input_schema(self) -> dict[str, Any]:
        """JSON Schema for the tool's arguments, as advertised to clients."""
        schema: dict[str, Any] = {
            "type": "object",
            "properties": {name: param.schema() for name, param in self.params.items()},
            "additionalProperties": False,
        }
        required = [name for name, param in self.params.items() if param.required]
        if required:
            schema["required"] = required
        return schema

    def validate(self, arguments: Any) -> dict[str, Any]:
        """
        Check arguments against the contract and return the validated params.

        Every declared parameter is present in the result: missing optional
        parameters get their default (or None). Explicit nulls count as
        missing.

        Raises:
            ToolRejected: on unknown names, missing required fields, wrong
                          types, or values outside a declared enum
        """
        if arguments is None:
            arguments = {}
        if not isinstance(arguments, dict):
            raise ToolRejected(self.name, "arguments must be an object")

        unknown = sorted(set(arguments) - set(self.params))
        if unknown:
            raise ToolRejected(self.name, f"unknown parameter(s): {', '.join(unknown)}")

        validated: dict[str, Any] = {}
        for name, param in self.params.items():
            value = arguments.get(name)
            if value is None:
                if param.required:
                    raise ToolRejected(self.name, f"missing required parameter '{name}'")
                validated[name] = param.default
                continue

            expected = _TYPE_CHECKS.get(param.type)
            if expected is not None and not isinstance(value, expected):
                raise ToolRejected(self.name, f"parameter '{name}' must be a {param.type}")
            if param.enum is not None and value not in param.enum:
                allowed = ", ".join(param.enum)
                raise ToolRejected(self.name, f"parameter '{name}' must be one of: {allowed}")
            validated[name] = value
        return validated


# ---------------------------------------------------------------------------
# Shared parameters
# ---------------------------------------------------------------------------

ORGANIZATION_SLUG = Param(
    "The organization's slug. This will default to the first org you have access to."
)
TEAM_SLUG = Param(
    "The team's slug. This will default to the first team you have access to.",
    required=True,
)
PROJECT_SLUG = Param(
    "The project's slug. This will default to all projects you have access to. "
    "It is encouraged to specify this when possible."
)
ISSUE_ID = Param("The Issue ID. e.g. `PROJECT-1Z43`")
ISSUE_URL = Param("The URL of the issue to retrieve details for.")
QUERY = Param(
    "The search query to apply. Use the `help(subject='query_syntax')` tool to get more "
    "information about the query syntax."
)
TRANSACTION = Param(
    "The transaction name. Also known as the endpoint, or route name. e.g. `/checkout`"
)
PLATFORM = Param("The platform for the project (e.g., python, javascript, react, etc.)")

_ORG_HINT = (
    "<hints>\n"
    "If only one parameter is provided, and it could be either `organizationSlug` or "
    "`projectSlug`, its probably `organizationSlug`, but if you're really uncertain you "
    "should call `list_organizations()` first.\n"
    "</hints>"
)


def _describe(*lines: str) -> str:
    return "\n".join(lines)


TOOL_DEFINITIONS: tuple[ToolDefinition, ...] = (
    ToolDefinition(
        name="list_organizations",
        description=_describe(
            "List all organizations that the user has access to in Sentry.",
            "",
            "Use this tool when you need to:",
            "- View all organizations in Sentry",
        ),
    ),
    ToolDefinition(
        name="list_teams",
        description=_describe(
            "List all teams in an organization in Sentry.",
            "",
            "Use this tool when you need to:",
            "- View all teams in a Sentry organization",
        ),
        params={"organizationSlug": ORGANIZATION_SLUG},
    ),
    ToolDefinition(
        name="list_projects",
        description=_describe(
            "Retrieve a list of projects in Sentry.",
            "",
            "Use this tool when you need to:",
            "- View all projects in a Sentry organization",
        ),
        params={"organizationSlug": ORGANIZATION_SLUG},
    ),
    ToolDefinition(
        name="list_releases",
        description=_describe(
            "List all releases in Sentry.",
            "",
            "Use this tool when you need to:",
            "- Find recent releases in a Sentry organization",
            "- Find the most recent version released of a specific project",
            "- Determine when a release was deployed to an environment",
            "",
            _ORG_HINT,
        ),
        params={"organizationSlug": ORGANIZATION_SLUG, "projectSlug": PROJECT_SLUG},
    ),
    ToolDefinition(
        name="list_issues",
        description=_describe(
            "List all issues in Sentry.",
            "",
            "Use this tool when you need to:",
            "- View all issues in a Sentry organization",
            "",
            "If you're looking for more granular data beyond a summary of identified problems, "
            "you should use the `search_errors()` or `search_transactions()` tools instead.",
            "",
            "<examples>",
            "### Find the newest unresolved issues in the 'my-project' project",
            "",
            "```",
            "list_issues(organizationSlug='my-organization', projectSlug='my-project', "
            "query='is:unresolved', sortBy='last_seen')",
            "```",
            "",
            "### Find the most frequently occurring crashes in the 'my-project' project",
            "",
            "```",
            "list_issues(organizationSlug='my-organization', projectSlug='my-project', "
            "query='is:unresolved error.handled:false', sortBy='count')",
            "```",
            "</examples>",
            "",
            "In most cases when a user asks for a list of issues, they are asking for a list "
            "of _unresolved_ issues.",
            "",
            _ORG_HINT,
        ),
        params={
            "organizationSlug": ORGANIZATION_SLUG,
            "projectSlug": PROJECT_SLUG,
            "query": QUERY,
            "sortBy": Param(
                "Sort the results either by the last time they occurred, the first time they "
                "occurred, the count of occurrences, or the number of users affected.",
                enum=("last_seen", "first_seen", "count", "userCount"),
            ),
        },
    ),
    ToolDefinition(
        name="get_issue_summary",
        description=_describe(
            "Retrieve a summary of an issue in Sentry.",
            "",
            "Use this tool when you need to:",
            "- View a summary of an issue in Sentry",
            "",
            "If the issue is an error, or you want additional information like the stacktrace, "
            "you should use `get_issue_details()` tool instead.",
        ),
        params={
            "organizationSlug": ORGANIZATION_SLUG,
            "issueId": ISSUE_ID,
            "issueUrl": ISSUE_URL,
        },
    ),
    ToolDefinition(
        name="get_issue_details",
        description=_describe(
            "Retrieve issue details from Sentry for a specific Issue ID, including the "
            "stacktrace and error message if available. Either issueId or issueUrl MUST be "
            "provided.",
            "",
            "Use this tool when you need to:",
            "- Investigate a specific production error",
            "- Access detailed error information and stacktraces from Sentry",
        ),
        params={
            "organizationSlug": ORGANIZATION_SLUG,
            "issueId": ISSUE_ID,
            "issueUrl": ISSUE_URL,
        },
    ),
    ToolDefinition(
        name="search_errors",
        description=_describe(
            "Query Sentry for errors using advanced search syntax.",
            "",
            "Use this tool when you need to:",
            "- Search for production errors in a specific file.",
            "- Analyze error patterns and frequencies.",
            "- Find recent or frequently occurring errors.",
            "",
            "<examples>",
            "### Find common errors within a file",
            "",
            "The `filename` parameter is a suffix based search, so only use the filename or "
            "the direct parent folder of the file.",
            "",
            "```",
            "search_errors(organizationSlug='my-organization', filename='index.js', sortBy='count')",
            "```",
            "",
            "### Find recent crashes from the 'peated' project",
            "",
            "```",
            "search_errors(organizationSlug='my-organization', query='is:unresolved "
            "error.handled:false', projectSlug='peated', sortBy='last_seen')",
            "```",
            "</examples>",
            "",
            _ORG_HINT,
        ),
        params={
            "organizationSlug": ORGANIZATION_SLUG,
            "projectSlug": PROJECT_SLUG,
            "filename": Param("The filename to search for errors in."),
            "transaction": TRANSACTION,
            "query": QUERY,
            "sortBy": Param(
                "Sort the results either by the last time they occurred or the count of "
                "occurrences.",
                enum=("last_seen", "count"),
                default="last_seen",
            ),
        },
    ),
    ToolDefinition(
        name="search_transactions",
        description=_describe(
            "Query Sentry for transactions using advanced search syntax.",
            "",
            "Transactions are segments of traces that are associated with a specific route "
            "or endpoint.",
            "",
            "Use this tool when you need to:",
            "- Search for production transaction data to understand performance.",
            "- Analyze traces and latency patterns.",
            "- Find examples of recent requests to endpoints.",
            "",
            "<examples>",
            "### Find slow requests to a route",
            "",
            "```",
            "search_transactions(organizationSlug='my-organization', transaction='/checkout', "
            "sortBy='duration')",
            "```",
            "</examples>",
            "",
            _ORG_HINT,
        ),
        params={
            "organizationSlug": ORGANIZATION_SLUG,
            "projectSlug": PROJECT_SLUG,
            "transaction": TRANSACTION,
            "query": QUERY,
            "sortBy": Param(
                "Sort the results either by the timestamp of the request (most recent first) "
                "or the duration of the request (longest first).",
                enum=("timestamp", "duration"),
                default="timestamp",
            ),
        },
    ),
    ToolDefinition(
        name="create_team",
        description=_describe(
            "Create a new team in Sentry.",
            "",
            "Use this tool when you need to:",
            "- Create a new team in a Sentry organization",
            "",
            "<hints>",
            "- If any parameter is ambiguous, you should clarify with the user what they meant.",
            "</hints>",
        ),
        params={
            "organizationSlug": ORGANIZATION_SLUG,
            "name": Param("The name of the team to create.", required=True),
        },
        read_only=False,
    ),
    ToolDefinition(
        name="create_project",
        description=_describe(
            "Create a new project in Sentry, giving you access to a new SENTRY_DSN.",
            "",
            "Use this tool when you need to:",
            "- Create a new project in a Sentry organization",
            "",
            "<hints>",
            "- If any parameter is ambiguous, you should clarify with the user what they meant.",
            "</hints>",
        ),
        params={
            "organizationSlug": ORGANIZATION_SLUG,
            "teamSlug": TEAM_SLUG,
            "name": Param(
                "The name of the project to create. Typically this is commonly the name of the "
                "repository or service. It is only used as a visual label in Sentry.",
                required=True,
            ),
            "platform": PLATFORM,
        },
        read_only=False,
    ),
    ToolDefinition(
        name="help",
        description=_describe(
            "Get information to help you better work with Sentry.",
            "",
            "Use this tool when you need to:",
            "- Understand the Sentry search syntax",
            "",
            "<examples>",
            "### Get help with the Sentry search syntax",
            "",
            "```",
            "help(subject='query_syntax')",
            "```",
            "</examples>",
        ),
        params={
            "subject": Param(
                "The subject to get help with.",
                required=True,
                enum=("query_syntax",),
            ),
        },
    ),
)

TOOL_REGISTRY: dict[str, ToolDefinition] = {tool.name: tool for tool in TOOL_DEFINITIONS}
