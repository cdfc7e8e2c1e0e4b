"""Tool handlers, one per entry in the tool catalog.

Every handler has the same shape:

    async def handler(context, api, params) -> str

- context: the caller's SessionContext (access token, default organization)
- api: a SentryApiClient bound to the session's access token
- params: arguments already validated against the tool's ToolDefinition, with
  every declared parameter present (None when not supplied)

Handlers return Markdown. They raise UserInputError for input that passed
the contract but still can't be used (no organization, bad issue URL), and let
the Api* errors from the client propagate; the dispatcher renders both.
"""

import asyncio
import logging
from typing import Awaitable, Callable

from sentry_mcp import formatting
from sentry_mcp.context import SessionContext
from sentry_mcp.errors import UserInputError
from sentry_mcp.sentry_api import SentryApiClient
from sentry_mcp.utils import IssueReference, extract_issue_id

logger = logging.getLogger("sentry-mcp.handlers")

ToolHandler = Callable[[SessionContext, SentryApiClient, dict], Awaitable[str]]


def _resolve_issue(context: SessionContext, params: dict) -> IssueReference:
    """
    Work out which issue (and organization) a call refers to.

    An issue URL names its own organization, which wins over both the
    organizationSlug parameter and the session default.
    """
    issue_url = params.get("issueUrl")
    issue_id = params.get("issueId")

    if issue_url:
        return extract_issue_id(issue_url)
    if issue_id:
        if issue_id.startswith(("http://", "https://")):
            return extract_issue_id(issue_id)
        return IssueReference(
            issue_id=issue_id,
            organization_slug=context.resolve_organization(params.get("organizationSlug")),
        )
    raise UserInputError("Either issueId or issueUrl must be provided")


# ============================================================================
# Organizations, teams, projects, releases
# ============================================================================


async def handle_list_organizations(context: SessionContext, api: SentryApiClient, params: dict) -> str:
    organizations = await api.list_organizations()
    logger.info("Listed %d organizations", len(organizations))
    return formatting.format_organization_list(organizations)


async def handle_list_teams(context: SessionContext, api: SentryApiClient, params: dict) -> str:
    organization_slug = context.resolve_organization(params.get("organizationSlug"))
    teams = await api.list_teams(organization_slug)
    return formatting.format_team_list(organization_slug, teams)


async def handle_list_projects(context: SessionContext, api: SentryApiClient, params: dict) -> str:
    organization_slug = context.resolve_organization(params.get("organizationSlug"))
    projects = await api.list_projects(organization_slug)
    return formatting.format_project_list(organization_slug, projects)


async def handle_list_releases(context: SessionContext, api: SentryApiClient, params: dict) -> str:
    organization_slug = context.resolve_organization(params.get("organizationSlug"))
    project_slug = params.get("projectSlug")
    releases = await api.list_releases(organization_slug, project_slug)
    return formatting.format_release_list(organization_slug, project_slug, releases)


async def handle_create_team(context: SessionContext, api: SentryApiClient, params: dict) -> str:
    organization_slug = context.resolve_organization(params.get("organizationSlug"))
    team = await api.create_team(organization_slug, params["name"])
    logger.info("Created team %s/%s", organization_slug, team.slug)
    return formatting.format_new_team(team)


async def handle_create_project(context: SessionContext, api: SentryApiClient, params: dict) -> str:
    organization_slug = context.resolve_organization(params.get("organizationSlug"))
    project, client_key = await api.create_project(
        organization_slug,
        params["teamSlug"],
        params["name"],
        params.get("platform"),
    )
    logger.info("Created project %s/%s", organization_slug, project.slug)
    return formatting.format_new_project(project, client_key)


# ============================================================================
# Issues
# ============================================================================


async def handle_list_issues(context: SessionContext, api: SentryApiClient, params: dict) -> str:
    organization_slug = context.resolve_organization(params.get("organizationSlug"))
    issues = await api.list_issues(
        organization_slug,
        project_slug=params.get("projectSlug"),
        query=params.get("query"),
        sort_by=params.get("sortBy"),
    )
    return formatting.format_issue_list(
        organization_slug,
        issues,
        lambda issue_id: api.get_issue_url(organization_slug, issue_id),
    )


async def handle_get_issue_summary(context: SessionContext, api: SentryApiClient, params: dict) -> str:
    ref = _resolve_issue(context, params)
    issue = await api.get_issue(ref.organization_slug, ref.issue_id)
    return formatting.format_issue_summary(
        ref.organization_slug,
        issue,
        lambda issue_id: api.get_issue_url(ref.organization_slug, issue_id),
    )


async def handle_get_issue_details(context: SessionContext, api: SentryApiClient, params: dict) -> str:
    ref = _resolve_issue(context, params)
    # Independent reads; if either fails the call fails.
    issue, event = await asyncio.gather(
        api.get_issue(ref.organization_slug, ref.issue_id),
        api.get_latest_event_for_issue(ref.organization_slug, ref.issue_id),
    )
    return formatting.format_issue_details(
        ref.organization_slug,
        issue,
        event,
        lambda issue_id: api.get_issue_url(ref.organization_slug, issue_id),
    )


# ============================================================================
# Searches
# ============================================================================


async def handle_search_errors(context: SessionContext, api: SentryApiClient, params: dict) -> str:
    organization_slug = context.resolve_organization(params.get("organizationSlug"))
    rows = await api.search_errors(
        organization_slug,
        project_slug=params.get("projectSlug"),
        filename=params.get("filename"),
        transaction=params.get("transaction"),
        query=params.get("query"),
        sort_by=params.get("sortBy") or "last_seen",
    )
    return formatting.format_error_search_results(
        organization_slug,
        rows,
        lambda issue_id: api.get_issue_url(organization_slug, issue_id),
    )


async def handle_search_transactions(context: SessionContext, api: SentryApiClient, params: dict) -> str:
    organization_slug = context.resolve_organization(params.get("organizationSlug"))
    rows = await api.search_spans(
        organization_slug,
        project_slug=params.get("projectSlug"),
        transaction=params.get("transaction"),
        query=params.get("query"),
        sort_by=params.get("sortBy") or "timestamp",
    )
    return formatting.format_span_search_results(
        organization_slug,
        rows,
        lambda trace_id: api.get_trace_url(organization_slug, trace_id),
    )


# ============================================================================
# Help
# ============================================================================


async def handle_help(context: SessionContext, api: SentryApiClient, params: dict) -> str:
    return formatting.format_help(params["subject"])


TOOL_HANDLERS: dict[str, ToolHandler] = {
    "list_organizations": handle_list_organizations,
    "list_teams": handle_list_teams,
    "list_projects": handle_list_projects,
    "list_releases": handle_list_releases,
    "list_issues": handle_list_issues,
    "get_issue_summary": handle_get_issue_summary,
    "get_issue_details": handle_get_issue_details,
    "search_errors": handle_search_errors,
    "search_transactions": handle_search_transactions,
    "create_team": handle_create_team,
    "create_project": handle_create_project,
    "help": handle_help,
}
