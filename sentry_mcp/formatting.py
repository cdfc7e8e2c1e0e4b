"""Markdown renderers for tool output.

Every function here is pure: it takes parsed Sentry models (plus, where a web
link is needed, a function that builds it) and returns text.
"""

from typing import Callable, Iterable

from sentry_mcp.schema import (
    ClientKey,
    ErrorSearchRow,
    Event,
    Frame,
    Issue,
    Organization,
    Project,
    Release,
    SpanRow,
    Team,
)

UrlBuilder = Callable[[str], str]

FENCE = "```"


def format_frame_header(frame: Frame, platform: str | None) -> str:
    if platform and platform.startswith("javascript"):
        location = ":".join(
            str(part) for part in (frame.filename, frame.line_no, frame.col_no) if part
        )
        function = f" ({frame.function})" if frame.function else ""
        return f"{location}{function}"

    function = f'"{frame.function}"' if frame.function else "unknown function"
    header = f'{function} in "{frame.filename or frame.module}"'
    if frame.line_no:
        header += f" at line {frame.line_no}"
        if frame.col_no is not None:
            header += f":{frame.col_no}"
    return header


def format_frame(frame: Frame, platform: str | None) -> str:
    # Only the line the frame points at; the surrounding context is noise here.
    source = "".join(
        f"\n{code}"
        for line_no, code in frame.context
        if line_no == frame.line_no and code is not None
    )
    return f"{format_frame_header(frame, platform)}{source}"


def format_event_output(event: Event) -> str:
    """Render the error message and stacktrace sections of an event."""
    output = ""
    for entry in event.exception_entries():
        error = entry.payload.first()
        if error is None:
            continue
        output += f"**Error:**\n{FENCE}\n{error.type}: {error.value}\n{FENCE}\n\n"
        if not error.stacktrace or not error.stacktrace.frames:
            continue
        frames = "\n".join(format_frame(frame, event.platform) for frame in error.stacktrace.frames)
        output += f"**Stacktrace:**\n{FENCE}\n{frames}\n{FENCE}\n\n"
    return output


def _slug_list(title: str, items: Iterable[Organization | Team | Project]) -> str:
    output = f"{title}\n\n"
    output += "".join(f"- {item.slug}\n" for item in items)
    return output


def format_organization_list(organizations: list[Organization]) -> str:
    return _slug_list("# Organizations", organizations)


def format_team_list(organization_slug: str, teams: list[Team]) -> str:
    return _slug_list(f"# Teams in **{organization_slug}**", teams)


def format_project_list(organization_slug: str, projects: list[Project]) -> str:
    return _slug_list(f"# Projects in **{organization_slug}**", projects)


def format_release_list(
    organization_slug: str, project_slug: str | None, releases: list[Release]
) -> str:
    scope = f"{organization_slug}/{project_slug}" if project_slug else organization_slug
    if not releases:
        return f"# No releases found\n\nWe searched within the {scope} organization."

    output = f"# Releases in **{scope}**\n\n"
    for release in releases:
        output += f"## {release.short_version}\n\n"
        output += f"**Created**: {release.date_created.isoformat()}\n"
        if release.date_released:
            output += f"**Released**: {release.date_released.isoformat()}\n"
        if release.first_event:
            output += f"**First Event**: {release.first_event.isoformat()}\n"
        if release.last_event:
            output += f"**Last Event**: {release.last_event.isoformat()}\n"
        output += f"**New Issues**: {release.new_groups}\n"
        if release.projects:
            output += f"**Projects**: {', '.join(project.name for project in release.projects)}\n"
        if release.last_commit:
            output += f"**Last Commit**: {release.last_commit.message or release.last_commit.id}\n"
        if release.last_deploy:
            output += f"**Last Deploy**: {release.last_deploy.environment}"
            if release.last_deploy.date_finished:
                output += f" at {release.last_deploy.date_finished.isoformat()}"
            output += "\n"
        output += "\n"

    output += "# Using this information\n\n"
    output += (
        "- You can reference the release version in the `query` of `list_issues()` or "
        "`search_errors()` (e.g. `release:VERSION`) to find issues introduced in it.\n"
    )
    return output


def format_issue_list(organization_slug: str, issues: list[Issue], issue_url: UrlBuilder) -> str:
    if not issues:
        return f"# No issues found\n\nWe searched within the {organization_slug} organization."

    output = f"# Issues in **{organization_slug}**\n\n"
    for issue in issues:
        output += f"## {issue.short_id}\n\n"
        output += f"**Description**: {issue.title}\n"
        output += f"**Culprit**: {issue.culprit}\n"
        output += f"**First Seen**: {issue.first_seen.isoformat()}\n"
        output += f"**Last Seen**: {issue.last_seen.isoformat()}\n"
        output += f"**URL**: {issue_url(issue.short_id)}\n\n"

    output += "# Using this information\n\n"
    output += (
        "- You can reference the Issue ID in commit messages (e.g. `Fixes <issueID>`) to "
        "automatically close the issue when the commit is merged.\n"
    )
    output += (
        "- You can get more details about a specific issue by using the tool: "
        f"`get_issue_details(organizationSlug=\"{organization_slug}\", issueId=<issueID>)`\n"
    )
    return output


def _issue_metadata(issue: Issue, issue_url: UrlBuilder) -> str:
    output = f"**Description**: {issue.title}\n"
    output += f"**Culprit**: {issue.culprit}\n"
    output += f"**First Seen**: {issue.first_seen.isoformat()}\n"
    output += f"**Last Seen**: {issue.last_seen.isoformat()}\n"
    output += f"**Occurrences**: {issue.count}\n"
    output += f"**Users Impacted**: {issue.user_count}\n"
    output += f"**Status**: {issue.status}\n"
    output += f"**Platform**: {issue.platform}\n"
    output += f"**Project**: {issue.project.name}\n"
    output += f"**URL**: {issue_url(issue.short_id)}\n"
    return output


def format_issue_summary(organization_slug: str, issue: Issue, issue_url: UrlBuilder) -> str:
    output = f"# Issue {issue.short_id} in **{organization_slug}**\n\n"
    output += _issue_metadata(issue, issue_url)
    output += "\n# Using this information\n\n"
    output += (
        "- You can reference the Issue ID in commit messages (e.g. "
        f"`Fixes {issue.short_id}`) to automatically close the issue when the commit is merged.\n"
    )
    output += (
        "- For the stacktrace and the latest error message use the tool: "
        f"`get_issue_details(organizationSlug=\"{organization_slug}\", issueId=\"{issue.short_id}\")`\n"
    )
    return output


def format_issue_details(
    organization_slug: str, issue: Issue, event: Event, issue_url: UrlBuilder
) -> str:
    output = f"# Issue {issue.short_id} in **{organization_slug}**\n\n"
    output += _issue_metadata(issue, issue_url)
    output += "\n## Event Specifics\n\n"
    output += f"**Occurred At**: {event.date_created.isoformat()}\n"
    if event.message:
        output += f"**Message**:\n{event.message}\n"
    output += "\n"
    output += format_event_output(event)
    output += "# Using this information\n\n"
    output += (
        "- You can reference the IssueID in commit messages (e.g. "
        f"`Fixes {issue.short_id}`) to automatically close the issue when the commit is merged.\n"
    )
    output += (
        "- The stacktrace includes both first-party application code as well as third-party "
        "code, its important to triage to first-party code.\n"
    )
    return output


def format_error_search_results(
    organization_slug: str, rows: list[ErrorSearchRow], issue_url: UrlBuilder
) -> str:
    if not rows:
        return (
            "# No errors found\n\n"
            "Could not find any errors matching the given filters.\n\n"
            f"We searched within the {organization_slug} organization."
        )

    output = "# Search Results\n\n"
    for row in rows:
        output += f"## {row.issue}: {row.title}\n\n"
        output += f"- **Issue ID**: {row.issue}\n"
        output += f"- **URL**: {issue_url(row.issue)}\n"
        output += f"- **Project**: {row.project}\n"
        output += f"- **Last Seen**: {row.last_seen}\n"
        output += f"- **Occurrences**: {row.count}\n\n"

    output += "# Using this information\n\n"
    output += (
        "- You can reference the Issue ID in commit messages (e.g. "
        f"`Fixes {rows[0].issue}`) to automatically close the issue when the commit is merged.\n"
    )
    output += '- You can get more details about an error by using the "get_issue_details" tool.\n'
    return output


def format_span_search_results(
    organization_slug: str, rows: list[SpanRow], trace_url: UrlBuilder
) -> str:
    if not rows:
        return (
            "# No results found\n\n"
            "Could not find any transactions matching the given filters.\n\n"
            f"We searched within the {organization_slug} organization."
        )

    output = "# Search Results\n\n"
    for row in rows:
        output += f"## `{row.transaction}`\n\n"
        output += f"- **Span ID**: {row.id}\n"
        output += f"- **Trace ID**: {row.trace}\n"
        output += f"- **Trace URL**: {trace_url(row.trace)}\n"
        output += f"- **Span Operation**: {row.span_op}\n"
        output += f"- **Span Description**: {row.span_description}\n"
        output += f"- **Duration**: {row.span_duration:g}ms\n"
        output += f"- **Timestamp**: {row.timestamp}\n"
        output += f"- **Project**: {row.project}\n\n"
    return output


def format_new_team(team: Team) -> str:
    output = "# New Team\n\n"
    output += f"- **ID**: {team.id}\n"
    output += f"- **Slug**: {team.slug}\n"
    output += f"- **Name**: {team.name}\n\n"
    output += "# Using this information\n\n"
    output += "- You should always inform the user of the Team Slug value.\n"
    return output


def format_new_project(project: Project, client_key: ClientKey | None) -> str:
    output = "# New Project\n\n"
    output += f"- **ID**: {project.id}\n"
    output += f"- **Slug**: {project.slug}\n"
    output += f"- **Name**: {project.name}\n"
    if client_key is not None:
        output += f"- **SENTRY_DSN**: {client_key.dsn.public}\n\n"
    else:
        # The project exists; only the key provisioning failed.
        output += "- **SENTRY_DSN**: There was an error fetching this value.\n\n"
    output += "# Using this information\n\n"
    output += "- You can reference the **SENTRY_DSN** value to initialize Sentry's SDKs.\n"
    output += "- You should always inform the user of the **SENTRY_DSN** and Project Slug values.\n"
    return output


QUERY_SYNTAX_HELP = """# Sentry Search Syntax

Queries are made of `key:value` terms separated by spaces. Terms are combined with AND.

## Basics

- `is:unresolved` / `is:resolved` / `is:ignored` - Filter issues by status
- `error.handled:false` - Errors that were not handled (crashes, uncaught exceptions)
- `level:error` - Filter by event level
- `release:1.0.0` - Events from a specific release
- `release:latest` - Events from the latest release only
- `environment:production` - Events from a specific environment
- `user.email:jane@example.com` - Events affecting a specific user
- `transaction:/checkout` - Events from a specific route or endpoint

## Operators

- Negate a term with `!`: `!environment:staging`
- Match several values with brackets: `release:[1.0, 2.0]`
- Use `*` as a wildcard: `transaction:/api/*`
- Wrap values containing spaces in double quotes: `message:"connection reset"`
- Compare numbers and durations: `span.duration:>500ms`, `times_seen:>100`

## Time

Results are limited to the last week unless the tool says otherwise.
"""

HELP_TOPICS: dict[str, str] = {
    "query_syntax": QUERY_SYNTAX_HELP,
}


def format_help(subject: str) -> str:
    return HELP_TOPICS[subject]
