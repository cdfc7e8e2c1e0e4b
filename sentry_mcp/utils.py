"""URL parsing and search-query helpers shared by the API client and handlers."""

from dataclasses import dataclass
from urllib.parse import urlsplit

from sentry_mcp.errors import MissingArgumentError, UserInputError


@dataclass(frozen=True)
class IssueReference:
    issue_id: str
    organization_slug: str


def _is_url(value: str) -> bool:
    return value.startswith("http://") or value.startswith("https://")


def _split_url(url: str, kind: str):
    try:
        parsed = urlsplit(url)
        hostname = parsed.hostname or ""
    except ValueError as e:
        raise UserInputError(f"Invalid Sentry {kind} URL. Could not parse URL: {e}") from e
    if not hostname:
        raise UserInputError(f"Invalid Sentry {kind} URL. URL has no host.")
    return hostname, [part for part in parsed.path.split("/") if part]


def _organization_from_subdomain(hostname: str) -> str | None:
    host_parts = hostname.split(".")
    if len(host_parts) > 2 and host_parts[0] != "www":
        return host_parts[0]
    return None


def extract_issue_id(url: str) -> IssueReference:
    """
    Extract the issue id and organization slug from a Sentry issue URL.

    Supported shapes:
        https://{org}.sentry.io/issues/{id}
        https://sentry.io/organizations/{org}/issues/{id}
        https://sentry.example.com/{org}/issues/{id}

    Raises:
        MissingArgumentError: if `url` is empty
        UserInputError: if `url` is not a usable issue URL
    """
    if not url:
        raise MissingArgumentError("Missing issue URL. Provide a Sentry issue URL.")

    if not _is_url(url):
        raise UserInputError("Invalid Sentry issue URL. Must start with http:// or https://")

    hostname, path_parts = _split_url(url, "issue")

    if len(path_parts) < 2 or "issues" not in path_parts:
        raise UserInputError("Invalid Sentry issue URL. Path must contain '/issues/{issue_id}'")

    issues_index = path_parts.index("issues")
    if issues_index + 1 >= len(path_parts):
        raise UserInputError("Unable to determine issue ID from URL.")
    issue_id = path_parts[issues_index + 1]

    organization_slug: str | None = None
    if "organizations" in path_parts:
        org_index = path_parts.index("organizations")
        if org_index + 1 < len(path_parts):
            organization_slug = path_parts[org_index + 1]
    elif path_parts[0] != "issues":
        # e.g. https://sentry.io/sentry/issues/123
        organization_slug = path_parts[0]
    else:
        organization_slug = _organization_from_subdomain(hostname)

    if not organization_slug:
        raise UserInputError("Invalid Sentry issue URL. Could not determine organization.")

    return IssueReference(issue_id=issue_id, organization_slug=organization_slug)


def extract_organization_slug(value: str) -> str:
    """
    Accept either a bare organization slug or a Sentry URL and return the slug.

    For URLs the slug comes from `/organizations/{slug}` in the path, or from
    the subdomain of a multi-tenant host (https://{slug}.sentry.io/).
    """
    if not value:
        raise MissingArgumentError("Missing organization slug.")
    if not _is_url(value):
        return value

    hostname, path_parts = _split_url(value, "organization")
    if "organizations" in path_parts:
        org_index = path_parts.index("organizations")
        if org_index + 1 < len(path_parts):
            return path_parts[org_index + 1]

    organization_slug = _organization_from_subdomain(hostname)
    if not organization_slug:
        raise UserInputError("Invalid Sentry organization URL. Could not determine organization.")
    return organization_slug


def escape_query_value(value: str) -> str:
    """Escape a value for use inside a double-quoted search term."""
    return value.replace("\\", "\\\\").replace('"', '\\"')


def quoted_term(key: str, value: str) -> str:
    """Build `key:"value"` with the value escaped."""
    return f'{key}:"{escape_query_value(value)}"'


def join_query(fragments: list[str]) -> str:
    return " ".join(fragment for fragment in fragments if fragment)
