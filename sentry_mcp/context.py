"""Per-session execution context handed to every tool handler."""

from dataclasses import dataclass

from sentry_mcp.errors import UserInputError
from sentry_mcp.utils import extract_organization_slug


@dataclass(frozen=True)
class SessionContext:
    """
    Who the session acts as, and where it acts by default.

    Created once per session (from the OAuth flow over HTTP, from settings
    over stdio) and never mutated afterwards.

    Attributes:
        access_token: Sentry access token used for every upstream call
        organization_slug: Default organization, used when a tool call
                           doesn't name one explicitly
    """

    access_token: str
    organization_slug: str | None = None

    def resolve_organization(self, explicit: str | None = None) -> str:
        """
        Pick the organization a tool call operates on.

        Order: explicit parameter (slug or URL), then the session default.
        """
        if explicit:
            return extract_organization_slug(explicit)
        if self.organization_slug:
            return self.organization_slug
        raise UserInputError("Organization slug is required.")
