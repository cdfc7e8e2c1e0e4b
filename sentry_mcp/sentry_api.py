"""
Async client for the Sentry REST API.

Every method maps to one endpoint (create_project maps to two) and returns the
typed models from sentry_mcp.schema. Failures are reported through exactly
four exception types so callers can handle them uniformly:

- ApiError: non-2xx response (status code, reason and body attached)
- ApiTimeoutError: no answer within the configured timeout
- ApiConnectionError: the host could not be reached
- ApiSchemaError: 2xx response whose body doesn't match the expected model

A fresh httpx.AsyncClient is opened per request, so one SentryApiClient can
be shared by concurrent tool calls.
"""

import asyncio
import logging
from typing import Any, Literal, TypeVar

import httpx
from pydantic import BaseModel, TypeAdapter, ValidationError

from sentry_mcp.config import settings
from sentry_mcp.errors import ApiConnectionError, ApiError, ApiSchemaError, ApiTimeoutError
from sentry_mcp.schema import (
    ClientKey,
    ErrorSearchRow,
    Event,
    EventsResponse,
    Issue,
    Organization,
    Project,
    Release,
    SpanRow,
    Team,
)
from sentry_mcp.utils import join_query, quoted_term

logger = logging.getLogger("sentry-mcp.api")

ModelT = TypeVar("ModelT", bound=BaseModel)

SAAS_HOST = "sentry.io"
REFERRER = "sentry-mcp"

IssueSort = Literal["last_seen", "first_seen", "count", "userCount"]
ErrorSort = Literal["last_seen", "count"]
SpanSort = Literal["timestamp", "duration"]

# Tool-level sort names -> the values the issues endpoint understands
ISSUE_SORT_PARAMS: dict[str, str] = {
    "last_seen": "date",
    "first_seen": "new",
    "count": "freq",
    "userCount": "user",
}


class SentryApiClient:
    def __init__(
        self,
        access_token: str | None = None,
        host: str | None = None,
        *,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.access_token = access_token
        self.host = host or settings.host
        self.timeout = timeout if timeout is not None else settings.request_timeout
        self.api_prefix = f"https://{self.host}/api/0"
        self._transport = transport

    # ------------------------------------------------------------------
    # Plumbing
    # ------------------------------------------------------------------

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: Any = None,
        json: Any = None,
    ) -> httpx.Response:
        url = f"{self.api_prefix}{path}"
        headers = {"Content-Type": "application/json"}
        if self.access_token:
            headers["Authorization"] = f"Bearer {self.access_token}"

        logger.debug("%s %s", method, url)
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                # httpx bounds each phase of the request; wait_for bounds the whole call.
                response = await asyncio.wait_for(
                    client.request(method, url, params=params, json=json, headers=headers),
                    timeout=self.timeout,
                )
        except (httpx.TimeoutException, asyncio.TimeoutError) as e:
            raise ApiTimeoutError(url, self.timeout) from e
        except httpx.RequestError as e:
            raise ApiConnectionError(f"Could not reach {url}: {e}") from e

        if not response.is_success:
            raise ApiError(response.status_code, response.reason_phrase, response.text)
        return response

    @staticmethod
    def _json(response: httpx.Response, path: str) -> Any:
        try:
            return response.json()
        except ValueError as e:
            raise ApiSchemaError(path, "response body is not valid JSON") from e

    async def _fetch_one(self, path: str, model: type[ModelT], **kwargs: Any) -> ModelT:
        response = await self._request(kwargs.pop("method", "GET"), path, **kwargs)
        try:
            return model.model_validate(self._json(response, path))
        except ValidationError as e:
            raise ApiSchemaError(path, str(e)) from e

    async def _fetch_list(self, path: str, model: type[ModelT], **kwargs: Any) -> list[ModelT]:
        response = await self._request("GET", path, **kwargs)
        try:
            return TypeAdapter(list[model]).validate_python(self._json(response, path))
        except ValidationError as e:
            raise ApiSchemaError(path, str(e)) from e

    async def _discover(self, path: str, model: type[ModelT], params: list[tuple[str, str]]) -> list[ModelT]:
        body = await self._fetch_one(path, EventsResponse, params=params)
        try:
            return [model.model_validate(row) for row in body.data]
        except ValidationError as e:
            raise ApiSchemaError(path, str(e)) from e

    # ------------------------------------------------------------------
    # Web URLs (no network)
    # ------------------------------------------------------------------

    def get_issue_url(self, organization_slug: str, issue_id: str) -> str:
        if self.host != SAAS_HOST:
            return f"https://{self.host}/organizations/{organization_slug}/issues/{issue_id}"
        return f"https://{organization_slug}.{self.host}/issues/{issue_id}"

    def get_trace_url(self, organization_slug: str, trace_id: str) -> str:
        if self.host != SAAS_HOST:
            return f"https://{self.host}/organizations/{organization_slug}/explore/traces/trace/{trace_id}"
        return f"https://{organization_slug}.{self.host}/explore/traces/trace/{trace_id}"

    # ------------------------------------------------------------------
    # Organizations, teams, projects
    # ------------------------------------------------------------------

    async def list_organizations(self) -> list[Organization]:
        return await self._fetch_list("/organizations/", Organization)

    async def list_teams(self, organization_slug: str) -> list[Team]:
        return await self._fetch_list(f"/organizations/{organization_slug}/teams/", Team)

    async def create_team(self, organization_slug: str, name: str) -> Team:
        return await self._fetch_one(
            f"/organizations/{organization_slug}/teams/",
            Team,
            method="POST",
            json={"name": name},
        )

    async def list_projects(self, organization_slug: str) -> list[Project]:
        return await self._fetch_list(f"/organizations/{organization_slug}/projects/", Project)

    async def create_project(
        self,
        organization_slug: str,
        team_slug: str,
        name: str,
        platform: str | None = None,
    ) -> tuple[Project, ClientKey | None]:
        """
        Create a project, then provision a client key (DSN) for it.

        The key is a second, dependent call. If it fails the project still
        exists upstream, so we return it with a None key instead of raising.
        """
        payload = {"name": name}
        if platform:
            payload["platform"] = platform
        project = await self._fetch_one(
            f"/teams/{organization_slug}/{team_slug}/projects/",
            Project,
            method="POST",
            json=payload,
        )

        try:
            client_key = await self._fetch_one(
                f"/projects/{organization_slug}/{project.slug}/keys/",
                ClientKey,
                method="POST",
                json={"name": "Default"},
            )
        except (ApiError, ApiSchemaError, ApiTimeoutError, ApiConnectionError):
            logger.warning(
                "Created project %s/%s but could not provision a client key",
                organization_slug,
                project.slug,
                exc_info=True,
            )
            return project, None
        return project, client_key

    async def list_releases(
        self, organization_slug: str, project_slug: str | None = None
    ) -> list[Release]:
        if project_slug:
            path = f"/projects/{organization_slug}/{project_slug}/releases/"
        else:
            path = f"/organizations/{organization_slug}/releases/"
        return await self._fetch_list(path, Release, params={"per_page": "10"})

    # ------------------------------------------------------------------
    # Issues and events
    # ------------------------------------------------------------------

    async def list_issues(
        self,
        organization_slug: str,
        project_slug: str | None = None,
        query: str | None = None,
        sort_by: IssueSort | None = None,
    ) -> list[Issue]:
        sentry_query: list[str] = []
        if query:
            sentry_query.append(query)
        if project_slug:
            sentry_query.append(quoted_term("project", project_slug))

        params: list[tuple[str, str]] = [
            ("per_page", "10"),
            ("referrer", REFERRER),
            ("statsPeriod", "1w"),
            ("query", join_query(sentry_query)),
            ("collapse", "stats"),
            ("collapse", "unhandled"),
        ]
        if sort_by:
            params.append(("sort", ISSUE_SORT_PARAMS[sort_by]))

        return await self._fetch_list(f"/organizations/{organization_slug}/issues/", Issue, params=params)

    async def get_issue(self, organization_slug: str, issue_id: str) -> Issue:
        return await self._fetch_one(f"/organizations/{organization_slug}/issues/{issue_id}/", Issue)

    async def get_latest_event_for_issue(self, organization_slug: str, issue_id: str) -> Event:
        return await self._fetch_one(
            f"/organizations/{organization_slug}/issues/{issue_id}/events/latest/", Event
        )

    # ------------------------------------------------------------------
    # Discover searches
    # ------------------------------------------------------------------

    async def search_errors(
        self,
        organization_slug: str,
        project_slug: str | None = None,
        filename: str | None = None,
        transaction: str | None = None,
        query: str | None = None,
        sort_by: ErrorSort = "last_seen",
    ) -> list[ErrorSearchRow]:
        sentry_query: list[str] = []
        if filename:
            sentry_query.append(quoted_term("stack.filename", f"*{filename}"))
        if transaction:
            sentry_query.append(quoted_term("transaction", transaction))
        if query:
            sentry_query.append(query)
        if project_slug:
            sentry_query.append(quoted_term("project", project_slug))

        params: list[tuple[str, str]] = [
            ("dataset", "errors"),
            ("per_page", "10"),
            ("referrer", REFERRER),
            ("sort", "-last_seen" if sort_by == "last_seen" else "-count"),
            ("statsPeriod", "1w"),
            ("field", "issue"),
            ("field", "title"),
            ("field", "project"),
            ("field", "last_seen()"),
            ("field", "count()"),
            ("query", join_query(sentry_query)),
        ]
        return await self._discover(f"/organizations/{organization_slug}/events/", ErrorSearchRow, params)

    async def search_spans(
        self,
        organization_slug: str,
        project_slug: str | None = None,
        transaction: str | None = None,
        query: str | None = None,
        sort_by: SpanSort = "timestamp",
    ) -> list[SpanRow]:
        sentry_query: list[str] = ["is_transaction:true"]
        if transaction:
            sentry_query.append(quoted_term("transaction", transaction))
        if query:
            sentry_query.append(query)
        if project_slug:
            sentry_query.append(quoted_term("project", project_slug))

        params: list[tuple[str, str]] = [
            ("dataset", "spans"),
            ("per_page", "10"),
            ("referrer", REFERRER),
            ("sort", "-timestamp" if sort_by == "timestamp" else "-span.duration"),
            ("allowAggregateConditions", "0"),
            ("useRpc", "1"),
            ("field", "id"),
            ("field", "trace"),
            ("field", "span.op"),
            ("field", "span.description"),
            ("field", "span.duration"),
            ("field", "transaction"),
            ("field", "project"),
            ("field", "timestamp"),
            ("query", join_query(sentry_query)),
        ]
        return await self._discover(f"/organizations/{organization_slug}/events/", SpanRow, params)
