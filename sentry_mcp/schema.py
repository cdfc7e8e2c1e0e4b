"""
Typed projections of Sentry API responses.

Sentry's payloads are large and mostly irrelevant to us, so every model
ignores unknown fields and only declares what the formatters read. Sentry also
treats almost everything sent by SDKs as optional, which is why the event
models are so permissive.

Field names are snake_case in Python and camelCase on the wire (the alias
generator handles the mapping). Discover rows use Sentry's literal column
names ("count()", "span.op", ...) as explicit aliases.
"""

from datetime import datetime
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class SentryModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
        frozen=True,
    )


# Sentry serializes ids as strings, but a few endpoints (and older installs)
# send integers.
SentryId = Union[str, int]


class Organization(SentryModel):
    id: SentryId
    slug: str
    name: str


class Team(SentryModel):
    id: SentryId
    slug: str
    name: str


class Project(SentryModel):
    id: SentryId
    slug: str
    name: str


class ClientKeyDsn(SentryModel):
    public: str


class ClientKey(SentryModel):
    id: SentryId
    dsn: ClientKeyDsn


class ReleaseCommitAuthor(SentryModel):
    name: str
    email: str


class ReleaseCommit(SentryModel):
    id: SentryId
    message: Optional[str] = None
    date_created: datetime
    author: Optional[ReleaseCommitAuthor] = None


class ReleaseDeploy(SentryModel):
    id: SentryId
    environment: str
    date_started: Optional[datetime] = None
    date_finished: Optional[datetime] = None


class Release(SentryModel):
    id: SentryId
    version: str
    short_version: str
    date_created: datetime
    date_released: Optional[datetime] = None
    first_event: Optional[datetime] = None
    last_event: Optional[datetime] = None
    new_groups: int = 0
    last_commit: Optional[ReleaseCommit] = None
    last_deploy: Optional[ReleaseDeploy] = None
    projects: list[Project] = []


class Issue(SentryModel):
    id: SentryId
    short_id: str
    title: str
    first_seen: datetime
    last_seen: datetime
    count: SentryId
    user_count: SentryId
    permalink: str
    project: Project
    platform: Optional[str] = None
    status: str
    culprit: Optional[str] = None
    type: str = "error"


class Frame(SentryModel):
    filename: Optional[str] = None
    function: Optional[str] = None
    line_no: Optional[int] = None
    col_no: Optional[int] = None
    abs_path: Optional[str] = None
    module: Optional[str] = None
    # (line number, source line) pairs around the frame
    context: list[tuple[int, Optional[str]]] = []


class Stacktrace(SentryModel):
    frames: list[Frame] = []


class Mechanism(SentryModel):
    type: Optional[str] = None
    handled: Optional[bool] = None


class ExceptionInterface(SentryModel):
    mechanism: Optional[Mechanism] = None
    type: Optional[str] = None
    value: Optional[str] = None
    stacktrace: Optional[Stacktrace] = None


class SingleException(SentryModel):
    """An exception entry whose data carried a single `value` object."""

    exception: ExceptionInterface

    def first(self) -> Optional[ExceptionInterface]:
        return self.exception


class MultipleExceptions(SentryModel):
    """An exception entry whose data carried a `values` array."""

    exceptions: list[ExceptionInterface]

    def first(self) -> Optional[ExceptionInterface]:
        return self.exceptions[0] if self.exceptions else None


ExceptionPayload = Union[SingleException, MultipleExceptions]


class ExceptionEntry(SentryModel):
    type: Literal["exception"]
    payload: ExceptionPayload = Field(alias="data")

    @field_validator("payload", mode="before")
    @classmethod
    def _resolve_payload_shape(cls, data: Any) -> Any:
        # Sentry sends either {"value": {...}} or {"values": [...]} here.
        if not isinstance(data, dict):
            return data
        if data.get("value") is not None:
            return {"exception": data["value"]}
        values = data.get("values")
        if isinstance(values, list):
            values = [value for value in values if value is not None]
        return {"exceptions": values}


class OtherEntry(SentryModel):
    type: str
    data: Any = None


EventEntry = Annotated[
    Union[ExceptionEntry, OtherEntry], Field(union_mode="left_to_right")
]


class Event(SentryModel):
    id: str
    title: str
    message: Optional[str] = None
    date_created: datetime
    culprit: Optional[str] = None
    platform: Optional[str] = None
    entries: list[EventEntry] = []

    def exception_entries(self) -> list[ExceptionEntry]:
        return [entry for entry in self.entries if isinstance(entry, ExceptionEntry)]


class EventsResponse(BaseModel):
    """Envelope of the discover (/events/) endpoint."""

    model_config = ConfigDict(extra="ignore")

    data: list[dict[str, Any]]
    meta: dict[str, Any] = {}


class ErrorSearchRow(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)

    issue: str
    issue_id: Optional[SentryId] = Field(default=None, alias="issue.id")
    project: str
    title: str
    count: int = Field(alias="count()")
    last_seen: str = Field(alias="last_seen()")


class SpanRow(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)

    id: str
    trace: str
    span_op: Optional[str] = Field(default=None, alias="span.op")
    span_description: Optional[str] = Field(default=None, alias="span.description")
    span_duration: float = Field(alias="span.duration")
    transaction: str
    project: str
    timestamp: str
