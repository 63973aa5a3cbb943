"""Wire and persistence models for webhook deliveries.

Delivery envelopes arrive as a JSON array of ``{"type": ..., "data": [...]}``
batches.  Batch items stay as raw dicts until the owning synchronizer parses
them, so one malformed item fails on its own instead of rejecting the whole
delivery.
"""

from __future__ import annotations

import enum
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class BatchType(enum.StrEnum):
    """Closed set of batch types the dispatcher knows how to route."""

    EVENT = "event"
    ATTENDEE = "attendee"


class EventStatus(enum.StrEnum):
    PUBLISHED = "Published"
    CANCELED = "Canceled"


class InviteeStatus(enum.StrEnum):
    GOING = "going"
    NOT_GOING = "not_going"


class Batch(BaseModel):
    """One typed batch of a delivery envelope."""

    model_config = ConfigDict(extra="ignore")

    type: str
    data: list[dict[str, Any]] = Field(default_factory=list)

    @field_validator("data", mode="before")
    @classmethod
    def _none_as_empty(cls, value: Any) -> Any:
        return [] if value is None else value

    @property
    def batch_type(self) -> BatchType | None:
        try:
            return BatchType(self.type)
        except ValueError:
            return None


def _external_id(value: Any) -> str:
    if isinstance(value, bool) or value is None:
        raise ValueError("external id must be a string or integer")
    normalized = str(value).strip()
    if not normalized:
        raise ValueError("external id must be non-empty")
    return normalized


class Publisher(BaseModel):
    model_config = ConfigDict(extra="allow")

    email: str | None = None


class EventPayload(BaseModel):
    """One event item from the upstream platform.

    Tag rules are evaluated over the raw item dict, not this model, so the
    coercions below never change what a rule sees.
    """

    model_config = ConfigDict(extra="allow")

    id: str
    status: str | None = None
    title: str | None = None
    description: str | None = None
    description_short: str | None = None
    start_date: str | None = None
    end_date: str | None = None
    updated_ts: str | None = None
    venue_name: str | None = None
    get_event_address: str | None = None
    event_type_title: str | None = None
    url: str | None = None
    chapter: dict[str, Any] | None = None
    picture: dict[str, Any] | None = None
    published_by: Publisher | None = None
    is_hidden: bool = False
    is_test: bool = False

    @field_validator("id", mode="before")
    @classmethod
    def _normalize_id(cls, value: Any) -> str:
        return _external_id(value)

    @field_validator(
        "title",
        "description",
        "description_short",
        "venue_name",
        "get_event_address",
        "event_type_title",
        mode="before",
    )
    @classmethod
    def _number_as_text(cls, value: Any) -> Any:
        if isinstance(value, int | float) and not isinstance(value, bool):
            return str(value)
        return value

    @field_validator("is_hidden", "is_test", mode="before")
    @classmethod
    def _strict_flag(cls, value: Any) -> bool:
        return value is True

    @property
    def image_url(self) -> str | None:
        if isinstance(self.picture, dict):
            return _present(self.picture.get("url"))
        return None

    @property
    def chapter_location(self) -> str | None:
        if isinstance(self.chapter, dict):
            return _present(self.chapter.get("chapter_location"))
        return None

    @property
    def publisher_email(self) -> str | None:
        if self.published_by is None:
            return None
        return _present(self.published_by.email)


class AttendeePayload(BaseModel):
    """One attendee item from the upstream platform."""

    model_config = ConfigDict(extra="ignore")

    event_id: str
    email: str
    status: str

    @field_validator("event_id", mode="before")
    @classmethod
    def _normalize_event_id(cls, value: Any) -> str:
        return _external_id(value)


class EventLink(BaseModel):
    """Mapping Row: links an external event to the resource created for it."""

    model_config = ConfigDict(extra="ignore")

    external_id: str
    last_seen_updated_at: datetime
    resource_id: int | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def is_linked(self) -> bool:
        return self.resource_id is not None


class ResourceRef(BaseModel):
    """Handle returned by the resource store for a created/revised resource."""

    model_config = ConfigDict(frozen=True)

    id: int
    slug: str


class EventResult(BaseModel):
    resource_id: int
    resource_url: str
    external_id: str
    status: str


class AttendeeResult(BaseModel):
    external_id: str
    attendees_synced: int


class ItemError(BaseModel):
    error: str
    external_id: str | None = None


class BatchReport(BaseModel):
    """Successes and errors from one synchronizer call, each in input order."""

    results: list[EventResult | AttendeeResult] = Field(default_factory=list)
    errors: list[ItemError] = Field(default_factory=list)


class DeliveryReport(BaseModel):
    """Aggregated outcome for a whole delivery envelope."""

    results: list[EventResult | AttendeeResult] = Field(default_factory=list)
    errors: list[ItemError] = Field(default_factory=list)

    def extend(self, report: BatchReport) -> None:
        self.results.extend(report.results)
        self.errors.extend(report.errors)


def _present(value: Any) -> str | None:
    """Return *value* when it is a non-blank string, else ``None``."""
    if not isinstance(value, str):
        return None
    return value if value.strip() else None
