"""Deterministic topic body rendering for synchronized events.

The body is Markdown with two HTML blocks understood by the forum:

- an image wrapper (``<div data-event-image>``) around the event picture;
- the calendar marker (``<div class="discourse-post-event" ...>``) that the
  forum's event extension turns into an RSVP-able calendar entry.

Canceled events keep their description and details but lose both the RSVP
link and the calendar marker.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime

from eventsync.models import EventPayload, EventStatus
from eventsync.outcome import Err, Ok
from eventsync.timestamps import TimestampError, format_minute, parse_timestamp

logger = logging.getLogger(__name__)

EVENT_MARKER_CLASS = "discourse-post-event"
EVENT_MARKER_TIMEZONE = "UTC"
EVENT_MARKER_VISIBILITY = "public"


@dataclass(frozen=True)
class ContentLabels:
    """User-facing strings rendered into topic bodies."""

    details: str = "Event Details"
    where: str = "Where"
    event_type: str = "Type"
    chapter: str = "Chapter"
    view_and_rsvp: str = "View and RSVP"
    view_on_platform: str = "View event on {platform}"
    platform_name: str = "the event platform"


class ContentComposer:
    """Renders an :class:`EventPayload` into a topic body."""

    def __init__(self, labels: ContentLabels | None = None) -> None:
        self._labels = labels or ContentLabels()

    def compose(self, event: EventPayload) -> Ok[str] | Err:
        """Render the body, falling back to a minimal one if rendering fails.

        Returns ``Err`` carrying the *original* rendering error when the
        fallback has nothing to work with either.
        """
        try:
            return Ok(self.render(event))
        except Exception as exc:
            logger.error("Content building failed for event %s: %s", event.id, exc)
            fallback = self.render_fallback(event)
            if fallback is None:
                logger.error("Fallback content also unavailable for event %s", event.id)
                return Err("content", str(exc), exc)
            logger.warning("Using fallback content for event %s", event.id)
            return Ok(fallback)

    def render(self, event: EventPayload) -> str:
        parts: list[str] = []

        starts_at = _parse_event_date(event, "start_date")
        ends_at = _parse_event_date(event, "end_date")

        self._add_image(parts, event)
        self._add_description(parts, event)
        self._add_details(parts, event)
        if event.status != EventStatus.CANCELED:
            self._add_rsvp_link(parts, event)
            self._add_event_marker(parts, starts_at, ends_at)

        return "\n".join(parts)

    def render_fallback(self, event: EventPayload) -> str | None:
        parts: list[str] = []
        if _present(event.description_short):
            parts.append(event.description_short)
        if _present(event.url):
            link_text = self._labels.view_on_platform.format(platform=self._labels.platform_name)
            parts.append(f"[{link_text}]({event.url})")
        if not parts:
            return None
        return "\n\n".join(parts)

    # -- sections ----------------------------------------------------------

    def _add_image(self, parts: list[str], event: EventPayload) -> None:
        image_url = event.image_url
        if image_url is None:
            return
        parts.extend(
            [
                "<div data-event-image>",
                "",
                f"![{event.title or ''}]({image_url})",
                "",
                "</div>",
                "",
            ]
        )

    def _add_description(self, parts: list[str], event: EventPayload) -> None:
        if _present(event.description):
            parts.extend([event.description, ""])
        elif _present(event.description_short):
            parts.extend([event.description_short, ""])

    def _add_details(self, parts: list[str], event: EventPayload) -> None:
        parts.extend([f"## {self._labels.details}", ""])

        location = [
            value for value in (event.venue_name, event.get_event_address) if _present(value)
        ]
        if location:
            parts.append(f"**{self._labels.where}:** {' - '.join(location)}")

        if _present(event.event_type_title):
            parts.append(f"**{self._labels.event_type}:** {event.event_type_title}")

        chapter_location = event.chapter_location
        if chapter_location is not None:
            parts.append(f"**{self._labels.chapter}:** {chapter_location}")

    def _add_rsvp_link(self, parts: list[str], event: EventPayload) -> None:
        if not _present(event.url):
            return
        parts.extend(["", f"[{self._labels.view_and_rsvp}]({event.url})"])

    def _add_event_marker(
        self,
        parts: list[str],
        starts_at: datetime | None,
        ends_at: datetime | None,
    ) -> None:
        if starts_at is None and ends_at is None:
            return
        attributes = [f'class="{EVENT_MARKER_CLASS}"']
        if starts_at is not None:
            attributes.append(f'data-start="{format_minute(starts_at)}"')
        if ends_at is not None:
            attributes.append(f'data-end="{format_minute(ends_at)}"')
        attributes.append(f'data-timezone="{EVENT_MARKER_TIMEZONE}"')
        attributes.append(f'data-status="{EVENT_MARKER_VISIBILITY}"')
        parts.extend(["", f"<div {' '.join(attributes)}></div>", ""])


def _parse_event_date(event: EventPayload, field: str) -> datetime | None:
    raw = getattr(event, field)
    if not _present(raw):
        return None
    try:
        return parse_timestamp(raw)
    except TimestampError as exc:
        logger.warning("Invalid %s for event %s: %s", field, event.id, exc)
        return None


def _present(value: str | None) -> bool:
    return isinstance(value, str) and bool(value.strip())
