"""Event batch synchronization: upstream event status → forum topic state.

=================  =====================================================
Status             Effect
=================  =====================================================
Published          create the topic, or revise it in place when linked
Published, hidden  destroy the linked topic and drop the Mapping Row
  or test
Canceled           revise the linked topic with cancellation content;
                   drop an unlinked (placeholder) Mapping Row
anything else      skipped
=================  =====================================================

Each item is handled in isolation: a failure becomes an ``ItemError`` and the
remaining items still run.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

from eventsync.collaborators import EventLinkStore, IdentityResolver, ResourceStore
from eventsync.content import ContentComposer
from eventsync.links import DEFAULT_BASE_DELAY_S, DEFAULT_MAX_ATTEMPTS, get_or_create_link
from eventsync.models import (
    BatchReport,
    EventLink,
    EventPayload,
    EventResult,
    EventStatus,
    ItemError,
    ResourceRef,
)
from eventsync.outcome import Err, Ok, Skip
from eventsync.tags import TagRuleEngine
from eventsync.timestamps import TimestampError, parse_timestamp

logger = logging.getLogger(__name__)

UPDATED_REASON = "Updated from webhook"
CANCELED_REASON = "Canceled from webhook"


@dataclass(frozen=True)
class EventSyncSettings:
    base_url: str
    system_user_id: int
    uncategorized_category_id: int
    category_id: int | None = None
    max_link_attempts: int = DEFAULT_MAX_ATTEMPTS
    link_retry_base_delay_s: float = DEFAULT_BASE_DELAY_S


class EventSynchronizer:
    def __init__(
        self,
        *,
        links: EventLinkStore,
        resources: ResourceStore,
        identities: IdentityResolver,
        composer: ContentComposer,
        tag_engine: TagRuleEngine,
        settings: EventSyncSettings,
    ) -> None:
        self._links = links
        self._resources = resources
        self._identities = identities
        self._composer = composer
        self._tag_engine = tag_engine
        self._settings = settings

    async def process(self, items: Sequence[dict[str, Any]]) -> BatchReport:
        results: list[EventResult] = []
        errors: list[ItemError] = []

        for item in items:
            external_id = _raw_id(item)
            try:
                event = EventPayload.model_validate(item)
                outcome = await self._apply(event, item)
            except Exception as exc:
                logger.error("Failed to process event %s: %s", external_id, exc, exc_info=True)
                outcome = Err("event", str(exc), exc)

            match outcome:
                case Ok(value=result):
                    results.append(result)
                case Skip(reason=reason):
                    logger.info("Skipping event %s: %s", external_id, reason)
                case Err(kind=kind, message=message):
                    logger.warning("Event %s not synchronized (%s): %s", external_id, kind, message)
                    errors.append(ItemError(error=message, external_id=external_id))

        return BatchReport(results=results, errors=errors)

    async def _apply(
        self, event: EventPayload, document: dict[str, Any]
    ) -> Ok[EventResult] | Skip | Err:
        match event.status:
            case EventStatus.PUBLISHED:
                if event.is_hidden or event.is_test:
                    await self._remove(event.id)
                    return Skip("hidden/test event; removed its topic if it existed")
                return await self._publish(event, document)
            case EventStatus.CANCELED:
                return await self._cancel(event, document)
            case _:
                return Skip(f"status {event.status!r} is not synchronized")

    async def _publish(
        self, event: EventPayload, document: dict[str, Any]
    ) -> Ok[EventResult] | Err:
        link = await self._link_for(event)
        if isinstance(link, Err):
            return link

        body = self._composer.compose(event)
        if isinstance(body, Err):
            return body
        tags = sorted(self._tag_engine.extract_tags(document))
        title = event.title or ""

        if link.resource_id is not None:
            ref = await self._resources.revise(
                link.resource_id,
                title=title,
                body=body.value,
                tags=tags,
                reason=UPDATED_REASON,
            )
            return Ok(self._result(ref, event))

        ref = await self._resources.create(
            title=title,
            body=body.value,
            category_id=self._category_id(),
            tags=tags,
            creator_id=await self._creator_id(event),
        )
        if not await self._links.attach_resource(event.id, ref.id):
            return await self._discard_unlinked(event, ref, title=title, body=body.value, tags=tags)
        logger.info("Created topic %s for event %s", ref.id, event.id)
        return Ok(self._result(ref, event))

    async def _discard_unlinked(
        self,
        event: EventPayload,
        orphan: ResourceRef,
        *,
        title: str,
        body: str,
        tags: list[str],
    ) -> Ok[EventResult] | Err:
        """Drop a topic whose row was linked (or removed) by a concurrent delivery.

        The topic that won the link receives this delivery's content instead.
        """
        await self._resources.destroy(orphan.id, actor_id=self._settings.system_user_id)
        link = await self._links.get(event.id)
        if link is None or link.resource_id is None:
            return Err(
                "conflict",
                f"Event link for {event.id} was removed while topic {orphan.id} was created",
            )
        logger.info(
            "Event %s was linked to topic %s concurrently; discarded topic %s",
            event.id,
            link.resource_id,
            orphan.id,
        )
        ref = await self._resources.revise(
            link.resource_id,
            title=title,
            body=body,
            tags=tags,
            reason=UPDATED_REASON,
        )
        return Ok(self._result(ref, event))

    async def _cancel(
        self, event: EventPayload, document: dict[str, Any]
    ) -> Ok[EventResult] | Skip | Err:
        link = await self._links.get(event.id)
        if link is None or link.resource_id is None:
            if link is not None:
                await self._links.delete(event.id)
            logger.warning("Cannot cancel non-existent event %s", event.id)
            return Skip("canceled event has no topic")

        body = self._composer.compose(event)
        if isinstance(body, Err):
            return body
        tags = sorted(self._tag_engine.extract_tags(document))

        ref = await self._resources.revise(
            link.resource_id,
            title=event.title or "",
            body=body.value,
            tags=tags,
            reason=CANCELED_REASON,
        )
        return Ok(self._result(ref, event))

    async def _remove(self, external_id: str) -> None:
        link = await self._links.get(external_id)
        if link is None:
            return
        if link.resource_id is not None:
            destroyed = await self._resources.destroy(
                link.resource_id, actor_id=self._settings.system_user_id
            )
            if destroyed:
                logger.info(
                    "Deleted topic %s for hidden/test event %s", link.resource_id, external_id
                )
        await self._links.delete(external_id)

    async def _link_for(self, event: EventPayload) -> EventLink | Err:
        existing = await self._links.get(event.id)
        if existing is not None:
            return existing

        # The freshness gate normally created the row already; it skips items
        # whose updated_ts it cannot parse, so those land here.
        if not event.updated_ts:
            return Err("validation", f"Event {event.id} has no updated_ts")
        try:
            seen_at = parse_timestamp(event.updated_ts)
        except TimestampError as exc:
            return Err("validation", str(exc), exc)

        link, _ = await get_or_create_link(
            self._links,
            event.id,
            seen_at,
            max_attempts=self._settings.max_link_attempts,
            base_delay_s=self._settings.link_retry_base_delay_s,
        )
        return link

    async def _creator_id(self, event: EventPayload) -> int:
        email = event.publisher_email
        if email is not None:
            user_id = await self._identities.find_by_email(email)
            if user_id is not None:
                return user_id
            logger.info("User not found for email %s, using system user", email)
        return self._settings.system_user_id

    def _category_id(self) -> int:
        if self._settings.category_id is None:
            logger.warning("No category configured, using uncategorized")
            return self._settings.uncategorized_category_id
        return self._settings.category_id

    def _result(self, ref: ResourceRef, event: EventPayload) -> EventResult:
        return EventResult(
            resource_id=ref.id,
            resource_url=f"{self._settings.base_url.rstrip('/')}/t/{ref.slug}/{ref.id}",
            external_id=event.id,
            status=event.status or "",
        )


def _raw_id(item: dict[str, Any]) -> str | None:
    raw = item.get("id") if isinstance(item, dict) else None
    if raw is None:
        return None
    return str(raw)
