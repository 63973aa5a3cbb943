"""Attendee batch synchronization into event-invitee rosters.

Items are grouped per external event and folded per email, so when one
batch names the same email twice the *last* status wins.  Each event group
becomes a single atomic bulk upsert, and every row written by one call
shares one timestamp.

An attendee status outside :data:`STATUS_MAP` aborts the whole call: groups
already written stay written and are reported, and the failure is reported
as a single error entry.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import UTC, datetime
from typing import Any

from eventsync.collaborators import (
    Clock,
    EventLinkStore,
    IdentityResolver,
    InviteeRow,
    InviteeStore,
    ResourceStore,
)
from eventsync.models import (
    AttendeePayload,
    AttendeeResult,
    BatchReport,
    InviteeStatus,
    ItemError,
)

logger = logging.getLogger(__name__)

STATUS_MAP: dict[str, InviteeStatus] = {
    "registered": InviteeStatus.GOING,
    "deleted": InviteeStatus.NOT_GOING,
}


class UnknownAttendeeStatusError(ValueError):
    def __init__(self, status: str) -> None:
        self.status = status
        expected = ", ".join(STATUS_MAP)
        super().__init__(f"Unknown attendee status: {status!r}. Expected one of: {expected}")


def group_attendees(items: Sequence[dict[str, Any]]) -> dict[str, dict[str, str]]:
    """Fold items into ``{external_event_id: {email: status}}`` (last write wins)."""
    groups: dict[str, dict[str, str]] = {}
    for item in items:
        attendee = AttendeePayload.model_validate(item)
        group = groups.setdefault(attendee.event_id, {})
        group[attendee.email] = attendee.status
    return groups


class AttendeeSynchronizer:
    def __init__(
        self,
        *,
        links: EventLinkStore,
        resources: ResourceStore,
        identities: IdentityResolver,
        invitees: InviteeStore,
        clock: Clock | None = None,
    ) -> None:
        self._links = links
        self._resources = resources
        self._identities = identities
        self._invitees = invitees
        self._clock = clock or (lambda: datetime.now(UTC))

    async def process(self, items: Sequence[dict[str, Any]]) -> BatchReport:
        results: list[AttendeeResult] = []
        try:
            groups = group_attendees(items)
            timestamp = self._clock()
            for external_id, statuses in groups.items():
                result = await self._sync_event(external_id, statuses, timestamp)
                if result is not None:
                    results.append(result)
        except Exception as exc:
            logger.error("Failed to process attendees: %s", exc, exc_info=True)
            return BatchReport(results=results, errors=[ItemError(error=str(exc))])

        return BatchReport(results=results)

    async def _sync_event(
        self,
        external_id: str,
        statuses: dict[str, str],
        timestamp: datetime,
    ) -> AttendeeResult | None:
        link = await self._links.get(external_id)
        if link is None or link.resource_id is None:
            logger.warning("No topic found for event %s", external_id)
            return None

        if not await self._resources.has_event(link.resource_id):
            logger.warning("No forum event found for topic %s", link.resource_id)
            return None

        users_by_email = await self._identities.find_by_emails(list(statuses))

        rows_by_user: dict[int, InviteeRow] = {}
        for email, raw_status in statuses.items():
            user_id = users_by_email.get(email)
            if user_id is None:
                continue
            status = STATUS_MAP.get(raw_status)
            if status is None:
                raise UnknownAttendeeStatusError(raw_status)
            rows_by_user[user_id] = InviteeRow(
                resource_id=link.resource_id,
                user_id=user_id,
                status=status,
            )

        rows = list(rows_by_user.values())
        if rows:
            await self._invitees.upsert_many(rows, timestamp=timestamp)

        return AttendeeResult(external_id=external_id, attendees_synced=len(rows))
