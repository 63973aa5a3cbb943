"""Mapping Row lookup-or-create with bounded retry on uniqueness conflicts.

Two deliveries naming the same new external event can race to insert its
row.  The loser sees ``LinkConflictError`` from the store, waits, and looks
the row up again.  Retries are capped (``max_attempts``) with exponential
backoff; exhausting them raises :class:`LinkContentionError`.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime

from eventsync.collaborators import EventLinkStore
from eventsync.models import EventLink

logger = logging.getLogger(__name__)

DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_BASE_DELAY_S = 0.05


class LinkConflictError(RuntimeError):
    """Raised by a store when a row for the external id already exists."""

    def __init__(self, external_id: str) -> None:
        self.external_id = external_id
        super().__init__(f"Event link already exists for external id {external_id!r}")


class LinkContentionError(RuntimeError):
    """Raised when row creation keeps conflicting after all retries."""

    def __init__(self, external_id: str, attempts: int) -> None:
        self.external_id = external_id
        self.attempts = attempts
        super().__init__(
            f"Could not create or load event link for {external_id!r} after {attempts} attempts"
        )


async def get_or_create_link(
    store: EventLinkStore,
    external_id: str,
    seen_at: datetime,
    *,
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    base_delay_s: float = DEFAULT_BASE_DELAY_S,
) -> tuple[EventLink, bool]:
    """Return ``(link, created)`` for *external_id*.

    A newly created row is seeded with *seen_at* as its watermark.
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be >= 1")

    delay = base_delay_s
    for attempt in range(1, max_attempts + 1):
        existing = await store.get(external_id)
        if existing is not None:
            return existing, False
        try:
            return await store.create(external_id, seen_at), True
        except LinkConflictError:
            if attempt >= max_attempts:
                break
            logger.info(
                "Concurrent creation of event link %s (attempt %s/%s); retrying",
                external_id,
                attempt,
                max_attempts,
            )
            await asyncio.sleep(delay)
            delay *= 2

    raise LinkContentionError(external_id, max_attempts)
