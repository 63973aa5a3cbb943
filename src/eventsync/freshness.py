"""Anti-replay fence applied to event batches before any mutation.

For every event item carrying both an ``id`` and an ``updated_ts`` the gate
looks up (or creates) the item's Mapping Row:

- first sighting: the row is created with ``updated_ts`` as its watermark;
- linked row whose watermark is at or past ``updated_ts``: the *whole*
  delivery is rejected as stale;
- otherwise the watermark moves to ``updated_ts``.

Watermarks advanced for earlier items stay advanced when a later item turns
out stale.  That is what keeps a replayed delivery from being half-applied
later by a retry.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Any

from eventsync.collaborators import EventLinkStore
from eventsync.links import (
    DEFAULT_BASE_DELAY_S,
    DEFAULT_MAX_ATTEMPTS,
    LinkContentionError,
    get_or_create_link,
)
from eventsync.models import Batch, BatchType
from eventsync.outcome import Err, Ok
from eventsync.timestamps import TimestampError, parse_timestamp

logger = logging.getLogger(__name__)


class FreshnessGate:
    def __init__(
        self,
        links: EventLinkStore,
        *,
        max_link_attempts: int = DEFAULT_MAX_ATTEMPTS,
        link_retry_base_delay_s: float = DEFAULT_BASE_DELAY_S,
    ) -> None:
        self._links = links
        self._max_link_attempts = max_link_attempts
        self._link_retry_base_delay_s = link_retry_base_delay_s

    async def check(self, batches: Iterable[Batch]) -> Ok[int] | Err:
        """Fence all event items of a delivery.

        Returns ``Ok(n)`` with the number of items checked, or
        ``Err("stale", ...)`` naming the first stale item.
        """
        checked = 0
        for batch in batches:
            if batch.batch_type is not BatchType.EVENT:
                continue
            for item in batch.data:
                external_id = _item_id(item)
                raw_updated = item.get("updated_ts")
                if external_id is None or not raw_updated:
                    continue

                try:
                    updated_at = parse_timestamp(str(raw_updated))
                except TimestampError:
                    logger.warning("Invalid updated_ts for event %s", external_id)
                    continue

                try:
                    link, created = await get_or_create_link(
                        self._links,
                        external_id,
                        updated_at,
                        max_attempts=self._max_link_attempts,
                        base_delay_s=self._link_retry_base_delay_s,
                    )
                except LinkContentionError as exc:
                    logger.warning("Freshness check skipped for event %s: %s", external_id, exc)
                    continue

                checked += 1
                if link.is_linked and link.last_seen_updated_at >= updated_at:
                    logger.info(
                        "Skipping outdated event %s (timestamp: %s)",
                        external_id,
                        updated_at.isoformat(),
                    )
                    return Err(
                        "stale",
                        f"Event {external_id} at {updated_at.isoformat()} is stale or duplicate",
                    )
                if not created:
                    await self._links.advance(external_id, updated_at)

        return Ok(checked)


def _item_id(item: dict[str, Any]) -> str | None:
    raw = item.get("id")
    if raw is None or isinstance(raw, bool):
        return None
    normalized = str(raw).strip()
    return normalized or None
