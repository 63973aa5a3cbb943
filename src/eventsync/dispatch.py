"""Delivery envelope parsing and batch routing.

A delivery is a JSON array of ``{"type": ..., "data": [...]}`` batches.
Batches run in input order, one after the other; a batch whose type is not
a :class:`BatchType` member is skipped with a warning.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Iterable, Sequence
from typing import Any

from pydantic import ValidationError

from eventsync.attendees import AttendeeSynchronizer
from eventsync.core.metrics import SyncMetrics
from eventsync.core.telemetry import sync_span
from eventsync.events import EventSynchronizer
from eventsync.models import Batch, BatchReport, BatchType, DeliveryReport

logger = logging.getLogger(__name__)

type BatchHandler = Callable[[Sequence[dict[str, Any]]], Awaitable[BatchReport]]


class EnvelopeError(ValueError):
    """The request body is not a JSON array of batch objects."""


def parse_envelope(body: Any) -> list[Batch]:
    """Validate a decoded request body into batches.

    Raises
    ------
    EnvelopeError
        If *body* is not a list, or any entry is not a batch object.
    """
    if not isinstance(body, list):
        raise EnvelopeError("Delivery must be a JSON array of batches")
    batches: list[Batch] = []
    for index, entry in enumerate(body):
        if not isinstance(entry, dict):
            raise EnvelopeError(f"Batch {index} is not an object")
        try:
            batches.append(Batch.model_validate(entry))
        except ValidationError as exc:
            raise EnvelopeError(f"Batch {index} is malformed: {exc}") from exc
    return batches


def has_handled_batch(batches: Iterable[Batch]) -> bool:
    return any(batch.batch_type is not None for batch in batches)


class BatchDispatcher:
    """Routes each batch to its synchronizer and aggregates the reports."""

    def __init__(
        self,
        *,
        events: EventSynchronizer,
        attendees: AttendeeSynchronizer,
        metrics: SyncMetrics | None = None,
    ) -> None:
        self._handlers: dict[BatchType, BatchHandler] = {
            BatchType.EVENT: events.process,
            BatchType.ATTENDEE: attendees.process,
        }
        self._metrics = metrics or SyncMetrics()

    async def dispatch(self, batches: Sequence[Batch]) -> DeliveryReport:
        delivery = DeliveryReport()
        for batch in batches:
            batch_type = batch.batch_type
            if batch_type is None:
                logger.warning("Ignoring batch of unhandled type %r", batch.type)
                continue

            handler = self._handlers[batch_type]
            with sync_span(f"eventsync.batch.{batch_type}", items=len(batch.data)):
                report = await handler(batch.data)

            self._metrics.record_items(
                batch_type, ok=len(report.results), failed=len(report.errors)
            )
            delivery.extend(report)
        return delivery
