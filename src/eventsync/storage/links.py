"""asyncpg-backed Mapping Row store over the ``event_links`` table."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

import asyncpg

from eventsync.links import LinkConflictError
from eventsync.models import EventLink

logger = logging.getLogger(__name__)

_COLUMNS = "external_id, last_seen_updated_at, resource_id, created_at, updated_at"


def _row_to_link(row: Any) -> EventLink:
    return EventLink.model_validate(dict(row))


class PostgresEventLinkStore:
    """:class:`~eventsync.collaborators.EventLinkStore` on Postgres.

    Uniqueness of ``external_id`` is enforced by the table constraint; a
    losing concurrent insert surfaces as :class:`LinkConflictError`.
    """

    def __init__(self, pool: asyncpg.Pool) -> None:
        self._pool = pool

    async def get(self, external_id: str) -> EventLink | None:
        row = await self._pool.fetchrow(
            f"SELECT {_COLUMNS} FROM event_links WHERE external_id = $1",
            external_id,
        )
        return _row_to_link(row) if row is not None else None

    async def create(self, external_id: str, seen_at: datetime) -> EventLink:
        try:
            row = await self._pool.fetchrow(
                f"""
                INSERT INTO event_links (external_id, last_seen_updated_at)
                VALUES ($1, $2)
                RETURNING {_COLUMNS}
                """,
                external_id,
                seen_at,
            )
        except asyncpg.UniqueViolationError as exc:
            raise LinkConflictError(external_id) from exc
        logger.debug("Created event link for %s", external_id)
        return _row_to_link(row)

    async def advance(self, external_id: str, seen_at: datetime) -> None:
        # A linked row's watermark only moves forward.
        await self._pool.execute(
            """
            UPDATE event_links
            SET last_seen_updated_at = $2, updated_at = now()
            WHERE external_id = $1
              AND (resource_id IS NULL OR last_seen_updated_at < $2)
            """,
            external_id,
            seen_at,
        )

    async def attach_resource(self, external_id: str, resource_id: int) -> bool:
        status = await self._pool.execute(
            """
            UPDATE event_links
            SET resource_id = $2, updated_at = now()
            WHERE external_id = $1 AND resource_id IS NULL
            """,
            external_id,
            resource_id,
        )
        return status == "UPDATE 1"

    async def delete(self, external_id: str) -> None:
        await self._pool.execute("DELETE FROM event_links WHERE external_id = $1", external_id)
