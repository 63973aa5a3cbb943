"""Contracts for the stores and resolvers the synchronizers run against.

The forum's topic storage, its user directory and its event-invitee table
are owned by the host application; this package only depends on the
interfaces below.  :mod:`eventsync.storage.links` implements the Mapping Row
store on Postgres and :mod:`eventsync.testing.fakes` provides in-memory
versions of all of them.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from datetime import datetime
from typing import Protocol

from eventsync.models import EventLink, InviteeStatus, ResourceRef

type Clock = Callable[[], datetime]


class EventLinkStore(Protocol):
    """Persistence for Mapping Rows, unique by ``external_id``."""

    async def get(self, external_id: str) -> EventLink | None:
        """Return the row for *external_id*, if any."""
        ...

    async def create(self, external_id: str, seen_at: datetime) -> EventLink:
        """Insert a new row; raise ``LinkConflictError`` if one already exists."""
        ...

    async def advance(self, external_id: str, seen_at: datetime) -> None:
        """Move the freshness watermark to *seen_at*.

        Implementations must refuse to move the watermark backwards on a
        row that already has a linked resource.
        """
        ...

    async def attach_resource(self, external_id: str, resource_id: int) -> bool:
        """Link *resource_id* to an unlinked row.

        Returns False, leaving the row untouched, when the row is missing or
        already linked.
        """
        ...

    async def delete(self, external_id: str) -> None:
        """Remove the row.  No-op when it does not exist."""
        ...


class ResourceStore(Protocol):
    """Topic storage of the host forum."""

    async def create(
        self,
        *,
        title: str,
        body: str,
        category_id: int,
        tags: Sequence[str],
        creator_id: int,
    ) -> ResourceRef: ...

    async def revise(
        self,
        resource_id: int,
        *,
        title: str,
        body: str,
        tags: Sequence[str],
        reason: str,
    ) -> ResourceRef: ...

    async def destroy(self, resource_id: int, *, actor_id: int) -> bool:
        """Destroy the resource; return ``False`` when it was already gone."""
        ...

    async def has_event(self, resource_id: int) -> bool:
        """Whether the resource carries an event-extension record."""
        ...


class IdentityResolver(Protocol):
    """User directory lookups by email."""

    async def find_by_email(self, email: str) -> int | None: ...

    async def find_by_emails(self, emails: Iterable[str]) -> dict[str, int]:
        """Return ``{email: user_id}`` for every email that has a user."""
        ...


@dataclass(frozen=True)
class InviteeRow:
    resource_id: int
    user_id: int
    status: InviteeStatus


class InviteeStore(Protocol):
    """Event-invitee table keyed by ``(resource_id, user_id)``."""

    async def upsert_many(self, rows: Sequence[InviteeRow], *, timestamp: datetime) -> None:
        """Insert or overwrite all *rows* atomically, stamping them with *timestamp*."""
        ...
