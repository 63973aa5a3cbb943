"""Persistent stores for Mapping Rows."""

from eventsync.storage.links import PostgresEventLinkStore

__all__ = ["PostgresEventLinkStore"]
