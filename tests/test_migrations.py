"""Integration tests for the core migration chain."""

from __future__ import annotations

import shutil

import pytest

from eventsync.migrations import run_migrations
from eventsync.testing.migration import (
    constraint_exists,
    create_migration_db,
    migration_db_name,
    table_exists,
)

docker_available = shutil.which("docker") is not None

pytestmark = [
    pytest.mark.integration,
    pytest.mark.skipif(not docker_available, reason="Docker not available"),
]


async def test_core_chain_creates_event_links(postgres_container):
    db_url = create_migration_db(postgres_container, migration_db_name())

    await run_migrations(db_url)

    assert table_exists(db_url, "event_links")
    assert constraint_exists(db_url, "event_links", "uq_event_links_external_id")


async def test_migrations_are_idempotent(postgres_container):
    db_url = create_migration_db(postgres_container, migration_db_name())

    await run_migrations(db_url)
    await run_migrations(db_url)

    assert table_exists(db_url, "event_links")


async def test_unknown_chain_is_rejected():
    with pytest.raises(ValueError, match="Unknown migration chain"):
        await run_migrations("postgresql://unused", chain="mailbox")
