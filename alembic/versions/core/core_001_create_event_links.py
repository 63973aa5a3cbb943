"""create_event_links

Revision ID: core_001
Revises:
Create Date: 2026-01-14 00:00:00.000000

"""

from __future__ import annotations

from alembic import op

# revision identifiers, used by Alembic.
revision = "core_001"
down_revision = None
branch_labels = ("core",)
depends_on = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE IF NOT EXISTS event_links (
            id BIGSERIAL PRIMARY KEY,
            external_id TEXT NOT NULL,
            last_seen_updated_at TIMESTAMPTZ NOT NULL,
            resource_id BIGINT,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            CONSTRAINT uq_event_links_external_id UNIQUE (external_id)
        )
    """)

    op.execute("""
        CREATE UNIQUE INDEX IF NOT EXISTS idx_event_links_resource_id
        ON event_links (resource_id)
        WHERE resource_id IS NOT NULL
    """)


def downgrade() -> None:
    op.execute("DROP INDEX IF EXISTS idx_event_links_resource_id")
    op.execute("DROP TABLE IF EXISTS event_links")
