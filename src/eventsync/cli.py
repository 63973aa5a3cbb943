"""CLI for eventsync: run the webhook service and inspect tag rules."""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from pathlib import Path

import click
from jmespath.exceptions import JMESPathError

from eventsync.config import ConfigError, ServiceConfig, load_config
from eventsync.tags import TagRuleEngine

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_DIR = Path(".")


def _load_or_exit(config_dir: Path) -> ServiceConfig:
    try:
        return load_config(config_dir)
    except ConfigError as exc:
        click.echo(f"Configuration error: {exc}", err=True)
        sys.exit(1)


@click.group()
@click.version_option(version="0.1.0")
def cli() -> None:
    """Mirror event-platform webhooks into forum topics."""


@cli.command()
@click.option(
    "--config",
    "config_dir",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    default=DEFAULT_CONFIG_DIR,
    help="Directory containing eventsync.toml",
)
@click.option("--host", default="0.0.0.0", show_default=True, help="Bind address")
@click.option("--port", type=int, default=None, help="Override service.port")
@click.option(
    "--in-memory",
    is_flag=True,
    help="Keep Mapping Rows in memory instead of Postgres (local experiments)",
)
def serve(config_dir: Path, host: str, port: int | None, in_memory: bool) -> None:
    """Start the webhook HTTP service.

    Topics, users and invitees are held by in-memory stores; hosts embedding
    eventsync pass their own stores to ``create_app``.
    """
    import uvicorn

    from eventsync.api.app import create_app
    from eventsync.api.deps import ForumBackends
    from eventsync.core.logging import configure_logging
    from eventsync.core.metrics import init_metrics
    from eventsync.core.telemetry import init_telemetry
    from eventsync.testing.fakes import (
        InMemoryEventLinkStore,
        InMemoryIdentityResolver,
        InMemoryInviteeStore,
        InMemoryResourceStore,
    )

    config = _load_or_exit(config_dir)
    configure_logging(
        level=config.logging.level,
        fmt=config.logging.format,
        log_root=Path(config.logging.log_root) if config.logging.log_root else None,
        service_name=config.name,
    )
    init_telemetry(config.name)
    init_metrics(config.name)

    backends = ForumBackends(
        resources=InMemoryResourceStore(),
        identities=InMemoryIdentityResolver(),
        invitees=InMemoryInviteeStore(),
    )
    app = create_app(config, backends, links=InMemoryEventLinkStore() if in_memory else None)

    bind_port = port or config.port
    click.echo(f"Starting {config.name} on {host}:{bind_port}")
    uvicorn.run(app, host=host, port=bind_port)


@cli.command()
@click.option(
    "--config",
    "config_dir",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    default=DEFAULT_CONFIG_DIR,
    help="Directory containing eventsync.toml",
)
def migrate(config_dir: Path) -> None:
    """Create the database if needed and apply all migrations."""
    from eventsync.db import Database
    from eventsync.migrations import run_migrations

    config = _load_or_exit(config_dir)
    db = Database.from_env(config.db_name)

    async def _migrate() -> None:
        await db.provision()
        await run_migrations(db.url)

    asyncio.run(_migrate())
    click.echo(f"Migrations applied to {config.db_name}")


@cli.command()
@click.argument("rules")
@click.argument("payload_json", type=click.Path(exists=True, dir_okay=False, path_type=Path))
def tags(rules: str, payload_json: Path) -> None:
    """Print the tags RULES derive from the event payload in PAYLOAD_JSON.

    RULES uses the configured format: ``tag,expression|tag,expression``.
    """
    try:
        payload = json.loads(payload_json.read_text())
    except json.JSONDecodeError as exc:
        raise click.ClickException(f"Invalid JSON in {payload_json}: {exc}") from exc
    if not isinstance(payload, dict):
        raise click.ClickException("Payload must be a JSON object")

    try:
        matched = TagRuleEngine(rules).extract_tags(payload)
    except JMESPathError as exc:
        raise click.ClickException(f"Tag rule error: {exc}") from exc

    if not matched:
        click.echo("(no tags)")
        return
    for tag in sorted(matched):
        click.echo(tag)
