"""FastAPI application factory for the webhook API.

The app factory creates a FastAPI instance with:
- Lifespan handler that opens the Mapping Row store and wires the pipeline
- Health endpoint at GET /api/health
- The webhook router at POST /webhooks
- Catch-all error middleware
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from eventsync.api.deps import (
    ForumBackends,
    build_services,
    init_webhook_services,
    reset_webhook_services,
)
from eventsync.api.middleware import register_error_handlers
from eventsync.api.routers.webhooks import router as webhooks_router
from eventsync.collaborators import EventLinkStore
from eventsync.config import ServiceConfig
from eventsync.db import Database
from eventsync.migrations import run_migrations
from eventsync.storage.links import PostgresEventLinkStore

logger = logging.getLogger(__name__)


def create_app(
    config: ServiceConfig,
    backends: ForumBackends,
    links: EventLinkStore | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Parameters
    ----------
    config:
        Loaded service configuration.
    backends:
        The host forum's topic, user and invitee stores.
    links:
        Mapping Row store.  When omitted, the lifespan provisions and
        migrates the Postgres database named in *config* and uses
        :class:`PostgresEventLinkStore`.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        db: Database | None = None
        link_store = links
        if link_store is None:
            db = Database.from_env(config.db_name)
            await db.provision()
            await run_migrations(db.url)
            link_store = PostgresEventLinkStore(await db.connect())

        init_webhook_services(build_services(config, links=link_store, backends=backends))
        logger.info("Service %s ready on port %d", config.name, config.port)

        yield

        reset_webhook_services()
        if db is not None:
            await db.close()

    app = FastAPI(
        title="Event Sync Webhook API",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.router.redirect_slashes = False

    register_error_handlers(app)

    app.include_router(webhooks_router)

    @app.get("/api/health")
    async def health():
        return {"status": "ok"}

    return app
