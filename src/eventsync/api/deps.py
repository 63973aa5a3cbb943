"""Webhook service wiring and FastAPI dependency providers.

Provides:
- ``ForumBackends``: the host forum's stores the synchronizers write to.
- ``build_services()``: wires config and stores into the gate and dispatcher.
- ``get_webhook_services()``: FastAPI dependency; raises until
  ``init_webhook_services()`` ran (from the app lifespan) or a test
  overrides it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from eventsync.attendees import AttendeeSynchronizer
from eventsync.collaborators import EventLinkStore, IdentityResolver, InviteeStore, ResourceStore
from eventsync.config import ServiceConfig, WebhookConfig
from eventsync.content import ContentComposer, ContentLabels
from eventsync.core.metrics import SyncMetrics
from eventsync.dispatch import BatchDispatcher
from eventsync.events import EventSynchronizer, EventSyncSettings
from eventsync.freshness import FreshnessGate
from eventsync.tags import TagRuleEngine

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ForumBackends:
    """Host-owned stores: topics, users and event invitees."""

    resources: ResourceStore
    identities: IdentityResolver
    invitees: InviteeStore


@dataclass(frozen=True)
class WebhookServices:
    webhook: WebhookConfig
    gate: FreshnessGate
    dispatcher: BatchDispatcher
    metrics: SyncMetrics


def build_services(
    config: ServiceConfig,
    *,
    links: EventLinkStore,
    backends: ForumBackends,
    metrics: SyncMetrics | None = None,
) -> WebhookServices:
    """Assemble the webhook pipeline for *config*."""
    webhook = config.webhook
    metrics = metrics or SyncMetrics()

    tag_engine = TagRuleEngine(lambda: webhook.tag_rules)
    composer = ContentComposer(ContentLabels(platform_name=webhook.platform_name))
    events = EventSynchronizer(
        links=links,
        resources=backends.resources,
        identities=backends.identities,
        composer=composer,
        tag_engine=tag_engine,
        settings=EventSyncSettings(
            base_url=config.base_url,
            system_user_id=webhook.system_user_id,
            uncategorized_category_id=webhook.uncategorized_category_id,
            category_id=webhook.category_id,
            max_link_attempts=webhook.max_link_attempts,
            link_retry_base_delay_s=webhook.link_retry_base_delay_s,
        ),
    )
    attendees = AttendeeSynchronizer(
        links=links,
        resources=backends.resources,
        identities=backends.identities,
        invitees=backends.invitees,
    )
    return WebhookServices(
        webhook=webhook,
        gate=FreshnessGate(
            links,
            max_link_attempts=webhook.max_link_attempts,
            link_retry_base_delay_s=webhook.link_retry_base_delay_s,
        ),
        dispatcher=BatchDispatcher(events=events, attendees=attendees, metrics=metrics),
        metrics=metrics,
    )


_services: WebhookServices | None = None


def init_webhook_services(services: WebhookServices) -> None:
    global _services
    _services = services
    logger.info("Webhook services initialized")


def reset_webhook_services() -> None:
    global _services
    _services = None


def get_webhook_services() -> WebhookServices:
    """FastAPI dependency returning the wired webhook pipeline."""
    if _services is None:
        raise RuntimeError("Webhook services not initialized")
    return _services
