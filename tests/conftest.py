"""Shared fixtures for the eventsync unit tests.

All collaborators are the in-memory implementations from
``eventsync.testing.fakes``; no database or forum is required.
"""

from __future__ import annotations

import pytest

from eventsync.attendees import AttendeeSynchronizer
from eventsync.content import ContentComposer
from eventsync.events import EventSynchronizer
from eventsync.freshness import FreshnessGate
from eventsync.tags import TagRuleEngine
from eventsync.testing.fakes import (
    InMemoryEventLinkStore,
    InMemoryIdentityResolver,
    InMemoryInviteeStore,
    InMemoryResourceStore,
)
from tests.factories import ORGANIZER_EMAIL, ORGANIZER_ID, TAG_RULES, make_settings


@pytest.fixture
def links() -> InMemoryEventLinkStore:
    return InMemoryEventLinkStore()


@pytest.fixture
def resources() -> InMemoryResourceStore:
    return InMemoryResourceStore()


@pytest.fixture
def identities() -> InMemoryIdentityResolver:
    return InMemoryIdentityResolver({ORGANIZER_EMAIL: ORGANIZER_ID})


@pytest.fixture
def invitees() -> InMemoryInviteeStore:
    return InMemoryInviteeStore()


@pytest.fixture
def gate(links: InMemoryEventLinkStore) -> FreshnessGate:
    return FreshnessGate(links, link_retry_base_delay_s=0.0)


@pytest.fixture
def event_sync(
    links: InMemoryEventLinkStore,
    resources: InMemoryResourceStore,
    identities: InMemoryIdentityResolver,
) -> EventSynchronizer:
    return EventSynchronizer(
        links=links,
        resources=resources,
        identities=identities,
        composer=ContentComposer(),
        tag_engine=TagRuleEngine(TAG_RULES),
        settings=make_settings(),
    )


@pytest.fixture
def attendee_sync(
    links: InMemoryEventLinkStore,
    resources: InMemoryResourceStore,
    identities: InMemoryIdentityResolver,
    invitees: InMemoryInviteeStore,
) -> AttendeeSynchronizer:
    return AttendeeSynchronizer(
        links=links,
        resources=resources,
        identities=identities,
        invitees=invitees,
    )
