"""
PyTest configuration and fixtures.
"""

import random

import pytest
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from adsmith.domain.models.persona import CampaignContext
from adsmith.infrastructure.persistence.persona_mirror import (
    InMemoryPersonaMirror,
    SqlAlchemyPersonaMirror,
)
from adsmith.services.generative.style_catalog import StaticStyleCatalog
from adsmith.services.personas.persona_store import PersonaStore
from adsmith.services.portraits.portrait_generator import PortraitGenerator
from adsmith.services.portraits.retry import RetryConfig
from adsmith.tests.fakes import FakePortraitClient, RecordingSleep

# Test database URL
SQLALCHEMY_TEST_DATABASE_URL = "sqlite://"


@pytest.fixture
def rng():
    return random.Random(1234)


@pytest.fixture
def recording_sleep():
    return RecordingSleep()


@pytest.fixture
def campaign_context():
    return CampaignContext(
        offering_description="cold brew coffee",
        country="US",
        organization_name="Bean Co",
        industry="beverages",
    )


@pytest.fixture
def memory_mirror():
    return InMemoryPersonaMirror()


@pytest.fixture
def sqlite_engine():
    """In-memory SQLite shared across connections."""
    engine = create_engine(
        SQLALCHEMY_TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},  # Needed for SQLite
        poolclass=StaticPool,
    )
    yield engine
    engine.dispose()


@pytest.fixture
def sql_mirror(sqlite_engine):
    return SqlAlchemyPersonaMirror(engine=sqlite_engine)


@pytest.fixture
def store(memory_mirror):
    return PersonaStore(memory_mirror, namespace="test_personas", persona_count=5)


@pytest.fixture
def portrait_client():
    return FakePortraitClient()


@pytest.fixture
def generator(portrait_client, recording_sleep, rng):
    return PortraitGenerator(
        portrait_client,
        StaticStyleCatalog(),
        retry_config=RetryConfig(attempt_timeout=5.0),
        sleep=recording_sleep,
        rng=rng,
    )
