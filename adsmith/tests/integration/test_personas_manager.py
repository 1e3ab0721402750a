"""
Tests for the PersonasManager facade.
"""

import asyncio

import pytest

from adsmith.domain.models.persona import BatchOutcome, SlotStatus
from adsmith.infrastructure.config.settings import Settings
from adsmith.services.generative.exceptions import GenerationFailed, InvalidSlot
from adsmith.services.generative.style_catalog import StaticStyleCatalog
from adsmith.services.personas.facade import PersonasManager
from adsmith.services.personas.persona_store import PersonaStore
from adsmith.services.portraits.portrait_generator import PortraitGenerator
from adsmith.services.portraits.retry import RetryConfig
from adsmith.tests.fakes import BlockingPortraitClient, FakeTextClient, make_raw_persona


def _raw_batch(n, offset=0):
    return [make_raw_persona(i + offset) for i in range(n)]


@pytest.fixture
def text_client():
    return FakeTextClient()


@pytest.fixture
def manager(store, text_client, generator, campaign_context, rng):
    return PersonasManager(store, text_client, generator, context=campaign_context, rng=rng)


class TestGeneratePersonas:
    @pytest.mark.asyncio
    async def test_generates_personas_and_portraits(self, manager, text_client, memory_mirror):
        text_client.responses = [_raw_batch(3)]

        report = await manager.generate_personas(3)

        assert report.outcome == BatchOutcome.ALL_SUCCEEDED
        assert report.success_count == 3
        assert manager.persona_count == 3
        assert [p.id for p in manager.personas] == ["raw-0", "raw-1", "raw-2"]
        assert all(p.portrait_url and p.race for p in manager.personas)
        assert text_client.requests[0].count == 3
        assert text_client.requests[0].organization_context == "Organization: Bean Co\nIndustry: beverages"

        stored = memory_mirror.load("test_personas")
        assert stored.persona_count == 3
        assert set(stored.portraits) == {0, 1, 2}

    @pytest.mark.asyncio
    @pytest.mark.parametrize("requested, expected", [(0, 1), (9, 5), (2, 2)])
    async def test_count_is_clamped(self, manager, text_client, requested, expected):
        text_client.responses = [_raw_batch(5)]

        await manager.generate_personas(requested)

        assert text_client.requests[0].count == expected
        assert manager.persona_count == expected
        assert len(manager.personas) == expected

    @pytest.mark.asyncio
    async def test_extra_records_are_dropped(self, manager, text_client, store):
        text_client.responses = [_raw_batch(5)]

        await manager.generate_personas(2)

        assert [p.id if p else None for p in store.personas] == ["raw-0", "raw-1", None, None, None]

    @pytest.mark.asyncio
    async def test_text_failure_leaves_current_personas(self, manager, text_client, store):
        text_client.responses = [_raw_batch(2), GenerationFailed("quota exceeded")]
        await manager.generate_personas(2)
        epoch = store.epoch

        with pytest.raises(GenerationFailed):
            await manager.generate_personas(2)

        assert store.epoch == epoch
        assert [p.id for p in manager.personas] == ["raw-0", "raw-1"]

    @pytest.mark.asyncio
    async def test_empty_response_raises(self, manager, text_client):
        text_client.responses = [[]]
        with pytest.raises(GenerationFailed):
            await manager.generate_personas(2)

    @pytest.mark.asyncio
    async def test_new_batch_supersedes_running_one(self, store, text_client, campaign_context, recording_sleep, rng):
        client = BlockingPortraitClient()
        generator = PortraitGenerator(
            client,
            StaticStyleCatalog(),
            retry_config=RetryConfig(attempt_timeout=5.0),
            sleep=recording_sleep,
            rng=rng,
        )
        manager = PersonasManager(store, text_client, generator, context=campaign_context, rng=rng)
        text_client.responses = [_raw_batch(2), _raw_batch(2, offset=10)]

        first = asyncio.ensure_future(manager.generate_personas(2))
        await client.started.wait()
        second = asyncio.ensure_future(manager.generate_personas(2))
        first_report = await first
        client.release.set()
        second_report = await second

        assert first_report.superseded
        assert first_report.success_count == 0
        assert not second_report.superseded
        assert second_report.outcome == BatchOutcome.ALL_SUCCEEDED
        assert second_report.epoch == first_report.epoch + 1
        assert [p.id for p in manager.personas] == ["raw-10", "raw-11"]
        assert all(p.portrait_url for p in manager.personas)


class TestSessionState:
    @pytest.mark.asyncio
    async def test_reload_restores_previous_session(self, manager, text_client, memory_mirror, generator):
        text_client.responses = [_raw_batch(2)]
        await manager.generate_personas(2)

        reloaded = PersonasManager(PersonaStore(memory_mirror, namespace="test_personas"), FakeTextClient(), generator)

        assert reloaded.load()
        assert reloaded.persona_count == 2
        assert reloaded.personas == manager.personas
        assert all(s.status == SlotStatus.SUCCEEDED for s in reloaded.slots)

    @pytest.mark.asyncio
    async def test_generate_portraits_skips_filled_slots(self, manager, text_client, portrait_client):
        text_client.responses = [_raw_batch(2)]
        await manager.generate_personas(2)
        calls = len(portrait_client.requests)

        report = await manager.generate_portraits()

        assert len(portrait_client.requests) == calls
        assert all(s.skipped for s in report.slots)

    @pytest.mark.asyncio
    async def test_set_persona_count_shows_hidden_slots_again(self, manager, text_client):
        text_client.responses = [_raw_batch(3)]
        await manager.generate_personas(3)

        assert manager.set_persona_count(1) == 1
        assert len(manager.personas) == 1
        manager.set_persona_count(3)
        assert [p.id for p in manager.personas] == ["raw-0", "raw-1", "raw-2"]

    @pytest.mark.asyncio
    async def test_summary(self, manager, text_client):
        text_client.responses = [_raw_batch(2)]
        await manager.generate_personas(2)

        summary = manager.summary()

        assert summary.startswith("Target audience for cold brew coffee:")
        assert "Men aged 20-30" in summary
        assert "topic-0" in summary

    @pytest.mark.asyncio
    async def test_clear_all(self, manager, text_client, memory_mirror):
        text_client.responses = [_raw_batch(2)]
        await manager.generate_personas(2)

        await manager.clear_all()

        assert all(p is None for p in manager.personas)
        assert memory_mirror.get_raw("test_personas") is None


class TestSingleSlotOperations:
    @pytest.mark.asyncio
    async def test_retry_portrait_after_exhaustion(self, manager, text_client, portrait_client, store):
        portrait_client.failing_markers = ["topic-1,"]
        text_client.responses = [_raw_batch(2)]
        report = await manager.generate_personas(2)
        assert report.failed_indices == [1]

        portrait_client.failing_markers = []
        retried = await manager.retry_portrait(1)

        assert retried.status == SlotStatus.SUCCEEDED
        assert store.slot(1).persona.portrait_url

    @pytest.mark.asyncio
    async def test_retry_portrait_on_empty_slot(self, manager, text_client):
        text_client.responses = [_raw_batch(2)]
        await manager.generate_personas(2)
        manager.store.clear_slot(0)

        with pytest.raises(InvalidSlot):
            await manager.retry_portrait(0)

    @pytest.mark.asyncio
    async def test_retry_portrait_while_generating_is_ignored(self, manager, text_client, store, portrait_client):
        text_client.responses = [_raw_batch(1)]
        await manager.generate_personas(1)
        calls = len(portrait_client.requests)
        store.mark_status(0, SlotStatus.GENERATING)

        assert await manager.retry_portrait(0) is None
        assert len(portrait_client.requests) == calls

    @pytest.mark.asyncio
    async def test_remove_persona_regenerates_slot(self, manager, text_client):
        text_client.responses = [_raw_batch(3), [make_raw_persona(9)]]
        await manager.generate_personas(3)

        report = await manager.remove_persona(1)

        assert report.status == SlotStatus.SUCCEEDED
        assert [p.id for p in manager.personas] == ["raw-0", "raw-9", "raw-2"]

    @pytest.mark.asyncio
    async def test_regenerate_persona_after_text_failure(self, manager, text_client):
        text_client.responses = [_raw_batch(2), GenerationFailed("busy"), [make_raw_persona(9)]]
        await manager.generate_personas(2)

        with pytest.raises(GenerationFailed):
            await manager.remove_persona(0)
        assert manager.personas[0] is None

        await manager.regenerate_persona(0)
        assert manager.personas[0].id == "raw-9"


class TestFromSettings:
    def test_requires_portrait_endpoint(self):
        with pytest.raises(ValueError):
            PersonasManager.from_settings(Settings(env={}))

    def test_configures_logging(self, monkeypatch):
        calls = []
        monkeypatch.setattr(Settings, "configure_logging", lambda self: calls.append(self.log_level))

        with pytest.raises(ValueError):
            PersonasManager.from_settings(Settings(env={"LOG_LEVEL": "debug"}))

        assert calls == ["DEBUG"]

    def test_wires_collaborators(self):
        settings = Settings(
            env={
                "OPENAI_API_KEY": "sk-test",
                "PORTRAIT_ENDPOINT_URL": "https://portraits.example.com/generate",
                "PERSONA_MIRROR_DATABASE_URL": "sqlite://",
                "PORTRAIT_MAX_CONCURRENCY": "2",
                "DEFAULT_PERSONA_COUNT": "4",
            }
        )

        manager = PersonasManager.from_settings(settings)

        assert manager.persona_count == 4
        assert manager.orchestrator.max_concurrency == 2
        assert isinstance(manager.generator.style_catalog, StaticStyleCatalog)
