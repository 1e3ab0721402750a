"""
Personas Manager Facade

Single entry point for the intake UI: generates a persona batch and its
portraits, retries or regenerates single slots, and keeps the persona store
and its persistent mirror in step.
"""

import asyncio
import logging
import random
from typing import List, Optional

from adsmith.domain.models.persona import (
    BatchReport,
    CampaignContext,
    GenerationSlot,
    Persona,
    SlotReport,
    SlotStatus,
)
from adsmith.infrastructure.config.settings import Settings
from adsmith.infrastructure.persistence.persona_mirror import SqlAlchemyPersonaMirror
from adsmith.services.generative.base import (
    PersonaTextClient,
    PersonaTextRequest,
    StyleCatalog,
)
from adsmith.services.generative.exceptions import GenerationFailed, InvalidSlot
from adsmith.services.generative.openai_persona_service import OpenAIPersonaService
from adsmith.services.generative.portrait_http_service import HttpPortraitService
from adsmith.services.generative.style_catalog import HttpStyleCatalog, StaticStyleCatalog
from adsmith.services.personas.persona_store import PersonaStore, clamp_persona_count
from adsmith.services.personas.regeneration import PersonaRegenerator
from adsmith.services.portraits.batch_orchestrator import BatchOrchestrator
from adsmith.services.portraits.portrait_generator import PortraitGenerator
from adsmith.services.processing.demographic_normalizer import normalize_personas
from adsmith.services.processing.prompt_builder import generate_persona_summary

logger = logging.getLogger(__name__)


class PersonasManager:
    def __init__(
        self,
        store: PersonaStore,
        text_client: PersonaTextClient,
        generator: PortraitGenerator,
        context: Optional[CampaignContext] = None,
        max_concurrency: Optional[int] = None,
        rng: Optional[random.Random] = None,
    ):
        self.store = store
        self.text_client = text_client
        self.generator = generator
        self.context = context or CampaignContext()
        self.rng = rng if rng is not None else random.Random()
        if max_concurrency is None:
            self.orchestrator = BatchOrchestrator(store, generator, rng=self.rng)
        else:
            self.orchestrator = BatchOrchestrator(store, generator, max_concurrency, rng=self.rng)
        self.regenerator = PersonaRegenerator(store, text_client, self.orchestrator, rng=self.rng)
        self._batch_task: Optional[asyncio.Task] = None

    @classmethod
    def from_settings(
        cls, settings: Optional[Settings] = None, context: Optional[CampaignContext] = None
    ) -> "PersonasManager":
        """Wire the production collaborators from environment settings."""
        settings = settings or Settings()
        settings.configure_logging()
        if not settings.portrait_endpoint_url:
            raise ValueError("PORTRAIT_ENDPOINT_URL is not configured")

        style_catalog: StyleCatalog
        if settings.styles_endpoint_url:
            style_catalog = HttpStyleCatalog(settings.styles_endpoint_url, settings.styles_api_key)
        else:
            logger.info("STYLES_ENDPOINT_URL not set, using the built-in style list")
            style_catalog = StaticStyleCatalog()

        generator = PortraitGenerator(
            HttpPortraitService(
                settings.portrait_endpoint_url,
                settings.portrait_api_key,
                timeout=settings.portrait_timeout,
            ),
            style_catalog,
            retry_config=settings.retry_config(),
            resolution=settings.portrait_resolution,
        )
        store = PersonaStore(
            SqlAlchemyPersonaMirror(settings.mirror_database_url),
            namespace=settings.mirror_namespace,
            persona_count=settings.default_persona_count,
        )
        text_client = OpenAIPersonaService(
            api_key=settings.openai_api_key, model=settings.openai_model
        )
        return cls(
            store,
            text_client,
            generator,
            context=context,
            max_concurrency=settings.portrait_max_concurrency,
        )

    @property
    def personas(self) -> List[Optional[Persona]]:
        return self.store.visible_personas

    @property
    def slots(self) -> List[GenerationSlot]:
        return self.store.slots

    @property
    def persona_count(self) -> int:
        return self.store.persona_count

    def load(self) -> bool:
        """Restore the previous session from the mirror."""
        return self.store.load()

    def set_context(self, context: CampaignContext) -> None:
        self.context = context

    def set_persona_count(self, count: int) -> int:
        return self.store.set_visible_count(count)

    def summary(self) -> str:
        return generate_persona_summary(self.context.offering_context, self.store.visible_personas)

    async def generate_personas(self, count: Optional[int] = None) -> BatchReport:
        """Generate a fresh persona batch and its portraits.

        A text failure raises GenerationFailed and leaves the current personas
        untouched. Any batch still running is cancelled and its late results
        are discarded.
        """
        valid_count = clamp_persona_count(count if count is not None else self.store.persona_count)
        logger.info(f"Generating {valid_count} personas for {self.context.offering_context}")

        records = await self.text_client.generate_personas(
            PersonaTextRequest(count=valid_count, **self.context.text_request_fields())
        )
        records = records[:valid_count]
        if not records:
            raise GenerationFailed("Text generation returned no personas")

        personas = normalize_personas(records, self.context.offering_context, self.rng, taken_ids=set())

        await self.cancel_batch()
        self.store.set_visible_count(valid_count)
        epoch = self.store.replace_all(personas)
        return await self._run_batch(epoch)

    async def generate_portraits(self) -> BatchReport:
        """Fill missing portraits in the visible window; filled slots are skipped."""
        await self.cancel_batch()
        return await self._run_batch(self.store.epoch)

    async def _run_batch(self, epoch: int) -> BatchReport:
        task = asyncio.ensure_future(self.orchestrator.run(self.context.offering_context, epoch))
        self._batch_task = task
        try:
            return await asyncio.shield(task)
        except asyncio.CancelledError:
            if task.cancelled():
                logger.info(f"Batch at epoch {epoch} was superseded")
                return BatchReport(epoch=epoch, superseded=True)
            task.cancel()
            raise
        finally:
            if self._batch_task is task and task.done():
                self._batch_task = None

    async def cancel_batch(self) -> bool:
        """Cancel the running batch, if any. Returns True if one was cancelled."""
        task = self._batch_task
        if task is None or task.done():
            return False
        task.cancel()
        await asyncio.gather(task, return_exceptions=True)
        logger.info("Cancelled in-flight portrait batch")
        return True

    async def retry_portrait(self, index: int) -> Optional[SlotReport]:
        """Manually retry one slot's portrait. Manual retries are unlimited.

        Returns None if the slot is already generating.
        """
        slot = self.store.slot(index)
        if slot.persona is None:
            raise InvalidSlot(f"Slot {index} is empty")
        if slot.status == SlotStatus.GENERATING:
            logger.info(f"Slot {index} is already generating, ignoring retry")
            return None
        return await self.orchestrator.run_slot(index, self.context.offering_context)

    async def remove_persona(self, index: int) -> Optional[SlotReport]:
        return await self.regenerator.remove_and_regenerate(index, self.context)

    async def regenerate_persona(self, index: int) -> SlotReport:
        return await self.regenerator.regenerate(index, self.context)

    async def clear_all(self) -> None:
        await self.cancel_batch()
        self.store.clear_all()
