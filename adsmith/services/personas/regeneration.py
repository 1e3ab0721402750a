"""
Single-slot regeneration: remove a persona and immediately replace it.

Workflow per slot: removed -> text regenerating -> portrait generating ->
filled. A text failure leaves the slot empty and propagates. A portrait
failure leaves the new persona in place without a portrait, open to manual
retry.
"""

import logging
import random
from typing import Optional, Set

from adsmith.domain.models.persona import CampaignContext, SlotReport, SlotStatus
from adsmith.services.generative.base import PersonaTextClient, PersonaTextRequest
from adsmith.services.generative.exceptions import (
    GenerationFailed,
    InvalidSlot,
    MalformedResponse,
    PersonaPipelineError,
)
from adsmith.services.personas.persona_store import PersonaStore
from adsmith.services.portraits.batch_orchestrator import BatchOrchestrator
from adsmith.services.processing.demographic_normalizer import normalize_persona

logger = logging.getLogger(__name__)


class PersonaRegenerator:
    """Runs the remove-and-regenerate workflow for one slot at a time."""

    def __init__(
        self,
        store: PersonaStore,
        text_client: PersonaTextClient,
        orchestrator: BatchOrchestrator,
        rng: Optional[random.Random] = None,
    ):
        self.store = store
        self.text_client = text_client
        self.orchestrator = orchestrator
        self.rng = rng if rng is not None else random.Random()

    async def remove_and_regenerate(self, index: int, context: CampaignContext) -> Optional[SlotReport]:
        """Empty ``index`` and fill it with a brand-new persona.

        Returns None (and does nothing) when the slot is already empty.
        """
        self.store.check_index(index)
        if self.store.slot(index).persona is None:
            logger.info(f"Slot {index} is already empty, nothing to remove")
            return None

        removed = self.store.clear_slot(index)
        logger.info(f"Removed persona {removed.id} from slot {index}, regenerating")
        return await self._regenerate(index, context, excluded_ids={removed.id})

    async def regenerate(self, index: int, context: CampaignContext) -> SlotReport:
        """Fill an empty slot, e.g. after a failed text regeneration."""
        self.store.check_index(index)
        if self.store.slot(index).persona is not None:
            raise InvalidSlot(f"Slot {index} is occupied; remove it first")
        return await self._regenerate(index, context, excluded_ids=set())

    async def _regenerate(
        self, index: int, context: CampaignContext, excluded_ids: Set[str]
    ) -> SlotReport:
        epoch = self.store.epoch
        self.store.mark_status(index, SlotStatus.TEXT_REGENERATING, epoch)

        try:
            records = await self.text_client.generate_personas(
                PersonaTextRequest(count=1, **context.text_request_fields())
            )
            if not records:
                raise GenerationFailed("Text generation returned no persona")
            persona = normalize_persona(
                records[0],
                index,
                context.offering_context,
                self.rng,
                taken_ids=self.store.ids() | excluded_ids,
            )
        except MalformedResponse as e:
            self._mark_text_failure(index, epoch, str(e))
            raise GenerationFailed(f"Regenerated persona for slot {index} is invalid: {str(e)}") from e
        except PersonaPipelineError as e:
            self._mark_text_failure(index, epoch, str(e))
            raise

        if not self.store.update(index, persona, epoch):
            logger.info(f"Discarding regenerated persona for slot {index}: a newer batch replaced it")
            return SlotReport(index=index, persona_id=persona.id, status=SlotStatus.PENDING, discarded=True)

        logger.info(f"Slot {index} now holds persona {persona.id}, generating portrait")
        return await self.orchestrator.run_slot(index, context.offering_context, epoch)

    def _mark_text_failure(self, index: int, epoch: int, error: str) -> None:
        logger.error(f"Text regeneration failed for slot {index}: {error}")
        if index < self.store.persona_count:
            self.store.mark_status(index, SlotStatus.REMOVED, epoch, error=error)
