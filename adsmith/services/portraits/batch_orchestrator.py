"""
Batch portrait generation across the visible persona window.
"""

import asyncio
import logging
import random
from typing import Iterable, Optional

from adsmith.domain.models.persona import BatchReport, Persona, SlotReport, SlotStatus
from adsmith.infrastructure.constants.generation_constants import (
    PORTRAIT_MAX_CONCURRENCY,
    PORTRAIT_MAX_CONCURRENCY_LIMIT,
)
from adsmith.services.generative.exceptions import InvalidSlot
from adsmith.services.personas.persona_store import PersonaStore
from adsmith.services.portraits.portrait_generator import PortraitGenerator
from adsmith.services.processing.demographic_normalizer import ensure_race
from adsmith.utils import structured_logger

logger = logging.getLogger(__name__)


class BatchOrchestrator:
    """
    Drives portrait generation for every slot of the visible window with
    bounded concurrency.

    Slots are handed to workers left to right; completion order is not
    guaranteed. Slots that already have a portrait are counted as succeeded
    without a call. One slot failing never affects its siblings.
    """

    def __init__(
        self,
        store: PersonaStore,
        generator: PortraitGenerator,
        max_concurrency: int = PORTRAIT_MAX_CONCURRENCY,
        rng: Optional[random.Random] = None,
    ):
        self.store = store
        self.generator = generator
        self.max_concurrency = max(1, min(PORTRAIT_MAX_CONCURRENCY_LIMIT, max_concurrency))
        self.rng = rng if rng is not None else random.Random()
        self._semaphore: Optional[asyncio.Semaphore] = None
        self._semaphore_loop: Optional[asyncio.AbstractEventLoop] = None

    def _get_semaphore(self) -> asyncio.Semaphore:
        """Semaphore bound to the running loop, created on first use in that loop."""
        loop = asyncio.get_running_loop()
        if self._semaphore is None or self._semaphore_loop is not loop:
            self._semaphore = asyncio.Semaphore(self.max_concurrency)
            self._semaphore_loop = loop
        return self._semaphore

    async def run(
        self,
        offering_context: Optional[str],
        epoch: Optional[int] = None,
        indices: Optional[Iterable[int]] = None,
    ) -> BatchReport:
        """Generate missing portraits for the visible window (or ``indices`` within it)."""
        run_epoch = self.store.epoch if epoch is None else epoch
        window = range(self.store.persona_count)
        targets = [i for i in (window if indices is None else indices) if i in window]

        reports = {}
        tasks = []
        task_indices = []
        for index in targets:
            slot = self.store.slot(index)
            if slot.persona is None:
                continue
            if slot.has_portrait:
                reports[index] = SlotReport(
                    index=index,
                    persona_id=slot.persona.id,
                    status=SlotStatus.SUCCEEDED,
                    skipped=True,
                )
                continue
            tasks.append(self._run_with_semaphore(index, slot.persona, offering_context, run_epoch))
            task_indices.append(index)

        total = len(reports) + len(tasks)
        start_time = structured_logger.batch_start(run_epoch, total, self.max_concurrency)

        completed = await asyncio.gather(*tasks, return_exceptions=True)
        for index, result in zip(task_indices, completed):
            if isinstance(result, Exception):
                logger.error(f"Portrait generation failed for slot {index}: {str(result)}")
                if index < self.store.persona_count:
                    self.store.mark_status(index, SlotStatus.EXHAUSTED, run_epoch, error=str(result))
                result = SlotReport(index=index, status=SlotStatus.EXHAUSTED, error=str(result))
            reports[index] = result

        report = BatchReport(
            epoch=run_epoch,
            success_count=sum(
                1 for r in reports.values() if r.status == SlotStatus.SUCCEEDED and not r.discarded
            ),
            total=total,
            superseded=not self.store.is_current(run_epoch),
            slots=[reports[i] for i in sorted(reports)],
        )
        structured_logger.batch_end(
            run_epoch,
            start_time,
            report.outcome.value,
            report.success_count,
            report.total,
            superseded=report.superseded,
        )
        return report

    async def run_slot(
        self, index: int, offering_context: Optional[str], epoch: Optional[int] = None
    ) -> SlotReport:
        """Generate one slot's portrait regardless of an existing one."""
        slot = self.store.slot(index)
        if slot.persona is None:
            raise InvalidSlot(f"Slot {index} is empty")
        run_epoch = self.store.epoch if epoch is None else epoch
        return await self._run_with_semaphore(
            index, slot.persona, offering_context, run_epoch, replace_existing=True
        )

    async def _run_with_semaphore(
        self,
        index: int,
        persona: Persona,
        offering_context: Optional[str],
        epoch: int,
        replace_existing: bool = False,
    ) -> SlotReport:
        async with self._get_semaphore():
            return await self._run_slot(index, persona, offering_context, epoch, replace_existing)

    def _discard(self, index: int, persona: Persona, epoch: int) -> SlotReport:
        structured_logger.slot_discarded(index, epoch, self.store.epoch, persona_id=persona.id)
        return SlotReport(
            index=index,
            persona_id=persona.id,
            status=SlotStatus.PENDING,
            discarded=True,
        )

    async def _run_slot(
        self,
        index: int,
        persona: Persona,
        offering_context: Optional[str],
        epoch: int,
        replace_existing: bool = False,
    ) -> SlotReport:
        if not self.store.is_current(epoch) or index >= self.store.persona_count:
            return self._discard(index, persona, epoch)

        # The slot may have been emptied, refilled or given a portrait while queued
        current = self.store.slot(index).persona
        if current is None or current.id != persona.id:
            return self._discard(index, persona, epoch)
        if current.portrait_url and not replace_existing:
            return SlotReport(
                index=index,
                persona_id=current.id,
                status=SlotStatus.SUCCEEDED,
                skipped=True,
            )

        # Race is fixed before the first prompt so every attempt describes the same subject
        subject = ensure_race(current, self.rng)
        if subject is not current and not self.store.update(index, subject, epoch, expected_id=current.id):
            return self._discard(index, subject, epoch)
        self.store.mark_status(index, SlotStatus.GENERATING, epoch)

        result = await self.generator.generate(subject, offering_context, index)

        try:
            if result.success:
                if not self.store.attach_portrait(index, subject.id, result.url, epoch):
                    return self._discard(index, subject, epoch)
                return SlotReport(
                    index=index,
                    persona_id=subject.id,
                    status=SlotStatus.SUCCEEDED,
                    attempts=result.attempts,
                )

            current = self.store.slot(index).persona
            if not self.store.is_current(epoch) or current is None or current.id != subject.id:
                return self._discard(index, subject, epoch)
            self.store.mark_status(
                index,
                SlotStatus.EXHAUSTED,
                epoch,
                error=result.error,
                retry_count=max(0, result.attempts - 1),
            )
        except InvalidSlot:
            # The window shrank while the slot was in flight
            return self._discard(index, subject, epoch)

        return SlotReport(
            index=index,
            persona_id=subject.id,
            status=SlotStatus.EXHAUSTED,
            attempts=result.attempts,
            error=result.error,
        )
