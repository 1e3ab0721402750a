"""
Authoritative persona state.

The store owns a fixed array of positional slots and a visible window
(``persona_count``). Removing a persona nulls its slot instead of compacting
the array. Every mutation that changes persona content is written through to
the persistent mirror.

Writes coming from asynchronous work carry the epoch they were started under.
``replace_all`` and ``clear_all`` advance the epoch, so completions from a
superseded batch are rejected instead of overwriting newer personas.
"""

import logging
from typing import List, Optional, Set

from adsmith.domain.models.persona import GenerationSlot, Persona, SlotStatus
from adsmith.infrastructure.constants.generation_constants import (
    DEFAULT_MIRROR_NAMESPACE,
    DEFAULT_PERSONA_COUNT,
    MAX_PERSONA_COUNT,
    MIN_PERSONA_COUNT,
)
from adsmith.infrastructure.persistence.persona_mirror import MirrorRecord, PersonaMirror
from adsmith.services.generative.exceptions import InvalidSlot, PersistenceError

logger = logging.getLogger(__name__)


def clamp_persona_count(count: Optional[int]) -> int:
    if count is None:
        return DEFAULT_PERSONA_COUNT
    return max(MIN_PERSONA_COUNT, min(MAX_PERSONA_COUNT, int(count)))


class PersonaStore:
    """Ordered persona slots plus the visible window."""

    def __init__(
        self,
        mirror: PersonaMirror,
        namespace: str = DEFAULT_MIRROR_NAMESPACE,
        persona_count: int = DEFAULT_PERSONA_COUNT,
    ):
        self.mirror = mirror
        self.namespace = namespace
        self._persona_count = clamp_persona_count(persona_count)
        self._slots = [GenerationSlot(index=i) for i in range(MAX_PERSONA_COUNT)]
        self._epoch = 0
        self._loaded = False

    @property
    def epoch(self) -> int:
        return self._epoch

    @property
    def persona_count(self) -> int:
        return self._persona_count

    @property
    def personas(self) -> List[Optional[Persona]]:
        """Every slot's persona, hidden slots included."""
        return [slot.persona for slot in self._slots]

    @property
    def visible_personas(self) -> List[Optional[Persona]]:
        return self.personas[: self._persona_count]

    @property
    def slots(self) -> List[GenerationSlot]:
        """Copies of the visible slots."""
        return [slot.model_copy() for slot in self._slots[: self._persona_count]]

    def slot(self, index: int) -> GenerationSlot:
        self.check_index(index)
        return self._slots[index].model_copy()

    def ids(self) -> Set[str]:
        return {slot.persona.id for slot in self._slots if slot.persona is not None}

    def check_index(self, index: int) -> None:
        """Raise InvalidSlot unless ``index`` is inside the visible window."""
        if not isinstance(index, int) or index < 0 or index >= self._persona_count:
            raise InvalidSlot(
                f"Slot {index} is outside the visible window of {self._persona_count}"
            )

    def is_current(self, epoch: Optional[int]) -> bool:
        return epoch is None or epoch == self._epoch

    def load(self) -> bool:
        """Restore state from the mirror once. Returns True if anything was restored."""
        if self._loaded:
            return False
        self._loaded = True

        record = self.mirror.load(self.namespace)
        self._persona_count = clamp_persona_count(record.persona_count)
        restored = 0
        for index, slot in enumerate(self._slots):
            persona = record.personas[index] if index < len(record.personas) else None
            if persona is not None and not persona.portrait_url and index in record.portraits:
                persona = persona.model_copy(update={"portrait_url": record.portraits[index]})
            slot.persona = persona
            slot.retry_count = 0
            slot.last_error = None
            slot.status = SlotStatus.SUCCEEDED if slot.has_portrait else SlotStatus.PENDING
            if persona is not None:
                restored += 1

        if len(record.personas) > MAX_PERSONA_COUNT:
            logger.warning(
                f"Stored record holds {len(record.personas)} personas, keeping the first {MAX_PERSONA_COUNT}"
            )
        logger.info(f"Restored {restored} personas from mirror '{self.namespace}'")
        return restored > 0

    def to_record(self) -> MirrorRecord:
        return MirrorRecord(
            persona_count=self._persona_count,
            personas=self.personas,
            portraits={
                slot.index: slot.persona.portrait_url
                for slot in self._slots
                if slot.has_portrait
            },
        )

    def _persist(self) -> None:
        # The in-memory state stays authoritative when the mirror cannot be written
        try:
            self.mirror.save(self.namespace, self.to_record())
        except PersistenceError as e:
            logger.error(f"Failed to persist personas to '{self.namespace}': {str(e)}")

    def replace_all(self, personas: List[Persona]) -> int:
        """Install a fresh persona list and return the new epoch."""
        if len(personas) > MAX_PERSONA_COUNT:
            logger.warning(
                f"Received {len(personas)} personas, keeping the first {MAX_PERSONA_COUNT}"
            )
        self._epoch += 1
        for index, slot in enumerate(self._slots):
            slot.persona = personas[index] if index < len(personas) else None
            slot.status = SlotStatus.PENDING
            slot.retry_count = 0
            slot.last_error = None
        self._persist()
        logger.info(f"Installed {min(len(personas), MAX_PERSONA_COUNT)} personas at epoch {self._epoch}")
        return self._epoch

    def update(
        self,
        index: int,
        persona: Persona,
        epoch: Optional[int] = None,
        expected_id: Optional[str] = None,
    ) -> bool:
        """Replace one slot's persona.

        Returns False when ``epoch`` is stale, or when ``expected_id`` is given
        and the slot no longer holds a persona with that id. A persona that
        already carries a race keeps it: an update for the same id never
        changes the race.
        """
        self.check_index(index)
        if not self.is_current(epoch):
            return False

        current = self._slots[index].persona
        if expected_id is not None and (current is None or current.id != expected_id):
            return False
        if current is not None and current.id == persona.id and current.race and persona.race != current.race:
            persona = persona.model_copy(update={"race": current.race})

        self._slots[index].persona = persona
        self._persist()
        return True

    def attach_portrait(self, index: int, persona_id: str, url: str, epoch: Optional[int] = None) -> bool:
        """Record a portrait URL if the slot still holds ``persona_id`` under ``epoch``."""
        self.check_index(index)
        slot = self._slots[index]
        if not self.is_current(epoch) or slot.persona is None or slot.persona.id != persona_id:
            return False

        slot.persona = slot.persona.model_copy(update={"portrait_url": url})
        slot.status = SlotStatus.SUCCEEDED
        slot.last_error = None
        self._persist()
        return True

    def mark_status(
        self,
        index: int,
        status: SlotStatus,
        epoch: Optional[int] = None,
        error: Optional[str] = None,
        retry_count: Optional[int] = None,
    ) -> bool:
        """Update transient slot bookkeeping. Not persisted."""
        self.check_index(index)
        if not self.is_current(epoch):
            return False
        slot = self._slots[index]
        slot.status = status
        slot.last_error = error
        if retry_count is not None:
            slot.retry_count = retry_count
        return True

    def clear_slot(self, index: int) -> Optional[Persona]:
        """Empty one slot in place and return the persona it held."""
        self.check_index(index)
        slot = self._slots[index]
        removed = slot.persona
        slot.persona = None
        slot.status = SlotStatus.REMOVED
        slot.retry_count = 0
        slot.last_error = None
        self._persist()
        return removed

    def set_visible_count(self, count: int) -> int:
        """Change the window. Hidden slots keep their personas."""
        self._persona_count = clamp_persona_count(count)
        self._persist()
        return self._persona_count

    def clear_all(self) -> None:
        """Drop every persona and the stored record."""
        self._epoch += 1
        for slot in self._slots:
            slot.persona = None
            slot.status = SlotStatus.PENDING
            slot.retry_count = 0
            slot.last_error = None
        try:
            self.mirror.clear(self.namespace)
        except PersistenceError as e:
            logger.error(f"Failed to clear persona mirror '{self.namespace}': {str(e)}")
