"""
Domain models for personas, generation slots and batch reports.
"""

from .persona import (
    BatchOutcome,
    BatchReport,
    CampaignContext,
    Gender,
    GenerationSlot,
    Persona,
    PersonaRaw,
    PortraitResult,
    SlotReport,
    SlotStatus,
)

__all__ = [
    "BatchOutcome",
    "BatchReport",
    "CampaignContext",
    "Gender",
    "GenerationSlot",
    "Persona",
    "PersonaRaw",
    "PortraitResult",
    "SlotReport",
    "SlotStatus",
]
