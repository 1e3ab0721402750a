"""
Pydantic models for the persona and portrait generation pipeline.
"""

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from adsmith.infrastructure.constants.generation_constants import DEFAULT_OFFERING


class Gender(str, Enum):
    """Canonical persona genders."""

    MEN = "Men"
    WOMEN = "Women"


class SlotStatus(str, Enum):
    """Lifecycle of one generation slot."""

    PENDING = "pending"
    GENERATING = "generating"
    SUCCEEDED = "succeeded"
    EXHAUSTED = "exhausted"
    REMOVED = "removed"
    TEXT_REGENERATING = "text_regenerating"


class BatchOutcome(str, Enum):
    """Aggregate result of a portrait batch."""

    ALL_SUCCEEDED = "all_succeeded"
    PARTIAL_SUCCESS = "partial_success"
    ALL_FAILED = "all_failed"


class Persona(BaseModel):
    """One synthetic audience member.

    Serialized with camelCase aliases (``ageMin``, ``portraitUrl``) so the
    stored record keeps the shape the UI reads.
    """

    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    id: str = Field(min_length=1)
    title: str
    gender: Gender
    age_min: int = Field(alias="ageMin", ge=0)
    age_max: int = Field(alias="ageMax", ge=0)
    interests: List[str] = Field(min_length=2, max_length=2)
    race: Optional[str] = None
    portrait_url: Optional[str] = Field(default=None, alias="portraitUrl")
    tagline: Optional[str] = None
    description: Optional[str] = None

    @field_validator("interests")
    @classmethod
    def _interests_not_blank(cls, value: List[str]) -> List[str]:
        cleaned = [item.strip() for item in value]
        if any(not item for item in cleaned):
            raise ValueError("interests must be non-empty strings")
        return cleaned

    @model_validator(mode="after")
    def _age_band_ordered(self) -> "Persona":
        if self.age_min > self.age_max:
            raise ValueError(f"ageMin {self.age_min} is greater than ageMax {self.age_max}")
        return self

    @property
    def age_range(self) -> str:
        return f"{self.age_min}-{self.age_max}"


class PersonaRaw(BaseModel):
    """Loosely typed persona record as returned by the text collaborator."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    id: Optional[Any] = None
    title: Optional[Any] = None
    name: Optional[Any] = None
    gender: Optional[Any] = None
    age_min: Optional[Any] = Field(default=None, alias="ageMin")
    age_max: Optional[Any] = Field(default=None, alias="ageMax")
    age: Optional[Any] = None
    interests: Optional[Any] = None
    race: Optional[Any] = None
    portrait_url: Optional[Any] = Field(default=None, alias="portraitUrl")
    tagline: Optional[Any] = None
    description: Optional[Any] = None


class GenerationSlot(BaseModel):
    """Binds a positional index to a persona and its retry bookkeeping."""

    index: int = Field(ge=0)
    persona: Optional[Persona] = None
    status: SlotStatus = SlotStatus.PENDING
    retry_count: int = 0
    last_error: Optional[str] = None

    @property
    def is_empty(self) -> bool:
        return self.persona is None

    @property
    def has_portrait(self) -> bool:
        return self.persona is not None and bool(self.persona.portrait_url)


class PortraitResult(BaseModel):
    """Outcome of one slot's attempt sequence."""

    success: bool
    url: Optional[str] = None
    error: Optional[str] = None
    attempts: int = 0

    @classmethod
    def succeeded(cls, url: str, attempts: int) -> "PortraitResult":
        return cls(success=True, url=url, attempts=attempts)

    @classmethod
    def exhausted(cls, error: str, attempts: int) -> "PortraitResult":
        return cls(success=False, error=error, attempts=attempts)


class SlotReport(BaseModel):
    """Per-slot line of a batch report."""

    index: int
    persona_id: Optional[str] = None
    status: SlotStatus
    skipped: bool = False
    discarded: bool = False
    attempts: int = 0
    error: Optional[str] = None


class BatchReport(BaseModel):
    """Run-level outcome of a portrait batch."""

    epoch: int
    success_count: int = 0
    total: int = 0
    superseded: bool = False
    slots: List[SlotReport] = Field(default_factory=list)

    @property
    def outcome(self) -> BatchOutcome:
        """Vacuously ALL_SUCCEEDED when no slot was eligible."""
        if self.success_count == self.total:
            return BatchOutcome.ALL_SUCCEEDED
        if self.success_count == 0:
            return BatchOutcome.ALL_FAILED
        return BatchOutcome.PARTIAL_SUCCESS

    @property
    def failed_indices(self) -> List[int]:
        return [
            slot.index
            for slot in self.slots
            if slot.status == SlotStatus.EXHAUSTED and not slot.discarded
        ]


class CampaignContext(BaseModel):
    """Brand and offering data collected by the intake form."""

    offering_description: str = ""
    country: Optional[str] = None
    organization_name: Optional[str] = None
    industry: Optional[str] = None
    key_selling_points: Optional[str] = None
    problem_solved: Optional[str] = None
    unique_advantages: Optional[str] = None

    @property
    def offering_context(self) -> str:
        """Short offering text used in prompts and derived interests."""
        text = (self.offering_description or "").strip()
        return text or DEFAULT_OFFERING

    @property
    def organization_context(self) -> str:
        parts = []
        if self.organization_name:
            parts.append(f"Organization: {self.organization_name}")
        if self.industry:
            parts.append(f"Industry: {self.industry}")
        return "\n".join(parts)

    @property
    def offering_details(self) -> str:
        missing = "No information provided"
        return "\n".join(
            [
                f"Key selling points: {self.key_selling_points or missing}",
                f"Problem solved: {self.problem_solved or missing}",
                f"Unique advantages: {self.unique_advantages or missing}",
            ]
        )

    def text_request_fields(self) -> Dict[str, Any]:
        """Fields shared by every persona text request for this campaign."""
        return {
            "offering_description": self.offering_context,
            "country": self.country,
            "organization_context": self.organization_context,
            "offering_context": self.offering_details,
        }
