"""
Collaborator contracts for persona text, portrait images and styles.

The pipeline depends only on these abstract classes. Concrete adapters live
beside this module and translate transport errors into the pipeline's own
exception types.
"""

import logging
import random
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

from adsmith.infrastructure.constants.generation_constants import DEFAULT_PORTRAIT_RESOLUTION
from adsmith.services.generative.exceptions import (
    GenerationFailed,
    MalformedResponse,
    PortraitGenerationFailed,
    StyleUnavailable,
)

logger = logging.getLogger(__name__)


@dataclass
class PersonaTextRequest:
    """Request for ``count`` persona records."""

    offering_description: str
    count: int
    country: Optional[str] = None
    organization_context: str = ""
    offering_context: str = ""


@dataclass
class PortraitRequest:
    """Request for one portrait image."""

    prompt: str
    resolution: str = DEFAULT_PORTRAIT_RESOLUTION


@dataclass(frozen=True)
class StyleRecord:
    """One entry of the style catalog."""

    name: str
    status: Optional[str] = None


class PersonaTextClient(ABC):
    """Text-generation collaborator."""

    @abstractmethod
    async def generate_personas(self, request: PersonaTextRequest) -> List[Dict[str, Any]]:
        """
        Generate raw persona records.

        Returns:
            Loosely typed persona dictionaries, normalized by the caller

        Raises:
            GenerationFailed: on any transport failure or malformed body
        """
        pass


class PortraitImageClient(ABC):
    """Portrait-generation collaborator."""

    @abstractmethod
    async def generate_portrait(self, request: PortraitRequest) -> Dict[str, Any]:
        """
        Request one portrait and return the decoded response body.

        Raises:
            CollaboratorUnavailable: when the backend cannot be reached
            MalformedResponse: when the body is not a JSON object
        """
        pass


class StyleCatalog(ABC):
    """Style-lookup collaborator."""

    @abstractmethod
    async def fetch_styles(self) -> List[StyleRecord]:
        """Fetch every style record."""
        pass


def extract_personas(payload: Any) -> List[Dict[str, Any]]:
    """Read the persona list from any accepted response shape.

    Accepted: ``{"personas": [...]}``, ``{"customer_personas": [...]}`` or a
    bare JSON array.
    """
    if isinstance(payload, list):
        records = payload
    elif isinstance(payload, dict):
        if payload.get("error"):
            raise GenerationFailed(f"Persona generation failed: {payload['error']}")
        records = payload.get("personas")
        if records is None:
            records = payload.get("customer_personas")
        if records is None:
            raise GenerationFailed(
                f"Response has no personas; keys were {sorted(payload.keys())}"
            )
    else:
        raise GenerationFailed(f"Unexpected response type {type(payload).__name__}")

    if not isinstance(records, list):
        raise GenerationFailed("Persona list is not an array")
    return [record for record in records if isinstance(record, dict)]


def extract_portrait_url(payload: Any) -> str:
    """Read the image URL from any accepted portrait response shape.

    Accepted: ``{"imageUrl": ...}``, ``{"image_url": ...}`` or
    ``{"data": [{"url": ...}]}``.

    Raises:
        PortraitGenerationFailed: error field present, or no URL in either shape
        MalformedResponse: body is not an object
    """
    if not isinstance(payload, dict):
        raise MalformedResponse(f"Portrait response is {type(payload).__name__}, expected an object")

    if payload.get("error") or payload.get("success") is False:
        raise PortraitGenerationFailed(str(payload.get("error") or "Portrait backend reported failure"))

    for key in ("imageUrl", "image_url"):
        value = payload.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()

    data = payload.get("data")
    if isinstance(data, list) and data and isinstance(data[0], dict):
        value = data[0].get("url")
        if isinstance(value, str) and value.strip():
            return value.strip()

    raise PortraitGenerationFailed("Portrait response contained no image URL")


def choose_style(records: Sequence[StyleRecord], rng: Optional[random.Random] = None) -> str:
    """Uniform random style name, regardless of record status."""
    names = [record.name for record in records if record.name and record.name.strip()]
    if not names:
        raise StyleUnavailable("Style catalog returned no styles")
    generator = rng if rng is not None else random.Random()
    return generator.choice(names)
