"""
Adapters for the persona text, portrait image and style collaborators.
"""

from .exceptions import (
    CollaboratorUnavailable,
    ExhaustedRetries,
    GenerationFailed,
    InvalidSlot,
    MalformedResponse,
    PersistenceError,
    PersonaPipelineError,
    PortraitGenerationFailed,
    StyleUnavailable,
)

__all__ = [
    "CollaboratorUnavailable",
    "ExhaustedRetries",
    "GenerationFailed",
    "InvalidSlot",
    "MalformedResponse",
    "PersistenceError",
    "PersonaPipelineError",
    "PortraitGenerationFailed",
    "StyleUnavailable",
]
