"""
Exceptions raised by the persona and portrait generation pipeline.

All of them are recoverable at slot or batch granularity.
"""

from typing import Optional


class PersonaPipelineError(Exception):
    """Base exception for the persona pipeline."""
    pass


class CollaboratorUnavailable(PersonaPipelineError):
    """A collaborator could not be reached or did not answer in time."""
    pass


class MalformedResponse(PersonaPipelineError):
    """A collaborator answered with a body of the wrong shape."""
    pass


class PortraitGenerationFailed(MalformedResponse):
    """The portrait backend reported an error or returned no image."""
    pass


class StyleUnavailable(PersonaPipelineError):
    """The style catalog returned no records."""
    pass


class GenerationFailed(PersonaPipelineError):
    """The persona text backend failed."""
    pass


class ExhaustedRetries(PersonaPipelineError):
    """Every automatic attempt for a slot failed."""

    def __init__(self, attempts: int, last_error: Optional[BaseException]):
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(f"Gave up after {attempts} attempts: {last_error}")


class InvalidSlot(PersonaPipelineError, IndexError):
    """A slot index outside the visible window, or an empty slot."""
    pass


class PersistenceError(PersonaPipelineError):
    """The persistent mirror could not be written."""
    pass
