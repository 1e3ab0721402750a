"""
Retry-aware portrait generation for a single persona slot.
"""

import logging
import random
from typing import Optional

from pydantic import AnyHttpUrl, TypeAdapter, ValidationError

from adsmith.domain.models.persona import Persona, PortraitResult
from adsmith.infrastructure.constants.generation_constants import DEFAULT_PORTRAIT_RESOLUTION
from adsmith.services.generative.base import (
    PortraitImageClient,
    PortraitRequest,
    StyleCatalog,
    choose_style,
    extract_portrait_url,
)
from adsmith.services.generative.exceptions import (
    ExhaustedRetries,
    MalformedResponse,
    PersonaPipelineError,
)
from adsmith.services.portraits.retry import RetryConfig, SleepFunc, retry_async
from adsmith.services.processing.prompt_builder import build_portrait_prompt
from adsmith.utils import structured_logger

logger = logging.getLogger(__name__)

_HTTP_URL = TypeAdapter(AnyHttpUrl)


def validate_portrait_url(url: Optional[str]) -> str:
    """Return ``url`` unchanged if it is an absolute http(s) URL."""
    if not url or not url.strip():
        raise MalformedResponse("Portrait URL is empty")
    try:
        _HTTP_URL.validate_python(url.strip())
    except ValidationError as e:
        raise MalformedResponse(f"Portrait URL is not a valid absolute URL: {url!r}") from e
    return url.strip()


class PortraitGenerator:
    """Produces one portrait URL for one persona, or a terminal failure.

    The prompt (style and tagline included) is built once per call and reused
    for every attempt. Each attempt is bounded by ``retry_config.attempt_timeout``
    and a timeout is retried like any other collaborator error.
    """

    def __init__(
        self,
        image_client: PortraitImageClient,
        style_catalog: StyleCatalog,
        retry_config: Optional[RetryConfig] = None,
        sleep: Optional[SleepFunc] = None,
        rng: Optional[random.Random] = None,
        resolution: str = DEFAULT_PORTRAIT_RESOLUTION,
    ):
        self.image_client = image_client
        self.style_catalog = style_catalog
        self.retry_config = retry_config or RetryConfig()
        self.sleep = sleep
        self.rng = rng if rng is not None else random.Random()
        self.resolution = resolution

    async def build_prompt(self, persona: Persona, offering_context: Optional[str]) -> str:
        styles = await self.style_catalog.fetch_styles()
        style = choose_style(styles, self.rng)
        return build_portrait_prompt(persona, offering_context, style, rng=self.rng)

    async def generate(
        self,
        persona: Persona,
        offering_context: Optional[str],
        index: Optional[int] = None,
    ) -> PortraitResult:
        slot = index if index is not None else -1
        try:
            prompt = await self.build_prompt(persona, offering_context)
        except PersonaPipelineError as e:
            # No attempt can be made without a prompt
            structured_logger.slot_exhausted(slot, 0, error=str(e), persona_id=persona.id)
            return PortraitResult.exhausted(str(e), attempts=0)

        request = PortraitRequest(prompt=prompt, resolution=self.resolution)
        failures = []

        async def request_portrait() -> str:
            payload = await self.image_client.generate_portrait(request)
            return validate_portrait_url(extract_portrait_url(payload))

        def record_failure(attempt: int, error: Exception) -> None:
            failures.append(error)
            structured_logger.slot_attempt_failed(
                slot,
                attempt,
                self.retry_config.max_attempts,
                error=str(error),
                persona_id=persona.id,
            )

        try:
            url = await retry_async(
                request_portrait,
                config=self.retry_config,
                sleep=self.sleep,
                on_failure=record_failure,
            )
        except ExhaustedRetries as e:
            structured_logger.slot_exhausted(
                slot, e.attempts, error=str(e.last_error), persona_id=persona.id
            )
            return PortraitResult.exhausted(str(e.last_error), attempts=e.attempts)

        logger.info(f"Portrait ready for persona {persona.id} after {len(failures) + 1} attempt(s)")
        return PortraitResult.succeeded(url, attempts=len(failures) + 1)
