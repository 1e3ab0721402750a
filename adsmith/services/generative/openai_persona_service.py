"""
Persona text generation over the OpenAI chat completions API.
"""

import json
import logging
from typing import Any, Dict, List, Optional

import openai
from openai import AsyncOpenAI

from adsmith.infrastructure.constants.generation_constants import (
    OPENAI_PERSONA_MODEL,
    OPENAI_PERSONA_TEMPERATURE,
    TEXT_REQUEST_TIMEOUT_SECONDS,
)
from adsmith.services.generative.base import (
    PersonaTextClient,
    PersonaTextRequest,
    extract_personas,
)
from adsmith.services.generative.exceptions import GenerationFailed

logger = logging.getLogger(__name__)

SYSTEM_MESSAGE = (
    "You are a marketing expert who specializes in identifying target demographics."
)


def build_persona_prompt(request: PersonaTextRequest) -> str:
    """User prompt asking for ``request.count`` personas as a JSON object."""
    organization = request.organization_context or "Your organization"
    country = f"\nTARGET COUNTRY\n{request.country}\n" if request.country else ""
    details = request.offering_context or "No information provided"

    return f"""
ROLE: You are a world class marketing strategist.
TASK: Generate target personas for an offering.

ORGANIZATION
{organization}

OFFERING
{request.offering_description}

OFFERING DETAILS
{details}
{country}
Generate {request.count} target customer personas who would be most likely to benefit from this offering.

For each persona, provide:
1. Gender (IMPORTANT: Choose either Men or Women, do NOT use "Both")
2. Age range (ageMin and ageMax as whole numbers, ageMin not greater than ageMax)
3. Two main interests that align with the offering's value proposition
4. A short title describing the persona

Format the response as a JSON object {{"personas": [...]}} where each item has these fields:
title, gender, ageMin, ageMax, interests (as array of strings)
"""


class OpenAIPersonaService(PersonaTextClient):
    """Generates raw persona records with an OpenAI chat model."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = OPENAI_PERSONA_MODEL,
        temperature: float = OPENAI_PERSONA_TEMPERATURE,
        client: Optional[AsyncOpenAI] = None,
    ):
        self.model = model
        self.temperature = temperature
        self.client = client or AsyncOpenAI(
            api_key=api_key, timeout=TEXT_REQUEST_TIMEOUT_SECONDS
        )
        logger.info(f"Initialized OpenAI persona service with model: {self.model}")

    async def generate_personas(self, request: PersonaTextRequest) -> List[Dict[str, Any]]:
        logger.info(
            f"Generating {request.count} personas for offering: {request.offering_description}"
        )
        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": SYSTEM_MESSAGE},
                    {"role": "user", "content": build_persona_prompt(request)},
                ],
                temperature=self.temperature,
                response_format={"type": "json_object"},
            )
        except openai.OpenAIError as e:
            logger.error(f"OpenAI persona request failed: {str(e)}")
            raise GenerationFailed(f"Failed to generate personas: {str(e)}") from e

        if not response.choices or not response.choices[0].message.content:
            raise GenerationFailed("Invalid response format from OpenAI")

        result_text = response.choices[0].message.content
        logger.debug(f"Raw persona response:\n{result_text}")

        try:
            payload = json.loads(result_text)
        except json.JSONDecodeError as e:
            logger.error(f"Failed to parse persona JSON: {str(e)}")
            raise GenerationFailed(f"Persona response is not valid JSON: {str(e)}") from e

        records = extract_personas(payload)
        logger.info(f"Received {len(records)} persona records")
        return records
