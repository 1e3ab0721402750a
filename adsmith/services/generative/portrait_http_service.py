"""
Portrait generation over an HTTP endpoint.
"""

import logging
from typing import Any, Dict, Optional

import httpx

from adsmith.infrastructure.constants.generation_constants import PORTRAIT_TIMEOUT_SECONDS
from adsmith.services.generative.base import PortraitImageClient, PortraitRequest
from adsmith.services.generative.exceptions import (
    CollaboratorUnavailable,
    MalformedResponse,
)

logger = logging.getLogger(__name__)


class HttpPortraitService(PortraitImageClient):
    """Thin wrapper around the portrait endpoint.

    Posts ``{"prompt", "resolution"}`` and returns the decoded JSON body. Reading
    the image URL out of the body is left to ``extract_portrait_url`` so every
    accepted response shape is handled in one place.
    """

    def __init__(
        self,
        endpoint_url: str,
        api_key: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = PORTRAIT_TIMEOUT_SECONDS,
    ):
        self.endpoint_url = endpoint_url
        self.api_key = api_key
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    async def generate_portrait(self, request: PortraitRequest) -> Dict[str, Any]:
        try:
            response = await self._client.post(
                self.endpoint_url,
                json={"prompt": request.prompt, "resolution": request.resolution},
                headers=self._headers(),
            )
        except httpx.HTTPError as e:
            raise CollaboratorUnavailable(f"Portrait endpoint unreachable: {str(e)}") from e

        if response.status_code >= 400:
            raise CollaboratorUnavailable(
                f"Portrait endpoint returned {response.status_code}: {response.text[:200]}"
            )

        try:
            payload = response.json()
        except ValueError as e:
            raise MalformedResponse(f"Portrait response is not JSON: {str(e)}") from e

        if not isinstance(payload, dict):
            raise MalformedResponse("Portrait response is not a JSON object")
        return payload

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
