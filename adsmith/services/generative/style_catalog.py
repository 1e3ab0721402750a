"""
Style-lookup collaborators.
"""

import logging
from typing import Dict, List, Optional, Sequence

import httpx

from adsmith.services.generative.base import StyleCatalog, StyleRecord
from adsmith.services.generative.exceptions import (
    CollaboratorUnavailable,
    MalformedResponse,
)

logger = logging.getLogger(__name__)

DEFAULT_STYLES = [
    "Digital Art",
    "Photorealistic",
    "Watercolor",
    "Abstract",
    "Cinematic",
    "Vintage",
    "Illustration",
    "Minimalist",
]


class StaticStyleCatalog(StyleCatalog):
    """Fixed list of styles, for local runs without a style backend."""

    def __init__(self, names: Optional[Sequence[str]] = None):
        self._records = [
            StyleRecord(name=name, status="active")
            for name in (DEFAULT_STYLES if names is None else names)
        ]

    async def fetch_styles(self) -> List[StyleRecord]:
        return list(self._records)


class HttpStyleCatalog(StyleCatalog):
    """Reads style rows (``style_name``/``style_status``) from a REST table endpoint."""

    def __init__(
        self,
        endpoint_url: str,
        api_key: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 10.0,
    ):
        self.endpoint_url = endpoint_url
        self.api_key = api_key
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)

    def _headers(self) -> Dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.api_key:
            headers["apikey"] = self.api_key
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    async def fetch_styles(self) -> List[StyleRecord]:
        try:
            response = await self._client.get(self.endpoint_url, headers=self._headers())
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise CollaboratorUnavailable(f"Style catalog unavailable: {str(e)}") from e

        try:
            rows = response.json()
        except ValueError as e:
            raise MalformedResponse(f"Style catalog response is not JSON: {str(e)}") from e
        if not isinstance(rows, list):
            raise MalformedResponse("Style catalog response is not a list")

        records = []
        for row in rows:
            if not isinstance(row, dict):
                continue
            name = row.get("style_name") or row.get("name")
            if isinstance(name, str) and name.strip():
                records.append(
                    StyleRecord(name=name.strip(), status=row.get("style_status") or row.get("status"))
                )
        logger.debug(f"Fetched {len(records)} styles")
        return records

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
