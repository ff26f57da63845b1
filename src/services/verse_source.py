"""HTTP client for fetching verse text from bible-api.com compatible services."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional
from urllib.parse import quote

import httpx

from src.study.references import VerseReference


LOGGER = logging.getLogger(__name__)

DEFAULT_BIBLE_API_URL = "https://bible-api.com"


@dataclass(slots=True)
class VersePassage:
    """Verse text for a resolved reference in a given translation."""

    reference: VerseReference
    text: str
    translation: str


class BibleApiClient:
    """Fetch verses by citation; returns ``None`` when the text is unavailable."""

    def __init__(
        self,
        base_url: str = DEFAULT_BIBLE_API_URL,
        timeout_seconds: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._client = client or httpx.AsyncClient(timeout=httpx.Timeout(timeout_seconds))

    async def aclose(self) -> None:
        await self._client.aclose()

    async def fetch_verse(self, reference: VerseReference, translation: str) -> Optional[VersePassage]:
        url = f"{self._base_url}/{quote(reference.citation)}"
        try:
            response = await self._client.get(url, params={"translation": translation.lower()})
        except httpx.HTTPError:
            LOGGER.warning("Verse request for %s failed.", reference.citation, exc_info=True)
            return None

        if response.status_code == 404:
            return None
        if response.status_code != 200:
            LOGGER.warning(
                "Verse request for %s returned HTTP %s.", reference.citation, response.status_code
            )
            return None

        try:
            payload = response.json()
        except ValueError:
            LOGGER.warning("Verse response for %s was not JSON.", reference.citation)
            return None

        text = payload.get("text") if isinstance(payload, dict) else None
        if not isinstance(text, str) or not text.strip():
            return None

        return VersePassage(reference=reference, text=" ".join(text.split()), translation=translation.upper())
