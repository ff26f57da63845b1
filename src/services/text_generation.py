"""Text generation capability used to produce study content."""

from __future__ import annotations

import logging
from typing import List, Protocol

from openai import AsyncOpenAI


LOGGER = logging.getLogger(__name__)


class TextGenerator(Protocol):
    """Anything that turns a prompt into text."""

    async def generate(self, prompt: str) -> str:
        ...


def extract_output_text(response: object) -> str:
    """Best-effort extraction of text from an OpenAI Responses result."""
    output_text = getattr(response, "output_text", None)
    if isinstance(output_text, str) and output_text.strip():
        return output_text

    collected: List[str] = []
    for item in getattr(response, "output", None) or []:
        content = getattr(item, "content", None)
        parts = content if isinstance(content, list) else [content]
        for part in parts:
            text = getattr(part, "text", None)
            if isinstance(text, str) and text:
                collected.append(text)
    return "\n".join(collected)


class OpenAITextGenerator:
    """Generate text through the OpenAI Responses API with a fixed system prompt."""

    def __init__(self, client: AsyncOpenAI, model: str, system_prompt: str) -> None:
        self._client = client
        self._model = model
        self._system_prompt = system_prompt

    async def generate(self, prompt: str) -> str:
        response = await self._client.responses.create(
            model=self._model,
            input=[
                {"role": "system", "content": self._system_prompt},
                {"role": "user", "content": prompt},
            ],
        )
        text = extract_output_text(response)
        LOGGER.debug("Generated %d characters with %s.", len(text), self._model)
        return text
