"""Helpers for configuring the OpenAI client."""

from openai import AsyncOpenAI


def build_openai_client(api_key: str, max_retries: int = 1) -> AsyncOpenAI:
    """Create an AsyncOpenAI client; the study workflow applies its own timeout."""
    return AsyncOpenAI(api_key=api_key, max_retries=max_retries)
