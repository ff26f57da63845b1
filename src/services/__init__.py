"""External collaborators: text generation and verse lookup."""

from .openai_client import build_openai_client
from .text_generation import OpenAITextGenerator, TextGenerator
from .verse_source import BibleApiClient, VersePassage

__all__ = [
    "BibleApiClient",
    "OpenAITextGenerator",
    "TextGenerator",
    "VersePassage",
    "build_openai_client",
]
