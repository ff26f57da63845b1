"""Parsing and formatting of scripture citations such as ``John 3:16-18``."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Optional

from src.study.catalog import CanonicalBook, find_book
from src.study.errors import (
    ChapterOutOfRange,
    InvalidRange,
    InvalidVerse,
    MalformedReference,
    UnknownBook,
)


_REFERENCE_RE = re.compile(
    r"^(?P<book>(?:\d\s*)?[A-Za-z]+(?:\s+[A-Za-z]+)*)"
    r"\s+(?P<chapter>\d+):(?P<verse>\d+)(?:-(?P<end_verse>\d+))?$"
)


@dataclass(frozen=True, slots=True)
class VerseReference:
    """A validated citation; ``book`` always holds the canonical full name."""

    book: str
    chapter: int
    verse: int
    end_verse: Optional[int] = None
    raw: str = field(default="", compare=False)

    @property
    def citation(self) -> str:
        return format_reference(self)

    @property
    def book_info(self) -> CanonicalBook:
        book = find_book(self.book)
        if book is None:  # pragma: no cover - references are built from the catalog
            raise UnknownBook(self.book)
        return book

    @property
    def is_range(self) -> bool:
        return self.end_verse is not None


def resolve_reference(raw: str) -> VerseReference:
    """Resolve ``raw`` into a :class:`VerseReference` or raise a parse error.

    Checks run in a fixed order: syntax, book, chapter, verse, then range, so
    the first problem found is the one reported.
    """
    match = _REFERENCE_RE.match(raw.strip())
    if match is None:
        raise MalformedReference(raw)

    book_token = " ".join(match.group("book").split())
    book = find_book(book_token)
    if book is None:
        raise UnknownBook(book_token)

    chapter = int(match.group("chapter"))
    if chapter < 1 or chapter > book.chapter_count:
        raise ChapterOutOfRange(book.name, chapter, book.chapter_count)

    verse = int(match.group("verse"))
    if verse < 1:
        raise InvalidVerse(verse)

    end_verse: Optional[int] = None
    if match.group("end_verse") is not None:
        end_verse = int(match.group("end_verse"))
        if end_verse <= verse:
            raise InvalidRange(verse, end_verse)

    return VerseReference(
        book=book.name,
        chapter=chapter,
        verse=verse,
        end_verse=end_verse,
        raw=raw,
    )


def format_reference(reference: VerseReference) -> str:
    """Render ``Book Chapter:Verse`` or ``Book Chapter:Verse-EndVerse``."""
    if reference.end_verse is not None:
        return f"{reference.book} {reference.chapter}:{reference.verse}-{reference.end_verse}"
    return f"{reference.book} {reference.chapter}:{reference.verse}"
