"""Helpers for the canonical book table and the verse text cache."""

from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from src.study.catalog import BOOKS, find_book
from src.study.references import VerseReference

from . import BibleBook, BibleVerse


LOGGER = logging.getLogger(__name__)


async def ensure_bible_books(session: AsyncSession) -> int:
    """Insert the canonical catalog when the table is empty; returns rows added."""
    existing = await session.scalar(select(func.count()).select_from(BibleBook))
    if existing:
        return 0

    for book in BOOKS:
        session.add(
            BibleBook(
                id=book.id,
                name=book.name,
                short_name=book.short_name,
                testament=book.testament,
                book_order=book.order,
                chapters=book.chapter_count,
            )
        )
    await session.flush()
    LOGGER.info("Initialized %d Bible books.", len(BOOKS))
    return len(BOOKS)


def _location_filters(book_id: int, reference: VerseReference, translation: str) -> tuple:
    end_filter = (
        BibleVerse.end_verse.is_(None)
        if reference.end_verse is None
        else BibleVerse.end_verse == reference.end_verse
    )
    return (
        BibleVerse.book_id == book_id,
        BibleVerse.chapter == reference.chapter,
        BibleVerse.verse_number == reference.verse,
        end_filter,
        BibleVerse.translation == translation,
    )


async def get_cached_verse(
    session: AsyncSession, reference: VerseReference, translation: str
) -> Optional[BibleVerse]:
    book = find_book(reference.book)
    if book is None:
        return None
    stmt = select(BibleVerse).where(*_location_filters(book.id, reference, translation.upper()))
    result = await session.execute(stmt)
    return result.scalars().first()


async def cache_verse(
    session: AsyncSession, reference: VerseReference, translation: str, text: str
) -> BibleVerse:
    """Store verse text, returning the existing row if another request cached it first."""
    existing = await get_cached_verse(session, reference, translation)
    if existing is not None:
        return existing

    verse = BibleVerse(
        book_id=reference.book_info.id,
        chapter=reference.chapter,
        verse_number=reference.verse,
        end_verse=reference.end_verse,
        translation=translation.upper(),
        text=text,
    )
    session.add(verse)
    await session.flush()
    return verse
