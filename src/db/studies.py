"""Helpers for working with verse study persistence."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.study.references import VerseReference

from . import STATUS_COMPLETED, ReviewSession, VerseStudy


async def get_study_by_reference(
    session: AsyncSession, chat_id: int, citation: str
) -> Optional[VerseStudy]:
    stmt = select(VerseStudy).where(
        VerseStudy.chat_id == chat_id,
        VerseStudy.verse_reference == citation,
    )
    result = await session.execute(stmt)
    return result.scalars().first()


async def get_or_create_study(
    session: AsyncSession,
    chat_id: int,
    reference: VerseReference,
    verse_text: str,
    translation: str,
) -> tuple[VerseStudy, bool]:
    """Return the user's study for ``reference``, creating it when missing."""
    existing = await get_study_by_reference(session, chat_id, reference.citation)
    if existing is not None:
        return existing, False

    study = VerseStudy(
        chat_id=chat_id,
        verse_reference=reference.citation,
        book_name=reference.book,
        book_id=reference.book_info.id,
        chapter=reference.chapter,
        verse_number=reference.verse,
        end_verse=reference.end_verse,
        verse_text=verse_text,
        translation=translation,
        user_interpretation="",
        review_count=0,
    )
    session.add(study)
    await session.flush()
    return study, True


async def get_user_study(session: AsyncSession, chat_id: int, study_id: int) -> Optional[VerseStudy]:
    """Load a study only if it belongs to ``chat_id``."""
    study = await session.get(VerseStudy, study_id)
    if study is None or study.chat_id != chat_id:
        return None
    return study


async def list_completion_dates(session: AsyncSession, chat_id: int) -> List[datetime]:
    stmt = (
        select(VerseStudy.completed_at)
        .where(
            VerseStudy.chat_id == chat_id,
            VerseStudy.status == STATUS_COMPLETED,
            VerseStudy.completed_at.is_not(None),
        )
        .order_by(VerseStudy.completed_at.desc())
    )
    result = await session.execute(stmt)
    return [_as_utc(value) for value in result.scalars().all()]


async def list_due_studies(
    session: AsyncSession,
    chat_id: int,
    now: Optional[datetime] = None,
    limit: int = 10,
) -> List[VerseStudy]:
    """Return completed studies whose next review date has passed, oldest first."""
    if now is None:
        now = datetime.now(timezone.utc)

    stmt = (
        select(VerseStudy)
        .where(
            VerseStudy.chat_id == chat_id,
            VerseStudy.status == STATUS_COMPLETED,
            VerseStudy.next_review_date.is_not(None),
            VerseStudy.next_review_date <= now,
        )
        .order_by(VerseStudy.next_review_date, VerseStudy.id)
        .limit(limit)
    )
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def record_review_session(
    session: AsyncSession,
    study: VerseStudy,
    new_interpretation: str,
    comparison: dict,
    improvement_score: float,
    now: Optional[datetime] = None,
) -> ReviewSession:
    if now is None:
        now = datetime.now(timezone.utc)

    review = ReviewSession(
        verse_study_id=study.id,
        new_interpretation=new_interpretation,
        comparison=comparison,
        improvement_score=improvement_score,
        submitted_at=now,
    )
    session.add(review)
    await session.flush()
    return review


def _as_utc(value: datetime) -> datetime:
    # SQLite drops tzinfo on the way back.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value
