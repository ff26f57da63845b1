"""Loading and compare-and-swap saving of per-user progress snapshots."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from src.study.errors import ConcurrentUpdateConflict
from src.study.progress import ProgressSnapshot

from . import UserProgress


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def snapshot_from_row(row: UserProgress) -> ProgressSnapshot:
    return ProgressSnapshot(
        total_studies=row.total_studies,
        total_reviews=row.total_reviews,
        average_quiz_score=row.average_quiz_score,
        current_streak=row.current_streak,
        longest_streak=row.longest_streak,
        last_study_date=_as_utc(row.last_study_date),
        verses_studied=tuple(row.verses_studied or ()),
        books_studied=dict(row.books_studied or {}),
    )


async def load_progress(session: AsyncSession, chat_id: int) -> tuple[ProgressSnapshot, int]:
    """Return the user's snapshot and the version it was read at.

    A zeroed row is created on first use; losing that insert to another
    writer is reported as a :class:`ConcurrentUpdateConflict`.
    """
    row = await session.get(UserProgress, chat_id, populate_existing=True)
    if row is None:
        row = UserProgress(
            chat_id=chat_id,
            total_studies=0,
            total_reviews=0,
            current_streak=0,
            longest_streak=0,
            verses_studied=[],
            books_studied={},
            version=0,
        )
        session.add(row)
        try:
            await session.flush()
        except IntegrityError as exc:
            raise ConcurrentUpdateConflict(chat_id) from exc
    return snapshot_from_row(row), row.version


async def save_progress(
    session: AsyncSession,
    chat_id: int,
    snapshot: ProgressSnapshot,
    expected_version: int,
) -> int:
    """Write ``snapshot`` only if nobody else saved since ``expected_version``."""
    new_version = expected_version + 1
    stmt = (
        update(UserProgress)
        .where(UserProgress.chat_id == chat_id, UserProgress.version == expected_version)
        .values(
            total_studies=snapshot.total_studies,
            total_reviews=snapshot.total_reviews,
            average_quiz_score=snapshot.average_quiz_score,
            current_streak=snapshot.current_streak,
            longest_streak=snapshot.longest_streak,
            last_study_date=snapshot.last_study_date,
            verses_studied=list(snapshot.verses_studied),
            books_studied=dict(snapshot.books_studied),
            version=new_version,
            updated_at=datetime.now(timezone.utc),
        )
        .execution_options(synchronize_session=False)
    )
    result = await session.execute(stmt)
    if result.rowcount != 1:
        raise ConcurrentUpdateConflict(chat_id)
    return new_version
