"""Folding completed studies into a per-user progress snapshot."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date, datetime
from typing import Dict, Iterable, Mapping, Optional, Tuple

from src.study.references import VerseReference
from src.study.scheduling import validate_score
from src.study.streaks import DateLike, calculate_streaks


@dataclass(frozen=True, slots=True)
class ProgressSnapshot:
    """Running learning statistics for one user."""

    total_studies: int = 0
    total_reviews: int = 0
    average_quiz_score: Optional[float] = None
    current_streak: int = 0
    longest_streak: int = 0
    last_study_date: Optional[datetime] = None
    verses_studied: Tuple[str, ...] = ()
    books_studied: Mapping[str, int] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class CompletedStudy:
    """A study that has just transitioned to ``completed``."""

    reference: VerseReference
    score: float
    completed_at: datetime


def apply_completed_study(
    snapshot: ProgressSnapshot,
    completed: CompletedStudy,
    study_days: Iterable[DateLike] = (),
    today: Optional[date] = None,
) -> ProgressSnapshot:
    """Return a new snapshot that accounts for ``completed``.

    ``study_days`` is the full history of completion timestamps; the new
    completion is added to it before streaks are recomputed.
    """
    score = validate_score(completed.score)

    old_count = snapshot.total_studies
    new_count = old_count + 1
    old_average = snapshot.average_quiz_score or 0.0
    new_average = (old_average * old_count + score) / new_count

    citation = completed.reference.citation
    verses = snapshot.verses_studied
    if citation not in verses:
        verses = verses + (citation,)

    books: Dict[str, int] = dict(snapshot.books_studied)
    book = completed.reference.book
    books[book] = books.get(book, 0) + 1

    history = list(study_days)
    history.append(completed.completed_at)
    streaks = calculate_streaks(history, today=today)

    return replace(
        snapshot,
        total_studies=new_count,
        average_quiz_score=new_average,
        current_streak=streaks.current,
        longest_streak=streaks.longest,
        last_study_date=completed.completed_at,
        verses_studied=verses,
        books_studied=books,
    )


def apply_review(snapshot: ProgressSnapshot) -> ProgressSnapshot:
    return replace(snapshot, total_reviews=snapshot.total_reviews + 1)


def refresh_streaks(
    snapshot: ProgressSnapshot,
    study_days: Iterable[DateLike],
    today: Optional[date] = None,
) -> ProgressSnapshot:
    """Recompute streaks so a current streak decays once a day is missed."""
    streaks = calculate_streaks(study_days, today=today)
    if (streaks.current, streaks.longest) == (snapshot.current_streak, snapshot.longest_streak):
        return snapshot
    return replace(snapshot, current_streak=streaks.current, longest_streak=streaks.longest)
