"""Spaced-repetition scheduling for verse reviews."""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timedelta

from src.study.errors import InvalidScoreRange


GOOD = "good"
OK = "ok"
POOR = "poor"

# (good, ok, poor) intervals in days for the first two reviews.
_EARLY_INTERVALS = {
    0: (3.0, 1.0, 0.5),
    1: (7.0, 3.0, 1.0),
}


@dataclass(slots=True)
class ReviewSchedule:
    """Calculated review data for a verse after a quiz attempt."""

    next_review_at: datetime
    interval_days: int
    quality: int
    grade: str


def validate_score(quiz_score: float) -> float:
    """Return ``quiz_score`` unchanged or raise :class:`InvalidScoreRange`."""
    if isinstance(quiz_score, bool) or not isinstance(quiz_score, (int, float)):
        raise InvalidScoreRange(quiz_score)
    if math.isnan(quiz_score) or quiz_score < 0 or quiz_score > 100:
        raise InvalidScoreRange(quiz_score)
    return quiz_score


def quality_bucket(quiz_score: float) -> int:
    """Map a 0-100 score onto the 0-5 quality scale."""
    return math.floor(validate_score(quiz_score) * 5 / 100)


def grade_for_quality(quality: int) -> str:
    if quality >= 4:
        return GOOD
    if quality == 3:
        return OK
    return POOR


def review_interval_days(review_count: int, grade: str) -> float:
    """Return the raw (possibly fractional) interval for a review."""
    if review_count < 0:
        raise ValueError("review_count must not be negative.")

    if review_count in _EARLY_INTERVALS:
        good, ok, poor = _EARLY_INTERVALS[review_count]
        return {GOOD: good, OK: ok, POOR: poor}[grade]

    if grade == POOR:
        return 1.0
    base = 2 ** (review_count - 1)
    return base * 2.0 if grade == GOOD else base * 1.5


def calculate_review_schedule(
    *,
    last_review_date: datetime,
    review_count: int,
    quiz_score: float,
) -> ReviewSchedule:
    """Return the next review schedule using a simplified SM-2 algorithm."""
    quality = quality_bucket(quiz_score)
    grade = grade_for_quality(quality)
    interval_days = max(1, math.ceil(review_interval_days(review_count, grade)))

    return ReviewSchedule(
        next_review_at=last_review_date + timedelta(days=interval_days),
        interval_days=interval_days,
        quality=quality,
        grade=grade,
    )


def next_review(last_review_date: datetime, review_count: int, quiz_score: float) -> datetime:
    """Return the date a verse should next be reviewed; always after ``last_review_date``."""
    schedule = calculate_review_schedule(
        last_review_date=last_review_date,
        review_count=review_count,
        quiz_score=quiz_score,
    )
    return schedule.next_review_at
