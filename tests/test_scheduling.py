from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from src.study.errors import InvalidScoreRange
from src.study.scheduling import (
    GOOD,
    OK,
    POOR,
    calculate_review_schedule,
    next_review,
    quality_bucket,
    review_interval_days,
)


NOW = datetime(2026, 3, 1, 9, 30, tzinfo=timezone.utc)


@pytest.mark.parametrize(
    ("score", "quality"),
    [(0, 0), (19.9, 0), (20, 1), (59, 2), (60, 3), (79.9, 3), (80, 4), (99, 4), (100, 5)],
)
def test_quality_bucket(score: float, quality: int) -> None:
    assert quality_bucket(score) == quality


@pytest.mark.parametrize(
    ("review_count", "score", "days"),
    [
        (0, 100, 3),
        (0, 60, 1),
        (0, 40, 1),
        (1, 90, 7),
        (1, 70, 3),
        (1, 10, 1),
        (2, 100, 4),
        (2, 65, 3),
        (3, 85, 8),
        (3, 20, 1),
        (4, 80, 16),
        (4, 70, 12),
        (5, 0, 1),
    ],
)
def test_next_review_intervals(review_count: int, score: float, days: int) -> None:
    schedule = calculate_review_schedule(last_review_date=NOW, review_count=review_count, quiz_score=score)

    assert schedule.interval_days == days
    assert schedule.next_review_at == NOW + timedelta(days=days)


def test_poor_first_review_is_rounded_up_to_a_full_day() -> None:
    assert review_interval_days(0, POOR) == 0.5
    assert next_review(NOW, 0, 0) == NOW + timedelta(days=1)


def test_next_review_is_always_later() -> None:
    for review_count in range(0, 8):
        for score in (0, 25, 50, 60, 75, 80, 100):
            assert next_review(NOW, review_count, score) > NOW


def test_intervals_grow_with_successful_reviews() -> None:
    intervals = [review_interval_days(count, GOOD) for count in range(2, 8)]
    assert intervals == sorted(intervals)
    assert review_interval_days(3, OK) == 6.0


@pytest.mark.parametrize("score", [-1, 100.5, float("nan"), "90", None, True])
def test_invalid_scores_are_rejected(score: object) -> None:
    with pytest.raises(InvalidScoreRange):
        calculate_review_schedule(last_review_date=NOW, review_count=0, quiz_score=score)


def test_negative_review_count_is_rejected() -> None:
    with pytest.raises(ValueError):
        review_interval_days(-1, GOOD)
