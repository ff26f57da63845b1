from __future__ import annotations

from datetime import date, datetime, timezone

import pytest

from src.study.errors import InvalidScoreRange
from src.study.progress import (
    CompletedStudy,
    ProgressSnapshot,
    apply_completed_study,
    apply_review,
    refresh_streaks,
)
from src.study.references import resolve_reference


def _completed(raw: str, score: float, day: int) -> CompletedStudy:
    return CompletedStudy(
        reference=resolve_reference(raw),
        score=score,
        completed_at=datetime(2026, 4, day, 12, 0, tzinfo=timezone.utc),
    )


def test_first_completion_initializes_snapshot() -> None:
    completed = _completed("John 3:16", 100, 1)

    snapshot = apply_completed_study(ProgressSnapshot(), completed, today=date(2026, 4, 1))

    assert snapshot.total_studies == 1
    assert snapshot.average_quiz_score == 100
    assert snapshot.verses_studied == ("John 3:16",)
    assert snapshot.books_studied == {"John": 1}
    assert snapshot.current_streak == 1
    assert snapshot.longest_streak == 1
    assert snapshot.last_study_date == completed.completed_at


def test_average_is_a_running_mean_across_completions() -> None:
    first = _completed("John 3:16", 100, 1)
    second = _completed("John 11:25", 50, 2)

    snapshot = apply_completed_study(ProgressSnapshot(), first, today=date(2026, 4, 1))
    snapshot = apply_completed_study(snapshot, second, [first.completed_at], today=date(2026, 4, 2))

    assert snapshot.total_studies == 2
    assert snapshot.average_quiz_score == pytest.approx(75.0)
    assert snapshot.verses_studied == ("John 3:16", "John 11:25")
    assert snapshot.books_studied == {"John": 2}
    assert snapshot.current_streak == 2


def test_input_snapshot_is_not_modified() -> None:
    original = ProgressSnapshot()
    apply_completed_study(original, _completed("Romans 6:23", 80, 3), today=date(2026, 4, 3))

    assert original == ProgressSnapshot()


def test_invalid_score_is_rejected() -> None:
    with pytest.raises(InvalidScoreRange):
        apply_completed_study(ProgressSnapshot(), _completed("Romans 6:23", 120, 3))


def test_reviews_are_counted_without_touching_study_totals() -> None:
    snapshot = apply_review(ProgressSnapshot(total_studies=2, average_quiz_score=60))

    assert snapshot.total_reviews == 1
    assert snapshot.total_studies == 2
    assert snapshot.average_quiz_score == 60


def test_refresh_streaks_decays_current_streak() -> None:
    snapshot = ProgressSnapshot(total_studies=2, current_streak=2, longest_streak=2)
    history = [date(2026, 4, 1), date(2026, 4, 2)]

    assert refresh_streaks(snapshot, history, today=date(2026, 4, 3)) is snapshot

    lapsed = refresh_streaks(snapshot, history, today=date(2026, 4, 5))
    assert lapsed.current_streak == 0
    assert lapsed.longest_streak == 2


def test_ten_perfect_scores_keep_a_perfect_average() -> None:
    snapshot = ProgressSnapshot()
    history: list[datetime] = []
    for day in range(1, 11):
        completed = _completed(f"Psalms {day}:1", 100, day)
        snapshot = apply_completed_study(snapshot, completed, history, today=date(2026, 4, 10))
        history.append(completed.completed_at)

    assert snapshot.total_studies == 10
    assert snapshot.average_quiz_score == pytest.approx(100.0)
    assert snapshot.books_studied == {"Psalms": 10}
    assert snapshot.current_streak == 10
    assert snapshot.longest_streak == 10
