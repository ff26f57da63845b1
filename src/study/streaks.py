"""Consecutive-study-day streak statistics."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Iterable, List, Optional, Union


DateLike = Union[date, datetime]


@dataclass(frozen=True, slots=True)
class StreakStats:
    current: int
    longest: int


def to_study_day(value: DateLike) -> date:
    """Drop the time of day; aware timestamps are read in UTC."""
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        return value.date()
    return value


def calculate_streaks(study_dates: Iterable[DateLike], today: Optional[date] = None) -> StreakStats:
    """Return the current and longest streaks of consecutive study days.

    ``current`` is the run that starts at the most recent study day and only
    counts while that day is today or yesterday. ``longest`` is the longest
    run anywhere in the history.
    """
    days: List[date] = sorted({to_study_day(value) for value in study_dates}, reverse=True)
    if not days:
        return StreakStats(current=0, longest=0)

    if today is None:
        today = datetime.now(timezone.utc).date()

    runs: List[int] = [1]
    for newer, older in zip(days, days[1:]):
        if (newer - older).days == 1:
            runs[-1] += 1
        else:
            runs.append(1)

    current = runs[0] if (today - days[0]).days <= 1 else 0
    return StreakStats(current=current, longest=max(runs))
