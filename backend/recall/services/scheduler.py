"""
Spaced-repetition scheduler (SM-2 inspired).

    again  interval' = 1                                   ease' = max(1.3, ease - 0.20)
    hard   interval' = max(1, interval * 1.2)              ease' = max(1.3, ease - 0.15)
    good   0 -> 1, 1 -> 3, else ceil(interval * ease)      ease' = ease
    easy   0 -> 4, 1 -> 7, else ceil(interval * ease * 1.3) ease' = ease + 0.15

ease' is rounded to 2 decimals. `hard` is deliberately not ceiled, so it can
leave a fractional interval; storage keeps it as REAL.

Pure and deterministic: `today` is injectable and nothing is read from globals.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Protocol

from recall.errors import SchedulingError
from recall.models.content import ReviewGrade
from recall.models.schedule import MIN_EASE


class HasSchedule(Protocol):
    interval: float
    ease_factor: float


@dataclass(frozen=True)
class ScheduleResult:
    interval: float
    ease_factor: float
    next_review_date: date


def _coerce_grade(grade: ReviewGrade | str) -> ReviewGrade:
    try:
        return ReviewGrade(grade)
    except ValueError as e:
        raise SchedulingError(f"Unknown review grade: {grade!r}") from e


def schedule(
    current: HasSchedule,
    grade: ReviewGrade | str,
    *,
    today: date | None = None,
    max_interval: float | None = None,
) -> ScheduleResult:
    """Compute the next (interval, ease_factor, next_review_date) for a graded item."""
    grade = _coerce_grade(grade)
    interval = current.interval
    ease = current.ease_factor

    if grade is ReviewGrade.AGAIN:
        new_interval: float = 1
        new_ease = max(MIN_EASE, ease - 0.2)
    elif grade is ReviewGrade.HARD:
        new_interval = max(1, interval * 1.2)
        new_ease = max(MIN_EASE, ease - 0.15)
    elif grade is ReviewGrade.GOOD:
        if interval == 0:
            new_interval = 1
        elif interval == 1:
            new_interval = 3
        else:
            new_interval = math.ceil(interval * ease)
        new_ease = ease
    else:
        if interval == 0:
            new_interval = 4
        elif interval == 1:
            new_interval = 7
        else:
            new_interval = math.ceil(interval * ease * 1.3)
        new_ease = ease + 0.15

    if max_interval is not None:
        new_interval = min(new_interval, max(1, max_interval))

    today = today or date.today()
    return ScheduleResult(
        interval=new_interval,
        ease_factor=round(new_ease, 2),
        next_review_date=today + timedelta(days=new_interval),
    )


def is_due(item: object, as_of: date) -> bool:
    due_date = getattr(item, "due_date", None)
    return due_date is None or due_date <= as_of
