from __future__ import annotations

from datetime import date

from pydantic import BaseModel, Field

MIN_EASE = 1.3
INITIAL_EASE = 2.5
# Items reviewed out past this many days count as mastered
MASTERED_INTERVAL = 21


class ScheduleState(BaseModel):
    """Spaced-repetition state shared by flashcards and quiz questions.

    The whole behavioural state of an item is (interval, ease_factor); grading
    is the only transition.
    """

    interval: float = 0             # days; 0 = never reviewed, `hard` may leave a fraction
    ease_factor: float = Field(default=INITIAL_EASE, ge=MIN_EASE)
    repetitions: int = 0            # completed reviews
    due_date: date | None = None    # None = due immediately
    last_reviewed: date | None = None
