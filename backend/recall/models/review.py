from __future__ import annotations

from datetime import date
from enum import Enum

from pydantic import BaseModel, Field

from recall.models.content import ContentKind, Difficulty, ReviewGrade
from recall.models.deck import ReviewItem


class SessionStatus(str, Enum):
    IDLE = "idle"
    PRESENTING = "presenting"
    GRADED = "graded"
    COMPLETE = "complete"
    CANCELLED = "cancelled"


class SessionStart(BaseModel):
    deck_id: str
    cram: bool = False  # queue every item, due or not


class GradeRequest(BaseModel):
    grade: ReviewGrade
    selected_index: int | None = Field(default=None, ge=0, lt=4)


class SessionSummary(BaseModel):
    reviewed: int
    correct: int
    remaining: int
    accuracy: float  # 0-100


class SessionView(BaseModel):
    id: str
    deck_id: str | None
    status: SessionStatus
    position: int
    total: int
    current: ReviewItem | None = None
    summary: SessionSummary


class AttemptEvent(BaseModel):
    question_id: str
    topic: str
    is_correct: bool
    difficulty: Difficulty
    deck_id: str | None = None
    grade: ReviewGrade | None = None


class SessionEvent(BaseModel):
    type: ContentKind
    duration_ms: int
    topics_covered: list[str]
    deck_id: str | None = None
    reviewed: int = 0
    correct: int = 0
    cancelled: bool = False


class ScheduleUpdate(BaseModel):
    interval: float
    ease_factor: float
    due_date: date
    repetitions: int
    last_reviewed: date
