from __future__ import annotations

from typing import Annotated, Literal

from pydantic import BaseModel, Field, StringConstraints, field_validator

from recall.models.content import Difficulty
from recall.models.schedule import ScheduleState

# Non-blank text once surrounding whitespace is stripped
Text = Annotated[str, StringConstraints(strict=True, strip_whitespace=True, min_length=1)]


def clean_difficulty(v: object) -> Difficulty:
    if isinstance(v, Difficulty):
        return v
    if isinstance(v, str) and v.strip().lower() in Difficulty._value2member_map_:
        return Difficulty(v.strip().lower())
    return Difficulty.NORMAL


def clean_tags(v: object) -> list[str]:
    if not isinstance(v, list):
        return []
    return [t.strip() for t in v if isinstance(t, str) and t.strip()]


class GeneratedFlashcard(ScheduleState):
    """A validated flashcard straight out of the AI pipeline, not yet persisted."""

    kind: Literal["flashcards"] = "flashcards"
    front: Text
    back: Text
    difficulty: Difficulty = Difficulty.NORMAL
    tags: list[str] = Field(default_factory=list)

    @field_validator("difficulty", mode="before")
    @classmethod
    def normalize_difficulty(cls, v: object) -> Difficulty:
        return clean_difficulty(v)

    @field_validator("tags", mode="before")
    @classmethod
    def normalize_tags(cls, v: object) -> list[str]:
        return clean_tags(v)


class Card(ScheduleState):
    kind: Literal["flashcards"] = "flashcards"
    id: str
    deck_id: str
    front: str
    back: str
    difficulty: Difficulty = Difficulty.NORMAL
    tags: list[str] = Field(default_factory=list)
    position: int = 0
    created_at: str
    updated_at: str


class CardUpdate(BaseModel):
    front: Text | None = None
    back: Text | None = None
