from __future__ import annotations

import re
from typing import Annotated, Literal

from pydantic import Field, StrictInt, StrictStr, field_validator, model_validator

from recall.models.content import Difficulty
from recall.models.flashcard import Text, clean_difficulty, clean_tags
from recall.models.schedule import ScheduleState

OPTION_COUNT = 4

_LETTER_PREFIX = re.compile(r"^[A-Z]\.\s+")

Options = Annotated[list[StrictStr], Field(min_length=OPTION_COUNT, max_length=OPTION_COUNT)]


class _QuestionBody(ScheduleState):
    stem: Text
    options: Options
    correct_index: StrictInt = Field(ge=0, lt=OPTION_COUNT)
    explanation: str = ""
    difficulty: Difficulty = Difficulty.NORMAL
    type: str = ""
    tags: list[str] = Field(default_factory=list)

    @field_validator("difficulty", mode="before")
    @classmethod
    def normalize_difficulty(cls, v: object) -> Difficulty:
        return clean_difficulty(v)

    @field_validator("tags", mode="before")
    @classmethod
    def normalize_tags(cls, v: object) -> list[str]:
        return clean_tags(v)

    @field_validator("explanation", "type", mode="before")
    @classmethod
    def blank_if_missing(cls, v: object) -> str:
        return v.strip() if isinstance(v, str) else ""

    @model_validator(mode="after")
    def check_correct_index(self):
        if not 0 <= self.correct_index < len(self.options):
            raise ValueError("correct_index must point into options")
        return self

    @property
    def correct_option(self) -> str:
        return self.options[self.correct_index]


class GeneratedQuestion(_QuestionBody):
    """A validated multiple-choice question straight out of the AI pipeline."""

    kind: Literal["quiz"] = "quiz"

    @field_validator("options", mode="before")
    @classmethod
    def strip_letter_prefixes(cls, v: object) -> object:
        # "A. Paris" -> "Paris"
        if not isinstance(v, list):
            return v
        return [_LETTER_PREFIX.sub("", o, count=1) if isinstance(o, str) else o for o in v]


class QuizQuestion(_QuestionBody):
    kind: Literal["quiz"] = "quiz"
    id: str
    quiz_id: str
    position: int = 0
    created_at: str
    updated_at: str
