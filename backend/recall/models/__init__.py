from recall.models.content import (
    ContentKind,
    Difficulty,
    GenerationDifficulty,
    Provider,
    ReviewGrade,
)
from recall.models.deck import Deck, DeckItems, DeckList, ReviewItem
from recall.models.flashcard import Card, CardUpdate, GeneratedFlashcard
from recall.models.generation import GenerateDeckRequest, GenerationRequest
from recall.models.quiz import GeneratedQuestion, QuizQuestion
from recall.models.review import (
    AttemptEvent,
    GradeRequest,
    ScheduleUpdate,
    SessionEvent,
    SessionStart,
    SessionStatus,
    SessionSummary,
    SessionView,
)
from recall.models.schedule import INITIAL_EASE, MASTERED_INTERVAL, MIN_EASE, ScheduleState

__all__ = [
    "AttemptEvent",
    "Card",
    "CardUpdate",
    "ContentKind",
    "Deck",
    "DeckItems",
    "DeckList",
    "Difficulty",
    "GenerateDeckRequest",
    "GeneratedFlashcard",
    "GeneratedQuestion",
    "GenerationDifficulty",
    "GenerationRequest",
    "GradeRequest",
    "INITIAL_EASE",
    "MASTERED_INTERVAL",
    "MIN_EASE",
    "Provider",
    "QuizQuestion",
    "ReviewGrade",
    "ReviewItem",
    "ScheduleState",
    "ScheduleUpdate",
    "SessionEvent",
    "SessionStart",
    "SessionStatus",
    "SessionSummary",
    "SessionView",
]
