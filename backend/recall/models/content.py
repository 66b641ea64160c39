from enum import Enum


class ContentKind(str, Enum):
    NOTE = "note"
    EXERCISE = "exercise"
    FLASHCARDS = "flashcards"
    QUIZ = "quiz"
    MINDMAP = "mindmap"
    SUMMARY = "summary"


# Kinds the generator and the review session know how to handle
GENERATABLE_KINDS = (ContentKind.FLASHCARDS, ContentKind.QUIZ)


class Difficulty(str, Enum):
    EASY = "easy"
    NORMAL = "normal"
    HARD = "hard"


class GenerationDifficulty(str, Enum):
    EASY = "easy"
    NORMAL = "normal"
    HARD = "hard"
    MIXED = "mixed"


class ReviewGrade(str, Enum):
    AGAIN = "again"
    HARD = "hard"
    GOOD = "good"
    EASY = "easy"


class Provider(str, Enum):
    GOOGLE = "google"
    PERPLEXITY = "perplexity"
    OLLAMA = "ollama"
