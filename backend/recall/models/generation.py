from __future__ import annotations

from pydantic import BaseModel, Field

from recall.config import settings
from recall.models.content import ContentKind, GenerationDifficulty, Provider


class GenerationRequest(BaseModel):
    """Ephemeral input to the generator; never persisted."""

    kind: ContentKind = ContentKind.FLASHCARDS
    source_text: str = Field(min_length=1)
    count: int = Field(default=10, ge=1)
    difficulty: GenerationDifficulty = GenerationDifficulty.MIXED
    types: list[str] = Field(default_factory=list)
    topics: list[str] = Field(default_factory=list)  # quiz only
    provider: Provider = Field(default_factory=lambda: Provider(settings.default_provider))
    model: str | None = None


class GenerateDeckRequest(GenerationRequest):
    deck_name: str = Field(min_length=1)
    description: str = ""
