from __future__ import annotations

from typing import Annotated

from pydantic import BaseModel, Field

from recall.models.content import ContentKind
from recall.models.flashcard import Card
from recall.models.quiz import QuizQuestion

# Tagged union over the reviewable content kinds
ReviewItem = Annotated[Card | QuizQuestion, Field(discriminator="kind")]


class Deck(BaseModel):
    id: str
    name: str
    kind: ContentKind
    description: str = ""
    item_count: int = 0
    mastered: int = 0
    last_studied: str | None = None
    created_at: str
    updated_at: str


class DeckList(BaseModel):
    items: list[Deck]
    total: int
    offset: int
    limit: int


class DeckItems(BaseModel):
    deck: Deck
    items: list[ReviewItem]
