"""
Generation router.

Endpoints:
  POST /generate   generate flashcards or a quiz from source text and save it as a deck

The X-Session-Id header keys the single in-flight generation slot: a second
request with the same id cancels the first, which answers 409.
"""
from __future__ import annotations

import logging

import aiosqlite
from fastapi import APIRouter, Depends, Header, HTTPException

from recall.db.sqlite import get_db
from recall.errors import (
    EmptyResultError,
    GenerationCancelledError,
    GenerationError,
    UnsupportedContentKindError,
)
from recall.models.deck import Deck
from recall.models.generation import GenerateDeckRequest
from recall.services.generator import generate_and_save
from recall.services.llm_service import AICapability, generate_text
from recall.services.task_registry import generation_slots

logger = logging.getLogger(__name__)
router = APIRouter()


def get_ai_capability() -> AICapability:
    return generate_text


@router.post("", response_model=Deck, status_code=201)
async def generate_deck(
    body: GenerateDeckRequest,
    x_session_id: str = Header(default="default"),
    db: aiosqlite.Connection = Depends(get_db),
    ai: AICapability = Depends(get_ai_capability),
) -> Deck:
    try:
        return await generation_slots.run_exclusive(
            x_session_id, generate_and_save(db, body, ai)
        )
    except GenerationCancelledError as e:
        raise HTTPException(status_code=409, detail=str(e)) from e
    except (EmptyResultError, UnsupportedContentKindError) as e:
        raise HTTPException(status_code=422, detail=str(e)) from e
    except GenerationError as e:
        raise HTTPException(status_code=502, detail=str(e)) from e
