"""
Deck router.

Endpoints:
  GET    /decks                  list decks (optionally filtered by kind)
  GET    /decks/stats            total items, due today, per-deck breakdown
  PATCH  /decks/cards/{card_id}  edit a flashcard's front / back
  GET    /decks/{id}             single deck
  GET    /decks/{id}/items       deck with its cards or questions
  DELETE /decks/{id}             delete deck and its items
"""
from __future__ import annotations

import aiosqlite
from fastapi import APIRouter, Depends, HTTPException, Query

from recall.db.sqlite import (
    delete_deck,
    get_db,
    get_deck,
    get_review_stats,
    list_deck_items,
    list_decks,
    update_card_content,
)
from recall.models.content import ContentKind
from recall.models.deck import Deck, DeckItems, DeckList
from recall.models.flashcard import Card, CardUpdate

router = APIRouter()


@router.get("", response_model=DeckList)
async def list_all(
    kind: ContentKind | None = Query(default=None),
    offset: int = Query(default=0, ge=0),
    limit: int = Query(default=50, ge=1, le=200),
    db: aiosqlite.Connection = Depends(get_db),
) -> DeckList:
    items, total = await list_decks(db, kind=kind, offset=offset, limit=limit)
    return DeckList(items=items, total=total, offset=offset, limit=limit)


@router.get("/stats")
async def deck_stats(db: aiosqlite.Connection = Depends(get_db)) -> dict:
    """Return summary statistics: total items, due today, per-deck breakdown."""
    return await get_review_stats(db)


@router.patch("/cards/{card_id}", response_model=Card)
async def edit_card(
    card_id: str,
    body: CardUpdate,
    db: aiosqlite.Connection = Depends(get_db),
) -> Card:
    updated = await update_card_content(db, card_id, body)
    if not updated:
        raise HTTPException(status_code=404, detail="Flashcard not found")
    return updated


@router.get("/{deck_id}", response_model=Deck)
async def get_one(
    deck_id: str,
    db: aiosqlite.Connection = Depends(get_db),
) -> Deck:
    deck = await get_deck(db, deck_id)
    if not deck:
        raise HTTPException(status_code=404, detail="Deck not found")
    return deck


@router.get("/{deck_id}/items", response_model=DeckItems)
async def get_items(
    deck_id: str,
    db: aiosqlite.Connection = Depends(get_db),
) -> DeckItems:
    deck = await get_deck(db, deck_id)
    if not deck:
        raise HTTPException(status_code=404, detail="Deck not found")
    return DeckItems(deck=deck, items=await list_deck_items(db, deck))


@router.delete("/{deck_id}", status_code=204)
async def remove_deck(
    deck_id: str,
    db: aiosqlite.Connection = Depends(get_db),
) -> None:
    deleted = await delete_deck(db, deck_id)
    if not deleted:
        raise HTTPException(status_code=404, detail="Deck not found")
