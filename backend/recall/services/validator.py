"""
Schema validator / sanitizer for AI output.

The model is told to emit pure JSON, but may wrap it in prose or code fences,
so the payload is taken to be the text between the first "{" and the last "}".
That heuristic breaks when the surrounding prose itself contains braces; it is
kept because providers rarely do that and a failure here is retried once.

    flashcards: {"flashcards": [{"front", "back", "difficulty", "tags"}]}
    quiz:       {"questions":  [{"stem", "options"[4], "correctAnswer", "explanation",
                                 "difficulty", "type", "tags"}]}

Items missing a required field are dropped, never repaired. An empty result is
EmptyResultError, not an empty list.
"""
from __future__ import annotations

import json
import logging
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from recall.errors import EmptyResultError, UnsupportedContentKindError, ValidationError
from recall.models.content import ContentKind
from recall.models.flashcard import GeneratedFlashcard
from recall.models.quiz import GeneratedQuestion

logger = logging.getLogger(__name__)

ITEMS_KEY = {
    ContentKind.FLASHCARDS: "flashcards",
    ContentKind.QUIZ: "questions",
}


def extract_json(raw_text: str) -> dict[str, Any]:
    start = raw_text.find("{")
    end = raw_text.rfind("}")
    if start == -1 or end < start:
        raise ValidationError("No JSON object found in AI response")
    try:
        payload = json.loads(raw_text[start : end + 1])
    except json.JSONDecodeError as e:
        raise ValidationError(f"Malformed JSON in AI response: {e}") from e
    if not isinstance(payload, dict):
        raise ValidationError("AI response JSON is not an object")
    return payload


def _to_flashcard(item: dict[str, Any]) -> GeneratedFlashcard:
    return GeneratedFlashcard(
        front=item.get("front"),
        back=item.get("back"),
        difficulty=item.get("difficulty"),
        tags=item.get("tags"),
    )


def _to_question(item: dict[str, Any]) -> GeneratedQuestion:
    return GeneratedQuestion(
        stem=item.get("stem"),
        options=item.get("options"),
        correct_index=item.get("correctAnswer"),
        explanation=item.get("explanation"),
        difficulty=item.get("difficulty"),
        type=item.get("type"),
        tags=item.get("tags"),
    )


def validate(
    raw_text: str, kind: ContentKind | str
) -> list[GeneratedFlashcard] | list[GeneratedQuestion]:
    """Parse and sanitize raw AI text into validated items of `kind`."""
    try:
        kind = ContentKind(kind)
    except ValueError as e:
        raise UnsupportedContentKindError(f"Unknown content kind: {kind!r}") from e

    if kind is ContentKind.FLASHCARDS:
        build = _to_flashcard
    elif kind is ContentKind.QUIZ:
        build = _to_question
    else:
        raise UnsupportedContentKindError(f"Cannot validate generated {kind.value} content")

    key = ITEMS_KEY[kind]
    payload = extract_json(raw_text)
    raw_items = payload.get(key)
    if not isinstance(raw_items, list):
        raise ValidationError(f'AI response has no "{key}" array')

    items = []
    for index, raw in enumerate(raw_items):
        if not isinstance(raw, dict):
            logger.warning("Dropping %s item %d: not an object", key, index)
            continue
        try:
            items.append(build(raw))
        except PydanticValidationError as e:
            logger.warning("Dropping %s item %d: %s", key, index, e.errors()[0]["msg"])

    if not items:
        raise EmptyResultError(f"AI returned no usable {key} ({len(raw_items)} received)")

    if len(items) < len(raw_items):
        logger.info("Kept %d of %d generated %s", len(items), len(raw_items), key)
    return items
