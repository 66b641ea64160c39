import asyncio
import random

import pytest

from factories import FakeAI, flashcards_json, questions_json
from recall.config import settings
from recall.db.sqlite import list_deck_items, list_decks
from recall.errors import (
    EmptyResultError,
    GenerationError,
    UnsupportedContentKindError,
    ValidationError,
)
from recall.models.content import ContentKind
from recall.models.generation import GenerateDeckRequest, GenerationRequest
from recall.services.generator import build_prompts, generate, generate_and_save

pytestmark = pytest.mark.unit

SOURCE = " ".join(f"word{i}" for i in range(500))


def flashcard_request(**kwargs):
    return GenerationRequest(kind=ContentKind.FLASHCARDS, source_text=SOURCE, count=5, **kwargs)


def test_five_hundred_words_to_five_fresh_cards():
    ai = FakeAI(flashcards_json(5))
    cards = asyncio.run(generate(flashcard_request(), ai))
    assert len(cards) == 5
    assert all(c.interval == 0 and c.ease_factor == 2.5 for c in cards)
    assert all(c.due_date is None for c in cards)
    assert len(ai.calls) == 1
    assert "Number of flashcards: 5" in ai.calls[0]["user"]
    assert "word499" in ai.calls[0]["user"]


def test_malformed_response_is_retried_once_with_same_prompt():
    ai = FakeAI("I'd be happy to help! Here are some cards.", flashcards_json(3))
    cards = asyncio.run(generate(flashcard_request(), ai))
    assert len(cards) == 3
    assert len(ai.calls) == 2
    assert ai.calls[0] == ai.calls[1]


def test_two_malformed_responses_fail_generation():
    ai = FakeAI("nope", '{"flashcards": ')
    with pytest.raises(GenerationError) as excinfo:
        asyncio.run(generate(flashcard_request(), ai))
    assert isinstance(excinfo.value.__cause__, ValidationError)
    assert len(ai.calls) == 2


def test_provider_failure_is_not_retried(provider_down):
    ai = FakeAI(provider_down)
    with pytest.raises(GenerationError, match="Service Unavailable"):
        asyncio.run(generate(flashcard_request(), ai))
    assert len(ai.calls) == 1


def test_unexpected_capability_error_becomes_generation_error():
    ai = FakeAI(RuntimeError("socket closed"))
    with pytest.raises(GenerationError):
        asyncio.run(generate(flashcard_request(), ai))


def test_empty_result_passes_through_without_retry():
    ai = FakeAI('{"flashcards": []}')
    with pytest.raises(EmptyResultError):
        asyncio.run(generate(flashcard_request(), ai))
    assert len(ai.calls) == 1


def test_timeout_is_generation_error():
    async def slow_ai(user_prompt, system_prompt, provider, model=None):
        await asyncio.sleep(5)
        return flashcards_json(1)

    with pytest.raises(GenerationError, match="timed out"):
        asyncio.run(generate(flashcard_request(), slow_ai, timeout=0.05))


def test_extra_items_are_truncated_to_count():
    cards = asyncio.run(generate(flashcard_request(), FakeAI(flashcards_json(8))))
    assert [c.front for c in cards] == [f"Question {i}?" for i in range(5)]


def test_count_is_clamped(monkeypatch):
    monkeypatch.setattr(settings, "max_generation_count", 3)
    ai = FakeAI(flashcards_json(10))
    request = GenerationRequest(source_text=SOURCE, count=40)
    cards = asyncio.run(generate(request, ai))
    assert len(cards) == 3
    assert "Number of flashcards: 3" in ai.calls[0]["user"]


def test_quiz_options_are_shuffled_keeping_the_answer():
    request = GenerationRequest(
        kind=ContentKind.QUIZ, source_text=SOURCE, count=6, topics=["Cells"]
    )
    ai = FakeAI(questions_json(6))
    questions = asyncio.run(generate(request, ai, rng=random.Random(3)))
    assert len(questions) == 6
    for i, q in enumerate(questions):
        assert q.correct_option == f"q{i} option 0"
    assert any(q.correct_index != 0 for q in questions)
    assert "Topics: Cells" in ai.calls[0]["user"]


def test_long_source_is_truncated(monkeypatch):
    monkeypatch.setattr(settings, "source_char_budget", 100)
    request = GenerationRequest(source_text="x" * 1000, count=2)
    _, user_prompt = build_prompts(request)
    assert "x" * 100 + " ... (truncated)" in user_prompt
    assert "x" * 101 not in user_prompt


def test_mixed_difficulty_is_explained():
    _, user_prompt = build_prompts(flashcard_request())
    assert "mixed (spread across easy, normal and hard)" in user_prompt


@pytest.mark.parametrize("kind", [ContentKind.MINDMAP, ContentKind.SUMMARY, ContentKind.NOTE])
def test_unsupported_kind_never_calls_ai(kind):
    ai = FakeAI(flashcards_json(1))
    request = GenerationRequest(kind=kind, source_text=SOURCE)
    with pytest.raises(UnsupportedContentKindError):
        asyncio.run(generate(request, ai))
    assert ai.calls == []


def test_generate_and_save_persists_deck(open_db):
    async def scenario():
        async with open_db() as db:
            request = GenerateDeckRequest(
                source_text=SOURCE, count=5, deck_name="Biology 101", description="ch. 3"
            )
            deck = await generate_and_save(db, request, FakeAI(flashcards_json(5)))
            items = await list_deck_items(db, deck)
            return deck, items

    deck, items = asyncio.run(scenario())
    assert deck.name == "Biology 101"
    assert deck.kind is ContentKind.FLASHCARDS
    assert deck.item_count == 5
    assert [c.position for c in items] == [0, 1, 2, 3, 4]
    assert all(c.interval == 0 and c.ease_factor == 2.5 and c.repetitions == 0 for c in items)


def test_failed_generation_saves_nothing(open_db, provider_down):
    async def scenario():
        async with open_db() as db:
            request = GenerateDeckRequest(source_text=SOURCE, deck_name="Doomed")
            with pytest.raises(GenerationError):
                await generate_and_save(db, request, FakeAI("junk", provider_down))
            return await list_decks(db)

    decks, total = asyncio.run(scenario())
    assert decks == []
    assert total == 0
