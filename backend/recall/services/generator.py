"""
Generation orchestrator: source text -> validated flashcards / quiz questions.

  1. Builds a fixed system prompt for the content kind and a user prompt with a
     bounded prefix of the source text plus the generation parameters.
  2. Calls the AI capability once, bounded by a timeout.
  3. Validates the raw text. A malformed response is retried exactly once with
     the same prompt; a second malformed response is a GenerationError.

Provider failures and timeouts fail immediately (no retry, no backoff): a
person is waiting on the result. EmptyResultError is passed through untouched.
"""
from __future__ import annotations

import asyncio
import logging
import random

import aiosqlite
from tenacity import before_sleep_log, retry, retry_if_exception_type, stop_after_attempt

from recall.config import settings
from recall.db.sqlite import save_generated_deck
from recall.errors import GenerationError, UnsupportedContentKindError, ValidationError
from recall.models.content import GENERATABLE_KINDS, ContentKind, GenerationDifficulty
from recall.models.deck import Deck
from recall.models.flashcard import GeneratedFlashcard
from recall.models.generation import GenerateDeckRequest, GenerationRequest
from recall.models.quiz import GeneratedQuestion
from recall.services.llm_service import AICapability, LLMUnavailableError, generate_text
from recall.services.randomizer import shuffle_options
from recall.services.validator import validate

logger = logging.getLogger(__name__)

VALIDATION_ATTEMPTS = 2

FLASHCARD_SYSTEM_PROMPT = (
    "You are an expert at writing study flashcards for spaced repetition. "
    "Generate high-quality flashcards based only on the provided content.\n"
    "STRICT RULES:\n"
    "1. Questions are clear (1-2 sentences); answers are structured but concise.\n"
    "2. Respond ONLY with valid JSON in exactly this structure:\n"
    '{"flashcards": [{"front": "Question?", "back": "Answer.", '
    '"difficulty": "easy|normal|hard", "tags": ["#tag1", "#tag2"]}]}\n'
    "3. No commentary, no markdown, only the JSON object."
)

QUIZ_SYSTEM_PROMPT = (
    "You are an expert at writing multiple-choice questions. "
    "Generate high-quality questions based only on the provided content.\n"
    "STRICT RULES:\n"
    "1. STEM: clear, unambiguous, 1-3 sentences, no double negatives, exactly one correct answer.\n"
    "2. OPTIONS: exactly 4 options; 1 correct answer and 3 plausible distractors. "
    '"correctAnswer" is the INDEX (0, 1, 2 or 3) of the correct option.\n'
    "3. EXPLANATION: why the correct answer is right and why the distractors are wrong, 2-3 sentences.\n"
    "4. Respond ONLY with valid JSON in exactly this structure:\n"
    '{"questions": [{"stem": "Question text?", '
    '"options": ["Option A", "Option B", "Option C", "Option D"], '
    '"correctAnswer": 0, "explanation": "...", "difficulty": "easy|normal|hard", '
    '"type": "concept|fact|application|calculation", "tags": ["#tag1"]}]}\n'
    "5. No commentary, no markdown, only the JSON object."
)

SYSTEM_PROMPTS = {
    ContentKind.FLASHCARDS: FLASHCARD_SYSTEM_PROMPT,
    ContentKind.QUIZ: QUIZ_SYSTEM_PROMPT,
}


def _user_prompt(request: GenerationRequest, count: int, char_budget: int) -> str:
    source = request.source_text[:char_budget]
    if len(request.source_text) > char_budget:
        source += " ... (truncated)"

    noun = "flashcards" if request.kind is ContentKind.FLASHCARDS else "questions"
    difficulty = request.difficulty.value
    if request.difficulty is GenerationDifficulty.MIXED:
        difficulty = "mixed (spread across easy, normal and hard)"

    lines = [
        "SOURCE CONTENT:",
        source,
        "",
        "PARAMETERS:",
        f"Number of {noun}: {count}",
        f"Target difficulty: {difficulty}",
        f"Types: {', '.join(request.types) or 'any'}",
    ]
    if request.kind is ContentKind.QUIZ:
        lines.append(f"Topics: {', '.join(request.topics) or 'all relevant topics'}")
    lines += ["", "Generate the JSON now."]
    return "\n".join(lines)


def build_prompts(request: GenerationRequest, count: int | None = None) -> tuple[str, str]:
    """Return (system_prompt, user_prompt) for a generation request."""
    if request.kind not in GENERATABLE_KINDS:
        raise UnsupportedContentKindError(f"Cannot generate {request.kind.value} content")
    return (
        SYSTEM_PROMPTS[request.kind],
        _user_prompt(request, count or request.count, settings.source_char_budget),
    )


async def _call_ai(
    ai: AICapability,
    request: GenerationRequest,
    system_prompt: str,
    user_prompt: str,
    timeout: float,
) -> str:
    try:
        return await asyncio.wait_for(
            ai(user_prompt, system_prompt, request.provider.value, request.model),
            timeout,
        )
    except asyncio.TimeoutError as e:
        logger.error("%s generation timed out after %.1fs", request.provider.value, timeout)
        raise GenerationError(f"AI provider timed out after {timeout}s") from e
    except LLMUnavailableError as e:
        logger.error("%s generation failed: %s", request.provider.value, e)
        raise GenerationError(str(e)) from e
    except Exception as e:
        logger.exception("AI capability raised unexpectedly")
        raise GenerationError(f"AI provider failed: {e}") from e


@retry(
    stop=stop_after_attempt(VALIDATION_ATTEMPTS),
    retry=retry_if_exception_type(ValidationError),
    before_sleep=before_sleep_log(logger, logging.WARNING),
    reraise=True,
)
async def _generate_validated(
    ai: AICapability,
    request: GenerationRequest,
    system_prompt: str,
    user_prompt: str,
    timeout: float,
) -> list[GeneratedFlashcard] | list[GeneratedQuestion]:
    raw = await _call_ai(ai, request, system_prompt, user_prompt, timeout)
    return validate(raw, request.kind)


async def generate(
    request: GenerationRequest,
    ai: AICapability = generate_text,
    *,
    timeout: float | None = None,
    rng: random.Random | None = None,
) -> list[GeneratedFlashcard] | list[GeneratedQuestion]:
    """Generate validated items for `request` using the AI capability `ai`.

    Quiz questions come back with their options shuffled once by `rng`.
    Raises GenerationError or EmptyResultError; never returns an empty list.
    """
    count = min(request.count, settings.max_generation_count)
    if count < request.count:
        logger.info("Clamping requested count %d to %d", request.count, count)
    system_prompt, user_prompt = build_prompts(request, count)
    timeout = settings.generation_timeout if timeout is None else timeout

    try:
        items = await _generate_validated(ai, request, system_prompt, user_prompt, timeout)
    except ValidationError as e:
        logger.error("AI response malformed on %d attempts: %s", VALIDATION_ATTEMPTS, e)
        raise GenerationError(f"AI returned malformed content twice: {e}") from e

    if len(items) > count:
        items = items[:count]

    if request.kind is ContentKind.QUIZ:
        rng = rng or random.Random()
        items = [shuffle_options(q, rng) for q in items]

    logger.info(
        "Generated %d %s via %s", len(items), request.kind.value, request.provider.value
    )
    return items


async def generate_and_save(
    db: aiosqlite.Connection,
    request: GenerateDeckRequest,
    ai: AICapability = generate_text,
    *,
    timeout: float | None = None,
    rng: random.Random | None = None,
) -> Deck:
    """Generate items and store them as a new deck. Nothing is written on failure."""
    items = await generate(request, ai, timeout=timeout, rng=rng)
    return await save_generated_deck(
        db, request.deck_name, request.kind, items, description=request.description
    )
