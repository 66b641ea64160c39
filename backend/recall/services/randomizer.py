"""Quiz option shuffling that keeps correct_index pointing at the right text."""
from __future__ import annotations

import random
from typing import TypeVar

from recall.models.quiz import GeneratedQuestion, QuizQuestion

Q = TypeVar("Q", GeneratedQuestion, QuizQuestion)


def shuffle_options(question: Q, rng: random.Random) -> Q:
    """Return a copy of `question` with its options permuted by a Fisher-Yates pass.

    The argument is left untouched. `rng` must be supplied so callers (and tests)
    control the permutation.
    """
    pairs = [(option, idx) for idx, option in enumerate(question.options)]
    for i in range(len(pairs) - 1, 0, -1):
        j = rng.randrange(i + 1)
        pairs[i], pairs[j] = pairs[j], pairs[i]

    new_correct = next(pos for pos, (_, idx) in enumerate(pairs) if idx == question.correct_index)
    return question.model_copy(
        update={
            "options": [option for option, _ in pairs],
            "correct_index": new_correct,
        }
    )
