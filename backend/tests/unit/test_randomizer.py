import random
from collections import Counter

import pytest

from factories import make_question
from recall.models.quiz import GeneratedQuestion
from recall.services.randomizer import shuffle_options

pytestmark = pytest.mark.unit


@pytest.mark.parametrize("correct_index", [0, 1, 2, 3])
def test_correct_text_survives_many_seeds(correct_index):
    question = make_question("q1", correct_index=correct_index)
    expected = question.options[correct_index]
    seen_positions = set()
    for seed in range(200):
        shuffled = shuffle_options(question, random.Random(seed))
        assert Counter(shuffled.options) == Counter(question.options)
        assert shuffled.options[shuffled.correct_index] == expected
        seen_positions.add(shuffled.correct_index)
    # every position is reachable
    assert seen_positions == {0, 1, 2, 3}


def test_identity_permutation_keeps_index():
    class NoSwap(random.Random):
        def randrange(self, stop, *args, **kwargs):
            return stop - 1

    question = make_question("q1", correct_index=3)
    shuffled = shuffle_options(question, NoSwap())
    assert shuffled.options == question.options
    assert shuffled.correct_index == 3


def test_argument_is_not_mutated():
    question = GeneratedQuestion(
        stem="Largest planet?",
        options=["Mars", "Jupiter", "Venus", "Earth"],
        correct_index=1,
    )
    before = question.model_dump()
    shuffled = shuffle_options(question, random.Random(7))
    assert question.model_dump() == before
    assert shuffled is not question
    assert isinstance(shuffled, GeneratedQuestion)
    assert shuffled.correct_option == "Jupiter"


def test_same_seed_same_permutation():
    question = make_question("q1")
    a = shuffle_options(question, random.Random(42))
    b = shuffle_options(question, random.Random(42))
    assert a.options == b.options
    assert a.correct_index == b.correct_index
