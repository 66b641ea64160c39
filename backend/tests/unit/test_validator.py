import json

import pytest

from factories import flashcards_json, questions_json
from recall.errors import EmptyResultError, UnsupportedContentKindError, ValidationError
from recall.models.content import ContentKind, Difficulty
from recall.services.validator import extract_json, validate

pytestmark = pytest.mark.unit


def test_flashcards_parse():
    cards = validate(flashcards_json(3), ContentKind.FLASHCARDS)
    assert [c.front for c in cards] == ["Question 0?", "Question 1?", "Question 2?"]
    assert cards[0].tags == ["#topic0"]
    assert all(c.interval == 0 and c.ease_factor == 2.5 for c in cards)


def test_question_with_three_options_is_dropped():
    raw = questions_json(5, option_counts=[4, 4, 3, 4, 4])
    questions = validate(raw, "quiz")
    assert len(questions) == 4
    assert all(len(q.options) == 4 for q in questions)
    assert "question 2" not in " ".join(q.stem for q in questions)


def test_correct_answer_maps_to_index():
    payload = json.loads(questions_json(1))
    payload["questions"][0]["correctAnswer"] = 3
    (question,) = validate(json.dumps(payload), ContentKind.QUIZ)
    assert question.correct_index == 3
    assert question.correct_option == "q0 option 3"


@pytest.mark.parametrize("bad", [4, -1, "1", True, 1.5, None])
def test_bad_correct_answer_drops_item(bad):
    payload = json.loads(questions_json(2))
    payload["questions"][0]["correctAnswer"] = bad
    questions = validate(json.dumps(payload), ContentKind.QUIZ)
    assert len(questions) == 1


def test_blank_or_missing_fields_drop_cards():
    payload = {
        "flashcards": [
            {"front": "   ", "back": "blank front"},
            {"back": "no front"},
            {"front": "Q", "back": 42},
            "not an object",
            {"front": "Kept?", "back": "Yes."},
        ]
    }
    cards = validate(json.dumps(payload), "flashcards")
    assert [c.front for c in cards] == ["Kept?"]


def test_unknown_difficulty_and_bad_tags_are_normalized():
    raw = flashcards_json(1, difficulty="Extreme", tags=["#ok", 3, "  ", None])
    (card,) = validate(raw, ContentKind.FLASHCARDS)
    assert card.difficulty is Difficulty.NORMAL
    assert card.tags == ["#ok"]


def test_empty_array_is_empty_result():
    with pytest.raises(EmptyResultError):
        validate('{"questions": []}', ContentKind.QUIZ)


def test_all_items_invalid_is_empty_result():
    with pytest.raises(EmptyResultError):
        validate(questions_json(2, option_counts=[2, 5]), ContentKind.QUIZ)


def test_empty_result_is_not_a_validation_error():
    assert not issubclass(EmptyResultError, ValidationError)


@pytest.mark.parametrize(
    "raw",
    [
        "Sorry, I cannot help with that.",
        '{"flashcards": [ {"front": "Q", ',
        "} backwards {",
        '{"cards": []}',
        '{"flashcards": "none"}',
    ],
)
def test_unusable_text_is_validation_error(raw):
    with pytest.raises(ValidationError):
        validate(raw, ContentKind.FLASHCARDS)


def test_prose_and_fences_around_json():
    raw = "Here you go:\n```json\n" + flashcards_json(2) + "\n```\nGood luck!"
    assert len(validate(raw, ContentKind.FLASHCARDS)) == 2


def test_extract_json_takes_outermost_braces():
    payload = extract_json('Result: {"questions": [{"stem": "x"}]} (end)')
    assert payload == {"questions": [{"stem": "x"}]}


@pytest.mark.parametrize("kind", ["mindmap", ContentKind.SUMMARY, "poem"])
def test_unsupported_kind(kind):
    with pytest.raises(UnsupportedContentKindError):
        validate(flashcards_json(1), kind)


def test_letter_prefixes_are_stripped_from_options():
    payload = json.loads(questions_json(1))
    payload["questions"][0]["options"] = ["A. Paris", "B.  Rome", "C. Oslo", "D.Bern"]
    payload["questions"][0]["correctAnswer"] = 1
    (question,) = validate(json.dumps(payload), ContentKind.QUIZ)
    # "D.Bern" has no space after the letter, so it is not a prefix
    assert question.options == ["Paris", "Rome", "Oslo", "D.Bern"]
    assert question.correct_option == "Rome"
