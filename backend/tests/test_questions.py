import pytest
from pydantic import ValidationError

from portal.errors import InvalidAnswer
from portal.questions import (
    QUESTION_CLASSES,
    QUESTION_TYPES,
    Assignment,
    FreeResponseQuestion,
    MatchingQuestion,
    MultipleChoiceMultipleQuestion,
    feedback_for,
    parse_question,
)


def test_every_type_has_a_model():
    assert set(QUESTION_CLASSES) == set(QUESTION_TYPES)


def test_parse_picks_variant_by_tag():
    q = parse_question({"type": "multiple_choice_multiple", "prompt": "p", "options": ["A", "B", "C"], "correctAnswer": ["A", "C"]})
    assert isinstance(q, MultipleChoiceMultipleQuestion)
    assert q.correct_answer == frozenset({"A", "C"})


def test_parse_accepts_snake_case_correct_answer():
    q = parse_question({"type": "free_response", "prompt": "p", "correct_answer": "12"})
    assert isinstance(q, FreeResponseQuestion)
    assert q.correct_answer == "12"


@pytest.mark.parametrize("doc", [
    {"type": "essay", "prompt": "p", "correctAnswer": "x"},
    {"type": "multiple_choice", "prompt": "p", "options": ["A", "B"], "correctAnswer": "C"},
    {"type": "multiple_choice_multiple", "prompt": "p", "options": ["A"], "correctAnswer": ["A", "Z"]},
    {"type": "matching", "prompt": "p", "pairs": [{"left": "a", "right": "1"}, {"left": "a", "right": "2"}]},
    {"type": "matching", "prompt": "p", "pairs": [{"left": "a", "right": "1"}], "correctAnswer": {"b": "1"}},
    {"type": "true_false", "prompt": "p"},
])
def test_invalid_documents_rejected(doc):
    with pytest.raises(ValidationError):
        parse_question(doc)


def test_matching_defaults_correct_answer_from_pairs():
    q = parse_question({"type": "matching", "prompt": "p", "pairs": [{"left": "Dog", "right": "Bark"}, {"left": "Cat", "right": "Meow"}]})
    assert isinstance(q, MatchingQuestion)
    assert q.correct_answer == {"Dog": "Bark", "Cat": "Meow"}
    assert q.rights == ["Bark", "Meow"]


def test_free_response_grading_trims_only_the_answer():
    q = parse_question({"type": "free_response", "prompt": "What is 30% of 40?", "correctAnswer": "12"})
    assert q.grade(" 12 ")
    assert not q.grade("12.0")
    cased = parse_question({"type": "free_response", "prompt": "p", "correctAnswer": "Paris"})
    assert not cased.grade("paris")
    padded = parse_question({"type": "free_response", "prompt": "p", "correctAnswer": " 12"})
    assert not padded.grade(" 12")


def test_true_false_needs_an_explicit_boolean():
    q = parse_question({"type": "true_false", "prompt": "p", "correctAnswer": False})
    assert not q.is_complete(None)
    assert q.is_complete(False)
    assert q.grade(False)
    assert not q.grade(True)
    with pytest.raises(InvalidAnswer):
        q.check_answer_shape(0)


def test_multiple_choice_multiple_is_set_equality():
    q = parse_question({"type": "multiple_choice_multiple", "prompt": "p", "options": ["A", "B", "C"], "correctAnswer": ["A", "C"]})
    assert q.grade(frozenset({"C", "A"}))
    assert q.grade(["C", "A"])
    assert not q.grade({"A"})
    assert not q.grade({"A", "B", "C"})
    assert not q.is_complete(frozenset())


def test_matching_requires_full_mapping():
    q = parse_question({"type": "matching", "prompt": "p", "pairs": [{"left": "Dog", "right": "Bark"}, {"left": "Cat", "right": "Meow"}]})
    assert not q.is_complete({"Dog": "Bark"})
    assert q.is_complete({"Dog": "Bark", "Cat": "Bark"})
    assert not q.grade({"Dog": "Bark", "Cat": "Bark"})
    assert q.grade({"Cat": "Meow", "Dog": "Bark"})


@pytest.mark.parametrize("doc,bad", [
    ({"type": "free_response", "prompt": "p", "correctAnswer": "x"}, 12),
    ({"type": "multiple_choice", "prompt": "p", "options": ["A", "B"], "correctAnswer": "A"}, "Z"),
    ({"type": "multiple_choice_multiple", "prompt": "p", "options": ["A", "B"], "correctAnswer": ["A"]}, "A"),
    ({"type": "matching", "prompt": "p", "pairs": [{"left": "a", "right": "1"}]}, {"zz": "1"}),
    ({"type": "matching", "prompt": "p", "pairs": [{"left": "a", "right": "1"}]}, ["a"]),
])
def test_shape_mismatch_raises(doc, bad):
    with pytest.raises(InvalidAnswer):
        parse_question(doc).check_answer_shape(bad)


def test_feedback_reveals_correct_answer():
    mcm = parse_question({"type": "multiple_choice_multiple", "prompt": "p", "options": ["A", "B", "C"], "correctAnswer": ["C", "A"]})
    fb = feedback_for(mcm, False)
    assert fb.message == "Incorrect. Correct answer: A, C"
    tf = parse_question({"type": "true_false", "prompt": "p", "correctAnswer": True})
    assert feedback_for(tf, False).correct_answer == "True"
    assert feedback_for(tf, True).message == "Correct!"


def test_assignment_parses_mixed_questions(catalog_data):
    a = Assignment.model_validate(catalog_data["assignments"]["percentages-quiz"])
    assert a.title == "Percentages Quiz"
    assert [q.type for q in a.questions] == ["free_response", "true_false", "multiple_choice"]
