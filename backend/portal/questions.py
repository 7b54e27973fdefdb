"""Question and assignment models.

Each question variant is a pydantic model tagged by its `type` field.
The variants are joined in a discriminated union so that parsing a raw
document picks the right class, and every class implements the same
abstract protocol (answer shape, completeness, grading and the text of
the correct answer). A variant that forgets one of those methods cannot
be instantiated.

Documents store the correct answer under the camelCase key
`correctAnswer`; the Python attribute is `correct_answer`.
"""

from abc import ABC, abstractmethod
from typing import Annotated, Any, Dict, FrozenSet, List, Literal, Optional, Union, get_args

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator, model_validator

from .errors import InvalidAnswer

QuestionType = Literal[
    "free_response",
    "true_false",
    "multiple_choice",
    "multiple_choice_multiple",
    "matching",
]
QUESTION_TYPES = get_args(QuestionType)


class BaseQuestion(BaseModel, ABC):
    """Fields and answer protocol shared by every question variant."""
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    type: str
    prompt: str

    @abstractmethod
    def check_answer_shape(self, value: Any) -> Any:
        """Return `value` normalized to this variant's answer shape.

        `None` always means "no answer yet". Anything else that does not
        fit the variant raises `InvalidAnswer`.
        """

    @abstractmethod
    def is_complete(self, answer: Any) -> bool:
        """Return True when `answer` is complete enough to be submitted."""

    @abstractmethod
    def grade(self, answer: Any) -> bool:
        """Return True when `answer` matches the correct answer."""

    @abstractmethod
    def describe_correct_answer(self) -> str:
        """Human readable form of the correct answer used in feedback."""


class FreeResponseQuestion(BaseQuestion):
    type: Literal["free_response"] = "free_response"
    correct_answer: str = Field(alias="correctAnswer")

    def check_answer_shape(self, value):
        if value is None or isinstance(value, str):
            return value
        raise InvalidAnswer("free_response answers must be a string")

    def is_complete(self, answer):
        return isinstance(answer, str) and bool(answer.strip())

    def grade(self, answer):
        # only the learner's value is trimmed; the stored answer is compared as is
        return isinstance(answer, str) and answer.strip() == self.correct_answer

    def describe_correct_answer(self):
        return self.correct_answer


class TrueFalseQuestion(BaseQuestion):
    type: Literal["true_false"] = "true_false"
    correct_answer: bool = Field(alias="correctAnswer")

    def check_answer_shape(self, value):
        if value is None or isinstance(value, bool):
            return value
        raise InvalidAnswer("true_false answers must be a boolean")

    def is_complete(self, answer):
        return isinstance(answer, bool)

    def grade(self, answer):
        return isinstance(answer, bool) and answer == self.correct_answer

    def describe_correct_answer(self):
        return "True" if self.correct_answer else "False"


class MultipleChoiceQuestion(BaseQuestion):
    """Single selection among `options`."""
    type: Literal["multiple_choice"] = "multiple_choice"
    options: List[str]
    correct_answer: str = Field(alias="correctAnswer")

    @model_validator(mode="after")
    def _correct_is_an_option(self):
        if self.correct_answer not in self.options:
            raise ValueError("correctAnswer must be one of options")
        return self

    def check_answer_shape(self, value):
        if value is None:
            return None
        if not isinstance(value, str):
            raise InvalidAnswer("multiple_choice answers must be a string")
        if value not in self.options:
            raise InvalidAnswer(f"not an option: {value!r}")
        return value

    def is_complete(self, answer):
        return answer in self.options

    def grade(self, answer):
        return answer == self.correct_answer

    def describe_correct_answer(self):
        return self.correct_answer


class MultipleChoiceMultipleQuestion(BaseQuestion):
    """Any number of selections among `options`; graded as a set."""
    type: Literal["multiple_choice_multiple"] = "multiple_choice_multiple"
    options: List[str]
    correct_answer: FrozenSet[str] = Field(alias="correctAnswer")

    @model_validator(mode="after")
    def _correct_is_subset(self):
        if not self.correct_answer <= set(self.options):
            raise ValueError("correctAnswer must be a subset of options")
        return self

    def check_answer_shape(self, value):
        if value is None:
            return None
        if isinstance(value, (str, bytes)) or not isinstance(value, (list, tuple, set, frozenset)):
            raise InvalidAnswer("multiple_choice_multiple answers must be a collection of strings")
        if not all(isinstance(v, str) for v in value):
            raise InvalidAnswer("multiple_choice_multiple answers must be a collection of strings")
        selected = frozenset(value)
        unknown = selected - set(self.options)
        if unknown:
            raise InvalidAnswer(f"not options: {sorted(unknown)!r}")
        return selected

    def is_complete(self, answer):
        return bool(answer)

    def grade(self, answer):
        return answer is not None and frozenset(answer) == self.correct_answer

    def describe_correct_answer(self):
        return ", ".join(o for o in self.options if o in self.correct_answer)


class MatchingPair(BaseModel):
    model_config = ConfigDict(frozen=True)

    left: str
    right: str


class MatchingQuestion(BaseQuestion):
    """Map every `left` value to one of the `right` values."""
    type: Literal["matching"] = "matching"
    pairs: List[MatchingPair]
    correct_answer: Dict[str, str] = Field(alias="correctAnswer")

    @model_validator(mode="before")
    @classmethod
    def _default_correct_from_pairs(cls, data):
        # documents may omit correctAnswer; the pairs already spell it out
        if isinstance(data, dict) and "correctAnswer" not in data and "correct_answer" not in data:
            pairs = data.get("pairs") or []
            if not isinstance(pairs, (list, tuple)):
                return data
            mapping = {}
            for p in pairs:
                if isinstance(p, MatchingPair):
                    p = p.model_dump()
                # leave malformed pairs to field validation
                if not isinstance(p, dict) or not isinstance(p.get("left"), str) or not isinstance(p.get("right"), str):
                    return data
                mapping[p["left"]] = p["right"]
            data = dict(data)
            data["correctAnswer"] = mapping
        return data

    @field_validator("pairs")
    @classmethod
    def _unique_lefts(cls, pairs):
        lefts = [p.left for p in pairs]
        if len(set(lefts)) != len(lefts):
            raise ValueError("pairs must have unique left values")
        return pairs

    @model_validator(mode="after")
    def _correct_covers_lefts(self):
        if set(self.correct_answer) != set(self.lefts):
            raise ValueError("correctAnswer keys must match the pair left values")
        if not set(self.correct_answer.values()) <= set(self.rights):
            raise ValueError("correctAnswer values must be pair right values")
        return self

    @property
    def lefts(self) -> List[str]:
        return [p.left for p in self.pairs]

    @property
    def rights(self) -> List[str]:
        """Distinct right values in a stable order that does not leak the pairing."""
        return sorted({p.right for p in self.pairs})

    def check_answer_shape(self, value):
        if value is None:
            return None
        if not isinstance(value, dict):
            raise InvalidAnswer("matching answers must be a mapping")
        lefts = set(self.lefts)
        rights = set(self.rights)
        for k, v in value.items():
            if k not in lefts:
                raise InvalidAnswer(f"unknown left value: {k!r}")
            if not isinstance(v, str) or v not in rights:
                raise InvalidAnswer(f"unknown right value for {k!r}: {v!r}")
        return dict(value)

    def is_complete(self, answer):
        if not isinstance(answer, dict):
            return False
        return all(answer.get(left) for left in self.lefts)

    def grade(self, answer):
        return isinstance(answer, dict) and answer == self.correct_answer

    def describe_correct_answer(self):
        return ", ".join(f"{left} → {self.correct_answer[left]}" for left in self.lefts)


Question = Annotated[
    Union[
        FreeResponseQuestion,
        TrueFalseQuestion,
        MultipleChoiceQuestion,
        MultipleChoiceMultipleQuestion,
        MatchingQuestion,
    ],
    Field(discriminator="type"),
]

QUESTION_CLASSES: Dict[str, type] = {
    cls.model_fields["type"].default: cls
    for cls in (
        FreeResponseQuestion,
        TrueFalseQuestion,
        MultipleChoiceQuestion,
        MultipleChoiceMultipleQuestion,
        MatchingQuestion,
    )
}
if set(QUESTION_CLASSES) != set(QUESTION_TYPES):
    raise RuntimeError(f"question variants without a model: {set(QUESTION_TYPES) - set(QUESTION_CLASSES)}")

_question_adapter = TypeAdapter(Question)


def parse_question(data: Any) -> BaseQuestion:
    """Build the question variant named by `data['type']`.

    Raises `pydantic.ValidationError` for unknown tags or broken invariants.
    """
    return _question_adapter.validate_python(data)


class Assignment(BaseModel):
    """A titled, ordered list of questions."""
    model_config = ConfigDict(frozen=True)

    title: str
    questions: List[Question]


class Feedback(BaseModel):
    """Grading outcome shown after a submit."""
    correct: bool
    message: str
    correct_answer: Optional[str] = None


def feedback_for(question: BaseQuestion, correct: bool) -> Feedback:
    if correct:
        return Feedback(correct=True, message="Correct!")
    expected = question.describe_correct_answer()
    return Feedback(correct=False, message=f"Incorrect. Correct answer: {expected}", correct_answer=expected)
