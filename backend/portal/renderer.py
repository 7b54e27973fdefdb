"""Question renderer.

Turns one question plus its slot state into a `QuestionView` (the input
surface a client should draw) and turns user edits on that surface into
answers of the shape the question variant expects. The renderer never
touches the session; it reports through the `on_answer_change` and
`on_submit` callbacks it was given.
"""

from typing import Any, Callable, Dict, List, Literal, Optional

from pydantic import BaseModel

from .errors import InvalidAnswer
from .questions import QUESTION_TYPES, BaseQuestion, Feedback

Widget = Literal["text", "binary", "single_select", "multi_select", "mapping"]


class AnswerEdit(BaseModel):
    """One user interaction with an input surface.

    - `text`: free text typed (`text`)
    - `choose`: binary choice picked (`value`)
    - `select`: single option picked (`option`)
    - `toggle`: option checked/unchecked (`option`, `checked`)
    - `match`: left item assigned a right value, or cleared (`left`, `right`)
    """
    kind: Literal["text", "choose", "select", "toggle", "match"]
    text: Optional[str] = None
    value: Optional[bool] = None
    option: Optional[str] = None
    checked: Optional[bool] = None
    left: Optional[str] = None
    right: Optional[str] = None


class QuestionView(BaseModel):
    type: str
    widget: Widget
    prompt: str
    options: Optional[List[str]] = None
    lefts: Optional[List[str]] = None
    rights: Optional[List[str]] = None
    value: Any = None
    disabled: bool = False
    can_submit: bool = False
    status: Optional[Literal["correct", "incorrect"]] = None
    feedback: Optional[Feedback] = None


def _edit_text(question, answer, edit):
    if edit.kind != "text":
        raise InvalidAnswer(f"{question.type} does not accept {edit.kind} edits")
    return edit.text or ""


def _edit_choose(question, answer, edit):
    if edit.kind != "choose" or edit.value is None:
        raise InvalidAnswer(f"{question.type} expects a choose edit with a value")
    return edit.value


def _edit_select(question, answer, edit):
    if edit.kind != "select":
        raise InvalidAnswer(f"{question.type} does not accept {edit.kind} edits")
    return edit.option


def _edit_toggle(question, answer, edit):
    if edit.kind != "toggle" or edit.option is None:
        raise InvalidAnswer(f"{question.type} expects a toggle edit with an option")
    selected = set(answer or ())
    checked = edit.checked if edit.checked is not None else edit.option not in selected
    if checked:
        selected.add(edit.option)
    else:
        selected.discard(edit.option)
    return frozenset(selected)


def _edit_match(question, answer, edit):
    if edit.kind != "match" or edit.left is None:
        raise InvalidAnswer(f"{question.type} expects a match edit with a left value")
    mapping = dict(answer or {})
    if edit.right:
        mapping[edit.left] = edit.right
    else:
        mapping.pop(edit.left, None)
    return mapping


def _list_value(answer, question):
    # keep option order so clients can render the selection as is
    if answer is None:
        return None
    return [o for o in question.options if o in answer]


# type tag -> (widget, edit handler)
_SURFACES: Dict[str, tuple] = {
    "free_response": ("text", _edit_text),
    "true_false": ("binary", _edit_choose),
    "multiple_choice": ("single_select", _edit_select),
    "multiple_choice_multiple": ("multi_select", _edit_toggle),
    "matching": ("mapping", _edit_match),
}
if set(_SURFACES) != set(QUESTION_TYPES):
    raise RuntimeError(f"question variants without an input surface: {set(QUESTION_TYPES) - set(_SURFACES)}")


class QuestionRenderer:
    """Input surface for a single question bound to its slot state."""

    def __init__(
        self,
        question: BaseQuestion,
        answer: Any = None,
        submitted: bool = False,
        correct: Optional[bool] = None,
        feedback: Optional[Feedback] = None,
        on_answer_change: Optional[Callable[[Any], None]] = None,
        on_submit: Optional[Callable[[], Any]] = None,
    ):
        self.question = question
        self.answer = answer
        self.submitted = submitted
        self.correct = correct
        self.feedback = feedback
        self.on_answer_change = on_answer_change
        self.on_submit = on_submit

    @classmethod
    def for_session(cls, session, index: int, on_answer_change=None, on_submit=None) -> "QuestionRenderer":
        """Bind a renderer to slot `index` of an `AssignmentSession`.

        Feedback is only attached when `index` is the session's current question.
        """
        return cls(
            session.questions[index],
            answer=session.answers[index],
            submitted=session.submitted[index],
            correct=session.correct[index],
            feedback=session.feedback if index == session.current_index else None,
            on_answer_change=on_answer_change,
            on_submit=on_submit,
        )

    @property
    def widget(self) -> str:
        return _SURFACES[self.question.type][0]

    def view(self) -> QuestionView:
        q = self.question
        view = QuestionView(
            type=q.type,
            widget=self.widget,
            prompt=q.prompt,
            disabled=self.submitted,
            can_submit=not self.submitted and q.is_complete(self.answer),
            feedback=self.feedback,
        )
        if q.type in ("multiple_choice", "multiple_choice_multiple"):
            view.options = list(q.options)
        if q.type == "matching":
            view.lefts = q.lefts
            view.rights = q.rights
        if q.type == "multiple_choice_multiple":
            view.value = _list_value(self.answer, q)
        else:
            view.value = self.answer
        if self.submitted and self.correct is not None:
            view.status = "correct" if self.correct else "incorrect"
        return view

    def edit(self, edit: AnswerEdit) -> bool:
        """Apply a user edit and report the new answer.

        Returns False when the surface is disabled.
        """
        if self.submitted:
            return False
        handler = _SURFACES[self.question.type][1]
        new_answer = handler(self.question, self.answer, edit)
        new_answer = self.question.check_answer_shape(new_answer)
        self.answer = new_answer
        if self.on_answer_change is not None:
            self.on_answer_change(new_answer)
        return True

    def submit(self):
        """Forward a submit click when the surface allows it."""
        if self.submitted or not self.question.is_complete(self.answer):
            return None
        if self.on_submit is not None:
            return self.on_submit()
        return None
