"""In-progress assignment attempt.

`AssignmentSession` owns the learner's draft answers, which questions
have been submitted (locked and graded), the running score, the current
position and the feedback currently on display. Every mutation is a
plain synchronous method; callers that share a session across threads
serialize access themselves (see `portal.utils.session_store`).
"""

from enum import Enum
from typing import Any, List, Optional

from .questions import Assignment, BaseQuestion, Feedback, feedback_for


class SessionStatus(str, Enum):
    IN_PROGRESS = "in_progress"
    COMPLETE = "complete"


class SlotStatus(str, Enum):
    UNANSWERED = "unanswered"
    ANSWERED = "answered"
    SUBMITTED = "submitted"


class AssignmentSession:
    """Mutable state of one learner working through one assignment."""

    def __init__(self, assignment: Assignment, assignment_id: Optional[str] = None):
        self.assignment = assignment
        self.assignment_id = assignment_id
        self.questions: List[BaseQuestion] = list(assignment.questions)
        self.restart()

    @property
    def title(self) -> str:
        return self.assignment.title

    def __len__(self) -> int:
        return len(self.questions)

    def _in_range(self, index: int) -> bool:
        return 0 <= index < len(self.questions)

    def restart(self) -> None:
        """Reset to a fresh attempt: no answers, nothing submitted, score 0."""
        n = len(self.questions)
        self.current_index = 0
        self.answers: List[Any] = [None] * n
        self.submitted: List[bool] = [False] * n
        self.correct: List[Optional[bool]] = [None] * n
        self.score = 0
        self.feedback: Optional[Feedback] = None

    @property
    def current_question(self) -> Optional[BaseQuestion]:
        if not self.questions:
            return None
        return self.questions[self.current_index]

    def set_answer(self, index: int, value: Any) -> bool:
        """Replace the draft answer at `index`.

        Returns False without touching anything when `index` is out of
        range or the question was already submitted. A value whose shape
        does not fit the question raises `InvalidAnswer` and leaves the
        session unchanged.
        """
        if not self._in_range(index) or self.submitted[index]:
            return False
        normalized = self.questions[index].check_answer_shape(value)
        self.answers[index] = normalized
        self.feedback = None
        return True

    def is_answer_valid(self, index: int) -> bool:
        if not self._in_range(index):
            return False
        return self.questions[index].is_complete(self.answers[index])

    def slot_status(self, index: int) -> SlotStatus:
        if self.submitted[index]:
            return SlotStatus.SUBMITTED
        if self.answers[index] is None:
            return SlotStatus.UNANSWERED
        return SlotStatus.ANSWERED

    def submit(self, index: int) -> Optional[Feedback]:
        """Lock and grade the answer at `index`.

        Submitting twice, submitting out of range, or submitting an
        incomplete answer does nothing and returns None.
        """
        if not self._in_range(index) or self.submitted[index]:
            return None
        if not self.is_answer_valid(index):
            return None
        question = self.questions[index]
        is_correct = question.grade(self.answers[index])
        self.submitted[index] = True
        self.correct[index] = is_correct
        if is_correct:
            self.score += 1
        self.feedback = feedback_for(question, is_correct)
        return self.feedback

    def go_next(self) -> SessionStatus:
        """Advance one question; at the last question only completion can change."""
        if self.current_index < len(self.questions) - 1:
            self.current_index += 1
        self.feedback = None
        return self.status

    def go_previous(self) -> SessionStatus:
        if self.current_index > 0:
            self.current_index -= 1
        self.feedback = None
        return self.status

    def go_to(self, index: int) -> bool:
        if not self._in_range(index):
            return False
        self.current_index = index
        self.feedback = None
        return True

    @property
    def is_complete(self) -> bool:
        return bool(self.questions) and all(self.submitted)

    @property
    def status(self) -> SessionStatus:
        return SessionStatus.COMPLETE if self.is_complete else SessionStatus.IN_PROGRESS

    def progress(self) -> float:
        """Fraction of questions already submitted."""
        if not self.questions:
            return 0.0
        return sum(self.submitted) / len(self.questions)

    def percentage(self) -> float:
        if not self.questions:
            return 0.0
        return self.score / len(self.questions) * 100

    def recompute_score(self) -> int:
        """Score rebuilt from scratch by regrading every submitted answer."""
        return sum(
            1
            for q, answer, done in zip(self.questions, self.answers, self.submitted)
            if done and q.grade(answer)
        )

    def results(self) -> dict:
        """Summary of the attempt, suitable for storing or returning as JSON."""
        return {
            "title": self.title,
            "assignment_id": self.assignment_id,
            "status": self.status.value,
            "score": self.score,
            "total": len(self.questions),
            "percentage": self.percentage(),
            "items": [
                {"index": i, "type": q.type, "submitted": self.submitted[i], "correct": self.correct[i]}
                for i, q in enumerate(self.questions)
            ],
        }
