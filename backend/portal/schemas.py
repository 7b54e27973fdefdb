"""Pydantic request/response schemas used by the API.

Schemas keep API input/output shapes stable and provide validation for
controller handlers and tests.
"""

from pydantic import BaseModel
from typing import Any, List, Optional

from .questions import Feedback
from .renderer import QuestionView


class CredentialsIn(BaseModel):
    """Payload for sign-up/sign-in endpoints."""
    email: str
    password: str


class TokenOut(BaseModel):
    """Authentication response containing an access token."""
    access_token: str
    token_type: str = "bearer"


class ProfileIn(BaseModel):
    """Partial profile update; omitted fields are left unchanged."""
    name: Optional[str] = None
    email: Optional[str] = None


class AnswerIn(BaseModel):
    """Raw answer value; its shape must fit the question variant."""
    value: Any = None


class AssignmentOut(BaseModel):
    """An assignment as shown before starting: questions without answers."""
    id: str
    title: str
    questions: List[QuestionView]


class SessionOut(BaseModel):
    """Snapshot of an assignment session."""
    session_id: str
    assignment_id: Optional[str]
    title: str
    status: str
    current_index: int
    total: int
    score: int
    progress: float
    percentage: float
    submitted: List[bool]
    question: Optional[QuestionView] = None
    feedback: Optional[Feedback] = None
