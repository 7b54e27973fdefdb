"""Assignment loading.

`AssignmentLoader.load` reads an assignment document and materializes
it into the question models. A missing document raises `NotFound`; a
store error or a document that does not parse raises `FetchFailure`.
Callers present both the same way.

`AssignmentView` wraps one load in the view lifecycle: it is `loading`
until the fetch resolves, then moves exactly once to `loaded` or
`not_found`, unless it was torn down in the meantime.
"""

import asyncio
import logging
from typing import Optional

from pydantic import ValidationError

from .errors import FetchFailure, NotFound
from .questions import Assignment
from .store import DocumentStore

ASSIGNMENTS = "assignments"

logger = logging.getLogger("portal.loader")


class AssignmentLoader:
    def __init__(self, store: DocumentStore):
        self.store = store

    def load(self, assignment_id: str) -> Assignment:
        """Fetch and parse assignment `assignment_id` (single attempt, no retry)."""
        try:
            snapshot = self.store.get(ASSIGNMENTS, assignment_id)
        except Exception as exc:
            logger.exception("assignment fetch failed: %s", assignment_id)
            raise FetchFailure(f"could not fetch assignment {assignment_id}") from exc
        if not snapshot.exists:
            raise NotFound(f"assignment not found: {assignment_id}")
        try:
            assignment = Assignment.model_validate(snapshot.data)
        except ValidationError as exc:
            logger.warning("assignment %s does not parse: %s", assignment_id, exc)
            raise FetchFailure(f"malformed assignment {assignment_id}") from exc
        if not assignment.questions:
            raise NotFound(f"assignment has no questions: {assignment_id}")
        return assignment

    def title_of(self, assignment_id: str) -> str:
        """Return the assignment title, or the id itself when there is none."""
        snapshot = self.store.get(ASSIGNMENTS, assignment_id)
        if snapshot.exists and snapshot.data and snapshot.data.get("title"):
            return snapshot.data["title"]
        return assignment_id


class AssignmentView:
    """Load state of one assignment screen."""

    LOADING = "loading"
    LOADED = "loaded"
    NOT_FOUND = "not_found"

    def __init__(self, loader: AssignmentLoader, assignment_id: str):
        self.loader = loader
        self.assignment_id = assignment_id
        self.state = self.LOADING
        self.assignment: Optional[Assignment] = None
        self._live = True

    @property
    def live(self) -> bool:
        return self._live

    async def mount(self) -> str:
        """Run the fetch off the event loop and apply its outcome if still live."""
        try:
            assignment = await asyncio.to_thread(self.loader.load, self.assignment_id)
        except (NotFound, FetchFailure):
            assignment = None
        if not self._live:
            return self.state
        if assignment is None:
            self.state = self.NOT_FOUND
        else:
            self.assignment = assignment
            self.state = self.LOADED
        return self.state

    def teardown(self) -> None:
        self._live = False
