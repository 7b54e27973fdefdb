"""Business logic services used by HTTP controllers.

This module holds small service classes that coordinate the document
store and the domain objects. Services are intentionally thin: they
perform validation, execute domain logic and persist documents via the
store.
"""

import logging
from datetime import datetime, timezone
from typing import List

from pydantic import ValidationError

from .catalog import COURSES
from .loader import ASSIGNMENTS
from .questions import Assignment
from .session import AssignmentSession
from .store import DocumentStore

RESULTS = "results"

logger = logging.getLogger("portal.services")


class ResultService:
    """Persist completed attempts and summarize them per user."""
    def __init__(self, store: DocumentStore):
        self.store = store

    def record(self, result_id: str, user_id: str, session: AssignmentSession) -> dict:
        """Store the results of a completed session under `result_id`.

        Completing the same session again after a restart overwrites the
        earlier document.
        """
        if not session.is_complete:
            raise ValueError("session is not complete")
        summary = session.results()
        doc = {
            "user_id": user_id,
            "assignment_id": session.assignment_id,
            "title": session.title,
            "score": summary["score"],
            "total": summary["total"],
            "percentage": summary["percentage"],
            "items": [{"index": it["index"], "type": it["type"], "correct": it["correct"]} for it in summary["items"]],
            "completed_at": datetime.now(timezone.utc).isoformat(),
        }
        self.store.set(RESULTS, result_id, doc)
        logger.info("recorded result %s for user %s: %s/%s", result_id, user_id, doc["score"], doc["total"])
        return doc

    def list_for_user(self, user_id: str) -> List[dict]:
        """Return the user's results, newest first."""
        docs = [
            {"id": d.id, **d.data}
            for d in self.store.list_all(RESULTS)
            if d.data and d.data.get("user_id") == user_id
        ]
        docs.sort(key=lambda r: r.get("completed_at") or "", reverse=True)
        return docs

    def dashboard(self, user_id: str, recent: int = 5) -> dict:
        """Aggregate stats for the dashboard view.

        `assignments_completed` counts distinct assignments with at least
        one stored result; `average_percentage` averages over all results.
        """
        results = self.list_for_user(user_id)
        total_courses = len(self.store.list_all(COURSES))
        completed = {r.get("assignment_id") for r in results}
        average = sum(r.get("percentage") or 0.0 for r in results) / len(results) if results else 0.0
        return {
            "total_courses": total_courses,
            "assignments_completed": len(completed),
            "attempts": len(results),
            "average_percentage": round(average, 2),
            "recent_results": results[:recent],
        }


class ImportService:
    """Import courses and assignments from a catalog payload."""
    def __init__(self, store: DocumentStore):
        self.store = store

    def import_catalog(self, data: dict, dry_run: bool = False) -> dict:
        """Validate and write `{courses: {...}, assignments: {...}}`.

        Returns a dictionary with the number of created documents and any
        validation `errors` encountered per item. Invalid items are
        skipped; valid ones are written even when others fail.
        """
        if not isinstance(data, dict):
            raise ValueError("catalog must be an object")
        created = 0
        errors = []
        for asgn_id, doc in (data.get("assignments") or {}).items():
            try:
                self._validate_assignment(doc)
            except ValueError as e:
                errors.append({"collection": ASSIGNMENTS, "id": asgn_id, "error": str(e)})
                continue
            if not dry_run:
                self.store.set(ASSIGNMENTS, asgn_id, doc)
            created += 1
        for course_id, doc in (data.get("courses") or {}).items():
            try:
                self._validate_course(doc)
            except ValueError as e:
                errors.append({"collection": COURSES, "id": course_id, "error": str(e)})
                continue
            if not dry_run:
                self.store.set(COURSES, course_id, doc)
            created += 1
        return {"created": created, "errors": errors}

    def _validate_assignment(self, doc):
        """Raise ValueError unless `doc` parses into an `Assignment` with questions."""
        if not isinstance(doc, dict):
            raise ValueError("assignment must be an object")
        try:
            assignment = Assignment.model_validate(doc)
        except ValidationError as e:
            raise ValueError(f"invalid assignment: {e.errors()[0]['msg']}")
        if not assignment.questions:
            raise ValueError("assignment has no questions")

    def _validate_course(self, doc):
        if not isinstance(doc, dict):
            raise ValueError("course must be an object")
        assignments = doc.get("assignments", [])
        if not isinstance(assignments, list) or not all(isinstance(a, str) for a in assignments):
            raise ValueError("course assignments must be a list of ids")
