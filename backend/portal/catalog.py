"""Course catalog: the course list and per-course assignment titles."""

import logging
from typing import List

from pydantic import BaseModel, Field

from .errors import FetchFailure, NotFound
from .loader import AssignmentLoader
from .store import DocumentStore

COURSES = "courses"

logger = logging.getLogger("portal.catalog")


class CourseMeta(BaseModel):
    id: str
    name: str


class AssignmentInfo(BaseModel):
    id: str
    title: str


class CourseDetail(BaseModel):
    id: str
    name: str
    assignments: List[AssignmentInfo] = Field(default_factory=list)


class CatalogService:
    """Read-only views over the `courses` collection."""
    def __init__(self, store: DocumentStore):
        self.store = store
        self.loader = AssignmentLoader(store)

    def list_courses(self) -> List[CourseMeta]:
        """List every course; a store failure yields an empty list.

        Courses without a `name` are shown under their id.
        """
        try:
            docs = self.store.list_all(COURSES)
        except Exception:
            logger.exception("failed to list courses")
            return []
        return [CourseMeta(id=d.id, name=(d.data or {}).get("name") or d.id) for d in docs]

    def get_course(self, course_id: str) -> CourseDetail:
        """Return a course with its assignment ids resolved to titles.

        Assignment documents that are missing keep their id as title.
        """
        try:
            snapshot = self.store.get(COURSES, course_id)
            if not snapshot.exists:
                raise NotFound(f"course not found: {course_id}")
            data = snapshot.data or {}
            assignments = [
                AssignmentInfo(id=asgn_id, title=self.loader.title_of(asgn_id))
                for asgn_id in data.get("assignments") or []
            ]
        except NotFound:
            raise
        except Exception as exc:
            logger.exception("failed to fetch course %s", course_id)
            raise FetchFailure(f"could not fetch course {course_id}") from exc
        return CourseDetail(id=course_id, name=data.get("name") or course_id, assignments=assignments)
