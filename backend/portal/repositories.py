"""Repository classes encapsulating database operations.

Each repository is small and focused on a single table. Repositories
return SQLModel objects and perform commits/refreshes where appropriate.
"""

from datetime import datetime, timezone
from typing import List, Optional
from sqlmodel import Session, select
from . import models


class UserRepository:
    """CRUD operations for `User` objects."""
    def __init__(self, session: Session):
        self.session = session

    def create(self, user: models.User) -> models.User:
        """Persist a new user and return the managed instance."""
        self.session.add(user)
        self.session.commit()
        self.session.refresh(user)
        return user

    def get_by_email(self, email: str) -> Optional[models.User]:
        """Return a `User` by email or `None` if not found."""
        stmt = select(models.User).where(models.User.email == email)
        return self.session.exec(stmt).first()

    def get(self, user_id: int) -> Optional[models.User]:
        """Get a `User` by primary key."""
        return self.session.get(models.User, user_id)


class DocumentRepository:
    """Read and write JSON documents grouped by collection."""
    def __init__(self, session: Session):
        self.session = session

    def get(self, collection: str, doc_id: str) -> Optional[models.Document]:
        stmt = select(models.Document).where(
            models.Document.collection == collection,
            models.Document.doc_id == doc_id
        )
        return self.session.exec(stmt).first()

    def list_collection(self, collection: str) -> List[models.Document]:
        """Return every document of `collection` ordered by document id."""
        stmt = select(models.Document).where(models.Document.collection == collection).order_by(models.Document.doc_id)
        return self.session.exec(stmt).all()

    def upsert(self, collection: str, doc_id: str, data: dict) -> models.Document:
        """Create the document or replace the data of an existing one."""
        existing = self.get(collection, doc_id)
        if existing:
            # assign a fresh dict so the JSON column is flagged dirty
            existing.data = dict(data)
            existing.updated_at = datetime.now(timezone.utc)
            self.session.add(existing)
            self.session.commit()
            return existing
        doc = models.Document(collection=collection, doc_id=doc_id, data=dict(data))
        self.session.add(doc)
        self.session.commit()
        self.session.refresh(doc)
        return doc
