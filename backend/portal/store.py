"""Document store collaborators.

The portal reads courses and assignments, and reads/writes profiles and
results, through a small key/value document interface. Two backends
implement it:

- `SQLDocumentStore`: JSON documents in the `document` table, used by
  the running application.
- `InMemoryDocumentStore`: a dict of dicts, used by tests and by
  `STORE_BACKEND=memory` for throwaway local runs.
"""

import copy
import threading
from abc import ABC, abstractmethod
from typing import Dict, List, Optional

from pydantic import BaseModel, Field
from sqlmodel import Session

from .repositories import DocumentRepository


class DocumentSnapshot(BaseModel):
    """Result of a read: whether the document exists and its data."""
    id: str
    exists: bool
    data: Optional[dict] = Field(default=None)


class DocumentStore(ABC):
    @abstractmethod
    def get(self, collection: str, doc_id: str) -> DocumentSnapshot:
        """Read one document; a missing document yields `exists=False`."""

    @abstractmethod
    def list_all(self, collection: str) -> List[DocumentSnapshot]:
        """Return every document in `collection`."""

    @abstractmethod
    def set(self, collection: str, doc_id: str, data: dict, merge: bool = False) -> None:
        """Write a document. With `merge`, keys not in `data` are kept."""


class InMemoryDocumentStore(DocumentStore):
    """Thread-safe in-process store. Data is deep-copied on the way in and out."""

    def __init__(self, initial: Optional[Dict[str, Dict[str, dict]]] = None):
        self._collections: Dict[str, Dict[str, dict]] = copy.deepcopy(initial or {})
        self._lock = threading.Lock()

    def get(self, collection, doc_id):
        with self._lock:
            data = self._collections.get(collection, {}).get(doc_id)
            if data is None:
                return DocumentSnapshot(id=doc_id, exists=False)
            return DocumentSnapshot(id=doc_id, exists=True, data=copy.deepcopy(data))

    def list_all(self, collection):
        with self._lock:
            docs = self._collections.get(collection, {})
            return [
                DocumentSnapshot(id=doc_id, exists=True, data=copy.deepcopy(data))
                for doc_id, data in sorted(docs.items())
            ]

    def set(self, collection, doc_id, data, merge=False):
        with self._lock:
            docs = self._collections.setdefault(collection, {})
            if merge and doc_id in docs:
                docs[doc_id] = {**docs[doc_id], **copy.deepcopy(data)}
            else:
                docs[doc_id] = copy.deepcopy(data)


class SQLDocumentStore(DocumentStore):
    """Document store backed by the `document` table."""

    def __init__(self, session: Session):
        self.session = session
        self.repo = DocumentRepository(session)

    def get(self, collection, doc_id):
        doc = self.repo.get(collection, doc_id)
        if not doc:
            return DocumentSnapshot(id=doc_id, exists=False)
        return DocumentSnapshot(id=doc_id, exists=True, data=dict(doc.data))

    def list_all(self, collection):
        return [
            DocumentSnapshot(id=d.doc_id, exists=True, data=dict(d.data))
            for d in self.repo.list_collection(collection)
        ]

    def set(self, collection, doc_id, data, merge=False):
        if merge:
            existing = self.repo.get(collection, doc_id)
            if existing:
                data = {**existing.data, **data}
        self.repo.upsert(collection, doc_id, data)
