"""SQLModel data models.

This module defines the application's database tables using SQLModel.
Users live in their own table; every other record (courses,
assignments, profiles, results) is a JSON document keyed by
collection and document id.
"""

from typing import Optional
from sqlmodel import SQLModel, Field
from sqlalchemy import Column, JSON, UniqueConstraint
from datetime import datetime, timezone


class User(SQLModel, table=True):
    """A registered user.

    Fields:
    - `email`: unique login name
    - `password_hash`: hashed password string (never store plaintext)
    """
    id: Optional[int] = Field(default=None, primary_key=True)
    email: str = Field(index=True, nullable=False, unique=True)
    password_hash: str
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class Document(SQLModel, table=True):
    """A JSON document stored under `collection`/`doc_id`."""
    __table_args__ = (UniqueConstraint("collection", "doc_id"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    collection: str = Field(index=True)
    doc_id: str = Field(index=True)
    data: dict = Field(default_factory=dict, sa_column=Column(JSON, nullable=False))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
