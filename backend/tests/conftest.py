import json
import os
import tempfile
from pathlib import Path

import pytest

# Point the app at a throwaway database before any `portal` module is imported.
_DB_DIR = Path(tempfile.mkdtemp(prefix="portal-tests-"))
os.environ["DATABASE_URL"] = f"sqlite:///{_DB_DIR / 'test.db'}"
os.environ["STORE_BACKEND"] = "sql"
os.environ["JWT_SECRET"] = "portal-test-jwt-secret-0123456789abcdef"
os.environ["SIGNIN_RATE_LIMIT_PER_MIN"] = "1000"

from sqlmodel import Session  # noqa: E402

from portal.database import create_db_and_tables, make_engine  # noqa: E402
from portal.store import InMemoryDocumentStore  # noqa: E402

SAMPLE_CATALOG = Path(__file__).resolve().parents[1] / "data" / "sample_catalog.json"


@pytest.fixture
def catalog_data():
    return json.loads(SAMPLE_CATALOG.read_text(encoding="utf-8"))


@pytest.fixture
def memory_store(catalog_data):
    """In-memory document store seeded with the sample catalog."""
    return InMemoryDocumentStore({
        "courses": catalog_data["courses"],
        "assignments": catalog_data["assignments"],
    })


@pytest.fixture
def db_session():
    """Session on a private in-memory SQLite database."""
    engine = make_engine("sqlite://")
    create_db_and_tables(bind=engine)
    with Session(engine) as session:
        yield session
