import uuid

import pytest
from fastapi.testclient import TestClient

from portal.auth import get_store
from portal.main import app

client = TestClient(app)


@pytest.fixture
def store(memory_store):
    """Serve the sample catalog from memory for the duration of a test."""
    app.dependency_overrides[get_store] = lambda: memory_store
    yield memory_store
    app.dependency_overrides.pop(get_store, None)


def signup(email=None, password="pass1234"):
    email = email or f"user-{uuid.uuid4().hex[:8]}@example.com"
    r = client.post("/auth/signup", json={"email": email, "password": password})
    assert r.status_code == 200, r.text
    return {"Authorization": f"Bearer {r.json()['access_token']}"}


def test_health_and_request_id():
    r = client.get("/health")
    assert r.status_code == 200
    assert "X-Request-ID" in r.headers


def test_signup_signin_and_errors_pass_through():
    email = f"flow-{uuid.uuid4().hex[:8]}@example.com"
    signup(email)
    again = client.post("/auth/signup", json={"email": email, "password": "pass1234"})
    assert again.status_code == 400
    assert again.json()["detail"] == "Email already in use."
    bad = client.post("/auth/signin", json={"email": email, "password": "nope"})
    assert bad.status_code == 401
    assert bad.json()["detail"] == "Invalid email or password."
    ok = client.post("/auth/signin", json={"email": email, "password": "pass1234"})
    assert ok.status_code == 200
    assert "access_token" in ok.json()


def test_guarded_routes_reject_missing_and_revoked_tokens():
    assert client.get("/profile").status_code == 401
    assert client.get("/dashboard", headers={"Authorization": "Bearer invalid.token.here"}).status_code == 401
    headers = signup()
    assert client.get("/profile", headers=headers).status_code == 200
    assert client.post("/auth/signout", headers=headers).status_code == 204
    assert client.get("/profile", headers=headers).status_code == 401


def test_profile_default_and_merge_update():
    headers = signup("mira@example.com")
    me = client.get("/auth/me", headers=headers).json()
    assert me["profile"] == {"name": "mira", "email": "mira@example.com"}
    r = client.patch("/profile", json={"name": "Mira K"}, headers=headers)
    assert r.status_code == 200
    assert r.json() == {"name": "Mira K", "email": "mira@example.com"}


def test_courses_and_course_detail(store):
    courses = client.get("/courses").json()
    assert {"id": "math-101", "name": "Mathematics"} in courses
    detail = client.get("/courses/math-101").json()
    assert [a["title"] for a in detail["assignments"]] == ["Percentages Quiz", "Number Sense"]
    missing = client.get("/courses/nope")
    assert missing.status_code == 404
    assert missing.json()["detail"] == "Course not found."


def test_assignment_preview_hides_answers(store):
    r = client.get("/assignments/animal-sounds")
    assert r.status_code == 200
    body = r.json()
    assert body["title"] == "Animal Sounds"
    q = body["questions"][0]
    assert q["widget"] == "mapping"
    assert "correctAnswer" not in q and "correct_answer" not in q
    assert "pairs" not in q


def test_unknown_assignment_renders_not_found(store):
    headers = signup()
    r = client.get("/assignments/nonexistent")
    assert r.status_code == 404
    assert r.json()["detail"] == "Assignment not found."
    s = client.post("/assignments/nonexistent/sessions", headers=headers)
    assert s.status_code == 404
    assert s.json()["detail"] == "Assignment not found."


def test_full_assignment_flow(store):
    headers = signup()
    created = client.post("/assignments/percentages-quiz/sessions", headers=headers)
    assert created.status_code == 201
    state = created.json()
    sid = state["session_id"]
    assert state["status"] == "in_progress"
    assert state["question"]["widget"] == "text"
    assert state["question"]["can_submit"] is False

    # nothing to submit yet
    r = client.post(f"/sessions/{sid}/questions/0/submit", headers=headers)
    assert r.json()["applied"] is False

    r = client.post(f"/sessions/{sid}/questions/0/edit", json={"kind": "text", "text": " 12 "}, headers=headers)
    assert r.json()["question"]["can_submit"] is True
    r = client.post(f"/sessions/{sid}/questions/0/submit", headers=headers).json()
    assert r["feedback"]["message"] == "Correct!"
    assert r["score"] == 1
    assert r["question"]["disabled"] is True

    # locked after submit
    r = client.put(f"/sessions/{sid}/answers/0", json={"value": "13"}, headers=headers).json()
    assert r["applied"] is False

    r = client.post(f"/sessions/{sid}/next", headers=headers).json()
    assert r["current_index"] == 1
    assert r["feedback"] is None
    bad = client.put(f"/sessions/{sid}/answers/1", json={"value": "yes"}, headers=headers)
    assert bad.status_code == 400
    client.put(f"/sessions/{sid}/answers/1", json={"value": False}, headers=headers)
    r = client.post(f"/sessions/{sid}/questions/1/submit", headers=headers).json()
    assert r["feedback"]["message"] == "Incorrect. Correct answer: True"

    assert client.get(f"/sessions/{sid}/results", headers=headers).status_code == 409

    client.post(f"/sessions/{sid}/next", headers=headers)
    client.post(f"/sessions/{sid}/questions/2/edit", json={"kind": "select", "option": "1/4"}, headers=headers)
    r = client.post(f"/sessions/{sid}/questions/2/submit", headers=headers).json()
    assert r["status"] == "complete"
    assert r["progress"] == 1.0

    results = client.get(f"/sessions/{sid}/results", headers=headers).json()
    assert results["score"] == 2
    assert results["total"] == 3

    stored = client.get("/results", headers=headers).json()
    assert [x["id"] for x in stored] == [sid]
    dash = client.get("/dashboard", headers=headers).json()
    assert dash["assignments_completed"] == 1
    assert dash["total_courses"] == 2

    r = client.post(f"/sessions/{sid}/restart", headers=headers).json()
    assert r["status"] == "in_progress"
    assert r["score"] == 0
    assert r["submitted"] == [False, False, False]
    assert r["current_index"] == 0


def test_sessions_are_private(store):
    owner = signup()
    other = signup()
    sid = client.post("/assignments/number-sense/sessions", headers=owner).json()["session_id"]
    assert client.get(f"/sessions/{sid}", headers=other).status_code == 404
    assert client.get(f"/sessions/{sid}", headers=owner).status_code == 200


def test_multi_select_edits_over_http(store):
    headers = signup()
    sid = client.post("/assignments/number-sense/sessions", headers=headers).json()["session_id"]
    for option in ("5", "2"):
        client.post(f"/sessions/{sid}/questions/0/edit", json={"kind": "toggle", "option": option}, headers=headers)
    state = client.get(f"/sessions/{sid}", headers=headers).json()
    assert state["question"]["value"] == ["2", "5"]
    r = client.post(f"/sessions/{sid}/questions/0/submit", headers=headers).json()
    assert r["feedback"]["correct"] is True
    assert r["status"] == "complete"


def test_catalog_import_endpoint(catalog_data):
    headers = signup()
    r = client.post("/catalog/import", json=catalog_data, headers=headers)
    assert r.status_code == 200
    assert r.json()["created"] == 5
    courses = client.get("/courses").json()
    assert {"id": "bio-101", "name": "Biology"} in courses


def test_signin_locks_out_after_repeated_failures(monkeypatch):
    from portal import main
    from portal.config import settings

    monkeypatch.setattr(settings, "SIGNIN_RATE_LIMIT_PER_MIN", 2)
    key = "testclient:/auth/signin"
    main._signin_throttle.reset(key)
    email = f"lock-{uuid.uuid4().hex[:8]}@example.com"
    signup(email)

    def attempt(password):
        return client.post("/auth/signin", json={"email": email, "password": password}).status_code

    # a successful sign-in clears earlier failures
    assert attempt("wrong") == 401
    assert attempt("pass1234") == 200
    assert attempt("wrong") == 401
    assert attempt("wrong") == 401
    locked = client.post("/auth/signin", json={"email": email, "password": "pass1234"})
    assert locked.status_code == 429
    assert "Retry-After" in locked.headers
    main._signin_throttle.reset(key)
