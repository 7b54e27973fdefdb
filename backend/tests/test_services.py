import threading

import pytest

from portal.questions import Assignment
from portal.services import ImportService, ResultService
from portal.session import AssignmentSession
from portal.store import InMemoryDocumentStore, SQLDocumentStore
from portal.utils.rate_limit import SignInThrottle
from portal.utils.session_store import SessionStore


def completed_session(store, assignment_id, answers):
    a = Assignment.model_validate(store.get("assignments", assignment_id).data)
    s = AssignmentSession(a, assignment_id=assignment_id)
    for i, value in enumerate(answers):
        s.set_answer(i, value)
        s.submit(i)
    return s


def test_import_catalog_reports_item_errors():
    store = InMemoryDocumentStore()
    result = ImportService(store).import_catalog({
        "assignments": {
            "ok": {"title": "Ok", "questions": [{"type": "true_false", "prompt": "p", "correctAnswer": True}]},
            "empty": {"title": "Empty", "questions": []},
            "bad": {"title": "Bad", "questions": [{"type": "multiple_choice", "prompt": "p", "options": ["A"], "correctAnswer": "B"}]},
        },
        "courses": {
            "c1": {"name": "Course", "assignments": ["ok"]},
            "c2": {"name": "Broken", "assignments": "ok"},
        },
    })
    assert result["created"] == 2
    assert sorted(e["id"] for e in result["errors"]) == ["bad", "c2", "empty"]
    assert store.get("assignments", "ok").exists
    assert not store.get("assignments", "bad").exists


@pytest.mark.parametrize("pairs", [["Dog"], 5])
def test_import_reports_matching_with_malformed_pairs(pairs):
    store = InMemoryDocumentStore()
    result = ImportService(store).import_catalog({
        "assignments": {"bad": {"title": "Bad", "questions": [{"type": "matching", "prompt": "m", "pairs": pairs}]}},
    })
    assert result["created"] == 0
    assert [e["id"] for e in result["errors"]] == ["bad"]
    assert not store.get("assignments", "bad").exists


def test_import_dry_run_writes_nothing(catalog_data):
    store = InMemoryDocumentStore()
    result = ImportService(store).import_catalog(catalog_data, dry_run=True)
    assert result == {"created": 5, "errors": []}
    assert store.list_all("courses") == []


def test_import_into_sql_store(db_session, catalog_data):
    store = SQLDocumentStore(db_session)
    ImportService(store).import_catalog(catalog_data)
    assert [d.id for d in store.list_all("courses")] == ["bio-101", "math-101"]
    assert store.get("assignments", "animal-sounds").data["title"] == "Animal Sounds"


def test_sql_store_merge(db_session):
    store = SQLDocumentStore(db_session)
    store.set("users", "1", {"name": "A", "email": "a@example.com"})
    store.set("users", "1", {"name": "B"}, merge=True)
    assert store.get("users", "1").data == {"name": "B", "email": "a@example.com"}
    store.set("users", "1", {"name": "C"})
    assert store.get("users", "1").data == {"name": "C"}


def test_result_record_and_dashboard(memory_store):
    results = ResultService(memory_store)
    s1 = completed_session(memory_store, "percentages-quiz", ["12", False, "1/4"])
    s2 = completed_session(memory_store, "number-sense", [["2", "5"]])
    results.record("sess-1", "u1", s1)
    results.record("sess-2", "u1", s2)
    results.record("sess-3", "u2", s2)
    mine = results.list_for_user("u1")
    assert {r["id"] for r in mine} == {"sess-1", "sess-2"}
    dash = results.dashboard("u1")
    assert dash["total_courses"] == 2
    assert dash["assignments_completed"] == 2
    assert dash["average_percentage"] == pytest.approx((200 / 3 + 100) / 2, abs=0.01)


def test_record_rejects_incomplete_session(memory_store):
    a = Assignment.model_validate(memory_store.get("assignments", "number-sense").data)
    with pytest.raises(ValueError):
        ResultService(memory_store).record("s", "u", AssignmentSession(a))


def test_session_store_serializes_mutations(memory_store):
    a = Assignment.model_validate(memory_store.get("assignments", "percentages-quiz").data)
    sessions = SessionStore()
    sid = sessions.create(AssignmentSession(a), "owner")
    assert sessions.owner_of(sid) == "owner"

    def submit_first(s):
        s.set_answer(0, "12")
        return s.submit(0)

    threads = [threading.Thread(target=sessions.apply, args=(sid, submit_first)) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert sessions.apply(sid, lambda s: s.score) == 1
    with pytest.raises(KeyError):
        sessions.apply("missing", lambda s: s)


def test_session_store_evicts_oldest():
    a = Assignment(title="t", questions=[{"type": "true_false", "prompt": "p", "correctAnswer": True}])
    sessions = SessionStore(max_sessions=2)
    first = sessions.create(AssignmentSession(a), "u")
    sessions.create(AssignmentSession(a), "u")
    sessions.create(AssignmentSession(a), "u")
    assert len(sessions) == 2
    assert sessions.owner_of(first) is None


def test_signin_throttle_counts_failures_until_reset():
    throttle = SignInThrottle()
    assert throttle.check("k", 2, 60) == (True, 0)
    throttle.record_failure("k")
    assert throttle.check("k", 2, 60)[0]
    throttle.record_failure("k")
    allowed, retry_after = throttle.check("k", 2, 60)
    assert not allowed and retry_after >= 1
    assert throttle.check("other", 2, 60)[0]
    throttle.reset("k")
    assert throttle.check("k", 2, 60) == (True, 0)
