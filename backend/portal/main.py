"""FastAPI application entrypoint and HTTP controllers.

This module defines the HTTP endpoints of the learning portal.
Controllers are intentionally thin: they accept requests, delegate to
services and domain objects, and return JSON responses.

Endpoints implemented:
- POST /auth/signup, POST /auth/signin, POST /auth/signout, GET /auth/me
- GET /profile, PATCH /profile
- GET /courses, GET /courses/{course_id}
- GET /assignments/{assignment_id}
- POST /assignments/{assignment_id}/sessions
- GET /sessions/{session_id}
- PUT /sessions/{session_id}/answers/{index}
- POST /sessions/{session_id}/questions/{index}/edit
- POST /sessions/{session_id}/questions/{index}/submit
- POST /sessions/{session_id}/next, /previous, /restart
- GET /sessions/{session_id}/results
- GET /results, GET /dashboard
- POST /catalog/import
"""

from fastapi import APIRouter, FastAPI, Depends, HTTPException, Request
from fastapi.responses import HTMLResponse, Response
from fastapi.middleware.cors import CORSMiddleware
from typing import Optional
import json
import logging
import time
import uuid
from .database import create_db_and_tables
from .auth import bearer_token, get_identity, get_profiles, get_store, require_principal
from .catalog import CatalogService
from .errors import AuthError, FetchFailure, InvalidAnswer, NotFound
from .identity import IdentityProvider, Principal
from .loader import AssignmentLoader, AssignmentView
from .profiles import ProfileStore
from .renderer import AnswerEdit, QuestionRenderer
from .schemas import AnswerIn, AssignmentOut, CredentialsIn, ProfileIn, SessionOut, TokenOut
from .services import ImportService, ResultService
from .session import AssignmentSession
from .store import DocumentStore
from .utils.rate_limit import SignInThrottle
from .utils.session_store import SessionStore
from .config import settings

app = FastAPI(title="Learning Portal API")
logger = logging.getLogger("portal.api")
if not logger.handlers:
    logging.basicConfig(level=settings.LOG_LEVEL)
_signin_throttle = SignInThrottle()
_sessions = SessionStore(
    max_sessions=settings.SESSION_MAX,
    ttl_seconds=settings.SESSION_TTL_SECONDS,
)

ASSIGNMENT_NOT_FOUND = "Assignment not found."
COURSE_NOT_FOUND = "Course not found."

# Wide-open CORS keeps a local browser frontend working without extra config in dev.
if settings.ALLOW_DEV_CORS:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

create_db_and_tables()


@app.middleware("http")
async def request_context_middleware(request: Request, call_next):
    req_id = request.headers.get("X-Request-ID", uuid.uuid4().hex)
    request.state.request_id = req_id
    started = time.perf_counter()
    response: Response
    try:
        response = await call_next(request)
    except Exception:
        elapsed_ms = round((time.perf_counter() - started) * 1000.0, 2)
        logger.exception(
            "request_failed %s",
            json.dumps(
                {
                    "request_id": req_id,
                    "path": request.url.path,
                    "method": request.method,
                    "duration_ms": elapsed_ms,
                    "client": request.client.host if request.client else "unknown",
                },
                ensure_ascii=True,
            ),
        )
        raise
    response.headers["X-Request-ID"] = req_id
    elapsed_ms = round((time.perf_counter() - started) * 1000.0, 2)
    logger.info(
        "request_done %s",
        json.dumps(
            {
                "request_id": req_id,
                "path": request.url.path,
                "method": request.method,
                "status_code": response.status_code,
                "duration_ms": elapsed_ms,
                "client": request.client.host if request.client else "unknown",
            },
            ensure_ascii=True,
        ),
    )
    return response


def _signin_key(request: Request) -> str:
    return f"{request.client.host if request.client else 'unknown'}:{request.url.path}"


def _enforce_signin_rate_limit(key: str) -> None:
    allowed, retry_after = _signin_throttle.check(
        key, settings.SIGNIN_RATE_LIMIT_PER_MIN, settings.SIGNIN_RATE_LIMIT_WINDOW_SECONDS
    )
    if not allowed:
        raise HTTPException(
            status_code=429,
            detail=f"Too many sign-in attempts; retry after {retry_after}s",
            headers={"Retry-After": str(retry_after)},
        )


def _session_out(session_id: str, s: AssignmentSession, applied: Optional[bool] = None) -> dict:
    """Serialize a session snapshot with the current question's input surface."""
    question = None
    if s.questions:
        question = QuestionRenderer.for_session(s, s.current_index).view()
    out = SessionOut(
        session_id=session_id,
        assignment_id=s.assignment_id,
        title=s.title,
        status=s.status.value,
        current_index=s.current_index,
        total=len(s),
        score=s.score,
        progress=s.progress(),
        percentage=s.percentage(),
        submitted=list(s.submitted),
        question=question,
        feedback=s.feedback,
    ).model_dump(mode="json")
    if applied is not None:
        out["applied"] = applied
    return out


def _run_on_session(session_id: str, principal: Principal, fn):
    """Apply `fn` to an owned session, 404 when unknown or owned by someone else."""
    if _sessions.owner_of(session_id) != principal.uid:
        raise HTTPException(status_code=404, detail="session not found")
    try:
        return _sessions.apply(session_id, fn)
    except KeyError:
        raise HTTPException(status_code=404, detail="session not found")
    except InvalidAnswer as e:
        raise HTTPException(status_code=400, detail=str(e))


def _record_if_completed(store: DocumentStore, session_id: str, principal: Principal, s: AssignmentSession, was_complete: bool):
    if s.is_complete and not was_complete:
        ResultService(store).record(session_id, principal.uid, s)


auth_router = APIRouter(prefix="/auth", tags=["auth"])
protected = APIRouter(dependencies=[Depends(require_principal)])


@auth_router.post("/signup", response_model=TokenOut)
def signup(payload: CredentialsIn, identity: IdentityProvider = Depends(get_identity)):
    """Create an account and return a bearer token.

    Provider errors (bad email, weak password, email in use) are passed
    through verbatim as the 400 detail.
    """
    try:
        token = identity.sign_up(payload.email, payload.password)
    except AuthError as e:
        raise HTTPException(status_code=400, detail=e.message)
    return {"access_token": token}


@auth_router.post("/signin", response_model=TokenOut)
def signin(payload: CredentialsIn, request: Request, identity: IdentityProvider = Depends(get_identity)):
    """Authenticate and return a bearer token."""
    key = _signin_key(request)
    _enforce_signin_rate_limit(key)
    try:
        token = identity.sign_in(payload.email, payload.password)
    except AuthError as e:
        _signin_throttle.record_failure(key)
        raise HTTPException(status_code=401, detail=e.message)
    _signin_throttle.reset(key)
    return {"access_token": token}


@auth_router.post("/signout", status_code=204)
def signout(token: Optional[str] = Depends(bearer_token), identity: IdentityProvider = Depends(get_identity)):
    """Invalidate the bearer token. Signing out twice is harmless."""
    if token:
        identity.sign_out(token)
    return Response(status_code=204)


@auth_router.get("/me")
def me(principal: Principal = Depends(require_principal), profiles: ProfileStore = Depends(get_profiles)):
    profile = profiles.ensure(principal)
    return {"uid": principal.uid, "email": principal.email, "profile": profile.model_dump() if profile else None}


@protected.get("/profile")
def get_profile(principal: Principal = Depends(require_principal), profiles: ProfileStore = Depends(get_profiles)):
    """Return the caller's profile, creating the default one on first use."""
    return profiles.ensure(principal).model_dump()


@protected.patch("/profile")
def update_profile(
    payload: ProfileIn,
    principal: Principal = Depends(require_principal),
    profiles: ProfileStore = Depends(get_profiles),
):
    """Merge the supplied profile fields into the stored profile."""
    profiles.ensure(principal)
    updated = profiles.upsert(principal.uid, payload.model_dump(exclude_unset=True))
    return updated.model_dump()


@app.get("/courses")
def list_courses(store: DocumentStore = Depends(get_store)):
    """List every course as `{id, name}`."""
    return [c.model_dump() for c in CatalogService(store).list_courses()]


@app.get("/courses/{course_id}")
def get_course(course_id: str, store: DocumentStore = Depends(get_store)):
    """Return a course with its assignment ids resolved to titles."""
    try:
        course = CatalogService(store).get_course(course_id)
    except (NotFound, FetchFailure):
        raise HTTPException(status_code=404, detail=COURSE_NOT_FOUND)
    return course.model_dump()


@app.get("/assignments/{assignment_id}", response_model=AssignmentOut)
def get_assignment(assignment_id: str, store: DocumentStore = Depends(get_store)):
    """Return the assignment title and its questions' input surfaces.

    Correct answers are never included.
    """
    try:
        assignment = AssignmentLoader(store).load(assignment_id)
    except (NotFound, FetchFailure):
        raise HTTPException(status_code=404, detail=ASSIGNMENT_NOT_FOUND)
    return {
        "id": assignment_id,
        "title": assignment.title,
        "questions": [QuestionRenderer(q).view() for q in assignment.questions],
    }


@protected.post("/assignments/{assignment_id}/sessions", status_code=201)
async def start_session(
    assignment_id: str,
    principal: Principal = Depends(require_principal),
    store: DocumentStore = Depends(get_store),
):
    """Load the assignment and open a new session for the caller."""
    view = AssignmentView(AssignmentLoader(store), assignment_id)
    try:
        state = await view.mount()
    finally:
        view.teardown()
    if state != AssignmentView.LOADED:
        raise HTTPException(status_code=404, detail=ASSIGNMENT_NOT_FOUND)
    s = AssignmentSession(view.assignment, assignment_id=assignment_id)
    session_id = _sessions.create(s, principal.uid)
    logger.info("session %s started on %s by %s", session_id, assignment_id, principal.uid)
    return _sessions.apply(session_id, lambda sess: _session_out(session_id, sess))


@protected.get("/sessions/{session_id}")
def get_session_state(session_id: str, principal: Principal = Depends(require_principal)):
    return _run_on_session(session_id, principal, lambda s: _session_out(session_id, s))


@protected.put("/sessions/{session_id}/answers/{index}")
def set_answer(session_id: str, index: int, payload: AnswerIn, principal: Principal = Depends(require_principal)):
    """Replace the draft answer at `index`.

    Ignored (`applied: false`) when the index is out of range or the
    question is already submitted; a value of the wrong shape is a 400.
    """
    def fn(s: AssignmentSession):
        applied = s.set_answer(index, payload.value)
        return _session_out(session_id, s, applied=applied)
    return _run_on_session(session_id, principal, fn)


@protected.post("/sessions/{session_id}/questions/{index}/edit")
def edit_answer(session_id: str, index: int, edit: AnswerEdit, principal: Principal = Depends(require_principal)):
    """Apply a user edit through the question's input surface."""
    def fn(s: AssignmentSession):
        if not 0 <= index < len(s):
            raise HTTPException(status_code=404, detail="question not found")
        renderer = QuestionRenderer.for_session(s, index, on_answer_change=lambda value: s.set_answer(index, value))
        applied = renderer.edit(edit)
        return _session_out(session_id, s, applied=applied)
    return _run_on_session(session_id, principal, fn)


@protected.post("/sessions/{session_id}/questions/{index}/submit")
def submit_answer(
    session_id: str,
    index: int,
    principal: Principal = Depends(require_principal),
    store: DocumentStore = Depends(get_store),
):
    """Lock and grade the answer at `index`.

    Already submitted or incomplete answers are left alone
    (`applied: false`). The result is stored when this submit completes
    the assignment.
    """
    def fn(s: AssignmentSession):
        was_complete = s.is_complete
        feedback = s.submit(index)
        _record_if_completed(store, session_id, principal, s, was_complete)
        return _session_out(session_id, s, applied=feedback is not None)
    return _run_on_session(session_id, principal, fn)


@protected.post("/sessions/{session_id}/next")
def go_next(session_id: str, principal: Principal = Depends(require_principal)):
    def fn(s: AssignmentSession):
        s.go_next()
        return _session_out(session_id, s)
    return _run_on_session(session_id, principal, fn)


@protected.post("/sessions/{session_id}/previous")
def go_previous(session_id: str, principal: Principal = Depends(require_principal)):
    def fn(s: AssignmentSession):
        s.go_previous()
        return _session_out(session_id, s)
    return _run_on_session(session_id, principal, fn)


@protected.post("/sessions/{session_id}/restart")
def restart(session_id: str, principal: Principal = Depends(require_principal)):
    def fn(s: AssignmentSession):
        s.restart()
        return _session_out(session_id, s)
    return _run_on_session(session_id, principal, fn)


@protected.get("/sessions/{session_id}/results")
def session_results(session_id: str, principal: Principal = Depends(require_principal)):
    """Results summary; only available once every question is submitted."""
    def fn(s: AssignmentSession):
        if not s.is_complete:
            raise HTTPException(status_code=409, detail="assignment not complete")
        return s.results()
    return _run_on_session(session_id, principal, fn)


@protected.get("/results")
def list_results(principal: Principal = Depends(require_principal), store: DocumentStore = Depends(get_store)):
    return ResultService(store).list_for_user(principal.uid)


@protected.get("/dashboard")
def dashboard(principal: Principal = Depends(require_principal), store: DocumentStore = Depends(get_store)):
    """Aggregate stats computed from the caller's stored results."""
    return ResultService(store).dashboard(principal.uid)


@protected.post("/catalog/import")
def import_catalog(payload: dict, dry_run: bool = False, store: DocumentStore = Depends(get_store)):
    """Import `{courses, assignments}` documents.

    Returns a JSON summary with the created count and per-item errors.
    """
    try:
        return ImportService(store).import_catalog(payload, dry_run=dry_run)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


app.include_router(auth_router)
app.include_router(protected)


@app.get("/", response_class=HTMLResponse)
def home():
    """Minimal homepage for quick manual testing."""
    return """
    <!DOCTYPE html>
    <html>
    <head>
      <meta charset="UTF-8" />
      <title>Learning Portal API</title>
      <style>
        body { font-family: Arial, sans-serif; margin: 32px; }
        a { color: #0a6; }
        .card { max-width: 640px; padding: 16px; border: 1px solid #ddd; border-radius: 8px; }
      </style>
    </head>
    <body>
      <div class="card">
        <h1>Learning Portal API</h1>
        <p>Quick links for local testing:</p>
        <ul>
          <li><a href="/docs">Swagger UI</a></li>
          <li><a href="/courses">Course list</a></li>
        </ul>
        <p>Use <code>/auth/signup</code> + <code>/auth/signin</code> to get a token, then start an assignment with <code>POST /assignments/{id}/sessions</code>.</p>
      </div>
    </body>
    </html>
    """


@app.get("/health")
def health():
    """Lightweight health check for uptime monitoring."""
    return {"status": "ok"}
