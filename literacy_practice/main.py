"""FastAPI application entrypoint and HTTP controllers.

This module defines the HTTP endpoints of the reading-comprehension
practice backend. Controllers are intentionally thin: they accept
requests, delegate to services, and return JSON responses.

Endpoints implemented:
- GET  /auth, POST /auth/register, POST /auth/login, GET /auth/session
- GET  /practice, GET /practice/events, GET /practice/{id}
- POST /practice/{id}/save
- POST /practice/{id}/attempts
- PUT  /practice/{id}/attempts/{attempt_id}/answers
- POST /practice/{id}/attempts/{attempt_id}/submit
- POST /practice/{id}/attempts/{attempt_id}/reset
- POST /create
- GET  /library
- GET  /profile, PUT /profile
- GET  /storage/{path}
- GET  /health, GET /
"""

from fastapi import FastAPI, Depends, UploadFile, File, HTTPException, Form, Query, Request, BackgroundTasks
from fastapi.exception_handlers import http_exception_handler
from fastapi.responses import JSONResponse, HTMLResponse, RedirectResponse, Response, StreamingResponse, FileResponse
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session
from typing import List, Optional
import os
import json
import logging
import time
import uuid
from .database import create_db_and_tables, get_session
from . import services, models, repositories
from .auth import LoginRequired, get_current_user, get_optional_user
from .authoring import AuthoringError, build_wizard
from .grading import PracticeSession
from .realtime import Subscription, content_channel
from .sample_content import SAMPLE_PASSAGE, SAMPLE_TITLE
from .schemas import AnswersIn, LoginIn, ProfileUpdate, RegisterIn, TokenOut
from .storage import StorageError, storage
from .tracking import ActivityTracker
from .utils.attempts import Attempt, AttemptStore
from .utils.normalize import public_view
from .utils.rate_limit import InMemoryRateLimiter, client_key
from .utils.uploads import UploadRejected
from .config import settings

app = FastAPI(title="Literacy Practice API")
logger = logging.getLogger("literacy.api")
if not logger.handlers:
    logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO"))
_rate_limiter = InMemoryRateLimiter()
_attempts = AttemptStore(max_attempts=settings.ATTEMPT_MAX, ttl_seconds=settings.ATTEMPT_TTL_SECONDS)
_tracker = ActivityTracker()

SSE_KEEPALIVE_SECONDS = 15.0

if settings.ALLOW_DEV_CORS:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

create_db_and_tables()


def _log_payload(request: Request, req_id: str, started: float, **extra) -> str:
    return json.dumps(
        {
            "request_id": req_id,
            "path": request.url.path,
            "method": request.method,
            "duration_ms": round((time.perf_counter() - started) * 1000.0, 2),
            "client": request.client.host if request.client else "unknown",
            **extra,
        },
        ensure_ascii=True,
    )


@app.middleware("http")
async def request_context_middleware(request: Request, call_next):
    req_id = request.headers.get("X-Request-ID", uuid.uuid4().hex)
    request.state.request_id = req_id
    started = time.perf_counter()
    response: Response
    try:
        response = await call_next(request)
    except Exception:
        logger.exception("request_failed %s", _log_payload(request, req_id, started))
        raise
    response.headers["X-Request-ID"] = req_id
    logger.info("request_done %s", _log_payload(request, req_id, started, status_code=response.status_code))
    return response


@app.exception_handler(LoginRequired)
async def login_required_handler(request: Request, exc: LoginRequired):
    """Browsers are sent to the login page; API clients get a 401 with the same target."""
    if "text/html" in request.headers.get("accept", ""):
        return RedirectResponse(url=exc.login_url, status_code=303)
    return JSONResponse(
        status_code=401,
        content={"detail": exc.detail, "login_url": exc.login_url},
        headers={"WWW-Authenticate": "Bearer"},
    )


@app.exception_handler(StarletteHTTPException)
async def not_found_handler(request: Request, exc: StarletteHTTPException):
    if exc.status_code == 404 and exc.detail == "Not Found":
        return JSONResponse(status_code=404, content={"detail": "not found", "path": request.url.path})
    return await http_exception_handler(request, exc)


@app.exception_handler(UploadRejected)
async def upload_rejected_handler(request: Request, exc: UploadRejected):
    return JSONResponse(status_code=exc.status_code, content={"detail": str(exc)})


@app.exception_handler(AuthoringError)
async def authoring_error_handler(request: Request, exc: AuthoringError):
    return JSONResponse(status_code=502, content={"detail": str(exc), "content_id": exc.content_id})


def _enforce_rate_limit(request: Request, max_per_min: int, window: int = 60) -> None:
    key = client_key(request.client.host if request.client else None, request.url.path)
    allowed, retry_after = _rate_limiter.allow(key, max_per_min, window)
    if not allowed:
        raise HTTPException(
            status_code=429,
            detail=f"rate limit exceeded; retry after {retry_after}s",
            headers={"Retry-After": str(retry_after)},
        )


def _safe_next(next_path: Optional[str]) -> str:
    if not next_path or not next_path.startswith("/") or next_path.startswith("//"):
        return "/"
    return next_path


@app.get("/", response_class=HTMLResponse)
def home():
    """Minimal homepage for quick manual testing."""
    return """
    <!DOCTYPE html>
    <html>
    <head>
      <meta charset="UTF-8" />
      <title>Literacy Practice</title>
      <style>
        body { font-family: Arial, sans-serif; margin: 32px; }
        a { color: #0a6; }
        .card { max-width: 640px; padding: 16px; border: 1px solid #ddd; border-radius: 8px; }
      </style>
    </head>
    <body>
      <div class="card">
        <h1>Literacy Practice</h1>
        <p>Reading comprehension exercises with instant feedback.</p>
        <ul>
          <li><a href="/docs">Swagger UI</a></li>
          <li><a href="/auth">Sign in or create an account</a></li>
          <li><a href="/practice">Browse practice content</a></li>
          <li><a href="/library">Your library</a></li>
        </ul>
        <p>Use <code>/auth/register</code> + <code>/auth/login</code> to get a token, then open a
        practice item with <code>POST /practice/{id}/attempts</code>.</p>
      </div>
    </body>
    </html>
    """


@app.get("/health")
def health():
    """Lightweight health check for uptime monitoring."""
    return {"status": "ok"}


@app.get("/auth")
def auth_landing(next: Optional[str] = None):
    """Login/register landing; `next` is where to go after signing in."""
    return {
        "next": _safe_next(next),
        "login": "/auth/login",
        "register": "/auth/register",
        "session": "/auth/session",
    }


@app.post("/auth/register", status_code=201)
def register(payload: RegisterIn, db: Session = Depends(get_session)):
    """Create an account together with its profile and empty stats."""
    auth = services.AuthService(db)
    try:
        user = auth.register(payload.email, payload.password, payload.first_name, payload.last_name)
    except services.DuplicateAccountError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return {"id": user.id, "email": user.email}


@app.post("/auth/login", response_model=TokenOut)
def login(payload: LoginIn, request: Request, db: Session = Depends(get_session)):
    """Authenticate a user and return a short-lived JWT token.

    The returned token contains `user_id` and `email` and is signed
    using the configured JWT secret.
    """
    _enforce_rate_limit(request, settings.LOGIN_RATE_LIMIT_PER_MIN)
    auth = services.AuthService(db)
    token = auth.authenticate(payload.email, payload.password)
    if not token:
        raise HTTPException(status_code=401, detail="invalid credentials")
    return TokenOut(access_token=token)


@app.get("/auth/session")
def current_session(db: Session = Depends(get_session), user: Optional[models.User] = Depends(get_optional_user)):
    """Return the signed-in user and profile, or nulls for anonymous callers."""
    if user is None:
        return {"user": None, "profile": None}
    profile = repositories.ProfileRepository(db).get(user.id)
    return {"user": services.user_to_dict(user), "profile": services.profile_to_dict(profile)}


@app.get("/practice")
def list_practice(
    search: Optional[str] = None,
    question_type: Optional[List[str]] = Query(default=None),
    difficulty: Optional[List[str]] = Query(default=None),
    limit: Optional[int] = Query(default=None, ge=1, le=200),
    db: Session = Depends(get_session),
    user: models.User = Depends(get_current_user),
):
    """List practice content newest first, filtered by search, type and difficulty."""
    svc = services.ContentService(db, storage)
    return svc.list_content(search=search, question_types=question_type, difficulties=difficulty, limit=limit)


def _sse(event: str, data: dict) -> str:
    return f"event: {event}\ndata: {json.dumps(data, ensure_ascii=True)}\n\n"


def _event_stream(sub: Subscription, keepalive_seconds: float = SSE_KEEPALIVE_SECONDS):
    """Yield SSE frames for `sub` until the client goes away.

    The subscription is removed however the generator ends.
    """
    try:
        yield _sse("ready", {"subscriber": sub.id})
        while not sub.closed:
            event = sub.get(timeout=keepalive_seconds)
            if event is None:
                yield ": keepalive\n\n"
                continue
            yield _sse("content_added", event)
    finally:
        sub.close()


@app.get("/practice/events")
def practice_events(user: models.User = Depends(get_current_user)):
    """Server-sent stream of newly created practice content."""
    sub = content_channel.subscribe()
    return StreamingResponse(
        _event_stream(sub),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )


def _load_content(svc: services.ContentService, content_id: int) -> models.PracticeContent:
    try:
        content = svc.get_content(content_id)
    except SQLAlchemyError:
        logger.exception("failed to load practice content %s", content_id)
        content = None
    if content is None:
        raise HTTPException(status_code=404, detail="Failed to load practice content")
    return content


@app.get("/practice/{content_id}")
def practice_detail(content_id: int, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    """Content detail with its reading document and a signed image URL."""
    svc = services.ContentService(db, storage)
    content = _load_content(svc, content_id)
    return svc.content_detail(content)


@app.post("/practice/{content_id}/save")
def save_practice(content_id: int, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    """Bookmark content into the caller's library."""
    svc = services.ContentService(db, storage)
    _load_content(svc, content_id)
    saved = svc.save_for_user(user.id, content_id)
    return {"status": "ok", "saved_id": saved.id}


def _attempt_payload(attempt: Attempt, title: str, passage: Optional[str]) -> dict:
    return {
        "attempt_id": attempt.attempt_id,
        "practice_content_id": attempt.practice_content_id,
        "is_sample": attempt.is_sample,
        "title": title,
        "passage": passage,
        "total_points": attempt.session.total_points,
        "questions": [public_view(q) for q in attempt.session.questions],
    }


def _get_attempt(content_id: int, attempt_id: str, user: models.User) -> Attempt:
    attempt = _attempts.get(attempt_id)
    if attempt is None or attempt.practice_content_id != content_id or attempt.user_id != user.id:
        raise HTTPException(status_code=404, detail="attempt not found; reload the exercise")
    return attempt


@app.post("/practice/{content_id}/attempts", status_code=201)
def start_attempt(content_id: int, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    """Render a question set for the caller and start activity tracking."""
    svc = services.ContentService(db, storage)
    content = _load_content(svc, content_id)
    questions, is_sample = svc.load_questions(content_id)
    attempt = _attempts.create(
        practice_content_id=content_id,
        session=PracticeSession(questions),
        user_id=user.id,
        is_sample=is_sample,
    )
    attempt.activity_id = _tracker.start(user.id, content_id)
    if is_sample:
        return _attempt_payload(attempt, SAMPLE_TITLE, SAMPLE_PASSAGE)
    return _attempt_payload(attempt, content.title, content.description)


@app.put("/practice/{content_id}/attempts/{attempt_id}/answers")
def save_answers(content_id: int, attempt_id: str, payload: AnswersIn, user: models.User = Depends(get_current_user)):
    """Record answers for an attempt; rejected once the attempt is submitted."""
    attempt = _get_attempt(content_id, attempt_id, user)
    if attempt.session.submitted:
        raise HTTPException(status_code=409, detail="attempt already submitted; reset to try again")
    accepted, ignored = [], []
    for question_id, value in payload.answers.items():
        (accepted if attempt.session.set_answer(question_id, value) else ignored).append(question_id)
    return {"accepted": accepted, "ignored": ignored}


@app.post("/practice/{content_id}/attempts/{attempt_id}/submit")
def submit_attempt(content_id: int, attempt_id: str, background: BackgroundTasks,
                   user: models.User = Depends(get_current_user)):
    """Grade the attempt. Repeated submits return the first result."""
    attempt = _get_attempt(content_id, attempt_id, user)
    result = attempt.session.submit()
    if attempt.session.claim_completion():
        background.add_task(_tracker.complete, attempt.activity_id, attempt.user_id, result, attempt.elapsed_seconds())
    out = result.model_dump()
    out["percentage"] = result.percentage
    return out


@app.post("/practice/{content_id}/attempts/{attempt_id}/reset")
def reset_attempt(content_id: int, attempt_id: str, user: models.User = Depends(get_current_user)):
    """Clear answers and results so the exercise can be tried again."""
    attempt = _get_attempt(content_id, attempt_id, user)
    attempt.session.reset()
    attempt.started_monotonic = time.monotonic()
    attempt.activity_id = _tracker.start(user.id, content_id)
    return {"status": "ok", "attempt_id": attempt.attempt_id}


def _read_upload(upload: Optional[UploadFile], limit: int) -> Optional[tuple]:
    if upload is None or not upload.filename:
        return None
    payload = upload.file.read(limit + 1)
    return upload.filename, upload.content_type, payload


@app.post("/create", status_code=201)
def create_practice(
    request: Request,
    title: str = Form(...),
    description: str = Form(...),
    question_type: str = Form(...),
    difficulty: str = Form(...),
    questions: str = Form(...),
    time_estimate: Optional[str] = Form(default=None),
    image: Optional[UploadFile] = File(default=None),
    document: Optional[UploadFile] = File(default=None),
    db: Session = Depends(get_session),
    user: models.User = Depends(get_current_user),
):
    """Create practice content from the three authoring steps in one request.

    `questions` is a JSON array of question drafts. `image` and
    `document` are optional attachments.
    """
    _enforce_rate_limit(request, settings.CREATE_RATE_LIMIT_PER_MIN)
    try:
        drafts = json.loads(questions)
    except json.JSONDecodeError:
        raise HTTPException(status_code=400, detail="questions must be a JSON array")
    if not isinstance(drafts, list):
        raise HTTPException(status_code=400, detail="questions must be a JSON array")
    image_part = _read_upload(image, settings.MAX_IMAGE_BYTES)
    doc_part = _read_upload(document, settings.MAX_UPLOAD_BYTES)
    if doc_part is not None:
        filename, ctype, payload = doc_part
        doc_part = (filename, payload, ctype)
    details = {
        "title": title,
        "description": description,
        "question_type": question_type,
        "difficulty": difficulty,
        "time_estimate": time_estimate,
    }
    try:
        wizard = build_wizard(details, drafts, image=image_part, document=doc_part)
    except UploadRejected:
        raise
    except (ValueError, IndexError) as e:
        raise HTTPException(status_code=400, detail=str(e))
    if not wizard.can_submit():
        raise HTTPException(status_code=400, detail="Please fill in all required fields and add at least one question.")
    content = wizard.submit(db, storage, channel=content_channel, user_id=user.id)
    return {
        "id": content.id,
        "title": content.title,
        "image_path": content.image_path,
        "document_id": content.document_id,
        "question_count": len(wizard.questions),
    }


@app.get("/library")
def library(db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    """Saved, recently practiced and self-created content."""
    return services.LibraryService(db).library(user.id)


@app.get("/profile")
def get_profile(db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    """Profile details plus progress statistics."""
    return services.ProfileService(db).overview(user)


@app.put("/profile")
def update_profile(payload: ProfileUpdate, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    svc = services.ProfileService(db)
    try:
        profile = svc.update(user.id, **payload.model_dump(exclude_unset=True))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return services.profile_to_dict(profile)


@app.get("/storage/{path:path}")
def get_object(path: str, token: str = Query(...)):
    """Serve a stored object behind a signed, expiring token."""
    try:
        storage.verify_signed_token(path, token)
        target = storage.open_path(path)
    except StorageError as e:
        raise HTTPException(status_code=403, detail=str(e))
    except FileNotFoundError:
        raise HTTPException(status_code=404, detail="object not found")
    return FileResponse(target, media_type=storage.guess_type(path))
