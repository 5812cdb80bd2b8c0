"""Business logic services used by HTTP controllers.

This module holds small service classes that coordinate repositories,
the grading engine and auxiliary logic. Services are intentionally thin:
they perform validation, execute domain logic and persist aggregates via
repositories.
"""

from datetime import datetime, timedelta, timezone
from passlib.context import CryptContext
import jwt
import logging
from typing import Iterable, List, Optional, Tuple
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session
from . import models, repositories
from .config import settings
from .storage import ObjectStorage, StorageError
from .sample_content import sample_questions
from .utils.normalize import NormalizedQuestion, normalize_questions
from .utils.search import filter_practice

PWD_CTX = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")
JWT_SECRET = settings.JWT_SECRET
JWT_ALGORITHM = settings.JWT_ALGORITHM
JWT_EXPIRE_HOURS = settings.JWT_EXPIRE_HOURS

logger = logging.getLogger("literacy.services")


class DuplicateAccountError(ValueError):
    """Raised when registering an email that already has an account."""


class AuthService:
    """Authentication related operations (register + authenticate)."""
    def __init__(self, session: Session):
        self.session = session
        self.user_repo = repositories.UserRepository(session)

    def register(self, email: str, password: str, first_name: str, last_name: str) -> models.User:
        """Create a user with a hashed password, plus its profile and stats rows."""
        if self.user_repo.get_by_email(email):
            raise DuplicateAccountError("an account with this email already exists")
        hashed = PWD_CTX.hash(password)
        try:
            user = self.user_repo.create(models.User(email=email, password_hash=hashed))
        except IntegrityError:
            self.session.rollback()
            raise DuplicateAccountError("an account with this email already exists")
        repositories.ProfileRepository(self.session).create(
            models.Profile(id=user.id, first_name=first_name.strip(), last_name=last_name.strip())
        )
        repositories.StatsRepository(self.session).get_or_create(user.id)
        return user

    def authenticate(self, email: str, password: str) -> Optional[str]:
        """Verify credentials and return a signed JWT token on success.

        Returns `None` if authentication fails.
        """
        user = self.user_repo.get_by_email(email)
        if not user:
            return None
        if not PWD_CTX.verify(password, user.password_hash):
            return None
        expire = datetime.now(timezone.utc) + timedelta(hours=JWT_EXPIRE_HOURS)
        payload = {"user_id": user.id, "email": user.email, "exp": int(expire.timestamp())}
        return jwt.encode(payload, JWT_SECRET, algorithm=JWT_ALGORITHM)


def user_to_dict(user: Optional[models.User]) -> Optional[dict]:
    if user is None:
        return None
    return {"id": user.id, "email": user.email, "created_at": user.created_at.isoformat()}


def profile_to_dict(profile: Optional[models.Profile]) -> Optional[dict]:
    if profile is None:
        return None
    return {
        "id": profile.id,
        "first_name": profile.first_name,
        "last_name": profile.last_name,
        "school": profile.school,
        "grade": profile.grade,
        "bio": profile.bio,
        "profile_picture_url": profile.profile_picture_url,
        "updated_at": profile.updated_at.isoformat() if profile.updated_at else None,
    }


def content_summary(content: models.PracticeContent) -> dict:
    """Card-sized representation used by list and library views."""
    return {
        "id": content.id,
        "title": content.title,
        "description": content.description,
        "difficulty": content.difficulty,
        "time_estimate": content.time_estimate,
        "question_type": content.question_type,
        "created_at": content.created_at.isoformat() if content.created_at else None,
    }


class ContentService:
    """Read side of practice content: listings, detail and question sets."""
    def __init__(self, session: Session, storage: Optional[ObjectStorage] = None):
        self.session = session
        self.storage = storage
        self.content_repo = repositories.ContentRepository(session)
        self.q_repo = repositories.QuestionRepository(session)

    def list_content(self, search: Optional[str] = None, question_types: Optional[Iterable[str]] = None,
                     difficulties: Optional[Iterable[str]] = None, limit: Optional[int] = None) -> List[dict]:
        """Newest-first listing filtered client-side style by search/type/difficulty.

        A backend failure degrades to an empty list.
        """
        try:
            rows = self.content_repo.list_recent()
        except SQLAlchemyError:
            logger.exception("failed to load practice content list")
            return []
        filtered = filter_practice(rows, search=search, question_types=question_types, difficulties=difficulties)
        if limit:
            filtered = filtered[:limit]
        return [content_summary(c) for c in filtered]

    def get_content(self, content_id: int) -> Optional[models.PracticeContent]:
        return self.content_repo.get(content_id)

    def _signed(self, path: Optional[str]) -> Optional[str]:
        if not path or self.storage is None:
            return None
        try:
            return self.storage.create_signed_url(path)
        except StorageError:
            logger.warning("cannot sign storage path %s", path)
            return None

    def content_detail(self, content: models.PracticeContent) -> dict:
        """Full detail payload including signed attachment URLs."""
        out = content_summary(content)
        out["image_url"] = self._signed(content.image_path)
        out["document"] = None
        if content.document_id:
            document = repositories.DocumentRepository(self.session).get(content.document_id)
            if document:
                out["document"] = {
                    "id": document.id,
                    "title": document.title,
                    "description": document.description,
                    "file_url": self._signed(document.file_url),
                }
        return out

    def load_questions(self, content_id: int) -> Tuple[List[NormalizedQuestion], bool]:
        """Return the normalized question set and whether it is the sample fallback.

        The built-in sample set is used when the stored questions cannot
        be loaded or none of them can be shaped into a known type.
        """
        try:
            rows = self.q_repo.list_for_content(content_id)
        except SQLAlchemyError:
            logger.exception("failed to load questions for content %s; using sample set", content_id)
            return sample_questions(), True
        questions = normalize_questions(rows)
        if not questions:
            logger.info("content %s has no usable questions; using sample set", content_id)
            return sample_questions(), True
        return questions, False

    def save_for_user(self, user_id: int, content_id: int) -> models.SavedPractice:
        return repositories.SavedRepository(self.session).save(user_id, content_id)


class ProfileService:
    """Profile reads/edits and the progress summary shown on the profile page."""
    def __init__(self, session: Session):
        self.session = session
        self.profile_repo = repositories.ProfileRepository(session)
        self.stats_repo = repositories.StatsRepository(session)
        self.activity_repo = repositories.ActivityRepository(session)

    def update(self, user_id: int, **fields) -> models.Profile:
        profile = self.profile_repo.get(user_id)
        if profile is None:
            raise ValueError("profile not found")
        cleaned = {k: (v.strip() if isinstance(v, str) else v) for k, v in fields.items()}
        for key in ("first_name", "last_name"):
            if cleaned.get(key) is not None and not cleaned[key]:
                raise ValueError(f"{key} is required")
        return self.profile_repo.update(profile, **cleaned)

    def overview(self, user: models.User, recent_limit: int = 5) -> dict:
        """Profile, aggregate stats, accuracy and recent completed activity."""
        profile = self.profile_repo.get(user.id)
        stats = self.stats_repo.get_for_user(user.id)
        recent = self.activity_repo.list_for_user(user.id, activity_type="completed", limit=recent_limit)
        titles = {c.id: c.title for c in repositories.ContentRepository(self.session).list_by_ids(
            [a.practice_content_id for a in recent if a.practice_content_id]
        )}
        answered = stats.total_questions_answered if stats else 0
        correct = stats.total_correct_answers if stats else 0
        return {
            "user": user_to_dict(user),
            "profile": profile_to_dict(profile),
            "stats": {
                "practice_completed": stats.total_practice_sessions if stats else 0,
                "questions_answered": answered,
                "correct_answers": correct,
                "accuracy": round((correct / answered) * 100) if answered else 0,
                "time_spent_seconds": stats.total_time_spent_seconds if stats else 0,
                "current_streak_days": stats.current_streak_days if stats else 0,
                "longest_streak_days": stats.longest_streak_days if stats else 0,
                "last_practice_date": stats.last_practice_date.isoformat() if stats and stats.last_practice_date else None,
            },
            "recent_activity": [
                {
                    "practice_content_id": a.practice_content_id,
                    "title": titles.get(a.practice_content_id),
                    "score": a.score,
                    "total_questions": a.total_questions,
                    "correct_answers": a.correct_answers,
                    "time_spent_seconds": a.time_spent_seconds,
                    "completed_at": a.completed_at.isoformat() if a.completed_at else None,
                }
                for a in recent
            ],
        }


class LibraryService:
    """Saved, recently practiced and self-authored content for one user."""
    def __init__(self, session: Session):
        self.session = session
        self.content_repo = repositories.ContentRepository(session)

    def library(self, user_id: int, recent_limit: int = 10) -> dict:
        saved_rows = repositories.SavedRepository(self.session).list_for_user(user_id)
        activity = repositories.ActivityRepository(self.session).list_for_user(user_id)
        recent_ids: List[int] = []
        for a in activity:
            if a.practice_content_id and a.practice_content_id not in recent_ids:
                recent_ids.append(a.practice_content_id)
        recent_ids = recent_ids[:recent_limit]
        wanted = {s.practice_content_id for s in saved_rows} | set(recent_ids)
        by_id = {c.id: c for c in self.content_repo.list_by_ids(list(wanted))}
        saved = []
        for s in saved_rows:
            if s.practice_content_id in by_id:
                item = content_summary(by_id[s.practice_content_id])
                item["saved_at"] = s.created_at.isoformat()
                saved.append(item)
        return {
            "saved": saved,
            "recent": [content_summary(by_id[cid]) for cid in recent_ids if cid in by_id],
            "created": [content_summary(c) for c in self.content_repo.list_created_by(user_id)],
        }
