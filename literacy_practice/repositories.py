"""Repository classes encapsulating database operations.

Each repository is small and focused on a single aggregate (users,
profiles, content, questions, activity, stats, bookmarks). Repositories
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


class ProfileRepository:
    def __init__(self, session: Session):
        self.session = session

    def create(self, profile: models.Profile) -> models.Profile:
        self.session.add(profile)
        self.session.commit()
        self.session.refresh(profile)
        return profile

    def get(self, user_id: int) -> Optional[models.Profile]:
        return self.session.get(models.Profile, user_id)

    def update(self, profile: models.Profile, **fields) -> models.Profile:
        """Apply non-None `fields` to `profile` and bump `updated_at`."""
        for key, value in fields.items():
            if value is not None:
                setattr(profile, key, value)
        profile.updated_at = datetime.now(timezone.utc)
        self.session.add(profile)
        self.session.commit()
        self.session.refresh(profile)
        return profile


class DocumentRepository:
    def __init__(self, session: Session):
        self.session = session

    def create(self, document: models.Document) -> models.Document:
        self.session.add(document)
        self.session.commit()
        self.session.refresh(document)
        return document

    def get(self, document_id: int) -> Optional[models.Document]:
        return self.session.get(models.Document, document_id)


class ContentRepository:
    """Reads and inserts for `PracticeContent` rows (never deleted)."""
    def __init__(self, session: Session):
        self.session = session

    def create(self, content: models.PracticeContent) -> models.PracticeContent:
        self.session.add(content)
        self.session.commit()
        self.session.refresh(content)
        return content

    def update(self, content: models.PracticeContent) -> models.PracticeContent:
        content.updated_at = datetime.now(timezone.utc)
        self.session.add(content)
        self.session.commit()
        self.session.refresh(content)
        return content

    def get(self, content_id: int) -> Optional[models.PracticeContent]:
        return self.session.get(models.PracticeContent, content_id)

    def list_recent(self, limit: Optional[int] = None) -> List[models.PracticeContent]:
        """Return content newest first, optionally capped at `limit`."""
        stmt = select(models.PracticeContent).order_by(
            models.PracticeContent.created_at.desc(), models.PracticeContent.id.desc()
        )
        if limit:
            stmt = stmt.limit(limit)
        return self.session.exec(stmt).all()

    def list_by_ids(self, ids: List[int]) -> List[models.PracticeContent]:
        if not ids:
            return []
        stmt = select(models.PracticeContent).where(models.PracticeContent.id.in_(ids))
        return self.session.exec(stmt).all()

    def list_created_by(self, user_id: int) -> List[models.PracticeContent]:
        stmt = select(models.PracticeContent).where(models.PracticeContent.created_by == user_id).order_by(
            models.PracticeContent.created_at.desc(), models.PracticeContent.id.desc()
        )
        return self.session.exec(stmt).all()


class QuestionRepository:
    """Bulk inserts and per-content reads of `Question` rows."""
    def __init__(self, session: Session):
        self.session = session

    def create_many(self, questions: List[models.Question]) -> List[models.Question]:
        """Insert all `questions` in a single commit."""
        for q in questions:
            self.session.add(q)
        self.session.commit()
        for q in questions:
            self.session.refresh(q)
        return questions

    def list_for_content(self, content_id: int) -> List[models.Question]:
        stmt = select(models.Question).where(models.Question.practice_content_id == content_id).order_by(models.Question.id)
        return self.session.exec(stmt).all()


class ActivityRepository:
    def __init__(self, session: Session):
        self.session = session

    def create(self, activity: models.UserActivity) -> models.UserActivity:
        self.session.add(activity)
        self.session.commit()
        self.session.refresh(activity)
        return activity

    def get(self, activity_id: int) -> Optional[models.UserActivity]:
        return self.session.get(models.UserActivity, activity_id)

    def save(self, activity: models.UserActivity) -> models.UserActivity:
        self.session.add(activity)
        self.session.commit()
        self.session.refresh(activity)
        return activity

    def list_for_user(self, user_id: int, activity_type: Optional[str] = None, limit: Optional[int] = None) -> List[models.UserActivity]:
        """Return a user's activity rows, newest first."""
        stmt = select(models.UserActivity).where(models.UserActivity.user_id == user_id)
        if activity_type:
            stmt = stmt.where(models.UserActivity.activity_type == activity_type)
        stmt = stmt.order_by(models.UserActivity.started_at.desc(), models.UserActivity.id.desc())
        if limit:
            stmt = stmt.limit(limit)
        return self.session.exec(stmt).all()


class StatsRepository:
    def __init__(self, session: Session):
        self.session = session

    def get_for_user(self, user_id: int) -> Optional[models.UserStats]:
        stmt = select(models.UserStats).where(models.UserStats.user_id == user_id)
        return self.session.exec(stmt).first()

    def get_or_create(self, user_id: int) -> models.UserStats:
        """Return the stats row for `user_id`, creating an empty one if missing."""
        existing = self.get_for_user(user_id)
        if existing:
            return existing
        stats = models.UserStats(user_id=user_id)
        self.session.add(stats)
        self.session.commit()
        self.session.refresh(stats)
        return stats

    def save(self, stats: models.UserStats) -> models.UserStats:
        stats.updated_at = datetime.now(timezone.utc)
        self.session.add(stats)
        self.session.commit()
        self.session.refresh(stats)
        return stats


class SavedRepository:
    """Repository for library bookmarks."""
    def __init__(self, session: Session):
        self.session = session

    def save(self, user_id: int, content_id: int) -> models.SavedPractice:
        """Bookmark `content_id` for `user_id`; idempotent."""
        existing = self.session.exec(
            select(models.SavedPractice).where(
                models.SavedPractice.user_id == user_id,
                models.SavedPractice.practice_content_id == content_id,
            )
        ).first()
        if existing:
            return existing
        saved = models.SavedPractice(user_id=user_id, practice_content_id=content_id)
        self.session.add(saved)
        self.session.commit()
        self.session.refresh(saved)
        return saved

    def list_for_user(self, user_id: int) -> List[models.SavedPractice]:
        stmt = select(models.SavedPractice).where(models.SavedPractice.user_id == user_id).order_by(
            models.SavedPractice.created_at.desc(), models.SavedPractice.id.desc()
        )
        return self.session.exec(stmt).all()
