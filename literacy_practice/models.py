"""SQLModel data models.

This module defines the tables the application reads and writes. Table
names follow the hosted schema the client was written against
(`practice_content`, `questions`, `user_activity`, ...). Question payloads
are stored in a loosely-typed JSON column and are re-parsed at read time
by `utils.normalize`.
"""

from typing import Any, Optional
from sqlmodel import SQLModel, Field
from sqlalchemy import Column, JSON
from datetime import datetime, date, timezone


def _now() -> datetime:
    return datetime.now(timezone.utc)


class User(SQLModel, table=True):
    """A registered user.

    Fields:
    - `email`: unique login name
    - `password_hash`: hashed password string (never store plaintext)
    """
    __tablename__ = "users"
    id: Optional[int] = Field(default=None, primary_key=True)
    email: str = Field(index=True, nullable=False, unique=True)
    password_hash: str
    created_at: datetime = Field(default_factory=_now)


class Profile(SQLModel, table=True):
    """Public profile row, keyed by the owning user's id."""
    __tablename__ = "profiles"
    id: int = Field(primary_key=True, foreign_key="users.id")
    first_name: str
    last_name: str
    school: Optional[str] = None
    grade: Optional[str] = None
    bio: Optional[str] = None
    profile_picture_url: Optional[str] = None
    created_at: datetime = Field(default_factory=_now)
    updated_at: datetime = Field(default_factory=_now)


class Document(SQLModel, table=True):
    """An uploaded reading document (PDF, DOCX or plain text)."""
    __tablename__ = "documents"
    id: Optional[int] = Field(default=None, primary_key=True)
    title: str
    description: Optional[str] = None
    file_url: str
    created_at: datetime = Field(default_factory=_now)


class PracticeContent(SQLModel, table=True):
    """One reading passage plus its question set."""
    __tablename__ = "practice_content"
    id: Optional[int] = Field(default=None, primary_key=True)
    title: str = Field(index=True)
    description: Optional[str] = None
    difficulty: str = "medium"
    time_estimate: str = "15 mins"
    question_type: str
    image_path: Optional[str] = None
    document_id: Optional[int] = Field(default=None, foreign_key="documents.id")
    created_by: Optional[int] = Field(default=None, foreign_key="users.id", index=True)
    created_at: datetime = Field(default_factory=_now, index=True)
    updated_at: datetime = Field(default_factory=_now)


class Question(SQLModel, table=True):
    """A question owned by exactly one `PracticeContent`.

    `options` holds whatever shape the author stored: a list of option
    strings, a list of matching pairs, a JSON-encoded string of either, or
    nothing at all.
    """
    __tablename__ = "questions"
    id: Optional[int] = Field(default=None, primary_key=True)
    practice_content_id: int = Field(foreign_key="practice_content.id", index=True, nullable=False)
    question_text: str
    question_type: str
    options: Optional[Any] = Field(default=None, sa_column=Column(JSON))
    correct_answer: Optional[str] = None
    points: Optional[int] = None
    word_limit: Optional[int] = None
    rubric: Optional[str] = None
    created_at: datetime = Field(default_factory=_now)


class UserActivity(SQLModel, table=True):
    """One practice attempt: created as `started`, updated to `completed`."""
    __tablename__ = "user_activity"
    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="users.id", index=True)
    practice_content_id: Optional[int] = Field(default=None, foreign_key="practice_content.id")
    activity_type: str = "started"
    score: Optional[int] = None
    total_questions: Optional[int] = None
    correct_answers: Optional[int] = None
    time_spent_seconds: Optional[int] = None
    started_at: datetime = Field(default_factory=_now)
    completed_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=_now)


class UserStats(SQLModel, table=True):
    """Per-user aggregate counters and practice streaks."""
    __tablename__ = "user_stats"
    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="users.id", unique=True, index=True)
    total_practice_sessions: int = 0
    total_questions_answered: int = 0
    total_correct_answers: int = 0
    total_time_spent_seconds: int = 0
    current_streak_days: int = 0
    longest_streak_days: int = 0
    last_practice_date: Optional[date] = None
    created_at: datetime = Field(default_factory=_now)
    updated_at: datetime = Field(default_factory=_now)


class SavedPractice(SQLModel, table=True):
    """A user's bookmark of a practice content item."""
    __tablename__ = "saved_practice"
    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="users.id", index=True)
    practice_content_id: int = Field(foreign_key="practice_content.id")
    created_at: datetime = Field(default_factory=_now)
