"""Pydantic request/response schemas used by the API.

Schemas keep API input/output shapes stable and carry the form-level
validation rules (registration, profile edits, question drafts).
"""

import re
from pydantic import BaseModel, Field, field_validator, model_validator
from typing import Any, Dict, List, Optional

EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def _check_email(value: str) -> str:
    value = (value or "").strip().lower()
    if not EMAIL_RE.match(value):
        raise ValueError("Invalid email address")
    return value


class RegisterIn(BaseModel):
    """Payload for the registration endpoint."""
    email: str
    password: str = Field(min_length=8)
    confirm_password: str
    first_name: str = Field(min_length=2)
    last_name: str = Field(min_length=2)

    @field_validator("email")
    @classmethod
    def _email(cls, v: str) -> str:
        return _check_email(v)

    @model_validator(mode="after")
    def _passwords_match(self):
        if self.password != self.confirm_password:
            raise ValueError("Passwords don't match")
        return self


class LoginIn(BaseModel):
    email: str
    password: str

    @field_validator("email")
    @classmethod
    def _email(cls, v: str) -> str:
        return (v or "").strip().lower()


class TokenOut(BaseModel):
    """Authentication response containing an access token."""
    access_token: str
    token_type: str = "bearer"


class ProfileUpdate(BaseModel):
    first_name: Optional[str] = Field(default=None, min_length=1)
    last_name: Optional[str] = Field(default=None, min_length=1)
    school: Optional[str] = None
    grade: Optional[str] = None
    bio: Optional[str] = None


class MatchingPairIn(BaseModel):
    left: str
    right: str


class QuestionDraft(BaseModel):
    """A question entered in step 3 of the authoring wizard."""
    text: str
    type: str
    options: Optional[List[Any]] = None
    correct_answer: Optional[str] = None
    pairs: Optional[List[MatchingPairIn]] = None
    points: Optional[int] = Field(default=None, ge=1)
    word_limit: Optional[int] = Field(default=None, ge=1)
    rubric: Optional[str] = None


class AnswersIn(BaseModel):
    """Answers for an attempt, keyed by question id.

    Matching answers are a list of right-side selections in left-item order.
    """
    answers: Dict[str, Any] = Field(default_factory=dict)
