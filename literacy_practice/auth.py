"""Authentication helpers and FastAPI security dependencies.

This module provides utilities to decode JWT tokens and two FastAPI
dependencies: `get_current_user`, which gates a route behind a valid
bearer token, and `get_optional_user`, which resolves the user when a
token is present and returns `None` otherwise.

A gated route that is hit without a usable token raises `LoginRequired`.
The application turns it into a redirect to `/auth?next=<path>` for
browsers and a 401 JSON body carrying the same `login_url` for API
clients, so the originally requested location is never lost.
"""

from typing import Optional
from urllib.parse import quote
from fastapi import Depends, HTTPException, Request, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
import jwt
from .services import JWT_SECRET, JWT_ALGORITHM
from sqlmodel import Session
from .database import get_session
from . import models, repositories

bearer_scheme = HTTPBearer(auto_error=False)


def login_url(next_path: str) -> str:
    return f"/auth?next={quote(next_path or '/', safe='/')}"


class LoginRequired(Exception):
    """Raised by gated routes when the caller is not signed in."""

    def __init__(self, next_path: str, detail: str = "not authenticated"):
        super().__init__(detail)
        self.next_path = next_path
        self.detail = detail

    @property
    def login_url(self) -> str:
        return login_url(self.next_path)


def decode_token(token: str):
    """Decode and verify a JWT token.

    Returns the decoded payload on success or raises an HTTPException
    with status 401 on failure.
    """
    try:
        payload = jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGORITHM])
        return payload
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=401, detail='token expired')
    except jwt.InvalidTokenError:
        raise HTTPException(status_code=401, detail='invalid token')


def _resolve_user(credentials: Optional[HTTPAuthorizationCredentials], db: Session) -> models.User:
    if credentials is None:
        raise HTTPException(status_code=401, detail='not authenticated')
    payload = decode_token(credentials.credentials)
    user_id = payload.get('user_id')
    if not user_id:
        raise HTTPException(status_code=401, detail='invalid token payload')
    user = repositories.UserRepository(db).get(user_id)
    if not user:
        raise HTTPException(status_code=401, detail='user not found')
    return user


def _requested_path(request: Request) -> str:
    path = request.url.path
    if request.url.query:
        path = f"{path}?{request.url.query}"
    return path


def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Security(bearer_scheme),
    db: Session = Depends(get_session),
) -> models.User:
    """FastAPI dependency that returns the authenticated user.

    Any authentication problem (missing, expired or invalid token,
    unknown user) raises `LoginRequired` remembering the requested path.
    """
    try:
        return _resolve_user(credentials, db)
    except HTTPException as exc:
        raise LoginRequired(_requested_path(request), detail=exc.detail)


def get_optional_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Security(bearer_scheme),
    db: Session = Depends(get_session),
) -> Optional[models.User]:
    """Like `get_current_user` but returns `None` for anonymous callers."""
    try:
        return _resolve_user(credentials, db)
    except HTTPException:
        return None
