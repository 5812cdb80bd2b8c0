"""Object storage for uploaded images and documents.

Objects live under `<STORAGE_DIR>/<bucket>/`. Reads go through signed
URLs: a short-lived JWT bound to the object path, verified by the
`/storage/{path}` endpoint before the file is served.
"""

import logging
import mimetypes
import re
import uuid
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Optional
import jwt
from .config import settings

logger = logging.getLogger("literacy.storage")

_SAFE_SEGMENT = re.compile(r"^[A-Za-z0-9._-]+$")


class StorageError(Exception):
    """Raised for invalid paths, overwrite conflicts and bad signatures."""


class ObjectStorage:
    def __init__(self, root: Path, bucket: str, secret: str, algorithm: str = "HS256"):
        self.root = Path(root)
        self.bucket = bucket
        self._secret = secret
        self._algorithm = algorithm

    def _resolve(self, path: str) -> Path:
        parts = [p for p in (path or "").split("/") if p]
        if len(parts) < 2 or parts[0] != self.bucket:
            raise StorageError(f"path must start with bucket '{self.bucket}'")
        for part in parts:
            if part in (".", "..") or not _SAFE_SEGMENT.match(part):
                raise StorageError("invalid object path")
        return self.root.joinpath(*parts)

    def object_path(self, filename: str, prefix: Optional[str] = None) -> str:
        """Build a fresh random object path keeping the original extension."""
        ext = Path(filename or "").suffix.lower()
        if not re.match(r"^\.[a-z0-9]{1,8}$", ext):
            ext = ""
        name = f"{uuid.uuid4().hex}{ext}"
        return "/".join(p for p in (self.bucket, prefix, name) if p)

    def upload(self, path: str, payload: bytes, content_type: Optional[str] = None, upsert: bool = False) -> str:
        """Write `payload` at `path`; refuses to overwrite unless `upsert`."""
        target = self._resolve(path)
        if target.exists() and not upsert:
            raise StorageError(f"object already exists: {path}")
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(payload)
        logger.info("stored object %s (%d bytes, %s)", path, len(payload), content_type or "unknown")
        return path

    def exists(self, path: str) -> bool:
        try:
            return self._resolve(path).is_file()
        except StorageError:
            return False

    def open_path(self, path: str) -> Path:
        target = self._resolve(path)
        if not target.is_file():
            raise FileNotFoundError(path)
        return target

    def guess_type(self, path: str) -> str:
        return mimetypes.guess_type(path)[0] or "application/octet-stream"

    def create_signed_token(self, path: str, expires_in: Optional[int] = None) -> str:
        self._resolve(path)
        ttl = expires_in if expires_in is not None else settings.SIGNED_URL_TTL_SECONDS
        expire = datetime.now(timezone.utc) + timedelta(seconds=ttl)
        payload = {"path": path, "exp": int(expire.timestamp())}
        return jwt.encode(payload, self._secret, algorithm=self._algorithm)

    def create_signed_url(self, path: str, expires_in: Optional[int] = None) -> str:
        """Return a relative URL that serves `path` until the token expires."""
        token = self.create_signed_token(path, expires_in)
        return f"/storage/{path}?token={token}"

    def verify_signed_token(self, path: str, token: str) -> None:
        try:
            payload = jwt.decode(token, self._secret, algorithms=[self._algorithm])
        except jwt.ExpiredSignatureError:
            raise StorageError("signed url expired")
        except jwt.InvalidTokenError:
            raise StorageError("invalid signature")
        if payload.get("path") != path:
            raise StorageError("signature does not match object")


storage = ObjectStorage(settings.STORAGE_DIR, settings.STORAGE_BUCKET, settings.JWT_SECRET, settings.JWT_ALGORITHM)
