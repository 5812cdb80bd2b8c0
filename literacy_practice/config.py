"""Application settings and validation."""

import os
from pathlib import Path

BASE = Path(__file__).resolve().parent.parent


class Settings:
    ENV: str
    JWT_SECRET: str
    JWT_ALGORITHM: str
    JWT_EXPIRE_HOURS: int
    DATABASE_URL: str
    STORAGE_DIR: Path
    STORAGE_BUCKET: str
    SIGNED_URL_TTL_SECONDS: int
    MAX_UPLOAD_BYTES: int
    MAX_IMAGE_BYTES: int
    ATTEMPT_TTL_SECONDS: int
    ATTEMPT_MAX: int
    CREATE_RATE_LIMIT_PER_MIN: int
    LOGIN_RATE_LIMIT_PER_MIN: int
    ALLOW_INSECURE_JWT: bool
    ALLOW_DEV_CORS: bool

    def __init__(self):
        self.ENV = os.getenv("ENV", "dev").lower()
        self.JWT_SECRET = os.getenv("JWT_SECRET", "change_me_for_prod")
        self.JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
        self.JWT_EXPIRE_HOURS = int(os.getenv("JWT_EXPIRE_HOURS", "24"))
        self.DATABASE_URL = os.getenv("DATABASE_URL", f"sqlite:///{BASE / 'app.db'}")
        self.STORAGE_DIR = Path(os.getenv("STORAGE_DIR", str(BASE / "data" / "storage"))).expanduser().resolve()
        self.STORAGE_BUCKET = os.getenv("STORAGE_BUCKET", "practice-materials")
        self.SIGNED_URL_TTL_SECONDS = int(os.getenv("SIGNED_URL_TTL_SECONDS", "3600"))
        self.MAX_UPLOAD_BYTES = int(os.getenv("MAX_UPLOAD_BYTES", str(10 * 1024 * 1024)))  # 10 MB default
        self.MAX_IMAGE_BYTES = int(os.getenv("MAX_IMAGE_BYTES", str(5 * 1024 * 1024)))
        self.ATTEMPT_TTL_SECONDS = int(os.getenv("ATTEMPT_TTL_SECONDS", str(6 * 3600)))
        self.ATTEMPT_MAX = int(os.getenv("ATTEMPT_MAX", "2000"))
        self.CREATE_RATE_LIMIT_PER_MIN = int(os.getenv("CREATE_RATE_LIMIT_PER_MIN", "30"))
        self.LOGIN_RATE_LIMIT_PER_MIN = int(os.getenv("LOGIN_RATE_LIMIT_PER_MIN", "60"))
        self.ALLOW_INSECURE_JWT = os.getenv("ALLOW_INSECURE_JWT", "false").lower() == "true"
        self.ALLOW_DEV_CORS = os.getenv("ALLOW_DEV_CORS", "true").lower() == "true"
        self._validate()

    def _validate(self):
        if self.ENV != "dev" and not self.ALLOW_INSECURE_JWT and self.JWT_SECRET == "change_me_for_prod":
            raise RuntimeError("JWT_SECRET must be set to a non-default value in non-dev environments")
        if self.MAX_IMAGE_BYTES <= 0 or self.MAX_UPLOAD_BYTES <= 0:
            raise RuntimeError("upload limits must be positive")


settings = Settings()
