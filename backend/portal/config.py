"""Application settings and validation."""

import os
from pathlib import Path

BASE = Path(__file__).resolve().parent.parent


class Settings:
    ENV: str
    JWT_SECRET: str
    JWT_ALGORITHM: str
    JWT_EXPIRE_HOURS: int
    ALLOW_INSECURE_JWT: bool
    ALLOW_DEV_CORS: bool
    DATABASE_URL: str
    STORE_BACKEND: str
    SESSION_MAX: int
    SESSION_TTL_SECONDS: int
    SIGNIN_RATE_LIMIT_PER_MIN: int
    SIGNIN_RATE_LIMIT_WINDOW_SECONDS: int
    MIN_PASSWORD_LENGTH: int
    LOG_LEVEL: str

    def __init__(self):
        self.ENV = os.getenv("ENV", "dev").lower()
        self.JWT_SECRET = os.getenv("JWT_SECRET", "change_me_for_prod")
        self.JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
        self.JWT_EXPIRE_HOURS = int(os.getenv("JWT_EXPIRE_HOURS", "24"))
        self.ALLOW_INSECURE_JWT = os.getenv("ALLOW_INSECURE_JWT", "false").lower() == "true"
        self.ALLOW_DEV_CORS = os.getenv("ALLOW_DEV_CORS", "true").lower() == "true"
        self.DATABASE_URL = os.getenv("DATABASE_URL", f"sqlite:///{BASE / 'portal.db'}")
        self.STORE_BACKEND = os.getenv("STORE_BACKEND", "sql").lower()
        self.SESSION_MAX = int(os.getenv("SESSION_MAX", "1000"))
        self.SESSION_TTL_SECONDS = int(os.getenv("SESSION_TTL_SECONDS", str(12 * 3600)))
        self.SIGNIN_RATE_LIMIT_PER_MIN = int(os.getenv("SIGNIN_RATE_LIMIT_PER_MIN", "20"))
        self.SIGNIN_RATE_LIMIT_WINDOW_SECONDS = int(os.getenv("SIGNIN_RATE_LIMIT_WINDOW_SECONDS", "60"))
        self.MIN_PASSWORD_LENGTH = int(os.getenv("MIN_PASSWORD_LENGTH", "6"))
        self.LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
        self._validate()

    def _validate(self):
        if self.ENV != "dev" and not self.ALLOW_INSECURE_JWT and self.JWT_SECRET == "change_me_for_prod":
            raise RuntimeError("JWT_SECRET must be set to a non-default value in non-dev environments")
        if self.STORE_BACKEND not in ("sql", "memory"):
            raise RuntimeError(f"STORE_BACKEND must be 'sql' or 'memory', got {self.STORE_BACKEND!r}")


settings = Settings()
