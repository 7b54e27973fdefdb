"""Identity provider: sign-up, sign-in, sign-out and the current principal.

`LocalIdentityProvider` stores users in the `user` table with passlib
password hashes and hands out signed JWT bearer tokens. Sign-out puts the
token id on a shared denylist. Listeners registered with `on_change`
receive the new `Principal` (or `None` after sign-out) on every
transition.
"""

import logging
import re
import threading
import time
import uuid
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, List, Optional

import jwt
from passlib.context import CryptContext
from pydantic import BaseModel
from sqlmodel import Session

from . import models, repositories
from .config import settings
from .errors import AuthError

PWD_CTX = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")
EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

logger = logging.getLogger("portal.identity")


class Principal(BaseModel):
    """The authenticated user as seen by the rest of the portal."""
    uid: str
    email: str


Listener = Callable[[Optional[Principal]], None]


class TokenDenylist:
    """Ids of signed-out tokens, shared by every provider instance.

    Each id is kept until its token's own expiry; after that the
    signature check rejects the token anyway, so the entry is pruned.
    """

    def __init__(self, clock: Callable[[], float] = time.time):
        self._revoked: Dict[str, float] = {}
        self._lock = threading.Lock()
        self._clock = clock

    def revoke(self, jti: str, expires_at: float) -> None:
        with self._lock:
            self._prune()
            self._revoked[jti] = expires_at

    def _prune(self) -> None:
        now = self._clock()
        for jti in [j for j, exp in self._revoked.items() if exp <= now]:
            del self._revoked[jti]

    def __contains__(self, jti) -> bool:
        with self._lock:
            return jti in self._revoked

    def __len__(self) -> int:
        with self._lock:
            return len(self._revoked)


class IdentityProvider(ABC):
    def __init__(self):
        self._listeners: List[Listener] = []

    @abstractmethod
    def sign_up(self, email: str, password: str) -> str:
        """Create an account and return a session token."""

    @abstractmethod
    def sign_in(self, email: str, password: str) -> str:
        """Verify credentials and return a session token."""

    @abstractmethod
    def sign_out(self, token: str) -> None:
        """Invalidate `token`."""

    @abstractmethod
    def current_user(self, token: Optional[str]) -> Optional[Principal]:
        """Return the principal for `token`, or None when it is not valid."""

    def on_change(self, callback: Listener) -> Callable[[], None]:
        """Subscribe to principal transitions; returns an unsubscribe function."""
        self._listeners.append(callback)

        def unsubscribe():
            if callback in self._listeners:
                self._listeners.remove(callback)
        return unsubscribe

    def _notify(self, principal: Optional[Principal]) -> None:
        for listener in list(self._listeners):
            listener(principal)


class LocalIdentityProvider(IdentityProvider):
    def __init__(
        self,
        session: Session,
        denylist: Optional[TokenDenylist] = None,
        secret: Optional[str] = None,
        algorithm: Optional[str] = None,
        expire_hours: Optional[int] = None,
        min_password_length: Optional[int] = None,
    ):
        super().__init__()
        self.session = session
        self.user_repo = repositories.UserRepository(session)
        self.denylist = denylist if denylist is not None else TokenDenylist()
        self.secret = secret or settings.JWT_SECRET
        self.algorithm = algorithm or settings.JWT_ALGORITHM
        self.expire_hours = expire_hours or settings.JWT_EXPIRE_HOURS
        self.min_password_length = min_password_length or settings.MIN_PASSWORD_LENGTH

    def sign_up(self, email, password):
        email = (email or "").strip().lower()
        if not EMAIL_RE.match(email):
            raise AuthError("Invalid email address.")
        if len(password or "") < self.min_password_length:
            raise AuthError(f"Password should be at least {self.min_password_length} characters.")
        if self.user_repo.get_by_email(email):
            raise AuthError("Email already in use.")
        user = self.user_repo.create(models.User(email=email, password_hash=PWD_CTX.hash(password)))
        logger.info("user signed up: %s", user.id)
        return self._start_session(user)

    def sign_in(self, email, password):
        # One lookup by email then verify the supplied password hash.
        user = self.user_repo.get_by_email((email or "").strip().lower())
        if not user or not PWD_CTX.verify(password or "", user.password_hash):
            raise AuthError("Invalid email or password.")
        return self._start_session(user)

    def sign_out(self, token):
        payload = self._decode(token)
        if payload is None:
            return
        self.denylist.revoke(payload.get("jti", ""), payload.get("exp", float("inf")))
        self._notify(None)

    def current_user(self, token):
        payload = self._decode(token)
        if payload is None or payload.get("jti") in self.denylist:
            return None
        user_id = payload.get("user_id")
        if not user_id:
            return None
        user = self.user_repo.get(user_id)
        if not user:
            return None
        return Principal(uid=str(user.id), email=user.email)

    def _start_session(self, user: models.User) -> str:
        expire = datetime.now(timezone.utc) + timedelta(hours=self.expire_hours)
        payload = {
            "user_id": user.id,
            "email": user.email,
            "jti": uuid.uuid4().hex,
            "exp": int(expire.timestamp()),
        }
        token = jwt.encode(payload, self.secret, algorithm=self.algorithm)
        self._notify(Principal(uid=str(user.id), email=user.email))
        return token

    def _decode(self, token: Optional[str]) -> Optional[dict]:
        if not token:
            return None
        try:
            return jwt.decode(token, self.secret, algorithms=[self.algorithm])
        except jwt.PyJWTError:
            return None
