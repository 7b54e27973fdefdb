"""User profiles stored in the `users` document collection."""

import logging
from typing import Optional

from pydantic import BaseModel

from .identity import Principal
from .store import DocumentStore

USERS = "users"

logger = logging.getLogger("portal.profiles")


class Profile(BaseModel):
    name: str = ""
    email: str = ""


def default_profile(principal: Principal) -> Profile:
    """Profile created the first time a principal shows up."""
    name = principal.email.split("@")[0] if principal.email else ""
    return Profile(name=name or "User", email=principal.email or "")


class ProfileStore:
    """`get`/`upsert` over the profile documents.

    `upsert` merges: fields missing from the partial profile are left as
    they are.
    """
    def __init__(self, store: DocumentStore):
        self.store = store

    def get(self, user_id: str) -> Optional[Profile]:
        snapshot = self.store.get(USERS, user_id)
        if not snapshot.exists:
            return None
        return Profile.model_validate(snapshot.data or {})

    def upsert(self, user_id: str, partial: dict) -> Profile:
        allowed = {k: v for k, v in partial.items() if k in Profile.model_fields and v is not None}
        self.store.set(USERS, user_id, allowed, merge=True)
        return self.get(user_id)

    def ensure(self, principal: Optional[Principal]) -> Optional[Profile]:
        """Return the principal's profile, creating the default one if missing.

        Suitable as an `IdentityProvider.on_change` listener.
        """
        if principal is None:
            return None
        try:
            existing = self.get(principal.uid)
            if existing is not None:
                return existing
            profile = default_profile(principal)
            self.store.set(USERS, principal.uid, profile.model_dump())
            logger.info("created default profile for %s", principal.uid)
            return profile
        except Exception:
            # the sign-in itself succeeded; fall back to an unsaved profile
            logger.exception("profile lookup failed for %s", principal.uid)
            return default_profile(principal)
