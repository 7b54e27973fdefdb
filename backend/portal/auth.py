"""Authentication guard and collaborator dependencies.

The collaborators (document store, identity provider, profile store)
are provided through FastAPI dependencies so tests can swap them with
`app.dependency_overrides`. `require_principal` is the guard attached
to protected routers: it resolves the bearer token through the identity
provider and raises 401 before the route body runs.
"""

from typing import Optional

from fastapi import Depends, HTTPException, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlmodel import Session

from .config import settings
from .database import get_session
from .identity import IdentityProvider, LocalIdentityProvider, Principal, TokenDenylist
from .profiles import ProfileStore
from .store import DocumentStore, InMemoryDocumentStore, SQLDocumentStore

bearer_scheme = HTTPBearer(auto_error=False)

_memory_store = InMemoryDocumentStore()
_denylist = TokenDenylist()


def get_store(db: Session = Depends(get_session)) -> DocumentStore:
    """Document store for the current request, per `settings.STORE_BACKEND`."""
    if settings.STORE_BACKEND == "memory":
        return _memory_store
    return SQLDocumentStore(db)


def get_profiles(store: DocumentStore = Depends(get_store)) -> ProfileStore:
    return ProfileStore(store)


def get_identity(db: Session = Depends(get_session), profiles: ProfileStore = Depends(get_profiles)) -> IdentityProvider:
    """Identity provider wired to create default profiles on sign-in."""
    provider = LocalIdentityProvider(db, denylist=_denylist)
    provider.on_change(profiles.ensure)
    return provider


def bearer_token(credentials: Optional[HTTPAuthorizationCredentials] = Security(bearer_scheme)) -> Optional[str]:
    return credentials.credentials if credentials else None


def require_principal(
    token: Optional[str] = Depends(bearer_token),
    identity: IdentityProvider = Depends(get_identity),
) -> Principal:
    """FastAPI dependency that returns the authenticated principal.

    Raises HTTPException(401) when the token is missing, invalid,
    expired, signed out, or belongs to a deleted user.
    """
    if not token:
        raise HTTPException(status_code=401, detail="not authenticated", headers={"WWW-Authenticate": "Bearer"})
    principal = identity.current_user(token)
    if principal is None:
        raise HTTPException(status_code=401, detail="invalid token", headers={"WWW-Authenticate": "Bearer"})
    return principal
