import logging
import uuid
from collections import OrderedDict
from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from . import crud
from .backend import BackendClient
from .db import get_db
from .errors import BackendError, OnboardingRequired, SignInRequired
from .gate import ADMIN, AccessPolicy, needs_onboarding
from .schemas import Credentials, Identity

logger = logging.getLogger(__name__)

AUTH_COOKIE = "menulink_auth"
MAX_SESSIONS = 10000


class AuthSession:
    """Sign-in state of one client, found through its auth cookie."""

    def __init__(self, session_id: str, token: str, email: Optional[str] = None):
        self.session_id = session_id
        self.token = token
        self.email = email
        self.identity: Optional[Identity] = None


class AuthSessions:
    """Sign-in sessions of every client.

    ``load`` restores a persisted session for the cookie it was issued to,
    ``sign_in``/``sign_up`` open a new one and ``sign_out`` tears it down.
    """

    def __init__(self, max_sessions: int = MAX_SESSIONS):
        self.max_sessions = max_sessions
        self._sessions: "OrderedDict[str, AuthSession]" = OrderedDict()

    def __len__(self) -> int:
        return len(self._sessions)

    def _remember(self, session: AuthSession) -> None:
        self._sessions[session.session_id] = session
        self._sessions.move_to_end(session.session_id)
        while len(self._sessions) > self.max_sessions:
            # evicted sessions stay in the database and reload on demand
            self._sessions.popitem(last=False)

    def load(self, db: Session, session_id: str) -> Optional[AuthSession]:
        session = self._sessions.get(session_id)
        if session is not None:
            self._sessions.move_to_end(session_id)
            return session
        row = crud.get_stored_token(db, session_id)
        if row is None:
            return None
        session = AuthSession(row.session_id, row.token, row.email)
        self._remember(session)
        logger.info("restored sign-in for %s", row.email or "unknown user")
        return session

    async def sign_in(self, backend: BackendClient, db: Session, credentials: Credentials) -> AuthSession:
        token = await backend.sign_in(credentials)
        return self._start(db, token, credentials.email)

    async def sign_up(self, backend: BackendClient, db: Session, credentials: Credentials) -> AuthSession:
        token = await backend.sign_up(credentials)
        return self._start(db, token, credentials.email)

    def _start(self, db: Session, token: str, email: str) -> AuthSession:
        session = AuthSession(uuid.uuid4().hex, token, email)
        crud.store_token(db, session.session_id, token, email)
        self._remember(session)
        return session

    def sign_out(self, db: Session, session_id: str) -> None:
        self._sessions.pop(session_id, None)
        crud.clear_token(db, session_id)


@dataclass
class Owner:
    token: str
    slug: str


def get_backend(request: Request) -> BackendClient:
    return request.app.state.backend


def get_auth(request: Request) -> AuthSessions:
    return request.app.state.auth


def get_policy(request: Request) -> AccessPolicy:
    return request.app.state.policy


def get_auth_session(
    request: Request,
    db: Session = Depends(get_db),
    auth: AuthSessions = Depends(get_auth),
) -> Optional[AuthSession]:
    session_id = request.cookies.get(AUTH_COOKIE)
    if not session_id:
        return None
    return auth.load(db, session_id)


def get_token(request: Request, session: Optional[AuthSession] = Depends(get_auth_session)) -> Optional[str]:
    header = request.headers.get("Authorization", "")
    scheme, _, credentials = header.partition(" ")
    if scheme.lower() == "bearer" and credentials.strip():
        return credentials.strip()
    return session.token if session else None


def require_token(token: Optional[str] = Depends(get_token)) -> str:
    if not token:
        raise SignInRequired()
    return token


async def get_current_identity(
    token: Optional[str] = Depends(get_token),
    session: Optional[AuthSession] = Depends(get_auth_session),
    backend: BackendClient = Depends(get_backend),
) -> Optional[Identity]:
    if not token:
        return None
    cached = session is not None and session.token == token
    if cached and session.identity is not None:
        return session.identity
    try:
        identity = await backend.current_user(token)
    except BackendError as exc:
        if exc.status_code in (401, 403):
            return None
        raise
    if cached:
        session.identity = identity
    return identity


async def require_owner(
    token: str = Depends(require_token),
    backend: BackendClient = Depends(get_backend),
) -> Owner:
    try:
        slug = await backend.get_slug(token)
    except BackendError as exc:
        if exc.status_code in (401, 403):
            raise SignInRequired() from exc
        if exc.status_code == 404:
            slug = None
        else:
            raise
    if needs_onboarding(slug):
        raise OnboardingRequired()
    return Owner(token=token, slug=slug)


async def require_admin(
    token: Optional[str] = Depends(get_token),
    identity: Optional[Identity] = Depends(get_current_identity),
    policy: AccessPolicy = Depends(get_policy),
) -> Identity:
    if identity is None or not policy.allows(ADMIN, token, identity):
        raise SignInRequired()
    return identity
