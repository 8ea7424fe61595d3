"""Email/password auth service backed by the ``auth_users`` table.

The rest of the application treats this module as an external collaborator:
it hands out sessions, keeps free-form user metadata and announces session
changes to whoever subscribed through :meth:`IdentityProvider.on_auth_state_change`.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable
import logging

from flask_login import current_user
from werkzeug.security import check_password_hash, generate_password_hash

from app.core.errors import RemoteError, remote_call
from app.core.extensions import db
from app.core.models import AuthIdentity, utcnow

logger = logging.getLogger(__name__)

SIGNED_IN = "SIGNED_IN"
SIGNED_OUT = "SIGNED_OUT"


@dataclass(frozen=True)
class AuthSession:
    user_id: str
    email: str
    user_metadata: dict = field(default_factory=dict)

    @classmethod
    def from_identity(cls, identity: AuthIdentity) -> "AuthSession":
        return cls(user_id=identity.id, email=identity.email, user_metadata=dict(identity.user_metadata or {}))


AuthListener = Callable[[str, "AuthSession | None"], None]


class IdentityProvider:
    def __init__(self) -> None:
        self._listeners: list[AuthListener] = []

    def on_auth_state_change(self, callback: AuthListener) -> Callable[[], None]:
        self._listeners.append(callback)

        def unsubscribe() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)

        return unsubscribe

    def _emit(self, event: str, session: AuthSession | None) -> None:
        for listener in list(self._listeners):
            listener(event, session)

    def sign_in_with_password(self, email: str, password: str) -> AuthSession:
        with remote_call("auth.sign_in"):
            identity = AuthIdentity.query.filter_by(email=(email or "").strip().lower()).first()
            if identity is None or not check_password_hash(identity.password_hash, password or ""):
                raise RemoteError("Invalid login credentials")
            identity.last_sign_in_at = utcnow()
            db.session.commit()
        session = AuthSession.from_identity(identity)
        logger.info("User signed in", extra={"auth_user_id": session.user_id})
        self._emit(SIGNED_IN, session)
        return session

    def sign_up(self, email: str, password: str, metadata: dict | None = None) -> AuthSession:
        normalized = (email or "").strip().lower()
        with remote_call("auth.sign_up"):
            if AuthIdentity.query.filter_by(email=normalized).first() is not None:
                raise RemoteError("User already registered")
            identity = AuthIdentity(
                email=normalized,
                password_hash=generate_password_hash(password),
                user_metadata=dict(metadata or {}),
            )
            db.session.add(identity)
            db.session.commit()
        return AuthSession.from_identity(identity)

    def sign_out(self) -> None:
        session = self.get_session()
        self._emit(SIGNED_OUT, session)
        if session is not None:
            logger.info("User signed out", extra={"auth_user_id": session.user_id})

    def get_session(self) -> AuthSession | None:
        if not current_user.is_authenticated:
            return None
        identity = self.get_identity(current_user.get_id())
        return AuthSession.from_identity(identity) if identity else None

    def get_identity(self, user_id: str) -> AuthIdentity | None:
        with remote_call("auth.get_identity"):
            return db.session.get(AuthIdentity, user_id)
