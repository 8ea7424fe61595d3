"""Per-entity state containers.

Each container keeps the last collection it fetched, a ``loading`` flag and an
``error`` slot. Write operations validate first, call the store, refetch and
re-raise :class:`RemoteError` after recording its message; read operations
record the message and return nothing instead of raising.

The containers are bundled in :class:`AppState`, which the application builds
once per request (see :func:`get_state`).
"""
from __future__ import annotations

from contextlib import contextmanager
from datetime import date
from decimal import Decimal
from typing import Callable, Iterator, Mapping
import logging

from flask import current_app, g
from flask_login import UserMixin, current_user

from app.casos.services import (
    ResultadoPaginado,
    caso_by_id,
    casos_atencion,
    casos_por_pais,
    casos_recientes,
    delete_caso,
    insert_caso,
    kpi_snapshot,
    list_casos,
    update_caso,
)
from app.corresponsales.services import (
    corresponsal_by_id,
    delete_corresponsal,
    insert_corresponsal,
    list_corresponsales,
    update_corresponsal,
)
from app.core.errors import RemoteError, remote_call
from app.core.extensions import db
from app.core.identity import SIGNED_IN, SIGNED_OUT, AuthSession, IdentityProvider
from app.core.models import Caso, Corresponsal, Rol, Usuario
from app.core.validation import (
    FiltrosCaso,
    validate_caso,
    validate_corresponsal,
    validate_login,
    validate_registro,
)

logger = logging.getLogger(__name__)


class AuthUser(UserMixin):
    def __init__(self, id: str, email: str, nombre: str, apellido: str, role: str):
        self.id = id
        self.email = email
        self.nombre = nombre
        self.apellido = apellido
        self.role = role

    @property
    def is_admin(self) -> bool:
        return self.role == Rol.ADMIN.value

    @property
    def full_name(self) -> str:
        return f"{self.nombre} {self.apellido}".strip()

    @classmethod
    def from_profile(cls, profile: Usuario) -> "AuthUser":
        return cls(profile.id, profile.email, profile.nombre, profile.apellido, profile.rol)

    @classmethod
    def from_session(cls, session: AuthSession) -> "AuthUser":
        metadata = session.user_metadata
        return cls(
            session.user_id,
            session.email,
            metadata.get("nombre") or "Usuario",
            metadata.get("apellido") or "",
            metadata.get("rol") or Rol.USER.value,
        )


def _profile(user_id: str) -> Usuario | None:
    with remote_call("usuarios.get"):
        return db.session.get(Usuario, user_id)


def _insert_profile(profile: Usuario) -> None:
    with remote_call("usuarios.insert"):
        db.session.add(profile)
        db.session.commit()


def load_auth_user(identity: IdentityProvider, user_id: str) -> AuthUser | None:
    profile = _profile(user_id)
    if profile is not None:
        return AuthUser.from_profile(profile)
    auth_identity = identity.get_identity(user_id)
    if auth_identity is None:
        return None
    return AuthUser.from_session(AuthSession.from_identity(auth_identity))


class StateContainer:
    def __init__(self) -> None:
        self.loading = False
        self.error: str | None = None

    def clear_error(self) -> None:
        self.error = None

    @contextmanager
    def _writing(self) -> Iterator[None]:
        self.loading = True
        self.error = None
        try:
            yield
        except RemoteError as exc:
            self.error = exc.message
            raise
        finally:
            self.loading = False

    @contextmanager
    def _reading(self) -> Iterator[None]:
        self.loading = True
        self.error = None
        try:
            yield
        except RemoteError as exc:
            self.error = exc.message
        finally:
            self.loading = False


class AuthState(StateContainer):
    def __init__(self, identity: IdentityProvider, user: AuthUser | None = None):
        super().__init__()
        self.identity = identity
        self.user = user

    def sign_in(self, payload: Mapping[str, object]) -> AuthUser | None:
        values = validate_login(payload).unwrap()
        with self._writing():
            # The provider announces SIGNED_IN; handle_session_change fills self.user.
            self.identity.sign_in_with_password(values["email"], values["password"])
        return self.user

    def sign_up(self, payload: Mapping[str, object]) -> AuthSession:
        values = validate_registro(payload).unwrap()
        metadata = {"nombre": values["nombre"], "apellido": values["apellido"], "rol": values["rol"]}
        with self._writing():
            session = self.identity.sign_up(values["email"], values["password"], metadata)
        try:
            _insert_profile(
                Usuario(
                    id=session.user_id,
                    email=session.email,
                    nombre=values["nombre"],
                    apellido=values["apellido"],
                    rol=values["rol"],
                )
            )
        except RemoteError as exc:
            # The identity stays; the profile is mirrored again on first sign-in.
            logger.error(
                "Sign-up partially failed: identity created without profile row",
                extra={"auth_user_id": session.user_id, "error": exc.message},
            )
            self.error = f"Cuenta creada, pero no se pudo guardar el perfil: {exc.message}"
        return session

    def sign_out(self) -> None:
        self.loading = True
        try:
            self.identity.sign_out()
        except RemoteError as exc:
            self.error = exc.message
        finally:
            self.loading = False

    def check_auth(self) -> AuthUser | None:
        with self._reading():
            session = self.identity.get_session()
            if session is None:
                self.user = None
            else:
                profile = _profile(session.user_id)
                if profile is None:
                    logger.warning("Profile row missing during session check", extra={"auth_user_id": session.user_id})
                    self.user = AuthUser.from_session(session)
                else:
                    self.user = AuthUser.from_profile(profile)
            return self.user
        self.user = None
        return None

    def handle_session_change(self, event: str, session: AuthSession | None) -> None:
        if event == SIGNED_OUT:
            self.user = None
        elif event == SIGNED_IN and session is not None:
            self.user = self._mirror_profile(session)

    def _mirror_profile(self, session: AuthSession) -> AuthUser:
        profile = _profile(session.user_id)
        if profile is not None:
            return AuthUser.from_profile(profile)

        logger.warning("Profile row missing, mirroring it from auth metadata", extra={"auth_user_id": session.user_id})
        user = AuthUser.from_session(session)
        try:
            _insert_profile(
                Usuario(id=user.id, email=user.email, nombre=user.nombre, apellido=user.apellido, rol=user.role)
            )
        except RemoteError as exc:
            logger.error("Could not mirror profile row", extra={"auth_user_id": user.id, "error": exc.message})
        return user


class CasosState(StateContainer):
    def __init__(self, page_size: int = 10, created_by: Callable[[], str | None] | None = None):
        super().__init__()
        self.casos: list[Caso] = []
        self.filtros = FiltrosCaso()
        self.paginacion = ResultadoPaginado([], 0, 1, page_size)
        self._created_by = created_by or (lambda: None)

    def fetch_casos(self, filtros: FiltrosCaso | None = None, page: int = 1, limit: int | None = None) -> None:
        filtros = filtros or FiltrosCaso()
        with self._reading():
            result = list_casos(filtros, page, limit or self.paginacion.limit)
            self.casos = result.data
            self.filtros = filtros
            self.paginacion = result

    def get_caso_by_id(self, caso_id: int) -> Caso | None:
        try:
            return caso_by_id(caso_id)
        except RemoteError as exc:
            self.error = exc.message
            return None

    def create_caso(self, payload: Mapping[str, object]) -> Caso:
        values = validate_caso(payload).unwrap()
        with self._writing():
            caso = insert_caso(values, created_by=self._created_by())
            self._refetch()
        return caso

    def update_caso(self, caso_id: int, payload: Mapping[str, object]) -> Caso:
        values = validate_caso(payload).unwrap()
        with self._writing():
            caso = update_caso(caso_id, values)
            self._refetch()
        return caso

    def delete_caso(self, caso_id: int) -> None:
        with self._writing():
            delete_caso(caso_id)
            self._refetch()

    def set_filtros(self, filtros: FiltrosCaso) -> None:
        self.filtros = filtros

    def _refetch(self) -> None:
        self.fetch_casos(self.filtros, self.paginacion.page, self.paginacion.limit)
        if self.error:
            raise RemoteError(self.error)


class CorresponsalesState(StateContainer):
    def __init__(self) -> None:
        super().__init__()
        self.corresponsales: list[Corresponsal] = []

    def fetch_corresponsales(self) -> None:
        with self._reading():
            self.corresponsales = list_corresponsales()

    def get_corresponsal_by_id(self, corresponsal_id: int) -> Corresponsal | None:
        try:
            return corresponsal_by_id(corresponsal_id)
        except RemoteError as exc:
            self.error = exc.message
            return None

    def create_corresponsal(self, payload: Mapping[str, object]) -> Corresponsal:
        values = validate_corresponsal(payload).unwrap()
        with self._writing():
            corresponsal = insert_corresponsal(values)
            self._refetch()
        return corresponsal

    def update_corresponsal(self, corresponsal_id: int, payload: Mapping[str, object]) -> Corresponsal:
        values = validate_corresponsal(payload).unwrap()
        with self._writing():
            corresponsal = update_corresponsal(corresponsal_id, values)
            self._refetch()
        return corresponsal

    def delete_corresponsal(self, corresponsal_id: int) -> None:
        with self._writing():
            delete_corresponsal(corresponsal_id)
            self._refetch()

    def _refetch(self) -> None:
        self.fetch_corresponsales()
        if self.error:
            raise RemoteError(self.error)


class DashboardState(StateContainer):
    def __init__(self) -> None:
        super().__init__()
        self.kpis: dict[str, int | Decimal] | None = None
        self.casos_por_pais: list[dict[str, object]] = []
        self.casos_recientes: list[Caso] = []
        self.casos_atencion: list[Caso] = []

    def fetch_dashboard_data(self, today: date | None = None) -> None:
        with self._reading():
            self.kpis = kpi_snapshot()
            self.casos_por_pais = casos_por_pais()
            self.casos_recientes = casos_recientes()
            self.casos_atencion = casos_atencion(today)


class AppState:
    def __init__(self, identity: IdentityProvider, user: AuthUser | None = None, page_size: int = 10):
        self.auth = AuthState(identity, user)
        self.casos = CasosState(page_size, created_by=self._current_user_id)
        self.corresponsales = CorresponsalesState()
        self.dashboard = DashboardState()

    def _current_user_id(self) -> str | None:
        return self.auth.user.id if self.auth.user else None

    def handle_session_change(self, event: str, session: AuthSession | None) -> None:
        self.auth.handle_session_change(event, session)
        if event == SIGNED_OUT:
            page_size = self.casos.paginacion.limit
            self.casos = CasosState(page_size, created_by=self._current_user_id)
            self.corresponsales = CorresponsalesState()
            self.dashboard = DashboardState()


def get_state() -> AppState:
    if "state" not in g:
        user = current_user._get_current_object() if current_user.is_authenticated else None
        g.state = AppState(
            identity=current_app.extensions["identity"],
            user=user if isinstance(user, AuthUser) else None,
            page_size=current_app.config.get("CASOS_PAGE_SIZE", 10),
        )
    return g.state
