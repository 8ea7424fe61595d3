from __future__ import annotations

from datetime import date, timedelta
from decimal import Decimal

import pytest

from app.core import state as state_module
from app.core.errors import RemoteError, ValidationError
from app.core.extensions import db
from app.core.identity import SIGNED_IN, SIGNED_OUT, IdentityProvider
from app.core.models import AuthIdentity, Caso, Corresponsal, Usuario
from app.core.state import AppState, CasosState, CorresponsalesState, DashboardState, get_state
from app.core.utils import EstadoFactura
from app.core.validation import FiltrosCaso


def _raise_remote(message: str):
    def _fail(*_args, **_kwargs):
        raise RemoteError(message)

    return _fail


def test_fetch_casos_fills_cache_and_pagination(app):
    with app.test_request_context():
        casos = CasosState(page_size=2)
        casos.fetch_casos()
        assert casos.error is None
        assert len(casos.casos) == 2
        assert casos.paginacion.count == 4
        assert casos.paginacion.total_pages == 2

        casos.fetch_casos(FiltrosCaso(pais="México"), page=1, limit=10)
        assert {caso.pais for caso in casos.casos} == {"México"}
        assert casos.filtros.pais == "México"


def test_failed_read_keeps_cache_and_sets_error(app, monkeypatch):
    with app.test_request_context():
        casos = CasosState()
        casos.fetch_casos()
        cached = list(casos.casos)

        monkeypatch.setattr(state_module, "list_casos", _raise_remote("conexión perdida"))
        casos.fetch_casos()

        assert casos.error == "conexión perdida"
        assert casos.casos == cached
        assert casos.loading is False


def test_get_caso_by_id_missing_returns_none(app):
    with app.test_request_context():
        casos = CasosState()
        assert casos.get_caso_by_id(99999) is None
        assert casos.error == "Caso no encontrado"


def test_create_caso_validates_before_store(app, monkeypatch):
    monkeypatch.setattr(state_module, "insert_caso", _raise_remote("no debería llamarse"))
    with app.test_request_context():
        casos = CasosState()
        with pytest.raises(ValidationError):
            casos.create_caso({"pais": "Chile"})
        assert casos.error is None


def test_create_caso_remote_failure_sets_error_and_reraises(app, caso_payload, monkeypatch):
    monkeypatch.setattr(state_module, "insert_caso", _raise_remote("duplicate key"))
    with app.test_request_context():
        casos = CasosState()
        with pytest.raises(RemoteError):
            casos.create_caso(caso_payload)
        assert casos.error == "duplicate key"


def test_create_caso_refetches_and_store_computes_total(app, caso_payload):
    with app.test_request_context():
        casos = CasosState(created_by=lambda: "creator-id")
        caso = casos.create_caso(caso_payload)

        assert casos.casos[0].id == caso.id
        assert casos.paginacion.count == 5
        stored = db.session.get(Caso, caso.id)
        assert Decimal(str(stored.costo_total)) == Decimal("130.00")
        assert stored.created_by == "creator-id"


def test_update_and_delete_caso(app, caso_payload):
    with app.test_request_context():
        casos = CasosState()
        caso_id = casos.create_caso(caso_payload).id

        payload = dict(caso_payload, fee="0", tiene_factura="on", fecha_emision_factura="2024-01-11")
        casos.update_caso(caso_id, payload)
        updated = db.session.get(Caso, caso_id)
        assert updated.tiene_factura is True
        assert Decimal(str(updated.costo_total)) == Decimal("104.50")

        casos.delete_caso(caso_id)
        assert db.session.get(Caso, caso_id) is None
        assert all(item.id != caso_id for item in casos.casos)

        with pytest.raises(RemoteError):
            casos.delete_caso(caso_id)
        assert casos.error == "Caso no encontrado"


def test_delete_corresponsal_cascades_to_cases(app):
    with app.test_request_context():
        mexico = Corresponsal.query.filter_by(nombre="Asistencia Médica México").first()
        mexico_id = mexico.id
        corresponsales = CorresponsalesState()
        corresponsales.delete_corresponsal(mexico_id)

        db.session.expire_all()
        assert db.session.get(Corresponsal, mexico_id) is None
        assert Caso.query.filter_by(corresponsal_id=mexico_id).count() == 0
        assert Caso.query.count() == 2
        assert [c.nombre for c in corresponsales.corresponsales] == ["Andes Travel Care", "Iberia Assist"]


def test_corresponsal_write_validates_first(app):
    with app.test_request_context():
        corresponsales = CorresponsalesState()
        with pytest.raises(ValidationError) as excinfo:
            corresponsales.create_corresponsal({"nombre": "Sin email", "contacto": "X", "pais_sede": "Chile"})
        assert "email" in excinfo.value.by_field()
        assert corresponsales.get_corresponsal_by_id(424242) is None
        assert corresponsales.error == "Corresponsal no encontrado"


def test_dashboard_data_from_store_views(app):
    with app.test_request_context():
        dashboard = DashboardState()
        dashboard.fetch_dashboard_data(date.today())

        assert dashboard.error is None
        assert dashboard.kpis["casos_abiertos"] == 3
        assert dashboard.kpis["facturas_vencidas"] == 1
        assert dashboard.kpis["casos_sin_factura_30d"] == 1

        por_pais = {row["pais"]: row for row in dashboard.casos_por_pais}
        assert por_pais["México"]["total_casos"] == 2
        assert Decimal(str(por_pais["México"]["costo_total_pais"])) == Decimal("2130.00")

        assert len(dashboard.casos_recientes) == 4
        assert [caso.nro_caso_assistravel for caso in dashboard.casos_atencion] == [
            "AST-DEMO-000004",
            "AST-DEMO-000002",
        ]


def test_dashboard_flags_high_cost_cases(app, caso_payload):
    with app.test_request_context():
        CasosState().create_caso(
            dict(caso_payload, nro_caso_assistravel="AST-2024-999999", fecha_de_inicio=date.today().isoformat(), costo_usd="20000")
        )
        dashboard = DashboardState()
        dashboard.fetch_dashboard_data(date.today())
        assert "AST-2024-999999" in [caso.nro_caso_assistravel for caso in dashboard.casos_atencion]


def test_dashboard_failure_goes_to_error_slot(app, monkeypatch):
    monkeypatch.setattr(state_module, "kpi_snapshot", _raise_remote("vista no disponible"))
    with app.test_request_context():
        dashboard = DashboardState()
        dashboard.fetch_dashboard_data()
        assert dashboard.error == "vista no disponible"
        assert dashboard.kpis is None


def test_identity_provider_subscription_and_unsubscribe(app):
    provider = IdentityProvider()
    events: list[str] = []
    unsubscribe = provider.on_auth_state_change(lambda event, _session: events.append(event))

    with app.test_request_context():
        provider.sign_in_with_password("admin@assistravel.local", "admin123")
        unsubscribe()
        provider.sign_in_with_password("admin@assistravel.local", "admin123")

    assert events == [SIGNED_IN]


def test_identity_provider_rejects_bad_credentials(app):
    provider = IdentityProvider()
    with app.test_request_context():
        with pytest.raises(RemoteError, match="Invalid login credentials"):
            provider.sign_in_with_password("admin@assistravel.local", "incorrecta")


def test_sign_in_updates_state_and_flask_login(app):
    with app.test_request_context():
        state = get_state()
        user = state.auth.sign_in({"email": "admin@assistravel.local", "password": "admin123"})

        assert user is not None
        assert user.is_admin
        assert user.full_name == "Admin Assistravel"
        assert state.auth.check_auth().id == user.id


def test_sign_in_mirrors_missing_profile_from_metadata(app):
    with app.test_request_context():
        provider = app.extensions["identity"]
        session = provider.sign_up("sinperfil@assistravel.local", "secreto1", {"nombre": "Ana"})
        assert db.session.get(Usuario, session.user_id) is None

        user = get_state().auth.sign_in({"email": "sinperfil@assistravel.local", "password": "secreto1"})

        profile = db.session.get(Usuario, session.user_id)
        assert profile is not None
        assert (profile.nombre, profile.apellido, profile.rol) == ("Ana", "", "user")
        assert user.role == "user"


def test_sign_up_creates_identity_and_profile(app):
    with app.test_request_context():
        auth = get_state().auth
        session = auth.sign_up(
            {
                "email": "Nueva@Assistravel.local",
                "password": "clave123",
                "confirm_password": "clave123",
                "nombre": "Nueva",
                "apellido": "Operadora",
                "rol": "user",
            }
        )
        assert auth.error is None
        assert session.email == "nueva@assistravel.local"
        assert db.session.get(Usuario, session.user_id).nombre == "Nueva"


def test_sign_up_partial_failure_is_reported(app, monkeypatch):
    monkeypatch.setattr(state_module, "_insert_profile", _raise_remote("permission denied for table usuarios"))
    with app.test_request_context():
        auth = get_state().auth
        session = auth.sign_up(
            {
                "email": "parcial@assistravel.local",
                "password": "clave123",
                "confirm_password": "clave123",
                "nombre": "Parcial",
                "apellido": "Fallo",
                "rol": "user",
            }
        )
        assert auth.error.startswith("Cuenta creada, pero no se pudo guardar el perfil")
        assert AuthIdentity.query.filter_by(email="parcial@assistravel.local").count() == 1
        assert db.session.get(Usuario, session.user_id) is None


def test_sign_up_duplicate_email(app):
    with app.test_request_context():
        auth = get_state().auth
        payload = {
            "email": "admin@assistravel.local",
            "password": "clave123",
            "confirm_password": "clave123",
            "nombre": "Otro",
            "apellido": "Admin",
            "rol": "admin",
        }
        with pytest.raises(RemoteError):
            auth.sign_up(payload)
        assert auth.error == "User already registered"


def test_sign_out_resets_session_scoped_caches(app):
    with app.test_request_context():
        state = AppState(app.extensions["identity"], page_size=3)
        state.casos.fetch_casos()
        state.corresponsales.fetch_corresponsales()
        assert state.casos.casos

        state.handle_session_change(SIGNED_OUT, None)

        assert state.auth.user is None
        assert state.casos.casos == []
        assert state.corresponsales.corresponsales == []
        assert state.casos.paginacion.limit == 3


def test_filter_by_derived_status_matches_derivation(app):
    today = date.today()
    with app.test_request_context():
        casos = CasosState()
        for estado in EstadoFactura:
            casos.fetch_casos(FiltrosCaso(estado_factura=estado))
            assert casos.casos, estado
            assert all(caso.estado_factura == estado for caso in casos.casos)

        casos.fetch_casos(FiltrosCaso(fecha_inicio=today - timedelta(days=41)))
        assert {caso.nro_caso_assistravel for caso in casos.casos} == {"AST-DEMO-000002", "AST-DEMO-000003"}
