from __future__ import annotations

import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from app import create_app
from app.core.config import Config
from app.core.extensions import db
from app.core.models import Corresponsal, seed_demo_data


class TestConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    SECRET_KEY = "test-secret"
    LOG_LEVEL = "WARNING"


@pytest.fixture
def app():
    app = create_app(TestConfig)
    with app.app_context():
        db.create_all()
        seed_demo_data(db.session)
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def login_admin(client):
    def _login():
        return client.post(
            "/auth/login",
            data={"email": "admin@assistravel.local", "password": "admin123"},
            follow_redirects=True,
        )

    return _login


@pytest.fixture
def login_user(client):
    def _login():
        return client.post(
            "/auth/login",
            data={"email": "usuario@assistravel.local", "password": "usuario123"},
            follow_redirects=True,
        )

    return _login


@pytest.fixture
def caso_payload(app):
    with app.app_context():
        corresponsal = Corresponsal.query.filter_by(nombre="Iberia Assist").first()
        corresponsal_id = corresponsal.id
    return {
        "corresponsal_id": str(corresponsal_id),
        "nro_caso_assistravel": "AST-2024-123456",
        "nro_caso_corresponsal": "IB-900",
        "fecha_de_inicio": "2024-01-10",
        "pais": "España",
        "fee": "25,50",
        "costo_usd": "100",
        "monto_agregado": "4.50",
        "costo_moneda_local": "",
        "simbolo_ml": "EUR",
        "tiene_factura": "",
        "fecha_emision_factura": "",
        "fecha_vencimiento_factura": "",
        "fecha_pago_factura": "",
        "nro_factura": "",
        "observaciones": "",
    }
