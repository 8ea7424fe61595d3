from __future__ import annotations

import pytest

from app.core.extensions import db
from app.core.models import AuthIdentity, Usuario


def test_protected_pages_redirect_to_login(client):
    for path in ["/dashboard", "/casos", "/casos/nuevo", "/corresponsales"]:
        response = client.get(path)
        assert response.status_code == 302, path
        assert "/auth/login" in response.headers["Location"]


def test_login_success_lands_on_dashboard(client, login_admin):
    response = login_admin()
    assert response.status_code == 200
    assert "Casos abiertos".encode() in response.data
    assert b"Admin Assistravel" in response.data


def test_login_bad_credentials_are_flashed(client):
    response = client.post(
        "/auth/login",
        data={"email": "admin@assistravel.local", "password": "equivocada"},
        follow_redirects=True,
    )
    assert response.status_code == 200
    assert "Credenciales inválidas: Invalid login credentials".encode() in response.data


def test_login_validation_errors_keep_email(client):
    response = client.post("/auth/login", data={"email": "admin@assistravel.local", "password": "123"})
    assert response.status_code == 200
    assert "La contraseña debe tener al menos 6 caracteres".encode() in response.data
    assert b'value="admin@assistravel.local"' in response.data


def test_authenticated_user_is_sent_away_from_login(client, login_user):
    login_user()
    response = client.get("/auth/login")
    assert response.status_code == 302
    assert response.headers["Location"].endswith("/dashboard")


def test_register_then_sign_in(app, client):
    response = client.post(
        "/auth/register",
        data={
            "email": "registro@assistravel.local",
            "password": "clave123",
            "confirm_password": "clave123",
            "nombre": "Registro",
            "apellido": "Nuevo",
            "rol": "user",
        },
        follow_redirects=True,
    )
    assert response.status_code == 200
    assert "Cuenta creada. Ya puedes iniciar sesión".encode() in response.data

    with app.app_context():
        identity = AuthIdentity.query.filter_by(email="registro@assistravel.local").first()
        assert identity is not None
        assert db.session.get(Usuario, identity.id).apellido == "Nuevo"

    login = client.post(
        "/auth/login",
        data={"email": "registro@assistravel.local", "password": "clave123"},
        follow_redirects=True,
    )
    assert b"Registro Nuevo" in login.data


def test_register_password_mismatch(client):
    response = client.post(
        "/auth/register",
        data={
            "email": "otro@assistravel.local",
            "password": "abcdef",
            "confirm_password": "abcdeg",
            "nombre": "Otro",
            "apellido": "Usuario",
            "rol": "user",
        },
    )
    assert response.status_code == 200
    assert "Las contraseñas no coinciden".encode() in response.data


def test_register_existing_email(client):
    response = client.post(
        "/auth/register",
        data={
            "email": "admin@assistravel.local",
            "password": "abcdef",
            "confirm_password": "abcdef",
            "nombre": "Dup",
            "apellido": "Licado",
            "rol": "admin",
        },
    )
    assert response.status_code == 200
    assert b"User already registered" in response.data


def test_logout_ends_session(client, login_admin):
    login_admin()
    response = client.post("/auth/logout", follow_redirects=True)
    assert response.status_code == 200
    assert "Iniciar sesión".encode() in response.data

    again = client.get("/dashboard")
    assert again.status_code == 302


@pytest.mark.parametrize(
    "next_url",
    ["https://evil.example/phish", "//evil.example/phish", "/\\evil.example", "javascript:alert(1)"],
)
def test_language_switch_ignores_external_next(client, next_url):
    response = client.post("/auth/lang", data={"lang": "en", "next": next_url})
    assert response.status_code == 302
    assert "evil.example" not in response.headers["Location"]
    assert "javascript" not in response.headers["Location"]


def test_language_switch_keeps_local_next(client):
    response = client.post("/auth/lang", data={"lang": "en", "next": "/casos?pais=Chile"})
    assert response.headers["Location"].endswith("/casos?pais=Chile")


def test_language_switch(client, login_admin):
    login_admin()
    response = client.post("/auth/lang", data={"lang": "en", "next": "/dashboard"}, follow_redirects=True)
    assert b"Open cases" in response.data
    assert b"Cases needing attention" in response.data
