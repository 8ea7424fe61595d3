from __future__ import annotations

from datetime import date

import click
from flask import Flask, current_app, flash, g, redirect, render_template, request, url_for
from flask_login import current_user, login_required, login_user, logout_user

from app.casos.routes import casos_bp
from app.core.auth import auth_bp
from app.core.config import Config
from app.core.extensions import db, login_manager, migrate
from app.core.i18n import get_locale, translate
from app.core.identity import SIGNED_IN, SIGNED_OUT, AuthSession, IdentityProvider
from app.core.logging_config import configure_logging
from app.core.models import AuthIdentity, seed_demo_data
from app.core.state import AuthUser, get_state, load_auth_user
from app.core.utils import (
    MONEDAS,
    PAISES,
    currency_symbol,
    estado_factura_class,
    format_currency,
    format_date,
    truncate_text,
)
from app.corresponsales.routes import corresponsales_bp


def create_app(config_object: type[Config] | None = None) -> Flask:
    app = Flask(__name__)
    app.config.from_object(config_object or Config)

    logger = configure_logging(app)

    db.init_app(app)
    migrate.init_app(app, db)
    login_manager.init_app(app)

    identity = IdentityProvider()
    identity.on_auth_state_change(_on_session_changed)
    app.extensions["identity"] = identity

    app.before_request(_build_state)
    app.context_processor(_template_context)

    app.register_blueprint(auth_bp)
    app.register_blueprint(casos_bp)
    app.register_blueprint(corresponsales_bp)

    register_cli(app)
    register_routes(app)
    logger.debug("Application created", extra={"database": app.config["SQLALCHEMY_DATABASE_URI"].split("://")[0]})
    return app


def _build_state() -> None:
    g.pop("state", None)
    get_state()


def _on_session_changed(event: str, session: AuthSession | None) -> None:
    state = get_state()
    state.handle_session_change(event, session)
    if event == SIGNED_IN and state.auth.user is not None:
        login_user(state.auth.user)
    elif event == SIGNED_OUT:
        logout_user()


def register_routes(app: Flask) -> None:
    @app.get("/")
    def home():
        return redirect(url_for("dashboard_page"))

    @app.get("/dashboard")
    @login_required
    def dashboard_page():
        dashboard = get_state().dashboard
        dashboard.fetch_dashboard_data(date.today())
        if dashboard.error:
            flash(f"No se pudieron cargar los indicadores: {dashboard.error}", "error")
        return render_template("dashboard.html", dashboard=dashboard, today=date.today())

    @app.errorhandler(401)
    def unauthorized(_error):
        return redirect(url_for("auth.login", next=request.path))

    @app.errorhandler(403)
    def forbidden(_error):
        return render_template("errors/403.html"), 403

    @app.errorhandler(404)
    def not_found(_error):
        return render_template("errors/404.html"), 404


def register_cli(app: Flask) -> None:
    @app.cli.command("seed-demo")
    @click.option("--reset", is_flag=True, help="Delete existing data before seed.")
    def seed_demo(reset: bool) -> None:
        """Seed demo users, correspondents and cases."""
        if reset:
            db.drop_all()
            db.create_all()
        if not AuthIdentity.query.first():
            seed_demo_data(db.session)
            click.echo("Demo data seeded.")
        else:
            click.echo("Seed skipped: existing users found.")


def _template_context() -> dict[str, object]:
    return {
        "t": translate,
        "current_lang": get_locale(),
        "is_admin": bool(getattr(current_user, "is_admin", False)),
        "estado_factura_class": estado_factura_class,
        "format_currency": format_currency,
        "format_date": format_date,
        "currency_symbol": currency_symbol,
        "truncate_text": truncate_text,
        "paises": PAISES,
        "monedas": MONEDAS,
    }


@login_manager.user_loader
def load_user(user_id: str) -> AuthUser | None:
    return load_auth_user(current_app.extensions["identity"], user_id)
