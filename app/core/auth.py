from __future__ import annotations

from urllib.parse import urlsplit

from flask import Blueprint, flash, redirect, render_template, request, session, url_for
from flask_login import current_user, login_required

from app.core.errors import RemoteError, ValidationError
from app.core.i18n import SUPPORTED_LANGS
from app.core.models import Rol
from app.core.state import get_state

auth_bp = Blueprint("auth", __name__, url_prefix="/auth")


@auth_bp.before_request
def redirect_authenticated():
    if current_user.is_authenticated and request.endpoint in {"auth.login", "auth.register"}:
        return redirect(url_for("dashboard_page"))
    return None


@auth_bp.route("/login", methods=["GET", "POST"])
def login():
    errors: dict[str, str] = {}
    if request.method == "POST":
        try:
            get_state().auth.sign_in(request.form)
            return redirect(url_for("dashboard_page"))
        except ValidationError as exc:
            errors = exc.by_field()
        except RemoteError as exc:
            flash(f"Credenciales inválidas: {exc.message}", "error")
    return render_template("auth/login.html", form=request.form, errors=errors)


@auth_bp.route("/register", methods=["GET", "POST"])
def register():
    errors: dict[str, str] = {}
    if request.method == "POST":
        auth = get_state().auth
        try:
            auth.sign_up(request.form)
        except ValidationError as exc:
            errors = exc.by_field()
        except RemoteError as exc:
            flash(f"No se pudo crear la cuenta: {exc.message}", "error")
        else:
            if auth.error:
                flash(auth.error, "warning")
            flash("Cuenta creada. Ya puedes iniciar sesión", "success")
            return redirect(url_for("auth.login"))
    return render_template("auth/register.html", form=request.form, errors=errors, roles=list(Rol))


@auth_bp.post("/logout")
@login_required
def logout():
    get_state().auth.sign_out()
    return redirect(url_for("auth.login"))


@auth_bp.post("/lang")
def set_lang():
    lang = request.form.get("lang", "es")
    if lang not in SUPPORTED_LANGS:
        lang = "es"
    session["lang"] = lang
    next_url = request.form.get("next") or request.referrer or ""
    return redirect(_local_path(next_url) or url_for("dashboard_page"))


def _local_path(url: str) -> str | None:
    parts = urlsplit(url)
    if parts.netloc and parts.netloc != request.host:
        return None
    if parts.scheme and parts.scheme not in {"http", "https"}:
        return None
    path = parts.path or "/"
    # "//evil.example" and "/\evil.example" are read by browsers as another host
    if not path.startswith("/") or path.startswith("//") or path.startswith("/\\"):
        return None
    return f"{path}?{parts.query}" if parts.query else path
