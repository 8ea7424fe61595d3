from __future__ import annotations

from flask import Blueprint, abort, flash, redirect, render_template, request, url_for
from flask_login import login_required

from app.core.errors import RemoteError, ValidationError
from app.core.models import Corresponsal
from app.core.permissions import require_role
from app.core.state import get_state
from app.core.utils import PAISES

corresponsales_bp = Blueprint("corresponsales", __name__, url_prefix="/corresponsales")


@corresponsales_bp.before_request
@login_required
@require_role("admin")
def _admin_only():
    return None


def _corresponsal_form_data(corresponsal: Corresponsal) -> dict[str, str]:
    return {
        "nombre": corresponsal.nombre,
        "contacto": corresponsal.contacto or "",
        "email": corresponsal.email or "",
        "telefonos": corresponsal.telefonos or "",
        "pagina_web": corresponsal.pagina_web or "",
        "direccion": corresponsal.direccion or "",
        "pais_sede": corresponsal.pais_sede or "",
    }


def _render_form(form: dict, errors: dict[str, str], corresponsal: Corresponsal | None = None):
    return render_template(
        "corresponsales/form.html",
        form=form,
        errors=errors,
        corresponsal=corresponsal,
        paises=PAISES,
    )


@corresponsales_bp.get("")
def list_page():
    state = get_state()
    state.corresponsales.fetch_corresponsales()
    if state.corresponsales.error:
        flash(state.corresponsales.error, "error")
    return render_template("corresponsales/list.html", corresponsales=state.corresponsales.corresponsales)


@corresponsales_bp.route("/nuevo", methods=["GET", "POST"])
def create_page():
    if request.method == "GET":
        return _render_form({}, {})
    try:
        corresponsal = get_state().corresponsales.create_corresponsal(request.form)
    except ValidationError as exc:
        return _render_form(request.form.to_dict(), exc.by_field())
    except RemoteError as exc:
        flash(f"No se pudo crear el corresponsal: {exc.message}", "error")
        return _render_form(request.form.to_dict(), {})
    flash(f"Corresponsal {corresponsal.nombre} creado", "success")
    return redirect(url_for("corresponsales.list_page"))


@corresponsales_bp.route("/<int:corresponsal_id>/editar", methods=["GET", "POST"])
def edit_page(corresponsal_id: int):
    state = get_state()
    corresponsal = state.corresponsales.get_corresponsal_by_id(corresponsal_id)
    if corresponsal is None:
        abort(404)
    if request.method == "GET":
        return _render_form(_corresponsal_form_data(corresponsal), {}, corresponsal=corresponsal)
    try:
        state.corresponsales.update_corresponsal(corresponsal_id, request.form)
    except ValidationError as exc:
        return _render_form(request.form.to_dict(), exc.by_field(), corresponsal=corresponsal)
    except RemoteError as exc:
        flash(f"No se pudo actualizar el corresponsal: {exc.message}", "error")
        return _render_form(request.form.to_dict(), {}, corresponsal=corresponsal)
    flash("Corresponsal actualizado", "success")
    return redirect(url_for("corresponsales.list_page"))


@corresponsales_bp.post("/<int:corresponsal_id>/eliminar")
def delete_page(corresponsal_id: int):
    try:
        get_state().corresponsales.delete_corresponsal(corresponsal_id)
        flash("Corresponsal eliminado junto con sus casos", "success")
    except RemoteError as exc:
        flash(f"No se pudo eliminar el corresponsal: {exc.message}", "error")
    return redirect(url_for("corresponsales.list_page"))
