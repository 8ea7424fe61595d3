from __future__ import annotations

from decimal import Decimal, InvalidOperation

from flask import Blueprint, abort, current_app, flash, redirect, render_template, request, url_for
from flask_login import login_required

from app.core.errors import RemoteError, ValidationError
from app.core.models import Caso
from app.core.permissions import require_role
from app.core.state import get_state
from app.core.utils import MONEDAS, PAISES, EstadoFactura, costo_total, generate_case_number
from app.core.validation import FiltrosCaso, validate_filtros

casos_bp = Blueprint("casos", __name__, url_prefix="/casos")

FORM_DATE_FIELDS = ("fecha_de_inicio", "fecha_emision_factura", "fecha_vencimiento_factura", "fecha_pago_factura")


def _is_htmx() -> bool:
    return request.headers.get("HX-Request", "").lower() == "true"


def _new_caso_defaults() -> dict[str, object]:
    return {
        "nro_caso_assistravel": generate_case_number(),
        "fee": "0",
        "costo_usd": "0",
        "monto_agregado": "0",
        "simbolo_ml": "USD",
    }


def _caso_form_data(caso: Caso) -> dict[str, object]:
    data: dict[str, object] = {
        "corresponsal_id": str(caso.corresponsal_id),
        "nro_caso_assistravel": caso.nro_caso_assistravel,
        "nro_caso_corresponsal": caso.nro_caso_corresponsal or "",
        "pais": caso.pais,
        "fee": str(caso.fee),
        "costo_usd": str(caso.costo_usd),
        "monto_agregado": str(caso.monto_agregado),
        "costo_moneda_local": "" if caso.costo_moneda_local is None else str(caso.costo_moneda_local),
        "simbolo_ml": caso.simbolo_ml,
        "informe_medico": caso.informe_medico,
        "tiene_factura": caso.tiene_factura,
        "nro_factura": caso.nro_factura or "",
        "observaciones": caso.observaciones or "",
    }
    for name in FORM_DATE_FIELDS:
        value = getattr(caso, name)
        data[name] = value.isoformat() if value else ""
    return data


def _render_form(form: dict, errors: dict[str, str], caso: Caso | None = None):
    state = get_state()
    state.corresponsales.fetch_corresponsales()
    return render_template(
        "casos/form.html",
        form=form,
        errors=errors,
        caso=caso,
        corresponsales=state.corresponsales.corresponsales,
        paises=PAISES,
        monedas=MONEDAS,
        total=costo_total(*(_preview_amount(form.get(key)) for key in ("fee", "costo_usd", "monto_agregado"))),
    )


def _preview_amount(value: object) -> Decimal:
    try:
        amount = Decimal(str(value or "0").strip().replace(",", "."))
    except InvalidOperation:
        return Decimal("0")
    return amount if amount.is_finite() else Decimal("0")


@casos_bp.get("")
@login_required
def list_page():
    result = validate_filtros(request.args)
    if result.ok:
        filtros = result.value
    else:
        for message in result.by_field().values():
            flash(message, "error")
        filtros = FiltrosCaso()
    page = request.args.get("page", 1, type=int)
    limit = request.args.get("limit", type=int) or current_app.config.get("CASOS_PAGE_SIZE", 10)

    state = get_state()
    state.casos.fetch_casos(filtros, page, limit)
    if state.casos.error:
        flash(state.casos.error, "error")
    context = {
        "casos": state.casos.casos,
        "filtros": state.casos.filtros,
        "paginacion": state.casos.paginacion,
    }
    if _is_htmx():
        return render_template("casos/_table.html", **context)
    state.corresponsales.fetch_corresponsales()
    return render_template(
        "casos/list.html",
        corresponsales=state.corresponsales.corresponsales,
        paises=PAISES,
        estados=list(EstadoFactura),
        debounce_ms=current_app.config.get("SEARCH_DEBOUNCE_MS", 300),
        **context,
    )


@casos_bp.get("/total")
@login_required
def total_preview():
    total = costo_total(*(_preview_amount(request.args.get(key)) for key in ("fee", "costo_usd", "monto_agregado")))
    return render_template("casos/_total.html", total=total)


@casos_bp.route("/nuevo", methods=["GET", "POST"])
@login_required
def create_page():
    if request.method == "GET":
        return _render_form(_new_caso_defaults(), {})
    try:
        caso = get_state().casos.create_caso(request.form)
    except ValidationError as exc:
        return _render_form(request.form.to_dict(), exc.by_field())
    except RemoteError as exc:
        flash(f"No se pudo crear el caso: {exc.message}", "error")
        return _render_form(request.form.to_dict(), {})
    flash(f"Caso {caso.nro_caso_assistravel} creado", "success")
    return redirect(url_for("casos.detail_page", caso_id=caso.id))


@casos_bp.get("/<int:caso_id>")
@login_required
def detail_page(caso_id: int):
    caso = get_state().casos.get_caso_by_id(caso_id)
    if caso is None:
        abort(404)
    return render_template("casos/detail.html", caso=caso)


@casos_bp.route("/<int:caso_id>/editar", methods=["GET", "POST"])
@login_required
def edit_page(caso_id: int):
    state = get_state()
    caso = state.casos.get_caso_by_id(caso_id)
    if caso is None:
        abort(404)
    if request.method == "GET":
        return _render_form(_caso_form_data(caso), {}, caso=caso)
    try:
        state.casos.update_caso(caso_id, request.form)
    except ValidationError as exc:
        return _render_form(request.form.to_dict(), exc.by_field(), caso=caso)
    except RemoteError as exc:
        flash(f"No se pudo actualizar el caso: {exc.message}", "error")
        return _render_form(request.form.to_dict(), {}, caso=caso)
    flash("Caso actualizado", "success")
    return redirect(url_for("casos.detail_page", caso_id=caso_id))


@casos_bp.post("/<int:caso_id>/eliminar")
@login_required
@require_role("admin")
def delete_page(caso_id: int):
    try:
        get_state().casos.delete_caso(caso_id)
        flash("Caso eliminado", "success")
    except RemoteError as exc:
        flash(f"No se pudo eliminar el caso: {exc.message}", "error")
    return redirect(url_for("casos.list_page"))
