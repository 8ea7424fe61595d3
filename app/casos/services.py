from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, timedelta
from decimal import Decimal

from sqlalchemy import and_, func, or_, select
from sqlalchemy.orm import joinedload

from app.core.errors import RemoteError, remote_call
from app.core.extensions import db
from app.core.models import Caso, casos_por_pais_view, kpi_dashboard_view
from app.core.utils import EstadoFactura
from app.core.validation import FiltrosCaso

MAX_PAGE_SIZE = 100
RECENT_LIMIT = 5
ATTENTION_LIMIT = 10
HIGH_COST_LIMIT = 5
HIGH_COST_FACTOR = 3
NO_INVOICE_DAYS = 30

# Columns the application may write; costo_total is generated by the database.
CASO_FIELDS = (
    "corresponsal_id",
    "nro_caso_assistravel",
    "nro_caso_corresponsal",
    "fecha_de_inicio",
    "pais",
    "fee",
    "costo_usd",
    "monto_agregado",
    "costo_moneda_local",
    "simbolo_ml",
    "informe_medico",
    "tiene_factura",
    "fecha_emision_factura",
    "fecha_vencimiento_factura",
    "fecha_pago_factura",
    "nro_factura",
    "observaciones",
)


@dataclass
class ResultadoPaginado:
    data: list = field(default_factory=list)
    count: int = 0
    page: int = 1
    limit: int = 10

    @property
    def total_pages(self) -> int:
        return (self.count + self.limit - 1) // self.limit if self.limit else 0


def _writable(values: dict[str, object]) -> dict[str, object]:
    return {key: values[key] for key in CASO_FIELDS if key in values}


def estado_factura_clause(estado: EstadoFactura, today: date | None = None):
    today = today or date.today()
    unpaid_invoice = and_(Caso.tiene_factura.is_(True), Caso.fecha_pago_factura.is_(None))
    if estado == EstadoFactura.SIN_FACTURA:
        return Caso.tiene_factura.is_(False)
    if estado == EstadoFactura.PAGADA:
        return and_(Caso.tiene_factura.is_(True), Caso.fecha_pago_factura.is_not(None))
    if estado == EstadoFactura.VENCIDA:
        return and_(unpaid_invoice, Caso.fecha_vencimiento_factura < today)
    return and_(
        unpaid_invoice,
        or_(Caso.fecha_vencimiento_factura.is_(None), Caso.fecha_vencimiento_factura >= today),
    )


def filtered_casos_query(filtros: FiltrosCaso, today: date | None = None):
    query = Caso.query
    if filtros.corresponsal_id:
        query = query.filter(Caso.corresponsal_id == filtros.corresponsal_id)
    if filtros.pais:
        query = query.filter(Caso.pais == filtros.pais)
    if filtros.fecha_inicio:
        query = query.filter(Caso.fecha_de_inicio >= filtros.fecha_inicio)
    if filtros.fecha_fin:
        query = query.filter(Caso.fecha_de_inicio <= filtros.fecha_fin)
    if filtros.busqueda:
        pattern = f"%{filtros.busqueda}%"
        query = query.filter(
            or_(
                Caso.nro_caso_assistravel.ilike(pattern),
                Caso.nro_caso_corresponsal.ilike(pattern),
                Caso.pais.ilike(pattern),
            )
        )
    if filtros.estado_factura:
        query = query.filter(estado_factura_clause(filtros.estado_factura, today))
    return query


def list_casos(filtros: FiltrosCaso, page: int = 1, limit: int = 10, today: date | None = None) -> ResultadoPaginado:
    safe_page = page if page > 0 else 1
    safe_limit = max(1, min(limit, MAX_PAGE_SIZE))
    with remote_call("caso.list"):
        query = filtered_casos_query(filtros, today)
        count = query.count()
        rows = (
            query.options(joinedload(Caso.corresponsal))
            .order_by(Caso.created_at.desc(), Caso.id.desc())
            .offset((safe_page - 1) * safe_limit)
            .limit(safe_limit)
            .all()
        )
    return ResultadoPaginado(data=rows, count=count, page=safe_page, limit=safe_limit)


def caso_by_id(caso_id: int) -> Caso:
    with remote_call("caso.get"):
        caso = Caso.query.options(joinedload(Caso.corresponsal)).filter_by(id=caso_id).first()
    if caso is None:
        raise RemoteError("Caso no encontrado")
    return caso


def insert_caso(values: dict[str, object], created_by: str | None = None) -> Caso:
    with remote_call("caso.insert"):
        caso = Caso(**_writable(values), created_by=created_by)
        db.session.add(caso)
        db.session.commit()
    return caso


def update_caso(caso_id: int, values: dict[str, object]) -> Caso:
    with remote_call("caso.update"):
        caso = db.session.get(Caso, caso_id)
        if caso is None:
            raise RemoteError("Caso no encontrado")
        for key, value in _writable(values).items():
            setattr(caso, key, value)
        db.session.commit()
    return caso


def delete_caso(caso_id: int) -> None:
    with remote_call("caso.delete"):
        deleted = Caso.query.filter_by(id=caso_id).delete()
        db.session.commit()
    if not deleted:
        raise RemoteError("Caso no encontrado")


def kpi_snapshot() -> dict[str, int | Decimal]:
    with remote_call("kpi_dashboard.get"):
        row = db.session.execute(select(kpi_dashboard_view)).mappings().first()
    if row is None:
        raise RemoteError("KPI no disponibles")
    return dict(row)


def casos_por_pais() -> list[dict[str, object]]:
    view = casos_por_pais_view
    with remote_call("casos_por_pais.list"):
        rows = db.session.execute(
            select(view).order_by(view.c.total_casos.desc(), view.c.pais.asc())
        ).mappings().all()
    return [dict(row) for row in rows]


def casos_recientes(limit: int = RECENT_LIMIT) -> list[Caso]:
    with remote_call("caso.recent"):
        return (
            Caso.query.options(joinedload(Caso.corresponsal))
            .order_by(Caso.updated_at.desc(), Caso.id.desc())
            .limit(limit)
            .all()
        )


def casos_atencion(today: date | None = None) -> list[Caso]:
    """Cases needing follow-up.

    Started more than 30 days ago without an invoice, or unpaid past the due
    date, plus the most expensive cases when they reach three times the
    average total. Duplicates are dropped keeping the first occurrence.
    """
    today = today or date.today()
    limite = today - timedelta(days=NO_INVOICE_DAYS)
    with remote_call("caso.attention"):
        atencion = (
            Caso.query.options(joinedload(Caso.corresponsal))
            .filter(
                or_(
                    and_(Caso.tiene_factura.is_(False), Caso.fecha_de_inicio < limite),
                    and_(Caso.fecha_vencimiento_factura < today, Caso.fecha_pago_factura.is_(None)),
                )
            )
            .order_by(Caso.fecha_de_inicio.asc(), Caso.id.asc())
            .limit(ATTENTION_LIMIT)
            .all()
        )
        promedio = db.session.query(func.avg(Caso.costo_total)).scalar()
        altos: list[Caso] = []
        if promedio:
            umbral = Decimal(str(promedio)) * HIGH_COST_FACTOR
            altos = (
                Caso.query.options(joinedload(Caso.corresponsal))
                .filter(Caso.costo_total >= umbral)
                .order_by(Caso.costo_total.desc())
                .limit(HIGH_COST_LIMIT)
                .all()
            )

    seen: set[int] = set()
    unique: list[Caso] = []
    for caso in [*atencion, *altos]:
        if caso.id not in seen:
            seen.add(caso.id)
            unique.append(caso)
    return unique
