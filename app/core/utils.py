from __future__ import annotations

from collections.abc import Mapping
from datetime import date, datetime
from decimal import Decimal
from enum import Enum

CENT = Decimal("0.01")


class EstadoFactura(str, Enum):
    SIN_FACTURA = "Sin Factura"
    PAGADA = "Pagada"
    VENCIDA = "Vencida"
    PENDIENTE = "Pendiente"


ESTADO_FACTURA_CLASSES: dict[EstadoFactura, str] = {
    EstadoFactura.PAGADA: "badge-success",
    EstadoFactura.PENDIENTE: "badge-info",
    EstadoFactura.VENCIDA: "badge-danger",
    EstadoFactura.SIN_FACTURA: "badge-warning",
}

MONEDAS: tuple[dict[str, str], ...] = (
    {"codigo": "USD", "nombre": "Dólar Estadounidense", "simbolo": "$"},
    {"codigo": "EUR", "nombre": "Euro", "simbolo": "€"},
    {"codigo": "MXN", "nombre": "Peso Mexicano", "simbolo": "$"},
    {"codigo": "BRL", "nombre": "Real Brasileño", "simbolo": "R$"},
    {"codigo": "ARS", "nombre": "Peso Argentino", "simbolo": "$"},
    {"codigo": "CLP", "nombre": "Peso Chileno", "simbolo": "$"},
    {"codigo": "COP", "nombre": "Peso Colombiano", "simbolo": "$"},
    {"codigo": "PEN", "nombre": "Sol Peruano", "simbolo": "S/"},
    {"codigo": "JPY", "nombre": "Yen Japonés", "simbolo": "¥"},
    {"codigo": "GBP", "nombre": "Libra Esterlina", "simbolo": "£"},
    {"codigo": "CAD", "nombre": "Dólar Canadiense", "simbolo": "C$"},
)

PAISES: tuple[str, ...] = tuple(
    sorted(
        (
            "Argentina", "Bolivia", "Brasil", "Chile", "Colombia", "Ecuador",
            "España", "Estados Unidos", "Francia", "Guatemala", "México",
            "Panamá", "Paraguay", "Perú", "República Dominicana", "Uruguay",
            "Venezuela", "Alemania", "Italia", "Reino Unido", "Japón",
            "China", "Corea del Sur", "India", "Tailandia", "Australia",
            "Canadá", "Costa Rica", "El Salvador", "Honduras", "Nicaragua",
        )
    )
)


def as_date(value: date | datetime | str | None) -> date | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value).strip()[:10])


def _field(record: object, name: str) -> object:
    if isinstance(record, Mapping):
        return record.get(name)
    return getattr(record, name, None)


def estado_factura(caso: object, today: date | None = None) -> EstadoFactura:
    """Derive the invoice status of a case.

    The checks run in a fixed order because one case can meet several raw
    conditions at once: no invoice, then paid, then past due, else pending.
    Due dates compare by calendar day, so a case due today is still pending.
    """
    if not _field(caso, "tiene_factura"):
        return EstadoFactura.SIN_FACTURA
    if as_date(_field(caso, "fecha_pago_factura")) is not None:
        return EstadoFactura.PAGADA
    vencimiento = as_date(_field(caso, "fecha_vencimiento_factura"))
    if vencimiento is not None and vencimiento < (today or date.today()):
        return EstadoFactura.VENCIDA
    return EstadoFactura.PENDIENTE


def estado_factura_class(estado: EstadoFactura | str) -> str:
    try:
        return ESTADO_FACTURA_CLASSES[EstadoFactura(estado)]
    except ValueError:
        return "badge-info"


def costo_total(
    fee: Decimal | float | int | None,
    costo_usd: Decimal | float | int | None,
    monto_agregado: Decimal | float | int | None,
) -> Decimal:
    total = sum((Decimal(str(value or 0)) for value in (fee, costo_usd, monto_agregado)), Decimal("0"))
    return total.quantize(CENT)


def generate_case_number(now: datetime | None = None) -> str:
    moment = now or datetime.now()
    millis = str(int(moment.timestamp() * 1000))
    return f"AST-{moment.year}-{millis[-6:]}"


def currency_symbol(code: str) -> str:
    for moneda in MONEDAS:
        if moneda["codigo"] == code:
            return moneda["simbolo"]
    return code


def format_currency(amount: Decimal | float | int | None, currency: str = "USD") -> str:
    value = Decimal(str(amount or 0)).quantize(CENT)
    sign = "-" if value < 0 else ""
    return f"{sign}{currency_symbol(currency)}{abs(value):,.2f}"


def format_date(value: date | datetime | str | None, fmt: str = "%d/%m/%Y") -> str:
    parsed = value if isinstance(value, datetime) else as_date(value)
    if parsed is None:
        return ""
    return parsed.strftime(fmt)


def truncate_text(text: str | None, max_length: int) -> str:
    text = text or ""
    if len(text) <= max_length:
        return text
    return text[:max_length] + "..."
