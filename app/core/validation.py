from __future__ import annotations

from collections.abc import Mapping
from dataclasses import asdict, dataclass, field
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from urllib.parse import urlsplit
import re

from app.core.errors import FieldError, ValidationError
from app.core.models import Rol
from app.core.utils import EstadoFactura

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
URL_SCHEMES = {"http", "https"}
TRUE_VALUES = {"1", "true", "on", "yes", "si", "sí"}
MIN_PASSWORD_LENGTH = 6

FACTURA_SIN_EMISION = "Si el caso tiene factura, debe especificar la fecha de emisión"


@dataclass
class ValidationResult:
    value: object = None
    errors: list[FieldError] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors

    def by_field(self) -> dict[str, str]:
        fields: dict[str, str] = {}
        for error in self.errors:
            fields.setdefault(error.field, error.message)
        return fields

    def unwrap(self):
        if self.errors:
            raise ValidationError(self.errors)
        return self.value


@dataclass
class FiltrosCaso:
    corresponsal_id: int | None = None
    pais: str | None = None
    estado_factura: EstadoFactura | None = None
    fecha_inicio: date | None = None
    fecha_fin: date | None = None
    busqueda: str | None = None

    def as_query_args(self) -> dict[str, str]:
        args: dict[str, str] = {}
        for key, value in asdict(self).items():
            if value is None:
                continue
            if isinstance(value, EstadoFactura):
                value = value.value
            elif isinstance(value, date):
                value = value.isoformat()
            args[key] = str(value)
        return args

    def is_empty(self) -> bool:
        return not self.as_query_args()


class _Form:
    """Reads one form-like payload and collects field errors in order."""

    def __init__(self, payload: Mapping[str, object]):
        self.payload = payload
        self.errors: list[FieldError] = []

    def fail(self, name: str, message: str) -> None:
        self.errors.append(FieldError(name, message))

    def raw(self, name: str) -> object:
        value = self.payload.get(name)
        return value.strip() if isinstance(value, str) else value

    def text(
        self,
        name: str,
        required: str | None = None,
        max_length: int | None = None,
        too_long: str = "Texto muy largo",
    ) -> str | None:
        value = self.raw(name)
        value = "" if value is None else str(value)
        if not value:
            if required:
                self.fail(name, required)
            return None
        if max_length is not None and len(value) > max_length:
            self.fail(name, too_long)
        return value

    def secret(self, name: str, message: str) -> str:
        value = self.payload.get(name)
        value = "" if value is None else str(value)
        if len(value) < MIN_PASSWORD_LENGTH:
            self.fail(name, message)
        return value

    def flag(self, name: str) -> bool:
        value = self.raw(name)
        if isinstance(value, bool):
            return value
        return str(value or "").lower() in TRUE_VALUES

    def amount(self, name: str, negative: str | None = None, optional: bool = False) -> Decimal | None:
        value = self.raw(name)
        if value is None or value == "":
            return None if optional else Decimal("0.00")
        try:
            amount = Decimal(str(value).replace(",", ".")).quantize(Decimal("0.01"))
        except InvalidOperation:
            self.fail(name, "Importe inválido")
            return None
        if not amount.is_finite():
            self.fail(name, "Importe inválido")
            return None
        if negative and amount < 0:
            self.fail(name, negative)
        return amount

    def day(self, name: str, required: str | None = None) -> date | None:
        value = self.raw(name)
        if value is None or value == "":
            if required:
                self.fail(name, required)
            return None
        if isinstance(value, datetime):
            return value.date()
        if isinstance(value, date):
            return value
        try:
            return date.fromisoformat(str(value))
        except ValueError:
            self.fail(name, "Fecha inválida")
            return None

    def identifier(self, name: str, message: str, required: bool = True) -> int | None:
        value = self.raw(name)
        if value is None or value == "":
            if required:
                self.fail(name, message)
            return None
        try:
            number = int(str(value))
        except ValueError:
            self.fail(name, message)
            return None
        if number < 1:
            self.fail(name, message)
            return None
        return number

    def email(self, name: str) -> str | None:
        value = self.text(name, required="Email requerido")
        if value is not None and not EMAIL_RE.match(value):
            self.fail(name, "Email inválido")
        return value.lower() if value else value

    def result(self, value: object) -> ValidationResult:
        if self.errors:
            return ValidationResult(errors=list(self.errors))
        return ValidationResult(value=value)


def is_valid_email(value: str) -> bool:
    return bool(EMAIL_RE.match(value or ""))


def is_valid_url(value: str) -> bool:
    if not value or any(char.isspace() for char in value):
        return False
    parts = urlsplit(value)
    return parts.scheme.lower() in URL_SCHEMES and bool(parts.netloc)


def validate_caso(payload: Mapping[str, object]) -> ValidationResult:
    form = _Form(payload)
    values = {
        "corresponsal_id": form.identifier("corresponsal_id", "Seleccione un corresponsal"),
        "nro_caso_assistravel": form.text("nro_caso_assistravel", required="Número de caso requerido"),
        "nro_caso_corresponsal": form.text("nro_caso_corresponsal"),
        "fecha_de_inicio": form.day("fecha_de_inicio", required="Fecha de inicio requerida"),
        "pais": form.text("pais", required="País requerido"),
        "fee": form.amount("fee", negative="El fee debe ser mayor o igual a 0"),
        "costo_usd": form.amount("costo_usd", negative="El costo USD debe ser mayor o igual a 0"),
        "monto_agregado": form.amount(
            "monto_agregado", negative="El monto agregado debe ser mayor o igual a 0"
        ),
        "costo_moneda_local": form.amount("costo_moneda_local", optional=True),
        "simbolo_ml": form.text("simbolo_ml", required="Símbolo de moneda requerido"),
        "informe_medico": form.flag("informe_medico"),
        "tiene_factura": form.flag("tiene_factura"),
        "fecha_emision_factura": form.day("fecha_emision_factura"),
        "fecha_vencimiento_factura": form.day("fecha_vencimiento_factura"),
        "fecha_pago_factura": form.day("fecha_pago_factura"),
        "nro_factura": form.text("nro_factura"),
        "observaciones": form.text("observaciones"),
    }
    if form.errors:
        return form.result(values)

    # One rule, three triggers; the error always lands on the issuance date.
    if values["fecha_emision_factura"] is None and (
        values["tiene_factura"]
        or values["fecha_pago_factura"] is not None
        or values["fecha_vencimiento_factura"] is not None
    ):
        form.fail("fecha_emision_factura", FACTURA_SIN_EMISION)
    return form.result(values)


def validate_corresponsal(payload: Mapping[str, object]) -> ValidationResult:
    form = _Form(payload)
    values = {
        "nombre": form.text("nombre", required="Nombre requerido", max_length=100, too_long="Nombre muy largo"),
        "contacto": form.text(
            "contacto", required="Contacto requerido", max_length=100, too_long="Contacto muy largo"
        ),
        "email": form.email("email"),
        "telefonos": form.text("telefonos"),
        "pagina_web": form.text("pagina_web"),
        "direccion": form.text("direccion"),
        "pais_sede": form.text("pais_sede", required="País sede requerido"),
    }
    if values["pagina_web"] is not None and not is_valid_url(values["pagina_web"]):
        form.fail("pagina_web", "URL inválida")
    return form.result(values)


def validate_login(payload: Mapping[str, object]) -> ValidationResult:
    form = _Form(payload)
    values = {
        "email": form.email("email"),
        "password": form.secret("password", "La contraseña debe tener al menos 6 caracteres"),
    }
    return form.result(values)


def validate_registro(payload: Mapping[str, object]) -> ValidationResult:
    form = _Form(payload)
    values = {
        "email": form.email("email"),
        "password": form.secret("password", "La contraseña debe tener al menos 6 caracteres"),
        "confirm_password": form.secret("confirm_password", "Confirme la contraseña"),
        "nombre": form.text("nombre", required="Nombre requerido", max_length=50, too_long="Nombre muy largo"),
        "apellido": form.text(
            "apellido", required="Apellido requerido", max_length=50, too_long="Apellido muy largo"
        ),
        "rol": form.text("rol", required="Seleccione un rol"),
    }
    if values["rol"] is not None and values["rol"] not in {rol.value for rol in Rol}:
        form.fail("rol", "Seleccione un rol")
    if form.errors:
        return form.result(values)

    if values["password"] != values["confirm_password"]:
        form.fail("confirm_password", "Las contraseñas no coinciden")
    return form.result(values)


def validate_filtros(payload: Mapping[str, object]) -> ValidationResult:
    form = _Form(payload)
    estado = form.text("estado_factura")
    estado_factura = None
    if estado is not None:
        try:
            estado_factura = EstadoFactura(estado)
        except ValueError:
            form.fail("estado_factura", "Estado de factura inválido")
    filtros = FiltrosCaso(
        corresponsal_id=form.identifier("corresponsal_id", "Corresponsal inválido", required=False),
        pais=form.text("pais"),
        estado_factura=estado_factura,
        fecha_inicio=form.day("fecha_inicio"),
        fecha_fin=form.day("fecha_fin"),
        busqueda=form.text("busqueda", max_length=100, too_long="Búsqueda muy larga"),
    )
    return form.result(filtros)
