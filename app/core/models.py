from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from enum import Enum
import uuid

from sqlalchemy import DDL, CheckConstraint, Computed, ForeignKey, Index, Numeric, column, event, table
from sqlalchemy.orm import Mapped, mapped_column, relationship
from werkzeug.security import generate_password_hash

from app.core.extensions import db
from app.core.utils import EstadoFactura, estado_factura


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_uuid() -> str:
    return str(uuid.uuid4())


class Rol(str, Enum):
    ADMIN = "admin"
    USER = "user"


class AuthIdentity(db.Model):
    # Credential store of the auth service; the application only reads it through identity.py.
    __tablename__ = "auth_users"

    id: Mapped[str] = mapped_column(db.String(36), primary_key=True, default=new_uuid)
    email: Mapped[str] = mapped_column(db.String(255), unique=True, nullable=False)
    password_hash: Mapped[str] = mapped_column(db.String(255), nullable=False)
    user_metadata: Mapped[dict] = mapped_column(db.JSON, nullable=False, default=dict)
    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
    last_sign_in_at: Mapped[datetime | None] = mapped_column(nullable=True)


class Usuario(db.Model):
    __tablename__ = "usuarios"
    __table_args__ = (CheckConstraint("rol IN ('admin', 'user')", name="ck_usuarios_rol"),)

    id: Mapped[str] = mapped_column(
        db.String(36), ForeignKey("auth_users.id", ondelete="CASCADE"), primary_key=True
    )
    email: Mapped[str] = mapped_column(db.String(255), nullable=False)
    nombre: Mapped[str] = mapped_column(db.String(50), nullable=False)
    apellido: Mapped[str] = mapped_column(db.String(50), nullable=False, default="")
    rol: Mapped[str] = mapped_column(db.String(10), nullable=False, default=Rol.USER.value)
    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(default=utcnow, onupdate=utcnow, nullable=False)

    @property
    def full_name(self) -> str:
        return f"{self.nombre} {self.apellido}".strip()


class Corresponsal(db.Model):
    __tablename__ = "corresponsal"

    id: Mapped[int] = mapped_column(primary_key=True)
    nombre: Mapped[str] = mapped_column(db.String(100), nullable=False)
    contacto: Mapped[str] = mapped_column(db.String(100), nullable=False)
    email: Mapped[str] = mapped_column(db.String(255), nullable=False)
    telefonos: Mapped[str | None] = mapped_column(db.String(255), nullable=True)
    pagina_web: Mapped[str | None] = mapped_column(db.String(255), nullable=True)
    direccion: Mapped[str | None] = mapped_column(db.String(255), nullable=True)
    pais_sede: Mapped[str] = mapped_column(db.String(80), nullable=False)
    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(default=utcnow, onupdate=utcnow, nullable=False)

    # Deletion cascades in the database (ON DELETE CASCADE), not in the ORM.
    casos = relationship("Caso", back_populates="corresponsal", passive_deletes=True)

    @property
    def telefonos_list(self) -> list[str]:
        return [phone.strip() for phone in (self.telefonos or "").split(",") if phone.strip()]


class Caso(db.Model):
    __tablename__ = "caso"
    __table_args__ = (
        CheckConstraint("fee >= 0", name="ck_caso_fee"),
        CheckConstraint("costo_usd >= 0", name="ck_caso_costo_usd"),
        CheckConstraint("monto_agregado >= 0", name="ck_caso_monto_agregado"),
        Index("ix_caso_created_at", "created_at"),
        Index("ix_caso_updated_at", "updated_at"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    corresponsal_id: Mapped[int] = mapped_column(
        ForeignKey("corresponsal.id", ondelete="CASCADE"), nullable=False, index=True
    )
    nro_caso_assistravel: Mapped[str] = mapped_column(db.String(40), nullable=False)
    nro_caso_corresponsal: Mapped[str | None] = mapped_column(db.String(60), nullable=True)
    fecha_de_inicio: Mapped[date] = mapped_column(nullable=False)
    pais: Mapped[str] = mapped_column(db.String(80), nullable=False, index=True)
    fee: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0.00"))
    costo_usd: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0.00"))
    monto_agregado: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0.00"))
    costo_moneda_local: Mapped[Decimal | None] = mapped_column(Numeric(14, 2), nullable=True)
    simbolo_ml: Mapped[str] = mapped_column(db.String(10), nullable=False, default="USD")
    # Generated by the database; never part of an INSERT or UPDATE.
    costo_total: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        Computed("fee + costo_usd + monto_agregado", persisted=True),
    )
    informe_medico: Mapped[bool] = mapped_column(nullable=False, default=False)
    tiene_factura: Mapped[bool] = mapped_column(nullable=False, default=False)
    fecha_emision_factura: Mapped[date | None] = mapped_column(nullable=True)
    fecha_vencimiento_factura: Mapped[date | None] = mapped_column(nullable=True)
    fecha_pago_factura: Mapped[date | None] = mapped_column(nullable=True)
    nro_factura: Mapped[str | None] = mapped_column(db.String(60), nullable=True)
    observaciones: Mapped[str | None] = mapped_column(db.Text, nullable=True)
    created_by: Mapped[str | None] = mapped_column(db.String(36), nullable=True)
    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(default=utcnow, onupdate=utcnow, nullable=False)

    corresponsal = relationship("Corresponsal", back_populates="casos")

    @property
    def estado_factura(self) -> EstadoFactura:
        return estado_factura(self)


kpi_dashboard_view = table(
    "kpi_dashboard",
    column("casos_abiertos", db.Integer),
    column("costo_mes_actual", Numeric(14, 2)),
    column("facturas_vencidas", db.Integer),
    column("casos_sin_factura_30d", db.Integer),
)

casos_por_pais_view = table(
    "casos_por_pais",
    column("pais", db.String),
    column("total_casos", db.Integer),
    column("costo_total_pais", Numeric(14, 2)),
)

KPI_DASHBOARD_POSTGRESQL = """
CREATE VIEW kpi_dashboard AS
SELECT
    (SELECT COUNT(*) FROM caso
        WHERE NOT (tiene_factura AND fecha_pago_factura IS NOT NULL)) AS casos_abiertos,
    (SELECT COALESCE(SUM(costo_total), 0) FROM caso
        WHERE date_trunc('month', fecha_de_inicio) = date_trunc('month', CURRENT_DATE)) AS costo_mes_actual,
    (SELECT COUNT(*) FROM caso
        WHERE tiene_factura AND fecha_pago_factura IS NULL
        AND fecha_vencimiento_factura < CURRENT_DATE) AS facturas_vencidas,
    (SELECT COUNT(*) FROM caso
        WHERE NOT tiene_factura AND fecha_de_inicio < CURRENT_DATE - 30) AS casos_sin_factura_30d
"""

# Literal percent signs are doubled: DDL strings go through %-formatting.
KPI_DASHBOARD_SQLITE = """
CREATE VIEW kpi_dashboard AS
SELECT
    (SELECT COUNT(*) FROM caso
        WHERE NOT (tiene_factura = 1 AND fecha_pago_factura IS NOT NULL)) AS casos_abiertos,
    (SELECT COALESCE(SUM(costo_total), 0) FROM caso
        WHERE strftime('%%Y-%%m', fecha_de_inicio) = strftime('%%Y-%%m', 'now')) AS costo_mes_actual,
    (SELECT COUNT(*) FROM caso
        WHERE tiene_factura = 1 AND fecha_pago_factura IS NULL
        AND fecha_vencimiento_factura < date('now')) AS facturas_vencidas,
    (SELECT COUNT(*) FROM caso
        WHERE tiene_factura = 0 AND fecha_de_inicio < date('now', '-30 day')) AS casos_sin_factura_30d
"""

CASOS_POR_PAIS_SQL = """
CREATE VIEW casos_por_pais AS
SELECT pais, COUNT(*) AS total_casos, COALESCE(SUM(costo_total), 0) AS costo_total_pais
FROM caso
GROUP BY pais
"""

event.listen(Caso.__table__, "after_create", DDL(KPI_DASHBOARD_POSTGRESQL).execute_if(dialect="postgresql"))
event.listen(Caso.__table__, "after_create", DDL(KPI_DASHBOARD_SQLITE).execute_if(dialect="sqlite"))
event.listen(Caso.__table__, "after_create", DDL(CASOS_POR_PAIS_SQL))
event.listen(Caso.__table__, "before_drop", DDL("DROP VIEW IF EXISTS kpi_dashboard"))
event.listen(Caso.__table__, "before_drop", DDL("DROP VIEW IF EXISTS casos_por_pais"))


def _demo_identity(session, email: str, password: str, nombre: str, apellido: str, rol: Rol) -> AuthIdentity:
    identity = AuthIdentity(
        email=email,
        password_hash=generate_password_hash(password),
        user_metadata={"nombre": nombre, "apellido": apellido, "rol": rol.value},
    )
    session.add(identity)
    session.flush()
    session.add(Usuario(id=identity.id, email=email, nombre=nombre, apellido=apellido, rol=rol.value))
    return identity


def seed_demo_data(session) -> None:
    admin = _demo_identity(session, "admin@assistravel.local", "admin123", "Admin", "Assistravel", Rol.ADMIN)
    _demo_identity(session, "usuario@assistravel.local", "usuario123", "Laura", "Operadora", Rol.USER)

    mexico = Corresponsal(
        nombre="Asistencia Médica México",
        contacto="Carlos Ruiz",
        email="operaciones@amm.example.com",
        telefonos="+52 55 1234 5678, +52 55 8765 4321",
        pagina_web="https://amm.example.com",
        direccion="Av. Reforma 100, CDMX",
        pais_sede="México",
    )
    espana = Corresponsal(
        nombre="Iberia Assist",
        contacto="Marta Soler",
        email="casos@iberiaassist.example.com",
        telefonos="+34 91 000 0000",
        pais_sede="España",
    )
    peru = Corresponsal(
        nombre="Andes Travel Care",
        contacto="Rosa Quispe",
        email="rosa@andescare.example.com",
        pais_sede="Perú",
    )
    session.add_all([mexico, espana, peru])
    session.flush()

    today = date.today()
    session.add_all(
        [
            Caso(
                corresponsal_id=mexico.id,
                nro_caso_assistravel="AST-DEMO-000001",
                nro_caso_corresponsal="MEX-001",
                fecha_de_inicio=today - timedelta(days=60),
                pais="México",
                fee=Decimal("50.00"),
                costo_usd=Decimal("1200.00"),
                monto_agregado=Decimal("30.00"),
                simbolo_ml="MXN",
                costo_moneda_local=Decimal("21000.00"),
                informe_medico=True,
                tiene_factura=True,
                fecha_emision_factura=today - timedelta(days=50),
                fecha_vencimiento_factura=today - timedelta(days=20),
                fecha_pago_factura=today - timedelta(days=25),
                nro_factura="F-1001",
                created_by=admin.id,
            ),
            Caso(
                corresponsal_id=mexico.id,
                nro_caso_assistravel="AST-DEMO-000002",
                nro_caso_corresponsal="MEX-002",
                fecha_de_inicio=today - timedelta(days=40),
                pais="México",
                fee=Decimal("50.00"),
                costo_usd=Decimal("800.00"),
                monto_agregado=Decimal("0.00"),
                simbolo_ml="USD",
                tiene_factura=True,
                fecha_emision_factura=today - timedelta(days=35),
                fecha_vencimiento_factura=today - timedelta(days=5),
                nro_factura="F-1002",
                created_by=admin.id,
            ),
            Caso(
                corresponsal_id=espana.id,
                nro_caso_assistravel="AST-DEMO-000003",
                nro_caso_corresponsal="ESP-77",
                fecha_de_inicio=today - timedelta(days=10),
                pais="España",
                fee=Decimal("75.00"),
                costo_usd=Decimal("450.50"),
                monto_agregado=Decimal("20.25"),
                simbolo_ml="EUR",
                costo_moneda_local=Decimal("410.00"),
                tiene_factura=True,
                fecha_emision_factura=today - timedelta(days=2),
                fecha_vencimiento_factura=today + timedelta(days=28),
                nro_factura="F-1003",
                created_by=admin.id,
            ),
            Caso(
                corresponsal_id=peru.id,
                nro_caso_assistravel="AST-DEMO-000004",
                fecha_de_inicio=today - timedelta(days=45),
                pais="Perú",
                fee=Decimal("40.00"),
                costo_usd=Decimal("300.00"),
                monto_agregado=Decimal("0.00"),
                simbolo_ml="PEN",
                observaciones="Pendiente de documentación del corresponsal",
                created_by=admin.id,
            ),
        ]
    )
    session.commit()
