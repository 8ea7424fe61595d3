"""initial schema: identities, profiles, correspondents, cases and dashboard views

Revision ID: 4a1b7c2d9e30
Revises:
Create Date: 2026-10-19 10:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

from app.core.models import CASOS_POR_PAIS_SQL, KPI_DASHBOARD_POSTGRESQL, KPI_DASHBOARD_SQLITE


# revision identifiers, used by Alembic.
revision = "4a1b7c2d9e30"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "auth_users",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("password_hash", sa.String(length=255), nullable=False),
        sa.Column("user_metadata", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("last_sign_in_at", sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("email"),
    )
    op.create_table(
        "usuarios",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("nombre", sa.String(length=50), nullable=False),
        sa.Column("apellido", sa.String(length=50), nullable=False),
        sa.Column("rol", sa.String(length=10), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.CheckConstraint("rol IN ('admin', 'user')", name="ck_usuarios_rol"),
        sa.ForeignKeyConstraint(["id"], ["auth_users.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_table(
        "corresponsal",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("nombre", sa.String(length=100), nullable=False),
        sa.Column("contacto", sa.String(length=100), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("telefonos", sa.String(length=255), nullable=True),
        sa.Column("pagina_web", sa.String(length=255), nullable=True),
        sa.Column("direccion", sa.String(length=255), nullable=True),
        sa.Column("pais_sede", sa.String(length=80), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_table(
        "caso",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("corresponsal_id", sa.Integer(), nullable=False),
        sa.Column("nro_caso_assistravel", sa.String(length=40), nullable=False),
        sa.Column("nro_caso_corresponsal", sa.String(length=60), nullable=True),
        sa.Column("fecha_de_inicio", sa.Date(), nullable=False),
        sa.Column("pais", sa.String(length=80), nullable=False),
        sa.Column("fee", sa.Numeric(12, 2), nullable=False),
        sa.Column("costo_usd", sa.Numeric(12, 2), nullable=False),
        sa.Column("monto_agregado", sa.Numeric(12, 2), nullable=False),
        sa.Column("costo_moneda_local", sa.Numeric(14, 2), nullable=True),
        sa.Column("simbolo_ml", sa.String(length=10), nullable=False),
        sa.Column(
            "costo_total",
            sa.Numeric(12, 2),
            sa.Computed("fee + costo_usd + monto_agregado", persisted=True),
        ),
        sa.Column("informe_medico", sa.Boolean(), nullable=False),
        sa.Column("tiene_factura", sa.Boolean(), nullable=False),
        sa.Column("fecha_emision_factura", sa.Date(), nullable=True),
        sa.Column("fecha_vencimiento_factura", sa.Date(), nullable=True),
        sa.Column("fecha_pago_factura", sa.Date(), nullable=True),
        sa.Column("nro_factura", sa.String(length=60), nullable=True),
        sa.Column("observaciones", sa.Text(), nullable=True),
        sa.Column("created_by", sa.String(length=36), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.CheckConstraint("fee >= 0", name="ck_caso_fee"),
        sa.CheckConstraint("costo_usd >= 0", name="ck_caso_costo_usd"),
        sa.CheckConstraint("monto_agregado >= 0", name="ck_caso_monto_agregado"),
        sa.ForeignKeyConstraint(["corresponsal_id"], ["corresponsal.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_caso_corresponsal_id", "caso", ["corresponsal_id"])
    op.create_index("ix_caso_pais", "caso", ["pais"])
    op.create_index("ix_caso_created_at", "caso", ["created_at"])
    op.create_index("ix_caso_updated_at", "caso", ["updated_at"])

    bind = op.get_bind()
    kpi_sql = KPI_DASHBOARD_POSTGRESQL if bind.dialect.name == "postgresql" else KPI_DASHBOARD_SQLITE
    op.execute(sa.DDL(kpi_sql))
    op.execute(sa.DDL(CASOS_POR_PAIS_SQL))


def downgrade():
    op.execute("DROP VIEW IF EXISTS casos_por_pais")
    op.execute("DROP VIEW IF EXISTS kpi_dashboard")
    op.drop_index("ix_caso_updated_at", table_name="caso")
    op.drop_index("ix_caso_created_at", table_name="caso")
    op.drop_index("ix_caso_pais", table_name="caso")
    op.drop_index("ix_caso_corresponsal_id", table_name="caso")
    op.drop_table("caso")
    op.drop_table("corresponsal")
    op.drop_table("usuarios")
    op.drop_table("auth_users")
