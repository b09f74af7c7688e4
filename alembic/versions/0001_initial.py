"""workshop, customers, vehicles, service orders and diagnostics

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-18 09:00:00.000000
"""

from alembic import op
import sqlalchemy as sa


revision = "0001_initial"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "tenants",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("trade_name", sa.String(), nullable=True),
        sa.Column("cnpj", sa.String(), nullable=True, unique=True),
        sa.Column("phone", sa.String(), nullable=True),
        sa.Column("whatsapp", sa.String(), nullable=True),
        sa.Column("email", sa.String(), nullable=True),
        sa.Column("street", sa.String(), nullable=True),
        sa.Column("number", sa.String(), nullable=True),
        sa.Column("complement", sa.String(), nullable=True),
        sa.Column("neighborhood", sa.String(), nullable=True),
        sa.Column("city", sa.String(), nullable=True),
        sa.Column("state", sa.String(), nullable=True),
        sa.Column("zip_code", sa.String(), nullable=True),
        sa.Column("logo", sa.String(), nullable=True),
        sa.Column("primary_color", sa.String(), nullable=True),
        sa.Column("plan", sa.String(), nullable=False, server_default="BASIC"),
        sa.Column("max_users", sa.Integer(), nullable=False, server_default="3"),
        sa.Column("max_vehicles", sa.Integer(), nullable=False, server_default="100"),
        sa.Column("default_markup", sa.Float(), nullable=False, server_default="30"),
        sa.Column("default_labor_rate", sa.Float(), nullable=False, server_default="0"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.Column("deleted_at", sa.DateTime(), nullable=True),
    )

    op.create_table(
        "users",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("tenant_id", sa.String(), sa.ForeignKey("tenants.id"), nullable=False),
        sa.Column("email", sa.String(), nullable=False),
        sa.Column("password_hash", sa.String(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("phone", sa.String(), nullable=True),
        sa.Column("avatar", sa.String(), nullable=True),
        sa.Column("role", sa.String(), nullable=False, server_default="MECHANIC"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("last_login_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.Column("deleted_at", sa.DateTime(), nullable=True),
        sa.UniqueConstraint("tenant_id", "email", name="uq_user_tenant_email"),
    )
    op.create_index("ix_users_email", "users", ["email"])

    op.create_table(
        "customers",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("tenant_id", sa.String(), sa.ForeignKey("tenants.id"), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("cpf_cnpj", sa.String(), nullable=True),
        sa.Column("email", sa.String(), nullable=True),
        sa.Column("phone", sa.String(), nullable=True),
        sa.Column("whatsapp", sa.String(), nullable=True),
        sa.Column("street", sa.String(), nullable=True),
        sa.Column("number", sa.String(), nullable=True),
        sa.Column("complement", sa.String(), nullable=True),
        sa.Column("neighborhood", sa.String(), nullable=True),
        sa.Column("city", sa.String(), nullable=True),
        sa.Column("state", sa.String(), nullable=True),
        sa.Column("zip_code", sa.String(), nullable=True),
        sa.Column("notes", sa.String(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.Column("deleted_at", sa.DateTime(), nullable=True),
        sa.UniqueConstraint("tenant_id", "cpf_cnpj", name="uq_customer_tenant_cpf_cnpj"),
    )
    op.create_index("ix_customers_tenant_id", "customers", ["tenant_id"])

    op.create_table(
        "vehicles",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("tenant_id", sa.String(), sa.ForeignKey("tenants.id"), nullable=False),
        sa.Column("customer_id", sa.String(), sa.ForeignKey("customers.id"), nullable=False),
        sa.Column("plate", sa.String(), nullable=False),
        sa.Column("chassi", sa.String(), nullable=True),
        sa.Column("renavam", sa.String(), nullable=True),
        sa.Column("brand", sa.String(), nullable=False),
        sa.Column("model", sa.String(), nullable=False),
        sa.Column("version", sa.String(), nullable=True),
        sa.Column("year", sa.Integer(), nullable=True),
        sa.Column("model_year", sa.Integer(), nullable=True),
        sa.Column("color", sa.String(), nullable=True),
        sa.Column("fuel_type", sa.String(), nullable=False, server_default="FLEX"),
        sa.Column("transmission", sa.String(), nullable=False, server_default="MANUAL"),
        sa.Column("engine", sa.String(), nullable=True),
        sa.Column("mileage", sa.Integer(), nullable=True),
        sa.Column("notes", sa.String(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.Column("deleted_at", sa.DateTime(), nullable=True),
        sa.UniqueConstraint("tenant_id", "plate", name="uq_vehicle_tenant_plate"),
    )
    op.create_index("ix_vehicles_customer_id", "vehicles", ["customer_id"])

    op.create_table(
        "service_orders",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("tenant_id", sa.String(), sa.ForeignKey("tenants.id"), nullable=False),
        sa.Column("number", sa.Integer(), nullable=False),
        sa.Column("customer_id", sa.String(), sa.ForeignKey("customers.id"), nullable=False),
        sa.Column("vehicle_id", sa.String(), sa.ForeignKey("vehicles.id"), nullable=False),
        sa.Column("created_by_id", sa.String(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("status", sa.String(), nullable=False, server_default="DRAFT"),
        sa.Column("mileage_in", sa.Integer(), nullable=True),
        sa.Column("mileage_out", sa.Integer(), nullable=True),
        sa.Column("fuel_level", sa.Integer(), nullable=True),
        sa.Column("entry_notes", sa.String(), nullable=True),
        sa.Column("exit_notes", sa.String(), nullable=True),
        sa.Column("entry_photos", sa.JSON(), nullable=True),
        sa.Column("exit_photos", sa.JSON(), nullable=True),
        sa.Column("total_parts", sa.Float(), nullable=False, server_default="0"),
        sa.Column("total_labor", sa.Float(), nullable=False, server_default="0"),
        sa.Column("discount", sa.Float(), nullable=False, server_default="0"),
        sa.Column("total_price", sa.Float(), nullable=False, server_default="0"),
        sa.Column("approved_at", sa.DateTime(), nullable=True),
        sa.Column("started_at", sa.DateTime(), nullable=True),
        sa.Column("completed_at", sa.DateTime(), nullable=True),
        sa.Column("delivered_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.Column("deleted_at", sa.DateTime(), nullable=True),
        sa.UniqueConstraint("tenant_id", "number", name="uq_service_order_tenant_number"),
    )
    op.create_index("ix_service_orders_status", "service_orders", ["tenant_id", "status"])

    op.create_table(
        "diagnostics",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("service_order_id", sa.String(), sa.ForeignKey("service_orders.id"), nullable=False),
        sa.Column("mechanic_id", sa.String(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("source", sa.String(), nullable=False, server_default="manual"),
        sa.Column("audio_url", sa.String(), nullable=True),
        sa.Column("audio_duration", sa.Integer(), nullable=True),
        sa.Column("image_url", sa.String(), nullable=True),
        sa.Column("transcription", sa.String(), nullable=True),
        sa.Column("extracted_parts", sa.JSON(), nullable=True),
        sa.Column("extracted_symptoms", sa.JSON(), nullable=True),
        sa.Column("summary", sa.String(), nullable=True),
        sa.Column("recommendations", sa.JSON(), nullable=True),
        sa.Column("image_analysis", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_diagnostics_service_order_id", "diagnostics", ["service_order_id"])

    op.create_table(
        "os_items",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("service_order_id", sa.String(), sa.ForeignKey("service_orders.id"), nullable=False),
        sa.Column("type", sa.String(), nullable=False, server_default="PART"),
        sa.Column("description", sa.String(), nullable=False),
        sa.Column("part_number", sa.String(), nullable=True),
        sa.Column("brand", sa.String(), nullable=True),
        sa.Column("quantity", sa.Float(), nullable=False, server_default="1"),
        sa.Column("unit_cost", sa.Float(), nullable=False, server_default="0"),
        sa.Column("unit_price", sa.Float(), nullable=False, server_default="0"),
        sa.Column("total_price", sa.Float(), nullable=False, server_default="0"),
        sa.Column("labor_hours", sa.Float(), nullable=True),
        sa.Column("labor_rate", sa.Float(), nullable=True),
        sa.Column("diagnostic_id", sa.String(), sa.ForeignKey("diagnostics.id"), nullable=True),
        sa.Column("extracted_part_id", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_os_items_service_order_id", "os_items", ["service_order_id"])


def downgrade() -> None:
    op.drop_index("ix_os_items_service_order_id", table_name="os_items")
    op.drop_table("os_items")
    op.drop_index("ix_diagnostics_service_order_id", table_name="diagnostics")
    op.drop_table("diagnostics")
    op.drop_index("ix_service_orders_status", table_name="service_orders")
    op.drop_table("service_orders")
    op.drop_index("ix_vehicles_customer_id", table_name="vehicles")
    op.drop_table("vehicles")
    op.drop_index("ix_customers_tenant_id", table_name="customers")
    op.drop_table("customers")
    op.drop_index("ix_users_email", table_name="users")
    op.drop_table("users")
    op.drop_table("tenants")
