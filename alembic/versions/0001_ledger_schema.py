"""ledger schema

Revision ID: 0001_ledger
Revises:
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa

revision = "0001_ledger"
down_revision = None
branch_labels = None
depends_on = None


def _enum(*values: str, name: str) -> sa.Enum:
    return sa.Enum(*values, name=name, native_enum=False, length=32)


def upgrade() -> None:
    op.create_table(
        "orders",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("order_number", sa.String(length=32), nullable=False),
        sa.Column("customer_name", sa.String(length=255), nullable=True),
        sa.Column("items", sa.JSON(), nullable=False),
        sa.Column("total_amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("payment_method", _enum("cash", "card", "mixed", "delivery", name="paymentmethod"), nullable=False),
        sa.Column("status", _enum("completed", "modified", "canceled", name="orderstatus"), nullable=False),
        sa.Column("created_by", sa.String(length=64), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
    )
    op.create_index("uq_orders_order_number", "orders", ["order_number"], unique=True)
    op.create_index("ix_orders_created_at", "orders", ["created_at"])
    op.create_index("ix_orders_status", "orders", ["status"])

    op.create_table(
        "order_audit_records",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("order_id", sa.String(length=36), sa.ForeignKey("orders.id"), nullable=False),
        sa.Column("sequence", sa.Integer(), nullable=False),
        sa.Column("actor_id", sa.String(length=64), nullable=False),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False),
        sa.Column("kind", _enum("modification", "cancellation", name="auditkind"), nullable=False),
        sa.Column(
            "modification_type",
            _enum(
                "item_added",
                "item_removed",
                "quantity_changed",
                "item_replaced",
                "multiple_changes",
                name="modificationtype",
            ),
            nullable=True,
        ),
        sa.Column("reason", sa.Text(), nullable=True),
        sa.Column("before_snapshot", sa.JSON(), nullable=False),
        sa.Column("after_snapshot", sa.JSON(), nullable=False),
    )
    op.create_index(
        "uq_order_audit_order_sequence",
        "order_audit_records",
        ["order_id", "sequence"],
        unique=True,
    )

    op.create_table(
        "eod_reports",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("report_number", sa.String(length=32), nullable=False),
        sa.Column("period_start", sa.DateTime(timezone=True), nullable=False),
        sa.Column("period_end", sa.DateTime(timezone=True), nullable=False),
        sa.Column("total_orders", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_with_vat", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("total_vat_amount", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("order_completion_rate", sa.Numeric(5, 2), nullable=False, server_default="0"),
        sa.Column("vat_rate", sa.Numeric(5, 4), nullable=False),
        sa.Column("statistics", sa.JSON(), nullable=False),
        sa.Column("previous_period", sa.JSON(), nullable=True),
        sa.Column("generated_by", sa.String(length=64), nullable=False),
        sa.Column("generated_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("uq_eod_reports_report_number", "eod_reports", ["report_number"], unique=True)
    op.create_index("ix_eod_reports_generated_at", "eod_reports", ["generated_at"])

    op.create_table(
        "sequence_counters",
        sa.Column("name", sa.String(length=32), primary_key=True),
        sa.Column("value", sa.Integer(), nullable=False, server_default="0"),
    )


def downgrade() -> None:
    op.drop_table("sequence_counters")
    op.drop_index("ix_eod_reports_generated_at", table_name="eod_reports")
    op.drop_index("uq_eod_reports_report_number", table_name="eod_reports")
    op.drop_table("eod_reports")
    op.drop_index("uq_order_audit_order_sequence", table_name="order_audit_records")
    op.drop_table("order_audit_records")
    op.drop_index("ix_orders_status", table_name="orders")
    op.drop_index("ix_orders_created_at", table_name="orders")
    op.drop_index("uq_orders_order_number", table_name="orders")
    op.drop_table("orders")
