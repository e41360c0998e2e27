"""Order ledger tables: current order state plus its append-only audit log."""

import uuid
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import JSON, DateTime, Enum, ForeignKey, Index, Integer, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from pos_ledger.db.base import Base
from pos_ledger.models.enums import AuditKind, ModificationType, OrderStatus, PaymentMethod


def _enum_column(enum_cls: type) -> Enum:
    return Enum(
        enum_cls,
        native_enum=False,
        length=32,
        values_callable=lambda members: [member.value for member in members],
        validate_strings=True,
    )


class Order(Base):
    """Current state of a sales transaction."""

    __tablename__ = "orders"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    order_number: Mapped[str] = mapped_column(String(32), nullable=False)
    customer_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    items: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    total_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0.00"))
    payment_method: Mapped[PaymentMethod] = mapped_column(_enum_column(PaymentMethod), nullable=False)
    status: Mapped[OrderStatus] = mapped_column(
        _enum_column(OrderStatus), nullable=False, default=OrderStatus.COMPLETED
    )
    created_by: Mapped[str] = mapped_column(String(64), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    audit_records: Mapped[list["OrderAuditRecord"]] = relationship(
        back_populates="order",
        order_by="OrderAuditRecord.sequence",
    )

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        Index("uq_orders_order_number", "order_number", unique=True),
        Index("ix_orders_created_at", "created_at"),
        Index("ix_orders_status", "status"),
    )


class OrderAuditRecord(Base):
    """Immutable record of one modification or cancellation."""

    __tablename__ = "order_audit_records"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    order_id: Mapped[str] = mapped_column(ForeignKey("orders.id"), nullable=False)
    sequence: Mapped[int] = mapped_column(Integer, nullable=False)
    actor_id: Mapped[str] = mapped_column(String(64), nullable=False)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    kind: Mapped[AuditKind] = mapped_column(_enum_column(AuditKind), nullable=False)
    modification_type: Mapped[ModificationType | None] = mapped_column(
        _enum_column(ModificationType), nullable=True
    )
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    before_snapshot: Mapped[dict] = mapped_column(JSON, nullable=False)
    after_snapshot: Mapped[dict] = mapped_column(JSON, nullable=False)

    order: Mapped[Order] = relationship(back_populates="audit_records")

    __table_args__ = (
        Index("uq_order_audit_order_sequence", "order_id", "sequence", unique=True),
    )
