"""Order ledger schemas shared by the store, the services and the API."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from pos_ledger.models.enums import AuditKind, ModificationType, ModifierKind, OrderStatus, PaymentMethod


class SelectedModifier(BaseModel):
    """Modifier chosen for a line item with its price delta per unit."""

    modifier_id: str
    name: str
    kind: ModifierKind = ModifierKind.EXTRA
    price_delta: Decimal = Decimal("0.00")


class LineItemInput(BaseModel):
    """Line item as submitted by a caller, before pricing."""

    item_id: str
    display_name: str
    quantity: int
    unit_price: Decimal
    category: str | None = None
    modifiers: list[SelectedModifier] = Field(default_factory=list)


class OrderLineItem(LineItemInput):
    """Priced line item as stored on an order."""

    line_total: Decimal


class OrderSnapshot(BaseModel):
    """Fields of an order captured in audit records."""

    customer_name: str | None
    items: list[OrderLineItem]
    total_amount: Decimal
    payment_method: PaymentMethod
    status: OrderStatus


class OrderRecord(BaseModel):
    """Current state of an order."""

    id: str
    order_number: str
    customer_name: str | None = None
    items: list[OrderLineItem]
    total_amount: Decimal
    payment_method: PaymentMethod
    status: OrderStatus
    created_by: str
    created_at: datetime
    updated_at: datetime
    version: int = 1

    model_config = ConfigDict(from_attributes=True)

    def snapshot(self) -> OrderSnapshot:
        return OrderSnapshot(
            customer_name=self.customer_name,
            items=[item.model_copy(deep=True) for item in self.items],
            total_amount=self.total_amount,
            payment_method=self.payment_method,
            status=self.status,
        )


class OrderAuditEntry(BaseModel):
    """Append-only history record for an order."""

    id: str
    order_id: str
    sequence: int
    actor_id: str
    timestamp: datetime
    kind: AuditKind
    modification_type: ModificationType | None = None
    reason: str | None = None
    before: OrderSnapshot
    after: OrderSnapshot

    model_config = ConfigDict(from_attributes=True)


class OrderPatch(BaseModel):
    """Subset of order fields to change. Only explicitly set fields apply."""

    customer_name: str | None = None
    items: list[LineItemInput] | None = None
    total_amount: Decimal | None = None
    payment_method: PaymentMethod | None = None


class OrderFilters(BaseModel):
    status: OrderStatus | None = None
    created_by: str | None = None
    customer_name: str | None = None
    order_number: str | None = None
    payment_method: PaymentMethod | None = None
    date_from: datetime | None = None
    date_to: datetime | None = None


class OrderPage(BaseModel):
    items: list[OrderRecord]
    total: int
    page: int
    page_size: int


class OrderHistory(BaseModel):
    order_id: str
    entries: list[OrderAuditEntry]


class CreateOrderRequest(BaseModel):
    """Payload for creating an order. ``total_amount`` is advisory."""

    customer_name: str | None = None
    items: list[LineItemInput]
    payment_method: PaymentMethod
    total_amount: Decimal | None = None


class ModifyOrderRequest(BaseModel):
    modification_type: ModificationType
    changes: OrderPatch


class CancelOrderRequest(BaseModel):
    reason: str | None = None


class OrderTransition(BaseModel):
    """Order state after a modify or cancel, with the audit record it produced."""

    order: OrderRecord
    audit_record: OrderAuditEntry
