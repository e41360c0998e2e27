"""Order status transition helpers."""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime

from pos_ledger.core.errors import InvalidStateTransition
from pos_ledger.models.enums import AuditKind, OrderStatus
from pos_ledger.schemas.order import OrderAuditEntry

INITIAL_STATUS: OrderStatus = OrderStatus.COMPLETED

ALLOWED_TRANSITIONS: dict[OrderStatus, set[OrderStatus]] = {
    OrderStatus.COMPLETED: {OrderStatus.MODIFIED, OrderStatus.CANCELED},
    OrderStatus.MODIFIED: {OrderStatus.MODIFIED, OrderStatus.CANCELED},
    OrderStatus.CANCELED: set(),
}

STATUS_AFTER: dict[AuditKind, OrderStatus] = {
    AuditKind.MODIFICATION: OrderStatus.MODIFIED,
    AuditKind.CANCELLATION: OrderStatus.CANCELED,
}


def can_transition(current: OrderStatus, new: OrderStatus) -> bool:
    """Return whether an order can move from current to new status."""
    return new in ALLOWED_TRANSITIONS.get(current, set())


def ensure_transition(order_id: str, current: OrderStatus, new: OrderStatus) -> None:
    if not can_transition(current, new):
        raise InvalidStateTransition(
            f"Order {order_id} is {current.value} and cannot become {new.value}",
            details={"order_id": order_id, "current_status": current.value, "requested_status": new.value},
        )


def replay_status(
    created_at: datetime,
    entries: Iterable[OrderAuditEntry],
    at: datetime,
) -> OrderStatus | None:
    """Derive the status as of ``at`` by replaying history up to that instant.

    Returns None when the order did not exist yet.
    """
    if at < created_at:
        return None
    status: OrderStatus = INITIAL_STATUS
    for entry in sorted(entries, key=lambda item: (item.timestamp, item.sequence)):
        if entry.timestamp > at:
            break
        status = STATUS_AFTER[entry.kind]
    return status


def expected_status(entries: Iterable[OrderAuditEntry]) -> OrderStatus:
    """Status implied by a complete audit history."""
    status: OrderStatus = INITIAL_STATUS
    for entry in sorted(entries, key=lambda item: (item.timestamp, item.sequence)):
        status = STATUS_AFTER[entry.kind]
    return status
