"""Order lifecycle: creation, modification, cancellation and history.

State machine::

    create -> completed
    completed | modified --modify--> modified
    completed | modified --cancel--> canceled   (terminal)

Every transition after creation appends exactly one audit record carrying
full before/after snapshots, committed atomically with the new state through
``OrderStore.update_order_state``.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable, Sequence
from datetime import datetime
from decimal import Decimal

from pos_ledger.core.config import settings
from pos_ledger.core.errors import NotFound, StorageFailure, ValidationError
from pos_ledger.models.enums import AuditKind, ModificationType, OrderStatus, PaymentMethod
from pos_ledger.schemas.order import (
    LineItemInput,
    OrderAuditEntry,
    OrderFilters,
    OrderPage,
    OrderPatch,
    OrderRecord,
)
from pos_ledger.services.audit_service import build_audit_entry
from pos_ledger.services.order_status import (
    INITIAL_STATUS,
    ensure_transition,
    expected_status,
    replay_status,
)
from pos_ledger.services.order_store import OrderStore
from pos_ledger.services.pricing import order_total, price_items, reconcile_total
from pos_ledger.services.sequence_service import ORDER_SEQUENCE, SequenceSource, format_number
from pos_ledger.utils.time import ensure_utc, utcnow

logger = logging.getLogger(__name__)

PATCHABLE_FIELDS: frozenset[str] = frozenset({"customer_name", "items", "total_amount", "payment_method"})


def _require_actor(actor_id: str, field: str) -> str:
    actor = (actor_id or "").strip()
    if not actor:
        raise ValidationError(f"{field} is required", details={"field": field})
    return actor


def _normalize_customer_name(value: str | None) -> str | None:
    if value is None:
        return None
    stripped = value.strip()
    return stripped or None


class OrderLifecycleManager:
    """Owns the order state machine on top of an ``OrderStore``."""

    def __init__(
        self,
        store: OrderStore,
        sequence: SequenceSource,
        *,
        clock: Callable[[], datetime] = utcnow,
        order_number_prefix: str | None = None,
    ) -> None:
        self.store = store
        self.sequence = sequence
        self._clock = clock
        self._prefix: str = order_number_prefix or settings.order_number_prefix

    def _now(self) -> datetime:
        return ensure_utc(self._clock())

    def create(
        self,
        *,
        items: Sequence[LineItemInput],
        payment_method: PaymentMethod,
        created_by: str,
        customer_name: str | None = None,
        total_amount: Decimal | None = None,
    ) -> OrderRecord:
        """Validate, price and persist a new ``completed`` order."""
        creator = _require_actor(created_by, "created_by")
        priced = price_items(items)
        total = reconcile_total(order_total(priced), total_amount, context="new order")

        order_number = format_number(self._prefix, self.sequence.next(ORDER_SEQUENCE))
        now = self._now()
        order = OrderRecord(
            id=str(uuid.uuid4()),
            order_number=order_number,
            customer_name=_normalize_customer_name(customer_name),
            items=priced,
            total_amount=total,
            payment_method=PaymentMethod(payment_method),
            status=INITIAL_STATUS,
            created_by=creator,
            created_at=now,
            updated_at=now,
            version=1,
        )
        created = self.store.create(order)
        logger.info("[ORDERS] Created %s (%s) total=%s by %s", created.order_number, created.id, created.total_amount, creator)
        return created

    def get(self, order_id: str) -> OrderRecord:
        order = self.store.get(order_id)
        if order is None:
            raise NotFound(f"Order {order_id} not found", details={"order_id": order_id})
        return order

    def list(self, filters: OrderFilters | None = None, page: int = 1, page_size: int = 10) -> OrderPage:
        return self.store.list(filters or OrderFilters(), page, page_size)

    def modify(
        self,
        order_id: str,
        *,
        actor_id: str,
        modification_type: ModificationType,
        patch: OrderPatch,
    ) -> tuple[OrderRecord, OrderAuditEntry]:
        """Apply ``patch`` and record a modification entry.

        A canceled order is rejected before the patch is looked at; the mutator
        repeats the check against the locked row.
        """
        existing = self.get(order_id)
        ensure_transition(existing.id, existing.status, OrderStatus.MODIFIED)
        actor = _require_actor(actor_id, "actor_id")
        changed_fields = patch.model_fields_set & PATCHABLE_FIELDS
        if not changed_fields:
            raise ValidationError("A modification must change at least one field")
        if "items" in changed_fields and patch.items is None:
            raise ValidationError("items cannot be cleared; cancel the order instead")
        if "payment_method" in changed_fields and patch.payment_method is None:
            raise ValidationError("payment_method cannot be cleared")
        new_items = price_items(patch.items) if patch.items is not None else None
        modification_type = ModificationType(modification_type)

        def mutate(current: OrderRecord) -> tuple[OrderRecord, OrderAuditEntry]:
            ensure_transition(current.id, current.status, OrderStatus.MODIFIED)
            now = self._now()
            items = new_items if new_items is not None else current.items
            total = reconcile_total(
                order_total(items),
                patch.total_amount if "total_amount" in changed_fields else None,
                context=f"order {current.order_number}",
            )
            updates: dict[str, object] = {
                "items": items,
                "total_amount": total,
                "status": OrderStatus.MODIFIED,
                "updated_at": now,
            }
            if "customer_name" in changed_fields:
                updates["customer_name"] = _normalize_customer_name(patch.customer_name)
            if "payment_method" in changed_fields:
                updates["payment_method"] = patch.payment_method
            after = current.model_copy(deep=True, update=updates)
            entry = build_audit_entry(
                before=current,
                after=after,
                actor_id=actor,
                kind=AuditKind.MODIFICATION,
                modification_type=modification_type,
                timestamp=now,
                sequence=current.version,
            )
            return after, entry

        order, entry = self.store.update_order_state(order_id, mutate)
        logger.info(
            "[ORDERS] Modified %s (%s) by %s: total %s -> %s",
            order.order_number,
            modification_type.value,
            actor,
            entry.before.total_amount,
            entry.after.total_amount,
        )
        return order, entry

    def cancel(self, order_id: str, *, actor_id: str, reason: str | None = None) -> tuple[OrderRecord, OrderAuditEntry]:
        """Flag the order canceled and record why. Items are kept."""
        actor = _require_actor(actor_id, "actor_id")
        cleaned_reason = (reason or "").strip() or None

        def mutate(current: OrderRecord) -> tuple[OrderRecord, OrderAuditEntry]:
            ensure_transition(current.id, current.status, OrderStatus.CANCELED)
            now = self._now()
            after = current.model_copy(deep=True, update={"status": OrderStatus.CANCELED, "updated_at": now})
            entry = build_audit_entry(
                before=current,
                after=after,
                actor_id=actor,
                kind=AuditKind.CANCELLATION,
                reason=cleaned_reason,
                timestamp=now,
                sequence=current.version,
            )
            return after, entry

        order, entry = self.store.update_order_state(order_id, mutate)
        logger.info("[ORDERS] Canceled %s by %s (reason=%s)", order.order_number, actor, cleaned_reason or "-")
        return order, entry

    def get_history(self, order_id: str) -> list[OrderAuditEntry]:
        """Ordered audit records of an order."""
        order = self.get(order_id)
        entries = self.store.list_audit(order_id)
        self._ensure_consistent(order, entries)
        return entries

    def list_modified(self) -> list[OrderRecord]:
        return self.store.list_by_status(OrderStatus.MODIFIED)

    def status_as_of(self, order_id: str, at: datetime) -> OrderStatus | None:
        """Status the order had at ``at``, derived from its audit history."""
        order = self.get(order_id)
        return replay_status(order.created_at, self.store.list_audit(order_id), ensure_utc(at))

    def _ensure_consistent(self, order: OrderRecord, entries: Sequence[OrderAuditEntry]) -> None:
        implied = expected_status(entries)
        if implied is not order.status or len(entries) != order.version - 1:
            logger.error(
                "[ORDERS] Order %s is %s but its history implies %s (%s records, version %s)",
                order.id,
                order.status.value,
                implied.value,
                len(entries),
                order.version,
            )
            raise StorageFailure(
                f"Order {order.order_number} is partially applied; manual reconciliation required",
                details={
                    "order_id": order.id,
                    "status": order.status.value,
                    "history_status": implied.value,
                    "history_length": len(entries),
                },
            )
