"""Durable keyed storage for orders and their append-only audit records.

Two implementations share the ``OrderStore`` interface:

* ``InMemoryOrderStore`` keeps records in process memory and serializes
  writers per order with a lock that is acquired with a timeout.
* ``SqlAlchemyOrderStore`` persists through SQLAlchemy. Orders carry a
  ``version`` column mapped as ``version_id_col``; a writer that loses a race
  gets ``StaleDataError`` on flush, and the mutator is re-evaluated against
  the fresh row.

In both, ``update_order_state`` commits the new order state and its audit
record together or not at all.
"""

from __future__ import annotations

import copy
import logging
import threading
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from datetime import datetime

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session
from sqlalchemy.orm.attributes import flag_modified
from sqlalchemy.orm.exc import StaleDataError

from pos_ledger.core.config import settings
from pos_ledger.core.errors import NotFound, StorageFailure, ValidationError
from pos_ledger.models.enums import OrderStatus
from pos_ledger.models.order import Order, OrderAuditRecord
from pos_ledger.schemas.order import (
    OrderAuditEntry,
    OrderFilters,
    OrderLineItem,
    OrderPage,
    OrderRecord,
    OrderSnapshot,
)
from pos_ledger.utils.money import to_money
from pos_ledger.utils.time import ensure_utc

logger = logging.getLogger(__name__)

Mutator = Callable[[OrderRecord], tuple[OrderRecord, OrderAuditEntry]]


def validate_pagination(page: int, page_size: int, *, max_page_size: int | None = None) -> None:
    """Reject pagination outside ``page >= 1`` and ``1 <= page_size <= max``."""
    limit: int = max_page_size or settings.max_page_size
    if page < 1:
        raise ValidationError("page must be at least 1", details={"page": page})
    if not 1 <= page_size <= limit:
        raise ValidationError(
            f"page size must be between 1 and {limit}",
            details={"page_size": page_size},
        )


def _check_entry(order_id: str, entry: OrderAuditEntry, expected_sequence: int) -> None:
    if entry.order_id != order_id:
        raise ValidationError(
            "Audit record belongs to a different order",
            details={"order_id": order_id, "record_order_id": entry.order_id},
        )
    if entry.sequence != expected_sequence:
        raise StorageFailure(
            f"Audit sequence for order {order_id} is out of step; manual reconciliation required",
            details={"order_id": order_id, "expected": expected_sequence, "got": entry.sequence},
        )


class OrderStore(ABC):
    """Storage interface consumed by the lifecycle manager and reports."""

    @abstractmethod
    def get(self, order_id: str) -> OrderRecord | None:
        ...

    @abstractmethod
    def list(self, filters: OrderFilters, page: int, page_size: int) -> OrderPage:
        """Filtered page of orders, newest first."""

    @abstractmethod
    def create(self, order: OrderRecord) -> OrderRecord:
        ...

    @abstractmethod
    def append_audit(self, order_id: str, entry: OrderAuditEntry) -> OrderAuditEntry:
        ...

    @abstractmethod
    def update_order_state(self, order_id: str, mutator: Mutator) -> tuple[OrderRecord, OrderAuditEntry]:
        """Apply ``mutator`` to the latest state and commit state plus audit record atomically."""

    @abstractmethod
    def list_audit(self, order_id: str) -> list[OrderAuditEntry]:
        """Audit records of an order ordered by timestamp, then sequence."""

    @abstractmethod
    def list_by_status(self, status: OrderStatus) -> list[OrderRecord]:
        ...

    @abstractmethod
    def list_in_window(self, start: datetime, end: datetime) -> list[OrderRecord]:
        """All orders with ``start <= created_at < end``, oldest first."""


def _matches(order: OrderRecord, filters: OrderFilters) -> bool:
    if filters.status is not None and order.status is not filters.status:
        return False
    if filters.created_by is not None and order.created_by != filters.created_by:
        return False
    if filters.payment_method is not None and order.payment_method is not filters.payment_method:
        return False
    if filters.customer_name:
        if not order.customer_name or filters.customer_name.casefold() not in order.customer_name.casefold():
            return False
    if filters.order_number and filters.order_number.casefold() not in order.order_number.casefold():
        return False
    if filters.date_from is not None and order.created_at < ensure_utc(filters.date_from):
        return False
    if filters.date_to is not None and order.created_at >= ensure_utc(filters.date_to):
        return False
    return True


class InMemoryOrderStore(OrderStore):
    """Reference store kept in process memory."""

    def __init__(self, *, timeout_seconds: float | None = None) -> None:
        self._orders: dict[str, OrderRecord] = {}
        self._audit: dict[str, list[OrderAuditEntry]] = {}
        self._order_locks: dict[str, threading.Lock] = {}
        self._registry = threading.RLock()
        self._timeout: float = settings.store_timeout_seconds if timeout_seconds is None else timeout_seconds

    @contextmanager
    def _locked(self, order_id: str) -> Iterator[None]:
        with self._registry:
            lock = self._order_locks.get(order_id)
        if lock is None:
            raise NotFound(f"Order {order_id} not found", details={"order_id": order_id})
        if not lock.acquire(timeout=self._timeout):
            raise StorageFailure(
                f"Timed out waiting for order {order_id}",
                details={"order_id": order_id, "timeout_seconds": self._timeout},
            )
        try:
            yield
        finally:
            lock.release()

    def get(self, order_id: str) -> OrderRecord | None:
        with self._registry:
            order = self._orders.get(order_id)
            return order.model_copy(deep=True) if order is not None else None

    def list(self, filters: OrderFilters, page: int, page_size: int) -> OrderPage:
        validate_pagination(page, page_size)
        with self._registry:
            matching = [order for order in self._orders.values() if _matches(order, filters)]
        matching.sort(key=lambda order: (order.created_at, order.order_number), reverse=True)
        offset: int = (page - 1) * page_size
        return OrderPage(
            items=[order.model_copy(deep=True) for order in matching[offset:offset + page_size]],
            total=len(matching),
            page=page,
            page_size=page_size,
        )

    def create(self, order: OrderRecord) -> OrderRecord:
        with self._registry:
            if order.id in self._orders:
                raise StorageFailure(f"Order id {order.id} already exists", details={"order_id": order.id})
            if any(existing.order_number == order.order_number for existing in self._orders.values()):
                raise StorageFailure(
                    f"Order number {order.order_number} already used",
                    details={"order_number": order.order_number},
                )
            stored = order.model_copy(deep=True)
            self._orders[order.id] = stored
            self._audit[order.id] = []
            self._order_locks[order.id] = threading.Lock()
            return stored.model_copy(deep=True)

    def append_audit(self, order_id: str, entry: OrderAuditEntry) -> OrderAuditEntry:
        with self._locked(order_id):
            with self._registry:
                _check_entry(order_id, entry, len(self._audit[order_id]) + 1)
                current = self._orders[order_id]
                self._audit[order_id].append(entry.model_copy(deep=True))
                self._orders[order_id] = current.model_copy(
                    update={"version": current.version + 1, "updated_at": entry.timestamp}
                )
        return entry

    def update_order_state(self, order_id: str, mutator: Mutator) -> tuple[OrderRecord, OrderAuditEntry]:
        with self._locked(order_id):
            with self._registry:
                current = self._orders[order_id].model_copy(deep=True)
                history_length = len(self._audit[order_id])
            if history_length != current.version - 1:
                raise StorageFailure(
                    f"Order {order_id} version disagrees with its history; manual reconciliation required",
                    details={"order_id": order_id},
                )
            new_state, entry = mutator(current)
            _check_entry(order_id, entry, history_length + 1)
            stored = new_state.model_copy(deep=True, update={"version": current.version + 1})
            with self._registry:
                self._orders[order_id] = stored
                self._audit[order_id].append(entry.model_copy(deep=True))
        return stored.model_copy(deep=True), entry

    def list_audit(self, order_id: str) -> list[OrderAuditEntry]:
        with self._registry:
            entries = copy.deepcopy(self._audit.get(order_id, []))
        return sorted(entries, key=lambda entry: (entry.timestamp, entry.sequence))

    def list_by_status(self, status: OrderStatus) -> list[OrderRecord]:
        with self._registry:
            found = [order.model_copy(deep=True) for order in self._orders.values() if order.status is status]
        return sorted(found, key=lambda order: order.created_at, reverse=True)

    def list_in_window(self, start: datetime, end: datetime) -> list[OrderRecord]:
        start, end = ensure_utc(start), ensure_utc(end)
        with self._registry:
            found = [
                order.model_copy(deep=True)
                for order in self._orders.values()
                if start <= order.created_at < end
            ]
        return sorted(found, key=lambda order: (order.created_at, order.order_number))


def _record_from_row(row: Order) -> OrderRecord:
    return OrderRecord(
        id=row.id,
        order_number=row.order_number,
        customer_name=row.customer_name,
        items=[OrderLineItem.model_validate(item) for item in row.items or []],
        total_amount=to_money(row.total_amount),
        payment_method=row.payment_method,
        status=row.status,
        created_by=row.created_by,
        created_at=ensure_utc(row.created_at),
        updated_at=ensure_utc(row.updated_at),
        version=row.version,
    )


def _entry_from_row(row: OrderAuditRecord) -> OrderAuditEntry:
    return OrderAuditEntry(
        id=row.id,
        order_id=row.order_id,
        sequence=row.sequence,
        actor_id=row.actor_id,
        timestamp=ensure_utc(row.timestamp),
        kind=row.kind,
        modification_type=row.modification_type,
        reason=row.reason,
        before=OrderSnapshot.model_validate(row.before_snapshot),
        after=OrderSnapshot.model_validate(row.after_snapshot),
    )


def _row_from_entry(entry: OrderAuditEntry) -> OrderAuditRecord:
    return OrderAuditRecord(
        id=entry.id,
        order_id=entry.order_id,
        sequence=entry.sequence,
        actor_id=entry.actor_id,
        timestamp=ensure_utc(entry.timestamp),
        kind=entry.kind,
        modification_type=entry.modification_type,
        reason=entry.reason,
        before_snapshot=entry.before.model_dump(mode="json"),
        after_snapshot=entry.after.model_dump(mode="json"),
    )


def _apply_state(row: Order, state: OrderRecord) -> None:
    row.customer_name = state.customer_name
    row.items = [item.model_dump(mode="json") for item in state.items]
    row.total_amount = state.total_amount
    row.payment_method = state.payment_method
    row.status = state.status
    row.updated_at = ensure_utc(state.updated_at)


class SqlAlchemyOrderStore(OrderStore):
    """Store backed by the ``orders`` and ``order_audit_records`` tables.

    Each call runs in its own session from ``session_factory``; the lock wait
    bound is the driver timeout configured on the engine.
    """

    def __init__(self, session_factory: Callable[[], Session], *, max_attempts: int | None = None) -> None:
        self._session_factory = session_factory
        self._max_attempts: int = max_attempts or settings.store_max_attempts

    @contextmanager
    def _session(self) -> Iterator[Session]:
        session: Session = self._session_factory()
        try:
            yield session
        except OperationalError as exc:
            session.rollback()
            logger.warning("[STORE] Database operation failed: %s", exc)
            raise StorageFailure("Order store is unavailable") from exc
        finally:
            session.close()

    def get(self, order_id: str) -> OrderRecord | None:
        with self._session() as session:
            row: Order | None = session.get(Order, order_id)
            return _record_from_row(row) if row is not None else None

    def list(self, filters: OrderFilters, page: int, page_size: int) -> OrderPage:
        validate_pagination(page, page_size)
        conditions = []
        if filters.status is not None:
            conditions.append(Order.status == filters.status)
        if filters.created_by is not None:
            conditions.append(Order.created_by == filters.created_by)
        if filters.payment_method is not None:
            conditions.append(Order.payment_method == filters.payment_method)
        if filters.customer_name:
            conditions.append(Order.customer_name.icontains(filters.customer_name, autoescape=True))
        if filters.order_number:
            conditions.append(Order.order_number.icontains(filters.order_number, autoescape=True))
        if filters.date_from is not None:
            conditions.append(Order.created_at >= ensure_utc(filters.date_from))
        if filters.date_to is not None:
            conditions.append(Order.created_at < ensure_utc(filters.date_to))

        with self._session() as session:
            total: int = session.execute(
                select(func.count()).select_from(Order).where(*conditions)
            ).scalar_one()
            rows: list[Order] = list(
                session.execute(
                    select(Order)
                    .where(*conditions)
                    .order_by(Order.created_at.desc(), Order.order_number.desc())
                    .offset((page - 1) * page_size)
                    .limit(page_size)
                ).scalars()
            )
            return OrderPage(
                items=[_record_from_row(row) for row in rows],
                total=total,
                page=page,
                page_size=page_size,
            )

    def create(self, order: OrderRecord) -> OrderRecord:
        with self._session() as session:
            row = Order(
                id=order.id,
                order_number=order.order_number,
                customer_name=order.customer_name,
                items=[item.model_dump(mode="json") for item in order.items],
                total_amount=order.total_amount,
                payment_method=order.payment_method,
                status=order.status,
                created_by=order.created_by,
                created_at=ensure_utc(order.created_at),
                updated_at=ensure_utc(order.updated_at),
            )
            session.add(row)
            try:
                session.commit()
            except IntegrityError as exc:
                session.rollback()
                raise StorageFailure(
                    f"Order {order.order_number} conflicts with an existing order",
                    details={"order_number": order.order_number},
                ) from exc
            return order.model_copy(update={"version": 1})

    def _history_length(self, session: Session, order_id: str) -> int:
        return session.execute(
            select(func.count()).select_from(OrderAuditRecord).where(OrderAuditRecord.order_id == order_id)
        ).scalar_one()

    def _load_for_update(self, session: Session, order_id: str) -> Order:
        row: Order | None = session.execute(
            select(Order).where(Order.id == order_id).with_for_update()
        ).scalar_one_or_none()
        if row is None:
            raise NotFound(f"Order {order_id} not found", details={"order_id": order_id})
        return row

    def append_audit(self, order_id: str, entry: OrderAuditEntry) -> OrderAuditEntry:
        with self._session() as session:
            row = self._load_for_update(session, order_id)
            _check_entry(order_id, entry, self._history_length(session, order_id) + 1)
            row.updated_at = ensure_utc(entry.timestamp)
            # The flush must always UPDATE the row so the version column moves.
            flag_modified(row, "updated_at")
            session.add(_row_from_entry(entry))
            try:
                session.commit()
            except (StaleDataError, IntegrityError) as exc:
                session.rollback()
                raise StorageFailure(
                    f"Concurrent write on order {order_id}; audit record not stored",
                    details={"order_id": order_id},
                ) from exc
        return entry

    def update_order_state(self, order_id: str, mutator: Mutator) -> tuple[OrderRecord, OrderAuditEntry]:
        for attempt in range(1, self._max_attempts + 1):
            with self._session() as session:
                row = self._load_for_update(session, order_id)
                current = _record_from_row(row)
                history_length = self._history_length(session, order_id)
                if history_length != current.version - 1:
                    raise StorageFailure(
                        f"Order {order_id} version disagrees with its history; manual reconciliation required",
                        details={"order_id": order_id},
                    )
                new_state, entry = mutator(current)
                _check_entry(order_id, entry, history_length + 1)
                _apply_state(row, new_state)
                session.add(_row_from_entry(entry))
                try:
                    session.commit()
                except (StaleDataError, IntegrityError):
                    session.rollback()
                    logger.info(
                        "[STORE] Concurrent update on order %s (attempt %s/%s); re-reading.",
                        order_id,
                        attempt,
                        self._max_attempts,
                    )
                    continue
                return new_state.model_copy(update={"version": current.version + 1}), entry
        raise StorageFailure(
            f"Order {order_id} kept changing concurrently; giving up after {self._max_attempts} attempts",
            details={"order_id": order_id},
        )

    def list_audit(self, order_id: str) -> list[OrderAuditEntry]:
        with self._session() as session:
            rows = session.execute(
                select(OrderAuditRecord)
                .where(OrderAuditRecord.order_id == order_id)
                .order_by(OrderAuditRecord.timestamp.asc(), OrderAuditRecord.sequence.asc())
            ).scalars()
            return [_entry_from_row(row) for row in rows]

    def list_by_status(self, status: OrderStatus) -> list[OrderRecord]:
        with self._session() as session:
            rows = session.execute(
                select(Order).where(Order.status == status).order_by(Order.created_at.desc())
            ).scalars()
            return [_record_from_row(row) for row in rows]

    def list_in_window(self, start: datetime, end: datetime) -> list[OrderRecord]:
        with self._session() as session:
            rows = session.execute(
                select(Order)
                .where(Order.created_at >= ensure_utc(start), Order.created_at < ensure_utc(end))
                .order_by(Order.created_at.asc(), Order.order_number.asc())
            ).scalars()
            return [_record_from_row(row) for row in rows]
