"""Order endpoints."""

from datetime import datetime
from decimal import Decimal

from fastapi import APIRouter, Depends, Query, status

from pos_ledger.api.deps import get_lifecycle_manager
from pos_ledger.core.security import Actor, get_current_actor
from pos_ledger.models.enums import OrderStatus, PaymentMethod
from pos_ledger.schemas.common import Envelope
from pos_ledger.schemas.compliance import ComplianceQR
from pos_ledger.schemas.order import (
    CancelOrderRequest,
    CreateOrderRequest,
    ModifyOrderRequest,
    OrderFilters,
    OrderHistory,
    OrderPage,
    OrderRecord,
    OrderTransition,
)
from pos_ledger.services.compliance_service import build_compliance_qr
from pos_ledger.services.order_service import OrderLifecycleManager

router: APIRouter = APIRouter()


@router.post("", response_model=Envelope[OrderRecord], status_code=status.HTTP_201_CREATED)
def create_order(
    payload: CreateOrderRequest,
    actor: Actor = Depends(get_current_actor),
    manager: OrderLifecycleManager = Depends(get_lifecycle_manager),
) -> Envelope[OrderRecord]:
    order = manager.create(
        customer_name=payload.customer_name,
        items=payload.items,
        payment_method=payload.payment_method,
        created_by=actor.id,
        total_amount=payload.total_amount,
    )
    return Envelope(data=order)


@router.get("", response_model=Envelope[OrderPage])
def list_orders(
    status_filter: OrderStatus | None = Query(default=None, alias="status"),
    created_by: str | None = Query(default=None),
    customer_name: str | None = Query(default=None),
    order_number: str | None = Query(default=None),
    payment_method: PaymentMethod | None = Query(default=None),
    date_from: datetime | None = Query(default=None),
    date_to: datetime | None = Query(default=None),
    page: int = Query(default=1),
    page_size: int = Query(default=10, alias="limit"),
    _actor: Actor = Depends(get_current_actor),
    manager: OrderLifecycleManager = Depends(get_lifecycle_manager),
) -> Envelope[OrderPage]:
    """Filtered orders, newest first. Pagination bounds are checked by the store."""
    filters = OrderFilters(
        status=status_filter,
        created_by=created_by,
        customer_name=customer_name,
        order_number=order_number,
        payment_method=payment_method,
        date_from=date_from,
        date_to=date_to,
    )
    return Envelope(data=manager.list(filters, page=page, page_size=page_size))


@router.get("/modified", response_model=Envelope[list[OrderRecord]])
def list_modified_orders(
    _actor: Actor = Depends(get_current_actor),
    manager: OrderLifecycleManager = Depends(get_lifecycle_manager),
) -> Envelope[list[OrderRecord]]:
    return Envelope(data=manager.list_modified())


@router.get("/{order_id}", response_model=Envelope[OrderRecord])
def get_order(
    order_id: str,
    _actor: Actor = Depends(get_current_actor),
    manager: OrderLifecycleManager = Depends(get_lifecycle_manager),
) -> Envelope[OrderRecord]:
    return Envelope(data=manager.get(order_id))


@router.post("/{order_id}/modify", response_model=Envelope[OrderTransition])
def modify_order(
    order_id: str,
    payload: ModifyOrderRequest,
    actor: Actor = Depends(get_current_actor),
    manager: OrderLifecycleManager = Depends(get_lifecycle_manager),
) -> Envelope[OrderTransition]:
    order, record = manager.modify(
        order_id,
        actor_id=actor.id,
        modification_type=payload.modification_type,
        patch=payload.changes,
    )
    return Envelope(data=OrderTransition(order=order, audit_record=record))


@router.post("/{order_id}/cancel", response_model=Envelope[OrderTransition])
def cancel_order(
    order_id: str,
    payload: CancelOrderRequest | None = None,
    actor: Actor = Depends(get_current_actor),
    manager: OrderLifecycleManager = Depends(get_lifecycle_manager),
) -> Envelope[OrderTransition]:
    reason = payload.reason if payload is not None else None
    order, record = manager.cancel(order_id, actor_id=actor.id, reason=reason)
    return Envelope(data=OrderTransition(order=order, audit_record=record))


@router.get("/{order_id}/history", response_model=Envelope[OrderHistory])
def get_order_history(
    order_id: str,
    _actor: Actor = Depends(get_current_actor),
    manager: OrderLifecycleManager = Depends(get_lifecycle_manager),
) -> Envelope[OrderHistory]:
    return Envelope(data=OrderHistory(order_id=order_id, entries=manager.get_history(order_id)))


@router.get("/{order_id}/compliance-qr", response_model=Envelope[ComplianceQR])
def get_compliance_qr(
    order_id: str,
    vat_total: Decimal | None = Query(default=None),
    error_correction: str | None = Query(default=None),
    box_size: int | None = Query(default=None, ge=1, le=40),
    _actor: Actor = Depends(get_current_actor),
    manager: OrderLifecycleManager = Depends(get_lifecycle_manager),
) -> Envelope[ComplianceQR]:
    """Receipt QR for the configured seller. Rendered on demand, never stored."""
    order = manager.get(order_id)
    qr = build_compliance_qr(order, vat_total=vat_total, error_correction=error_correction, box_size=box_size)
    return Envelope(data=qr)
