"""Line item pricing and order totals."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from decimal import Decimal

from pos_ledger.core.errors import ValidationError
from pos_ledger.schemas.order import LineItemInput, OrderLineItem
from pos_ledger.utils.money import ZERO, to_money

logger = logging.getLogger(__name__)


def price_line_item(item: LineItemInput, *, index: int = 0) -> OrderLineItem:
    """Validate a line item and compute ``quantity * (unit price + modifier deltas)``."""
    if item.quantity < 1:
        raise ValidationError(
            f"Item {index + 1}: quantity must be at least 1",
            details={"index": index, "quantity": item.quantity},
        )
    unit_price: Decimal = to_money(item.unit_price)
    if unit_price < 0:
        raise ValidationError(
            f"Item {index + 1}: unit price must not be negative",
            details={"index": index, "unit_price": str(unit_price)},
        )

    modifiers = [modifier.model_copy(update={"price_delta": to_money(modifier.price_delta)}) for modifier in item.modifiers]
    effective_unit_price: Decimal = unit_price + sum((modifier.price_delta for modifier in modifiers), ZERO)
    if effective_unit_price < 0:
        raise ValidationError(
            f"Item {index + 1}: modifiers bring the unit price below zero",
            details={"index": index},
        )

    return OrderLineItem(
        item_id=item.item_id,
        display_name=item.display_name,
        quantity=item.quantity,
        unit_price=unit_price,
        category=item.category,
        modifiers=modifiers,
        line_total=to_money(effective_unit_price * item.quantity),
    )


def price_items(items: Sequence[LineItemInput]) -> list[OrderLineItem]:
    """Price every item; an order needs at least one."""
    if not items:
        raise ValidationError("An order needs at least one item")
    return [price_line_item(item, index=index) for index, item in enumerate(items)]


def order_total(items: Sequence[OrderLineItem]) -> Decimal:
    return to_money(sum((item.line_total for item in items), ZERO))


def reconcile_total(computed: Decimal, submitted: Decimal | None, *, context: str) -> Decimal:
    """Return the computed total; log when a submitted total disagreed."""
    if submitted is not None and to_money(submitted) != computed:
        logger.warning(
            "[ORDERS] Submitted total %s for %s does not match computed total %s; using computed value.",
            submitted,
            context,
            computed,
        )
    return computed
