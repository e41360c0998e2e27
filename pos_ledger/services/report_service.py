"""End-Of-Day sales reconciliation reports.

A report covers the half-open window ``[period_start, period_end)`` and reads
every order created inside it regardless of status. Canceled orders count
toward ``total_orders`` and are visible per payment method, but never add to
revenue or VAT.
"""

from __future__ import annotations

import logging
import uuid
from collections import defaultdict
from collections.abc import Callable, Sequence
from datetime import datetime
from decimal import Decimal

from pos_ledger.core.config import settings
from pos_ledger.core.errors import NotFound, ValidationError
from pos_ledger.models.enums import OrderStatus, PaymentMethod
from pos_ledger.schemas.order import OrderRecord
from pos_ledger.schemas.report import (
    BestSellingItem,
    EODReportHistory,
    EODReportRead,
    EODStatistics,
    HourlySales,
    PaymentBreakdownEntry,
)
from pos_ledger.services.order_store import OrderStore
from pos_ledger.services.report_store import ReportStore
from pos_ledger.services.sequence_service import REPORT_SEQUENCE, SequenceSource, format_number
from pos_ledger.utils.money import ZERO, percentage, to_money
from pos_ledger.utils.time import ensure_utc, preceding_window, utcnow

logger = logging.getLogger(__name__)

BEST_SELLING_LIMIT = 10


def vat_split(amount: Decimal, rate: Decimal, *, prices_include_vat: bool) -> tuple[Decimal, Decimal, Decimal]:
    """Return ``(gross, vat, net)`` for ``amount`` at ``rate``."""
    if prices_include_vat:
        gross = to_money(amount)
        vat = to_money(gross * rate / (1 + rate))
        return gross, vat, gross - vat
    net = to_money(amount)
    vat = to_money(net * rate)
    return net + vat, vat, net


def _payment_breakdown(orders: Sequence[OrderRecord], revenue: Decimal) -> list[PaymentBreakdownEntry]:
    counts: dict[PaymentMethod, int] = defaultdict(int)
    amounts: dict[PaymentMethod, Decimal] = defaultdict(lambda: ZERO)
    canceled: dict[PaymentMethod, int] = defaultdict(int)
    for order in orders:
        if order.status is OrderStatus.CANCELED:
            canceled[order.payment_method] += 1
            continue
        counts[order.payment_method] += 1
        amounts[order.payment_method] += order.total_amount
    return [
        PaymentBreakdownEntry(
            method=method,
            order_count=counts[method],
            total_amount=to_money(amounts[method]),
            percentage=percentage(amounts[method], revenue),
            canceled_count=canceled[method],
        )
        for method in PaymentMethod
    ]


def _best_selling(orders: Sequence[OrderRecord]) -> list[BestSellingItem]:
    quantities: dict[str, int] = defaultdict(int)
    revenue: dict[str, Decimal] = defaultdict(lambda: ZERO)
    names: dict[str, tuple[str, str | None]] = {}
    for order in orders:
        for item in order.items:
            quantities[item.item_id] += item.quantity
            revenue[item.item_id] += item.line_total
            names.setdefault(item.item_id, (item.display_name, item.category))

    ranked = sorted(quantities, key=lambda item_id: (-quantities[item_id], -revenue[item_id], item_id))
    return [
        BestSellingItem(
            item_id=item_id,
            item_name=names[item_id][0],
            category=names[item_id][1],
            quantity=quantities[item_id],
            total_revenue=to_money(revenue[item_id]),
            average_price=to_money(revenue[item_id] / quantities[item_id]),
        )
        for item_id in ranked[:BEST_SELLING_LIMIT]
    ]


def _hourly_sales(orders: Sequence[OrderRecord]) -> list[HourlySales]:
    counts = [0] * 24
    revenue = [ZERO] * 24
    for order in orders:
        hour = ensure_utc(order.created_at).hour
        counts[hour] += 1
        revenue[hour] += order.total_amount
    return [HourlySales(hour=hour, order_count=counts[hour], revenue=to_money(revenue[hour])) for hour in range(24)]


def _peak_hour(hourly: Sequence[HourlySales]) -> str | None:
    busy = [bucket for bucket in hourly if bucket.order_count]
    if not busy:
        return None
    # Earliest hour wins ties.
    peak = max(busy, key=lambda bucket: (bucket.revenue, -bucket.hour))
    return f"{peak.hour:02d}:00"


class EODReportGenerator:
    """Builds, persists and lists EOD reports."""

    def __init__(
        self,
        order_store: OrderStore,
        report_store: ReportStore,
        sequence: SequenceSource,
        *,
        clock: Callable[[], datetime] = utcnow,
        vat_rate: Decimal | None = None,
        prices_include_vat: bool | None = None,
        report_number_prefix: str | None = None,
    ) -> None:
        self.order_store = order_store
        self.report_store = report_store
        self.sequence = sequence
        self._clock = clock
        self.vat_rate: Decimal = settings.vat_rate if vat_rate is None else Decimal(vat_rate)
        self.prices_include_vat: bool = (
            settings.prices_include_vat if prices_include_vat is None else prices_include_vat
        )
        self._prefix: str = report_number_prefix or settings.report_number_prefix

    def statistics(self, period_start: datetime, period_end: datetime) -> EODStatistics:
        """Aggregate one window. Read-only."""
        start, end = ensure_utc(period_start), ensure_utc(period_end)
        orders = self.order_store.list_in_window(start, end)
        revenue_orders = [order for order in orders if order.status is not OrderStatus.CANCELED]
        canceled_orders = [order for order in orders if order.status is OrderStatus.CANCELED]
        completed = sum(1 for order in orders if order.status is OrderStatus.COMPLETED)
        modified = sum(1 for order in orders if order.status is OrderStatus.MODIFIED)

        revenue_base = to_money(sum((order.total_amount for order in revenue_orders), ZERO))
        gross, vat, net = vat_split(revenue_base, self.vat_rate, prices_include_vat=self.prices_include_vat)
        hourly = _hourly_sales(revenue_orders)
        total_orders = len(orders)

        return EODStatistics(
            period_start=start,
            period_end=end,
            total_orders=total_orders,
            completed_orders=completed,
            modified_orders=modified,
            canceled_orders=len(canceled_orders),
            total_with_vat=gross,
            total_vat_amount=vat,
            total_without_vat=net,
            canceled_total_amount=to_money(sum((order.total_amount for order in canceled_orders), ZERO)),
            average_order_value=to_money(gross / len(revenue_orders)) if revenue_orders else ZERO,
            order_completion_rate=percentage(completed + modified, total_orders),
            order_cancellation_rate=percentage(len(canceled_orders), total_orders),
            payment_method_breakdown=_payment_breakdown(orders, revenue_base),
            best_selling_items=_best_selling(revenue_orders),
            hourly_sales=hourly,
            peak_hour=_peak_hour(hourly),
        )

    def generate(
        self,
        period_start: datetime,
        period_end: datetime,
        *,
        requested_by: str,
        include_previous_period_comparison: bool = False,
        persist: bool = False,
    ) -> EODReportRead:
        start, end = ensure_utc(period_start), ensure_utc(period_end)
        if start >= end:
            raise ValidationError(
                "period_start must be before period_end",
                details={"period_start": start.isoformat(), "period_end": end.isoformat()},
            )
        actor = (requested_by or "").strip()
        if not actor:
            raise ValidationError("requested_by is required", details={"field": "requested_by"})

        statistics = self.statistics(start, end)
        comparison = None
        if include_previous_period_comparison:
            comparison = self.statistics(*preceding_window(start, end))

        report = EODReportRead(
            period_start=start,
            period_end=end,
            statistics=statistics,
            previous_period_comparison=comparison,
            vat_rate=self.vat_rate,
            generated_by=actor,
            generated_at=ensure_utc(self._clock()),
        )
        if persist:
            report = report.model_copy(
                update={
                    "id": str(uuid.uuid4()),
                    "report_number": format_number(self._prefix, self.sequence.next(REPORT_SEQUENCE)),
                    "persisted": True,
                }
            )
            self.report_store.add(report)

        logger.info(
            "[EOD] Report %s for %s..%s by %s: orders=%s revenue=%s",
            report.report_number or "(preview)",
            start.isoformat(),
            end.isoformat(),
            actor,
            statistics.total_orders,
            statistics.total_with_vat,
        )
        return report

    def get_report(self, report_id: str) -> EODReportRead:
        report = self.report_store.get(report_id)
        if report is None:
            raise NotFound(f"EOD report {report_id} not found", details={"report_id": report_id})
        return report

    def history(
        self,
        page: int = 1,
        limit: int = 10,
        date_from: datetime | None = None,
        date_to: datetime | None = None,
    ) -> EODReportHistory:
        if date_from is not None and date_to is not None and ensure_utc(date_from) >= ensure_utc(date_to):
            raise ValidationError("date_from must be before date_to")
        return self.report_store.history(page, limit, date_from, date_to)

    def next_report_number(self) -> str:
        """Number the next persisted report will get. Does not consume it."""
        return format_number(self._prefix, self.sequence.peek(REPORT_SEQUENCE))
