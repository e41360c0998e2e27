"""End-Of-Day report schemas."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

from pos_ledger.models.enums import PaymentMethod


class PaymentBreakdownEntry(BaseModel):
    """Revenue orders and canceled orders for one payment method."""

    method: PaymentMethod
    order_count: int
    total_amount: Decimal
    percentage: Decimal
    canceled_count: int = 0


class BestSellingItem(BaseModel):
    item_id: str
    item_name: str
    category: str | None = None
    quantity: int
    total_revenue: Decimal
    average_price: Decimal


class HourlySales(BaseModel):
    hour: int
    order_count: int
    revenue: Decimal


class EODStatistics(BaseModel):
    """Aggregates for one half-open window ``[period_start, period_end)``."""

    period_start: datetime
    period_end: datetime
    total_orders: int
    completed_orders: int
    modified_orders: int
    canceled_orders: int
    total_with_vat: Decimal
    total_vat_amount: Decimal
    total_without_vat: Decimal
    canceled_total_amount: Decimal
    average_order_value: Decimal
    order_completion_rate: Decimal
    order_cancellation_rate: Decimal
    payment_method_breakdown: list[PaymentBreakdownEntry]
    best_selling_items: list[BestSellingItem]
    hourly_sales: list[HourlySales]
    peak_hour: str | None = None


class EODReportRead(BaseModel):
    """Generated or persisted EOD report."""

    id: str | None = None
    report_number: str | None = None
    period_start: datetime
    period_end: datetime
    statistics: EODStatistics
    previous_period_comparison: EODStatistics | None = None
    vat_rate: Decimal
    generated_by: str
    generated_at: datetime
    persisted: bool = False

    model_config = ConfigDict(from_attributes=True)


class EODReportSummary(BaseModel):
    """History row for a persisted report."""

    id: str
    report_number: str
    period_start: datetime
    period_end: datetime
    total_orders: int
    total_with_vat: Decimal
    total_vat_amount: Decimal
    order_completion_rate: Decimal
    generated_by: str
    generated_at: datetime


class Pagination(BaseModel):
    page: int
    limit: int
    total_count: int
    total_pages: int
    has_next: bool
    has_prev: bool


class EODReportHistory(BaseModel):
    reports: list[EODReportSummary]
    pagination: Pagination


class GenerateEODReportRequest(BaseModel):
    """Either an explicit window or a preset must be given."""

    period_start: datetime | None = None
    period_end: datetime | None = None
    preset: Literal["today", "yesterday", "last-7-days"] | None = None
    include_previous_period_comparison: bool = False
    persist: bool = False

    @model_validator(mode="after")
    def _window_or_preset(self) -> "GenerateEODReportRequest":
        if self.preset is None and (self.period_start is None or self.period_end is None):
            raise ValueError("Provide period_start and period_end, or a preset")
        return self


class NextReportNumber(BaseModel):
    report_number: str = Field(description="Number the next persisted report will receive")
