"""End-Of-Day report generation tests."""

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from pathlib import Path

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from pos_ledger.core.errors import NotFound, ValidationError
from pos_ledger.db.base import Base
from pos_ledger.models.enums import ModificationType, PaymentMethod
from pos_ledger.schemas.order import LineItemInput, OrderPatch
from pos_ledger.services.order_service import OrderLifecycleManager
from pos_ledger.services.order_store import InMemoryOrderStore, SqlAlchemyOrderStore
from pos_ledger.services.report_service import EODReportGenerator, vat_split
from pos_ledger.services.report_store import InMemoryReportStore, SqlAlchemyReportStore
from pos_ledger.services.sequence_service import InMemorySequence, SqlSequence

DAY_START = datetime(2026, 5, 4, 9, 0, tzinfo=timezone.utc)
WINDOW = (DAY_START, DAY_START + timedelta(hours=1))


class _Clock:
    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        current = self.now
        self.now += timedelta(minutes=1)
        return current


def _line(item_id: str, quantity: int, price: str, category: str | None = None) -> LineItemInput:
    return LineItemInput(
        item_id=item_id,
        display_name=item_id.title(),
        quantity=quantity,
        unit_price=Decimal(price),
        category=category,
    )


def _seed_scenario(manager: OrderLifecycleManager) -> None:
    """One canceled order (created 25.00, modified to 20.00) and one completed 30.00 card order."""
    first = manager.create(
        items=[_line("burger", 2, "10.00", "Mains"), _line("fries", 1, "5.00", "Sides")],
        payment_method=PaymentMethod.CASH,
        created_by="cashier-1",
    )
    manager.modify(
        first.id,
        actor_id="manager-1",
        modification_type=ModificationType.ITEM_REMOVED,
        patch=OrderPatch(items=[_line("burger", 2, "10.00", "Mains")]),
    )
    manager.cancel(first.id, actor_id="manager-1")
    manager.create(items=[_line("coffee", 3, "10.00", "Drinks")], payment_method=PaymentMethod.CARD, created_by="cashier-2")


def _in_memory(**kwargs) -> tuple[OrderLifecycleManager, EODReportGenerator]:
    store = InMemoryOrderStore()
    manager = OrderLifecycleManager(store, InMemorySequence(), clock=_Clock(DAY_START))
    generator = EODReportGenerator(
        store,
        InMemoryReportStore(),
        InMemorySequence(),
        clock=_Clock(DAY_START + timedelta(hours=12)),
        vat_rate=kwargs.pop("vat_rate", Decimal("0.15")),
        prices_include_vat=kwargs.pop("prices_include_vat", True),
    )
    return manager, generator


def test_report_counts_canceled_orders_without_counting_their_revenue() -> None:
    manager, generator = _in_memory()
    _seed_scenario(manager)

    report = generator.generate(*WINDOW, requested_by="manager-1")
    stats = report.statistics

    assert stats.total_orders == 2
    assert stats.total_orders == stats.completed_orders + stats.modified_orders + stats.canceled_orders
    assert stats.canceled_orders == 1
    assert stats.total_with_vat == Decimal("30.00")
    assert stats.total_vat_amount == Decimal("3.91")
    assert stats.total_without_vat == Decimal("26.09")
    assert stats.order_completion_rate == 50
    assert stats.order_cancellation_rate == 50
    assert stats.canceled_total_amount == Decimal("20.00")
    assert stats.average_order_value == Decimal("30.00")
    assert report.persisted is False
    assert report.report_number is None


def test_payment_breakdown_shows_canceled_orders_as_zero_revenue() -> None:
    manager, generator = _in_memory()
    _seed_scenario(manager)

    breakdown = {entry.method: entry for entry in generator.generate(*WINDOW, requested_by="m").statistics.payment_method_breakdown}

    assert set(breakdown) == set(PaymentMethod)
    assert breakdown[PaymentMethod.CASH].order_count == 0
    assert breakdown[PaymentMethod.CASH].canceled_count == 1
    assert breakdown[PaymentMethod.CASH].total_amount == Decimal("0.00")
    assert breakdown[PaymentMethod.CARD].order_count == 1
    assert breakdown[PaymentMethod.CARD].total_amount == Decimal("30.00")
    assert breakdown[PaymentMethod.CARD].percentage == Decimal("100.00")


def test_best_sellers_and_hourly_sales_skip_canceled_orders() -> None:
    manager, generator = _in_memory()
    _seed_scenario(manager)

    stats = generator.generate(*WINDOW, requested_by="m").statistics

    assert [item.item_id for item in stats.best_selling_items] == ["coffee"]
    assert stats.best_selling_items[0].quantity == 3
    assert stats.best_selling_items[0].average_price == Decimal("10.00")
    assert len(stats.hourly_sales) == 24
    assert stats.hourly_sales[9].order_count == 1
    assert stats.hourly_sales[9].revenue == Decimal("30.00")
    assert stats.peak_hour == "09:00"


def test_empty_window_has_zero_rates() -> None:
    _, generator = _in_memory()

    stats = generator.generate(*WINDOW, requested_by="m").statistics

    assert stats.total_orders == 0
    assert stats.order_completion_rate == 0
    assert stats.average_order_value == Decimal("0.00")
    assert stats.peak_hour is None
    assert stats.best_selling_items == []


def test_window_end_is_exclusive() -> None:
    manager, generator = _in_memory()
    _seed_scenario(manager)

    stats = generator.generate(DAY_START - timedelta(hours=1), DAY_START, requested_by="m").statistics

    assert stats.total_orders == 0


@pytest.mark.parametrize("end_offset", [timedelta(0), timedelta(hours=-1)])
def test_window_must_be_ordered(end_offset: timedelta) -> None:
    _, generator = _in_memory()

    with pytest.raises(ValidationError):
        generator.generate(DAY_START, DAY_START + end_offset, requested_by="m")


def test_vat_exclusive_prices_are_grossed_up() -> None:
    manager, generator = _in_memory(prices_include_vat=False)
    _seed_scenario(manager)

    stats = generator.generate(*WINDOW, requested_by="m").statistics

    assert stats.total_without_vat == Decimal("30.00")
    assert stats.total_vat_amount == Decimal("4.50")
    assert stats.total_with_vat == Decimal("34.50")
    assert vat_split(Decimal("100.00"), Decimal("0.15"), prices_include_vat=True) == (
        Decimal("100.00"),
        Decimal("13.04"),
        Decimal("86.96"),
    )


def test_comparison_covers_preceding_window_of_equal_length() -> None:
    manager, generator = _in_memory()
    _seed_scenario(manager)

    report = generator.generate(
        DAY_START + timedelta(hours=1),
        DAY_START + timedelta(hours=2),
        requested_by="m",
        include_previous_period_comparison=True,
    )

    comparison = report.previous_period_comparison
    assert comparison is not None
    assert comparison.period_start == DAY_START
    assert comparison.period_end == DAY_START + timedelta(hours=1)
    assert comparison.total_orders == 2
    assert report.statistics.total_orders == 0
    assert "previous_period_comparison" not in comparison.model_dump()


def test_persisted_reports_get_sequential_numbers_and_are_never_overwritten() -> None:
    manager, generator = _in_memory()
    _seed_scenario(manager)

    assert generator.next_report_number() == "EOD-0001"
    first = generator.generate(*WINDOW, requested_by="m", persist=True)
    second = generator.generate(*WINDOW, requested_by="m", persist=True)

    assert (first.report_number, second.report_number) == ("EOD-0001", "EOD-0002")
    assert first.id != second.id
    assert generator.get_report(first.id) == first
    assert generator.next_report_number() == "EOD-0003"

    history = generator.history(page=1, limit=10)
    assert [row.report_number for row in history.reports] == ["EOD-0002", "EOD-0001"]


def test_history_pagination_metadata() -> None:
    _, generator = _in_memory()
    for _ in range(3):
        generator.generate(*WINDOW, requested_by="m", persist=True)

    first_page = generator.history(page=1, limit=2)
    second_page = generator.history(page=2, limit=2)

    assert first_page.pagination.total_count == 3
    assert first_page.pagination.total_pages == 2
    assert first_page.pagination.has_next is True
    assert first_page.pagination.has_prev is False
    assert len(second_page.reports) == 1
    assert second_page.pagination.has_next is False
    assert second_page.pagination.has_prev is True

    with pytest.raises(ValidationError):
        generator.history(page=0, limit=2)


def test_history_date_range_filters_on_period_start() -> None:
    _, generator = _in_memory()
    generator.generate(*WINDOW, requested_by="m", persist=True)
    generator.generate(WINDOW[0] + timedelta(days=1), WINDOW[1] + timedelta(days=1), requested_by="m", persist=True)

    history = generator.history(date_from=DAY_START + timedelta(hours=12))

    assert [row.report_number for row in history.reports] == ["EOD-0002"]


def test_unknown_report_is_not_found() -> None:
    _, generator = _in_memory()

    with pytest.raises(NotFound):
        generator.get_report("missing")


def test_sql_report_store_round_trip(tmp_path: Path) -> None:
    engine = create_engine(f"sqlite:///{tmp_path / 'reports.db'}", connect_args={"check_same_thread": False})
    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)
    order_store = SqlAlchemyOrderStore(factory)
    manager = OrderLifecycleManager(order_store, SqlSequence(factory), clock=_Clock(DAY_START))
    _seed_scenario(manager)
    generator = EODReportGenerator(
        order_store,
        SqlAlchemyReportStore(factory),
        SqlSequence(factory),
        clock=_Clock(DAY_START + timedelta(hours=12)),
        vat_rate=Decimal("0.15"),
        prices_include_vat=True,
    )

    report = generator.generate(*WINDOW, requested_by="m", include_previous_period_comparison=True, persist=True)
    loaded = generator.get_report(report.id)

    assert loaded == report
    assert loaded.statistics.total_with_vat == Decimal("30.00")
    assert loaded.previous_period_comparison is not None
    history = generator.history(page=1, limit=5)
    assert history.pagination.total_count == 1
    assert history.reports[0].report_number == "EOD-0001"
    assert history.reports[0].order_completion_rate == Decimal("50.00")
