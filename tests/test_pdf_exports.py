from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from pos_ledger.core.config import settings
from pos_ledger.services.order_store import InMemoryOrderStore
from pos_ledger.services.pdf_exports import (
    _build_styles,
    _font_path,
    render_eod_report_pdf,
    report_filename,
    sanitize_filename,
)
from pos_ledger.services.report_service import EODReportGenerator
from pos_ledger.services.report_store import InMemoryReportStore
from pos_ledger.services.sequence_service import InMemorySequence

START = datetime(2026, 1, 1, tzinfo=timezone.utc)


def _generator() -> EODReportGenerator:
    return EODReportGenerator(InMemoryOrderStore(), InMemoryReportStore(), InMemorySequence(), vat_rate=Decimal("0.15"))


def test_render_pdf_no_crash_for_empty_report_with_comparison() -> None:
    pytest.importorskip("reportlab")
    report = _generator().generate(
        START,
        START + timedelta(days=1),
        requested_by="manager-1",
        include_previous_period_comparison=True,
    )

    pdf_bytes = render_eod_report_pdf(report, seller_name="Lazaza Trading Est.")

    assert pdf_bytes.startswith(b"%PDF")


def test_report_filename_uses_number_and_period() -> None:
    generator = _generator()
    preview = generator.generate(START, START + timedelta(days=1), requested_by="m")
    persisted = generator.generate(START, START + timedelta(days=1), requested_by="m", persist=True)

    assert report_filename(preview) == "preview_2026-01-01.pdf"
    assert report_filename(persisted) == "EOD-0001_2026-01-01.pdf"


def test_sanitize_filename() -> None:
    assert sanitize_filename(' Report:/\\*?"<>| test  ') == "Report_test"
    assert sanitize_filename("   ") == "report"


def test_missing_configured_font_falls_back_to_helvetica(tmp_path, monkeypatch) -> None:
    pytest.importorskip("reportlab")
    monkeypatch.setattr(settings, "pdf_font_path", str(tmp_path / "missing.ttf"))

    assert _build_styles()["font_name"] == "Helvetica"
    assert render_eod_report_pdf(_generator().generate(START, START + timedelta(days=1), requested_by="m")).startswith(
        b"%PDF"
    )


def test_configured_font_path_wins_over_defaults(tmp_path, monkeypatch) -> None:
    configured = tmp_path / "Shop.ttf"
    monkeypatch.setattr(settings, "pdf_font_path", str(configured))

    assert _font_path() == str(configured)
