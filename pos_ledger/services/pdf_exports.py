"""PDF export for End-Of-Day reports."""

from __future__ import annotations

import logging
import re
from decimal import Decimal
from functools import lru_cache
from io import BytesIO
from pathlib import Path
from typing import Any

from pos_ledger.core.config import settings
from pos_ledger.schemas.report import EODReportRead, EODStatistics

logger = logging.getLogger(__name__)

# Tried in order when PDF_FONT_PATH is unset.
DEFAULT_FONT_PATHS: tuple[str, ...] = (
    "/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf",
    "/usr/share/fonts/truetype/noto/NotoSans-Regular.ttf",
)


def _reportlab():
    from reportlab.lib import colors
    from reportlab.lib.pagesizes import A4
    from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
    from reportlab.pdfbase import pdfmetrics
    from reportlab.pdfbase.ttfonts import TTFont
    from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

    return {
        "colors": colors,
        "A4": A4,
        "ParagraphStyle": ParagraphStyle,
        "getSampleStyleSheet": getSampleStyleSheet,
        "pdfmetrics": pdfmetrics,
        "TTFont": TTFont,
        "Paragraph": Paragraph,
        "SimpleDocTemplate": SimpleDocTemplate,
        "Spacer": Spacer,
        "Table": Table,
        "TableStyle": TableStyle,
    }


def sanitize_filename(value: str, max_length: int = 80) -> str:
    """Return a filesystem-friendly filename fragment."""
    normalized = re.sub(r"[\\/:*?\"<>|]+", "_", (value or "").strip())
    normalized = re.sub(r"\s+", "_", normalized)
    normalized = re.sub(r"_+", "_", normalized).strip("._")
    return (normalized or "report")[:max_length]


def report_filename(report: EODReportRead) -> str:
    label = report.report_number or "preview"
    return f"{sanitize_filename(label)}_{report.period_start:%Y-%m-%d}.pdf"


def _font_path() -> str | None:
    if settings.pdf_font_path:
        return settings.pdf_font_path
    return next((path for path in DEFAULT_FONT_PATHS if Path(path).is_file()), None)


@lru_cache(maxsize=None)
def _register_font(font_path: str | None) -> str:
    """Register ``font_path`` once and return its ReportLab name, or Helvetica."""
    if font_path and Path(font_path).is_file():
        rl = _reportlab()
        font_name = f"Ledger-{Path(font_path).stem}"
        rl["pdfmetrics"].registerFont(rl["TTFont"](font_name, font_path))
        return font_name
    logger.warning(
        "[EOD] PDF font %s not found; item and seller names outside Latin-1 will not render",
        font_path or "(none)",
    )
    return "Helvetica"


def _money(value: Decimal | int) -> str:
    return f"{Decimal(value):.2f}"


def _build_styles() -> dict[str, Any]:
    font_name = _register_font(_font_path())
    rl = _reportlab()
    styles = rl["getSampleStyleSheet"]()
    return {
        "font_name": font_name,
        "title": rl["ParagraphStyle"]("EodTitle", parent=styles["Title"], fontName=font_name),
        "heading": rl["ParagraphStyle"]("EodHeading2", parent=styles["Heading2"], fontName=font_name),
        "normal": rl["ParagraphStyle"]("EodNormal", parent=styles["Normal"], fontName=font_name),
    }


def _table(rows: list[list[str]], col_widths: list[int], styles: dict[str, Any]) -> Any:
    rl = _reportlab()
    table = rl["Table"](rows, colWidths=col_widths)
    table.setStyle(
        rl["TableStyle"](
            [
                ("BACKGROUND", (0, 0), (-1, 0), rl["colors"].lightgrey),
                ("GRID", (0, 0), (-1, -1), 0.5, rl["colors"].black),
                ("FONTNAME", (0, 0), (-1, -1), styles["font_name"]),
                ("ALIGN", (1, 1), (-1, -1), "RIGHT"),
            ]
        )
    )
    return table


def _statistics_story(stats: EODStatistics, styles: dict[str, Any], heading: str) -> list[Any]:
    rl = _reportlab()
    story: list[Any] = [
        rl["Paragraph"](heading, styles["heading"]),
        rl["Paragraph"](
            f"Period: {stats.period_start:%Y-%m-%d %H:%M} to {stats.period_end:%Y-%m-%d %H:%M} UTC",
            styles["normal"],
        ),
        rl["Spacer"](1, 6),
    ]
    summary = [
        ["Metric", "Value"],
        ["Total orders", str(stats.total_orders)],
        ["Completed", str(stats.completed_orders)],
        ["Modified", str(stats.modified_orders)],
        ["Canceled", str(stats.canceled_orders)],
        ["Total with VAT", _money(stats.total_with_vat)],
        ["VAT", _money(stats.total_vat_amount)],
        ["Total without VAT", _money(stats.total_without_vat)],
        ["Canceled value", _money(stats.canceled_total_amount)],
        ["Average order value", _money(stats.average_order_value)],
        ["Completion rate", f"{stats.order_completion_rate:.2f}%"],
        ["Cancellation rate", f"{stats.order_cancellation_rate:.2f}%"],
        ["Peak hour", stats.peak_hour or "-"],
    ]
    story.append(_table(summary, [300, 160], styles))
    story.append(rl["Spacer"](1, 10))

    story.append(rl["Paragraph"]("Payment methods", styles["heading"]))
    payments = [["Method", "Orders", "Amount", "Share", "Canceled"]]
    for entry in stats.payment_method_breakdown:
        payments.append(
            [
                entry.method.value,
                str(entry.order_count),
                _money(entry.total_amount),
                f"{entry.percentage:.2f}%",
                str(entry.canceled_count),
            ]
        )
    story.append(_table(payments, [120, 70, 100, 80, 90], styles))
    story.append(rl["Spacer"](1, 10))

    if stats.best_selling_items:
        story.append(rl["Paragraph"]("Best-selling items", styles["heading"]))
        items = [["Item", "Qty", "Revenue", "Avg price"]]
        for item in stats.best_selling_items:
            items.append([item.item_name, str(item.quantity), _money(item.total_revenue), _money(item.average_price)])
        story.append(_table(items, [220, 60, 100, 80], styles))
        story.append(rl["Spacer"](1, 10))
    return story


def render_eod_report_pdf(report: EODReportRead, *, seller_name: str | None = None) -> bytes:
    """Render one EOD report (and its comparison, when present) and return PDF bytes."""
    styles = _build_styles()
    rl = _reportlab()
    title = f"End-Of-Day report {report.report_number or '(not persisted)'}"
    story: list[Any] = [rl["Paragraph"](title, styles["title"])]
    if seller_name:
        story.append(rl["Paragraph"](seller_name, styles["normal"]))
    story.append(
        rl["Paragraph"](
            f"Generated by {report.generated_by} at {report.generated_at:%Y-%m-%d %H:%M} UTC, VAT rate {report.vat_rate}",
            styles["normal"],
        )
    )
    story.append(rl["Spacer"](1, 10))
    story.extend(_statistics_story(report.statistics, styles, "Summary"))
    if report.previous_period_comparison is not None:
        story.extend(_statistics_story(report.previous_period_comparison, styles, "Previous period"))

    buffer = BytesIO()
    rl["SimpleDocTemplate"](buffer, pagesize=rl["A4"], title=title).build(story)
    return buffer.getvalue()
