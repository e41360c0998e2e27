"""Receipt compliance QR codes.

The payload is a TLV buffer with the fields, in order:

    1 seller name
    2 VAT registration number
    3 invoice timestamp (ISO-8601, UTC)
    4 invoice total with VAT (2 dp)
    5 VAT total (2 dp)
    6 invoice hash (SHA-256 hex of fields 1-5 unless supplied)
    7 digital signature, 8 public key, 9 signature algorithm (optional)

The buffer is base64 encoded and rendered as a QR code PNG.
"""

from __future__ import annotations

import base64
import hashlib
import io
import logging
import re
from datetime import datetime
from decimal import Decimal

import qrcode
from qrcode.exceptions import DataOverflowError

from pos_ledger.core.config import settings
from pos_ledger.core.errors import EncodingError, ValidationError
from pos_ledger.models.enums import OrderStatus
from pos_ledger.schemas.compliance import ComplianceField, CompliancePayload, ComplianceQR, SellerConfig
from pos_ledger.schemas.order import OrderRecord
from pos_ledger.services import tlv
from pos_ledger.services.report_service import vat_split
from pos_ledger.utils.money import format_money, to_money
from pos_ledger.utils.time import ensure_utc

logger = logging.getLogger(__name__)

TAG_SELLER_NAME = 1
TAG_VAT_NUMBER = 2
TAG_TIMESTAMP = 3
TAG_INVOICE_TOTAL = 4
TAG_VAT_TOTAL = 5
TAG_INVOICE_HASH = 6
TAG_SIGNATURE = 7
TAG_PUBLIC_KEY = 8
TAG_SIGNATURE_ALGORITHM = 9

VAT_NUMBER_PATTERN = re.compile(r"[0-9]{15}")

# Strongest first; a payload that overflows one level is retried at the next.
ERROR_CORRECTION_LEVELS: dict[str, int] = {
    "H": qrcode.constants.ERROR_CORRECT_H,
    "Q": qrcode.constants.ERROR_CORRECT_Q,
    "M": qrcode.constants.ERROR_CORRECT_M,
    "L": qrcode.constants.ERROR_CORRECT_L,
}


def format_timestamp(value: datetime) -> str:
    """ISO-8601 in UTC with millisecond precision, e.g. ``2024-01-31T09:15:00.000Z``."""
    moment = ensure_utc(value)
    return moment.strftime("%Y-%m-%dT%H:%M:%S.") + f"{moment.microsecond // 1000:03d}Z"


def invoice_hash(seller_name: str, vat_registration_number: str, timestamp: str, total: str, vat_total: str) -> str:
    digest = hashlib.sha256(f"{seller_name}{vat_registration_number}{timestamp}{total}{vat_total}".encode("utf-8"))
    return digest.hexdigest()


def validate_seller(seller_name: str, vat_registration_number: str) -> None:
    if not (seller_name or "").strip():
        raise ValidationError("Seller name is required", details={"field": "seller_name"})
    if not VAT_NUMBER_PATTERN.fullmatch(vat_registration_number or ""):
        raise ValidationError(
            "VAT registration number must be exactly 15 digits",
            details={"field": "vat_registration_number", "length": len(vat_registration_number or "")},
        )


def build_payload(
    order: OrderRecord,
    seller_name: str,
    vat_registration_number: str,
    vat_total: Decimal,
    *,
    timestamp: datetime | None = None,
    invoice_hash_value: str | None = None,
    signature: str | None = None,
    public_key: str | None = None,
    signature_algorithm: str | None = None,
    prices_include_vat: bool | None = None,
) -> CompliancePayload:
    """Validate inputs and build the TLV payload for ``order``.

    Tag 4 always carries the invoice total with VAT. When stored prices
    exclude VAT, that is the order total plus ``vat_total``.
    """
    validate_seller(seller_name, vat_registration_number)
    if order.status is OrderStatus.CANCELED:
        raise ValidationError(
            f"Order {order.order_number} is canceled; no receipt can be issued",
            details={"order_id": order.id},
        )
    inclusive = settings.prices_include_vat if prices_include_vat is None else prices_include_vat
    vat = to_money(vat_total)
    total = to_money(order.total_amount) if inclusive else to_money(order.total_amount + vat)
    if order.total_amount < 0 or vat < 0:
        raise ValidationError("Invoice and VAT totals must not be negative")
    if vat > total:
        raise ValidationError(
            "VAT total cannot exceed the invoice total",
            details={"total_amount": format_money(total), "vat_total": format_money(vat)},
        )

    issued_at = ensure_utc(timestamp or order.created_at)
    seller = seller_name.strip()
    values: list[tlv.TlvField] = [
        (TAG_SELLER_NAME, seller),
        (TAG_VAT_NUMBER, vat_registration_number),
        (TAG_TIMESTAMP, format_timestamp(issued_at)),
        (TAG_INVOICE_TOTAL, format_money(total)),
        (TAG_VAT_TOTAL, format_money(vat)),
    ]
    digest = invoice_hash_value or invoice_hash(*(value for _, value in values))
    values.append((TAG_INVOICE_HASH, digest))
    for tag, value in (
        (TAG_SIGNATURE, signature),
        (TAG_PUBLIC_KEY, public_key),
        (TAG_SIGNATURE_ALGORITHM, signature_algorithm),
    ):
        if value:
            values.append((tag, value))

    buffer = tlv.encode(values)
    return CompliancePayload(
        fields=[ComplianceField(tag=tag, value=value) for tag, value in values],
        tlv=buffer,
        base64=base64.b64encode(buffer).decode("ascii"),
        timestamp=issued_at,
        invoice_hash=digest,
        invoice_total=total,
    )


def render_qr(
    data: str,
    *,
    error_correction: str = "M",
    box_size: int | None = None,
    border: int | None = None,
) -> tuple[bytes, str]:
    """Render ``data`` as a PNG QR code.

    Returns the PNG bytes and the error-correction level that was used.
    """
    requested = (error_correction or "M").upper()
    if requested not in ERROR_CORRECTION_LEVELS:
        raise ValidationError(
            f"Unknown QR error-correction level {error_correction!r}",
            details={"allowed": list(ERROR_CORRECTION_LEVELS)},
        )
    levels = list(ERROR_CORRECTION_LEVELS)
    for level in levels[levels.index(requested):]:
        qr = qrcode.QRCode(
            version=None,
            error_correction=ERROR_CORRECTION_LEVELS[level],
            box_size=box_size or settings.qr_box_size,
            border=settings.qr_border if border is None else border,
        )
        qr.add_data(data)
        try:
            qr.make(fit=True)
        # qrcode 8 reports a payload past version 40 as ValueError from its version check.
        except (DataOverflowError, ValueError):
            logger.info("[QR] Payload of %s chars does not fit level %s", len(data), level)
            continue
        image = qr.make_image(fill_color="black", back_color="white")
        buffer = io.BytesIO()
        image.save(buffer, format="PNG")
        if level != requested:
            logger.warning("[QR] Stepped error correction down from %s to %s", requested, level)
        return buffer.getvalue(), level
    raise EncodingError(
        "Payload does not fit in a QR code at any error-correction level",
        details={"length": len(data)},
    )


def default_vat_total(order: OrderRecord, rate: Decimal | None = None, prices_include_vat: bool | None = None) -> Decimal:
    """VAT portion of the order total at the configured rate."""
    rate = settings.vat_rate if rate is None else rate
    inclusive = settings.prices_include_vat if prices_include_vat is None else prices_include_vat
    return vat_split(order.total_amount, rate, prices_include_vat=inclusive)[1]


def build_compliance_qr(
    order: OrderRecord,
    seller: SellerConfig | None = None,
    vat_total: Decimal | None = None,
    *,
    error_correction: str | None = None,
    box_size: int | None = None,
    prices_include_vat: bool | None = None,
) -> ComplianceQR:
    """Build the payload for ``order`` and render it as a PNG data URL."""
    seller = seller or SellerConfig(
        seller_name=settings.seller_name,
        vat_registration_number=settings.vat_registration_number,
    )
    inclusive = settings.prices_include_vat if prices_include_vat is None else prices_include_vat
    vat = default_vat_total(order, prices_include_vat=inclusive) if vat_total is None else to_money(vat_total)
    payload = build_payload(
        order,
        seller.seller_name,
        seller.vat_registration_number,
        vat,
        prices_include_vat=inclusive,
    )
    png, level = render_qr(
        payload.base64,
        error_correction=error_correction or settings.qr_error_correction,
        box_size=box_size,
    )
    logger.info("[QR] Built compliance QR for %s (level %s, %s bytes)", order.order_number, level, len(png))
    return ComplianceQR(
        order_id=order.id,
        order_number=order.order_number,
        payload_base64=payload.base64,
        image_data_url="data:image/png;base64," + base64.b64encode(png).decode("ascii"),
        error_correction=level,
        total_amount=payload.invoice_total,
        vat_total=vat,
        invoice_hash=payload.invoice_hash,
        timestamp=payload.timestamp,
    )
