import base64
import hashlib
import io
from datetime import datetime, timezone
from decimal import Decimal

import pytest

from pos_ledger.core.errors import EncodingError, ValidationError
from pos_ledger.models.enums import OrderStatus, PaymentMethod
from pos_ledger.schemas.compliance import SellerConfig
from pos_ledger.schemas.order import OrderLineItem, OrderRecord
from pos_ledger.services import tlv
from pos_ledger.services.compliance_service import (
    build_compliance_qr,
    build_payload,
    default_vat_total,
    format_timestamp,
    render_qr,
)

VAT_NUMBER = "300000000000003"
CREATED_AT = datetime(2026, 3, 1, 12, 30, 5, 250000, tzinfo=timezone.utc)
PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"


def _order(total: str = "115.00", status: OrderStatus = OrderStatus.COMPLETED) -> OrderRecord:
    return OrderRecord(
        id="order-1",
        order_number="ORD-0001",
        items=[
            OrderLineItem(
                item_id="meal",
                display_name="Meal",
                quantity=1,
                unit_price=Decimal(total),
                line_total=Decimal(total),
            )
        ],
        total_amount=Decimal(total),
        payment_method=PaymentMethod.CARD,
        status=status,
        created_by="cashier-1",
        created_at=CREATED_AT,
        updated_at=CREATED_AT,
    )


def test_payload_fields_are_emitted_in_fixed_order() -> None:
    payload = build_payload(_order(), "Lazaza", VAT_NUMBER, Decimal("15"))

    fields = tlv.decode(base64.b64decode(payload.base64))
    assert [tag for tag, _ in fields] == [1, 2, 3, 4, 5, 6]
    assert fields[0] == (1, "Lazaza")
    assert fields[1] == (2, VAT_NUMBER)
    assert fields[2] == (3, "2026-03-01T12:30:05.250Z")
    assert fields[3] == (4, "115.00")
    assert fields[4] == (5, "15.00")


def test_invoice_hash_is_deterministic_sha256_of_other_fields() -> None:
    first = build_payload(_order(), "Lazaza", VAT_NUMBER, Decimal("15.00"))
    second = build_payload(_order(), "Lazaza", VAT_NUMBER, Decimal("15.00"))

    expected = hashlib.sha256(f"Lazaza{VAT_NUMBER}2026-03-01T12:30:05.250Z115.0015.00".encode()).hexdigest()
    assert first.invoice_hash == second.invoice_hash == expected
    assert first.base64 == second.base64


def test_supplied_hash_and_signature_fields_are_used() -> None:
    payload = build_payload(
        _order(),
        "Lazaza",
        VAT_NUMBER,
        Decimal("15.00"),
        invoice_hash_value="abc123",
        signature="sig",
        public_key="key",
        signature_algorithm="ECDSA",
    )

    assert tlv.as_mapping(tlv.decode(payload.tlv)) == {
        1: "Lazaza",
        2: VAT_NUMBER,
        3: "2026-03-01T12:30:05.250Z",
        4: "115.00",
        5: "15.00",
        6: "abc123",
        7: "sig",
        8: "key",
        9: "ECDSA",
    }


@pytest.mark.parametrize("vat_number", ["30000000000000", "3000000000000031", "30000000000000A", "٣٠٠٠٠٠٠٠٠٠٠٠٠٠٣"])
def test_vat_number_must_be_fifteen_ascii_digits(vat_number: str) -> None:
    with pytest.raises(ValidationError):
        build_payload(_order(), "Lazaza", vat_number, Decimal("15.00"))


@pytest.mark.parametrize("vat_total", ["-0.01", "115.01"])
def test_vat_total_must_be_between_zero_and_invoice_total(vat_total: str) -> None:
    with pytest.raises(ValidationError):
        build_payload(_order(), "Lazaza", VAT_NUMBER, Decimal(vat_total))


def test_blank_seller_name_is_rejected() -> None:
    with pytest.raises(ValidationError):
        build_payload(_order(), "   ", VAT_NUMBER, Decimal("15.00"))


def test_canceled_order_gets_no_receipt_qr() -> None:
    with pytest.raises(ValidationError):
        build_payload(_order(status=OrderStatus.CANCELED), "Lazaza", VAT_NUMBER, Decimal("15.00"))


def test_oversized_seller_name_is_an_encoding_error() -> None:
    with pytest.raises(EncodingError):
        build_payload(_order(), "S" * 256, VAT_NUMBER, Decimal("15.00"))


def test_render_qr_returns_png_at_requested_level() -> None:
    png, level = render_qr("hello", error_correction="M")

    assert png.startswith(PNG_SIGNATURE)
    assert level == "M"


def test_render_qr_steps_down_when_payload_overflows_requested_level() -> None:
    png, level = render_qr("a" * 2000, error_correction="H")

    assert png.startswith(PNG_SIGNATURE)
    assert level == "M"


def test_render_qr_raises_when_no_level_fits() -> None:
    with pytest.raises(EncodingError):
        render_qr("a" * 3500, error_correction="L")


@pytest.mark.parametrize("requested", ["H", "Q", "M", "L"])
def test_render_qr_oversized_payload_is_encoding_error_from_every_level(requested: str) -> None:
    with pytest.raises(EncodingError):
        render_qr("a" * 5000, error_correction=requested)


def test_render_qr_box_size_scales_image() -> None:
    Image = pytest.importorskip("PIL.Image")

    small, _ = render_qr("hello", error_correction="M", box_size=2, border=0)
    large, _ = render_qr("hello", error_correction="M", box_size=10, border=0)

    small_width = Image.open(io.BytesIO(small)).size[0]
    large_width = Image.open(io.BytesIO(large)).size[0]
    assert small_width * 5 == large_width


def test_render_qr_rejects_unknown_level() -> None:
    with pytest.raises(ValidationError):
        render_qr("hello", error_correction="X")


def test_build_compliance_qr_defaults_vat_to_configured_rate() -> None:
    qr = build_compliance_qr(_order(), SellerConfig(seller_name="Lazaza", vat_registration_number=VAT_NUMBER))

    assert qr.vat_total == Decimal("15.00")
    assert qr.image_data_url.startswith("data:image/png;base64,")
    assert base64.b64decode(qr.image_data_url.split(",", 1)[1]).startswith(PNG_SIGNATURE)
    assert tlv.as_mapping(tlv.decode(base64.b64decode(qr.payload_base64)))[5] == "15.00"


def test_format_timestamp_normalizes_to_utc() -> None:
    value = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)

    assert format_timestamp(value) == "2026-03-01T12:00:00.000Z"


def test_vat_exclusive_prices_put_gross_total_in_payload() -> None:
    order = _order(total="100.00")
    vat = default_vat_total(order, Decimal("0.15"), prices_include_vat=False)

    payload = build_payload(order, "Lazaza", VAT_NUMBER, vat, prices_include_vat=False)

    fields = tlv.as_mapping(tlv.decode(payload.tlv))
    assert fields[4] == "115.00"
    assert fields[5] == "15.00"
    assert payload.invoice_total == Decimal("115.00")


def test_vat_inclusive_prices_keep_order_total_in_payload() -> None:
    payload = build_payload(_order(), "Lazaza", VAT_NUMBER, Decimal("15.00"), prices_include_vat=True)

    assert tlv.as_mapping(tlv.decode(payload.tlv))[4] == "115.00"


def test_build_compliance_qr_reports_gross_total_when_prices_exclude_vat() -> None:
    qr = build_compliance_qr(
        _order(total="100.00"),
        SellerConfig(seller_name="Lazaza", vat_registration_number=VAT_NUMBER),
        prices_include_vat=False,
        box_size=4,
    )

    assert qr.total_amount == Decimal("100.00") + qr.vat_total
    assert tlv.as_mapping(tlv.decode(base64.b64decode(qr.payload_base64)))[4] == f"{qr.total_amount:.2f}"
