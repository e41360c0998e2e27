"""Receipt compliance QR schemas."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel


class SellerConfig(BaseModel):
    seller_name: str
    vat_registration_number: str


class ComplianceField(BaseModel):
    tag: int
    value: str


class CompliancePayload(BaseModel):
    """TLV payload for one receipt. Derived on demand, never stored."""

    fields: list[ComplianceField]
    tlv: bytes
    base64: str
    timestamp: datetime
    invoice_hash: str
    invoice_total: Decimal


class ComplianceQR(BaseModel):
    order_id: str
    order_number: str
    payload_base64: str
    image_data_url: str
    error_correction: str
    total_amount: Decimal
    vat_total: Decimal
    invoice_hash: str
    timestamp: datetime
