"""Ledger models package."""

from pos_ledger.models.enums import AuditKind, ModificationType, ModifierKind, OrderStatus, PaymentMethod
from pos_ledger.models.order import Order, OrderAuditRecord
from pos_ledger.models.report import EODReport
from pos_ledger.models.sequence import SequenceCounter

__all__ = [
    "Order", "OrderAuditRecord", "EODReport", "SequenceCounter",
    "OrderStatus", "PaymentMethod", "AuditKind", "ModificationType", "ModifierKind",
]
