"""Closed value sets shared by ORM models and API schemas."""

from enum import Enum


class OrderStatus(str, Enum):
    COMPLETED = "completed"
    MODIFIED = "modified"
    CANCELED = "canceled"


class PaymentMethod(str, Enum):
    CASH = "cash"
    CARD = "card"
    MIXED = "mixed"
    DELIVERY = "delivery"


class AuditKind(str, Enum):
    MODIFICATION = "modification"
    CANCELLATION = "cancellation"


class ModificationType(str, Enum):
    ITEM_ADDED = "item_added"
    ITEM_REMOVED = "item_removed"
    QUANTITY_CHANGED = "quantity_changed"
    ITEM_REPLACED = "item_replaced"
    MULTIPLE_CHANGES = "multiple_changes"


class ModifierKind(str, Enum):
    EXTRA = "extra"
    WITHOUT = "without"
