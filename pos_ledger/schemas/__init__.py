"""Schema exports."""

from pos_ledger.schemas.common import Envelope, ErrorBody, ErrorEnvelope
from pos_ledger.schemas.compliance import CompliancePayload, ComplianceQR, SellerConfig
from pos_ledger.schemas.order import (
    CancelOrderRequest,
    CreateOrderRequest,
    LineItemInput,
    ModifyOrderRequest,
    OrderAuditEntry,
    OrderFilters,
    OrderLineItem,
    OrderPage,
    OrderPatch,
    OrderRecord,
    OrderTransition,
)
from pos_ledger.schemas.report import EODReportHistory, EODReportRead, EODStatistics, GenerateEODReportRequest

__all__ = [
    "Envelope",
    "ErrorBody",
    "ErrorEnvelope",
    "CompliancePayload",
    "ComplianceQR",
    "SellerConfig",
    "CancelOrderRequest",
    "CreateOrderRequest",
    "LineItemInput",
    "ModifyOrderRequest",
    "OrderAuditEntry",
    "OrderFilters",
    "OrderLineItem",
    "OrderPage",
    "OrderPatch",
    "OrderRecord",
    "OrderTransition",
    "EODReportHistory",
    "EODReportRead",
    "EODStatistics",
    "GenerateEODReportRequest",
]
