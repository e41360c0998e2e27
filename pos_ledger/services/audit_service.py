"""Audit record construction."""

from __future__ import annotations

import uuid
from datetime import datetime

from pos_ledger.models.enums import AuditKind, ModificationType
from pos_ledger.schemas.order import OrderAuditEntry, OrderRecord


def build_audit_entry(
    *,
    before: OrderRecord,
    after: OrderRecord,
    actor_id: str,
    kind: AuditKind,
    timestamp: datetime,
    sequence: int,
    modification_type: ModificationType | None = None,
    reason: str | None = None,
) -> OrderAuditEntry:
    """Return an audit entry carrying full before/after snapshots."""
    if kind is AuditKind.MODIFICATION and modification_type is None:
        raise ValueError("Modification entries need a modification type")
    return OrderAuditEntry(
        id=str(uuid.uuid4()),
        order_id=before.id,
        sequence=sequence,
        actor_id=actor_id,
        timestamp=timestamp,
        kind=kind,
        modification_type=modification_type if kind is AuditKind.MODIFICATION else None,
        reason=reason if kind is AuditKind.CANCELLATION else None,
        before=before.snapshot(),
        after=after.snapshot(),
    )
