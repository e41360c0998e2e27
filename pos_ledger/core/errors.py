"""Ledger error taxonomy.

Every error carries a machine-readable ``kind`` and the HTTP status the API
layer answers with. Services raise these; endpoints let them propagate to the
exception handlers registered in ``pos_ledger.main``.
"""

from __future__ import annotations

from typing import Any


class LedgerError(Exception):
    """Base class for all domain errors raised by the ledger core."""

    kind: str = "ledger_error"
    status_code: int = 500

    def __init__(self, message: str, *, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details: dict[str, Any] = details or {}

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind, "message": self.message, "details": self.details}


class ValidationError(LedgerError):
    """Malformed input. Always caller-fixable, never retried automatically."""

    kind = "validation_error"
    status_code = 400


class NotFound(LedgerError):
    """Unknown order or report id."""

    kind = "not_found"
    status_code = 404


class InvalidStateTransition(LedgerError):
    """Modify or cancel attempted on an order in a terminal state."""

    kind = "invalid_state_transition"
    status_code = 409


class EncodingError(LedgerError):
    """A TLV value or QR payload cannot be encoded."""

    kind = "encoding_error"
    status_code = 422


class StorageFailure(LedgerError):
    """Underlying store unavailable, timed out or found inconsistent.

    Safe for the caller to retry with backoff; the core never retries a
    mutation on its own.
    """

    kind = "storage_failure"
    status_code = 503
