"""Response envelopes shared by every endpoint."""

from typing import Any, Generic, Literal, TypeVar

from pydantic import BaseModel, Field

DataT = TypeVar("DataT")


class Envelope(BaseModel, Generic[DataT]):
    """Successful response: ``{"success": true, "data": ...}``."""

    success: Literal[True] = True
    data: DataT


class ErrorBody(BaseModel):
    kind: str
    message: str
    details: dict[str, Any] = Field(default_factory=dict)


class ErrorEnvelope(BaseModel):
    """Failed response: ``{"success": false, "error": {...}}``."""

    success: Literal[False] = False
    error: ErrorBody


def error_payload(kind: str, message: str, details: dict[str, Any] | None = None) -> dict[str, Any]:
    return ErrorEnvelope(error=ErrorBody(kind=kind, message=message, details=details or {})).model_dump(mode="json")
