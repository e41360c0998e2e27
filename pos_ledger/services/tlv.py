"""Tag-Length-Value codec used by receipt compliance QR payloads.

Each field is written as ``tag (1 byte) || length (1 byte) || value`` where
the value is UTF-8 text. Fields are concatenated without separators.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence

from pos_ledger.core.errors import EncodingError

MAX_TAG: int = 0xFF
MAX_VALUE_LENGTH: int = 0xFF

TlvField = tuple[int, str]


def encode_field(tag: int, value: str) -> bytes:
    """Encode one field, rejecting tags or values that do not fit a byte."""
    if not 0 <= tag <= MAX_TAG:
        raise EncodingError(f"TLV tag {tag} does not fit in one byte", details={"tag": tag})
    value_bytes: bytes = value.encode("utf-8")
    if len(value_bytes) > MAX_VALUE_LENGTH:
        raise EncodingError(
            f"TLV value for tag {tag} is {len(value_bytes)} bytes; the limit is {MAX_VALUE_LENGTH}",
            details={"tag": tag, "length": len(value_bytes)},
        )
    return bytes((tag, len(value_bytes))) + value_bytes


def encode(fields: Iterable[TlvField]) -> bytes:
    """Encode an ordered sequence of ``(tag, value)`` pairs."""
    return b"".join(encode_field(tag, value) for tag, value in fields)


def decode(buffer: bytes) -> list[TlvField]:
    """Decode a TLV buffer back into its ``(tag, value)`` pairs."""
    fields: list[TlvField] = []
    offset: int = 0
    size: int = len(buffer)
    while offset < size:
        if offset + 2 > size:
            raise EncodingError("Truncated TLV header", details={"offset": offset})
        tag: int = buffer[offset]
        length: int = buffer[offset + 1]
        start: int = offset + 2
        end: int = start + length
        if end > size:
            raise EncodingError(
                f"TLV value for tag {tag} is truncated",
                details={"tag": tag, "offset": offset},
            )
        try:
            value: str = buffer[start:end].decode("utf-8")
        except UnicodeDecodeError as exc:
            raise EncodingError(f"TLV value for tag {tag} is not valid UTF-8", details={"tag": tag}) from exc
        fields.append((tag, value))
        offset = end
    return fields


def as_mapping(fields: Sequence[TlvField]) -> dict[int, str]:
    """Return decoded fields keyed by tag; later duplicates win."""
    return {tag: value for tag, value in fields}
