"""Monotonic sequence sources for order and report numbers.

Numbers are gap tolerant (a number taken by a write that later fails is not
handed out again) but never reused.
"""

from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from collections.abc import Callable

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session

from pos_ledger.core.errors import StorageFailure
from pos_ledger.models.sequence import SequenceCounter

logger = logging.getLogger(__name__)

ORDER_SEQUENCE: str = "order"
REPORT_SEQUENCE: str = "eod_report"


def format_number(prefix: str, value: int) -> str:
    """Render a sequence value as ``PREFIX-0001``."""
    return f"{prefix}-{value:04d}"


class SequenceSource(ABC):
    """Atomic counter collaborator."""

    @abstractmethod
    def next(self, name: str) -> int:
        """Consume and return the next value of ``name``."""

    @abstractmethod
    def peek(self, name: str) -> int:
        """Return the value ``next`` would hand out, without consuming it."""


class InMemorySequence(SequenceSource):
    """Single-writer counter guarded by a lock."""

    def __init__(self, start: dict[str, int] | None = None) -> None:
        self._values: dict[str, int] = dict(start or {})
        self._lock = threading.Lock()

    def next(self, name: str) -> int:
        with self._lock:
            value = self._values.get(name, 0) + 1
            self._values[name] = value
            return value

    def peek(self, name: str) -> int:
        with self._lock:
            return self._values.get(name, 0) + 1


class SqlSequence(SequenceSource):
    """Counter stored in the ``sequence_counters`` table.

    The increment is a single ``UPDATE ... SET value = value + 1`` inside its
    own transaction, so concurrent callers never observe the same value.
    """

    def __init__(self, session_factory: Callable[[], Session], *, max_attempts: int = 3) -> None:
        self._session_factory = session_factory
        self._max_attempts = max_attempts

    def next(self, name: str) -> int:
        for _ in range(self._max_attempts):
            session: Session = self._session_factory()
            try:
                result = session.execute(
                    update(SequenceCounter)
                    .where(SequenceCounter.name == name)
                    .values(value=SequenceCounter.value + 1)
                )
                if result.rowcount == 0:
                    session.add(SequenceCounter(name=name, value=1))
                    session.flush()
                value: int = session.execute(
                    select(SequenceCounter.value).where(SequenceCounter.name == name)
                ).scalar_one()
                session.commit()
                return value
            except IntegrityError:
                # Another writer created the counter row first; increment it instead.
                session.rollback()
                continue
            except OperationalError as exc:
                session.rollback()
                logger.warning("[STORE] Sequence %s unavailable: %s", name, exc)
                raise StorageFailure(f"Sequence {name} is unavailable") from exc
            finally:
                session.close()
        raise StorageFailure(f"Sequence {name} could not be advanced")

    def peek(self, name: str) -> int:
        session: Session = self._session_factory()
        try:
            current: int | None = session.execute(
                select(SequenceCounter.value).where(SequenceCounter.name == name)
            ).scalar_one_or_none()
        except OperationalError as exc:
            raise StorageFailure(f"Sequence {name} is unavailable") from exc
        finally:
            session.close()
        return (current or 0) + 1
