"""Named monotonic counters backing order and report numbers."""

from sqlalchemy import Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from pos_ledger.db.base import Base


class SequenceCounter(Base):
    """Last value handed out for a named sequence."""

    __tablename__ = "sequence_counters"

    name: Mapped[str] = mapped_column(String(32), primary_key=True)
    value: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
