"""Shared SQLAlchemy base declarative class and model imports."""

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Base class for ORM models."""


# Import model modules so metadata is populated before create_all.
from pos_ledger.models import order as _order  # noqa: E402,F401
from pos_ledger.models import report as _report  # noqa: E402,F401
from pos_ledger.models import sequence as _sequence  # noqa: E402,F401
