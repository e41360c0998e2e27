"""Service wiring for request handlers.

Services are built per request from ``db.session.SessionLocal`` so tests can
swap the session factory.
"""

from fastapi import Depends

from pos_ledger.core.config import settings
from pos_ledger.db import session as db_session
from pos_ledger.services.order_service import OrderLifecycleManager
from pos_ledger.services.order_store import OrderStore, SqlAlchemyOrderStore
from pos_ledger.services.report_service import EODReportGenerator
from pos_ledger.services.report_store import ReportStore, SqlAlchemyReportStore
from pos_ledger.services.sequence_service import SequenceSource, SqlSequence


def get_order_store() -> OrderStore:
    return SqlAlchemyOrderStore(db_session.SessionLocal, max_attempts=settings.store_max_attempts)


def get_report_store() -> ReportStore:
    return SqlAlchemyReportStore(db_session.SessionLocal)


def get_sequence() -> SequenceSource:
    return SqlSequence(db_session.SessionLocal, max_attempts=settings.store_max_attempts)


def get_lifecycle_manager(
    store: OrderStore = Depends(get_order_store),
    sequence: SequenceSource = Depends(get_sequence),
) -> OrderLifecycleManager:
    return OrderLifecycleManager(store, sequence)


def get_report_generator(
    order_store: OrderStore = Depends(get_order_store),
    report_store: ReportStore = Depends(get_report_store),
    sequence: SequenceSource = Depends(get_sequence),
) -> EODReportGenerator:
    return EODReportGenerator(order_store, report_store, sequence)
