"""Insert-only storage for persisted EOD reports."""

from __future__ import annotations

import logging
import math
import threading
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from datetime import datetime

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session

from pos_ledger.core.errors import StorageFailure
from pos_ledger.models.report import EODReport
from pos_ledger.schemas.report import EODReportHistory, EODReportRead, EODReportSummary, EODStatistics, Pagination
from pos_ledger.services.order_store import validate_pagination
from pos_ledger.utils.time import ensure_utc

logger = logging.getLogger(__name__)


def _summary(report: EODReportRead) -> EODReportSummary:
    return EODReportSummary(
        id=report.id or "",
        report_number=report.report_number or "",
        period_start=report.period_start,
        period_end=report.period_end,
        total_orders=report.statistics.total_orders,
        total_with_vat=report.statistics.total_with_vat,
        total_vat_amount=report.statistics.total_vat_amount,
        order_completion_rate=report.statistics.order_completion_rate,
        generated_by=report.generated_by,
        generated_at=report.generated_at,
    )


def _pagination(page: int, limit: int, total_count: int) -> Pagination:
    total_pages = math.ceil(total_count / limit) if total_count else 0
    return Pagination(
        page=page,
        limit=limit,
        total_count=total_count,
        total_pages=total_pages,
        has_next=page < total_pages,
        has_prev=page > 1,
    )


class ReportStore(ABC):
    """Persisted reports are inserted once and never updated."""

    @abstractmethod
    def add(self, report: EODReportRead) -> EODReportRead:
        ...

    @abstractmethod
    def get(self, report_id: str) -> EODReportRead | None:
        ...

    @abstractmethod
    def history(
        self,
        page: int,
        limit: int,
        date_from: datetime | None = None,
        date_to: datetime | None = None,
    ) -> EODReportHistory:
        """Reports whose window starts in ``[date_from, date_to)``, newest first."""


class InMemoryReportStore(ReportStore):
    def __init__(self) -> None:
        self._reports: dict[str, EODReportRead] = {}
        self._lock = threading.Lock()

    def add(self, report: EODReportRead) -> EODReportRead:
        with self._lock:
            if report.id in self._reports:
                raise StorageFailure(f"Report {report.id} already stored; reports are immutable")
            if any(existing.report_number == report.report_number for existing in self._reports.values()):
                raise StorageFailure(f"Report number {report.report_number} already used")
            self._reports[report.id or ""] = report.model_copy(deep=True)
        return report

    def get(self, report_id: str) -> EODReportRead | None:
        with self._lock:
            report = self._reports.get(report_id)
            return report.model_copy(deep=True) if report is not None else None

    def history(self, page, limit, date_from=None, date_to=None) -> EODReportHistory:
        validate_pagination(page, limit)
        with self._lock:
            reports = list(self._reports.values())
        if date_from is not None:
            reports = [report for report in reports if report.period_start >= ensure_utc(date_from)]
        if date_to is not None:
            reports = [report for report in reports if report.period_start < ensure_utc(date_to)]
        reports.sort(key=lambda report: (report.generated_at, report.report_number or ""), reverse=True)
        offset = (page - 1) * limit
        return EODReportHistory(
            reports=[_summary(report) for report in reports[offset:offset + limit]],
            pagination=_pagination(page, limit, len(reports)),
        )


def _read_from_row(row: EODReport) -> EODReportRead:
    statistics = EODStatistics.model_validate(row.statistics)
    return EODReportRead(
        id=row.id,
        report_number=row.report_number,
        period_start=ensure_utc(row.period_start),
        period_end=ensure_utc(row.period_end),
        statistics=statistics,
        previous_period_comparison=(
            EODStatistics.model_validate(row.previous_period) if row.previous_period is not None else None
        ),
        vat_rate=row.vat_rate,
        generated_by=row.generated_by,
        generated_at=ensure_utc(row.generated_at),
        persisted=True,
    )


class SqlAlchemyReportStore(ReportStore):
    def __init__(self, session_factory: Callable[[], Session]) -> None:
        self._session_factory = session_factory

    @contextmanager
    def _session(self) -> Iterator[Session]:
        session: Session = self._session_factory()
        try:
            yield session
        except OperationalError as exc:
            session.rollback()
            logger.warning("[STORE] Report store operation failed: %s", exc)
            raise StorageFailure("Report store is unavailable") from exc
        finally:
            session.close()

    def add(self, report: EODReportRead) -> EODReportRead:
        with self._session() as session:
            session.add(
                EODReport(
                    id=report.id,
                    report_number=report.report_number,
                    period_start=ensure_utc(report.period_start),
                    period_end=ensure_utc(report.period_end),
                    total_orders=report.statistics.total_orders,
                    total_with_vat=report.statistics.total_with_vat,
                    total_vat_amount=report.statistics.total_vat_amount,
                    order_completion_rate=report.statistics.order_completion_rate,
                    vat_rate=report.vat_rate,
                    statistics=report.statistics.model_dump(mode="json"),
                    previous_period=(
                        report.previous_period_comparison.model_dump(mode="json")
                        if report.previous_period_comparison is not None
                        else None
                    ),
                    generated_by=report.generated_by,
                    generated_at=ensure_utc(report.generated_at),
                )
            )
            try:
                session.commit()
            except IntegrityError as exc:
                session.rollback()
                raise StorageFailure(
                    f"Report number {report.report_number} already used",
                    details={"report_number": report.report_number},
                ) from exc
        return report

    def get(self, report_id: str) -> EODReportRead | None:
        with self._session() as session:
            row: EODReport | None = session.get(EODReport, report_id)
            return _read_from_row(row) if row is not None else None

    def history(self, page, limit, date_from=None, date_to=None) -> EODReportHistory:
        validate_pagination(page, limit)
        conditions = []
        if date_from is not None:
            conditions.append(EODReport.period_start >= ensure_utc(date_from))
        if date_to is not None:
            conditions.append(EODReport.period_start < ensure_utc(date_to))
        with self._session() as session:
            total_count: int = session.execute(
                select(func.count()).select_from(EODReport).where(*conditions)
            ).scalar_one()
            rows = session.execute(
                select(EODReport)
                .where(*conditions)
                .order_by(EODReport.generated_at.desc(), EODReport.report_number.desc())
                .offset((page - 1) * limit)
                .limit(limit)
            ).scalars()
            return EODReportHistory(
                reports=[_summary(_read_from_row(row)) for row in rows],
                pagination=_pagination(page, limit, total_count),
            )
