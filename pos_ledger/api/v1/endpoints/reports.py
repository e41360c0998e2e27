"""End-Of-Day report endpoints. Manager-or-higher only."""

from datetime import datetime

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import Response

from pos_ledger.api.deps import get_report_generator
from pos_ledger.core.config import settings
from pos_ledger.core.security import Actor, require_manager
from pos_ledger.schemas.common import Envelope
from pos_ledger.schemas.report import EODReportHistory, EODReportRead, GenerateEODReportRequest, NextReportNumber
from pos_ledger.services.pdf_exports import render_eod_report_pdf, report_filename
from pos_ledger.services.report_service import EODReportGenerator
from pos_ledger.utils.time import preset_window

router: APIRouter = APIRouter()


@router.post("/eod", response_model=Envelope[EODReportRead], status_code=status.HTTP_201_CREATED)
def generate_eod_report(
    payload: GenerateEODReportRequest,
    actor: Actor = Depends(require_manager),
    generator: EODReportGenerator = Depends(get_report_generator),
) -> Envelope[EODReportRead]:
    if payload.preset is not None:
        period_start, period_end = preset_window(payload.preset)
    else:
        period_start, period_end = payload.period_start, payload.period_end
    report = generator.generate(
        period_start,
        period_end,
        requested_by=actor.id,
        include_previous_period_comparison=payload.include_previous_period_comparison,
        persist=payload.persist,
    )
    return Envelope(data=report)


@router.get("/eod/history", response_model=Envelope[EODReportHistory])
def get_eod_report_history(
    page: int = Query(default=1),
    limit: int = Query(default=10),
    date_from: datetime | None = Query(default=None),
    date_to: datetime | None = Query(default=None),
    _actor: Actor = Depends(require_manager),
    generator: EODReportGenerator = Depends(get_report_generator),
) -> Envelope[EODReportHistory]:
    return Envelope(data=generator.history(page=page, limit=limit, date_from=date_from, date_to=date_to))


@router.get("/eod/next-number", response_model=Envelope[NextReportNumber])
def get_next_report_number(
    _actor: Actor = Depends(require_manager),
    generator: EODReportGenerator = Depends(get_report_generator),
) -> Envelope[NextReportNumber]:
    return Envelope(data=NextReportNumber(report_number=generator.next_report_number()))


@router.get("/eod/{report_id}", response_model=Envelope[EODReportRead])
def get_eod_report(
    report_id: str,
    _actor: Actor = Depends(require_manager),
    generator: EODReportGenerator = Depends(get_report_generator),
) -> Envelope[EODReportRead]:
    return Envelope(data=generator.get_report(report_id))


@router.get("/eod/{report_id}/pdf")
def download_eod_report_pdf(
    report_id: str,
    _actor: Actor = Depends(require_manager),
    generator: EODReportGenerator = Depends(get_report_generator),
) -> Response:
    report = generator.get_report(report_id)
    payload = render_eod_report_pdf(report, seller_name=settings.seller_name)
    return Response(
        content=payload,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{report_filename(report)}"'},
    )
