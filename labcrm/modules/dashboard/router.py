from datetime import datetime
from zoneinfo import ZoneInfo
from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response
from pydantic import BaseModel
from labcrm.core.config import settings
from labcrm.modules.dashboard.aggregator import DashboardStats, Period, compute_stats, filter_by_period, period_label
from labcrm.modules.exports.csv_export import export_filename
from labcrm.modules.exports.pdf_report import PdfReportGenerator
from labcrm.modules.session.manager import Workspace, get_workspace

router = APIRouter()

class DashboardOut(BaseModel):
    period: str
    period_label: str
    stats: DashboardStats

@router.get("/dashboard", response_model=DashboardOut)
async def dashboard(
    period: Period = "all",
    year: int | None = Query(None, ge=2000, le=2100),
    month: int | None = Query(None, ge=1, le=12),
    ws: Workspace = Depends(get_workspace),
):
    patients = filter_by_period(ws.store.patients, period, year=year, month=month)
    return DashboardOut(period=period, period_label=period_label(period, year, month), stats=compute_stats(patients))

@router.get("/dashboard/report.pdf")
async def dashboard_report(
    period: Period = "all",
    year: int | None = Query(None, ge=2000, le=2100),
    month: int | None = Query(None, ge=1, le=12),
    ws: Workspace = Depends(get_workspace),
):
    now = datetime.now(ZoneInfo(settings.TIMEZONE))
    patients = filter_by_period(ws.store.patients, period, now=now, year=year, month=month)
    body = PdfReportGenerator().generate(patients, period_label(period, year, month), generated_at=now)
    return Response(content=body, media_type="application/pdf", headers={
        "Content-Disposition": f'attachment; filename="{export_filename(now.date(), ext="pdf", kind="relatorio")}"'
    })
