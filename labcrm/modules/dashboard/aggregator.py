"""Dashboard statistics over an already-loaded patient list.

Everything here is a pure function of its arguments.
"""
from datetime import datetime, timedelta
from typing import Iterable, Literal
from zoneinfo import ZoneInfo

from pydantic import BaseModel

from labcrm.core.config import settings
from labcrm.modules.patients.schemas import (
    PatientRecord, CLOSED, SCHEDULED,
    STATUS_LABELS, MEDIA_LABELS, PROCEDURE_LABELS,
)

Period = Literal["all", "day", "week", "month", "year_month"]

MONTH_LABELS = {
    1: "Janeiro", 2: "Fevereiro", 3: "Março", 4: "Abril", 5: "Maio", 6: "Junho",
    7: "Julho", 8: "Agosto", 9: "Setembro", 10: "Outubro", 11: "Novembro", 12: "Dezembro",
}


class ProcedureBreakdown(BaseModel):
    procedure: str
    label: str
    count: int
    revenue: float


class ChannelBreakdown(BaseModel):
    media_origin: str
    label: str
    closed_count: int
    revenue: float


class StatusBreakdown(BaseModel):
    status: str
    label: str
    count: int
    percentage: float


class DashboardStats(BaseModel):
    total_revenue: float
    closed_count: int
    average_ticket: float
    scheduled_count: int
    total_count: int
    conversion_rate: float
    by_procedure: list[ProcedureBreakdown]
    by_channel: list[ChannelBreakdown]
    by_status: list[StatusBreakdown]


def _pct(part: int, whole: int) -> float:
    return (part / whole) * 100 if whole else 0.0


def compute_stats(patients: Iterable[PatientRecord]) -> DashboardStats:
    patients = list(patients)
    closed = [p for p in patients if p.status == CLOSED]
    total_revenue = sum(p.closed_value or 0 for p in closed)
    closed_count = len(closed)

    # a deal with several procedures splits its value evenly between them
    proc_count = {k: 0 for k in PROCEDURE_LABELS}
    proc_value = {k: 0.0 for k in PROCEDURE_LABELS}
    for p in closed:
        procs = [x for x in p.procedures if x in proc_count]
        share = (p.closed_value or 0) / (len(procs) or 1)
        for proc in procs:
            proc_count[proc] += 1
            proc_value[proc] += share

    channel_count = {k: 0 for k in MEDIA_LABELS}
    channel_value = {k: 0.0 for k in MEDIA_LABELS}
    for p in closed:
        if p.media_origin in channel_count:
            channel_count[p.media_origin] += 1
            channel_value[p.media_origin] += p.closed_value or 0

    return DashboardStats(
        total_revenue=total_revenue,
        closed_count=closed_count,
        average_ticket=total_revenue / closed_count if closed_count else 0.0,
        scheduled_count=sum(1 for p in patients if p.status == SCHEDULED),
        total_count=len(patients),
        conversion_rate=_pct(closed_count, len(patients)),
        by_procedure=[
            ProcedureBreakdown(procedure=k, label=label, count=proc_count[k], revenue=proc_value[k])
            for k, label in PROCEDURE_LABELS.items()
        ],
        by_channel=[
            ChannelBreakdown(media_origin=k, label=label, closed_count=channel_count[k], revenue=channel_value[k])
            for k, label in MEDIA_LABELS.items()
        ],
        by_status=[
            StatusBreakdown(status=k, label=label, count=n, percentage=_pct(n, len(patients)))
            for k, label in STATUS_LABELS.items()
            for n in [sum(1 for p in patients if p.status == k)]
        ],
    )


def period_bounds(period: Period, now: datetime, year: int | None = None,
                  month: int | None = None) -> tuple[datetime | None, datetime | None]:
    """[start, end) of the creation-time window for a period; (None, None) means no filter."""
    if period == "year_month" and year:
        if month:
            start = now.replace(year=year, month=month, day=1, hour=0, minute=0, second=0, microsecond=0)
            end = start.replace(year=year + 1, month=1) if month == 12 else start.replace(month=month + 1)
        else:
            start = now.replace(year=year, month=1, day=1, hour=0, minute=0, second=0, microsecond=0)
            end = start.replace(year=year + 1)
        return start, end
    midnight = now.replace(hour=0, minute=0, second=0, microsecond=0)
    if period == "day":
        return midnight, None
    if period == "week":
        # weeks start on Sunday
        return midnight - timedelta(days=(now.weekday() + 1) % 7), None
    if period == "month":
        return midnight.replace(day=1), None
    return None, None


def filter_by_period(patients: Iterable[PatientRecord], period: Period, now: datetime | None = None,
                     year: int | None = None, month: int | None = None) -> list[PatientRecord]:
    tz = ZoneInfo(settings.TIMEZONE)
    now = (now or datetime.now(tz))
    if now.tzinfo is None:
        now = now.replace(tzinfo=tz)
    start, end = period_bounds(period, now, year, month)
    out = []
    for p in patients:
        created = p.created_at if p.created_at.tzinfo else p.created_at.replace(tzinfo=tz)
        if start is not None and created < start:
            continue
        if end is not None and created >= end:
            continue
        out.append(p)
    return out


def period_label(period: Period, year: int | None = None, month: int | None = None) -> str:
    if period == "day":
        return "Hoje"
    if period == "week":
        return "Esta semana"
    if period == "month":
        return "Este mês"
    if period == "year_month":
        month_label = MONTH_LABELS.get(month, "") if month else "Todos os meses"
        return f"{month_label} / {year or ''}"
    return "Todo período"
