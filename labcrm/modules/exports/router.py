from datetime import datetime
from zoneinfo import ZoneInfo
from fastapi import APIRouter, Depends
from fastapi.responses import Response
from labcrm.core.config import settings
from labcrm.core.errors import CRMError
from labcrm.modules.exports.csv_export import build_csv, export_filename
from labcrm.modules.exports.pdf_report import PdfReportGenerator
from labcrm.modules.patients.schemas import MediaOrigin, PatientStatus, STATUS_LABELS, MEDIA_LABELS
from labcrm.modules.session.manager import Workspace, get_workspace

router = APIRouter()

EMPTY_MESSAGE = "Nenhum paciente para exportar"

def _now() -> datetime:
    return datetime.now(ZoneInfo(settings.TIMEZONE))

def _selection(ws: Workspace, status: str | None, media_origin: str | None):
    patients = ws.store.filter(status=status, media_origin=media_origin)
    if not patients:
        raise CRMError(EMPTY_MESSAGE)
    return patients

def _attachment(body: bytes, media_type: str, filename: str) -> Response:
    return Response(content=body, media_type=media_type,
                    headers={"Content-Disposition": f'attachment; filename="{filename}"'})

@router.get("/exports/patients.csv")
async def export_patients_csv(
    status: PatientStatus | None = None,
    media_origin: MediaOrigin | None = None,
    include_observations: bool = True,
    ws: Workspace = Depends(get_workspace),
):
    patients = _selection(ws, status, media_origin)
    body = build_csv(patients, include_observations=include_observations)
    return _attachment(body, "text/csv; charset=utf-8", export_filename(_now().date()))

@router.get("/exports/report.pdf")
async def export_report_pdf(
    status: PatientStatus | None = None,
    media_origin: MediaOrigin | None = None,
    include_patient_list: bool = True,
    include_observations: bool = True,
    ws: Workspace = Depends(get_workspace),
):
    patients = _selection(ws, status, media_origin)
    label = (f"{STATUS_LABELS[status] if status else 'Todos os status'} / "
             f"{MEDIA_LABELS[media_origin] if media_origin else 'Todas as mídias'}")
    now = _now()
    body = PdfReportGenerator().generate(patients, label, include_patient_list=include_patient_list,
                                         include_observations=include_observations, generated_at=now)
    return _attachment(body, "application/pdf", export_filename(now.date(), ext="pdf", kind="relatorio"))
