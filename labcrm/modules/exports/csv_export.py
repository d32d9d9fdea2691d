import csv
import io
from datetime import date
from typing import Iterable
from labcrm.core.config import settings
from labcrm.modules.patients.schemas import PatientRecord, STATUS_LABELS, MEDIA_LABELS, PROCEDURE_LABELS

BOM = "\ufeff"

BASE_HEADERS = [
    "Nome",
    "Telefone",
    "Data do Contato",
    "Data do Agendamento",
    "Status",
    "Valor Fechado",
    "Mídia de Origem",
    "Procedimentos",
]
OBSERVATIONS_HEADER = "Observações"


def br_date(value: str) -> str:
    """ISO date -> dd/MM/yyyy; anything unparseable is passed through."""
    try:
        return date.fromisoformat(value[:10]).strftime("%d/%m/%Y")
    except (TypeError, ValueError):
        return value or ""


def headers(include_observations: bool) -> list[str]:
    return BASE_HEADERS + ([OBSERVATIONS_HEADER] if include_observations else [])


def row(p: PatientRecord, include_observations: bool) -> list[str]:
    out = [
        p.name,
        p.phone,
        br_date(p.contact_date),
        br_date(p.appointment_date),
        STATUS_LABELS.get(p.status, p.status),
        f"R$ {p.closed_value:.2f}" if p.closed_value else "",
        MEDIA_LABELS.get(p.media_origin, p.media_origin),
        "; ".join(PROCEDURE_LABELS.get(x, x) for x in p.procedures),
    ]
    if include_observations:
        out.append(p.observations or "")
    return out


def build_csv(patients: Iterable[PatientRecord], include_observations: bool = True) -> bytes:
    """UTF-8 with BOM so spreadsheet apps pick the right encoding; every field quoted."""
    out = io.StringIO()
    w = csv.writer(out, quoting=csv.QUOTE_ALL, lineterminator="\n")
    w.writerow(headers(include_observations))
    for p in patients:
        w.writerow(row(p, include_observations))
    return (BOM + out.getvalue()).encode("utf-8")


def export_filename(today: date, ext: str = "csv", kind: str = "export") -> str:
    return f"{settings.EXPORT_PREFIX}_{kind}_{today.isoformat()}.{ext}"
