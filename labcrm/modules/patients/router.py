from datetime import date
from fastapi import APIRouter, Depends
from labcrm.core.errors import NotFoundError
from labcrm.modules.patients.forms import validate_patient_form, validate_patient_update
from labcrm.modules.patients.schemas import PatientCreate, PatientUpdate, PatientOut, PatientStatus, MediaOrigin, ProcedureType
from labcrm.modules.session.manager import Workspace, get_workspace

router = APIRouter()

@router.post("", response_model=PatientOut)
async def create_patient(payload: PatientCreate, ws: Workspace = Depends(get_workspace)):
    draft = validate_patient_form(payload)
    return await ws.store.add(draft)

@router.get("", response_model=list[PatientOut])
async def list_patients(
    q: str | None = None,
    status: PatientStatus | None = None,
    media_origin: MediaOrigin | None = None,
    procedure: ProcedureType | None = None,
    appointment_date: date | None = None,
    ws: Workspace = Depends(get_workspace),
):
    return ws.store.filter(q=q, status=status, media_origin=media_origin,
                           procedure=procedure, appointment_date=appointment_date)

@router.post("/reload", response_model=list[PatientOut])
async def reload_patients(ws: Workspace = Depends(get_workspace)):
    return list(await ws.store.load())

@router.get("/{patient_id}", response_model=PatientOut)
async def get_patient(patient_id: str, ws: Workspace = Depends(get_workspace)):
    obj = ws.store.get_by_id(patient_id)
    if not obj:
        raise NotFoundError()
    return obj

@router.patch("/{patient_id}", response_model=PatientOut)
async def update_patient(patient_id: str, payload: PatientUpdate, ws: Workspace = Depends(get_workspace)):
    existing = ws.store.get_by_id(patient_id)
    if not existing:
        raise NotFoundError()
    fields = validate_patient_update(existing, payload.model_dump(exclude_unset=True))
    return await ws.store.update(patient_id, fields)

@router.delete("/{patient_id}", status_code=204)
async def delete_patient(patient_id: str, ws: Workspace = Depends(get_workspace)):
    await ws.store.delete(patient_id)
    return
