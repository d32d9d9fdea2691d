"""Business rules applied to patient submissions before they reach the store."""
from labcrm.core.errors import ValidationError
from labcrm.modules.patients.schemas import PatientCreate, PatientRecord, CLOSED

REQUIRED_MESSAGE = "Preencha todos os campos obrigatórios"
PROCEDURES_MESSAGE = "Selecione pelo menos um procedimento"
CLOSED_VALUE_MESSAGE = "Informe o valor fechado"


def _blank(value) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _check(name, phone, contact_date, appointment_date, procedures, status, closed_value,
           media_origin) -> None:
    missing = [field for field, value in (
        ("name", name),
        ("phone", phone),
        ("contact_date", contact_date),
        ("appointment_date", appointment_date),
        ("status", status),
        ("media_origin", media_origin),
    ) if _blank(value)]
    if missing:
        raise ValidationError(REQUIRED_MESSAGE, fields=missing)
    if not procedures:
        raise ValidationError(PROCEDURES_MESSAGE, fields=["procedures"])
    if status == CLOSED and closed_value is None:
        raise ValidationError(CLOSED_VALUE_MESSAGE, fields=["closed_value"])


def validate_patient_form(draft: PatientCreate) -> PatientCreate:
    """Validate a new-patient submission; returns the normalized draft."""
    _check(draft.name, draft.phone, draft.contact_date, draft.appointment_date,
           draft.procedures, draft.status, draft.closed_value, draft.media_origin)
    updates = {"name": draft.name.strip(), "phone": draft.phone.strip()}
    if draft.status != CLOSED:
        updates["closed_value"] = None
    return draft.model_copy(update=updates)


def validate_patient_update(existing: PatientRecord, fields: dict) -> dict:
    """Validate a partial update against the record it will be merged into.

    Returns the fields to send to the store. Moving a patient out of
    ``fechado`` clears the closed value.
    """
    fields = dict(fields)
    for key in ("name", "phone"):
        if isinstance(fields.get(key), str):
            fields[key] = fields[key].strip()
    merged = existing.model_dump()
    merged.update(fields)
    if merged["status"] != CLOSED and merged.get("closed_value") is not None:
        fields["closed_value"] = None
        merged["closed_value"] = None
    _check(merged["name"], merged["phone"], merged["contact_date"], merged["appointment_date"],
           merged["procedures"], merged["status"], merged["closed_value"], merged["media_origin"])
    return fields
