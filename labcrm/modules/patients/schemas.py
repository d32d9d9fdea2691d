from datetime import date, datetime
from typing import Literal, get_args
from pydantic import BaseModel, Field, field_validator

PatientStatus = Literal["agendado", "veio", "nao_veio", "sem_interesse", "fechado"]
MediaOrigin = Literal["facebook", "instagram", "indicacao", "guia_campanha", "claudio"]
ProcedureType = Literal["protese_flexivel", "protese_total", "protese_ppr", "protese_ppr_mista"]

STATUSES: tuple[str, ...] = get_args(PatientStatus)
MEDIA_ORIGINS: tuple[str, ...] = get_args(MediaOrigin)
PROCEDURES: tuple[str, ...] = get_args(ProcedureType)

SCHEDULED = "agendado"
CAME = "veio"
CLOSED = "fechado"
NO_INTEREST = "sem_interesse"

STATUS_LABELS: dict[str, str] = {
    "agendado": "Agendado",
    "veio": "Veio",
    "nao_veio": "Não Veio",
    "sem_interesse": "Sem Interesse",
    "fechado": "Fechado",
}

MEDIA_LABELS: dict[str, str] = {
    "facebook": "Facebook",
    "instagram": "Instagram",
    "indicacao": "Indicação",
    "guia_campanha": "Guia Campanha",
    "claudio": "Cláudio",
}

PROCEDURE_LABELS: dict[str, str] = {
    "protese_flexivel": "Prótese Flexível",
    "protese_total": "Prótese Total",
    "protese_ppr": "Prótese PPR",
    "protese_ppr_mista": "Prótese PPR Mista",
}

TIME_PATTERN = r"^([01]\d|2[0-3]):[0-5]\d$"


def _unique(values: list[str]) -> list[str]:
    # duplicates carry no meaning, display order is kept
    return list(dict.fromkeys(values))


class PatientCreate(BaseModel):
    name: str = Field(..., max_length=200)
    phone: str = Field(..., max_length=32, pattern=r"^[\d\s()+.\-]*$")
    contact_date: date
    appointment_date: date
    appointment_time: str | None = Field(None, pattern=TIME_PATTERN)
    status: PatientStatus = SCHEDULED
    closed_value: float | None = Field(None, ge=0)
    media_origin: MediaOrigin
    procedures: list[ProcedureType] = Field(default_factory=list)
    observations: str | None = None

    @field_validator("procedures")
    @classmethod
    def _dedupe(cls, v):
        return _unique(v)


class PatientUpdate(BaseModel):
    # only the fields the client sends are applied; an explicit null clears an optional field
    name: str | None = Field(None, max_length=200)
    phone: str | None = Field(None, max_length=32, pattern=r"^[\d\s()+.\-]*$")
    contact_date: date | None = None
    appointment_date: date | None = None
    appointment_time: str | None = Field(None, pattern=TIME_PATTERN)
    status: PatientStatus | None = None
    closed_value: float | None = Field(None, ge=0)
    media_origin: MediaOrigin | None = None
    procedures: list[ProcedureType] | None = None
    observations: str | None = None

    @field_validator("procedures")
    @classmethod
    def _dedupe(cls, v):
        return _unique(v) if v is not None else v


class PatientRecord(BaseModel):
    """A persisted patient as seen by the store and its consumers.

    Calendar dates stay ISO strings: that is how both backends hand them
    over, and readers that need a ``date`` parse them (and may skip rows
    whose stored value does not parse).
    """
    id: str
    user_id: str | None = None
    name: str
    phone: str
    contact_date: str
    appointment_date: str
    appointment_time: str | None = None
    status: PatientStatus
    closed_value: float | None = None
    media_origin: MediaOrigin
    procedures: list[ProcedureType] = []
    observations: str | None = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True
        frozen = True

    @field_validator("contact_date", "appointment_date", mode="before")
    @classmethod
    def _iso_date(cls, v):
        if isinstance(v, (date, datetime)):
            return v.isoformat()[:10]
        return v


PatientOut = PatientRecord
