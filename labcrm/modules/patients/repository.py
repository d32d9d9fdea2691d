from datetime import date
from typing import Sequence
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from labcrm.core.base import utcnow
from labcrm.modules.patients.models import Patient

_DATE_FIELDS = ("contact_date", "appointment_date")

def _coerce_dates(data: dict) -> dict:
    out = dict(data)
    for k in _DATE_FIELDS:
        if isinstance(out.get(k), str):
            out[k] = date.fromisoformat(out[k])
    return out

class PatientRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, user_id: str, **data) -> Patient:
        obj = Patient(user_id=user_id, **_coerce_dates(data))
        self.session.add(obj)
        await self.session.flush()
        return obj

    async def get(self, user_id: str, patient_id: str) -> Patient | None:
        q = select(Patient).where(
            Patient.id == patient_id,
            Patient.user_id == user_id,
        )
        res = await self.session.execute(q)
        return res.scalar_one_or_none()

    async def list(self, user_id: str) -> Sequence[Patient]:
        q = select(Patient).where(
            Patient.user_id == user_id,
        ).order_by(Patient.created_at.desc())
        res = await self.session.execute(q)
        return res.scalars().all()

    async def update(self, user_id: str, patient_id: str, **data) -> Patient | None:
        obj = await self.get(user_id, patient_id)
        if not obj:
            return None
        # every provided key is applied; an explicit None clears the column
        for k, v in _coerce_dates(data).items():
            setattr(obj, k, v)
        obj.updated_at = max(utcnow(), obj.created_at)
        await self.session.flush()
        return obj

    async def delete(self, user_id: str, patient_id: str) -> bool:
        obj = await self.get(user_id, patient_id)
        if not obj:
            return False
        await self.session.delete(obj)
        await self.session.flush()
        return True
