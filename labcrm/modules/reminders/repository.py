from datetime import date
from typing import Iterable, Sequence
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from labcrm.modules.patients.models import Patient
from labcrm.modules.reminders.models import ReminderLog

class ReminderRepository:
    """Privileged queries for the dispatch job: not scoped to a single user."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def patients_due(self, target: date, statuses: Iterable[str]) -> Sequence[Patient]:
        q = select(Patient).where(
            Patient.appointment_date == target,
            Patient.status.in_(list(statuses)),
        ).order_by(Patient.created_at.asc())
        res = await self.session.execute(q)
        return res.scalars().all()

    async def already_sent(self, patient_ids: Sequence[str], target: date) -> set[str]:
        if not patient_ids:
            return set()
        q = select(ReminderLog.patient_id).where(
            ReminderLog.patient_id.in_(list(patient_ids)),
            ReminderLog.appointment_date == target,
            ReminderLog.status == "sent",
        )
        res = await self.session.execute(q)
        return set(res.scalars().all())

    async def log(self, *, patient_id: str, user_id: str, appointment_date: date, status: str,
                  message_type: str = "whatsapp", error_message: str | None = None) -> ReminderLog:
        obj = ReminderLog(
            patient_id=patient_id,
            user_id=user_id,
            appointment_date=appointment_date,
            status=status,
            message_type=message_type,
            error_message=error_message,
        )
        self.session.add(obj)
        await self.session.flush()
        return obj

    async def commit(self) -> None:
        await self.session.commit()

    async def rollback(self) -> None:
        await self.session.rollback()
