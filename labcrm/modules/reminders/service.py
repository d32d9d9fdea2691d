import logging
import re
from datetime import date, datetime, timedelta
from zoneinfo import ZoneInfo

from labcrm.core.config import settings
from labcrm.core.errors import ExternalDispatchError, safe_error_message
from labcrm.modules.patients.schemas import SCHEDULED, CAME
from labcrm.modules.reminders.repository import ReminderRepository
from labcrm.modules.reminders.schemas import DispatchResult, ReminderResult
from labcrm.platform.ports.messaging import MessagingPort

log = logging.getLogger("reminders.dispatch")

DUE_STATUSES = (SCHEDULED, CAME)

MESSAGE_TEMPLATE = (
    "Olá {name}! 😊\n\n"
    "Lembramos que você tem uma consulta agendada para amanhã ({date}).\n\n"
    "Caso precise reagendar, entre em contato conosco.\n\n"
    "Aguardamos você! 🦷"
)


def normalize_phone(phone: str, country_code: str | None = None) -> str:
    """Digits only, no trunk zero, country code prefixed."""
    cc = country_code or settings.DEFAULT_COUNTRY_CODE
    digits = re.sub(r"\D", "", phone or "")
    if digits.startswith("0"):
        digits = digits[1:]
    if not digits.startswith(cc):
        digits = cc + digits
    return digits


def render_message(name: str, target: date) -> str:
    return MESSAGE_TEMPLATE.format(name=name, date=target.strftime("%d/%m/%Y"))


def tomorrow(tz: str | None = None) -> date:
    return datetime.now(ZoneInfo(tz or settings.TIMEZONE)).date() + timedelta(days=1)


class ReminderDispatchService:
    def __init__(self, repo: ReminderRepository, gateway: MessagingPort, country_code: str | None = None):
        self.repo = repo
        self.gateway = gateway
        self.country_code = country_code

    async def dispatch(self, target_date: date | None = None) -> DispatchResult:
        ensure = getattr(self.gateway, "ensure_configured", None)
        if ensure:
            ensure()  # RuntimeError for missing credentials, before touching any row
        target = target_date or tomorrow()

        patients = await self.repo.patients_due(target, DUE_STATUSES)
        if not patients:
            log.info(f"No reminders to send for {target}")
            return DispatchResult(message="No reminders to send", target_date=target.isoformat(), count=0)

        sent_before = await self.repo.already_sent([p.id for p in patients], target)
        to_send = [p for p in patients if p.id not in sent_before]
        log.info(f"{len(patients)} due on {target}, {len(sent_before)} already reminded, sending {len(to_send)}")

        results: list[ReminderResult] = []
        for p in to_send:
            try:
                results.append(await self._remind(p, target))
            except Exception as e:
                log.exception(f"Reminder for patient {p.id} failed")
                error = safe_error_message(e)
                await self._record_failure(p, target, error)
                results.append(ReminderResult(patient_id=p.id, status="failed", error=error))

        return DispatchResult(message="Reminders processed", target_date=target.isoformat(),
                              count=len(results), results=results)

    async def _remind(self, p, target: date) -> ReminderResult:
        phone = normalize_phone(p.phone, self.country_code)
        try:
            await self.gateway.send_text(phone, render_message(p.name, target))
        except ExternalDispatchError as e:
            log.error(f"Failed to send reminder to patient {p.id}: {e.message}")
            await self.repo.log(patient_id=p.id, user_id=p.user_id, appointment_date=target,
                                status="failed", error_message=e.message)
            await self.repo.commit()
            return ReminderResult(patient_id=p.id, status="failed", error=e.message)
        await self.repo.log(patient_id=p.id, user_id=p.user_id, appointment_date=target, status="sent")
        await self.repo.commit()
        return ReminderResult(patient_id=p.id, status="sent")

    async def _record_failure(self, p, target: date, error: str) -> None:
        try:
            await self.repo.rollback()
            await self.repo.log(patient_id=p.id, user_id=p.user_id, appointment_date=target,
                                status="failed", error_message=error)
            await self.repo.commit()
        except Exception:
            log.exception(f"Could not record failed reminder for patient {p.id}")
