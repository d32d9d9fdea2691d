"""Appointment reminder engine for the operator's screen.

At each checkpoint of the day the engine looks for scheduled patients whose
appointment is tomorrow and queues one notification per patient. A
notification's key is the patient id plus the checkpoint it was raised in, so
a patient dismissed at 08:00 comes back at 10:00 but not again before then.

Lifecycle: ``start()`` resets the cooldown, runs one check straight away and
then polls every ``poll_seconds``; ``stop()`` cancels the poll and clears the
cooldown. All state belongs to the instance.
"""
import asyncio
import itertools
import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Callable, Iterable
from zoneinfo import ZoneInfo

from labcrm.core.config import settings
from labcrm.core.errors import NothingToNotify
from labcrm.modules.patients.schemas import PatientRecord, SCHEDULED
from labcrm.platform.ports.alerts import AlertSinkPort

log = logging.getLogger("notifications.engine")

MINUTES_PER_DAY = 24 * 60


@dataclass(frozen=True)
class Notification:
    key: str
    patient: PatientRecord
    raised_at: datetime
    checkpoint: str

    @property
    def message(self) -> str:
        return f"ATENÇÃO: Você tem paciente agendado amanhã – {self.patient.name}"


def _minutes(hhmm: str) -> int:
    hh, _, mm = hhmm.partition(":")
    return int(hh) * 60 + int(mm)


def appointment_day(patient: PatientRecord) -> date | None:
    """Day-truncated appointment date, or None when the stored value doesn't parse."""
    value = getattr(patient, "appointment_date", None)
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value)[:10])
    except (TypeError, ValueError):
        log.debug(f"Skipping patient {getattr(patient, 'id', '?')}: bad appointment date {value!r}")
        return None


class NotificationEngine:
    def __init__(
        self,
        patients: Callable[[], Iterable[PatientRecord]],
        *,
        alert_sink: AlertSinkPort,
        checkpoints: list[str] | None = None,
        tolerance_minutes: int | None = None,
        poll_seconds: float | None = None,
        cooldown_seconds: float | None = None,
        tz: str | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        self._patients = patients
        self.alert_sink = alert_sink
        self.checkpoints = list(checkpoints or settings.NOTIFICATION_CHECKPOINTS)
        self.tolerance_minutes = settings.NOTIFICATION_TOLERANCE_MINUTES if tolerance_minutes is None else tolerance_minutes
        self.poll_seconds = poll_seconds or settings.NOTIFICATION_POLL_SECONDS
        self.cooldown = timedelta(seconds=settings.SOUND_COOLDOWN_SECONDS if cooldown_seconds is None else cooldown_seconds)
        self.tz = ZoneInfo(tz or settings.TIMEZONE)
        self._clock = clock or (lambda: datetime.now(self.tz))

        self.notifications: list[Notification] = []
        self.dismissed: set[str] = set()
        self.current: Notification | None = None
        self.modal_open = False
        self._cooldown_until: datetime | None = None
        self._test_seq = itertools.count(1)
        self._task: asyncio.Task | None = None

    # ---- clock helpers ----

    def _local(self, now: datetime | None) -> datetime:
        now = now or self._clock()
        if now.tzinfo is None:
            return now.replace(tzinfo=self.tz)
        return now.astimezone(self.tz)

    def matching_checkpoint(self, now: datetime | None = None) -> str | None:
        now = self._local(now)
        minute = now.hour * 60 + now.minute
        for cp in self.checkpoints:
            diff = abs(minute - _minutes(cp))
            if min(diff, MINUTES_PER_DAY - diff) <= self.tolerance_minutes:
                return cp
        return None

    def _in_cooldown(self, now: datetime) -> bool:
        return self._cooldown_until is not None and now < self._cooldown_until

    @property
    def sound_cooldown_active(self) -> bool:
        return self._in_cooldown(self._local(None))

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    # ---- matching ----

    def due_tomorrow(self, now: datetime | None = None) -> list[PatientRecord]:
        tomorrow = self._local(now).date() + timedelta(days=1)
        return [
            p for p in self._patients()
            if p.status == SCHEDULED and appointment_day(p) == tomorrow
        ]

    def check(self, now: datetime | None = None) -> list[Notification]:
        """Periodic tick. Returns the notifications raised (empty when nothing changed)."""
        now = self._local(now)
        checkpoint = self.matching_checkpoint(now)
        if checkpoint is None:
            return []
        bucket = f"{now.date().isoformat()}T{checkpoint}"
        candidates = [
            Notification(key=f"{p.id}:{bucket}", patient=p, raised_at=now, checkpoint=checkpoint)
            for p in self.due_tomorrow(now)
        ]
        return self._raise(candidates, now)

    def trigger_test(self, now: datetime | None = None) -> list[Notification]:
        """Manual trigger: no checkpoint gate, keys never collide with real ones."""
        now = self._local(now)
        patients = self.due_tomorrow(now)
        if not patients:
            raise NothingToNotify()
        seq = next(self._test_seq)
        stamp = now.strftime("%Y%m%dT%H%M%S")
        candidates = [
            Notification(key=f"{p.id}:test-{stamp}-{seq}", patient=p, raised_at=now, checkpoint="test")
            for p in patients
        ]
        return self._raise(candidates, now)

    def _raise(self, candidates: list[Notification], now: datetime) -> list[Notification]:
        fresh = [n for n in candidates if n.key not in self.dismissed]
        if not fresh:
            return []
        self.notifications = fresh
        self.current = fresh[0]
        self.modal_open = True
        if not self._in_cooldown(now):
            self.alert_sink.play(f"{len(fresh)} paciente(s) agendado(s) para amanhã")
            self._cooldown_until = now + self.cooldown
        log.info(f"Raised {len(fresh)} reminder(s) at {now:%H:%M}")
        return fresh

    # ---- dismissal ----

    def dismiss(self, key: str) -> None:
        self.dismissed.add(key)
        self.notifications = [n for n in self.notifications if n.key != key]
        if self.current is None or self.current.key == key:
            self.current = self.notifications[0] if self.notifications else None
        self.modal_open = self.current is not None

    def dismiss_all(self) -> None:
        self.dismissed.update(n.key for n in self.notifications)
        self.notifications = []
        self.current = None
        self.modal_open = False

    # ---- lifecycle ----

    async def start(self) -> None:
        if self.running:
            return
        self._cooldown_until = None
        self.check()
        self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._cooldown_until = None

    async def _run(self) -> None:
        log.info(f"Notification poll started every {self.poll_seconds}s")
        try:
            while True:
                await asyncio.sleep(self.poll_seconds)
                try:
                    self.check()
                except Exception:
                    log.exception("Notification check failed")
        except asyncio.CancelledError:
            log.info("Notification poll cancelled")
            raise
