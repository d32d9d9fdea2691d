"""In-memory patient collection for one user's session.

The store owns the canonical list; everyone else reads ``patients`` (a tuple
snapshot) or goes through ``add``/``update``/``delete``. Nothing is changed in
memory until the backend has confirmed the write, and the backend's returned
record is what gets kept.
"""
import logging
from datetime import date
from labcrm.core.errors import NotFoundError, PersistenceError
from labcrm.modules.patients.schemas import PatientCreate, PatientRecord
from labcrm.platform.ports.patient_backend import PatientBackendPort

log = logging.getLogger(__name__)


class PatientStore:
    def __init__(self, backend: PatientBackendPort, user_id: str):
        self.backend = backend
        self.user_id = user_id
        self._patients: list[PatientRecord] = []
        self.loading = False
        self.loaded = False
        self.error: str | None = None

    @property
    def patients(self) -> tuple[PatientRecord, ...]:
        return tuple(self._patients)

    async def load(self) -> tuple[PatientRecord, ...]:
        """Fetch the user's records, newest first. Keeps the old list on failure."""
        self.loading = True
        try:
            records = await self.backend.list(self.user_id)
        except PersistenceError as e:
            self.error = e.message
            log.warning(f"Loading patients for {self.user_id} failed: {e.message}")
            raise
        finally:
            self.loading = False
        self._patients = sorted(records, key=lambda r: r.created_at, reverse=True)
        self.loaded = True
        self.error = None
        log.info(f"Loaded {len(self._patients)} patients for {self.user_id}")
        return self.patients

    def clear(self) -> None:
        self._patients = []
        self.loaded = False
        self.loading = False
        self.error = None

    async def add(self, draft: PatientCreate) -> PatientRecord:
        data = draft.model_dump()
        try:
            record = await self.backend.insert(self.user_id, data)
        except PersistenceError as e:
            self.error = e.message
            raise
        self._patients.insert(0, record)
        self.error = None
        log.info(f"Patient {record.id} created")
        return record

    async def update(self, patient_id: str, fields: dict) -> PatientRecord:
        """Apply exactly ``fields``; keys left out stay as they are."""
        if self._index(patient_id) is None:
            raise NotFoundError()
        try:
            record = await self.backend.update(self.user_id, patient_id, fields)
        except PersistenceError as e:
            self.error = e.message
            raise
        if record is None:
            raise NotFoundError()
        # the list may have changed while the write was in flight
        idx = self._index(patient_id)
        if idx is not None:
            self._patients[idx] = record
        self.error = None
        log.info(f"Patient {patient_id} updated: {sorted(fields)}")
        return record

    async def delete(self, patient_id: str) -> None:
        if self._index(patient_id) is None:
            raise NotFoundError()
        try:
            ok = await self.backend.delete(self.user_id, patient_id)
        except PersistenceError as e:
            self.error = e.message
            raise
        if not ok:
            raise NotFoundError()
        self._patients = [p for p in self._patients if p.id != patient_id]
        self.error = None
        log.info(f"Patient {patient_id} deleted")

    def get_by_id(self, patient_id: str) -> PatientRecord | None:
        return next((p for p in self._patients if p.id == patient_id), None)

    def by_status(self, status: str) -> list[PatientRecord]:
        return [p for p in self._patients if p.status == status]

    def filter(self, *, q: str | None = None, status: str | None = None, media_origin: str | None = None,
               procedure: str | None = None, appointment_date: date | str | None = None) -> list[PatientRecord]:
        needle = (q or "").strip().lower()
        day = appointment_date.isoformat() if isinstance(appointment_date, date) else appointment_date
        out = []
        for p in self._patients:
            if needle and needle not in p.name.lower() and needle not in p.phone:
                continue
            if status and p.status != status:
                continue
            if media_origin and p.media_origin != media_origin:
                continue
            if procedure and procedure not in p.procedures:
                continue
            if day and p.appointment_date[:10] != day:
                continue
            out.append(p)
        return out

    def _index(self, patient_id: str) -> int | None:
        for i, p in enumerate(self._patients):
            if p.id == patient_id:
                return i
        return None
