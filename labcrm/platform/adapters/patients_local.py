import json
import logging
import os
from datetime import date
from typing import Callable
from pydantic import ValidationError as SchemaError
from labcrm.core.base import new_id, utcnow
from labcrm.core.config import settings
from labcrm.core.errors import PersistenceError, patient_error_message
from labcrm.modules.patients.schemas import PatientRecord
from labcrm.platform.ports.patient_backend import PatientBackendPort

log = logging.getLogger("patients.local")

class LocalPatientBackend(PatientBackendPort):
    """One JSON document per user under LOCAL_STORE_ROOT (device storage)."""

    def __init__(self, root: str | None = None, clock: Callable = utcnow):
        self.root = os.path.abspath(root or settings.LOCAL_STORE_ROOT)
        self.clock = clock
        os.makedirs(self.root, exist_ok=True)

    def _path(self, user_id: str) -> str:
        safe = "".join(c for c in user_id if c.isalnum() or c in "-_") or "anonymous"
        return os.path.join(self.root, f"patients_{safe}.json")

    def _read(self, user_id: str) -> list[dict]:
        path = self._path(user_id)
        if not os.path.exists(path):
            return []
        try:
            with open(path, "r", encoding="utf-8") as f:
                rows = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            log.error(f"Could not read {path}: {e}")
            raise PersistenceError(patient_error_message(e)) from e
        return rows if isinstance(rows, list) else []

    def _write(self, user_id: str, rows: list[dict]) -> None:
        path = self._path(user_id)
        tmp = path + ".tmp"
        try:
            with open(tmp, "w", encoding="utf-8") as f:
                json.dump(rows, f, ensure_ascii=False, indent=2)
            os.replace(tmp, path)
        except OSError as e:
            log.error(f"Could not write {path}: {e}")
            raise PersistenceError(patient_error_message(e)) from e

    @staticmethod
    def _to_row(record: PatientRecord) -> dict:
        return record.model_dump(mode="json")

    @staticmethod
    def _jsonable(fields: dict) -> dict:
        return {k: (v.isoformat() if isinstance(v, date) else v) for k, v in fields.items()}

    async def list(self, user_id: str) -> list[PatientRecord]:
        records = []
        for row in self._read(user_id):
            try:
                records.append(PatientRecord.model_validate(row))
            except SchemaError as e:
                log.warning(f"Skipping unreadable patient row {row.get('id') if isinstance(row, dict) else row!r}: {e.error_count()} errors")
        records.sort(key=lambda r: r.created_at, reverse=True)
        return records

    async def insert(self, user_id: str, data: dict) -> PatientRecord:
        now = self.clock()
        record = PatientRecord.model_validate({
            **self._jsonable(data),
            "id": new_id(),
            "user_id": user_id,
            "created_at": now,
            "updated_at": now,
        })
        rows = self._read(user_id)
        rows.insert(0, self._to_row(record))
        self._write(user_id, rows)
        return record

    async def update(self, user_id: str, patient_id: str, fields: dict) -> PatientRecord | None:
        rows = self._read(user_id)
        for i, row in enumerate(rows):
            if isinstance(row, dict) and row.get("id") == patient_id:
                record = PatientRecord.model_validate({**row, **self._jsonable(fields)})
                # updated_at never precedes created_at, even if the clock steps back
                record = record.model_copy(update={"updated_at": max(self.clock(), record.created_at)})
                rows[i] = self._to_row(record)
                self._write(user_id, rows)
                return record
        return None

    async def delete(self, user_id: str, patient_id: str) -> bool:
        rows = self._read(user_id)
        kept = [r for r in rows if not (isinstance(r, dict) and r.get("id") == patient_id)]
        if len(kept) == len(rows):
            return False
        self._write(user_id, kept)
        return True
