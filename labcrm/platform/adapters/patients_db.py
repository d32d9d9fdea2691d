import logging
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker
from labcrm.core.errors import PersistenceError, error_code, patient_error_message
from labcrm.modules.patients.repository import PatientRepository
from labcrm.modules.patients.schemas import PatientRecord
from labcrm.platform.ports.patient_backend import PatientBackendPort

log = logging.getLogger("patients.db")

class DatabasePatientBackend(PatientBackendPort):
    """Hosted relational store; every query is scoped by user_id."""

    def __init__(self, session_factory: async_sessionmaker | None = None):
        if session_factory is None:
            from labcrm.core.db import SessionLocal
            session_factory = SessionLocal
        self.session_factory = session_factory

    @staticmethod
    def _fail(op: str, e: Exception) -> PersistenceError:
        log.error(f"Patient {op} failed: {e}")
        return PersistenceError(patient_error_message(e), code=error_code(e))

    async def list(self, user_id: str) -> list[PatientRecord]:
        try:
            async with self.session_factory() as s:
                rows = await PatientRepository(s).list(user_id)
                return [PatientRecord.model_validate(r) for r in rows]
        except (SQLAlchemyError, OSError) as e:
            raise self._fail("list", e) from e

    async def insert(self, user_id: str, data: dict) -> PatientRecord:
        try:
            async with self.session_factory() as s:
                obj = await PatientRepository(s).create(user_id, **data)
                await s.commit()
                return PatientRecord.model_validate(obj)
        except (SQLAlchemyError, OSError) as e:
            raise self._fail("insert", e) from e

    async def update(self, user_id: str, patient_id: str, fields: dict) -> PatientRecord | None:
        try:
            async with self.session_factory() as s:
                obj = await PatientRepository(s).update(user_id, patient_id, **fields)
                if not obj:
                    return None
                await s.commit()
                return PatientRecord.model_validate(obj)
        except (SQLAlchemyError, OSError) as e:
            raise self._fail("update", e) from e

    async def delete(self, user_id: str, patient_id: str) -> bool:
        try:
            async with self.session_factory() as s:
                ok = await PatientRepository(s).delete(user_id, patient_id)
                if ok:
                    await s.commit()
                return ok
        except (SQLAlchemyError, OSError) as e:
            raise self._fail("delete", e) from e
