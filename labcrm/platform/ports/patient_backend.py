from typing import Protocol, runtime_checkable
from labcrm.modules.patients.schemas import PatientRecord

@runtime_checkable
class PatientBackendPort(Protocol):
    """Persistence behind a PatientStore. Every call is scoped to one user.

    Implementations raise ``PersistenceError`` on read/write failures and
    assign ``id``/``created_at``/``updated_at`` themselves.
    """
    async def list(self, user_id: str) -> list[PatientRecord]: ...
    async def insert(self, user_id: str, data: dict) -> PatientRecord: ...
    async def update(self, user_id: str, patient_id: str, fields: dict) -> PatientRecord | None: ...
    async def delete(self, user_id: str, patient_id: str) -> bool: ...
