from pydantic import BaseModel

class ReminderResult(BaseModel):
    patient_id: str
    status: str  # sent | failed
    error: str | None = None

class DispatchResult(BaseModel):
    message: str
    target_date: str
    count: int = 0
    results: list[ReminderResult] = []
