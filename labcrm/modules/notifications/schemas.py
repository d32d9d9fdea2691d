from datetime import datetime
from pydantic import BaseModel
from labcrm.modules.patients.schemas import PatientRecord

class NotificationOut(BaseModel):
    key: str
    message: str
    checkpoint: str
    raised_at: datetime
    patient: PatientRecord

    class Config:
        from_attributes = True

class NotificationStateOut(BaseModel):
    notifications: list[NotificationOut]
    current: NotificationOut | None = None
    modal_open: bool
    sound_cooldown_active: bool
    alert_plays: int = 0
    dismissed_count: int = 0
    running: bool = False

class CheckResult(BaseModel):
    raised: int
    state: NotificationStateOut
