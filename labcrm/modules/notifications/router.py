from fastapi import APIRouter, Depends
from labcrm.modules.notifications.engine import Notification
from labcrm.modules.notifications.schemas import NotificationOut, NotificationStateOut, CheckResult
from labcrm.modules.session.manager import Workspace, get_workspace

router = APIRouter()

def _out(n: Notification) -> NotificationOut:
    return NotificationOut(key=n.key, message=n.message, checkpoint=n.checkpoint, raised_at=n.raised_at, patient=n.patient)

def _state(ws: Workspace) -> NotificationStateOut:
    engine = ws.engine
    return NotificationStateOut(
        notifications=[_out(n) for n in engine.notifications],
        current=_out(engine.current) if engine.current else None,
        modal_open=engine.modal_open,
        sound_cooldown_active=engine.sound_cooldown_active,
        alert_plays=getattr(ws.alert_sink, "plays", 0),
        dismissed_count=len(engine.dismissed),
        running=engine.running,
    )

@router.get("/notifications", response_model=NotificationStateOut)
async def get_notifications(ws: Workspace = Depends(get_workspace)):
    return _state(ws)

@router.post("/notifications/check", response_model=CheckResult)
async def run_check(ws: Workspace = Depends(get_workspace)):
    raised = ws.engine.check()
    return CheckResult(raised=len(raised), state=_state(ws))

@router.post("/notifications/test", response_model=CheckResult)
async def trigger_test(ws: Workspace = Depends(get_workspace)):
    # NothingToNotify surfaces as 409 with the operator message
    raised = ws.engine.trigger_test()
    return CheckResult(raised=len(raised), state=_state(ws))

@router.post("/notifications/dismiss-all", response_model=NotificationStateOut)
async def dismiss_all(ws: Workspace = Depends(get_workspace)):
    ws.engine.dismiss_all()
    return _state(ws)

@router.post("/notifications/{key}/dismiss", response_model=NotificationStateOut)
async def dismiss(key: str, ws: Workspace = Depends(get_workspace)):
    ws.engine.dismiss(key)
    return _state(ws)
