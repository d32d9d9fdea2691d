from fastapi import APIRouter
from labcrm.modules.patients.router import router as patients_router
from labcrm.modules.notifications.router import router as notifications_router
from labcrm.modules.dashboard.router import router as dashboard_router
from labcrm.modules.exports.router import router as exports_router
from labcrm.modules.reminders.router import router as reminders_router
from labcrm.modules.session.router import router as session_router

api_router = APIRouter()
api_router.include_router(patients_router, prefix="/patients", tags=["patients"])
api_router.include_router(notifications_router, tags=["notifications"])
api_router.include_router(dashboard_router, tags=["dashboard"])
api_router.include_router(exports_router, tags=["exports"])
api_router.include_router(reminders_router, tags=["reminders"])
api_router.include_router(session_router, tags=["session"])

@api_router.get("/health", tags=["health"])
async def health():
    return {"status": "ok"}
