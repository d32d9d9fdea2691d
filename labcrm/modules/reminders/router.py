import logging
from datetime import date
from fastapi import APIRouter, Depends, Header, HTTPException, Response
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession
from labcrm.core.config import settings
from labcrm.core.db import get_session
from labcrm.core.errors import safe_error_message
from labcrm.modules.reminders.repository import ReminderRepository
from labcrm.modules.reminders.schemas import DispatchResult
from labcrm.modules.reminders.service import ReminderDispatchService
from labcrm.platform.provider_registry import registry

router = APIRouter()
log = logging.getLogger(__name__)

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
    "Access-Control-Allow-Headers": "authorization, x-client-info, apikey, content-type, x-dispatch-key",
}

def svc(s: AsyncSession = Depends(get_session)) -> ReminderDispatchService:
    return ReminderDispatchService(ReminderRepository(s), registry.messaging())

def require_dispatch_key(x_dispatch_key: str | None = Header(default=None)) -> None:
    if settings.DISPATCH_API_KEY and x_dispatch_key != settings.DISPATCH_API_KEY:
        raise HTTPException(status_code=401, detail="Invalid dispatch key")

@router.options("/reminders/send")
async def reminders_preflight():
    return Response(status_code=200, headers=CORS_HEADERS)

@router.api_route("/reminders/send", methods=["GET", "POST"], response_model=DispatchResult,
                  response_model_exclude_none=True, dependencies=[Depends(require_dispatch_key)])
async def send_reminders(date: str | None = None, service: ReminderDispatchService = Depends(svc)):
    target = None
    if date:
        try:
            target = _parse_date(date)
        except ValueError:
            return JSONResponse(status_code=400, content={"error": f"Invalid date: {date}"}, headers=CORS_HEADERS)
    try:
        result = await service.dispatch(target)
    except Exception as e:
        log.error(f"Error in send-reminder: {e}", exc_info=True)
        error = str(e) if isinstance(e, RuntimeError) else safe_error_message(e)
        return JSONResponse(status_code=500, content={"error": error}, headers=CORS_HEADERS)
    return JSONResponse(content=result.model_dump(exclude_none=True), headers=CORS_HEADERS)

def _parse_date(value: str):
    # the query parameter shadows the ``date`` type inside the endpoint
    return date.fromisoformat(value)
