from fastapi import APIRouter, Depends
from labcrm.core.security import Principal, get_principal
from labcrm.modules.session import manager

router = APIRouter()

@router.post("/session/logout")
async def logout(principal: Principal = Depends(get_principal)):
    closed = await manager.workspace_manager.close(principal.user_id)
    return {"status": "ok", "closed": closed}
