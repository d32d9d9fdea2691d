from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import jwt, JWTError
from pydantic import BaseModel
from labcrm.core.config import settings
from labcrm.core.errors import auth_error_message

http_bearer = HTTPBearer(auto_error=False)

class Principal(BaseModel):
    user_id: str
    email: str | None = None
    role: str | None = None

def _decode_token(token: str) -> dict:
    try:
        options = {"verify_aud": settings.REQUIRED_AUDIENCE is not None}
        payload = jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALG],
                             audience=settings.REQUIRED_AUDIENCE, options=options)
        return payload
    except JWTError as e:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=auth_error_message(e)) from e

async def get_principal(creds: HTTPAuthorizationCredentials | None = Depends(http_bearer)) -> Principal:
    # In local dev, allow missing token and use the default user
    if creds is None and settings.ENV == "local":
        return Principal(user_id=settings.DEFAULT_USER_ID, role="authenticated")
    if creds is None:
        raise HTTPException(status_code=401, detail="Missing token")

    data = _decode_token(creds.credentials)
    user_id = data.get("sub") or data.get("user_id")
    if not user_id:
        raise HTTPException(status_code=401, detail="Token has no subject")
    return Principal(user_id=str(user_id), email=data.get("email"), role=data.get("role"))
