import uuid
from typing import Literal
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import jwt, JWTError
from pydantic import BaseModel
from medsched.core.config import settings

http_bearer = HTTPBearer(auto_error=False)

Role = Literal["patient", "doctor", "admin"]

class Principal(BaseModel):
    user_id: str
    role: Role = "patient"

def _decode_token(token: str) -> dict:
    try:
        payload = jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALG], audience=settings.REQUIRED_AUDIENCE)
        return payload
    except JWTError as e:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=f"Invalid token: {e}")

async def get_principal(creds: HTTPAuthorizationCredentials | None = Depends(http_bearer)) -> Principal:
    # In local/dev, allow missing token and act as admin
    if creds is None and settings.ENV == "local":
        return Principal(user_id=str(uuid.uuid4()), role="admin")
    if creds is None:
        raise HTTPException(status_code=401, detail="Missing token")

    data = _decode_token(creds.credentials)
    user_id = str(data.get("sub") or data.get("user_id") or "")
    if not user_id:
        raise HTTPException(status_code=401, detail="Token has no subject")
    role = data.get("role", "patient")
    if role not in ("patient", "doctor", "admin"):
        raise HTTPException(status_code=403, detail=f"Unknown role {role}")
    return Principal(user_id=user_id, role=role)

def require_roles(*allowed: str):
    def dep(principal: Principal = Depends(get_principal)) -> Principal:
        if principal.role == "admin" or principal.role in allowed:
            return principal
        raise HTTPException(status_code=403, detail="Insufficient role")
    return dep
