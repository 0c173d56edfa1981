import enum
import uuid
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import jwt, JWTError
from pydantic import BaseModel
from clinic_messaging.core.config import settings

http_bearer = HTTPBearer(auto_error=False)

class Role(str, enum.Enum):
    PATIENT = "PATIENT"
    DOCTOR = "DOCTOR"
    ADMIN = "ADMIN"
    CLINIC = "CLINIC"

STAFF_ROLES = frozenset({Role.DOCTOR, Role.ADMIN, Role.CLINIC})

class Principal(BaseModel):
    user_id: uuid.UUID
    role: Role
    # patients are not always attached to a clinic at the account level
    clinic_id: uuid.UUID | None = None
    email: str | None = None
    phone: str | None = None

    @property
    def is_patient(self) -> bool:
        return self.role is Role.PATIENT

def _decode_token(token: str) -> dict:
    try:
        payload = jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALG], audience=settings.REQUIRED_AUDIENCE)
        return payload
    except JWTError as e:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=f"Invalid token: {e}")

async def get_principal(creds: HTTPAuthorizationCredentials | None = Depends(http_bearer)) -> Principal:
    # In local/dev, allow missing token and act as the default clinic's admin
    if creds is None and settings.ENV == "local":
        return Principal(user_id=uuid.uuid4(), role=Role.ADMIN, clinic_id=uuid.UUID(settings.DEFAULT_CLINIC_ID))
    if creds is None:
        raise HTTPException(status_code=401, detail="Missing token")

    data = _decode_token(creds.credentials)
    try:
        user_id = uuid.UUID(str(data.get("sub") or data.get("user_id")))
        role = Role(str(data.get("role", "")).upper())
        clinic_id = uuid.UUID(str(data["clinic_id"])) if data.get("clinic_id") else None
    except (ValueError, KeyError) as e:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=f"Invalid token claims: {e}")
    return Principal(
        user_id=user_id,
        role=role,
        clinic_id=clinic_id,
        email=data.get("email"),
        phone=data.get("phone"),
    )
