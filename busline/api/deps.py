from fastapi import Depends, HTTPException
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError
from sqlalchemy.orm import Session
from busline.db.session import get_db
from busline.core.security import decode_token
from busline.models.user import User
from busline.domain.enums import Role
from busline.services.payment_service import get_gateway

bearer = HTTPBearer(auto_error=False)

def get_current_user(
    creds: HTTPAuthorizationCredentials | None = Depends(bearer),
    db: Session = Depends(get_db),
) -> User:
    if not creds:
        raise HTTPException(status_code=401, detail="Not authenticated")
    try:
        payload = decode_token(creds.credentials)
    except JWTError:
        raise HTTPException(status_code=401, detail="Invalid token")
    user_id = payload.get("sub")
    user = db.get(User, user_id)
    if not user or not user.is_active:
        raise HTTPException(status_code=401, detail="User not found or inactive")
    return user

def require_roles(*roles: Role):
    allowed = {Role(r).value for r in roles}
    def _guard(user: User = Depends(get_current_user)) -> User:
        if user.role not in allowed:
            raise HTTPException(status_code=403, detail="Forbidden")
        return user
    return _guard

def is_staff(user: User) -> bool:
    return user.role in (Role.ADMIN.value, Role.OPS.value)

def ensure_owner_or_staff(user: User, reservation) -> None:
    if reservation.user_id != user.id and not is_staff(user):
        raise HTTPException(status_code=403, detail="Forbidden")

def get_payment_gateway():
    return get_gateway()
