from fastapi import Depends, HTTPException
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy import select
from sqlalchemy.orm import Session

from constructpro.core.deps import get_db
from constructpro.core.permissions import CurrentUser, normalize_role
from constructpro.core.security import TokenValidationError, decode_access_token
from constructpro.models.user import User

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/token")


def get_current_user(token: str = Depends(oauth2_scheme), db: Session = Depends(get_db)) -> User:
    try:
        payload = decode_access_token(token)
    except TokenValidationError as exc:
        raise HTTPException(status_code=401, detail=str(exc)) from exc

    user = db.execute(select(User).where(User.id == payload.get("sub"))).scalar_one_or_none()
    if not user or not user.is_active:
        raise HTTPException(status_code=401, detail="User not found")
    return user


def get_current_actor(user: User = Depends(get_current_user)) -> CurrentUser:
    # Role is read from the user row on every request.
    return CurrentUser(id=user.id, role=normalize_role(user.role))
