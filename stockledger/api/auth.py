from fastapi import APIRouter, Cookie, Depends, Header, HTTPException
from pydantic import BaseModel
from sqlalchemy.orm import Session

from stockledger.database import get_db
from stockledger.models.user import User
from stockledger.services import auth_service

router = APIRouter(prefix="/auth", tags=["Auth"])


class UserOut(BaseModel):
    id: str
    username: str
    display_name: str
    role: str
    active: bool = True

    model_config = {"from_attributes": True}


def _bearer_token(authorization: str | None) -> str | None:
    if authorization and authorization.lower().startswith("bearer "):
        return authorization[7:].strip()
    return None


def get_current_user(
    token: str | None = Cookie(default=None, alias="token"),
    authorization: str | None = Header(default=None),
    db: Session = Depends(get_db),
) -> User:
    """Dependency: resolve the caller from a JWT cookie or bearer header."""
    token = _bearer_token(authorization) or token
    if not token:
        raise HTTPException(401, "Not authenticated")
    payload = auth_service.decode_token(token)
    if not payload:
        raise HTTPException(401, "Invalid or expired token")
    user = auth_service.get_user_by_id(db, payload["sub"])
    if not user or not user.active:
        raise HTTPException(401, "User not found or disabled")
    return user


def require_roles(*roles: str):
    def dependency(user: User = Depends(get_current_user)) -> User:
        if user.role not in roles:
            raise HTTPException(403, f"Requires role: {', '.join(roles)}")
        return user

    return dependency


@router.get("/me", response_model=UserOut)
def me(user: User = Depends(get_current_user)):
    return user
