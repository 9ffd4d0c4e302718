from datetime import datetime, timedelta, timezone

import jwt
from sqlalchemy.orm import Session

from stockledger.config import settings
from stockledger.models.user import User

ROLES = ("admin", "seller", "staff")


def create_access_token(user_id: str, username: str) -> str:
    payload = {
        "sub": user_id,
        "username": username,
        "exp": datetime.now(timezone.utc) + timedelta(hours=settings.ACCESS_TOKEN_EXPIRE_HOURS),
    }
    return jwt.encode(payload, settings.SECRET_KEY, algorithm="HS256")


def decode_token(token: str) -> dict | None:
    try:
        return jwt.decode(token, settings.SECRET_KEY, algorithms=["HS256"])
    except (jwt.ExpiredSignatureError, jwt.InvalidTokenError):
        return None


def get_user_by_id(db: Session, user_id: str) -> User | None:
    return db.query(User).filter(User.id == user_id).first()


def create_user(db: Session, username: str, display_name: str = "", role: str = "staff") -> User:
    if role not in ROLES:
        raise ValueError(f"Unknown role '{role}'")
    existing = db.query(User).filter(User.username == username).first()
    if existing:
        raise ValueError(f"Username '{username}' already exists")
    user = User(username=username, display_name=display_name or username, role=role)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user
