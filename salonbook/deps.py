from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from fastapi import HTTPException, Header, Query
from jose import JWTError, jwt

from salonbook.config import ADMIN_API_KEY, JWT_ALG, JWT_SECRET
from salonbook.db import get_db  # noqa: F401

ROLES = ("admin", "client")


@dataclass(frozen=True)
class CurrentUser:
    user_id: str
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


def get_now() -> datetime:
    return datetime.now(timezone.utc)


def _decode_bearer(authorization: Optional[str]) -> Optional[dict]:
    if not authorization or not authorization.lower().startswith("bearer "):
        return None
    token = authorization.split(" ", 1)[1].strip()
    try:
        return jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALG])
    except JWTError:
        raise HTTPException(status_code=401, detail="Unauthorized")


def get_current_user(authorization: Optional[str] = Header(default=None)) -> CurrentUser:
    payload = _decode_bearer(authorization)
    if payload is None:
        raise HTTPException(status_code=401, detail="Authentication required")
    user_id = payload.get("sub")
    role = payload.get("role", "client")
    if not user_id or role not in ROLES:
        raise HTTPException(status_code=401, detail="Unauthorized")
    return CurrentUser(user_id=str(user_id), role=role)


def require_admin(
    x_admin_key: Optional[str] = Header(default=None),
    admin_key: Optional[str] = Query(default=None),
    authorization: Optional[str] = Header(default=None),
) -> None:
    key = x_admin_key or admin_key
    if key == ADMIN_API_KEY:
        return
    payload = _decode_bearer(authorization)
    if payload is None:
        raise HTTPException(status_code=401, detail="Unauthorized")
    if payload.get("role") != "admin":
        raise HTTPException(status_code=403, detail="Forbidden")
