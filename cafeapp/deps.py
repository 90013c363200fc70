from dataclasses import dataclass

from fastapi import Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
import jwt
from sqlalchemy.orm import Session

from cafeapp.config import Settings
from cafeapp.db import get_db
from cafeapp.errors import UnauthorizedError
from cafeapp.models.core import Admin
from cafeapp.services.notify import NotificationRelay
from cafeapp.util.security import decode_token

auth_scheme = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class Principal:
    """The authenticated admin a request acts for."""
    admin_id: str
    cafe_id: str
    role: str


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_relay(request: Request) -> NotificationRelay:
    return request.app.state.relay


def require_admin(
    creds: HTTPAuthorizationCredentials | None = Depends(auth_scheme),
    settings: Settings = Depends(get_settings),
    db: Session = Depends(get_db),
) -> Principal:
    if not creds:
        raise UnauthorizedError("Unauthorized")
    try:
        data = decode_token(settings, creds.credentials)
    except jwt.PyJWTError:
        raise UnauthorizedError("Invalid token")

    admin = db.get(Admin, data.get("sub"))
    # token must still match a live admin of the same cafe
    if not admin or not admin.is_active or admin.cafe_id != data.get("cafe_id"):
        raise UnauthorizedError("Unauthorized")
    return Principal(admin_id=admin.id, cafe_id=admin.cafe_id, role=admin.role.value)
