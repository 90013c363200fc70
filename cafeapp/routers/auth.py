import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from cafeapp.config import Settings
from cafeapp.db import get_db
from cafeapp.deps import get_settings
from cafeapp.errors import UnauthorizedError
from cafeapp.models.core import Admin
from cafeapp.schemas.common import LoginIn, Token
from cafeapp.util.security import create_token, verify_pw

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])

@router.post("/login", response_model=Token)
def login(body: LoginIn, db: Session = Depends(get_db), settings: Settings = Depends(get_settings)):
    admin = db.query(Admin).filter(Admin.email == body.email.strip().lower()).first()
    if not admin or not admin.is_active or not verify_pw(admin.pass_hash, body.password):
        logger.info("failed login for %s", body.email)
        raise UnauthorizedError("Invalid credentials")
    return Token(access_token=create_token(settings, admin.id, admin.cafe_id, admin.role.value))
