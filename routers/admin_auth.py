import hmac
import logging

from fastapi import APIRouter, Depends
from pydantic import Field

import config
from auth import AdminClaims, create_admin_token, get_current_admin
from errors import InternalError, Unauthenticated
from schemas import Payload
from shaping import ok

logger = logging.getLogger("admin_auth")

router = APIRouter()


class AdminLoginRequest(Payload):
    admin_id: str = Field(min_length=1)
    password: str = Field(min_length=1)


def admin_view(admin_id: str) -> dict:
    return {"id": "admin", "adminId": admin_id, "isAdmin": True, "type": "admin"}


@router.post("/login")
def login(payload: AdminLoginRequest):
    if not config.ADMIN_ID or not config.ADMIN_PASSWORD:
        logger.error("Admin credentials not configured in environment")
        raise InternalError("Admin authentication not configured")

    id_ok = hmac.compare_digest(payload.admin_id, config.ADMIN_ID)
    password_ok = hmac.compare_digest(payload.password, config.ADMIN_PASSWORD)
    if not (id_ok and password_ok):
        logger.warning("Failed admin login attempt with ID: %s", payload.admin_id)
        raise Unauthenticated("Invalid admin credentials")

    token = create_admin_token(payload.admin_id)
    logger.info("Successful admin login: %s", payload.admin_id)
    return ok(message="Admin login successful", token=token, admin=admin_view(payload.admin_id))


@router.post("/verify")
def verify(admin: AdminClaims = Depends(get_current_admin)):
    return ok(message="Admin token is valid", admin=admin_view(admin.admin_id))
