"""
Identity resolution for the two token kinds.

User tokens carry `{userId, type: "user"}` and are issued by /api/auth.
Admin tokens carry `{adminId, isAdmin: true, type: "admin"}` and are issued
by /api/admin-auth from the configured ADMIN_ID/ADMIN_PASSWORD pair. Both
are HS256 JWTs signed with the same secret but are never interchangeable.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional, Union

import jwt
from bson import ObjectId
from fastapi import Depends, Header
from passlib.context import CryptContext

import config
from database import get_db
from errors import Forbidden, NotFoundOrUnauthorized, Unauthenticated

logger = logging.getLogger("auth")

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def hash_password(pw: str) -> str:
    return pwd_context.hash(pw)


def verify_password(pw: str, hashed: str) -> bool:
    if not hashed:
        return False
    return pwd_context.verify(pw, hashed)


@dataclass(frozen=True)
class UserClaims:
    user_id: str
    kind: str = "user"


@dataclass(frozen=True)
class AdminClaims:
    admin_id: str
    kind: str = "admin"


Principal = Union[UserClaims, AdminClaims]


def create_token(data: dict, expires_minutes: Optional[int] = None) -> str:
    to_encode = data.copy()
    minutes = expires_minutes if expires_minutes is not None else config.JWT_EXPIRE_MINUTES
    to_encode["exp"] = datetime.now(timezone.utc) + timedelta(minutes=minutes)
    return jwt.encode(to_encode, config.JWT_SECRET, algorithm=config.JWT_ALG)


def create_user_token(user_id, expires_minutes: Optional[int] = None) -> str:
    return create_token({"userId": str(user_id), "type": "user"}, expires_minutes)


def create_admin_token(admin_id: str, expires_minutes: Optional[int] = None) -> str:
    return create_token(
        {"adminId": admin_id, "isAdmin": True, "type": "admin"}, expires_minutes
    )


def decode_principal(token: str) -> Principal:
    try:
        payload = jwt.decode(token, config.JWT_SECRET, algorithms=[config.JWT_ALG])
    except jwt.ExpiredSignatureError:
        raise Unauthenticated("Token expired. Please login again.")
    except jwt.InvalidTokenError:
        raise Unauthenticated("Invalid token.")

    if payload.get("type") == "admin":
        if payload.get("isAdmin") is not True or not payload.get("adminId"):
            raise Unauthenticated("Invalid token.")
        return AdminClaims(admin_id=str(payload["adminId"]))
    if payload.get("userId"):
        return UserClaims(user_id=str(payload["userId"]))
    raise Unauthenticated("Invalid token.")


def bearer_token(authorization: Optional[str]) -> str:
    if not authorization:
        raise Unauthenticated("Access denied. No token provided.")
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise Unauthenticated("Invalid authorization header.")
    return token.strip()


def load_active_user(db, user_id: str) -> dict:
    if not ObjectId.is_valid(user_id):
        raise Unauthenticated("Invalid token.")
    user = db["users"].find_one({"_id": ObjectId(user_id)})
    if not user or not user.get("isActive", True):
        raise Unauthenticated("Invalid token.")
    user.pop("password", None)
    return user


# Auth dependencies

def get_current_user(authorization: Optional[str] = Header(None), db=Depends(get_db)) -> dict:
    principal = decode_principal(bearer_token(authorization))
    if isinstance(principal, AdminClaims):
        logger.warning("Admin token presented to a user route (adminId=%s)", principal.admin_id)
        raise Forbidden("Access denied. User credentials required.")
    user = load_active_user(db, principal.user_id)
    logger.debug("Authenticated user %s", user["_id"])
    return user


def get_current_admin(authorization: Optional[str] = Header(None)) -> AdminClaims:
    principal = decode_principal(bearer_token(authorization))
    if not isinstance(principal, AdminClaims):
        logger.warning("Unauthorized admin access attempt with a user token")
        raise Forbidden("Access denied. Valid admin credentials required.")
    if not config.ADMIN_ID or principal.admin_id != config.ADMIN_ID:
        logger.warning("Admin access attempt with invalid admin ID: %s", principal.admin_id)
        raise Forbidden("Access denied. Admin credentials invalid or expired.")
    logger.info("Admin access granted to %s", principal.admin_id)
    return principal


# Authorization gates

def require_admin_user(user: dict) -> dict:
    if user.get("isAdmin") is not True:
        raise Forbidden("Admin privileges required")
    return user


def find_owned(collection, doc_id: ObjectId, user_id: ObjectId, what: str, extra: Optional[dict] = None) -> dict:
    """Fetch a document by id *and* owner in one query."""
    query = {"_id": doc_id, "userId": user_id}
    if extra:
        query.update(extra)
    doc = collection.find_one(query)
    if not doc:
        raise NotFoundOrUnauthorized(f"{what} not found or unauthorized")
    return doc
