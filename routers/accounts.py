import logging
from typing import List, Optional

from fastapi import APIRouter, Depends
from pydantic import EmailStr, Field

from auth import (AdminClaims, create_user_token, decode_principal, get_current_user, hash_password,
                  load_active_user, verify_password)
from database import create_document, get_db
from errors import Conflict, Unauthenticated, ValidationError
from schemas import Payload, Role, Sector, User, UserType
from shaping import ok, public_user

logger = logging.getLogger("accounts")

router = APIRouter()


class SignupRequest(Payload):
    email: EmailStr
    company_name: str = Field(min_length=2, max_length=100)
    contact_person: str = Field(min_length=2, max_length=50)
    user_type: UserType
    role: Role
    sector: Sector = "Not specified"
    hs_code: str = ""
    target_countries: List[str] = []
    password: str = Field(min_length=6, max_length=72)


class SigninRequest(Payload):
    email: EmailStr
    password: str = Field(min_length=1)


class VerifyTokenRequest(Payload):
    token: Optional[str] = None


def session_user(user: dict) -> dict:
    shaped = public_user(user)
    return {k: shaped[k] for k in ("id", "email", "companyName", "contactPerson", "userType",
                                   "role", "isAdmin", "sector", "profileCompleted")}


@router.post("/signup", status_code=201)
def signup(payload: SignupRequest, db=Depends(get_db)):
    email = payload.email.lower()
    if db["users"].find_one({"email": email}):
        raise Conflict("User already exists with this email")

    fields = payload.model_dump(exclude={"password", "email"})
    user = create_document(db, "users", User(
        email=email,
        password=hash_password(payload.password),
        **fields,
    ))
    token = create_user_token(user["_id"])
    logger.info("New user registered: %s", email)
    return ok(message="User registered successfully", token=token, user=session_user(user))


@router.post("/signin")
def signin(payload: SigninRequest, db=Depends(get_db)):
    email = payload.email.lower()
    user = db["users"].find_one({"email": email})
    if not user:
        raise Unauthenticated("Invalid credentials")
    if not user.get("isActive", True):
        raise Unauthenticated("Account is deactivated")
    if not verify_password(payload.password, user.get("password", "")):
        raise Unauthenticated("Invalid credentials")

    token = create_user_token(user["_id"])
    logger.info("User signed in: %s", email)
    return ok(message="Sign in successful", token=token, user=session_user(user))


@router.get("/profile")
def profile(user: dict = Depends(get_current_user)):
    return ok(message="Profile retrieved successfully", user=public_user(user))


@router.post("/verify-token")
def verify_token(payload: VerifyTokenRequest, db=Depends(get_db)):
    if not payload.token:
        raise ValidationError("Token is required")
    principal = decode_principal(payload.token)
    if isinstance(principal, AdminClaims):
        raise Unauthenticated("Invalid token")
    user = load_active_user(db, principal.user_id)
    return ok(message="Token is valid", user=session_user(user))
