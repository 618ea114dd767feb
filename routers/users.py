import logging
from typing import List, Optional

from fastapi import APIRouter, Depends
from pydantic import Field

from auth import get_current_user
from database import get_db, now
from errors import NotFound, ValidationError
from schemas import BusinessProfile, Payload, Role, Sector
from shaping import ok, public_user, user_metrics

logger = logging.getLogger("users")

router = APIRouter()


class ProfileUpdate(Payload):
    company_name: Optional[str] = Field(None, min_length=2, max_length=100)
    contact_person: Optional[str] = Field(None, min_length=2, max_length=50)
    role: Optional[Role] = None
    sector: Optional[Sector] = None
    hs_code: Optional[str] = None
    target_countries: Optional[List[str]] = None


class CompleteProfile(BusinessProfile):
    """Extended business profile submitted once after signup."""

    sector: Optional[Sector] = None
    hs_code: Optional[str] = None
    target_countries: Optional[List[str]] = None


def apply_user_update(db, user_id, updates: dict):
    updates["updatedAt"] = now()
    result = db["users"].update_one({"_id": user_id}, {"$set": updates})
    if result.matched_count == 0:
        raise NotFound("User not found")


@router.get("/profile")
def get_profile(user: dict = Depends(get_current_user)):
    data = public_user(user)
    data.update({
        "isVerified": bool(user.get("isVerified", False)),
        "createdAt": user.get("createdAt"),
        "metrics": user_metrics(user),
    })
    return ok(data)


@router.put("/profile")
def update_profile(payload: ProfileUpdate, user: dict = Depends(get_current_user), db=Depends(get_db)):
    updates = payload.model_dump(by_alias=True, exclude_none=True)
    if not updates:
        raise ValidationError("No valid fields to update")
    apply_user_update(db, user["_id"], updates)
    logger.info("User %s updated profile", user["_id"])
    return ok(message="Profile updated successfully")


@router.put("/profile/complete")
def complete_profile(payload: CompleteProfile, user: dict = Depends(get_current_user), db=Depends(get_db)):
    updates = payload.model_dump(by_alias=True, exclude_none=True)
    updates["profileCompleted"] = True
    apply_user_update(db, user["_id"], updates)
    logger.info("User %s completed business profile", user["_id"])
    updated = db["users"].find_one({"_id": user["_id"]})
    return ok(public_user(updated), message="Profile completed successfully")
