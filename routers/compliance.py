import logging
from typing import Optional

from fastapi import APIRouter, Depends
from pymongo import ReturnDocument

from auth import get_current_user
from database import get_db, now
from errors import NotFound
from schemas import REQUIREMENT_NAMES, ComplianceChecklist, Payload, RequirementName
from shaping import ok, serialize_doc

logger = logging.getLogger("compliance")

router = APIRouter()

CERTIFICATION_VENDORS = [
    {
        "id": "1",
        "name": "CertifyGlobal",
        "services": ["HACCP Certification", "ISO 22000", "Organic Certification"],
        "location": "Bhubaneswar, Odisha",
        "rating": 4.8,
        "price": "₹25,000 - ₹50,000",
        "turnaround": "15-20 days",
        "contact": "+91-674-123-4567",
    },
    {
        "id": "2",
        "name": "QualityCheck Labs",
        "services": ["Lab Testing", "Microbiological Analysis", "Heavy Metal Testing"],
        "location": "Chennai, Tamil Nadu",
        "rating": 4.6,
        "price": "₹5,000 - ₹15,000",
        "turnaround": "7-10 days",
        "contact": "+91-44-987-6543",
    },
    {
        "id": "3",
        "name": "TraceTrack Solutions",
        "services": ["Traceability Systems", "Cold Chain Monitoring", "Documentation"],
        "location": "Mumbai, Maharashtra",
        "rating": 4.7,
        "price": "₹15,000 - ₹30,000",
        "turnaround": "10-15 days",
        "contact": "+91-22-555-0123",
    },
]


class RequirementUpdate(Payload):
    requirement: RequirementName
    completed: bool
    file_url: Optional[str] = None


def completion_percentage(requirements: dict) -> int:
    total = len(REQUIREMENT_NAMES)
    done = sum(1 for name in REQUIREMENT_NAMES if (requirements.get(name) or {}).get("completed"))
    return round(done / total * 100)


def ensure_checklist(db, user: dict) -> dict:
    """Return the user's checklist, creating the default one on first access."""
    targets = user.get("targetCountries") or []
    default = ComplianceChecklist(
        user_id=user["_id"], target_country=targets[0] if targets else "EU"
    ).model_dump(by_alias=True, exclude={"user_id"})
    stamp = now()
    default.update({"createdAt": stamp, "updatedAt": stamp})
    result = db["complianceChecklists"].update_one(
        {"userId": user["_id"]}, {"$setOnInsert": default}, upsert=True
    )
    if result.upserted_id is not None:
        logger.info("Created default compliance checklist for user %s", user["_id"])
    return db["complianceChecklists"].find_one({"userId": user["_id"]})


@router.get("/")
def get_checklist(user: dict = Depends(get_current_user), db=Depends(get_db)):
    return ok(serialize_doc(ensure_checklist(db, user)))


@router.put("/requirement")
def update_requirement(payload: RequirementUpdate, user: dict = Depends(get_current_user), db=Depends(get_db)):
    ensure_checklist(db, user)
    prefix = f"requirements.{payload.requirement}"
    changes = {
        f"{prefix}.completed": payload.completed,
        f"{prefix}.uploadedAt": now() if payload.completed else None,
        "updatedAt": now(),
    }
    if payload.file_url:
        changes[f"{prefix}.fileUrl"] = payload.file_url

    checklist = db["complianceChecklists"].find_one_and_update(
        {"userId": user["_id"]}, {"$set": changes}, return_document=ReturnDocument.AFTER
    )
    if checklist is None:
        raise NotFound("Compliance checklist not found")

    percentage = completion_percentage(checklist.get("requirements") or {})
    db["complianceChecklists"].update_one(
        {"userId": user["_id"]}, {"$set": {"completionPercentage": percentage}}
    )
    logger.info("User %s updated compliance requirement: %s", user["_id"], payload.requirement)
    return ok({"completionPercentage": percentage}, message="Requirement updated successfully")


@router.get("/vendors")
def get_vendors(user: dict = Depends(get_current_user)):
    return ok(CERTIFICATION_VENDORS)
