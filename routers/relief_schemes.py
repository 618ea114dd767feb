import logging
from typing import List, Optional

from fastapi import APIRouter, Depends
from pymongo.errors import DuplicateKeyError

from auth import get_current_user
from database import create_document, get_db, now, oid
from errors import Conflict, NotFound
from schemas import Payload, UserReliefApplication
from shaping import ok

logger = logging.getLogger("relief_schemes")

router = APIRouter()

ELIGIBLE = "Eligible"
REVENUE_BENEFIT_SHARE = 0.1


class ApplyRequest(Payload):
    documents_uploaded: List[str] = []


def benefit_for(scheme: dict, user: dict) -> float:
    return min(scheme.get("benefitAmount", 0), (user.get("totalRevenue") or 0) * REVENUE_BENEFIT_SHARE)


def shape_scheme(scheme: dict, application: dict) -> dict:
    application = application or {}
    return {
        "id": str(scheme["_id"]),
        "name": scheme.get("name"),
        "authority": scheme.get("authority"),
        "benefitAmount": scheme.get("benefitAmount"),
        "benefitType": scheme.get("benefitType"),
        "deadline": scheme.get("deadline"),
        "eligibilityCriteria": scheme.get("eligibilityCriteria"),
        "applicationProcess": scheme.get("applicationProcess"),
        "documentsRequired": scheme.get("documentsRequired") or [],
        "applicationStatus": application.get("status", ELIGIBLE),
        "appliedAt": application.get("appliedAt"),
        "benefitCalculated": application.get("benefitCalculated"),
        "description": scheme.get("description") or f"{scheme.get('benefitType')} scheme by {scheme.get('authority')}",
    }


@router.get("/")
def list_schemes(user: dict = Depends(get_current_user), db=Depends(get_db)):
    schemes = list(db["reliefSchemes"].find({
        "isActive": True,
        "eligibilityCriteria.sectors": {"$in": [user.get("sector"), "All"]},
        "deadline": {"$gte": now()},
    }).sort("deadline", 1))
    applications = {
        str(a["schemeId"]): a
        for a in db["userReliefApplications"].find({
            "userId": user["_id"],
            "schemeId": {"$in": [s["_id"] for s in schemes]},
        })
    }
    shaped = [shape_scheme(s, applications.get(str(s["_id"]))) for s in schemes]
    summary = {
        "totalSchemes": len(shaped),
        "eligibleSchemes": sum(1 for s in shaped if s["applicationStatus"] == ELIGIBLE),
        "appliedSchemes": sum(1 for s in shaped if s["applicationStatus"] != ELIGIBLE),
        "totalPotentialBenefit": sum(s.get("benefitAmount") or 0 for s in schemes),
    }
    return ok({"schemes": shaped, "summary": summary})


@router.get("/applications")
def list_applications(user: dict = Depends(get_current_user), db=Depends(get_db)):
    rows = db["userReliefApplications"].aggregate([
        {"$match": {"userId": user["_id"]}},
        {"$lookup": {"from": "reliefSchemes", "localField": "schemeId", "foreignField": "_id", "as": "scheme"}},
        {"$unwind": "$scheme"},
        {"$sort": {"appliedAt": -1}},
    ])
    return ok([
        {
            "id": str(app["_id"]),
            "schemeId": str(app["schemeId"]),
            "schemeName": app["scheme"].get("name"),
            "authority": app["scheme"].get("authority"),
            "status": app.get("status"),
            "appliedAt": app.get("appliedAt"),
            "benefitCalculated": app.get("benefitCalculated"),
            "documentsUploaded": app.get("documentsUploaded") or [],
            "reviewNotes": app.get("reviewNotes", ""),
        }
        for app in rows
    ])


@router.post("/{scheme_id}/apply")
def apply(scheme_id: str, payload: Optional[ApplyRequest] = None, user: dict = Depends(get_current_user), db=Depends(get_db)):
    sid = oid(scheme_id, "scheme ID")
    scheme = db["reliefSchemes"].find_one({"_id": sid, "isActive": True})
    if not scheme:
        raise NotFound("Relief scheme not found")
    if db["userReliefApplications"].find_one({"userId": user["_id"], "schemeId": sid}):
        raise Conflict("You have already applied for this scheme")

    benefit = benefit_for(scheme, user)
    try:
        application = create_document(db, "userReliefApplications", UserReliefApplication(
            user_id=user["_id"],
            scheme_id=sid,
            applied_at=now(),
            benefit_calculated=benefit,
            documents_uploaded=payload.documents_uploaded if payload else [],
        ))
    except DuplicateKeyError:
        # Lost a race with a concurrent apply; the unique index decides
        raise Conflict("You have already applied for this scheme")

    logger.info("User %s applied for relief scheme %s", user["_id"], sid)
    return ok(
        {"applicationId": str(application["_id"]), "status": application["status"], "benefitCalculated": benefit},
        message="Application submitted successfully",
    )
