import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from pydantic import Field

from auth import get_current_user
from counters import increment_user_metrics
from database import create_document, get_db, now, oid
from errors import NotFound
from querying import Pagination, build_sort, combine, exact_filter, pagination_params, text_search
from schemas import DEAL_CLOSED, ContactStatus, ImpactLog, Payload
from shaping import display_rating, ok

logger = logging.getLogger("buyers")

router = APIRouter()

BUYER_SORT_FIELDS = ("name", "country", "importVolume", "rating")


class ContactUpdate(Payload):
    status: ContactStatus
    notes: Optional[str] = Field(None, max_length=2000)
    deal_value: Optional[float] = Field(None, ge=0)


def shape_buyer(buyer: dict, interaction: Optional[dict], detail: bool = False) -> dict:
    interaction = interaction or {}
    categories = buyer.get("productCategories") or []
    shaped = {
        "id": str(buyer["_id"]),
        "name": buyer.get("name"),
        "country": buyer.get("country"),
        "city": buyer.get("city") or buyer.get("country"),
        "productCategories": categories,
        "contactEmail": buyer.get("contactEmail"),
        "contactPhone": buyer.get("contactPhone"),
        "certifications": buyer.get("certificationsRequired") or [],
        "rating": display_rating(buyer.get("rating")),
        "contactStatus": interaction.get("status", "Not Contacted"),
        "lastContactAt": interaction.get("lastContactAt"),
        "dealValue": interaction.get("dealValue"),
        "notes": interaction.get("notes"),
    }
    if detail:
        shaped.update({
            "importVolume": buyer.get("importVolume"),
            "description": buyer.get("description"),
            "requirements": buyer.get("requirements"),
            "preferredIncoterms": buyer.get("preferredIncoterms") or [],
            "paymentTerms": buyer.get("paymentTerms"),
        })
    else:
        volume = buyer.get("importVolume")
        shaped.update({
            "importVolume": f"{volume:g} MT/year" if volume else "Not specified",
            "description": buyer.get("description") or (
                f"Leading importer in {buyer.get('country')} specializing in {', '.join(categories)}."
            ),
            "requirements": buyer.get("requirements") or "Standard quality certifications required.",
        })
    return shaped


@router.get("/")
def list_buyers(
    country: Optional[str] = None,
    product_category: Optional[str] = Query(None, alias="productCategory"),
    certification: Optional[str] = None,
    search: Optional[str] = None,
    sort_by: Optional[str] = Query(None, alias="sortBy"),
    sort_order: Optional[str] = Query(None, alias="sortOrder"),
    page: Pagination = Depends(pagination_params),
    user: dict = Depends(get_current_user),
    db=Depends(get_db),
):
    sort = build_sort(sort_by, sort_order, BUYER_SORT_FIELDS, default="name", default_order="asc")
    country, product_category, certification = (
        exact_filter(country), exact_filter(product_category), exact_filter(certification)
    )
    match = combine(
        {"isVerified": True},
        {"country": country} if country else None,
        {"productCategories": product_category} if product_category else None,
        {"certificationsRequired": certification} if certification else None,
        text_search(search, ("name", "country", "productCategories")),
    )

    total = db["buyers"].count_documents(match)
    buyers = list(db["buyers"].find(match).sort(sort).skip(page.skip).limit(page.limit))
    interactions = {
        str(i["buyerId"]): i
        for i in db["userBuyerInteractions"].find({
            "userId": user["_id"],
            "buyerId": {"$in": [b["_id"] for b in buyers]},
        })
    }
    return ok(
        {"buyers": [shape_buyer(b, interactions.get(str(b["_id"]))) for b in buyers]},
        pagination=page.meta(total),
    )


@router.get("/filters/options")
def filter_options(user: dict = Depends(get_current_user), db=Depends(get_db)):
    verified = {"isVerified": True}
    return ok({
        "countries": sorted(db["buyers"].distinct("country", verified)),
        "productCategories": sorted(db["buyers"].distinct("productCategories", verified)),
        "certifications": sorted(db["buyers"].distinct("certificationsRequired", verified)),
    })


@router.get("/{buyer_id}")
def get_buyer(buyer_id: str, user: dict = Depends(get_current_user), db=Depends(get_db)):
    bid = oid(buyer_id, "buyer ID")
    buyer = db["buyers"].find_one({"_id": bid})
    if not buyer:
        raise NotFound("Buyer not found")
    interaction = db["userBuyerInteractions"].find_one({"userId": user["_id"], "buyerId": bid})
    return ok(shape_buyer(buyer, interaction, detail=True))


@router.post("/{buyer_id}/contact")
def update_contact(buyer_id: str, payload: ContactUpdate, user: dict = Depends(get_current_user),
                   db=Depends(get_db)):
    bid = oid(buyer_id, "buyer ID")
    buyer = db["buyers"].find_one({"_id": bid})
    if not buyer:
        raise NotFound("Buyer not found")

    stamp = now()
    changes = {
        "status": payload.status,
        "notes": payload.notes or "",
        "lastContactAt": stamp,
        "updatedAt": stamp,
    }
    deal_closed = payload.status == "Deal Closed" and bool(payload.deal_value)
    if deal_closed:
        changes["dealValue"] = payload.deal_value

    db["userBuyerInteractions"].update_one(
        {"userId": user["_id"], "buyerId": bid},
        {"$set": changes, "$setOnInsert": {"createdAt": stamp}},
        upsert=True,
    )

    # Not atomic across the three collections; see counters.py
    if deal_closed:
        create_document(db, "impactLogs", ImpactLog(
            user_id=user["_id"],
            buyer_id=bid,
            event_type=DEAL_CLOSED,
            revenue_amount=payload.deal_value,
            target_country=buyer.get("country") or "",
            product_category=user.get("sector"),
            event_date=stamp,
        ))
        increment_user_metrics(db, user["_id"], revenue=payload.deal_value, orders=1)

    logger.info("User %s updated contact status with buyer %s to %s", user["_id"], bid, payload.status)
    return ok(
        {"status": payload.status, "lastContactAt": stamp},
        message="Contact status updated successfully",
    )
