import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, Query
from pydantic import Field

from auth import get_current_user
from counters import increment_user_metrics
from database import create_document, get_db, now, oid
from querying import Pagination, exact_filter, pagination_params
from schemas import ImpactEventType, ImpactLog, Payload
from shaping import as_utc, format_currency, ok, serialize_doc

logger = logging.getLogger("impact")

router = APIRouter()

SUCCESS_STORIES = [
    {
        "id": "1",
        "title": "First Export to Japan",
        "description": "Successfully exported 500kg of frozen shrimp to Tokyo Fish Market Co.",
        "revenue": 120000,
        "date": datetime(2024, 1, 15, tzinfo=timezone.utc),
        "country": "Japan",
        "image": "/seafood-export-success.jpg",
    },
    {
        "id": "2",
        "title": "EU Market Entry",
        "description": "Secured HACCP certification and entered European market.",
        "revenue": 250000,
        "date": datetime(2024, 2, 20, tzinfo=timezone.utc),
        "country": "Netherlands",
        "image": "/textile-export-japan.jpg",
    },
]


class ImpactEventCreate(Payload):
    event_type: ImpactEventType
    buyer_id: Optional[str] = None
    revenue_amount: Optional[float] = Field(None, ge=0)
    quantity_kg: Optional[float] = Field(None, ge=0)
    price_per_kg: Optional[float] = Field(None, ge=0)
    target_country: str = Field(min_length=1)
    product_category: str = Field(min_length=1)
    event_date: Optional[datetime] = None


def describe(event: dict) -> str:
    kind = event.get("eventType")
    country = event.get("targetCountry")
    product = event.get("productCategory")
    if kind == "pitch_sent":
        return f"Sent pitch to buyer in {country}"
    if kind == "po_received":
        return f"Received purchase order for {product} from {country}"
    if kind == "shipment_completed":
        return f"Completed shipment of {event.get('quantityKg')}kg {product} to {country}"
    if kind == "market_entered":
        return f"Successfully entered {country} market"
    if kind == "deal_closed":
        return f"Closed a deal with a buyer in {country}"
    return f"{kind} event in {country}"


def month_windows(today: datetime, count: int = 12):
    """(label, start, end) for the last `count` calendar months, oldest first."""
    windows = []
    for back in range(count - 1, -1, -1):
        index = today.year * 12 + today.month - 1 - back
        year, month = divmod(index, 12)
        start = datetime(year, month + 1, 1, tzinfo=timezone.utc)
        ny, nm = divmod(index + 1, 12)
        end = datetime(ny, nm + 1, 1, tzinfo=timezone.utc)
        windows.append((start.strftime("%b"), start, end))
    return windows


def impact_summary(events: list, user: dict, today: Optional[datetime] = None) -> dict:
    """Dashboard aggregates over a user's events, newest first."""
    today = today or now()
    earning = [e for e in events if e.get("revenueAmount")]

    monthly = []
    for label, start, end in month_windows(today):
        revenue = sum(e["revenueAmount"] for e in earning if start <= as_utc(e["eventDate"]) < end)
        monthly.append({"month": label, "revenue": revenue})

    by_market = {}
    for e in earning:
        by_market[e.get("targetCountry")] = by_market.get(e.get("targetCountry"), 0) + e["revenueAmount"]
    top_markets = sorted(by_market.items(), key=lambda kv: kv[1], reverse=True)[:5]

    return {
        "metrics": {
            "totalRevenue": sum(e["revenueAmount"] for e in earning),
            "ordersSecured": sum(1 for e in events if e.get("eventType") == "po_received"),
            "shipmentsCompleted": sum(1 for e in events if e.get("eventType") == "shipment_completed"),
            "marketsEntered": len({e.get("targetCountry") for e in events}),
            "jobsRetained": user.get("jobsRetained", 0),
        },
        "charts": {
            "monthlyRevenue": monthly,
            "topMarkets": [{"country": c, "revenue": r} for c, r in top_markets],
        },
        "recentAchievements": [
            {
                "id": str(e["_id"]),
                "type": e.get("eventType"),
                "description": describe(e),
                "date": e.get("eventDate"),
                "impact": f"₹{format_currency(e['revenueAmount'])}" if e.get("revenueAmount") else None,
            }
            for e in events[:10]
        ],
        "successStories": SUCCESS_STORIES,
    }


@router.get("/dashboard")
def dashboard(user: dict = Depends(get_current_user), db=Depends(get_db)):
    events = list(db["impactLogs"].find({"userId": user["_id"]}).sort("eventDate", -1))
    return ok(impact_summary(events, user))


@router.post("/events", status_code=201)
def log_event(payload: ImpactEventCreate, user: dict = Depends(get_current_user), db=Depends(get_db)):
    event = create_document(db, "impactLogs", ImpactLog(
        user_id=user["_id"],
        event_type=payload.event_type,
        buyer_id=oid(payload.buyer_id, "buyer ID") if payload.buyer_id else None,
        revenue_amount=payload.revenue_amount,
        quantity_kg=payload.quantity_kg,
        price_per_kg=payload.price_per_kg,
        target_country=payload.target_country,
        product_category=payload.product_category,
        event_date=payload.event_date or now(),
    ))
    if payload.revenue_amount and payload.event_type == "po_received":
        increment_user_metrics(db, user["_id"], revenue=payload.revenue_amount, orders=1)

    logger.info("User %s logged impact event: %s", user["_id"], payload.event_type)
    return ok(serialize_doc(event), message="Impact event logged successfully")


@router.get("/events")
def list_events(
    event_type: Optional[str] = Query(None, alias="eventType"),
    start_date: Optional[datetime] = Query(None, alias="startDate"),
    end_date: Optional[datetime] = Query(None, alias="endDate"),
    page: Pagination = Depends(pagination_params),
    user: dict = Depends(get_current_user),
    db=Depends(get_db),
):
    match = {"userId": user["_id"]}
    kind = exact_filter(event_type)
    if kind:
        match["eventType"] = kind
    if start_date or end_date:
        match["eventDate"] = {}
        if start_date:
            match["eventDate"]["$gte"] = as_utc(start_date)
        if end_date:
            match["eventDate"]["$lte"] = as_utc(end_date)

    total = db["impactLogs"].count_documents(match)
    events = db["impactLogs"].find(match).sort("eventDate", -1).skip(page.skip).limit(page.limit)
    return ok(
        {"events": [
            {
                "id": str(e["_id"]),
                "eventType": e.get("eventType"),
                "description": describe(e),
                "revenueAmount": e.get("revenueAmount"),
                "quantityKg": e.get("quantityKg"),
                "pricePerKg": e.get("pricePerKg"),
                "targetCountry": e.get("targetCountry"),
                "productCategory": e.get("productCategory"),
                "eventDate": e.get("eventDate"),
                "createdAt": e.get("createdAt"),
            }
            for e in events
        ]},
        pagination=page.meta(total),
    )
