import logging

from fastapi import APIRouter, Depends

from auth import get_current_user
from database import get_db, now
from shaping import as_utc, author, display_rating, ok

logger = logging.getLogger("dashboard")

router = APIRouter()

LAKH = 100_000
CRORE = 10_000_000


def match_score(buyer: dict, user: dict) -> int:
    """How well a buyer fits the user's sector and target markets, 0-100."""
    score = 50
    if user.get("sector") in (buyer.get("productCategories") or []):
        score += 20
    if buyer.get("country") in (user.get("targetCountries") or []):
        score += 20
    score += round((buyer.get("rating") or 0) * 2)
    return min(score, 100)


def demand_label(growth: float) -> str:
    if growth > 5:
        return "High"
    if growth > 2:
        return "Medium"
    return "Low"


def potential_label(score: float) -> str:
    if score > 80:
        return "High"
    if score > 60:
        return "Medium"
    return "Low"


def lakhs(amount: float) -> str:
    return f"₹{amount / LAKH:g}L"


@router.get("/indian")
def indian_dashboard(user: dict = Depends(get_current_user), db=Depends(get_db)):
    sector = user.get("sector")
    targets = user.get("targetCountries") or []

    tariff_watch = list(
        db["marketIntelligence"].find({"hsCode": user.get("hsCode")}).sort("tariffRate", 1).limit(3)
    )
    buyer_matches = list(db["buyers"].find({
        "productCategories": sector,
        "country": {"$in": targets},
        "isVerified": True,
    }).limit(5))
    total_matches = db["buyers"].count_documents({"productCategories": sector, "isVerified": True})
    checklist = db["complianceChecklists"].find_one({"userId": user["_id"]}) or {}
    overall = checklist.get("completionPercentage", 0)
    schemes = list(db["reliefSchemes"].find({
        "isActive": True,
        "eligibilityCriteria.sectors": sector,
        "deadline": {"$gte": now()},
    }).limit(3))
    applied = db["userReliefApplications"].count_documents({"userId": user["_id"]})

    return ok({
        "user": author(user),
        "tariffWatch": [
            {
                "country": m.get("country"),
                "rate": f"{m.get('tariffRate')}%",
                "trend": "down" if m.get("tariffRate", 0) < 5 else "stable",
                "savings": f"₹{int((m.get('importVolume') or 0) * 0.1 / 10)}L",
            }
            for m in tariff_watch
        ],
        "buyerMatches": {
            "newMatches": len(buyer_matches),
            "totalMatches": total_matches,
            "recentBuyers": [
                {"name": b.get("name"), "country": b.get("country"),
                 "product": (b.get("productCategories") or [None])[0]}
                for b in buyer_matches[:2]
            ],
        },
        "compliance": {
            "overall": overall,
            "byCountry": [
                {"country": c, "percentage": overall if c == checklist.get("targetCountry") else 0}
                for c in targets
            ],
        },
        "reliefSchemes": {
            "eligible": len(schemes),
            "applied": applied,
            "totalBenefit": lakhs(sum(s.get("benefitAmount") or 0 for s in schemes)),
            "schemes": [
                {
                    "name": s.get("name"),
                    "benefit": lakhs(s.get("benefitAmount") or 0),
                    "deadline": as_utc(s["deadline"]).date().isoformat() if s.get("deadline") else None,
                }
                for s in schemes
            ],
        },
        "impact": {
            "revenueRecovered": f"₹{(user.get('totalRevenue') or 0) / CRORE:.1f}Cr",
            "ordersSecured": user.get("ordersSecured", 0),
            "newMarkets": user.get("marketsEntered", 0),
            "jobsRetained": user.get("jobsRetained", 0),
        },
        "marketOpportunities": [
            {
                "market": m.get("country"),
                "product": "Frozen Shrimp" if sector == "Seafood" else "Textile Products",
                "demand": demand_label(m.get("demandGrowth") or 0),
                "tariff": f"{m.get('tariffRate')}%",
                "potential": potential_label(m.get("competitivenessScore") or 0),
                "value": f"₹{int((m.get('importVolume') or 0) * (m.get('avgPricePerKg') or 0) / LAKH)}L",
            }
            for m in tariff_watch
        ],
        "recentMatches": [
            {
                "buyer": b.get("name"),
                "country": b.get("country"),
                "product": (b.get("productCategories") or [None])[0],
                "match": match_score(b, user),
                "avatar": f"/avatar{i + 1}.svg",
            }
            for i, b in enumerate(buyer_matches[:2])
        ],
    })


@router.get("/international")
def international_dashboard(user: dict = Depends(get_current_user), db=Depends(get_db)):
    suppliers = db["users"].find({
        "role": "Seller",
        "sector": user.get("sector"),
        "isActive": True,
        "_id": {"$ne": user["_id"]},
    }).limit(10)
    markets = db["marketIntelligence"].find({"country": {"$in": user.get("targetCountries") or []}})

    return ok({
        "user": author(user),
        "supplierMatches": [
            {
                "name": s.get("companyName"),
                "location": "India" if s.get("userType") == "Indian" else "International",
                "rating": display_rating(s.get("rating")),
                "products": s.get("primaryProducts") or [s.get("sector")],
                "contactPerson": s.get("contactPerson"),
            }
            for s in suppliers
        ],
        "marketInsights": [
            {
                "country": m.get("country"),
                "importVolume": f"{m.get('importVolume')} MT",
                "avgPrice": f"${m.get('avgPricePerKg')}/kg",
                "tariff": f"{m.get('tariffRate')}%",
                "competitiveness": m.get("competitivenessScore"),
                "trend": "up" if (m.get("demandGrowth") or 0) > 0 else "down",
            }
            for m in markets
        ],
    })
