import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, Query

from auth import get_current_user
from database import get_db, now
from errors import NotFound
from querying import Pagination, pagination_params
from shaping import ok, serialize_doc

logger = logging.getLogger("market_intelligence")

router = APIRouter()

HIGH_GROWTH_THRESHOLD = 5


def month_labels(count: int, end: datetime, fmt: str) -> list:
    labels = []
    for back in range(count - 1, -1, -1):
        index = end.year * 12 + end.month - 1 - back
        year, month = divmod(index, 12)
        labels.append(datetime(year, month + 1, 1, tzinfo=timezone.utc).strftime(fmt))
    return labels


def back_projected(current: float, annual_growth_pct: float, months: int) -> list:
    """Series ending at `current`, compounding annual_growth_pct backwards month by month."""
    factor = 1 + (annual_growth_pct or 0) / 100
    if factor <= 0:
        factor = 1
    return [round(current / factor ** ((months - 1 - i) / 12), 2) for i in range(months)]


@router.get("/")
def list_market_data(
    hs_code: Optional[str] = Query(None, alias="hsCode"),
    countries: Optional[str] = None,
    page: Pagination = Depends(pagination_params),
    user: dict = Depends(get_current_user),
    db=Depends(get_db),
):
    match = {}
    if hs_code:
        match["hsCode"] = hs_code
    if countries:
        match["country"] = {"$in": [c.strip() for c in countries.split(",") if c.strip()]}

    total = db["marketIntelligence"].count_documents(match)
    rows = list(
        db["marketIntelligence"].find(match)
        .sort([("competitivenessScore", -1), ("country", 1)])
        .skip(page.skip).limit(page.limit)
    )

    months = month_labels(12, now(), "%b")
    best = max(rows, key=lambda r: r.get("competitivenessScore") or 0) if rows else None
    avg_tariff = sum(r.get("tariffRate") or 0 for r in rows) / len(rows) if rows else 0
    return ok(
        {
            "tariffs": [
                {
                    "country": r.get("country"),
                    "tariffRate": f"{r.get('tariffRate')}%",
                    "importVolume": f"{r.get('importVolume')} MT",
                    "avgPrice": f"${r.get('avgPricePerKg')}/kg",
                    "competitiveness": r.get("competitivenessScore"),
                    "demandGrowth": f"{r.get('demandGrowth')}%",
                    "lastUpdated": r.get("lastUpdated"),
                }
                for r in rows
            ],
            "pricing": [
                {
                    "country": r.get("country"),
                    "data": [
                        {"month": m, "price": p}
                        for m, p in zip(months, back_projected(r.get("avgPricePerKg") or 0,
                                                               r.get("demandGrowth"), 12))
                    ],
                }
                for r in rows
            ],
            "summary": {
                "totalMarkets": total,
                "avgTariff": f"{avg_tariff:.1f}",
                "bestMarket": best.get("country") if best else "N/A",
                "totalImportVolume": sum(r.get("importVolume") or 0 for r in rows),
                "highGrowthMarkets": sum(1 for r in rows if (r.get("demandGrowth") or 0) > HIGH_GROWTH_THRESHOLD),
            },
        },
        pagination=page.meta(total),
    )


@router.get("/countries")
def list_countries(user: dict = Depends(get_current_user), db=Depends(get_db)):
    return ok(sorted(db["marketIntelligence"].distinct("country")))


@router.get("/hs-codes")
def list_hs_codes(user: dict = Depends(get_current_user), db=Depends(get_db)):
    return ok(sorted(db["marketIntelligence"].distinct("hsCode")))


@router.get("/trends/{country}")
def country_trends(country: str, user: dict = Depends(get_current_user), db=Depends(get_db)):
    current = db["marketIntelligence"].find_one({"country": country}, sort=[("competitivenessScore", -1)])
    if not current:
        raise NotFound("No data found for this country")

    months = month_labels(24, now(), "%b %Y")
    growth = current.get("demandGrowth")
    tariff = current.get("tariffRate") or 0
    volumes = back_projected(current.get("importVolume") or 0, growth, 24)
    prices = back_projected(current.get("avgPricePerKg") or 0, growth, 24)
    return ok({
        "country": country,
        "currentData": serialize_doc(current),
        "trends": {
            "tariffHistory": [{"month": m, "rate": tariff} for m in months],
            "volumeHistory": [{"month": m, "volume": v} for m, v in zip(months, volumes)],
            "priceHistory": [{"month": m, "price": p} for m, p in zip(months, prices)],
        },
    })
