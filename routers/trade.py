import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query

from auth import get_current_user, require_admin_user
from errors import NotFound
from integrations import (
    SECTOR_DEFAULT_COMMODITIES,
    ComtradeService,
    get_comtrade_service,
    potential_label,
)
from shaping import ok

logger = logging.getLogger("trade")

router = APIRouter()

DEFAULT_SECTOR = "textiles"


def user_sector(user: dict) -> str:
    return (user.get("sector") or DEFAULT_SECTOR).lower()


def reliability(consistency: int) -> str:
    if consistency >= 3:
        return "High"
    if consistency >= 2:
        return "Medium"
    return "Low"


@router.get("/potential-buyers/{cmd_code}")
def potential_buyers(
    cmd_code: str,
    limit: int = Query(10, ge=1, le=100),
    user: dict = Depends(get_current_user),
    comtrade: ComtradeService = Depends(get_comtrade_service),
):
    buyers = comtrade.get_potential_buyers(cmd_code, limit)
    return ok({
        "commodity": cmd_code,
        "buyers": [
            {
                "country": b["country"],
                "countryCode": b["countryCode"],
                "countryISO": b["countryISO"],
                "importValue": b["totalImportValue"],
                "marketPotential": potential_label(b["totalImportValue"]),
                "records": b["records"],
                "growthRate": b["growthRate"],
                "consistency": b["consistency"],
                "marketRank": b["marketRank"],
                "avgUnitPrice": b["avgUnitPrice"],
                "yearlyData": b["yearlyData"],
            }
            for b in buyers
        ],
    })


@router.get("/frequent-buyers-from-india")
def frequent_buyers_from_india(
    cmd_code: Optional[str] = Query(None, alias="cmdCode"),
    limit: int = Query(15, ge=1, le=100),
    user: dict = Depends(get_current_user),
    comtrade: ComtradeService = Depends(get_comtrade_service),
):
    buyers = comtrade.get_frequent_buyers_from_india(cmd_code, limit)
    return ok({
        "commodity": cmd_code or "all",
        "buyers": [
            {
                "country": b["country"],
                "countryCode": b["countryCode"],
                "countryISO": b["countryISO"],
                "purchaseValue": b["totalPurchaseValue"],
                "marketShare": b["marketShare"],
                "frequency": b["frequency"],
                "records": b["records"],
                "growthRate": b["growthRate"],
                "trend": b["trend"],
                "consistency": b["consistency"],
                "avgUnitPrice": b["avgUnitPrice"],
                "yearlyData": b["yearlyData"],
                "reliability": reliability(b["consistency"]),
            }
            for b in buyers
        ],
    })


@router.get("/bilateral-analysis/{country_code}")
def bilateral_analysis(
    country_code: str,
    cmd_code: Optional[str] = Query(None, alias="cmdCode"),
    user: dict = Depends(get_current_user),
    comtrade: ComtradeService = Depends(get_comtrade_service),
):
    analysis = comtrade.get_bilateral_trade_analysis(country_code, cmd_code)
    if analysis is None:
        raise NotFound("No trade data found for this country")
    return ok(analysis)


@router.get("/export-performance")
def export_performance(
    cmd_codes: Optional[str] = Query(None, alias="cmdCodes"),
    user: dict = Depends(get_current_user),
    comtrade: ComtradeService = Depends(get_comtrade_service),
):
    sector = user_sector(user)
    if cmd_codes:
        codes = [c.strip() for c in cmd_codes.split(",") if c.strip()]
    else:
        codes = SECTOR_DEFAULT_COMMODITIES.get(sector, SECTOR_DEFAULT_COMMODITIES[DEFAULT_SECTOR])
    performance = comtrade.get_india_export_performance(codes)
    return ok({
        "sector": sector,
        "commodities": [
            {
                "code": c["cmdCode"],
                "description": c["cmdDesc"],
                "totalValue": c["totalValue"],
                "trend": c["trend"],
                "growthRate": c["growthRate"],
                "yearlyData": c["yearlyData"],
            }
            for c in performance
        ],
    })


@router.get("/trading-partners")
def trading_partners(
    cmd_code: Optional[str] = Query(None, alias="cmdCode"),
    limit: int = Query(10, ge=1, le=100),
    user: dict = Depends(get_current_user),
    comtrade: ComtradeService = Depends(get_comtrade_service),
):
    partners = comtrade.get_top_trading_partners(cmd_code, limit)
    return ok({
        "partners": [
            {
                "country": p["country"],
                "countryCode": p["countryCode"],
                "exportValue": p["totalExportValue"],
                "marketShare": round(p["marketShare"], 2),
                "records": p["records"],
            }
            for p in partners
        ],
    })


@router.get("/market-opportunities")
def market_opportunities(
    sector: Optional[str] = None,
    user: dict = Depends(get_current_user),
    comtrade: ComtradeService = Depends(get_comtrade_service),
):
    target = (sector or user_sector(user)).lower()
    opportunities = comtrade.get_market_opportunities(target)
    return ok({
        "sector": target,
        "opportunities": [
            {
                "commodity": {
                    "code": o["commodity"]["cmdCode"],
                    "description": o["commodity"]["cmdDesc"],
                    "trend": o["commodity"]["trend"],
                    "growthRate": o["commodity"]["growthRate"],
                },
                "marketSize": o["marketSize"],
                "topBuyers": [
                    {
                        "country": b["country"],
                        "importValue": b["totalImportValue"],
                        "potential": potential_label(b["totalImportValue"]),
                    }
                    for b in o["topBuyers"][:5]
                ],
            }
            for o in opportunities
        ],
    })


@router.get("/commodity-trends/{cmd_code}")
def commodity_trends(
    cmd_code: str,
    user: dict = Depends(get_current_user),
    comtrade: ComtradeService = Depends(get_comtrade_service),
):
    exports = comtrade.get_india_export_performance([cmd_code])
    if not exports:
        raise NotFound("No data found for this commodity")
    buyers = comtrade.get_potential_buyers(cmd_code, 15)

    commodity = exports[0]
    market = sum(b["totalImportValue"] for b in buyers)
    return ok({
        "commodity": {
            "code": commodity["cmdCode"],
            "description": commodity["cmdDesc"],
            "totalValue": commodity["totalValue"],
            "trend": commodity["trend"],
            "growthRate": commodity["growthRate"],
            "yearlyData": commodity["yearlyData"],
        },
        "marketAnalysis": {
            "totalPotentialMarket": market,
            "numberOfMarkets": len(buyers),
            "averageMarketSize": market / len(buyers) if buyers else 0,
        },
        "topMarkets": [
            {
                "country": b["country"],
                "countryCode": b["countryCode"],
                "importValue": b["totalImportValue"],
                "marketPotential": potential_label(b["totalImportValue"]),
                "competitiveness": (min(commodity["totalValue"] / b["totalImportValue"] * 100, 100)
                                    if commodity["totalValue"] > 0 and b["totalImportValue"] else 0),
            }
            for b in buyers[:10]
        ],
    })


@router.post("/clear-cache")
def clear_cache(user: dict = Depends(get_current_user), comtrade: ComtradeService = Depends(get_comtrade_service)):
    require_admin_user(user)
    comtrade.clear_cache()
    logger.info("Comtrade cache cleared by user %s", user["_id"])
    return ok(message="Cache cleared successfully")
