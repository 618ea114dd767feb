import logging
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query

from auth import get_current_user
from errors import ValidationError
from feed_cache import FeedResult
from integrations import MarketFeedService, get_market_feed_service
from shaping import ok

logger = logging.getLogger("market_feeds")

router = APIRouter()

DEFAULT_SYMBOLS = "COTTON,SHRIMP"


def feed_response(result: FeedResult) -> dict:
    return ok(result.payload, meta={
        "cached": result.cached,
        "stale": result.stale,
        "lastUpdated": result.last_updated,
    })


@router.get("/tariffs/{country}")
def tariffs(country: str, user: dict = Depends(get_current_user),
            feeds: MarketFeedService = Depends(get_market_feed_service)):
    return feed_response(feeds.tariff_rates(country.strip()))


@router.get("/commodities")
def commodities(symbols: str = DEFAULT_SYMBOLS, user: dict = Depends(get_current_user),
                feeds: MarketFeedService = Depends(get_market_feed_service)):
    wanted = [s for s in symbols.split(",") if s.strip()]
    if not wanted:
        raise ValidationError("At least one commodity symbol is required")
    return feed_response(feeds.commodity_prices(wanted))


@router.get("/sentiment")
def sentiment(on: Optional[date] = Query(None, alias="date"), user: dict = Depends(get_current_user),
              feeds: MarketFeedService = Depends(get_market_feed_service)):
    return feed_response(feeds.fear_greed(on))
