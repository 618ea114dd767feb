import logging
from typing import Optional

from fastapi import APIRouter, Body, Depends

from auth import get_current_user
from database import now
from errors import ValidationError
from feed_cache import FeedResult
from integrations import NEWS_CATEGORIES, NewsService, get_news_service
from shaping import ok

logger = logging.getLogger("news")

router = APIRouter()


def require_category(category: str):
    if category not in NEWS_CATEGORIES:
        raise ValidationError(f"Invalid category. Valid categories are: {', '.join(NEWS_CATEGORIES)}")


def news_response(result: FeedResult, category: str, message: Optional[str] = None) -> dict:
    return ok(
        result.payload,
        message=message,
        meta={
            "cached": result.cached,
            "stale": result.stale,
            "lastUpdated": result.last_updated,
            "category": category,
            "count": len(result.payload),
        },
    )


@router.get("/")
def get_news(category: str = "tariff", news: NewsService = Depends(get_news_service)):
    require_category(category)
    return news_response(news.get_news(category), category)


@router.get("/categories/{category}")
def get_news_by_category(category: str, news: NewsService = Depends(get_news_service)):
    require_category(category)
    return news_response(news.get_news(category), category)


@router.post("/refresh")
def refresh_news(
    category: str = Body("tariff", embed=True),
    user: dict = Depends(get_current_user),
    news: NewsService = Depends(get_news_service),
):
    require_category(category)
    result = news.refresh(category)
    logger.info("News cache refreshed by user %s for category: %s", user["_id"], category)
    return news_response(result, category, message="News cache refreshed successfully")


@router.get("/cache/status")
def cache_status(user: dict = Depends(get_current_user), news: NewsService = Depends(get_news_service)):
    status = news.cache.status()
    return ok(status, meta={"cacheCount": len(status), "timestamp": now()})


@router.delete("/cache")
def clear_cache(user: dict = Depends(get_current_user), news: NewsService = Depends(get_news_service)):
    news.cache.clear()
    logger.info("All news cache cleared by user %s", user["_id"])
    return ok(message="All news cache cleared successfully")
