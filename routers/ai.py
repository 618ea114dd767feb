import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends

from auth import get_current_user
from database import get_db
from integrations import ChatService, get_chat_service
from schemas import Payload
from shaping import ok

logger = logging.getLogger("ai")

router = APIRouter()

MAX_BUYERS = 5


class InsightsRequest(Payload):
    market_data: List[Dict[str, Any]] = []


class RecommendationsRequest(Payload):
    buyers: Optional[List[Dict[str, Any]]] = None


@router.post("/trade-insights")
def trade_insights(payload: InsightsRequest, user: dict = Depends(get_current_user),
                   chat: ChatService = Depends(get_chat_service)):
    insights = chat.trade_insights(payload.market_data)
    logger.info("Generated trade insights for user %s", user["_id"])
    return ok({"insights": insights})


@router.post("/buyer-recommendations")
def buyer_recommendations(payload: RecommendationsRequest, user: dict = Depends(get_current_user),
                          db=Depends(get_db), chat: ChatService = Depends(get_chat_service)):
    buyers = payload.buyers
    if buyers is None:
        buyers = list(db["buyers"].find(
            {"productCategories": user.get("sector"), "isVerified": True},
            {"name": 1, "country": 1, "productCategories": 1},
        ).sort("rating", -1).limit(MAX_BUYERS))
    recommendations = chat.buyer_recommendations(user, buyers)
    logger.info("Generated buyer recommendations for user %s", user["_id"])
    return ok({"recommendations": recommendations, "buyerCount": len(buyers)})
