import pytest

from feed_cache import FeedCache
from integrations import (
    RECOMMENDATIONS_FALLBACK,
    ChatService,
    ComtradeService,
    MarketFeedService,
    NewsService,
    get_chat_service,
    get_comtrade_service,
    get_market_feed_service,
    get_news_service,
)

RECORDS = [
    {"reporterCode": 392, "reporterISO": "JPN", "reporterDesc": "Japan", "period": 2023,
     "primaryValue": 2_000_000, "qty": 100, "cmdCode": "03", "cmdDesc": "Fish"},
]


@pytest.fixture
def services(app):
    news = NewsService(FeedCache(1800, name="news"), api_key=None)
    records = {"data": RECORDS}
    comtrade = ComtradeService(FeedCache(3600, name="comtrade"),
                               fetch_json=lambda url, params=None, headers=None, timeout=None: records)
    feeds = MarketFeedService(FeedCache(900, name="market_feeds"), api_key=None)
    chat = ChatService(api_key=None)
    app.dependency_overrides[get_news_service] = lambda: news
    app.dependency_overrides[get_comtrade_service] = lambda: comtrade
    app.dependency_overrides[get_market_feed_service] = lambda: feeds
    app.dependency_overrides[get_chat_service] = lambda: chat
    return {"news": news, "comtrade": comtrade, "records": records}


def test_news_is_public_and_reports_cache_state(client, services):
    first = client.get("/api/news/").json()
    assert first["success"] is True
    assert first["meta"]["cached"] is False
    assert first["meta"]["count"] == len(first["data"])
    second = client.get("/api/news/", params={"category": "tariff"}).json()
    assert second["meta"]["cached"] is True


def test_news_category_validation(client, services):
    assert client.get("/api/news/categories/economy").status_code == 200
    res = client.get("/api/news/categories/sports")
    assert res.status_code == 400
    assert res.json()["message"].startswith("Invalid category")


def test_news_cache_management_requires_login(client, services, headers):
    assert client.get("/api/news/cache/status").status_code == 401
    client.get("/api/news/")
    status = client.get("/api/news/cache/status", headers=headers).json()
    assert status["meta"]["cacheCount"] == 1
    assert "news_tariff" in status["data"]

    refreshed = client.post("/api/news/refresh", json={"category": "trade"}, headers=headers).json()
    assert refreshed["meta"]["category"] == "trade"

    assert client.delete("/api/news/cache", headers=headers).status_code == 200
    assert services["news"].cache.status() == {}


def test_potential_buyers_route(client, services, headers):
    res = client.get("/api/trade/potential-buyers/03", headers=headers)
    assert res.status_code == 200
    buyer = res.json()["data"]["buyers"][0]
    assert buyer["country"] == "Japan"
    assert buyer["marketPotential"] == "High"


def test_trade_routes_require_login(client, services):
    assert client.get("/api/trade/potential-buyers/03").status_code == 401


def test_bilateral_analysis_not_found(client, services, headers):
    services["records"]["data"] = []
    res = client.get("/api/trade/bilateral-analysis/392", headers=headers)
    assert res.status_code == 404
    assert res.json()["message"] == "No trade data found for this country"


def test_export_performance_uses_sector_defaults(client, services, headers):
    data = client.get("/api/trade/export-performance", headers=headers).json()["data"]
    assert data["sector"] == "seafood"
    assert data["commodities"][0]["code"] == "03"


def test_clear_cache_requires_admin_user(client, services, headers, make_user, headers_for):
    assert client.post("/api/trade/clear-cache", headers=headers).status_code == 403
    admin_user = make_user(email="ops@example.com", isAdmin=True)
    assert client.post("/api/trade/clear-cache", headers=headers_for(admin_user)).status_code == 200


def test_market_feeds(client, services, headers):
    sentiment = client.get("/api/market-feeds/sentiment", params={"date": "2024-03-01"}, headers=headers).json()
    assert sentiment["data"]["label"] == "Neutral"
    tariffs = client.get("/api/market-feeds/tariffs/Japan", headers=headers).json()
    assert tariffs["data"]["country"] == "Japan"
    assert client.get("/api/market-feeds/commodities", params={"symbols": ","}, headers=headers).status_code == 400


def test_ai_routes_fall_back_without_key(client, services, headers, db):
    db["buyers"].insert_one({"name": "Tokyo Fish", "country": "Japan", "productCategories": ["Seafood"],
                             "isVerified": True, "rating": 4.2})
    res = client.post("/api/ai/buyer-recommendations", json={}, headers=headers).json()
    assert res["data"] == {"recommendations": RECOMMENDATIONS_FALLBACK, "buyerCount": 1}

    res = client.post("/api/ai/trade-insights", json={"marketData": [{"country": "Japan"}]}, headers=headers)
    assert res.status_code == 200


def test_unknown_news_category_is_rejected_without_caching(client, services, headers):
    for i in range(5):
        res = client.get("/api/news/", params={"category": f"junk{i}"})
        assert res.status_code == 400
        assert res.json()["message"].startswith("Invalid category")
    res = client.post("/api/news/refresh", json={"category": "junk"}, headers=headers)
    assert res.status_code == 400
    assert services["news"].cache.status() == {}
