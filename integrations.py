"""
Third-party feed clients: UN Comtrade, GNews, Groq chat completions and the
RapidAPI tariff/commodity/sentiment feeds.

Every network call goes through a FeedCache (except chat completions, which
are not memoized). Missing API keys degrade to sample data rather than
failing.
"""
import json
import logging
from datetime import date, datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional

import requests

import config
from errors import UpstreamUnavailable
from feed_cache import FeedCache, FeedResult

logger = logging.getLogger("integrations")

INDIA_REPORTER_CODE = "356"
INDIA_ISO = "IND"


def http_get_json(url: str, params: Optional[dict] = None, headers: Optional[dict] = None,
                  timeout: Optional[float] = None) -> Any:
    resp = requests.get(url, params=params, headers=headers,
                        timeout=timeout or config.UPSTREAM_TIMEOUT_SECONDS)
    resp.raise_for_status()
    return resp.json()


def http_post_json(url: str, payload: dict, headers: Optional[dict] = None,
                   timeout: Optional[float] = None) -> Any:
    resp = requests.post(url, json=payload, headers=headers,
                         timeout=timeout or config.UPSTREAM_TIMEOUT_SECONDS)
    resp.raise_for_status()
    return resp.json()


def growth_rate(yearly: Dict[str, float]) -> Optional[float]:
    years = sorted(yearly)
    if len(years) < 2:
        return None
    previous = yearly[years[-2]]
    if not previous:
        return None
    return (yearly[years[-1]] - previous) / previous * 100


def trend_label(rate: Optional[float]) -> str:
    if rate is None:
        return "stable"
    if rate > 10:
        return "growing"
    if rate < -10:
        return "declining"
    return "stable"


def potential_label(value: float) -> str:
    if value > 1_000_000:
        return "High"
    if value > 100_000:
        return "Medium"
    return "Low"


def _num(value) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


# ----------------------
# UN Comtrade
# ----------------------

SECTOR_COMMODITIES = {
    "textiles": ["52", "53", "54", "55", "56", "57", "58", "59", "60", "61", "62", "63"],
    "textile": ["52", "53", "54", "55", "56", "57", "58", "59", "60", "61", "62", "63"],
    "agriculture": ["07", "08", "09", "10", "11", "12", "13", "14", "15"],
    "seafood": ["03", "16"],
    "chemicals": ["28", "29", "30", "31", "32", "33", "34", "35", "36", "37", "38"],
    "machinery": ["84", "85"],
    "automotive": ["87"],
    "leather": ["41", "42", "43", "64"],
    "gems": ["71"],
    "pharmaceuticals": ["30"],
}

SECTOR_DEFAULT_COMMODITIES = {
    "textiles": ["52", "61", "62"],
    "textile": ["52", "61", "62"],
    "agriculture": ["07", "08", "09"],
    "seafood": ["03"],
    "chemicals": ["29"],
    "machinery": ["84"],
    "automotive": ["87"],
}


class ComtradeService:
    base_url = "https://comtradeapi.un.org/data/v1/get"

    def __init__(self, cache: FeedCache, fetch_json: Callable[..., Any] = http_get_json):
        self.cache = cache
        self.fetch_json = fetch_json

    def fetch_data(self, type_code: str, freq_code: str, cl_code: str, params: Dict[str, Any]) -> List[dict]:
        query = {k: v for k, v in params.items() if v is not None}
        key = json.dumps({"typeCode": type_code, "freqCode": freq_code, "clCode": cl_code, **query},
                         sort_keys=True)
        url = f"{self.base_url}/{type_code}/{freq_code}/{cl_code}"

        def fetch():
            logger.info("Fetching Comtrade data: %s %s", url, query)
            body = self.fetch_json(url, params=query, headers={
                "User-Agent": "TradeNavigator/1.0",
                "Accept": "application/json",
            })
            return (body or {}).get("data") or []

        return self.cache.get(key, fetch).payload

    def get_import_data(self, cmd_code: str, partner_code: Optional[str] = None,
                        period: Optional[str] = None) -> List[dict]:
        return self.fetch_data("C", "A", "HS", {
            "cmdCode": cmd_code, "flowCode": "M", "includeDesc": True,
            "partnerCode": partner_code, "period": period,
        })

    def get_export_data(self, reporter_code: str, cmd_code: str, partner_code: Optional[str] = None,
                        period: Optional[str] = None) -> List[dict]:
        return self.fetch_data("C", "A", "HS", {
            "reporterCode": reporter_code, "cmdCode": cmd_code, "flowCode": "X", "includeDesc": True,
            "partnerCode": partner_code, "period": period,
        })

    def get_potential_buyers(self, cmd_code: str, top_n: int = 10) -> List[dict]:
        """Countries importing the commodity, largest first, India excluded."""
        records = self.get_import_data(cmd_code, period="2023,2022,2021")
        stats: Dict[str, dict] = {}
        for record in records:
            if str(record.get("reporterCode")) == INDIA_REPORTER_CODE or record.get("reporterISO") == INDIA_ISO:
                continue
            country = record.get("reporterDesc") or record.get("reporterISO")
            if not country:
                continue
            entry = stats.setdefault(country, {
                "country": country,
                "countryCode": record.get("reporterCode"),
                "countryISO": record.get("reporterISO"),
                "totalImportValue": 0.0,
                "totalQuantity": 0.0,
                "records": 0,
                "yearlyData": {},
            })
            value = _num(record.get("primaryValue"))
            entry["totalImportValue"] += value
            entry["totalQuantity"] += _num(record.get("qty"))
            entry["records"] += 1
            year = str(record.get("period"))
            entry["yearlyData"][year] = entry["yearlyData"].get(year, 0) + value

        buyers = []
        for entry in stats.values():
            entry["avgValue"] = entry["totalImportValue"] / entry["records"]
            entry["avgUnitPrice"] = (entry["totalImportValue"] / entry["totalQuantity"]
                                     if entry["totalQuantity"] else 0)
            entry["growthRate"] = growth_rate(entry["yearlyData"]) or 0
            entry["consistency"] = len(entry["yearlyData"])
            buyers.append(entry)
        buyers.sort(key=lambda b: b["totalImportValue"], reverse=True)
        for rank, buyer in enumerate(buyers, start=1):
            buyer["marketRank"] = rank
        return buyers[:top_n]

    def get_frequent_buyers_from_india(self, cmd_code: Optional[str] = None, top_n: int = 15) -> List[dict]:
        records = self.fetch_data("C", "A", "HS", {
            "reporterCode": INDIA_REPORTER_CODE, "flowCode": "X", "includeDesc": True,
            "period": "2023,2022,2021,2020", "cmdCode": cmd_code,
        })
        stats: Dict[str, dict] = {}
        for record in records:
            partner = record.get("partnerDesc") or record.get("partnerISO")
            if not partner or partner in ("World", "Areas, nes"):
                continue
            entry = stats.setdefault(partner, {
                "country": partner,
                "countryCode": record.get("partnerCode"),
                "countryISO": record.get("partnerISO"),
                "totalPurchaseValue": 0.0,
                "totalQuantity": 0.0,
                "records": 0,
                "yearlyData": {},
            })
            value = _num(record.get("primaryValue"))
            entry["totalPurchaseValue"] += value
            entry["totalQuantity"] += _num(record.get("qty"))
            entry["records"] += 1
            year = str(record.get("period"))
            entry["yearlyData"][year] = entry["yearlyData"].get(year, 0) + value

        total = sum(e["totalPurchaseValue"] for e in stats.values())
        buyers = []
        for entry in stats.values():
            years = len(entry["yearlyData"])
            rate = growth_rate(entry["yearlyData"])
            entry["avgUnitPrice"] = (entry["totalPurchaseValue"] / entry["totalQuantity"]
                                     if entry["totalQuantity"] else 0)
            entry["marketShare"] = entry["totalPurchaseValue"] / total * 100 if total else 0
            entry["consistency"] = years
            entry["frequency"] = entry["records"] / years if years else 0
            entry["growthRate"] = rate or 0
            entry["trend"] = trend_label(rate)
            buyers.append(entry)
        buyers.sort(key=lambda b: b["totalPurchaseValue"], reverse=True)
        return buyers[:top_n]

    def _flow_summary(self, records: List[dict]) -> dict:
        by_year: Dict[str, float] = {}
        by_commodity: Dict[str, float] = {}
        total = 0.0
        for record in records:
            value = _num(record.get("primaryValue"))
            total += value
            year = str(record.get("period"))
            commodity = record.get("cmdDesc") or record.get("cmdCode")
            by_year[year] = by_year.get(year, 0) + value
            by_commodity[commodity] = by_commodity.get(commodity, 0) + value
        top = sorted(
            ({"commodity": c, "value": v} for c, v in by_commodity.items()),
            key=lambda x: x["value"], reverse=True,
        )[:5]
        return {"total": total, "byYear": by_year, "top": top, "growth": growth_rate(by_year) or 0}

    def get_bilateral_trade_analysis(self, partner_code: str, cmd_code: Optional[str] = None) -> Optional[dict]:
        common = {
            "reporterCode": INDIA_REPORTER_CODE, "partnerCode": partner_code, "cmdCode": cmd_code,
            "period": "2023,2022,2021,2020", "includeDesc": True,
        }
        exports = self.fetch_data("C", "A", "HS", {**common, "flowCode": "X"})
        imports = self.fetch_data("C", "A", "HS", {**common, "flowCode": "M"})
        if not exports and not imports:
            return None

        out = self._flow_summary(exports)
        inc = self._flow_summary(imports)
        yearly = {}
        for year in sorted(set(out["byYear"]) | set(inc["byYear"])):
            yearly[year] = {"exports": out["byYear"].get(year, 0), "imports": inc["byYear"].get(year, 0)}
        partner = (exports or imports)[0].get("partnerDesc", "")
        return {
            "partnerCountry": partner,
            "totalExports": out["total"],
            "totalImports": inc["total"],
            "tradeBalance": out["total"] - inc["total"],
            "exportGrowth": out["growth"],
            "importGrowth": inc["growth"],
            "topExportCommodities": out["top"],
            "topImportCommodities": inc["top"],
            "yearlyTrend": yearly,
        }

    def get_india_export_performance(self, cmd_codes: Iterable[str]) -> List[dict]:
        records = self.get_export_data(INDIA_REPORTER_CODE, ",".join(cmd_codes), period="2023,2022,2021")
        stats: Dict[str, dict] = {}
        for record in records:
            code = str(record.get("cmdCode"))
            entry = stats.setdefault(code, {
                "cmdCode": code,
                "cmdDesc": record.get("cmdDesc"),
                "yearlyData": {},
                "totalValue": 0.0,
            })
            value = _num(record.get("primaryValue"))
            year = str(record.get("period"))
            entry["yearlyData"][year] = entry["yearlyData"].get(year, 0) + value
            entry["totalValue"] += value
        for entry in stats.values():
            rate = growth_rate(entry["yearlyData"])
            entry["growthRate"] = rate or 0
            entry["trend"] = trend_label(rate)
        return list(stats.values())

    def get_top_trading_partners(self, cmd_code: Optional[str] = None, top_n: int = 15) -> List[dict]:
        records = self.fetch_data("C", "A", "HS", {
            "reporterCode": INDIA_REPORTER_CODE, "flowCode": "X", "includeDesc": True,
            "period": "2023,2022", "cmdCode": cmd_code,
        })
        stats: Dict[str, dict] = {}
        for record in records:
            partner = record.get("partnerDesc") or record.get("partnerISO")
            if not partner or partner == "World":
                continue
            entry = stats.setdefault(partner, {
                "country": partner,
                "countryCode": record.get("partnerCode"),
                "countryISO": record.get("partnerISO"),
                "totalExportValue": 0.0,
                "records": 0,
            })
            entry["totalExportValue"] += _num(record.get("primaryValue"))
            entry["records"] += 1
        total = sum(e["totalExportValue"] for e in stats.values())
        partners = sorted(stats.values(), key=lambda p: p["totalExportValue"], reverse=True)[:top_n]
        for partner in partners:
            partner["marketShare"] = partner["totalExportValue"] / total * 100 if total else 0
        return partners

    def get_market_opportunities(self, sector: str, max_commodities: int = 5) -> List[dict]:
        opportunities = []
        for cmd_code in SECTOR_COMMODITIES.get(sector.lower(), [])[:max_commodities]:
            try:
                buyers = self.get_potential_buyers(cmd_code, 5)
                performance = self.get_india_export_performance([cmd_code])
            except UpstreamUnavailable as exc:
                logger.warning("Skipping commodity %s: %s", cmd_code, exc.message)
                continue
            if buyers and performance:
                opportunities.append({
                    "commodity": performance[0],
                    "topBuyers": buyers,
                    "marketSize": sum(b["totalImportValue"] for b in buyers),
                })
        opportunities.sort(key=lambda o: o["marketSize"], reverse=True)
        return opportunities

    def clear_cache(self):
        self.cache.clear()


# ----------------------
# GNews
# ----------------------

NEWS_CATEGORIES = {
    "tariff": ["tariff rates India", "customs duty India", "import tariff", "trade war tariffs",
               "WTO tariff disputes"],
    "trade": ["India exports", "international trade", "trade agreements", "export import policy",
              "trade barriers"],
    "economy": ["India economy", "global trade", "economic indicators", "GDP growth",
                "industrial production"],
}

TRADE_KEYWORDS = [
    "tariff", "trade", "export", "import", "customs", "duty", "wto", "commerce", "economic",
    "business", "industry", "manufacturing", "agreement", "policy", "international", "global", "market",
]

SAMPLE_ARTICLES = [
    {
        "title": "Government reviews customs duty structure for marine exports",
        "description": "Exporters expect relief on import tariff for processing inputs as trade talks progress.",
        "url": "https://example.com/news/customs-duty-marine-exports",
        "image": None,
        "publishedAt": "2024-01-15T08:00:00Z",
        "source": {"name": "Trade Navigator", "url": "https://example.com"},
    },
    {
        "title": "Textile exporters eye new trade agreement with the EU",
        "description": "Industry bodies say the agreement could cut tariff barriers on garments and yarn.",
        "url": "https://example.com/news/textile-eu-agreement",
        "image": None,
        "publishedAt": "2024-01-12T08:00:00Z",
        "source": {"name": "Trade Navigator", "url": "https://example.com"},
    },
]


def is_relevant_to_trade(article: dict) -> bool:
    content = f"{article.get('title', '')} {article.get('description', '')}".lower()
    return any(k in content for k in TRADE_KEYWORDS)


def categorize_article(article: dict) -> str:
    content = f"{article.get('title', '')} {article.get('description', '')}".lower()
    if "tariff" in content or "duty" in content or "customs" in content:
        return "Tariffs & Duties"
    if "export" in content or "import" in content:
        return "Import/Export"
    if "agreement" in content or "policy" in content:
        return "Trade Policy"
    if "economic" in content or "gdp" in content:
        return "Economic News"
    return "General Trade"


def relevance_score(article: dict, search_terms: List[str], now: Optional[datetime] = None) -> int:
    content = f"{article.get('title', '')} {article.get('description', '')}".lower()
    score = 0
    for keyword in ("tariff", "trade", "export", "import", "india"):
        if keyword in content:
            score += 5 if keyword == "india" else 3
    title = (article.get("title") or "").lower()
    for term in search_terms:
        if term.lower() in title:
            score += 5
    published = article.get("publishedAt")
    if published:
        try:
            ts = datetime.fromisoformat(published.replace("Z", "+00:00"))
        except ValueError:
            ts = None
        if ts is not None:
            now = now or datetime.now(timezone.utc)
            days = (now - ts).total_seconds() / 86400
            if days < 1:
                score += 3
            elif days < 7:
                score += 1
    return score


def shape_articles(raw: List[dict], search_terms: List[str], limit: int = 15) -> List[dict]:
    articles = []
    for article in raw:
        if not (article.get("title") and article.get("description") and article.get("url")):
            continue
        if not is_relevant_to_trade(article):
            continue
        source = article.get("source") or {}
        articles.append({
            "title": article["title"],
            "description": article["description"],
            "url": article["url"],
            "image": article.get("image"),
            "publishedAt": article.get("publishedAt"),
            "source": {"name": source.get("name"), "url": source.get("url")},
            "category": categorize_article(article),
            "relevanceScore": relevance_score(article, search_terms),
        })
    articles.sort(key=lambda a: a["relevanceScore"], reverse=True)
    return articles[:limit]


class NewsService:
    base_url = "https://gnews.io/api/v4"

    def __init__(self, cache: FeedCache, api_key: Optional[str] = None,
                 fetch_json: Callable[..., Any] = http_get_json):
        self.cache = cache
        self.api_key = api_key
        self.fetch_json = fetch_json

    def fetch_articles(self, category: str) -> List[dict]:
        terms = NEWS_CATEGORIES.get(category, ["tariff India trade"])
        if not self.api_key:
            logger.info("GNEWS_API_KEY not set, using sample articles")
            return shape_articles(SAMPLE_ARTICLES, terms)
        logger.info("Fetching news with query: %s", terms[0])
        body = self.fetch_json(f"{self.base_url}/search", params={
            "q": terms[0], "lang": "en", "country": "in", "max": 20, "apikey": self.api_key,
        }, timeout=10)
        if not body or "articles" not in body:
            raise ValueError("Invalid response from GNews API")
        return shape_articles(body["articles"], terms)

    def get_news(self, category: str = "tariff") -> FeedResult:
        return self.cache.get(f"news_{category}", lambda: self.fetch_articles(category))

    def refresh(self, category: str = "tariff") -> FeedResult:
        return self.cache.refresh(f"news_{category}", lambda: self.fetch_articles(category))


# ----------------------
# Groq chat completions
# ----------------------

INSIGHTS_FALLBACK = "Unable to generate insights at this time."
RECOMMENDATIONS_FALLBACK = "Unable to generate recommendations at this time."


class ChatService:
    base_url = "https://api.groq.com/openai/v1"

    def __init__(self, api_key: Optional[str] = None, model: str = "llama-3.1-8b-instant",
                 post_json: Callable[..., Any] = http_post_json):
        self.api_key = api_key
        self.model = model
        self.post_json = post_json

    def complete(self, messages: List[Dict[str, str]], temperature: float = 0.7, max_tokens: int = 1024) -> str:
        if not self.api_key:
            raise UpstreamUnavailable("GROQ_API_KEY is not configured")
        body = self.post_json(
            f"{self.base_url}/chat/completions",
            {"messages": messages, "model": self.model, "temperature": temperature, "max_tokens": max_tokens},
            headers={"Authorization": f"Bearer {self.api_key}"},
        )
        choices = (body or {}).get("choices") or []
        if not choices:
            raise UpstreamUnavailable("Empty completion from chat service")
        return (choices[0].get("message") or {}).get("content", "").strip()

    def _complete_or(self, prompt: str, fallback: str) -> str:
        try:
            return self.complete([{"role": "user", "content": prompt}]) or fallback
        except (UpstreamUnavailable, requests.RequestException, ValueError) as exc:
            logger.warning("Chat completion failed: %s", exc)
            return fallback

    def trade_insights(self, market_data: List[dict]) -> str:
        prompt = (
            "As a trade and export expert, analyze the following market data and provide key "
            "insights for Indian exporters:\n\n"
            f"Market Data:\n{json.dumps(market_data, indent=2, default=str)}\n\n"
            "Provide 3-4 key insights focusing on:\n1. Market opportunities\n2. Tariff trends\n"
            "3. Risk assessment\n4. Recommended actions\n\n"
            "Keep the response concise and actionable, under 200 words."
        )
        return self._complete_or(prompt, INSIGHTS_FALLBACK)

    def buyer_recommendations(self, profile: dict, buyers: List[dict]) -> str:
        lines = "\n".join(
            f"- {b.get('name')} ({b.get('country')}): {', '.join(b.get('productCategories') or [])}"
            for b in buyers[:5]
        )
        prompt = (
            "As a trade expert, analyze the user profile and buyer data to provide personalized "
            "recommendations:\n\nUser Profile:\n"
            f"- Company: {profile.get('companyName')}\n- Sector: {profile.get('sector')}\n"
            f"- Role: {profile.get('role')}\n\nAvailable Buyers:\n{lines}\n\n"
            "Provide 2-3 specific recommendations for which buyers to prioritize and why. "
            "Keep it under 150 words."
        )
        return self._complete_or(prompt, RECOMMENDATIONS_FALLBACK)


# ----------------------
# RapidAPI market feeds
# ----------------------

SAMPLE_TARIFFS = {
    "default": [
        {"hsCode": "0306", "product": "Crustaceans (shrimp)", "rate": 5.0},
        {"hsCode": "0303", "product": "Frozen fish", "rate": 8.0},
        {"hsCode": "6109", "product": "T-shirts, knitted", "rate": 12.0},
        {"hsCode": "5208", "product": "Woven cotton fabrics", "rate": 8.0},
    ],
}

SAMPLE_COMMODITIES = {
    "COTTON": {"price": 0.82, "unit": "USD/lb"},
    "SHRIMP": {"price": 11.4, "unit": "USD/kg"},
    "WOOL": {"price": 10.2, "unit": "USD/kg"},
}


def sentiment_label(score: float) -> str:
    if score < 25:
        return "Extreme Fear"
    if score < 45:
        return "Fear"
    if score <= 55:
        return "Neutral"
    if score <= 75:
        return "Greed"
    return "Extreme Greed"


class MarketFeedService:
    def __init__(self, cache: FeedCache, api_key: Optional[str] = None,
                 fetch_json: Callable[..., Any] = http_get_json):
        self.cache = cache
        self.api_key = api_key
        self.fetch_json = fetch_json

    def _headers(self, host: str) -> dict:
        return {"X-RapidAPI-Key": self.api_key, "X-RapidAPI-Host": host}

    def tariff_rates(self, country: str) -> FeedResult:
        def fetch():
            if not self.api_key:
                return {"country": country, "rates": SAMPLE_TARIFFS["default"], "sample": True}
            host = config.TARIFF_API_HOST
            body = self.fetch_json(f"https://{host}/tariffs", params={"country": country},
                                   headers=self._headers(host))
            return {"country": country, "rates": body.get("rates", []), "sample": False}

        return self.cache.get(f"tariffs_{country.lower()}", fetch)

    def commodity_prices(self, symbols: List[str]) -> FeedResult:
        symbols = sorted({s.strip().upper() for s in symbols if s.strip()})

        def fetch():
            if not self.api_key:
                return {"prices": {s: SAMPLE_COMMODITIES.get(s) for s in symbols}, "sample": True}
            host = config.COMMODITY_API_HOST
            body = self.fetch_json(f"https://{host}/latest", params={"symbols": ",".join(symbols)},
                                   headers=self._headers(host))
            return {"prices": body.get("rates", {}), "sample": False}

        return self.cache.get("commodities_" + ",".join(symbols), fetch)

    def fear_greed(self, on: Optional[date] = None) -> FeedResult:
        day = (on or datetime.now(timezone.utc).date()).isoformat()

        def fetch():
            if not self.api_key:
                score = 50.0
                return {"date": day, "score": score, "label": sentiment_label(score), "sample": True}
            host = config.FEAR_GREED_API_HOST
            body = self.fetch_json(f"https://{host}/v1/fgi", params={"date": day},
                                   headers=self._headers(host))
            score = float((body.get("fgi") or {}).get("now", {}).get("value", body.get("score", 50)))
            score = max(0.0, min(100.0, score))
            return {"date": day, "score": score, "label": sentiment_label(score), "sample": False}

        return self.cache.get(f"fear_greed_{day}", fetch)


# ----------------------
# Process-wide instances and dependencies
# ----------------------

comtrade_service = ComtradeService(FeedCache(config.TRADE_CACHE_TTL_SECONDS, name="comtrade"))
news_service = NewsService(FeedCache(config.NEWS_CACHE_TTL_SECONDS, name="news"), api_key=config.GNEWS_API_KEY)
chat_service = ChatService(api_key=config.GROQ_API_KEY, model=config.GROQ_MODEL)
market_feed_service = MarketFeedService(
    FeedCache(config.MARKET_FEED_CACHE_TTL_SECONDS, name="market_feeds"), api_key=config.RAPIDAPI_KEY
)


def get_comtrade_service() -> ComtradeService:
    return comtrade_service


def get_news_service() -> NewsService:
    return news_service


def get_chat_service() -> ChatService:
    return chat_service


def get_market_feed_service() -> MarketFeedService:
    return market_feed_service
