import os

# Database
MONGODB_URI = os.getenv("MONGODB_URI") or os.getenv("DATABASE_URL")
DATABASE_NAME = os.getenv("DATABASE_NAME", "tradenavigator")

# Security
JWT_SECRET = os.getenv("JWT_SECRET", "dev_secret_change_me")
JWT_ALG = "HS256"
JWT_EXPIRE_MINUTES = int(os.getenv("JWT_EXPIRE_MINUTES", 24 * 60))

# Admin credentials are a fixed pair, not a user record
ADMIN_ID = os.getenv("ADMIN_ID")
ADMIN_PASSWORD = os.getenv("ADMIN_PASSWORD")

# HTTP
FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:3000")
RATE_LIMIT_WINDOW_SECONDS = int(os.getenv("RATE_LIMIT_WINDOW_SECONDS", 900))
RATE_LIMIT_MAX_REQUESTS = int(os.getenv("RATE_LIMIT_MAX_REQUESTS", 100))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# Uploads
UPLOAD_DIR = os.getenv("UPLOAD_DIR", "uploads")
MAX_FILE_SIZE = int(os.getenv("MAX_FILE_SIZE", 10 * 1024 * 1024))
TRADE_DATA_MAX_FILE_SIZE = int(os.getenv("TRADE_DATA_MAX_FILE_SIZE", 50 * 1024 * 1024))
ALLOWED_FILE_TYPES = [
    t.strip()
    for t in os.getenv(
        "ALLOWED_FILE_TYPES",
        "image/jpeg,image/png,image/jpg,application/pdf,application/msword,"
        "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    ).split(",")
    if t.strip()
]

# Third-party feeds (all optional)
GROQ_API_KEY = os.getenv("GROQ_API_KEY")
GROQ_MODEL = os.getenv("GROQ_MODEL", "llama-3.1-8b-instant")
GNEWS_API_KEY = os.getenv("GNEWS_API_KEY")
RAPIDAPI_KEY = os.getenv("RAPIDAPI_KEY")
TARIFF_API_HOST = os.getenv("TARIFF_API_HOST", "tariff-rates.p.rapidapi.com")
COMMODITY_API_HOST = os.getenv("COMMODITY_API_HOST", "commodity-rates.p.rapidapi.com")
FEAR_GREED_API_HOST = os.getenv("FEAR_GREED_API_HOST", "fear-and-greed-index.p.rapidapi.com")

NEWS_CACHE_TTL_SECONDS = int(os.getenv("NEWS_CACHE_TTL_SECONDS", 30 * 60))
TRADE_CACHE_TTL_SECONDS = int(os.getenv("TRADE_CACHE_TTL_SECONDS", 60 * 60))
MARKET_FEED_CACHE_TTL_SECONDS = int(os.getenv("MARKET_FEED_CACHE_TTL_SECONDS", 15 * 60))
UPSTREAM_TIMEOUT_SECONDS = float(os.getenv("UPSTREAM_TIMEOUT_SECONDS", 30))
