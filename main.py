import logging
import os
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from pymongo.errors import DuplicateKeyError, PyMongoError
from starlette.exceptions import HTTPException as StarletteHTTPException

import config
import database
from errors import Conflict
from ratelimit import FixedWindowRateLimiter, RateLimitMiddleware
from routers import (
    accounts,
    admin_auth,
    ai,
    buyers,
    compliance,
    dashboard,
    forum,
    impact,
    market_feeds,
    market_intelligence,
    news,
    relief_schemes,
    trade,
    trade_data,
    uploads,
    users,
)

logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("main")


@asynccontextmanager
async def lifespan(app: FastAPI):
    if config.MONGODB_URI:
        database.ensure_indexes(database.connect())
    else:
        logger.warning("MONGODB_URI not set; database routes will fail until it is configured")
    yield
    database.close()


# App and middleware
app = FastAPI(title="Trade Navigator API", version="1.0.0", lifespan=lifespan)
app.state.rate_limiter = FixedWindowRateLimiter(config.RATE_LIMIT_MAX_REQUESTS, config.RATE_LIMIT_WINDOW_SECONDS)

app.add_middleware(RateLimitMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=[config.FRONTEND_URL],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    started = time.perf_counter()
    response = await call_next(request)
    logger.info(
        "%s %s -> %d (%.1f ms)",
        request.method, request.url.path, response.status_code, (time.perf_counter() - started) * 1000,
    )
    return response


# Error envelope

def failure(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "message": message})


def first_validation_message(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid request"
    err = errors[0]
    field = ".".join(str(p) for p in err.get("loc", ()) if p not in ("body", "query", "path", "header"))
    msg = err.get("msg", "Invalid value")
    return f"{field}: {msg}" if field else msg


@app.exception_handler(StarletteHTTPException)
async def http_error(request: Request, exc: StarletteHTTPException):
    if exc.status_code == 404 and exc.detail == "Not Found":
        return failure(404, "API endpoint not found")
    return failure(exc.status_code, str(exc.detail))


@app.exception_handler(RequestValidationError)
async def validation_error(request: Request, exc: RequestValidationError):
    return failure(400, first_validation_message(exc))


@app.exception_handler(DuplicateKeyError)
async def duplicate_key(request: Request, exc: DuplicateKeyError):
    logger.warning("Duplicate key on %s: %s", request.url.path, exc)
    return failure(Conflict.status_code, Conflict.default_message)


@app.exception_handler(PyMongoError)
async def database_error(request: Request, exc: PyMongoError):
    logger.error("Database error on %s: %s", request.url.path, exc)
    return failure(500, "Database error")


@app.exception_handler(Exception)
async def unhandled(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s", request.url.path)
    return failure(500, "Internal server error")


# Routes
app.include_router(accounts.router, prefix="/api/auth", tags=["auth"])
app.include_router(admin_auth.router, prefix="/api/admin-auth", tags=["admin-auth"])
app.include_router(users.router, prefix="/api/users", tags=["users"])
app.include_router(forum.router, prefix="/api/forum", tags=["forum"])
app.include_router(buyers.router, prefix="/api/buyers", tags=["buyers"])
app.include_router(compliance.router, prefix="/api/compliance", tags=["compliance"])
app.include_router(relief_schemes.router, prefix="/api/relief-schemes", tags=["relief-schemes"])
app.include_router(impact.router, prefix="/api/impact", tags=["impact"])
app.include_router(dashboard.router, prefix="/api/dashboard", tags=["dashboard"])
app.include_router(market_intelligence.router, prefix="/api/market-intelligence", tags=["market-intelligence"])
app.include_router(trade_data.router, prefix="/api/trade-data", tags=["trade-data"])
app.include_router(uploads.router, prefix="/api/upload", tags=["upload"])
app.include_router(news.router, prefix="/api/news", tags=["news"])
app.include_router(trade.router, prefix="/api/trade", tags=["trade"])
app.include_router(market_feeds.router, prefix="/api/market-feeds", tags=["market-feeds"])
app.include_router(ai.router, prefix="/api/ai", tags=["ai"])

app.mount("/uploads", StaticFiles(directory=config.UPLOAD_DIR, check_dir=False), name="uploads")


# Health and info
@app.get("/")
def root():
    return {"message": "Trade Navigator API running"}


@app.get("/health")
def health():
    return {
        "status": "OK",
        "timestamp": database.now(),
        "database": "connected" if database.db is not None else "disconnected",
    }


@app.get("/test")
def test_database():
    response = {
        "backend": "✅ Running",
        "database": "❌ Not Available",
        "database_url": "✅ Set" if config.MONGODB_URI else "❌ Not Set",
        "database_name": config.DATABASE_NAME or "❌ Not Set",
        "connection_status": "Not Connected",
        "collections": [],
    }
    try:
        if database.db is not None:
            response["database"] = "✅ Available"
            collections = database.db.list_collection_names()
            response["collections"] = collections[:10]
            response["connection_status"] = "Connected"
            response["database"] = "✅ Connected & Working"
    except PyMongoError as e:
        response["database"] = f"⚠️ Error: {str(e)}"
    return response


if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", 5000))
    uvicorn.run(app, host="0.0.0.0", port=port)
