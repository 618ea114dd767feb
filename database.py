"""
MongoDB access for Trade Navigator.

`db` is None until `connect()` runs (app startup). Routes never import `db`
directly; they depend on `get_db`, which tests override with an in-memory
database.
"""
import logging
from datetime import datetime, timezone
from typing import Optional, Union

from bson import ObjectId
from pydantic import BaseModel
from pymongo import ASCENDING, DESCENDING, MongoClient

import config
from errors import InternalError, ValidationError

logger = logging.getLogger("database")

client: Optional[MongoClient] = None
db = None


def connect():
    global client, db
    if not config.MONGODB_URI:
        raise RuntimeError("MONGODB_URI environment variable is not defined")
    client = MongoClient(
        config.MONGODB_URI,
        tz_aware=True,
        maxPoolSize=10,
        serverSelectionTimeoutMS=5000,
        socketTimeoutMS=45000,
    )
    db = client[config.DATABASE_NAME]
    db.command("ping")
    logger.info("MongoDB connected (database=%s)", config.DATABASE_NAME)
    return db


def close():
    global client, db
    if client is not None:
        client.close()
        logger.info("MongoDB connection closed")
    client = None
    db = None


def get_db():
    if db is None:
        raise InternalError("Database not initialized")
    return db


def now() -> datetime:
    return datetime.now(timezone.utc)


def oid(value: Union[str, ObjectId], label: str = "id") -> ObjectId:
    if isinstance(value, ObjectId):
        return value
    if not ObjectId.is_valid(value):
        raise ValidationError(f"Invalid {label}")
    return ObjectId(value)


def create_document(database, collection_name: str, data: Union[BaseModel, dict]) -> dict:
    """Insert a document stamped with createdAt/updatedAt and return it with its _id."""
    if isinstance(data, BaseModel):
        doc = data.model_dump(by_alias=True)
    else:
        doc = dict(data)
    stamp = now()
    doc.setdefault("createdAt", stamp)
    doc.setdefault("updatedAt", stamp)
    result = database[collection_name].insert_one(doc)
    doc["_id"] = result.inserted_id
    return doc


def ensure_indexes(database):
    database["users"].create_index([("email", ASCENDING)], unique=True)
    database["users"].create_index([("role", ASCENDING), ("sector", ASCENDING)])

    database["marketIntelligence"].create_index([("hsCode", ASCENDING), ("country", ASCENDING)], unique=True)
    database["marketIntelligence"].create_index([("competitivenessScore", DESCENDING)])

    database["buyers"].create_index([("country", ASCENDING), ("isVerified", ASCENDING)])
    database["buyers"].create_index([("productCategories", ASCENDING)])

    database["userBuyerInteractions"].create_index(
        [("userId", ASCENDING), ("buyerId", ASCENDING)], unique=True
    )
    database["complianceChecklists"].create_index([("userId", ASCENDING)], unique=True)

    database["reliefSchemes"].create_index([("isActive", ASCENDING), ("deadline", ASCENDING)])
    database["userReliefApplications"].create_index(
        [("userId", ASCENDING), ("schemeId", ASCENDING)], unique=True
    )

    database["forumPosts"].create_index([("createdAt", DESCENDING)])
    database["forumPosts"].create_index([("category", ASCENDING), ("isPinned", DESCENDING)])
    database["forumReplies"].create_index([("postId", ASCENDING), ("createdAt", ASCENDING)])
    database["forumReplies"].create_index([("userId", ASCENDING)])

    database["impactLogs"].create_index([("userId", ASCENDING), ("eventDate", DESCENDING)])
    database["fileUploads"].create_index([("userId", ASCENDING), ("createdAt", DESCENDING)])
    database["trade_data"].create_index([("partner_name", ASCENDING), ("year", DESCENDING)])
    logger.info("MongoDB indexes ensured")
