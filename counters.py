"""
Every denormalized counter is mutated through exactly one function here.

- forumPosts.commentsCount: adjust_comments_count
- likes/likedBy on posts and comments: toggle_like
- users.totalRevenue/ordersSecured/marketsEntered/jobsRetained: increment_user_metrics

There is no multi-document transaction around these calls. A crash between
a primary write (comment insert, impact log append) and the counter update
leaves the counter behind; consistency across collections is best-effort.
"""
import logging

from bson import ObjectId

from database import now
from errors import NotFound

logger = logging.getLogger("counters")


def adjust_comments_count(db, post_id: ObjectId, delta: int):
    db["forumPosts"].update_one({"_id": post_id}, {"$inc": {"commentsCount": delta}})


def toggle_like(collection, doc_id: ObjectId, user_id: ObjectId, what: str = "Post") -> bool:
    """Flip user_id's membership in likedBy and move likes by exactly one.

    Each branch is a single conditional update, so concurrent toggles by the
    same user can never double-count. Returns the new like state.
    """
    base = {"_id": doc_id, "isHidden": {"$ne": True}}

    unliked = collection.update_one(
        {**base, "likedBy": user_id},
        {"$pull": {"likedBy": user_id}, "$inc": {"likes": -1}},
    )
    if unliked.modified_count:
        return False

    liked = collection.update_one(
        {**base, "likedBy": {"$ne": user_id}},
        {"$addToSet": {"likedBy": user_id}, "$inc": {"likes": 1}},
    )
    if liked.modified_count:
        return True

    raise NotFound(f"{what} not found")


def increment_user_metrics(db, user_id: ObjectId, revenue: float = 0, orders: int = 0,
                           markets: int = 0, jobs: int = 0):
    db["users"].update_one(
        {"_id": user_id},
        {
            "$inc": {
                "totalRevenue": revenue,
                "ordersSecured": orders,
                "marketsEntered": markets,
                "jobsRetained": jobs,
            },
            "$set": {"updatedAt": now()},
        },
    )
    logger.info("User %s metrics adjusted (revenue=%s orders=%s markets=%s jobs=%s)",
                user_id, revenue, orders, markets, jobs)
