"""
Response shaping: stored documents to wire format.
"""
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

from bson import ObjectId

PREVIEW_LENGTH = 200

# Never leave the server
INTERNAL_FIELDS = {"password", "likedBy", "isHidden"}


def ok(data: Any = None, message: Optional[str] = None, pagination: Optional[dict] = None, **extra) -> dict:
    body: Dict[str, Any] = {"success": True}
    if message is not None:
        body["message"] = message
    if data is not None:
        body["data"] = data
    if pagination is not None:
        body["pagination"] = pagination
    body.update(extra)
    return body


def to_wire(value: Any) -> Any:
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, dict):
        return {k: to_wire(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_wire(v) for v in value]
    return value


def serialize_doc(doc: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if not doc:
        return doc
    d = {k: v for k, v in doc.items() if k not in INTERNAL_FIELDS}
    if "_id" in d:
        d["id"] = d.pop("_id")
    return to_wire(d)


def as_utc(ts: Optional[datetime]) -> Optional[datetime]:
    if ts is None:
        return None
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts


def time_ago(ts: Optional[datetime], now: Optional[datetime] = None) -> str:
    if ts is None:
        return ""
    now = as_utc(now) or datetime.now(timezone.utc)
    seconds = int((now - as_utc(ts)).total_seconds())
    if seconds < 60:
        return "Just now"
    if seconds < 3600:
        return f"{seconds // 60} minutes ago"
    if seconds < 86400:
        return f"{seconds // 3600} hours ago"
    days = seconds // 86400
    if days < 30:
        return f"{days} days ago"
    if days < 365:
        return f"{days // 30} months ago"
    return f"{days // 365} years ago"


def truncate(text: Optional[str], length: int = PREVIEW_LENGTH) -> str:
    if not text:
        return ""
    if len(text) <= length:
        return text
    return text[:length] + "..."


def contains_id(ids: Optional[Iterable], user_id: Optional[ObjectId]) -> bool:
    if not ids or user_id is None:
        return False
    return any(str(i) == str(user_id) for i in ids)


def author(user: Optional[dict]) -> dict:
    user = user or {}
    return {
        "name": user.get("contactPerson"),
        "company": user.get("companyName"),
        "role": user.get("role"),
        "sector": user.get("sector"),
    }


def public_user(user: dict) -> dict:
    return {
        "id": str(user["_id"]),
        "email": user.get("email"),
        "companyName": user.get("companyName"),
        "contactPerson": user.get("contactPerson"),
        "userType": user.get("userType"),
        "role": user.get("role"),
        "isAdmin": bool(user.get("isAdmin", False)),
        "sector": user.get("sector") or "Not specified",
        "hsCode": user.get("hsCode") or "",
        "targetCountries": user.get("targetCountries") or [],
        "profileCompleted": bool(user.get("profileCompleted", False)),
    }


def user_metrics(user: dict) -> dict:
    return {
        "totalRevenue": user.get("totalRevenue", 0),
        "ordersSecured": user.get("ordersSecured", 0),
        "marketsEntered": user.get("marketsEntered", 0),
        "jobsRetained": user.get("jobsRetained", 0),
    }


def shape_post(post: dict, viewer_id: ObjectId, full: bool = False, now: Optional[datetime] = None) -> dict:
    return {
        "id": str(post["_id"]),
        "title": post.get("title"),
        "content": post.get("content", "") if full else truncate(post.get("content")),
        "category": post.get("category"),
        "tags": post.get("tags") or [],
        "likes": post.get("likes", 0),
        "commentsCount": post.get("commentsCount", 0),
        "isAnswered": post.get("isAnswered", False),
        "isPinned": post.get("isPinned", False),
        "isFeatured": post.get("isFeatured", False),
        "createdAt": post.get("createdAt"),
        "updatedAt": post.get("updatedAt"),
        "timeAgo": time_ago(post.get("createdAt"), now),
        "isLiked": contains_id(post.get("likedBy"), viewer_id),
        "isOwner": str(post.get("userId")) == str(viewer_id),
        "author": author(post.get("user")),
    }


def shape_comment(comment: dict, viewer_id: ObjectId, now: Optional[datetime] = None) -> dict:
    shaped = {
        "id": str(comment["_id"]),
        "postId": str(comment.get("postId")),
        "parentCommentId": str(comment["parentCommentId"]) if comment.get("parentCommentId") else None,
        "content": comment.get("content"),
        "likes": comment.get("likes", 0),
        "isMentorReply": comment.get("isMentorReply", False),
        "isAcceptedAnswer": comment.get("isAcceptedAnswer", False),
        "createdAt": comment.get("createdAt"),
        "timeAgo": time_ago(comment.get("createdAt"), now),
        "isLiked": contains_id(comment.get("likedBy"), viewer_id),
        "isOwner": str(comment.get("userId")) == str(viewer_id),
        "author": author(comment.get("user")),
    }
    if "replies" in comment:
        shaped["replies"] = [shape_comment(r, viewer_id, now) for r in comment["replies"]]
    return shaped


def thread_comments(comments: List[dict]) -> List[dict]:
    """Attach direct replies to top-level comments. One level only."""
    top_level = [c for c in comments if not c.get("parentCommentId")]
    replies = [c for c in comments if c.get("parentCommentId")]
    threaded = []
    for parent in top_level:
        children = [r for r in replies if str(r["parentCommentId"]) == str(parent["_id"])]
        children.sort(key=lambda r: as_utc(r.get("createdAt")) or datetime.min.replace(tzinfo=timezone.utc))
        threaded.append({**parent, "replies": children})
    return threaded


def display_rating(rating: Optional[float]) -> str:
    if rating is None:
        return "N/A"
    return f"{float(rating):.1f}"


def format_currency(amount: float) -> str:
    """Indian short form: Cr, L, K."""
    if amount >= 10_000_000:
        return f"{amount / 10_000_000:.1f}Cr"
    if amount >= 100_000:
        return f"{amount / 100_000:.1f}L"
    if amount >= 1000:
        return f"{amount / 1000:.1f}K"
    return f"{amount:g}"
