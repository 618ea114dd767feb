import logging
from datetime import timedelta
from typing import Annotated, List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import Field

from auth import find_owned, get_current_user
from counters import adjust_comments_count, toggle_like
from database import create_document, get_db, now, oid
from errors import NotFound, NotFoundOrUnauthorized, ValidationError
from querying import (Pagination, build_sort, combine, exact_filter, pagination_params, sort_stage,
                      text_search, visible)
from schemas import POST_CATEGORIES, Comment, Payload, Post, PostCategory
from shaping import ok, shape_comment, shape_post, thread_comments

logger = logging.getLogger("forum")

router = APIRouter()

POST_SORT_FIELDS = ("createdAt", "likes", "commentsCount", "title")
MAX_TAGS = 10
MAX_TAG_LENGTH = 50

Tag = Annotated[str, Field(max_length=MAX_TAG_LENGTH)]


class PostCreate(Payload):
    title: str = Field(min_length=5, max_length=200)
    content: str = Field(min_length=10, max_length=5000)
    category: PostCategory
    tags: Annotated[List[Tag], Field(max_length=MAX_TAGS)] = []


class PostUpdate(Payload):
    title: Optional[str] = Field(None, min_length=5, max_length=200)
    content: Optional[str] = Field(None, min_length=10, max_length=5000)
    category: Optional[PostCategory] = None
    tags: Optional[Annotated[List[Tag], Field(max_length=MAX_TAGS)]] = None


class CommentCreate(Payload):
    content: str = Field(min_length=5, max_length=2000)
    parent_comment_id: Optional[str] = None


class CommentUpdate(Payload):
    content: str = Field(min_length=5, max_length=2000)


def with_author(match: dict, sort: Optional[list] = None, skip: int = 0, limit: Optional[int] = None) -> list:
    pipeline = [
        {"$match": match},
        {"$lookup": {"from": "users", "localField": "userId", "foreignField": "_id", "as": "user"}},
        {"$unwind": {"path": "$user", "preserveNullAndEmptyArrays": True}},
    ]
    if sort:
        pipeline.append(sort_stage(sort))
    if skip:
        pipeline.append({"$skip": skip})
    if limit:
        pipeline.append({"$limit": limit})
    return pipeline


def list_posts(db, match: dict, sort: list, page: Pagination, viewer_id) -> dict:
    total = db["forumPosts"].count_documents(match)
    posts = list(db["forumPosts"].aggregate(with_author(match, sort, page.skip, page.limit)))
    return ok(
        {"posts": [shape_post(p, viewer_id) for p in posts]},
        pagination=page.meta(total),
    )


def load_post(db, post_id) -> dict:
    found = list(db["forumPosts"].aggregate(with_author(visible({"_id": post_id}))))
    if not found:
        raise NotFound("Post not found")
    return found[0]


# Posts

@router.get("/posts")
def get_posts(
    category: Optional[str] = None,
    search: Optional[str] = None,
    sort_by: Optional[str] = Query(None, alias="sortBy"),
    sort_order: Optional[str] = Query(None, alias="sortOrder"),
    page: Pagination = Depends(pagination_params),
    user: dict = Depends(get_current_user),
    db=Depends(get_db),
):
    sort = build_sort(sort_by, sort_order, POST_SORT_FIELDS)
    cat = exact_filter(category)
    match = visible(combine(
        {"category": cat} if cat else None,
        text_search(search, ("title", "content", "tags")),
    ))
    return list_posts(db, match, sort, page, user["_id"])


@router.post("/posts", status_code=201)
def create_post(payload: PostCreate, user: dict = Depends(get_current_user), db=Depends(get_db)):
    post = create_document(db, "forumPosts", Post(user_id=user["_id"], **payload.model_dump()))
    logger.info("User %s created forum post %s", user["_id"], post["_id"])
    return ok(
        shape_post({**post, "user": user}, user["_id"], full=True),
        message="Post created successfully",
    )


@router.get("/posts/{post_id}")
def get_post(post_id: str, user: dict = Depends(get_current_user), db=Depends(get_db)):
    post = load_post(db, oid(post_id, "post ID"))
    return ok(shape_post(post, user["_id"], full=True))


@router.put("/posts/{post_id}")
def update_post(post_id: str, payload: PostUpdate, user: dict = Depends(get_current_user), db=Depends(get_db)):
    pid = oid(post_id, "post ID")
    updates = payload.model_dump(exclude_none=True)
    if not updates:
        raise ValidationError("No valid fields to update")
    find_owned(db["forumPosts"], pid, user["_id"], "Post", visible())
    updates["updatedAt"] = now()
    db["forumPosts"].update_one({"_id": pid}, {"$set": updates})
    logger.info("User %s updated forum post %s", user["_id"], pid)
    return ok(shape_post(load_post(db, pid), user["_id"], full=True), message="Post updated successfully")


@router.delete("/posts/{post_id}")
def delete_post(post_id: str, user: dict = Depends(get_current_user), db=Depends(get_db)):
    pid = oid(post_id, "post ID")
    find_owned(db["forumPosts"], pid, user["_id"], "Post", visible())
    stamp = now()
    db["forumPosts"].update_one({"_id": pid}, {"$set": {"isHidden": True, "updatedAt": stamp}})
    db["forumReplies"].update_many({"postId": pid}, {"$set": {"isHidden": True, "updatedAt": stamp}})
    logger.info("User %s deleted forum post %s", user["_id"], pid)
    return ok(message="Post deleted successfully")


@router.post("/posts/{post_id}/like")
def like_post(post_id: str, user: dict = Depends(get_current_user), db=Depends(get_db)):
    pid = oid(post_id, "post ID")
    liked = toggle_like(db["forumPosts"], pid, user["_id"], "Post")
    post = db["forumPosts"].find_one({"_id": pid})
    logger.info("User %s %s forum post %s", user["_id"], "liked" if liked else "unliked", pid)
    return ok(
        {"isLiked": liked, "likes": post.get("likes", 0)},
        message="Post liked successfully" if liked else "Post unliked successfully",
    )


# Comments

@router.get("/posts/{post_id}/comments")
def get_comments(
    post_id: str,
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=100),
    user: dict = Depends(get_current_user),
    db=Depends(get_db),
):
    pid = oid(post_id, "post ID")
    if not db["forumPosts"].find_one(visible({"_id": pid})):
        raise NotFound("Post not found")

    # Page over top-level comments, then attach every visible reply to them
    top_match = visible({"postId": pid, "parentCommentId": None})
    total = db["forumReplies"].count_documents(top_match)
    pager = Pagination(page, limit)
    top = list(db["forumReplies"].aggregate(
        with_author(top_match, [("createdAt", 1)], pager.skip, pager.limit)
    ))
    replies = []
    if top:
        replies = list(db["forumReplies"].aggregate(with_author(
            visible({"postId": pid, "parentCommentId": {"$in": [c["_id"] for c in top]}}),
            [("createdAt", 1)],
        )))
    threaded = thread_comments(top + replies)
    return ok(
        {"comments": [shape_comment(c, user["_id"]) for c in threaded]},
        pagination=pager.meta(total),
    )


@router.post("/posts/{post_id}/comments", status_code=201)
def add_comment(post_id: str, payload: CommentCreate, user: dict = Depends(get_current_user), db=Depends(get_db)):
    pid = oid(post_id, "post ID")
    if not db["forumPosts"].find_one(visible({"_id": pid})):
        raise NotFound("Post not found")

    parent_id = None
    if payload.parent_comment_id:
        parent_id = oid(payload.parent_comment_id, "parent comment ID")
        if not db["forumReplies"].find_one(visible({"_id": parent_id, "postId": pid})):
            raise NotFound("Parent comment not found")

    comment = create_document(db, "forumReplies", Comment(
        post_id=pid,
        user_id=user["_id"],
        parent_comment_id=parent_id,
        content=payload.content,
    ))
    adjust_comments_count(db, pid, 1)
    logger.info("User %s commented %s on forum post %s", user["_id"], comment["_id"], pid)
    return ok(
        shape_comment({**comment, "user": user}, user["_id"]),
        message="Comment added successfully",
    )


@router.put("/comments/{comment_id}")
def update_comment(comment_id: str, payload: CommentUpdate, user: dict = Depends(get_current_user),
                   db=Depends(get_db)):
    cid = oid(comment_id, "comment ID")
    comment = find_owned(db["forumReplies"], cid, user["_id"], "Comment", visible())
    stamp = now()
    db["forumReplies"].update_one({"_id": cid}, {"$set": {"content": payload.content, "updatedAt": stamp}})
    logger.info("User %s updated comment %s", user["_id"], cid)
    comment.update({"content": payload.content, "updatedAt": stamp, "user": user})
    return ok(shape_comment(comment, user["_id"]), message="Comment updated successfully")


@router.delete("/comments/{comment_id}")
def delete_comment(comment_id: str, user: dict = Depends(get_current_user), db=Depends(get_db)):
    cid = oid(comment_id, "comment ID")
    result = db["forumReplies"].find_one_and_update(
        visible({"_id": cid, "userId": user["_id"]}),
        {"$set": {"isHidden": True, "updatedAt": now()}},
    )
    if result is None:
        raise NotFoundOrUnauthorized("Comment not found or unauthorized")
    adjust_comments_count(db, result["postId"], -1)
    logger.info("User %s deleted comment %s", user["_id"], cid)
    return ok(message="Comment deleted successfully")


@router.post("/comments/{comment_id}/like")
def like_comment(comment_id: str, user: dict = Depends(get_current_user), db=Depends(get_db)):
    cid = oid(comment_id, "comment ID")
    liked = toggle_like(db["forumReplies"], cid, user["_id"], "Comment")
    comment = db["forumReplies"].find_one({"_id": cid})
    return ok(
        {"isLiked": liked, "likes": comment.get("likes", 0)},
        message="Comment liked successfully" if liked else "Comment unliked successfully",
    )


@router.post("/comments/{comment_id}/accept")
def accept_answer(comment_id: str, user: dict = Depends(get_current_user), db=Depends(get_db)):
    cid = oid(comment_id, "comment ID")
    comment = db["forumReplies"].find_one(visible({"_id": cid}))
    if not comment:
        raise NotFound("Comment not found")
    post = find_owned(db["forumPosts"], comment["postId"], user["_id"], "Post", visible())

    db["forumReplies"].update_many({"postId": post["_id"]}, {"$set": {"isAcceptedAnswer": False}})
    db["forumReplies"].update_one({"_id": cid}, {"$set": {"isAcceptedAnswer": True}})
    db["forumPosts"].update_one({"_id": post["_id"]}, {"$set": {"isAnswered": True, "updatedAt": now()}})
    logger.info("User %s accepted comment %s on post %s", user["_id"], cid, post["_id"])
    return ok(message="Answer marked as accepted")


# Community

@router.get("/stats")
def get_stats(user: dict = Depends(get_current_user), db=Depends(get_db)):
    totals = list(db["forumPosts"].aggregate([
        {"$match": visible()},
        {"$group": {
            "_id": None,
            "totalPosts": {"$sum": 1},
            "totalLikes": {"$sum": "$likes"},
            "totalComments": {"$sum": "$commentsCount"},
        }},
    ]))
    stats = totals[0] if totals else {}
    active = db["forumPosts"].distinct(
        "userId", visible({"createdAt": {"$gte": now() - timedelta(days=30)}})
    )
    return ok({
        "totalPosts": stats.get("totalPosts", 0),
        "totalLikes": stats.get("totalLikes", 0),
        "totalComments": stats.get("totalComments", 0),
        "activeUsers": len(active),
    })


@router.get("/categories")
def get_categories(user: dict = Depends(get_current_user), db=Depends(get_db)):
    counts = {
        row["_id"]: row["count"]
        for row in db["forumPosts"].aggregate([
            {"$match": visible()},
            {"$group": {"_id": "$category", "count": {"$sum": 1}}},
        ])
    }
    return ok([{"name": name, "count": counts.get(name, 0)} for name in POST_CATEGORIES])


@router.get("/my-posts")
def my_posts(
    sort_by: Optional[str] = Query(None, alias="sortBy"),
    sort_order: Optional[str] = Query(None, alias="sortOrder"),
    page: Pagination = Depends(pagination_params),
    user: dict = Depends(get_current_user),
    db=Depends(get_db),
):
    sort = build_sort(sort_by, sort_order, POST_SORT_FIELDS)
    return list_posts(db, visible({"userId": user["_id"]}), sort, page, user["_id"])
