from datetime import datetime, timedelta, timezone

import pytest
from bson import ObjectId
from pymongo import ASCENDING, DESCENDING

from errors import ValidationError
from querying import build_sort, combine, exact_filter, is_sentinel, pagination_meta, text_search, visible
from shaping import display_rating, format_currency, ok, serialize_doc, thread_comments, time_ago, truncate

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


@pytest.mark.parametrize("delta, expected", [
    (timedelta(seconds=30), "Just now"),
    (timedelta(minutes=5), "5 minutes ago"),
    (timedelta(hours=3), "3 hours ago"),
    (timedelta(days=2), "2 days ago"),
    (timedelta(days=65), "2 months ago"),
    (timedelta(days=800), "2 years ago"),
])
def test_time_ago_buckets(delta, expected):
    assert time_ago(NOW - delta, NOW) == expected


def test_time_ago_accepts_naive_timestamps():
    assert time_ago(datetime(2024, 6, 1, 11, 0), NOW) == "1 hours ago"


def test_sentinels():
    for value in (None, "", "  ", "all", "All", "All Countries"):
        assert is_sentinel(value)
    assert not is_sentinel("Japan")
    assert exact_filter(" Japan ") == "Japan"


def test_text_search_escapes_regex():
    query = text_search("a.b(", ["name", "country"])
    assert query == {"$or": [
        {"name": {"$regex": r"a\.b\(", "$options": "i"}},
        {"country": {"$regex": r"a\.b\(", "$options": "i"}},
    ]}
    assert text_search("   ", ["name"]) is None


def test_build_sort():
    assert build_sort(None, None, ["createdAt", "likes"]) == [("createdAt", DESCENDING)]
    assert build_sort("likes", "asc", ["createdAt", "likes"]) == [("likes", ASCENDING), ("createdAt", DESCENDING)]
    with pytest.raises(ValidationError):
        build_sort("password", None, ["createdAt"])
    with pytest.raises(ValidationError):
        build_sort("likes", "sideways", ["likes"])


def test_combine_keeps_both_or_clauses():
    merged = combine({"a": 1}, None, {"$or": [{"b": 1}]}, {"$or": [{"c": 1}]})
    assert merged["a"] == 1
    assert merged["$or"] == [{"b": 1}]
    assert merged["$and"] == [{"$or": [{"c": 1}]}]
    assert visible({"a": 1}) == {"a": 1, "isHidden": {"$ne": True}}


def test_pagination_meta():
    assert pagination_meta(1, 20, 0) == {
        "currentPage": 1, "totalPages": 0, "totalRecords": 0, "hasNext": False, "hasPrev": False,
    }
    assert pagination_meta(2, 10, 25)["hasNext"] is True
    assert pagination_meta(3, 10, 25)["hasNext"] is False


def test_serialize_doc_hides_internal_fields():
    oid = ObjectId()
    out = serialize_doc({"_id": oid, "password": "x", "likedBy": [oid], "ref": oid, "tags": [oid]})
    assert out == {"id": str(oid), "ref": str(oid), "tags": [str(oid)]}


def test_thread_comments_one_level():
    parent = {"_id": ObjectId(), "parentCommentId": None}
    child = {"_id": ObjectId(), "parentCommentId": parent["_id"], "createdAt": NOW}
    threaded = thread_comments([parent, child])
    assert len(threaded) == 1
    assert threaded[0]["replies"] == [child]


def test_small_formatters():
    assert ok() == {"success": True}
    assert ok([], message="m", pagination={"p": 1}, count=0) == {
        "success": True, "message": "m", "data": [], "pagination": {"p": 1}, "count": 0,
    }
    assert display_rating(None) == "N/A"
    assert display_rating(4) == "4.0"
    assert format_currency(25_000_000) == "2.5Cr"
    assert format_currency(250_000) == "2.5L"
    assert format_currency(2500) == "2.5K"
    assert truncate("x" * 201).endswith("...")
    assert truncate("short") == "short"
