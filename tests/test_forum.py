from bson import ObjectId

POST = {
    "title": "Shrimp tariffs in Japan",
    "content": "Has anyone seen the new duty schedule for frozen shrimp?",
    "category": "Q&A",
    "tags": ["shrimp", "japan"],
}


def create_post(client, headers, **overrides):
    res = client.post("/api/forum/posts", json={**POST, **overrides}, headers=headers)
    assert res.status_code == 201, res.text
    return res.json()["data"]


def add_comment(client, headers, post_id, content="Duties dropped to 5% this quarter.", parent=None):
    body = {"content": content}
    if parent:
        body["parentCommentId"] = parent
    res = client.post(f"/api/forum/posts/{post_id}/comments", json=body, headers=headers)
    assert res.status_code == 201, res.text
    return res.json()["data"]


def test_create_and_read_post(client, headers, user):
    post = create_post(client, headers)
    assert post["isOwner"] is True
    assert post["likes"] == 0
    assert post["author"]["company"] == user["companyName"]

    res = client.get(f"/api/forum/posts/{post['id']}", headers=headers)
    assert res.status_code == 200
    data = res.json()["data"]
    assert data["title"] == POST["title"]
    assert data["content"] == POST["content"]
    assert data["tags"] == ["shrimp", "japan"]
    assert data["timeAgo"] == "Just now"


def test_post_validation(client, headers):
    res = client.post("/api/forum/posts", json={**POST, "title": "Hi"}, headers=headers)
    assert res.status_code == 400
    res = client.post("/api/forum/posts", json={**POST, "category": "Gossip"}, headers=headers)
    assert res.status_code == 400
    res = client.post("/api/forum/posts", json={**POST, "tags": [f"t{i}" for i in range(11)]}, headers=headers)
    assert res.status_code == 400


def test_invalid_post_id(client, headers):
    res = client.get("/api/forum/posts/not-an-id", headers=headers)
    assert res.status_code == 400
    res = client.get(f"/api/forum/posts/{ObjectId()}", headers=headers)
    assert res.status_code == 404


def test_pagination_counts_and_past_end(client, headers):
    for i in range(3):
        create_post(client, headers, title=f"Market update {i}")

    first = client.get("/api/forum/posts?page=1&limit=2", headers=headers).json()
    assert len(first["data"]["posts"]) == 2
    assert first["pagination"] == {
        "currentPage": 1, "totalPages": 2, "totalRecords": 3, "hasNext": True, "hasPrev": False,
    }

    past = client.get("/api/forum/posts?page=5&limit=2", headers=headers).json()
    assert past["data"]["posts"] == []
    assert past["pagination"]["totalRecords"] == 3
    assert past["pagination"]["hasNext"] is False
    assert past["pagination"]["hasPrev"] is True


def test_list_filters_by_category_and_search(client, headers):
    create_post(client, headers)
    create_post(client, headers, title="Won a textile order", category="Success Stories", tags=[],
                content="Closed our first garment order with a Dutch retailer.")

    res = client.get("/api/forum/posts", params={"category": "Success Stories"}, headers=headers).json()
    assert [p["title"] for p in res["data"]["posts"]] == ["Won a textile order"]

    res = client.get("/api/forum/posts", params={"category": "All Categories", "search": "SHRIMP"},
                     headers=headers).json()
    assert [p["title"] for p in res["data"]["posts"]] == [POST["title"]]

    res = client.get("/api/forum/posts", params={"search": "("}, headers=headers)
    assert res.status_code == 200


def test_invalid_sort_field(client, headers):
    res = client.get("/api/forum/posts?sortBy=password", headers=headers)
    assert res.status_code == 400


def test_toggle_like_twice_restores_count(client, headers, other_user, headers_for):
    post = create_post(client, headers)
    other = headers_for(other_user)

    first = client.post(f"/api/forum/posts/{post['id']}/like", headers=other).json()["data"]
    assert first == {"isLiked": True, "likes": 1}
    assert client.get(f"/api/forum/posts/{post['id']}", headers=other).json()["data"]["isLiked"] is True

    second = client.post(f"/api/forum/posts/{post['id']}/like", headers=other).json()["data"]
    assert second == {"isLiked": False, "likes": 0}


def test_update_post_owner_only(client, headers, other_user, headers_for, db):
    post = create_post(client, headers)

    res = client.put(f"/api/forum/posts/{post['id']}", json={"title": "Hijacked title"},
                     headers=headers_for(other_user))
    assert res.status_code == 404

    res = client.put(f"/api/forum/posts/{post['id']}", json={"title": "Updated shrimp tariffs"}, headers=headers)
    assert res.status_code == 200
    assert res.json()["data"]["title"] == "Updated shrimp tariffs"

    assert client.put(f"/api/forum/posts/{post['id']}", json={}, headers=headers).status_code == 400


def test_cross_user_delete_is_not_found_and_post_survives(client, headers, other_user, headers_for, db):
    post = create_post(client, headers)
    res = client.delete(f"/api/forum/posts/{post['id']}", headers=headers_for(other_user))
    assert res.status_code == 404
    assert res.json()["message"] == "Post not found or unauthorized"
    stored = db["forumPosts"].find_one({"_id": ObjectId(post["id"])})
    assert stored.get("isHidden") is False


def test_soft_delete_hides_post_and_comments(client, headers, db):
    post = create_post(client, headers)
    add_comment(client, headers, post["id"])

    assert client.delete(f"/api/forum/posts/{post['id']}", headers=headers).status_code == 200
    assert client.get(f"/api/forum/posts/{post['id']}", headers=headers).status_code == 404
    assert client.get("/api/forum/posts", headers=headers).json()["data"]["posts"] == []
    assert db["forumPosts"].count_documents({}) == 1
    assert db["forumReplies"].count_documents({"isHidden": True}) == 1
    assert client.delete(f"/api/forum/posts/{post['id']}", headers=headers).status_code == 404


def test_comments_thread_and_count(client, headers, db):
    post = create_post(client, headers)
    top = add_comment(client, headers, post["id"])
    reply = add_comment(client, headers, post["id"], content="Thanks, that helps a lot.", parent=top["id"])
    assert reply["parentCommentId"] == top["id"]

    stored = db["forumPosts"].find_one({"_id": ObjectId(post["id"])})
    assert stored["commentsCount"] == 2

    res = client.get(f"/api/forum/posts/{post['id']}/comments", headers=headers).json()
    comments = res["data"]["comments"]
    assert len(comments) == 1
    assert comments[0]["id"] == top["id"]
    assert [r["id"] for r in comments[0]["replies"]] == [reply["id"]]
    assert res["pagination"]["totalRecords"] == 1


def test_reply_to_unknown_parent(client, headers):
    post = create_post(client, headers)
    res = client.post(f"/api/forum/posts/{post['id']}/comments",
                      json={"content": "Orphan reply here", "parentCommentId": str(ObjectId())},
                      headers=headers)
    assert res.status_code == 404


def test_delete_comment_decrements_count(client, headers, other_user, headers_for, db):
    post = create_post(client, headers)
    comment = add_comment(client, headers, post["id"])

    assert client.delete(f"/api/forum/comments/{comment['id']}", headers=headers_for(other_user)).status_code == 404
    assert client.delete(f"/api/forum/comments/{comment['id']}", headers=headers).status_code == 200
    assert db["forumPosts"].find_one({"_id": ObjectId(post["id"])})["commentsCount"] == 0
    assert client.delete(f"/api/forum/comments/{comment['id']}", headers=headers).status_code == 404


def test_comment_like_toggle(client, headers):
    post = create_post(client, headers)
    comment = add_comment(client, headers, post["id"])
    url = f"/api/forum/comments/{comment['id']}/like"
    assert client.post(url, headers=headers).json()["data"] == {"isLiked": True, "likes": 1}
    assert client.post(url, headers=headers).json()["data"] == {"isLiked": False, "likes": 0}


def test_accepted_answer_is_exclusive(client, headers, other_user, headers_for, db):
    post = create_post(client, headers)
    other = headers_for(other_user)
    first = add_comment(client, other, post["id"], content="Check the DGFT notice.")
    second = add_comment(client, other, post["id"], content="Ask your customs broker.")

    assert client.post(f"/api/forum/comments/{first['id']}/accept", headers=other).status_code == 404

    assert client.post(f"/api/forum/comments/{first['id']}/accept", headers=headers).status_code == 200
    assert client.post(f"/api/forum/comments/{second['id']}/accept", headers=headers).status_code == 200

    accepted = list(db["forumReplies"].find({"postId": ObjectId(post["id"]), "isAcceptedAnswer": True}))
    assert [str(c["_id"]) for c in accepted] == [second["id"]]
    assert db["forumPosts"].find_one({"_id": ObjectId(post["id"])})["isAnswered"] is True


def test_stats_categories_and_my_posts(client, headers, other_user, headers_for):
    create_post(client, headers)
    create_post(client, headers_for(other_user), title="Cotton prices rising", category="Market Updates", tags=[])

    stats = client.get("/api/forum/stats", headers=headers).json()["data"]
    assert stats["totalPosts"] == 2
    assert stats["activeUsers"] == 2

    categories = client.get("/api/forum/categories", headers=headers).json()["data"]
    counts = {c["name"]: c["count"] for c in categories}
    assert counts == {"Market Updates": 1, "Success Stories": 0, "Q&A": 1, "General Discussion": 0}

    mine = client.get("/api/forum/my-posts", headers=headers).json()
    assert [p["title"] for p in mine["data"]["posts"]] == [POST["title"]]
