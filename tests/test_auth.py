from auth import create_admin_token, create_user_token, hash_password, verify_password
from tests.conftest import ADMIN_ID, ADMIN_PASSWORD, PASSWORD, bearer

SIGNUP = {
    "email": "New.Exporter@Example.com",
    "password": "secret99",
    "companyName": "Bay Seafoods",
    "contactPerson": "Ravi Kumar",
    "userType": "Indian",
    "role": "Seller",
    "sector": "Seafood",
}


def test_password_hash_roundtrip():
    hashed = hash_password("correct horse")
    assert hashed != "correct horse"
    assert verify_password("correct horse", hashed)
    assert not verify_password("wrong horse", hashed)
    assert not verify_password("anything", "")


def test_signup_creates_user_and_returns_token(client, db):
    res = client.post("/api/auth/signup", json=SIGNUP)
    assert res.status_code == 201
    body = res.json()
    assert body["success"] is True
    assert body["token"]
    assert body["user"]["email"] == "new.exporter@example.com"
    assert body["user"]["profileCompleted"] is False
    stored = db["users"].find_one({"email": "new.exporter@example.com"})
    assert stored["password"] != "secret99"
    assert stored["companyName"] == "Bay Seafoods"
    assert "password" not in body["user"]


def test_signup_duplicate_email_rejected(client, db):
    assert client.post("/api/auth/signup", json=SIGNUP).status_code == 201
    res = client.post("/api/auth/signup", json=SIGNUP)
    assert res.status_code == 400
    assert res.json() == {"success": False, "message": "User already exists with this email"}
    assert db["users"].count_documents({}) == 1


def test_signup_validation_reports_first_error(client):
    res = client.post("/api/auth/signup", json={**SIGNUP, "password": "123"})
    assert res.status_code == 400
    body = res.json()
    assert body["success"] is False
    assert "password" in body["message"]


def test_signin_and_profile(client, user):
    res = client.post("/api/auth/signin", json={"email": user["email"], "password": PASSWORD})
    assert res.status_code == 200
    token = res.json()["token"]

    profile = client.get("/api/auth/profile", headers=bearer(token))
    assert profile.status_code == 200
    assert profile.json()["user"]["id"] == str(user["_id"])


def test_signin_wrong_password(client, user):
    res = client.post("/api/auth/signin", json={"email": user["email"], "password": "nope-nope"})
    assert res.status_code == 401
    assert res.json()["message"] == "Invalid credentials"


def test_signin_deactivated_account(client, make_user):
    inactive = make_user(email="gone@example.com", isActive=False)
    res = client.post("/api/auth/signin", json={"email": inactive["email"], "password": PASSWORD})
    assert res.status_code == 401
    assert res.json()["message"] == "Account is deactivated"


def test_missing_and_malformed_tokens(client):
    assert client.get("/api/auth/profile").status_code == 401
    assert client.get("/api/auth/profile", headers={"Authorization": "Token abc"}).status_code == 401
    assert client.get("/api/auth/profile", headers=bearer("not-a-jwt")).status_code == 401


def test_expired_token_rejected(client, user):
    token = create_user_token(user["_id"], expires_minutes=-1)
    res = client.get("/api/auth/profile", headers=bearer(token))
    assert res.status_code == 401
    assert "expired" in res.json()["message"].lower()


def test_verify_token(client, user):
    token = create_user_token(user["_id"])
    res = client.post("/api/auth/verify-token", json={"token": token})
    assert res.status_code == 200
    assert res.json()["user"]["email"] == user["email"]

    assert client.post("/api/auth/verify-token", json={}).status_code == 400
    admin = create_admin_token(ADMIN_ID)
    assert client.post("/api/auth/verify-token", json={"token": admin}).status_code == 401


def test_admin_login(client):
    res = client.post("/api/admin-auth/login", json={"adminId": ADMIN_ID, "password": ADMIN_PASSWORD})
    assert res.status_code == 200
    token = res.json()["token"]
    verify = client.post("/api/admin-auth/verify", headers=bearer(token))
    assert verify.status_code == 200
    assert verify.json()["admin"]["adminId"] == ADMIN_ID


def test_admin_login_wrong_password(client):
    res = client.post("/api/admin-auth/login", json={"adminId": ADMIN_ID, "password": "guess"})
    assert res.status_code == 401
    assert res.json()["message"] == "Invalid admin credentials"


def test_admin_token_cannot_use_user_routes(client, admin_headers):
    res = client.get("/api/users/profile", headers=admin_headers)
    assert res.status_code == 403


def test_user_token_cannot_use_admin_routes(client, headers):
    res = client.get("/api/trade-data/summary", headers=headers)
    assert res.status_code == 403
    assert client.post("/api/admin-auth/verify", headers=headers).status_code == 403


def test_admin_token_for_unknown_admin_rejected(client):
    res = client.get("/api/trade-data/summary", headers=bearer(create_admin_token("someone-else")))
    assert res.status_code == 403


def test_unknown_route_uses_envelope(client):
    res = client.get("/api/does-not-exist")
    assert res.status_code == 404
    assert res.json() == {"success": False, "message": "API endpoint not found"}


def test_signup_ignores_admin_flag(client, db):
    res = client.post("/api/auth/signup", json={**SIGNUP, "isAdmin": True})
    assert res.status_code == 201
    assert res.json()["user"]["isAdmin"] is False
    assert db["users"].find_one({"email": "new.exporter@example.com"})["isAdmin"] is False
