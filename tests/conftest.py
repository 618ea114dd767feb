import mongomock
import pytest
from fastapi.testclient import TestClient

import config
import database
import main
from auth import create_admin_token, create_user_token, hash_password
from ratelimit import NoopRateLimiter

ADMIN_ID = "navigator-admin"
ADMIN_PASSWORD = "admin-pass-123"
PASSWORD = "password123"


@pytest.fixture(scope="session")
def password_hash():
    return hash_password(PASSWORD)


@pytest.fixture
def db():
    client = mongomock.MongoClient(tz_aware=True)
    test_db = client["tradenavigator_test"]
    database.ensure_indexes(test_db)
    return test_db


@pytest.fixture
def app(db, tmp_path, monkeypatch):
    monkeypatch.setattr(config, "UPLOAD_DIR", str(tmp_path / "uploads"))
    monkeypatch.setattr(config, "ADMIN_ID", ADMIN_ID)
    monkeypatch.setattr(config, "ADMIN_PASSWORD", ADMIN_PASSWORD)
    main.app.dependency_overrides[database.get_db] = lambda: db
    main.app.state.rate_limiter = NoopRateLimiter()
    yield main.app
    main.app.dependency_overrides.clear()


@pytest.fixture
def client(app):
    return TestClient(app)


@pytest.fixture
def make_user(db, password_hash):
    def _make(email="exporter@example.com", **fields):
        doc = {
            "email": email,
            "password": password_hash,
            "companyName": "Coastal Exports",
            "contactPerson": "Asha Rao",
            "userType": "Indian",
            "role": "Seller",
            "isAdmin": False,
            "sector": "Seafood",
            "hsCode": "0306",
            "targetCountries": ["Japan", "USA"],
            "isActive": True,
            "profileCompleted": False,
            "totalRevenue": 0,
            "ordersSecured": 0,
            "marketsEntered": 0,
            "jobsRetained": 0,
            "createdAt": database.now(),
            "updatedAt": database.now(),
        }
        doc.update(fields)
        doc["_id"] = db["users"].insert_one(doc).inserted_id
        return doc
    return _make


@pytest.fixture
def user(make_user):
    return make_user()


@pytest.fixture
def other_user(make_user):
    return make_user(email="weaver@example.com", companyName="Loom Works", sector="Textile")


def bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def headers_for():
    def _headers(user: dict) -> dict:
        return bearer(create_user_token(user["_id"]))
    return _headers


@pytest.fixture
def headers(user, headers_for):
    return headers_for(user)


@pytest.fixture
def admin_headers():
    return bearer(create_admin_token(ADMIN_ID))
