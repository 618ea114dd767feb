import pytest
from bson import ObjectId

from schemas import DEAL_CLOSED


@pytest.fixture
def buyers(db):
    docs = [
        {"name": "Tokyo Fish Market Co.", "country": "Japan", "productCategories": ["Seafood"],
         "certificationsRequired": ["HACCP"], "importVolume": 1200, "rating": 4.5, "isVerified": True},
        {"name": "Rotterdam Textiles BV", "country": "Netherlands", "productCategories": ["Textile"],
         "certificationsRequired": ["OEKO-TEX"], "importVolume": 800, "isVerified": True},
        {"name": "Gulf Seafood Traders", "country": "UAE", "productCategories": ["Seafood"],
         "certificationsRequired": ["HACCP", "Halal"], "isVerified": True},
        {"name": "Unverified Imports", "country": "Japan", "productCategories": ["Seafood"],
         "isVerified": False},
    ]
    db["buyers"].insert_many(docs)
    return docs


def names(res):
    return [b["name"] for b in res.json()["data"]["buyers"]]


def test_list_excludes_unverified_and_sorts_by_name(client, headers, buyers):
    res = client.get("/api/buyers/", headers=headers)
    assert res.status_code == 200
    assert names(res) == ["Gulf Seafood Traders", "Rotterdam Textiles BV", "Tokyo Fish Market Co."]
    assert res.json()["pagination"]["totalRecords"] == 3


def test_sentinel_filters_match_everything(client, headers, buyers):
    res = client.get("/api/buyers/", params={"country": "All Countries", "productCategory": "all"},
                     headers=headers)
    assert len(names(res)) == 3


def test_filters_and_search(client, headers, buyers):
    res = client.get("/api/buyers/", params={"country": "Japan"}, headers=headers)
    assert names(res) == ["Tokyo Fish Market Co."]

    res = client.get("/api/buyers/", params={"certification": "Halal"}, headers=headers)
    assert names(res) == ["Gulf Seafood Traders"]

    res = client.get("/api/buyers/", params={"search": "seafood"}, headers=headers)
    assert names(res) == ["Gulf Seafood Traders", "Tokyo Fish Market Co."]


def test_list_shapes_rating_and_volume(client, headers, buyers):
    rows = {b["name"]: b for b in client.get("/api/buyers/", headers=headers).json()["data"]["buyers"]}
    assert rows["Tokyo Fish Market Co."]["rating"] == "4.5"
    assert rows["Gulf Seafood Traders"]["rating"] == "N/A"
    assert rows["Gulf Seafood Traders"]["importVolume"] == "Not specified"
    assert rows["Tokyo Fish Market Co."]["importVolume"] == "1200 MT/year"
    assert rows["Tokyo Fish Market Co."]["contactStatus"] == "Not Contacted"


def test_filter_options(client, headers, buyers):
    data = client.get("/api/buyers/filters/options", headers=headers).json()["data"]
    assert data["countries"] == ["Japan", "Netherlands", "UAE"]
    assert data["productCategories"] == ["Seafood", "Textile"]
    assert data["certifications"] == ["HACCP", "Halal", "OEKO-TEX"]


def test_get_buyer_detail(client, headers, buyers, db):
    buyer = db["buyers"].find_one({"name": "Tokyo Fish Market Co."})
    res = client.get(f"/api/buyers/{buyer['_id']}", headers=headers)
    assert res.status_code == 200
    assert res.json()["data"]["importVolume"] == 1200
    assert client.get(f"/api/buyers/{ObjectId()}", headers=headers).status_code == 404


def test_contact_status_is_upserted_per_user(client, headers, buyers, db, user):
    buyer = db["buyers"].find_one({"name": "Gulf Seafood Traders"})
    url = f"/api/buyers/{buyer['_id']}/contact"
    assert client.post(url, json={"status": "Contacted", "notes": "Sent catalogue"}, headers=headers).status_code == 200
    assert client.post(url, json={"status": "Negotiating"}, headers=headers).status_code == 200

    interactions = list(db["userBuyerInteractions"].find({"userId": user["_id"]}))
    assert len(interactions) == 1
    assert interactions[0]["status"] == "Negotiating"

    rows = {b["name"]: b for b in client.get("/api/buyers/", headers=headers).json()["data"]["buyers"]}
    assert rows["Gulf Seafood Traders"]["contactStatus"] == "Negotiating"
    assert db["impactLogs"].count_documents({}) == 0


def test_invalid_contact_status(client, headers, buyers, db):
    buyer = db["buyers"].find_one({"name": "Gulf Seafood Traders"})
    res = client.post(f"/api/buyers/{buyer['_id']}/contact", json={"status": "Ghosted"}, headers=headers)
    assert res.status_code == 400


def test_deal_closed_logs_impact_and_updates_metrics(client, headers, buyers, db, user):
    buyer = db["buyers"].find_one({"name": "Tokyo Fish Market Co."})
    res = client.post(f"/api/buyers/{buyer['_id']}/contact",
                      json={"status": "Deal Closed", "dealValue": 250000}, headers=headers)
    assert res.status_code == 200

    logs = list(db["impactLogs"].find({"userId": user["_id"]}))
    assert len(logs) == 1
    assert logs[0]["eventType"] == DEAL_CLOSED
    assert logs[0]["revenueAmount"] == 250000
    assert logs[0]["targetCountry"] == "Japan"

    stored = db["users"].find_one({"_id": user["_id"]})
    assert stored["totalRevenue"] == 250000
    assert stored["ordersSecured"] == 1
    interaction = db["userBuyerInteractions"].find_one({"userId": user["_id"]})
    assert interaction["dealValue"] == 250000
