from datetime import timedelta

import pytest
from bson import ObjectId

from database import now


@pytest.fixture
def schemes(db):
    soon = now() + timedelta(days=30)
    later = now() + timedelta(days=90)
    docs = {
        "rodtep": {"name": "RoDTEP Seafood", "authority": "DGFT", "benefitAmount": 500000,
                   "benefitType": "Duty Remission", "deadline": later,
                   "eligibilityCriteria": {"sectors": ["Seafood"]}, "isActive": True},
        "msme": {"name": "MSME Export Credit", "authority": "SIDBI", "benefitAmount": 200000,
                 "benefitType": "Credit", "deadline": soon,
                 "eligibilityCriteria": {"sectors": ["All"]}, "isActive": True},
        "expired": {"name": "Expired Scheme", "authority": "MPEDA", "benefitAmount": 100000,
                    "benefitType": "Grant", "deadline": now() - timedelta(days=1),
                    "eligibilityCriteria": {"sectors": ["All"]}, "isActive": True},
        "textile": {"name": "Textile Only", "authority": "MoT", "benefitAmount": 300000,
                    "benefitType": "Grant", "deadline": later,
                    "eligibilityCriteria": {"sectors": ["Textile"]}, "isActive": True},
    }
    for doc in docs.values():
        doc["_id"] = db["reliefSchemes"].insert_one(doc).inserted_id
    return docs


def test_list_only_eligible_open_schemes_by_deadline(client, headers, schemes):
    data = client.get("/api/relief-schemes/", headers=headers).json()["data"]
    assert [s["name"] for s in data["schemes"]] == ["MSME Export Credit", "RoDTEP Seafood"]
    assert data["summary"]["totalSchemes"] == 2
    assert data["summary"]["eligibleSchemes"] == 2
    assert data["summary"]["totalPotentialBenefit"] == 700000


def test_apply_caps_benefit_at_revenue_share(client, make_user, headers_for, schemes, db):
    user = make_user(email="earner@example.com", totalRevenue=1000000)
    scheme_id = schemes["rodtep"]["_id"]
    res = client.post(f"/api/relief-schemes/{scheme_id}/apply", json={}, headers=headers_for(user))
    assert res.status_code == 200, res.text
    assert res.json()["data"]["benefitCalculated"] == 100000
    assert res.json()["data"]["status"] == "Applied"


def test_double_apply_conflicts_and_keeps_one_application(client, headers, schemes, db, user):
    url = f"/api/relief-schemes/{schemes['msme']['_id']}/apply"
    assert client.post(url, headers=headers).status_code == 200
    res = client.post(url, headers=headers)
    assert res.status_code == 400
    assert res.json()["message"] == "You have already applied for this scheme"
    assert db["userReliefApplications"].count_documents({"userId": user["_id"]}) == 1

    listed = client.get("/api/relief-schemes/", headers=headers).json()["data"]
    statuses = {s["name"]: s["applicationStatus"] for s in listed["schemes"]}
    assert statuses["MSME Export Credit"] == "Applied"
    assert listed["summary"]["appliedSchemes"] == 1


def test_applications_list(client, headers, schemes):
    client.post(f"/api/relief-schemes/{schemes['msme']['_id']}/apply", headers=headers)
    apps = client.get("/api/relief-schemes/applications", headers=headers).json()["data"]
    assert len(apps) == 1
    assert apps[0]["schemeName"] == "MSME Export Credit"
    assert apps[0]["authority"] == "SIDBI"


def test_apply_unknown_scheme(client, headers):
    assert client.post(f"/api/relief-schemes/{ObjectId()}/apply", headers=headers).status_code == 404
    assert client.post("/api/relief-schemes/bogus/apply", headers=headers).status_code == 400
