from datetime import timedelta
from urllib.parse import parse_qs, urlparse

from pricescan.common.monetization import check_subscription_status, has_feature_access
from pricescan.db import CRUD
from pricescan.db.database import SessionLocal
from pricescan.db.Models.user_models import AffiliateClick, utcnow

COKE = "789012345678"


def test_login_and_logout(client, login):
    assert client.get("/api/auth/user").status_code == 401

    user = login("u1")
    assert user["id"] == "u1"
    assert user["email"] == "u1@example.com"
    assert user["subscriptionTier"] == "free"

    me = client.get("/api/auth/user").json()
    assert me["firstName"] == "Test"

    assert client.get("/api/logout").json() == {"success": True}
    assert client.get("/api/auth/user").status_code == 401


def test_login_updates_existing_profile(client):
    client.post("/api/auth/login", json={"id": "u1", "email": "old@example.com"})
    resp = client.post(
        "/api/auth/login",
        json={"id": "u1", "email": "new@example.com", "profileImageUrl": "https://img.example/u1.png"},
    )
    assert resp.json()["email"] == "new@example.com"
    assert resp.json()["profileImageUrl"] == "https://img.example/u1.png"


def test_subscription_plans(client):
    plans = client.get("/api/subscription/plans").json()
    assert [p["id"] for p in plans] == ["free", "premium", "business"]
    assert plans[0]["dailyScanLimit"] == 10
    assert plans[1]["dailyScanLimit"] is None
    assert plans[2]["apiAccess"] is True


def test_anonymous_status(client):
    body = client.get("/api/subscription/status").json()
    assert body["tier"] == "free"
    assert body["isActive"] is False
    assert body["scanLimit"] is None


def test_free_user_status(client, login):
    login("u1")
    body = client.get("/api/subscription/status").json()
    assert body["tier"] == "free"
    assert body["isActive"] is True
    assert body["scanLimit"]["scansRemaining"] == 10
    assert body["scanLimit"]["canScan"] is True


def test_subscribe(client, login):
    assert client.post("/api/subscription/subscribe", json={"planId": "premium"}).status_code == 401

    login("u1")
    assert client.post("/api/subscription/subscribe", json={"planId": "gold"}).status_code == 400

    body = client.post("/api/subscription/subscribe", json={"planId": "premium"}).json()
    assert body["tier"] == "premium"
    assert body["isActive"] is True
    assert body["daysRemaining"] == 30
    assert body["scanLimit"]["scansRemaining"] == -1
    assert client.get("/api/auth/user").json()["subscriptionTier"] == "premium"


def test_expired_subscription_is_downgraded(client, login):
    login("u1")
    client.post("/api/subscription/subscribe", json={"planId": "business"})

    with SessionLocal() as db:
        CRUD.update_user_subscription(db, "u1", "business", utcnow() - timedelta(days=1))

    body = client.get("/api/subscription/status").json()
    assert body["tier"] == "free"
    assert body["isActive"] is False
    assert client.get("/api/auth/user").json()["subscriptionTier"] == "free"


def test_feature_access(client, login):
    login("u1")
    with SessionLocal() as db:
        assert has_feature_access(db, "u1", "analytics") is False
        assert has_feature_access(db, "u1", "scan") is True

    client.post("/api/subscription/subscribe", json={"planId": "premium"})
    with SessionLocal() as db:
        assert has_feature_access(db, "u1", "analytics") is True
        assert has_feature_access(db, "u1", "api_access") is False
        assert check_subscription_status(db, "u1").tier == "premium"


def test_affiliate_click_without_program_returns_original(client, seeded):
    product = client.get(f"/api/products/{COKE}").json()
    price = product["prices"][0]

    resp = client.post(
        "/api/affiliate/click",
        json={"productId": product["id"], "retailerId": price["retailerId"], "url": "https://target.example/coke"},
    )
    assert resp.status_code == 200
    assert resp.json() == {"url": "https://target.example/coke"}
    with SessionLocal() as db:
        assert db.query(AffiliateClick).count() == 0


def test_affiliate_click_with_program_is_tracked(client, seeded, login):
    login("u1")
    product = client.get(f"/api/products/{COKE}").json()
    retailer_id = product["prices"][0]["retailerId"]
    with SessionLocal() as db:
        retailer = CRUD.get_retailer(db, retailer_id)
        retailer.affiliate_program = True
        retailer.affiliate_base_url = "https://aff.example/go"
        retailer.affiliate_commission_rate = "4%"
        db.commit()

    resp = client.post(
        "/api/affiliate/click",
        json={"productId": product["id"], "retailerId": retailer_id, "url": "https://shop.example/p?id=1"},
    )
    url = urlparse(resp.json()["url"])
    query = parse_qs(url.query)

    assert f"{url.scheme}://{url.netloc}{url.path}" == "https://aff.example/go"
    assert query["ref"] == ["pricescan"]
    assert query["uid"] == ["u1"]
    assert query["url"] == ["https://shop.example/p?id=1"]

    with SessionLocal() as db:
        click = db.query(AffiliateClick).one()
        assert click.user_id == "u1"
        assert click.commission_rate == "4%"
