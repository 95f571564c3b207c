import inspect

import pytest

from pricescan.api.v1 import chat, endpoints

from pricescan.common.tools import pricing_apis
from pricescan.common.tools.pricing_apis import MerchantPrice
from pricescan.db import CRUD
from pricescan.db.database import SessionLocal

COKE = "789012345678"
IPHONE = "123456789012"


def test_product_detail_from_sample_data(client, seeded):
    resp = client.get(f"/api/products/{COKE}")
    assert resp.status_code == 200
    body = resp.json()

    assert body["name"] == "Coca-Cola Classic"
    assert body["bestPrice"] == "$1.89"
    assert body["highestPrice"] == "$2.29"
    assert body["savings"] == pytest.approx(0.4)
    assert body["ecoLabel"] is None
    assert {p["retailer"]["name"] for p in body["prices"]} == {"Target", "Walmart", "Amazon"}


def test_unknown_product_is_404(client):
    resp = client.get("/api/products/000000000000")
    assert resp.status_code == 404
    assert resp.json()["detail"] == "Product not found"


def test_create_and_update_product(client):
    resp = client.post(
        "/api/products",
        json={"barcode": " 4006381333931 ", "name": "Stabilo Boss", "brand": "Stabilo"},
    )
    assert resp.status_code == 200
    created = resp.json()
    assert created["barcode"] == "4006381333931"
    assert created["prices"] == []
    assert created["sustainabilityCertifications"] == []

    duplicate = client.post("/api/products", json={"barcode": "4006381333931", "name": "Other"})
    assert duplicate.status_code == 409

    resp = client.patch(
        f"/api/products/{created['id']}",
        json={"ecoScore": 72, "sustainabilityCertifications": ["FSC"], "isEcoFriendly": True},
    )
    assert resp.status_code == 200
    assert resp.json()["ecoScore"] == 72
    assert resp.json()["name"] == "Stabilo Boss"

    detail = client.get("/api/products/4006381333931").json()
    assert detail["ecoLabel"] == "Good"
    assert detail["bestPrice"] is None


def test_eco_score_out_of_range_is_rejected(client):
    resp = client.post("/api/products", json={"barcode": "1", "name": "X", "ecoScore": 120})
    assert resp.status_code == 422


def test_update_missing_product_is_404(client):
    resp = client.patch("/api/products/999", json={"name": "Ghost"})
    assert resp.status_code == 404


def test_search_products(client, seeded):
    resp = client.get("/api/products", params={"search": "coca"})
    assert resp.status_code == 200
    assert [p["barcode"] for p in resp.json()] == [COKE]

    by_brand = client.get("/api/products", params={"search": "apple"}).json()
    assert [p["barcode"] for p in by_brand] == [IPHONE]

    fuzzy = client.get("/api/products", params={"search": "iphone pro phone"}).json()
    assert [p["barcode"] for p in fuzzy] == [IPHONE]

    assert client.get("/api/products", params={"search": "zzzz"}).json() == []


def test_search_wildcards_match_literally(client, seeded):
    for wildcard in ("%%", "__", "\\\\"):
        assert client.get("/api/products", params={"search": wildcard}).json() == []

    client.post("/api/products", json={"barcode": "42", "name": "Sale 100% Juice"})
    hits = client.get("/api/products", params={"search": "0% j"}).json()
    assert [p["barcode"] for p in hits] == ["42"]


def test_import_products_upserts_by_barcode(client, seeded):
    feed = {
        "Date": "2025-09-09T10:14:58Z",
        "Products": [
            {
                "barcode": COKE,
                "name": "Coca-Cola Classic 2L",
                "prices": [
                    {"retailer": "Costco", "price": "$1.49"},
                    {"retailer": "Target", "price": "$1.79"},
                ],
            },
            {"barcode": "5000112637922", "name": "Sprite", "brand": "Coca-Cola"},
            {"barcode": "", "name": "no barcode"},
        ],
    }
    resp = client.post("/api/products/import", json=feed)
    assert resp.status_code == 200
    assert resp.json()["message"] == "Total updated: 2"

    coke = client.get(f"/api/products/{COKE}").json()
    assert coke["name"] == "Coca-Cola Classic 2L"
    assert coke["bestPrice"] == "$1.49"
    assert {p["retailer"]["name"] for p in coke["prices"]} == {"Costco", "Target"}

    sprite = client.get("/api/products/5000112637922").json()
    assert sprite["brand"] == "Coca-Cola"

    retailers = {r["name"] for r in client.get("/api/retailers").json()}
    assert retailers == {"Target", "Walmart", "Amazon", "Costco"}


def test_import_rejects_bad_payload(client):
    assert client.post("/api/products/import", json={"Items": []}).status_code == 400
    assert client.post("/api/products/import", json={"Products": [{"name": "x"}]}).status_code == 400


def test_refresh_prices_replaces_stored_offers(client, seeded, monkeypatch):
    monkeypatch.setattr(
        pricing_apis,
        "PRICING_SOURCES",
        [
            (
                "Keepa (Amazon)",
                lambda upc, name=None: [
                    MerchantPrice(merchant="Amazon", price=1.59, availability="in_stock"),
                    MerchantPrice(merchant="eBay", price=1.75),
                ],
            )
        ],
    )

    resp = client.post(f"/api/products/{COKE}/refresh-prices")
    assert resp.status_code == 200
    body = resp.json()
    assert body["sources"] == ["Keepa (Amazon)"]
    assert body["bestPrice"] == "$1.59"
    assert sorted(p["retailer"]["name"] for p in body["prices"]) == ["Amazon", "eBay"]
    amazon = next(p for p in body["prices"] if p["retailer"]["name"] == "Amazon")
    assert amazon["stock"] == "in_stock"


def test_refresh_prices_keeps_prices_when_sources_are_empty(client, seeded, monkeypatch):
    monkeypatch.setattr(pricing_apis, "PRICING_SOURCES", [("Empty", lambda upc, name=None: [])])

    body = client.post(f"/api/products/{COKE}/refresh-prices").json()

    assert body["bestPrice"] == "$1.89"
    assert len(body["prices"]) == 3
    assert body["sources"] == []


def test_refresh_prices_unknown_product(client):
    assert client.post("/api/products/000/refresh-prices").status_code == 404


def test_create_price_and_retailers(seeded):
    with SessionLocal() as db:
        product = CRUD.get_product_by_barcode(db, IPHONE)
        costco = CRUD.get_or_create_retailer(db, "Costco")
        db.commit()
        CRUD.create_price(db, product.id, costco.id, "$1,149.00", stock="In Stock")
        db.refresh(product)

        assert len(product.prices) == 4
        assert CRUD.get_or_create_retailer(db, "Costco").id == costco.id
        assert [r.name for r in CRUD.get_all_retailers(db)] == ["Target", "Walmart", "Amazon", "Costco"]


def test_status_db(client):
    resp = client.get("/api/status_DB")
    assert resp.status_code == 200
    assert resp.json()["DB_dialect"] == "sqlite"


def test_import_downloads_feed_when_body_is_empty(client, fake_http):
    fake_http.route(
        "feeds.example.com/products.json",
        {"Products": [{"barcode": "5449000000996", "name": "Coca-Cola 330ml", "brand": "Coca-Cola"}]},
    )

    resp = client.post("/api/products/import", params={"url": "https://feeds.example.com/products.json"})
    assert resp.status_code == 200
    assert resp.json()["message"] == "Total updated: 1"
    assert client.get("/api/products/5449000000996").json()["brand"] == "Coca-Cola"


def test_import_feed_download_failure(client):
    resp = client.post("/api/products/import", params={"url": "https://feeds.example.com/down.json"})
    assert resp.status_code == 502
    assert client.post("/api/products/import").status_code == 400


def test_create_db_is_idempotent(client):
    resp = client.post("/api/create_DB")
    assert resp.status_code == 200
    assert resp.json()["transaction"] == "Database created successfully"


def test_import_skips_malformed_offers(client):
    feed = {
        "Products": [
            {
                "barcode": "5000112637922",
                "name": "Sprite",
                "prices": ["$2.00", None, {"retailer": "Target", "price": "$1.79"}],
            }
        ]
    }
    resp = client.post("/api/products/import", json=feed)
    assert resp.status_code == 200

    sprite = client.get("/api/products/5000112637922").json()
    assert [(p["retailer"]["name"], p["price"]) for p in sprite["prices"]] == [("Target", "$1.79")]


def test_routes_with_outbound_calls_run_in_the_threadpool():
    for route in (endpoints.import_products, endpoints.refresh_product_prices, endpoints.scan, chat.chat):
        assert not inspect.iscoroutinefunction(route)
