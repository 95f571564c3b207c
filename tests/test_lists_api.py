from starlette.testclient import TestClient

from pricescan.main import app

COKE = "789012345678"
IPHONE = "123456789012"


def _product_id(client, barcode):
    return client.get(f"/api/products/{barcode}").json()["id"]


def test_favorites_round_trip(client, seeded, login):
    login("u1")
    coke_id = _product_id(client, COKE)
    iphone_id = _product_id(client, IPHONE)

    resp = client.post("/api/favorites", json={"productId": coke_id})
    assert resp.status_code == 200
    fav = resp.json()
    assert fav["userId"] == "u1"
    assert fav["product"]["name"] == "Coca-Cola Classic"
    client.post("/api/favorites", json={"productId": iphone_id})

    favorites = client.get("/api/favorites").json()
    assert [f["productId"] for f in favorites] == [coke_id, iphone_id]

    assert client.delete(f"/api/favorites/{coke_id}").json() == {"success": True}
    assert [f["productId"] for f in client.get("/api/favorites").json()] == [iphone_id]

    login("u2")
    assert client.get("/api/favorites").json() == []


def test_favorite_for_missing_product_is_404(client):
    resp = client.post("/api/favorites", json={"productId": 404})
    assert resp.status_code == 404
    assert resp.json()["detail"] == "Product 404 not found"


def test_shopping_list_round_trip(client, seeded):
    coke_id = _product_id(client, COKE)

    resp = client.post("/api/shopping-list", json={"productId": coke_id})
    assert resp.status_code == 200
    item = resp.json()
    assert item["quantity"] == 1
    assert item["completed"] is False
    assert item["unitPrice"] is None

    resp = client.patch(
        f"/api/shopping-list/{item['id']}",
        json={"quantity": 3, "completed": True, "unitPrice": 1.5},
    )
    assert resp.status_code == 200
    updated = resp.json()
    assert updated["quantity"] == 3
    assert updated["completed"] is True
    assert updated["unitPrice"] == "1.50"

    items = client.get("/api/shopping-list").json()
    assert [i["id"] for i in items] == [item["id"]]
    assert items[0]["product"]["barcode"] == COKE

    assert client.delete(f"/api/shopping-list/{item['id']}").json() == {"success": True}
    assert client.get("/api/shopping-list").json() == []


def test_shopping_list_missing_items(client, seeded):
    assert client.patch("/api/shopping-list/77", json={"quantity": 2}).status_code == 404
    resp = client.delete("/api/shopping-list/77")
    assert resp.status_code == 404
    assert resp.json()["detail"] == "Shopping list item not found"
    assert client.post("/api/shopping-list", json={"productId": 999}).status_code == 404


def test_shopping_list_rejects_zero_quantity(client, seeded):
    coke_id = _product_id(client, COKE)
    assert client.post("/api/shopping-list", json={"productId": coke_id, "quantity": 0}).status_code == 422


def test_anonymous_visitor_cannot_see_or_clear_user_data(client, seeded, login):
    login("u1")
    coke_id = _product_id(client, COKE)
    client.post("/api/scan", json={"barcode": COKE})
    client.post("/api/favorites", json={"productId": coke_id})
    client.post("/api/shopping-list", json={"productId": coke_id, "quantity": 2})

    with TestClient(app) as anonymous:
        assert anonymous.get("/api/history").json() == []
        assert anonymous.get("/api/favorites").json() == []
        assert anonymous.get("/api/shopping-list").json() == []
        assert anonymous.get("/api/analytics").json()["totalScans"] == 0

        anonymous.post("/api/favorites", json={"productId": coke_id})
        assert anonymous.delete("/api/history").status_code == 200
        assert anonymous.delete(f"/api/favorites/{coke_id}").status_code == 200
        assert anonymous.get("/api/favorites").json() == []

    assert len(client.get("/api/history").json()) == 1
    assert [f["productId"] for f in client.get("/api/favorites").json()] == [coke_id]
    assert [i["quantity"] for i in client.get("/api/shopping-list").json()] == [2]


def test_body_user_id_does_not_pick_the_owner(client, seeded):
    coke_id = _product_id(client, COKE)
    resp = client.post("/api/shopping-list", json={"productId": coke_id, "userId": "u1"})
    assert resp.json()["userId"] is None
    fav = client.post("/api/favorites", json={"productId": coke_id, "userId": "u1"}).json()
    assert fav["userId"] is None


def test_shopping_list_items_belong_to_their_owner(client, seeded, login):
    login("u1")
    item = client.post("/api/shopping-list", json={"productId": _product_id(client, COKE)}).json()

    login("u2")
    assert client.patch(f"/api/shopping-list/{item['id']}", json={"quantity": 9}).status_code == 404
    resp = client.delete(f"/api/shopping-list/{item['id']}")
    assert resp.status_code == 404
    assert resp.json()["detail"] == "Shopping list item not found"

    with TestClient(app) as anonymous:
        assert anonymous.delete(f"/api/shopping-list/{item['id']}").status_code == 404

    login("u1")
    items = client.get("/api/shopping-list").json()
    assert [(i["id"], i["quantity"]) for i in items] == [(item["id"], 1)]
