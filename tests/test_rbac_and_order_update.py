import time

from fooddelivery.auth import Role, TokenService

from conftest import bearer

CART = [{"price": 10, "title": "Margherita"}, {"price": 5.5, "title": "Cola"}]


def test_catalog_writes_require_admin(client, user_token):
    payload = {"title": "Noodle Bar", "address": "9 Pine St"}

    r = client.post("/restaurant/create", json=payload)
    assert r.status_code == 401

    # a plain user is authenticated but not an admin
    r = client.post("/restaurant/create", json=payload, headers=bearer(user_token))
    assert r.status_code == 403
    assert r.json()["success"] is False


def test_expired_token_rejected(client, admin_token):
    tokens = TokenService("test-secret")
    admin_id = tokens.verify(admin_token)["id"]
    stale = tokens.issue(admin_id, Role.ADMIN, issued_at=int(time.time()) - 8 * 24 * 60 * 60)
    r = client.post("/category/create", json={"title": "Pizza"}, headers=bearer(stale))
    assert r.status_code == 401
    assert "expired" in r.json()["message"].lower()


def test_place_order_and_update_status(client, user_token, admin_token):
    r = client.post("/food/placeorder", json={"cart": CART}, headers=bearer(user_token))
    assert r.status_code == 201
    order = r.json()["order"]
    assert order["payment"] == 15.5
    assert order["foods"] == CART
    assert order["status"] == "placed"

    # users cannot move their own order along
    r = client.post(f"/food/orderstatus/{order['id']}", json={"status": "delivered"}, headers=bearer(user_token))
    assert r.status_code == 403

    r = client.post(f"/food/orderstatus/{order['id']}", json={"status": "delivered"}, headers=bearer(admin_token))
    assert r.status_code == 200
    updated = r.json()["order"]
    assert updated["status"] == "delivered"
    assert {k: v for k, v in updated.items() if k != "status"} == {k: v for k, v in order.items() if k != "status"}


def test_order_status_validation(client, user_token, admin_token):
    order = client.post("/food/placeorder", json={"cart": CART}, headers=bearer(user_token)).json()["order"]
    h = bearer(admin_token)

    r = client.post(f"/food/orderstatus/{order['id']}", json={"status": "teleported"}, headers=h)
    assert r.status_code == 400

    assert client.post(f"/food/orderstatus/{order['id']}", json={"status": "preparing"}, headers=h).status_code == 200
    r = client.post(f"/food/orderstatus/{order['id']}", json={"status": "placed"}, headers=h)
    assert r.status_code == 409

    r = client.post("/food/orderstatus/does-not-exist", json={"status": "preparing"}, headers=h)
    assert r.status_code == 404


def test_place_order_requires_cart(client, user_token):
    h = bearer(user_token)
    assert client.post("/food/placeorder", json={}, headers=h).status_code == 400
    assert client.post("/food/placeorder", json={"cart": []}, headers=h).status_code == 400
    # every line needs a price
    assert client.post("/food/placeorder", json={"cart": [{"title": "x"}]}, headers=h).status_code == 400


def test_place_order_requires_login(client):
    r = client.post("/food/placeorder", json={"cart": CART})
    assert r.status_code == 401


def test_list_my_orders(client, user_token):
    h = bearer(user_token)
    client.post("/food/placeorder", json={"cart": CART}, headers=h)
    client.post("/food/placeorder", json={"cart": CART[:1]}, headers=h)

    r = client.get("/food/orders", headers=h)
    assert r.status_code == 200
    payments = sorted(o["payment"] for o in r.json()["orders"])
    assert payments == [10, 15.5]


def test_order_total_overflow_is_rejected(client, user_token):
    h = bearer(user_token)
    r = client.post("/food/placeorder", json={"cart": [{"price": 1e308}, {"price": 1e308}]}, headers=h)
    assert r.status_code == 400
    assert r.json()["success"] is False

    # 1e309 parses to inf
    r = client.post(
        "/food/placeorder",
        content='{"cart": [{"price": 1e309}]}',
        headers={**h, "Content-Type": "application/json"},
    )
    assert r.status_code == 400

    r = client.get("/food/orders", headers=h)
    assert r.status_code == 200
    assert r.json()["orders"] == []
