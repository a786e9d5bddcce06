import pytest

from _helper import auth_headers
from pizzeria.order_state import OrderStatus

ORDER = {
    "items": [
        {"id": 1, "name": "Margherita", "price": 12.99, "quantity": 2},
        {"pizza_id": 2, "pizza_name": "Pepperoni", "unit_price": "15.50"},
    ],
    "deliveryAddress": "1 Main St",
    "totalAmount": 41.48,
}


async def place(client, user, body=None):
    resp = await client.post("/api/orders", json=body or ORDER, headers=auth_headers(user))
    assert resp.status_code == 201, resp.text
    return resp.json()


async def test_create_order(client, alice, scheduler):
    order = await place(client, alice)
    assert order["status"] == "pending"
    assert order["user_id"] == alice.id
    assert order["customer_name"] == "Alice"
    assert order["customer_email"] == "alice@example.com"
    assert order["delivery_address"] == "1 Main St"
    assert order["total_amount"] == 41.48
    assert [i["name"] for i in order["items"]] == ["Margherita", "Pepperoni"]
    assert order["items"][0]["total_price"] == 25.98
    assert order["items"][1]["quantity"] == 1
    assert order["estimated_delivery_at"] is not None
    # one simulated courier callback per order
    assert scheduler.pending == 1


@pytest.mark.parametrize("missing", ["items", "deliveryAddress", "totalAmount"])
async def test_create_order_missing_field(client, alice, missing, order_repo):
    body = {k: v for k, v in ORDER.items() if k != missing}
    resp = await client.post("/api/orders", json=body, headers=auth_headers(alice))
    assert resp.status_code == 400
    assert missing in resp.json()["message"]
    assert await order_repo.count_documents() == 0


async def test_create_order_total_must_match_items(client, alice, order_repo):
    resp = await client.post("/api/orders", json={**ORDER, "totalAmount": 1.00}, headers=auth_headers(alice))
    assert resp.status_code == 400
    assert "does not match" in resp.json()["message"]
    assert await order_repo.count_documents() == 0


@pytest.mark.parametrize("patch,field", [
    ({"totalAmount": None}, "totalAmount"),
    ({"totalAmount": "abc"}, "totalAmount"),
    ({"totalAmount": "NaN"}, "totalAmount"),
    ({"totalAmount": "Infinity"}, "totalAmount"),
    ({"totalAmount": 1e12}, "totalAmount"),
    ({"items": [{"id": 1, "name": "Margherita", "price": None}]}, "items"),
    ({"items": [{"id": 1, "name": "Margherita", "price": "abc"}]}, "items"),
    ({"items": [{"id": 3000000000, "name": "Margherita", "price": 1}]}, "items"),
    ({"items": [{"id": 1, "name": "Margherita", "price": 1, "quantity": 3000000000}]}, "items"),
])
async def test_create_order_malformed_field(client, alice, order_repo, patch, field):
    resp = await client.post("/api/orders", json={**ORDER, **patch}, headers=auth_headers(alice))
    assert resp.status_code == 400
    assert field in resp.json()["message"]
    assert await order_repo.count_documents() == 0


async def test_create_order_failure_leaves_nothing(client, alice, order_repo, scheduler):
    """
    Route behaviour when creation fails part-way: 500, nothing listed, no courier callback. The in-memory
    repository only imitates the rollback; the real transaction is covered against Postgres in
    test_order_repository_pg.test_failed_line_item_rolls_back_everything.
    """
    order_repo.fail_on_item = 2
    resp = await client.post("/api/orders", json=ORDER, headers=auth_headers(alice))
    assert resp.status_code == 500
    assert resp.json() == {"message": "Failed to create order"}
    assert await order_repo.count_documents() == 0
    assert scheduler.pending == 0


async def test_create_order_requires_auth(client):
    resp = await client.post("/api/orders", json=ORDER)
    assert resp.status_code == 401
    assert resp.json()["message"] == "No token provided"


@pytest.mark.parametrize("header,message", [
    ("Basic abc", "Invalid token format"),
    ("Bearer garbage", "Token verification failed"),
])
async def test_bad_tokens(client, header, message):
    resp = await client.get("/api/orders/mine", headers={"Authorization": header})
    assert resp.status_code == 401
    assert resp.json()["message"] == message


async def test_expired_token(client, alice):
    resp = await client.get("/api/orders/mine", headers=auth_headers(alice, expires_minutes=-5))
    assert resp.status_code == 401
    assert resp.json()["message"] == "Token expired"


async def test_deleted_user_token(client, alice, user_repo):
    headers = auth_headers(alice)
    del user_repo.rows[alice.id]
    resp = await client.get("/api/orders/mine", headers=headers)
    assert resp.status_code == 401
    assert resp.json()["message"] == "User not found"


async def test_my_orders_only_lists_own(client, alice, bob):
    first = await place(client, alice)
    second = await place(client, alice)
    await place(client, bob)
    resp = await client.get("/api/orders/mine", headers=auth_headers(alice))
    assert resp.status_code == 200
    assert [o["id"] for o in resp.json()] == [second["id"], first["id"]]


async def test_get_order_owner_other_and_missing(client, alice, bob, admin):
    order = await place(client, alice)
    assert (await client.get(f"/api/orders/{order['id']}", headers=auth_headers(alice))).status_code == 200
    resp = await client.get(f"/api/orders/{order['id']}", headers=auth_headers(bob))
    assert resp.status_code == 403
    assert resp.json()["message"] == "Access denied"
    assert (await client.get(f"/api/orders/{order['id']}", headers=auth_headers(admin))).status_code == 200
    resp = await client.get("/api/orders/424242", headers=auth_headers(alice))
    assert resp.status_code == 404


async def test_get_order_bad_id(client, alice):
    resp = await client.get("/api/orders/abc", headers=auth_headers(alice))
    assert resp.status_code == 400


@pytest.mark.parametrize("order_id", [0, 3000000000])
async def test_order_id_outside_int4_range(client, alice, admin, order_id):
    assert (await client.get(f"/api/orders/{order_id}", headers=auth_headers(alice))).status_code == 400
    resp = await client.post(f"/api/orders/{order_id}/cancel", headers=auth_headers(alice))
    assert resp.status_code == 400
    resp = await client.patch(
        f"/api/admin/orders/{order_id}/status", json={"status": "confirmed"}, headers=auth_headers(admin)
    )
    assert resp.status_code == 400


async def test_update_order_while_modifiable(client, alice, order_repo):
    order = await place(client, alice)
    resp = await client.patch(
        f"/api/orders/{order['id']}",
        json={"deliveryAddress": "9 New Rd", "paymentMethod": "card"},
        headers=auth_headers(alice),
    )
    assert resp.status_code == 200
    assert resp.json()["delivery_address"] == "9 New Rd"
    stored = await order_repo.find_by_id(order["id"])
    assert stored.payment_method == "card"
    assert stored.status == OrderStatus.PENDING


async def test_update_order_after_kitchen_started(client, alice, order_repo):
    order = await place(client, alice)
    entity = await order_repo.find_by_id(order["id"])
    await order_repo.update_status(entity, "confirmed")
    await order_repo.update_status(entity, "preparing")
    resp = await client.patch(
        f"/api/orders/{order['id']}", json={"deliveryAddress": "9 New Rd"}, headers=auth_headers(alice)
    )
    assert resp.status_code == 409
    assert (await order_repo.find_by_id(order["id"])).delivery_address == "1 Main St"


async def test_update_order_never_undoes_concurrent_transition(client, alice, order_repo, monkeypatch):
    order = await place(client, alice)
    load = order_repo.find_by_id

    async def load_then_confirm(order_id):
        # the courier webhook confirms the order right after the PATCH handler loaded it
        loaded = await load(order_id)
        await order_repo.update_status(await load(order_id), "confirmed")
        return loaded

    monkeypatch.setattr(order_repo, "find_by_id", load_then_confirm)
    resp = await client.patch(
        f"/api/orders/{order['id']}", json={"deliveryAddress": "9 New Rd"}, headers=auth_headers(alice)
    )
    assert resp.status_code == 409
    assert "pending to confirmed" in resp.json()["message"]
    stored = await load(order["id"])
    assert stored.status == OrderStatus.CONFIRMED
    assert stored.delivery_address == "1 Main St"


async def test_cancel_order(client, alice, bob):
    order = await place(client, alice)
    assert (await client.post(f"/api/orders/{order['id']}/cancel", headers=auth_headers(bob))).status_code == 403
    resp = await client.post(f"/api/orders/{order['id']}/cancel", headers=auth_headers(alice))
    assert resp.status_code == 200
    assert resp.json()["status"] == "cancelled"
    resp = await client.post(f"/api/orders/{order['id']}/cancel", headers=auth_headers(alice))
    assert resp.status_code == 409


async def test_admin_lists_all_orders_with_users(client, alice, bob, admin):
    await place(client, alice)
    await place(client, bob)
    resp = await client.get("/api/admin/orders", headers=auth_headers(admin))
    assert resp.status_code == 200
    orders = resp.json()
    assert len(orders) == 2
    assert {o["user"]["email"] for o in orders} == {"alice@example.com", "bob@example.com"}
    assert all("password" not in o["user"] for o in orders)


async def test_admin_orders_grouped_by_status(client, alice, admin, order_repo):
    first = await place(client, alice)
    await place(client, alice)
    entity = await order_repo.find_by_id(first["id"])
    await order_repo.update_status(entity, "confirmed")
    resp = await client.get("/api/admin/orders", headers=auth_headers(admin))
    assert [o["status"] for o in resp.json()] == ["confirmed", "pending"]
    resp = await client.get("/api/admin/orders", params={"status": "pending"}, headers=auth_headers(admin))
    assert [o["status"] for o in resp.json()] == ["pending"]


async def test_admin_routes_forbidden_for_users(client, alice):
    resp = await client.get("/api/admin/orders", headers=auth_headers(alice))
    assert resp.status_code == 403
    assert resp.json()["message"] == "Admin access required"


async def test_admin_status_change(client, alice, admin, order_repo):
    order = await place(client, alice)
    url = f"/api/admin/orders/{order['id']}/status"
    resp = await client.patch(url, json={"status": "confirmed"}, headers=auth_headers(admin))
    assert resp.status_code == 200
    assert resp.json()["status"] == "confirmed"
    resp = await client.patch(url, json={"status": "delivered"}, headers=auth_headers(admin))
    assert resp.status_code == 409
    assert (await order_repo.find_by_id(order["id"])).status == OrderStatus.CONFIRMED
    resp = await client.patch("/api/admin/orders/999/status", json={"status": "confirmed"}, headers=auth_headers(admin))
    assert resp.status_code == 404


async def test_my_orders_page_out_of_range(client, alice):
    resp = await client.get("/api/orders/mine", params={"page": 10**20}, headers=auth_headers(alice))
    assert resp.status_code == 400
