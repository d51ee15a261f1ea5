import pytest

CONTACT = {"name": "Ana Lee", "email": "ana@example.com", "phone": "555-0100"}


@pytest.fixture
def place(client, user, product):
    _, headers = user

    def _place(items=None, headers=headers, **fields):
        payload = {
            "items": items if items is not None else [{"product": product["id"], "quantity": 2}],
            "shipping_address": "12 Bark Street",
            "contact_info": CONTACT,
            **fields,
        }
        return client.post("/api/orders", json=payload, headers=headers)

    return _place


def test_total_is_computed_from_catalog(place, product):
    res = place(items=[{"product": product["id"], "quantity": 2, "price": 0.01}], total_amount=1)
    assert res.status_code == 201
    order = res.json()["order"]
    assert res.json()["success"] is True
    assert order["total_amount"] == 20.0
    assert order["items"] == [{"product": product["id"], "quantity": 2, "price": 10.0}]
    assert order["status"] == "Pending"
    assert order["payment_method"] == "Cash on Delivery"


def test_total_sums_multiple_lines(client, admin, place, product):
    other = client.post(
        "/api/products", json={"name": "Catnip", "price": 3.25, "category": "Toys"}, headers=admin[1]
    ).json()["product"]
    res = place(items=[{"product": product["id"], "quantity": 1}, {"product": other["id"], "quantity": 3}])
    assert res.json()["order"]["total_amount"] == 19.75


def test_sub_cent_prices_captured_in_cents(client, admin, place):
    ids = []
    for name, price in [("Treat Crumbs", 0.333), ("Tennis Ball", 1.1)]:
        created = client.post("/api/products", json={"name": name, "price": price, "category": "Toys"}, headers=admin[1])
        ids.append(created.json()["product"]["id"])

    order = place(items=[{"product": pid, "quantity": 3} for pid in ids]).json()["order"]
    assert [i["price"] for i in order["items"]] == [0.33, 1.1]
    assert order["total_amount"] == 4.29
    line_sum = sum(i["price"] * i["quantity"] for i in order["items"])
    assert order["total_amount"] == round(line_sum, 2)


def test_contact_info_required(place):
    res = place(contact_info={"name": "Ana", "email": "ana@example.com"})
    assert res.status_code == 400
    assert res.json() == {"success": False, "message": "Contact information is required"}


def test_unknown_product(place):
    res = place(items=[{"product": "64b7f0000000000000000000", "quantity": 1}])
    assert res.status_code == 404
    assert res.json()["message"] == "Product not found: 64b7f0000000000000000000"


def test_empty_order_rejected(place):
    assert place(items=[]).status_code == 400


def test_my_orders_join_products(client, place, user, register):
    place()
    mine = client.get("/api/orders/myorders", headers=user[1]).json()
    assert mine["success"] is True
    assert len(mine["orders"]) == 1
    assert mine["orders"][0]["items"][0]["product"]["name"] == "Chew Bone"

    _, other_headers = register()
    assert client.get("/api/orders/myorders", headers=other_headers).json()["orders"] == []


def test_line_item_price_survives_catalog_change(client, place, user, admin, product):
    order = place().json()["order"]
    client.put(f"/api/products/{product['id']}", json={"price": 99}, headers=admin[1])
    fetched = client.get(f"/api/orders/{order['id']}", headers=user[1]).json()["order"]
    assert fetched["total_amount"] == 20.0
    assert fetched["items"][0]["price"] == 10.0
    assert fetched["items"][0]["product"]["price"] == 99


def test_get_order_owner_only(client, place, register):
    order = place().json()["order"]
    _, stranger = register()
    res = client.get(f"/api/orders/{order['id']}", headers=stranger)
    assert res.status_code == 403
    assert res.json()["message"] == "Not authorized to access this order"


def test_list_all_admin_only(client, place, user, admin):
    place()
    assert client.get("/api/orders", headers=user[1]).status_code == 403
    assert len(client.get("/api/orders", headers=admin[1]).json()["orders"]) == 1


def test_update_status(client, place, admin):
    order = place().json()["order"]
    url = f"/api/orders/{order['id']}/status"
    bad = client.put(url, json={"status": "shipped"}, headers=admin[1])
    assert bad.status_code == 400
    assert bad.json()["message"] == "Invalid status"
    ok = client.put(url, json={"status": "Shipped"}, headers=admin[1])
    assert ok.json()["order"]["status"] == "Shipped"


def test_update_notes_and_status(client, place, admin):
    order = place().json()["order"]
    url = f"/api/orders/{order['id']}"
    res = client.put(url, json={"delivery_notes": "Ring twice"}, headers=admin[1]).json()["order"]
    assert res["delivery_notes"] == "Ring twice"
    assert res["status"] == "Pending"
    assert client.put(url, json={"status": "Lost"}, headers=admin[1]).status_code == 400


def test_delete_only_pending_or_cancelled(client, place, user, admin):
    order = place().json()["order"]
    client.put(f"/api/orders/{order['id']}/status", json={"status": "Shipped"}, headers=admin[1])
    res = client.delete(f"/api/orders/{order['id']}", headers=user[1])
    assert res.status_code == 400
    assert res.json()["message"] == "Can only delete pending or cancelled orders"

    client.put(f"/api/orders/{order['id']}/status", json={"status": "Cancelled"}, headers=admin[1])
    assert client.delete(f"/api/orders/{order['id']}", headers=user[1]).json()["success"] is True
    assert client.get(f"/api/orders/{order['id']}", headers=user[1]).status_code == 404


def test_delete_pending_order(client, place, user):
    order = place().json()["order"]
    assert client.delete(f"/api/orders/{order['id']}", headers=user[1]).status_code == 200
