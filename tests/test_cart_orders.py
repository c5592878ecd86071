from app.core.roles import UserRole
from app.models import Product


def _stock(db, product):
    db.expire_all()
    return db.get(Product, product.id).stock_count


def test_cart_merges_lines_and_totals(client, make_user, make_product):
    _, headers = make_user("buyer@example.com")
    product = make_product(price=100.0)

    client.post("/api/cart/items", json={"productId": str(product.id), "quantity": 1}, headers=headers)
    added = client.post("/api/cart/items", json={"productId": str(product.id), "quantity": 2}, headers=headers)
    assert added.status_code == 201

    cart = client.get("/api/cart", headers=headers).json()["data"]
    assert len(cart["items"]) == 1
    assert cart["items"][0]["quantity"] == 3
    assert cart["items"][0]["subtotal"] == 300.0
    assert cart["total"] == 300.0


def test_cart_update_remove_and_clear(client, make_user, make_product):
    _, headers = make_user("buyer@example.com")
    first = make_product(name="A", price=10.0)
    second = make_product(name="B", price=20.0)
    client.post("/api/cart/items", json={"productId": str(first.id)}, headers=headers)
    cart = client.post("/api/cart/items", json={"productId": str(second.id)}, headers=headers).json()["data"]
    line_id = next(item["id"] for item in cart["items"] if item["name"] == "A")

    updated = client.put(f"/api/cart/items/{line_id}", json={"quantity": 4}, headers=headers).json()["data"]
    assert updated["total"] == 60.0

    removed = client.delete(f"/api/cart/items/{line_id}", headers=headers).json()["data"]
    assert [item["name"] for item in removed["items"]] == ["B"]

    cleared = client.delete("/api/cart", headers=headers).json()["data"]
    assert cleared == {"items": [], "total": 0}


def test_cart_lines_are_private(client, make_user, make_product):
    _, owner = make_user("buyer@example.com")
    _, other = make_user("other@example.com")
    product = make_product()
    cart = client.post("/api/cart/items", json={"productId": str(product.id)}, headers=owner).json()["data"]
    line_id = cart["items"][0]["id"]
    assert client.delete(f"/api/cart/items/{line_id}", headers=other).status_code == 404


def test_order_decrements_stock(client, db, make_user, make_product):
    _, headers = make_user("buyer@example.com")
    product = make_product(price=250.0, stock_count=5)

    response = client.post(
        "/api/orders",
        json={"items": [{"productId": str(product.id), "quantity": 2}], "shippingAddress": "1 Main St"},
        headers=headers,
    )
    assert response.status_code == 201
    order = response.json()["data"]["order"]
    assert order["status"] == "PENDING"
    assert order["total"] == 500.0
    assert order["shippingAddress"] == "1 Main St"
    assert order["items"][0]["quantity"] == 2
    assert order["items"][0]["unitPrice"] == 250.0
    assert _stock(db, product) == 3


def test_order_with_insufficient_stock_changes_nothing(client, db, make_user, make_product):
    _, headers = make_user("buyer@example.com")
    plenty = make_product(name="Plenty", stock_count=10)
    scarce = make_product(name="Scarce", stock_count=1)

    response = client.post(
        "/api/orders",
        json={
            "items": [
                {"productId": str(plenty.id), "quantity": 2},
                {"productId": str(scarce.id), "quantity": 2},
            ]
        },
        headers=headers,
    )
    assert response.status_code == 400
    assert response.json()["message"] == "Insufficient stock for Scarce"
    assert _stock(db, plenty) == 10
    assert _stock(db, scarce) == 1
    assert client.get("/api/orders", headers=headers).json()["data"]["orders"] == []


def test_order_from_cart_clears_cart(client, db, make_user, make_product):
    _, headers = make_user("buyer@example.com")
    product = make_product(price=40.0, stock_count=4)
    client.post("/api/cart/items", json={"productId": str(product.id), "quantity": 3}, headers=headers)

    response = client.post("/api/orders", json={}, headers=headers)
    assert response.status_code == 201
    assert response.json()["data"]["order"]["total"] == 120.0
    assert client.get("/api/cart", headers=headers).json()["data"]["items"] == []
    assert _stock(db, product) == 1


def test_order_from_empty_cart_is_rejected(client, make_user):
    _, headers = make_user("buyer@example.com")
    response = client.post("/api/orders", json={}, headers=headers)
    assert response.status_code == 400
    assert response.json()["message"] == "Cart is empty"


def test_cancel_restocks(client, db, make_user, make_product):
    _, headers = make_user("buyer@example.com")
    product = make_product(stock_count=3)
    order = client.post(
        "/api/orders", json={"items": [{"productId": str(product.id), "quantity": 3}]}, headers=headers
    ).json()["data"]["order"]
    assert _stock(db, product) == 0

    cancelled = client.post(f"/api/orders/{order['id']}/cancel", headers=headers)
    assert cancelled.status_code == 200
    assert cancelled.json()["data"]["order"]["status"] == "CANCELLED"
    assert _stock(db, product) == 3

    again = client.post(f"/api/orders/{order['id']}/cancel", headers=headers)
    assert again.status_code == 400
    assert _stock(db, product) == 3


def test_shipped_order_cannot_be_cancelled(client, make_user, make_product):
    _, buyer = make_user("buyer@example.com")
    _, admin = make_user("admin@example.com", role=UserRole.ADMIN)
    product = make_product()
    order = client.post(
        "/api/orders", json={"items": [{"productId": str(product.id), "quantity": 1}]}, headers=buyer
    ).json()["data"]["order"]

    shipped = client.put(f"/api/orders/{order['id']}/status", json={"status": "SHIPPED"}, headers=admin)
    assert shipped.status_code == 200
    assert shipped.json()["data"]["order"]["status"] == "SHIPPED"

    assert client.post(f"/api/orders/{order['id']}/cancel", headers=buyer).status_code == 400
    assert client.put(f"/api/orders/{order['id']}/status", json={"status": "DELIVERED"}, headers=buyer).status_code == 403


def test_orders_are_owner_scoped(client, make_user, make_product):
    _, buyer = make_user("buyer@example.com")
    _, other = make_user("other@example.com")
    _, admin = make_user("admin@example.com", role=UserRole.ADMIN)
    product = make_product()
    order = client.post(
        "/api/orders", json={"items": [{"productId": str(product.id), "quantity": 1}]}, headers=buyer
    ).json()["data"]["order"]

    assert client.get(f"/api/orders/{order['id']}", headers=other).status_code == 404
    assert client.get(f"/api/orders/{order['id']}", headers=admin).status_code == 200
    assert client.get("/api/orders", headers=other).json()["data"]["pagination"]["total"] == 0
    assert client.get("/api/orders", params={"all": "true"}, headers=admin).json()["data"]["pagination"]["total"] == 1
