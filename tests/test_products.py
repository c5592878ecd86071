from app.core.roles import UserRole


PRODUCT = {
    "name": "Sentinel X1",
    "description": "Autonomous security patrol robot",
    "price": 1299.99,
    "category": "SECURITY",
    "features": ["Night vision", "Auto docking"],
    "stockCount": 3,
}


def test_admin_creates_product(client, make_user):
    _, admin = make_user("admin@example.com", role=UserRole.ADMIN)
    response = client.post("/api/products", json=PRODUCT, headers=admin)
    assert response.status_code == 201
    product = response.json()["data"]["product"]
    assert product["name"] == "Sentinel X1"
    assert product["price"] == 1299.99
    assert product["stockCount"] == 3
    assert product["inStock"] is True
    assert product["rating"] == 0
    assert product["reviewCount"] == 0


def test_customers_and_technicians_cannot_manage_products(client, make_user, make_product):
    _, customer = make_user("customer@example.com")
    _, technician = make_user("tech@example.com", role=UserRole.TECHNICIAN)
    product = make_product()

    assert client.post("/api/products", json=PRODUCT, headers=customer).status_code == 403
    assert client.post("/api/products", json=PRODUCT, headers=technician).status_code == 403
    assert client.put(f"/api/products/{product.id}", json={"price": 1}, headers=customer).status_code == 403
    assert client.delete(f"/api/products/{product.id}", headers=customer).status_code == 403
    assert client.post("/api/products", json=PRODUCT).status_code == 401


def test_catalog_is_public_and_filtered(client, make_product):
    make_product(name="Sentinel X1", price=1299.0, category="SECURITY")
    make_product(name="Helper Mini", price=199.0, category="ASSISTANT", stock_count=0)
    make_product(name="Sky Scout", price=899.0, category="DRONE")
    make_product(name="Retired", price=10.0, is_active=False)

    listing = client.get("/api/products").json()["data"]
    assert listing["pagination"]["total"] == 3

    drones = client.get("/api/products", params={"category": "DRONE"}).json()["data"]["products"]
    assert [p["name"] for p in drones] == ["Sky Scout"]

    mid = client.get("/api/products", params={"minPrice": 500, "maxPrice": 1000}).json()["data"]["products"]
    assert [p["name"] for p in mid] == ["Sky Scout"]

    available = client.get("/api/products", params={"inStock": "true"}).json()["data"]["products"]
    assert {p["name"] for p in available} == {"Sentinel X1", "Sky Scout"}

    by_price = client.get("/api/products", params={"sortBy": "price", "sortOrder": "asc"}).json()["data"]
    assert [p["name"] for p in by_price["products"]] == ["Helper Mini", "Sky Scout", "Sentinel X1"]

    search = client.get("/api/products", params={"search": "helper"}).json()["data"]["products"]
    assert [p["name"] for p in search] == ["Helper Mini"]


def test_unknown_product_is_404(client):
    assert client.get("/api/products/00000000-0000-0000-0000-000000000000").status_code == 404
    assert client.get("/api/products/nope").status_code == 404


def test_admin_updates_stock(client, make_user, make_product):
    _, admin = make_user("admin@example.com", role=UserRole.ADMIN)
    product = make_product(stock_count=2)
    response = client.put(f"/api/products/{product.id}", json={"stockCount": 0, "badge": "Sold out"}, headers=admin)
    assert response.status_code == 200
    updated = response.json()["data"]["product"]
    assert updated["stockCount"] == 0
    assert updated["inStock"] is False
    assert updated["badge"] == "Sold out"


def test_admin_deletes_product(client, make_user, make_product):
    _, admin = make_user("admin@example.com", role=UserRole.ADMIN)
    product = make_product()
    assert client.delete(f"/api/products/{product.id}", headers=admin).status_code == 200
    assert client.get(f"/api/products/{product.id}").status_code == 404


def test_reviews_recompute_rating(client, make_user, make_product):
    product = make_product()
    _, first = make_user("first@example.com")
    _, second = make_user("second@example.com")
    path = f"/api/products/{product.id}/reviews"

    assert client.post(path, json={"rating": 5, "title": "Great"}, headers=first).status_code == 201
    assert client.post(path, json={"rating": 4}, headers=second).status_code == 201

    detail = client.get(f"/api/products/{product.id}").json()["data"]["product"]
    assert detail["rating"] == 4.5
    assert detail["reviewCount"] == 2
    assert len(detail["reviews"]) == 2

    reviews = client.get(path).json()["data"]
    assert reviews["pagination"]["total"] == 2


def test_duplicate_review_is_rejected(client, make_user, make_product):
    product = make_product()
    _, headers = make_user("first@example.com")
    path = f"/api/products/{product.id}/reviews"

    assert client.post(path, json={"rating": 3}, headers=headers).status_code == 201
    duplicate = client.post(path, json={"rating": 5}, headers=headers)
    assert duplicate.status_code == 400
    assert duplicate.json()["message"] == "You have already reviewed this product"


def test_review_rating_must_be_in_range(client, make_user, make_product):
    product = make_product()
    _, headers = make_user("first@example.com")
    response = client.post(f"/api/products/{product.id}/reviews", json={"rating": 6}, headers=headers)
    assert response.status_code == 400
