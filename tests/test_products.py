"""Tests for Product API endpoints."""


def test_create_product(client, admin_headers):
    """Test creating a new product."""
    response = client.post(
        "/api/v1/products",
        json={
            "name": "Truffle",
            "category": "Chocolate",
            "price": 2.50,
            "quantity": 10,
            "image_url": "https://cdn.example.com/truffle.png",
        },
        headers=admin_headers,
    )

    assert response.status_code == 201
    data = response.json()
    assert data["name"] == "Truffle"
    assert data["category"] == "Chocolate"
    assert data["price"] == 2.50
    assert data["quantity"] == 10
    assert data["description"] == ""
    assert data["image_url"] == "https://cdn.example.com/truffle.png"
    assert "id" in data
    assert "created_at" in data
    assert "updated_at" in data


def test_create_product_requires_admin(client, customer_headers):
    payload = {"name": "Fudge", "category": "Toffee", "price": 1.0, "quantity": 1}

    anonymous = client.post("/api/v1/products", json=payload)
    customer = client.post("/api/v1/products", json=payload, headers=customer_headers)

    assert anonymous.status_code == 401
    assert customer.status_code == 403
    assert customer.json()["error"]["message"] == "Admin access required"


def test_create_product_invalid_price(client, admin_headers):
    """Test creating product with invalid price fails."""
    response = client.post(
        "/api/v1/products",
        json={
            "name": "Test Product",
            "category": "Test",
            "price": -10.00,  # Invalid: negative price
            "quantity": 10
        },
        headers=admin_headers,
    )

    assert response.status_code == 400


def test_create_product_invalid_quantity(client, admin_headers):
    """Test creating product with negative quantity fails."""
    response = client.post(
        "/api/v1/products",
        json={
            "name": "Test Product",
            "category": "Test",
            "price": 99.99,
            "quantity": -5  # Invalid: negative quantity
        },
        headers=admin_headers,
    )

    assert response.status_code == 400


def test_create_product_blank_name(client, admin_headers):
    response = client.post(
        "/api/v1/products",
        json={"name": "   ", "category": "Test", "price": 1.0, "quantity": 1},
        headers=admin_headers,
    )

    assert response.status_code == 400


def test_create_product_zero_price_allowed(client, admin_headers):
    response = client.post(
        "/api/v1/products",
        json={"name": "Free Sample", "category": "Promo", "price": 0, "quantity": 0},
        headers=admin_headers,
    )

    assert response.status_code == 201


def test_get_product(client, make_product):
    """Test getting a product by ID."""
    product_id = make_product(name="Test Product")["id"]

    response = client.get(f"/api/v1/products/{product_id}")

    assert response.status_code == 200
    data = response.json()
    assert data["id"] == product_id
    assert data["name"] == "Test Product"


def test_get_product_is_cached(client, make_product, fake_redis):
    product_id = make_product()["id"]

    client.get(f"/api/v1/products/{product_id}")

    assert f"product:{product_id}" in fake_redis.store


def test_get_product_not_found(client):
    """Test getting non-existent product returns 404."""
    response = client.get("/api/v1/products/9999")

    assert response.status_code == 404
    assert response.json()["error"]["status"] == 404


def test_update_product(client, admin_headers, make_product):
    """Test updating a product."""
    product = make_product(name="Original Name", price=50.00, quantity=10)

    response = client.put(
        f"/api/v1/products/{product['id']}",
        json={"name": "Updated Name", "price": 75.00},
        headers=admin_headers,
    )

    assert response.status_code == 200
    data = response.json()
    assert data["name"] == "Updated Name"
    assert data["price"] == 75.00
    assert data["quantity"] == 10  # Quantity should remain unchanged


def test_update_only_price_leaves_other_fields(client, admin_headers, make_product):
    product = make_product()

    response = client.put(
        f"/api/v1/products/{product['id']}",
        json={"price": 3.25},
        headers=admin_headers,
    )

    data = response.json()
    assert data["price"] == 3.25
    for field in ("name", "category", "quantity", "description", "created_at"):
        assert data[field] == product[field]
    assert data["updated_at"] >= product["updated_at"]


def test_update_product_not_found(client, admin_headers):
    response = client.put(
        "/api/v1/products/missing",
        json={"price": 1.0},
        headers=admin_headers,
    )

    assert response.status_code == 404


def test_update_product_invalid(client, admin_headers, make_product):
    product = make_product()

    response = client.put(
        f"/api/v1/products/{product['id']}",
        json={"quantity": -1},
        headers=admin_headers,
    )

    assert response.status_code == 400


def test_update_invalidates_cache(client, admin_headers, make_product, fake_redis):
    product_id = make_product()["id"]
    client.get(f"/api/v1/products/{product_id}")

    client.put(f"/api/v1/products/{product_id}", json={"name": "Renamed"}, headers=admin_headers)

    assert f"product:{product_id}" not in fake_redis.store
    assert client.get(f"/api/v1/products/{product_id}").json()["name"] == "Renamed"


def test_update_requires_admin(client, customer_headers, make_product):
    product = make_product()

    response = client.put(
        f"/api/v1/products/{product['id']}",
        json={"price": 0.5},
        headers=customer_headers,
    )

    assert response.status_code == 403


def test_delete_product(client, admin_headers, make_product):
    """Test deleting a product."""
    product_id = make_product(name="To Delete")["id"]

    response = client.delete(f"/api/v1/products/{product_id}", headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["message"] == "Product deleted successfully"

    # Verify it's deleted
    get_response = client.get(f"/api/v1/products/{product_id}")
    assert get_response.status_code == 404


def test_delete_absent_product_succeeds(client, admin_headers):
    response = client.delete("/api/v1/products/never-existed", headers=admin_headers)

    assert response.status_code == 200


def test_delete_requires_admin(client, customer_headers, make_product):
    product_id = make_product()["id"]

    assert client.delete(f"/api/v1/products/{product_id}").status_code == 401
    assert client.delete(
        f"/api/v1/products/{product_id}", headers=customer_headers
    ).status_code == 403
    assert client.get(f"/api/v1/products/{product_id}").status_code == 200


def test_create_product_quantity_too_large(client, admin_headers):
    response = client.post(
        "/api/v1/products",
        json={"name": "Jelly Bean", "category": "Gummy", "price": 0.1, "quantity": 10**20},
        headers=admin_headers,
    )

    assert response.status_code == 400
    assert response.json()["error"]["details"][0]["field"].endswith("quantity")


def test_update_quantity_too_large(client, admin_headers, make_product):
    product = make_product()

    response = client.put(
        f"/api/v1/products/{product['id']}",
        json={"quantity": 2**31},
        headers=admin_headers,
    )

    assert response.status_code == 400
    assert client.get(f"/api/v1/products/{product['id']}").json()["quantity"] == 10


def test_empty_update_refreshes_updated_at(client, admin_headers, make_product):
    product = make_product()

    response = client.put(f"/api/v1/products/{product['id']}", json={}, headers=admin_headers)

    data = response.json()
    assert response.status_code == 200
    assert data["price"] == product["price"]
    assert data["updated_at"] > product["updated_at"]
