"""
Products, categories and customers endpoints.
"""

import pytest

from app.extensions import db
from app.models import InventoryMovement

from conftest import sale_payload


class TestProducts:
    def test_create_with_opening_stock_books_a_movement(self, client, auth_headers, user, make_category):
        category = make_category("Granos")

        response = client.post(
            "/api/products",
            json={
                "code": "GRA-001",
                "name": "Arroz 500g",
                "price": "2800",
                "cost": 2000,
                "minStock": 5,
                "categoryId": category.id,
                "stock": 12,
            },
            headers=auth_headers,
        )

        assert response.status_code == 201
        body = response.get_json()
        assert body["stock"] == 12
        assert body["price"] == 2800.0
        assert body["category"] == "Granos"
        movement = db.session.query(InventoryMovement).filter_by(product_id=body["id"]).one()
        assert (movement.type, movement.quantity, movement.new_stock) == ("ADJUSTMENT", 12, 12)
        assert movement.user_id == user.id

    def test_create_without_stock_starts_at_zero(self, client, auth_headers):
        response = client.post(
            "/api/products", json={"code": "X-1", "name": "Thing", "price": 10}, headers=auth_headers
        )

        assert response.status_code == 201
        assert response.get_json()["stock"] == 0
        assert db.session.query(InventoryMovement).count() == 0

    def test_duplicate_code_is_a_409(self, client, auth_headers, make_product):
        product = make_product(code="DUP-1")

        response = client.post(
            "/api/products", json={"code": product.code, "name": "Other", "price": 1}, headers=auth_headers
        )

        assert response.status_code == 409
        assert response.get_json()["field"] == "code"

    @pytest.mark.parametrize(
        "payload,field",
        [
            ({"name": "No code", "price": 1}, "code"),
            ({"code": "A", "name": "A", "price": -1}, "price"),
            ({"code": "A", "name": "A", "price": "cheap"}, "price"),
            ({"code": "A", "name": "A", "price": 1, "stock": -2}, "stock"),
            ({"code": "A", "name": "A", "price": 1, "sku": "x"}, "sku"),
            ({"code": "A", "name": "A", "price": 1, "minStock": 5, "maxStock": 2}, "maxStock"),
        ],
    )
    def test_create_validation(self, client, auth_headers, payload, field):
        response = client.post("/api/products", json=payload, headers=auth_headers)

        assert response.status_code == 400
        assert response.get_json()["field"] == field

    def test_unknown_category_is_a_400(self, client, auth_headers):
        response = client.post(
            "/api/products",
            json={"code": "A", "name": "A", "price": 1, "categoryId": 999999},
            headers=auth_headers,
        )

        assert response.status_code == 400

    def test_update_cannot_touch_stock(self, client, auth_headers, make_product):
        product = make_product(stock=5)

        response = client.put(f"/api/products/{product.id}", json={"stock": 50}, headers=auth_headers)

        assert response.status_code == 400
        assert response.get_json()["field"] == "stock"

    def test_update_fields(self, client, auth_headers, make_product):
        product = make_product(stock=5)

        response = client.put(
            f"/api/products/{product.id}", json={"price": 1500, "isActive": False}, headers=auth_headers
        )

        assert response.status_code == 200
        assert response.get_json()["price"] == 1500.0
        assert response.get_json()["isActive"] is False
        assert response.get_json()["stock"] == 5

    def test_update_missing_product(self, client, auth_headers):
        response = client.put("/api/products/999999", json={"name": "x"}, headers=auth_headers)

        assert response.status_code == 404

    def test_delete_unreferenced_product(self, client, auth_headers, make_product):
        product = make_product(stock=0)

        response = client.delete(f"/api/products/{product.id}", headers=auth_headers)

        assert response.status_code == 200
        assert client.get(f"/api/products/{product.id}", headers=auth_headers).status_code == 404

    def test_delete_sold_product_is_a_409(self, client, auth_headers, make_product):
        product = make_product(stock=5)
        client.post("/api/sales", json=sale_payload((product, 1)), headers=auth_headers)

        response = client.delete(f"/api/products/{product.id}", headers=auth_headers)

        assert response.status_code == 409

    def test_list_search_and_pagination(self, client, auth_headers, make_product):
        make_product(name="Agua 600ml")
        make_product(name="Agua 1L")
        make_product(name="Gaseosa")

        response = client.get("/api/products?search=agua&limit=1", headers=auth_headers)

        body = response.get_json()
        assert body["pagination"] == {"page": 1, "limit": 1, "total": 2, "pages": 2}
        assert body["products"][0]["name"] == "Agua 1L"

    def test_stock_alerts(self, client, auth_headers, make_product):
        low = make_product(stock=2, min_stock=5)
        empty = make_product(stock=0, min_stock=1)
        make_product(stock=50, min_stock=5)
        make_product(stock=0, is_active=False)

        low_ids = [p["id"] for p in client.get("/api/products/low-stock", headers=auth_headers).get_json()["products"]]
        out_ids = [p["id"] for p in client.get("/api/products/out-of-stock", headers=auth_headers).get_json()["products"]]

        assert low_ids == [empty.id, low.id]
        assert out_ids == [empty.id]


class TestCategories:
    def test_create_and_list(self, client, auth_headers):
        created = client.post("/api/categories", json={"name": "Aseo"}, headers=auth_headers)
        duplicate = client.post("/api/categories", json={"name": "Aseo"}, headers=auth_headers)
        listed = client.get("/api/categories", headers=auth_headers)

        assert created.status_code == 201
        assert duplicate.status_code == 409
        assert [c["name"] for c in listed.get_json()["categories"]] == ["Aseo"]


class TestCustomers:
    def test_create(self, client, auth_headers):
        response = client.post(
            "/api/customers",
            json={"name": "Tienda La Esquina", "documentNumber": "900123456", "creditLimit": 2000000},
            headers=auth_headers,
        )

        assert response.status_code == 201
        body = response.get_json()
        assert body["documentNumber"] == "900123456"
        assert body["creditLimit"] == 2000000.0
        assert body["isActive"] is True

    def test_duplicate_document_is_a_409(self, client, auth_headers, make_customer):
        customer = make_customer(document_number="123")

        response = client.post(
            "/api/customers", json={"name": "Other", "documentNumber": customer.document_number}, headers=auth_headers
        )

        assert response.status_code == 409

    def test_missing_name(self, client, auth_headers):
        response = client.post("/api/customers", json={"documentNumber": "1"}, headers=auth_headers)

        assert response.status_code == 400
        assert response.get_json()["field"] == "name"

    def test_update_and_search(self, client, auth_headers, make_customer):
        customer = make_customer(name="Maria Gomez")
        make_customer(name="Pedro Perez")

        updated = client.put(f"/api/customers/{customer.id}", json={"phone": "3001112233"}, headers=auth_headers)
        found = client.get("/api/customers?search=gomez", headers=auth_headers)

        assert updated.status_code == 200
        assert updated.get_json()["phone"] == "3001112233"
        assert [c["id"] for c in found.get_json()["customers"]] == [customer.id]

    def test_delete_customer_with_sales_is_a_409(self, client, auth_headers, make_customer, make_product):
        customer = make_customer()
        product = make_product(stock=5)
        client.post("/api/sales", json=sale_payload((product, 1), customerId=customer.id), headers=auth_headers)

        response = client.delete(f"/api/customers/{customer.id}", headers=auth_headers)

        assert response.status_code == 409

    def test_delete_customer(self, client, auth_headers, make_customer):
        customer = make_customer()

        assert client.delete(f"/api/customers/{customer.id}", headers=auth_headers).status_code == 200
        assert client.get(f"/api/customers/{customer.id}", headers=auth_headers).status_code == 404

    def test_inactive_customer_cannot_buy(self, client, auth_headers, make_customer, make_product):
        customer = make_customer(is_active=False)
        product = make_product(stock=5)

        response = client.post(
            "/api/sales", json=sale_payload((product, 1), customerId=customer.id), headers=auth_headers
        )

        assert response.status_code == 400
        assert response.get_json()["field"] == "customerId"
