"""
Suppliers, purchase orders and receiving stock against them.
"""

from decimal import Decimal

import pytest

from app.extensions import db
from app.models import InventoryMovement, Product, Purchase
from app.services import products_service, purchase_service, supplier_service
from app.validation import ConflictError, NotFoundError, ValidationError


def _product(product_id):
    return db.session.get(Product, product_id, populate_existing=True)


def _order(supplier, *lines, **extra):
    payload = {
        "supplierId": supplier.id,
        "items": [
            {"productId": product.id, "quantity": quantity, "unitCost": cost}
            for product, quantity, cost in lines
        ],
    }
    payload.update(extra)
    return payload


@pytest.fixture
def purchase(make_supplier, make_product, user):
    """PENDING order: 10 x 1000.00 and 4 x 250.00 -> subtotal 11000.00."""
    supplier = make_supplier()
    first = make_product(stock=2)
    second = make_product(stock=0)
    return purchase_service.create_purchase(
        _order(supplier, (first, 10, "1000.00"), (second, 4, 250)),
        user_id=user.id,
    )


class TestCreatePurchase:
    def test_totals_and_order_number(self, purchase):
        assert purchase.order_number == "PO-000001"
        assert purchase.status == "PENDING"
        assert purchase.subtotal == Decimal("11000.00")
        assert purchase.tax_amount == Decimal("2090.00")
        assert purchase.total_amount == Decimal("13090.00")
        assert [item.total_cost for item in purchase.items] == [Decimal("10000.00"), Decimal("1000.00")]

    def test_creating_does_not_move_stock(self, purchase):
        product_ids = [item.product_id for item in purchase.items]

        assert [_product(pid).stock for pid in product_ids] == [2, 0]
        assert db.session.query(InventoryMovement).count() == 0

    def test_order_numbers_are_sequential(self, purchase, make_product):
        product = make_product()
        second = purchase_service.create_purchase(_order(purchase.supplier, (product, 1, 10)))

        assert second.order_number == "PO-000002"

    @pytest.mark.parametrize(
        "mutate,field",
        [
            (lambda p: p.pop("supplierId"), "supplierId"),
            (lambda p: p.update(items=[]), "items"),
            (lambda p: p["items"][0].update(quantity=0), "items[0].quantity"),
            (lambda p: p["items"][0].update(unitCost=-1), "items[0].unitCost"),
            (lambda p: p.update(expectedDeliveryDate="next week"), "expectedDeliveryDate"),
        ],
    )
    def test_validation(self, make_supplier, make_product, mutate, field):
        payload = _order(make_supplier(), (make_product(), 1, 100))
        mutate(payload)

        with pytest.raises(ValidationError) as exc:
            purchase_service.create_purchase(payload)
        assert exc.value.field == field

    def test_inactive_supplier_rejected(self, make_supplier, make_product):
        supplier = make_supplier(is_active=False)

        with pytest.raises(ValidationError):
            purchase_service.create_purchase(_order(supplier, (make_product(), 1, 100)))

    def test_unknown_product_leaves_nothing_behind(self, make_supplier):
        supplier = make_supplier()
        payload = {"supplierId": supplier.id, "items": [{"productId": 999999, "quantity": 1, "unitCost": 1}]}

        with pytest.raises(NotFoundError):
            purchase_service.create_purchase(payload)

        assert db.session.query(Purchase).count() == 0


class TestReceive:
    def test_full_receipt_increments_stock_and_updates_cost(self, purchase, user):
        first, second = purchase.items
        first_id, second_id = first.product_id, second.product_id

        received = purchase_service.receive_purchase(
            purchase.id,
            {"receivedItems": [
                {"itemId": first.id, "receivedQuantity": 10, "receivedCost": "950.00"},
                {"itemId": second.id, "receivedQuantity": 4},
            ]},
            user_id=user.id,
        )

        assert received.status == "RECEIVED"
        assert received.received_at is not None
        assert _product(first_id).stock == 12
        assert _product(first_id).cost == Decimal("950.00")
        assert _product(second_id).stock == 4
        assert _product(second_id).cost == Decimal("250.00")

        movements = (
            db.session.query(InventoryMovement)
            .filter_by(type="PURCHASE")
            .order_by(InventoryMovement.id)
            .all()
        )
        assert [(m.product_id, m.quantity, m.previous_stock, m.new_stock) for m in movements] == [
            (first_id, 10, 2, 12),
            (second_id, 4, 0, 4),
        ]
        assert {m.reference for m in movements} == {f"Purchase {purchase.order_number}"}
        assert {m.user_id for m in movements} == {user.id}

    def test_partial_receipts_accumulate(self, purchase):
        first, second = purchase.items
        item_id, product_id = first.id, first.product_id

        partial = purchase_service.receive_purchase(
            purchase.id, {"receivedItems": [{"itemId": item_id, "receivedQuantity": 6}]}
        )
        assert partial.status == "PARTIALLY_RECEIVED"

        purchase_service.receive_purchase(
            purchase.id, {"receivedItems": [{"itemId": item_id, "receivedQuantity": 4}]}
        )
        done = purchase_service.receive_purchase(
            purchase.id, {"receivedItems": [{"itemId": second.id, "receivedQuantity": 4}]}
        )

        assert done.status == "RECEIVED"
        assert _product(product_id).stock == 12

    def test_receiving_more_than_pending_is_rejected_atomically(self, purchase):
        first, second = purchase.items
        first_id, second_id = first.product_id, second.product_id

        with pytest.raises(ValidationError) as exc:
            purchase_service.receive_purchase(
                purchase.id,
                {"receivedItems": [
                    {"itemId": first.id, "receivedQuantity": 10},
                    {"itemId": second.id, "receivedQuantity": 5},
                ]},
            )

        assert exc.value.field == "receivedItems[1].receivedQuantity"
        assert _product(first_id).stock == 2
        assert _product(second_id).stock == 0
        assert db.session.get(Purchase, purchase.id, populate_existing=True).status == "PENDING"
        assert db.session.query(InventoryMovement).count() == 0

    def test_item_from_another_order_is_rejected(self, purchase, make_product):
        other = purchase_service.create_purchase(_order(purchase.supplier, (make_product(), 1, 10)))

        with pytest.raises(NotFoundError):
            purchase_service.receive_purchase(
                purchase.id, {"receivedItems": [{"itemId": other.items[0].id, "receivedQuantity": 1}]}
            )

    def test_received_order_cannot_be_received_again(self, purchase):
        items = [{"itemId": item.id, "receivedQuantity": item.quantity} for item in purchase.items]
        purchase_service.receive_purchase(purchase.id, {"receivedItems": items})

        with pytest.raises(ConflictError):
            purchase_service.receive_purchase(purchase.id, {"receivedItems": items[:1]})

    def test_cancelled_order_cannot_be_received(self, purchase):
        purchase_service.update_status(purchase.id, "cancelled")

        with pytest.raises(ConflictError):
            purchase_service.receive_purchase(
                purchase.id, {"receivedItems": [{"itemId": purchase.items[0].id, "receivedQuantity": 1}]}
            )


class TestStatusAndDelete:
    def test_manual_status_only_cancels(self, purchase):
        with pytest.raises(ConflictError):
            purchase_service.update_status(purchase.id, "received")

        cancelled = purchase_service.update_status(purchase.id, "cancelled")
        assert cancelled.status == "CANCELLED"

        with pytest.raises(ConflictError):
            purchase_service.update_status(purchase.id, "pending")

    def test_unknown_status(self, purchase):
        with pytest.raises(ValidationError):
            purchase_service.update_status(purchase.id, "shipped")

    def test_delete_pending_order(self, purchase):
        order_number = purchase_service.delete_purchase(purchase.id)

        assert order_number == "PO-000001"
        assert db.session.get(Purchase, purchase.id) is None

    def test_delete_after_receiving_is_refused(self, purchase):
        purchase_service.receive_purchase(
            purchase.id, {"receivedItems": [{"itemId": purchase.items[0].id, "receivedQuantity": 1}]}
        )

        with pytest.raises(ConflictError):
            purchase_service.delete_purchase(purchase.id)

    def test_ordered_product_cannot_be_deleted(self, purchase):
        with pytest.raises(ConflictError):
            products_service.delete_product(product_id=purchase.items[1].product_id)


class TestSuppliers:
    def test_duplicate_email_is_a_conflict(self, make_supplier):
        supplier = make_supplier(email="ventas@andina.co")

        with pytest.raises(ConflictError):
            supplier_service.create_supplier(patch={"name": "Otra", "email": "ventas@andina.co"})
        with pytest.raises(ConflictError):
            supplier_service.update_supplier(
                supplier_id=make_supplier().id, patch={"email": supplier.email}
            )

    def test_short_name_rejected(self, db_session):
        with pytest.raises(ValidationError):
            supplier_service.create_supplier(patch={"name": "A"})

    def test_supplier_with_orders_cannot_be_deleted(self, purchase):
        with pytest.raises(ConflictError):
            supplier_service.delete_supplier(supplier_id=purchase.supplier_id)


class TestPurchasesApi:
    def test_supplier_crud(self, client, auth_headers):
        created = client.post(
            "/api/suppliers",
            json={"name": "Distribuidora Andina", "email": "ventas@andina.co", "taxId": "800111222"},
            headers=auth_headers,
        )
        assert created.status_code == 201
        supplier_id = created.get_json()["id"]

        updated = client.put(
            f"/api/suppliers/{supplier_id}", json={"city": "Medellin"}, headers=auth_headers
        )
        assert updated.get_json()["city"] == "Medellin"

        listed = client.get("/api/suppliers?search=andina", headers=auth_headers).get_json()
        assert [s["id"] for s in listed["suppliers"]] == [supplier_id]

        assert client.post("/api/suppliers", json={"email": "x@y.co"}, headers=auth_headers).status_code == 400
        assert client.delete(f"/api/suppliers/{supplier_id}", headers=auth_headers).status_code == 200
        assert client.get(f"/api/suppliers/{supplier_id}", headers=auth_headers).status_code == 404

    def test_order_and_receive(self, client, auth_headers, make_supplier, make_product):
        supplier = make_supplier()
        product = make_product(stock=1)

        created = client.post(
            "/api/purchases",
            json=_order(supplier, (product, 5, 300), expectedDeliveryDate="2030-02-01"),
            headers=auth_headers,
        )
        assert created.status_code == 201
        body = created.get_json()
        assert body["totalAmount"] == 1785.0
        assert body["expectedDeliveryDate"] == "2030-02-01T00:00:00Z"
        [item] = body["items"]

        received = client.post(
            f"/api/purchases/{body['id']}/receive",
            json={"receivedItems": [{"itemId": item["id"], "receivedQuantity": 5}]},
            headers=auth_headers,
        )
        assert received.status_code == 200
        assert received.get_json()["status"] == "RECEIVED"
        assert received.get_json()["items"][0]["receivedQuantity"] == 5
        assert client.get(f"/api/products/{product.id}", headers=auth_headers).get_json()["stock"] == 6

        again = client.post(
            f"/api/purchases/{body['id']}/receive",
            json={"receivedItems": [{"itemId": item["id"], "receivedQuantity": 1}]},
            headers=auth_headers,
        )
        assert again.status_code == 409

        assert client.delete(f"/api/purchases/{body['id']}", headers=auth_headers).status_code == 409

    def test_list_and_filter(self, client, auth_headers, purchase):
        pending = client.get("/api/purchases?status=pending", headers=auth_headers).get_json()
        received = client.get("/api/purchases?status=received", headers=auth_headers).get_json()

        assert [p["orderNumber"] for p in pending["purchases"]] == ["PO-000001"]
        assert received["purchases"] == []
        assert client.get("/api/purchases?status=lost", headers=auth_headers).status_code == 400

    def test_errors(self, client, auth_headers, purchase):
        assert client.get("/api/purchases/999999", headers=auth_headers).status_code == 404
        assert client.post("/api/purchases", json={"items": []}, headers=auth_headers).status_code == 400
        assert client.put(
            f"/api/purchases/{purchase.id}/status", json={"status": "received"}, headers=auth_headers
        ).status_code == 409
