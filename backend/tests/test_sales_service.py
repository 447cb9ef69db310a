"""
Sale creation and lifecycle at the service layer.

Creation must be all-or-nothing: a failed sale leaves no sale, item,
movement, credit or stock change behind.
"""

from decimal import Decimal

import pytest
from sqlalchemy import update

from app.extensions import db
from app.models import Credit, InventoryMovement, Product, Sale, SaleItem
from app.services import credit_service, sales_service
from app.services.sales_service import BuiltLine, compute_totals
from app.services.stock_service import InsufficientStockError
from app.validation import ConflictError, NotFoundError, ValidationError

from conftest import sale_payload


def _stock(product):
    return db.session.get(Product, product.id, populate_existing=True).stock


def _movements(product, movement_type=None):
    query = db.session.query(InventoryMovement).filter_by(product_id=product.id)
    if movement_type:
        query = query.filter_by(type=movement_type)
    return query.order_by(InventoryMovement.id).all()


def _line(quantity, unit_price):
    unit_price = Decimal(unit_price)
    return BuiltLine(product_id=1, quantity=quantity, unit_price=unit_price, total_price=unit_price * quantity)


class TestTotals:
    def test_tax_is_nineteen_percent(self):
        totals = compute_totals([_line(2, "1000.00")])

        assert totals.subtotal == Decimal("2000.00")
        assert totals.tax_amount == Decimal("380.00")
        assert totals.total_amount == Decimal("2380.00")

    def test_discount_is_applied_before_tax(self):
        totals = compute_totals([_line(1, "1000.00")], Decimal("100.00"))

        assert totals.tax_amount == Decimal("171.00")
        assert totals.total_amount == Decimal("1071.00")

    @pytest.mark.parametrize("price,quantity", [("0.05", 1), ("33.33", 3), ("19.99", 7), ("0.00", 4)])
    def test_identity_holds_exactly(self, price, quantity):
        totals = compute_totals([_line(quantity, price)])

        assert totals.total_amount == totals.subtotal - totals.discount + totals.tax_amount
        assert totals.tax_amount == (totals.subtotal * Decimal("0.19")).quantize(Decimal("0.01"))

    def test_half_up_rounding(self):
        # 0.05 * 0.19 = 0.0095 -> 0.01
        assert compute_totals([_line(1, "0.05")]).tax_amount == Decimal("0.01")

    def test_discount_above_subtotal_rejected(self):
        with pytest.raises(ValidationError) as exc:
            compute_totals([_line(1, "10.00")], Decimal("10.01"))
        assert exc.value.field == "discount"

    def test_total_above_money_column_rejected(self):
        # subtotal fits, the 19% tax pushes the total past 9,999,999,999.99
        with pytest.raises(ValidationError) as exc:
            compute_totals([_line(1, "9000000000.00")])
        assert exc.value.field == "items"

    def test_subtotal_above_money_column_rejected(self):
        with pytest.raises(ValidationError) as exc:
            compute_totals([_line(1000, "9999999999.99")])
        assert exc.value.field == "items"

    def test_total_at_the_limit_is_accepted(self):
        # 8403361344.53 * 1.19 = 9999999999.99
        totals = compute_totals([_line(1, "8403361344.53")])
        assert totals.total_amount <= Decimal("9999999999.99")


def test_cash_sale_decrements_stock_and_logs_movement(make_product, user):
    """Cash sale of 2 units at 1000 with stock 10."""
    product = make_product(stock=10, price="1000.00")

    sale = sales_service.create_sale(sale_payload((product, 2)), user_id=user.id)

    assert sale.status == "PAID"
    assert sale.invoice_number == "INV-000001"
    assert sale.customer_name == "General Customer"
    assert sale.subtotal == Decimal("2000.00")
    assert sale.tax_amount == Decimal("380.00")
    assert sale.total_amount == Decimal("2380.00")
    assert _stock(product) == 8

    [movement] = _movements(product)
    assert movement.type == "SALE"
    assert movement.quantity == -2
    assert movement.previous_stock == 10
    assert movement.new_stock == 8
    assert movement.reference == sale.invoice_number
    assert movement.user_id == user.id


def test_invoice_numbers_are_sequential(make_product):
    product = make_product(stock=10)

    first = sales_service.create_sale(sale_payload((product, 1)))
    second = sales_service.create_sale(sale_payload((product, 1)))

    assert (first.invoice_number, second.invoice_number) == ("INV-000001", "INV-000002")


def test_failure_on_second_line_rolls_back_everything(make_product):
    """Line 1 has stock, line 2 does not: nothing may change."""
    first = make_product(stock=10)
    second = make_product(stock=1, name="Arroz")

    with pytest.raises(InsufficientStockError) as exc:
        sales_service.create_sale(sale_payload((first, 2), (second, 5)))

    assert exc.value.details["productId"] == second.id
    assert exc.value.available == 1
    assert _stock(first) == 10
    assert _stock(second) == 1
    assert db.session.query(Sale).count() == 0
    assert db.session.query(SaleItem).count() == 0
    assert db.session.query(InventoryMovement).count() == 0

    # the failed attempt did not consume an invoice number
    sale = sales_service.create_sale(sale_payload((first, 1)))
    assert sale.invoice_number == "INV-000001"


def test_failure_during_commit_rolls_back(make_product, monkeypatch):
    """A stock race caught by the conditional UPDATE undoes earlier lines."""
    first = make_product(stock=10)
    second = make_product(stock=10)

    real_decrement = sales_service.decrement_stock

    def racing_decrement(product_id, quantity):
        if product_id == second.id:
            db.session.execute(
                update(Product).where(Product.id == second.id).values(stock=0)
            )
        return real_decrement(product_id, quantity)

    monkeypatch.setattr(sales_service, "decrement_stock", racing_decrement)

    with pytest.raises(InsufficientStockError):
        sales_service.create_sale(sale_payload((first, 3), (second, 3)))

    assert _stock(first) == 10
    assert _stock(second) == 10
    assert db.session.query(Sale).count() == 0
    assert db.session.query(InventoryMovement).count() == 0


def test_duplicate_lines_are_checked_together(make_product):
    product = make_product(stock=5)

    with pytest.raises(InsufficientStockError):
        sales_service.create_sale(sale_payload((product, 3), (product, 3)))

    assert _stock(product) == 5


def test_exact_stock_sale_leaves_zero(make_product):
    product = make_product(stock=4)

    sales_service.create_sale(sale_payload((product, 4)))

    assert _stock(product) == 0


def test_unknown_product_rejected(make_product):
    product = make_product(stock=5)
    payload = sale_payload((product, 1))
    payload["items"].append({"productId": 999999, "quantity": 1, "unitPrice": 10})

    with pytest.raises(NotFoundError):
        sales_service.create_sale(payload)

    assert _stock(product) == 5


def test_unknown_customer_rejected(make_product):
    product = make_product(stock=5)

    with pytest.raises(NotFoundError) as exc:
        sales_service.create_sale(sale_payload((product, 1), customerId=999999))

    assert exc.value.field == "customerId"


def test_inactive_product_rejected(make_product):
    product = make_product(stock=5, is_active=False)

    with pytest.raises(ValidationError):
        sales_service.create_sale(sale_payload((product, 1)))


def test_credit_sale_requires_customer(make_product):
    product = make_product(stock=5)

    with pytest.raises(ValidationError) as exc:
        sales_service.create_sale(sale_payload((product, 1), payment_method="credit"))

    assert exc.value.field == "customerId"
    assert _stock(product) == 5
    assert db.session.query(Sale).count() == 0


def test_credit_sale_opens_credit(make_product, make_customer):
    product = make_product(stock=5, price="500.00")
    customer = make_customer(name="Tienda La Esquina")

    sale = sales_service.create_sale(
        sale_payload((product, 2), payment_method="credit", customerId=customer.id)
    )

    assert sale.status == "PENDING"
    assert sale.customer_name == "Tienda La Esquina"
    credit = db.session.query(Credit).filter_by(sale_id=sale.id).one()
    assert credit.customer_id == customer.id
    assert credit.amount == sale.total_amount == Decimal("1190.00")
    assert credit.balance == credit.amount
    assert credit.status == "ACTIVE"
    assert credit.notes == f"Credit for sale {sale.invoice_number}"
    assert (credit.due_date - sale.created_at).days in (29, 30)


def test_customer_name_from_request_wins(make_product, make_customer):
    product = make_product(stock=5)
    customer = make_customer(name="Registered Name")

    sale = sales_service.create_sale(
        sale_payload((product, 1), customerId=customer.id, customerName="Walk-in label")
    )

    assert sale.customer_name == "Walk-in label"


class TestLifecycle:
    def test_cancel_restores_stock(self, make_product, user):
        """Cancel a sale of 3 units: stock returns, SALE_CANCELLATION logged."""
        product = make_product(stock=10)
        sale = sales_service.create_sale(sale_payload((product, 3)))
        assert _stock(product) == 7

        sale = sales_service.update_status(sale.id, "cancelled", user_id=user.id)

        assert sale.status == "CANCELLED"
        assert _stock(product) == 10
        [movement] = _movements(product, "SALE_CANCELLATION")
        assert movement.quantity == 3
        assert movement.previous_stock == 7
        assert movement.new_stock == 10
        assert movement.reference == f"Sale {sale.invoice_number} cancelled"

    def test_cancel_twice_is_a_noop(self, make_product):
        product = make_product(stock=10)
        sale = sales_service.create_sale(sale_payload((product, 3)))

        sales_service.update_status(sale.id, "cancelled")
        sale = sales_service.update_status(sale.id, "canceled")

        assert sale.status == "CANCELLED"
        assert _stock(product) == 10
        assert len(_movements(product, "SALE_CANCELLATION")) == 1

    def test_cancelled_is_terminal(self, make_product):
        product = make_product(stock=10)
        sale = sales_service.create_sale(sale_payload((product, 1)))
        sales_service.update_status(sale.id, "cancelled")

        with pytest.raises(ConflictError):
            sales_service.update_status(sale.id, "completed")

        assert _stock(product) == 10

    def test_paid_cannot_go_back_to_pending(self, make_product):
        product = make_product(stock=10)
        sale = sales_service.create_sale(sale_payload((product, 1)))

        with pytest.raises(ConflictError):
            sales_service.update_status(sale.id, "pending")

    def test_completed_is_an_alias_for_paid(self, make_product, make_customer):
        product = make_product(stock=10)
        customer = make_customer()
        sale = sales_service.create_sale(
            sale_payload((product, 1), payment_method="credit", customerId=customer.id)
        )
        sale.credit.balance = Decimal("0")
        db.session.commit()

        sale = sales_service.update_status(sale.id, "completed")

        assert sale.status == "PAID"

    def test_marking_credit_sale_paid_settles_open_balance(self, make_product, make_customer, user):
        product = make_product(stock=10, price="500.00")
        customer = make_customer()
        sale = sales_service.create_sale(
            sale_payload((product, 2), payment_method="credit", customerId=customer.id)
        )
        credit_id = sale.credit.id

        sale = sales_service.update_status(sale.id, "paid", user_id=user.id)

        assert sale.status == "PAID"
        credit = db.session.get(Credit, credit_id, populate_existing=True)
        assert credit.status == "PAID"
        assert credit.balance == Decimal("0")
        [payment] = credit.payments
        assert payment.amount == Decimal("1190.00")
        assert payment.user_id == user.id
        assert sale.invoice_number in payment.notes
        assert _stock(product) == 8

    def test_marking_partly_paid_credit_sale_paid_closes_remaining_balance(self, make_product, make_customer):
        product = make_product(stock=10, price="500.00")
        customer = make_customer()
        sale = sales_service.create_sale(
            sale_payload((product, 2), payment_method="credit", customerId=customer.id)
        )
        credit_service.add_payment(sale.credit.id, {"amount": "190", "paymentMethod": "card"})

        sales_service.update_status(sale.id, "completed")

        credit = db.session.query(Credit).filter_by(sale_id=sale.id).one()
        assert credit.status == "PAID"
        assert sorted(p.amount for p in credit.payments) == [Decimal("190.00"), Decimal("1000.00")]

    def test_cancel_credit_sale_cancels_credit(self, make_product, make_customer):
        product = make_product(stock=10)
        customer = make_customer()
        sale = sales_service.create_sale(
            sale_payload((product, 2), payment_method="credit", customerId=customer.id)
        )

        sales_service.update_status(sale.id, "cancelled")

        credit = db.session.query(Credit).filter_by(sale_id=sale.id).one()
        assert credit.status == "CANCELLED"
        assert credit.balance == Decimal("0")
        assert _stock(product) == 10

    @pytest.mark.parametrize("status", ["shipped", "", None, 3])
    def test_unknown_status_rejected(self, make_product, status):
        product = make_product(stock=10)
        sale = sales_service.create_sale(sale_payload((product, 1)))

        with pytest.raises(ValidationError):
            sales_service.update_status(sale.id, status)

    def test_missing_sale(self, db_session):
        with pytest.raises(NotFoundError):
            sales_service.update_status(999999, "cancelled")


class TestDelete:
    def test_paid_sale_cannot_be_deleted(self, make_product):
        product = make_product(stock=10)
        sale = sales_service.create_sale(sale_payload((product, 2)))

        with pytest.raises(ConflictError):
            sales_service.delete_sale(sale.id)

        assert db.session.get(Sale, sale.id) is not None
        assert _stock(product) == 8

    def test_pending_sale_delete_restores_stock(self, make_product, make_customer):
        product = make_product(stock=10)
        customer = make_customer()
        sale = sales_service.create_sale(
            sale_payload((product, 4), payment_method="credit", customerId=customer.id)
        )
        sale_id = sale.id

        invoice_number = sales_service.delete_sale(sale_id)

        assert invoice_number == "INV-000001"
        assert db.session.get(Sale, sale_id) is None
        assert db.session.query(SaleItem).filter_by(sale_id=sale_id).count() == 0
        assert db.session.query(Credit).count() == 0
        assert _stock(product) == 10
        [movement] = _movements(product, "SALE_DELETION")
        assert movement.quantity == 4

    def test_cancelled_sale_delete_does_not_restore_twice(self, make_product):
        product = make_product(stock=10)
        sale = sales_service.create_sale(sale_payload((product, 3)))
        sales_service.update_status(sale.id, "cancelled")

        sales_service.delete_sale(sale.id)

        assert _stock(product) == 10
        assert _movements(product, "SALE_DELETION") == []

    def test_missing_sale(self, db_session):
        with pytest.raises(NotFoundError):
            sales_service.delete_sale(999999)


class TestListing:
    def test_pagination_and_status_filter(self, make_product, make_customer):
        product = make_product(stock=50)
        customer = make_customer(name="Maria Gomez")
        for _ in range(3):
            sales_service.create_sale(sale_payload((product, 1)))
        sales_service.create_sale(
            sale_payload((product, 1), payment_method="credit", customerId=customer.id)
        )

        page = sales_service.list_sales(page=1, limit=2)
        assert page["pagination"] == {"page": 1, "limit": 2, "total": 4, "pages": 2}
        assert len(page["sales"]) == 2

        pending = sales_service.list_sales(status="pending")
        assert [s["customerName"] for s in pending["sales"]] == ["Maria Gomez"]

    def test_search_by_invoice_and_customer(self, make_product, make_customer):
        product = make_product(stock=50)
        customer = make_customer(name="Maria Gomez")
        sales_service.create_sale(sale_payload((product, 1)))
        sales_service.create_sale(sale_payload((product, 1), customerId=customer.id))

        assert sales_service.list_sales(search="gomez")["pagination"]["total"] == 1
        assert sales_service.list_sales(search="INV-000001")["pagination"]["total"] == 1

    def test_limit_is_capped(self, db_session):
        assert sales_service.list_sales(limit=1000)["pagination"]["limit"] == 100
