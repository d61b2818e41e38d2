# Overview: Pytest coverage for invoice creation, edits and listing.

from datetime import date, timedelta
from decimal import Decimal

import pytest
from mindsync.models import Invoice, InvoiceItem, Product, StockMovement, Transaction
from mindsync.services import invoice_service, payment_service
from mindsync.services.concurrency import StoreError
from mindsync.services.tenant_service import create_business
from mindsync.time_utils import today
from mindsync.validation import ConflictError, NotFoundError, ValidationError


class TestCreateInvoice:
    """Invoice, items, stock decrement and stock movements form one unit of work."""

    def test_creates_invoice_items_and_moves_stock(self, db_session, business_a, product_a, customer_a):
        invoice = invoice_service.create_invoice(
            business_a.id,
            items=[{"product_id": product_a.id, "quantity": 2}],
            customer_id=customer_a.id,
            due_date="2026-11-30",
            notes="first sale",
        )

        assert invoice.invoice_number == "INV-000001"
        assert invoice.status == "unpaid"
        assert invoice.amount_paid == Decimal("0.00")
        assert invoice.total_amount == Decimal("3000.00")
        assert invoice.due_date == date(2026, 11, 30)

        item = db_session.query(InvoiceItem).filter_by(invoice_id=invoice.id).one()
        assert item.quantity == 2
        assert item.unit_price == Decimal("1500.00")
        assert item.purchase_cost == Decimal("500.00")
        assert item.total_amount == Decimal("3000.00")

        assert db_session.get(Product, product_a.id).stock_quantity == 18
        movement = db_session.query(StockMovement).filter_by(product_id=product_a.id).one()
        assert movement.type == "out"
        assert movement.quantity == 2
        assert movement.reference_id == invoice.id

    def test_explicit_unit_price_overrides_product_price(self, db_session, business_a, product_a):
        invoice = invoice_service.create_invoice(
            business_a.id,
            items=[{"product_id": product_a.id, "quantity": 3, "unit_price": "1200.50"}],
        )
        assert invoice.total_amount == Decimal("3601.50")

    def test_purchase_cost_is_a_snapshot(self, db_session, business_a, product_a):
        invoice = invoice_service.create_invoice(business_a.id, items=[{"product_id": product_a.id, "quantity": 1}])

        product_a.purchase_cost = Decimal("900.00")
        db_session.commit()

        item = db_session.query(InvoiceItem).filter_by(invoice_id=invoice.id).one()
        assert item.purchase_cost == Decimal("500.00")

    def test_numbers_are_sequential_per_business(self, db_session, business_a, business_b, product_a, product_b):
        first = invoice_service.create_invoice(business_a.id, items=[{"product_id": product_a.id, "quantity": 1}])
        second = invoice_service.create_invoice(business_a.id, items=[{"product_id": product_a.id, "quantity": 1}])
        other = invoice_service.create_invoice(business_b.id, items=[{"product_id": product_b.id, "quantity": 1}])

        assert first.invoice_number == "INV-000001"
        assert second.invoice_number == "INV-000002"
        assert other.invoice_number == "INV-000001"

    def test_business_created_by_service_numbers_from_one(self, db_session):
        business = create_business(user_id="user-c", business_name="Cee Stores")
        product = Product(business_id=business.id, name="Soap", unit_price=Decimal("100"), stock_quantity=5)
        db_session.add(product)
        db_session.commit()

        invoice = invoice_service.create_invoice(business.id, items=[{"product_id": product.id, "quantity": 1}])
        assert invoice.invoice_number == "INV-000001"

    def test_insufficient_stock_writes_nothing(self, db_session, business_a, product_a):
        with pytest.raises(ValidationError, match="Insufficient stock"):
            invoice_service.create_invoice(
                business_a.id,
                items=[
                    {"product_id": product_a.id, "quantity": 15},
                    {"product_id": product_a.id, "quantity": 10},
                ],
            )

        assert db_session.query(Invoice).count() == 0
        assert db_session.query(StockMovement).count() == 0
        assert db_session.get(Product, product_a.id).stock_quantity == 20

    def test_store_failure_rolls_back_stock_and_items(self, db_session, business_a, product_a, failing_commit):
        with pytest.raises(StoreError):
            invoice_service.create_invoice(business_a.id, items=[{"product_id": product_a.id, "quantity": 4}])

        assert db_session.query(Invoice).count() == 0
        assert db_session.query(InvoiceItem).count() == 0
        assert db_session.query(StockMovement).count() == 0
        assert db_session.get(Product, product_a.id).stock_quantity == 20

    @pytest.mark.parametrize("items", [None, [], [{"quantity": 1}], [{"product_id": 1, "quantity": 0}], ["x"]])
    def test_malformed_items_rejected(self, db_session, business_a, items):
        with pytest.raises(ValidationError):
            invoice_service.create_invoice(business_a.id, items=items)

    def test_other_business_product_rejected(self, db_session, business_a, product_b):
        with pytest.raises(NotFoundError, match="not found"):
            invoice_service.create_invoice(business_a.id, items=[{"product_id": product_b.id, "quantity": 1}])
        assert db_session.get(Product, product_b.id).stock_quantity == 10

    def test_other_business_customer_rejected(self, db_session, business_a, product_a, customer_b):
        with pytest.raises(NotFoundError):
            invoice_service.create_invoice(
                business_a.id,
                items=[{"product_id": product_a.id, "quantity": 1}],
                customer_id=customer_b.id,
            )

    def test_income_transaction_off_by_default(self, db_session, business_a, product_a):
        invoice_service.create_invoice(business_a.id, items=[{"product_id": product_a.id, "quantity": 1}])
        assert db_session.query(Transaction).count() == 0

    def test_income_transaction_when_enabled(self, app, db_session, business_a, product_a):
        app.config["RECORD_INVOICE_INCOME_TRANSACTION"] = True
        try:
            invoice = invoice_service.create_invoice(business_a.id, items=[{"product_id": product_a.id, "quantity": 2}])
        finally:
            app.config["RECORD_INVOICE_INCOME_TRANSACTION"] = False

        txn = db_session.query(Transaction).one()
        assert txn.type == "income"
        assert txn.amount == Decimal("3000.00")
        assert txn.reference_number == invoice.invoice_number


class TestUpdateInvoice:
    def test_edit_fields_and_rederive_status(self, db_session, business_a, invoice_a):
        payment_service.apply_payment(invoice_a.id, business_a.id, "4000")

        invoice = invoice_service.update_invoice(
            invoice_a.id, business_a.id, {"total_amount": "4000", "notes": "discount agreed"}
        )

        assert invoice.total_amount == Decimal("4000.00")
        assert invoice.status == "paid"
        assert invoice.notes == "discount agreed"

    def test_total_below_amount_paid_rejected(self, db_session, business_a, invoice_a):
        payment_service.apply_payment(invoice_a.id, business_a.id, "4000")
        with pytest.raises(ValidationError, match="less than the amount already paid"):
            invoice_service.update_invoice(invoice_a.id, business_a.id, {"total_amount": "3999.99"})

    def test_status_not_writable(self, db_session, business_a, invoice_a):
        with pytest.raises(ValidationError, match="Field not allowed: status"):
            invoice_service.update_invoice(invoice_a.id, business_a.id, {"status": "paid"})

    def test_amount_paid_not_writable(self, db_session, business_a, invoice_a):
        with pytest.raises(ValidationError, match="Field not allowed: amount_paid"):
            invoice_service.update_invoice(invoice_a.id, business_a.id, {"amount_paid": "10000"})

    def test_stale_version_rejected(self, db_session, business_a, invoice_a):
        stale = invoice_a.version_id
        invoice_service.update_invoice(invoice_a.id, business_a.id, {"notes": "v2"})
        with pytest.raises(ConflictError):
            invoice_service.update_invoice(invoice_a.id, business_a.id, {"notes": "v3"}, expected_version=stale)


class TestDeleteInvoice:
    def test_delete_keeps_stock_out(self, db_session, business_a, product_a):
        invoice = invoice_service.create_invoice(business_a.id, items=[{"product_id": product_a.id, "quantity": 4}])
        payment_service.apply_payment(invoice.id, business_a.id, "1000")

        invoice_service.delete_invoice(invoice.id, business_a.id)

        assert db_session.query(Invoice).count() == 0
        assert db_session.query(InvoiceItem).count() == 0
        assert db_session.get(Product, product_a.id).stock_quantity == 16

    def test_delete_other_business_invoice_not_found(self, db_session, business_b, invoice_a):
        with pytest.raises(NotFoundError):
            invoice_service.delete_invoice(invoice_a.id, business_b.id)
        assert db_session.query(Invoice).count() == 1


class TestListing:
    def test_filters(self, db_session, business_a, business_b, make_invoice):
        yesterday = today() - timedelta(days=1)
        make_invoice(business_a, number="INV-A1", total="100", paid="0", status="unpaid", due_date=yesterday)
        make_invoice(business_a, number="INV-A2", total="100", paid="50", status="part_paid")
        make_invoice(business_a, number="INV-A3", total="100", paid="100", status="paid", due_date=yesterday)
        make_invoice(business_b, number="INV-B1", total="100")

        assert len(invoice_service.list_invoices(business_a.id)) == 3
        assert [i.invoice_number for i in invoice_service.list_invoices(business_a.id, status="part_paid")] == ["INV-A2"]
        assert [i.invoice_number for i in invoice_service.list_invoices(business_a.id, search="a3")] == ["INV-A3"]
        assert [i.invoice_number for i in invoice_service.list_invoices(business_a.id, overdue=True)] == ["INV-A1"]

        with pytest.raises(ValidationError):
            invoice_service.list_invoices(business_a.id, status="void")

    def test_summary(self, db_session, business_a, make_invoice):
        make_invoice(business_a, total="100", paid="0", status="unpaid")
        make_invoice(business_a, total="300", paid="100", status="part_paid")

        summary = invoice_service.invoice_summary(business_a.id)

        assert summary["invoice_count"] == 2
        assert summary["status_counts"] == {"unpaid": 1, "part_paid": 1, "paid": 0}
        assert summary["total_invoiced"] == "400.00"
        assert summary["outstanding"] == "300.00"
