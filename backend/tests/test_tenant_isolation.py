# Overview: Pytest coverage for tenant isolation behavior.

"""
Multi-Tenant Isolation Tests

SECURITY TESTS: Prove that one business can never read or change another
business's rows.

These tests create two businesses with their own products, customers and
invoices, then verify that:
1. Lookups with a foreign id fail exactly like lookups of a missing id
2. Listings only return the caller's rows
3. Writes that reference a foreign row are rejected and leave no trace
4. Cross-business attempts are logged
"""

import logging

import pytest
from mindsync.models import Invoice, InvoiceSequence, Product
from mindsync.services import (
    customers_service,
    invoice_service,
    payment_service,
    products_service,
    reporting_service,
    tenant_service,
)
from mindsync.validation import ConflictError, NotFoundError, ValidationError


class TestTenantServiceHelpers:
    """Test tenant_service helper functions."""

    def test_require_invoice_own_business(self, db_session, business_a, invoice_a):
        assert tenant_service.require_invoice(invoice_a.id, business_a.id).id == invoice_a.id

    def test_foreign_and_missing_look_the_same(self, db_session, business_b, invoice_a):
        with pytest.raises(NotFoundError) as foreign:
            tenant_service.require_invoice(invoice_a.id, business_b.id)
        with pytest.raises(NotFoundError) as missing:
            tenant_service.require_invoice(99999, business_b.id)
        assert str(foreign.value) == str(missing.value) == "Invoice not found"

    def test_cross_business_attempt_is_logged(self, db_session, business_b, product_a, caplog):
        with caplog.at_level(logging.WARNING, logger="mindsync.services.tenant_service"):
            with pytest.raises(NotFoundError):
                tenant_service.require_product(product_a.id, business_b.id)
        assert "Cross-business access denied" in caplog.text

    def test_create_business(self, db_session):
        business = tenant_service.create_business(user_id="user-c", business_name="  Cedar Foods ", industry="Food")
        assert business.business_name == "Cedar Foods"
        sequence = db_session.query(InvoiceSequence).filter_by(business_id=business.id).one()
        assert sequence.next_number == 1
        assert tenant_service.get_business_for_user("user-c").id == business.id

    def test_one_business_per_user(self, db_session, business_a):
        with pytest.raises(ConflictError):
            tenant_service.create_business(user_id="user-a", business_name="Second shop")

    def test_create_business_rejects_unknown_fields(self, db_session):
        with pytest.raises(ValidationError, match="Field not allowed: owner"):
            tenant_service.create_business(user_id="user-d", business_name="Dune", owner="x")


class TestCrossBusinessReads:
    def test_listings_are_scoped(self, db_session, business_a, business_b, product_a, product_b, customer_a, customer_b):
        assert [p.id for p in products_service.list_products(business_a.id)] == [product_a.id]
        assert [p.id for p in products_service.list_products(business_b.id)] == [product_b.id]
        assert [c.id for c in customers_service.list_customers(business_b.id)] == [customer_b.id]

    def test_invoice_listing_is_scoped(self, db_session, business_a, business_b, invoice_a, make_invoice):
        other = make_invoice(business_b, total="500.00")
        assert [i.id for i in invoice_service.list_invoices(business_a.id)] == [invoice_a.id]
        assert [i.id for i in invoice_service.list_invoices(business_b.id)] == [other.id]

    def test_payment_summary_of_foreign_invoice(self, db_session, business_b, invoice_a):
        with pytest.raises(NotFoundError):
            payment_service.get_payment_summary(invoice_a.id, business_b.id)

    def test_reports_only_count_own_rows(self, db_session, business_a, business_b, make_invoice):
        make_invoice(business_a, total="1000.00", paid="1000.00", status="paid")
        make_invoice(business_b, total="9999.00", paid="9999.00", status="paid")
        report = reporting_service.build_report(business_a.id, "this_year")
        assert report.invoice_count == 1


class TestCrossBusinessWrites:
    def test_payment_on_foreign_invoice(self, db_session, business_b, invoice_a):
        with pytest.raises(NotFoundError):
            payment_service.apply_payment(invoice_a.id, business_b.id, "100")
        db_session.expire_all()
        assert db_session.get(Invoice, invoice_a.id).amount_paid == 0

    def test_invoice_with_foreign_product(self, db_session, business_b, product_a):
        with pytest.raises(NotFoundError):
            invoice_service.create_invoice(business_b.id, items=[{"product_id": product_a.id, "quantity": 1}])
        db_session.expire_all()
        assert db_session.get(Product, product_a.id).stock_quantity == 20
        assert db_session.query(Invoice).count() == 0

    def test_invoice_with_foreign_customer(self, db_session, business_b, product_b, customer_a):
        with pytest.raises(NotFoundError):
            invoice_service.create_invoice(
                business_b.id,
                items=[{"product_id": product_b.id, "quantity": 1}],
                customer_id=customer_a.id,
            )

    def test_update_and_delete_foreign_rows(self, db_session, business_b, product_a, customer_a, invoice_a):
        with pytest.raises(NotFoundError):
            products_service.update_product(product_a.id, business_b.id, {"name": "Hijacked"})
        with pytest.raises(NotFoundError):
            customers_service.delete_customer(customer_a.id, business_b.id)
        with pytest.raises(NotFoundError):
            invoice_service.delete_invoice(invoice_a.id, business_b.id)
        db_session.expire_all()
        assert db_session.get(Product, product_a.id).name == "Rice 5kg"

    def test_stock_adjustment_on_foreign_product(self, db_session, business_b, product_a):
        with pytest.raises(NotFoundError):
            products_service.adjust_stock(product_a.id, business_b.id, -5)

    def test_invoice_numbers_are_per_business(self, db_session, business_a, business_b, product_a, product_b):
        first_a = invoice_service.create_invoice(business_a.id, items=[{"product_id": product_a.id, "quantity": 1}])
        first_b = invoice_service.create_invoice(business_b.id, items=[{"product_id": product_b.id, "quantity": 1}])
        assert first_a.invoice_number == first_b.invoice_number == "INV-000001"
