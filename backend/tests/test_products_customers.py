# Overview: Pytest coverage for products, stock adjustments and customers.

from decimal import Decimal

import pytest
from mindsync.models import Product, StockMovement
from mindsync.services import customers_service, invoice_service, payment_service, products_service
from mindsync.validation import ConflictError, NotFoundError, ValidationError


class TestProducts:
    def test_create_product(self, db_session, business_a):
        product = products_service.create_product(business_a.id, {
            "name": "Garri 2kg",
            "sku": "GARRI-2",
            "unit_price": "1200",
            "purchase_cost": "700",
            "stock_quantity": 30,
        })
        assert product.unit_price == Decimal("1200.00")
        assert product.reorder_level == 0
        assert product.version_id == 1

    def test_default_reorder_level_from_config(self, app, db_session, business_a):
        app.config["LOW_STOCK_DEFAULT_REORDER_LEVEL"] = 7
        try:
            product = products_service.create_product(business_a.id, {"name": "Salt"})
        finally:
            app.config["LOW_STOCK_DEFAULT_REORDER_LEVEL"] = 0
        assert product.reorder_level == 7

    def test_duplicate_sku_per_business(self, db_session, business_a, business_b, product_a):
        with pytest.raises(ConflictError):
            products_service.create_product(business_a.id, {"name": "Other rice", "sku": product_a.sku})
        products_service.create_product(business_b.id, {"name": "Rice", "sku": product_a.sku})

    def test_negative_stock_rejected(self, db_session, business_a):
        with pytest.raises(ValidationError, match="stock_quantity must be >= 0"):
            products_service.create_product(business_a.id, {"name": "X", "stock_quantity": -1})

    def test_update_with_stale_version(self, db_session, business_a, product_a):
        version = product_a.version_id
        updated = products_service.update_product(product_a.id, business_a.id, {"unit_price": "1600"}, expected_version=version)
        assert updated.version_id == version + 1
        with pytest.raises(ConflictError):
            products_service.update_product(product_a.id, business_a.id, {"unit_price": "1700"}, expected_version=version)

    def test_stock_cannot_be_patched(self, db_session, business_a, product_a):
        with pytest.raises(ValidationError, match="adjust-stock"):
            products_service.update_product(product_a.id, business_a.id, {"stock_quantity": 3})

        db_session.expire_all()
        assert db_session.get(Product, product_a.id).stock_quantity == 20
        assert db_session.query(StockMovement).filter_by(product_id=product_a.id).count() == 0

    def test_search_and_low_stock(self, db_session, business_a, product_a):
        products_service.create_product(business_a.id, {"name": "Palm oil", "stock_quantity": 1, "reorder_level": 3})
        assert [p.name for p in products_service.list_products(business_a.id, search="palm")] == ["Palm oil"]
        assert [p.name for p in products_service.low_stock_products(business_a.id)] == ["Palm oil"]

    def test_low_stock_includes_equal_to_reorder_level(self, db_session, business_a):
        products_service.create_product(business_a.id, {"name": "Edge", "stock_quantity": 3, "reorder_level": 3})
        assert [p.name for p in products_service.list_products(business_a.id, low_stock=True)] == ["Edge"]

    def test_adjust_stock(self, db_session, business_a, product_a):
        product = products_service.adjust_stock(product_a.id, business_a.id, 5, movement_type="in", notes="delivery")
        assert product.stock_quantity == 25
        product = products_service.adjust_stock(product_a.id, business_a.id, "-3")
        assert product.stock_quantity == 22

        movements = products_service.list_stock_movements(product_a.id, business_a.id)
        assert sorted((m.type, m.quantity) for m in movements) == [("adjustment", -3), ("in", 5)]

    @pytest.mark.parametrize("quantity,movement_type", [(0, "adjustment"), ("x", "adjustment"), (-1, "in"), (True, "in"), (1, "out")])
    def test_adjust_stock_invalid(self, db_session, business_a, product_a, quantity, movement_type):
        with pytest.raises(ValidationError):
            products_service.adjust_stock(product_a.id, business_a.id, quantity, movement_type=movement_type)

    def test_adjust_stock_cannot_go_negative(self, db_session, business_a, product_a):
        with pytest.raises(ValidationError, match="Insufficient stock"):
            products_service.adjust_stock(product_a.id, business_a.id, -21)
        assert db_session.query(StockMovement).count() == 0
        assert db_session.get(Product, product_a.id).stock_quantity == 20

    def test_delete_product(self, db_session, business_a, product_a):
        products_service.adjust_stock(product_a.id, business_a.id, 1)
        products_service.delete_product(product_a.id, business_a.id)
        assert db_session.get(Product, product_a.id) is None
        assert db_session.query(StockMovement).count() == 0

    def test_product_on_invoice_cannot_be_deleted(self, db_session, business_a, product_a):
        invoice_service.create_invoice(business_a.id, items=[{"product_id": product_a.id, "quantity": 1}])
        with pytest.raises(ConflictError):
            products_service.delete_product(product_a.id, business_a.id)

    def test_stock_valuation(self, db_session, business_a, product_a):
        valuation = products_service.stock_valuation(business_a.id)
        assert valuation["units_on_hand"] == 20
        assert valuation["cost_value"] == "10000.00"
        assert valuation["retail_value"] == "30000.00"


class TestCustomers:
    def test_crud(self, db_session, business_a):
        customer = customers_service.create_customer(business_a.id, {"name": "Ngozi", "phone": "0803"})
        customers_service.update_customer(customer.id, business_a.id, {"email": "ngozi@example.com"})
        assert customers_service.get_customer(customer.id, business_a.id).email == "ngozi@example.com"
        assert [c.name for c in customers_service.list_customers(business_a.id, search="ngo")] == ["Ngozi"]

        customers_service.delete_customer(customer.id, business_a.id)
        with pytest.raises(NotFoundError):
            customers_service.get_customer(customer.id, business_a.id)

    def test_name_required(self, db_session, business_a):
        with pytest.raises(ValidationError, match="Missing required fields: name"):
            customers_service.create_customer(business_a.id, {"email": "x@example.com"})

    def test_balance_and_delete_guard(self, db_session, business_a, product_a, customer_a):
        invoice = invoice_service.create_invoice(
            business_a.id, items=[{"product_id": product_a.id, "quantity": 2}], customer_id=customer_a.id,
        )
        payment_service.apply_payment(invoice.id, business_a.id, "1000")

        balance = customers_service.customer_balance(customer_a.id, business_a.id)
        assert balance["total_invoiced"] == "3000.00"
        assert balance["total_paid"] == "1000.00"
        assert balance["outstanding"] == "2000.00"

        with pytest.raises(ConflictError):
            customers_service.delete_customer(customer_a.id, business_a.id)
