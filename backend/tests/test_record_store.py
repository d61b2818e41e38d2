# Overview: Pytest coverage for the business-scoped record store.

from datetime import date
from decimal import Decimal

import pytest
from mindsync.models import Customer, Invoice, InvoicePayment, Transaction
from mindsync.services.concurrency import StoreError
from mindsync.services.record_store import RecordStore
from mindsync.validation import NotFoundError, ValidationError


@pytest.fixture
def customers(db_session, business_a, business_b):
    db_session.add_all([
        Customer(business_id=business_a.id, name="Ada Obi", email="ada@example.com"),
        Customer(business_id=business_a.id, name="Chidi Eze", email="chidi@example.com"),
        Customer(business_id=business_a.id, name="Adaeze Nwosu"),
        Customer(business_id=business_b.id, name="Ada Other"),
    ])
    db_session.commit()


class TestQueries:
    def test_select_is_business_scoped(self, db_session, business_a, business_b, customers):
        assert RecordStore(business_a.id).select("customers").count() == 3
        assert RecordStore(business_b.id).select("customers").count() == 1

    def test_eq_and_ilike(self, db_session, business_a, customers):
        store = RecordStore(business_a.id)
        assert [c.name for c in store.select("customers").eq("name", "Chidi Eze").all()] == ["Chidi Eze"]
        names = [c.name for c in store.select("customers").ilike("name", "ada%").order("name").all()]
        assert names == ["Ada Obi", "Adaeze Nwosu"]

    def test_eq_none_matches_null(self, db_session, business_a, customers):
        rows = RecordStore(business_a.id).select("customers").eq("email", None).all()
        assert [c.name for c in rows] == ["Adaeze Nwosu"]

    def test_in_order_limit_first(self, db_session, business_a, customers):
        store = RecordStore(business_a.id)
        rows = store.select("customers").in_("name", ["Ada Obi", "Chidi Eze", "Ada Other"]).order("name", desc=True).all()
        assert [c.name for c in rows] == ["Chidi Eze", "Ada Obi"]
        assert store.select("customers").order("name").limit(1).first().name == "Ada Obi"
        assert store.select("customers").eq("name", "nobody").first() is None

    def test_search_across_fields(self, db_session, business_a, customers):
        rows = RecordStore(business_a.id).select("customers").search(["name", "email"], "CHIDI").all()
        assert [c.name for c in rows] == ["Chidi Eze"]
        assert RecordStore(business_a.id).select("customers").search(["name"], "  ").count() == 3

    def test_range_filters(self, db_session, business_a):
        for day in (1, 15, 31):
            db_session.add(Transaction(business_id=business_a.id, type="expense",
                                       amount=Decimal("1"), date=date(2026, 10, day)))
        db_session.commit()
        rows = (
            RecordStore(business_a.id).select("transactions")
            .gte("date", date(2026, 10, 1)).lt("date", date(2026, 10, 31)).all()
        )
        assert [t.date.day for t in rows] == [1, 15]

    def test_child_tables_scoped_through_invoice(self, db_session, business_a, business_b, make_invoice):
        inv_a = make_invoice(business_a, total="100", paid="10", status="part_paid", items=[(1, "5")])
        inv_b = make_invoice(business_b, total="100", paid="10", status="part_paid", items=[(2, "5")])
        db_session.add_all([
            InvoicePayment(invoice_id=inv_a.id, amount_paid=Decimal("10"), payment_date=date(2026, 10, 1)),
            InvoicePayment(invoice_id=inv_b.id, amount_paid=Decimal("10"), payment_date=date(2026, 10, 1)),
        ])
        db_session.commit()

        store = RecordStore(business_a.id)
        assert [i.invoice_id for i in store.select("invoice_items").all()] == [inv_a.id]
        assert [p.invoice_id for p in store.select("invoice_payments").all()] == [inv_a.id]

    def test_business_profiles_only_own_row(self, db_session, business_a, business_b):
        rows = RecordStore(business_a.id).select("business_profiles").all()
        assert [b.id for b in rows] == [business_a.id]

    def test_unknown_table_or_field(self, db_session, business_a):
        store = RecordStore(business_a.id)
        with pytest.raises(ValidationError, match="Unknown table"):
            store.select("users")
        with pytest.raises(ValidationError, match="Unknown field"):
            store.select("customers").eq("password", "x")
        with pytest.raises(ValidationError):
            store.select("customers").limit(-1)


class TestWrites:
    def test_insert_sets_business(self, db_session, business_a):
        customer = RecordStore(business_a.id).insert("customers", {"name": "New"})
        assert customer.id is not None
        assert customer.business_id == business_a.id

    def test_insert_cannot_choose_business(self, db_session, business_a, business_b):
        with pytest.raises(ValidationError, match="Field not allowed: business_id"):
            RecordStore(business_a.id).insert("customers", {"name": "X", "business_id": business_b.id})

    def test_insert_child_requires_own_parent(self, db_session, business_a, business_b, make_invoice):
        inv_b = make_invoice(business_b, total="100")
        with pytest.raises(NotFoundError):
            RecordStore(business_a.id).insert(
                "invoice_payments",
                {"invoice_id": inv_b.id, "amount_paid": Decimal("1"), "payment_date": date(2026, 10, 1)},
            )
        with pytest.raises(ValidationError, match="invoice_id"):
            RecordStore(business_a.id).insert("invoice_payments", {"amount_paid": Decimal("1")})

    def test_update_and_delete_by_id(self, db_session, business_a, customers):
        store = RecordStore(business_a.id)
        chidi = store.select("customers").eq("name", "Chidi Eze").first()

        store.update("customers", chidi.id, {"phone": "+234"})
        assert db_session.get(Customer, chidi.id).phone == "+234"

        store.delete("customers", chidi.id)
        assert db_session.get(Customer, chidi.id) is None

    @pytest.mark.parametrize("table,values", [
        ("invoices", {"amount_paid": Decimal("50.00")}),
        ("invoices", {"status": "paid"}),
        ("products", {"stock_quantity": 0}),
    ])
    def test_balances_not_patchable(self, db_session, business_a, invoice_a, product_a, table, values):
        row_id = invoice_a.id if table == "invoices" else product_a.id
        with pytest.raises(ValidationError, match="Field not allowed"):
            RecordStore(business_a.id).update(table, row_id, values)

        db_session.expire_all()
        assert db_session.get(Invoice, invoice_a.id).amount_paid == Decimal("0.00")
        assert db_session.get(Invoice, invoice_a.id).status == "unpaid"

    def test_writes_to_other_business_row_not_found(self, db_session, business_a, business_b, customers):
        other = RecordStore(business_b.id).select("customers").first()
        with pytest.raises(NotFoundError):
            RecordStore(business_a.id).update("customers", other.id, {"name": "Hijacked"})
        with pytest.raises(NotFoundError):
            RecordStore(business_a.id).delete("customers", other.id)
        assert db_session.get(Customer, other.id).name == "Ada Other"

    def test_constraint_violation_is_store_error(self, db_session, business_a, make_invoice):
        make_invoice(business_a, number="INV-DUP", total="100")
        with pytest.raises(StoreError):
            RecordStore(business_a.id).insert(
                "invoices",
                {"invoice_number": "INV-DUP", "total_amount": Decimal("5"), "amount_paid": Decimal("0"), "status": "unpaid"},
            )
        # session is usable again after the rollback
        assert db_session.query(Invoice).count() == 1
