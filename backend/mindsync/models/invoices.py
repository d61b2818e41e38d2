from __future__ import annotations

from ..extensions import db
from mindsync.time_utils import to_utc_z, to_iso_date

INVOICE_STATUS_UNPAID = "unpaid"
INVOICE_STATUS_PART_PAID = "part_paid"
INVOICE_STATUS_PAID = "paid"
INVOICE_STATUSES = (INVOICE_STATUS_UNPAID, INVOICE_STATUS_PART_PAID, INVOICE_STATUS_PAID)


def _money(value):
    return str(value) if value is not None else None


class Invoice(db.Model):
    """
    Sales invoice.

    amount_paid is the running total of InvoicePayment rows and status is
    derived from it (see payment_service.derive_status). version_id guards
    every update path touching amount_paid/status against lost updates.
    """
    __tablename__ = "invoices"
    __table_args__ = (
        db.UniqueConstraint("business_id", "invoice_number", name="uq_invoices_business_number"),
        db.CheckConstraint("amount_paid >= 0", name="ck_invoices_amount_paid_nonneg"),
        db.CheckConstraint("amount_paid <= total_amount", name="ck_invoices_paid_within_total"),
        db.Index("ix_invoices_business_status", "business_id", "status"),
        db.Index("ix_invoices_business_created", "business_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    business_id = db.Column(db.Integer, db.ForeignKey("business_profiles.id"), nullable=False, index=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=True, index=True)

    invoice_number = db.Column(db.String(64), nullable=False)
    total_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    amount_paid = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    due_date = db.Column(db.Date, nullable=True)
    status = db.Column(db.String(16), nullable=False, default=INVOICE_STATUS_UNPAID, index=True)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    business = db.relationship("BusinessProfile", backref=db.backref("invoices", lazy=True))
    customer = db.relationship("Customer", backref=db.backref("invoices", lazy=True))
    items = db.relationship("InvoiceItem", back_populates="invoice", cascade="all, delete-orphan", lazy=True)
    payments = db.relationship(
        "InvoicePayment",
        back_populates="invoice",
        cascade="all, delete-orphan",
        order_by="InvoicePayment.id",
        lazy=True,
    )
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def remaining_amount(self):
        return (self.total_amount or 0) - (self.amount_paid or 0)

    def __repr__(self) -> str:
        return f"<Invoice id={self.id} number={self.invoice_number!r} status={self.status}>"

    def to_dict(self, include_items: bool = False) -> dict:
        data = {
            "id": self.id,
            "business_id": self.business_id,
            "customer_id": self.customer_id,
            "customer_name": self.customer.name if self.customer else None,
            "invoice_number": self.invoice_number,
            "total_amount": _money(self.total_amount),
            "amount_paid": _money(self.amount_paid),
            "remaining_amount": _money(self.remaining_amount),
            "due_date": to_iso_date(self.due_date),
            "status": self.status,
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "version_id": self.version_id,
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class InvoiceItem(db.Model):
    """
    Line item on an invoice. purchase_cost is a snapshot of the product's cost
    at sale time and feeds COGS; rows are never mutated after creation.
    """
    __tablename__ = "invoice_items"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_invoice_items_quantity_pos"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    invoice_id = db.Column(db.Integer, db.ForeignKey("invoices.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=True, index=True)

    quantity = db.Column(db.Integer, nullable=False)
    unit_price = db.Column(db.Numeric(12, 2), nullable=False)
    purchase_cost = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    total_amount = db.Column(db.Numeric(12, 2), nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    invoice = db.relationship("Invoice", back_populates="items")
    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "invoice_id": self.invoice_id,
            "product_id": self.product_id,
            "product_name": self.product.name if self.product else None,
            "quantity": self.quantity,
            "unit_price": _money(self.unit_price),
            "purchase_cost": _money(self.purchase_cost),
            "total_amount": _money(self.total_amount),
        }


class InvoicePayment(db.Model):
    """Append-only record of a partial or full payment against an invoice."""
    __tablename__ = "invoice_payments"
    __table_args__ = (
        db.CheckConstraint("amount_paid > 0", name="ck_invoice_payments_amount_pos"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    invoice_id = db.Column(db.Integer, db.ForeignKey("invoices.id"), nullable=False, index=True)

    amount_paid = db.Column(db.Numeric(12, 2), nullable=False)
    payment_method = db.Column(db.String(32), nullable=True)
    payment_date = db.Column(db.Date, nullable=False)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    invoice = db.relationship("Invoice", back_populates="payments")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "invoice_id": self.invoice_id,
            "amount_paid": _money(self.amount_paid),
            "payment_method": self.payment_method,
            "payment_date": to_iso_date(self.payment_date),
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
        }


class InvoiceSequence(db.Model):
    """
    Atomic per-business invoice numbering.

    Prevents two concurrent invoice creations from picking the same number.
    """
    __tablename__ = "invoice_sequences"
    __table_args__ = (
        db.UniqueConstraint("business_id", name="uq_invoice_sequences_business"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    business_id = db.Column(db.Integer, db.ForeignKey("business_profiles.id"), nullable=False, index=True)
    next_number = db.Column(db.Integer, nullable=False, default=1)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
