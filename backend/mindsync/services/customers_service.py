# Overview: Service-layer operations for customers.

from __future__ import annotations

import logging
from decimal import Decimal

from ..extensions import db
from ..models import Customer, Invoice
from ..validation import ConflictError, ModelValidationPolicy, validate_payload
from .record_store import RecordStore
from .tenant_service import require_customer

logger = logging.getLogger(__name__)

CUSTOMER_POLICY = ModelValidationPolicy(
    writable_fields={"name", "email", "phone", "address"},
    required_on_create={"name"},
)


def list_customers(business_id: int, *, search: str | None = None, limit: int | None = None) -> list[Customer]:
    return (
        RecordStore(business_id)
        .select("customers")
        .search(["name", "email", "phone"], search)
        .order("name")
        .limit(limit)
        .all()
    )


def get_customer(customer_id: int, business_id: int) -> Customer:
    return require_customer(customer_id, business_id)


def create_customer(business_id: int, payload: dict) -> Customer:
    patch = validate_payload(model=Customer, payload=payload, policy=CUSTOMER_POLICY, partial=False)
    customer = RecordStore(business_id).insert("customers", patch)
    logger.info("Created customer %s for business %s", customer.id, business_id)
    return customer


def update_customer(customer_id: int, business_id: int, payload: dict) -> Customer:
    patch = validate_payload(model=Customer, payload=payload, policy=CUSTOMER_POLICY, partial=True)
    require_customer(customer_id, business_id)
    return RecordStore(business_id).update("customers", customer_id, patch)


def delete_customer(customer_id: int, business_id: int) -> None:
    """Customers with invoices cannot be deleted."""
    require_customer(customer_id, business_id)
    if db.session.query(Invoice.id).filter(Invoice.customer_id == customer_id).first():
        raise ConflictError("Customer has invoices and cannot be deleted")
    RecordStore(business_id).delete("customers", customer_id)


def customer_balance(customer_id: int, business_id: int) -> dict:
    """Invoiced, paid and outstanding totals for one customer."""
    customer = require_customer(customer_id, business_id)
    invoices = RecordStore(business_id).select("invoices").eq("customer_id", customer_id).all()
    invoiced = sum((i.total_amount for i in invoices), Decimal("0.00"))
    paid = sum((i.amount_paid for i in invoices), Decimal("0.00"))
    return {
        "customer_id": customer.id,
        "customer_name": customer.name,
        "invoice_count": len(invoices),
        "total_invoiced": str(invoiced),
        "total_paid": str(paid),
        "outstanding": str(invoiced - paid),
    }
