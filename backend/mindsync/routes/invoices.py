# Overview: Flask API routes for invoices and invoice payments; parses input and returns JSON responses.

"""
Invoice API Routes

All routes are scoped to the business named in the X-Business-ID header.

- Create an invoice with line items (stock is taken out in the same transaction)
- Edit total/due date/notes/customer, delete
- Apply partial payments, mark fully paid, read the payment summary

Optimistic locking: PATCH and payment requests may carry "expected_version"
(the invoice's version_id as last read). A stale version returns 409.
"""

from flask import Blueprint, g, jsonify, request

from ..decorators import json_errors, require_business
from ..services import invoice_service, payment_service
from ..validation import ValidationError

invoices_bp = Blueprint("invoices", __name__, url_prefix="/api/invoices")


def _json_body() -> dict:
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Invalid JSON payload")
    return data


def _expected_version(data: dict):
    value = data.pop("expected_version", None)
    if value is None:
        return None
    if isinstance(value, bool):
        raise ValidationError("expected_version must be an integer")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError("expected_version must be an integer")


# =============================================================================
# INVOICES
# =============================================================================

@invoices_bp.get("")
@json_errors
@require_business
def list_invoices_route():
    invoices = invoice_service.list_invoices(
        g.business_id,
        status=request.args.get("status") or None,
        search=request.args.get("search"),
        customer_id=request.args.get("customer_id", type=int),
        overdue=request.args.get("overdue", "false").lower() == "true",
        limit=request.args.get("limit", type=int),
    )
    return jsonify({"items": [i.to_dict() for i in invoices], "count": len(invoices)}), 200


@invoices_bp.get("/summary")
@json_errors
@require_business
def invoice_summary_route():
    return jsonify(invoice_service.invoice_summary(g.business_id)), 200


@invoices_bp.post("")
@json_errors
@require_business
def create_invoice_route():
    """
    Create an invoice.

    Request body:
    {
        "customer_id": 3,  (optional)
        "due_date": "2026-11-30",  (optional)
        "notes": "...",  (optional)
        "items": [{"product_id": 1, "quantity": 2, "unit_price": "500.00"}]
    }

    Returns:
        201: Invoice with items
        400: Invalid input or insufficient stock (nothing written)
        404: Customer not found
    """
    data = _json_body()
    invoice = invoice_service.create_invoice(
        g.business_id,
        items=data.get("items"),
        customer_id=data.get("customer_id"),
        due_date=data.get("due_date"),
        notes=data.get("notes"),
    )
    return jsonify(invoice.to_dict(include_items=True)), 201


@invoices_bp.get("/<int:invoice_id>")
@json_errors
@require_business
def get_invoice_route(invoice_id: int):
    invoice = invoice_service.get_invoice(invoice_id, g.business_id)
    data = invoice.to_dict(include_items=True)
    data["payments"] = [p.to_dict() for p in payment_service.get_invoice_payments(invoice_id, g.business_id)]
    data["is_overdue"] = invoice_service.is_overdue(invoice)
    return jsonify(data), 200


@invoices_bp.patch("/<int:invoice_id>")
@json_errors
@require_business
def update_invoice_route(invoice_id: int):
    data = _json_body()
    expected_version = _expected_version(data)
    invoice = invoice_service.update_invoice(invoice_id, g.business_id, data, expected_version=expected_version)
    return jsonify(invoice.to_dict(include_items=True)), 200


@invoices_bp.delete("/<int:invoice_id>")
@json_errors
@require_business
def delete_invoice_route(invoice_id: int):
    invoice_service.delete_invoice(invoice_id, g.business_id)
    return jsonify({"deleted": True, "id": invoice_id}), 200


# =============================================================================
# PAYMENTS
# =============================================================================

@invoices_bp.post("/<int:invoice_id>/payments")
@json_errors
@require_business
def apply_payment_route(invoice_id: int):
    """
    Apply a payment.

    Request body:
    {
        "amount": "4000.00",
        "method": "cash",  (optional)
        "notes": "...",  (optional)
        "payment_date": "2026-10-19",  (optional, defaults to today)
        "expected_version": 2  (optional)
    }
    """
    data = _json_body()
    expected_version = _expected_version(data)
    if "amount" not in data:
        raise ValidationError("amount is required")
    invoice = payment_service.apply_payment(
        invoice_id,
        g.business_id,
        data.get("amount"),
        method=data.get("method"),
        notes=data.get("notes"),
        payment_date=data.get("payment_date"),
        expected_version=expected_version,
    )
    return jsonify(invoice.to_dict()), 201


@invoices_bp.get("/<int:invoice_id>/payments")
@json_errors
@require_business
def payment_summary_route(invoice_id: int):
    return jsonify(payment_service.get_payment_summary(invoice_id, g.business_id)), 200


@invoices_bp.post("/<int:invoice_id>/mark-paid")
@json_errors
@require_business
def mark_paid_route(invoice_id: int):
    data = _json_body()
    invoice = payment_service.mark_fully_paid(invoice_id, g.business_id, method=data.get("method"))
    return jsonify(invoice.to_dict()), 200


@invoices_bp.get("/<int:invoice_id>/payments/verify")
@json_errors
@require_business
def verify_payments_route(invoice_id: int):
    return jsonify(payment_service.verify_payment_ledger(invoice_id, g.business_id)), 200
