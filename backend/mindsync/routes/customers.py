# Overview: Flask API routes for customers.

from flask import Blueprint, g, jsonify, request

from ..decorators import json_errors, require_business
from ..services import customers_service
from ..validation import ValidationError

customers_bp = Blueprint("customers", __name__, url_prefix="/api/customers")


def _json_body() -> dict:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError("Invalid JSON payload")
    return data


@customers_bp.get("")
@json_errors
@require_business
def list_customers_route():
    customers = customers_service.list_customers(
        g.business_id,
        search=request.args.get("search"),
        limit=request.args.get("limit", type=int),
    )
    return jsonify({"items": [c.to_dict() for c in customers], "count": len(customers)}), 200


@customers_bp.post("")
@json_errors
@require_business
def create_customer_route():
    customer = customers_service.create_customer(g.business_id, _json_body())
    return jsonify(customer.to_dict()), 201


@customers_bp.get("/<int:customer_id>")
@json_errors
@require_business
def get_customer_route(customer_id: int):
    customer = customers_service.get_customer(customer_id, g.business_id)
    data = customer.to_dict()
    data["balance"] = customers_service.customer_balance(customer_id, g.business_id)
    return jsonify(data), 200


@customers_bp.patch("/<int:customer_id>")
@json_errors
@require_business
def update_customer_route(customer_id: int):
    customer = customers_service.update_customer(customer_id, g.business_id, _json_body())
    return jsonify(customer.to_dict()), 200


@customers_bp.delete("/<int:customer_id>")
@json_errors
@require_business
def delete_customer_route(customer_id: int):
    customers_service.delete_customer(customer_id, g.business_id)
    return jsonify({"deleted": True, "id": customer_id}), 200
