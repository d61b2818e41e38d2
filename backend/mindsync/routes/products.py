# Overview: Flask API routes for products and stock adjustments.

from flask import Blueprint, g, jsonify, request

from ..decorators import json_errors, require_business
from ..services import products_service
from ..validation import ValidationError

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


def _json_body() -> dict:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError("Invalid JSON payload")
    return data


@products_bp.get("")
@json_errors
@require_business
def list_products_route():
    products = products_service.list_products(
        g.business_id,
        search=request.args.get("search"),
        low_stock=request.args.get("low_stock", "false").lower() == "true",
        limit=request.args.get("limit", type=int),
    )
    return jsonify({"items": [p.to_dict() for p in products], "count": len(products)}), 200


@products_bp.get("/valuation")
@json_errors
@require_business
def stock_valuation_route():
    return jsonify(products_service.stock_valuation(g.business_id)), 200


@products_bp.post("")
@json_errors
@require_business
def create_product_route():
    product = products_service.create_product(g.business_id, _json_body())
    return jsonify(product.to_dict()), 201


@products_bp.get("/<int:product_id>")
@json_errors
@require_business
def get_product_route(product_id: int):
    product = products_service.get_product(product_id, g.business_id)
    return jsonify(product.to_dict()), 200


@products_bp.patch("/<int:product_id>")
@json_errors
@require_business
def update_product_route(product_id: int):
    data = _json_body()
    expected_version = data.pop("expected_version", None)
    if expected_version is not None:
        try:
            expected_version = int(expected_version)
        except (TypeError, ValueError):
            raise ValidationError("expected_version must be an integer")
    product = products_service.update_product(product_id, g.business_id, data, expected_version=expected_version)
    return jsonify(product.to_dict()), 200


@products_bp.delete("/<int:product_id>")
@json_errors
@require_business
def delete_product_route(product_id: int):
    products_service.delete_product(product_id, g.business_id)
    return jsonify({"deleted": True, "id": product_id}), 200


@products_bp.post("/<int:product_id>/adjust-stock")
@json_errors
@require_business
def adjust_stock_route(product_id: int):
    """
    Request body:
    {
        "quantity": -3,
        "movement_type": "adjustment",  (or "in" for received stock)
        "notes": "Damaged in storage"  (optional)
    }
    """
    data = _json_body()
    if data.get("quantity") is None:
        raise ValidationError("quantity is required")
    product = products_service.adjust_stock(
        product_id,
        g.business_id,
        data.get("quantity"),
        movement_type=data.get("movement_type") or "adjustment",
        notes=data.get("notes"),
    )
    return jsonify(product.to_dict()), 200


@products_bp.get("/<int:product_id>/movements")
@json_errors
@require_business
def stock_movements_route(product_id: int):
    movements = products_service.list_stock_movements(product_id, g.business_id)
    return jsonify({"items": [m.to_dict() for m in movements], "count": len(movements)}), 200
