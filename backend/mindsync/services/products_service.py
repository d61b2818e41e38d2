# backend/mindsync/services/products_service.py
"""
Products Service

All product operations are business-scoped. Stock only moves through
invoice creation (out) and adjust_stock (in / adjustment); each move
leaves a StockMovement row behind.
"""
from __future__ import annotations

import logging
from decimal import Decimal

from flask import current_app, has_app_context

from ..extensions import db
from ..models import InvoiceItem, Product, StockMovement
from ..models.inventory import STOCK_ADJUSTMENT, STOCK_IN
from ..validation import (
    ConflictError,
    ModelValidationPolicy,
    ValidationError,
    enforce_rules_product,
    validate_payload,
)
from .concurrency import lock_for_update, run_with_retry
from .record_store import RecordStore
from .tenant_service import require_account, require_product

logger = logging.getLogger(__name__)

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={
        "name",
        "sku",
        "description",
        "unit_price",
        "purchase_cost",
        "stock_quantity",
        "reorder_level",
        "category_id",
    },
    required_on_create={"name"},
)

# stock only changes through adjust_stock and invoices, which record a StockMovement
PRODUCT_UPDATE_POLICY = ModelValidationPolicy(
    writable_fields=PRODUCT_POLICY.writable_fields - {"stock_quantity"},
)


def _default_reorder_level() -> int:
    if not has_app_context():
        return 0
    return int(current_app.config.get("LOW_STOCK_DEFAULT_REORDER_LEVEL", 0) or 0)


def _check_sku(business_id: int, sku: str | None, exclude_id: int | None = None) -> None:
    if not sku:
        return
    query = db.session.query(Product).filter(Product.business_id == business_id, Product.sku == sku)
    if exclude_id is not None:
        query = query.filter(Product.id != exclude_id)
    if query.first() is not None:
        raise ConflictError("SKU already exists for this business.")


def _clean_patch(patch: dict, business_id: int) -> dict:
    enforce_rules_product(patch)
    if "sku" in patch and patch["sku"] == "":
        patch["sku"] = None
    if patch.get("category_id") is not None:
        require_account(patch["category_id"], business_id)
    return patch


def list_products(
    business_id: int,
    *,
    search: str | None = None,
    low_stock: bool = False,
    limit: int | None = None,
) -> list[Product]:
    products = (
        RecordStore(business_id)
        .select("products")
        .search(["name", "sku", "description"], search)
        .order("name")
        .limit(None if low_stock else limit)
        .all()
    )
    if low_stock:
        # column-to-column comparison; filtered here rather than in the store
        products = [p for p in products if p.is_low_stock]
        if limit is not None:
            products = products[:limit]
    return products


def low_stock_products(business_id: int) -> list[Product]:
    return list_products(business_id, low_stock=True)


def get_product(product_id: int, business_id: int) -> Product:
    return require_product(product_id, business_id)


def create_product(business_id: int, payload: dict) -> Product:
    patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=False)
    patch = _clean_patch(patch, business_id)
    patch.setdefault("reorder_level", _default_reorder_level())
    _check_sku(business_id, patch.get("sku"))

    product = RecordStore(business_id).insert("products", patch)
    logger.info("Created product %s (%s) for business %s", product.id, product.name, business_id)
    return product


def update_product(product_id: int, business_id: int, payload: dict, expected_version: int | None = None) -> Product:
    if isinstance(payload, dict) and "stock_quantity" in payload:
        raise ValidationError("stock_quantity cannot be edited directly; use adjust-stock to record the change")
    patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_UPDATE_POLICY, partial=True)
    patch = _clean_patch(patch, business_id)
    product = require_product(product_id, business_id)
    if expected_version is not None and product.version_id != expected_version:
        raise ConflictError("Product was modified by another request; reload and try again")
    if "sku" in patch:
        _check_sku(business_id, patch["sku"], exclude_id=product_id)
    return RecordStore(business_id).update("products", product_id, patch)


def delete_product(product_id: int, business_id: int) -> None:
    """Products that appear on an invoice cannot be deleted."""
    require_product(product_id, business_id)
    if db.session.query(InvoiceItem.id).filter(InvoiceItem.product_id == product_id).first():
        raise ConflictError("Product appears on invoices and cannot be deleted")

    def _op():
        db.session.query(StockMovement).filter(StockMovement.product_id == product_id).delete()
        db.session.delete(db.session.get(Product, product_id))
        db.session.commit()

    run_with_retry(_op)
    logger.info("Deleted product %s for business %s", product_id, business_id)


def adjust_stock(
    product_id: int,
    business_id: int,
    quantity,
    *,
    movement_type: str = STOCK_ADJUSTMENT,
    notes: str | None = None,
) -> Product:
    """
    Manual stock change.

    movement_type "in" receives goods (quantity > 0); "adjustment" applies a
    signed correction. Stock can never go below zero.
    """
    if movement_type not in (STOCK_IN, STOCK_ADJUSTMENT):
        raise ValidationError(f"Invalid movement type: {movement_type}")
    if isinstance(quantity, bool):
        raise ValidationError("quantity must be an integer")
    try:
        delta = int(str(quantity).strip())
    except (TypeError, ValueError):
        raise ValidationError("quantity must be an integer")
    if delta == 0:
        raise ValidationError("quantity must not be zero")
    if movement_type == STOCK_IN and delta < 0:
        raise ValidationError("quantity must be > 0 when receiving stock")
    notes = (notes or "").strip() or None

    def _op():
        require_product(product_id, business_id)
        product = lock_for_update(db.session.query(Product).filter_by(id=product_id)).populate_existing().one()
        new_quantity = product.stock_quantity + delta
        if new_quantity < 0:
            raise ValidationError(
                f"Insufficient stock for {product.name}: available {product.stock_quantity}, requested {-delta}"
            )
        product.stock_quantity = new_quantity
        db.session.add(StockMovement(
            product_id=product.id,
            type=movement_type,
            quantity=delta,
            notes=notes,
        ))
        db.session.commit()
        return product

    product = run_with_retry(_op)
    logger.info("Stock %s %+d for product %s (now %s)", movement_type, delta, product_id, product.stock_quantity)
    return product


def list_stock_movements(product_id: int, business_id: int) -> list[StockMovement]:
    require_product(product_id, business_id)
    return (
        RecordStore(business_id)
        .select("stock_movements")
        .eq("product_id", product_id)
        .order("created_at", desc=True)
        .all()
    )


def stock_valuation(business_id: int) -> dict:
    """Stock on hand valued at cost and at selling price."""
    products = RecordStore(business_id).select("products").all()
    cost = sum((p.purchase_cost * p.stock_quantity for p in products), Decimal("0.00"))
    retail = sum((p.unit_price * p.stock_quantity for p in products), Decimal("0.00"))
    return {
        "product_count": len(products),
        "units_on_hand": sum(p.stock_quantity for p in products),
        "cost_value": str(cost),
        "retail_value": str(retail),
        "low_stock_count": sum(1 for p in products if p.is_low_stock),
    }
