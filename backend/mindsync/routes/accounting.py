# Overview: Flask API routes for transactions and the chart of accounts.

from flask import Blueprint, g, jsonify, request

from ..decorators import json_errors, require_business
from ..services import accounting_service
from ..validation import ValidationError

accounting_bp = Blueprint("accounting", __name__, url_prefix="/api/accounting")


def _json_body() -> dict:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError("Invalid JSON payload")
    return data


# =============================================================================
# TRANSACTIONS
# =============================================================================

@accounting_bp.get("/transactions")
@json_errors
@require_business
def list_transactions_route():
    transactions = accounting_service.list_transactions(
        g.business_id,
        type=request.args.get("type") or None,
        search=request.args.get("search"),
        start=request.args.get("start"),
        end=request.args.get("end"),
        category_id=request.args.get("category_id", type=int),
        limit=request.args.get("limit", type=int),
    )
    return jsonify({
        "items": [t.to_dict() for t in transactions],
        "count": len(transactions),
        "totals": accounting_service.transaction_totals(transactions),
    }), 200


@accounting_bp.post("/transactions")
@json_errors
@require_business
def create_transaction_route():
    txn = accounting_service.create_transaction(g.business_id, _json_body())
    return jsonify(txn.to_dict()), 201


@accounting_bp.delete("/transactions/<int:transaction_id>")
@json_errors
@require_business
def delete_transaction_route(transaction_id: int):
    accounting_service.delete_transaction(transaction_id, g.business_id)
    return jsonify({"deleted": True, "id": transaction_id}), 200


# =============================================================================
# CHART OF ACCOUNTS
# =============================================================================

@accounting_bp.get("/accounts")
@json_errors
@require_business
def list_accounts_route():
    accounts = accounting_service.list_accounts(
        g.business_id,
        account_type=request.args.get("account_type") or None,
        search=request.args.get("search"),
    )
    return jsonify({"items": [a.to_dict() for a in accounts], "count": len(accounts)}), 200


@accounting_bp.post("/accounts")
@json_errors
@require_business
def create_account_route():
    account = accounting_service.create_account(g.business_id, _json_body())
    return jsonify(account.to_dict()), 201


@accounting_bp.patch("/accounts/<int:account_id>")
@json_errors
@require_business
def update_account_route(account_id: int):
    account = accounting_service.update_account(account_id, g.business_id, _json_body())
    return jsonify(account.to_dict()), 200


@accounting_bp.delete("/accounts/<int:account_id>")
@json_errors
@require_business
def delete_account_route(account_id: int):
    accounting_service.delete_account(account_id, g.business_id)
    return jsonify({"deleted": True, "id": account_id}), 200


@accounting_bp.get("/bank-accounts")
@json_errors
@require_business
def bank_accounts_route():
    return jsonify(accounting_service.bank_accounts(g.business_id)), 200
