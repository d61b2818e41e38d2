# Overview: Service-layer operations for transactions and the chart of accounts.

"""
Accounting Service

Transactions record cash movement (income, expense, transfer) and are
immutable once written: they can be created and deleted, never edited.
The chart of accounts is a flat category list used to tag transactions.
An Assets account whose name mentions bank, cash, checking or savings is
treated as a bank/cash account and gets a running balance.
"""

from __future__ import annotations

import logging
from decimal import Decimal

from ..extensions import db
from ..models import ChartOfAccount, Product, Transaction
from ..models.accounting import ACCOUNT_TYPES, TRANSACTION_INCOME, TRANSACTION_TYPES
from ..validation import (
    ConflictError,
    ModelValidationPolicy,
    ValidationError,
    parse_date_field,
    validate_payload,
)
from .concurrency import run_with_retry
from .record_store import RecordStore
from .tenant_service import require_account, require_transaction

logger = logging.getLogger(__name__)

TRANSACTION_POLICY = ModelValidationPolicy(
    writable_fields={"type", "amount", "date", "category_id", "bank_account_id", "description", "reference_number"},
    required_on_create={"type", "amount", "date"},
)

ACCOUNT_POLICY = ModelValidationPolicy(
    writable_fields={"account_name", "account_type"},
    required_on_create={"account_name", "account_type"},
)

BANK_ACCOUNT_PATTERNS = ("%bank%", "%cash%", "%checking%", "%savings%")

DEFAULT_CHART = (
    ("Cash on Hand", "Assets"),
    ("Bank Account", "Assets"),
    ("Accounts Receivable", "Assets"),
    ("Inventory", "Assets"),
    ("Accounts Payable", "Liabilities"),
    ("Loans", "Liabilities"),
    ("Owner's Equity", "Equity"),
    ("Sales Revenue", "Income"),
    ("Other Income", "Income"),
    ("Rent", "Expenses"),
    ("Salaries", "Expenses"),
    ("Utilities", "Expenses"),
    ("Transport", "Expenses"),
    ("Marketing", "Expenses"),
    ("Supplies", "Expenses"),
)


# =============================================================================
# TRANSACTIONS
# =============================================================================

def _check_account_refs(patch: dict, business_id: int) -> None:
    for field in ("category_id", "bank_account_id"):
        if patch.get(field) is not None:
            require_account(patch[field], business_id)


def create_transaction(business_id: int, payload: dict) -> Transaction:
    patch = validate_payload(model=Transaction, payload=payload, policy=TRANSACTION_POLICY, partial=False)
    if patch["type"] not in TRANSACTION_TYPES:
        raise ValidationError(f"Invalid transaction type: {patch['type']}. Must be one of {list(TRANSACTION_TYPES)}")
    _check_account_refs(patch, business_id)
    txn = RecordStore(business_id).insert("transactions", patch)
    logger.info("Recorded %s transaction %s of %s for business %s", txn.type, txn.id, txn.amount, business_id)
    return txn


def delete_transaction(transaction_id: int, business_id: int) -> None:
    require_transaction(transaction_id, business_id)
    RecordStore(business_id).delete("transactions", transaction_id)


def list_transactions(
    business_id: int,
    *,
    type: str | None = None,
    search: str | None = None,
    start=None,
    end=None,
    category_id: int | None = None,
    limit: int | None = None,
) -> list[Transaction]:
    """Newest first. start is inclusive, end exclusive."""
    query = RecordStore(business_id).select("transactions")
    if type:
        if type not in TRANSACTION_TYPES:
            raise ValidationError(f"Invalid transaction type: {type}. Must be one of {list(TRANSACTION_TYPES)}")
        query = query.eq("type", type)
    if category_id is not None:
        query = query.eq("category_id", category_id)
    start = parse_date_field(start, "start")
    end = parse_date_field(end, "end")
    if start is not None:
        query = query.gte("date", start)
    if end is not None:
        query = query.lt("date", end)
    query = query.search(["description", "reference_number"], search)
    return query.order("date", desc=True).limit(limit).all()


def transaction_totals(transactions) -> dict:
    """Income and expense totals for a listing, as shown above the transaction table."""
    income = sum((t.amount for t in transactions if t.type == TRANSACTION_INCOME), Decimal("0.00"))
    expense = sum((t.amount for t in transactions if t.type == "expense"), Decimal("0.00"))
    return {"income": str(income), "expense": str(expense), "net": str(income - expense)}


# =============================================================================
# CHART OF ACCOUNTS
# =============================================================================

def _check_account_type(patch: dict) -> None:
    if "account_type" in patch and patch["account_type"] not in ACCOUNT_TYPES:
        raise ValidationError(f"Invalid account type: {patch['account_type']}. Must be one of {list(ACCOUNT_TYPES)}")


def _check_unique_name(business_id: int, name: str, exclude_id: int | None = None) -> None:
    query = db.session.query(ChartOfAccount).filter(
        ChartOfAccount.business_id == business_id,
        db.func.lower(ChartOfAccount.account_name) == name.lower(),
    )
    if exclude_id is not None:
        query = query.filter(ChartOfAccount.id != exclude_id)
    if query.first() is not None:
        raise ConflictError(f"Account '{name}' already exists")


def list_accounts(business_id: int, *, account_type: str | None = None, search: str | None = None) -> list[ChartOfAccount]:
    query = RecordStore(business_id).select("chart_of_accounts")
    if account_type:
        _check_account_type({"account_type": account_type})
        query = query.eq("account_type", account_type)
    query = query.search(["account_name"], search)
    return query.order("account_type").order("account_name").all()


def create_account(business_id: int, payload: dict) -> ChartOfAccount:
    patch = validate_payload(model=ChartOfAccount, payload=payload, policy=ACCOUNT_POLICY, partial=False)
    _check_account_type(patch)
    _check_unique_name(business_id, patch["account_name"])
    return RecordStore(business_id).insert("chart_of_accounts", patch)


def update_account(account_id: int, business_id: int, payload: dict) -> ChartOfAccount:
    patch = validate_payload(model=ChartOfAccount, payload=payload, policy=ACCOUNT_POLICY, partial=True)
    _check_account_type(patch)
    require_account(account_id, business_id)
    if "account_name" in patch:
        _check_unique_name(business_id, patch["account_name"], exclude_id=account_id)
    return RecordStore(business_id).update("chart_of_accounts", account_id, patch)


def delete_account(account_id: int, business_id: int) -> None:
    """Accounts still referenced by transactions or products cannot be deleted."""
    require_account(account_id, business_id)
    in_use = (
        db.session.query(Transaction.id)
        .filter(db.or_(Transaction.category_id == account_id, Transaction.bank_account_id == account_id))
        .first()
        or db.session.query(Product.id).filter(Product.category_id == account_id).first()
    )
    if in_use:
        raise ConflictError("Account is in use and cannot be deleted")
    RecordStore(business_id).delete("chart_of_accounts", account_id)


def seed_default_accounts(business_id: int) -> int:
    """Create the default chart for a business. Existing names are left alone; returns the number added."""
    existing = {a.account_name.lower() for a in RecordStore(business_id).select("chart_of_accounts").all()}

    def _op():
        added = 0
        for name, account_type in DEFAULT_CHART:
            if name.lower() in existing:
                continue
            db.session.add(ChartOfAccount(business_id=business_id, account_name=name, account_type=account_type))
            added += 1
        db.session.commit()
        return added

    added = run_with_retry(_op)
    logger.info("Seeded %d default accounts for business %s", added, business_id)
    return added


# =============================================================================
# BANK / CASH ACCOUNTS
# =============================================================================

def _account_kind(name: str) -> str:
    return "cash" if "cash" in name.lower() else "bank"


def bank_accounts(business_id: int) -> dict:
    """
    Bank and cash accounts with balances.

    A transaction moves an account when it names it as bank_account_id, or
    (for transactions without one) as category_id. Income adds, everything
    else subtracts.
    """
    store = RecordStore(business_id)
    accounts = (
        store.select("chart_of_accounts")
        .eq("account_type", "Assets")
        .ilike_any("account_name", BANK_ACCOUNT_PATTERNS)
        .order("account_name")
        .all()
    )
    balances = {a.id: Decimal("0.00") for a in accounts}
    if balances:
        for txn in store.select("transactions").all():
            account_id = txn.bank_account_id if txn.bank_account_id is not None else txn.category_id
            if account_id not in balances:
                continue
            balances[account_id] += txn.amount if txn.type == TRANSACTION_INCOME else -txn.amount

    items = [
        {**a.to_dict(), "kind": _account_kind(a.account_name), "balance": str(balances[a.id])}
        for a in accounts
    ]
    return {
        "items": items,
        "count": len(items),
        "total_balance": str(sum(balances.values(), Decimal("0.00"))),
    }
