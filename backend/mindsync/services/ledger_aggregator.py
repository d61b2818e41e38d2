# Overview: Pure reduction of ledger rows into revenue, COGS, expenses and profit.

"""
Ledger Aggregator

The single definition of realized revenue and its derived totals. Every
report and dashboard figure is computed here; nothing else re-derives them.

- revenue            = sum(amount_paid) over invoices with amount_paid > 0
- cogs               = sum(quantity * purchase_cost) over items of those invoices
- operating_expenses = sum(amount) over transactions of type "expense"
- total_expenses     = operating_expenses + cogs
- net_profit         = revenue - total_expenses
- gross_profit       = revenue - cogs

Income-type transactions are never revenue: invoice receipts are the only
realized revenue source, so counting income transactions too would double
count any sale that was also booked as a transaction.

Rows may be ORM objects or plain mappings. Missing, null or unparseable
numbers count as zero and rows with unparseable dates fall outside any
bounded range; row content never raises. The optional [start, end) range
is half-open and compared on calendar dates.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable, Mapping

from mindsync.time_utils import as_date

ZERO = Decimal("0.00")
CENT = Decimal("0.01")

EXPENSE = "expense"


@dataclass(frozen=True)
class LedgerTotals:
    revenue: Decimal = ZERO
    cogs: Decimal = ZERO
    gross_profit: Decimal = ZERO
    operating_expenses: Decimal = ZERO
    total_expenses: Decimal = ZERO
    net_profit: Decimal = ZERO

    def to_dict(self) -> dict:
        return {key: str(value) for key, value in asdict(self).items()}


def _field(row: Any, name: str):
    if isinstance(row, Mapping):
        return row.get(name)
    return getattr(row, name, None)


def _num(value) -> Decimal:
    if value is None or isinstance(value, bool):
        return ZERO
    try:
        number = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return ZERO
    if not number.is_finite():
        return ZERO
    try:
        return number.quantize(CENT)
    except InvalidOperation:
        return ZERO


def _in_range(value, start: date | None, end: date | None) -> bool:
    if start is None and end is None:
        return True
    day = as_date(value)
    if day is None:
        return False
    if start is not None and day < start:
        return False
    if end is not None and day >= end:
        return False
    return True


def _money(value: Decimal) -> Decimal:
    return value.quantize(CENT)


def _counted_invoices(invoices: Iterable, start: date | None, end: date | None) -> list:
    return [
        inv for inv in invoices
        if _num(_field(inv, "amount_paid")) > 0 and _in_range(_field(inv, "created_at"), start, end)
    ]


def paid_invoice_ids(invoices: Iterable, start: date | None = None, end: date | None = None) -> set:
    """Ids of invoices that have received money (and, with a range, were created in it)."""
    return {_field(inv, "id") for inv in _counted_invoices(invoices, start, end)}


def realized_revenue(invoices: Iterable, start: date | None = None, end: date | None = None) -> Decimal:
    total = sum((_num(_field(inv, "amount_paid")) for inv in _counted_invoices(invoices, start, end)), ZERO)
    return _money(total)


def cost_of_goods_sold(items: Iterable, invoice_ids: set) -> Decimal:
    total = ZERO
    for item in items:
        if _field(item, "invoice_id") not in invoice_ids:
            continue
        total += _num(_field(item, "quantity")) * _num(_field(item, "purchase_cost"))
    return _money(total)


def operating_expenses(transactions: Iterable, start: date | None = None, end: date | None = None) -> Decimal:
    total = ZERO
    for txn in transactions:
        if _field(txn, "type") != EXPENSE:
            continue
        if not _in_range(_field(txn, "date"), start, end):
            continue
        total += _num(_field(txn, "amount"))
    return _money(total)


def aggregate(
    transactions: Iterable,
    invoices: Iterable,
    items: Iterable,
    start: date | None = None,
    end: date | None = None,
) -> LedgerTotals:
    invoices = list(invoices)
    revenue = realized_revenue(invoices, start, end)
    cogs = cost_of_goods_sold(items, paid_invoice_ids(invoices, start, end))
    opex = operating_expenses(transactions, start, end)
    total_expenses = opex + cogs
    return LedgerTotals(
        revenue=revenue,
        cogs=cogs,
        gross_profit=revenue - cogs,
        operating_expenses=opex,
        total_expenses=total_expenses,
        net_profit=revenue - total_expenses,
    )
