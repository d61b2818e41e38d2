# Overview: Service-layer operations for reporting; encapsulates business logic and database work.

"""
Reporting Facade

Resolves a reporting period, reads the rows through the RecordStore and
hands them to the ledger aggregator. Every figure in every report comes
from ledger_aggregator; this module only selects rows and shapes results.

Periods are half-open calendar-date ranges [start, end). Invoices belong
to the period they were created in, transactions to their own date.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from decimal import Decimal

from ..models.invoices import INVOICE_STATUS_PART_PAID, INVOICE_STATUS_UNPAID
from ..time_utils import month_start, to_iso_date, today as utc_today
from ..validation import ValidationError, parse_date_field
from . import ledger_aggregator
from .ledger_aggregator import LedgerTotals
from .record_store import RecordStore
from .tenant_service import require_business

logger = logging.getLogger(__name__)

PERIOD_TODAY = "today"
PERIOD_THIS_WEEK = "this_week"
PERIOD_LAST_7_DAYS = "last_7_days"
PERIOD_THIS_MONTH = "this_month"
PERIOD_LAST_MONTH = "last_month"
PERIOD_THIS_YEAR = "this_year"
PERIOD_LAST_YEAR = "last_year"
PERIOD_CUSTOM = "custom"

PERIOD_TOKENS = (
    PERIOD_TODAY,
    PERIOD_THIS_WEEK,
    PERIOD_LAST_7_DAYS,
    PERIOD_THIS_MONTH,
    PERIOD_LAST_MONTH,
    PERIOD_THIS_YEAR,
    PERIOD_LAST_YEAR,
    PERIOD_CUSTOM,
)

TREND_MONTHS = 6


def _money(value: Decimal) -> str:
    return str(value)


# =============================================================================
# RESULT TYPES
# =============================================================================

@dataclass(frozen=True)
class Period:
    start: date
    end: date
    token: str = PERIOD_CUSTOM

    def contains(self, day: date) -> bool:
        return self.start <= day < self.end

    def to_dict(self) -> dict:
        return {"period": self.token, "start": to_iso_date(self.start), "end": to_iso_date(self.end)}


@dataclass(frozen=True)
class MonthlyTrendPoint:
    month: str
    period: str
    revenue: Decimal
    cogs: Decimal
    operating_expenses: Decimal
    profit: Decimal

    def to_dict(self) -> dict:
        return {
            "month": self.month,
            "period": self.period,
            "revenue": _money(self.revenue),
            "cogs": _money(self.cogs),
            "operating_expenses": _money(self.operating_expenses),
            "profit": _money(self.profit),
        }


@dataclass(frozen=True)
class BusinessReport:
    period: Period
    totals: LedgerTotals
    customer_count: int
    product_count: int
    invoice_count: int
    monthly_series: tuple = field(default_factory=tuple)

    @property
    def total_revenue(self) -> Decimal:
        return self.totals.revenue

    @property
    def net_profit(self) -> Decimal:
        return self.totals.net_profit

    def to_dict(self) -> dict:
        return {
            **self.period.to_dict(),
            "total_revenue": _money(self.totals.revenue),
            "total_cogs": _money(self.totals.cogs),
            "gross_profit": _money(self.totals.gross_profit),
            "operating_expenses": _money(self.totals.operating_expenses),
            "total_expenses": _money(self.totals.total_expenses),
            "net_profit": _money(self.totals.net_profit),
            "customer_count": self.customer_count,
            "product_count": self.product_count,
            "invoice_count": self.invoice_count,
            "monthly_series": [point.to_dict() for point in self.monthly_series],
        }


@dataclass(frozen=True)
class DashboardSummary:
    totals: LedgerTotals
    pending_invoice_count: int
    overdue_invoice_count: int
    low_stock_count: int
    customer_count: int
    product_count: int

    def to_dict(self) -> dict:
        return {
            "total_revenue": _money(self.totals.revenue),
            "total_cogs": _money(self.totals.cogs),
            "operating_expenses": _money(self.totals.operating_expenses),
            "total_expenses": _money(self.totals.total_expenses),
            "net_profit": _money(self.totals.net_profit),
            "pending_invoice_count": self.pending_invoice_count,
            "overdue_invoice_count": self.overdue_invoice_count,
            "low_stock_count": self.low_stock_count,
            "customer_count": self.customer_count,
            "product_count": self.product_count,
        }


@dataclass(frozen=True)
class ExpenseLine:
    category: str
    amount: Decimal


@dataclass(frozen=True)
class IncomeStatement:
    period: Period
    totals: LedgerTotals
    expense_lines: tuple = field(default_factory=tuple)

    def to_dict(self) -> dict:
        return {
            **self.period.to_dict(),
            "revenue": _money(self.totals.revenue),
            "cost_of_goods_sold": _money(self.totals.cogs),
            "gross_profit": _money(self.totals.gross_profit),
            "operating_expenses": _money(self.totals.operating_expenses),
            "expense_lines": [{"category": line.category, "amount": _money(line.amount)} for line in self.expense_lines],
            "total_expenses": _money(self.totals.total_expenses),
            "net_profit": _money(self.totals.net_profit),
        }


# =============================================================================
# PERIODS
# =============================================================================

def resolve_period(token: str | None, today: date | None = None, custom_start=None, custom_end=None) -> Period:
    """
    Turn a period token into a half-open [start, end) date range.

    Weeks start on Sunday. For "custom", a missing bound defaults to today.
    """
    today = today or utc_today()
    token = (token or PERIOD_THIS_MONTH).strip().lower()

    if token == PERIOD_TODAY:
        return Period(today, today + timedelta(days=1), token)
    if token == PERIOD_THIS_WEEK:
        sunday = today - timedelta(days=(today.weekday() + 1) % 7)
        return Period(sunday, sunday + timedelta(days=7), token)
    if token == PERIOD_LAST_7_DAYS:
        return Period(today - timedelta(days=7), today + timedelta(days=1), token)
    if token == PERIOD_THIS_MONTH:
        return Period(month_start(today), month_start(today, 1), token)
    if token == PERIOD_LAST_MONTH:
        return Period(month_start(today, -1), month_start(today), token)
    if token == PERIOD_THIS_YEAR:
        return Period(date(today.year, 1, 1), date(today.year + 1, 1, 1), token)
    if token == PERIOD_LAST_YEAR:
        return Period(date(today.year - 1, 1, 1), date(today.year, 1, 1), token)
    if token == PERIOD_CUSTOM:
        start = parse_date_field(custom_start, "start") or today
        end = parse_date_field(custom_end, "end") or today
        if start > end:
            raise ValidationError("start must not be after end")
        return Period(start, end, token)

    raise ValidationError(f"Invalid period: {token}. Must be one of {list(PERIOD_TOKENS)}")


# =============================================================================
# ROW SELECTION
# =============================================================================

def _day_start(day: date) -> datetime:
    return datetime.combine(day, time.min)


def _invoices_created(store: RecordStore, start: date | None = None, end: date | None = None) -> list:
    query = store.select("invoices")
    if start is not None:
        query = query.gte("created_at", _day_start(start))
    if end is not None:
        query = query.lt("created_at", _day_start(end))
    return query.all()


def _transactions_dated(store: RecordStore, start: date | None = None, end: date | None = None) -> list:
    query = store.select("transactions")
    if start is not None:
        query = query.gte("date", start)
    if end is not None:
        query = query.lt("date", end)
    return query.all()


def _items_for(store: RecordStore, invoices) -> list:
    ids = ledger_aggregator.paid_invoice_ids(invoices)
    if not ids:
        return []
    return store.select("invoice_items").in_("invoice_id", sorted(ids)).all()


def _period_totals(store: RecordStore, period: Period) -> tuple[LedgerTotals, list, list]:
    invoices = _invoices_created(store, period.start, period.end)
    transactions = _transactions_dated(store, period.start, period.end)
    totals = ledger_aggregator.aggregate(
        transactions, invoices, _items_for(store, invoices), period.start, period.end
    )
    return totals, invoices, transactions


def _as_period(period, today: date | None, custom_start, custom_end) -> Period:
    if isinstance(period, Period):
        return period
    return resolve_period(period, today=today, custom_start=custom_start, custom_end=custom_end)


# =============================================================================
# REPORTS
# =============================================================================

def monthly_series(business_id: int, today: date | None = None) -> list[MonthlyTrendPoint]:
    """Six calendar months, oldest first, ending with the current month."""
    require_business(business_id)
    today = today or utc_today()
    store = RecordStore(business_id)

    window_start = month_start(today, -(TREND_MONTHS - 1))
    window_end = month_start(today, 1)
    invoices = _invoices_created(store, window_start, window_end)
    transactions = _transactions_dated(store, window_start, window_end)
    items = _items_for(store, invoices)

    points = []
    for offset in range(-(TREND_MONTHS - 1), 1):
        start = month_start(today, offset)
        end = month_start(today, offset + 1)
        totals = ledger_aggregator.aggregate(transactions, invoices, items, start, end)
        points.append(MonthlyTrendPoint(
            month=start.strftime("%b"),
            period=start.strftime("%Y-%m"),
            revenue=totals.revenue,
            cogs=totals.cogs,
            operating_expenses=totals.operating_expenses,
            profit=totals.net_profit,
        ))
    return points


def build_report(
    business_id: int,
    period: Period | str | None = PERIOD_THIS_MONTH,
    *,
    today: date | None = None,
    custom_start=None,
    custom_end=None,
    include_series: bool = True,
) -> BusinessReport:
    require_business(business_id)
    period = _as_period(period, today, custom_start, custom_end)
    store = RecordStore(business_id)

    totals, invoices, _ = _period_totals(store, period)
    report = BusinessReport(
        period=period,
        totals=totals,
        customer_count=store.select("customers").count(),
        product_count=store.select("products").count(),
        invoice_count=len(invoices),
        monthly_series=tuple(monthly_series(business_id, today=today)) if include_series else (),
    )
    logger.debug(
        "Built %s report for business %s: revenue=%s net=%s",
        period.token, business_id, totals.revenue, totals.net_profit,
    )
    return report


def income_statement(
    business_id: int,
    period: Period | str | None = PERIOD_THIS_MONTH,
    *,
    today: date | None = None,
    custom_start=None,
    custom_end=None,
) -> IncomeStatement:
    """Revenue, COGS and gross profit, then operating expenses broken down by category."""
    require_business(business_id)
    period = _as_period(period, today, custom_start, custom_end)
    store = RecordStore(business_id)

    totals, _, transactions = _period_totals(store, period)
    names = {a.id: a.account_name for a in store.select("chart_of_accounts").all()}

    by_category: dict[str, list] = {}
    for txn in transactions:
        if txn.type != ledger_aggregator.EXPENSE:
            continue
        label = names.get(txn.category_id, "Uncategorized")
        by_category.setdefault(label, []).append(txn)

    lines = tuple(
        ExpenseLine(category=label, amount=ledger_aggregator.operating_expenses(rows, period.start, period.end))
        for label, rows in sorted(by_category.items())
    )
    return IncomeStatement(period=period, totals=totals, expense_lines=lines)


def dashboard_summary(business_id: int, today: date | None = None) -> DashboardSummary:
    """All-time totals plus the counts shown on the dashboard cards."""
    require_business(business_id)
    today = today or utc_today()
    store = RecordStore(business_id)

    invoices = _invoices_created(store)
    totals = ledger_aggregator.aggregate(_transactions_dated(store), invoices, _items_for(store, invoices))

    pending = [i for i in invoices if i.status in (INVOICE_STATUS_UNPAID, INVOICE_STATUS_PART_PAID)]
    overdue = [i for i in pending if i.due_date is not None and i.due_date < today]
    products = store.select("products").all()

    return DashboardSummary(
        totals=totals,
        pending_invoice_count=len(pending),
        overdue_invoice_count=len(overdue),
        low_stock_count=sum(1 for p in products if p.is_low_stock),
        customer_count=store.select("customers").count(),
        product_count=len(products),
    )


__all__ = [
    "Period",
    "MonthlyTrendPoint",
    "BusinessReport",
    "DashboardSummary",
    "IncomeStatement",
    "PERIOD_TOKENS",
    "resolve_period",
    "monthly_series",
    "build_report",
    "income_statement",
    "dashboard_summary",
]
