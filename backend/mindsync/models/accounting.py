from __future__ import annotations

from ..extensions import db
from mindsync.time_utils import to_utc_z, to_iso_date

TRANSACTION_INCOME = "income"
TRANSACTION_EXPENSE = "expense"
TRANSACTION_TRANSFER = "transfer"
TRANSACTION_TYPES = (TRANSACTION_INCOME, TRANSACTION_EXPENSE, TRANSACTION_TRANSFER)

ACCOUNT_TYPES = ("Assets", "Liabilities", "Income", "Expenses", "Equity")


def _money(value):
    return str(value) if value is not None else None


class ChartOfAccount(db.Model):
    """
    Flat category list used to tag transactions.

    No double-entry posting is derived from it; an Assets entry whose name
    mentions "bank" or "cash" doubles as a bank/cash account.
    """
    __tablename__ = "chart_of_accounts"
    __table_args__ = (
        db.UniqueConstraint("business_id", "account_name", name="uq_chart_of_accounts_business_name"),
        db.Index("ix_chart_of_accounts_business_type", "business_id", "account_type"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    business_id = db.Column(db.Integer, db.ForeignKey("business_profiles.id"), nullable=False, index=True)
    account_name = db.Column(db.String(128), nullable=False)
    account_type = db.Column(db.String(16), nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    business = db.relationship("BusinessProfile", backref=db.backref("accounts", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "business_id": self.business_id,
            "account_name": self.account_name,
            "account_type": self.account_type,
            "created_at": to_utc_z(self.created_at),
        }


class Transaction(db.Model):
    """
    Recorded cash movement. Immutable once created; removed only by deletion.
    """
    __tablename__ = "transactions"
    __table_args__ = (
        db.Index("ix_transactions_business_date", "business_id", "date"),
        db.Index("ix_transactions_business_type", "business_id", "type"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    business_id = db.Column(db.Integer, db.ForeignKey("business_profiles.id"), nullable=False, index=True)

    type = db.Column(db.String(16), nullable=False)
    amount = db.Column(db.Numeric(12, 2), nullable=False)
    date = db.Column(db.Date, nullable=False)

    category_id = db.Column(db.Integer, db.ForeignKey("chart_of_accounts.id"), nullable=True, index=True)
    bank_account_id = db.Column(db.Integer, db.ForeignKey("chart_of_accounts.id"), nullable=True, index=True)

    description = db.Column(db.String(255), nullable=True)
    reference_number = db.Column(db.String(64), nullable=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    category = db.relationship("ChartOfAccount", foreign_keys=[category_id])
    bank_account = db.relationship("ChartOfAccount", foreign_keys=[bank_account_id])

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "business_id": self.business_id,
            "type": self.type,
            "amount": _money(self.amount),
            "date": to_iso_date(self.date),
            "category_id": self.category_id,
            "category_name": self.category.account_name if self.category else None,
            "bank_account_id": self.bank_account_id,
            "description": self.description,
            "reference_number": self.reference_number,
            "created_at": to_utc_z(self.created_at),
        }
