from __future__ import annotations
from datetime import date, datetime
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from mindsync.time_utils import parse_iso_date

from dataclasses import dataclass
from typing import Any

from sqlalchemy import Date, Integer, Numeric, String
from sqlalchemy.orm import DeclarativeMeta


# Maximum amount: 9,999,999,999.99 (fits Numeric(12, 2))
MAX_AMOUNT = Decimal("9999999999.99")
CENT = Decimal("0.01")


class ValidationError(ValueError):
    """400-level input problem."""


class ConflictError(ValueError):
    """409-level business rule conflict (e.g., duplicate invoice number, stale version)."""


class NotFoundError(LookupError):
    """404-level: the referenced row does not exist for this business."""


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: what clients are allowed to set (security boundary)
    - required_on_create: fields required for POST
    """
    writable_fields: set[str]
    required_on_create: set[str] = None  # type: ignore


def parse_amount(value: Any, field: str = "amount", *, allow_zero: bool = True) -> Decimal:
    """
    Coerce a client-supplied money value to a 2dp Decimal.

    Accepts int, Decimal, numeric strings and floats (via str to avoid binary noise).
    Rejects booleans, NaN/Infinity, negatives, and values beyond MAX_AMOUNT.
    """
    if value is None or isinstance(value, bool):
        raise ValidationError(f"{field} must be a number")
    if isinstance(value, str):
        value = value.strip()
        if not value:
            raise ValidationError(f"{field} must be a number")
    try:
        amount = Decimal(str(value)) if not isinstance(value, Decimal) else value
    except (InvalidOperation, ValueError):
        raise ValidationError(f"{field} must be a number")
    if not amount.is_finite():
        raise ValidationError(f"{field} must be a finite number")

    amount = amount.quantize(CENT, rounding=ROUND_HALF_UP)
    if amount < 0 or (amount == 0 and not allow_zero):
        raise ValidationError(f"{field} must be {'>= 0' if allow_zero else '> 0'}")
    if amount > MAX_AMOUNT:
        raise ValidationError(f"{field} cannot exceed {MAX_AMOUNT:,}")
    return amount


def parse_quantity(value: Any, field: str = "quantity") -> int:
    """Strictly positive integer quantity."""
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer")
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped.lstrip("-").isdigit():
            raise ValidationError(f"{field} must be an integer")
        value = int(stripped)
    if not isinstance(value, int):
        raise ValidationError(f"{field} must be an integer")
    if value <= 0:
        raise ValidationError(f"{field} must be > 0")
    return value


def parse_date_field(value: Any, field: str) -> date | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return parse_iso_date(value)
        except ValueError:
            raise ValidationError(f"{field} must be an ISO-8601 date")
    raise ValidationError(f"{field} must be a date")


def _to_int(value: Any, field: str) -> int:
    # JSON clients send "12", 12 or 12.0; only the first two are accepted
    if isinstance(value, bool) or isinstance(value, float):
        raise ValidationError(f"{field} must be an integer")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        text = value.strip()
        digits = text[1:] if text.startswith("-") else text
        if digits.isdigit():
            return int(text)
    raise ValidationError(f"{field} must be an integer")


def _to_text(value: Any, field: str) -> str:
    if isinstance(value, (dict, list)):
        raise ValidationError(f"{field} must be a string")
    return str(value).strip()


# Checked in order; Text is a String subclass and shares its coercer.
_COERCERS = (
    (Numeric, parse_amount),
    (Integer, _to_int),
    (Date, parse_date_field),
    (String, _to_text),
)


def _coerce(column, value: Any):
    for column_type, coercer in _COERCERS:
        if isinstance(column.type, column_type):
            return coercer(value, column.key)
    return value


def validate_payload(
    *,
    model: DeclarativeMeta,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool,
) -> dict:
    """
    Check a JSON body against a model's columns and a write policy.

    Returns a new dict holding only the supplied fields, coerced to their
    column types (money to 2dp Decimal, dates to date, text stripped).

    partial=False is create semantics: required_on_create must be present
    and non-blank. partial=True only validates the keys that were sent.
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    if not partial:
        missing = sorted(f for f in (policy.required_on_create or ()) if payload.get(f) in (None, ""))
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    columns = {c.key: c for c in model.__mapper__.columns}
    rejected = [k for k in payload if k not in policy.writable_fields]
    if rejected:
        raise ValidationError(f"Field not allowed: {rejected[0]}")
    unknown = [k for k in payload if k not in columns]
    if unknown:
        raise ValidationError(f"Unknown field: {unknown[0]}")

    cleaned: dict = {}
    for key, raw in payload.items():
        column = columns[key]
        value = None if raw is None else _coerce(column, raw)

        if value is None or value == "":
            if not column.nullable:
                raise ValidationError(f"{key} cannot be {'null' if value is None else 'blank'}")
            # optional text cleared with "" is stored as NULL
            value = None

        length = getattr(column.type, "length", None)
        if length and isinstance(value, str) and len(value) > length:
            raise ValidationError(f"{key} exceeds max length {length}")

        cleaned[key] = value

    return cleaned


def enforce_rules_product(patch: dict) -> None:
    """Stock counts and reorder thresholds are never negative."""
    for field in ("stock_quantity", "reorder_level"):
        if (patch.get(field) or 0) < 0:
            raise ValidationError(f"{field} must be >= 0")
