# Overview: Shared error taxonomy and payload coercion helpers.

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any

from sqlalchemy import Boolean, Date, DateTime, Integer, Numeric, String, Text
from sqlalchemy.orm import DeclarativeMeta

from .time_utils import parse_iso_date, parse_iso_datetime


# Three minor digits (baisa)
MONEY_QUANT = Decimal("0.001")
MAX_MONEY = Decimal("999999999.999")


class ValidationError(ValueError):
    """400-level input problem."""


class ConflictError(ValueError):
    """409-level business rule conflict (e.g., duplicate SKU, insufficient stock)."""


class NotFoundError(LookupError):
    """404-level missing reference (product, user, order...)."""


def to_money(value: Any, field: str = "amount", *, allow_negative: bool = False) -> Decimal:
    """Coerce JSON input (number or numeric string) into a quantized Decimal."""
    if value is None or isinstance(value, bool):
        raise ValidationError(f"{field} must be a number")
    try:
        amount = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise ValidationError(f"{field} must be a number")
    if not amount.is_finite():
        raise ValidationError(f"{field} must be a number")
    if amount < 0 and not allow_negative:
        raise ValidationError(f"{field} must be >= 0")
    if abs(amount) > MAX_MONEY:
        raise ValidationError(f"{field} is too large")
    return amount.quantize(MONEY_QUANT)


def to_int(value: Any, field: str, *, minimum: int | None = None) -> int:
    """Strict integer coercion: rejects floats, decimals and scientific notation."""
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer")
    if isinstance(value, int):
        result = value
    elif isinstance(value, str):
        stripped = value.strip()
        if not stripped or "e" in stripped.lower() or "." in stripped:
            raise ValidationError(f"{field} must be an integer")
        try:
            result = int(stripped)
        except ValueError:
            raise ValidationError(f"{field} must be an integer")
    else:
        raise ValidationError(f"{field} must be an integer")
    if minimum is not None and result < minimum:
        raise ValidationError(f"{field} must be >= {minimum}")
    return result


def to_fraction(value: Any, field: str) -> float:
    """Commission split fraction in [0, 1]."""
    if value is None or isinstance(value, bool):
        raise ValidationError(f"{field} must be a number")
    try:
        fraction = float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be a number")
    if not (0.0 <= fraction <= 1.0):
        raise ValidationError(f"{field} must be between 0 and 1")
    return fraction


def require_text(payload: dict, field: str) -> str:
    value = payload.get(field)
    if value is None or not str(value).strip():
        raise ValidationError(f"{field} is required")
    return str(value).strip()


def optional_text(payload: dict, field: str) -> str | None:
    value = payload.get(field)
    if value is None:
        return None
    text = str(value).strip()
    return text or None


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: what clients are allowed to set (security boundary)
    - required_on_create: fields required for POST
    """
    writable_fields: set[str]
    required_on_create: set[str] = None  # type: ignore


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def _coerce_value(col, value: Any):
    coltype = col.type

    if value is None:
        return None

    if isinstance(coltype, Integer):
        return to_int(value, col.key)

    if isinstance(coltype, Numeric):
        return to_money(value, col.key)

    if isinstance(coltype, Boolean):
        if isinstance(value, bool):
            return value
        return bool(value)

    if isinstance(coltype, DateTime):
        if isinstance(value, datetime):
            return value
        if isinstance(value, str):
            try:
                dt = parse_iso_datetime(value)
            except ValueError:
                raise ValidationError(f"{col.key} must be an ISO-8601 datetime")
            if dt is None:
                raise ValidationError(f"{col.key} must be an ISO-8601 datetime")
            return dt
        raise ValidationError(f"{col.key} must be a datetime")

    if isinstance(coltype, Date):
        if isinstance(value, date):
            return value
        if isinstance(value, str):
            try:
                parsed = parse_iso_date(value)
            except ValueError:
                raise ValidationError(f"{col.key} must be a YYYY-MM-DD date")
            if parsed is None:
                raise ValidationError(f"{col.key} must be a YYYY-MM-DD date")
            return parsed
        raise ValidationError(f"{col.key} must be a date")

    if isinstance(coltype, (String, Text)):
        return str(value).strip()

    return value


def validate_payload(
    *,
    model: DeclarativeMeta,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool,
) -> dict:
    """
    Validates + normalizes incoming JSON against column metadata and the policy
    allowlist. Returns a cleaned patch dict with only writable fields.

    partial=False: create semantics (enforce required_on_create)
    partial=True: patch semantics (validate only provided keys)
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    required = policy.required_on_create or set()
    if not partial:
        missing = sorted(f for f in required if f not in payload)
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    cols = _columns_by_key(model)

    for k in payload.keys():
        if k not in policy.writable_fields:
            raise ValidationError(f"Field not allowed: {k}")
        if k not in cols:
            raise ValidationError(f"Unknown field: {k}")

    patch: dict = {}

    for k, raw in payload.items():
        col = cols[k]

        if raw is None:
            if not col.nullable:
                raise ValidationError(f"{k} cannot be null")
            patch[k] = None
            continue

        val = _coerce_value(col, raw)

        if isinstance(col.type, (String, Text)) and not col.nullable:
            if isinstance(val, str) and val == "":
                raise ValidationError(f"{k} cannot be blank")

        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                raise ValidationError(f"{k} exceeds max length {col.type.length}")

        patch[k] = val

    return patch


def enforce_rules_product(patch: dict, current: dict | None = None) -> None:
    """
    Product rules that column metadata cannot express.

    low_stock_threshold and low_stock_price travel together: setting one requires the
    other, and the discounted price must be positive.
    """
    merged = dict(current or {})
    merged.update(patch)

    if merged.get("quantity_in_stock") is not None and merged["quantity_in_stock"] < 0:
        raise ValidationError("quantity_in_stock must be >= 0")

    threshold = merged.get("low_stock_threshold")
    low_price = merged.get("low_stock_price")
    if threshold is not None and threshold < 0:
        raise ValidationError("low_stock_threshold must be >= 0")
    if threshold is not None and low_price is None:
        raise ValidationError("low_stock_price is required when low_stock_threshold is set")
    if low_price is not None and threshold is None:
        raise ValidationError("low_stock_threshold is required when low_stock_price is set")
    if low_price is not None and low_price <= 0:
        raise ValidationError("low_stock_price must be > 0")
