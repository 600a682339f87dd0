# Overview: Input coercion for service calls: integers, quantities, money, text and model payloads.

from __future__ import annotations
from datetime import date, datetime
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from pantrypal.time_utils import parse_iso_date

from dataclasses import dataclass
from typing import Any

from sqlalchemy import Date, Integer, Numeric, String, Text
from sqlalchemy.orm import DeclarativeMeta

from .errors import ValidationError


# Maximum money value that fits Numeric(10, 2)
MAX_MONEY = Decimal("99999999.99")
CENT = Decimal("0.01")


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


def parse_int(value: Any, field: str) -> int:
    """Strict integer coercion: rejects bools, floats, decimals and scientific notation."""
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{field} must be an integer")
        if 'e' in stripped.lower():
            raise ValidationError(f"{field} must be a plain integer (scientific notation not allowed)")
        if '.' in stripped:
            raise ValidationError(f"{field} must be an integer (no decimals)")
        try:
            return int(stripped)
        except ValueError:
            raise ValidationError(f"{field} must be an integer")
    if isinstance(value, float):
        raise ValidationError(f"{field} must be an integer, not a decimal")
    raise ValidationError(f"{field} must be an integer")


def parse_quantity(value: Any, field: str = "quantity") -> int:
    qty = parse_int(value, field)
    if qty <= 0:
        raise ValidationError(f"{field} must be > 0", details={"field": field, "value": qty})
    return qty


def parse_money(value: Any, field: str, *, allow_zero: bool = True) -> Decimal:
    """
    Coerce a money amount to a 2-place Decimal.

    Floats are refused outright; amounts travel as strings, ints or Decimals.
    """
    if isinstance(value, bool) or isinstance(value, float):
        raise ValidationError(f"{field} must be a decimal string, not a float")
    if isinstance(value, Decimal):
        amount = value
    elif isinstance(value, (int, str)):
        try:
            amount = Decimal(str(value).strip())
        except InvalidOperation:
            raise ValidationError(f"{field} must be a decimal amount")
    else:
        raise ValidationError(f"{field} must be a decimal amount")

    if not amount.is_finite():
        raise ValidationError(f"{field} must be a decimal amount")
    if amount != amount.quantize(CENT, rounding=ROUND_HALF_UP):
        raise ValidationError(f"{field} cannot have more than 2 decimal places")
    amount = amount.quantize(CENT)

    if amount < 0 or (amount == 0 and not allow_zero):
        bound = ">= 0" if allow_zero else "> 0"
        raise ValidationError(f"{field} must be {bound}", details={"field": field, "value": str(amount)})
    if amount > MAX_MONEY:
        raise ValidationError(f"{field} cannot exceed {MAX_MONEY}")
    return amount


def require_text(value: Any, field: str, *, max_length: int | None = None) -> str:
    if value is None or not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{field} is required")
    text = value.strip()
    if max_length and len(text) > max_length:
        raise ValidationError(f"{field} exceeds max length {max_length}")
    return text


def _parse_date(value: Any, field: str) -> date:
    if isinstance(value, date) and not isinstance(value, datetime):
        return value
    if isinstance(value, str):
        try:
            parsed = parse_iso_date(value)
        except ValueError:
            parsed = None
        if parsed is not None:
            return parsed
    raise ValidationError(f"{field} must be an ISO-8601 date (YYYY-MM-DD)", details={"field": field})


def _coerce_value(col, value: Any):
    """Convert one non-null client value to the Python type its column stores."""
    coltype = col.type
    if isinstance(coltype, Integer):
        return parse_int(value, col.key)
    if isinstance(coltype, Numeric):
        return parse_money(value, col.key)
    if isinstance(coltype, Date):
        return _parse_date(value, col.key)
    if isinstance(coltype, (String, Text)):
        if not isinstance(value, (str, int)) or isinstance(value, bool):
            raise ValidationError(f"{col.key} must be text", details={"field": col.key})
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
    Turn a client payload into a clean column patch for `model`.

    Only keys in policy.writable_fields are accepted; anything else is a
    ValidationError, not silently dropped. With partial=False (create) every
    field in policy.required_on_create must be present; with partial=True
    (update) only the supplied keys are checked. Values are coerced from the
    column type: Integer via parse_int, Numeric via parse_money, Date from
    "YYYY-MM-DD", String/Text stripped and length-checked.
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    if not partial:
        missing = sorted((policy.required_on_create or set()) - set(payload))
        if missing:
            raise ValidationError(
                f"Missing required fields: {', '.join(missing)}", details={"missing": missing}
            )

    cols = _columns_by_key(model)
    rejected = sorted(k for k in payload if k not in policy.writable_fields or k not in cols)
    if rejected:
        raise ValidationError(f"Field not allowed: {', '.join(rejected)}", details={"fields": rejected})

    patch: dict = {}
    for key, raw in payload.items():
        col = cols[key]
        if raw is None:
            if not col.nullable:
                raise ValidationError(f"{key} cannot be null", details={"field": key})
            patch[key] = None
            continue

        value = _coerce_value(col, raw)
        if isinstance(value, str):
            if value == "" and not col.nullable:
                raise ValidationError(f"{key} cannot be blank", details={"field": key})
            length = getattr(col.type, "length", None)
            if length and len(value) > length:
                raise ValidationError(f"{key} exceeds max length {length}", details={"field": key})
        patch[key] = value

    return patch
