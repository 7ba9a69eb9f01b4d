from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any

from sqlalchemy import Boolean, Integer, Numeric, String, Text
from sqlalchemy.orm import DeclarativeMeta

from .numbers import quantize


# Largest amount accepted for any NUMERIC(15, 2) column
MAX_AMOUNT = Decimal("9999999999999.99")


class ZakatError(Exception):
    """Base for every error surfaced to API clients."""
    status_code = 500


class ValidationError(ZakatError):
    """400-level input problem."""
    status_code = 400


class AuthError(ZakatError):
    """401: not logged in, bad credentials, or expired session."""
    status_code = 401


class ForbiddenError(ZakatError):
    """403: authenticated but not allowed (admin-only operations)."""
    status_code = 403


class NotFoundError(ZakatError):
    """404: referenced entity does not exist."""
    status_code = 404


class ConflictError(ZakatError):
    """409-level business rule conflict (e.g., deleting an RT that still has payers)."""
    status_code = 409


class UploadError(ZakatError):
    """Rejected upload (type/size) or file-system failure while storing it."""
    status_code = 400


class PersistenceError(ZakatError):
    """Database failure; the transaction has been rolled back."""
    status_code = 500


# =============================================================================
# SCALAR COERCION (form and JSON input)
# =============================================================================

def clean_str(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def require_text(value: Any, field: str, *, max_length: int | None = None) -> str:
    text = clean_str(value)
    if not text:
        raise ValidationError(f"{field} is required")
    if max_length and len(text) > max_length:
        raise ValidationError(f"{field} exceeds max length {max_length}")
    return text


def optional_text(value: Any, *, max_length: int | None = None, field: str = "value") -> str | None:
    text = clean_str(value)
    if not text:
        return None
    if max_length and len(text) > max_length:
        raise ValidationError(f"{field} exceeds max length {max_length}")
    return text


def parse_int(value: Any, field: str) -> int:
    """Strict integer parsing: rejects bools, floats, decimals and scientific notation."""
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{field} is required")
        if "e" in stripped.lower() or "." in stripped:
            raise ValidationError(f"{field} must be a plain integer")
        try:
            return int(stripped)
        except ValueError:
            raise ValidationError(f"{field} must be an integer")
    raise ValidationError(f"{field} must be an integer")


def parse_optional_id(value: Any, field: str) -> int | None:
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    return parse_int(value, field)


def parse_decimal(value: Any, field: str) -> Decimal:
    if value is None or isinstance(value, bool):
        raise ValidationError(f"{field} is required")
    if isinstance(value, Decimal):
        amount = value
    elif isinstance(value, (int, float)):
        amount = Decimal(str(value))
    elif isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{field} is required")
        try:
            amount = Decimal(stripped)
        except InvalidOperation:
            raise ValidationError(f"{field} must be a number")
    else:
        raise ValidationError(f"{field} must be a number")

    if not amount.is_finite():
        raise ValidationError(f"{field} must be a number")
    if abs(amount) > MAX_AMOUNT:
        raise ValidationError(f"{field} is too large")
    return amount


def parse_positive_decimal(value: Any, field: str) -> Decimal:
    """Parse and round to 2 places; the rounded amount must be positive."""
    amount = quantize(parse_decimal(value, field))
    if amount <= 0:
        raise ValidationError(f"{field} must be greater than 0")
    return amount


def parse_choice(value: Any, field: str, choices) -> str:
    text = clean_str(value).lower()
    if text not in choices:
        raise ValidationError(f"{field} must be one of: {', '.join(sorted(choices))}")
    return text


# =============================================================================
# MODEL-DRIVEN PAYLOAD VALIDATION (JSON sub-APIs)
# =============================================================================

@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    - writable_fields: what clients are allowed to set
    - required_on_create: fields required for POST
    - non_negative_fields: numeric fields that must be >= 0
    """
    writable_fields: set[str]
    required_on_create: set[str] = None  # type: ignore
    non_negative_fields: set[str] = None  # type: ignore


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def _coerce_value(col, value: Any):
    coltype = col.type

    if value is None:
        return None

    if isinstance(coltype, Integer):
        return parse_int(value, col.key)

    if isinstance(coltype, Numeric):
        return parse_decimal(value, col.key)

    if isinstance(coltype, Boolean):
        if isinstance(value, bool):
            return value
        raise ValidationError(f"{col.key} must be true or false")

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
    Validate and normalize incoming JSON against SQLAlchemy column metadata
    (nullable, type, String length) and the policy allowlist.

    partial=False: create semantics (enforce required_on_create)
    partial=True: update semantics (validate only provided keys)
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
    non_negative = policy.non_negative_fields or set()

    for k, raw in payload.items():
        col = cols[k]

        if raw is None:
            if not col.nullable:
                raise ValidationError(f"{k} cannot be null")
            patch[k] = None
            continue

        val = _coerce_value(col, raw)

        if isinstance(col.type, (String, Text)) and not col.nullable and val == "":
            raise ValidationError(f"{k} cannot be blank")

        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                raise ValidationError(f"{k} exceeds max length {col.type.length}")

        if k in non_negative and val is not None and val < 0:
            raise ValidationError(f"{k} must be >= 0")

        patch[k] = val

    return patch
