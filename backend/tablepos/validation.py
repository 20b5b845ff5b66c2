from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from sqlalchemy import Boolean, Integer, String, Text
from sqlalchemy import inspect as sa_inspect


# Maximum price: $9,999,999.99 (999,999,999 cents)
# This prevents database overflow issues and nonsensical prices
MAX_PRICE_CENTS = 999_999_999

TABLE_STATUSES = ("available", "occupied", "reserved", "cleaning")


class ValidationError(ValueError):
    """400-level input problem."""


class NotFoundError(LookupError):
    """404-level missing entity."""


class ConflictError(ValueError):
    """409-level business rule conflict (e.g., duplicate table name)."""


def coerce_int(value: Any, field: str) -> int:
    """
    Strict integer coercion for JSON input.

    Rejects bools, floats, decimals in strings and scientific notation so
    that money in cents and quantities never get silently truncated.
    """
    # Already an int (but not bool which is a subclass of int)
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    # String input - must be plain digits (with optional leading minus)
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{field} must be an integer")
        # Reject scientific notation (e.g., "1e15", "1E10")
        if 'e' in stripped.lower():
            raise ValidationError(f"{field} must be a plain integer (scientific notation not allowed)")
        # Reject decimal points (e.g., "12.5")
        if '.' in stripped:
            raise ValidationError(f"{field} must be an integer (no decimals)")
        try:
            return int(stripped)
        except ValueError:
            raise ValidationError(f"{field} must be an integer")
    # Reject floats explicitly
    if isinstance(value, float):
        raise ValidationError(f"{field} must be an integer, not a decimal")
    raise ValidationError(f"{field} must be an integer")


def coerce_text(value: Any, field: str, error_cls: type[ValidationError] = ValidationError) -> str:
    """
    Trimmed text from JSON input. Missing (None) reads as "".

    Numbers, lists and objects are rejected with error_cls rather than
    being stringified.
    """
    if value is None:
        return ""
    if not isinstance(value, str):
        raise error_cls(f"{field} must be a string")
    return value.strip()


# =============================================================================
# PAYLOAD POLICY
# =============================================================================

@dataclass(frozen=True)
class PayloadPolicy:
    """
    Which columns of a model a client may write, and which a create must carry.

    Column metadata (nullable, type, String length) drives the per-field checks.
    """
    model: type
    writable: frozenset[str]
    required: frozenset[str] = frozenset()

    def column(self, key: str):
        return sa_inspect(self.model).columns.get(key)


def _clean_value(col, value: Any):
    if isinstance(col.type, Integer):
        return coerce_int(value, col.key)

    if isinstance(col.type, Boolean):
        if isinstance(value, bool):
            return value
        raise ValidationError(f"{col.key} must be true or false")

    if isinstance(col.type, (String, Text)):
        text = coerce_text(value, col.key)
        if text == "" and not col.nullable:
            raise ValidationError(f"{col.key} cannot be blank")
        if isinstance(col.type, String) and col.type.length and len(text) > col.type.length:
            raise ValidationError(f"{col.key} exceeds max length {col.type.length}")
        return text

    return value


def validate_payload(payload: Any, policy: PayloadPolicy, *, partial: bool) -> dict:
    """
    Turn a JSON body into a patch of cleaned, writable column values.

    partial=False is a create: every required field must be present.
    partial=True is an update: only the supplied keys are checked.
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    if not partial:
        missing = sorted(policy.required - payload.keys())
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    patch: dict = {}
    for key, raw in payload.items():
        col = policy.column(key) if key in policy.writable else None
        if col is None:
            raise ValidationError(f"Field not allowed: {key}")

        if raw is None:
            if not col.nullable:
                raise ValidationError(f"{key} cannot be null")
            patch[key] = None
        else:
            patch[key] = _clean_value(col, raw)

    return patch


def enforce_rules_menu_item(patch: dict) -> None:
    """
    Business rules that are not captured by SQLAlchemy metadata alone.
    Keep these small and centralized.
    """
    if "price_cents" in patch and patch["price_cents"] is not None:
        price = patch["price_cents"]
        if price < 0:
            raise ValidationError("price_cents must be >= 0")
        if price > MAX_PRICE_CENTS:
            raise ValidationError(f"price_cents cannot exceed {MAX_PRICE_CENTS} (${MAX_PRICE_CENTS / 100:,.2f})")


def enforce_rules_table(patch: dict) -> None:
    if "capacity" in patch and patch["capacity"] is not None and patch["capacity"] < 1:
        raise ValidationError("capacity must be >= 1")
    if "status" in patch:
        status = (patch["status"] or "").lower()
        if status not in TABLE_STATUSES:
            raise ValidationError(f"status must be one of {', '.join(TABLE_STATUSES)}")
        patch["status"] = status


def enforce_rules_inventory_item(patch: dict) -> None:
    for field in ("quantity", "min_stock_level"):
        if field in patch and patch[field] is not None and patch[field] < 0:
            raise ValidationError(f"{field} must be >= 0")
