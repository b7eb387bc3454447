from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from sqlalchemy import Boolean, Integer, Numeric, String, Text
from sqlalchemy.orm import DeclarativeMeta

from .errors import ValidationError
from .money import round2, to_decimal


# Maximum unit price accepted from the back office
MAX_PRICE = 9_999_999.99


def parse_id(value, field: str = "id") -> int:
    """Record ids arrive as ints or digit strings from the register."""
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    raise ValidationError(f"{field} must be an integer")


def optional_text(value, field: str) -> str | None:
    """Free-text fields outside a model policy: None or a trimmed string."""
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a string")
    return value.strip() or None


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: JSON keys clients may set, mapped to column names
    - required_on_create: JSON keys required for POST
    """
    writable_fields: dict[str, str]
    required_on_create: frozenset[str] = frozenset()


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def _coerce_value(col, value: Any, field: str):
    coltype = col.type

    if value is None:
        return None

    # Integers - reject floats, bools and scientific notation
    if isinstance(coltype, Integer):
        if isinstance(value, int) and not isinstance(value, bool):
            return value
        if isinstance(value, str):
            stripped = value.strip()
            if stripped.lstrip("-").isdigit():
                return int(stripped)
        raise ValidationError(f"{field} must be an integer")

    # Money / rates
    if isinstance(coltype, Numeric):
        return float(to_decimal(value, field))

    if isinstance(coltype, Boolean):
        if isinstance(value, bool):
            return value
        raise ValidationError(f"{field} must be true or false")

    # Strings / Text
    if isinstance(coltype, (String, Text)):
        if not isinstance(value, (str, int, float)) or isinstance(value, bool):
            raise ValidationError(f"{field} must be a string")
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
    Validates + normalizes incoming JSON against:
    - SQLAlchemy column metadata (nullable, type, String length)
    - the policy allowlist (unknown keys are ignored, as the register
      sends whole records back on edit)
    - required_on_create (if partial=False)
    Returns a patch dict keyed by column name.
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    if not partial:
        missing = [f for f in sorted(policy.required_on_create) if payload.get(f) in (None, "")]
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    cols = _columns_by_key(model)
    patch: dict = {}

    for field, column_name in policy.writable_fields.items():
        if field not in payload:
            continue
        col = cols[column_name]
        raw = payload[field]

        if raw is None:
            if not col.nullable:
                raise ValidationError(f"{field} cannot be null")
            patch[column_name] = None
            continue

        val = _coerce_value(col, raw, field)

        if isinstance(col.type, (String, Text)) and isinstance(val, str):
            if val == "":
                if not col.nullable and col.default is None:
                    raise ValidationError(f"{field} cannot be blank")
                if col.nullable:
                    val = None
            elif isinstance(col.type, String) and col.type.length and len(val) > col.type.length:
                raise ValidationError(f"{field} exceeds max length {col.type.length}")

        patch[column_name] = val

    return patch


def enforce_rules_product(patch: dict) -> None:
    """Business rules not captured by column metadata."""
    if patch.get("price") is not None:
        price = patch["price"]
        if price < 0:
            raise ValidationError("price must be >= 0")
        if price > MAX_PRICE:
            raise ValidationError(f"price cannot exceed {MAX_PRICE:,.2f}")
        patch["price"] = round2(price)
    if patch.get("stock") is not None and patch["stock"] < 0:
        raise ValidationError("stock must be >= 0")


def enforce_rules_customer(patch: dict) -> None:
    if patch.get("email"):
        email = patch["email"].lower()
        if "@" not in email:
            raise ValidationError("email must be a valid email address")
        patch["email"] = email
