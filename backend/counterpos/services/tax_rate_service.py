# Overview: Tax rate registry with a single default rate.

"""
Tax Rate Registry

Invariant: whenever the table is non-empty, exactly one row has
is_default = true.

Every mutation and the repair of that invariant run inside one database
transaction (services.concurrency.atomic), so concurrent writers cannot
leave zero or two defaults behind:
- demotion is a single conditional UPDATE (is_default = false WHERE id != :keep)
- when nothing is default after a write, the oldest row is promoted

Rates are stored as fractions. Inputs above 1 are read as percentages
(5 -> 0.05) for compatibility with the register UI.
"""

from __future__ import annotations

import math
from decimal import Decimal, ROUND_HALF_UP

from sqlalchemy.exc import IntegrityError

from ..errors import ConflictError, NotFoundError, ValidationError
from ..extensions import db
from ..models import TaxRate
from ..validation import optional_text, parse_id
from .concurrency import atomic

DUPLICATE_NAME_ERROR = "A tax rate with this name already exists"
_RATE_PLACES = Decimal("0.0001")


def normalize_rate(value) -> float:
    """
    Coerce a rate to a fraction in [0, 1], rounded to 4 places.

    >>> normalize_rate(5)
    0.05
    >>> normalize_rate(0.075)
    0.075
    """
    if isinstance(value, bool) or value is None:
        raise ValidationError("Tax rate must be a valid number")
    try:
        numeric = float(value)
    except (TypeError, ValueError):
        raise ValidationError("Tax rate must be a valid number")
    if not math.isfinite(numeric):
        raise ValidationError("Tax rate must be a valid number")
    if numeric < 0:
        raise ValidationError("Tax rate cannot be negative")

    rate = Decimal(repr(numeric))
    if rate > 1:
        rate = rate / Decimal(100)
    if rate > 1:
        raise ValidationError("Tax rate cannot exceed 100%")
    return float(rate.quantize(_RATE_PLACES, rounding=ROUND_HALF_UP))


def _clean_name(name) -> str:
    if not isinstance(name, str) or not name.strip():
        raise ValidationError("Name and rate are required")
    name = name.strip()
    if len(name) > 128:
        raise ValidationError("Name exceeds max length 128")
    return name


def _name_taken(name: str, exclude_id: int | None = None) -> bool:
    query = db.session.query(TaxRate.id).filter(TaxRate.name == name)
    if exclude_id is not None:
        query = query.filter(TaxRate.id != exclude_id)
    return query.first() is not None


def _get(tax_rate_id) -> TaxRate:
    rate = db.session.get(TaxRate, parse_id(tax_rate_id, "Tax rate ID")) if tax_rate_id is not None else None
    if rate is None:
        raise NotFoundError("Tax rate not found")
    return rate


def _demote_others(keep_id: int) -> int:
    return (
        db.session.query(TaxRate)
        .filter(TaxRate.id != keep_id, TaxRate.is_default.is_(True))
        .update({TaxRate.is_default: False}, synchronize_session="fetch")
    )


def _repair_default() -> TaxRate | None:
    """Promote the oldest rate when no default exists. Caller commits."""
    if db.session.query(TaxRate.id).filter(TaxRate.is_default.is_(True)).first() is not None:
        return None
    oldest = db.session.query(TaxRate).order_by(TaxRate.created_at.asc(), TaxRate.id.asc()).first()
    if oldest is not None:
        oldest.is_default = True
        db.session.flush()
    return oldest


def _settle_default(rate: TaxRate) -> None:
    db.session.flush()
    if rate.is_default:
        _demote_others(rate.id)
    else:
        _repair_default()


def list_tax_rates() -> list[TaxRate]:
    return (
        db.session.query(TaxRate)
        .order_by(TaxRate.is_default.desc(), TaxRate.created_at.desc(), TaxRate.id.desc())
        .all()
    )


def get_tax_rate(tax_rate_id) -> TaxRate:
    return _get(tax_rate_id)


def get_default_tax_rate() -> TaxRate | None:
    return db.session.query(TaxRate).filter(TaxRate.is_default.is_(True)).order_by(TaxRate.id.asc()).first()


def _flush_unique_name() -> None:
    # A concurrent writer may claim the name between the check and the insert
    try:
        db.session.flush()
    except IntegrityError:
        raise ConflictError(DUPLICATE_NAME_ERROR)


def create_tax_rate(name, rate, description=None, is_default=False) -> TaxRate:
    if rate is None:
        raise ValidationError("Name and rate are required")
    name = _clean_name(name)
    normalized = normalize_rate(rate)
    description = optional_text(description, "description")

    def _op():
        if _name_taken(name):
            raise ConflictError(DUPLICATE_NAME_ERROR)
        tax_rate = TaxRate(
            name=name,
            rate=normalized,
            description=description,
            is_default=bool(is_default),
        )
        db.session.add(tax_rate)
        _flush_unique_name()
        _settle_default(tax_rate)
        return tax_rate

    return atomic(_op)


def update_tax_rate(tax_rate_id, **fields) -> TaxRate:
    """
    Partial update. Accepted keys: name, rate, description, is_default.

    Clearing is_default on the current default hands the flag to the
    oldest rate (which may be this one again).
    """
    name = _clean_name(fields["name"]) if fields.get("name") else None
    normalized = normalize_rate(fields["rate"]) if fields.get("rate") is not None else None
    is_default = fields.get("is_default")
    if is_default is not None and not isinstance(is_default, bool):
        raise ValidationError("isDefault must be true or false")
    description = optional_text(fields.get("description"), "description")

    def _op():
        tax_rate = _get(tax_rate_id)
        if name is not None:
            if _name_taken(name, exclude_id=tax_rate.id):
                raise ConflictError(DUPLICATE_NAME_ERROR)
            tax_rate.name = name
            _flush_unique_name()
        if normalized is not None:
            tax_rate.rate = normalized
        if "description" in fields:
            tax_rate.description = description
        if is_default is not None:
            tax_rate.is_default = is_default
        _settle_default(tax_rate)
        return tax_rate

    return atomic(_op)


def delete_tax_rate(tax_rate_id) -> None:
    def _op():
        tax_rate = _get(tax_rate_id)
        db.session.delete(tax_rate)
        db.session.flush()
        _repair_default()

    atomic(_op)


def set_default_tax_rate(tax_rate_id) -> TaxRate:
    def _op():
        tax_rate = _get(tax_rate_id)
        tax_rate.is_default = True
        db.session.flush()
        _demote_others(tax_rate.id)
        return tax_rate

    return atomic(_op)


def ensure_default_exists() -> TaxRate | None:
    """Repair the default invariant. Returns the promoted rate, if any."""
    return atomic(_repair_default)
