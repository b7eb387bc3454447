# Overview: Pure order pricing: line discounts, checkout discount, tax.

"""
Order Pricing Engine

Everything here is deterministic and free of side effects: no database,
no app context, inputs are never mutated. Monetary values are rounded to
cents with round2() at every step so drift cannot accumulate across lines.

Pipeline (per order):
1. line_subtotal = round2(unit_price * quantity); discount_amount from the
   line's DiscountConfig (0 when absent)
2. subtotal / item_discount_total are the sums over lines
3. subtotal_after_item_discounts = round2(subtotal - item_discount_total)
4. checkout discount is evaluated against that figure
5. subtotal_after_discount = round2(... - checkout_discount_amount), floored at 0
6. tax_amount = round2(subtotal_after_discount * tax_rate)
7. total = round2(subtotal_after_discount + tax_amount)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Iterable

from ..errors import ValidationError
from ..money import round2, to_decimal

PERCENTAGE = "percentage"
FIXED = "fixed"
DISCOUNT_TYPES = (PERCENTAGE, FIXED)

# Client totals may differ from ours by float noise, never by a cent
TOTALS_TOLERANCE = 0.005

# Largest value the money columns hold (Numeric(12, 2))
MAX_AMOUNT = Decimal("9999999999.99")
MAX_QUANTITY = 100_000


def _prefixed(label: str | None, message: str) -> str:
    return f"{label}: {message}" if label else message


@dataclass(frozen=True)
class DiscountConfig:
    type: str
    value: float
    reason: str | None = None

    @classmethod
    def from_dict(cls, data: dict | None, label: str | None = None) -> "DiscountConfig | None":
        if data is None:
            return None
        if isinstance(data, DiscountConfig):
            return data
        if not isinstance(data, dict):
            raise ValidationError(_prefixed(label, "Discount must be an object"), details={"target": label})
        if "type" not in data or "value" not in data:
            raise ValidationError(_prefixed(label, "Discount requires type and value"), details={"target": label})
        return cls(
            type=data["type"],
            value=float(to_decimal(data["value"], "discount value")),
            reason=data.get("reason"),
        )

    def to_dict(self) -> dict:
        return {"type": self.type, "value": self.value, "reason": self.reason}


@dataclass(frozen=True)
class LineItem:
    product_id: str | int | None
    name: str
    unit_price: float
    quantity: int
    discount: DiscountConfig | None = None


@dataclass(frozen=True)
class PricedLine:
    product_id: str | int | None
    name: str
    unit_price: float
    quantity: int
    discount: DiscountConfig | None
    line_subtotal: float
    discount_amount: float
    total_after_discount: float

    def to_dict(self) -> dict:
        return {
            "productId": self.product_id,
            "name": self.name,
            "price": self.unit_price,
            "quantity": self.quantity,
            "discount": self.discount.to_dict() if self.discount else None,
            "subtotal": self.line_subtotal,
            "discountAmount": self.discount_amount,
            "totalAfterDiscount": self.total_after_discount,
        }


@dataclass(frozen=True)
class OrderPricing:
    lines: tuple[PricedLine, ...] = field(default_factory=tuple)
    subtotal: float = 0.0
    item_discount_total: float = 0.0
    subtotal_after_item_discounts: float = 0.0
    checkout_discount: DiscountConfig | None = None
    checkout_discount_amount: float = 0.0
    subtotal_after_discount: float = 0.0
    tax_rate: float = 0.0
    tax_amount: float = 0.0
    total: float = 0.0

    def to_dict(self) -> dict:
        return {
            "items": [line.to_dict() for line in self.lines],
            "subtotal": self.subtotal,
            "itemDiscountTotal": self.item_discount_total,
            "subtotalAfterItemDiscounts": self.subtotal_after_item_discounts,
            "checkoutDiscount": self.checkout_discount.to_dict() if self.checkout_discount else None,
            "checkoutDiscountAmount": self.checkout_discount_amount,
            "subtotalAfterDiscount": self.subtotal_after_discount,
            "taxRate": self.tax_rate,
            "taxAmount": self.tax_amount,
            "total": self.total,
        }


def apply_discount(subtotal, discount: DiscountConfig, label: str | None = None) -> float:
    """
    Return the discount AMOUNT for a subtotal (not the discounted total).

    Fixed discounts larger than the subtotal are rejected rather than
    clamped so that a fat-fingered value never silently zeroes a sale.
    """
    details = {"target": label} if label else {}
    value = to_decimal(discount.value, "discount value")
    base = to_decimal(subtotal, "subtotal")

    if value < 0:
        raise ValidationError(_prefixed(label, "Discount value cannot be negative"), details=details)

    if discount.type == PERCENTAGE:
        if value > 100:
            raise ValidationError(_prefixed(label, "Percentage discount cannot exceed 100"), details=details)
        return round2(base * value / Decimal(100))

    if discount.type == FIXED:
        if value > base:
            raise ValidationError(_prefixed(label, "Fixed discount cannot exceed subtotal"), details=details)
        return round2(value)

    raise ValidationError(_prefixed(label, f"Unknown discount type: {discount.type}"), details=details)


def _validate_item(item: LineItem, label: str) -> None:
    price = to_decimal(item.unit_price, f"{label} price")
    if price < 0:
        raise ValidationError(f"{label}: price cannot be negative", details={"target": label})
    qty = item.quantity
    if isinstance(qty, bool) or not isinstance(qty, int):
        raise ValidationError(f"{label}: quantity must be a whole number", details={"target": label})
    if qty < 1:
        raise ValidationError(f"{label}: quantity must be at least 1", details={"target": label})
    if qty > MAX_QUANTITY:
        raise ValidationError(f"{label}: quantity cannot exceed {MAX_QUANTITY:,}", details={"target": label})
    if price * qty > MAX_AMOUNT:
        raise ValidationError(f"{label}: line subtotal is out of range", details={"target": label})


def _validate_tax_rate(tax_rate) -> Decimal:
    rate = to_decimal(tax_rate, "tax rate")
    if rate < 0 or rate > 1:
        raise ValidationError("Tax rate must be between 0 and 1")
    return rate


def price_line(item: LineItem, label: str) -> PricedLine:
    _validate_item(item, label)
    line_subtotal = round2(to_decimal(item.unit_price) * item.quantity)
    discount_amount = apply_discount(line_subtotal, item.discount, label) if item.discount else 0.0
    return PricedLine(
        product_id=item.product_id,
        name=item.name,
        unit_price=round2(item.unit_price),
        quantity=item.quantity,
        discount=item.discount,
        line_subtotal=line_subtotal,
        discount_amount=discount_amount,
        total_after_discount=round2(to_decimal(line_subtotal) - to_decimal(discount_amount)),
    )


def price_order(
    items: Iterable[LineItem],
    checkout_discount: DiscountConfig | None = None,
    tax_rate=0,
) -> OrderPricing:
    """
    Price a cart. An empty cart prices to all zeros.

    Raises ValidationError naming the offending line ("line 2") or
    "checkout" when a discount is out of bounds.
    """
    rate = _validate_tax_rate(tax_rate)
    lines = tuple(price_line(item, f"line {i}") for i, item in enumerate(items, start=1))

    raw_subtotal = sum((to_decimal(line.line_subtotal) for line in lines), Decimal(0))
    if raw_subtotal > MAX_AMOUNT:
        raise ValidationError("Order subtotal is out of range")
    subtotal = round2(raw_subtotal)
    item_discount_total = round2(sum((to_decimal(line.discount_amount) for line in lines), Decimal(0)))
    after_items = round2(to_decimal(subtotal) - to_decimal(item_discount_total))

    checkout_amount = 0.0
    if checkout_discount is not None:
        checkout_amount = apply_discount(after_items, checkout_discount, "checkout")

    after_discount = max(round2(to_decimal(after_items) - to_decimal(checkout_amount)), 0.0)
    tax_amount = round2(to_decimal(after_discount) * rate)
    total = round2(to_decimal(after_discount) + to_decimal(tax_amount))

    return OrderPricing(
        lines=lines,
        subtotal=subtotal,
        item_discount_total=item_discount_total,
        subtotal_after_item_discounts=after_items,
        checkout_discount=checkout_discount,
        checkout_discount_amount=checkout_amount,
        subtotal_after_discount=after_discount,
        tax_rate=float(rate),
        tax_amount=tax_amount,
        total=total,
    )


def totals_match(pricing: OrderPricing, *, subtotal=None, tax=None, total=None) -> list[str]:
    """Return the names of client-supplied totals that disagree with pricing."""
    claimed = {
        "subtotal": (subtotal, pricing.subtotal),
        "tax": (tax, pricing.tax_amount),
        "total": (total, pricing.total),
    }
    mismatched = []
    for name, (client_value, server_value) in claimed.items():
        if client_value is None:
            continue
        if abs(float(to_decimal(client_value, name)) - server_value) > TOTALS_TOLERANCE:
            mismatched.append(name)
    return mismatched
