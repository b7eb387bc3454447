# Overview: Checkout and the order status lifecycle.

"""
Order Service

Checkout (create_order) is one transaction:
1. resolve every line against the catalog (authoritative name + price)
2. resolve the tax rate (explicit taxRateId, else the registry default, else 0)
3. price the cart with services.pricing and compare any client totals
4. check and deduct stock
5. allocate an order number and persist the order with its priced lines
6. for completed orders, update customer and staff aggregates

Status machine:
    pending    -> processing | completed | cancelled
    processing -> completed
    completed, cancelled: terminal

Cancelling puts the order's quantities back on the shelf.
"""

from __future__ import annotations

from collections import OrderedDict

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from ..errors import ConflictError, NotFoundError, ValidationError
from ..extensions import db
from ..models import (
    Customer,
    Order,
    OrderItem,
    OrderSequence,
    Product,
    Staff,
    ORDER_STATUSES,
    PAYMENT_METHODS,
)
from ..time_utils import utcnow
from ..validation import optional_text, parse_id
from . import catalog_service, staff_service, tax_rate_service
from .concurrency import atomic, lock_for_update
from .pricing import DiscountConfig, LineItem, OrderPricing, price_order, totals_match

ORDER_PREFIX = "ORD"
ORDER_NUMBER_PAD = 6

ALLOWED_TRANSITIONS = {
    "pending": frozenset({"processing", "completed", "cancelled"}),
    "processing": frozenset({"completed"}),
    "completed": frozenset(),
    "cancelled": frozenset(),
}

# Statuses a checkout may create
INITIAL_STATUSES = ("completed", "pending")


def can_transition(current: str, target: str) -> bool:
    """Re-asserting the current status counts as allowed (no-op)."""
    if target not in ORDER_STATUSES or current not in ALLOWED_TRANSITIONS:
        return False
    return current == target or target in ALLOWED_TRANSITIONS[current]


def _load_product(product_id, *, lock: bool) -> Product:
    message = f"Product {product_id} not found"
    pid = parse_id(product_id, "productId")
    query = db.session.query(Product).filter(Product.id == pid)
    if lock:
        query = lock_for_update(query)
    product = query.first()
    if product is None or not product.is_active:
        raise NotFoundError(message)
    return product


def _catalog_lines(raw_items, *, lock: bool) -> tuple[list[LineItem], dict[int, Product]]:
    """
    Build priced-line inputs from register JSON.

    Name and unit price come from the catalog; the register only
    contributes productId, quantity and an optional discount.
    """
    if not isinstance(raw_items, (list, tuple)):
        raise ValidationError("items must be a list")

    products: dict[int, Product] = {}
    lines: list[LineItem] = []
    for i, raw in enumerate(raw_items, start=1):
        label = f"line {i}"
        if not isinstance(raw, dict):
            raise ValidationError(f"{label}: item must be an object", details={"target": label})
        if raw.get("productId") is None:
            raise ValidationError(f"{label}: productId is required", details={"target": label})
        if raw.get("quantity") is None:
            raise ValidationError(f"{label}: quantity is required", details={"target": label})

        product = _load_product(raw["productId"], lock=lock)
        products[product.id] = product
        lines.append(LineItem(
            product_id=product.id,
            name=product.name,
            unit_price=float(product.price),
            quantity=raw["quantity"],
            discount=DiscountConfig.from_dict(raw.get("discount"), label),
        ))
    return lines, products


def _resolve_tax_rate(tax_rate_id) -> tuple[float, int | None]:
    if tax_rate_id is not None:
        tax_rate = tax_rate_service.get_tax_rate(parse_id(tax_rate_id, "taxRateId"))
        return float(tax_rate.rate), tax_rate.id
    default = tax_rate_service.get_default_tax_rate()
    if default is None:
        return 0.0, None
    return float(default.rate), default.id


def _price(payload: dict, *, lock: bool) -> tuple[OrderPricing, dict[int, Product], int | None]:
    lines, products = _catalog_lines(payload.get("items") or [], lock=lock)
    checkout_discount = DiscountConfig.from_dict(payload.get("checkoutDiscount"), "checkout")
    rate, rate_id = _resolve_tax_rate(payload.get("taxRateId"))
    pricing = price_order(lines, checkout_discount=checkout_discount, tax_rate=rate)
    return pricing, products, rate_id


def quote_order(payload: dict) -> OrderPricing:
    """Price a cart without touching stock or persisting anything."""
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    pricing, _, _ = _price(payload, lock=False)
    return pricing


def _deduct_stock(pricing: OrderPricing, products: dict[int, Product]) -> None:
    requested: "OrderedDict[int, int]" = OrderedDict()
    for line in pricing.lines:
        requested[line.product_id] = requested.get(line.product_id, 0) + line.quantity

    # Check everything before touching anything
    for product_id, quantity in requested.items():
        product = products[product_id]
        if product.stock < quantity:
            raise ValidationError(
                f"Insufficient stock for {product.name}. Available: {product.stock}, Requested: {quantity}",
                details={"productId": product.id, "available": product.stock, "requested": quantity},
            )
    for product_id, quantity in requested.items():
        products[product_id].stock -= quantity


def _restock(order: Order) -> None:
    for item in order.items:
        if item.product_id is None:
            continue
        product = lock_for_update(db.session.query(Product).filter(Product.id == item.product_id)).first()
        if product is not None:
            product.stock += item.quantity


def _order_number_taken(number: str) -> bool:
    return db.session.query(Order.id).filter(Order.order_number == number).first() is not None


def _allocate_sequence(prefix: str) -> int:
    stmt = (
        update(OrderSequence)
        .where(OrderSequence.prefix == prefix)
        .values(next_number=OrderSequence.next_number + 1)
    )
    if db.session.execute(stmt).rowcount:
        current = db.session.query(OrderSequence.next_number).filter_by(prefix=prefix).scalar()
        return current - 1

    try:
        with db.session.begin_nested():
            db.session.add(OrderSequence(prefix=prefix, next_number=2))
        return 1
    except IntegrityError:
        # Another writer created the row first
        if not db.session.execute(stmt).rowcount:
            raise
        current = db.session.query(OrderSequence.next_number).filter_by(prefix=prefix).scalar()
        return current - 1


def next_order_number(prefix: str = ORDER_PREFIX) -> str:
    """
    Allocate the next free order number, e.g. ORD-000042.

    Numbers already claimed by client-supplied order numbers are skipped.
    Must run inside the caller's transaction.
    """
    while True:
        number = f"{prefix}-{_allocate_sequence(prefix):0{ORDER_NUMBER_PAD}d}"
        if not _order_number_taken(number):
            return number


def _claim_order_number(requested) -> str:
    if requested is None or (isinstance(requested, str) and not requested.strip()):
        return next_order_number()
    if not isinstance(requested, str):
        raise ValidationError("orderNumber must be a string")
    requested = requested.strip()
    if len(requested) > 32:
        raise ValidationError("orderNumber exceeds max length 32")
    if _order_number_taken(requested):
        raise ConflictError("Order number already exists")
    return requested


def _complete(order: Order, staff: Staff | None) -> None:
    order.status = "completed"
    order.completed_at = utcnow()
    if order.customer_id is not None:
        customer = db.session.get(Customer, order.customer_id)
        if customer is not None:
            catalog_service.record_purchase(customer, order.total)
    if staff is not None:
        staff_service.record_sale(staff, order.total)


def _items_from_pricing(pricing: OrderPricing) -> list[OrderItem]:
    items = []
    for position, line in enumerate(pricing.lines, start=1):
        discount = line.discount
        items.append(OrderItem(
            position=position,
            product_id=line.product_id,
            name=line.name,
            unit_price=line.unit_price,
            quantity=line.quantity,
            discount_type=discount.type if discount else None,
            discount_value=discount.value if discount else None,
            discount_reason=discount.reason if discount else None,
            line_subtotal=line.line_subtotal,
            discount_amount=line.discount_amount,
            total_after_discount=line.total_after_discount,
        ))
    return items


def create_order(payload: dict, staff: Staff | None = None) -> Order:
    """
    Checkout. Totals are always recomputed here; client-supplied
    subtotal/tax/total are only checked, never stored.
    """
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    if not payload.get("items"):
        raise ValidationError("Order must contain at least one item")

    status = payload.get("status") or "completed"
    if status not in INITIAL_STATUSES:
        raise ValidationError(f"New orders must be one of: {', '.join(INITIAL_STATUSES)}")

    payment_method = payload.get("paymentMethod") or "cash"
    if payment_method not in PAYMENT_METHODS:
        raise ValidationError(f"Payment method must be one of: {', '.join(PAYMENT_METHODS)}")

    walk_in_name = optional_text(payload.get("customerName"), "customerName") or "Walk-in"
    if len(walk_in_name) > 255:
        raise ValidationError("customerName exceeds max length 255")

    staff_id = staff.id if staff is not None else None

    def _op():
        acting = db.session.get(Staff, staff_id) if staff_id is not None else None
        pricing, products, rate_id = _price(payload, lock=True)

        mismatched = totals_match(
            pricing,
            subtotal=payload.get("subtotal"),
            tax=payload.get("tax"),
            total=payload.get("total"),
        )
        if mismatched:
            raise ValidationError(
                "Order totals do not match server pricing",
                details={
                    "mismatched": mismatched,
                    "server": {
                        "subtotal": pricing.subtotal,
                        "tax": pricing.tax_amount,
                        "total": pricing.total,
                    },
                },
            )

        _deduct_stock(pricing, products)

        customer = None
        if payload.get("customerId") is not None:
            customer = catalog_service.get_customer(parse_id(payload["customerId"], "customerId"))

        checkout = pricing.checkout_discount
        order = Order(
            order_number=_claim_order_number(payload.get("orderNumber")),
            customer_id=customer.id if customer else None,
            customer_name=customer.name if customer else walk_in_name,
            status="pending",
            subtotal=pricing.subtotal,
            item_discount_total=pricing.item_discount_total,
            subtotal_after_item_discounts=pricing.subtotal_after_item_discounts,
            checkout_discount_type=checkout.type if checkout else None,
            checkout_discount_value=checkout.value if checkout else None,
            checkout_discount_reason=checkout.reason if checkout else None,
            checkout_discount_amount=pricing.checkout_discount_amount,
            subtotal_after_discount=pricing.subtotal_after_discount,
            tax_rate=pricing.tax_rate,
            tax_rate_id=rate_id,
            tax_amount=pricing.tax_amount,
            total=pricing.total,
            staff_id=acting.id if acting else None,
            staff_name=acting.name if acting else None,
            payment_method=payment_method,
        )
        order.items = _items_from_pricing(pricing)
        db.session.add(order)

        if status == "completed":
            _complete(order, acting)

        db.session.flush()
        return order

    return atomic(_op)


def get_order(order_id) -> Order:
    order = db.session.get(Order, order_id) if order_id is not None else None
    if order is None:
        raise NotFoundError("Order not found")
    return order


def list_orders(status: str | None = None) -> list[Order]:
    query = db.session.query(Order)
    if status is not None:
        if status not in ORDER_STATUSES:
            raise ValidationError(f"Status must be one of: {', '.join(ORDER_STATUSES)}")
        query = query.filter(Order.status == status)
    return query.order_by(Order.created_at.desc(), Order.id.desc()).all()


def update_status(order_id, status: str, staff: Staff | None = None) -> Order:
    """
    Move an order through the status machine.

    Completion credits the staff member who rang the order up (or the
    acting staff member when the order has none).
    """
    if status not in ORDER_STATUSES:
        raise ValidationError(f"Status must be one of: {', '.join(ORDER_STATUSES)}")
    staff_id = staff.id if staff is not None else None

    def _op():
        order = lock_for_update(db.session.query(Order).filter(Order.id == order_id)).first()
        if order is None:
            raise NotFoundError("Order not found")
        if order.status == status:
            return order
        if not can_transition(order.status, status):
            raise ValidationError(
                f"Cannot change order status from {order.status} to {status}",
                details={"from": order.status, "to": status},
            )

        if status == "cancelled":
            _restock(order)
            order.status = status
        elif status == "completed":
            credited = None
            if order.staff_id is not None:
                credited = db.session.get(Staff, order.staff_id)
            elif staff_id is not None:
                credited = db.session.get(Staff, staff_id)
                if credited is not None:
                    order.staff_id = credited.id
                    order.staff_name = credited.name
            _complete(order, credited)
        else:
            order.status = status
        return order

    return atomic(_op)


def delete_order(order_id) -> None:
    def _op():
        order = get_order(order_id)
        db.session.delete(order)

    atomic(_op)
