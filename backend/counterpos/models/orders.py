from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z

ORDER_STATUSES = ("pending", "processing", "completed", "cancelled")
PAYMENT_METHODS = ("cash", "card", "check", "transfer", "other")

_MONEY = db.Numeric(12, 2, asdecimal=False)


class Order(db.Model):
    """
    Checkout document.

    Pricing fields are written once at checkout from the pricing engine
    and never recomputed; afterwards only status (and completed_at) move.
    """
    __tablename__ = "orders"
    __table_args__ = (
        db.Index("ix_orders_status_created", "status", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_number = db.Column(db.String(32), nullable=False, unique=True)

    # NULL customer_id is a walk-in sale; customer_name is a snapshot
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id", ondelete="SET NULL"), nullable=True, index=True)
    customer_name = db.Column(db.String(255), nullable=False, default="Walk-in")

    status = db.Column(db.String(16), nullable=False, default="pending")

    subtotal = db.Column(_MONEY, nullable=False, default=0)
    item_discount_total = db.Column(_MONEY, nullable=False, default=0)
    subtotal_after_item_discounts = db.Column(_MONEY, nullable=False, default=0)

    checkout_discount_type = db.Column(db.String(16), nullable=True)
    checkout_discount_value = db.Column(_MONEY, nullable=True)
    checkout_discount_reason = db.Column(db.String(255), nullable=True)
    checkout_discount_amount = db.Column(_MONEY, nullable=False, default=0)

    subtotal_after_discount = db.Column(_MONEY, nullable=False, default=0)
    tax_rate = db.Column(db.Numeric(6, 4, asdecimal=False), nullable=False, default=0)
    tax_rate_id = db.Column(db.Integer, db.ForeignKey("tax_rates.id", ondelete="SET NULL"), nullable=True)
    tax_amount = db.Column(_MONEY, nullable=False, default=0)
    total = db.Column(_MONEY, nullable=False, default=0)

    staff_id = db.Column(db.Integer, db.ForeignKey("staff.id", ondelete="SET NULL"), nullable=True, index=True)
    staff_name = db.Column(db.String(128), nullable=True)
    payment_method = db.Column(db.String(16), nullable=True)

    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    items = db.relationship(
        "OrderItem",
        backref="order",
        lazy=True,
        order_by="OrderItem.position",
        cascade="all, delete-orphan",
    )

    def to_dict(self) -> dict:
        checkout_discount = None
        if self.checkout_discount_type:
            checkout_discount = {
                "type": self.checkout_discount_type,
                "value": float(self.checkout_discount_value),
                "reason": self.checkout_discount_reason,
            }
        return {
            "id": self.id,
            "orderNumber": self.order_number,
            "customerId": self.customer_id,
            "customer": self.customer_name,
            "items": [item.to_dict() for item in self.items],
            "status": self.status,
            "subtotal": float(self.subtotal),
            "itemDiscountTotal": float(self.item_discount_total),
            "subtotalAfterItemDiscounts": float(self.subtotal_after_item_discounts),
            "checkoutDiscount": checkout_discount,
            "checkoutDiscountAmount": float(self.checkout_discount_amount),
            "subtotalAfterDiscount": float(self.subtotal_after_discount),
            "taxRate": float(self.tax_rate),
            "taxRateId": self.tax_rate_id,
            "taxAmount": float(self.tax_amount),
            "total": float(self.total),
            "staffId": self.staff_id,
            "staffName": self.staff_name,
            "paymentMethod": self.payment_method,
            "completedAt": to_utc_z(self.completed_at),
            "createdAt": to_utc_z(self.created_at),
            "updatedAt": to_utc_z(self.updated_at),
        }


class OrderItem(db.Model):
    """Priced order line. Immutable after checkout."""
    __tablename__ = "order_items"
    __table_args__ = (
        db.UniqueConstraint("order_id", "position", name="uq_order_items_order_position"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    position = db.Column(db.Integer, nullable=False)

    product_id = db.Column(db.Integer, db.ForeignKey("products.id", ondelete="SET NULL"), nullable=True, index=True)
    name = db.Column(db.String(255), nullable=False)
    unit_price = db.Column(_MONEY, nullable=False)
    quantity = db.Column(db.Integer, nullable=False)

    discount_type = db.Column(db.String(16), nullable=True)
    discount_value = db.Column(_MONEY, nullable=True)
    discount_reason = db.Column(db.String(255), nullable=True)

    line_subtotal = db.Column(_MONEY, nullable=False)
    discount_amount = db.Column(_MONEY, nullable=False, default=0)
    total_after_discount = db.Column(_MONEY, nullable=False)

    def to_dict(self) -> dict:
        discount = None
        if self.discount_type:
            discount = {
                "type": self.discount_type,
                "value": float(self.discount_value),
                "reason": self.discount_reason,
            }
        return {
            "productId": self.product_id,
            "name": self.name,
            "price": float(self.unit_price),
            "quantity": self.quantity,
            "discount": discount,
            "subtotal": float(self.line_subtotal),
            "discountAmount": float(self.discount_amount),
            "totalAfterDiscount": float(self.total_after_discount),
        }


class OrderSequence(db.Model):
    """Atomic order number allocation, one row per prefix."""
    __tablename__ = "order_sequences"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    prefix = db.Column(db.String(16), nullable=False, unique=True)
    next_number = db.Column(db.Integer, nullable=False, default=1)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
