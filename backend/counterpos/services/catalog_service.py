# Overview: Product and customer records consumed by checkout.

from __future__ import annotations

from sqlalchemy.exc import IntegrityError

from ..errors import ConflictError, NotFoundError
from ..extensions import db
from ..models import Customer, Product
from ..money import round2, to_decimal
from ..validation import (
    ModelValidationPolicy,
    enforce_rules_customer,
    enforce_rules_product,
    parse_id,
    validate_payload,
)

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={
        "sku": "sku",
        "name": "name",
        "description": "description",
        "category": "category",
        "price": "price",
        "stock": "stock",
        "is_active": "is_active",
    },
    required_on_create=frozenset({"name", "price"}),
)

CUSTOMER_POLICY = ModelValidationPolicy(
    writable_fields={
        "name": "name",
        "email": "email",
        "phone": "phone",
        "city": "city",
    },
    required_on_create=frozenset({"name"}),
)


def _commit_unique(message: str) -> None:
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError(message)


# Products

def list_products(category: str | None = None, include_inactive: bool = False) -> list[Product]:
    query = db.session.query(Product)
    if category:
        query = query.filter(Product.category == category)
    if not include_inactive:
        query = query.filter(Product.is_active.is_(True))
    return query.order_by(Product.name.asc(), Product.id.asc()).all()


def get_product(product_id) -> Product:
    product = db.session.get(Product, parse_id(product_id, "Product ID")) if product_id is not None else None
    if product is None:
        raise NotFoundError(f"Product {product_id} not found")
    return product


def create_product(data: dict) -> Product:
    patch = validate_payload(model=Product, payload=data, policy=PRODUCT_POLICY, partial=False)
    enforce_rules_product(patch)
    if patch.get("sku") and db.session.query(Product.id).filter_by(sku=patch["sku"]).first():
        raise ConflictError("A product with this SKU already exists")

    product = Product(**patch)
    db.session.add(product)
    _commit_unique("A product with this SKU already exists")
    return product


def update_product(product_id, data: dict) -> Product:
    product = get_product(product_id)
    patch = validate_payload(model=Product, payload=data, policy=PRODUCT_POLICY, partial=True)
    enforce_rules_product(patch)
    if patch.get("sku"):
        clash = (
            db.session.query(Product.id)
            .filter(Product.sku == patch["sku"], Product.id != product.id)
            .first()
        )
        if clash:
            raise ConflictError("A product with this SKU already exists")

    for key, value in patch.items():
        setattr(product, key, value)
    _commit_unique("A product with this SKU already exists")
    return product


def delete_product(product_id) -> None:
    product = get_product(product_id)
    db.session.delete(product)
    db.session.commit()


# Customers

def list_customers(search: str | None = None) -> list[Customer]:
    query = db.session.query(Customer)
    if search:
        like = f"%{search.strip()}%"
        query = query.filter(
            db.or_(Customer.name.ilike(like), Customer.email.ilike(like), Customer.phone.ilike(like))
        )
    return query.order_by(Customer.created_at.desc(), Customer.id.desc()).all()


def get_customer(customer_id) -> Customer:
    customer = db.session.get(Customer, parse_id(customer_id, "Customer ID")) if customer_id is not None else None
    if customer is None:
        raise NotFoundError("Customer not found")
    return customer


def create_customer(data: dict) -> Customer:
    patch = validate_payload(model=Customer, payload=data, policy=CUSTOMER_POLICY, partial=False)
    enforce_rules_customer(patch)
    if patch.get("email") and db.session.query(Customer.id).filter_by(email=patch["email"]).first():
        raise ConflictError("Email already exists")

    customer = Customer(**patch)
    db.session.add(customer)
    _commit_unique("Email already exists")
    return customer


def update_customer(customer_id, data: dict) -> Customer:
    customer = get_customer(customer_id)
    patch = validate_payload(model=Customer, payload=data, policy=CUSTOMER_POLICY, partial=True)
    enforce_rules_customer(patch)
    if patch.get("email"):
        clash = (
            db.session.query(Customer.id)
            .filter(Customer.email == patch["email"], Customer.id != customer.id)
            .first()
        )
        if clash:
            raise ConflictError("Email already exists")

    for key, value in patch.items():
        setattr(customer, key, value)
    _commit_unique("Email already exists")
    return customer


def delete_customer(customer_id) -> None:
    customer = get_customer(customer_id)
    db.session.delete(customer)
    db.session.commit()


def record_purchase(customer: Customer, amount: float) -> None:
    """Add a completed order to the customer aggregates. Caller commits."""
    customer.total_orders = (customer.total_orders or 0) + 1
    customer.total_spent = round2(to_decimal(customer.total_spent or 0) + to_decimal(amount))
