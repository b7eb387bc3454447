from .staff import Staff, StaffSession, STAFF_ROLES, STAFF_STATUSES
from .tax import TaxRate
from .catalog import Product, Customer
from .orders import Order, OrderItem, OrderSequence, ORDER_STATUSES, PAYMENT_METHODS

__all__ = [
    'Staff', 'StaffSession', 'STAFF_ROLES', 'STAFF_STATUSES',
    'TaxRate',
    'Product', 'Customer',
    'Order', 'OrderItem', 'OrderSequence', 'ORDER_STATUSES', 'PAYMENT_METHODS',
]
