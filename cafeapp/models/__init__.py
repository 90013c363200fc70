# Importing the module registers tables with Base for create_all()
from .core import (  # noqa: F401
    # Enums
    OrderType, OrderStatus, PaymentMethod, PaymentStatus, DiscountType, AdminRole,

    # Tenant & identity
    Cafe, Settings, Admin,

    # Menu
    MenuCategory, MenuItem,

    # Coupons
    Coupon,

    # Customers & orders
    Customer, Order, OrderItem,

    # Audit
    AuditLog,
)

__all__ = [
    # Enums
    "OrderType", "OrderStatus", "PaymentMethod", "PaymentStatus", "DiscountType", "AdminRole",

    # Tenant & identity
    "Cafe", "Settings", "Admin",

    # Menu
    "MenuCategory", "MenuItem",

    # Coupons
    "Coupon",

    # Customers & orders
    "Customer", "Order", "OrderItem",

    # Audit
    "AuditLog",
]
