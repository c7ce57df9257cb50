# ------ storefront/model/__init__.py ------

from .user import User
from .product import Product
from .coupon import Coupon
from .notification import Notification
from .order import Order, OrderItem, OrderStatusHistory

__all__ = [
    "User",
    "Product",
    "Coupon",
    "Notification",
    "Order",
    "OrderItem",
    "OrderStatusHistory",
]
