# Database models
from .base import Base
from .user import User, UserRole
from .product import Product, Price, ProductRegion
from .order import Order, OrderStatus, TERMINAL_STATUSES
from .setting import Setting, PopupConfig
from .event import Event, EventStatus

__all__ = [
    "Base",
    "User",
    "UserRole",
    "Product",
    "Price",
    "ProductRegion",
    "Order",
    "OrderStatus",
    "TERMINAL_STATUSES",
    "Setting",
    "PopupConfig",
    "Event",
    "EventStatus",
]
