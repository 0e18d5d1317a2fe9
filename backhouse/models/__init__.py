# backhouse/models/__init__.py
from .inventory import InventoryItem, InventoryRequirement
from .menu import MenuItem, EightySixEntry
from .order import Order, OrderItem, OrderStatus
from .notification import Notification, NotificationType, Severity

# Export all models
__all__ = [
    "InventoryItem",
    "InventoryRequirement",
    "MenuItem",
    "EightySixEntry",
    "Order",
    "OrderItem",
    "OrderStatus",
    "Notification",
    "NotificationType",
    "Severity",
]
