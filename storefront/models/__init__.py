from storefront.models.profile import Profile, Role, User
from storefront.models.menu import MenuItem
from storefront.models.order import EventStatus, Order, OrderItem, OrderStatus, OutboundEvent

__all__ = [
    "EventStatus",
    "MenuItem",
    "Order",
    "OrderItem",
    "OrderStatus",
    "OutboundEvent",
    "Profile",
    "Role",
    "User",
]
