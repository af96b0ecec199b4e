from models.user import User, Address
from models.subscription import SubscriptionPlan, Subscription, SubscriptionPreferences
from models.service import Service
from models.order import Order, OrderItem, OrderEvent

__all__ = [
    "User", "Address",
    "SubscriptionPlan", "Subscription", "SubscriptionPreferences",
    "Service", "Order", "OrderItem", "OrderEvent",
]
