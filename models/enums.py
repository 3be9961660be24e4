"""
Centralized Enum definitions for the project.
"""

from enum import Enum


class SignalKind(str, Enum):
    """Kinds of demand signals recorded per product"""

    VIEW = "view"
    PURCHASE = "purchase"


class EventSource(str, Enum):
    """Systems that publish events consumed by the pricing engine"""

    CATALOG = "catalog"
    CART = "cart"
    ORDERS = "orders"
    INVENTORY = "inventory"
    MARKET_SCANNER = "market_scanner"
    PRICING = "pricing"
    SYSTEM = "system"
    TEST = "test"


class PricingEventType(str, Enum):
    """Lifecycle events the pricing engine subscribes to"""

    PRODUCT_VIEWED = "product.viewed"
    CART_ITEM_ADDED = "cart.item_added"
    PRODUCT_PURCHASED = "product.purchased"
    INVENTORY_CHANGED = "inventory.changed"
    COMPETITOR_PRICE_OBSERVED = "competitor.price_observed"
