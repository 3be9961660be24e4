"""
Data models for events delivered to the pricing engine by the event bus.
"""

import uuid
from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from .enums import EventSource


class RetailEvent(BaseModel):
    """Envelope for lifecycle events published by catalog, cart, orders and scanners."""

    event_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    event_type: str  # PricingEventType value
    payload: dict[str, Any]
    source: EventSource
    timestamp: datetime = Field(default_factory=datetime.now)


# Payload models, validated by the pricing event handlers
class ProductViewed(BaseModel):
    product_id: str


class CartItemAdded(BaseModel):
    product_id: str
    quantity: int = Field(default=1, ge=0)


class OrderLine(BaseModel):
    product_id: str
    quantity: int = Field(default=1, ge=0)


class ProductPurchased(BaseModel):
    """Completed order. Either a single product line or a list of lines."""

    product_id: str | None = None
    quantity: int = Field(default=1, ge=0)
    items: list[OrderLine] = Field(default_factory=list)

    def lines(self) -> list[OrderLine]:
        if self.items:
            return self.items
        if self.product_id is None:
            return []
        return [OrderLine(product_id=self.product_id, quantity=self.quantity)]


class InventoryChanged(BaseModel):
    product_id: str
    new_quantity: int = Field(ge=0)
    old_quantity: int | None = None


class CompetitorPriceObserved(BaseModel):
    product_id: str
    competitor_id: str
    price: float = Field(gt=0)
