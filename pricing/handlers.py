"""
Event handlers feeding the pricing signal stores from the event bus.
"""

import logging

from pydantic import BaseModel, ValidationError

from models.enums import PricingEventType, SignalKind
from models.events import (
    CartItemAdded,
    CompetitorPriceObserved,
    InventoryChanged,
    ProductPurchased,
    ProductViewed,
    RetailEvent,
)
from utils.event_bus import EventBus

from .competitor import CompetitorPriceTracker
from .demand import DemandSignalStore
from .inventory import InventoryLevelTracker

logger = logging.getLogger(__name__)


class PricingEventHandlers:
    """Subscribes the signal stores to product, cart, order, inventory and market events."""

    def __init__(
        self,
        demand_store: DemandSignalStore,
        inventory_tracker: InventoryLevelTracker,
        competitor_tracker: CompetitorPriceTracker,
    ):
        self.demand_store = demand_store
        self.inventory_tracker = inventory_tracker
        self.competitor_tracker = competitor_tracker

    def register(self, bus: EventBus) -> None:
        bus.subscribe(PricingEventType.PRODUCT_VIEWED.value, self.on_product_viewed)
        bus.subscribe(PricingEventType.CART_ITEM_ADDED.value, self.on_cart_item_added)
        bus.subscribe(PricingEventType.PRODUCT_PURCHASED.value, self.on_product_purchased)
        bus.subscribe(PricingEventType.INVENTORY_CHANGED.value, self.on_inventory_changed)
        bus.subscribe(PricingEventType.COMPETITOR_PRICE_OBSERVED.value, self.on_competitor_price_observed)
        logger.info("Pricing event handlers registered")

    async def on_product_viewed(self, event: RetailEvent) -> None:
        payload = _parse(event, ProductViewed)
        if payload is None:
            return
        self.demand_store.record_signal(payload.product_id, SignalKind.VIEW)

    async def on_cart_item_added(self, event: RetailEvent) -> None:
        # Cart additions count as interest, not as sales.
        payload = _parse(event, CartItemAdded)
        if payload is None:
            return
        self.demand_store.record_signal(payload.product_id, SignalKind.VIEW)

    async def on_product_purchased(self, event: RetailEvent) -> None:
        payload = _parse(event, ProductPurchased)
        if payload is None:
            return
        for line in payload.lines():
            self.demand_store.record_signal(line.product_id, SignalKind.PURCHASE, line.quantity)

    async def on_inventory_changed(self, event: RetailEvent) -> None:
        payload = _parse(event, InventoryChanged)
        if payload is None:
            return
        self.inventory_tracker.record_stock(payload.product_id, payload.new_quantity)

    async def on_competitor_price_observed(self, event: RetailEvent) -> None:
        payload = _parse(event, CompetitorPriceObserved)
        if payload is None:
            return
        self.competitor_tracker.record_sample(payload.product_id, payload.competitor_id, payload.price)


def _parse(event: RetailEvent, model: type[BaseModel]):
    try:
        return model.model_validate(event.payload)
    except ValidationError as e:
        logger.warning(f"Ignoring malformed {event.event_type} event {event.event_id}: {e.error_count()} error(s)")
        return None
