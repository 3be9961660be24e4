"""
Demo of the dynamic pricing decision engine.

Feeds view, purchase, inventory and competitor events through the event bus,
runs the background jobs once, and prices a few products.
"""

import asyncio

from config.config import PricingConfig
from connectors.dummy_competitor_feed import DummyCompetitorFeed
from models.enums import EventSource, PricingEventType
from models.events import RetailEvent
from models.pricing import PricingContext, Product
from pricing.system import build_pricing_system
from utils.logger import get_logger

logger = get_logger("demos.dynamic_pricing_engine")

CATALOG = [
    Product(product_id="SKU-100", name="Trail Runner", base_price=100.0, cost=70.0, current_stock=3),
    Product(product_id="SKU-200", name="Rain Shell", base_price=50.0, cost=95.0, current_stock=40),
    Product(product_id="SKU-300", name="Wool Socks", base_price=12.0, current_stock=600),
]


async def feed_events(system) -> None:
    events = []
    for _ in range(30):
        events.append((PricingEventType.PRODUCT_VIEWED, {"product_id": "SKU-100"}, EventSource.CATALOG))
    events.append(
        (
            PricingEventType.PRODUCT_PURCHASED,
            {"items": [{"product_id": "SKU-100", "quantity": 4}, {"product_id": "SKU-300", "quantity": 1}]},
            EventSource.ORDERS,
        )
    )
    for quantity in (40, 35, 30, 3):
        events.append((PricingEventType.INVENTORY_CHANGED, {"product_id": "SKU-100", "new_quantity": quantity}, EventSource.INVENTORY))
    for quantity in (150, 180, 200):
        events.append((PricingEventType.INVENTORY_CHANGED, {"product_id": "SKU-300", "new_quantity": quantity}, EventSource.INVENTORY))
    events.append(
        (
            PricingEventType.COMPETITOR_PRICE_OBSERVED,
            {"product_id": "SKU-100", "competitor_id": "acme", "price": 95.0},
            EventSource.MARKET_SCANNER,
        )
    )
    for event_type, payload, source in events:
        await system.bus.publish(RetailEvent(event_type=event_type.value, payload=payload, source=source))


async def run_pricing_demo() -> dict[str, float]:
    logger.info("--- Dynamic Pricing Engine Demo ---")
    config = PricingConfig.from_env()
    feed = DummyCompetitorFeed({"SKU-100": {"globex": 104.0}, "SKU-300": {"acme": 9.5, "globex": 10.0}})
    system = build_pricing_system(config, competitor_source=feed)
    system.jobs.catalog_product_ids = [p.product_id for p in CATALOG]

    await feed_events(system)
    await system.jobs.rescan_competitors()
    await system.jobs.rollup_demand()
    await system.jobs.recompute_average_stock()

    policy = config.to_policy()
    prices = {}
    for product in CATALOG:
        price, decision = system.engine.calculate(product, policy, PricingContext(channel="demo"))
        prices[product.product_id] = price
        if decision is None:
            logger.info(f"{product.product_id}: {price:.2f} (no dynamic adjustment)")
            continue
        logger.info(
            f"{product.product_id}: {decision.old_price:.2f} -> {price:.2f} | "
            f"demand={decision.demand_factor:+.3f} inventory={decision.inventory_factor:+.3f} "
            f"competitor={decision.competitor_factor:+.3f} adjustment={decision.total_adjustment:+.3f}"
            + (" [margin floor]" if decision.margin_floor_applied else "")
        )

    logger.info(f"Summary: {system.decision_log.performance_summary()}")
    logger.info("--- Dynamic Pricing Engine Demo Finished ---")
    return prices


if __name__ == "__main__":
    asyncio.run(run_pricing_demo())
