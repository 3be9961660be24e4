"""
Periodic background jobs keeping the pricing aggregates warm.

Jobs run on their own asyncio tasks, never on the price-read path. A failing
run is logged and the loop carries on at the next interval.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable

from config.config import PricingConfig

from .competitor import CompetitorPriceSource, CompetitorPriceTracker
from .decision_log import DecisionLog, RedisDecisionLog
from .demand import DemandSignalStore
from .inventory import InventoryLevelTracker

logger = logging.getLogger(__name__)


class PricingJobs:
    def __init__(
        self,
        demand_store: DemandSignalStore,
        inventory_tracker: InventoryLevelTracker,
        competitor_tracker: CompetitorPriceTracker,
        competitor_source: CompetitorPriceSource | None = None,
        config: PricingConfig | None = None,
        decision_log: DecisionLog | None = None,
    ):
        self.demand_store = demand_store
        self.inventory_tracker = inventory_tracker
        self.competitor_tracker = competitor_tracker
        self.competitor_source = competitor_source
        self.config = config or PricingConfig()
        self.decision_log = decision_log
        self.catalog_product_ids: list[str] = []

    async def rescan_competitors(self) -> int:
        if self.competitor_source is None:
            logger.debug("No competitor source configured, skipping scan")
            return 0
        product_ids = sorted(set(self.competitor_tracker.product_ids()) | set(self.catalog_product_ids))
        return await self.competitor_tracker.rescan(self.competitor_source, product_ids)

    async def rollup_demand(self) -> dict[str, float]:
        return await asyncio.to_thread(self.demand_store.rollup)

    async def recompute_average_stock(self) -> dict[str, float]:
        return await asyncio.to_thread(self.inventory_tracker.recompute_averages)

    async def run_periodic(self, name: str, job: Callable[[], Awaitable[object]], interval: float) -> None:
        """Run ``job`` every ``interval`` seconds until cancelled."""
        logger.info(f"Starting job '{name}' every {interval:.0f}s")
        try:
            while True:
                try:
                    await job()
                except Exception as e:
                    logger.error(f"Job '{name}' failed: {e}", exc_info=True)
                await asyncio.sleep(interval)
        except asyncio.CancelledError:
            logger.info(f"Job '{name}' cancelled")
            raise

    def start(self) -> list[asyncio.Task]:
        """Schedule every job, and the decision log writer if it needs one, on the running event loop."""
        schedule = [
            ("competitor_scan", self.rescan_competitors, self.config.competitor_scan_interval_seconds),
            ("demand_rollup", self.rollup_demand, self.config.demand_rollup_interval_seconds),
            ("average_stock", self.recompute_average_stock, self.config.average_stock_interval_seconds),
        ]
        tasks = [
            asyncio.create_task(self.run_periodic(name, job, interval), name=f"pricing:{name}")
            for name, job, interval in schedule
        ]
        if isinstance(self.decision_log, RedisDecisionLog):
            tasks.append(asyncio.create_task(self.decision_log.run(), name="pricing:decision_log"))
        return tasks
