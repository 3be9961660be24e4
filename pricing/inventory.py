"""
Inventory level tracker.

Keeps a stock-level history per product and derives the inventory factor from
the ratio of current stock to the rolling average.
"""

import logging
import threading
from collections.abc import Callable
from datetime import datetime, timedelta

from models.pricing import Product, StockSnapshot
from utils.cache import TTLCache

logger = logging.getLogger(__name__)

SCARCITY_RATIO = 0.2
OVERSTOCK_RATIO = 2.0
SCARCITY_PREMIUM = 0.15
OVERSTOCK_DISCOUNT = -0.10


def inventory_factor_for_ratio(current_stock: float, average_stock: float) -> float:
    """
    Step function of the stock ratio. Boundaries are strict: a ratio of
    exactly 0.2 or 2.0 yields 0.
    """
    if average_stock == 0:
        return 0.0
    ratio = current_stock / average_stock
    if ratio < SCARCITY_RATIO:
        return SCARCITY_PREMIUM
    if ratio > OVERSTOCK_RATIO:
        return OVERSTOCK_DISCOUNT
    return 0.0


class InventoryLevelTracker:
    """Stock snapshot history with a cached rolling average per product."""

    def __init__(
        self,
        window_days: float = 30,
        cache: TTLCache | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.window_days = window_days
        self.cache = cache if cache is not None else TTLCache(default_ttl=3600.0)
        self._clock = clock
        self._snapshots: dict[str, tuple[StockSnapshot, ...]] = {}
        # Bumped on every write; cached averages computed under an older generation are discarded.
        self._generations: dict[str, int] = {}
        self._lock = threading.Lock()

    def record_stock(self, product_id: str, quantity: int) -> None:
        """Append a stock snapshot and drop the product's cached averages."""
        snapshot = StockSnapshot(product_id=product_id, quantity=quantity, timestamp=self._clock())
        with self._lock:
            self._snapshots[product_id] = self._snapshots.get(product_id, ()) + (snapshot,)
            self._generations[product_id] = self._generations.get(product_id, 0) + 1
        self.cache.invalidate_matching(lambda key: isinstance(key, tuple) and key[0] == product_id)
        logger.debug(f"Recorded stock {quantity} for {product_id}")

    def generation(self, product_id: str) -> int:
        return self._generations.get(product_id, 0)

    def snapshots(self, product_id: str) -> tuple[StockSnapshot, ...]:
        return self._snapshots.get(product_id, ())

    def product_ids(self) -> list[str]:
        return list(self._snapshots.keys())

    def compute_average_stock(self, product_id: str, window_days: float, now: datetime | None = None) -> float:
        since = (now or self._clock()) - timedelta(days=window_days)
        quantities = [s.quantity for s in self._snapshots.get(product_id, ()) if s.timestamp >= since]
        if not quantities:
            return 0.0
        return sum(quantities) / len(quantities)

    def _cache_average(self, product_id: str, window_days: float, average: float, generation: int) -> None:
        key = (product_id, window_days)
        self.cache.set(key, average)
        if self.generation(product_id) != generation:
            # A snapshot landed while the average was computed
            self.cache.invalidate(key)

    def average_stock(self, product_id: str, window_days: float | None = None) -> float:
        """Mean stock level over the window, 0 when there is no history."""
        window_days = self.window_days if window_days is None else window_days
        value, hit = self.cache.get((product_id, window_days))
        if hit:
            return value
        generation = self.generation(product_id)
        average = self.compute_average_stock(product_id, window_days)
        self._cache_average(product_id, window_days, average, generation)
        return average

    def inventory_factor(self, product: Product) -> float:
        return inventory_factor_for_ratio(product.current_stock, self.average_stock(product.product_id))

    def recompute_averages(self) -> dict[str, float]:
        """Refresh the cached average of every tracked product and prune old snapshots."""
        now = self._clock()
        cutoff = now - timedelta(days=self.window_days)
        with self._lock:
            for product_id, series in list(self._snapshots.items()):
                kept = tuple(s for s in series if s.timestamp >= cutoff)
                if kept:
                    self._snapshots[product_id] = kept
                else:
                    del self._snapshots[product_id]
        averages = {}
        for product_id in self.product_ids():
            generation = self.generation(product_id)
            averages[product_id] = self.compute_average_stock(product_id, self.window_days, now)
            self._cache_average(product_id, self.window_days, averages[product_id], generation)
        logger.info(f"Average stock recomputed for {len(averages)} products")
        return averages
