"""
Competitor price tracker.

Keeps every competitor price sample for trend analysis and a snapshot of the
latest price per competitor, which drives the competitor factor.
"""

import logging
import threading
from abc import ABC, abstractmethod
from collections.abc import Callable
from datetime import datetime, timedelta
from types import MappingProxyType

from models.pricing import CompetitorPriceSample

logger = logging.getLogger(__name__)


class CompetitorPriceSource(ABC):
    """Market data feed polled by the competitor re-scan job."""

    @abstractmethod
    async def fetch_prices(self, product_id: str) -> dict[str, float]:
        """Current price per competitor id for a product."""


class CompetitorPriceTracker:
    """Competitor samples per product with an atomically swapped latest-price snapshot."""

    def __init__(
        self,
        max_sample_age: timedelta | None = timedelta(hours=72),
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.max_sample_age = max_sample_age
        self._clock = clock
        self._history: dict[str, tuple[CompetitorPriceSample, ...]] = {}
        self._latest: dict[str, MappingProxyType] = {}
        self._lock = threading.Lock()

    def record_sample(self, product_id: str, competitor_id: str, price: float) -> None:
        sample = CompetitorPriceSample(
            product_id=product_id,
            competitor_id=competitor_id,
            price=price,
            timestamp=self._clock(),
        )
        with self._lock:
            self._history[product_id] = self._history.get(product_id, ()) + (sample,)
            latest = dict(self._latest.get(product_id, {}))
            latest[competitor_id] = sample
            self._latest[product_id] = MappingProxyType(latest)
        logger.debug(f"Recorded {competitor_id} price {price:.2f} for {product_id}")

    def product_ids(self) -> list[str]:
        return list(self._latest.keys())

    def price_history(self, product_id: str, competitor_id: str | None = None) -> list[CompetitorPriceSample]:
        """All samples for a product, oldest first, optionally for one competitor."""
        samples = self._history.get(product_id, ())
        if competitor_id is not None:
            samples = tuple(s for s in samples if s.competitor_id == competitor_id)
        return list(samples)

    def latest_prices(self, product_id: str) -> dict[str, float]:
        """Latest price per competitor, ignoring samples older than the max age."""
        snapshot = self._latest.get(product_id, {})
        if self.max_sample_age is None:
            return {cid: s.price for cid, s in snapshot.items()}
        cutoff = self._clock() - self.max_sample_age
        return {cid: s.price for cid, s in snapshot.items() if s.timestamp >= cutoff}

    def market_average(self, product_id: str) -> float | None:
        prices = self.latest_prices(product_id)
        if not prices:
            return None
        return sum(prices.values()) / len(prices)

    def competitor_factor(self, product_id: str, base_price: float) -> float:
        """
        Relative distance from the market average, clamped to [-1, 1].
        Negative when the product is priced above the market.
        """
        market = self.market_average(product_id)
        if market is None or base_price <= 0:
            return 0.0
        return max(-1.0, min(1.0, (market - base_price) / base_price))

    async def rescan(self, source: CompetitorPriceSource, product_ids: list[str] | None = None) -> int:
        """Pull fresh prices for the given (default: tracked) products. Returns samples recorded."""
        product_ids = self.product_ids() if product_ids is None else product_ids
        recorded = 0
        for product_id in product_ids:
            try:
                prices = await source.fetch_prices(product_id)
            except Exception as e:
                logger.error(f"Competitor scan failed for {product_id}: {e}")
                continue
            for competitor_id, price in prices.items():
                try:
                    self.record_sample(product_id, competitor_id, price)
                except ValueError as e:
                    logger.warning(f"Ignoring {competitor_id} price for {product_id}: {e}")
                    continue
                recorded += 1
        logger.info(f"Competitor scan recorded {recorded} samples for {len(product_ids)} products")
        return recorded
