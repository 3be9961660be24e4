"""
Demand signal store.

Records product views and purchases and turns the trailing window of signals
into a demand factor in [0, 1). Absence of demand is neutral (0), never a
discount signal.
"""

import logging
import threading
from collections.abc import Callable
from datetime import datetime, timedelta

from models.enums import SignalKind
from models.pricing import DemandSignal
from utils.cache import TTLCache

logger = logging.getLogger(__name__)


class DemandSignalStore:
    """
    Append-only store of demand signals, partitioned by product.

    Each product's signals are held in a tuple that is replaced, not mutated,
    when a signal is appended, so concurrent readers always see a complete
    series.
    """

    def __init__(
        self,
        window: timedelta = timedelta(hours=24),
        saturation: float = 50.0,
        purchase_weight: float = 5.0,
        retention: timedelta = timedelta(days=30),
        cache: TTLCache | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        if saturation <= 0:
            raise ValueError("saturation must be positive")
        self.window = window
        self.saturation = saturation
        self.purchase_weight = purchase_weight
        self.retention = retention
        self.cache = cache if cache is not None else TTLCache(default_ttl=900.0)
        self._clock = clock
        self._signals: dict[str, tuple[DemandSignal, ...]] = {}
        self._lock = threading.Lock()

    def record_signal(self, product_id: str, kind: SignalKind | str, quantity: int = 1) -> None:
        """Append a demand signal. Best effort: bad input is logged, never raised."""
        try:
            signal = DemandSignal(
                product_id=product_id,
                kind=SignalKind(kind),
                quantity=quantity,
                timestamp=self._clock(),
            )
        except ValueError as e:
            logger.warning(f"Dropping demand signal for {product_id}: {e}")
            return
        with self._lock:
            self._signals[product_id] = self._signals.get(product_id, ()) + (signal,)
        logger.debug(f"Recorded {signal.kind.value} x{signal.quantity} for {product_id}")

    def signals(self, product_id: str) -> tuple[DemandSignal, ...]:
        return self._signals.get(product_id, ())

    def product_ids(self) -> list[str]:
        return list(self._signals.keys())

    def demand_score(self, product_id: str, now: datetime | None = None) -> float:
        """Views plus weighted purchased units inside the trailing window."""
        now = now or self._clock()
        since = now - self.window
        score = 0.0
        for signal in self._signals.get(product_id, ()):
            if signal.timestamp < since or signal.timestamp > now:
                continue
            if signal.kind == SignalKind.PURCHASE:
                score += self.purchase_weight * signal.quantity
            else:
                score += signal.quantity
        return score

    def compute_demand_factor(self, product_id: str, now: datetime | None = None) -> float:
        score = self.demand_score(product_id, now)
        if score <= 0:
            return 0.0
        return score / (score + self.saturation)

    def demand_factor(self, product_id: str) -> float:
        """Cached demand factor in [0, 1). A miss computes and caches synchronously."""
        value, hit = self.cache.get(product_id)
        if hit:
            return value
        factor = self.compute_demand_factor(product_id)
        self.cache.set(product_id, factor)
        return factor

    def prune(self, now: datetime | None = None) -> int:
        """Drop signals older than the retention period. Returns the number removed."""
        cutoff = (now or self._clock()) - self.retention
        removed = 0
        with self._lock:
            for product_id, series in list(self._signals.items()):
                kept = tuple(s for s in series if s.timestamp >= cutoff)
                removed += len(series) - len(kept)
                if kept:
                    self._signals[product_id] = kept
                else:
                    del self._signals[product_id]
        if removed:
            logger.info(f"Pruned {removed} demand signals older than {cutoff:%Y-%m-%d %H:%M}")
        return removed

    def rollup(self) -> dict[str, float]:
        """Recompute and cache the demand factor of every tracked product."""
        self.prune()
        now = self._clock()
        factors = {}
        for product_id in self.product_ids():
            factors[product_id] = self.compute_demand_factor(product_id, now)
            self.cache.set(product_id, factors[product_id])
        logger.info(f"Demand rollup refreshed {len(factors)} products")
        return factors
