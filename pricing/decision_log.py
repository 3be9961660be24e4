"""
Decision log sinks for pricing audit records.

``append`` is called on the price-read path, so it must be cheap and must
never raise: persistence failures are logged and swallowed.
"""

import asyncio
import json
import logging
import threading
from abc import ABC, abstractmethod
from collections import deque
from datetime import datetime, timedelta
from typing import Any

import pandas as pd
import redis.asyncio as redis

from models.pricing import PricingDecision

logger = logging.getLogger(__name__)


class DecisionLog(ABC):
    """Append-only sink for PricingDecision records."""

    def append(self, decision: PricingDecision) -> None:
        try:
            self._write(decision)
        except Exception as e:
            logger.warning(f"Failed to log pricing decision for {decision.product_id}: {e}")

    @abstractmethod
    def _write(self, decision: PricingDecision) -> None:
        """Store or enqueue one decision."""


class InMemoryDecisionLog(DecisionLog):
    """Process-local decision history, used by tests, demos and dashboards."""

    def __init__(self, max_records: int | None = None):
        self._records: deque[PricingDecision] = deque(maxlen=max_records)
        self._lock = threading.Lock()

    def _write(self, decision: PricingDecision) -> None:
        with self._lock:
            self._records.append(decision)

    def records(self, product_id: str | None = None) -> list[PricingDecision]:
        with self._lock:
            records = list(self._records)
        if product_id is None:
            return records
        return [r for r in records if r.product_id == product_id]

    def to_frame(self) -> pd.DataFrame:
        columns = ["product_id", "old_price", "new_price", "total_adjustment", "timestamp"]
        rows = [r.model_dump(include=set(columns)) for r in self.records()]
        return pd.DataFrame(rows, columns=columns)

    def performance_summary(self, days: float = 7, now: datetime | None = None) -> dict[str, Any]:
        """Aggregate view of the decisions taken in the last ``days`` days."""
        frame = self.to_frame()
        if not frame.empty:
            cutoff = (now or datetime.now()) - timedelta(days=days)
            frame = frame[frame["timestamp"] >= cutoff]
        if frame.empty:
            return {
                "total_adjustments": 0,
                "price_increases": 0,
                "price_decreases": 0,
                "avg_price_change_pct": 0.0,
                "avg_price_increase": 0.0,
            }
        change = frame["new_price"] - frame["old_price"]
        changed = frame[change != 0]
        pct = (changed["new_price"] - changed["old_price"]) / changed["old_price"].where(changed["old_price"] != 0)
        increases = change[change > 0]
        return {
            "total_adjustments": int(len(frame)),
            "price_increases": int(len(increases)),
            "price_decreases": int((change < 0).sum()),
            "avg_price_change_pct": float(pct.mean() * 100) if pct.notna().any() else 0.0,
            "avg_price_increase": float(increases.mean()) if not increases.empty else 0.0,
        }


class RedisDecisionLog(DecisionLog):
    """
    Buffers decisions in memory and pushes them to a Redis list from a
    background task. The buffer is bounded; when full, the oldest pending
    record is dropped.
    """

    redis_client: redis.Redis | None = None

    def __init__(
        self,
        redis_url: str = "redis://localhost:6379/0",
        key: str = "pricing:decisions",
        max_pending: int = 10_000,
        flush_interval: float = 5.0,
    ):
        self.key = key
        self.flush_interval = flush_interval
        self._pending: deque[PricingDecision] = deque(maxlen=max_pending)
        try:
            self.redis_client = redis.Redis.from_url(redis_url, decode_responses=True)
        except Exception as e:
            logger.error(f"Failed to create Redis client for {redis_url}: {e}")
            self.redis_client = None

    def _write(self, decision: PricingDecision) -> None:
        if len(self._pending) == self._pending.maxlen:
            logger.warning("Decision log buffer full, dropping oldest pending record")
        self._pending.append(decision)

    @property
    def pending(self) -> int:
        return len(self._pending)

    async def flush(self) -> int:
        """Push pending decisions to Redis. Failed records are logged and dropped."""
        written = 0
        while self._pending:
            decision = self._pending.popleft()
            if self.redis_client is None:
                logger.warning(f"No Redis connection, dropping decision {decision.decision_id}")
                continue
            try:
                await self.redis_client.rpush(self.key, json.dumps(decision.to_record()))
                written += 1
            except Exception as e:
                logger.warning(f"Failed to persist decision {decision.decision_id}: {e}")
        return written

    async def run(self) -> None:
        """Flush periodically until cancelled."""
        logger.info(f"Decision log writer started (key={self.key}, every {self.flush_interval}s)")
        try:
            while True:
                await self.flush()
                await asyncio.sleep(self.flush_interval)
        except asyncio.CancelledError:
            logger.info("Decision log writer cancelled")
            raise
        finally:
            await self.flush()
            if self.redis_client:
                await self.redis_client.aclose()
