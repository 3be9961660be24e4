"""
Module: connectors.dummy_competitor_feed

Provides a dummy in-memory competitor price feed for the competitor scan job.
"""

import asyncio

from pricing.competitor import CompetitorPriceSource


class DummyCompetitorFeed(CompetitorPriceSource):
    """
    Dummy market scanner returning fixed competitor prices per product.
    Unknown products return no prices.
    """

    def __init__(self, prices: dict[str, dict[str, float]] | None = None, latency: float = 0.01):
        self.prices = prices or {}
        self.latency = latency
        self.requests: list[str] = []

    def set_price(self, product_id: str, competitor_id: str, price: float) -> None:
        self.prices.setdefault(product_id, {})[competitor_id] = price

    async def fetch_prices(self, product_id: str) -> dict[str, float]:
        await asyncio.sleep(self.latency)
        self.requests.append(product_id)
        return dict(self.prices.get(product_id, {}))
