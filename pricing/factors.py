"""
Factor providers consulted by the price decision engine, in registration order.
Each provider contributes one bounded term to the combined adjustment.
"""

from abc import ABC, abstractmethod
from collections.abc import Iterable

from models.pricing import DEFAULT_PRICING_RULES, PricingContext, PricingRule, Product

from .competitor import CompetitorPriceTracker
from .demand import DemandSignalStore
from .inventory import InventoryLevelTracker


class FactorProvider(ABC):
    """A named source of one pricing factor, roughly in [-1, 1]."""

    name: str = ""

    @abstractmethod
    def factor(self, product: Product, context: PricingContext) -> float:
        """Recommended fractional price change before weighting."""


class DemandFactorProvider(FactorProvider):
    name = "demand"

    def __init__(self, store: DemandSignalStore):
        self.store = store

    def factor(self, product: Product, context: PricingContext) -> float:
        return self.store.demand_factor(product.product_id)


class InventoryFactorProvider(FactorProvider):
    name = "inventory"

    def __init__(self, tracker: InventoryLevelTracker):
        self.tracker = tracker

    def factor(self, product: Product, context: PricingContext) -> float:
        return self.tracker.inventory_factor(product)


class CompetitorFactorProvider(FactorProvider):
    name = "competitor"

    def __init__(self, tracker: CompetitorPriceTracker):
        self.tracker = tracker

    def factor(self, product: Product, context: PricingContext) -> float:
        return self.tracker.competitor_factor(product.product_id, product.base_price)


class RuleFactorProvider(FactorProvider):
    """
    Sums the adjustments of every active rule whose threshold is met,
    clamped to [-1, 1]. Demand rules read the demand store's factor.
    """

    name = "rules"

    def __init__(self, demand_store: DemandSignalStore, rules: Iterable[PricingRule] = DEFAULT_PRICING_RULES):
        self.demand_store = demand_store
        self.rules = tuple(rules)

    def matching_rules(self, product: Product) -> list[PricingRule]:
        matched = []
        demand = None
        for rule in self.rules:
            if not rule.active:
                continue
            if rule.metric == "stock":
                value = float(product.current_stock)
            else:
                if demand is None:
                    demand = self.demand_store.demand_factor(product.product_id)
                value = demand
            if rule.matches(value):
                matched.append(rule)
        return matched

    def factor(self, product: Product, context: PricingContext) -> float:
        total = sum(rule.adjustment for rule in self.matching_rules(product))
        return max(-1.0, min(1.0, total))
