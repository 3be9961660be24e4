"""
Price decision engine.

Combines the registered factor providers into a single adjustment, applies
the policy guardrails (adjustment cap, then margin floor) and emits an
auditable PricingDecision. Calculations are re-entrant and keep no per-call
state on the engine.
"""

import asyncio
import logging
import math
from collections.abc import Callable, Iterable
from datetime import datetime
from typing import Any

from models.pricing import PricingContext, PricingDecision, PricingPolicy, Product

from .competitor import CompetitorPriceTracker
from .decision_log import DecisionLog
from .demand import DemandSignalStore
from .factors import CompetitorFactorProvider, DemandFactorProvider, FactorProvider, InventoryFactorProvider
from .inventory import InventoryLevelTracker

logger = logging.getLogger(__name__)

PolicySource = PricingPolicy | Callable[[], PricingPolicy]


class PriceDecisionEngine:
    """
    Computes the effective sale price of a product.

    Failure handling:
    - a provider that raises (or returns a non-finite value) contributes 0;
    - a policy that cannot be loaded yields the base price, with no decision;
    - an invalid product raises ``pydantic.ValidationError`` before any work.
    """

    def __init__(
        self,
        providers: Iterable[FactorProvider] = (),
        decision_log: DecisionLog | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self._providers: tuple[FactorProvider, ...] = ()
        self.decision_log = decision_log
        self._clock = clock
        for provider in providers:
            self.register_provider(provider)

    @classmethod
    def from_components(
        cls,
        demand_store: DemandSignalStore,
        inventory_tracker: InventoryLevelTracker,
        competitor_tracker: CompetitorPriceTracker,
        decision_log: DecisionLog | None = None,
        extra_providers: Iterable[FactorProvider] = (),
    ) -> "PriceDecisionEngine":
        providers = [
            DemandFactorProvider(demand_store),
            InventoryFactorProvider(inventory_tracker),
            CompetitorFactorProvider(competitor_tracker),
            *extra_providers,
        ]
        return cls(providers=providers, decision_log=decision_log)

    @property
    def providers(self) -> tuple[FactorProvider, ...]:
        return self._providers

    def register_provider(self, provider: FactorProvider) -> None:
        """Append a provider. Names must be unique."""
        if not provider.name:
            raise ValueError("Factor provider must have a name")
        if any(p.name == provider.name for p in self._providers):
            raise ValueError(f"Factor provider '{provider.name}' already registered")
        self._providers = self._providers + (provider,)
        logger.debug(f"Registered factor provider '{provider.name}'")

    def calculate(
        self,
        product: Product | dict[str, Any],
        policy: PolicySource,
        context: PricingContext | None = None,
    ) -> tuple[float, PricingDecision | None]:
        """Return the final price and the decision explaining it."""
        price, decision = self.evaluate(product, policy, context)
        self._record(decision)
        return price, decision

    def evaluate(
        self,
        product: Product | dict[str, Any],
        policy: PolicySource,
        context: PricingContext | None = None,
    ) -> tuple[float, PricingDecision | None]:
        """Same as ``calculate`` but without writing the decision to the log."""
        if not isinstance(product, Product):
            product = Product.model_validate(product)
        context = context or PricingContext()

        resolved = self._load_policy(policy)
        if resolved is None:
            return product.base_price, None
        if not resolved.enabled:
            return product.base_price, None

        factors = {provider.name: self._safe_factor(provider, product, context) for provider in self._providers}

        raw_adjustment = sum(value * resolved.weight_for(name) for name, value in factors.items())
        limit = resolved.adjustment_limit
        total_adjustment = max(-limit, min(limit, raw_adjustment))

        base_price = product.base_price
        candidate_price = base_price * (1 + total_adjustment)
        minimum_price = product.effective_cost() * (1 + resolved.minimum_margin_rate)
        final_price = max(minimum_price, candidate_price)

        decision = PricingDecision(
            product_id=product.product_id,
            old_price=base_price,
            new_price=final_price,
            demand_factor=factors.get("demand", 0.0),
            inventory_factor=factors.get("inventory", 0.0),
            competitor_factor=factors.get("competitor", 0.0),
            extra_factors={k: v for k, v in factors.items() if k not in ("demand", "inventory", "competitor")},
            raw_adjustment=raw_adjustment,
            total_adjustment=total_adjustment,
            candidate_price=candidate_price,
            minimum_price=minimum_price,
            margin_floor_applied=minimum_price > candidate_price,
            request_id=context.request_id,
            timestamp=context.now or self._clock(),
        )
        logger.debug(
            f"Priced {product.product_id}: {base_price:.2f} -> {final_price:.2f} "
            f"(adj={total_adjustment:+.4f}, raw={raw_adjustment:+.4f}, floor={minimum_price:.2f})"
        )
        return final_price, decision

    async def calculate_async(
        self,
        product: Product | dict[str, Any],
        policy: PolicySource,
        context: PricingContext | None = None,
        timeout: float = 0.25,
    ) -> tuple[float, PricingDecision | None]:
        """
        Run the evaluation off the event loop; on timeout, fall back to the
        base price. Only a result that is actually returned gets logged.
        """
        if not isinstance(product, Product):
            product = Product.model_validate(product)
        try:
            price, decision = await asyncio.wait_for(
                asyncio.to_thread(self.evaluate, product, policy, context), timeout
            )
        except asyncio.TimeoutError:
            logger.warning(f"Price calculation for {product.product_id} timed out after {timeout}s, using base price")
            return product.base_price, None
        self._record(decision)
        return price, decision

    def _record(self, decision: PricingDecision | None) -> None:
        if decision is None or self.decision_log is None:
            return
        try:
            self.decision_log.append(decision)
        except Exception as e:
            logger.warning(f"Decision log rejected record for {decision.product_id}: {e}")

    def _load_policy(self, policy: PolicySource) -> PricingPolicy | None:
        try:
            if isinstance(policy, PricingPolicy):
                return policy
            if callable(policy):
                policy = policy()
            if isinstance(policy, PricingPolicy):
                return policy
            return PricingPolicy.model_validate(policy)
        except Exception as e:
            logger.warning(f"Pricing policy unavailable, leaving price unchanged: {e}")
            return None

    def _safe_factor(self, provider: FactorProvider, product: Product, context: PricingContext) -> float:
        try:
            value = float(provider.factor(product, context))
        except Exception as e:
            logger.warning(f"Factor '{provider.name}' failed for {product.product_id}, using 0: {e}")
            return 0.0
        if not math.isfinite(value):
            logger.warning(f"Factor '{provider.name}' returned {value} for {product.product_id}, using 0")
            return 0.0
        return value
