import asyncio
import logging
import random
import time
from datetime import datetime
from unittest.mock import MagicMock

import pytest
from pydantic import ValidationError

from models.pricing import PricingContext, PricingPolicy, Product
from pricing.competitor import CompetitorPriceTracker
from pricing.decision_log import InMemoryDecisionLog
from pricing.demand import DemandSignalStore
from pricing.engine import PriceDecisionEngine
from pricing.factors import FactorProvider
from pricing.inventory import InventoryLevelTracker


class StubProvider(FactorProvider):
    def __init__(self, name: str, value: float = 0.0, error: Exception | None = None, delay: float = 0.0):
        self.name = name
        self.value = value
        self.error = error
        self.delay = delay
        self.calls = 0

    def factor(self, product, context) -> float:
        self.calls += 1
        if self.delay:
            time.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.value


def make_engine(demand=0.0, inventory=0.0, competitor=0.0, log=None, extra=()) -> PriceDecisionEngine:
    providers = [
        StubProvider("demand", demand),
        StubProvider("inventory", inventory),
        StubProvider("competitor", competitor),
        *extra,
    ]
    return PriceDecisionEngine(providers=providers, decision_log=log)


@pytest.fixture
def policy() -> PricingPolicy:
    return PricingPolicy(
        demand_weight=0.4,
        inventory_weight=0.3,
        competitor_weight=0.3,
        adjustment_limit=0.20,
        minimum_margin_rate=0.15,
    )


@pytest.fixture
def product() -> Product:
    return Product(product_id="P1", base_price=100.0, cost=70.0, current_stock=10)


# --- Worked scenarios --- #


def test_scenario_within_cap(product, policy):
    """0.2*0.4 + 0.15*0.3 - 0.05*0.3 = 0.11 -> 111.0."""
    engine = make_engine(demand=0.2, inventory=0.15, competitor=-0.05)

    price, decision = engine.calculate(product, policy)

    assert price == pytest.approx(111.0)
    assert decision.total_adjustment == pytest.approx(0.11)
    assert decision.raw_adjustment == pytest.approx(0.11)
    assert decision.minimum_price == pytest.approx(80.5)
    assert decision.candidate_price == pytest.approx(111.0)
    assert decision.margin_floor_applied is False
    assert (decision.demand_factor, decision.inventory_factor, decision.competitor_factor) == (0.2, 0.15, -0.05)
    assert decision.old_price == 100.0
    assert decision.new_price == price


def test_scenario_cap_binding(product, policy):
    """Raw adjustment 0.39 is clamped to the 0.20 limit."""
    engine = make_engine(demand=0.9, inventory=0.15, competitor=-0.05)

    price, decision = engine.calculate(product, policy)

    assert decision.raw_adjustment == pytest.approx(0.39)
    assert decision.total_adjustment == pytest.approx(0.20)
    assert price == pytest.approx(120.0)


def test_negative_adjustment_is_clamped(product, policy):
    engine = make_engine(inventory=-1.0, competitor=-1.0)

    price, decision = engine.calculate(product, policy)

    assert decision.raw_adjustment == pytest.approx(-0.6)
    assert decision.total_adjustment == pytest.approx(-0.20)
    assert price == pytest.approx(80.5)  # 80.0 candidate, lifted to the floor
    assert decision.margin_floor_applied is True


def test_combine_then_clamp(policy, product):
    """Factors are clamped only after weighting and summing."""
    engine = make_engine(demand=2.0, competitor=-2.0)
    _, decision = engine.calculate(product, policy)
    assert decision.raw_adjustment == pytest.approx(0.2)
    assert decision.total_adjustment == pytest.approx(0.2)


def test_scenario_margin_not_binding_for_high_cost(policy):
    product = Product(product_id="P2", base_price=100.0, cost=95.0)
    engine = make_engine(demand=1.0)

    price, decision = engine.calculate(product, policy)

    assert decision.minimum_price == pytest.approx(109.25)
    assert price == pytest.approx(120.0)
    assert decision.margin_floor_applied is False


def test_scenario_margin_binding(policy):
    """Base 50 with cost 95: any candidate below 109.25 is overridden."""
    product = Product(product_id="P3", base_price=50.0, cost=95.0)
    engine = make_engine(demand=1.0)

    price, decision = engine.calculate(product, policy)

    assert decision.candidate_price == pytest.approx(60.0)
    assert price == pytest.approx(109.25)
    assert decision.margin_floor_applied is True


def test_missing_cost_uses_conservative_default(policy):
    product = Product(product_id="P4", base_price=100.0)
    engine = make_engine(inventory=-1.0, competitor=-1.0)

    price, decision = engine.calculate(product, policy)

    assert decision.minimum_price == pytest.approx(100.0 * 0.7 * 1.15)
    assert price == pytest.approx(80.5)


# --- Invariants --- #


def test_margin_floor_and_cap_hold_for_random_inputs():
    rng = random.Random(42)
    for _ in range(500):
        base = rng.uniform(0.01, 1000)
        cost = rng.choice([None, rng.uniform(0, 1500)])
        policy = PricingPolicy(
            demand_weight=rng.uniform(-1, 1),
            inventory_weight=rng.uniform(-1, 1),
            competitor_weight=rng.uniform(-1, 1),
            adjustment_limit=rng.uniform(0.01, 1),
            minimum_margin_rate=rng.uniform(0, 1),
        )
        engine = make_engine(rng.uniform(-1, 1), rng.uniform(-1, 1), rng.uniform(-1, 1))
        product = Product(product_id="R", base_price=base, cost=cost)

        price, decision = engine.calculate(product, policy)

        floor = product.effective_cost() * (1 + policy.minimum_margin_rate)
        assert price >= floor - 1e-9
        if decision.candidate_price >= decision.minimum_price:
            assert abs(price - base) / base <= policy.adjustment_limit + 1e-9


def test_neutral_defaults_with_empty_stores(product, policy):
    """No demand, stock or competitor history leaves the base price untouched."""
    engine = PriceDecisionEngine.from_components(
        DemandSignalStore(), InventoryLevelTracker(), CompetitorPriceTracker()
    )

    price, decision = engine.calculate(product, policy)

    assert price == 100.0
    assert decision.demand_factor == decision.inventory_factor == decision.competitor_factor == 0.0
    assert decision.total_adjustment == 0.0


def test_idempotent_without_new_signals(product, policy):
    log = InMemoryDecisionLog()
    engine = make_engine(demand=0.3, inventory=0.15, competitor=0.05, log=log)

    first_price, first = engine.calculate(product, policy)
    second_price, second = engine.calculate(product, policy)

    assert first_price == second_price
    assert first.equivalent_to(second)
    assert len(log.records()) == 2


# --- Failure semantics --- #


def test_failing_provider_contributes_zero(product, policy, caplog):
    engine = make_engine(demand=0.2, inventory=0.15)
    engine.register_provider(StubProvider("broken", error=RuntimeError("db timeout")))

    with caplog.at_level(logging.WARNING):
        price, decision = engine.calculate(product, policy)

    assert decision.extra_factors == {"broken": 0.0}
    assert price == pytest.approx(100 * (1 + 0.08 + 0.045))
    assert "Factor 'broken' failed for P1" in caplog.text


def test_builtin_provider_failure_is_contained(product, policy):
    providers = [
        StubProvider("demand", error=ValueError("boom")),
        StubProvider("inventory", 0.15),
        StubProvider("competitor", error=KeyError("missing")),
    ]
    engine = PriceDecisionEngine(providers=providers)

    price, decision = engine.calculate(product, policy)

    assert decision.demand_factor == 0.0
    assert decision.competitor_factor == 0.0
    assert price == pytest.approx(104.5)


@pytest.mark.parametrize("value", [float("nan"), float("inf"), float("-inf")])
def test_non_finite_factor_treated_as_zero(product, policy, value):
    engine = make_engine(demand=value)
    price, decision = engine.calculate(product, policy)
    assert decision.demand_factor == 0.0
    assert price == 100.0


def test_policy_loader_failure_returns_base_price(product, caplog):
    def broken_loader():
        raise OSError("config store unreachable")

    log = InMemoryDecisionLog()
    engine = make_engine(demand=1.0, log=log)

    with caplog.at_level(logging.WARNING):
        price, decision = engine.calculate(product, broken_loader)

    assert price == 100.0
    assert decision is None
    assert log.records() == []
    assert "Pricing policy unavailable" in caplog.text


def test_invalid_policy_values_treated_as_load_failure(product):
    engine = make_engine(demand=1.0)
    price, decision = engine.calculate(product, lambda: {"adjustment_limit": 5})
    assert (price, decision) == (100.0, None)


def test_policy_loader_is_called_per_calculation(product, policy):
    loader = MagicMock(return_value=policy)
    engine = make_engine(demand=0.5)

    engine.calculate(product, loader)
    engine.calculate(product, loader)

    assert loader.call_count == 2


def test_disabled_policy_returns_base_price(product):
    engine = make_engine(demand=1.0)
    price, decision = engine.calculate(product, PricingPolicy(enabled=False))
    assert (price, decision) == (100.0, None)


def test_invalid_product_rejected_before_calculation(policy):
    demand = StubProvider("demand", 0.5)
    engine = PriceDecisionEngine(providers=[demand])

    with pytest.raises(ValidationError):
        engine.calculate({"product_id": "P1", "base_price": -10.0}, policy)
    assert demand.calls == 0


def test_product_dict_is_validated(policy):
    engine = make_engine()
    price, decision = engine.calculate({"product_id": "P1", "base_price": 40.0, "cost": 10.0}, policy)
    assert price == 40.0
    assert decision.product_id == "P1"


def test_decision_log_failure_does_not_break_pricing(product, policy, caplog):
    log = MagicMock()
    log.append.side_effect = RuntimeError("disk full")
    engine = make_engine(demand=0.2, log=log)

    with caplog.at_level(logging.WARNING):
        price, decision = engine.calculate(product, policy)

    assert price == pytest.approx(108.0)
    assert decision is not None
    assert "Decision log rejected record" in caplog.text


# --- Context and registration --- #


def test_context_is_passed_to_providers_and_recorded(product, policy):
    seen = []

    class ContextProvider(FactorProvider):
        name = "channel"

        def factor(self, product, context):
            seen.append(context)
            return 0.0

    engine = make_engine(extra=[ContextProvider()])
    context = PricingContext(request_id="req-9", channel="mobile", now=datetime(2024, 1, 2, 3, 4, 5))

    _, decision = engine.calculate(product, policy, context)

    assert seen == [context]
    assert decision.request_id == "req-9"
    assert decision.timestamp == datetime(2024, 1, 2, 3, 4, 5)


def test_extra_provider_weight_from_policy(product):
    engine = make_engine(extra=[StubProvider("rules", 0.10)])

    _, full = engine.calculate(product, PricingPolicy())
    _, halved = engine.calculate(product, PricingPolicy(extra_weights={"rules": 0.5}))

    assert full.total_adjustment == pytest.approx(0.10)
    assert halved.total_adjustment == pytest.approx(0.05)
    assert full.extra_factors == {"rules": 0.10}


def test_register_provider_rejects_duplicates_and_unnamed():
    engine = make_engine()
    with pytest.raises(ValueError, match="already registered"):
        engine.register_provider(StubProvider("demand"))
    with pytest.raises(ValueError, match="must have a name"):
        engine.register_provider(StubProvider(""))
    assert [p.name for p in engine.providers] == ["demand", "inventory", "competitor"]


# --- Async wrapper --- #


@pytest.mark.asyncio
async def test_calculate_async_returns_engine_result(product, policy):
    engine = make_engine(demand=0.2, inventory=0.15, competitor=-0.05)
    price, decision = await engine.calculate_async(product, policy, timeout=1.0)
    assert price == pytest.approx(111.0)
    assert decision is not None


@pytest.mark.asyncio
async def test_calculate_async_timeout_falls_back_to_base_price(product, policy, caplog):
    engine = make_engine(extra=[StubProvider("slow", 0.2, delay=0.3)])

    with caplog.at_level(logging.WARNING):
        price, decision = await engine.calculate_async(product, policy, timeout=0.01)

    assert (price, decision) == (100.0, None)
    assert "timed out" in caplog.text


@pytest.mark.asyncio
async def test_calculate_async_validates_input(policy):
    engine = make_engine()
    with pytest.raises(ValidationError):
        await engine.calculate_async({"product_id": "P1", "base_price": -1}, policy)


@pytest.mark.asyncio
async def test_concurrent_calculations_agree(product, policy):
    engine = make_engine(demand=0.2, inventory=0.15, competitor=-0.05)
    results = await asyncio.gather(*(engine.calculate_async(product, policy, timeout=2.0) for _ in range(20)))
    assert {round(price, 9) for price, _ in results} == {111.0}


@pytest.mark.asyncio
async def test_calculate_async_timeout_leaves_log_empty(product, policy):
    """A result the caller never received must not end up in the audit log."""
    log = InMemoryDecisionLog()
    engine = make_engine(log=log, extra=[StubProvider("slow", 0.2, delay=0.2)])

    price, decision = await engine.calculate_async(product, policy, timeout=0.01)
    await asyncio.sleep(0.4)

    assert (price, decision) == (100.0, None)
    assert log.records() == []


@pytest.mark.asyncio
async def test_calculate_async_logs_returned_decision(product, policy):
    log = InMemoryDecisionLog()
    engine = make_engine(demand=0.2, log=log)

    price, decision = await engine.calculate_async(product, policy, timeout=1.0)

    assert log.records() == [decision]
    assert log.records()[0].new_price == price


def test_evaluate_does_not_write_to_log(product, policy):
    log = InMemoryDecisionLog()
    engine = make_engine(demand=0.2, log=log)

    price, decision = engine.evaluate(product, policy)

    assert price == pytest.approx(108.0)
    assert decision.new_price == price
    assert log.records() == []
