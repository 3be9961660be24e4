"""
Wiring of the pricing components from a PricingConfig.
"""

from dataclasses import dataclass, field
from datetime import timedelta

from config.config import PricingConfig
from utils.cache import TTLCache
from utils.event_bus import EventBus

from .competitor import CompetitorPriceSource, CompetitorPriceTracker
from .decision_log import DecisionLog, InMemoryDecisionLog, RedisDecisionLog
from .demand import DemandSignalStore
from .engine import PriceDecisionEngine
from .factors import FactorProvider
from .handlers import PricingEventHandlers
from .inventory import InventoryLevelTracker
from .jobs import PricingJobs


@dataclass
class PricingSystem:
    config: PricingConfig
    demand_store: DemandSignalStore
    inventory_tracker: InventoryLevelTracker
    competitor_tracker: CompetitorPriceTracker
    decision_log: DecisionLog
    engine: PriceDecisionEngine
    handlers: PricingEventHandlers
    jobs: PricingJobs
    bus: EventBus = field(default_factory=EventBus)


def build_decision_log(config: PricingConfig) -> DecisionLog:
    """Decision log sink selected by ``config.decision_log_backend``."""
    backend = config.decision_log_backend.lower()
    if backend == "memory":
        return InMemoryDecisionLog()
    if backend == "redis":
        return RedisDecisionLog(
            redis_url=config.redis_url,
            key=config.decision_log_key,
            flush_interval=config.decision_log_flush_seconds,
        )
    raise ValueError(f"Unknown decision log backend: {config.decision_log_backend!r}")


def build_pricing_system(
    config: PricingConfig | None = None,
    decision_log: DecisionLog | None = None,
    competitor_source: CompetitorPriceSource | None = None,
    extra_providers: list[FactorProvider] | None = None,
    bus: EventBus | None = None,
) -> PricingSystem:
    """Create the stores, engine, handlers and jobs, and subscribe the handlers to the bus."""
    config = config or PricingConfig()
    demand_store = DemandSignalStore(
        window=timedelta(hours=config.demand_window_hours),
        saturation=config.demand_saturation,
        purchase_weight=config.purchase_weight,
        retention=timedelta(days=config.signal_retention_days),
        cache=TTLCache(default_ttl=config.demand_cache_ttl_seconds),
    )
    inventory_tracker = InventoryLevelTracker(
        window_days=config.stock_window_days,
        cache=TTLCache(default_ttl=config.average_stock_ttl_seconds),
    )
    competitor_tracker = CompetitorPriceTracker(max_sample_age=timedelta(hours=config.competitor_max_age_hours))
    if decision_log is None:
        decision_log = build_decision_log(config)
    engine = PriceDecisionEngine.from_components(
        demand_store,
        inventory_tracker,
        competitor_tracker,
        decision_log=decision_log,
        extra_providers=extra_providers or (),
    )
    handlers = PricingEventHandlers(demand_store, inventory_tracker, competitor_tracker)
    jobs = PricingJobs(
        demand_store, inventory_tracker, competitor_tracker, competitor_source, config, decision_log=decision_log
    )
    bus = bus or EventBus()
    handlers.register(bus)
    return PricingSystem(
        config=config,
        demand_store=demand_store,
        inventory_tracker=inventory_tracker,
        competitor_tracker=competitor_tracker,
        decision_log=decision_log,
        engine=engine,
        handlers=handlers,
        jobs=jobs,
        bus=bus,
    )
