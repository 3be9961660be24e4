"""
Configuration for the smart pricing engine.
Defines policy defaults and operational knobs in a type-safe, extensible way.
"""

from dataclasses import asdict, dataclass

from models.pricing import PricingPolicy
from utils.env import env_bool, env_float, env_str, load_project_dotenv

ENV_PREFIX = "PRICING_"


@dataclass
class PricingConfig:
    # Policy
    enabled: bool = True
    adjustment_limit: float = 0.20
    demand_weight: float = 0.4
    inventory_weight: float = 0.3
    competitor_weight: float = 0.3
    minimum_margin_rate: float = 0.15

    # Demand signals
    demand_window_hours: float = 24.0
    demand_saturation: float = 50.0  # score at which the demand factor reaches 0.5
    purchase_weight: float = 5.0  # one purchased unit counts as this many views
    demand_cache_ttl_seconds: float = 900.0
    signal_retention_days: float = 30.0

    # Inventory
    stock_window_days: float = 30.0
    average_stock_ttl_seconds: float = 3600.0

    # Competitors
    competitor_max_age_hours: float = 72.0

    # Scheduled jobs
    competitor_scan_interval_seconds: float = 6 * 3600.0
    demand_rollup_interval_seconds: float = 3600.0
    average_stock_interval_seconds: float = 3600.0

    # Decision log
    decision_log_backend: str = "memory"  # "memory" or "redis"
    decision_log_flush_seconds: float = 5.0
    redis_url: str = "redis://localhost:6379/0"
    decision_log_key: str = "pricing:decisions"

    def to_policy(self) -> PricingPolicy:
        """Immutable policy snapshot used by a single calculation."""
        return PricingPolicy(
            enabled=self.enabled,
            demand_weight=self.demand_weight,
            inventory_weight=self.inventory_weight,
            competitor_weight=self.competitor_weight,
            adjustment_limit=self.adjustment_limit,
            minimum_margin_rate=self.minimum_margin_rate,
        )

    @classmethod
    def from_env(cls, load_dotenv: bool = True) -> "PricingConfig":
        """
        Build a config from ``PRICING_<FIELD>`` environment variables, e.g.
        ``PRICING_ADJUSTMENT_LIMIT=0.25``. Unset variables keep their defaults.
        """
        if load_dotenv:
            load_project_dotenv()
        defaults = asdict(cls())
        values = {}
        for name, default in defaults.items():
            var = ENV_PREFIX + name.upper()
            if isinstance(default, bool):
                values[name] = env_bool(var, default)
            elif isinstance(default, float):
                values[name] = env_float(var, default)
            else:
                values[name] = env_str(var, default)
        return cls(**values)


def load_policy() -> PricingPolicy:
    """Policy loader for hot-reloadable setups: re-reads the environment on every call."""
    return PricingConfig.from_env().to_policy()
