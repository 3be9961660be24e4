"""
Pricing-related data models for the smart pricing engine.
Covers the catalog product view, the raw signal records, the pricing policy
and the immutable decision record written to the audit log.
"""

import json
import uuid
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .enums import SignalKind

# Conservative cost estimate when the catalog has no cost for a product
DEFAULT_COST_RATIO = 0.7


class Product(BaseModel):
    """
    Read-only view of a catalog product. Negative prices, costs or stock
    levels are rejected here, before a calculation starts.
    """

    model_config = ConfigDict(frozen=True)

    product_id: str
    base_price: float = Field(ge=0)
    cost: float | None = Field(default=None, ge=0)
    current_stock: int = Field(default=0, ge=0)
    name: str = ""

    def effective_cost(self) -> float:
        """Catalog cost, or a conservative estimate derived from the base price."""
        if self.cost is None:
            return self.base_price * DEFAULT_COST_RATIO
        return self.cost


class DemandSignal(BaseModel):
    """A single view or purchase observed for a product"""

    model_config = ConfigDict(frozen=True)

    product_id: str
    kind: SignalKind
    quantity: int = Field(default=1, ge=0)
    timestamp: datetime = Field(default_factory=datetime.now)


class StockSnapshot(BaseModel):
    """Stock level of a product at a point in time"""

    model_config = ConfigDict(frozen=True)

    product_id: str
    quantity: int = Field(ge=0)
    timestamp: datetime = Field(default_factory=datetime.now)


class CompetitorPriceSample(BaseModel):
    """A competitor's price for a product as observed by the market scanner"""

    model_config = ConfigDict(frozen=True)

    product_id: str
    competitor_id: str
    price: float = Field(gt=0)
    timestamp: datetime = Field(default_factory=datetime.now)


class PricingPolicy(BaseModel):
    """
    Weights and guardrails applied by the decision engine. Immutable for the
    duration of a calculation. Weights need not sum to 1.
    """

    model_config = ConfigDict(frozen=True)

    enabled: bool = True
    demand_weight: float = 0.4
    inventory_weight: float = 0.3
    competitor_weight: float = 0.3
    adjustment_limit: float = Field(default=0.20, gt=0, le=1)
    minimum_margin_rate: float = Field(default=0.15, ge=0, le=1)
    extra_weights: dict[str, float] = Field(default_factory=dict)

    def weight_for(self, factor_name: str) -> float:
        """Weight for a named factor. Unlisted extra factors count in full."""
        builtin = {
            "demand": self.demand_weight,
            "inventory": self.inventory_weight,
            "competitor": self.competitor_weight,
        }
        if factor_name in builtin:
            return builtin[factor_name]
        return self.extra_weights.get(factor_name, 1.0)


class PricingContext(BaseModel):
    """Per-request information passed explicitly into a price calculation."""

    model_config = ConfigDict(frozen=True)

    request_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    customer_id: str | None = None
    channel: str | None = None
    now: datetime | None = None
    attributes: dict[str, Any] = Field(default_factory=dict)


class PricingRule(BaseModel):
    """
    Threshold rule contributing a fixed adjustment when its metric crosses
    the threshold. Supported metrics: ``stock`` (current stock) and
    ``demand`` (demand factor).
    """

    model_config = ConfigDict(frozen=True)

    name: str
    metric: str
    operator: str
    threshold: float
    adjustment: float = Field(ge=-1, le=1)
    active: bool = True

    @field_validator("metric")
    @classmethod
    def _check_metric(cls, value: str) -> str:
        if value not in ("stock", "demand"):
            raise ValueError(f"Unsupported rule metric: {value}")
        return value

    @field_validator("operator")
    @classmethod
    def _check_operator(cls, value: str) -> str:
        if value not in ("<", "<=", ">", ">=", "=="):
            raise ValueError(f"Unsupported rule operator: {value}")
        return value

    def matches(self, value: float) -> bool:
        if self.operator == "<":
            return value < self.threshold
        if self.operator == "<=":
            return value <= self.threshold
        if self.operator == ">":
            return value > self.threshold
        if self.operator == ">=":
            return value >= self.threshold
        return value == self.threshold


DEFAULT_PRICING_RULES = (
    PricingRule(name="Low Stock Premium", metric="stock", operator="<=", threshold=5, adjustment=0.10),
    PricingRule(name="High Demand Surge", metric="demand", operator=">=", threshold=0.8, adjustment=0.15),
)


class PricingDecision(BaseModel):
    """
    Audit record of one price calculation. Carries every intermediate value
    so a price change can be explained without re-running the calculation.
    """

    model_config = ConfigDict(frozen=True)

    decision_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    product_id: str
    old_price: float
    new_price: float
    demand_factor: float
    inventory_factor: float
    competitor_factor: float
    extra_factors: dict[str, float] = Field(default_factory=dict)
    raw_adjustment: float
    total_adjustment: float
    candidate_price: float
    minimum_price: float
    margin_floor_applied: bool
    request_id: str | None = None
    timestamp: datetime = Field(default_factory=datetime.now)

    def factors(self) -> dict[str, float]:
        """All factor values and the clamped adjustment, keyed by name."""
        data = {
            "demand_factor": self.demand_factor,
            "inventory_factor": self.inventory_factor,
            "competitor_factor": self.competitor_factor,
        }
        for name, value in self.extra_factors.items():
            data[f"{name}_factor"] = value
        data["raw_adjustment"] = self.raw_adjustment
        data["total_adjustment"] = self.total_adjustment
        return data

    def to_record(self) -> dict[str, Any]:
        """Row for the append-only pricing history table."""
        return {
            "product_id": self.product_id,
            "old_price": self.old_price,
            "new_price": self.new_price,
            "factors": json.dumps(self.factors()),
            "total_adjustment": self.total_adjustment,
            "created_at": self.timestamp.isoformat(),
        }

    def equivalent_to(self, other: "PricingDecision") -> bool:
        """Same inputs and outputs, ignoring identifiers and timestamps."""
        ignored = {"decision_id", "request_id", "timestamp"}
        return self.model_dump(exclude=ignored) == other.model_dump(exclude=ignored)
