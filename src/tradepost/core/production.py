"""
Production/consumption simulator.

Each tick every item produces, consumes, and has its demand nudged by how
far its price sits from base cost. Occasionally an item is hit by a
random market shock (shortage, boom, or demand surge).
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

import numpy as np

from tradepost.core.catalog import MarketItem

if TYPE_CHECKING:
    from tradepost.core.config import MarketConfig


class ShockType(str, Enum):
    PRODUCTION_SHORTAGE = "production_shortage"
    PRODUCTION_BOOM = "production_boom"
    DEMAND_SURGE = "demand_surge"


SHOCK_TYPES = [ShockType.PRODUCTION_SHORTAGE, ShockType.PRODUCTION_BOOM, ShockType.DEMAND_SURGE]


@dataclass(frozen=True)
class MarketShock:
    """A random event injected into one item during a production cycle."""
    item_id: str
    shock_type: ShockType
    tick: int


class ProductionSimulator:
    """Applies the per-tick production/consumption cycle to the catalog."""

    def __init__(self, config: MarketConfig):
        self.config = config
        self.pc = config.production_config

    def run_cycle(
        self,
        items: dict[str, MarketItem],
        rng: np.random.Generator,
        tick: int,
    ) -> list[MarketShock]:
        shocks: list[MarketShock] = []
        for item in items.values():
            self._produce_and_consume(item)
            self._adjust_demand(item)
            if rng.random() < self.pc["shock_probability"]:
                shock_type = SHOCK_TYPES[int(rng.integers(0, len(SHOCK_TYPES)))]
                self.apply_shock(item, shock_type)
                shocks.append(MarketShock(item.item_id, shock_type, tick))
        return shocks

    @staticmethod
    def _produce_and_consume(item: MarketItem) -> None:
        item.supply += item.production_rate
        if item.supply >= item.consumption_rate:
            item.supply -= item.consumption_rate
        else:
            # Unmet consumption turns into pent-up demand
            item.demand += item.consumption_rate - item.supply
            item.supply = 0.0

    def _adjust_demand(self, item: MarketItem) -> None:
        price_ratio = item.current_price / item.base_cost
        if price_ratio > self.pc["demand_decay_price_ratio"]:
            item.demand *= self.pc["demand_decay_rate"]
        elif price_ratio < self.pc["demand_growth_price_ratio"]:
            item.demand *= self.pc["demand_growth_rate"]

    def apply_shock(self, item: MarketItem, shock_type: ShockType) -> None:
        """Apply a single shock to *item*. Volatility is capped at 1.0."""
        pc = self.pc
        if shock_type == ShockType.PRODUCTION_SHORTAGE:
            item.production_rate *= pc["shortage_production_factor"]
            item.volatility *= pc["shortage_volatility_factor"]
        elif shock_type == ShockType.PRODUCTION_BOOM:
            item.production_rate *= pc["boom_production_factor"]
        elif shock_type == ShockType.DEMAND_SURGE:
            item.demand *= pc["surge_demand_factor"]
            item.volatility *= pc["surge_volatility_factor"]
        item.volatility = min(1.0, item.volatility)
