"""
Pricing engine — supply/demand price discovery.

Per tick each item's price moves by a supply/demand multiplier plus a
volatility-scaled random jitter, then is clamped between a volatility
dependent floor and (for common items) a ceiling. Volatility decays
geometrically so markets stabilize absent new shocks.
"""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING

import numpy as np

from tradepost.core.catalog import MarketItem, PriceDataPoint

if TYPE_CHECKING:
    from tradepost.core.config import MarketConfig


class PriceTrend(str, Enum):
    RISING = "rising"
    FALLING = "falling"
    STABLE = "stable"


class PricingEngine:
    """
    Computes price updates, fair values and trends for catalog items.

    All parameters come from config.pricing_config.
    """

    def __init__(self, config: MarketConfig):
        self.config = config
        self.pc = config.pricing_config

        # Cache config values
        self.elasticity: float = self.pc["elasticity"]
        self.jitter_scale: float = self.pc["jitter_scale"]
        self.volatility_decay: float = self.pc["volatility_decay"]
        self.min_volatility: float = self.pc["min_volatility"]
        self.floor_factor: float = self.pc["floor_volatility_factor"]
        self.low_rarity_threshold: float = self.pc["low_rarity_threshold"]
        self.ceiling_multiplier: float = self.pc["ceiling_multiplier"]
        self.trend_window: int = int(self.pc["trend_window"])
        self.trend_threshold: float = self.pc["trend_threshold"]
        self.fair_value_window: int = int(self.pc["fair_value_window"])

    def supply_demand_multiplier(self, item: MarketItem) -> float:
        """Price multiplier implied by the current supply/demand imbalance."""
        ratio = item.demand / max(1.0, item.supply)
        if ratio > 1.0:
            return 1.0 + (ratio - 1.0) * self.elasticity
        if ratio < 1.0:
            return 1.0 - (1.0 - ratio) * self.elasticity
        return 1.0

    def price_floor(self, item: MarketItem) -> float:
        return item.base_cost * (1.0 - item.volatility * self.floor_factor)

    def price_ceiling(self, item: MarketItem) -> float | None:
        """Ceiling for low-rarity items; rare items are uncapped."""
        if item.rarity < self.low_rarity_threshold:
            return item.base_cost * self.ceiling_multiplier
        return None

    def update_item_price(
        self,
        item: MarketItem,
        rng: np.random.Generator,
        tick: int,
        volume: float = 0.0,
    ) -> float:
        """Advance one item's price by one tick. Returns the new price."""
        multiplier = self.supply_demand_multiplier(item)
        multiplier *= 1.0 + rng.uniform(-1.0, 1.0) * item.volatility * self.jitter_scale

        new_price = item.current_price * multiplier

        # Decay first so the floor reflects the volatility stored on the item
        item.volatility = max(self.min_volatility, item.volatility * self.volatility_decay)

        new_price = max(new_price, self.price_floor(item))
        ceiling = self.price_ceiling(item)
        if ceiling is not None:
            new_price = min(new_price, ceiling)

        item.price_history.append(PriceDataPoint(
            tick=tick,
            price=new_price,
            volume=volume,
            supply=item.supply,
            demand=item.demand,
        ))
        item.current_price = new_price
        item.last_update = tick
        return new_price

    def calculate_fair_value(self, item: MarketItem) -> float:
        """Blend cost-based, historical and equilibrium price estimates.

        Rare items lean on the cost-based estimate; common items lean on
        the supply/demand equilibrium.
        """
        cost_based = item.base_cost * (1.0 + item.rarity)

        recent = item.recent_prices(self.fair_value_window)
        historical = float(np.mean(recent)) if recent else item.current_price

        equilibrium = item.base_cost * (item.demand / max(1.0, item.supply))

        w_cost = 0.3 + item.rarity * 0.2
        w_hist = 0.4
        w_eq = 0.3 - item.rarity * 0.2

        return cost_based * w_cost + historical * w_hist + equilibrium * w_eq

    def get_price_trend(self, item: MarketItem) -> PriceTrend:
        """Compare the last window of prices to the one before it."""
        n = self.trend_window
        prices = item.recent_prices(2 * n)
        if len(prices) < n:
            return PriceTrend.STABLE

        recent = prices[-n:]
        older = prices[:-n]
        if not older:
            return PriceTrend.STABLE

        older_avg = float(np.mean(older))
        if older_avg <= 0:
            return PriceTrend.STABLE
        change = (float(np.mean(recent)) - older_avg) / older_avg

        if change > self.trend_threshold:
            return PriceTrend.RISING
        if change < -self.trend_threshold:
            return PriceTrend.FALLING
        return PriceTrend.STABLE
