"""
Master configuration for the tradepost market simulation.

ALL tunable parameters live here. Nothing in the simulation is hardcoded.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any


@dataclass
class MarketConfig:
    """
    Master configuration. ALL parameters are tunable sliders.

    Every threshold, weight, rate, and rule is configurable.
    Use ``to_dict()`` / ``from_dict()`` for serialization and comparison.
    """

    # === Experiment identity ===
    experiment_name: str = "default"
    random_seed: int | None = None

    # === Clock ===
    # One tick is this many simulated minutes. Hour/day windows are
    # converted to tick counts through ticks_per_hour / ticks_per_day.
    minutes_per_tick: int = 5

    # === Catalog ===
    # None = built-in western catalog (see tradepost.core.catalog)
    item_catalog: list[dict[str, Any]] | None = None

    # === Agents ===
    initial_gold: float = 500.0
    agent_config: dict[str, Any] = field(default_factory=lambda: {
        "initial_population": 20,
        "trait_variance": 0.1,
        "starting_inventory_items": 3,
        "starting_inventory_max_qty": 8,
        "initial_trust_range": [0.2, 0.9],
        "friend_fraction": 0.3,
        "job_reward_probability": 0.1,
        "job_reward_range": [10.0, 40.0],
        "combat_loot_probability": 0.03,
        "activity_rate": 0.25,
        "offer_probability": 0.3,
        "market_purchase_max_qty": 3,
        "market_purchase_share": 0.5,
    })

    # === Pricing ===
    pricing_config: dict[str, float] = field(default_factory=lambda: {
        "elasticity": 0.3,
        "jitter_scale": 0.1,
        "volatility_decay": 0.95,
        "min_volatility": 0.05,
        "floor_volatility_factor": 0.5,
        "low_rarity_threshold": 0.3,
        "ceiling_multiplier": 5.0,
        "price_history_length": 100,
        "trend_window": 10,
        "trend_threshold": 0.05,
        "fair_value_window": 20,
        "trade_volatility_bump": 1.05,
    })

    # === Production / consumption ===
    production_config: dict[str, float] = field(default_factory=lambda: {
        "demand_decay_price_ratio": 3.0,
        "demand_decay_rate": 0.95,
        "demand_growth_price_ratio": 1.5,
        "demand_growth_rate": 1.05,
        "shock_probability": 0.05,
        "shortage_production_factor": 0.7,
        "shortage_volatility_factor": 1.3,
        "boom_production_factor": 1.3,
        "surge_demand_factor": 1.5,
        "surge_volatility_factor": 1.2,
    })

    # === Phenomena ===
    phenomena_config: dict[str, float] = field(default_factory=lambda: {
        "bubble_threshold": 2.5,
        "crash_threshold": 0.4,
        "shortage_threshold": 0.2,
        "surplus_ratio": 3.0,
        "cornering_threshold": 0.3,
        "flag_ttl_hours": 1.0,
    })

    # === Orders ===
    order_config: dict[str, float] = field(default_factory=lambda: {
        "order_ttl_hours": 1.0,
        "market_maker_spread": 0.05,
    })

    # === Trading network ===
    trading_config: dict[str, float] = field(default_factory=lambda: {
        "offer_expiry_hours": 2.0,
        "max_negotiation_rounds": 5,
        "fair_trade_tolerance": 0.15,
        "counter_offer_step": 0.5,
        "min_reliability": 0.3,
        "trust_free_trade": 0.8,
        "trust_fair_friend": 0.1,
        "trust_fair_stranger": 0.3,
        "trust_unfair_base": 0.5,
        "trust_max": 0.9,
        "excess_inventory_threshold": 5,
        "excess_offer_fraction": 0.3,
        "need_item_threshold": 2,
        "arbitrage_discount": 0.8,
        "friend_discount": 0.5,
        "gift_max_price": 50.0,
        "speculation_premium": 1.1,
        "hoarder_accept_probability": 0.3,
        "route_initial_strength": 0.2,
        "route_strength_step": 0.05,
        "route_frequency_decay": 0.9,
        "fairness_score_decay": 0.9,
    })

    # === Flow ledger & analysis ===
    analysis_config: dict[str, Any] = field(default_factory=lambda: {
        "flow_history_limit": 10_000,
        "wealth_history_limit": 100,
        "analysis_interval_ticks": 12,
        "supply_bottleneck_ratio": 0.3,
        "demand_bottleneck_ratio": 0.2,
        "demand_bottleneck_min_supply": 10.0,
        "liquidity_gold_threshold": 50.0,
        "liquidity_wealth_threshold": 100.0,
        "liquidity_agent_fraction": 0.3,
        "monopoly_threshold": 0.5,
        "stagnation_flows_per_agent": 0.5,
        "liquidity_reference_gold": 500.0,
        "health_weights": {
            "market_liquidity": 0.15,
            "trading_activity": 0.20,
            "wealth_distribution": 0.15,
            "price_stability": 0.20,
            "resource_availability": 0.15,
            "economic_growth": 0.15,
        },
        "trend_threshold": 0.05,
    })

    # ------------------------------------------------------------------
    # Derived
    # ------------------------------------------------------------------
    @property
    def ticks_per_hour(self) -> int:
        """Number of ticks in one simulated hour (at least 1)."""
        return max(1, round(60 / max(1, self.minutes_per_tick)))

    @property
    def ticks_per_day(self) -> int:
        return self.ticks_per_hour * 24

    def hours_to_ticks(self, hours: float) -> int:
        """Convert a simulated duration in hours to a whole tick count."""
        return max(1, round(hours * self.ticks_per_hour))

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------
    def to_dict(self) -> dict[str, Any]:
        """Serialize to a JSON-compatible dict."""
        d: dict[str, Any] = {}
        for k, v in self.__dict__.items():
            if k.startswith("_"):
                continue
            d[k] = v
        return d

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> MarketConfig:
        """Deserialize from a dict.

        Grouped ``*_config`` dicts are merged over the defaults, so a
        partial override such as ``{"pricing_config": {"elasticity": 0.5}}``
        keeps every other pricing parameter.
        """
        defaults = cls()
        kwargs: dict[str, Any] = {}
        for k, v in d.items():
            if k.startswith("_"):
                continue
            if k.endswith("_config") and isinstance(v, dict):
                merged = dict(getattr(defaults, k, {}))
                merged.update(v)
                kwargs[k] = merged
            else:
                kwargs[k] = v
        return cls(**kwargs)

    def to_json(self, indent: int = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent, default=str)

    @classmethod
    def from_json(cls, s: str) -> MarketConfig:
        return cls.from_dict(json.loads(s))

    def diff(self, other: MarketConfig) -> dict[str, tuple[Any, Any]]:
        """Return parameters that differ between two configs."""
        diffs: dict[str, tuple[Any, Any]] = {}
        for k in self.to_dict():
            v1 = getattr(self, k)
            v2 = getattr(other, k)
            if v1 != v2:
                diffs[k] = (v1, v2)
        return diffs
