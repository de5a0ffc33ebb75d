"""
Market presets — pre-configured economy templates.

Each preset returns a MarketConfig with specific parameter settings
designed to stress a different aspect of the market.
"""

from __future__ import annotations

from typing import Callable

from tradepost.core.catalog import DEFAULT_ITEMS
from tradepost.core.config import MarketConfig


def baseline() -> MarketConfig:
    """Standard baseline configuration with default parameters."""
    return MarketConfig(experiment_name="baseline", random_seed=42)


def volatile_market() -> MarketConfig:
    """Frequent shocks and elastic prices."""
    return MarketConfig.from_dict({
        "experiment_name": "volatile_market",
        "random_seed": 42,
        "pricing_config": {
            "elasticity": 0.6,
            "jitter_scale": 0.3,
            "volatility_decay": 0.98,
            "min_volatility": 0.15,
        },
        "production_config": {"shock_probability": 0.15},
    })


def scarce_economy() -> MarketConfig:
    """Little production and a poorer population."""
    return MarketConfig.from_dict({
        "experiment_name": "scarce_economy",
        "random_seed": 42,
        "initial_gold": 200.0,
        "production_config": {"shock_probability": 0.08},
        "agent_config": {
            "starting_inventory_items": 1,
            "starting_inventory_max_qty": 3,
            "job_reward_probability": 0.05,
        },
        "item_catalog": [
            {**definition, "production_rate": definition["production_rate"] * 0.3}
            for definition in DEFAULT_ITEMS
        ],
    })


def stable_market() -> MarketConfig:
    """Rare shocks, sticky prices, tight market-maker spread."""
    return MarketConfig.from_dict({
        "experiment_name": "stable_market",
        "random_seed": 42,
        "pricing_config": {"elasticity": 0.15, "jitter_scale": 0.05, "volatility_decay": 0.9},
        "production_config": {"shock_probability": 0.01},
        "order_config": {"market_maker_spread": 0.02},
    })


def high_inequality() -> MarketConfig:
    """Uneven endowments and greedy trading terms."""
    return MarketConfig.from_dict({
        "experiment_name": "high_inequality",
        "random_seed": 42,
        "initial_gold": 300.0,
        "agent_config": {
            "starting_inventory_items": 6,
            "starting_inventory_max_qty": 20,
            "job_reward_range": [5.0, 80.0],
        },
        "trading_config": {"friend_discount": 0.8, "arbitrage_discount": 0.6},
    })


PRESETS: dict[str, Callable[[], MarketConfig]] = {
    "baseline": baseline,
    "volatile_market": volatile_market,
    "scarce_economy": scarce_economy,
    "stable_market": stable_market,
    "high_inequality": high_inequality,
}


def get_preset(name: str) -> MarketConfig:
    """Get a preset config by name."""
    if name not in PRESETS:
        raise KeyError(f"Unknown preset: '{name}'. Available: {list(PRESETS.keys())}")
    return PRESETS[name]()


def list_presets() -> list[str]:
    """Return list of available preset names."""
    return list(PRESETS.keys())
