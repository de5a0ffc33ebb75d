"""
Shared test configuration.

Provides a small deterministic catalog and seeded market fixtures so
tests do not depend on the 20-item built-in catalog.
"""

import pytest

from tradepost.core.archetypes import PersonalityProfile, PersonalityTraits
from tradepost.core.config import MarketConfig
from tradepost.core.market import MarketSimulation

TEST_CATALOG = [
    {"item_id": "widget", "name": "Widget", "category": "resource", "base_cost": 10,
     "rarity": 0.1, "production_rate": 5, "supply": 100, "demand": 80,
     "current_price": 10, "volatility": 0.2},
    {"item_id": "gizmo", "name": "Gizmo", "category": "weapon", "base_cost": 100,
     "rarity": 0.5, "production_rate": 2, "supply": 20, "demand": 16,
     "current_price": 100, "volatility": 0.2},
    {"item_id": "trinket", "name": "Trinket", "category": "luxury", "base_cost": 40,
     "rarity": 0.4, "production_rate": 3, "supply": 30, "demand": 24,
     "current_price": 40, "volatility": 0.2},
]


def merchant_profile() -> PersonalityProfile:
    """Economist label with low aggression/patience/sociability: plain merchant."""
    return PersonalityProfile(
        "economist",
        PersonalityTraits(risk_tolerance=0.3, sociability=0.3, patience=0.5, greed=0.2,
                          aggression=0.1, loyalty=0.5, curiosity=0.5),
    )


@pytest.fixture
def config():
    return MarketConfig(random_seed=42, item_catalog=[dict(d) for d in TEST_CATALOG])


@pytest.fixture
def market(config):
    return MarketSimulation(config)


@pytest.fixture
def traders(market):
    """Market with three registered merchants holding some stock."""
    for agent_id in ("alice", "bob", "carol"):
        market.register_agent(agent_id, merchant_profile())
    market.set_holding("alice", "widget", 5)
    market.set_holding("carol", "widget", 5)
    return market
