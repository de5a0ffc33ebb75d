"""
Item catalog — tradeable item records and catalog construction.

The catalog is a fixed set of items created once at initialization.
Items are mutated every tick by the pricing engine and the production
simulator but never destroyed. A catalog that fails validation is fatal:
every downstream computation assumes it is complete.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from tradepost.core.config import MarketConfig


class CatalogError(ValueError):
    """Raised when the item catalog is corrupted or incomplete."""


class ItemCategory(str, Enum):
    WEAPON = "weapon"
    ARMOR = "armor"
    CONSUMABLE = "consumable"
    RESOURCE = "resource"
    CRAFTING = "crafting"
    LUXURY = "luxury"
    PROPERTY = "property"


class ManipulationType(str, Enum):
    PUMP_AND_DUMP = "pump_and_dump"
    CORNERING = "cornering"


@dataclass
class PriceDataPoint:
    """One entry of an item's price history."""
    tick: int
    price: float
    volume: float  # units traded in the last simulated hour
    supply: float
    demand: float


@dataclass
class ManipulationFlag:
    """Active manipulation flag on an item. Expires after a TTL."""
    type: ManipulationType
    severity: float  # 0-1
    detected_at: int
    description: str


@dataclass
class MarketItem:
    """A tradeable item and its live market state."""
    item_id: str
    name: str
    category: ItemCategory
    base_cost: float
    current_price: float
    supply: float
    demand: float
    production_rate: float
    consumption_rate: float
    rarity: float  # 0-1
    volatility: float  # 0-1
    price_history: deque[PriceDataPoint] = field(default_factory=lambda: deque(maxlen=100))
    manipulation_flags: list[ManipulationFlag] = field(default_factory=list)
    last_update: int = 0

    def recent_prices(self, n: int) -> list[float]:
        """Return the last *n* recorded prices, oldest first."""
        points = list(self.price_history)
        return [p.price for p in points[-n:]] if n > 0 else []


# ---------------------------------------------------------------------------
# Built-in catalog (20 items, frontier setting)
# ---------------------------------------------------------------------------
DEFAULT_ITEMS: list[dict[str, Any]] = [
    # Weapons
    {"name": "Rusty Pistol", "category": "weapon", "base_cost": 20, "rarity": 0.1, "production_rate": 10},
    {"name": "Six-Shooter", "category": "weapon", "base_cost": 100, "rarity": 0.3, "production_rate": 5},
    {"name": "Winchester Rifle", "category": "weapon", "base_cost": 250, "rarity": 0.5, "production_rate": 3},
    {"name": "Legendary Revolver", "category": "weapon", "base_cost": 1000, "rarity": 0.9, "production_rate": 0.5},
    # Armor
    {"name": "Leather Vest", "category": "armor", "base_cost": 30, "rarity": 0.1, "production_rate": 8},
    {"name": "Steel Chestplate", "category": "armor", "base_cost": 150, "rarity": 0.4, "production_rate": 4},
    {"name": "Reinforced Armor", "category": "armor", "base_cost": 500, "rarity": 0.7, "production_rate": 1},
    # Consumables
    {"name": "Health Potion", "category": "consumable", "base_cost": 10, "rarity": 0.05, "production_rate": 20},
    {"name": "Energy Tonic", "category": "consumable", "base_cost": 15, "rarity": 0.1, "production_rate": 15},
    {"name": "Rare Elixir", "category": "consumable", "base_cost": 100, "rarity": 0.6, "production_rate": 2},
    # Resources
    {"name": "Wood", "category": "resource", "base_cost": 5, "rarity": 0.02, "production_rate": 50},
    {"name": "Iron Ore", "category": "resource", "base_cost": 8, "rarity": 0.08, "production_rate": 30},
    {"name": "Gold Nugget", "category": "resource", "base_cost": 50, "rarity": 0.5, "production_rate": 5},
    {"name": "Diamond", "category": "resource", "base_cost": 500, "rarity": 0.95, "production_rate": 0.2},
    # Crafting materials
    {"name": "Gunpowder", "category": "crafting", "base_cost": 12, "rarity": 0.2, "production_rate": 12},
    {"name": "Leather", "category": "crafting", "base_cost": 10, "rarity": 0.15, "production_rate": 15},
    {"name": "Steel Ingot", "category": "crafting", "base_cost": 40, "rarity": 0.35, "production_rate": 6},
    # Luxury
    {"name": "Fine Whiskey", "category": "luxury", "base_cost": 25, "rarity": 0.25, "production_rate": 8},
    {"name": "Pocket Watch", "category": "luxury", "base_cost": 150, "rarity": 0.6, "production_rate": 2},
    {"name": "Jeweled Ring", "category": "luxury", "base_cost": 800, "rarity": 0.85, "production_rate": 0.3},
]


def make_item(index: int, spec: dict[str, Any], history_length: int = 100) -> MarketItem:
    """Build a MarketItem from a catalog entry.

    Optional keys override the derived starting state: ``item_id``,
    ``current_price``, ``supply``, ``demand``, ``consumption_rate``,
    ``volatility``.
    """
    base_cost = float(spec["base_cost"])
    rarity = float(spec.get("rarity", 0.0))
    production = float(spec.get("production_rate", 0.0))

    initial_price = float(spec.get("current_price", base_cost * (1 + rarity * 0.5)))
    initial_supply = float(spec.get("supply", int(production * 10)))
    initial_demand = float(spec.get("demand", initial_supply * 0.8))  # slight undersupply

    item = MarketItem(
        item_id=str(spec.get("item_id", f"item_{index}")),
        name=str(spec.get("name", f"Item {index}")),
        category=ItemCategory(spec.get("category", "resource")),
        base_cost=base_cost,
        current_price=initial_price,
        supply=initial_supply,
        demand=initial_demand,
        production_rate=production,
        consumption_rate=float(spec.get("consumption_rate", production * 0.9)),
        rarity=rarity,
        volatility=float(spec.get("volatility", 0.1 + rarity * 0.3)),
        price_history=deque(maxlen=max(1, int(history_length))),
    )
    item.price_history.append(PriceDataPoint(
        tick=0, price=initial_price, volume=0.0,
        supply=initial_supply, demand=initial_demand,
    ))
    return item


def validate_catalog(items: dict[str, MarketItem]) -> None:
    """Raise CatalogError if the catalog cannot support a simulation run."""
    if not items:
        raise CatalogError("Item catalog is empty")
    for item_id, item in items.items():
        if item_id != item.item_id:
            raise CatalogError(f"Catalog key '{item_id}' does not match item id '{item.item_id}'")
        if item.base_cost <= 0:
            raise CatalogError(f"Item '{item_id}' has non-positive base cost {item.base_cost}")
        if not 0.0 <= item.rarity <= 1.0:
            raise CatalogError(f"Item '{item_id}' rarity {item.rarity} outside [0, 1]")
        if not 0.0 <= item.volatility <= 1.0:
            raise CatalogError(f"Item '{item_id}' volatility {item.volatility} outside [0, 1]")
        if item.current_price <= 0:
            raise CatalogError(f"Item '{item_id}' has non-positive price {item.current_price}")


def build_catalog(config: MarketConfig) -> dict[str, MarketItem]:
    """Create and validate the item catalog described by *config*."""
    specs = config.item_catalog if config.item_catalog is not None else DEFAULT_ITEMS
    history_length = int(config.pricing_config.get("price_history_length", 100))

    items: dict[str, MarketItem] = {}
    for index, spec in enumerate(specs):
        try:
            item = make_item(index, spec, history_length)
        except (KeyError, TypeError, ValueError) as exc:
            raise CatalogError(f"Invalid catalog entry #{index}: {exc}") from exc
        if item.item_id in items:
            raise CatalogError(f"Duplicate item id '{item.item_id}'")
        items[item.item_id] = item

    validate_catalog(items)
    return items
