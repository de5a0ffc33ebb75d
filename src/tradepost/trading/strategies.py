"""
Offer construction strategies, one per trade motivation.

Each strategy inspects the proposer's and counterparty's holdings and
returns the raw terms of an offer, or None when the motivation does not
apply. Dispatch goes through OFFER_STRATEGIES.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Callable

import numpy as np

from tradepost.core.archetypes import SPECIALIZATION_CATEGORIES, EconomicArchetype, Specialization
from tradepost.core.catalog import MarketItem
from tradepost.core.pricing import PriceTrend
from tradepost.trading.offers import TradeItem, TradeMotivation
from tradepost.trading.social import FRIEND_STAGES, Relationship, RelationshipStage

if TYPE_CHECKING:
    from tradepost.core.market import MarketSimulation


@dataclass
class OfferTerms:
    offered_items: list[TradeItem] = field(default_factory=list)
    requested_items: list[TradeItem] = field(default_factory=list)
    offered_gold: float = 0.0
    requested_gold: float = 0.0

    @property
    def is_empty(self) -> bool:
        return (not self.offered_items and not self.requested_items
                and self.offered_gold == 0 and self.requested_gold == 0)


@dataclass
class OfferContext:
    """Everything a strategy may look at when building an offer."""
    market: MarketSimulation
    proposer_id: str
    counterparty_id: str
    archetype: EconomicArchetype
    relationship: Relationship | None
    specialization: Specialization | None
    tc: dict[str, float]
    rng: np.random.Generator

    @property
    def proposer_inventory(self) -> dict[str, int]:
        return self.market.get_inventory(self.proposer_id)

    @property
    def counterparty_inventory(self) -> dict[str, int]:
        return self.market.get_inventory(self.counterparty_id)


def _trade_item(item: MarketItem, quantity: int) -> TradeItem:
    return TradeItem(item.item_id, item.name, quantity, item.current_price * quantity)


def find_underpriced_items(
    market: MarketSimulation,
    inventory: dict[str, int],
    discount: float,
) -> list[MarketItem]:
    """Items in *inventory* priced below ``discount`` x fair value, best deal first."""
    found: list[tuple[float, str, MarketItem]] = []
    for item_id, qty in inventory.items():
        item = market.get_item(item_id)
        fair = market.calculate_fair_value(item_id)
        if item is None or fair is None or qty <= 0:
            continue
        if item.current_price < fair * discount:
            found.append((fair - item.current_price, item_id, item))
    found.sort(key=lambda t: (-t[0], t[1]))
    return [item for _, _, item in found]


# ---------------------------------------------------------------------------
# Strategies
# ---------------------------------------------------------------------------

def excess_inventory(ctx: OfferContext) -> OfferTerms | None:
    terms = OfferTerms()
    for item_id, qty in sorted(ctx.proposer_inventory.items()):
        if qty <= ctx.tc["excess_inventory_threshold"]:
            continue
        item = ctx.market.get_item(item_id)
        offer_qty = int(qty * ctx.tc["excess_offer_fraction"])
        if item is None or offer_qty <= 0:
            continue
        terms.offered_items.append(_trade_item(item, offer_qty))
        terms.requested_gold += item.current_price * offer_qty * (1 + ctx.archetype.profit_margin)
    return terms


def need_item(ctx: OfferContext) -> OfferTerms | None:
    """Ask for the scarcest item the proposer lacks and the counterparty holds."""
    mine = ctx.proposer_inventory
    candidates = [
        ctx.market.items[item_id]
        for item_id, qty in ctx.counterparty_inventory.items()
        if qty > 0 and mine.get(item_id, 0) < ctx.tc["need_item_threshold"]
    ]
    if not candidates:
        return None
    needed = min(candidates, key=lambda i: (i.supply / max(1.0, i.demand), i.item_id))
    qty = min(ctx.counterparty_inventory[needed.item_id], int(ctx.tc["need_item_threshold"]))
    return OfferTerms(
        requested_items=[_trade_item(needed, qty)],
        offered_gold=needed.current_price * qty,
    )


def profit(ctx: OfferContext) -> OfferTerms | None:
    """Buy an item the counterparty holds below fair value."""
    bargains = find_underpriced_items(ctx.market, ctx.counterparty_inventory, ctx.tc["arbitrage_discount"])
    if not bargains:
        return None
    item = bargains[0]
    return OfferTerms(
        requested_items=[_trade_item(item, 1)],
        offered_gold=item.current_price * ctx.tc["arbitrage_discount"],
    )


def help_friend(ctx: OfferContext) -> OfferTerms | None:
    """Sell a friend one unit of a well-stocked item at a discount."""
    if ctx.relationship is None or ctx.relationship.stage not in FRIEND_STAGES:
        return None
    for item_id, qty in sorted(ctx.proposer_inventory.items()):
        if qty > 3:
            item = ctx.market.items[item_id]
            return OfferTerms(
                offered_items=[_trade_item(item, 1)],
                requested_gold=item.current_price * ctx.tc["friend_discount"],
            )
    return None


def build_relationship(ctx: OfferContext) -> OfferTerms | None:
    """Give away one cheap item to build trust."""
    stage = ctx.relationship.stage if ctx.relationship else RelationshipStage.STRANGER
    if stage in (RelationshipStage.BLOCKED, RelationshipStage.CLOSE_FRIEND):
        return None
    for item_id, qty in sorted(ctx.proposer_inventory.items()):
        item = ctx.market.items[item_id]
        if qty > 2 and item.current_price < ctx.tc["gift_max_price"]:
            return OfferTerms(offered_items=[_trade_item(item, 1)])
    return None


def speculation(ctx: OfferContext) -> OfferTerms | None:
    """Pay a premium for a rising item the counterparty holds."""
    rising = sorted(
        item_id for item_id in ctx.counterparty_inventory
        if ctx.market.get_price_trend(item_id) == PriceTrend.RISING
    )
    if not rising:
        return None
    item = ctx.market.items[rising[int(ctx.rng.integers(0, len(rising)))]]
    return OfferTerms(
        requested_items=[_trade_item(item, 1)],
        offered_gold=item.current_price * ctx.tc["speculation_premium"],
    )


def specialization(ctx: OfferContext) -> OfferTerms | None:
    """Sell one unit from the proposer's specialty at a markup."""
    if ctx.specialization is None:
        return None
    categories = SPECIALIZATION_CATEGORIES.get(ctx.specialization)
    for item_id, qty in sorted(ctx.proposer_inventory.items()):
        item = ctx.market.items[item_id]
        if qty > 0 and (categories is None or item.category.value in categories):
            return OfferTerms(
                offered_items=[_trade_item(item, 1)],
                requested_gold=item.current_price * (1 + ctx.archetype.profit_margin),
            )
    return None


OFFER_STRATEGIES: dict[TradeMotivation, Callable[[OfferContext], OfferTerms | None]] = {
    TradeMotivation.EXCESS_INVENTORY: excess_inventory,
    TradeMotivation.NEED_ITEM: need_item,
    TradeMotivation.PROFIT: profit,
    TradeMotivation.HELP_FRIEND: help_friend,
    TradeMotivation.BUILD_RELATIONSHIP: build_relationship,
    TradeMotivation.SPECULATION: speculation,
    TradeMotivation.SPECIALIZATION: specialization,
}
