"""
Tick driver for the market economy.

Populates the market with personality-driven bots and advances the whole
economy one tick at a time: production, repricing, external rewards, bot
activity on the order book and in the trading network, expiry, and a
periodic health report.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

import numpy as np

from tradepost.analysis.flows import ResourceFlowLedger
from tradepost.analysis.health import EconomicAnalyzer, EconomicHealthReport
from tradepost.analysis.stats import gini_coefficient
from tradepost.core.archetypes import PERSONALITY_PRESETS, ArchetypeType, EconomicArchetype, vary_profile
from tradepost.core.config import MarketConfig
from tradepost.core.market import MarketSimulation
from tradepost.core.orders import OrderSide
from tradepost.trading.network import TradingNetwork
from tradepost.trading.offers import NegotiationStatus, OfferStatus, TradeMotivation
from tradepost.trading.social import SocialGraph, SocialProvider

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Bot names (deterministic, cycled)
# ---------------------------------------------------------------------------
_BOT_NAMES = [
    "Abe", "Bess", "Cal", "Dottie", "Earl", "Flora", "Gus", "Hattie",
    "Ike", "June", "Kit", "Lula", "Mose", "Nell", "Otis", "Pearl",
    "Rufus", "Sadie", "Tad", "Vera", "Wade", "Zeke",
]


def _bot_id(index: int) -> str:
    name = _BOT_NAMES[index % len(_BOT_NAMES)].lower()
    return f"{name}_{index}"


# Motivations each archetype draws from when proposing a bot-to-bot trade
MOTIVATIONS_BY_ARCHETYPE: dict[ArchetypeType, list[TradeMotivation]] = {
    ArchetypeType.MERCHANT: [
        TradeMotivation.SPECIALIZATION, TradeMotivation.EXCESS_INVENTORY, TradeMotivation.PROFIT,
    ],
    ArchetypeType.HOARDER: [TradeMotivation.NEED_ITEM, TradeMotivation.PROFIT],
    ArchetypeType.GENEROUS: [
        TradeMotivation.HELP_FRIEND, TradeMotivation.BUILD_RELATIONSHIP, TradeMotivation.EXCESS_INVENTORY,
    ],
    ArchetypeType.OPPORTUNIST: [
        TradeMotivation.PROFIT, TradeMotivation.SPECULATION, TradeMotivation.EXCESS_INVENTORY,
    ],
    ArchetypeType.MARKET_MAKER: [TradeMotivation.EXCESS_INVENTORY, TradeMotivation.NEED_ITEM],
    ArchetypeType.SPECULATOR: [TradeMotivation.SPECULATION, TradeMotivation.PROFIT],
    ArchetypeType.PRODUCER: [TradeMotivation.EXCESS_INVENTORY, TradeMotivation.SPECIALIZATION],
}

# Offers the recipient answers directly instead of negotiating
_SOCIAL_MOTIVATIONS = frozenset({TradeMotivation.HELP_FRIEND, TradeMotivation.BUILD_RELATIONSHIP})


# ---------------------------------------------------------------------------
# Tick snapshot
# ---------------------------------------------------------------------------
@dataclass
class TickSnapshot:
    """Per-tick summary of what happened in the economy."""
    tick: int
    agent_count: int

    # Activity
    market_trades: int
    network_trades: int
    offers_made: int
    negotiations_agreed: int
    negotiations_failed: int
    trade_volume: float  # gold value of market and network trades this tick

    # Market state
    shocks: list[str]
    price_index: float  # mean current/base price across the catalog

    # Wealth
    total_wealth: float
    gini: float

    # Set on analysis ticks only
    health_score: float | None = None
    health_grade: str | None = None

    events: dict[str, Any] = field(default_factory=dict)


# ---------------------------------------------------------------------------
# Economy Engine
# ---------------------------------------------------------------------------
class EconomyEngine:
    """
    Main tick loop.

    Phases per tick:
    1. Advance the clock
    2. Production / consumption cycle (with random shocks)
    3. Price update and phenomenon detection
    4. External rewards (job gold, combat loot)
    5. Bot activity (market orders, quotes, bot-to-bot offers)
    6. Order and offer expiry
    7. Health report every ``analysis_interval_ticks``
    """

    def __init__(self, config: MarketConfig | None = None, social: SocialProvider | None = None):
        self.config = config or MarketConfig()
        self.ac = self.config.agent_config
        self.rng = np.random.default_rng(self.config.random_seed)

        # Core components share one generator so a seed reproduces a run
        self.market = MarketSimulation(self.config, rng=self.rng)
        self.ledger = ResourceFlowLedger(self.market)
        self.social: SocialProvider = social if social is not None else SocialGraph()
        self.network = TradingNetwork(self.market, self.social, rng=self.rng)
        self.analyzer = EconomicAnalyzer(self.market, self.ledger)

        # State
        self.history: list[TickSnapshot] = []
        self.last_health: EconomicHealthReport | None = None
        self._next_agent_index = 0

    @property
    def tick(self) -> int:
        return self.market.tick

    # ------------------------------------------------------------------
    # Population
    # ------------------------------------------------------------------
    def populate(self, n: int) -> list[str]:
        """Register *n* bots cycled from the personality presets."""
        if n < 0:
            raise ValueError("Population size must be non-negative")
        presets = list(PERSONALITY_PRESETS.values())
        item_ids = list(self.market.items)
        new_ids: list[str] = []

        for _ in range(n):
            index = self._next_agent_index
            self._next_agent_index += 1
            agent_id = _bot_id(index)
            profile = vary_profile(presets[index % len(presets)], self.rng, self.ac["trait_variance"])
            self.market.register_agent(agent_id, profile)
            self.network.register_agent(agent_id, profile)

            k = min(int(self.ac["starting_inventory_items"]), len(item_ids))
            for pick in self.rng.choice(len(item_ids), size=k, replace=False):
                qty = int(self.rng.integers(1, int(self.ac["starting_inventory_max_qty"]) + 1))
                self.market.set_holding(agent_id, item_ids[int(pick)], qty)
            new_ids.append(agent_id)

        if isinstance(self.social, SocialGraph):
            low, high = self.ac["initial_trust_range"]
            self.social.seed(self.market.agent_ids, self.rng, (low, high), self.ac["friend_fraction"])

        logger.info("Populated %d bots (%d total)", len(new_ids), len(self.market.agent_ids))
        return new_ids

    # ------------------------------------------------------------------
    # Tick loop
    # ------------------------------------------------------------------
    def run(self, ticks: int) -> list[TickSnapshot]:
        """Advance the economy *ticks* times and return the new snapshots."""
        return [self.step() for _ in range(ticks)]

    def step(self) -> TickSnapshot:
        market = self.market
        events: dict[str, Any] = {
            "offers_made": 0, "offers_rejected": 0, "negotiations_agreed": 0, "negotiations_failed": 0,
            "orders_placed": 0, "job_rewards": 0, "combat_loot": 0,
        }
        trades_before = len(market.trades)
        completed_before = len(self.network.completed_trades)

        # === Phase 1: Clock ===
        tick = market.advance_clock()

        # === Phase 2: Production / consumption ===
        shocks = market.simulate_production_cycle()

        # === Phase 3: Prices and phenomena ===
        market.update_prices()

        # === Phase 4: External rewards ===
        self._external_rewards(events)

        # === Phase 5: Bot activity ===
        for agent_id in market.agent_ids:
            archetype = market.get_archetype(agent_id)
            if archetype is None:
                continue
            if self.rng.random() >= min(1.0, archetype.trading_frequency * self.ac["activity_rate"]):
                continue
            self._act(agent_id, archetype, events)

        # === Phase 6: Expiry ===
        expired_orders = market.cleanup_orders()
        expired_offers = self.network.expire_offers()
        events["orders_removed"] = len(expired_orders)
        events["offers_expired"] = len(expired_offers)

        # === Phase 7: Periodic analysis ===
        health = None
        interval = int(self.config.analysis_config["analysis_interval_ticks"])
        if interval > 0 and tick % interval == 0:
            health = self.analyzer.calculate_economic_health(record=True)
            self.last_health = health

        snapshot = self._snapshot(tick, trades_before, completed_before, shocks, health, events)
        self.history.append(snapshot)
        return snapshot

    # ------------------------------------------------------------------
    # Phase helpers
    # ------------------------------------------------------------------
    def _external_rewards(self, events: dict[str, Any]) -> None:
        item_ids = list(self.market.items)
        low, high = self.ac["job_reward_range"]
        for agent_id in self.market.agent_ids:
            if self.rng.random() < self.ac["job_reward_probability"]:
                if self.market.grant_gold(agent_id, float(self.rng.uniform(low, high))):
                    events["job_rewards"] += 1
            if self.rng.random() < self.ac["combat_loot_probability"]:
                item_id = item_ids[int(self.rng.integers(0, len(item_ids)))]
                if self.market.grant_item(agent_id, item_id, 1):
                    events["combat_loot"] += 1

    def _act(self, agent_id: str, archetype: EconomicArchetype, events: dict[str, Any]) -> None:
        if archetype.type == ArchetypeType.MARKET_MAKER:
            self._quote(agent_id, events)
        elif len(self.market.agent_ids) > 1 and self.rng.random() < self.ac["offer_probability"]:
            self._propose(agent_id, archetype, events)
        else:
            self._trade_on_market(agent_id, archetype, events)

    def _random_item_id(self, pool: list[str]) -> str:
        return pool[int(self.rng.integers(0, len(pool)))]

    def _quote(self, agent_id: str, events: dict[str, Any]) -> None:
        """Two-sided quote around fair value."""
        market = self.market
        item_id = self._random_item_id(list(market.items))
        fair = market.calculate_fair_value(item_id)
        if fair is None or fair <= 0:
            return
        spread = self.config.order_config["market_maker_spread"]
        if market.place_order(agent_id, item_id, OrderSide.BUY, 1, fair * (1 - spread)) is not None:
            events["orders_placed"] += 1
        if market.get_inventory(agent_id).get(item_id, 0) > 0:
            if market.place_order(agent_id, item_id, OrderSide.SELL, 1, fair * (1 + spread)) is not None:
                events["orders_placed"] += 1

    def _trade_on_market(self, agent_id: str, archetype: EconomicArchetype, events: dict[str, Any]) -> None:
        market = self.market
        spread = self.config.order_config["market_maker_spread"]
        inventory = market.get_inventory(agent_id)

        if inventory and self.rng.random() > archetype.holding_propensity:
            item_id = self._random_item_id(sorted(inventory))
            fair = market.calculate_fair_value(item_id)
            if fair is None or fair <= 0:
                return
            qty = int(self.rng.integers(1, inventory[item_id] + 1))
            price = fair * (1 + self.rng.uniform(-spread, archetype.profit_margin))
            if market.place_order(agent_id, item_id, OrderSide.SELL, qty, price) is not None:
                events["orders_placed"] += 1
            return

        item_id = self._random_item_id(list(market.items))
        qty = int(self.rng.integers(1, int(self.ac["market_purchase_max_qty"]) + 1))
        if self.rng.random() < self.ac["market_purchase_share"]:
            market.buy_from_market(agent_id, item_id, qty)
            return
        fair = market.calculate_fair_value(item_id)
        if fair is None or fair <= 0:
            return
        price = fair * (1 + self.rng.uniform(-archetype.profit_margin, spread))
        if market.place_order(agent_id, item_id, OrderSide.BUY, qty, price) is not None:
            events["orders_placed"] += 1

    def _propose(self, agent_id: str, archetype: EconomicArchetype, events: dict[str, Any]) -> None:
        """One bot-to-bot offer: direct answer, acceptance, or negotiation."""
        network = self.network
        others = [a for a in self.market.agent_ids if a != agent_id]
        to_id = others[int(self.rng.integers(0, len(others)))]
        motivations = MOTIVATIONS_BY_ARCHETYPE[archetype.type]
        motivation = motivations[int(self.rng.integers(0, len(motivations)))]

        offer = network.generate_trade_offer(agent_id, to_id, motivation)
        if offer is None:
            return
        events["offers_made"] += 1

        if motivation in _SOCIAL_MOTIVATIONS:
            network.respond_to_offer(to_id, offer.offer_id)
            return
        if not network.passes_trust_gate(to_id, offer):
            network.reject_offer(offer)
            events["offers_rejected"] += 1
            return
        if network.should_accept_trade(to_id, offer):
            offer.status = OfferStatus.ACCEPTED
            network.execute_trade(offer.offer_id)
            return

        state = network.negotiate(offer)
        agreed = state.current_offer
        if state.status == NegotiationStatus.AGREED and network.passes_trust_gate(to_id, agreed):
            events["negotiations_agreed"] += 1
            network.execute_trade(agreed.offer_id)
        else:
            if state.status == NegotiationStatus.AGREED:
                network.reject_offer(agreed)
            events["negotiations_failed"] += 1

    # ------------------------------------------------------------------
    # Snapshot
    # ------------------------------------------------------------------
    def _snapshot(
        self,
        tick: int,
        trades_before: int,
        completed_before: int,
        shocks: list,
        health: EconomicHealthReport | None,
        events: dict[str, Any],
    ) -> TickSnapshot:
        market = self.market
        new_trades = market.trades[trades_before:]
        new_deals = self.network.completed_trades[completed_before:]
        volume = sum(t.value for t in new_trades) + sum(o.offered_value for o in new_deals)

        items = market.get_all_items()
        price_index = float(np.mean([i.current_price / i.base_cost for i in items])) if items else 0.0
        wealths = [market.agent_wealth(a) for a in market.agent_ids]

        return TickSnapshot(
            tick=tick,
            agent_count=len(wealths),
            market_trades=len(new_trades),
            network_trades=len(new_deals),
            offers_made=events["offers_made"],
            negotiations_agreed=events["negotiations_agreed"],
            negotiations_failed=events["negotiations_failed"],
            trade_volume=float(volume),
            shocks=[f"{s.shock_type.value}:{s.item_id}" for s in shocks],
            price_index=price_index,
            total_wealth=float(sum(wealths)),
            gini=gini_coefficient(wealths),
            health_score=health.overall_score if health else None,
            health_grade=health.grade if health else None,
            events=events,
        )

    def summary(self) -> dict[str, Any]:
        """Aggregate counts over the whole run."""
        return {
            "tick": self.tick,
            "agents": len(self.market.agent_ids),
            "market_trades": len(self.market.trades),
            "network_trades": len(self.network.completed_trades),
            "routes": len(self.network.routes),
            "flows_recorded": len(self.ledger.flows),
            "health_grade": self.last_health.grade if self.last_health else None,
        }
