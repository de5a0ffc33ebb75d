"""
Market simulation — the facade over catalog, pricing, orders and production.

Owns the authoritative agent wallets and inventories, the tick clock, the
order book and the append-only trade log. Every gold or item movement goes
through one of the transfer primitives here, which notify flow listeners
(the resource flow ledger subscribes) so the ledger sees every transfer.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable

import numpy as np

from tradepost.analysis.flows import FlowType, ResourceType
from tradepost.analysis.stats import gini_coefficient
from tradepost.core.archetypes import EconomicArchetype, PersonalityProfile, derive_economic_archetype
from tradepost.core.catalog import MarketItem, build_catalog
from tradepost.core.config import MarketConfig
from tradepost.core.orders import MarketOrder, OrderBook, OrderSide, OrderStatus, Trade
from tradepost.core.phenomena import MarketPhenomenon, PhenomenonDetector
from tradepost.core.pricing import PriceTrend, PricingEngine
from tradepost.core.production import MarketShock, ProductionSimulator

logger = logging.getLogger(__name__)

# System counterparties for flows that enter or leave the agent economy
JOB_SYSTEM = "job_system"
COMBAT_SYSTEM = "combat_system"
QUEST_SYSTEM = "quest_system"
SHOP_SYSTEM = "shop_system"
TAX_SYSTEM = "tax_system"

TradeListener = Callable[[Trade], None]
FlowListener = Callable[..., Any]


@dataclass
class EconomicMetrics:
    """Read-only snapshot of market-wide indicators."""
    tick: int
    market_cap: float
    volume_24h: float
    price_change_24h: float
    inflation_rate: float
    market_health: float  # 0-1
    active_traders: int
    total_wealth: float
    wealth_inequality: float  # Gini
    top_items: list[dict[str, Any]] = field(default_factory=list)
    phenomena: list[MarketPhenomenon] = field(default_factory=list)


class MarketSimulation:
    """
    In-process market for one economy.

    Agents are registered with a personality profile from which their
    economic archetype is derived. The clock only moves through
    ``advance_clock``; everything else operates on the current tick.
    """

    def __init__(self, config: MarketConfig | None = None, rng: np.random.Generator | None = None):
        self.config = config or MarketConfig()
        self.rng = rng if rng is not None else np.random.default_rng(self.config.random_seed)

        self.items: dict[str, MarketItem] = build_catalog(self.config)
        self.pricing = PricingEngine(self.config)
        self.production = ProductionSimulator(self.config)
        self.phenomena = PhenomenonDetector(self.config)
        self.order_book = OrderBook(self.config.hours_to_ticks(self.config.order_config["order_ttl_hours"]))

        self.trades: list[Trade] = []
        self.wallets: dict[str, float] = {}
        self.inventories: dict[str, dict[str, int]] = {}
        self.archetypes: dict[str, EconomicArchetype] = {}
        self.profiles: dict[str, PersonalityProfile] = {}
        self.tick: int = 0

        self._trade_listeners: list[TradeListener] = []
        self._flow_listeners: list[FlowListener] = []
        self._next_trade_id = 0

    # ------------------------------------------------------------------
    # Agents
    # ------------------------------------------------------------------
    def register_agent(
        self,
        agent_id: str,
        profile: PersonalityProfile,
        initial_gold: float | None = None,
    ) -> EconomicArchetype:
        if agent_id in self.wallets:
            raise ValueError(f"Agent '{agent_id}' is already registered")
        archetype = derive_economic_archetype(profile)
        self.wallets[agent_id] = float(self.config.initial_gold if initial_gold is None else initial_gold)
        self.inventories[agent_id] = {}
        self.archetypes[agent_id] = archetype
        self.profiles[agent_id] = profile
        return archetype

    def has_agent(self, agent_id: str) -> bool:
        return agent_id in self.wallets

    @property
    def agent_ids(self) -> list[str]:
        return list(self.wallets)

    def get_gold(self, agent_id: str) -> float:
        return self.wallets.get(agent_id, 0.0)

    def get_inventory(self, agent_id: str) -> dict[str, int]:
        """Copy of an agent's holdings, positive quantities only."""
        return {k: v for k, v in self.inventories.get(agent_id, {}).items() if v > 0}

    def get_archetype(self, agent_id: str) -> EconomicArchetype | None:
        return self.archetypes.get(agent_id)

    def get_profile(self, agent_id: str) -> PersonalityProfile | None:
        return self.profiles.get(agent_id)

    def set_holding(self, agent_id: str, item_id: str, quantity: int) -> None:
        """Set an agent's holding directly, without recording a flow (initial endowments)."""
        if agent_id not in self.inventories:
            raise KeyError(agent_id)
        if item_id not in self.items:
            raise KeyError(item_id)
        if quantity > 0:
            self.inventories[agent_id][item_id] = int(quantity)
        else:
            self.inventories[agent_id].pop(item_id, None)

    def inventory_value(self, agent_id: str) -> float:
        return sum(
            self.items[item_id].current_price * qty
            for item_id, qty in self.inventories.get(agent_id, {}).items()
            if item_id in self.items
        )

    def agent_wealth(self, agent_id: str) -> float:
        return self.get_gold(agent_id) + self.inventory_value(agent_id)

    # ------------------------------------------------------------------
    # Items
    # ------------------------------------------------------------------
    def get_item(self, item_id: str) -> MarketItem | None:
        return self.items.get(item_id)

    def get_all_items(self) -> list[MarketItem]:
        return list(self.items.values())

    def holdings(self, item_id: str) -> dict[str, int]:
        """Per-agent holdings of one item (holders only)."""
        result: dict[str, int] = {}
        for agent_id, inventory in self.inventories.items():
            qty = inventory.get(item_id, 0)
            if qty > 0:
                result[agent_id] = qty
        return result

    def total_inventory(self, item_id: str) -> int:
        return sum(self.holdings(item_id).values())

    def calculate_fair_value(self, item_id: str) -> float | None:
        item = self.items.get(item_id)
        if item is None:
            return None
        return self.pricing.calculate_fair_value(item)

    def get_price_trend(self, item_id: str) -> PriceTrend:
        item = self.items.get(item_id)
        if item is None:
            return PriceTrend.STABLE
        return self.pricing.get_price_trend(item)

    def recent_volume(self, item_id: str, hours: float = 1.0) -> int:
        """Units of *item_id* traded in the last *hours* simulated hours."""
        cutoff = self.tick - self.config.hours_to_ticks(hours)
        total = 0
        for t in reversed(self.trades):
            if t.tick <= cutoff:
                break
            if t.item_id == item_id:
                total += t.quantity
        return total

    # ------------------------------------------------------------------
    # Clock, pricing, production
    # ------------------------------------------------------------------
    def advance_clock(self, ticks: int = 1) -> int:
        self.tick += ticks
        return self.tick

    def update_prices(self) -> None:
        """Reprice every item once, then run phenomenon detection on it."""
        for item in self.items.values():
            self.pricing.update_item_price(item, self.rng, self.tick, float(self.recent_volume(item.item_id)))
            self.phenomena.detect(item, self.holdings(item.item_id), self.tick)

    def simulate_production_cycle(self) -> list[MarketShock]:
        shocks = self.production.run_cycle(self.items, self.rng, self.tick)
        for shock in shocks:
            logger.info("Market shock at tick %d: %s on %s", shock.tick, shock.shock_type.value, shock.item_id)
        return shocks

    # ------------------------------------------------------------------
    # Orders
    # ------------------------------------------------------------------
    def place_order(
        self,
        agent_id: str,
        item_id: str,
        side: OrderSide | str,
        quantity: int,
        price_limit: float,
    ) -> MarketOrder | None:
        """Submit a limit order. Returns None if the order is rejected."""
        side = OrderSide(side)
        if item_id not in self.items or agent_id not in self.wallets:
            logger.debug("Order rejected: unknown item %s or agent %s", item_id, agent_id)
            return None
        if quantity <= 0 or price_limit <= 0:
            logger.debug("Order rejected: non-positive quantity/price from %s", agent_id)
            return None
        if side == OrderSide.BUY and self.wallets[agent_id] < quantity * price_limit:
            logger.debug("Order rejected: %s cannot fund %d x %s", agent_id, quantity, item_id)
            return None
        if side == OrderSide.SELL and self.inventories[agent_id].get(item_id, 0) < quantity:
            logger.debug("Order rejected: %s does not hold %d x %s", agent_id, quantity, item_id)
            return None

        order = self.order_book.add(agent_id, item_id, side, int(quantity), float(price_limit), self.tick)
        self.match_orders(item_id)
        return order

    def match_orders(self, item_id: str) -> list[Trade]:
        return self.order_book.match(item_id, self._settle, self.tick)

    def cancel_order(self, order_id: str) -> bool:
        return self.order_book.cancel(order_id)

    def cleanup_orders(self) -> list[MarketOrder]:
        return self.order_book.cleanup(self.tick)

    def open_orders(self, agent_id: str | None = None) -> list[MarketOrder]:
        orders = [o for o in self.order_book.orders.values() if o.is_open]
        if agent_id is not None:
            orders = [o for o in orders if o.owner_id == agent_id]
        return sorted(orders, key=lambda o: o.sequence)

    def _settle(self, buy: MarketOrder, sell: MarketOrder, quantity: int, price: float) -> Trade | None:
        """Transfer gold and items for one match, or cancel the order that cannot settle."""
        cost = quantity * price
        if self.wallets.get(buy.owner_id, 0.0) < cost:
            logger.debug("Cancelling %s: buyer %s can no longer pay", buy.order_id, buy.owner_id)
            buy.status = OrderStatus.CANCELLED
            return None
        if self.inventories.get(sell.owner_id, {}).get(sell.item_id, 0) < quantity:
            logger.debug("Cancelling %s: seller %s no longer holds the goods", sell.order_id, sell.owner_id)
            sell.status = OrderStatus.CANCELLED
            return None

        item = self.items[buy.item_id]
        self.wallets[buy.owner_id] -= cost
        self.wallets[sell.owner_id] += cost
        self._remove_item(sell.owner_id, item.item_id, quantity)
        self._add_item(buy.owner_id, item.item_id, quantity)

        item.supply = max(0.0, item.supply - quantity)
        item.demand = max(0.0, item.demand - quantity)
        item.volatility = min(1.0, item.volatility * self.config.pricing_config["trade_volatility_bump"])

        trade = Trade(
            trade_id=f"trade_{self._next_trade_id}",
            buyer_id=buy.owner_id,
            seller_id=sell.owner_id,
            item_id=item.item_id,
            quantity=quantity,
            price=price,
            tick=self.tick,
            buyer_archetype=self._archetype_label(buy.owner_id),
            seller_archetype=self._archetype_label(sell.owner_id),
        )
        self._next_trade_id += 1
        self.trades.append(trade)

        self._emit_flow(buy.owner_id, sell.owner_id, ResourceType.GOLD, cost, FlowType.TRADE, value=cost)
        self._emit_flow(sell.owner_id, buy.owner_id, ResourceType.ITEM, quantity, FlowType.TRADE,
                        item_id=item.item_id, value=cost)
        for listener in self._trade_listeners:
            listener(trade)
        return trade

    def _archetype_label(self, agent_id: str) -> str:
        archetype = self.archetypes.get(agent_id)
        return archetype.type.value if archetype else "unknown"

    def get_recent_trades(self, limit: int = 50) -> list[Trade]:
        return self.trades[-limit:] if limit > 0 else []

    # ------------------------------------------------------------------
    # Transfer primitives
    # ------------------------------------------------------------------
    def add_trade_listener(self, listener: TradeListener) -> None:
        self._trade_listeners.append(listener)

    def add_flow_listener(self, listener: FlowListener) -> None:
        self._flow_listeners.append(listener)

    def _emit_flow(
        self,
        from_id: str,
        to_id: str,
        resource_type: ResourceType,
        amount: float,
        flow_type: FlowType,
        item_id: str | None = None,
        value: float | None = None,
    ) -> None:
        for listener in self._flow_listeners:
            listener(from_id, to_id, resource_type, amount, flow_type, item_id=item_id, value=value)

    def _add_item(self, agent_id: str, item_id: str, quantity: int) -> None:
        inventory = self.inventories[agent_id]
        inventory[item_id] = inventory.get(item_id, 0) + quantity

    def _remove_item(self, agent_id: str, item_id: str, quantity: int) -> None:
        inventory = self.inventories[agent_id]
        remaining = inventory.get(item_id, 0) - quantity
        if remaining > 0:
            inventory[item_id] = remaining
        else:
            inventory.pop(item_id, None)

    def transfer_gold(
        self,
        from_id: str,
        to_id: str,
        amount: float,
        flow_type: FlowType = FlowType.TRADE,
    ) -> bool:
        """Move gold between two registered agents."""
        if amount <= 0 or from_id not in self.wallets or to_id not in self.wallets:
            return False
        if self.wallets[from_id] < amount:
            return False
        self.wallets[from_id] -= amount
        self.wallets[to_id] += amount
        self._emit_flow(from_id, to_id, ResourceType.GOLD, amount, flow_type, value=amount)
        return True

    def transfer_item(
        self,
        from_id: str,
        to_id: str,
        item_id: str,
        quantity: int,
        flow_type: FlowType = FlowType.TRADE,
    ) -> bool:
        """Move items between two registered agents."""
        if quantity <= 0 or item_id not in self.items:
            return False
        if from_id not in self.inventories or to_id not in self.inventories:
            return False
        if self.inventories[from_id].get(item_id, 0) < quantity:
            return False
        self._remove_item(from_id, item_id, quantity)
        self._add_item(to_id, item_id, quantity)
        value = self.items[item_id].current_price * quantity
        self._emit_flow(from_id, to_id, ResourceType.ITEM, quantity, flow_type, item_id=item_id, value=value)
        return True

    def grant_gold(
        self,
        agent_id: str,
        amount: float,
        flow_type: FlowType = FlowType.JOB_REWARD,
        source: str = JOB_SYSTEM,
    ) -> bool:
        """Credit gold from an external system (jobs, combat, quests)."""
        if agent_id not in self.wallets or amount <= 0:
            return False
        self.wallets[agent_id] += amount
        self._emit_flow(source, agent_id, ResourceType.GOLD, amount, flow_type, value=amount)
        return True

    def grant_item(
        self,
        agent_id: str,
        item_id: str,
        quantity: int,
        flow_type: FlowType = FlowType.COMBAT_LOOT,
        source: str = COMBAT_SYSTEM,
    ) -> bool:
        """Credit items from an external system. Does not touch market supply."""
        if agent_id not in self.inventories or item_id not in self.items or quantity <= 0:
            return False
        self._add_item(agent_id, item_id, quantity)
        value = self.items[item_id].current_price * quantity
        self._emit_flow(source, agent_id, ResourceType.ITEM, quantity, flow_type, item_id=item_id, value=value)
        return True

    def charge_gold(
        self,
        agent_id: str,
        amount: float,
        flow_type: FlowType = FlowType.TAX,
        sink: str = TAX_SYSTEM,
    ) -> bool:
        """Remove gold from an agent into a system sink."""
        if agent_id not in self.wallets or amount <= 0 or self.wallets[agent_id] < amount:
            return False
        self.wallets[agent_id] -= amount
        self._emit_flow(agent_id, sink, ResourceType.GOLD, amount, flow_type, value=amount)
        return True

    def buy_from_market(self, agent_id: str, item_id: str, quantity: int) -> bool:
        """Buy from system supply at the current price."""
        item = self.items.get(item_id)
        if item is None or agent_id not in self.wallets or quantity <= 0:
            return False
        cost = item.current_price * quantity
        if item.supply < quantity or self.wallets[agent_id] < cost:
            return False
        self.wallets[agent_id] -= cost
        item.supply -= quantity
        self._add_item(agent_id, item_id, quantity)
        self._emit_flow(agent_id, SHOP_SYSTEM, ResourceType.GOLD, cost, FlowType.PURCHASE, value=cost)
        self._emit_flow(SHOP_SYSTEM, agent_id, ResourceType.ITEM, quantity, FlowType.PURCHASE,
                        item_id=item_id, value=cost)
        return True

    def sell_to_market(self, agent_id: str, item_id: str, quantity: int) -> bool:
        """Sell into system supply at the current price less the market spread."""
        item = self.items.get(item_id)
        if item is None or agent_id not in self.wallets or quantity <= 0:
            return False
        if self.inventories[agent_id].get(item_id, 0) < quantity:
            return False
        proceeds = item.current_price * quantity * (1.0 - self.config.order_config["market_maker_spread"])
        self._remove_item(agent_id, item_id, quantity)
        item.supply += quantity
        self.wallets[agent_id] += proceeds
        self._emit_flow(agent_id, SHOP_SYSTEM, ResourceType.ITEM, quantity, FlowType.SALE,
                        item_id=item_id, value=proceeds)
        self._emit_flow(SHOP_SYSTEM, agent_id, ResourceType.GOLD, proceeds, FlowType.SALE, value=proceeds)
        return True

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------
    def get_market_phenomena(self) -> list[MarketPhenomenon]:
        return self.phenomena.market_phenomena(self.items, self.tick)

    def get_economic_metrics(self) -> EconomicMetrics:
        day_start = self.tick - self.config.ticks_per_day
        recent = [t for t in self.trades if t.tick > day_start]

        market_cap = sum(
            item.current_price * (item.supply + self.total_inventory(item.item_id))
            for item in self.items.values()
        )
        volume_24h = sum(t.value for t in recent)

        changes = []
        for item in self.items.values():
            window = [p.price for p in item.price_history if p.tick >= day_start]
            if len(window) >= 2 and window[0] > 0:
                changes.append((item.current_price - window[0]) / window[0])
        price_change = float(np.mean(changes)) if changes else 0.0

        avg_volatility = float(np.mean([i.volatility for i in self.items.values()]))
        activity = min(1.0, len(recent) / 100)
        market_health = (1.0 - avg_volatility) * 0.6 + activity * 0.4

        active_traders = len({a for t in recent for a in (t.buyer_id, t.seller_id)})

        wealths = [self.agent_wealth(a) for a in self.wallets]

        item_volumes: dict[str, float] = {}
        for t in recent:
            item_volumes[t.item_id] = item_volumes.get(t.item_id, 0.0) + t.value
        top_items = [
            {"item_id": item_id, "volume": volume}
            for item_id, volume in sorted(item_volumes.items(), key=lambda kv: (-kv[1], kv[0]))[:5]
        ]

        return EconomicMetrics(
            tick=self.tick,
            market_cap=market_cap,
            volume_24h=volume_24h,
            price_change_24h=price_change,
            inflation_rate=price_change,
            market_health=market_health,
            active_traders=active_traders,
            total_wealth=sum(wealths),
            wealth_inequality=gini_coefficient(wealths),
            top_items=top_items,
            phenomena=self.get_market_phenomena(),
        )

    def get_market_report(self) -> str:
        m = self.get_economic_metrics()
        lines = [
            "=== MARKET REPORT ===",
            "",
            "MARKET OVERVIEW:",
            f"- Tick: {m.tick}",
            f"- Market Cap: {m.market_cap:.0f} gold",
            f"- 24h Volume: {m.volume_24h:.0f} gold",
            f"- Price Change (24h): {m.price_change_24h * 100:.2f}%",
            f"- Market Health: {m.market_health * 100:.1f}%",
            f"- Active Traders: {m.active_traders}",
            "",
            "WEALTH:",
            f"- Total Wealth: {m.total_wealth:.0f} gold",
            f"- Inequality (Gini): {m.wealth_inequality * 100:.1f}%",
            "",
            "TOP TRADED ITEMS:",
        ]
        for i, entry in enumerate(m.top_items, 1):
            item = self.items.get(entry["item_id"])
            lines.append(f"{i}. {item.name if item else entry['item_id']}: {entry['volume']:.0f} gold")
        lines.append("")
        lines.append(f"MARKET PHENOMENA ({len(m.phenomena)}):")
        for p in m.phenomena:
            lines.append(f"- {p.type.value.upper()}: {p.description} (severity: {p.severity * 100:.0f}%)")
        return "\n".join(lines)
