"""
Trading network — bot-to-bot bartering on top of the market.

Agents propose offers driven by a motivation, recipients evaluate them
against trust, reputation and their archetype's acceptance rule, and
unfair offers are negotiated through bounded rounds of counter-offers.
Executed trades move gold and items through the market's transfer
primitives and update both parties' reputations and the trade route
between them.
"""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import numpy as np

from tradepost.analysis.flows import FlowType
from tradepost.core.archetypes import (
    ArchetypeType,
    PersonalityProfile,
    Specialization,
    determine_specialization,
)
from tradepost.core.pricing import PriceTrend
from tradepost.trading.offers import (
    NegotiationState,
    NegotiationStatus,
    OfferStatus,
    TradeMotivation,
    TradeOffer,
    calculate_trust_required,
    evaluate_fairness,
)
from tradepost.trading.social import FRIEND_STAGES, SocialGraph, SocialProvider
from tradepost.trading.strategies import OFFER_STRATEGIES, OfferContext, find_underpriced_items

if TYPE_CHECKING:
    from tradepost.core.market import MarketSimulation

logger = logging.getLogger(__name__)


@dataclass
class TradingReputation:
    agent_id: str
    total_trades: int = 0
    successful_trades: int = 0
    failed_trades: int = 0
    reliability_score: float = 0.5
    fairness_score: float = 0.5
    last_traded: int | None = None
    specialization: Specialization | None = None
    trading_partners: list[str] = field(default_factory=list)
    blacklist: list[str] = field(default_factory=list)


@dataclass
class TradeRoute:
    """Repeated trading relationship between a sorted pair of agents."""
    route_id: str
    agent_a: str
    agent_b: str
    established: int
    last_trade: int
    primary_goods: list[str] = field(default_factory=list)
    trade_frequency: float = 1.0  # EMA, trades per simulated day
    total_volume: float = 0.0
    profitability: float = 0.0  # running mean value imbalance per trade
    route_strength: float = 0.2
    trade_count: int = 0


@dataclass(frozen=True)
class TradeOpportunity:
    opportunity_id: str
    target_id: str
    type: str  # "arbitrage" | "social"
    expected_profit: float
    risk_level: float
    confidence: float
    reasoning: str
    items_involved: tuple[str, ...] = ()


# Acceptance rule per archetype: (fairness, offer, network) -> accept?
def _accept_speculator(fairness: float, offer: TradeOffer, net: TradingNetwork) -> bool:
    rising = any(net.market.get_price_trend(i.item_id) == PriceTrend.RISING for i in offer.requested_items)
    return rising or fairness > 0


ACCEPTANCE_RULES: dict[ArchetypeType, Any] = {
    ArchetypeType.MERCHANT: lambda f, o, n: f >= -0.1,
    ArchetypeType.GENEROUS: lambda f, o, n: f >= -0.3,
    ArchetypeType.HOARDER: lambda f, o, n: f > 0.2 and n.rng.random() < n.tc["hoarder_accept_probability"],
    ArchetypeType.OPPORTUNIST: lambda f, o, n: f > 0.1,
    ArchetypeType.MARKET_MAKER: lambda f, o, n: abs(f) < n.tc["fair_trade_tolerance"],
    ArchetypeType.SPECULATOR: _accept_speculator,
    ArchetypeType.PRODUCER: lambda f, o, n: f >= -0.15,
}


class TradingNetwork:
    """
    Offer generation, evaluation, negotiation and settlement between agents.

    All parameters come from config.trading_config.
    """

    def __init__(
        self,
        market: MarketSimulation,
        social: SocialProvider | None = None,
        rng: np.random.Generator | None = None,
    ):
        self.market = market
        self.config = market.config
        self.social: SocialProvider = social if social is not None else SocialGraph()
        self.rng = rng if rng is not None else market.rng
        self.tc = self.config.trading_config

        self.fair_tolerance: float = self.tc["fair_trade_tolerance"]
        self.max_rounds: int = int(self.tc["max_negotiation_rounds"])
        self.offer_expiry_ticks: int = self.config.hours_to_ticks(self.tc["offer_expiry_hours"])

        self.reputations: dict[str, TradingReputation] = {}
        self.specializations: dict[str, Specialization] = {}
        self.active_offers: dict[str, TradeOffer] = {}
        self.completed_trades: list[TradeOffer] = []
        self.routes: dict[tuple[str, str], TradeRoute] = {}
        self.negotiations: dict[str, NegotiationState] = {}

        self._next_offer_id = 0
        self._next_negotiation_id = 0
        self._next_opportunity_id = 0

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------
    def register_agent(self, agent_id: str, profile: PersonalityProfile | None = None) -> TradingReputation:
        """Add a market-registered agent to the network."""
        if not self.market.has_agent(agent_id):
            raise ValueError(f"Agent '{agent_id}' is not registered with the market")
        profile = profile or self.market.get_profile(agent_id)
        archetype = self.market.get_archetype(agent_id)
        reputation = TradingReputation(agent_id=agent_id)
        if profile is not None and archetype is not None:
            spec = determine_specialization(profile, archetype, self.rng)
            if spec is not None:
                self.specializations[agent_id] = spec
                reputation.specialization = spec
        self.reputations[agent_id] = reputation
        return reputation

    def _relationship(self, agent_id: str, other_id: str):
        return self.social.get_relationship(agent_id, other_id)

    # ------------------------------------------------------------------
    # Offer generation
    # ------------------------------------------------------------------
    def generate_trade_offer(
        self,
        from_id: str,
        to_id: str,
        motivation: TradeMotivation | str,
    ) -> TradeOffer | None:
        """Build an offer from *from_id* to *to_id*, or None if nothing fits."""
        motivation = TradeMotivation(motivation)
        if from_id == to_id or from_id not in self.reputations or to_id not in self.reputations:
            return None
        archetype = self.market.get_archetype(from_id)
        if archetype is None:
            return None

        relationship = self._relationship(from_id, to_id)
        ctx = OfferContext(
            market=self.market,
            proposer_id=from_id,
            counterparty_id=to_id,
            archetype=archetype,
            relationship=relationship,
            specialization=self.specializations.get(from_id),
            tc=self.tc,
            rng=self.rng,
        )
        terms = OFFER_STRATEGIES[motivation](ctx)
        if terms is None or terms.is_empty:
            return None
        if not self._can_deliver(from_id, terms.offered_items, terms.offered_gold):
            logger.debug("Offer from %s dropped: cannot fund its side", from_id)
            return None

        offered_value = sum(i.estimated_value for i in terms.offered_items) + terms.offered_gold
        requested_value = sum(i.estimated_value for i in terms.requested_items) + terms.requested_gold
        is_friend = relationship is not None and relationship.stage in FRIEND_STAGES

        offer = TradeOffer(
            offer_id=self._new_offer_id(),
            from_id=from_id,
            to_id=to_id,
            offered_items=terms.offered_items,
            requested_items=terms.requested_items,
            offered_gold=terms.offered_gold,
            requested_gold=terms.requested_gold,
            created_at=self.market.tick,
            expires_at=self.market.tick + self.offer_expiry_ticks,
            trust_required=calculate_trust_required(offered_value, requested_value, is_friend, self.tc),
            motivation=motivation,
        )
        self.active_offers[offer.offer_id] = offer
        return offer

    def _new_offer_id(self) -> str:
        offer_id = f"offer_{self._next_offer_id}"
        self._next_offer_id += 1
        return offer_id

    def _can_deliver(self, agent_id: str, items, gold: float) -> bool:
        if self.market.get_gold(agent_id) < gold:
            return False
        inventory = self.market.get_inventory(agent_id)
        needed: dict[str, int] = {}
        for item in items:
            needed[item.item_id] = needed.get(item.item_id, 0) + item.quantity
        return all(inventory.get(item_id, 0) >= qty for item_id, qty in needed.items())

    # ------------------------------------------------------------------
    # Evaluation
    # ------------------------------------------------------------------
    @staticmethod
    def evaluate_fairness(offer: TradeOffer) -> float:
        return evaluate_fairness(offer)

    def passes_trust_gate(self, agent_id: str, offer: TradeOffer) -> bool:
        """Hard rejections that no amount of haggling can fix.

        The recipient must trust the proposer at least ``trust_required``,
        the proposer must be reliable enough, and must not be blacklisted.
        """
        if offer.to_id != agent_id:
            return False
        relationship = self._relationship(agent_id, offer.from_id)
        trust = relationship.trust if relationship is not None else 0.0
        if trust < offer.trust_required:
            return False

        proposer = self.reputations.get(offer.from_id)
        if proposer is not None and proposer.reliability_score < self.tc["min_reliability"]:
            return False

        own = self.reputations.get(agent_id)
        if own is not None and offer.from_id in own.blacklist:
            return False
        return True

    def should_accept_trade(self, agent_id: str, offer: TradeOffer) -> bool:
        """Whether *agent_id* (the recipient) accepts *offer* as it stands."""
        archetype = self.market.get_archetype(agent_id)
        if archetype is None or not self.passes_trust_gate(agent_id, offer):
            return False

        fairness = evaluate_fairness(offer)
        rule = ACCEPTANCE_RULES.get(archetype.type)
        return bool(rule(fairness, offer, self)) if rule else fairness >= 0

    def generate_counter_offer(self, agent_id: str, offer: TradeOffer) -> TradeOffer | None:
        """Counter an unfair offer by moving its gold terms halfway toward parity.

        Returns None when the offer is not addressed to *agent_id*, is no
        longer pending, or is already within the fair-trade tolerance.
        """
        if offer.to_id != agent_id or offer.status != OfferStatus.PENDING:
            return None
        fairness = evaluate_fairness(offer)
        if abs(fairness) < self.fair_tolerance:
            return None

        counter = copy.deepcopy(offer)
        counter.offer_id = self._new_offer_id()
        counter.status = OfferStatus.PENDING
        counter.counter_offers = []
        counter.parent_id = offer.offer_id
        counter.created_at = self.market.tick
        counter.expires_at = self.market.tick + self.offer_expiry_ticks

        adjustment = abs(offer.offered_value - offer.requested_value) * self.tc["counter_offer_step"]
        if fairness < 0:
            # Recipient gives too much: ask for less, then get paid more
            cut = min(counter.requested_gold, adjustment)
            counter.requested_gold -= cut
            counter.offered_gold += adjustment - cut
        else:
            # Recipient gets too much: take less, then pay more
            cut = min(counter.offered_gold, adjustment)
            counter.offered_gold -= cut
            counter.requested_gold += adjustment - cut

        relationship = self._relationship(counter.to_id, counter.from_id)
        counter.trust_required = calculate_trust_required(
            counter.offered_value, counter.requested_value,
            relationship is not None and relationship.stage in FRIEND_STAGES, self.tc,
        )

        offer.status = OfferStatus.COUNTERED
        offer.counter_offers.append(counter)
        self.active_offers[counter.offer_id] = counter
        return counter

    def respond_to_offer(self, agent_id: str, offer_id: str) -> OfferStatus | None:
        """Recipient decision: accept and execute, counter, or reject."""
        offer = self.active_offers.get(offer_id)
        if offer is None or offer.to_id != agent_id or offer.status != OfferStatus.PENDING:
            return None
        if self.should_accept_trade(agent_id, offer):
            offer.status = OfferStatus.ACCEPTED
            self.execute_trade(offer_id)
            return offer.status
        if not self.passes_trust_gate(agent_id, offer):
            self.reject_offer(offer)
            return OfferStatus.REJECTED
        if self.generate_counter_offer(agent_id, offer) is not None:
            return OfferStatus.COUNTERED
        self.reject_offer(offer)
        return OfferStatus.REJECTED

    def reject_offer(self, offer: TradeOffer) -> None:
        offer.status = OfferStatus.REJECTED
        self.active_offers.pop(offer.offer_id, None)

    # ------------------------------------------------------------------
    # Negotiation
    # ------------------------------------------------------------------
    def start_negotiation(self, offer: TradeOffer) -> NegotiationState:
        state = NegotiationState(
            negotiation_id=f"negotiation_{self._next_negotiation_id}",
            participants=(offer.from_id, offer.to_id),
            current_offer=offer,
            max_rounds=self.max_rounds,
            history=[offer],
        )
        self._next_negotiation_id += 1
        self.negotiations[state.negotiation_id] = state
        return state

    def continue_negotiation(self, negotiation_id: str, counter: TradeOffer) -> NegotiationState | None:
        """Record one counter-offer round. Agreement accepts the counter."""
        state = self.negotiations.get(negotiation_id)
        if state is None or state.status != NegotiationStatus.ONGOING:
            return None

        state.current_offer = counter
        state.rounds += 1
        state.history.append(counter)

        if abs(evaluate_fairness(counter)) < self.fair_tolerance:
            state.status = NegotiationStatus.AGREED
            counter.status = OfferStatus.ACCEPTED
        elif state.rounds >= state.max_rounds:
            state.status = NegotiationStatus.FAILED
        return state

    def negotiate(self, offer: TradeOffer) -> NegotiationState:
        """Run counter-offer rounds until agreement or the round limit."""
        state = self.start_negotiation(offer)
        if abs(evaluate_fairness(offer)) < self.fair_tolerance:
            state.status = NegotiationStatus.AGREED
            offer.status = OfferStatus.ACCEPTED
            return state

        while state.status == NegotiationStatus.ONGOING:
            current = state.current_offer
            counter = self.generate_counter_offer(current.to_id, current)
            if counter is None:
                state.status = NegotiationStatus.FAILED
                break
            self.continue_negotiation(state.negotiation_id, counter)

        if state.status == NegotiationStatus.FAILED:
            logger.debug("Negotiation %s failed after %d rounds", state.negotiation_id, state.rounds)
        return state

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------
    def execute_trade(self, offer_id: str) -> bool:
        """Settle an accepted offer. Returns False if it could not be settled."""
        offer = self.active_offers.get(offer_id)
        if offer is None or offer.status != OfferStatus.ACCEPTED:
            return False

        a, b = offer.from_id, offer.to_id
        if not (self._can_deliver(a, offer.offered_items, offer.offered_gold)
                and self._can_deliver(b, offer.requested_items, offer.requested_gold)):
            logger.debug("Trade %s failed: a party cannot deliver", offer_id)
            offer.status = OfferStatus.REJECTED
            self.active_offers.pop(offer_id, None)
            self._update_reputation(offer, success=False)
            return False

        flow_type = FlowType.GIFT if offer.is_gift else FlowType.TRADE
        for item in offer.offered_items:
            self.market.transfer_item(a, b, item.item_id, item.quantity, flow_type)
        if offer.offered_gold > 0:
            self.market.transfer_gold(a, b, offer.offered_gold, flow_type)
        for item in offer.requested_items:
            self.market.transfer_item(b, a, item.item_id, item.quantity, flow_type)
        if offer.requested_gold > 0:
            self.market.transfer_gold(b, a, offer.requested_gold, flow_type)

        self.completed_trades.append(offer)
        self.active_offers.pop(offer_id, None)
        self._update_reputation(offer, success=True)
        self._update_route(offer)
        return True

    def _update_reputation(self, offer: TradeOffer, success: bool) -> None:
        fairness = evaluate_fairness(offer)
        decay = self.tc["fairness_score_decay"]
        for agent_id, other_id in ((offer.from_id, offer.to_id), (offer.to_id, offer.from_id)):
            rep = self.reputations.get(agent_id)
            if rep is None:
                continue
            rep.total_trades += 1
            if success:
                rep.successful_trades += 1
                rep.fairness_score = decay * rep.fairness_score + (1 - decay) * (1 - abs(fairness))
            else:
                rep.failed_trades += 1
            rep.reliability_score = rep.successful_trades / max(1, rep.total_trades)
            rep.last_traded = self.market.tick
            if other_id not in rep.trading_partners:
                rep.trading_partners.append(other_id)

    def _update_route(self, offer: TradeOffer) -> TradeRoute:
        key = tuple(sorted((offer.from_id, offer.to_id)))
        tick = self.market.tick
        volume = offer.offered_value
        imbalance = abs(offer.offered_value - offer.requested_value)
        categories = []
        for item in [*offer.offered_items, *offer.requested_items]:
            market_item = self.market.get_item(item.item_id)
            if market_item is not None and market_item.category.value not in categories:
                categories.append(market_item.category.value)

        route = self.routes.get(key)
        if route is None:
            route = TradeRoute(
                route_id=f"route_{key[0]}_{key[1]}",
                agent_a=key[0],
                agent_b=key[1],
                established=tick,
                last_trade=tick,
                primary_goods=categories,
                total_volume=volume,
                profitability=imbalance,
                route_strength=self.tc["route_initial_strength"],
                trade_count=1,
            )
            self.routes[key] = route
            return route

        decay = self.tc["route_frequency_decay"]
        sample = self.config.ticks_per_day / max(1, tick - route.last_trade)
        route.trade_frequency = decay * route.trade_frequency + (1 - decay) * sample
        route.total_volume += volume
        route.trade_count += 1
        route.profitability += (imbalance - route.profitability) / route.trade_count
        route.route_strength = min(1.0, route.route_strength + self.tc["route_strength_step"])
        route.last_trade = tick
        for category in categories:
            if category not in route.primary_goods:
                route.primary_goods.append(category)
        return route

    def expire_offers(self) -> list[TradeOffer]:
        """Expire open offers past their deadline and drop them from the pool."""
        tick = self.market.tick
        expired = []
        for offer_id, offer in list(self.active_offers.items()):
            if offer.expires_at <= tick:
                if offer.is_open:
                    offer.status = OfferStatus.EXPIRED
                expired.append(offer)
                del self.active_offers[offer_id]
        return expired

    # ------------------------------------------------------------------
    # Reputation management
    # ------------------------------------------------------------------
    def blacklist_agent(self, agent_id: str, other_id: str) -> bool:
        rep = self.reputations.get(agent_id)
        if rep is None or other_id == agent_id:
            return False
        if other_id not in rep.blacklist:
            rep.blacklist.append(other_id)
        return True

    # ------------------------------------------------------------------
    # Analysis & reporting
    # ------------------------------------------------------------------
    def get_trading_stats(self, agent_id: str) -> TradingReputation | None:
        return self.reputations.get(agent_id)

    def get_top_trade_routes(self, limit: int = 10) -> list[TradeRoute]:
        routes = sorted(self.routes.values(), key=lambda r: (-r.total_volume, r.route_id))
        return routes[:limit]

    def get_trading_network(self) -> dict[str, Any]:
        """Node/edge view of the network, edges weighted by route volume."""
        return {
            "nodes": list(self.reputations),
            "edges": [
                {"source": r.agent_a, "target": r.agent_b, "weight": r.total_volume}
                for r in self.routes.values()
            ],
        }

    def find_trade_opportunities(self, agent_id: str) -> list[TradeOpportunity]:
        if agent_id not in self.reputations:
            return []
        found: list[TradeOpportunity] = []
        for other_id in self.reputations:
            if other_id == agent_id:
                continue
            bargains = find_underpriced_items(
                self.market, self.market.get_inventory(other_id), self.tc["arbitrage_discount"],
            )
            for item in bargains[:3]:
                fair = self.market.calculate_fair_value(item.item_id) or item.current_price
                found.append(TradeOpportunity(
                    opportunity_id=self._new_opportunity_id(),
                    target_id=other_id,
                    type="arbitrage",
                    expected_profit=fair - item.current_price,
                    risk_level=item.volatility,
                    confidence=0.7,
                    reasoning=f"Buy {item.name} below market value",
                    items_involved=(item.item_id,),
                ))
            relationship = self._relationship(agent_id, other_id)
            if relationship is not None and relationship.stage in FRIEND_STAGES:
                found.append(TradeOpportunity(
                    opportunity_id=self._new_opportunity_id(),
                    target_id=other_id,
                    type="social",
                    expected_profit=0.0,
                    risk_level=0.1,
                    confidence=0.9,
                    reasoning="Build relationship with friend through trading",
                ))
        found.sort(key=lambda o: -o.expected_profit)
        return found

    def _new_opportunity_id(self) -> str:
        opportunity_id = f"opp_{self._next_opportunity_id}"
        self._next_opportunity_id += 1
        return opportunity_id

    def get_trading_network_report(self) -> str:
        reps = list(self.reputations.values())
        avg_reliability = sum(r.reliability_score for r in reps) / max(1, len(reps))
        lines = [
            "=== TRADING NETWORK REPORT ===",
            "",
            "NETWORK OVERVIEW:",
            f"- Active Traders: {len(reps)}",
            f"- Completed Trades: {len(self.completed_trades)}",
            f"- Active Offers: {len(self.active_offers)}",
            f"- Established Routes: {len(self.routes)}",
            f"- Avg Reliability: {avg_reliability * 100:.1f}%",
            "",
            "TOP TRADE ROUTES:",
        ]
        for i, route in enumerate(self.get_top_trade_routes(5), 1):
            lines.append(f"{i}. {route.agent_a} <-> {route.agent_b}")
            lines.append(f"   Volume: {route.total_volume:.0f} gold, Frequency: {route.trade_frequency:.1f}/day")
        lines.append("")
        lines.append("SPECIALIZATIONS:")
        counts: dict[str, int] = {}
        for spec in self.specializations.values():
            counts[spec.value] = counts.get(spec.value, 0) + 1
        for name, count in sorted(counts.items()):
            lines.append(f"- {name}: {count} agents")
        return "\n".join(lines)
