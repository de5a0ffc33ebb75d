"""
Serializers for converting simulation objects to JSON-safe dicts.

Handles enums, numpy scalars and the frozen report dataclasses.
"""

from __future__ import annotations

from typing import Any

from tradepost.analysis.bottlenecks import EconomicBottleneck
from tradepost.analysis.flows import EconomicEntity, ResourceNode, WealthDistribution
from tradepost.analysis.health import EconomicHealthReport
from tradepost.core.catalog import MarketItem
from tradepost.core.engine import TickSnapshot
from tradepost.core.market import EconomicMetrics
from tradepost.core.orders import MarketOrder, Trade
from tradepost.core.phenomena import MarketPhenomenon
from tradepost.trading.network import TradeOpportunity, TradeRoute, TradingReputation


def _r(v: float | None, digits: int = 4) -> float | None:
    """Round a (possibly numpy) float for JSON output."""
    return round(float(v), digits) if v is not None else None


# === Market ===

def serialize_item(item: MarketItem) -> dict[str, Any]:
    """Lightweight item summary for list views."""
    return {
        "item_id": item.item_id,
        "name": item.name,
        "category": item.category.value,
        "base_cost": _r(item.base_cost),
        "current_price": _r(item.current_price),
        "supply": _r(item.supply),
        "demand": _r(item.demand),
        "rarity": _r(item.rarity),
        "volatility": _r(item.volatility),
        "flags": [f.type.value for f in item.manipulation_flags],
    }


def serialize_item_detail(item: MarketItem, fair_value: float | None, trend: str) -> dict[str, Any]:
    d = serialize_item(item)
    d.update({
        "production_rate": _r(item.production_rate),
        "consumption_rate": _r(item.consumption_rate),
        "fair_value": _r(fair_value),
        "trend": trend,
        "last_update": item.last_update,
        "price_history": [
            {"tick": p.tick, "price": _r(p.price), "volume": _r(p.volume),
             "supply": _r(p.supply), "demand": _r(p.demand)}
            for p in item.price_history
        ],
        "manipulation_flags": [
            {"type": f.type.value, "severity": _r(f.severity),
             "detected_at": f.detected_at, "description": f.description}
            for f in item.manipulation_flags
        ],
    })
    return d


def serialize_order(order: MarketOrder) -> dict[str, Any]:
    return {
        "order_id": order.order_id,
        "owner_id": order.owner_id,
        "item_id": order.item_id,
        "side": order.side.value,
        "quantity": order.quantity,
        "filled": order.filled,
        "remaining": order.remaining,
        "price_limit": _r(order.price_limit),
        "status": order.status.value,
        "created_at": order.created_at,
        "expires_at": order.expires_at,
    }


def serialize_trade(trade: Trade) -> dict[str, Any]:
    return {
        "trade_id": trade.trade_id,
        "buyer_id": trade.buyer_id,
        "seller_id": trade.seller_id,
        "item_id": trade.item_id,
        "quantity": trade.quantity,
        "price": _r(trade.price),
        "value": _r(trade.value),
        "tick": trade.tick,
        "buyer_archetype": trade.buyer_archetype,
        "seller_archetype": trade.seller_archetype,
    }


def serialize_phenomenon(p: MarketPhenomenon) -> dict[str, Any]:
    return {
        "type": p.type.value,
        "item_id": p.item_id,
        "severity": _r(p.severity),
        "description": p.description,
        "detected_at": p.detected_at,
    }


def serialize_metrics(m: EconomicMetrics) -> dict[str, Any]:
    return {
        "tick": m.tick,
        "market_cap": _r(m.market_cap, 2),
        "volume_24h": _r(m.volume_24h, 2),
        "price_change_24h": _r(m.price_change_24h),
        "inflation_rate": _r(m.inflation_rate),
        "market_health": _r(m.market_health),
        "active_traders": m.active_traders,
        "total_wealth": _r(m.total_wealth, 2),
        "wealth_inequality": _r(m.wealth_inequality),
        "top_items": [{"item_id": t["item_id"], "volume": _r(t["volume"], 2)} for t in m.top_items],
        "phenomena": [serialize_phenomenon(p) for p in m.phenomena],
    }


# === Trading ===

def serialize_reputation(rep: TradingReputation) -> dict[str, Any]:
    return {
        "agent_id": rep.agent_id,
        "total_trades": rep.total_trades,
        "successful_trades": rep.successful_trades,
        "failed_trades": rep.failed_trades,
        "reliability_score": _r(rep.reliability_score),
        "fairness_score": _r(rep.fairness_score),
        "last_traded": rep.last_traded,
        "specialization": rep.specialization.value if rep.specialization else None,
        "trading_partners": list(rep.trading_partners),
        "blacklist": list(rep.blacklist),
    }


def serialize_route(route: TradeRoute) -> dict[str, Any]:
    return {
        "route_id": route.route_id,
        "agent_a": route.agent_a,
        "agent_b": route.agent_b,
        "primary_goods": list(route.primary_goods),
        "trade_frequency": _r(route.trade_frequency),
        "total_volume": _r(route.total_volume, 2),
        "profitability": _r(route.profitability, 2),
        "route_strength": _r(route.route_strength),
        "trade_count": route.trade_count,
        "established": route.established,
        "last_trade": route.last_trade,
    }


def serialize_opportunity(o: TradeOpportunity) -> dict[str, Any]:
    return {
        "opportunity_id": o.opportunity_id,
        "target_id": o.target_id,
        "type": o.type,
        "expected_profit": _r(o.expected_profit, 2),
        "risk_level": _r(o.risk_level),
        "confidence": _r(o.confidence),
        "reasoning": o.reasoning,
        "items_involved": list(o.items_involved),
    }


# === Analysis ===

def serialize_distribution(d: WealthDistribution) -> dict[str, Any]:
    return {
        "tick": d.tick,
        "agent_count": d.agent_count,
        "total_wealth": _r(d.total_wealth, 2),
        "mean_wealth": _r(d.mean_wealth, 2),
        "median_wealth": _r(d.median_wealth, 2),
        "percentiles": {k: _r(v, 2) for k, v in d.percentiles.items()},
        "gini_coefficient": _r(d.gini_coefficient),
        "top_10_percent_share": _r(d.top_10_percent_share),
        "bottom_50_percent_share": _r(d.bottom_50_percent_share),
        "concentration": d.concentration,
    }


def serialize_bottleneck(b: EconomicBottleneck) -> dict[str, Any]:
    return {
        "bottleneck_id": b.bottleneck_id,
        "type": b.type.value,
        "severity": _r(b.severity),
        "description": b.description,
        "detected_at": b.detected_at,
        "impact": _r(b.impact, 2),
        "recommendation": b.recommendation,
        "affected_items": list(b.affected_items),
        "affected_agents": list(b.affected_agents),
    }


def serialize_health(h: EconomicHealthReport) -> dict[str, Any]:
    return {
        "tick": h.tick,
        "overall_score": _r(h.overall_score, 2),
        "grade": h.grade,
        "components": {k: _r(v, 2) for k, v in h.components.items()},
        "issues": list(h.issues),
        "strengths": list(h.strengths),
        "trend_direction": h.trend_direction,
        "trend_velocity": _r(h.trend_velocity),
        "bottleneck_count": h.bottleneck_count,
    }


def serialize_entity(e: EconomicEntity) -> dict[str, Any]:
    return {
        "entity_id": e.entity_id,
        "entity_type": e.entity_type,
        "current_gold": _r(e.current_gold, 2),
        "current_inventory_value": _r(e.current_inventory_value, 2),
        "total_wealth": _r(e.total_wealth, 2),
        "wealth_rank": e.wealth_rank,
        "wealth_percentile": _r(e.wealth_percentile, 2),
        "cash_flow_24h": _r(e.cash_flow_24h, 2),
        "flow_velocity": _r(e.flow_velocity, 2),
    }


def serialize_node(n: ResourceNode) -> dict[str, Any]:
    return {
        "node_id": n.node_id,
        "node_type": n.node_type,
        "resource_type": n.resource_type.value,
        "description": n.description,
        "total_processed": _r(n.total_processed, 2),
        "flow_rate": _r(n.flow_rate, 2),
    }


def serialize_flow_graph(graph: dict[str, Any]) -> dict[str, Any]:
    return {
        "nodes": [
            {"id": n.id, "type": n.type, "wealth": _r(n.wealth, 2),
             "inflow": _r(n.inflow, 2), "outflow": _r(n.outflow, 2), "net_flow": _r(n.net_flow, 2)}
            for n in graph["nodes"]
        ],
        "edges": [
            {"source": e.source, "target": e.target, "flow_type": e.flow_type.value,
             "value": _r(e.value, 2), "volume": e.volume}
            for e in graph["edges"]
        ],
    }


# === Simulation ===

def serialize_snapshot(s: TickSnapshot) -> dict[str, Any]:
    return {
        "tick": s.tick,
        "agent_count": s.agent_count,
        "market_trades": s.market_trades,
        "network_trades": s.network_trades,
        "offers_made": s.offers_made,
        "negotiations_agreed": s.negotiations_agreed,
        "negotiations_failed": s.negotiations_failed,
        "trade_volume": _r(s.trade_volume, 2),
        "shocks": list(s.shocks),
        "price_index": _r(s.price_index),
        "total_wealth": _r(s.total_wealth, 2),
        "gini": _r(s.gini),
        "health_score": _r(s.health_score, 2),
        "health_grade": s.health_grade,
        "events": dict(s.events),
    }
