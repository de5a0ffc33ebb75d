"""
Metrics Collector — per-tick market statistics.

Extends TickSnapshot with catalog-wide price statistics, wealth spread,
order book depth and trading network state. Provides time series
extraction and export for visualization.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import numpy as np

from tradepost.core.config import MarketConfig
from tradepost.core.engine import TickSnapshot

if TYPE_CHECKING:
    from tradepost.core.engine import EconomyEngine


@dataclass
class TickMetrics:
    """Extended metrics for a single tick."""

    # Base snapshot data
    tick: int
    agent_count: int
    market_trades: int
    network_trades: int
    offers_made: int
    negotiations_agreed: int
    negotiations_failed: int
    trade_volume: float

    # Prices
    price_index: float
    mean_volatility: float
    price_by_category: dict[str, float]  # category -> mean current/base ratio

    # Wealth
    total_wealth: float
    mean_gold: float
    gini: float

    # Order book & network
    open_orders: int
    active_offers: int
    route_count: int

    # Phenomena
    active_flags: int
    phenomena_counts: dict[str, int]

    # Health (analysis ticks only)
    health_score: float | None = None
    health_grade: str | None = None

    shocks: list[str] = field(default_factory=list)


class MetricsCollector:
    """
    Collects and aggregates metrics across ticks.

    Works alongside the economy engine to provide richer analytics than
    the base TickSnapshot.
    """

    def __init__(self, config: MarketConfig):
        self.config = config
        self.metrics_history: list[TickMetrics] = []

    def collect(self, engine: EconomyEngine, snapshot: TickSnapshot) -> TickMetrics:
        """Collect enhanced metrics for a tick."""
        market = engine.market
        items = market.get_all_items()

        # Price statistics
        mean_volatility = float(np.mean([i.volatility for i in items])) if items else 0.0
        ratios: dict[str, list[float]] = {}
        for item in items:
            ratios.setdefault(item.category.value, []).append(item.current_price / item.base_cost)
        price_by_category = {cat: float(np.mean(vals)) for cat, vals in sorted(ratios.items())}

        # Gold
        golds = [market.get_gold(a) for a in market.agent_ids]
        mean_gold = float(np.mean(golds)) if golds else 0.0

        # Phenomena
        phenomena_counts: dict[str, int] = {}
        for p in market.get_market_phenomena():
            phenomena_counts[p.type.value] = phenomena_counts.get(p.type.value, 0) + 1
        active_flags = sum(len(i.manipulation_flags) for i in items)

        metrics = TickMetrics(
            tick=snapshot.tick,
            agent_count=snapshot.agent_count,
            market_trades=snapshot.market_trades,
            network_trades=snapshot.network_trades,
            offers_made=snapshot.offers_made,
            negotiations_agreed=snapshot.negotiations_agreed,
            negotiations_failed=snapshot.negotiations_failed,
            trade_volume=snapshot.trade_volume,
            price_index=snapshot.price_index,
            mean_volatility=mean_volatility,
            price_by_category=price_by_category,
            total_wealth=snapshot.total_wealth,
            mean_gold=mean_gold,
            gini=snapshot.gini,
            open_orders=len(market.open_orders()),
            active_offers=len(engine.network.active_offers),
            route_count=len(engine.network.routes),
            active_flags=active_flags,
            phenomena_counts=phenomena_counts,
            health_score=snapshot.health_score,
            health_grade=snapshot.health_grade,
            shocks=list(snapshot.shocks),
        )

        self.metrics_history.append(metrics)
        return metrics

    def get_time_series(self, field_name: str) -> list[Any]:
        """Extract a time series for a specific metric field."""
        return [getattr(m, field_name) for m in self.metrics_history]

    def export_dict(self) -> list[dict[str, Any]]:
        """Export all metrics as a list of JSON-serializable dicts."""
        result = []
        for m in self.metrics_history:
            d: dict[str, Any] = {
                "tick": m.tick,
                "agent_count": m.agent_count,
                "market_trades": m.market_trades,
                "network_trades": m.network_trades,
                "offers_made": m.offers_made,
                "negotiations_agreed": m.negotiations_agreed,
                "negotiations_failed": m.negotiations_failed,
                "trade_volume": m.trade_volume,
                "price_index": m.price_index,
                "mean_volatility": m.mean_volatility,
                "price_by_category": dict(m.price_by_category),
                "total_wealth": m.total_wealth,
                "mean_gold": m.mean_gold,
                "gini": m.gini,
                "open_orders": m.open_orders,
                "active_offers": m.active_offers,
                "route_count": m.route_count,
                "active_flags": m.active_flags,
                "phenomena_counts": dict(m.phenomena_counts),
                "health_score": m.health_score,
                "health_grade": m.health_grade,
                "shocks": list(m.shocks),
            }
            result.append(d)
        return result
