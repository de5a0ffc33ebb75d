"""
Economic bottleneck detection.

Five independent detectors scan the market and the flow ledger: supply
shortages, demand collapse, liquidity crunches, single-holder monopolies,
and overall stagnation. Each bottleneck carries a 0-1 severity, the items
and agents it touches, an estimated gold impact and a recommendation.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from tradepost.analysis.flows import ResourceFlowLedger
    from tradepost.core.config import MarketConfig
    from tradepost.core.market import MarketSimulation


class BottleneckType(str, Enum):
    SUPPLY = "supply"
    DEMAND = "demand"
    LIQUIDITY = "liquidity"
    MONOPOLY = "monopoly"
    STAGNATION = "stagnation"


@dataclass(frozen=True)
class EconomicBottleneck:
    bottleneck_id: str
    type: BottleneckType
    severity: float
    description: str
    detected_at: int
    impact: float
    recommendation: str
    affected_items: list[str] = field(default_factory=list)
    affected_agents: list[str] = field(default_factory=list)


class BottleneckDetector:

    def __init__(self, config: MarketConfig):
        self.config = config
        self.ac = config.analysis_config

    def detect(self, market: MarketSimulation, ledger: ResourceFlowLedger) -> list[EconomicBottleneck]:
        """Run every detector and return the bottlenecks found this tick."""
        return [
            *self.detect_supply(market),
            *self.detect_demand(market),
            *self.detect_liquidity(market),
            *self.detect_monopoly(market),
            *self.detect_stagnation(market, ledger),
        ]

    def detect_supply(self, market: MarketSimulation) -> list[EconomicBottleneck]:
        found = []
        for item in market.get_all_items():
            if item.supply < item.demand * self.ac["supply_bottleneck_ratio"]:
                found.append(EconomicBottleneck(
                    bottleneck_id=f"supply_{item.item_id}",
                    type=BottleneckType.SUPPLY,
                    severity=max(0.0, min(1.0, 1.0 - item.supply / max(1.0, item.demand))),
                    description=f"Critical shortage of {item.name}",
                    detected_at=market.tick,
                    impact=item.current_price * item.demand,
                    recommendation="Increase production or reduce consumption",
                    affected_items=[item.item_id],
                ))
        return found

    def detect_demand(self, market: MarketSimulation) -> list[EconomicBottleneck]:
        found = []
        for item in market.get_all_items():
            if (item.demand < item.supply * self.ac["demand_bottleneck_ratio"]
                    and item.supply > self.ac["demand_bottleneck_min_supply"]):
                found.append(EconomicBottleneck(
                    bottleneck_id=f"demand_{item.item_id}",
                    type=BottleneckType.DEMAND,
                    severity=max(0.0, min(1.0, 1.0 - item.demand / max(1.0, item.supply))),
                    description=f"Oversupply of {item.name}, no buyers",
                    detected_at=market.tick,
                    impact=item.current_price * item.supply,
                    recommendation="Reduce production or find new uses",
                    affected_items=[item.item_id],
                ))
        return found

    def detect_liquidity(self, market: MarketSimulation) -> list[EconomicBottleneck]:
        agents = market.agent_ids
        if not agents:
            return []
        illiquid = [
            a for a in agents
            if market.get_gold(a) < self.ac["liquidity_gold_threshold"]
            and market.agent_wealth(a) > self.ac["liquidity_wealth_threshold"]
        ]
        share = len(illiquid) / len(agents)
        if share <= self.ac["liquidity_agent_fraction"]:
            return []
        return [EconomicBottleneck(
            bottleneck_id="liquidity_crisis",
            type=BottleneckType.LIQUIDITY,
            severity=share,
            description="Widespread gold shortage despite asset wealth",
            detected_at=market.tick,
            impact=sum(market.agent_wealth(a) for a in illiquid),
            recommendation="Encourage selling assets or provide gold sources",
            affected_agents=illiquid,
        )]

    def detect_monopoly(self, market: MarketSimulation) -> list[EconomicBottleneck]:
        found = []
        for item in market.get_all_items():
            holdings = market.holdings(item.item_id)
            if not holdings:
                continue
            circulating = item.supply + sum(holdings.values())
            holder = max(sorted(holdings), key=lambda a: holdings[a])
            share = holdings[holder] / circulating if circulating > 0 else 0.0
            if share > self.ac["monopoly_threshold"]:
                found.append(EconomicBottleneck(
                    bottleneck_id=f"monopoly_{item.item_id}",
                    type=BottleneckType.MONOPOLY,
                    severity=min(1.0, share),
                    description=f"{holder} controls {share:.0%} of {item.name}",
                    detected_at=market.tick,
                    impact=item.current_price * holdings[holder],
                    recommendation="Monitor for price manipulation",
                    affected_items=[item.item_id],
                    affected_agents=[holder],
                ))
        return found

    def detect_stagnation(self, market: MarketSimulation, ledger: ResourceFlowLedger) -> list[EconomicBottleneck]:
        agents = len(market.agent_ids)
        if agents == 0:
            return []
        expected = agents * self.ac["stagnation_flows_per_agent"]
        recent = len(ledger.recent_flows(1))
        if recent >= expected:
            return []
        return [EconomicBottleneck(
            bottleneck_id="market_stagnation",
            type=BottleneckType.STAGNATION,
            severity=1.0 - recent / expected,
            description="Low trading activity across market",
            detected_at=market.tick,
            impact=0.0,
            recommendation="Stimulate economy with incentives or events",
        )]
