"""
Economic health scoring and analysis reports.

EconomicAnalyzer combines the flow ledger, wealth distribution and
bottleneck detection into a single 0-100 health score with a letter
grade, issues/strengths and a wealth trend.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import numpy as np

from tradepost.analysis.bottlenecks import BottleneckDetector, EconomicBottleneck
from tradepost.analysis.flows import ResourceFlowLedger, WealthDistribution

if TYPE_CHECKING:
    from tradepost.core.market import MarketSimulation


GRADE_THRESHOLDS = [(90.0, "A"), (80.0, "B"), (70.0, "C"), (60.0, "D")]


def grade_for(score: float) -> str:
    for threshold, grade in GRADE_THRESHOLDS:
        if score >= threshold:
            return grade
    return "F"


@dataclass(frozen=True)
class EconomicHealthReport:
    tick: int
    overall_score: float  # 0-100
    components: dict[str, float]
    grade: str
    issues: list[str] = field(default_factory=list)
    strengths: list[str] = field(default_factory=list)
    trend_direction: str = "stable"  # improving | stable | declining
    trend_velocity: float = 0.0
    bottleneck_count: int = 0


class EconomicAnalyzer:
    """Aggregates ledger data into wealth, bottleneck and health reports."""

    def __init__(self, market: MarketSimulation, ledger: ResourceFlowLedger | None = None):
        self.market = market
        self.ledger = ledger or ResourceFlowLedger(market)
        self.detector = BottleneckDetector(market.config)
        self.ac = market.config.analysis_config
        self.bottlenecks: list[EconomicBottleneck] = []

    def calculate_wealth_distribution(self) -> WealthDistribution:
        return self.ledger.calculate_wealth_distribution()

    def snapshot_wealth(self) -> WealthDistribution:
        return self.ledger.snapshot_wealth()

    def detect_bottlenecks(self) -> list[EconomicBottleneck]:
        self.bottlenecks = self.detector.detect(self.market, self.ledger)
        return self.bottlenecks

    def calculate_economic_health(self, record: bool = False) -> EconomicHealthReport:
        """Score the economy now.

        With *record* the current wealth distribution is appended to the
        history first; otherwise it is compared against the recorded
        snapshots without changing them, so repeated reads agree.
        """
        market = self.market
        distribution = self.snapshot_wealth() if record else self.calculate_wealth_distribution()
        bottlenecks = self.detect_bottlenecks()
        agents = market.agent_ids
        items = market.get_all_items()

        avg_gold = float(np.mean([market.get_gold(a) for a in agents])) if agents else 0.0
        liquidity = min(100.0, avg_gold / self.ac["liquidity_reference_gold"] * 100)

        recent_flows = len(self.ledger.recent_flows(1))
        activity = min(100.0, recent_flows / len(agents) * 20) if agents else 0.0

        wealth_score = (1.0 - distribution.gini_coefficient) * 100

        avg_volatility = float(np.mean([i.volatility for i in items])) if items else 0.0
        stability = (1.0 - avg_volatility) * 100

        available = sum(1 for i in items if i.supply > i.demand * self.ac["supply_bottleneck_ratio"])
        availability = available / len(items) * 100 if items else 0.0

        growth = 50.0
        history = list(self.ledger.wealth_history)
        if not record:
            history.append(distribution)
        if len(history) >= 2:
            previous, current = history[-2].total_wealth, history[-1].total_wealth
            rate = (current - previous) / max(1.0, previous)
            growth = 50.0 + min(50.0, max(-50.0, rate * 1000))

        components = {
            "market_liquidity": liquidity,
            "trading_activity": activity,
            "wealth_distribution": wealth_score,
            "price_stability": stability,
            "resource_availability": availability,
            "economic_growth": growth,
        }
        weights = self.ac["health_weights"]
        overall = sum(components[k] * weights.get(k, 0.0) for k in components)

        issues: list[str] = []
        strengths: list[str] = []
        if liquidity < 50:
            issues.append("Low market liquidity")
        elif liquidity > 80:
            strengths.append("High market liquidity")
        if activity < 50:
            issues.append("Low trading activity")
        elif activity > 80:
            strengths.append("Active trading market")
        if distribution.gini_coefficient > 0.6:
            issues.append("High wealth inequality")
        elif distribution.gini_coefficient < 0.3:
            strengths.append("Fair wealth distribution")
        if avg_volatility > 0.5:
            issues.append("High price volatility")
        elif avg_volatility < 0.2:
            strengths.append("Stable prices")
        if availability < 50:
            issues.append("Resource shortages")
        elif availability > 80:
            strengths.append("Abundant resources")
        if len(bottlenecks) > 5:
            issues.append(f"{len(bottlenecks)} economic bottlenecks detected")

        direction, velocity = self._wealth_trend(history)

        return EconomicHealthReport(
            tick=market.tick,
            overall_score=overall,
            components=components,
            grade=grade_for(overall),
            issues=issues,
            strengths=strengths,
            trend_direction=direction,
            trend_velocity=velocity,
            bottleneck_count=len(bottlenecks),
        )

    def _wealth_trend(self, history: list[WealthDistribution]) -> tuple[str, float]:
        """Direction of total wealth across the last three snapshots."""
        if len(history) < 3:
            return "stable", 0.0
        first, last = history[-3].total_wealth, history[-1].total_wealth
        rate = (last - first) / max(1.0, first)
        threshold = self.ac["trend_threshold"]
        if rate > threshold:
            return "improving", rate
        if rate < -threshold:
            return "declining", abs(rate)
        return "stable", 0.0

    # ------------------------------------------------------------------
    # Reports
    # ------------------------------------------------------------------
    def generate_report(self) -> str:
        health = self.calculate_economic_health()
        distribution = self.calculate_wealth_distribution()
        c = health.components

        lines = [
            "=== ECONOMIC ANALYSIS REPORT ===",
            "",
            f"OVERALL HEALTH: {health.grade} ({health.overall_score:.1f}/100)",
            f"Trend: {health.trend_direction.upper()}",
            "",
            "COMPONENT SCORES:",
        ]
        for name, value in c.items():
            lines.append(f"- {name.replace('_', ' ').title()}: {value:.1f}/100")
        lines += [
            "",
            "WEALTH DISTRIBUTION:",
            f"- Total Wealth: {distribution.total_wealth:.0f} gold",
            f"- Mean Wealth: {distribution.mean_wealth:.0f} gold",
            f"- Median Wealth: {distribution.median_wealth:.0f} gold",
            f"- Gini Coefficient: {distribution.gini_coefficient * 100:.1f}%",
            f"- Top 10% Share: {distribution.top_10_percent_share * 100:.1f}%",
            f"- Bottom 50% Share: {distribution.bottom_50_percent_share * 100:.1f}%",
            f"- Concentration: {distribution.concentration.upper()}",
            "",
            f"ECONOMIC ISSUES ({len(health.issues)}):",
            *[f"- {issue}" for issue in health.issues],
            "",
            f"ECONOMIC STRENGTHS ({len(health.strengths)}):",
            *[f"- {s}" for s in health.strengths],
            "",
            f"BOTTLENECKS ({len(self.bottlenecks)}):",
        ]
        for b in self.bottlenecks[:10]:
            lines.append(f"- {b.type.value.upper()}: {b.description}")
            lines.append(f"  Severity: {b.severity * 100:.0f}% | Impact: {b.impact:.0f} gold")
            lines.append(f"  Fix: {b.recommendation}")
        return "\n".join(lines)

    def get_agent_profile(self, agent_id: str) -> str | None:
        """Text summary of one agent's economic position, None if unknown."""
        if not self.market.has_agent(agent_id):
            return None
        self.calculate_wealth_distribution()
        e = self.ledger.entities[agent_id]
        sign = "+" if e.cash_flow_24h > 0 else ""
        return "\n".join([
            f"=== ECONOMIC PROFILE: {agent_id} ===",
            "",
            "WEALTH:",
            f"- Gold: {e.current_gold:.0f}",
            f"- Inventory Value: {e.current_inventory_value:.0f}",
            f"- Total Wealth: {e.total_wealth:.0f}",
            f"- Wealth Rank: #{e.wealth_rank}",
            f"- Wealth Percentile: {e.wealth_percentile:.1f} (0 = richest)",
            "",
            "CASH FLOW:",
            f"- 24h Net Flow: {sign}{e.cash_flow_24h:.0f} gold",
            f"- Flow Velocity: {e.flow_velocity:.1f} flows/hour",
        ])
