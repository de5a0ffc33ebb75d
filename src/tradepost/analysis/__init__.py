"""Resource flow ledger, wealth statistics, bottlenecks and health scoring."""

from tradepost.analysis.bottlenecks import BottleneckDetector, BottleneckType, EconomicBottleneck
from tradepost.analysis.flows import (
    EconomicEntity,
    FlowType,
    ResourceFlow,
    ResourceFlowLedger,
    ResourceNode,
    ResourceType,
    WealthDistribution,
)
from tradepost.analysis.health import EconomicAnalyzer, EconomicHealthReport, grade_for
from tradepost.analysis.stats import gini_coefficient, percentile

__all__ = [
    "BottleneckDetector",
    "BottleneckType",
    "EconomicAnalyzer",
    "EconomicBottleneck",
    "EconomicEntity",
    "EconomicHealthReport",
    "FlowType",
    "ResourceFlow",
    "ResourceFlowLedger",
    "ResourceNode",
    "ResourceType",
    "WealthDistribution",
    "gini_coefficient",
    "grade_for",
    "percentile",
]
