"""
Detects bubbles, cornering, shortages, surpluses and crashes.

Manipulation flags (bubble → pump_and_dump, cornering) are attached to
items right after each price update and expire after a TTL. Market-wide
phenomena are computed on demand and never stored.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

from tradepost.core.catalog import ManipulationFlag, ManipulationType, MarketItem

if TYPE_CHECKING:
    from tradepost.core.config import MarketConfig

logger = logging.getLogger(__name__)


class PhenomenonType(str, Enum):
    BUBBLE = "bubble"
    CRASH = "crash"
    SHORTAGE = "shortage"
    SURPLUS = "surplus"


@dataclass(frozen=True)
class MarketPhenomenon:
    type: PhenomenonType
    item_id: str
    severity: float
    description: str
    detected_at: int


class PhenomenonDetector:
    """Detects manipulation and market-wide phenomena for catalog items."""

    def __init__(self, config: MarketConfig):
        self.config = config
        self.pc = config.phenomena_config
        self.flag_ttl_ticks = config.hours_to_ticks(self.pc["flag_ttl_hours"])

    # ------------------------------------------------------------------
    # Manipulation flags
    # ------------------------------------------------------------------
    def bubble_severity(self, item: MarketItem) -> float:
        """Excess of the price over the bubble threshold, capped at 1."""
        threshold = item.base_cost * self.pc["bubble_threshold"]
        if item.current_price <= threshold:
            return 0.0
        return min(1.0, item.current_price / threshold - 1.0)

    def cornering_share(self, item: MarketItem, holdings: dict[str, int]) -> tuple[str | None, float]:
        """Largest single holder of *item* and its share of circulating supply."""
        if not holdings:
            return None, 0.0
        circulating = item.supply + sum(holdings.values())
        if circulating <= 0:
            return None, 0.0
        holder = max(sorted(holdings), key=lambda a: holdings[a])
        return holder, holdings[holder] / circulating

    def detect(self, item: MarketItem, holdings: dict[str, int], tick: int) -> list[ManipulationFlag]:
        """Expire stale flags on *item* and raise new ones. Returns new flags."""
        self.expire_flags(item, tick)
        active = {f.type for f in item.manipulation_flags}
        raised: list[ManipulationFlag] = []

        severity = self.bubble_severity(item)
        if severity > 0 and ManipulationType.PUMP_AND_DUMP not in active:
            raised.append(ManipulationFlag(
                type=ManipulationType.PUMP_AND_DUMP,
                severity=severity,
                detected_at=tick,
                description=(
                    f"{item.name} trading at {item.current_price / item.base_cost:.1f}x base cost"
                ),
            ))

        holder, share = self.cornering_share(item, holdings)
        if share > self.pc["cornering_threshold"] and ManipulationType.CORNERING not in active:
            raised.append(ManipulationFlag(
                type=ManipulationType.CORNERING,
                severity=min(1.0, share),
                detected_at=tick,
                description=f"{holder} holds {share:.0%} of circulating {item.name}",
            ))

        for flag in raised:
            logger.info("Manipulation flag on %s: %s", item.item_id, flag.description)
        item.manipulation_flags.extend(raised)
        return raised

    def expire_flags(self, item: MarketItem, tick: int) -> None:
        item.manipulation_flags = [
            f for f in item.manipulation_flags
            if tick - f.detected_at < self.flag_ttl_ticks
        ]

    # ------------------------------------------------------------------
    # Market-wide phenomena
    # ------------------------------------------------------------------
    def market_phenomena(self, items: dict[str, MarketItem], tick: int) -> list[MarketPhenomenon]:
        pc = self.pc
        found: list[MarketPhenomenon] = []
        for item in items.values():
            severity = self.bubble_severity(item)
            if severity > 0:
                found.append(MarketPhenomenon(
                    PhenomenonType.BUBBLE, item.item_id, severity,
                    f"{item.name} price far above base cost", tick,
                ))

            if item.supply < item.demand * pc["shortage_threshold"]:
                found.append(MarketPhenomenon(
                    PhenomenonType.SHORTAGE, item.item_id,
                    max(0.0, 1.0 - item.supply / max(1.0, item.demand)),
                    f"{item.name} supply cannot meet demand", tick,
                ))

            if item.supply > item.demand * pc["surplus_ratio"]:
                found.append(MarketPhenomenon(
                    PhenomenonType.SURPLUS, item.item_id,
                    min(1.0, item.supply / max(1.0, item.demand) / pc["surplus_ratio"]),
                    f"{item.name} oversupplied", tick,
                ))

            prices = [p.price for p in item.price_history]
            if prices:
                high = max(prices)
                if high > 0 and item.current_price < high * pc["crash_threshold"]:
                    found.append(MarketPhenomenon(
                        PhenomenonType.CRASH, item.item_id,
                        min(1.0, 1.0 - item.current_price / high),
                        f"{item.name} fell to {item.current_price / high:.0%} of its recent high", tick,
                    ))
        return found
