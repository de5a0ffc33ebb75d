"""Tests for economic bottleneck detection."""

import pytest

from tradepost.analysis.bottlenecks import BottleneckDetector, BottleneckType
from tradepost.analysis.flows import ResourceFlowLedger


@pytest.fixture
def detector(config):
    return BottleneckDetector(config)


@pytest.fixture
def ledger(traders):
    return ResourceFlowLedger(traders)


class TestSupply:
    def test_scarce_item(self, detector, market):
        widget = market.get_item("widget")
        widget.supply, widget.demand = 1, 10
        found = detector.detect_supply(market)
        assert [b.bottleneck_id for b in found] == ["supply_widget"]
        assert found[0].type == BottleneckType.SUPPLY
        assert found[0].severity > 0.8
        assert found[0].severity == pytest.approx(0.9)
        assert found[0].affected_items == ["widget"]
        assert found[0].impact == pytest.approx(10 * 10)

    def test_healthy_catalog(self, detector, market):
        assert detector.detect_supply(market) == []


class TestDemand:
    def test_collapsed_demand(self, detector, market):
        widget = market.get_item("widget")
        widget.supply, widget.demand = 100, 10
        found = detector.detect_demand(market)
        assert [b.bottleneck_id for b in found] == ["demand_widget"]
        assert found[0].severity == pytest.approx(0.9)

    def test_small_stock_ignored(self, detector, market):
        widget = market.get_item("widget")
        widget.supply, widget.demand = 10, 0
        assert detector.detect_demand(market) == []


class TestLiquidity:
    def test_asset_rich_gold_poor(self, detector, traders):
        for agent_id in ("alice", "carol"):
            traders.wallets[agent_id] = 10.0
            traders.set_holding(agent_id, "widget", 20)
        found = detector.detect_liquidity(traders)
        assert len(found) == 1
        assert found[0].severity == pytest.approx(2 / 3)
        assert found[0].affected_agents == ["alice", "carol"]
        assert found[0].impact == pytest.approx(2 * 210.0)

    def test_liquid_market(self, detector, traders):
        assert detector.detect_liquidity(traders) == []

    def test_poor_agents_are_not_illiquid(self, detector, traders):
        for agent_id in traders.agent_ids:
            traders.wallets[agent_id] = 10.0
            traders.set_holding(agent_id, "widget", 1)
        assert detector.detect_liquidity(traders) == []

    def test_no_agents(self, detector, market):
        assert detector.detect_liquidity(market) == []


class TestMonopoly:
    def test_dominant_holder(self, detector, traders):
        traders.set_holding("bob", "gizmo", 30)
        found = detector.detect_monopoly(traders)
        assert [b.bottleneck_id for b in found] == ["monopoly_gizmo"]
        assert found[0].severity == pytest.approx(0.6)
        assert found[0].affected_agents == ["bob"]
        assert found[0].impact == pytest.approx(3000.0)

    def test_spread_holdings(self, detector, traders):
        assert detector.detect_monopoly(traders) == []


class TestStagnation:
    def test_no_flows(self, detector, traders, ledger):
        found = detector.detect_stagnation(traders, ledger)
        assert len(found) == 1
        assert found[0].severity == 1.0

    def test_partial_activity(self, detector, traders, ledger):
        traders.grant_gold("alice", 5.0)
        found = detector.detect_stagnation(traders, ledger)
        assert found[0].severity == pytest.approx(1 - 1 / 1.5)

    def test_active_market(self, detector, traders, ledger):
        traders.grant_gold("alice", 5.0)
        traders.grant_gold("bob", 5.0)
        assert detector.detect_stagnation(traders, ledger) == []


class TestDetectAll:
    def test_combines_detectors(self, detector, traders, ledger):
        traders.get_item("trinket").supply = 1
        traders.set_holding("bob", "gizmo", 30)
        types = {b.type for b in detector.detect(traders, ledger)}
        assert types == {BottleneckType.SUPPLY, BottleneckType.MONOPOLY, BottleneckType.STAGNATION}
