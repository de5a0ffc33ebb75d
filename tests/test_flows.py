"""Tests for the resource flow ledger and wealth distribution."""

import pytest

from tradepost.analysis.flows import FlowType, ResourceFlowLedger, ResourceType
from tradepost.core.config import MarketConfig
from tradepost.core.market import MarketSimulation
from tradepost.core.orders import OrderSide

from conftest import TEST_CATALOG, merchant_profile


@pytest.fixture
def ledger(traders):
    return ResourceFlowLedger(traders)


def _trade(market):
    """bob buys alice's 5 widgets at 9 each."""
    market.place_order("alice", "widget", OrderSide.SELL, 5, 8.0)
    market.place_order("bob", "widget", OrderSide.BUY, 5, 10.0)


def _limited_market(**limits):
    config = MarketConfig(random_seed=1, item_catalog=[dict(d) for d in TEST_CATALOG])
    config.analysis_config.update(limits)
    market = MarketSimulation(config)
    market.register_agent("alice", merchant_profile())
    market.register_agent("bob", merchant_profile())
    return market


class TestRecording:
    def test_trade_records_gold_and_item_flows(self, traders, ledger):
        _trade(traders)
        flows = list(ledger.flows)
        assert [(f.from_id, f.to_id, f.resource_type) for f in flows] == [
            ("bob", "alice", ResourceType.GOLD),
            ("alice", "bob", ResourceType.ITEM),
        ]
        assert all(f.flow_type == FlowType.TRADE for f in flows)
        assert flows[0].amount == pytest.approx(45.0)
        assert flows[1].amount == 5
        assert flows[1].item_id == "widget"
        assert flows[1].value == pytest.approx(45.0)

    def test_flow_ids_and_tick(self, traders, ledger):
        traders.advance_clock(7)
        traders.grant_gold("bob", 10.0)
        flow = ledger.flows[-1]
        assert flow.flow_id == "flow_0"
        assert flow.tick == 7

    def test_default_values(self, ledger):
        gold = ledger.record_flow("job_system", "alice", "gold", 12.0, "job_reward")
        assert gold.value == 12.0
        item = ledger.record_flow("alice", "bob", ResourceType.ITEM, 2, FlowType.GIFT, item_id="gizmo")
        assert item.value == pytest.approx(200.0)
        unknown = ledger.record_flow("alice", "bob", ResourceType.ITEM, 2, FlowType.GIFT, item_id="nothing")
        assert unknown.value == 0.0

    def test_invalid_flow_type(self, ledger):
        with pytest.raises(ValueError):
            ledger.record_flow("a", "b", "gold", 1.0, "bribe")

    def test_entities_track_balances(self, traders, ledger):
        _trade(traders)
        assert ledger.entities["alice"].current_gold == pytest.approx(545.0)
        assert ledger.entities["bob"].current_inventory_value == pytest.approx(50.0)
        assert ledger.entities["bob"].total_wealth == pytest.approx(505.0)

    def test_system_counterparty_gets_no_entity(self, traders, ledger):
        traders.grant_gold("bob", 10.0)
        assert "job_system" not in ledger.entities

    def test_flow_history_bounded(self):
        market = _limited_market(flow_history_limit=5)
        ledger = ResourceFlowLedger(market)
        for _ in range(8):
            market.grant_gold("alice", 1.0)
        assert len(ledger.flows) == 5
        assert ledger.flows[-1].flow_id == "flow_7"
        assert ledger.flows[0].flow_id == "flow_3"


class TestSystemNodes:
    def test_five_nodes(self, ledger):
        nodes = {n.node_id: n.node_type for n in ledger.get_resource_nodes()}
        assert nodes == {
            "job_system": "source", "combat_system": "source", "quest_system": "source",
            "shop_system": "sink", "tax_system": "sink",
        }

    def test_totals(self, traders, ledger):
        traders.grant_gold("bob", 25.0)
        traders.grant_gold("bob", 5.0, FlowType.QUEST_REWARD, "quest_system")
        traders.charge_gold("bob", 10.0)
        traders.buy_from_market("bob", "widget", 2)
        nodes = {n.node_id: n for n in ledger.get_resource_nodes()}
        assert nodes["job_system"].total_processed == pytest.approx(25.0)
        assert nodes["quest_system"].total_processed == pytest.approx(5.0)
        assert nodes["tax_system"].total_processed == pytest.approx(10.0)
        assert nodes["shop_system"].total_processed == pytest.approx(20.0)
        assert nodes["job_system"].flow_rate == pytest.approx(25.0)

    def test_item_loot_does_not_count_as_gold(self, traders, ledger):
        traders.grant_item("bob", "gizmo", 1)
        nodes = {n.node_id: n for n in ledger.get_resource_nodes()}
        assert nodes["combat_system"].total_processed == 0.0

    def test_flow_rate_only_counts_last_hour(self, traders, ledger):
        traders.grant_gold("bob", 25.0)
        traders.advance_clock(12)
        nodes = {n.node_id: n for n in ledger.get_resource_nodes()}
        assert nodes["job_system"].flow_rate == 0.0
        assert nodes["job_system"].total_processed == pytest.approx(25.0)


class TestCashFlow:
    def test_net_gold_over_a_day(self, traders, ledger):
        _trade(traders)
        traders.grant_gold("alice", 20.0)
        assert ledger.cash_flow_24h("alice") == pytest.approx(65.0)
        assert ledger.cash_flow_24h("bob") == pytest.approx(-45.0)

    def test_old_flows_drop_out(self, traders, ledger):
        _trade(traders)
        traders.advance_clock(traders.config.ticks_per_day)
        assert ledger.cash_flow_24h("alice") == 0.0

    def test_velocity(self, traders, ledger):
        _trade(traders)
        traders.grant_gold("alice", 20.0)
        assert ledger.flow_velocity("alice") == 3.0
        assert ledger.flow_velocity("carol") == 0.0

    def test_refresh_entity(self, traders, ledger):
        _trade(traders)
        entity = ledger.refresh_entity("bob")
        assert entity.cash_flow_24h == pytest.approx(-45.0)
        assert entity.flow_velocity == 2.0


class TestWealthDistribution:
    def test_totals_match_agent_wealth(self, traders, ledger):
        _trade(traders)
        traders.grant_gold("carol", 100.0)
        dist = ledger.calculate_wealth_distribution()
        expected = sum(traders.agent_wealth(a) for a in traders.agent_ids)
        assert dist.total_wealth == pytest.approx(expected)

    def test_statistics(self, ledger):
        dist = ledger.calculate_wealth_distribution()
        assert dist.agent_count == 3
        assert dist.total_wealth == pytest.approx(1600.0)
        assert dist.mean_wealth == pytest.approx(1600 / 3)
        assert dist.median_wealth == pytest.approx(550.0)
        assert dist.percentiles["p10"] == pytest.approx(500.0)
        assert dist.percentiles["p99"] == pytest.approx(550.0)
        assert dist.top_10_percent_share == pytest.approx(550 / 1600)
        assert dist.bottom_50_percent_share == pytest.approx(1050 / 1600)
        assert dist.gini_coefficient == pytest.approx(200 / 9600)
        assert dist.concentration == "low"

    def test_ranks_and_percentiles(self, ledger):
        ledger.calculate_wealth_distribution()
        ranks = {a: (e.wealth_rank, e.wealth_percentile) for a, e in ledger.entities.items()}
        assert ranks["alice"] == (1, 0.0)
        assert ranks["carol"][0] == 2
        assert ranks["carol"][1] == pytest.approx(100 / 3)
        assert ranks["bob"][0] == 3

    def test_empty_market(self, market):
        dist = ResourceFlowLedger(market).calculate_wealth_distribution()
        assert dist.agent_count == 0
        assert dist.total_wealth == 0.0
        assert dist.concentration == "low"

    def test_history_bounded(self):
        market = _limited_market(wealth_history_limit=3)
        ledger = ResourceFlowLedger(market)
        for _ in range(5):
            ledger.snapshot_wealth()
        assert len(ledger.wealth_history) == 3

    def test_calculation_is_not_recorded(self, ledger):
        ledger.calculate_wealth_distribution()
        assert len(ledger.wealth_history) == 0
        assert ledger.snapshot_wealth() is ledger.wealth_history[-1]


class TestFlowGraph:
    def test_nodes_and_edges(self, traders, ledger):
        _trade(traders)
        traders.grant_gold("alice", 20.0)
        graph = ledger.generate_flow_graph()
        nodes = {n.id: n for n in graph["nodes"]}
        assert nodes["job_system"].type == "system"
        assert nodes["alice"].type == "agent"
        assert nodes["alice"].inflow == pytest.approx(65.0)
        assert nodes["alice"].outflow == pytest.approx(45.0)
        assert nodes["alice"].net_flow == pytest.approx(20.0)
        assert nodes["carol"].inflow == 0.0

        edges = {(e.source, e.target, e.flow_type): e for e in graph["edges"]}
        assert len(edges) == 3
        assert edges[("bob", "alice", FlowType.TRADE)].value == pytest.approx(45.0)
        assert edges[("job_system", "alice", FlowType.JOB_REWARD)].volume == 1

    def test_edges_aggregate(self, traders, ledger):
        for _ in range(3):
            traders.grant_gold("bob", 10.0)
        edges = ledger.generate_flow_graph()["edges"]
        assert len(edges) == 1
        assert (edges[0].value, edges[0].volume) == (pytest.approx(30.0), 3)

    def test_window(self, traders, ledger):
        traders.grant_gold("bob", 10.0)
        traders.advance_clock(24)
        assert ledger.generate_flow_graph(hours=1)["edges"] == []
        assert len(ledger.generate_flow_graph(hours=3)["edges"]) == 1
