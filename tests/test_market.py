"""Tests for the market facade: agents, transfers, shop trades and reporting."""

import pytest

from tradepost.analysis.flows import FlowType, ResourceType
from tradepost.core.catalog import ManipulationType
from tradepost.core.market import MarketSimulation
from tradepost.core.orders import OrderSide

from conftest import merchant_profile


class TestAgents:
    def test_register(self, market):
        archetype = market.register_agent("dora", merchant_profile(), initial_gold=75.0)
        assert archetype.type.value == "merchant"
        assert market.get_gold("dora") == 75.0
        assert market.get_inventory("dora") == {}
        assert market.has_agent("dora")

    def test_default_gold(self, market):
        market.register_agent("dora", merchant_profile())
        assert market.get_gold("dora") == market.config.initial_gold

    def test_duplicate_rejected(self, traders):
        with pytest.raises(ValueError):
            traders.register_agent("alice", merchant_profile())

    def test_unknown_agent_defaults(self, market):
        assert market.get_gold("zed") == 0.0
        assert market.get_inventory("zed") == {}
        assert market.get_archetype("zed") is None

    def test_set_holding(self, traders):
        traders.set_holding("bob", "gizmo", 2)
        assert traders.get_inventory("bob") == {"gizmo": 2}
        traders.set_holding("bob", "gizmo", 0)
        assert traders.get_inventory("bob") == {}

    def test_set_holding_unknown(self, traders):
        with pytest.raises(KeyError):
            traders.set_holding("zed", "widget", 1)
        with pytest.raises(KeyError):
            traders.set_holding("bob", "nothing", 1)

    def test_wealth(self, traders):
        assert traders.inventory_value("alice") == pytest.approx(50.0)
        assert traders.agent_wealth("alice") == pytest.approx(550.0)

    def test_holdings(self, traders):
        assert traders.holdings("widget") == {"alice": 5, "carol": 5}
        assert traders.total_inventory("widget") == 10


class TestTransfers:
    def test_transfer_gold(self, traders):
        assert traders.transfer_gold("alice", "bob", 100.0)
        assert traders.get_gold("alice") == 400.0
        assert traders.get_gold("bob") == 600.0

    def test_transfer_gold_rejections(self, traders):
        assert not traders.transfer_gold("alice", "bob", 0.0)
        assert not traders.transfer_gold("alice", "bob", 1000.0)
        assert not traders.transfer_gold("alice", "zed", 1.0)

    def test_transfer_item(self, traders):
        assert traders.transfer_item("alice", "bob", "widget", 2)
        assert traders.get_inventory("alice") == {"widget": 3}
        assert traders.get_inventory("bob") == {"widget": 2}

    def test_transfer_item_rejections(self, traders):
        assert not traders.transfer_item("bob", "alice", "widget", 1)
        assert not traders.transfer_item("alice", "bob", "nothing", 1)
        assert not traders.transfer_item("alice", "bob", "widget", -1)

    def test_every_transfer_emits_a_flow(self, traders):
        flows = []
        traders.add_flow_listener(lambda *args, **kwargs: flows.append((args, kwargs)))
        traders.transfer_gold("alice", "bob", 10.0)
        traders.transfer_item("alice", "bob", "widget", 1)
        traders.grant_gold("bob", 5.0)
        traders.grant_item("bob", "gizmo", 1)
        traders.charge_gold("bob", 1.0)
        assert [args[4] for args, _ in flows] == [
            FlowType.TRADE, FlowType.TRADE, FlowType.JOB_REWARD, FlowType.COMBAT_LOOT, FlowType.TAX,
        ]
        assert flows[1][0][2] == ResourceType.ITEM
        assert flows[1][1]["item_id"] == "widget"

    def test_failed_transfer_emits_nothing(self, traders):
        flows = []
        traders.add_flow_listener(lambda *args, **kwargs: flows.append(args))
        traders.transfer_gold("bob", "alice", 10_000.0)
        traders.grant_gold("zed", 5.0)
        traders.charge_gold("bob", 10_000.0)
        assert flows == []

    def test_grant_item_leaves_supply_alone(self, traders):
        supply = traders.get_item("gizmo").supply
        traders.grant_item("bob", "gizmo", 3)
        assert traders.get_item("gizmo").supply == supply


class TestShop:
    def test_buy_from_market(self, traders):
        item = traders.get_item("widget")
        supply = item.supply
        assert traders.buy_from_market("bob", "widget", 2)
        assert traders.get_gold("bob") == pytest.approx(480.0)
        assert traders.get_inventory("bob") == {"widget": 2}
        assert item.supply == supply - 2

    def test_buy_rejections(self, traders):
        assert not traders.buy_from_market("bob", "gizmo", 21)
        assert not traders.buy_from_market("bob", "gizmo", 6)
        assert not traders.buy_from_market("bob", "nothing", 1)

    def test_sell_to_market_pays_less_spread(self, traders):
        item = traders.get_item("widget")
        supply = item.supply
        assert traders.sell_to_market("alice", "widget", 2)
        assert traders.get_gold("alice") == pytest.approx(500 + 2 * 10 * 0.95)
        assert item.supply == supply + 2
        assert traders.get_inventory("alice") == {"widget": 3}

    def test_sell_without_goods(self, traders):
        assert not traders.sell_to_market("bob", "widget", 1)


class TestClockAndPrices:
    def test_advance_clock(self, market):
        assert market.advance_clock() == 1
        assert market.advance_clock(11) == 12
        assert market.tick == 12

    def test_update_prices_records_history(self, traders):
        traders.advance_clock()
        traders.update_prices()
        for item in traders.get_all_items():
            assert item.price_history[-1].tick == 1
            assert item.last_update == 1

    def test_update_prices_flags_cornering(self, traders):
        traders.set_holding("bob", "gizmo", 30)
        traders.advance_clock()
        traders.update_prices()
        flags = traders.get_item("gizmo").manipulation_flags
        assert [f.type for f in flags] == [ManipulationType.CORNERING]

    def test_recent_volume_window(self, traders):
        traders.place_order("alice", "widget", OrderSide.SELL, 5, 8.0)
        traders.place_order("bob", "widget", OrderSide.BUY, 3, 10.0)
        assert traders.recent_volume("widget") == 3
        traders.advance_clock(12)
        assert traders.recent_volume("widget") == 0
        assert traders.recent_volume("widget", hours=2) == 3

    def test_fair_value_and_trend_for_unknown_item(self, market):
        assert market.calculate_fair_value("nothing") is None
        assert market.get_price_trend("nothing").value == "stable"

    def test_same_seed_same_market(self, config):
        def run():
            market = MarketSimulation(config)
            for _ in range(30):
                market.advance_clock()
                market.simulate_production_cycle()
                market.update_prices()
            return [round(i.current_price, 9) for i in market.get_all_items()]

        assert run() == run()


class TestReporting:
    def test_metrics(self, traders):
        traders.place_order("alice", "widget", OrderSide.SELL, 5, 8.0)
        traders.place_order("bob", "widget", OrderSide.BUY, 5, 10.0)
        m = traders.get_economic_metrics()
        assert m.volume_24h == pytest.approx(45.0)
        assert m.active_traders == 2
        assert m.top_items == [{"item_id": "widget", "volume": pytest.approx(45.0)}]
        assert m.total_wealth == pytest.approx(sum(traders.agent_wealth(a) for a in traders.agent_ids))
        assert 0.0 <= m.market_health <= 1.0

    def test_market_cap_counts_inventories(self, traders):
        m = traders.get_economic_metrics()
        expected = sum(i.current_price * (i.supply + traders.total_inventory(i.item_id))
                       for i in traders.get_all_items())
        assert m.market_cap == pytest.approx(expected)

    def test_recent_trades(self, traders):
        traders.place_order("alice", "widget", OrderSide.SELL, 5, 8.0)
        traders.place_order("bob", "widget", OrderSide.BUY, 2, 10.0)
        traders.place_order("carol", "widget", OrderSide.BUY, 3, 10.0)
        assert [t.buyer_id for t in traders.get_recent_trades(1)] == ["carol"]
        assert traders.get_recent_trades(0) == []

    def test_report(self, traders):
        traders.get_item("widget").supply = 1
        report = traders.get_market_report()
        assert report.startswith("=== MARKET REPORT ===")
        assert "Active Traders: 0" in report
        assert "SHORTAGE" in report
