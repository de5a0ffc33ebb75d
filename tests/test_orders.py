"""Tests for the order book and order settlement through the market."""

import pytest

from tradepost.core.config import MarketConfig
from tradepost.core.market import MarketSimulation
from tradepost.core.orders import OrderBook, OrderSide, OrderStatus

from conftest import TEST_CATALOG, merchant_profile


def _total_gold(market):
    return sum(market.wallets.values())


def _total_held(market, item_id):
    return sum(inv.get(item_id, 0) for inv in market.inventories.values())


class TestScenarioB:
    def test_sell_then_buy_executes_at_midpoint(self, traders):
        sell = traders.place_order("alice", "widget", OrderSide.SELL, 5, 8.0)
        assert sell.status == OrderStatus.PENDING

        buy = traders.place_order("bob", "widget", "buy", 5, 10.0)
        assert buy.status == OrderStatus.FILLED
        assert sell.status == OrderStatus.FILLED

        trade = traders.trades[-1]
        assert trade.price == pytest.approx(9.0)
        assert trade.quantity == 5
        assert (trade.buyer_id, trade.seller_id) == ("bob", "alice")
        assert traders.get_gold("alice") == pytest.approx(545.0)
        assert traders.get_gold("bob") == pytest.approx(455.0)
        assert traders.get_inventory("bob") == {"widget": 5}
        assert "widget" not in traders.get_inventory("alice")

    def test_filled_orders_leave_the_book(self, traders):
        traders.place_order("alice", "widget", OrderSide.SELL, 5, 8.0)
        traders.place_order("bob", "widget", OrderSide.BUY, 5, 10.0)
        assert traders.open_orders() == []

    def test_archetype_labels_on_trade(self, traders):
        traders.place_order("alice", "widget", OrderSide.SELL, 5, 8.0)
        traders.place_order("bob", "widget", OrderSide.BUY, 5, 10.0)
        trade = traders.trades[-1]
        assert trade.buyer_archetype == "merchant"
        assert trade.seller_archetype == "merchant"


class TestMatching:
    def test_no_cross_no_trade(self, traders):
        traders.place_order("alice", "widget", OrderSide.SELL, 5, 12.0)
        traders.place_order("bob", "widget", OrderSide.BUY, 5, 10.0)
        assert traders.trades == []
        assert len(traders.open_orders()) == 2

    def test_partial_fill(self, traders):
        sell = traders.place_order("alice", "widget", OrderSide.SELL, 2, 8.0)
        buy = traders.place_order("bob", "widget", OrderSide.BUY, 5, 10.0)
        assert sell.status == OrderStatus.FILLED
        assert buy.status == OrderStatus.PARTIAL
        assert buy.remaining == 3
        assert traders.open_orders("bob") == [buy]

    def test_best_price_first(self, traders):
        traders.place_order("alice", "widget", OrderSide.SELL, 2, 9.0)
        traders.place_order("carol", "widget", OrderSide.SELL, 2, 8.0)
        traders.place_order("bob", "widget", OrderSide.BUY, 2, 10.0)
        assert traders.trades[-1].seller_id == "carol"

    def test_earlier_order_wins_tie(self, traders):
        traders.place_order("carol", "widget", OrderSide.SELL, 2, 8.0)
        traders.place_order("alice", "widget", OrderSide.SELL, 2, 8.0)
        traders.place_order("bob", "widget", OrderSide.BUY, 2, 10.0)
        assert traders.trades[-1].seller_id == "carol"

    def test_no_self_match(self, traders):
        traders.set_holding("bob", "widget", 3)
        traders.place_order("bob", "widget", OrderSide.SELL, 3, 8.0)
        traders.place_order("bob", "widget", OrderSide.BUY, 3, 10.0)
        assert traders.trades == []

    def test_buy_walks_multiple_asks(self, traders):
        traders.place_order("alice", "widget", OrderSide.SELL, 2, 8.0)
        traders.place_order("carol", "widget", OrderSide.SELL, 2, 9.0)
        traders.place_order("bob", "widget", OrderSide.BUY, 4, 10.0)
        assert [t.seller_id for t in traders.trades] == ["alice", "carol"]
        assert traders.get_inventory("bob") == {"widget": 4}

    def test_settlement_moves_supply_demand_and_volatility(self, traders):
        item = traders.get_item("widget")
        supply, demand, vol = item.supply, item.demand, item.volatility
        traders.place_order("alice", "widget", OrderSide.SELL, 5, 8.0)
        traders.place_order("bob", "widget", OrderSide.BUY, 5, 10.0)
        assert item.supply == supply - 5
        assert item.demand == demand - 5
        assert item.volatility == pytest.approx(vol * 1.05)

    def test_trade_listener_notified(self, traders):
        seen = []
        traders.add_trade_listener(seen.append)
        traders.place_order("alice", "widget", OrderSide.SELL, 5, 8.0)
        traders.place_order("bob", "widget", OrderSide.BUY, 5, 10.0)
        assert [t.trade_id for t in seen] == ["trade_0"]


class TestRejections:
    def test_unknown_item(self, traders):
        assert traders.place_order("bob", "nothing", OrderSide.BUY, 1, 10.0) is None

    def test_unknown_agent(self, traders):
        assert traders.place_order("zed", "widget", OrderSide.BUY, 1, 10.0) is None

    def test_non_positive_quantity(self, traders):
        assert traders.place_order("bob", "widget", OrderSide.BUY, 0, 10.0) is None

    def test_non_positive_price(self, traders):
        assert traders.place_order("bob", "widget", OrderSide.BUY, 1, 0.0) is None

    def test_buy_beyond_funds(self, traders):
        assert traders.place_order("bob", "widget", OrderSide.BUY, 100, 10.0) is None

    def test_sell_without_goods(self, traders):
        assert traders.place_order("bob", "widget", OrderSide.SELL, 1, 10.0) is None

    def test_invalid_side(self, traders):
        with pytest.raises(ValueError):
            traders.place_order("bob", "widget", "hold", 1, 10.0)

    def test_rejection_changes_nothing(self, traders):
        gold = _total_gold(traders)
        traders.place_order("bob", "widget", OrderSide.SELL, 1, 10.0)
        assert _total_gold(traders) == gold
        assert traders.open_orders() == []


class TestSettlementRecheck:
    def test_buyer_spent_gold_elsewhere(self, traders):
        buy = traders.place_order("bob", "widget", OrderSide.BUY, 5, 10.0)
        traders.charge_gold("bob", 480.0)
        traders.place_order("alice", "widget", OrderSide.SELL, 5, 8.0)
        assert buy.status == OrderStatus.CANCELLED
        assert traders.trades == []
        assert traders.get_inventory("alice") == {"widget": 5}

    def test_seller_gave_goods_away(self, traders):
        sell = traders.place_order("alice", "widget", OrderSide.SELL, 5, 8.0)
        traders.transfer_item("alice", "carol", "widget", 5)
        traders.place_order("bob", "widget", OrderSide.BUY, 5, 10.0)
        assert sell.status == OrderStatus.CANCELLED
        assert traders.get_gold("bob") == pytest.approx(500.0)


class TestLifecycle:
    def test_cancel(self, traders):
        order = traders.place_order("alice", "widget", OrderSide.SELL, 5, 12.0)
        assert traders.cancel_order(order.order_id)
        assert order.status == OrderStatus.CANCELLED
        assert not traders.cancel_order(order.order_id)
        traders.cleanup_orders()
        assert traders.open_orders() == []

    def test_cancel_unknown(self, traders):
        assert not traders.cancel_order("order_999")

    def test_expiry_after_one_hour(self, traders):
        order = traders.place_order("alice", "widget", OrderSide.SELL, 5, 12.0)
        assert order.expires_at == 12
        traders.advance_clock(11)
        assert traders.cleanup_orders() == []
        traders.advance_clock(1)
        removed = traders.cleanup_orders()
        assert removed == [order]
        assert order.status == OrderStatus.EXPIRED

    def test_book_without_ttl_never_expires(self):
        book = OrderBook()
        order = book.add("a", "widget", OrderSide.BUY, 1, 5.0, tick=0)
        assert order.expires_at is None
        assert book.cleanup(10_000) == []

    def test_order_ids_are_sequential(self, traders):
        a = traders.place_order("alice", "widget", OrderSide.SELL, 1, 12.0)
        b = traders.place_order("carol", "widget", OrderSide.SELL, 1, 12.0)
        assert (a.order_id, b.order_id) == ("order_0", "order_1")
        assert a.sequence < b.sequence


class TestInvariants:
    def test_gold_and_items_conserved(self, traders):
        gold = _total_gold(traders)
        held = _total_held(traders, "widget")
        traders.place_order("alice", "widget", OrderSide.SELL, 3, 8.0)
        traders.place_order("carol", "widget", OrderSide.SELL, 4, 9.5)
        traders.place_order("bob", "widget", OrderSide.BUY, 6, 10.0)
        assert _total_gold(traders) == pytest.approx(gold)
        assert _total_held(traders, "widget") == held

    def test_matching_is_deterministic(self):
        def run():
            market = MarketSimulation(MarketConfig(random_seed=1, item_catalog=[dict(d) for d in TEST_CATALOG]))
            for agent_id in ("a", "b", "c", "d"):
                market.register_agent(agent_id, merchant_profile())
            market.set_holding("a", "gizmo", 3)
            market.set_holding("b", "gizmo", 3)
            market.place_order("a", "gizmo", OrderSide.SELL, 3, 95.0)
            market.place_order("b", "gizmo", OrderSide.SELL, 2, 95.0)
            market.place_order("c", "gizmo", OrderSide.BUY, 2, 110.0)
            market.place_order("d", "gizmo", OrderSide.BUY, 3, 100.0)
            return [(t.buyer_id, t.seller_id, t.quantity, t.price) for t in market.trades]

        first = run()
        assert first == run()
        assert first[0] == ("c", "a", 2, pytest.approx(102.5))
