"""
Order book with price-time priority matching of buy and sell orders.

Buy orders are ranked by price limit descending, sell orders ascending;
ties are broken by submission sequence (FIFO). Matching is fully
deterministic for a given order list. Settlement (gold/item transfer) is
delegated to a callback supplied by the market so the book never touches
wallets or inventories directly.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Callable


class OrderSide(str, Enum):
    BUY = "buy"
    SELL = "sell"


class OrderStatus(str, Enum):
    PENDING = "pending"
    PARTIAL = "partial"
    FILLED = "filled"
    CANCELLED = "cancelled"
    EXPIRED = "expired"


OPEN_STATUSES = frozenset({OrderStatus.PENDING, OrderStatus.PARTIAL})


@dataclass
class MarketOrder:
    """A limit order resting in the book."""
    order_id: str
    owner_id: str
    item_id: str
    side: OrderSide
    quantity: int
    price_limit: float
    created_at: int
    sequence: int
    filled: int = 0
    status: OrderStatus = OrderStatus.PENDING
    expires_at: int | None = None

    @property
    def remaining(self) -> int:
        return self.quantity - self.filled

    @property
    def is_open(self) -> bool:
        return self.status in OPEN_STATUSES


@dataclass(frozen=True)
class Trade:
    """Immutable record of a completed match."""
    trade_id: str
    buyer_id: str
    seller_id: str
    item_id: str
    quantity: int
    price: float
    tick: int
    buyer_archetype: str
    seller_archetype: str

    @property
    def value(self) -> float:
        return self.quantity * self.price


# settle(buy, sell, quantity, price) -> Trade, or None if a party cannot settle
SettleFn = Callable[[MarketOrder, MarketOrder, int, float], "Trade | None"]


class OrderBook:
    """Pending order pool for all items."""

    def __init__(self, ttl_ticks: int | None = None):
        self.ttl_ticks = ttl_ticks
        self.orders: dict[str, MarketOrder] = {}
        self._next_order_id = 0
        self._sequence = 0

    def add(
        self,
        owner_id: str,
        item_id: str,
        side: OrderSide,
        quantity: int,
        price_limit: float,
        tick: int,
    ) -> MarketOrder:
        """Create an order and put it in the pending pool."""
        order = MarketOrder(
            order_id=f"order_{self._next_order_id}",
            owner_id=owner_id,
            item_id=item_id,
            side=side,
            quantity=quantity,
            price_limit=price_limit,
            created_at=tick,
            sequence=self._sequence,
            expires_at=tick + self.ttl_ticks if self.ttl_ticks else None,
        )
        self._next_order_id += 1
        self._sequence += 1
        self.orders[order.order_id] = order
        return order

    def get(self, order_id: str) -> MarketOrder | None:
        return self.orders.get(order_id)

    def cancel(self, order_id: str) -> bool:
        order = self.orders.get(order_id)
        if order is None or not order.is_open:
            return False
        order.status = OrderStatus.CANCELLED
        return True

    def open_orders(self, item_id: str, side: OrderSide) -> list[MarketOrder]:
        """Open orders for one side of an item's book in priority order."""
        orders = [
            o for o in self.orders.values()
            if o.item_id == item_id and o.side == side and o.is_open
        ]
        if side == OrderSide.BUY:
            return sorted(orders, key=lambda o: (-o.price_limit, o.sequence))
        return sorted(orders, key=lambda o: (o.price_limit, o.sequence))

    def orders_for(self, owner_id: str) -> list[MarketOrder]:
        return [o for o in self.orders.values() if o.owner_id == owner_id and o.is_open]

    def match(self, item_id: str, settle: SettleFn, tick: int) -> list[Trade]:
        """Match all compatible orders for one item.

        Each buy walks the sell side from the cheapest ask while the buy
        limit covers the ask. Trades execute at the midpoint of the two
        limits for the smaller remaining quantity.
        """
        buys = self.open_orders(item_id, OrderSide.BUY)
        sells = self.open_orders(item_id, OrderSide.SELL)
        trades: list[Trade] = []

        for buy in buys:
            for sell in sells:
                if not buy.is_open:
                    break
                if not sell.is_open:
                    continue
                if sell.price_limit > buy.price_limit:
                    break
                if sell.owner_id == buy.owner_id:
                    continue

                quantity = min(buy.remaining, sell.remaining)
                price = (buy.price_limit + sell.price_limit) / 2
                trade = settle(buy, sell, quantity, price)
                if trade is None:
                    continue
                self._apply_fill(buy, quantity)
                self._apply_fill(sell, quantity)
                trades.append(trade)

        self.cleanup(tick)
        return trades

    def cleanup(self, tick: int) -> list[MarketOrder]:
        """Expire orders past their TTL and drop every terminal order.

        Returns the orders removed from the pool.
        """
        removed: list[MarketOrder] = []
        for order_id, order in list(self.orders.items()):
            if order.is_open and order.expires_at is not None and tick >= order.expires_at:
                order.status = OrderStatus.EXPIRED
            if not order.is_open:
                removed.append(order)
                del self.orders[order_id]
        return removed

    @staticmethod
    def _apply_fill(order: MarketOrder, quantity: int) -> None:
        order.filled += quantity
        if order.filled >= order.quantity:
            order.status = OrderStatus.FILLED
        else:
            order.status = OrderStatus.PARTIAL
