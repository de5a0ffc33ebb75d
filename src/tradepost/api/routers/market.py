"""
Market endpoints: items, prices, orders, trades and phenomena.
"""

from __future__ import annotations

from fastapi import APIRouter, HTTPException, Query, Request

from tradepost.api.schemas import ItemSummary, PlaceOrderRequest, PlaceOrderResponse
from tradepost.api.serializers import (
    serialize_item,
    serialize_item_detail,
    serialize_metrics,
    serialize_order,
    serialize_phenomenon,
    serialize_trade,
)

router = APIRouter()


def _get_session(request: Request, session_id: str):
    sm = request.app.state.session_manager
    try:
        return sm.get_session(session_id)
    except KeyError:
        raise HTTPException(status_code=404, detail=f"Session '{session_id}' not found")


@router.get("/{session_id}/items", response_model=list[ItemSummary])
def list_items(request: Request, session_id: str):
    session = _get_session(request, session_id)
    with session.lock:
        return [serialize_item(i) for i in session.engine.market.get_all_items()]


@router.get("/{session_id}/items/{item_id}")
def get_item(request: Request, session_id: str, item_id: str):
    """Item detail with fair value, trend and price history."""
    session = _get_session(request, session_id)
    with session.lock:
        market = session.engine.market
        item = market.get_item(item_id)
        if item is None:
            raise HTTPException(status_code=404, detail=f"Item '{item_id}' not found")
        return serialize_item_detail(
            item, market.calculate_fair_value(item_id), market.get_price_trend(item_id).value,
        )


@router.get("/{session_id}/metrics")
def get_metrics(request: Request, session_id: str):
    session = _get_session(request, session_id)
    with session.lock:
        return serialize_metrics(session.engine.market.get_economic_metrics())


@router.get("/{session_id}/phenomena")
def get_phenomena(request: Request, session_id: str):
    session = _get_session(request, session_id)
    with session.lock:
        return [serialize_phenomenon(p) for p in session.engine.market.get_market_phenomena()]


@router.get("/{session_id}/trades")
def get_trades(request: Request, session_id: str, limit: int = Query(50, ge=1, le=1000)):
    session = _get_session(request, session_id)
    with session.lock:
        return [serialize_trade(t) for t in session.engine.market.get_recent_trades(limit)]


@router.get("/{session_id}/orders")
def get_orders(request: Request, session_id: str, agent_id: str | None = None):
    session = _get_session(request, session_id)
    with session.lock:
        return [serialize_order(o) for o in session.engine.market.open_orders(agent_id)]


@router.post("/{session_id}/orders", response_model=PlaceOrderResponse)
def place_order(request: Request, session_id: str, req: PlaceOrderRequest):
    """Submit a limit order. Rejected orders come back with accepted=false."""
    session = _get_session(request, session_id)
    with session.lock:
        market = session.engine.market
        if market.get_item(req.item_id) is None:
            raise HTTPException(status_code=404, detail=f"Item '{req.item_id}' not found")
        if not market.has_agent(req.agent_id):
            raise HTTPException(status_code=404, detail=f"Agent '{req.agent_id}' not found")
        trades_before = len(market.trades)
        order = market.place_order(req.agent_id, req.item_id, req.side, req.quantity, req.price_limit)
        if order is None:
            return {"accepted": False, "order": None, "trades": []}
        return {
            "accepted": True,
            "order": serialize_order(order),
            "trades": [serialize_trade(t) for t in market.trades[trades_before:]],
        }


@router.delete("/{session_id}/orders/{order_id}")
def cancel_order(request: Request, session_id: str, order_id: str):
    session = _get_session(request, session_id)
    with session.lock:
        if not session.engine.market.cancel_order(order_id):
            raise HTTPException(status_code=404, detail=f"Open order '{order_id}' not found")
    return {"cancelled": True}


@router.get("/{session_id}/report")
def get_market_report(request: Request, session_id: str):
    session = _get_session(request, session_id)
    with session.lock:
        return {"report": session.engine.market.get_market_report()}
