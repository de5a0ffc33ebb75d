"""
Trading network endpoints for reputations, routes, the network graph and opportunities.
"""

from __future__ import annotations

from fastapi import APIRouter, HTTPException, Query, Request

from tradepost.api.serializers import serialize_opportunity, serialize_reputation, serialize_route

router = APIRouter()


def _get_session(request: Request, session_id: str):
    sm = request.app.state.session_manager
    try:
        return sm.get_session(session_id)
    except KeyError:
        raise HTTPException(status_code=404, detail=f"Session '{session_id}' not found")


@router.get("/{session_id}/reputations")
def list_reputations(request: Request, session_id: str):
    session = _get_session(request, session_id)
    with session.lock:
        reps = session.engine.network.reputations.values()
        return [serialize_reputation(r) for r in sorted(reps, key=lambda r: r.agent_id)]


@router.get("/{session_id}/reputations/{agent_id}")
def get_reputation(request: Request, session_id: str, agent_id: str):
    session = _get_session(request, session_id)
    with session.lock:
        rep = session.engine.network.get_trading_stats(agent_id)
        if rep is None:
            raise HTTPException(status_code=404, detail=f"Agent '{agent_id}' not found")
        return serialize_reputation(rep)


@router.get("/{session_id}/routes")
def get_routes(request: Request, session_id: str, limit: int = Query(10, ge=1, le=500)):
    session = _get_session(request, session_id)
    with session.lock:
        return [serialize_route(r) for r in session.engine.network.get_top_trade_routes(limit)]


@router.get("/{session_id}/network")
def get_network(request: Request, session_id: str):
    """Node/edge graph of agents weighted by route volume."""
    session = _get_session(request, session_id)
    with session.lock:
        return session.engine.network.get_trading_network()


@router.get("/{session_id}/offers")
def get_active_offers(request: Request, session_id: str):
    session = _get_session(request, session_id)
    with session.lock:
        return [o.to_dict() for o in session.engine.network.active_offers.values()]


@router.get("/{session_id}/opportunities/{agent_id}")
def get_opportunities(request: Request, session_id: str, agent_id: str):
    session = _get_session(request, session_id)
    with session.lock:
        network = session.engine.network
        if agent_id not in network.reputations:
            raise HTTPException(status_code=404, detail=f"Agent '{agent_id}' not found")
        return [serialize_opportunity(o) for o in network.find_trade_opportunities(agent_id)]


@router.get("/{session_id}/report")
def get_trading_report(request: Request, session_id: str):
    session = _get_session(request, session_id)
    with session.lock:
        return {"report": session.engine.network.get_trading_network_report()}
