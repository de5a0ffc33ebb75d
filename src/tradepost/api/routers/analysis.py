"""
Economic analysis endpoints (wealth distribution, bottlenecks, health, flows).
"""

from __future__ import annotations

from fastapi import APIRouter, HTTPException, Query, Request

from tradepost.api.serializers import (
    serialize_bottleneck,
    serialize_distribution,
    serialize_entity,
    serialize_flow_graph,
    serialize_health,
    serialize_node,
)

router = APIRouter()


def _get_session(request: Request, session_id: str):
    sm = request.app.state.session_manager
    try:
        return sm.get_session(session_id)
    except KeyError:
        raise HTTPException(status_code=404, detail=f"Session '{session_id}' not found")


@router.get("/{session_id}/wealth")
def get_wealth_distribution(request: Request, session_id: str):
    session = _get_session(request, session_id)
    with session.lock:
        return serialize_distribution(session.engine.analyzer.calculate_wealth_distribution())


@router.get("/{session_id}/bottlenecks")
def get_bottlenecks(request: Request, session_id: str):
    session = _get_session(request, session_id)
    with session.lock:
        return [serialize_bottleneck(b) for b in session.engine.analyzer.detect_bottlenecks()]


@router.get("/{session_id}/health")
def get_health(request: Request, session_id: str):
    session = _get_session(request, session_id)
    with session.lock:
        return serialize_health(session.engine.analyzer.calculate_economic_health())


@router.get("/{session_id}/flow-graph")
def get_flow_graph(request: Request, session_id: str, hours: float = Query(1.0, gt=0, le=24 * 7)):
    session = _get_session(request, session_id)
    with session.lock:
        return serialize_flow_graph(session.engine.ledger.generate_flow_graph(hours))


@router.get("/{session_id}/nodes")
def get_resource_nodes(request: Request, session_id: str):
    """System gold sources and sinks."""
    session = _get_session(request, session_id)
    with session.lock:
        return [serialize_node(n) for n in session.engine.ledger.get_resource_nodes()]


@router.get("/{session_id}/report")
def get_report(request: Request, session_id: str):
    session = _get_session(request, session_id)
    with session.lock:
        return {"report": session.engine.analyzer.generate_report()}


@router.get("/{session_id}/agents/{agent_id}")
def get_agent_profile(request: Request, session_id: str, agent_id: str):
    session = _get_session(request, session_id)
    with session.lock:
        analyzer = session.engine.analyzer
        profile = analyzer.get_agent_profile(agent_id)
        if profile is None:
            raise HTTPException(status_code=404, detail=f"Agent '{agent_id}' not found")
        return {
            "entity": serialize_entity(analyzer.ledger.entities[agent_id]),
            "profile": profile,
        }
