"""Simulation session management endpoints."""

from __future__ import annotations

from fastapi import APIRouter, HTTPException, Request

from tradepost.api.schemas import (
    CreateSessionRequest,
    PresetInfo,
    RunRequest,
    SessionResponse,
    SessionSummary,
    StepRequest,
    StepResponse,
    TimeSeriesResponse,
)
from tradepost.api.serializers import serialize_snapshot
from tradepost.core.config import MarketConfig
from tradepost.experiment.presets import get_preset, list_presets

router = APIRouter()


def _session_response(session) -> dict:
    return {
        "id": session.id,
        "name": session.name,
        "status": session.status,
        "tick": session.tick,
        "agent_count": session.agent_count,
        "config": session.config.to_dict(),
    }


def _get_session(request: Request, session_id: str):
    mgr = request.app.state.session_manager
    try:
        return mgr.get_session(session_id)
    except KeyError:
        raise HTTPException(status_code=404, detail=f"Session '{session_id}' not found")


@router.get("/presets", response_model=list[PresetInfo])
def get_presets():
    return [{"name": name, "config": get_preset(name).to_dict()} for name in list_presets()]


@router.post("/sessions", response_model=SessionResponse)
def create_session(req: CreateSessionRequest, request: Request):
    mgr = request.app.state.session_manager

    config = None
    if req.preset:
        try:
            config = get_preset(req.preset)
        except KeyError:
            raise HTTPException(status_code=404, detail=f"Preset '{req.preset}' not found")
    elif req.config:
        try:
            config = MarketConfig.from_dict(req.config)
        except (TypeError, ValueError) as exc:
            raise HTTPException(status_code=422, detail=str(exc))

    try:
        session = mgr.create_session(config=config, name=req.name, agents=req.agents)
    except ValueError as exc:
        # CatalogError is a ValueError
        raise HTTPException(status_code=422, detail=str(exc))
    return _session_response(session)


@router.get("/sessions", response_model=list[SessionSummary])
def list_sessions(request: Request):
    mgr = request.app.state.session_manager
    return mgr.list_sessions()


@router.get("/sessions/{session_id}", response_model=SessionResponse)
def get_session(session_id: str, request: Request):
    session = _get_session(request, session_id)
    with session.lock:
        return _session_response(session)


@router.delete("/sessions/{session_id}")
def delete_session(session_id: str, request: Request):
    mgr = request.app.state.session_manager
    try:
        mgr.delete_session(session_id)
    except KeyError:
        raise HTTPException(status_code=404, detail=f"Session '{session_id}' not found")
    return {"deleted": True}


@router.post("/sessions/{session_id}/step", response_model=StepResponse)
def step_session(session_id: str, req: StepRequest, request: Request):
    mgr = request.app.state.session_manager
    session = _get_session(request, session_id)
    if mgr.is_running(session_id):
        raise HTTPException(status_code=409, detail="Session is running in the background")
    snapshots = mgr.step(session_id, req.n)
    with session.lock:
        return {
            "session": _session_response(session),
            "snapshots": [serialize_snapshot(s) for s in snapshots],
        }


@router.post("/sessions/{session_id}/run", response_model=SessionResponse)
def run_session(session_id: str, req: RunRequest, request: Request):
    mgr = request.app.state.session_manager
    session = _get_session(request, session_id)
    try:
        mgr.run_async(session_id, req.ticks)
    except ValueError as exc:
        raise HTTPException(status_code=409, detail=str(exc))
    with session.lock:
        return _session_response(session)


@router.get("/sessions/{session_id}/metrics")
def get_metrics(session_id: str, request: Request):
    session = _get_session(request, session_id)
    with session.lock:
        return session.collector.export_dict()


@router.get("/sessions/{session_id}/metrics/{field_name}", response_model=TimeSeriesResponse)
def get_time_series(session_id: str, field_name: str, request: Request):
    session = _get_session(request, session_id)
    with session.lock:
        collector = session.collector
        if collector.metrics_history and not hasattr(collector.metrics_history[0], field_name):
            raise HTTPException(status_code=404, detail=f"Unknown metric '{field_name}'")
        return {
            "field": field_name,
            "ticks": collector.get_time_series("tick"),
            "values": collector.get_time_series(field_name),
        }
