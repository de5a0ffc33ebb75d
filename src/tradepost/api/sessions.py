"""
Session manager for market simulations.

Each session wraps an EconomyEngine + MetricsCollector. All access to a
session's engine goes through the session's lock, so a tick never
interleaves with a read or another tick. Sessions live in memory only.
"""

from __future__ import annotations

import logging
import threading
import uuid
from dataclasses import dataclass, field
from typing import Any

from tradepost.core.config import MarketConfig
from tradepost.core.engine import EconomyEngine, TickSnapshot
from tradepost.metrics.collector import MetricsCollector

logger = logging.getLogger(__name__)


@dataclass
class SimulationSession:
    """A running market simulation."""

    id: str
    name: str
    config: MarketConfig
    engine: EconomyEngine
    collector: MetricsCollector
    status: str = "created"  # created | running | idle
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    @property
    def tick(self) -> int:
        return self.engine.tick

    @property
    def agent_count(self) -> int:
        return len(self.engine.market.agent_ids)


class SessionManager:
    """Manages multiple in-memory simulation sessions."""

    def __init__(self) -> None:
        self.sessions: dict[str, SimulationSession] = {}
        self._running: set[str] = set()
        self._threads: dict[str, threading.Thread] = {}
        self._guard = threading.Lock()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def create_session(
        self,
        config: MarketConfig | None = None,
        name: str | None = None,
        agents: int | None = None,
    ) -> SimulationSession:
        """Create a session and populate it with bots."""
        if config is None:
            config = MarketConfig()
        engine = EconomyEngine(config)
        count = agents if agents is not None else int(config.agent_config["initial_population"])
        engine.populate(count)

        session = SimulationSession(
            id=uuid.uuid4().hex[:8],
            name=name or config.experiment_name,
            config=config,
            engine=engine,
            collector=MetricsCollector(config),
        )
        with self._guard:
            self.sessions[session.id] = session
        logger.info("Created session %s (%s) with %d agents", session.id, session.name, count)
        return session

    def get_session(self, session_id: str) -> SimulationSession:
        """Raises KeyError if the session does not exist."""
        try:
            return self.sessions[session_id]
        except KeyError:
            raise KeyError(f"Session '{session_id}' not found") from None

    def list_sessions(self) -> list[dict[str, Any]]:
        return [
            {
                "id": s.id,
                "name": s.name,
                "status": s.status,
                "tick": s.tick,
                "agent_count": s.agent_count,
            }
            for s in self.sessions.values()
        ]

    def delete_session(self, session_id: str) -> None:
        with self._guard:
            if session_id not in self.sessions:
                raise KeyError(f"Session '{session_id}' not found")
            del self.sessions[session_id]

    def step(self, session_id: str, n: int = 1) -> list[TickSnapshot]:
        """Advance a session by N ticks, collecting metrics for each."""
        session = self.get_session(session_id)
        snapshots: list[TickSnapshot] = []
        with session.lock:
            session.status = "running"
            for _ in range(n):
                snapshots.append(self._tick(session))
            session.status = "idle"
        return snapshots

    @staticmethod
    def _tick(session: SimulationSession) -> TickSnapshot:
        snapshot = session.engine.step()
        session.collector.collect(session.engine, snapshot)
        return snapshot

    # ------------------------------------------------------------------
    # Background runs
    # ------------------------------------------------------------------
    def is_running(self, session_id: str) -> bool:
        return session_id in self._running

    def run_async(self, session_id: str, ticks: int) -> threading.Thread:
        """Run *ticks* ticks in a background thread.

        The session lock is taken per tick, so reads between ticks see a
        consistent state. Raises ValueError if a run is already active.
        """
        session = self.get_session(session_id)
        with self._guard:
            if session_id in self._running:
                raise ValueError(f"Session '{session_id}' is already running")
            self._running.add(session_id)

        def _worker() -> None:
            try:
                for _ in range(ticks):
                    if session_id not in self.sessions:
                        break
                    with session.lock:
                        session.status = "running"
                        self._tick(session)
            except Exception:
                logger.warning("Background run failed for session %s", session_id, exc_info=True)
            finally:
                with session.lock:
                    session.status = "idle"
                with self._guard:
                    self._threads.pop(session_id, None)
                    self._running.discard(session_id)

        thread = threading.Thread(target=_worker, name=f"tradepost-run-{session_id}", daemon=True)
        with self._guard:
            self._threads[session_id] = thread
        thread.start()
        return thread

    def wait(self, session_id: str, timeout: float | None = None) -> None:
        """Block until a background run for *session_id* finishes."""
        thread = self._threads.get(session_id)
        if thread is not None:
            thread.join(timeout)
