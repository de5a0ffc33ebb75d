"""
Relationship stage and trust between agents.

The trading network only reads relationships. Any object implementing
``SocialProvider`` can be plugged in; SocialGraph is the in-memory
implementation used by the tick driver and the tests.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Protocol

import numpy as np


class RelationshipStage(str, Enum):
    STRANGER = "stranger"
    ACQUAINTANCE = "acquaintance"
    FRIEND = "friend"
    CLOSE_FRIEND = "close_friend"
    BLOCKED = "blocked"


FRIEND_STAGES = frozenset({RelationshipStage.FRIEND, RelationshipStage.CLOSE_FRIEND})


@dataclass
class Relationship:
    """How one agent regards another. Not necessarily symmetric."""
    stage: RelationshipStage = RelationshipStage.STRANGER
    trust: float = 0.0  # 0-1

    @property
    def is_friend(self) -> bool:
        return self.stage in FRIEND_STAGES


class SocialProvider(Protocol):
    def get_relationship(self, agent_id: str, other_id: str) -> Relationship | None:
        ...


class SocialGraph:
    """Directed map of (agent, other) → Relationship."""

    def __init__(self) -> None:
        self._edges: dict[tuple[str, str], Relationship] = {}

    def get_relationship(self, agent_id: str, other_id: str) -> Relationship | None:
        return self._edges.get((agent_id, other_id))

    def set_relationship(
        self,
        agent_id: str,
        other_id: str,
        stage: RelationshipStage | str,
        trust: float,
        mutual: bool = True,
    ) -> Relationship:
        relationship = Relationship(RelationshipStage(stage), float(np.clip(trust, 0.0, 1.0)))
        self._edges[(agent_id, other_id)] = relationship
        if mutual:
            self._edges[(other_id, agent_id)] = Relationship(relationship.stage, relationship.trust)
        return relationship

    def relationships_of(self, agent_id: str) -> dict[str, Relationship]:
        return {other: rel for (a, other), rel in self._edges.items() if a == agent_id}

    def seed(
        self,
        agent_ids: list[str],
        rng: np.random.Generator,
        trust_range: tuple[float, float] = (0.2, 0.9),
        friend_fraction: float = 0.3,
    ) -> None:
        """Give every pair of agents a random mutual relationship.

        A ``friend_fraction`` share of pairs start as friends; the rest
        are acquaintances. Trust is drawn uniformly from ``trust_range``.
        Pairs that already have a relationship are left alone.
        """
        low, high = trust_range
        for i, a in enumerate(agent_ids):
            for b in agent_ids[i + 1:]:
                if (a, b) in self._edges:
                    continue
                trust = float(rng.uniform(low, high))
                if rng.random() < friend_fraction:
                    stage = RelationshipStage.FRIEND
                else:
                    stage = RelationshipStage.ACQUAINTANCE
                self.set_relationship(a, b, stage, trust)

    def __len__(self) -> int:
        return len(self._edges)
