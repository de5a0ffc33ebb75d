"""
Trade offers, negotiation state and offer valuation.

Values are always taken from the recipient's point of view: the recipient
receives the proposer's offered items and gold and gives up the requested
items and gold.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class OfferStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    COUNTERED = "countered"
    EXPIRED = "expired"


class TradeMotivation(str, Enum):
    EXCESS_INVENTORY = "excess_inventory"
    NEED_ITEM = "need_item"
    PROFIT = "profit"
    HELP_FRIEND = "help_friend"
    BUILD_RELATIONSHIP = "build_relationship"
    SPECULATION = "speculation"
    SPECIALIZATION = "specialization"


class NegotiationStatus(str, Enum):
    ONGOING = "ongoing"
    AGREED = "agreed"
    FAILED = "failed"


@dataclass
class TradeItem:
    item_id: str
    name: str
    quantity: int
    estimated_value: float


@dataclass
class TradeOffer:
    offer_id: str
    from_id: str
    to_id: str
    offered_items: list[TradeItem]
    requested_items: list[TradeItem]
    offered_gold: float
    requested_gold: float
    created_at: int
    expires_at: int
    trust_required: float
    motivation: TradeMotivation
    status: OfferStatus = OfferStatus.PENDING
    counter_offers: list[TradeOffer] = field(default_factory=list)
    parent_id: str | None = None

    @property
    def offered_value(self) -> float:
        """Total value the recipient would receive."""
        return sum(i.estimated_value for i in self.offered_items) + self.offered_gold

    @property
    def requested_value(self) -> float:
        """Total value the recipient would give up."""
        return sum(i.estimated_value for i in self.requested_items) + self.requested_gold

    @property
    def is_gift(self) -> bool:
        return not self.requested_items and self.requested_gold == 0

    @property
    def is_open(self) -> bool:
        return self.status in (OfferStatus.PENDING, OfferStatus.COUNTERED)

    def to_dict(self) -> dict[str, Any]:
        return {
            "offer_id": self.offer_id,
            "from_id": self.from_id,
            "to_id": self.to_id,
            "offered_items": [vars(i).copy() for i in self.offered_items],
            "requested_items": [vars(i).copy() for i in self.requested_items],
            "offered_gold": self.offered_gold,
            "requested_gold": self.requested_gold,
            "status": self.status.value,
            "created_at": self.created_at,
            "expires_at": self.expires_at,
            "trust_required": self.trust_required,
            "motivation": self.motivation.value,
            "counter_offers": [c.offer_id for c in self.counter_offers],
            "parent_id": self.parent_id,
        }


@dataclass
class NegotiationState:
    negotiation_id: str
    participants: tuple[str, str]
    current_offer: TradeOffer
    max_rounds: int
    rounds: int = 0
    status: NegotiationStatus = NegotiationStatus.ONGOING
    history: list[TradeOffer] = field(default_factory=list)


def evaluate_fairness(offer: TradeOffer) -> float:
    """Fairness of *offer* for its recipient, in [-1, 1].

    Positive means the recipient gains. Receiving something for nothing
    is +1; giving something for nothing is -1.
    """
    receiving = offer.offered_value
    giving = offer.requested_value
    if giving == 0:
        return 1.0
    if receiving == 0:
        return -1.0
    return max(-1.0, min(1.0, (receiving - giving) / giving))


def calculate_trust_required(
    offered_value: float,
    requested_value: float,
    is_friend: bool,
    tc: dict[str, float],
) -> float:
    """Trust the recipient must have in the proposer to accept."""
    if offered_value == 0 or requested_value == 0:
        return tc["trust_free_trade"]
    asymmetry = abs(offered_value - requested_value) / max(offered_value, requested_value)
    if asymmetry < tc["fair_trade_tolerance"]:
        return tc["trust_fair_friend"] if is_friend else tc["trust_fair_stranger"]
    return min(tc["trust_max"], tc["trust_unfair_base"] + asymmetry)
