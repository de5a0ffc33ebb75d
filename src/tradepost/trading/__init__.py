"""Bot-to-bot trading: offers, negotiation, reputation and trade routes."""

from tradepost.trading.network import TradeOpportunity, TradeRoute, TradingNetwork, TradingReputation
from tradepost.trading.offers import (
    NegotiationState,
    NegotiationStatus,
    OfferStatus,
    TradeItem,
    TradeMotivation,
    TradeOffer,
    evaluate_fairness,
)
from tradepost.trading.social import Relationship, RelationshipStage, SocialGraph, SocialProvider

__all__ = [
    "NegotiationState",
    "NegotiationStatus",
    "OfferStatus",
    "Relationship",
    "RelationshipStage",
    "SocialGraph",
    "SocialProvider",
    "TradeItem",
    "TradeMotivation",
    "TradeOffer",
    "TradeOpportunity",
    "TradeRoute",
    "TradingNetwork",
    "TradingReputation",
    "evaluate_fairness",
]
