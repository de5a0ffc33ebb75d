"""
Economic archetypes — mapping player personalities to trading behaviour.

A personality profile (produced by an external personality model) is
turned into an EconomicArchetype through an ordered rule table: the first
matching rule wins. Specializations narrow which item categories a trader
deals in.

Also ships the eight reference personality profiles used to populate bot
economies.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Callable

import numpy as np


class ArchetypeType(str, Enum):
    MERCHANT = "merchant"
    HOARDER = "hoarder"
    GENEROUS = "generous"
    OPPORTUNIST = "opportunist"
    MARKET_MAKER = "market_maker"
    SPECULATOR = "speculator"
    PRODUCER = "producer"


class Specialization(str, Enum):
    WEAPON_DEALER = "weapon_dealer"
    ARMOR_SMITH = "armor_smith"
    POTION_MAKER = "potion_maker"
    RESOURCE_GATHERER = "resource_gatherer"
    LUXURY_TRADER = "luxury_trader"
    GENERAL_MERCHANT = "general_merchant"
    CRAFTSMAN = "craftsman"
    FENCE = "fence"


# Item categories each specialization deals in; None = every category
SPECIALIZATION_CATEGORIES: dict[Specialization, tuple[str, ...] | None] = {
    Specialization.WEAPON_DEALER: ("weapon",),
    Specialization.ARMOR_SMITH: ("armor",),
    Specialization.POTION_MAKER: ("consumable",),
    Specialization.RESOURCE_GATHERER: ("resource",),
    Specialization.LUXURY_TRADER: ("luxury",),
    Specialization.CRAFTSMAN: ("crafting",),
    Specialization.GENERAL_MERCHANT: None,
    Specialization.FENCE: None,
}


@dataclass
class PersonalityTraits:
    risk_tolerance: float = 0.5
    sociability: float = 0.5
    patience: float = 0.5
    greed: float = 0.5
    aggression: float = 0.5
    loyalty: float = 0.5
    curiosity: float = 0.5


@dataclass
class PersonalityProfile:
    """External personality input. ``archetype`` is a free-form label."""
    archetype: str
    traits: PersonalityTraits = field(default_factory=PersonalityTraits)
    name: str = ""


@dataclass
class EconomicArchetype:
    type: ArchetypeType
    risk_tolerance: float
    holding_propensity: float
    profit_margin: float
    trading_frequency: float  # relative activity level, 1.0 = average
    price_sensitivity: float


# ---------------------------------------------------------------------------
# Derivation rules (evaluated in order, first match wins)
# ---------------------------------------------------------------------------

def _merchant(p: PersonalityProfile) -> EconomicArchetype:
    t = p.traits
    return EconomicArchetype(ArchetypeType.MERCHANT, t.risk_tolerance, t.patience, t.greed, 2.0, 0.9)


def _producer(p: PersonalityProfile) -> EconomicArchetype:
    return EconomicArchetype(ArchetypeType.PRODUCER, 0.2, 0.3, 0.7, 1.5, 0.7)


def _generous(p: PersonalityProfile) -> EconomicArchetype:
    return EconomicArchetype(ArchetypeType.GENEROUS, p.traits.risk_tolerance, 0.3, 0.2, 1.8, 0.4)


def _greedy(p: PersonalityProfile) -> EconomicArchetype:
    t = p.traits
    patient = t.patience > 0.6
    return EconomicArchetype(
        ArchetypeType.HOARDER if patient else ArchetypeType.OPPORTUNIST,
        t.risk_tolerance, t.patience, t.greed,
        0.5 if patient else 1.2,
        0.8,
    )


def _speculator(p: PersonalityProfile) -> EconomicArchetype:
    return EconomicArchetype(ArchetypeType.SPECULATOR, p.traits.risk_tolerance, 0.6, 0.5, 2.5, 0.3)


def _market_maker(p: PersonalityProfile) -> EconomicArchetype:
    return EconomicArchetype(ArchetypeType.MARKET_MAKER, 0.5, 0.5, 0.3, 3.0, 0.6)


ARCHETYPE_RULES: list[tuple[Callable[[PersonalityProfile], bool], Callable[[PersonalityProfile], EconomicArchetype]]] = [
    (lambda p: p.archetype == "economist", _merchant),
    (lambda p: p.archetype == "grinder", _producer),
    (lambda p: p.archetype == "social", _generous),
    (lambda p: p.traits.greed > 0.7, _greedy),
    (lambda p: p.traits.risk_tolerance > 0.7, _speculator),
]


def derive_economic_archetype(profile: PersonalityProfile) -> EconomicArchetype:
    """Map a personality profile to its economic archetype."""
    for matches, build in ARCHETYPE_RULES:
        if matches(profile):
            return build(profile)
    return _market_maker(profile)


def determine_specialization(
    profile: PersonalityProfile,
    archetype: EconomicArchetype,
    rng: np.random.Generator,
) -> Specialization | None:
    """Pick a trading specialization, or None for unspecialized traders."""
    t = profile.traits
    if archetype.type == ArchetypeType.MERCHANT:
        if t.aggression > 0.6:
            return Specialization.WEAPON_DEALER
        if t.patience > 0.7:
            return Specialization.ARMOR_SMITH
        if t.sociability > 0.7:
            return Specialization.LUXURY_TRADER
        return Specialization.GENERAL_MERCHANT
    if archetype.type == ArchetypeType.PRODUCER:
        return Specialization.CRAFTSMAN if rng.random() > 0.5 else Specialization.RESOURCE_GATHERER
    if profile.archetype == "criminal":
        return Specialization.FENCE
    if archetype.type == ArchetypeType.GENEROUS:
        return Specialization.GENERAL_MERCHANT
    return None


# ---------------------------------------------------------------------------
# Reference personalities
# ---------------------------------------------------------------------------

PERSONALITY_PRESETS: dict[str, PersonalityProfile] = {
    "grinder": PersonalityProfile("grinder", PersonalityTraits(0.2, 0.2, 0.9, 0.8, 0.4, 0.5, 0.1), "The Grinder"),
    "social": PersonalityProfile("social", PersonalityTraits(0.3, 0.95, 0.7, 0.3, 0.1, 0.8, 0.6), "The Social Butterfly"),
    "explorer": PersonalityProfile("explorer", PersonalityTraits(0.6, 0.5, 0.4, 0.4, 0.3, 0.2, 0.95), "The Explorer"),
    "combat": PersonalityProfile("combat", PersonalityTraits(0.85, 0.4, 0.5, 0.6, 0.9, 0.6, 0.3), "The Combat Enthusiast"),
    "economist": PersonalityProfile("economist", PersonalityTraits(0.3, 0.3, 0.95, 0.95, 0.1, 0.4, 0.5), "The Economist"),
    "criminal": PersonalityProfile("criminal", PersonalityTraits(0.9, 0.4, 0.2, 0.8, 0.7, 0.2, 0.6), "The Criminal"),
    "roleplayer": PersonalityProfile("roleplayer", PersonalityTraits(0.5, 0.8, 0.85, 0.3, 0.4, 0.8, 0.7), "The Role-Player"),
    "chaos": PersonalityProfile("chaos", PersonalityTraits(0.5, 0.5, 0.5, 0.5, 0.5, 0.5, 0.5), "The Chaos Agent"),
}


def vary_profile(
    base: PersonalityProfile,
    rng: np.random.Generator,
    variance: float = 0.1,
) -> PersonalityProfile:
    """Copy *base* with each trait jittered by up to ±variance, clipped to [0, 1]."""
    t = base.traits

    def jitter(v: float) -> float:
        return float(np.clip(v + rng.uniform(-variance, variance), 0.0, 1.0))

    return PersonalityProfile(
        archetype=base.archetype,
        traits=PersonalityTraits(
            risk_tolerance=jitter(t.risk_tolerance),
            sociability=jitter(t.sociability),
            patience=jitter(t.patience),
            greed=jitter(t.greed),
            aggression=jitter(t.aggression),
            loyalty=jitter(t.loyalty),
            curiosity=jitter(t.curiosity),
        ),
        name=base.name,
    )
