"""
Pydantic models for API request/response validation.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field


# === Simulation ===

class CreateSessionRequest(BaseModel):
    config: dict[str, Any] | None = None
    preset: str | None = None
    name: str | None = None
    agents: int | None = Field(default=None, ge=0, le=1000)


class StepRequest(BaseModel):
    n: int = Field(default=1, ge=1, le=10_000)


class RunRequest(BaseModel):
    ticks: int = Field(default=288, ge=1, le=100_000)


class SessionSummary(BaseModel):
    id: str
    name: str
    status: str
    tick: int
    agent_count: int


class SessionResponse(SessionSummary):
    config: dict[str, Any]


class StepResponse(BaseModel):
    session: SessionResponse
    snapshots: list[dict[str, Any]]


class TimeSeriesResponse(BaseModel):
    field: str
    ticks: list[int]
    values: list[Any]


# === Market ===

class PlaceOrderRequest(BaseModel):
    agent_id: str
    item_id: str
    side: Literal["buy", "sell"]
    quantity: int = Field(gt=0)
    price_limit: float = Field(gt=0)


class OrderResponse(BaseModel):
    order_id: str
    owner_id: str
    item_id: str
    side: str
    quantity: int
    filled: int
    remaining: int
    price_limit: float
    status: str
    created_at: int
    expires_at: int | None


class PlaceOrderResponse(BaseModel):
    accepted: bool
    order: OrderResponse | None = None
    trades: list[dict[str, Any]] = Field(default_factory=list)


class ItemSummary(BaseModel):
    item_id: str
    name: str
    category: str
    base_cost: float
    current_price: float
    supply: float
    demand: float
    rarity: float
    volatility: float
    flags: list[str]


# === Presets ===

class PresetInfo(BaseModel):
    name: str
    config: dict[str, Any]
