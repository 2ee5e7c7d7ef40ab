"""Request/response models for parlay endpoints."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field


class ParlayPurchaseRequest(BaseModel):
    parlay_id: str
    amount: Decimal = Field(..., gt=0, max_digits=10, decimal_places=2)
    payment_method: str = "stripe"


class ParlayLegSummary(BaseModel):
    match_id: int
    home_team: str | None
    away_team: str | None
    outcome: str
    model_prob: float


class ParlaySummary(BaseModel):
    parlay_id: str
    leg_count: int
    legs: list[ParlayLegSummary]
    implied_odds: float
    edge_pct: float
    confidence_tier: str
    status: str


class ParlayPurchaseResponse(BaseModel):
    id: int
    parlay_id: str
    amount: float
    potential_return: float
    payment_method: str
    status: str
    created_at: datetime
    parlay: ParlaySummary


class ParlayPurchaseListResponse(BaseModel):
    purchases: list[ParlayPurchaseResponse]
    count: int
