"""Request/response models for prediction endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field


class StreakResponse(BaseModel):
    current_streak: int
    best_streak: int
    total_predictions: int
    total_wins: int
    total_losses: int
    win_rate: float


# ── History ──


class HistoryPagination(BaseModel):
    page: int
    limit: int
    total_count: int
    total_pages: int
    has_next_page: bool
    has_prev_page: bool


class PredictionHistoryResponse(BaseModel):
    predictions: list[dict[str, Any]]
    pagination: HistoryPagination


# ── Settlement ──


class UpdateResultRequest(BaseModel):
    prediction_id: int
    result: Literal["won", "lost", "pending", "void"]
    home_score: int | None = Field(None, ge=0)
    away_score: int | None = Field(None, ge=0)


class UpdateResultResponse(BaseModel):
    prediction_id: int
    status: str
    result_updated_at: datetime | None
    users_updated: int


# ── Ticker ──


class TickerEntry(BaseModel):
    id: int
    home_team: str
    away_team: str
    league: str
    prediction: str
    confidence: int
    odds: float
    match_time: str
    status: str
    value_rating: str


class LiveTickerResponse(BaseModel):
    success: bool
    data: list[TickerEntry]
    cached: bool
    cache_age: int
    error: str | None = None
