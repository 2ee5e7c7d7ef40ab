"""Admin league request/response models."""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

SyncFrequency = Literal["hourly", "daily", "weekly"]


class LeagueCreateRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=128)
    country_name: str | None = None
    sport: str = "football"
    external_league_id: str | None = None
    logo_url: str | None = None
    is_active: bool = True
    sync_frequency: SyncFrequency = "daily"
    match_limit: int = Field(10, ge=1, le=500)
    priority: int = 0


class LeagueUpdateRequest(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=128)
    country_name: str | None = None
    sport: str | None = None
    external_league_id: str | None = None
    logo_url: str | None = None
    is_active: bool | None = None
    sync_frequency: SyncFrequency | None = None
    match_limit: int | None = Field(None, ge=1, le=500)
    priority: int | None = None


class LeagueResponse(BaseModel):
    id: int
    name: str
    country_name: str | None
    sport: str
    external_league_id: str | None
    logo_url: str | None
    is_active: bool
    sync_frequency: str
    match_limit: int
    priority: int
    last_synced_at: datetime | None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}
