"""CLV cache request/response models."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


class CacheRefreshRequest(BaseModel):
    window: str = Field("all", max_length=16)


class CacheRefreshResponse(BaseModel):
    success: bool = True
    cached: int
    window: str
    timestamp: datetime
