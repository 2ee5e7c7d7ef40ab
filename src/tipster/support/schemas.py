"""Support ticket request models."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field


class TicketCreateRequest(BaseModel):
    subject: str = Field(..., min_length=1, max_length=256)
    description: str = Field(..., min_length=1, max_length=10_000)
    category: str = Field(..., min_length=1, max_length=64)
    priority: Literal["Low", "Medium", "High", "Urgent"]


class TicketUpdateRequest(BaseModel):
    status: Literal["open", "in_progress", "resolved", "closed"] | None = None
    priority: Literal["Low", "Medium", "High", "Urgent"] | None = None
    assigned_to: int | None = None


class TicketResponseRequest(BaseModel):
    content: str = Field(..., min_length=1, max_length=10_000)
