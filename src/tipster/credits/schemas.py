"""Request models for credit endpoints."""

from __future__ import annotations

from pydantic import BaseModel


class ClaimTipRequest(BaseModel):
    prediction_id: int


class ClaimQuizRequest(BaseModel):
    participation_id: int
