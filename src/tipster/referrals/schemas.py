"""Referral request models."""

from __future__ import annotations

from pydantic import BaseModel, Field


class ReferralCodeRequest(BaseModel):
    code: str = Field(..., min_length=4, max_length=16)
