"""Request models for package endpoints."""

from __future__ import annotations

from pydantic import BaseModel


class PackageTipClaimRequest(BaseModel):
    prediction_id: int
