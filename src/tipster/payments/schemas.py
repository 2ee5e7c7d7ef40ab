"""Request/response models for payment endpoints."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field


class PaymentIntentRequest(BaseModel):
    item_type: Literal["package", "tip", "prediction"]
    item_id: str = Field(..., min_length=1, max_length=64)


class PaymentIntentResponse(BaseModel):
    client_secret: str
    payment_intent_id: str
    amount: float
    currency: str


class PaymentStatusResponse(BaseModel):
    status: Literal["success", "pending"]
    payment_intent: str
