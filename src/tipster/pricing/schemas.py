"""Admin pricing request/response models."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field


class CountryPriceCreate(BaseModel):
    country_id: int
    package_type: str = Field(..., min_length=1, max_length=32)
    price: Decimal = Field(..., max_digits=10, decimal_places=2)
    original_price: Decimal | None = Field(None, max_digits=10, decimal_places=2)


class CountryPriceUpdate(BaseModel):
    price: Decimal | None = Field(None, max_digits=10, decimal_places=2)
    original_price: Decimal | None = Field(None, max_digits=10, decimal_places=2)
    is_active: bool | None = None


class CountryPriceResponse(BaseModel):
    id: int
    country_id: int
    country_code: str
    currency_code: str
    currency_symbol: str
    package_type: str
    price: float
    original_price: float | None
    is_active: bool
    updated_at: datetime
