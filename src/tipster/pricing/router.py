"""Public pricing plans and admin management of per-country package prices."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from tipster.auth.dependencies import get_optional_user, require_admin
from tipster.database import get_session
from tipster.db.models import PackageCountryPrice, User
from tipster.errors import ConflictError
from tipster.pricing.schemas import CountryPriceCreate, CountryPriceResponse, CountryPriceUpdate
from tipster.pricing.service import (
    create_country_price,
    delete_country_price,
    get_pricing,
    list_country_prices,
    update_country_price,
)

router = APIRouter(prefix="/api/v1", tags=["Pricing"])


def _price_response(row: PackageCountryPrice) -> CountryPriceResponse:
    return CountryPriceResponse(
        id=row.id,
        country_id=row.country_id,
        country_code=row.country.code,
        currency_code=row.country.currency_code,
        currency_symbol=row.country.currency_symbol,
        package_type=row.package_type,
        price=float(row.price),
        original_price=float(row.original_price) if row.original_price is not None else None,
        is_active=row.is_active,
        updated_at=row.updated_at,
    )


@router.get("/pricing")
async def pricing(
    country: str | None = Query(None, min_length=2, max_length=2),
    user: User | None = Depends(get_optional_user),
    db: AsyncSession = Depends(get_session),
) -> dict[str, Any]:
    """Subscription plans priced for the requested or the user's country."""
    return await get_pricing(db, country, user)


# ── Admin ──


@router.get("/admin/pricing", response_model=list[CountryPriceResponse])
async def admin_list_prices(
    country_id: int | None = Query(None),
    _admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
) -> list[CountryPriceResponse]:
    return [_price_response(row) for row in await list_country_prices(db, country_id)]


@router.post("/admin/pricing", response_model=CountryPriceResponse, status_code=201)
async def admin_create_price(
    body: CountryPriceCreate,
    _admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
) -> CountryPriceResponse:
    try:
        row = await create_country_price(db, body.country_id, body.package_type, body.price, body.original_price)
    except ConflictError as e:
        raise HTTPException(status_code=409, detail=str(e)) from e
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    return _price_response(row)


@router.put("/admin/pricing/{price_id}", response_model=CountryPriceResponse)
async def admin_update_price(
    price_id: int,
    body: CountryPriceUpdate,
    _admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
) -> CountryPriceResponse:
    try:
        row = await update_country_price(
            db, price_id, price=body.price, original_price=body.original_price, is_active=body.is_active
        )
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    return _price_response(row)


@router.delete("/admin/pricing/{price_id}")
async def admin_delete_price(
    price_id: int,
    _admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
) -> dict[str, str]:
    try:
        await delete_country_price(db, price_id)
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    return {"detail": "Price deleted"}
