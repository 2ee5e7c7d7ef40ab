"""Subscription plans and per-country package pricing."""

from __future__ import annotations

from decimal import Decimal
from typing import Any, NamedTuple

import structlog
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from tipster.auth.service import get_country_by_code
from tipster.db.models import Country, PackageCountryPrice, User
from tipster.errors import ConflictError

logger = structlog.get_logger()

DEFAULT_COUNTRY_CODE = "US"
PREMIUM_FALLBACK_PRICE = 79.00


class CountryInfo(NamedTuple):
    id: int | None
    code: str
    name: str
    currency_code: str
    currency_symbol: str


DEFAULT_COUNTRY = CountryInfo(None, DEFAULT_COUNTRY_CODE, "United States", "USD", "$")


async def resolve_country(db: AsyncSession, requested: str | None, user: User | None) -> CountryInfo:
    """Explicit code, else the user's country, else the US; unknown codes fall back to USD."""
    country: Country | None = None
    if requested:
        country = await get_country_by_code(db, requested)
    elif user is not None and user.country is not None:
        country = user.country
    else:
        country = await get_country_by_code(db, DEFAULT_COUNTRY_CODE)
    if country is None:
        return DEFAULT_COUNTRY
    return CountryInfo(country.id, country.code.upper(), country.name, country.currency_code, country.currency_symbol)


_PLANS: list[dict[str, Any]] = [
    {
        "id": "free",
        "name": "Free",
        "description": "Get started with basic predictions",
        "price": 0,
        "original_price": None,
        "period": "forever",
        "features": ["3 free predictions daily", "Basic AI analysis", "Community access", "Mobile app access"],
        "popular": False,
        "plan_type": "free",
    },
    {
        "id": "parlay_pro",
        "name": "Parlay Pro",
        "description": "Unlimited access to AI-powered parlay recommendations",
        "price": 11.99,
        "original_price": 29.99,
        "discount": 60,
        "period": "month",
        "features": [
            "Unlimited parlay access",
            "AI-powered parlay analysis",
            "Quality filtering (tradable only)",
            "Risk assessment and edge calculations",
            "Historical parlay performance",
            "Email alerts for new parlays",
            "Priority customer support",
        ],
        "popular": True,
        "plan_type": "subscription",
    },
    {
        "id": "premium_intelligence",
        "name": "Premium Intelligence",
        "description": "Advanced analytics and insights for serious bettors",
        "price": None,
        "original_price": None,
        "period": "month",
        "features": [
            "All Premium Dashboard features",
            "CLV Tracker",
            "AI Intelligence feeds",
            "Advanced analytics",
            "Model comparisons",
            "Real-time updates",
            "Priority support",
        ],
        "popular": False,
        "plan_type": "subscription",
        "country_specific": True,
    },
    {
        "id": "complete",
        "name": "Complete Package",
        "description": "Everything in Parlay Pro + Premium Intelligence",
        "price": None,
        "original_price": None,
        "period": "month",
        "features": [
            "Everything in Parlay Pro",
            "Everything in Premium Intelligence",
            "Best value for power users",
            "Exclusive features",
            "Highest priority support",
        ],
        "popular": False,
        "plan_type": "subscription",
        "coming_soon": True,
    },
]


def build_plans(country: CountryInfo, premium_price: float | None) -> list[dict[str, Any]]:
    plans = []
    for plan in _PLANS:
        entry = {
            **plan,
            "currency_code": country.currency_code,
            "currency_symbol": country.currency_symbol,
        }
        if plan["id"] == "premium_intelligence":
            entry["price"] = premium_price if premium_price is not None else PREMIUM_FALLBACK_PRICE
        plans.append(entry)
    return plans


async def get_pricing(db: AsyncSession, requested: str | None, user: User | None) -> dict[str, Any]:
    country = await resolve_country(db, requested, user)
    premium_price = None
    if country.id is not None:
        row = (
            await db.execute(
                select(PackageCountryPrice.price).where(
                    PackageCountryPrice.country_id == country.id,
                    PackageCountryPrice.package_type == "monthly_sub",
                    PackageCountryPrice.is_active.is_(True),
                )
            )
        ).scalar_one_or_none()
        premium_price = float(row) if row is not None else None
    if premium_price is None:
        logger.info("premium_price_fallback", country=country.code)
    return {
        "plans": build_plans(country, premium_price),
        "country": {
            "code": country.code,
            "name": country.name,
            "currency_code": country.currency_code,
            "currency_symbol": country.currency_symbol,
        },
    }


# ---------------------------------------------------------------------------
# Admin
# ---------------------------------------------------------------------------


async def list_country_prices(db: AsyncSession, country_id: int | None = None) -> list[PackageCountryPrice]:
    stmt = select(PackageCountryPrice).order_by(PackageCountryPrice.country_id, PackageCountryPrice.package_type)
    if country_id is not None:
        stmt = stmt.where(PackageCountryPrice.country_id == country_id)
    return list((await db.execute(stmt)).unique().scalars().all())


async def _get_country_price(db: AsyncSession, price_id: int) -> PackageCountryPrice:
    row = (
        await db.execute(select(PackageCountryPrice).where(PackageCountryPrice.id == price_id))
    ).unique().scalar_one_or_none()
    if row is None:
        msg = "Price not found"
        raise LookupError(msg)
    return row


def _check_price(price: Decimal) -> None:
    if price <= 0:
        msg = "Price must be greater than 0"
        raise ValueError(msg)


async def create_country_price(
    db: AsyncSession,
    country_id: int,
    package_type: str,
    price: Decimal,
    original_price: Decimal | None = None,
) -> PackageCountryPrice:
    """
    Raises:
        ValueError: Non-positive price.
        LookupError: Unknown country.
        ConflictError: A price for this country and package type exists.
    """
    _check_price(price)
    country = await db.get(Country, country_id)
    if country is None:
        msg = "Country not found"
        raise LookupError(msg)
    duplicate = (
        await db.execute(
            select(PackageCountryPrice.id).where(
                PackageCountryPrice.country_id == country_id,
                PackageCountryPrice.package_type == package_type,
            )
        )
    ).first()
    if duplicate is not None:
        msg = "Price already exists for this country and package type"
        raise ConflictError(msg)

    row = PackageCountryPrice(
        country_id=country_id,
        country=country,
        package_type=package_type,
        price=price,
        original_price=original_price,
    )
    db.add(row)
    try:
        await db.commit()
    except IntegrityError as e:
        await db.rollback()
        msg = "Price already exists for this country and package type"
        raise ConflictError(msg) from e
    logger.info("country_price_created", price_id=row.id, country_id=country_id, package_type=package_type)
    return row


async def update_country_price(
    db: AsyncSession,
    price_id: int,
    *,
    price: Decimal | None = None,
    original_price: Decimal | None = None,
    is_active: bool | None = None,
) -> PackageCountryPrice:
    row = await _get_country_price(db, price_id)
    if price is not None:
        _check_price(price)
        row.price = price
    if original_price is not None:
        row.original_price = original_price
    if is_active is not None:
        row.is_active = is_active
    await db.commit()
    logger.info("country_price_updated", price_id=price_id)
    return row


async def delete_country_price(db: AsyncSession, price_id: int) -> None:
    row = await _get_country_price(db, price_id)
    await db.delete(row)
    await db.commit()
    logger.info("country_price_deleted", price_id=price_id)
