"""Quick-purchase catalog priced for the buyer's country."""

from __future__ import annotations

from decimal import Decimal
from typing import Any, NamedTuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tipster.config import Settings, get_settings
from tipster.db.models import Country, PackageCountryPrice, QuickPurchase, User

TIP_TYPES = ("prediction", "tip")


class ListedPrice(NamedTuple):
    price: Decimal
    original_price: Decimal | None


def _money(value: float) -> Decimal:
    return Decimal(str(value)).quantize(Decimal("0.01"))


def tip_price(country: Country | None, settings: Settings | None = None) -> ListedPrice:
    """
    Single-tip price for a market.

    The country code is tried before the currency code; a key only counts when
    both its price and original price are configured. Otherwise the defaults apply.
    """
    settings = settings or get_settings()
    prices = {k.upper(): v for k, v in settings.prediction_prices.items()}
    originals = {k.upper(): v for k, v in settings.prediction_original_prices.items()}
    keys = [country.code, country.currency_code] if country is not None else []
    for key in (k.upper() for k in keys if k):
        if key in prices and key in originals:
            return ListedPrice(_money(prices[key]), _money(originals[key]))
    return ListedPrice(
        _money(settings.default_prediction_price), _money(settings.default_prediction_original_price)
    )


def listed_price(
    item: QuickPurchase, country: Country | None, package_prices: dict[str, Decimal]
) -> ListedPrice:
    if item.type in TIP_TYPES:
        return tip_price(country)
    return ListedPrice(package_prices.get(item.type, item.price), item.original_price)


async def quick_purchase_price(db: AsyncSession, item: QuickPurchase, user: User) -> ListedPrice:
    """What ``user`` is charged for one item; matches the catalog listing."""
    if item.type in TIP_TYPES or user.country_id is None:
        return listed_price(item, user.country, {})
    row = (
        await db.execute(
            select(PackageCountryPrice).where(
                PackageCountryPrice.country_id == user.country_id,
                PackageCountryPrice.package_type == item.type,
                PackageCountryPrice.is_active.is_(True),
            )
        )
    ).scalar_one_or_none()
    return listed_price(item, user.country, {item.type: row.price} if row is not None else {})


async def list_quick_purchases(db: AsyncSession, user: User) -> list[dict[str, Any]]:
    """
    Active quick purchases for the user's country, in display order.

    Raises:
        ValueError: The user has no country.
    """
    if user.country_id is None:
        msg = "User country not set"
        raise ValueError(msg)

    items = (
        await db.execute(
            select(QuickPurchase)
            .where(QuickPurchase.country_id == user.country_id, QuickPurchase.is_active.is_(True))
            .order_by(QuickPurchase.display_order, QuickPurchase.id)
        )
    ).scalars().all()
    if not items:
        return []

    package_prices = {
        row.package_type: row.price
        for row in (
            await db.execute(
                select(PackageCountryPrice).where(
                    PackageCountryPrice.country_id == user.country_id, PackageCountryPrice.is_active.is_(True)
                )
            )
        ).scalars().all()
    }

    country = user.country
    result = []
    for item in items:
        price = listed_price(item, country, package_prices)
        result.append(
            {
                "id": item.id,
                "name": item.name,
                "type": item.type,
                "price": float(price.price),
                "original_price": float(price.original_price) if price.original_price is not None else None,
                "currency_code": country.currency_code if country else None,
                "currency_symbol": country.currency_symbol if country else None,
                "match_id": item.match_id,
                "match_data": item.match_data,
                "prediction_type": item.prediction_type,
                "confidence_score": item.confidence_score,
                "odds": float(item.odds) if item.odds is not None else None,
                "value_rating": item.value_rating,
                "is_prediction_active": item.is_prediction_active,
                "display_order": item.display_order,
            }
        )
    return result
