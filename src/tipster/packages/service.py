"""Package catalog, purchase history and tip redemption from owned packages."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

import structlog
from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from tipster.db.models import PackageOffer, PackagePurchase, Prediction, User, UserPackage, UserPackageTip
from tipster.errors import ConflictError
from tipster.packages.catalog import UNLIMITED_TIPS, display_credits, package_defaults

logger = structlog.get_logger()


async def list_offers_for_country(db: AsyncSession, country_id: int) -> list[dict[str, Any]]:
    """Active offers priced for ``country_id``; unpriced offers are omitted."""
    offers = (
        await db.execute(
            select(PackageOffer).where(PackageOffer.is_active.is_(True)).order_by(PackageOffer.display_order.asc())
        )
    ).scalars().all()

    result = []
    for offer in offers:
        price = next((p for p in offer.country_prices if p.country_id == country_id and p.is_active), None)
        if price is None:
            continue
        result.append(
            {
                "id": offer.id,
                "price_id": price.id,
                "name": offer.name,
                "description": offer.description,
                "package_type": offer.package_type,
                "tip_count": offer.tip_count,
                "validity_days": offer.validity_days,
                "features": offer.features or [],
                "display_order": offer.display_order,
                "price": float(price.price),
                "original_price": float(price.original_price) if price.original_price is not None else None,
                "currency_code": price.country.currency_code,
                "currency_symbol": price.country.currency_symbol,
            }
        )
    return result


async def list_my_packages(db: AsyncSession, user: User, limit: int = 10) -> list[dict[str, Any]]:
    """Completed package purchases, newest first, joined with what they granted."""
    purchases = (
        await db.execute(
            select(PackagePurchase)
            .where(PackagePurchase.user_id == user.id, PackagePurchase.status == "completed")
            .order_by(PackagePurchase.created_at.desc())
            .limit(limit)
        )
    ).scalars().all()
    owned = (
        await db.execute(
            select(UserPackage).where(UserPackage.user_id == user.id).order_by(UserPackage.created_at.desc())
        )
    ).scalars().all()

    currency_code = user.country.currency_code if user.country else "USD"
    currency_symbol = user.country.currency_symbol if user.country else "$"

    packages = []
    for purchase in purchases:
        user_package = next(
            (
                up
                for up in owned
                if (purchase.package_offer_id is not None and up.package_offer_id == purchase.package_offer_id)
                or (purchase.package_offer_id is None and up.package_type == purchase.package_type)
            ),
            None,
        )
        offer = await db.get(PackageOffer, purchase.package_offer_id) if purchase.package_offer_id else None
        if offer is not None:
            name, description = offer.name, offer.description
            tip_count, validity_days = offer.tip_count, offer.validity_days
            features = offer.features or []
        else:
            defaults = package_defaults(purchase.package_type)
            name, description = defaults.name, None
            tip_count, validity_days = defaults.tip_count, defaults.validity_days
            features = []

        packages.append(
            {
                "id": purchase.id,
                "name": name,
                "description": description,
                "features": features,
                "package_type": purchase.package_type,
                "amount": float(purchase.amount),
                "currency_code": currency_code,
                "currency_symbol": currency_symbol,
                "payment_method": purchase.payment_method,
                "purchase_date": purchase.created_at,
                "credits_gained": display_credits(tip_count),
                "tips_included": tip_count,
                "validity_days": validity_days,
                "expires_at": user_package.expires_at if user_package else None,
                "status": purchase.status,
            }
        )
    return packages


def pick_package(packages: list[UserPackage]) -> UserPackage | None:
    """Prefer the soonest-expiring limited package; unlimited ones are the fallback."""
    limited = [p for p in packages if not p.is_unlimited and p.tips_remaining > 0]
    if limited:
        return limited[0]
    return next((p for p in packages if p.is_unlimited), None)


async def claim_tip_from_package(db: AsyncSession, user_id: int, prediction_id: int) -> UserPackageTip:
    """
    Spend one tip of an owned package on a prediction.

    Raises:
        LookupError: Unknown prediction.
        ConflictError: Prediction already claimed through a package.
        ValueError: No usable package.
    """
    prediction = (
        await db.execute(select(Prediction).where(Prediction.id == prediction_id))
    ).unique().scalar_one_or_none()
    if prediction is None:
        msg = "Prediction not found"
        raise LookupError(msg)

    existing = (
        await db.execute(
            select(UserPackageTip.id).where(
                UserPackageTip.user_id == user_id, UserPackageTip.prediction_id == prediction_id
            )
        )
    ).first()
    if existing is not None:
        msg = "Tip already claimed"
        raise ConflictError(msg)

    candidates = (
        await db.execute(
            select(UserPackage)
            .where(
                UserPackage.user_id == user_id,
                UserPackage.status == "active",
                UserPackage.expires_at > datetime.now(timezone.utc),
                or_(UserPackage.tips_remaining > 0, UserPackage.total_tips == UNLIMITED_TIPS),
            )
            .order_by(UserPackage.expires_at.asc())
        )
    ).scalars().all()
    package = pick_package(list(candidates))
    if package is None:
        msg = "No active package with tips remaining"
        raise ValueError(msg)

    tip = UserPackageTip(
        user_package_id=package.id,
        user_id=user_id,
        prediction_id=prediction_id,
        prediction=prediction,
        status="claimed",
    )
    db.add(tip)
    if not package.is_unlimited:
        package.tips_remaining -= 1
        if package.tips_remaining == 0:
            package.status = "completed"
    await db.commit()
    logger.info(
        "package_tip_claimed",
        user_id=user_id,
        prediction_id=prediction_id,
        user_package_id=package.id,
        tips_remaining=package.tips_remaining,
    )
    return tip


async def list_package_tips(db: AsyncSession, user_id: int, limit: int = 50) -> list[UserPackageTip]:
    result = await db.execute(
        select(UserPackageTip)
        .where(UserPackageTip.user_id == user_id)
        .order_by(UserPackageTip.claimed_at.desc())
        .limit(limit)
    )
    return list(result.unique().scalars().all())
