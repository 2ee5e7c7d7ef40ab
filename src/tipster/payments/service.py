"""Stripe payment processing: intents, webhook fulfilment and status polling.

Webhook fulfilment is idempotent per user within a five-minute window.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any

import stripe
import structlog
from redis.asyncio import Redis
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tipster.config import get_settings
from tipster.credits.service import add_credits, invalidate_credit_balance
from tipster.db.models import (
    PackageCountryPrice,
    PackageOfferCountryPrice,
    PackagePurchase,
    Prediction,
    Purchase,
    QuickPurchase,
    User,
    UserPackage,
    UserPrediction,
)
from tipster.notifications.service import (
    notify_credit_failure,
    notify_package_purchased,
    notify_payment_failed,
    notify_payment_success,
)
from tipster.packages.catalog import (
    UNLIMITED_TIPS,
    package_defaults,
    parse_package_item_id,
    purchase_credits,
)
from tipster.quick_purchases.service import quick_purchase_price

logger = structlog.get_logger()

IDEMPOTENCY_WINDOW = timedelta(minutes=5)
PACKAGE_ITEM = "package"
TIP_ITEMS = ("tip", "prediction")


def _recent(now: datetime | None = None) -> datetime:
    return (now or datetime.now(timezone.utc)) - IDEMPOTENCY_WINDOW


def _user_id(value: Any) -> int | None:  # noqa: ANN401
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def parse_metadata(metadata: dict[str, Any] | None) -> tuple[int, str, str] | None:
    """``(user_id, item_type, item_id)`` from intent metadata, or None when incomplete or malformed."""
    metadata = metadata or {}
    user_id, item_type, item_id = metadata.get("user_id"), metadata.get("item_type"), metadata.get("item_id")
    if not (item_type and item_id):
        return None
    parsed_user_id = _user_id(user_id)
    if parsed_user_id is None:
        return None
    return parsed_user_id, str(item_type), str(item_id)


# ---------------------------------------------------------------------------
# Package resolution
# ---------------------------------------------------------------------------


@dataclass
class ResolvedPackage:
    """Price and entitlement for a purchasable package item id."""

    name: str
    package_type: str
    tip_count: int
    validity_days: int
    price: Decimal
    country_id: int | None
    package_offer_id: int | None = None

    @property
    def is_unlimited(self) -> bool:
        return self.tip_count == UNLIMITED_TIPS


async def resolve_package(db: AsyncSession, item_id: str) -> ResolvedPackage | None:
    """Resolve ``{country_id}_{package_type}`` or an offer-price id."""
    parsed = parse_package_item_id(item_id)
    if parsed is not None:
        country_id, package_type = parsed
        price = (
            await db.execute(
                select(PackageCountryPrice).where(
                    PackageCountryPrice.country_id == country_id,
                    PackageCountryPrice.package_type == package_type,
                )
            )
        ).unique().scalar_one_or_none()
        if price is None:
            return None
        defaults = package_defaults(package_type)
        return ResolvedPackage(
            name=defaults.name,
            package_type=package_type,
            tip_count=defaults.tip_count,
            validity_days=defaults.validity_days,
            price=price.price,
            country_id=country_id,
        )

    if not item_id.isdigit():
        return None
    offer_price = (
        await db.execute(select(PackageOfferCountryPrice).where(PackageOfferCountryPrice.id == int(item_id)))
    ).unique().scalar_one_or_none()
    if offer_price is None:
        return None
    offer = offer_price.package_offer
    return ResolvedPackage(
        name=offer.name,
        package_type=offer.package_type,
        tip_count=offer.tip_count,
        validity_days=offer.validity_days,
        price=offer_price.price,
        country_id=offer_price.country_id,
        package_offer_id=offer.id,
    )


# ---------------------------------------------------------------------------
# Webhook fulfilment
# ---------------------------------------------------------------------------


async def fulfil_package(db: AsyncSession, user_id: int, item_id: str, intent_id: str | None) -> UserPackage | None:
    """Create the purchase, the owned package and its credits."""
    recent = (
        await db.execute(
            select(UserPackage.id).where(UserPackage.user_id == user_id, UserPackage.created_at >= _recent()).limit(1)
        )
    ).first()
    if recent is not None:
        logger.info("package_purchase_duplicate", user_id=user_id, item_id=item_id)
        return None

    package = await resolve_package(db, item_id)
    if package is None:
        logger.warning("package_price_not_found", user_id=user_id, item_id=item_id)
        return None

    db.add(
        PackagePurchase(
            user_id=user_id,
            package_offer_id=package.package_offer_id,
            country_id=package.country_id,
            package_type=package.package_type,
            amount=package.price,
            payment_method="stripe",
            payment_intent_id=intent_id,
            status="completed",
        )
    )
    user_package = UserPackage(
        user_id=user_id,
        package_offer_id=package.package_offer_id,
        package_type=package.package_type,
        name=package.name,
        expires_at=datetime.now(timezone.utc) + timedelta(days=package.validity_days),
        tips_remaining=0 if package.is_unlimited else package.tip_count,
        total_tips=package.tip_count,
        status="active",
    )
    db.add(user_package)
    await db.flush()

    credits = purchase_credits(package.tip_count)
    try:
        async with db.begin_nested():
            await add_credits(
                db,
                user_id,
                credits,
                source="package_purchase",
                description=f"Purchased {package.name}",
                metadata={"user_package_id": user_package.id, "payment_intent_id": intent_id},
            )
    except Exception:
        logger.error("package_credit_failed", user_id=user_id, user_package_id=user_package.id, exc_info=True)
        await notify_credit_failure(db, user_id, package.name)
    else:
        await notify_package_purchased(db, user_id, package.name, credits, package.is_unlimited)

    await db.commit()
    logger.info(
        "package_purchase_completed",
        user_id=user_id,
        user_package_id=user_package.id,
        package_type=package.package_type,
        credits=credits,
    )
    return user_package


async def fulfil_tip(db: AsyncSession, user_id: int, item_id: str, intent_id: str | None) -> Purchase | None:
    """Record a single-tip purchase and give the user access to its prediction."""
    if not item_id.isdigit():
        logger.warning("tip_item_id_invalid", user_id=user_id, item_id=item_id)
        return None
    quick_purchase_id = int(item_id)
    recent = (
        await db.execute(
            select(Purchase.id)
            .where(
                Purchase.user_id == user_id,
                Purchase.quick_purchase_id == quick_purchase_id,
                Purchase.created_at >= _recent(),
            )
            .limit(1)
        )
    ).first()
    if recent is not None:
        logger.info("tip_purchase_duplicate", user_id=user_id, quick_purchase_id=quick_purchase_id)
        return None

    qp = await db.get(QuickPurchase, quick_purchase_id)
    if qp is None:
        logger.warning("quick_purchase_not_found", user_id=user_id, quick_purchase_id=quick_purchase_id)
        return None
    user = await db.get(User, user_id)
    amount = (await quick_purchase_price(db, qp, user)).price if user is not None else qp.price

    purchase = Purchase(
        user_id=user_id,
        quick_purchase_id=qp.id,
        quick_purchase=qp,
        amount=amount,
        payment_method="stripe",
        payment_intent_id=intent_id,
        status="completed",
    )
    db.add(purchase)

    if qp.match_id and qp.match_id.isdigit():
        prediction_id = (
            await db.execute(select(Prediction.id).where(Prediction.match_id == int(qp.match_id)).limit(1))
        ).scalar_one_or_none()
        if prediction_id is not None:
            owned = (
                await db.execute(
                    select(UserPrediction.id).where(
                        UserPrediction.user_id == user_id, UserPrediction.prediction_id == prediction_id
                    )
                )
            ).first()
            if owned is None:
                db.add(
                    UserPrediction(
                        user_id=user_id,
                        prediction_id=prediction_id,
                        status="pending",
                        stake=amount,
                    )
                )

    await add_credits(
        db,
        user_id,
        1,
        source="tip_purchase",
        description=f"Purchased {qp.name}",
        metadata={"quick_purchase_id": qp.id, "payment_intent_id": intent_id},
    )
    await notify_payment_success(db, user_id, float(amount), qp.name)
    await db.commit()
    logger.info("tip_purchase_completed", user_id=user_id, purchase_id=purchase.id)
    return purchase


async def handle_payment_succeeded(db: AsyncSession, redis: Redis | None, intent: dict[str, Any]) -> None:
    parsed = parse_metadata(intent.get("metadata"))
    if parsed is None:
        logger.error("payment_metadata_missing", payment_intent_id=intent.get("id"))
        return
    user_id, item_type, item_id = parsed

    if item_type == PACKAGE_ITEM:
        await fulfil_package(db, user_id, item_id, intent.get("id"))
    elif item_type in TIP_ITEMS:
        await fulfil_tip(db, user_id, item_id, intent.get("id"))
    else:
        logger.warning("payment_item_type_unknown", item_type=item_type, payment_intent_id=intent.get("id"))
        return
    await invalidate_credit_balance(redis, user_id)


async def handle_payment_failed(db: AsyncSession, intent: dict[str, Any]) -> None:
    error = intent.get("last_payment_error") or {}
    reason = error.get("message")
    logger.warning("payment_failed", payment_intent_id=intent.get("id"), reason=reason)
    raw_user_id = (intent.get("metadata") or {}).get("user_id")
    user_id = _user_id(raw_user_id)
    if user_id is None:
        if raw_user_id:
            logger.warning("payment_user_id_invalid", payment_intent_id=intent.get("id"), user_id=raw_user_id)
        return
    await notify_payment_failed(db, user_id, reason)
    await db.commit()


async def process_event(db: AsyncSession, redis: Redis | None, event: dict[str, Any]) -> None:
    """Dispatch a verified Stripe event."""
    event_type = event.get("type")
    intent = (event.get("data") or {}).get("object") or {}
    if event_type == "payment_intent.succeeded":
        await handle_payment_succeeded(db, redis, intent)
    elif event_type == "payment_intent.payment_failed":
        await handle_payment_failed(db, intent)
    else:
        logger.info("stripe_event_unhandled", event_type=event_type)


# ---------------------------------------------------------------------------
# Intents & status
# ---------------------------------------------------------------------------


async def _item_price(db: AsyncSession, user: User, item_type: str, item_id: str) -> tuple[Decimal, str, str | None]:
    """``(price, description, package_type)`` for a purchasable item."""
    if item_type == PACKAGE_ITEM:
        package = await resolve_package(db, item_id)
        if package is None:
            msg = "Package not found"
            raise LookupError(msg)
        return package.price, package.name, package.package_type

    if not item_id.isdigit():
        msg = "Invalid item id"
        raise ValueError(msg)
    qp = await db.get(QuickPurchase, int(item_id))
    if qp is None or not qp.is_active:
        msg = "Item not found"
        raise LookupError(msg)
    listed = await quick_purchase_price(db, qp, user)
    return listed.price, qp.name, None


async def create_payment_intent(db: AsyncSession, user: User, item_type: str, item_id: str) -> dict[str, Any]:
    """
    Create a Stripe PaymentIntent carrying the metadata the webhook needs.

    Raises:
        ValueError: Unsupported item type or malformed id.
        LookupError: Unknown item.
    """
    if item_type != PACKAGE_ITEM and item_type not in TIP_ITEMS:
        msg = "Unsupported item type"
        raise ValueError(msg)
    price, description, package_type = await _item_price(db, user, item_type, item_id)

    settings = get_settings()
    currency = (user.country.currency_code if user.country else settings.stripe_default_currency).lower()
    amount_cents = int((price * 100).to_integral_value())
    metadata = {"user_id": str(user.id), "item_type": item_type, "item_id": item_id}
    if package_type:
        metadata["package_type"] = package_type

    intent = await stripe.PaymentIntent.create_async(
        amount=amount_cents,
        currency=currency,
        description=description,
        metadata=metadata,
        automatic_payment_methods={"enabled": True},
    )
    logger.info("payment_intent_created", user_id=user.id, item_type=item_type, item_id=item_id, amount=amount_cents)
    return {
        "client_secret": intent.client_secret,
        "payment_intent_id": intent.id,
        "amount": float(price),
        "currency": currency,
    }


async def get_payment_status(db: AsyncSession, user_id: int, payment_intent_id: str) -> dict[str, Any]:
    """``success`` once anything was fulfilled for the user in the last five minutes."""
    since = _recent()
    checks = (
        select(Purchase.id).where(Purchase.user_id == user_id, Purchase.created_at >= since),
        select(UserPackage.id).where(UserPackage.user_id == user_id, UserPackage.created_at >= since),
        select(PackagePurchase.id).where(PackagePurchase.user_id == user_id, PackagePurchase.created_at >= since),
    )
    for stmt in checks:
        if (await db.execute(stmt.limit(1))).first() is not None:
            return {"status": "success", "payment_intent": payment_intent_id}
    return {"status": "pending", "payment_intent": payment_intent_id}
