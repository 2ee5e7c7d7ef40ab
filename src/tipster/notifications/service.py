"""In-app notification creation and queries.

Notification writes are side effects of payments, claims, referrals and
support activity. ``notify_safely`` is the entry point for those callers: a
failed notification is logged and never propagates.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

import structlog
from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from tipster.db.models import Notification

logger = structlog.get_logger()

VALID_TYPES = {"info", "success", "warning", "error", "prediction", "payment", "achievement"}
VALID_CATEGORIES = {"system", "prediction", "payment", "achievement", "credits", "referral", "support"}


async def create_notification(
    db: AsyncSession,
    user_id: int,
    title: str,
    message: str,
    type_: str = "info",
    category: str = "system",
    action_url: str | None = None,
    metadata: dict[str, Any] | None = None,
) -> Notification:
    """Persist a notification. Raises ValueError on an unknown type or category."""
    if type_ not in VALID_TYPES:
        msg = f"Invalid notification type: {type_}"
        raise ValueError(msg)
    if category not in VALID_CATEGORIES:
        msg = f"Invalid notification category: {category}"
        raise ValueError(msg)

    notification = Notification(
        user_id=user_id,
        title=title,
        message=message,
        type=type_,
        category=category,
        action_url=action_url,
        notification_metadata=metadata or {},
        created_at=datetime.now(timezone.utc),
    )
    db.add(notification)
    await db.flush()
    logger.debug("notification_created", user_id=user_id, category=category, title=title)
    return notification


async def notify_safely(db: AsyncSession, user_id: int, **kwargs: Any) -> Notification | None:  # noqa: ANN401
    """Create a notification inside a savepoint, logging instead of raising."""
    try:
        async with db.begin_nested():
            return await create_notification(db, user_id, **kwargs)
    except Exception:
        logger.warning("notification_failed", user_id=user_id, title=kwargs.get("title"), exc_info=True)
        return None


# ---------------------------------------------------------------------------
# Typed helpers
# ---------------------------------------------------------------------------


async def notify_payment_success(db: AsyncSession, user_id: int, amount: float, item_name: str) -> None:
    await notify_safely(
        db,
        user_id,
        title="Payment Successful",
        message=f"Your payment of ${amount:.2f} for {item_name} was successful.",
        type_="success",
        category="payment",
        action_url="/dashboard/my-tips",
        metadata={"amount": amount, "item_name": item_name},
    )


async def notify_payment_failed(db: AsyncSession, user_id: int, reason: str | None = None) -> None:
    await notify_safely(
        db,
        user_id,
        title="Payment Failed",
        message=f"Your payment could not be completed{f': {reason}' if reason else ''}. Please try again.",
        type_="error",
        category="payment",
        action_url="/pricing",
    )


async def notify_package_purchased(
    db: AsyncSession, user_id: int, package_name: str, credits_added: int, unlimited: bool
) -> None:
    tips = "Unlimited tips" if unlimited else f"{credits_added} credits"
    await notify_safely(
        db,
        user_id,
        title="Package Activated",
        message=f"{package_name} is now active. {tips} added to your account.",
        type_="success",
        category="payment",
        action_url="/dashboard",
        metadata={"package_name": package_name, "credits_added": credits_added},
    )


async def notify_credit_failure(db: AsyncSession, user_id: int, package_name: str) -> None:
    await notify_safely(
        db,
        user_id,
        title="Credit Update Delayed",
        message=f"Your {package_name} purchase succeeded but credits could not be added yet. Support has been alerted.",
        type_="warning",
        category="credits",
        action_url="/dashboard/support",
    )


async def notify_tip_claimed(db: AsyncSession, user_id: int, match_label: str, credits_left: int | None) -> None:
    remaining = f" {credits_left} credits remaining." if credits_left is not None else ""
    await notify_safely(
        db,
        user_id,
        title="Tip Unlocked",
        message=f"You unlocked the prediction for {match_label}.{remaining}",
        type_="prediction",
        category="prediction",
        action_url="/dashboard/my-tips",
    )


async def notify_referral_completed(db: AsyncSession, user_id: int, credits: int, points: int) -> None:
    await notify_safely(
        db,
        user_id,
        title="Referral Bonus Earned",
        message=f"A friend you referred is now active. You earned {credits} credits and {points} points.",
        type_="achievement",
        category="referral",
        action_url="/dashboard/referrals",
        metadata={"credits": credits, "points": points},
    )


async def notify_ticket_update(db: AsyncSession, user_id: int, ticket_id: int, status: str) -> None:
    await notify_safely(
        db,
        user_id,
        title=f"Ticket #{ticket_id} updated",
        message=f"Your support ticket is now {status.replace('_', ' ')}.",
        type_="info",
        category="support",
        action_url=f"/dashboard/support/{ticket_id}",
    )


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------


async def list_notifications(
    db: AsyncSession,
    user_id: int,
    *,
    page: int = 1,
    limit: int = 20,
    type_: str | None = None,
    category: str | None = None,
    unread_only: bool = False,
) -> tuple[list[Notification], int, int]:
    """Return (page of notifications, filtered total, unread count)."""
    filters = [Notification.user_id == user_id]
    if type_ and type_ != "all":
        filters.append(Notification.type == type_)
    if category and category != "all":
        filters.append(Notification.category == category)
    if unread_only:
        filters.append(Notification.is_read == False)  # noqa: E712

    total = (await db.execute(select(func.count()).select_from(Notification).where(*filters))).scalar_one()
    rows = await db.execute(
        select(Notification)
        .where(*filters)
        .order_by(Notification.created_at.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    unread = await get_unread_count(db, user_id)
    return list(rows.scalars().all()), total, unread


async def get_unread_count(db: AsyncSession, user_id: int) -> int:
    result = await db.execute(
        select(func.count())
        .select_from(Notification)
        .where(Notification.user_id == user_id, Notification.is_read == False)  # noqa: E712
    )
    return result.scalar_one()


async def mark_as_read(db: AsyncSession, user_id: int, notification_id: int) -> bool:
    """Mark one notification read. Returns False if it is not the user's."""
    result = await db.execute(
        update(Notification)
        .where(Notification.id == notification_id, Notification.user_id == user_id)
        .values(is_read=True, read_at=datetime.now(timezone.utc))
    )
    return bool(result.rowcount)


async def mark_all_as_read(db: AsyncSession, user_id: int) -> int:
    result = await db.execute(
        update(Notification)
        .where(Notification.user_id == user_id, Notification.is_read == False)  # noqa: E712
        .values(is_read=True, read_at=datetime.now(timezone.utc))
    )
    return result.rowcount  # type: ignore[return-value]
