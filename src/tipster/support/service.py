"""Support tickets and threaded responses."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

import structlog
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from tipster.config import get_settings
from tipster.db.models import SupportTicket, TicketResponse, User
from tipster.email.service import get_email_service

logger = structlog.get_logger()

PRIORITIES = ("Low", "Medium", "High", "Urgent")
STATUSES = ("open", "in_progress", "resolved", "closed")


async def create_ticket(
    db: AsyncSession,
    user: User,
    subject: str,
    description: str,
    category: str,
    priority: str,
) -> SupportTicket:
    if priority not in PRIORITIES:
        msg = f"Priority must be one of: {', '.join(PRIORITIES)}"
        raise ValueError(msg)
    ticket = SupportTicket(
        user_id=user.id,
        user=user,
        subject=subject,
        description=description,
        category=category,
        priority=priority,
        status="open",
        tags=[category.lower()],
        responses=[],
    )
    db.add(ticket)
    await db.commit()
    logger.info("support_ticket_created", ticket_id=ticket.id, user_id=user.id, priority=priority)
    return ticket


async def send_ticket_emails(ticket: SupportTicket, user: User) -> None:
    """Acknowledge to the customer and alert the support inbox. Failures are logged only."""
    service = get_email_service()
    try:
        await service.send_template(
            to=user.email,
            template_name="support_ticket_created",
            context={
                "full_name": user.full_name,
                "ticket_id": ticket.id,
                "subject": ticket.subject,
                "priority": ticket.priority,
            },
        )
    except Exception:
        logger.exception("support_ack_email_failed", ticket_id=ticket.id)
    try:
        await service.send_template(
            to=get_settings().support_email,
            template_name="support_ticket_alert",
            context={
                "ticket_id": ticket.id,
                "customer_email": user.email,
                "subject": ticket.subject,
                "category": ticket.category,
                "priority": ticket.priority,
                "description": ticket.description,
            },
        )
    except Exception:
        logger.exception("support_alert_email_failed", ticket_id=ticket.id)


async def list_tickets(
    db: AsyncSession,
    user: User,
    *,
    status: str | None = None,
    category: str | None = None,
    priority: str | None = None,
    search: str | None = None,
    page: int = 1,
    limit: int = 20,
) -> tuple[list[SupportTicket], int]:
    """Own tickets, or every ticket for staff."""
    stmt = select(SupportTicket)
    if not user.is_staff:
        stmt = stmt.where(SupportTicket.user_id == user.id)
    if status:
        stmt = stmt.where(SupportTicket.status == status)
    if category:
        stmt = stmt.where(SupportTicket.category == category)
    if priority:
        stmt = stmt.where(SupportTicket.priority == priority)
    if search:
        pattern = f"%{search}%"
        stmt = stmt.where(or_(SupportTicket.subject.ilike(pattern), SupportTicket.description.ilike(pattern)))

    total = (await db.execute(select(func.count()).select_from(stmt.subquery()))).scalar_one()
    rows = (
        await db.execute(stmt.order_by(SupportTicket.created_at.desc()).offset((page - 1) * limit).limit(limit))
    ).unique().scalars().all()
    return list(rows), total


async def get_ticket(db: AsyncSession, ticket_id: int, user: User) -> SupportTicket:
    """
    Raises:
        LookupError: Unknown ticket.
        PermissionError: Neither the owner nor staff.
    """
    ticket = (
        await db.execute(select(SupportTicket).where(SupportTicket.id == ticket_id))
    ).unique().scalar_one_or_none()
    if ticket is None:
        msg = "Ticket not found"
        raise LookupError(msg)
    if ticket.user_id != user.id and not user.is_staff:
        msg = "Access denied"
        raise PermissionError(msg)
    return ticket


async def update_ticket(
    db: AsyncSession,
    ticket: SupportTicket,
    *,
    status: str | None = None,
    priority: str | None = None,
    assigned_to: int | None = None,
) -> SupportTicket:
    if status is not None:
        if status not in STATUSES:
            msg = f"Status must be one of: {', '.join(STATUSES)}"
            raise ValueError(msg)
        ticket.status = status
        if status in ("resolved", "closed") and ticket.resolved_at is None:
            ticket.resolved_at = datetime.now(timezone.utc)
    if priority is not None:
        if priority not in PRIORITIES:
            msg = f"Priority must be one of: {', '.join(PRIORITIES)}"
            raise ValueError(msg)
        ticket.priority = priority
    if assigned_to is not None:
        ticket.assigned_to = assigned_to
    ticket.updated_at = datetime.now(timezone.utc)
    await db.commit()
    logger.info("support_ticket_updated", ticket_id=ticket.id, status=ticket.status, priority=ticket.priority)
    return ticket


async def add_response(db: AsyncSession, ticket: SupportTicket, user: User, content: str) -> TicketResponse:
    """
    Append a reply. Staff replies move ``open`` tickets to ``in_progress``.

    Raises:
        ValueError: The ticket is closed.
    """
    if ticket.status == "closed":
        msg = "Cannot respond to a closed ticket"
        raise ValueError(msg)
    is_staff = user.is_staff
    response = TicketResponse(
        ticket_id=ticket.id,
        ticket=ticket,
        user_id=user.id,
        user=user,
        content=content,
        is_staff_response=is_staff,
    )
    db.add(response)
    if is_staff and ticket.status == "open":
        ticket.status = "in_progress"
    ticket.updated_at = datetime.now(timezone.utc)
    await db.commit()
    logger.info("support_response_added", ticket_id=ticket.id, user_id=user.id, staff=is_staff)
    return response


async def send_reply_email(ticket: SupportTicket, reply: str) -> None:
    try:
        await get_email_service().send_template(
            to=ticket.user.email,
            template_name="support_ticket_reply",
            context={"ticket_id": ticket.id, "subject": ticket.subject, "reply": reply},
        )
    except Exception:
        logger.exception("support_reply_email_failed", ticket_id=ticket.id)


def ticket_payload(ticket: SupportTicket, *, with_responses: bool = False) -> dict[str, Any]:
    data: dict[str, Any] = {
        "id": ticket.id,
        "subject": ticket.subject,
        "description": ticket.description,
        "category": ticket.category,
        "priority": ticket.priority,
        "status": ticket.status,
        "tags": ticket.tags or [],
        "assigned_to": ticket.assigned_to,
        "user": {"id": ticket.user.id, "email": ticket.user.email, "full_name": ticket.user.full_name},
        "resolved_at": ticket.resolved_at,
        "created_at": ticket.created_at,
        "updated_at": ticket.updated_at,
        "response_count": len(ticket.responses),
    }
    if with_responses:
        data["responses"] = [
            {
                "id": r.id,
                "content": r.content,
                "is_staff_response": r.is_staff_response,
                "user": {"id": r.user.id, "full_name": r.user.full_name},
                "created_at": r.created_at,
            }
            for r in ticket.responses
        ]
    return data
