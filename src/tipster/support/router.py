"""Support ticket endpoints."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from tipster.auth.dependencies import get_current_user, require_staff
from tipster.database import get_session
from tipster.db.models import SupportTicket, User
from tipster.dependencies import PageParams
from tipster.notifications.service import notify_ticket_update
from tipster.support.schemas import TicketCreateRequest, TicketResponseRequest, TicketUpdateRequest
from tipster.support.service import (
    add_response,
    create_ticket,
    get_ticket,
    list_tickets,
    send_reply_email,
    send_ticket_emails,
    ticket_payload,
    update_ticket,
)

router = APIRouter(prefix="/api/v1/support/tickets", tags=["Support"])


async def _load_ticket(ticket_id: int, user: User, db: AsyncSession) -> SupportTicket:
    try:
        return await get_ticket(db, ticket_id, user)
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    except PermissionError as e:
        raise HTTPException(status_code=403, detail=str(e)) from e


@router.post("", status_code=201)
async def create(
    body: TicketCreateRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> dict[str, Any]:
    try:
        ticket = await create_ticket(db, user, body.subject, body.description, body.category, body.priority)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    await send_ticket_emails(ticket, user)
    return ticket_payload(ticket)


@router.get("")
async def list_all(
    status: str | None = Query(None),
    category: str | None = Query(None),
    priority: str | None = Query(None),
    search: str | None = Query(None, max_length=100),
    paging: PageParams = Depends(),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> dict[str, Any]:
    tickets, total = await list_tickets(
        db,
        user,
        status=status,
        category=category,
        priority=priority,
        search=search,
        page=paging.page,
        limit=paging.limit,
    )
    return {"tickets": [ticket_payload(t) for t in tickets], "pagination": paging.meta(total)}


@router.get("/{ticket_id}")
async def detail(
    ticket_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> dict[str, Any]:
    ticket = await _load_ticket(ticket_id, user, db)
    return ticket_payload(ticket, with_responses=True)


@router.patch("/{ticket_id}")
async def update(
    ticket_id: int,
    body: TicketUpdateRequest,
    staff: User = Depends(require_staff),
    db: AsyncSession = Depends(get_session),
) -> dict[str, Any]:
    ticket = await _load_ticket(ticket_id, staff, db)
    previous_status = ticket.status
    ticket = await update_ticket(
        db, ticket, status=body.status, priority=body.priority, assigned_to=body.assigned_to
    )
    if ticket.status != previous_status:
        await notify_ticket_update(db, ticket.user_id, ticket.id, ticket.status)
        await db.commit()
    return ticket_payload(ticket, with_responses=True)


@router.post("/{ticket_id}/responses", status_code=201)
async def respond(
    ticket_id: int,
    body: TicketResponseRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> dict[str, Any]:
    ticket = await _load_ticket(ticket_id, user, db)
    try:
        response = await add_response(db, ticket, user, body.content)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    if response.is_staff_response and ticket.user_id != user.id:
        await send_reply_email(ticket, body.content)
    return {
        "id": response.id,
        "ticket_id": ticket.id,
        "content": response.content,
        "is_staff_response": response.is_staff_response,
        "ticket_status": ticket.status,
        "created_at": response.created_at,
    }
