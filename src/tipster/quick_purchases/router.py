"""Quick-purchase listing for the signed-in user's market."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from tipster.auth.dependencies import get_current_user
from tipster.database import get_session
from tipster.db.models import User
from tipster.quick_purchases.service import list_quick_purchases

router = APIRouter(prefix="/api/v1/quick-purchases", tags=["Quick Purchases"])


@router.get("")
async def quick_purchases(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> list[dict[str, Any]]:
    try:
        return await list_quick_purchases(db, user)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
