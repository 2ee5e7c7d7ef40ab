"""Notification response schemas."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel


class NotificationResponse(BaseModel):
    id: int
    title: str
    message: str
    type: str
    category: str
    is_read: bool
    action_url: str | None = None
    metadata: dict[str, Any] = {}
    created_at: datetime
    read_at: datetime | None = None


class NotificationListResponse(BaseModel):
    notifications: list[NotificationResponse]
    pagination: dict[str, int | bool]
    unread_count: int
