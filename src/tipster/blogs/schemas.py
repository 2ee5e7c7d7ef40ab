"""Blog request/response models."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


class BlogMediaItem(BaseModel):
    type: str = "image"
    url: str
    alt_text: str | None = None
    caption: str | None = None
    sort_order: int | None = None

    model_config = {"from_attributes": True}


class BlogPostCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=256)
    slug: str = Field(..., min_length=1, max_length=256, pattern=r"^[a-z0-9]+(?:-[a-z0-9]+)*$")
    excerpt: str | None = None
    content: str = Field(..., min_length=1)
    author: str | None = None
    category: str | None = None
    tags: list[str] = []
    seo_title: str | None = None
    seo_description: str | None = None
    is_published: bool = False
    is_active: bool = True
    media: list[BlogMediaItem] = []


class BlogPostUpdate(BaseModel):
    title: str | None = Field(None, min_length=1, max_length=256)
    slug: str | None = Field(None, min_length=1, max_length=256, pattern=r"^[a-z0-9]+(?:-[a-z0-9]+)*$")
    excerpt: str | None = None
    content: str | None = None
    author: str | None = None
    category: str | None = None
    tags: list[str] | None = None
    seo_title: str | None = None
    seo_description: str | None = None
    is_published: bool | None = None
    is_active: bool | None = None
    media: list[BlogMediaItem] | None = None


class BlogPostResponse(BaseModel):
    id: int
    title: str
    slug: str
    excerpt: str | None
    content: str
    author: str | None
    category: str | None
    tags: list[str]
    seo_title: str | None
    seo_description: str | None
    is_published: bool
    is_active: bool
    view_count: int
    published_at: datetime | None
    created_at: datetime
    updated_at: datetime
    media: list[BlogMediaItem]

    model_config = {"from_attributes": True}


class CommentCreateRequest(BaseModel):
    content: str = Field(..., min_length=1, max_length=1000)
    parent_id: int | None = None


class CommentModerationRequest(BaseModel):
    is_approved: bool | None = None
    is_spam: bool | None = None
