"""Public blog endpoints and admin post/comment management."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from tipster.auth.dependencies import get_current_user, require_admin
from tipster.blogs.schemas import (
    BlogPostCreate,
    BlogPostResponse,
    BlogPostUpdate,
    CommentCreateRequest,
    CommentModerationRequest,
)
from tipster.blogs.service import (
    add_comment,
    comment_payload,
    create_post,
    delete_post,
    list_comments,
    list_published,
    moderate_comment,
    update_post,
    view_post,
)
from tipster.database import get_session
from tipster.db.models import User
from tipster.dependencies import PageParams
from tipster.errors import ConflictError

router = APIRouter(prefix="/api/v1", tags=["Blogs"])


@router.get("/blogs")
async def blogs(
    tag: str | None = Query(None, max_length=64),
    paging: PageParams = Depends(),
    db: AsyncSession = Depends(get_session),
) -> dict[str, Any]:
    posts, total = await list_published(db, tag=tag, page=paging.page, limit=paging.limit)
    return {
        "posts": [BlogPostResponse.model_validate(p) for p in posts],
        "pagination": paging.meta(total),
    }


@router.get("/blogs/{post_id}", response_model=BlogPostResponse)
async def blog(post_id: int, db: AsyncSession = Depends(get_session)) -> BlogPostResponse:
    try:
        post = await view_post(db, post_id)
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    return BlogPostResponse.model_validate(post)


# ── Comments ──


@router.get("/blogs/{post_id}/comments")
async def comments(
    post_id: int,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=50),
    db: AsyncSession = Depends(get_session),
) -> dict[str, Any]:
    items, total = await list_comments(db, post_id, page=page, limit=limit)
    return {
        "comments": items,
        "pagination": {"page": page, "limit": limit, "total": total, "pages": (total + limit - 1) // limit},
    }


@router.post("/blogs/{post_id}/comments", status_code=201)
async def post_comment(
    post_id: int,
    body: CommentCreateRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> dict[str, Any]:
    """New comments are hidden until approved."""
    try:
        comment = await add_comment(db, post_id, user.id, body.content, body.parent_id)
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    return {**comment_payload(comment), "message": "Comment submitted for moderation"}


# ── Admin ──


@router.post("/admin/blogs", response_model=BlogPostResponse, status_code=201)
async def admin_create_post(
    body: BlogPostCreate,
    _admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
) -> BlogPostResponse:
    try:
        post = await create_post(db, body.model_dump())
    except ConflictError as e:
        raise HTTPException(status_code=409, detail=str(e)) from e
    return BlogPostResponse.model_validate(post)


@router.put("/admin/blogs/{post_id}", response_model=BlogPostResponse)
async def admin_update_post(
    post_id: int,
    body: BlogPostUpdate,
    _admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
) -> BlogPostResponse:
    try:
        post = await update_post(db, post_id, body.model_dump(exclude_unset=True))
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    except ConflictError as e:
        raise HTTPException(status_code=409, detail=str(e)) from e
    return BlogPostResponse.model_validate(post)


@router.delete("/admin/blogs/{post_id}")
async def admin_delete_post(
    post_id: int,
    _admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
) -> dict[str, str]:
    try:
        await delete_post(db, post_id)
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    return {"detail": "Blog post deleted"}


@router.patch("/admin/comments/{comment_id}")
async def admin_moderate_comment(
    comment_id: int,
    body: CommentModerationRequest,
    _admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
) -> dict[str, Any]:
    try:
        comment = await moderate_comment(db, comment_id, is_approved=body.is_approved, is_spam=body.is_spam)
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    return comment_payload(comment)
