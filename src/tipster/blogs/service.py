"""Blog posts, media and moderated comments."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

import structlog
from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from tipster.db.models import BlogComment, BlogMedia, BlogPost
from tipster.errors import ConflictError

logger = structlog.get_logger()

POST_FIELDS = (
    "title",
    "slug",
    "excerpt",
    "content",
    "author",
    "category",
    "tags",
    "seo_title",
    "seo_description",
    "is_published",
    "is_active",
)


def _visible(post: BlogPost | None) -> bool:
    return post is not None and post.is_published and post.is_active


async def list_published(
    db: AsyncSession, *, tag: str | None = None, page: int = 1, limit: int = 20
) -> tuple[list[BlogPost], int]:
    stmt = select(BlogPost).where(BlogPost.is_published.is_(True), BlogPost.is_active.is_(True))
    if tag:
        stmt = stmt.where(BlogPost.tags.contains([tag]))
    total = (await db.execute(select(func.count()).select_from(stmt.subquery()))).scalar_one()
    rows = (
        await db.execute(
            stmt.order_by(BlogPost.published_at.desc().nulls_last(), BlogPost.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
    ).scalars().all()
    return list(rows), total


async def view_post(db: AsyncSession, post_id: int) -> BlogPost:
    """Load a public post and count the view."""
    post = await db.get(BlogPost, post_id)
    if not _visible(post):
        msg = "Blog post not found"
        raise LookupError(msg)
    await db.execute(update(BlogPost).where(BlogPost.id == post_id).values(view_count=BlogPost.view_count + 1))
    await db.commit()
    return post


async def _ensure_unique_slug(db: AsyncSession, slug: str, exclude_id: int | None = None) -> None:
    stmt = select(BlogPost.id).where(BlogPost.slug == slug)
    if exclude_id is not None:
        stmt = stmt.where(BlogPost.id != exclude_id)
    if (await db.execute(stmt)).first() is not None:
        msg = "A post with this slug already exists"
        raise ConflictError(msg)


def _build_media(items: list[dict[str, Any]]) -> list[BlogMedia]:
    return [
        BlogMedia(
            type=item.get("type", "image"),
            url=item["url"],
            alt_text=item.get("alt_text"),
            caption=item.get("caption"),
            sort_order=item.get("sort_order", i),
        )
        for i, item in enumerate(items)
    ]


async def create_post(db: AsyncSession, data: dict[str, Any]) -> BlogPost:
    await _ensure_unique_slug(db, data["slug"])
    post = BlogPost(
        **{k: v for k, v in data.items() if k in POST_FIELDS and v is not None},
        media=_build_media(data.get("media") or []),
    )
    if post.is_published:
        post.published_at = datetime.now(timezone.utc)
    db.add(post)
    await db.commit()
    logger.info("blog_post_created", post_id=post.id, slug=post.slug)
    return post


async def update_post(db: AsyncSession, post_id: int, data: dict[str, Any]) -> BlogPost:
    post = await db.get(BlogPost, post_id)
    if post is None:
        msg = "Blog post not found"
        raise LookupError(msg)
    if data.get("slug") and data["slug"] != post.slug:
        await _ensure_unique_slug(db, data["slug"], exclude_id=post_id)

    was_published = post.is_published
    for field, value in data.items():
        if field in POST_FIELDS and value is not None:
            setattr(post, field, value)
    if data.get("media") is not None:
        post.media = _build_media(data["media"])
    if post.is_published and not was_published:
        post.published_at = datetime.now(timezone.utc)
    await db.commit()
    logger.info("blog_post_updated", post_id=post_id)
    return post


async def delete_post(db: AsyncSession, post_id: int) -> None:
    post = await db.get(BlogPost, post_id)
    if post is None:
        msg = "Blog post not found"
        raise LookupError(msg)
    await db.delete(post)
    await db.commit()
    logger.info("blog_post_deleted", post_id=post_id)


# ---------------------------------------------------------------------------
# Comments
# ---------------------------------------------------------------------------


async def list_comments(
    db: AsyncSession, post_id: int, *, page: int = 1, limit: int = 10
) -> tuple[list[dict[str, Any]], int]:
    """Approved top-level comments, newest first, each with its approved replies."""
    visible = (BlogComment.blog_post_id == post_id, BlogComment.is_approved.is_(True), BlogComment.is_spam.is_(False))
    top_stmt = select(BlogComment).where(*visible, BlogComment.parent_id.is_(None))
    total = (await db.execute(select(func.count()).select_from(top_stmt.subquery()))).scalar_one()
    top = (
        await db.execute(top_stmt.order_by(BlogComment.created_at.desc()).offset((page - 1) * limit).limit(limit))
    ).unique().scalars().all()

    replies: dict[int, list[BlogComment]] = {}
    if top:
        rows = (
            await db.execute(
                select(BlogComment)
                .where(*visible, BlogComment.parent_id.in_([c.id for c in top]))
                .order_by(BlogComment.created_at.asc())
            )
        ).unique().scalars().all()
        for reply in rows:
            replies.setdefault(reply.parent_id, []).append(reply)

    return [
        {**comment_payload(c), "replies": [comment_payload(r) for r in replies.get(c.id, [])]} for c in top
    ], total


def comment_payload(comment: BlogComment) -> dict[str, Any]:
    return {
        "id": comment.id,
        "content": comment.content,
        "parent_id": comment.parent_id,
        "user": {"id": comment.user.id, "full_name": comment.user.full_name},
        "is_approved": comment.is_approved,
        "created_at": comment.created_at,
    }


async def add_comment(
    db: AsyncSession, post_id: int, user_id: int, content: str, parent_id: int | None = None
) -> BlogComment:
    """
    Raises:
        LookupError: Post missing or unpublished.
        ValueError: Parent comment is not on the same post.
    """
    post = await db.get(BlogPost, post_id)
    if not _visible(post):
        msg = "Blog post not found or not published"
        raise LookupError(msg)
    if parent_id is not None:
        parent = await db.get(BlogComment, parent_id)
        if parent is None or parent.blog_post_id != post_id:
            msg = "Parent comment not found on this post"
            raise ValueError(msg)

    comment = BlogComment(
        blog_post_id=post_id,
        user_id=user_id,
        parent_id=parent_id,
        content=content.strip(),
        is_approved=False,
        is_spam=False,
    )
    db.add(comment)
    await db.commit()
    await db.refresh(comment, ["user"])
    logger.info("blog_comment_added", post_id=post_id, comment_id=comment.id, user_id=user_id)
    return comment


async def moderate_comment(
    db: AsyncSession, comment_id: int, *, is_approved: bool | None = None, is_spam: bool | None = None
) -> BlogComment:
    comment = await db.get(BlogComment, comment_id)
    if comment is None:
        msg = "Comment not found"
        raise LookupError(msg)
    if is_approved is not None:
        comment.is_approved = is_approved
    if is_spam is not None:
        comment.is_spam = is_spam
        if is_spam:
            comment.is_approved = False
    await db.commit()
    logger.info("blog_comment_moderated", comment_id=comment_id, approved=comment.is_approved, spam=comment.is_spam)
    return comment
