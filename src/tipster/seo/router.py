"""Sitemap routes, mounted at the site root."""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends, Response
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from tipster.config import get_settings
from tipster.database import get_session
from tipster.seo.service import build_entries, load_match_rows, render_urlset

logger = structlog.get_logger()

router = APIRouter(tags=["SEO"])

CACHE_CONTROL = "public, s-maxage=3600, stale-while-revalidate=86400"


@router.get("/sitemap-matches.xml", include_in_schema=False)
async def sitemap_matches(db: AsyncSession = Depends(get_session)) -> Response:
    try:
        rows = await load_match_rows(db)
    except SQLAlchemyError:
        logger.exception("sitemap_generation_failed")
        rows = []
    entries = build_entries(rows, get_settings().site_base_url)
    return Response(
        content=render_urlset(entries),
        media_type="application/xml",
        headers={"Cache-Control": CACHE_CONTROL},
    )
