"""Match sitemap generation."""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime
from typing import NamedTuple
from xml.sax.saxutils import escape

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tipster.db.models import QuickPurchase

SITEMAP_TYPES = ("prediction", "tip")
SITEMAP_LIMIT = 1000
CHANGE_FREQUENCY = "weekly"
PRIORITY = 0.6


class SitemapEntry(NamedTuple):
    loc: str
    lastmod: datetime


def build_entries(rows: Iterable[tuple[str | None, datetime]], base_url: str) -> list[SitemapEntry]:
    """One entry per match id, keeping the first (most recently updated) row."""
    seen: set[str] = set()
    entries: list[SitemapEntry] = []
    base = base_url.rstrip("/")
    for match_id, updated_at in rows:
        if not match_id or match_id in seen:
            continue
        seen.add(match_id)
        entries.append(SitemapEntry(f"{base}/match/{match_id}", updated_at))
    return entries


def render_urlset(entries: Iterable[SitemapEntry]) -> str:
    lines = [
        '<?xml version="1.0" encoding="UTF-8"?>',
        '<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">',
    ]
    for entry in entries:
        lines += [
            "  <url>",
            f"    <loc>{escape(entry.loc)}</loc>",
            f"    <lastmod>{entry.lastmod.isoformat()}</lastmod>",
            f"    <changefreq>{CHANGE_FREQUENCY}</changefreq>",
            f"    <priority>{PRIORITY}</priority>",
            "  </url>",
        ]
    lines.append("</urlset>")
    return "\n".join(lines)


async def load_match_rows(db: AsyncSession) -> list[tuple[str | None, datetime]]:
    result = await db.execute(
        select(QuickPurchase.match_id, QuickPurchase.updated_at)
        .where(
            QuickPurchase.type.in_(SITEMAP_TYPES),
            QuickPurchase.is_active.is_(True),
            QuickPurchase.prediction_data.is_not(None),
        )
        .order_by(QuickPurchase.updated_at.desc())
        .limit(SITEMAP_LIMIT)
    )
    return [(row.match_id, row.updated_at) for row in result]
