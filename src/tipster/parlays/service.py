"""Parlay preview, purchase and purchase history."""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from functools import cmp_to_key
from typing import Any

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tipster.db.models import Match, ParlayConsensus, ParlayLeg, ParlayPurchase
from tipster.parlays.quality import calculate_quality_score, is_tradable, risk_level

logger = structlog.get_logger()

CANDIDATE_LIMIT = 30
PREVIEW_LIMIT = 20
FULL_PREVIEW_COUNT = 2


async def get_upcoming_match_ids(db: AsyncSession) -> set[int]:
    result = await db.execute(
        select(Match.id).where(
            Match.status == "upcoming",
            Match.match_date > datetime.now(timezone.utc),
            Match.is_active.is_(True),
        )
    )
    return set(result.scalars().all())


def _compare(a: tuple[float, float, Any], b: tuple[float, float, Any]) -> float:
    score_diff = b[0] - a[0]
    if abs(score_diff) > 0.1:
        return score_diff
    return b[1] - a[1]


def rank_parlays(parlays: list[ParlayConsensus], upcoming: set[int]) -> list[ParlayConsensus]:
    """Tradable parlays whose legs are all upcoming, best quality first.

    Scores within 0.1 of each other are ordered by edge instead.
    """
    scored = []
    for parlay in parlays:
        if not parlay.legs or not all(leg.match_id in upcoming for leg in parlay.legs):
            continue
        edge, prob = float(parlay.edge_pct), float(parlay.combined_prob)
        if not is_tradable(edge, prob):
            continue
        scored.append((calculate_quality_score(edge, prob, parlay.confidence_tier), edge, parlay))
    scored.sort(key=cmp_to_key(_compare))
    return [item[2] for item in scored[:PREVIEW_LIMIT]]


def _leg_payload(leg: ParlayLeg) -> dict[str, Any]:
    return {
        "match_id": leg.match_id,
        "home_team": leg.home_team,
        "away_team": leg.away_team,
        "outcome": leg.outcome,
        "model_prob": float(leg.model_prob),
        "decimal_odds": float(leg.decimal_odds),
        "edge": float(leg.edge or 0),
    }


def format_preview(parlay: ParlayConsensus) -> dict[str, Any]:
    edge, prob = float(parlay.edge_pct), float(parlay.combined_prob)
    return {
        "parlay_id": parlay.parlay_id,
        "is_preview": True,
        "leg_count": parlay.leg_count,
        "legs": [_leg_payload(leg) for leg in parlay.legs],
        "combined_prob": prob,
        "edge_pct": edge,
        "confidence_tier": parlay.confidence_tier,
        "parlay_type": parlay.parlay_type,
        "earliest_kickoff": parlay.earliest_kickoff,
        "latest_kickoff": parlay.latest_kickoff,
        "quality": {
            "score": calculate_quality_score(edge, prob, parlay.confidence_tier),
            "is_tradable": is_tradable(edge, prob),
            "risk_level": risk_level(prob),
        },
    }


def format_masked(parlay: ParlayConsensus) -> dict[str, Any]:
    return {
        "parlay_id": parlay.parlay_id,
        "is_preview": False,
        "masked": True,
        "leg_count": parlay.leg_count,
        "confidence_tier": parlay.confidence_tier,
        "quality": {"risk_level": risk_level(float(parlay.combined_prob))},
    }


async def get_parlay_preview(db: AsyncSession) -> dict[str, Any]:
    """First two parlays in full, the rest masked."""
    upcoming = await get_upcoming_match_ids(db)
    if not upcoming:
        return {"parlays": [], "count": 0, "message": "No upcoming matches available"}

    result = await db.execute(
        select(ParlayConsensus).where(ParlayConsensus.status == "active").limit(CANDIDATE_LIMIT)
    )
    ranked = rank_parlays(list(result.scalars().all()), upcoming)
    formatted = [
        format_preview(p) if i < FULL_PREVIEW_COUNT else format_masked(p) for i, p in enumerate(ranked)
    ]
    return {
        "parlays": formatted,
        "count": len(formatted),
        "preview_count": FULL_PREVIEW_COUNT,
        "total_available": len(formatted),
    }


async def purchase_parlay(
    db: AsyncSession,
    user_id: int,
    parlay_id: str,
    amount: Decimal,
    payment_method: str = "stripe",
) -> ParlayPurchase:
    """
    Record a pending parlay purchase.

    Raises:
        LookupError: Unknown parlay.
        ValueError: Parlay is no longer active.
    """
    parlay = (
        await db.execute(select(ParlayConsensus).where(ParlayConsensus.parlay_id == parlay_id))
    ).scalar_one_or_none()
    if parlay is None:
        msg = "Parlay not found"
        raise LookupError(msg)
    if parlay.status != "active":
        msg = "Parlay is not active"
        raise ValueError(msg)

    purchase = ParlayPurchase(
        user_id=user_id,
        parlay_id=parlay.id,
        parlay=parlay,
        amount_usd=amount,
        potential_return=(amount * Decimal(str(parlay.implied_odds))).quantize(Decimal("0.01")),
        payment_method=payment_method,
        status="pending",
    )
    db.add(purchase)
    await db.commit()
    logger.info("parlay_purchase_created", purchase_id=purchase.id, parlay_id=parlay_id, user_id=user_id)
    return purchase


async def list_parlay_purchases(
    db: AsyncSession,
    user_id: int,
    status: str | None = None,
    limit: int = 50,
) -> list[ParlayPurchase]:
    stmt = select(ParlayPurchase).where(ParlayPurchase.user_id == user_id)
    if status:
        stmt = stmt.where(ParlayPurchase.status == status)
    stmt = stmt.order_by(ParlayPurchase.created_at.desc()).limit(limit)
    return list((await db.execute(stmt)).unique().scalars().all())
