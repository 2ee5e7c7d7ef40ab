"""Parlay quality scoring.

Composite score (0-100)::

    edge (capped at 50)      * 0.4
    probability points (30)  * 0.3
    confidence points (30)   * 0.3
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol

CONFIDENCE_VALUES = {"high": 1.0, "medium": 0.7, "low": 0.4}

MIN_TRADABLE_EDGE_PCT = 5.0
MIN_TRADABLE_PROB = 0.05


class LegLike(Protocol):
    match_id: Any
    market: str | None
    side: str | None
    outcome: str | None
    threshold: float | None


def _clamp(value: float, low: float, high: float) -> float:
    return min(max(value, low), high)


def confidence_value(tier: str | None) -> float:
    return CONFIDENCE_VALUES.get((tier or "").lower(), 0.4)


def calculate_quality_score(edge_pct: float, combined_prob: float, confidence_tier: str | None) -> float:
    edge_score = _clamp(edge_pct, 0, 50)
    prob_score = _clamp(combined_prob * 100, 0, 100) * 0.3
    confidence_score = confidence_value(confidence_tier) * 30
    return edge_score * 0.4 + prob_score * 0.3 + confidence_score * 0.3


def is_tradable(edge_pct: float, combined_prob: float) -> bool:
    return edge_pct >= MIN_TRADABLE_EDGE_PCT and combined_prob >= MIN_TRADABLE_PROB


def risk_level(combined_prob: float) -> str:
    if combined_prob >= 0.20:
        return "low"
    if combined_prob >= 0.10:
        return "medium"
    if combined_prob >= 0.05:
        return "high"
    return "very_high"


def quality_tier(score: float) -> str:
    if score >= 70:
        return "excellent"
    if score >= 50:
        return "good"
    if score >= 30:
        return "fair"
    return "poor"


# ---------------------------------------------------------------------------
# Correlation
# ---------------------------------------------------------------------------


def _totals_line(leg: LegLike) -> float:
    """Goal line of a totals leg, from ``threshold`` or an outcome like ``OVER_2_5``."""
    if leg.threshold is not None:
        return float(leg.threshold)
    parts = (leg.outcome or "").split("_")[1:]
    try:
        return float(".".join(parts)) if parts else 0.0
    except ValueError:
        return 0.0


def _is_home_win(leg: LegLike) -> bool:
    return (
        (leg.market == "DNB" and leg.side == "HOME")
        or (leg.market == "DOUBLE_CHANCE" and leg.side == "1X")
        or leg.outcome == "H"
    )


def _is_over_25(leg: LegLike) -> bool:
    if leg.market == "TOTALS" and leg.side == "OVER" and _totals_line(leg) >= 2.5:
        return True
    return (leg.outcome or "").startswith("OVER_2")


def _is_btts_yes(leg: LegLike) -> bool:
    return (leg.market == "BTTS" and leg.side == "YES") or leg.outcome == "BTTS_YES"


def are_legs_correlated(a: LegLike, b: LegLike) -> bool:
    """Legs of the same match whose outcomes move together."""
    if str(a.match_id) != str(b.match_id):
        return False
    if a.market == b.market and a.side != b.side:
        return True

    pairs = (
        (_is_home_win, _is_over_25),
        (_is_home_win, _is_btts_yes),
        (_is_over_25, _is_btts_yes),
    )
    for first, second in pairs:
        if (first(a) and second(b)) or (first(b) and second(a)):
            return True
    return False


def has_correlated_legs(legs: list[LegLike]) -> bool:
    return any(are_legs_correlated(a, b) for i, a in enumerate(legs) for b in legs[i + 1 :])


def correlation_penalty(leg_count: int, has_correlation: bool) -> float:
    if leg_count == 2:
        base = 0.85
    elif leg_count == 3:
        base = 0.80
    else:
        base = 0.75
    return base * 0.9 if has_correlation else base


@dataclass(frozen=True)
class ParlayQuality:
    score: float
    tier: str
    is_tradable: bool
    risk_level: str


def score_parlay(parlay: Any) -> ParlayQuality:
    """Quality of anything carrying ``edge_pct``, ``combined_prob`` and ``confidence_tier``."""
    edge_pct = float(parlay.edge_pct)
    combined_prob = float(parlay.combined_prob)
    confidence_tier = parlay.confidence_tier
    score = calculate_quality_score(edge_pct, combined_prob, confidence_tier)
    return ParlayQuality(
        score=score,
        tier=quality_tier(score),
        is_tradable=is_tradable(edge_pct, combined_prob),
        risk_level=risk_level(combined_prob),
    )
