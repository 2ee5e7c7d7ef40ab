"""Parlay quality scoring, correlation and ranking."""

from types import SimpleNamespace

import pytest

from tipster.parlays.quality import (
    are_legs_correlated,
    calculate_quality_score,
    correlation_penalty,
    has_correlated_legs,
    is_tradable,
    quality_tier,
    risk_level,
    score_parlay,
)
from tipster.parlays.service import format_masked, format_preview, rank_parlays


def _leg(match_id=1, market=None, side=None, outcome="H", threshold=None):
    return SimpleNamespace(
        match_id=match_id,
        market=market,
        side=side,
        outcome=outcome,
        threshold=threshold,
        home_team="Home",
        away_team="Away",
        model_prob=0.5,
        decimal_odds=2.1,
        edge=0.05,
    )


def _parlay(edge_pct, combined_prob, tier="high", match_ids=(1, 2), parlay_id="p"):
    return SimpleNamespace(
        parlay_id=parlay_id,
        edge_pct=edge_pct,
        combined_prob=combined_prob,
        confidence_tier=tier,
        leg_count=len(match_ids),
        legs=[_leg(match_id=m) for m in match_ids],
        parlay_type="multi_game",
        earliest_kickoff=None,
        latest_kickoff=None,
    )


class TestQualityScore:
    def test_weighted_components(self):
        # edge 10 -> 4.0, prob 0.2 -> 20 * 0.3 * 0.3 = 1.8, high -> 30 * 0.3 = 9.0
        assert calculate_quality_score(10, 0.2, "high") == pytest.approx(14.8)

    def test_edge_is_capped(self):
        assert calculate_quality_score(80, 0.0, "low") == calculate_quality_score(50, 0.0, "low")

    def test_negative_edge_contributes_nothing(self):
        assert calculate_quality_score(-5, 0.0, "medium") == pytest.approx(0.7 * 30 * 0.3)

    def test_unknown_tier_scores_as_low(self):
        assert calculate_quality_score(0, 0, "bogus") == calculate_quality_score(0, 0, "low")


class TestClassification:
    @pytest.mark.parametrize(
        ("edge", "prob", "expected"),
        [(5.0, 0.05, True), (4.99, 0.5, False), (20, 0.049, False)],
    )
    def test_is_tradable(self, edge, prob, expected):
        assert is_tradable(edge, prob) is expected

    @pytest.mark.parametrize(
        ("prob", "expected"),
        [(0.25, "low"), (0.10, "medium"), (0.07, "high"), (0.01, "very_high")],
    )
    def test_risk_level(self, prob, expected):
        assert risk_level(prob) == expected

    @pytest.mark.parametrize(
        ("score", "expected"),
        [(70, "excellent"), (55, "good"), (30, "fair"), (29.9, "poor")],
    )
    def test_quality_tier(self, score, expected):
        assert quality_tier(score) == expected

    def test_score_parlay(self):
        quality = score_parlay(_parlay(12, 0.15, "medium"))
        assert quality.is_tradable is True
        assert quality.risk_level == "medium"
        assert quality.tier == "poor"


class TestCorrelation:
    def test_different_matches_never_correlate(self):
        assert not are_legs_correlated(_leg(1, "BTTS", "YES"), _leg(2, "BTTS", "NO"))

    def test_same_market_opposite_sides(self):
        assert are_legs_correlated(_leg(1, "TOTALS", "OVER", threshold=2.5), _leg(1, "TOTALS", "UNDER"))

    def test_home_win_with_over(self):
        assert are_legs_correlated(_leg(1, outcome="H"), _leg(1, outcome="OVER_2_5"))

    def test_over_with_btts(self):
        over = _leg(1, "TOTALS", "OVER", outcome="OVER", threshold=3.5)
        btts = _leg(1, "BTTS", "YES", outcome="BTTS_YES")
        assert are_legs_correlated(over, btts)

    def test_low_totals_line_is_not_over_25(self):
        over_15 = _leg(1, "TOTALS", "OVER", outcome="OVER_1_5")
        assert not are_legs_correlated(_leg(1, outcome="A"), over_15)

    def test_has_correlated_legs(self):
        legs = [_leg(1, outcome="H"), _leg(2, outcome="H"), _leg(1, "BTTS", "YES", outcome="BTTS_YES")]
        assert has_correlated_legs(legs)

    @pytest.mark.parametrize(
        ("legs", "correlated", "expected"),
        [(2, False, 0.85), (3, False, 0.80), (5, False, 0.75), (2, True, 0.765)],
    )
    def test_correlation_penalty(self, legs, correlated, expected):
        assert correlation_penalty(legs, correlated) == pytest.approx(expected)


class TestRankParlays:
    def test_filters_untradable_and_stale(self):
        good = _parlay(10, 0.2, parlay_id="good")
        low_edge = _parlay(1, 0.2, parlay_id="low-edge")
        started = _parlay(10, 0.2, match_ids=(1, 99), parlay_id="started")
        ranked = rank_parlays([good, low_edge, started], upcoming={1, 2})
        assert [p.parlay_id for p in ranked] == ["good"]

    def test_orders_by_quality(self):
        weak = _parlay(6, 0.06, "low", parlay_id="weak")
        strong = _parlay(30, 0.3, "high", parlay_id="strong")
        ranked = rank_parlays([weak, strong], upcoming={1, 2})
        assert [p.parlay_id for p in ranked] == ["strong", "weak"]

    def test_near_equal_scores_fall_back_to_edge(self):
        # Same score: edge 10 / prob 0.5 vs edge 10.1 / prob 0.49 differ by < 0.1
        a = _parlay(10.0, 0.50, "medium", parlay_id="a")
        b = _parlay(10.1, 0.49, "medium", parlay_id="b")
        ranked = rank_parlays([a, b], upcoming={1, 2})
        assert [p.parlay_id for p in ranked] == ["b", "a"]

    def test_caps_at_twenty(self):
        parlays = [_parlay(10 + i, 0.2, parlay_id=str(i)) for i in range(25)]
        assert len(rank_parlays(parlays, upcoming={1, 2})) == 20


class TestFormatting:
    def test_preview_shows_legs(self):
        payload = format_preview(_parlay(10, 0.2))
        assert payload["is_preview"] is True
        assert len(payload["legs"]) == 2
        assert payload["quality"]["is_tradable"] is True

    def test_masked_hides_legs(self):
        payload = format_masked(_parlay(10, 0.2))
        assert payload["masked"] is True
        assert "legs" not in payload
        assert payload["quality"] == {"risk_level": "low"}
