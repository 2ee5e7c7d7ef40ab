"""Live ticker parsing and cache behaviour."""

from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest

from tipster.predictions import ticker
from tipster.predictions.ticker import build_ticker_entry, match_status, parse_prediction_data

NOW = datetime(2026, 3, 14, 15, 0, tzinfo=timezone.utc)


def _enriched(primary_bet="Home win", risk="Low", confidence=0.82, probs=(0.55, 0.25, 0.20)):
    home, draw, away = probs
    return {
        "prediction": {
            "predictions": {"home_win": home, "draw": draw, "away_win": away, "confidence": confidence},
            "analysis": {
                "betting_recommendations": {"primary_bet": primary_bet},
                "risk_assessment": risk,
            },
        }
    }


def _quick_purchase(kickoff: datetime | None, prediction_data=None, **match_fields):
    match_data = {"home_team": "Arsenal", "away_team": "Chelsea", "league": "Premier League", **match_fields}
    if kickoff is not None:
        match_data["date"] = kickoff.isoformat()
    return SimpleNamespace(id=7, match_data=match_data, prediction_data=prediction_data)


@pytest.fixture(autouse=True)
def _fresh_cache():
    ticker.reset_ticker_cache()
    yield
    ticker.reset_ticker_cache()


class TestMatchStatus:
    def test_future_kickoff_is_upcoming(self):
        assert match_status(NOW + timedelta(minutes=5), NOW) == "upcoming"

    def test_within_two_hours_is_live(self):
        assert match_status(NOW - timedelta(minutes=119), NOW) == "live"

    def test_after_two_hours_is_completed(self):
        assert match_status(NOW - timedelta(hours=2), NOW) == "completed"


class TestParsePredictionData:
    def test_defaults_without_data(self):
        assert parse_prediction_data(None) == {
            "prediction": "unknown",
            "confidence": 75,
            "odds": 2.0,
            "value_rating": "Medium",
        }

    def test_enriched_home_pick(self):
        parsed = parse_prediction_data(_enriched())
        assert parsed["prediction"] == "home_win"
        assert parsed["confidence"] == 82
        assert parsed["odds"] == 1.82
        assert parsed["value_rating"] == "High"

    @pytest.mark.parametrize(
        ("bet", "expected"),
        [("Away team to win", "away_win"), ("DRAW", "draw"), ("Over 2.5", "unknown")],
    )
    def test_primary_bet_mapping(self, bet, expected):
        assert parse_prediction_data(_enriched(primary_bet=bet))["prediction"] == expected

    def test_high_risk_is_low_value(self):
        assert parse_prediction_data(_enriched(risk="High"))["value_rating"] == "Low"

    def test_missing_probability_keeps_default_odds(self):
        data = _enriched()
        del data["prediction"]["predictions"]["draw"]
        assert parse_prediction_data(data)["odds"] == 2.0


class TestBuildTickerEntry:
    def test_upcoming_entry(self):
        entry = build_ticker_entry(_quick_purchase(NOW + timedelta(hours=3), _enriched()), NOW)
        assert entry is not None
        assert entry["status"] == "upcoming"
        assert entry["home_team"] == "Arsenal"
        assert entry["prediction"] == "home_win"

    def test_missing_date_is_skipped(self):
        assert build_ticker_entry(_quick_purchase(None), NOW) is None

    def test_completed_match_is_skipped(self):
        assert build_ticker_entry(_quick_purchase(NOW - timedelta(hours=5)), NOW) is None

    def test_placeholder_team_names(self):
        qp = _quick_purchase(NOW + timedelta(hours=1), home_team=None, league="")
        entry = build_ticker_entry(qp, NOW)
        assert entry["home_team"] == "TBD"
        assert entry["league"] == "Unknown League"


class TestGetLiveTicker:
    @pytest.mark.asyncio
    async def test_second_call_is_cached(self, monkeypatch):
        loader = AsyncMock(return_value=[{"id": 1}])
        monkeypatch.setattr(ticker, "_load_ticker", loader)

        first = await ticker.get_live_ticker(AsyncMock(), ttl_seconds=60)
        second = await ticker.get_live_ticker(AsyncMock(), ttl_seconds=60)

        assert first["cached"] is False
        assert second["cached"] is True
        assert second["data"] == [{"id": 1}]
        loader.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_stale_cache_served_on_error(self, monkeypatch):
        monkeypatch.setattr(ticker, "_load_ticker", AsyncMock(return_value=[{"id": 1}]))
        await ticker.get_live_ticker(AsyncMock(), ttl_seconds=60)

        monkeypatch.setattr(ticker, "_load_ticker", AsyncMock(side_effect=RuntimeError("db down")))
        result = await ticker.get_live_ticker(AsyncMock(), ttl_seconds=0)

        assert result["cached"] is True
        assert result["data"] == [{"id": 1}]
        assert result["error"] == "Using cached data due to database error"

    @pytest.mark.asyncio
    async def test_error_without_cache_propagates(self, monkeypatch):
        monkeypatch.setattr(ticker, "_load_ticker", AsyncMock(side_effect=RuntimeError("db down")))
        with pytest.raises(RuntimeError):
            await ticker.get_live_ticker(AsyncMock(), ttl_seconds=60)
