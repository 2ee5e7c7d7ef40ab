"""League sync health classification."""

from datetime import datetime, timedelta, timezone

import pytest

from tipster.leagues.service import sync_health

NOW = datetime(2026, 5, 1, 12, 0, tzinfo=timezone.utc)


class TestSyncHealth:
    @pytest.mark.parametrize(
        ("frequency", "elapsed", "expected"),
        [
            ("hourly", timedelta(minutes=59), "healthy"),
            ("hourly", timedelta(hours=1), "healthy"),
            ("hourly", timedelta(hours=2), "warning"),
            ("hourly", timedelta(hours=2, seconds=1), "critical"),
            ("daily", timedelta(hours=30), "warning"),
            ("daily", timedelta(hours=49), "critical"),
            ("weekly", timedelta(days=6), "healthy"),
            ("weekly", timedelta(days=13), "warning"),
            ("weekly", timedelta(days=15), "critical"),
        ],
    )
    def test_thresholds(self, frequency, elapsed, expected):
        assert sync_health(frequency, NOW - elapsed, NOW)["health"] == expected

    def test_next_sync_due(self):
        last = NOW - timedelta(hours=3)
        assert sync_health("daily", last, NOW)["next_sync_due"] == last + timedelta(days=1)

    def test_never_synced(self):
        result = sync_health("daily", None, NOW)
        assert result["health"] == "unknown"
        assert result["next_sync_due"] is None

    def test_unknown_frequency(self):
        assert sync_health("monthly", NOW, NOW)["health"] == "unknown"
