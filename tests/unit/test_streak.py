"""Win-streak calculation tests."""

import pytest

from tipster.predictions.streak import best_streak, calculate_streak, current_streak, streak_details


class TestCurrentStreak:
    """Consecutive wins counted from the newest settled result."""

    def test_empty_history(self):
        assert current_streak([]) == 0

    def test_all_wins(self):
        assert current_streak(["won", "won", "won"]) == 3

    def test_stops_at_first_loss(self):
        assert current_streak(["won", "won", "lost", "won"]) == 2

    def test_latest_loss_resets(self):
        assert current_streak(["lost", "won", "won"]) == 0


class TestBestStreak:
    """Longest run of wins anywhere in the history."""

    def test_best_in_the_past(self):
        # newest first: W L W W W L
        assert best_streak(["won", "lost", "won", "won", "won", "lost"]) == 3

    def test_no_wins(self):
        assert best_streak(["lost", "lost"]) == 0

    def test_best_equals_current(self):
        assert best_streak(["won", "won", "lost", "won"]) == 2


class TestCalculateStreak:
    """Pending and void results never break a run."""

    def test_pending_and_void_are_ignored(self):
        results = ["pending", "won", "void", "won", "lost", "won"]
        assert calculate_streak(results) == (2, 2)

    def test_only_unsettled(self):
        assert calculate_streak(["pending", "void"]) == (0, 0)

    @pytest.mark.parametrize(
        ("results", "expected"),
        [
            (["won"], (1, 1)),
            (["lost"], (0, 0)),
            (["lost", "won", "won", "won"], (0, 3)),
        ],
    )
    def test_simple_histories(self, results, expected):
        assert calculate_streak(results) == expected


class TestStreakDetails:
    def test_totals_and_win_rate(self):
        details = streak_details(["won", "won", "lost", "won", "pending"])
        assert details.current_streak == 2
        assert details.best_streak == 2
        assert details.total_predictions == 4
        assert details.total_wins == 3
        assert details.total_losses == 1
        assert details.win_rate == 75.0

    def test_no_history_has_zero_rate(self):
        details = streak_details([])
        assert details.as_dict() == {
            "current_streak": 0,
            "best_streak": 0,
            "total_predictions": 0,
            "total_wins": 0,
            "total_losses": 0,
            "win_rate": 0.0,
        }
