from datetime import datetime, time

import pytest

from journal.core.metrics import (
    calculate_average_rr,
    calculate_drawdown,
    calculate_options_pnl,
    calculate_risk_reward,
    calculate_sharpe_ratio,
    calculate_win_rate,
    classify_time_of_day,
    get_streak_analysis,
)


def test_options_pnl():
    assert calculate_options_pnl(2.50, 3.00, 2) == pytest.approx(100)
    assert calculate_options_pnl(2.50, 3.00, 2, commission=1.3) == pytest.approx(98.7)
    assert calculate_options_pnl(3.00, 1.00, 1) == pytest.approx(-200)


class TestClassifyTimeOfDay:
    @pytest.mark.parametrize("value,label", [
        ("08:30", "Cash Open"),
        ("09:00", "Cash Open"),
        ("09:30", "Cash Open"),
        ("09:31", "Euro Close"),
        ("10:30", "Euro Close"),
        ("10:31", "Other"),
        ("11:15", "Other"),
        ("14:30", "Power Hour"),
        ("15:00", "Power Hour"),
        ("15:01", "Other"),
        ("08:29", "Other"),
    ])
    def test_windows(self, value, label):
        assert classify_time_of_day(value) == label

    def test_accepts_time_and_datetime(self):
        assert classify_time_of_day(time(14, 45)) == "Power Hour"
        assert classify_time_of_day(datetime(2025, 7, 3, 9, 45)) == "Euro Close"

    def test_malformed(self):
        with pytest.raises(ValueError):
            classify_time_of_day("noon")


def test_risk_reward():
    assert calculate_risk_reward(10, 8, 16) == 3
    assert calculate_risk_reward(10, 10, 16) == 0


class TestDrawdown:
    def test_peak_to_trough(self):
        dd = calculate_drawdown([100, 120, 90, 110])
        assert dd["max_drawdown"] == 30
        assert dd["max_drawdown_percent"] == pytest.approx(25.0)
        assert dd["current_drawdown"] == 10

    def test_empty_and_monotonic(self):
        assert calculate_drawdown([]) == {"max_drawdown": 0, "max_drawdown_percent": 0, "current_drawdown": 0}
        assert calculate_drawdown([100, 110, 120])["max_drawdown"] == 0


class TestSharpe:
    def test_zero_for_empty_or_flat(self):
        assert calculate_sharpe_ratio([]) == 0
        assert calculate_sharpe_ratio([0.5, 0.5, 0.5]) == 0

    def test_population_std(self):
        returns = [0.01, -0.01]
        expected = (0.0 - 0.02 / 252) / 0.01
        assert calculate_sharpe_ratio(returns) == pytest.approx(expected)


class TestStreaks:
    def test_runs(self):
        trades = [{"pnl": p} for p in [10, 20, -5, -10, -15, 30]]
        result = get_streak_analysis(trades)
        assert result["streaks"] == [
            {"type": "win", "length": 2, "start": 0},
            {"type": "loss", "length": 3, "start": 2},
            {"type": "win", "length": 1, "start": 5},
        ]
        assert result["max_win_streak"] == 2
        assert result["max_loss_streak"] == 3
        assert result["current_streak"] == 1

    def test_trailing_loss_is_negative_and_open_trades_ignored(self):
        trades = [{"pnl": 10}, {"pnl": None}, {"pnl": 0}, {"pnl": -4}]
        result = get_streak_analysis(trades)
        assert result["current_streak"] == -2
        assert result["streaks"][1] == {"type": "loss", "length": 2, "start": 1}

    def test_empty(self):
        assert get_streak_analysis([])["current_streak"] == 0


def test_win_rate_and_average_rr():
    trades = [{"pnl": 100}, {"pnl": 300}, {"pnl": -100}, {"pnl": None}]
    assert calculate_win_rate(trades) == pytest.approx(200 / 3)
    assert calculate_average_rr(trades) == pytest.approx(2.0)
    assert calculate_win_rate([]) == 0.0
    assert calculate_average_rr([{"pnl": 50}]) == 0
