"""
Trade metrics: P&L, time-of-day buckets, risk/reward, drawdown, Sharpe
ratio and win/loss streaks. Everything here is pure and works on plain
lists of trades (dicts or objects with a ``pnl`` attribute).
"""
from datetime import datetime, time

import numpy as np

OPTIONS_MULTIPLIER = 100
TRADING_DAYS_PER_YEAR = 252

# (first minute, last minute, label); inclusive on both ends
TIME_WINDOWS = [
    (510, 570, "Cash Open"),    # 08:30 - 09:30
    (571, 630, "Euro Close"),   # 09:31 - 10:30
    (870, 900, "Power Hour"),   # 14:30 - 15:00
]
OTHER_WINDOW = "Other"


def trade_pnl(trade) -> float | None:
    """Read ``pnl`` off a dict or model instance."""
    if isinstance(trade, dict):
        return trade.get("pnl")
    return getattr(trade, "pnl", None)


def calculate_options_pnl(
    entry_price: float, exit_price: float, quantity: int, commission: float = 0
) -> float:
    entry_debit = entry_price * quantity * OPTIONS_MULTIPLIER
    exit_credit = exit_price * quantity * OPTIONS_MULTIPLIER
    return exit_credit - entry_debit - commission


def classify_time_of_day(value) -> str:
    """Map an ``HH:MM`` string (or time/datetime) to a session window label."""
    if isinstance(value, (datetime, time)):
        hours, minutes = value.hour, value.minute
    else:
        parts = str(value).strip().split(":")
        if len(parts) < 2:
            raise ValueError(f"Expected HH:MM, got {value!r}")
        hours, minutes = int(parts[0]), int(parts[1])

    minute_of_day = hours * 60 + minutes
    for start, end, label in TIME_WINDOWS:
        if start <= minute_of_day <= end:
            return label
    return OTHER_WINDOW


def calculate_risk_reward(entry_price: float, stop_loss: float, take_profit: float) -> float:
    risk = abs(entry_price - stop_loss)
    reward = abs(take_profit - entry_price)
    return reward / risk if risk > 0 else 0


def calculate_drawdown(balance_history: list[float]) -> dict:
    """Max and current drawdown over a chronological balance series.

    ``max_drawdown_percent`` is measured against the peak that produced the
    max drawdown; ``current_drawdown`` is the distance of the last balance
    from the overall high.
    """
    if not balance_history:
        return {"max_drawdown": 0, "max_drawdown_percent": 0, "current_drawdown": 0}

    peak = balance_history[0]
    max_dd = 0
    max_dd_pct = 0
    for balance in balance_history[1:]:
        if balance > peak:
            peak = balance
        dd = peak - balance
        dd_pct = dd / peak * 100 if peak > 0 else 0
        if dd > max_dd:
            max_dd = dd
            max_dd_pct = dd_pct

    return {
        "max_drawdown": max_dd,
        "max_drawdown_percent": max_dd_pct,
        "current_drawdown": max(balance_history) - balance_history[-1],
    }


def calculate_sharpe_ratio(returns: list[float], risk_free_rate: float = 0.02) -> float:
    """Per-period Sharpe ratio against an annual risk-free rate (daily returns assumed)."""
    if len(returns) == 0:
        return 0
    arr = np.asarray(returns, dtype=float)
    std = float(np.std(arr))  # population std (ddof=0)
    if std <= 0:
        return 0
    return (float(np.mean(arr)) - risk_free_rate / TRADING_DAYS_PER_YEAR) / std


def get_streak_analysis(trades: list) -> dict:
    """Split completed trades into maximal win/loss runs.

    Trades with ``pnl`` of None are dropped first; ``start`` indexes into
    the remaining list. ``current_streak`` is positive for a trailing win
    run and negative for a trailing loss run.
    """
    completed = [t for t in trades if trade_pnl(t) is not None]
    streaks: list[dict] = []
    max_win = 0
    max_loss = 0

    run_type = None
    run_length = 0
    run_start = 0
    for index, trade in enumerate(completed):
        kind = "win" if trade_pnl(trade) > 0 else "loss"
        if kind == run_type:
            run_length += 1
            continue
        if run_type is not None:
            streaks.append({"type": run_type, "length": run_length, "start": run_start})
        run_type, run_length, run_start = kind, 1, index

    current = 0
    if run_type is not None:
        streaks.append({"type": run_type, "length": run_length, "start": run_start})
        current = run_length if run_type == "win" else -run_length

    for s in streaks:
        if s["type"] == "win":
            max_win = max(max_win, s["length"])
        else:
            max_loss = max(max_loss, s["length"])

    return {
        "current_streak": current,
        "max_win_streak": max_win,
        "max_loss_streak": max_loss,
        "streaks": streaks,
    }


def calculate_win_rate(trades: list) -> float:
    """Percentage of completed trades with positive P&L."""
    pnls = [p for p in (trade_pnl(t) for t in trades) if p is not None]
    if not pnls:
        return 0.0
    return sum(1 for p in pnls if p > 0) / len(pnls) * 100


def calculate_average_rr(trades: list) -> float:
    """Average win over average absolute loss (losses include break-even)."""
    pnls = [p for p in (trade_pnl(t) for t in trades) if p is not None]
    wins = [p for p in pnls if p > 0]
    losses = [p for p in pnls if p <= 0]
    avg_win = sum(wins) / len(wins) if wins else 0
    avg_loss = abs(sum(losses) / len(losses)) if losses else 0
    return avg_win / avg_loss if avg_loss > 0 else 0
