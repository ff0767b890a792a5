"""
Analytics aggregator: turns the raw trade list into the datasets the
performance dashboard renders (equity curve, drawdown, streaks, P&L
distribution, risk/reward scatter, calendar heatmap) plus the summary
served by /api/performance/analytics.

Nothing is cached: every call recomputes from the trades it is given, and
the same input always produces the same output.
"""
import math
from datetime import date, datetime
from zoneinfo import ZoneInfo

import pandas as pd

from config.settings import settings
from journal.core.metrics import (
    OPTIONS_MULTIPLIER,
    calculate_average_rr,
    calculate_drawdown,
    calculate_sharpe_ratio,
    calculate_win_rate,
    get_streak_analysis,
)

PNL_BUCKET_SIZE = 100
ASSUMED_RISK_FRACTION = 0.1  # no stop-loss on record: risk 10% of notional


# ── Field access / date normalisation ──────────────────────────


def _get(trade, key: str):
    if isinstance(trade, dict):
        return trade.get(key)
    return getattr(trade, key, None)


def local_tz() -> ZoneInfo:
    return ZoneInfo(settings.TIMEZONE)


def local_today() -> date:
    return datetime.now(local_tz()).date()


def as_datetime(value) -> datetime | None:
    """Coerce an ISO string / date / datetime into a naive local datetime."""
    if value is None:
        return None
    if isinstance(value, str):
        value = datetime.fromisoformat(value.replace("Z", "+00:00"))
    elif isinstance(value, date) and not isinstance(value, datetime):
        return datetime(value.year, value.month, value.day)
    if value.tzinfo is not None:
        value = value.astimezone(local_tz()).replace(tzinfo=None)
    return value


def as_local_date(value) -> date | None:
    """Calendar day of a timestamp in the journal's timezone.

    Plain dates (and date-only strings) are taken as-is so a trade stamped
    2025-07-03 never drifts to the 2nd or 4th.
    """
    if value is None:
        return None
    if isinstance(value, str) and len(value) == 10:
        return date.fromisoformat(value)
    if isinstance(value, date) and not isinstance(value, datetime):
        return value
    return as_datetime(value).date()


def completed_trades(trades: list) -> list:
    return [t for t in trades if _get(t, "pnl") is not None]


def _frame(trades: list) -> pd.DataFrame:
    rows = [
        {
            "ticker": _get(t, "ticker"),
            "time_classification": _get(t, "time_classification"),
            "day": as_local_date(_get(t, "trade_date")),
            "pnl": float(_get(t, "pnl")),
        }
        for t in trades
    ]
    return pd.DataFrame(rows, columns=["ticker", "time_classification", "day", "pnl"])


def _sum_by(df: pd.DataFrame, column: str) -> dict:
    subset = df.dropna(subset=[column])
    if subset.empty:
        return {}
    grouped = subset.groupby(column, sort=True)["pnl"].sum()
    return {key: float(val) for key, val in grouped.items()}


def _daily_counts(df: pd.DataFrame) -> list[dict]:
    subset = df.dropna(subset=["day"])
    if subset.empty:
        return []
    grouped = subset.groupby("day", sort=True)["pnl"].agg(["sum", "count"])
    return [
        {"date": day, "pnl": float(row["sum"]), "trades": int(row["count"])}
        for day, row in grouped.iterrows()
    ]


# ── Dashboard datasets ─────────────────────────────────────────


def build_equity_curve(trades: list, starting_balance: float) -> list[dict]:
    """Running balance after each closed trade, in the order given."""
    balance = starting_balance
    curve = [{"timestamp": None, "balance": balance}]
    for trade in trades:
        exit_time = _get(trade, "exit_time")
        if exit_time is None:
            continue
        balance += _get(trade, "pnl") or 0
        curve.append({"timestamp": as_datetime(exit_time), "balance": balance})
    return curve


def build_pnl_distribution(trades: list, bucket_size: int = PNL_BUCKET_SIZE) -> dict:
    counts: dict[int, int] = {}
    for trade in trades:
        bucket = math.floor((_get(trade, "pnl") or 0) / bucket_size) * bucket_size
        counts[bucket] = counts.get(bucket, 0) + 1
    return dict(sorted(counts.items()))


def build_risk_reward(trades: list) -> list[dict]:
    points = []
    for trade in trades:
        notional = _get(trade, "entry_price") * _get(trade, "quantity") * OPTIONS_MULTIPLIER
        points.append({
            "x": abs(notional * ASSUMED_RISK_FRACTION),
            "y": _get(trade, "pnl") or 0,
            "id": _get(trade, "id"),
        })
    return points


def build_monthly_pnl(trades: list) -> dict:
    totals: dict[tuple, float] = {}
    for trade in trades:
        exit_time = as_datetime(_get(trade, "exit_time"))
        if exit_time is None:
            continue
        key = (exit_time.year, exit_time.month)
        totals[key] = totals.get(key, 0) + (_get(trade, "pnl") or 0)
    return {
        datetime(year, month, 1).strftime("%b %Y"): pnl
        for (year, month), pnl in sorted(totals.items())
    }


def summarize_days(daily: list[dict]) -> dict:
    total_days = len(daily)
    profitable = sum(1 for d in daily if d["pnl"] > 0)
    losing = sum(1 for d in daily if d["pnl"] < 0)
    total_pnl = sum(d["pnl"] for d in daily)
    return {
        "trading_days": total_days,
        "profitable_days": profitable,
        "losing_days": losing,
        "break_even_days": total_days - profitable - losing,
        "win_rate": round(profitable / total_days * 100, 1) if total_days else 0.0,
        "total_pnl": total_pnl,
        "avg_daily_pnl": total_pnl / total_days if total_days else 0.0,
    }


def build_dashboard(trades: list, starting_balance: float) -> dict:
    """Everything the performance view needs, derived from ``trades``.

    Trades are used in the order given (the API returns newest first).
    """
    completed = completed_trades(trades)
    df = _frame(completed)

    equity_curve = build_equity_curve(completed, starting_balance)
    drawdown = calculate_drawdown([p["balance"] for p in equity_curve])

    daily = _daily_counts(df)
    if starting_balance:
        daily_returns = [d["pnl"] / starting_balance for d in daily]
    else:
        daily_returns = []
    sharpe = calculate_sharpe_ratio(daily_returns)

    wins = sum(1 for t in completed if _get(t, "pnl") > 0)
    return {
        "starting_balance": starting_balance,
        "completed_trades": completed,
        "wins": wins,
        "losses": len(completed) - wins,
        "equity_curve": equity_curve,
        "drawdown": drawdown,
        "sharpe_ratio": sharpe,
        "streaks": get_streak_analysis(completed),
        "pnl_distribution": build_pnl_distribution(completed),
        "risk_reward": build_risk_reward(completed),
        "monthly_pnl": build_monthly_pnl(completed),
        "daily_pnl": daily,
        "heatmap_summary": summarize_days(daily),
        "symbol_performance": _sum_by(df, "ticker"),
        "time_performance": _sum_by(df, "time_classification"),
    }


def performance_summary(trades: list) -> dict:
    """Aggregate stats for GET /api/performance/analytics."""
    completed = completed_trades(trades)
    df = _frame(completed)
    daily = _daily_counts(df)
    return {
        "total_pnl": float(sum(_get(t, "pnl") for t in completed)),
        "win_rate": calculate_win_rate(completed),
        "avg_rr": calculate_average_rr(completed),
        "total_trades": len(trades),
        "symbol_performance": _sum_by(df, "ticker"),
        "time_performance": _sum_by(df, "time_classification"),
        "daily_pnl": {d["date"].isoformat(): d["pnl"] for d in daily},
        "trades": completed,
    }
