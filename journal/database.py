"""
SQLite persistence layer for the trading journal.
All database operations go through this module.
"""
import sqlite3
import os
from datetime import date, datetime, timezone

from config.settings import settings
from journal.core.analytics import as_datetime
from journal.core.metrics import calculate_options_pnl, classify_time_of_day

DB_PATH = settings.JOURNAL_DB_PATH


def _get_connection() -> sqlite3.Connection:
    os.makedirs(os.path.dirname(os.path.abspath(DB_PATH)), exist_ok=True)
    conn = sqlite3.connect(DB_PATH)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute("PRAGMA foreign_keys=ON")
    return conn


def init_db():
    conn = _get_connection()
    conn.executescript("""
        CREATE TABLE IF NOT EXISTS playbook_strategies (
            id              INTEGER PRIMARY KEY AUTOINCREMENT,
            name            TEXT NOT NULL,
            description     TEXT,
            is_default      INTEGER NOT NULL DEFAULT 0,
            created_at      TEXT NOT NULL
        );
        CREATE TABLE IF NOT EXISTS trades (
            id                  INTEGER PRIMARY KEY AUTOINCREMENT,
            ticker              TEXT NOT NULL,
            type                TEXT NOT NULL CHECK (type IN ('calls','puts')),
            quantity            INTEGER NOT NULL,
            entry_price         REAL NOT NULL,
            exit_price          REAL,
            entry_time          TEXT NOT NULL,
            exit_time           TEXT,
            strike_price        REAL NOT NULL,
            expiration_date     TEXT NOT NULL,
            pnl                 REAL,
            entry_reason        TEXT,
            exit_reason         TEXT,
            playbook_id         INTEGER,
            time_classification TEXT,
            trade_date          TEXT NOT NULL,
            created_at          TEXT NOT NULL
        );
        CREATE INDEX IF NOT EXISTS idx_trades_trade_date ON trades(trade_date);
        CREATE TABLE IF NOT EXISTS premarket_analysis (
            id                  INTEGER PRIMARY KEY AUTOINCREMENT,
            date                TEXT NOT NULL,
            climate_notes       TEXT,
            has_economic_events INTEGER NOT NULL DEFAULT 0,
            economic_events     TEXT,
            economic_impact     TEXT,
            vix_value           REAL,
            expected_volatility INTEGER,
            gamma_environment   TEXT,
            bias                TEXT,
            call_resistance     TEXT,
            put_support         TEXT,
            hvl_level           TEXT,
            vault_level         TEXT,
            vwap_level          TEXT,
            key_levels          TEXT,
            spy_analysis        TEXT,
            spy_critical_level  TEXT,
            spy_direction       TEXT,
            trade_idea_1        TEXT,
            trade_idea_2        TEXT,
            trade_idea_3        TEXT,
            created_at          TEXT NOT NULL
        );
        CREATE TABLE IF NOT EXISTS trade_analysis (
            id              INTEGER PRIMARY KEY AUTOINCREMENT,
            trade_id        INTEGER NOT NULL,
            screenshot_url  TEXT,
            what_went_well  TEXT,
            what_to_improve TEXT,
            next_time       TEXT,
            created_at      TEXT NOT NULL,
            FOREIGN KEY (trade_id) REFERENCES trades(id) ON DELETE CASCADE
        );
        CREATE TABLE IF NOT EXISTS intraday_notes (
            id          INTEGER PRIMARY KEY AUTOINCREMENT,
            date        TEXT NOT NULL,
            time        TEXT NOT NULL,
            note        TEXT NOT NULL,
            created_at  TEXT NOT NULL
        );
        CREATE TABLE IF NOT EXISTS settings (
            key         TEXT PRIMARY KEY,
            value       TEXT NOT NULL,
            updated_at  TEXT NOT NULL
        );
    """)
    conn.close()


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _iso(value):
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    return value


def _parse_dt(value):
    return datetime.fromisoformat(value) if value else None


def _parse_date(value):
    return date.fromisoformat(value[:10]) if value else None


def _update_row(table: str, row_id: int, fields: dict) -> None:
    if not fields:
        return
    assignments = ", ".join(f"{col} = ?" for col in fields)
    conn = _get_connection()
    conn.execute(
        f"UPDATE {table} SET {assignments} WHERE id = ?",
        [_iso(v) for v in fields.values()] + [row_id],
    )
    conn.commit()
    conn.close()


def _delete_row(table: str, row_id: int) -> bool:
    conn = _get_connection()
    cursor = conn.execute(f"DELETE FROM {table} WHERE id = ?", (row_id,))
    conn.commit()
    deleted = cursor.rowcount > 0
    conn.close()
    return deleted


# ── Trade CRUD ──────────────────────────────────────────────


_TRADE_COLUMNS = (
    "ticker", "type", "quantity", "entry_price", "exit_price", "entry_time",
    "exit_time", "strike_price", "expiration_date", "pnl", "entry_reason",
    "exit_reason", "playbook_id", "time_classification", "trade_date",
)


def _row_to_trade(row: sqlite3.Row) -> dict:
    return {
        "id": row["id"],
        "ticker": row["ticker"],
        "type": row["type"],
        "quantity": row["quantity"],
        "entry_price": row["entry_price"],
        "exit_price": row["exit_price"],
        "entry_time": _parse_dt(row["entry_time"]),
        "exit_time": _parse_dt(row["exit_time"]),
        "strike_price": row["strike_price"],
        "expiration_date": _parse_date(row["expiration_date"]),
        "pnl": row["pnl"],
        "entry_reason": row["entry_reason"],
        "exit_reason": row["exit_reason"],
        "playbook_id": row["playbook_id"],
        "time_classification": row["time_classification"],
        "trade_date": _parse_date(row["trade_date"]),
        "created_at": row["created_at"],
    }


def _derive_trade_fields(trade: dict, reclassify: bool) -> dict:
    """Recompute pnl and the time-of-day tag from the trade's own fields.

    P&L only exists once both exit price and exit time are set.
    """
    out = dict(trade)
    if out.get("exit_price") is not None and out.get("exit_time") is not None:
        out["pnl"] = calculate_options_pnl(out["entry_price"], out["exit_price"], out["quantity"])
    else:
        out["pnl"] = None
    if reclassify and out.get("entry_time") is not None:
        out["time_classification"] = classify_time_of_day(as_datetime(out["entry_time"]))
    return out


def create_trade(trade: dict) -> dict:
    """Insert a trade; P&L and time classification are filled in here."""
    data = _derive_trade_fields(trade, reclassify=not trade.get("time_classification"))
    conn = _get_connection()
    cursor = conn.execute(
        f"""INSERT INTO trades ({", ".join(_TRADE_COLUMNS)}, created_at)
            VALUES ({", ".join("?" for _ in _TRADE_COLUMNS)}, ?)""",
        [_iso(data.get(col)) for col in _TRADE_COLUMNS] + [_now()],
    )
    conn.commit()
    trade_id = cursor.lastrowid
    conn.close()
    return get_trade(trade_id)


def list_trades() -> list[dict]:
    """All trades, newest first."""
    conn = _get_connection()
    rows = conn.execute("SELECT * FROM trades ORDER BY id DESC").fetchall()
    conn.close()
    return [_row_to_trade(r) for r in rows]


def get_trade(trade_id: int) -> dict | None:
    conn = _get_connection()
    row = conn.execute("SELECT * FROM trades WHERE id = ?", (trade_id,)).fetchone()
    conn.close()
    return _row_to_trade(row) if row else None


def get_trades_by_date(day: date) -> list[dict]:
    conn = _get_connection()
    rows = conn.execute(
        "SELECT * FROM trades WHERE substr(trade_date, 1, 10) = ? ORDER BY id DESC",
        (day.isoformat(),),
    ).fetchall()
    conn.close()
    return [_row_to_trade(r) for r in rows]


def update_trade(trade_id: int, updates: dict) -> dict | None:
    existing = get_trade(trade_id)
    if not existing:
        return None
    merged = {**existing, **updates}
    reclassify = "entry_time" in updates or not existing["time_classification"]
    if "time_classification" in updates and updates["time_classification"]:
        reclassify = False
    data = _derive_trade_fields(merged, reclassify=reclassify)
    _update_row("trades", trade_id, {col: data.get(col) for col in _TRADE_COLUMNS})
    return get_trade(trade_id)


def delete_trade(trade_id: int) -> bool:
    return _delete_row("trades", trade_id)


# ── Premarket Analysis CRUD ─────────────────────────────────────


_PREMARKET_COLUMNS = (
    "date", "climate_notes", "has_economic_events", "economic_events",
    "economic_impact", "vix_value", "expected_volatility", "gamma_environment",
    "bias", "call_resistance", "put_support", "hvl_level", "vault_level",
    "vwap_level", "key_levels", "spy_analysis", "spy_critical_level",
    "spy_direction", "trade_idea_1", "trade_idea_2", "trade_idea_3",
)


def _row_to_premarket(row: sqlite3.Row) -> dict:
    out = {"id": row["id"]}
    for col in _PREMARKET_COLUMNS:
        out[col] = row[col]
    out["date"] = _parse_date(row["date"])
    out["has_economic_events"] = bool(row["has_economic_events"])
    out["created_at"] = row["created_at"]
    return out


def create_premarket_analysis(analysis: dict) -> dict:
    data = {**analysis, "has_economic_events": int(bool(analysis.get("has_economic_events")))}
    conn = _get_connection()
    cursor = conn.execute(
        f"""INSERT INTO premarket_analysis ({", ".join(_PREMARKET_COLUMNS)}, created_at)
            VALUES ({", ".join("?" for _ in _PREMARKET_COLUMNS)}, ?)""",
        [_iso(data.get(col)) for col in _PREMARKET_COLUMNS] + [_now()],
    )
    conn.commit()
    analysis_id = cursor.lastrowid
    conn.close()
    return get_premarket_analysis(analysis_id)


def list_premarket_analyses() -> list[dict]:
    conn = _get_connection()
    rows = conn.execute("SELECT * FROM premarket_analysis ORDER BY id DESC").fetchall()
    conn.close()
    return [_row_to_premarket(r) for r in rows]


def get_premarket_analysis(analysis_id: int) -> dict | None:
    conn = _get_connection()
    row = conn.execute(
        "SELECT * FROM premarket_analysis WHERE id = ?", (analysis_id,)
    ).fetchone()
    conn.close()
    return _row_to_premarket(row) if row else None


def get_premarket_analysis_by_date(day: date) -> dict | None:
    conn = _get_connection()
    row = conn.execute(
        "SELECT * FROM premarket_analysis WHERE substr(date, 1, 10) = ? ORDER BY id LIMIT 1",
        (day.isoformat(),),
    ).fetchone()
    conn.close()
    return _row_to_premarket(row) if row else None


def update_premarket_analysis(analysis_id: int, updates: dict) -> dict | None:
    if not get_premarket_analysis(analysis_id):
        return None
    fields = {k: v for k, v in updates.items() if k in _PREMARKET_COLUMNS}
    if "has_economic_events" in fields:
        fields["has_economic_events"] = int(bool(fields["has_economic_events"]))
    _update_row("premarket_analysis", analysis_id, fields)
    return get_premarket_analysis(analysis_id)


# ── Trade Analysis CRUD ─────────────────────────────────────────


_TRADE_ANALYSIS_COLUMNS = ("trade_id", "screenshot_url", "what_went_well", "what_to_improve", "next_time")


def _row_to_trade_analysis(row: sqlite3.Row) -> dict:
    return {
        "id": row["id"],
        "trade_id": row["trade_id"],
        "screenshot_url": row["screenshot_url"],
        "what_went_well": row["what_went_well"],
        "what_to_improve": row["what_to_improve"],
        "next_time": row["next_time"],
        "created_at": row["created_at"],
    }


def create_trade_analysis(analysis: dict) -> dict:
    conn = _get_connection()
    cursor = conn.execute(
        """INSERT INTO trade_analysis
           (trade_id, screenshot_url, what_went_well, what_to_improve, next_time, created_at)
           VALUES (?, ?, ?, ?, ?, ?)""",
        [analysis.get(col) for col in _TRADE_ANALYSIS_COLUMNS] + [_now()],
    )
    conn.commit()
    analysis_id = cursor.lastrowid
    conn.close()
    return get_trade_analysis(analysis_id)


def list_trade_analyses() -> list[dict]:
    conn = _get_connection()
    rows = conn.execute("SELECT * FROM trade_analysis ORDER BY id DESC").fetchall()
    conn.close()
    return [_row_to_trade_analysis(r) for r in rows]


def get_trade_analysis(analysis_id: int) -> dict | None:
    conn = _get_connection()
    row = conn.execute("SELECT * FROM trade_analysis WHERE id = ?", (analysis_id,)).fetchone()
    conn.close()
    return _row_to_trade_analysis(row) if row else None


def get_trade_analysis_for_trade(trade_id: int) -> dict | None:
    conn = _get_connection()
    row = conn.execute(
        "SELECT * FROM trade_analysis WHERE trade_id = ? ORDER BY id LIMIT 1", (trade_id,)
    ).fetchone()
    conn.close()
    return _row_to_trade_analysis(row) if row else None


def update_trade_analysis(analysis_id: int, updates: dict) -> dict | None:
    if not get_trade_analysis(analysis_id):
        return None
    fields = {k: v for k, v in updates.items() if k in _TRADE_ANALYSIS_COLUMNS}
    _update_row("trade_analysis", analysis_id, fields)
    return get_trade_analysis(analysis_id)


# ── Playbook Strategy CRUD ──────────────────────────────────────


def _row_to_playbook(row: sqlite3.Row) -> dict:
    return {
        "id": row["id"],
        "name": row["name"],
        "description": row["description"],
        "is_default": bool(row["is_default"]),
        "created_at": row["created_at"],
    }


def create_playbook_strategy(strategy: dict) -> dict:
    conn = _get_connection()
    cursor = conn.execute(
        """INSERT INTO playbook_strategies (name, description, is_default, created_at)
           VALUES (?, ?, ?, ?)""",
        (
            strategy["name"],
            strategy.get("description"),
            int(bool(strategy.get("is_default"))),
            _now(),
        ),
    )
    conn.commit()
    strategy_id = cursor.lastrowid
    conn.close()
    return get_playbook_strategy(strategy_id)


def list_playbook_strategies() -> list[dict]:
    conn = _get_connection()
    rows = conn.execute("SELECT * FROM playbook_strategies ORDER BY id DESC").fetchall()
    conn.close()
    return [_row_to_playbook(r) for r in rows]


def get_playbook_strategy(strategy_id: int) -> dict | None:
    conn = _get_connection()
    row = conn.execute(
        "SELECT * FROM playbook_strategies WHERE id = ?", (strategy_id,)
    ).fetchone()
    conn.close()
    return _row_to_playbook(row) if row else None


def update_playbook_strategy(strategy_id: int, updates: dict) -> dict | None:
    if not get_playbook_strategy(strategy_id):
        return None
    fields = {k: v for k, v in updates.items() if k in ("name", "description", "is_default")}
    if "is_default" in fields:
        fields["is_default"] = int(bool(fields["is_default"]))
    _update_row("playbook_strategies", strategy_id, fields)
    return get_playbook_strategy(strategy_id)


def delete_playbook_strategy(strategy_id: int) -> bool:
    return _delete_row("playbook_strategies", strategy_id)


# ── Intraday Notes CRUD ─────────────────────────────────────────


def _row_to_note(row: sqlite3.Row) -> dict:
    return {
        "id": row["id"],
        "date": _parse_date(row["date"]),
        "time": _parse_dt(row["time"]),
        "note": row["note"],
        "created_at": row["created_at"],
    }


def create_intraday_note(note: dict) -> dict:
    conn = _get_connection()
    cursor = conn.execute(
        "INSERT INTO intraday_notes (date, time, note, created_at) VALUES (?, ?, ?, ?)",
        (_iso(note["date"]), _iso(note["time"]), note["note"], _now()),
    )
    conn.commit()
    note_id = cursor.lastrowid
    conn.close()
    return get_intraday_note(note_id)


def list_intraday_notes(day: date = None) -> list[dict]:
    conn = _get_connection()
    if day:
        rows = conn.execute(
            "SELECT * FROM intraday_notes WHERE substr(date, 1, 10) = ? ORDER BY id DESC",
            (day.isoformat(),),
        ).fetchall()
    else:
        rows = conn.execute("SELECT * FROM intraday_notes ORDER BY id DESC").fetchall()
    conn.close()
    return [_row_to_note(r) for r in rows]


def get_intraday_note(note_id: int) -> dict | None:
    conn = _get_connection()
    row = conn.execute("SELECT * FROM intraday_notes WHERE id = ?", (note_id,)).fetchone()
    conn.close()
    return _row_to_note(row) if row else None


def update_intraday_note(note_id: int, updates: dict) -> dict | None:
    if not get_intraday_note(note_id):
        return None
    fields = {k: v for k, v in updates.items() if k in ("date", "time", "note")}
    _update_row("intraday_notes", note_id, fields)
    return get_intraday_note(note_id)


def delete_intraday_note(note_id: int) -> bool:
    return _delete_row("intraday_notes", note_id)


# ── Settings ────────────────────────────────────────────────────


def get_setting(key: str) -> dict | None:
    conn = _get_connection()
    row = conn.execute("SELECT * FROM settings WHERE key = ?", (key,)).fetchone()
    conn.close()
    if not row:
        return None
    return {"key": row["key"], "value": row["value"], "updated_at": row["updated_at"]}


def set_setting(key: str, value: str) -> dict:
    conn = _get_connection()
    conn.execute(
        """INSERT INTO settings (key, value, updated_at) VALUES (?, ?, ?)
           ON CONFLICT(key) DO UPDATE SET value = excluded.value, updated_at = excluded.updated_at""",
        (key, value, _now()),
    )
    conn.commit()
    conn.close()
    return get_setting(key)


def get_account_balance() -> float:
    setting = get_setting("account_balance")
    raw = setting["value"] if setting else settings.DEFAULT_ACCOUNT_BALANCE
    try:
        return float(raw)
    except ValueError:
        return float(settings.DEFAULT_ACCOUNT_BALANCE)


# ── Housekeeping ────────────────────────────────────────────────


def clear_all_data() -> bool:
    """Remove journal entries; playbook strategies and settings are kept."""
    tables = ("trade_analysis", "trades", "premarket_analysis", "intraday_notes")
    conn = _get_connection()
    for table in tables:
        conn.execute(f"DELETE FROM {table}")
    conn.execute(
        f"DELETE FROM sqlite_sequence WHERE name IN ({', '.join('?' for _ in tables)})",
        tables,
    )
    conn.commit()
    conn.close()
    return True
