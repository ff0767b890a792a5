"""
FastAPI backend: REST API for the options trading journal.
"""
from contextlib import asynccontextmanager
from fastapi import Body, FastAPI, HTTPException, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from pydantic import ValidationError
from datetime import date, datetime, timezone
import csv
import io
import logging
import math
import sqlite3

logger = logging.getLogger("tradejournal")


def sanitize_for_json(obj):
    """Recursively replace NaN/Inf with None and convert numpy types for JSON."""
    import numpy as np
    if isinstance(obj, dict):
        return {k: sanitize_for_json(v) for k, v in obj.items()}
    elif isinstance(obj, list):
        return [sanitize_for_json(v) for v in obj]
    elif isinstance(obj, (np.integer,)):
        return int(obj)
    elif isinstance(obj, (np.floating,)):
        val = float(obj)
        return None if math.isnan(val) or math.isinf(val) else val
    elif isinstance(obj, float) and (math.isnan(obj) or math.isinf(obj)):
        return None
    return obj


from journal import database
from journal.core.analytics import as_local_date, build_dashboard, local_today, performance_summary
from journal.core.importer import parse_csv, upload_trades
from journal.core.symbols import TradeImportError
from journal.models.journal import (
    IntradayNoteCreate, IntradayNoteUpdate,
    PlaybookStrategyCreate, PlaybookStrategyUpdate,
    PremarketAnalysisCreate, PremarketAnalysisUpdate,
    SettingValue, TradeAnalysisCreate, TradeAnalysisUpdate,
)
from journal.models.trade import Trade, TradeCreate, TradeImportRequest, TradeUpdate
from journal.seed_playbooks import seed_defaults
from config.settings import settings


@asynccontextmanager
async def lifespan(app: FastAPI):
    logging.basicConfig(level=settings.LOG_LEVEL)
    for problem in settings.validate():
        logger.warning("Config: %s", problem)
    database.init_db()
    seed_defaults()
    yield


app = FastAPI(title="Trade Journal API", version="1.0.0", lifespan=lifespan)

# ── CORS: restrict to known origins ──
_cors_origins = [o.strip() for o in settings.CORS_ORIGINS.split(",") if o.strip()]
app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ── API-key auth (single middleware for all routes) ──
_API_KEY = settings.API_KEY


class APIKeyMiddleware(BaseHTTPMiddleware):
    """Reject requests without a valid API key. Skips /api/health and when API_KEY is unset."""
    async def dispatch(self, request: Request, call_next):
        if _API_KEY and request.url.path != "/api/health":
            key = request.headers.get("x-api-key") or request.query_params.get("api_key")
            if key != _API_KEY:
                return JSONResponse({"detail": "Invalid or missing API key"}, status_code=401)
        return await call_next(request)


app.add_middleware(APIKeyMiddleware)


# ─────────────────────────────────────────────
# TRADES
# ─────────────────────────────────────────────

@app.get("/api/trades")
def list_trades():
    try:
        return database.list_trades()
    except Exception as e:
        logger.error("Failed to fetch trades: %s", e)
        raise HTTPException(status_code=500, detail="Failed to fetch trades")


@app.get("/api/trades/date/{day}")
def trades_by_date(day: date):
    try:
        return database.get_trades_by_date(day)
    except Exception as e:
        logger.error("Failed to fetch trades for %s: %s", day, e)
        raise HTTPException(status_code=500, detail="Failed to fetch trades by date")


@app.get("/api/trades/{trade_id}", response_model=Trade)
def get_trade(trade_id: int):
    trade = database.get_trade(trade_id)
    if not trade:
        raise HTTPException(status_code=404, detail="Trade not found")
    return trade


@app.post("/api/trades", status_code=201, response_model=Trade)
def create_trade(req: TradeCreate):
    try:
        return database.create_trade(req.model_dump(mode="json"))
    except Exception as e:
        logger.error("Failed to create trade: %s", e)
        raise HTTPException(status_code=500, detail="Failed to create trade")


@app.patch("/api/trades/{trade_id}", response_model=Trade)
def update_trade(trade_id: int, req: TradeUpdate):
    updates = req.model_dump(mode="json", exclude_unset=True)
    try:
        trade = database.update_trade(trade_id, updates)
    except Exception as e:
        logger.error("Failed to update trade %d: %s", trade_id, e)
        raise HTTPException(status_code=500, detail="Failed to update trade")
    if not trade:
        raise HTTPException(status_code=404, detail="Trade not found")
    return trade


@app.delete("/api/trades/{trade_id}", status_code=204)
def delete_trade(trade_id: int):
    if not database.delete_trade(trade_id):
        raise HTTPException(status_code=404, detail="Trade not found")
    return Response(status_code=204)


@app.post("/api/trades/import")
def import_trades(req: TradeImportRequest):
    """Parse a broker gain/loss export and store each trade in file order."""
    try:
        parsed = parse_csv(req.content, req.trade_date)
    except TradeImportError as e:
        raise HTTPException(status_code=400, detail=str(e))

    response = {
        "trades": [t.to_dict() for t in parsed.trades],
        "warnings": parsed.warnings,
        "skipped": parsed.skipped,
    }
    if req.dry_run:
        return response

    report = upload_trades(
        parsed.trades, database.create_trade,
        trade_date=req.trade_date, playbook_id=req.playbook_id,
    )
    response.update({
        "successful": report.successful,
        "failed": report.failed,
        "errors": [r["error"] for r in report.results if not r["success"]],
        "message": report.summary(),
    })
    return response


# ─────────────────────────────────────────────
# PREMARKET ANALYSIS
# ─────────────────────────────────────────────

@app.get("/api/premarket-analysis")
def list_premarket_analyses():
    return database.list_premarket_analyses()


@app.get("/api/premarket-analysis/today")
def todays_premarket_analysis():
    return database.get_premarket_analysis_by_date(local_today())


@app.post("/api/premarket-analysis", status_code=201)
def create_premarket_analysis(req: PremarketAnalysisCreate):
    try:
        return database.create_premarket_analysis(req.model_dump(mode="json"))
    except Exception as e:
        logger.error("Failed to create premarket analysis: %s", e)
        raise HTTPException(status_code=500, detail="Failed to create premarket analysis")


@app.patch("/api/premarket-analysis/{analysis_id}")
def update_premarket_analysis(analysis_id: int, req: PremarketAnalysisUpdate):
    analysis = database.update_premarket_analysis(
        analysis_id, req.model_dump(mode="json", exclude_unset=True)
    )
    if not analysis:
        raise HTTPException(status_code=404, detail="Premarket analysis not found")
    return analysis


# ─────────────────────────────────────────────
# TRADE ANALYSIS
# ─────────────────────────────────────────────

@app.get("/api/trade-analysis")
def list_trade_analyses():
    return database.list_trade_analyses()


@app.get("/api/trade-analysis/trade/{trade_id}")
def trade_analysis_for_trade(trade_id: int):
    return database.get_trade_analysis_for_trade(trade_id)


@app.post("/api/trade-analysis", status_code=201)
def create_trade_analysis(req: TradeAnalysisCreate):
    if not database.get_trade(req.trade_id):
        raise HTTPException(status_code=404, detail="Trade not found")
    return database.create_trade_analysis(req.model_dump())


@app.patch("/api/trade-analysis/{analysis_id}")
def update_trade_analysis(analysis_id: int, req: TradeAnalysisUpdate):
    analysis = database.update_trade_analysis(analysis_id, req.model_dump(exclude_unset=True))
    if not analysis:
        raise HTTPException(status_code=404, detail="Trade analysis not found")
    return analysis


# ─────────────────────────────────────────────
# PLAYBOOK STRATEGIES
# ─────────────────────────────────────────────

@app.get("/api/playbook-strategies")
def list_playbook_strategies():
    return database.list_playbook_strategies()


@app.post("/api/playbook-strategies", status_code=201)
def create_playbook_strategy(req: PlaybookStrategyCreate):
    if not req.name.strip():
        raise HTTPException(status_code=400, detail="Strategy name is required")
    return database.create_playbook_strategy(req.model_dump())


@app.patch("/api/playbook-strategies/{strategy_id}")
def update_playbook_strategy(strategy_id: int, req: PlaybookStrategyUpdate):
    strategy = database.update_playbook_strategy(strategy_id, req.model_dump(exclude_unset=True))
    if not strategy:
        raise HTTPException(status_code=404, detail="Strategy not found")
    return strategy


@app.delete("/api/playbook-strategies/{strategy_id}", status_code=204)
def delete_playbook_strategy(strategy_id: int):
    if not database.delete_playbook_strategy(strategy_id):
        raise HTTPException(status_code=404, detail="Strategy not found")
    return Response(status_code=204)


# ─────────────────────────────────────────────
# INTRADAY NOTES
# ─────────────────────────────────────────────

@app.get("/api/intraday-notes")
def list_intraday_notes():
    return database.list_intraday_notes()


@app.get("/api/intraday-notes/today")
def todays_intraday_notes():
    return database.list_intraday_notes(local_today())


@app.post("/api/intraday-notes", status_code=201)
def create_intraday_note(req: IntradayNoteCreate):
    if not req.note.strip():
        raise HTTPException(status_code=400, detail="Note text is required")
    return database.create_intraday_note(req.model_dump(mode="json"))


@app.patch("/api/intraday-notes/{note_id}")
def update_intraday_note(note_id: int, req: IntradayNoteUpdate):
    note = database.update_intraday_note(note_id, req.model_dump(mode="json", exclude_unset=True))
    if not note:
        raise HTTPException(status_code=404, detail="Note not found")
    return note


@app.delete("/api/intraday-notes/{note_id}", status_code=204)
def delete_intraday_note(note_id: int):
    if not database.delete_intraday_note(note_id):
        raise HTTPException(status_code=404, detail="Note not found")
    return Response(status_code=204)


# ─────────────────────────────────────────────
# SETTINGS
# ─────────────────────────────────────────────

@app.get("/api/settings/{key}")
def get_setting(key: str):
    setting = database.get_setting(key)
    if not setting:
        raise HTTPException(status_code=404, detail="Setting not found")
    return setting


@app.put("/api/settings/{key}")
def put_setting(key: str, req: SettingValue):
    if not req.value.strip():
        raise HTTPException(status_code=400, detail="Value is required")
    try:
        return database.set_setting(key, req.value.strip())
    except Exception as e:
        logger.error("Failed to update setting %s: %s", key, e)
        raise HTTPException(status_code=500, detail="Failed to update setting")


# ─────────────────────────────────────────────
# PERFORMANCE
# ─────────────────────────────────────────────

@app.get("/api/performance/analytics")
def performance_analytics():
    try:
        return sanitize_for_json(performance_summary(database.list_trades()))
    except Exception as e:
        logger.error("Failed to compute analytics: %s", e)
        raise HTTPException(status_code=500, detail="Failed to fetch performance analytics")


@app.get("/api/performance/dashboard")
def performance_dashboard():
    try:
        view = build_dashboard(database.list_trades(), database.get_account_balance())
    except Exception as e:
        logger.error("Failed to build dashboard: %s", e)
        raise HTTPException(status_code=500, detail="Failed to build performance dashboard")
    return sanitize_for_json(view)


# ─────────────────────────────────────────────
# DATA MANAGEMENT
# ─────────────────────────────────────────────

def _csv_response(header: list[str], rows: list[list], filename: str) -> Response:
    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator="\n")
    writer.writerow(header)
    writer.writerows(rows)
    return Response(
        content=buf.getvalue(),
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@app.get("/api/export/trades")
def export_trades():
    return database.list_trades()


@app.get("/api/export/performance-csv")
def export_performance_csv():
    rows = [
        [
            as_local_date(t["entry_time"]).isoformat(),
            t["ticker"],
            t["type"],
            t["quantity"],
            t["entry_price"],
            "" if t["exit_price"] is None else t["exit_price"],
            t["pnl"] or 0,
            t["entry_reason"] or "",
            t["exit_reason"] or "",
        ]
        for t in database.list_trades()
    ]
    header = ["Date", "Ticker", "Type", "Quantity", "Entry", "Exit", "PnL", "Strategy", "Notes"]
    return _csv_response(header, rows, "trades-export.csv")


@app.get("/api/export/analysis-csv")
def export_analysis_csv():
    # the last three columns have no stored counterpart; Improvements repeats what_to_improve
    rows = [
        [
            a["trade_id"],
            a["what_went_well"] or "",
            a["what_to_improve"] or "",
            a["next_time"] or "",
            "",
            "",
            a["what_to_improve"] or "",
        ]
        for a in database.list_trade_analyses()
    ]
    header = [
        "Trade ID", "What Went Well", "What Went Wrong", "Key Learnings",
        "Emotional State", "Market Conditions", "Improvements",
    ]
    return _csv_response(header, rows, "analysis-export.csv")


@app.get("/api/export/performance-report")
def export_performance_report():
    trades = database.list_trades()
    wins = [t["pnl"] for t in trades if (t["pnl"] or 0) > 0]
    losses = [t["pnl"] for t in trades if (t["pnl"] or 0) < 0]
    total = len(trades)
    return {
        "report_date": datetime.now(timezone.utc).isoformat(),
        "summary": {
            "total_trades": total,
            "winning_trades": len(wins),
            "losing_trades": len(losses),
            "total_pnl": round(sum(t["pnl"] or 0 for t in trades), 2),
            "win_rate": round(len(wins) / total * 100, 1) if total else 0.0,
            "avg_win": round(sum(wins) / len(wins), 2) if wins else 0.0,
            "avg_loss": round(sum(losses) / len(losses), 2) if losses else 0.0,
        },
        "trades": trades,
        "analyses": database.list_trade_analyses(),
    }


@app.post("/api/backup")
def backup():
    try:
        return {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "version": "1.0",
            "data": {
                "trades": database.list_trades(),
                "strategies": database.list_playbook_strategies(),
                "analyses": database.list_trade_analyses(),
                "premarket_analyses": database.list_premarket_analyses(),
                "intraday_notes": database.list_intraday_notes(),
            },
        }
    except Exception as e:
        logger.error("Backup failed: %s", e)
        raise HTTPException(status_code=500, detail="Failed to create backup")


@app.post("/api/import-data")
def import_data(payload: dict = Body(...)):
    """Replace journal data with an exported payload.

    Accepts a backup document (``{"data": {...}}``) or the bare data dict.
    Invalid items are skipped; playbooks already present by name are kept.
    """
    data = payload.get("data") if isinstance(payload.get("data"), dict) else payload
    if not isinstance(data.get("trades"), list):
        raise HTTPException(status_code=400, detail="Invalid data format")

    database.clear_all_data()
    counts = {"trades": 0, "strategies": 0, "analyses": 0}

    # backup id -> new id; analyses are relinked through it
    id_map = {}
    trades = sorted(data["trades"], key=lambda t: t.get("id") or 0 if isinstance(t, dict) else 0)
    for item in trades:
        try:
            trade = TradeCreate.model_validate(item)
            created = database.create_trade(trade.model_dump(mode="json"))
            counts["trades"] += 1
        except (ValidationError, sqlite3.Error, ValueError) as e:
            logger.warning("Failed to import trade: %s", e)
            continue
        if item.get("id") is not None:
            id_map[item["id"]] = created["id"]

    existing = {p["name"] for p in database.list_playbook_strategies()}
    for item in data.get("strategies") or []:
        try:
            strategy = PlaybookStrategyCreate.model_validate(item)
        except ValidationError as e:
            logger.warning("Failed to import strategy: %s", e)
            continue
        if strategy.name in existing:
            continue
        database.create_playbook_strategy(strategy.model_dump())
        existing.add(strategy.name)
        counts["strategies"] += 1

    for item in data.get("analyses") or []:
        try:
            analysis = TradeAnalysisCreate.model_validate(item)
        except ValidationError as e:
            logger.warning("Failed to import analysis: %s", e)
            continue
        if analysis.trade_id not in id_map:
            logger.warning("Skipping analysis for trade %s: trade was not imported", analysis.trade_id)
            continue
        try:
            database.create_trade_analysis({**analysis.model_dump(), "trade_id": id_map[analysis.trade_id]})
            counts["analyses"] += 1
        except sqlite3.Error as e:
            logger.warning("Failed to import analysis: %s", e)

    logger.info("Imported %s", counts)
    return {"message": "Data imported successfully", "imported": counts}


@app.post("/api/clear-data")
def clear_data():
    try:
        database.clear_all_data()
    except Exception as e:
        logger.error("Failed to clear data: %s", e)
        raise HTTPException(status_code=500, detail="Failed to clear data")
    return {"message": "All data cleared successfully"}


@app.get("/api/health")
def health():
    return {"status": "ok"}
