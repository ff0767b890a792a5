"""
Broker CSV import: turns an exported gain/loss file into trade candidates
and uploads them one at a time through a persistence callable.
"""
import logging
import math
import re
from collections import deque
from dataclasses import asdict, dataclass, field
from datetime import date, datetime
from typing import Callable, Optional

from config.settings import settings
from journal.core.metrics import OPTIONS_MULTIPLIER
from journal.core.symbols import TradeImportError, is_option_symbol, parse_symbol

logger = logging.getLogger(__name__)

HEADER_MARKERS = ("Symbol", "Basis/Share", "Proceeds/Share")
TOTALS_PREFIX = "TOTALS"
MIN_COLUMNS = 8

COL_SYMBOL = 0
COL_BASIS = 1
COL_PROCEEDS = 2
COL_QUANTITY = 7

# tab, or a comma followed by an even number of quotes (i.e. outside "...")
_SPLIT_RE = re.compile(r'\t|,(?=(?:[^"]*"[^"]*")*[^"]*$)')


class HeaderNotFoundError(TradeImportError):
    """Raised when no row carries the Symbol / Basis/Share / Proceeds/Share headers."""


@dataclass
class ParsedTrade:
    ticker: str
    type: str
    quantity: int
    strike_price: float
    entry_price: float
    exit_price: float
    expiration_date: date
    trade_date: date
    pnl: float
    symbol: str  # original broker symbol

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class ImportResult:
    trades: list[ParsedTrade] = field(default_factory=list)
    warnings: list[dict] = field(default_factory=list)
    skipped: int = 0


def _num(value: str) -> float:
    s = value.replace("$", "").replace(",", "").strip()
    paren_neg = s.startswith("(") and s.endswith(")")
    if paren_neg:
        s = s[1:-1]
    val = float(s)
    if not math.isfinite(val):
        raise ValueError(f"Not a finite number: {value!r}")
    return -val if paren_neg else val


def split_columns(line: str) -> list[str]:
    return [col.replace('"', "").strip() for col in _SPLIT_RE.split(line)]


def find_data_start(lines: list[str]) -> int:
    for i, line in enumerate(lines):
        if all(marker in line for marker in HEADER_MARKERS):
            return i + 1
    raise HeaderNotFoundError(
        "Could not find data header row. Please ensure the CSV includes "
        "Symbol, Basis/Share, Proceeds/Share columns."
    )


def parse_row(columns: list[str], trade_date: date) -> ParsedTrade:
    symbol = columns[COL_SYMBOL]
    parsed = parse_symbol(symbol)
    entry_price = _num(columns[COL_BASIS])
    exit_price = _num(columns[COL_PROCEEDS])
    quantity = int(_num(columns[COL_QUANTITY]))
    pnl = (exit_price - entry_price) * quantity * OPTIONS_MULTIPLIER
    return ParsedTrade(
        ticker=parsed.ticker,
        type=parsed.option_type,
        quantity=quantity,
        strike_price=parsed.strike_price,
        entry_price=entry_price,
        exit_price=exit_price,
        expiration_date=parsed.expiration_date,
        trade_date=trade_date,
        pnl=pnl,
        symbol=symbol,
    )


def parse_csv(content: str, trade_date: Optional[date] = None) -> ImportResult:
    """Parse a broker gain/loss export.

    Every trade is stamped with ``trade_date`` (today when omitted). Rows
    that are too short or whose symbol is not an option ticker are skipped
    quietly; rows that fail to parse are skipped with a warning. Raises
    HeaderNotFoundError if the header row is missing.
    """
    trade_date = trade_date or date.today()
    lines = [line for line in content.splitlines() if line.strip()]
    start = find_data_start(lines)

    result = ImportResult()
    for line_no, raw in enumerate(lines[start:], start=start + 1):
        line = raw.strip()
        if not line or line.startswith(TOTALS_PREFIX):
            continue

        columns = split_columns(line)
        if len(columns) < MIN_COLUMNS:
            result.skipped += 1
            continue
        if not is_option_symbol(columns[COL_SYMBOL]):
            result.skipped += 1
            continue

        try:
            result.trades.append(parse_row(columns, trade_date))
        except (TradeImportError, ValueError) as e:
            logger.warning("Skipping invalid row %d (%s): %s", line_no, line, e)
            result.warnings.append({"line": line_no, "message": str(e)})
            result.skipped += 1

    logger.info(
        "Parsed %d trades (%d rows skipped, %d warnings)",
        len(result.trades), result.skipped, len(result.warnings),
    )
    return result


# ── Upload ──────────────────────────────────────────────────────


def _at(day: date, hhmm: str) -> datetime:
    hours, minutes = (int(p) for p in hhmm.split(":"))
    return datetime(day.year, day.month, day.day, hours, minutes)


def build_trade_payload(
    trade: ParsedTrade, trade_date: Optional[date] = None, playbook_id: Optional[int] = 1
) -> dict:
    """Create-trade payload for a parsed row.

    Execution times are not present in the export; they are set to the
    configured IMPORT_ENTRY_TIME / IMPORT_EXIT_TIME on the trade date.
    """
    day = trade_date or trade.trade_date
    return {
        "ticker": trade.ticker,
        "type": trade.type,
        "quantity": trade.quantity,
        "strike_price": trade.strike_price,
        "entry_price": trade.entry_price,
        "exit_price": trade.exit_price,
        "entry_time": _at(day, settings.IMPORT_ENTRY_TIME),
        "exit_time": _at(day, settings.IMPORT_EXIT_TIME),
        "expiration_date": trade.expiration_date,
        "trade_date": day,
        "pnl": trade.pnl,
        "entry_reason": f"Imported from broker export ({trade.symbol})",
        "exit_reason": "Imported trade",
        "playbook_id": playbook_id,
    }


@dataclass
class UploadReport:
    results: list[dict] = field(default_factory=list)

    @property
    def successful(self) -> int:
        return sum(1 for r in self.results if r["success"])

    @property
    def failed(self) -> int:
        return sum(1 for r in self.results if not r["success"])

    @property
    def ok(self) -> bool:
        return self.successful > 0

    def summary(self) -> str:
        text = f"{self.successful} trades uploaded successfully"
        if self.failed:
            text += f", {self.failed} failed"
        return text + "."


class UploadQueue:
    """FIFO queue of upload tasks drained one at a time.

    Each task is a zero-argument callable; ``on_complete(index, outcome)``
    fires after every task with ``{"success": bool, "result"|"error": ...}``.
    A failing task does not stop the queue.
    """

    def __init__(self, on_complete: Optional[Callable[[int, dict], None]] = None):
        self._tasks: deque = deque()
        self._on_complete = on_complete

    def __len__(self) -> int:
        return len(self._tasks)

    def put(self, task: Callable[[], object]) -> None:
        self._tasks.append(task)

    def run(self) -> list[dict]:
        outcomes = []
        index = 0
        while self._tasks:
            task = self._tasks.popleft()
            try:
                outcome = {"success": True, "result": task()}
            except Exception as e:
                logger.warning("Upload task %d failed: %s", index, e)
                outcome = {"success": False, "error": str(e)}
            outcomes.append(outcome)
            if self._on_complete:
                self._on_complete(index, outcome)
            index += 1
        return outcomes


def upload_trades(
    trades: list[ParsedTrade],
    create_trade: Callable[[dict], object],
    trade_date: Optional[date] = None,
    on_progress: Optional[Callable[[int, int], None]] = None,
    playbook_id: Optional[int] = 1,
) -> UploadReport:
    """Send parsed trades to ``create_trade`` sequentially, in order.

    Failures are recorded per trade and never retried or rolled back.
    ``on_progress(done, total)`` is called after each trade.
    """
    total = len(trades)
    report = UploadReport()

    def _done(index: int, outcome: dict) -> None:
        report.results.append({"trade": trades[index], **outcome})
        if on_progress:
            on_progress(index + 1, total)

    queue = UploadQueue(on_complete=_done)
    for trade in trades:
        payload = build_trade_payload(trade, trade_date, playbook_id)
        queue.put(lambda p=payload: create_trade(p))
    queue.run()

    logger.info("Upload complete: %s", report.summary())
    return report
