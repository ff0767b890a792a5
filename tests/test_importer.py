from datetime import date, datetime

import pytest

from journal.core.importer import (
    HeaderNotFoundError,
    UploadQueue,
    build_trade_payload,
    parse_csv,
    split_columns,
    upload_trades,
)
from journal.core.symbols import TradeImportError

HEADER = "Symbol,Basis/Share,Proceeds/Share,Gain,Gain %,Term,Date Acquired,Quantity"

EXPORT = "\n".join([
    "Realized Gain/Loss for account ****1234",
    "",
    HEADER,
    "-SPY250703C618,$2.50,$3.00,$100.00,20%,Short,07/03/2025,2",
    '"-QQQ250815P540","$1,250.00","$1,300.00","$5,000.00",4%,Short,07/03/2025,1',
    "TSLA250718P300,$4.00,($1.00),-$500.00,-125%,Short,07/03/2025,1",
    "TOTALS,,,$4600.00,,,,",
])

TRADE_DAY = date(2025, 7, 3)


class TestParseCsv:
    def test_parses_rows_and_ignores_totals(self):
        result = parse_csv(EXPORT, TRADE_DAY)
        assert [t.ticker for t in result.trades] == ["SPY", "QQQ", "TSLA"]
        assert result.warnings == []
        assert result.skipped == 0

        spy = result.trades[0]
        assert spy.type == "calls"
        assert spy.strike_price == 618
        assert spy.entry_price == 2.50
        assert spy.exit_price == 3.00
        assert spy.quantity == 2
        assert spy.pnl == pytest.approx(100)
        assert spy.expiration_date == date(2025, 7, 3)
        assert spy.trade_date == TRADE_DAY
        assert spy.symbol == "-SPY250703C618"

    def test_quoted_thousands_and_parentheses(self):
        qqq, tsla = parse_csv(EXPORT, TRADE_DAY).trades[1:]
        assert qqq.entry_price == 1250
        assert qqq.exit_price == 1300
        assert qqq.pnl == pytest.approx(5000)
        assert tsla.type == "puts"
        assert tsla.exit_price == -1.0

    def test_tab_delimited(self):
        content = "\n".join([
            HEADER.replace(",", "\t"),
            "SPY250703P600\t1.00\t1.50\t50\t50%\tShort\t07/03/2025\t1",
        ])
        trades = parse_csv(content, TRADE_DAY).trades
        assert len(trades) == 1
        assert trades[0].type == "puts"
        assert trades[0].pnl == pytest.approx(50)

    def test_bad_row_is_skipped_with_warning(self):
        content = "\n".join([
            HEADER,
            "SPY251340C618,$2.50,$3.00,,,,,2",
            "SPY250703C618,abc,$3.00,,,,,2",
            "SPY250703C618,$2.50,$3.00,,,,,2",
        ])
        result = parse_csv(content, TRADE_DAY)
        assert len(result.trades) == 1
        assert len(result.warnings) == 2
        assert result.skipped == 2

    def test_non_finite_numbers_are_row_warnings(self):
        content = "\n".join([
            HEADER,
            "SPY250703C618,$2.50,$3.00,,,,,1e999",
            "SPY250703C618,NaN,$3.00,,,,,2",
            "SPY250703C618,$2.50,inf,,,,,2",
            "SPY250703C618,$2.50,$3.00,,,,,2",
        ])
        result = parse_csv(content, TRADE_DAY)
        assert len(result.trades) == 1
        assert result.trades[0].pnl == pytest.approx(100)
        assert len(result.warnings) == 3
        assert result.skipped == 3

    def test_short_and_non_option_rows_skipped_quietly(self):
        content = "\n".join([
            HEADER,
            "AAPL,$150.00,$155.00,,,,,10",
            "SPY250703C618,$2.50",
            "SPY250703C618,$2.50,$3.00,,,,,2",
        ])
        result = parse_csv(content, TRADE_DAY)
        assert len(result.trades) == 1
        assert result.warnings == []
        assert result.skipped == 2

    def test_missing_header(self):
        with pytest.raises(HeaderNotFoundError) as exc:
            parse_csv("SPY250703C618,$2.50,$3.00,,,,,2", TRADE_DAY)
        assert isinstance(exc.value, TradeImportError)

    def test_split_columns_keeps_quoted_commas(self):
        assert split_columns('"a,b",c\td') == ["a,b", "c", "d"]


class TestUpload:
    def _trades(self):
        return parse_csv(EXPORT, TRADE_DAY).trades

    def test_payload_uses_synthetic_times(self):
        payload = build_trade_payload(self._trades()[0], TRADE_DAY)
        assert payload["entry_time"] == datetime(2025, 7, 3, 9, 30)
        assert payload["exit_time"] == datetime(2025, 7, 3, 10, 0)
        assert payload["playbook_id"] == 1
        assert payload["exit_reason"] == "Imported trade"
        assert "-SPY250703C618" in payload["entry_reason"]

    def test_sequential_with_partial_failure(self):
        seen = []
        progress = []

        def create(payload):
            seen.append(payload["ticker"])
            if payload["ticker"] == "QQQ":
                raise RuntimeError("server said no")
            return {"id": len(seen), **payload}

        report = upload_trades(self._trades(), create, on_progress=lambda d, t: progress.append((d, t)))

        assert seen == ["SPY", "QQQ", "TSLA"]
        assert progress == [(1, 3), (2, 3), (3, 3)]
        assert report.successful == 2
        assert report.failed == 1
        assert report.ok
        assert report.results[1]["error"] == "server said no"
        assert report.summary() == "2 trades uploaded successfully, 1 failed."

    def test_nothing_uploaded_is_not_ok(self):
        report = upload_trades([], lambda p: p)
        assert not report.ok
        assert report.summary() == "0 trades uploaded successfully."


def test_upload_queue_is_fifo():
    order = []
    queue = UploadQueue(on_complete=lambda i, outcome: order.append((i, outcome["success"])))
    queue.put(lambda: "a")
    queue.put(lambda: 1 / 0)
    queue.put(lambda: "c")
    outcomes = queue.run()
    assert order == [(0, True), (1, False), (2, True)]
    assert [o.get("result") for o in outcomes] == ["a", None, "c"]
    assert len(queue) == 0
