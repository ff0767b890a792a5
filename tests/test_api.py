import pytest

from conftest import make_trade

EXPORT = "\n".join([
    "Symbol,Basis/Share,Proceeds/Share,Gain,Gain %,Term,Date Acquired,Quantity",
    "-SPY250703C618,$2.50,$3.00,$100.00,20%,Short,07/03/2025,2",
    "QQQ250703P540,$1.00,$0.50,-$50.00,-50%,Short,07/03/2025,1",
    "SPY251340C618,$2.50,$3.00,,,,,2",
    "TOTALS,,,$50.00,,,,",
])


def test_health(client):
    assert client.get("/api/health").json() == {"status": "ok"}


def test_startup_seeds_defaults(client):
    playbooks = client.get("/api/playbook-strategies").json()
    assert "No Strategy" in {p["name"] for p in playbooks}
    assert client.get("/api/settings/account_balance").json()["value"] == "25000"


class TestTradeRoutes:
    def test_crud(self, client):
        res = client.post("/api/trades", json=make_trade())
        assert res.status_code == 201
        trade = res.json()
        assert trade["pnl"] == pytest.approx(100)
        assert trade["time_classification"] == "Cash Open"

        res = client.patch(f"/api/trades/{trade['id']}", json={"exit_price": 3.5})
        assert res.json()["pnl"] == pytest.approx(200)

        assert client.get(f"/api/trades/{trade['id']}").json()["exit_price"] == 3.5
        assert len(client.get("/api/trades/date/2025-07-03").json()) == 1

        assert client.delete(f"/api/trades/{trade['id']}").status_code == 204
        assert client.get(f"/api/trades/{trade['id']}").status_code == 404
        assert client.delete(f"/api/trades/{trade['id']}").status_code == 404

    def test_validation(self, client):
        assert client.post("/api/trades", json=make_trade(quantity=0)).status_code == 422
        assert client.post("/api/trades", json=make_trade(type="straddle")).status_code == 422
        assert client.patch("/api/trades/42", json={"exit_price": 1}).status_code == 404

    def test_import_dry_run_stores_nothing(self, client):
        res = client.post("/api/trades/import", json={"content": EXPORT, "trade_date": "2025-07-03", "dry_run": True})
        body = res.json()
        assert res.status_code == 200
        assert [t["ticker"] for t in body["trades"]] == ["SPY", "QQQ"]
        assert len(body["warnings"]) == 1
        assert client.get("/api/trades").json() == []

    def test_import_uploads_in_file_order(self, client):
        res = client.post("/api/trades/import", json={"content": EXPORT, "trade_date": "2025-07-03"})
        body = res.json()
        assert body["successful"] == 2
        assert body["failed"] == 0
        assert body["message"] == "2 trades uploaded successfully."

        trades = client.get("/api/trades").json()
        assert [t["ticker"] for t in trades] == ["QQQ", "SPY"]
        spy = trades[1]
        assert spy["entry_time"] == "2025-07-03T09:30:00"
        assert spy["time_classification"] == "Cash Open"
        assert spy["pnl"] == pytest.approx(100)

    def test_import_skips_nan_prices(self, client):
        content = "\n".join([EXPORT.splitlines()[0], "SPY250703C618,NaN,$3.00,,,,,2", EXPORT.splitlines()[1]])
        res = client.post("/api/trades/import", json={"content": content, "trade_date": "2025-07-03"})
        assert res.status_code == 200
        body = res.json()
        assert body["successful"] == 1
        assert len(body["warnings"]) == 1

    def test_import_without_header(self, client):
        res = client.post("/api/trades/import", json={"content": "nothing,here"})
        assert res.status_code == 400
        assert "header" in res.json()["detail"]


class TestJournalRoutes:
    def test_premarket_today(self, client):
        assert client.get("/api/premarket-analysis/today").json() is None
        from journal.core.analytics import local_today

        res = client.post("/api/premarket-analysis", json={"date": local_today().isoformat(), "climate_notes": "calm"})
        assert res.status_code == 201
        created = res.json()
        assert client.get("/api/premarket-analysis/today").json()["id"] == created["id"]

        res = client.patch(f"/api/premarket-analysis/{created['id']}", json={"vix_value": 14.2})
        assert res.json()["vix_value"] == 14.2
        assert res.json()["climate_notes"] == "calm"
        assert client.patch("/api/premarket-analysis/99", json={}).status_code == 404

    def test_trade_analysis(self, client):
        trade = client.post("/api/trades", json=make_trade()).json()
        assert client.post("/api/trade-analysis", json={"trade_id": 99}).status_code == 404
        created = client.post("/api/trade-analysis", json={"trade_id": trade["id"], "next_time": "size down"}).json()
        found = client.get(f"/api/trade-analysis/trade/{trade['id']}").json()
        assert found["id"] == created["id"]
        res = client.patch(f"/api/trade-analysis/{created['id']}", json={"what_went_well": "waited"})
        assert res.json()["what_went_well"] == "waited"

    def test_playbooks(self, client):
        created = client.post("/api/playbook-strategies", json={"name": "ORB"}).json()
        assert created["is_default"] is False
        assert client.post("/api/playbook-strategies", json={"name": "  "}).status_code == 400
        res = client.patch(f"/api/playbook-strategies/{created['id']}", json={"description": "opening range"})
        assert res.json()["description"] == "opening range"
        assert client.delete(f"/api/playbook-strategies/{created['id']}").status_code == 204

    def test_intraday_notes(self, client):
        from journal.core.analytics import local_today

        today = local_today().isoformat()
        note = client.post("/api/intraday-notes", json={"date": today, "time": f"{today}T10:05:00", "note": "VWAP reclaim"}).json()
        assert [n["note"] for n in client.get("/api/intraday-notes/today").json()] == ["VWAP reclaim"]
        assert client.patch(f"/api/intraday-notes/{note['id']}", json={"note": "failed reclaim"}).json()["note"] == "failed reclaim"
        assert client.delete(f"/api/intraday-notes/{note['id']}").status_code == 204
        assert client.get("/api/intraday-notes").json() == []

    def test_settings(self, client):
        assert client.get("/api/settings/missing").status_code == 404
        assert client.put("/api/settings/account_balance", json={"value": "  "}).status_code == 400
        res = client.put("/api/settings/account_balance", json={"value": "10000"})
        assert res.json()["value"] == "10000"


class TestPerformanceRoutes:
    def test_analytics_and_dashboard(self, client):
        client.put("/api/settings/account_balance", json={"value": "10000"})
        client.post("/api/trades", json=make_trade())
        client.post("/api/trades", json=make_trade(exit_price=2.0, ticker="QQQ"))
        client.post("/api/trades", json=make_trade(exit_price=None, exit_time=None))

        summary = client.get("/api/performance/analytics").json()
        assert summary["total_trades"] == 3
        assert summary["total_pnl"] == pytest.approx(0)
        assert summary["win_rate"] == pytest.approx(50)
        assert summary["daily_pnl"] == {"2025-07-03": 0.0}

        view = client.get("/api/performance/dashboard").json()
        assert view["starting_balance"] == 10000
        assert [p["balance"] for p in view["equity_curve"]] == [10000, 9900, 10000]
        assert view["symbol_performance"] == {"QQQ": -100.0, "SPY": 100.0}
        assert view["streaks"]["current_streak"] == 1


class TestDataManagement:
    def test_exports(self, client):
        trade = client.post("/api/trades", json=make_trade(entry_reason="VWAP pullback")).json()
        client.post("/api/trade-analysis", json={"trade_id": trade["id"], "what_went_well": 'held "runner"'})

        res = client.get("/api/export/performance-csv")
        assert res.headers["content-type"].startswith("text/csv")
        lines = res.text.splitlines()
        assert lines[0] == "Date,Ticker,Type,Quantity,Entry,Exit,PnL,Strategy,Notes"
        assert lines[1].startswith("2025-07-03,SPY,calls,2,2.5,3.0,100.0,VWAP pullback")

        lines = client.get("/api/export/analysis-csv").text.splitlines()
        assert lines[0].startswith("Trade ID,What Went Well")
        assert lines[1].startswith('1,"held ""runner"""')

        report = client.get("/api/export/performance-report").json()
        assert report["summary"]["total_trades"] == 1
        assert report["summary"]["win_rate"] == 100.0
        assert len(client.get("/api/export/trades").json()) == 1

    def test_backup_and_restore(self, client):
        first = client.post("/api/trades", json=make_trade()).json()
        client.post("/api/trades", json=make_trade(ticker="QQQ"))
        client.post("/api/trade-analysis", json={"trade_id": first["id"], "next_time": "scale out"})
        backup = client.post("/api/backup").json()
        assert backup["version"] == "1.0"
        assert len(backup["data"]["trades"]) == 2

        backup["data"]["trades"].append({"ticker": "broken"})
        res = client.post("/api/import-data", json=backup)
        assert res.json()["imported"] == {"trades": 2, "strategies": 0, "analyses": 1}

        trades = client.get("/api/trades").json()
        assert [t["ticker"] for t in trades] == ["QQQ", "SPY"]
        assert client.get(f"/api/trade-analysis/trade/{first['id']}").json()["next_time"] == "scale out"

    def test_restore_relinks_analyses_across_id_gaps(self, client):
        payload = {
            "trades": [
                {**make_trade(ticker="AAA"), "id": 1},
                {**make_trade(ticker="CCC"), "id": 3},
                {**make_trade(ticker="DDD"), "id": 4},
                {"ticker": "broken", "id": 5},
            ],
            "analyses": [
                {"trade_id": 3, "what_went_well": "cut it early"},
                {"trade_id": 5, "what_went_well": "orphan"},
            ],
        }
        res = client.post("/api/import-data", json=payload)
        assert res.json()["imported"] == {"trades": 3, "strategies": 0, "analyses": 1}

        trades = {t["ticker"]: t["id"] for t in client.get("/api/trades").json()}
        analyses = client.get("/api/trade-analysis").json()
        assert [a["trade_id"] for a in analyses] == [trades["CCC"]]
        assert client.get(f"/api/trade-analysis/trade/{trades['DDD']}").json() is None

    def test_import_data_rejects_bad_payload(self, client):
        assert client.post("/api/import-data", json={"trades": "nope"}).status_code == 400

    def test_clear_data(self, client):
        client.post("/api/trades", json=make_trade())
        assert client.post("/api/clear-data").status_code == 200
        assert client.get("/api/trades").json() == []
        assert client.get("/api/playbook-strategies").json() != []


def test_api_key_required_when_configured(client, monkeypatch):
    from journal.api import main

    monkeypatch.setattr(main, "_API_KEY", "secret")
    assert client.get("/api/trades").status_code == 401
    assert client.get("/api/trades", headers={"x-api-key": "secret"}).status_code == 200
    assert client.get("/api/trades?api_key=secret").status_code == 200
    assert client.get("/api/health").status_code == 200
