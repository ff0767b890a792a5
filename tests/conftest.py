import pytest
from fastapi.testclient import TestClient

from journal import database


@pytest.fixture
def db(tmp_path, monkeypatch):
    monkeypatch.setattr(database, "DB_PATH", str(tmp_path / "journal.db"))
    database.init_db()
    return database


@pytest.fixture
def client(db, monkeypatch):
    from journal.api import main

    monkeypatch.setattr(main, "_API_KEY", "")
    with TestClient(main.app) as c:
        yield c


def make_trade(**overrides):
    trade = {
        "ticker": "SPY",
        "type": "calls",
        "quantity": 2,
        "entry_price": 2.50,
        "exit_price": 3.00,
        "entry_time": "2025-07-03T09:00:00",
        "exit_time": "2025-07-03T09:20:00",
        "strike_price": 618,
        "expiration_date": "2025-07-03",
        "trade_date": "2025-07-03",
    }
    trade.update(overrides)
    return trade
