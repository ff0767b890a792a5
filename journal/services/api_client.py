"""
HTTP client for the journal API.

Reads go through a QueryCache keyed by endpoint path; every mutation
invalidates the paths it makes stale (see query_cache.INVALIDATIONS).
"""
import logging
from dataclasses import dataclass
from datetime import date
from typing import Any, Callable, Dict, Optional

import requests
from pydantic_core import to_jsonable_python

from config.settings import settings
from journal.core.analytics import build_dashboard
from journal.core.importer import ImportResult, UploadReport, parse_csv, upload_trades
from journal.services.query_cache import QueryCache

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30


@dataclass
class JournalAPIError(Exception):
    status_code: int
    message: str
    payload: Optional[Dict[str, Any]] = None

    def __str__(self) -> str:
        return f"JournalAPIError: {self.message} (HTTP {self.status_code})"


class JournalClient:
    """Synchronous client over a ``requests.Session``.

    Any object with the Session ``request`` interface can be passed as
    ``session`` (the FastAPI TestClient works for in-process use).
    """

    def __init__(self, base_url: str = None, api_key: str = None, session=None,
                 cache: QueryCache = None):
        self.base_url = (base_url or settings.JOURNAL_API_URL).rstrip("/")
        self.session = session or requests.Session()
        self.session.headers.update({"Accept": "application/json"})
        api_key = api_key if api_key is not None else settings.API_KEY
        if api_key:
            self.session.headers.update({"x-api-key": api_key})
        self.cache = cache or QueryCache()

    # ---------- transport ----------
    def _request(self, method: str, path: str, payload: Any = None) -> Any:
        url = f"{self.base_url}{path}"
        body = to_jsonable_python(payload) if payload is not None else None
        try:
            r = self.session.request(method, url, json=body, timeout=DEFAULT_TIMEOUT)
        except requests.Timeout as e:
            logger.error("Timeout calling %s %s", method, path)
            raise JournalAPIError(0, f"Timeout calling {path}") from e
        except requests.ConnectionError as e:
            logger.error("Network error calling %s %s: %s", method, path, e)
            raise JournalAPIError(0, f"Network error calling {path}") from e

        if r.status_code >= 400:
            try:
                detail = r.json()
            except ValueError:
                detail = {"detail": r.text}
            msg = detail.get("detail") if isinstance(detail, dict) else None
            logger.error("HTTP %d %s %s: %s", r.status_code, method, path, msg)
            raise JournalAPIError(r.status_code, str(msg or "HTTP error"), detail)

        if r.status_code == 204 or not r.content:
            return None
        return r.json()

    def _get(self, path: str) -> Any:
        return self.cache.get_or_fetch(path, lambda: self._request("GET", path))

    # ---------- trades ----------
    def get_trades(self) -> list[dict]:
        return self._get("/api/trades")

    def get_trade(self, trade_id: int) -> dict:
        return self._get(f"/api/trades/{trade_id}")

    def create_trade(self, trade: dict) -> dict:
        created = self._request("POST", "/api/trades", trade)
        self.cache.invalidate_for("trade_created")
        return created

    def update_trade(self, trade_id: int, updates: dict) -> dict:
        updated = self._request("PATCH", f"/api/trades/{trade_id}", updates)
        self.cache.invalidate_for("trade_updated")
        return updated

    def delete_trade(self, trade_id: int) -> None:
        self._request("DELETE", f"/api/trades/{trade_id}")
        self.cache.invalidate_for("trade_deleted")

    def import_file(
        self,
        content: str,
        trade_date: Optional[date] = None,
        on_progress: Optional[Callable[[int, int], None]] = None,
        playbook_id: Optional[int] = 1,
    ) -> tuple[ImportResult, UploadReport]:
        """Parse a broker export locally and POST each trade in file order."""
        parsed = parse_csv(content, trade_date)
        report = upload_trades(
            parsed.trades,
            lambda payload: self._request("POST", "/api/trades", payload),
            trade_date=trade_date,
            on_progress=on_progress,
            playbook_id=playbook_id,
        )
        if report.successful:
            self.cache.invalidate_for("trades_imported")
        return parsed, report

    # ---------- premarket analysis ----------
    def get_todays_premarket(self) -> Optional[dict]:
        return self._get("/api/premarket-analysis/today")

    def create_premarket_analysis(self, analysis: dict) -> dict:
        created = self._request("POST", "/api/premarket-analysis", analysis)
        self.cache.invalidate_for("premarket_saved")
        return created

    def update_premarket_analysis(self, analysis_id: int, updates: dict) -> dict:
        updated = self._request("PATCH", f"/api/premarket-analysis/{analysis_id}", updates)
        self.cache.invalidate_for("premarket_saved")
        return updated

    # ---------- settings ----------
    def get_setting(self, key: str) -> Optional[str]:
        try:
            return self._get(f"/api/settings/{key}")["value"]
        except JournalAPIError as e:
            if e.status_code == 404:
                return None
            raise

    def set_setting(self, key: str, value: str) -> dict:
        setting = self._request("PUT", f"/api/settings/{key}", {"value": value})
        self.cache.invalidate_for("setting_changed", key=key)
        return setting

    # ---------- performance ----------
    def performance_analytics(self) -> dict:
        return self._get("/api/performance/analytics")

    def dashboard(self) -> dict:
        """Build the dashboard view-model locally from the cached trade list."""
        raw = self.get_setting("account_balance") or settings.DEFAULT_ACCOUNT_BALANCE
        try:
            balance = float(raw)
        except ValueError:
            logger.warning("Non-numeric account_balance %r, using default", raw)
            balance = float(settings.DEFAULT_ACCOUNT_BALANCE)
        return build_dashboard(self.get_trades(), balance)

    def clear_data(self) -> dict:
        result = self._request("POST", "/api/clear-data")
        self.cache.invalidate_for("data_cleared")
        return result
