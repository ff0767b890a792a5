"""
Debounced autosave for free-text fields (premarket climate notes).
"""
import logging
import threading
from datetime import datetime
from typing import Any, Callable, Optional

from config.settings import settings
from journal.core.analytics import local_today

logger = logging.getLogger(__name__)

_UNSET = object()


class DebouncedSaver:
    """Trailing-edge debounce around ``save_fn``.

    ``update(value)`` restarts the timer; only the last value of a burst is
    saved, ``delay`` seconds after the final update. Values equal to the
    last saved one are not saved again. Use as a context manager (or call
    ``close()``) so no timer outlives its owner.
    """

    def __init__(self, save_fn: Callable[[Any], None], delay: Optional[float] = None):
        self.save_fn = save_fn
        self.delay = settings.AUTOSAVE_DELAY if delay is None else delay
        self._lock = threading.Lock()
        self._timer: Optional[threading.Timer] = None
        self._generation = 0
        self._pending = _UNSET
        self._last_saved = _UNSET
        self._closed = False

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    @property
    def pending(self) -> bool:
        return self._pending is not _UNSET

    def update(self, value) -> None:
        with self._lock:
            if self._closed:
                return
            self._cancel_timer()
            if value == self._last_saved:
                self._pending = _UNSET
                return
            self._pending = value
            self._timer = threading.Timer(self.delay, self._fire, args=(self._generation,))
            self._timer.daemon = True
            self._timer.start()

    def flush(self) -> None:
        """Save the pending value now instead of waiting for the timer."""
        with self._lock:
            self._cancel_timer()
        self._fire()

    def close(self) -> None:
        with self._lock:
            self._closed = True
            self._cancel_timer()
            self._pending = _UNSET

    def _cancel_timer(self) -> None:
        # a cancelled timer may already be running; the bump makes it a no-op
        self._generation += 1
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _fire(self, generation: Optional[int] = None) -> None:
        with self._lock:
            if generation is not None and generation != self._generation:
                return
            if self._pending is _UNSET:
                return
            value, self._pending = self._pending, _UNSET
            self._timer = None
        try:
            self.save_fn(value)
        except Exception as e:
            logger.error("Autosave failed: %s", e)
            return
        with self._lock:
            self._last_saved = value


class ClimateNotesAutosave:
    """Saves today's premarket climate notes through a JournalClient.

    Blank notes are never saved. The first save creates today's analysis
    when none exists; later saves patch it.
    """

    def __init__(self, client, delay: Optional[float] = None):
        self.client = client
        self.last_saved: Optional[datetime] = None
        self._saver = DebouncedSaver(self._save, delay)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def update(self, notes: str) -> None:
        if notes and notes.strip():
            self._saver.update(notes)

    def flush(self) -> None:
        self._saver.flush()

    def close(self) -> None:
        self._saver.close()

    def _save(self, notes: str) -> None:
        existing = self.client.get_todays_premarket()
        if existing:
            self.client.update_premarket_analysis(existing["id"], {"climate_notes": notes})
        else:
            self.client.create_premarket_analysis({"date": local_today(), "climate_notes": notes})
        self.last_saved = datetime.now()
        logger.info("Climate notes saved")
