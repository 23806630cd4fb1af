"""Background timers for periodic refresh and retention cleanup."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable

logger = logging.getLogger(__name__)


class _RepeatingTimer:
    """Daemon thread that runs ``action`` every ``interval_seconds`` until stopped."""

    def __init__(self, *, name: str, interval_seconds: float, action: Callable[[], object]) -> None:
        self.interval_seconds = interval_seconds
        self._action = action
        self._stop = threading.Event()
        self._thread = threading.Thread(target=self._loop, daemon=True, name=name)

    def start(self) -> None:
        self._thread.start()

    def stop(self, *, wait_seconds: float | None = None) -> None:
        self._stop.set()
        if wait_seconds is not None and self._thread is not threading.current_thread():
            self._thread.join(timeout=wait_seconds)

    def _loop(self) -> None:
        while not self._stop.wait(self.interval_seconds):
            self._action()


class RefreshScheduler:
    """Owns the refresh timer and the retention timer.

    ``reconfigure`` swaps the refresh timer atomically; the new cadence is
    measured from the moment of the swap. At most one poll runs at a time:
    a firing that finds a poll still in flight is skipped, never queued.
    """

    def __init__(
        self,
        *,
        refresh: Callable[[], object],
        refresh_minutes: float,
        retention: Callable[[], object] | None = None,
        retention_minutes: float = 360,
    ) -> None:
        _validate_minutes(refresh_minutes)
        _validate_minutes(retention_minutes)
        self._refresh = refresh
        self._retention = retention
        self._refresh_minutes = float(refresh_minutes)
        self._retention_minutes = float(retention_minutes)
        self._timers_lock = threading.Lock()
        self._poll_lock = threading.Lock()
        self._retention_lock = threading.Lock()
        self._refresh_timer: _RepeatingTimer | None = None
        self._retention_timer: _RepeatingTimer | None = None
        self.polls_started = 0
        self.polls_skipped = 0

    @property
    def refresh_minutes(self) -> float:
        return self._refresh_minutes

    @property
    def running(self) -> bool:
        return self._refresh_timer is not None

    def start(self) -> None:
        with self._timers_lock:
            if self._refresh_timer is not None:
                return
            self._refresh_timer = self._new_refresh_timer()
            self._refresh_timer.start()
            if self._retention is not None:
                self._retention_timer = _RepeatingTimer(
                    name="newsdesk-retention",
                    interval_seconds=self._retention_minutes * 60,
                    action=self.run_retention,
                )
                self._retention_timer.start()
        logger.info(
            "Scheduler started: refresh every %s min, retention every %s min",
            self._refresh_minutes,
            self._retention_minutes,
        )

    def stop(self, *, wait_seconds: float = 5.0) -> None:
        with self._timers_lock:
            timers = [timer for timer in (self._refresh_timer, self._retention_timer) if timer]
            self._refresh_timer = None
            self._retention_timer = None
        for timer in timers:
            timer.stop(wait_seconds=wait_seconds)
        if timers:
            logger.info("Scheduler stopped")

    def reconfigure(self, refresh_minutes: float) -> None:
        """Replace the refresh timer with one honoring ``refresh_minutes``.

        An in-flight poll is left to finish; it is not interrupted or repeated.
        """

        _validate_minutes(refresh_minutes)
        with self._timers_lock:
            previous = self._refresh_minutes
            self._refresh_minutes = float(refresh_minutes)
            if self._refresh_timer is None:
                return
            self._refresh_timer.stop()
            self._refresh_timer = self._new_refresh_timer()
            self._refresh_timer.start()
        logger.info("Refresh interval changed from %s to %s minutes", previous, refresh_minutes)

    def run_poll(self) -> bool:
        """Run one poll now unless one is in flight; returns False when skipped."""

        if not self._poll_lock.acquire(blocking=False):
            self.polls_skipped += 1
            logger.info("Refresh poll already running, skipping this firing")
            return False
        try:
            self.polls_started += 1
            self._refresh()
        except Exception:
            logger.exception("Refresh poll failed")
        finally:
            self._poll_lock.release()
        return True

    def trigger_poll(self) -> threading.Thread:
        """Start a poll in the background without touching the timer schedule."""

        thread = threading.Thread(target=self.run_poll, daemon=True, name="newsdesk-manual-refresh")
        thread.start()
        return thread

    def run_retention(self) -> bool:
        if self._retention is None:
            return False
        if not self._retention_lock.acquire(blocking=False):
            return False
        try:
            self._retention()
        except Exception:
            logger.exception("Retention sweep failed")
        finally:
            self._retention_lock.release()
        return True

    def _new_refresh_timer(self) -> _RepeatingTimer:
        return _RepeatingTimer(
            name="newsdesk-refresh",
            interval_seconds=self._refresh_minutes * 60,
            action=self.run_poll,
        )


def _validate_minutes(minutes: float) -> None:
    if minutes <= 0:
        raise ValueError(f"Interval must be > 0 minutes, got {minutes}")
