"""Recurring scan timer.

Cadence rules:
  - Enabling fires the first scan immediately
  - The next scan is due ``interval`` after the previous one *finished*,
    so scans never overlap even when one overruns the interval
  - Rescheduling while the timer sleeps replaces the pending sleep; while a
    scan runs, the new cadence takes effect once it ends
"""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable, Mapping
from typing import Any, Protocol

from pydantic import ValidationError

from jobscan.core.config import ScanSettings
from jobscan.core.errors import ConfigInvalid, ScanInProgress, StoreUnavailable
from jobscan.core.schemas import ScanOutcome
from jobscan.pipeline.orchestrator import JobScanner

logger = logging.getLogger(__name__)


class SettingsStore(Protocol):
    def load_scan_settings(self) -> ScanSettings | None: ...
    def save_scan_settings(self, settings: ScanSettings) -> None: ...


class ScanScheduler:
    """Drives ``JobScanner.scan_all`` on a timer.

    Usage::

        scheduler = ScanScheduler(scanner, store, defaults=settings.scan_defaults)
        await scheduler.start()
        ...
        await scheduler.stop()
    """

    def __init__(
        self,
        scanner: JobScanner,
        store: SettingsStore,
        *,
        defaults: ScanSettings | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._scanner = scanner
        self._store = store
        self._settings = defaults or ScanSettings()
        self._sleep = sleep
        self._clock = clock
        self._lock = asyncio.Lock()
        self._task: asyncio.Task[None] | None = None
        self._started = False
        self._sleeper: asyncio.Task[Any] | None = None
        self._last_scan_end: float | None = None

    # --- Queries ---

    def get_settings(self) -> ScanSettings:
        return self._settings.model_copy()

    def is_scanning(self) -> bool:
        return self._scanner.is_scanning()

    @property
    def timer_running(self) -> bool:
        return self._task is not None and not self._task.done()

    # --- Lifecycle ---

    async def start(self) -> None:
        """Load persisted settings and arm the timer if scanning is enabled."""
        try:
            stored = self._store.load_scan_settings()
        except StoreUnavailable as e:
            logger.error("Could not load scan settings, using defaults: %s", e)
            stored = None
        if stored is not None:
            self._settings = stored
        self._started = True
        logger.info(
            "Scheduler started: every %d min, %s",
            self._settings.interval_minutes,
            "enabled" if self._settings.enabled else "disabled",
        )
        if self._settings.enabled:
            self._launch(0.0)

    async def stop(self) -> None:
        self._started = False
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

    async def update_settings(self, new: ScanSettings | Mapping[str, Any]) -> ScanSettings:
        """Validate, persist, then reschedule. Nothing changes if any step fails.

        Raises ConfigInvalid for out-of-range values and StoreUnavailable if the
        settings could not be saved.
        """
        raw = new.model_dump() if isinstance(new, ScanSettings) else dict(new)
        try:
            validated = ScanSettings.model_validate(raw)
        except ValidationError as e:
            raise ConfigInvalid(str(e)) from e

        async with self._lock:
            self._store.save_scan_settings(validated)
            previous, self._settings = self._settings, validated
            logger.info(
                "Scan settings updated: every %d min, %s",
                validated.interval_minutes, "enabled" if validated.enabled else "disabled",
            )
            if self._started:
                self._reschedule(previous)
        return validated.model_copy()

    async def scan_now(self) -> dict[int, ScanOutcome]:
        """Run a full scan on request; the timer's next tick counts from its end."""
        try:
            return await self._scanner.scan_all()
        finally:
            self._last_scan_end = self._clock()

    # --- Timer ---

    def _reschedule(self, previous: ScanSettings) -> None:
        if not self._settings.enabled:
            if self.timer_running and self._sleeping:
                self._cancel_timer()
            # A running scan finishes; the loop sees 'disabled' and exits.
            return

        if not self.timer_running:
            self._launch(0.0 if not previous.enabled else self._remaining())
        elif self._sleeping:
            self._cancel_timer()
            self._launch(self._remaining())

    @property
    def _sleeping(self) -> bool:
        return self._sleeper is not None and self._sleeper is self._task

    def _remaining(self) -> float:
        if self._last_scan_end is None:
            return 0.0
        elapsed = self._clock() - self._last_scan_end
        return max(0.0, self._settings.interval_seconds - elapsed)

    def _launch(self, delay: float) -> None:
        logger.debug("Next scan in %.0fs", delay)
        self._task = asyncio.create_task(self._loop(delay), name="scan-scheduler")

    def _cancel_timer(self) -> None:
        if self._task is not None:
            self._task.cancel()
            self._task = None

    async def _loop(self, delay: float) -> None:
        while True:
            if delay > 0:
                me = asyncio.current_task()
                self._sleeper = me
                try:
                    await self._sleep(delay)
                finally:
                    if self._sleeper is me:
                        self._sleeper = None
            if not self._settings.enabled:
                return
            await self._tick()
            if not self._settings.enabled:
                return
            delay = self._settings.interval_seconds

    async def _tick(self) -> None:
        logger.info("Scheduled scan starting")
        try:
            await self._scanner.scan_all()
        except ScanInProgress:
            logger.info("Scheduled scan replaced by a newer request")
        except Exception:
            logger.exception("Scheduled scan failed")
        finally:
            self._last_scan_end = self._clock()
