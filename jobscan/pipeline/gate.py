"""Single-slot scan gate: at most one scan runs, at most one waits.

A request arriving while a scan is active takes the waiting slot. If the slot
is already taken, the older waiter is turned away with ScanInProgress and the
newer request waits instead (newest wins, queue depth 1).
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

from jobscan.core.errors import ScanInProgress

logger = logging.getLogger(__name__)

T = TypeVar("T")


class _Ticket:
    def __init__(self, label: str) -> None:
        self.label = label
        self.superseded = False


class ScanGate:
    """Mutual-exclusion gate with a one-deep replace-oldest queue."""

    def __init__(self) -> None:
        self._cond = asyncio.Condition()
        self._active: str | None = None
        self._waiting: _Ticket | None = None

    @property
    def is_active(self) -> bool:
        """Non-blocking snapshot."""
        return self._active is not None

    @property
    def active_label(self) -> str | None:
        return self._active

    @property
    def has_waiting(self) -> bool:
        return self._waiting is not None

    async def run(self, label: str, scan: Callable[[], Awaitable[T]]) -> T:
        """Run ``scan`` once the gate is free.

        Raises ScanInProgress if a newer request replaced this one while it
        was waiting.
        """
        async with self._cond:
            if self._active is not None or self._waiting is not None:
                ticket = _Ticket(label)
                if self._waiting is not None:
                    logger.info(
                        "Queued scan '%s' replaced by '%s'", self._waiting.label, label,
                    )
                    self._waiting.superseded = True
                self._waiting = ticket
                self._cond.notify_all()
                try:
                    await self._cond.wait_for(
                        lambda: ticket.superseded or self._active is None,
                    )
                except asyncio.CancelledError:
                    if self._waiting is ticket:
                        self._waiting = None
                        self._cond.notify_all()
                    raise
                if ticket.superseded:
                    msg = f"Scan '{label}' replaced by a newer request"
                    raise ScanInProgress(msg)
                self._waiting = None
            self._active = label

        try:
            return await scan()
        finally:
            async with self._cond:
                self._active = None
                self._cond.notify_all()

    async def wait_idle(self) -> None:
        """Block until nothing is running or queued."""
        async with self._cond:
            await self._cond.wait_for(lambda: self._active is None and self._waiting is None)
