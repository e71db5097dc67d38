"""Keep-alive scheduling.

The VR Sync server disconnects any client that has not sent a Ping within its
liveness window, so the bridge pings on a shorter fixed period.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Optional

_LOGGER = logging.getLogger(__name__)

DEFAULT_INTERVAL_S = 3.0
DEFAULT_SERVER_TIMEOUT_S = 5.0

# Leave room for scheduling jitter inside the server window
MAX_INTERVAL_RATIO = 0.6


class PendingTimer:
    """At most one pending one-shot callback on the event loop."""

    def __init__(self, loop: asyncio.AbstractEventLoop) -> None:
        self._loop = loop
        self._handle: Optional[asyncio.TimerHandle] = None

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def schedule(self, delay_s: float, callback: Callable[[], None]) -> None:
        """Replace any pending callback with `callback` after `delay_s`."""
        self.cancel()

        def _fire() -> None:
            self._handle = None
            callback()

        self._handle = self._loop.call_later(delay_s, _fire)

    def cancel(self) -> None:
        """Cancel the pending callback, if any."""
        handle = self._handle
        self._handle = None
        if handle is not None:
            handle.cancel()


class HeartbeatMonitor:
    """Calls `send_ping` once per interval until stopped."""

    def __init__(
        self,
        *,
        loop: asyncio.AbstractEventLoop,
        send_ping: Callable[[], None],
        interval_s: float = DEFAULT_INTERVAL_S,
        server_timeout_s: float = DEFAULT_SERVER_TIMEOUT_S,
    ) -> None:
        if interval_s <= 0:
            raise ValueError(f"heartbeat interval must be positive (got {interval_s})")
        if interval_s > server_timeout_s * MAX_INTERVAL_RATIO:
            raise ValueError(
                f"heartbeat interval {interval_s}s exceeds {int(MAX_INTERVAL_RATIO * 100)}% "
                f"of the server timeout ({server_timeout_s}s)"
            )

        self._loop = loop
        self._send_ping = send_ping
        self.interval_s = float(interval_s)
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        self.stop()
        self._task = self._loop.create_task(self._run())
        _LOGGER.debug("Heartbeat started (interval=%.2fs)", self.interval_s)

    def stop(self) -> None:
        task = self._task
        self._task = None
        if task is not None and not task.done():
            task.cancel()
            _LOGGER.debug("Heartbeat stopped")

    async def _run(self) -> None:
        # A missed ping must not end the loop; the server would drop us
        while True:
            await asyncio.sleep(self.interval_s)
            try:
                self._send_ping()
            except Exception:
                _LOGGER.exception("Heartbeat ping failed")
