"""Background renewal that keeps an OAuth refresh token in regular use.

Google may revoke refresh tokens that go unused for a long time. The timer
exchanges the refresh token for a new access token on a fixed period so the
token never goes dormant while the server is running.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any

from gdrive_mcp.logging_config import log_gmail

logger = logging.getLogger(__name__)

DEFAULT_MAINTENANCE_INTERVAL = 30 * 60


class TokenMaintenanceTimer:
    """Periodic renewal task with an explicit start/stop lifecycle.

    ``start()`` performs one renewal immediately and then one every
    ``interval`` seconds. A failed renewal is logged and the next tick is
    the retry. ``stop()`` is idempotent.

    Constructing a timer schedules nothing. The first renewal runs when
    ``start()`` is called, since it needs a running event loop; the owning
    provider is built before the loop exists and starts the timer from
    ``GDriveMCPServer.run()``.

    Attributes:
        interval: Seconds between renewals.
    """

    def __init__(
        self,
        renew: Callable[[], Awaitable[Any]],
        interval: float = DEFAULT_MAINTENANCE_INTERVAL,
    ) -> None:
        """Initialize the timer without starting it.

        Args:
            renew: Coroutine function that acquires a fresh access token.
            interval: Seconds between renewals.
        """
        self._renew = renew
        self.interval = interval
        self._task: asyncio.Task[None] | None = None

    @property
    def active(self) -> bool:
        """True while the timer is started and not stopped."""
        return self._task is not None

    def start(self) -> None:
        """Schedule the renewal loop on the running event loop.

        Calling ``start()`` on an active timer does nothing.

        Raises:
            RuntimeError: If no event loop is running.
        """
        if self._task is not None:
            return
        self._task = asyncio.get_running_loop().create_task(self._run())
        log_gmail(logger, "Token maintenance started (every %d minutes)", self.interval // 60)

    def stop(self) -> None:
        """Cancel the renewal loop. No-op if never started or already stopped."""
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        log_gmail(logger, "Token maintenance stopped")

    async def _run(self) -> None:
        # First renewal happens immediately, not after the first interval
        while True:
            await self.tick()
            await asyncio.sleep(self.interval)

    async def tick(self) -> bool:
        """Run one renewal, logging the outcome.

        Returns:
            True if the renewal succeeded.
        """
        try:
            await self._renew()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error("Token maintenance failed: %s", e)
            return False
        log_gmail(logger, "Token refreshed successfully during maintenance")
        return True
