"""Background task running the low-value cleanup sweep on an interval."""

import asyncio
import logging

from prompt_cache.entities import CleanupResult

from .eviction_service import EvictionService

logger = logging.getLogger(__name__)


class CleanupScheduler:
    """Runs ``EvictionService.cleanup`` every ``interval_seconds``.

    A failed sweep is logged and retried on the next pass; it never
    propagates into request handling.
    """

    def __init__(
        self,
        eviction_service: EvictionService,
        interval_seconds: float,
        days_old: int | None = None,
    ) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self._eviction = eviction_service
        self._interval = interval_seconds
        self._days_old = days_old
        self._task: asyncio.Task | None = None
        self.last_result: CleanupResult | None = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.is_running:
            logger.warning("Cleanup scheduler already running, skipping start")
            return
        self._task = asyncio.create_task(self._cleanup_loop())
        logger.info("Cleanup scheduler started (interval: %ss)", self._interval)

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Cleanup scheduler stopped")

    async def run_once(self) -> CleanupResult | None:
        """Run one sweep off the event loop; None if it failed."""
        try:
            self.last_result = await asyncio.to_thread(self._eviction.cleanup, self._days_old)
        except Exception as e:
            logger.error("Scheduled prompt cache cleanup failed, retrying next pass: %s", e, exc_info=True)
            return None
        return self.last_result

    async def _cleanup_loop(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            await self.run_once()
