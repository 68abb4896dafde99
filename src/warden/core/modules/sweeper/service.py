"""Periodic purge of long-terminated sessions."""

import asyncio
import contextlib
from typing import Any

import structlog
from pymongo.asynchronous.database import AsyncDatabase

from warden.core.core import Service
from warden.utils import now_ms

logger = structlog.get_logger(__name__)


class SweeperService(Service):
    """Deletes sessions that have been terminated for longer than the retention window.

    Runs as one asyncio task per process. A cycle that would start while the
    previous one is still running is skipped, and a failed cycle is logged
    without stopping the loop.
    """

    def __init__(self, database: AsyncDatabase[dict[str, Any]]) -> None:
        super().__init__(database)
        self._task: asyncio.Task[None] | None = None
        self._sweeping = False

    @property
    def interval_seconds(self) -> float:
        return self.core.config.session_sweep_interval_hours * 60 * 60

    async def on_start(self) -> None:
        if self.interval_seconds <= 0:
            logger.info("session_sweeper_disabled")
            return
        self._task = asyncio.create_task(self._run_loop())
        logger.debug("session_sweeper_started", interval_seconds=self.interval_seconds)

    async def on_stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
            self._task = None

    async def _run_loop(self) -> None:
        while True:
            await asyncio.sleep(self.interval_seconds)
            await self.sweep_once()

    async def sweep_once(self, at_ms: int | None = None) -> int | None:
        """Run one cycle. Returns the number of deleted sessions, None if skipped or failed."""
        if self._sweeping:
            logger.warning("session_sweep_skipped", reason="previous_sweep_running")
            return None

        self._sweeping = True
        cutoff = (now_ms() if at_ms is None else at_ms) - self.core.config.session_retention_ms
        try:
            deleted = await self.core.services.session.delete_terminated_older_than(cutoff)
        except Exception:
            logger.exception("session_sweep_failed", cutoff=cutoff)
            return None
        finally:
            self._sweeping = False

        logger.info("session_sweep_completed", deleted=deleted, cutoff=cutoff)
        return deleted
