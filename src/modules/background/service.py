import asyncio
import contextlib
import logging
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, Any

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from src.modules.extraction_cache.service import ExtractionCache
from src.modules.source_tracker.service import SourceTracker

if TYPE_CHECKING:
    from src.modules.source_discovery.service import SourceDiscovery

logger = logging.getLogger(__name__)

JobFactory = Callable[[], Awaitable[Any]]

DRAIN_TIMEOUT = 10.0


class BackgroundService:
    """Work that must not hold up a search response.

    Jobs go through a FIFO queue drained by a single worker task, so at most
    one runs at a time and a failing job is logged without affecting the
    next. A daily scheduler job runs ledger maintenance and flushes state.
    """

    def __init__(
        self,
        tracker: SourceTracker,
        cache: ExtractionCache,
        discovery: "SourceDiscovery | None" = None,
    ) -> None:
        self._tracker = tracker
        self._cache = cache
        self._discovery = discovery
        self._scheduler = AsyncIOScheduler()
        self._queue: asyncio.Queue[tuple[str, JobFactory]] | None = None
        self._worker: asyncio.Task[None] | None = None
        self._pending: set[str] = set()

    # ── Queue ───────────────────────────────────────────────────

    def enqueue(self, name: str, job: JobFactory) -> bool:
        """Queue ``job`` unless a job with the same name is already waiting."""
        if self._queue is None:
            logger.warning("Background service not started, dropping job %s", name)
            return False
        if name in self._pending:
            logger.debug("Job %s already queued", name)
            return False
        self._pending.add(name)
        self._queue.put_nowait((name, job))
        return True

    async def _drain(self, queue: "asyncio.Queue[tuple[str, JobFactory]]") -> None:
        while True:
            name, job = await queue.get()
            self._pending.discard(name)
            try:
                logger.info("Running background job: %s", name)
                await job()
                logger.info("Completed background job: %s", name)
            except Exception:
                logger.exception("Background job %s failed", name)
            finally:
                queue.task_done()

    async def join(self) -> None:
        if self._queue is not None:
            await self._queue.join()

    # ── Scheduled maintenance ───────────────────────────────────

    async def run_maintenance(self) -> None:
        promoted = self._tracker.run_maintenance()
        if promoted:
            logger.info("Maintenance put %d domains on trial: %s", len(promoted), ", ".join(promoted))
        self._tracker.flush()
        self._cache.flush()
        if self._discovery is not None:
            self._discovery.flush()

    # ── Lifecycle ───────────────────────────────────────────────

    async def start(self) -> None:
        self._queue = asyncio.Queue()
        self._worker = asyncio.create_task(self._drain(self._queue))
        await self.run_maintenance()
        self._scheduler.add_job(
            self.run_maintenance,
            CronTrigger(hour=3, minute=0),
            id="ledger_maintenance",
            replace_existing=True,
        )
        self._scheduler.start()
        logger.info("Scheduler started, maintenance runs daily at 03:00")

    async def stop(self) -> None:
        if self._scheduler.running:
            self._scheduler.shutdown(wait=False)
        if self._worker is not None:
            try:
                await asyncio.wait_for(self.join(), timeout=DRAIN_TIMEOUT)
            except asyncio.TimeoutError:
                logger.warning("Background queue did not drain within %.0fs", DRAIN_TIMEOUT)
            self._worker.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._worker
            self._worker = None
        self._queue = None
        self._pending.clear()
        logger.info("Background service stopped")
