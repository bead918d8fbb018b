"""
Bulk ingestor – bounded parallel map over upserts.

Strategy:
  1. All indices go onto one asyncio.Queue up front
  2. ``w`` worker tasks drain it, each awaiting one upsert at a time
  3. Item failures are recorded and the worker moves on
  4. Cancellation / deadline aborts every worker and is re-raised as-is

Users must be ingested to completion before the transactions that
reference them; the ingestor does not reorder across calls.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Awaitable, Callable, List, Optional, Sequence, TypeVar

from relgraph.config import settings
from relgraph.core.repository import GraphRepository
from relgraph.errors import BulkIngestError, ItemFailure
from relgraph.models.inputs import TransactionInput, UserInput
from relgraph.utils.metrics import IngestionMetrics, IngestionReport, format_report

logger = logging.getLogger(__name__)

T = TypeVar("T")


class BulkIngestor:
    """Fixed-size worker pool driving repository upserts."""

    def __init__(
        self,
        repository: GraphRepository,
        workers: Optional[int] = None,
        progress_every: Optional[int] = None,
    ) -> None:
        workers = settings.INGEST_WORKER_COUNT if workers is None else workers
        if workers < 1:
            raise ValueError(f"worker count must be >= 1, got {workers}")
        self.repository = repository
        self.workers = workers
        self.progress_every = progress_every or settings.INGEST_PROGRESS_EVERY
        self.last_report: Optional[IngestionReport] = None

    # ── public API ───────────────────────────────────────────

    async def ingest_users(
        self, users: Sequence[UserInput], timeout: Optional[float] = None
    ) -> Optional[BulkIngestError]:
        return await self.run("users", users, self.repository.upsert_user, lambda u: u.id, timeout)

    async def ingest_transactions(
        self, transactions: Sequence[TransactionInput], timeout: Optional[float] = None
    ) -> Optional[BulkIngestError]:
        return await self.run(
            "transactions", transactions, self.repository.upsert_transaction, lambda t: t.id, timeout
        )

    # ── generic bounded map ──────────────────────────────────

    async def run(
        self,
        label: str,
        items: Sequence[T],
        handler: Callable[[T], Awaitable[None]],
        key_of: Callable[[T], str],
        timeout: Optional[float] = None,
    ) -> Optional[BulkIngestError]:
        """Apply ``handler`` to every item with ``self.workers`` concurrent tasks.

        Returns None when every item succeeded, otherwise a BulkIngestError
        listing each failed item in input order. ``asyncio.CancelledError``
        and ``asyncio.TimeoutError`` (``timeout`` elapsed) propagate and
        supersede any item failures collected so far.
        """
        items = list(items)
        metrics = IngestionMetrics(label)
        failures: List[ItemFailure] = []
        retries_before = self.repository.mutations.retry_count

        queue: asyncio.Queue = asyncio.Queue()
        for index in range(len(items)):
            queue.put_nowait(index)

        async def _worker(name: str) -> None:
            while True:
                try:
                    index = queue.get_nowait()
                except asyncio.QueueEmpty:
                    return
                item = items[index]
                key = key_of(item)
                t0 = time.perf_counter()
                try:
                    await handler(item)
                except (asyncio.CancelledError, asyncio.TimeoutError):
                    raise
                except Exception as exc:  # noqa: BLE001 – isolate per item
                    failures.append(ItemFailure(index=index, key=key, error=exc))
                    metrics.record(key, False, (time.perf_counter() - t0) * 1000)
                    logger.warning("❌ %s %s failed: %s", name, key or f"#{index}", exc)
                else:
                    metrics.record(key, True, (time.perf_counter() - t0) * 1000)

                if metrics.attempted % self.progress_every == 0:
                    logger.info("📈 %s | %d/%d | failed=%d | %.0f items/s",
                                label, metrics.attempted, len(items), metrics.failed,
                                metrics.attempted / max(metrics.elapsed_sec, 0.01))

        metrics.start()
        tasks = [
            asyncio.create_task(_worker(f"{label}-worker-{i}"))
            for i in range(min(self.workers, len(items)))
        ]
        logger.info("🏭 Ingesting %d %s with %d workers", len(items), label, len(tasks))
        try:
            if timeout is not None:
                await asyncio.wait_for(asyncio.gather(*tasks), timeout)
            else:
                await asyncio.gather(*tasks)
        except (asyncio.CancelledError, asyncio.TimeoutError):
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            logger.warning("⚠️  %s ingestion aborted after %d/%d items",
                           label, metrics.attempted, len(items))
            raise
        finally:
            metrics.stop()
            self.last_report = metrics.compute(
                retries=self.repository.mutations.retry_count - retries_before
            )

        logger.info("\n%s", format_report(self.last_report))
        if failures:
            return BulkIngestError(failures)
        return None
