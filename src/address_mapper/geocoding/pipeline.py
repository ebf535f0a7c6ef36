"""
Worker-pool resolution of a batch of rows.

A fixed number of asyncio worker tasks drain a shared FIFO queue. Each
row goes through the coordinate extractor first and only falls back to
the resolver when it carries no usable coordinates of its own. Every
batch is tagged with a generation number; once a newer batch starts,
workers of the old one stop taking rows and throw away results that
land late.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Iterable, List, Optional, Sequence

from .base import CoordinateStore, ProgressReporter
from .extractors import CoordinateExtractor
from .geocoders import GeocodeResolver
from .models import GeocodeSource, PipelineRun, Row, RowStatus
from .normalizers import cache_key, normalize_address
from .reporters import CollectingProgressReporter
from ..utils.errors import NetworkError, ProviderError

logger = logging.getLogger(__name__)

DEFAULT_CONCURRENCY = 4


class ResolutionPipeline:
    """
    Resolves every row of a batch to a coordinate or records a failure.

    Row-level failures never abort the batch; they end up, deduplicated,
    in `PipelineRun.failed_queries`.
    """

    def __init__(
        self,
        resolver: GeocodeResolver,
        extractor: Optional[CoordinateExtractor] = None,
        reporter: Optional[ProgressReporter] = None,
        concurrency: int = DEFAULT_CONCURRENCY,
        cache: Optional[CoordinateStore] = None,
    ):
        """
        Args:
            resolver: Cache-first resolver used for rows without coordinates
            extractor: Reads native coordinates (defaults to standard aliases)
            reporter: Progress observer (defaults to an in-memory collector)
            concurrency: Number of worker tasks
            cache: Store for write-through of native coordinates (defaults to the resolver's)
        """
        if concurrency < 1:
            raise ValueError("concurrency must be >= 1")

        self.resolver = resolver
        self.extractor = extractor or CoordinateExtractor()
        self.reporter = reporter or CollectingProgressReporter()
        self.concurrency = concurrency
        self.cache = cache or resolver.cache
        self.generation = 0

    def start_generation(self) -> int:
        """Invalidate any running batch and return the new generation."""
        self.generation += 1
        return self.generation

    def cancel(self) -> None:
        self.generation += 1

    def is_current(self, generation: int) -> bool:
        return generation == self.generation

    async def run(self, rows: Sequence[Row], generation: Optional[int] = None) -> PipelineRun:
        """
        Resolve `rows` in place and return the batch aggregate.

        Completes once every worker has drained the queue (or noticed the
        batch was superseded).
        """
        if generation is None:
            generation = self.start_generation()

        run = PipelineRun(total=len(rows), generation=generation)
        queue: asyncio.Queue[Row] = asyncio.Queue()
        for row in rows:
            queue.put_nowait(row)

        n_workers = min(self.concurrency, max(1, len(rows)))
        logger.info(f"Batch {generation}: resolving {len(rows)} rows with {n_workers} workers")
        self.reporter.update(0, run.total)

        workers = [
            asyncio.create_task(self._worker(queue, run), name=f"resolver-{generation}-{i}")
            for i in range(n_workers)
        ]
        await asyncio.gather(*workers)

        run.cancelled = not self.is_current(generation)
        self._finish(run)
        return run

    async def _worker(self, queue: asyncio.Queue[Row], run: PipelineRun) -> None:
        while self.is_current(run.generation):
            try:
                row = queue.get_nowait()
            except asyncio.QueueEmpty:
                return
            try:
                committed = await self._process_row(row, run)
            finally:
                queue.task_done()
            if not committed:
                return
            run.done += 1
            self.reporter.update(run.done, run.total)

    async def _process_row(self, row: Row, run: PipelineRun) -> bool:
        """Resolve one row. Returns False when the result was dropped as stale."""
        query = row.query

        native = self.extractor.try_extract(row.fields)
        if native is not None:
            row.attach(native, GeocodeSource.NATIVE)
            if query:
                self.cache.put(cache_key(normalize_address(query)), native)
            run.native += 1
            return True

        if not query:
            row.status = RowStatus.SKIPPED
            run.skipped += 1
            return True

        try:
            coordinate, source = await self.resolver.resolve_with_source(query)
        except (ProviderError, NetworkError) as e:
            if not self.is_current(run.generation):
                return False
            logger.warning(f"Geocode failed for {query!r}: {e}")
            row.status = RowStatus.ERROR
            run.record_failure(query)
            return True
        except Exception as e:  # noqa: BLE001
            if not self.is_current(run.generation):
                return False
            logger.exception(f"Unexpected error geocoding {query!r}: {e}")
            row.status = RowStatus.ERROR
            run.record_failure(query)
            return True

        if not self.is_current(run.generation):
            logger.debug(f"Dropping stale result for {query!r} (batch {run.generation})")
            return False

        if coordinate is None:
            logger.info(f"No match for {query!r}")
            row.status = RowStatus.NOT_FOUND
            run.record_failure(query)
        else:
            row.attach(coordinate, source)
            run.geocoded_remote += 1
        return True

    def _finish(self, run: PipelineRun) -> None:
        if run.failed_queries:
            logger.warning(
                f"Batch {run.generation}: {len(run.failed_queries)} addresses could not be geocoded: "
                + "; ".join(run.failed_queries)
            )
        logger.info(
            f"Batch {run.generation} {'cancelled' if run.cancelled else 'complete'}: "
            f"{run.geocoded} geocoded ({run.native} native), {run.failed} failed, "
            f"{run.skipped} skipped, {run.done}/{run.total} done"
        )
        self.reporter.complete(run)
        if run.geocoded > 0 and not run.cancelled:
            self.reporter.celebrate(run.geocoded)


class BatchSession:
    """
    Explicit per-invoker state: the current rows, their column order and
    the last completed run.

    Starting a new batch supersedes the previous one; `cancel_batch`
    stops the current one without starting another.
    """

    def __init__(self, pipeline: ResolutionPipeline):
        self.pipeline = pipeline
        self.rows: List[Row] = []
        self.columns: List[str] = []
        self.run: Optional[PipelineRun] = None

    async def start_batch(self, rows: Iterable[Row], columns: Optional[Sequence[str]] = None) -> PipelineRun:
        generation = self.pipeline.start_generation()
        batch = list(rows)
        for row in batch:
            row.clear()
        self.rows = batch
        self.columns = list(columns) if columns is not None else _columns_of(batch)
        self.run = None

        run = await self.pipeline.run(batch, generation=generation)
        if self.pipeline.is_current(generation):
            self.run = run
        return run

    def run_batch(self, rows: Iterable[Row], columns: Optional[Sequence[str]] = None) -> PipelineRun:
        """Blocking wrapper around `start_batch` for scripts."""
        return asyncio.run(self.start_batch(rows, columns))

    def cancel_batch(self) -> None:
        self.pipeline.cancel()

    def reset(self) -> None:
        self.cancel_batch()
        self.rows = []
        self.columns = []
        self.run = None

    @property
    def resolved_rows(self) -> List[Row]:
        return [r for r in self.rows if r.coordinate is not None]


def _columns_of(rows: Sequence[Row]) -> List[str]:
    columns: List[str] = []
    for row in rows:
        for name in row.fields:
            if name not in columns:
                columns.append(name)
    return columns
