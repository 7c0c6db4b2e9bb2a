"""
Batched, budget-aware scheduling of work units.

Units are dispatched ``batch_size`` at a time and each batch is awaited as a
whole. Batches are grouped into chunks; after every chunk the caller is told
how far the run has got so progress can be persisted. Before each batch the
elapsed wall-clock time is compared with the invocation budget, which is the
point where a long job yields and later resumes from ``next_offset``.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Awaitable, Callable, List, Optional, Sequence

from tqdm import tqdm

from ..exceptions import BatchProcessingError
from ..models import AnnotationResult, WorkUnit

logger = logging.getLogger(__name__)

DispatchFn = Callable[[WorkUnit], Awaitable[AnnotationResult]]


@dataclass
class ScheduleOutcome:
    """What one scheduler run achieved."""
    start_offset: int
    total_units: int
    results: List[AnnotationResult] = field(default_factory=list)
    processed_count: int = 0
    skipped_count: int = 0
    exhausted: bool = False

    @property
    def next_offset(self) -> int:
        return self.start_offset + self.processed_count

    @property
    def complete(self) -> bool:
        return self.next_offset >= self.total_units


class BatchScheduler:
    """Runs a dispatch function over work units in concurrent batches."""

    def __init__(self,
                 dispatch: DispatchFn,
                 batch_size: int = 10,
                 chunk_size: int = 100,
                 inter_batch_delay: float = 0.05,
                 clock: Callable[[], float] = time.monotonic):
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        self.dispatch = dispatch
        self.batch_size = batch_size
        self.chunk_size = max(chunk_size, batch_size)
        self.inter_batch_delay = inter_batch_delay
        self.clock = clock

    def _budget_spent(self, started: float, budget_seconds: Optional[float]) -> bool:
        return budget_seconds is not None and self.clock() - started >= budget_seconds

    async def _run_batch(self, batch: Sequence[WorkUnit]) -> List[AnnotationResult]:
        outcomes = await asyncio.gather(*(self.dispatch(unit) for unit in batch),
                                        return_exceptions=True)
        for unit, outcome in zip(batch, outcomes):
            if isinstance(outcome, BaseException):
                raise BatchProcessingError(
                    f"Unit {unit.index} raised outside per-unit handling: {outcome}") from outcome
        return list(outcomes)

    async def _run_chunk(self, chunk: Sequence[WorkUnit], started: float,
                         budget_seconds: Optional[float], has_more: bool,
                         progress_bar: Optional[tqdm]) -> tuple:
        """Returns (results, units consumed, stopped on budget)."""
        results: List[AnnotationResult] = []
        consumed = 0
        for batch_start in range(0, len(chunk), self.batch_size):
            if self._budget_spent(started, budget_seconds):
                return results, consumed, True
            batch = chunk[batch_start:batch_start + self.batch_size]
            results.extend(await self._run_batch(batch))
            consumed += len(batch)
            if progress_bar is not None:
                progress_bar.update(len(batch))

            if self.inter_batch_delay and (consumed < len(chunk) or has_more):
                await asyncio.sleep(self.inter_batch_delay)
        return results, consumed, False

    async def run(self,
                  units: Sequence[WorkUnit],
                  start_offset: int = 0,
                  budget_seconds: Optional[float] = None,
                  max_units: Optional[int] = None,
                  on_chunk_complete: Optional[Callable[[ScheduleOutcome], None]] = None,
                  show_progress: bool = False) -> ScheduleOutcome:
        """
        Process units from ``start_offset`` until done, out of budget or at ``max_units``.

        Args:
            units: The full ordered unit sequence of the job
            start_offset: Number of units already processed by earlier runs
            budget_seconds: Wall-clock seconds this run may spend; None for no limit
            max_units: Cap on units processed by this run
            on_chunk_complete: Called with the running outcome after every chunk
            show_progress: Display a tqdm progress bar

        Returns:
            ScheduleOutcome with the results of this run only
        """
        total = len(units)
        if not 0 <= start_offset <= total:
            raise ValueError(f"start_offset {start_offset} outside 0..{total}")
        stop_at = total if max_units is None else min(total, start_offset + max_units)
        outcome = ScheduleOutcome(start_offset=start_offset, total_units=total)
        started = self.clock()

        progress_bar = None
        if show_progress:
            progress_bar = tqdm(total=total, initial=start_offset, desc="Annotating", unit="units")

        try:
            offset = start_offset
            while offset < stop_at:
                if self._budget_spent(started, budget_seconds):
                    outcome.exhausted = True
                    break
                chunk_end = min(offset + self.chunk_size, stop_at)
                chunk = units[offset:chunk_end]
                try:
                    results, consumed, stopped = await self._run_chunk(
                        chunk, started, budget_seconds, chunk_end < stop_at, progress_bar)
                except BatchProcessingError as e:
                    logger.error(f"Error processing chunk starting at unit {offset}, skipping it: {e}")
                    results, consumed, stopped = [], len(chunk), False
                    outcome.skipped_count += len(chunk)

                outcome.results.extend(results)
                outcome.processed_count += consumed
                offset += consumed
                logger.info(f"Processed {offset}/{total} units")

                if on_chunk_complete is not None and consumed:
                    on_chunk_complete(outcome)
                if stopped:
                    outcome.exhausted = True
                    break

            if not outcome.complete and offset >= stop_at and max_units is not None:
                outcome.exhausted = True
        finally:
            if progress_bar is not None:
                progress_bar.close()

        if outcome.exhausted:
            logger.info(f"Invocation limit reached after {outcome.processed_count} units; "
                        f"resume from offset {outcome.next_offset}")
        return outcome
