"""
Sceneflow Batch Scheduler

Wave-based, concurrency-bounded enrichment of a scene worklist.

Each wave issues at most ``concurrency`` calls and waits for all of them to
settle before the next wave is formed. Retryable failures go to the tail of
the worklist; terminal and exhausted failures are abandoned on the spot.
"""

import asyncio
from collections import deque
from typing import Awaitable, Callable, Deque, Dict, Iterable, List, Optional, Tuple

from sceneflow.core.exceptions import CancelledRunError
from sceneflow.core.logging_config import get_logger
from sceneflow.core.retry import RetryQueue
from sceneflow.enrichment.client import EnrichmentClient
from sceneflow.enrichment.models import (
    CallOutcome,
    ItemOutcome,
    ItemStatus,
    ScheduleResult,
    WaveReport,
)

logger = get_logger("enrichment.scheduler")

WaveCallback = Callable[[WaveReport], None]
ContinueCheck = Callable[[], Awaitable[bool]]


def dedupe(item_ids: Iterable[str]) -> List[str]:
    """Drop repeated ids, keeping first occurrence order."""
    seen = set()
    unique = []
    for item_id in item_ids:
        if item_id not in seen:
            seen.add(item_id)
            unique.append(item_id)
    return unique


class BatchScheduler:
    """
    Drives one orchestration run's worklist to completion.

    Features:
    - At most ``concurrency`` in-flight enrichment calls (wave boundary)
    - A failing item never aborts its wave-mates
    - One backoff per wave that re-queued anything
    - Coarse cancellation checked between waves
    """

    def __init__(
        self,
        client: EnrichmentClient,
        retry_queue: RetryQueue,
        concurrency: int = 5,
    ):
        if concurrency < 1:
            raise ValueError("concurrency must be >= 1")
        self.client = client
        self.retry_queue = retry_queue
        self.concurrency = concurrency

    async def run(
        self,
        job_id: str,
        item_ids: List[str],
        on_wave: Optional[WaveCallback] = None,
        should_continue: Optional[ContinueCheck] = None,
    ) -> ScheduleResult:
        """
        Process every item to success or abandonment.

        Args:
            job_id: Owning job
            item_ids: Initial worklist (duplicates are collapsed)
            on_wave: Called after each settled wave
            should_continue: Consulted before each wave; False stops the run

        Returns:
            ScheduleResult with one outcome per initial item
        """
        worklist: Deque[str] = deque(dedupe(item_ids))
        total = len(worklist)
        outcomes: Dict[str, ItemOutcome] = {}
        waves = 0
        cancelled = False

        logger.info(f"Enriching {total} scenes for job {job_id} (concurrency={self.concurrency})")

        while worklist:
            if should_continue is not None and not await self._check(should_continue, job_id):
                cancelled = True
                self._abandon_remaining(job_id, worklist, outcomes)
                break

            wave = [worklist.popleft() for _ in range(min(self.concurrency, len(worklist)))]
            waves += 1

            settled = await self._run_wave(job_id, wave)

            requeued = 0
            for item_id, outcome in settled:
                attempts = self.retry_queue.attempts(item_id)
                if outcome.ok:
                    outcomes[item_id] = ItemOutcome(item_id, ItemStatus.SUCCEEDED, attempts)
                    continue

                decision = self.retry_queue.evaluate(item_id, outcome.error)
                if decision.should_retry:
                    worklist.append(item_id)
                    requeued += 1
                else:
                    outcomes[item_id] = ItemOutcome(
                        item_id, ItemStatus.ABANDONED, attempts, decision.error
                    )

            self._notify(on_wave, WaveReport(
                job_id=job_id,
                wave=waves,
                wave_size=len(wave),
                succeeded=sum(1 for o in outcomes.values() if o.status == ItemStatus.SUCCEEDED),
                abandoned=sum(1 for o in outcomes.values() if o.status == ItemStatus.ABANDONED),
                requeued=requeued,
                remaining=len(worklist),
                total=total,
            ))

            if requeued:
                await self.retry_queue.backoff()

        result = ScheduleResult(
            outcomes=outcomes,
            waves=waves,
            backoffs=self.retry_queue.backoff_count,
            cancelled=cancelled,
        )
        logger.info(
            f"Job {job_id} drained after {waves} waves: "
            f"{result.succeeded_count} succeeded, {result.abandoned_count} abandoned"
        )
        return result

    async def _run_wave(self, job_id: str, wave: List[str]) -> List[Tuple[str, CallOutcome]]:
        for item_id in wave:
            self.retry_queue.record_attempt(item_id)

        logger.debug(f"Job {job_id}: issuing wave of {len(wave)}")
        results = await asyncio.gather(
            *(self.client.enrich(item_id, job_id) for item_id in wave),
            return_exceptions=True,
        )

        settled = []
        for item_id, result in zip(wave, results):
            if isinstance(result, BaseException):
                if not isinstance(result, Exception):
                    raise result
                settled.append((item_id, CallOutcome.failure(result)))
            elif isinstance(result, CallOutcome):
                settled.append((item_id, result))
            else:
                settled.append((item_id, CallOutcome.failure(
                    TypeError(f"Enrichment client returned {type(result).__name__}")
                )))
        return settled

    async def _check(self, should_continue: ContinueCheck, job_id: str) -> bool:
        try:
            return bool(await should_continue())
        except Exception as e:
            logger.warning(f"Cancellation check failed for job {job_id}, continuing: {e}")
            return True

    def _abandon_remaining(
        self,
        job_id: str,
        worklist: Deque[str],
        outcomes: Dict[str, ItemOutcome],
    ) -> None:
        logger.warning(f"Job {job_id} cancelled; {len(worklist)} scenes left unscheduled")
        while worklist:
            item_id = worklist.popleft()
            attempts = self.retry_queue.attempts(item_id)
            outcomes[item_id] = ItemOutcome(
                item_id, ItemStatus.ABANDONED, attempts, CancelledRunError(item_id, attempts)
            )

    def _notify(self, on_wave: Optional[WaveCallback], report: WaveReport) -> None:
        if on_wave is None:
            return
        try:
            on_wave(report)
        except Exception as e:
            logger.warning(f"Wave progress callback failed: {e}")
