"""
Sceneflow Enrichment Orchestrator

Owns the per-job single-flight registry and ties the scheduler, the
completion chain and the progress estimator together.

Entry points:
- ``run(job_id, scene_ids, include_secondary_analysis)``: explicit worklist
- ``resume(job_id)``: worklist rebuilt from the persisted ``enriched`` flags
- ``resume_unfinished()``: resume every job the store reports as unfinished

No exception escapes a run; every outcome is returned as a ``RunResult``.
Re-running is always safe because ``resume`` only picks up scenes that are
still not enriched.
"""

import asyncio
import time
from typing import Awaitable, Callable, Dict, List, Optional

from sceneflow.core.config import OrchestratorConfig
from sceneflow.core.exceptions import ConfigurationError
from sceneflow.core.logging_config import get_logger
from sceneflow.core.retry import RetryClassifier, RetryQueue, is_retryable
from sceneflow.enrichment.client import EnrichmentClient
from sceneflow.enrichment.completion import ChainStep, CompletionChain
from sceneflow.enrichment.models import RunResult, RunStatus, ScheduleResult, WaveReport
from sceneflow.enrichment.progress import ProgressEstimator, ProgressSnapshot
from sceneflow.enrichment.scheduler import BatchScheduler, WaveCallback
from sceneflow.enrichment.single_flight import Lease, SingleFlightRegistry
from sceneflow.enrichment.store import SceneStore

logger = get_logger("enrichment.orchestrator")


class EnrichmentOrchestrator:
    """
    Scene enrichment orchestrator for one process.

    Features:
    - At most one active run per job (single-flight lease)
    - Lease released only after the completion chain, on every exit path
    - Resumption from persisted completion flags
    - Coarse cancellation between waves
    - Per-job progress estimates
    """

    def __init__(
        self,
        store: SceneStore,
        client: EnrichmentClient,
        finalize: Optional[ChainStep] = None,
        secondary_analysis: Optional[ChainStep] = None,
        config: Optional[OrchestratorConfig] = None,
        classifier: RetryClassifier = is_retryable,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.config = config or OrchestratorConfig()
        self._store = store
        self._client = client
        self._classifier = classifier
        self._sleep = sleep
        self._clock = clock

        finalize = finalize or getattr(client, "finalize", None)
        if finalize is None:
            raise ConfigurationError("A finalize step is required")
        secondary_analysis = secondary_analysis or getattr(client, "secondary_analysis", None)

        self._chain = CompletionChain(
            finalize,
            secondary_analysis,
            step_timeout=self.config.chain_step_timeout_seconds,
        )
        self._registry = SingleFlightRegistry(
            lease_timeout=self.config.lock_timeout_seconds,
            clock=clock,
        )
        self._cancelled: set = set()
        self._estimators: Dict[str, ProgressEstimator] = {}
        self._results: Dict[str, RunResult] = {}

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    async def run(
        self,
        job_id: str,
        scene_ids: List[str],
        include_secondary_analysis: bool = False,
        on_wave: Optional[WaveCallback] = None,
    ) -> Optional[RunResult]:
        """
        Run enrichment over an explicit worklist.

        Returns None without doing anything when a run for the job is already
        active or the worklist is empty.
        """
        lease = self._registry.try_acquire(job_id)
        if lease is None:
            logger.info(f"Run for job {job_id} already active; ignoring new request")
            return None
        try:
            if not scene_ids:
                logger.info(f"No scenes given for job {job_id}; nothing to run")
                return None
            return await self._execute(lease, scene_ids, include_secondary_analysis, on_wave)
        finally:
            self._release(lease)

    async def resume(
        self,
        job_id: str,
        on_wave: Optional[WaveCallback] = None,
    ) -> Optional[RunResult]:
        """
        Resume a job from its persisted completion flags.

        Seeds a run with the job's not-yet-enriched scenes in scene order.
        Resumption never re-triggers secondary analysis. A no-op (None) when a
        run is already active or nothing is pending.
        """
        lease = self._registry.try_acquire(job_id)
        if lease is None:
            logger.info(f"Run for job {job_id} already active; resume is a no-op")
            return None
        try:
            try:
                pending = await self._store.list_pending_work_items(job_id)
            except Exception as e:
                logger.error(f"Could not list pending scenes for job {job_id}: {e}")
                return None

            if not pending:
                logger.info(f"Job {job_id} has no pending scenes; nothing to resume")
                return None

            logger.info(
                f"Resuming job {job_id} with {len(pending)} pending scenes "
                f"(from scene {pending[0].scene_number})"
            )
            return await self._execute(
                lease,
                [item.id for item in pending],
                include_secondary_analysis=False,
                on_wave=on_wave,
            )
        finally:
            self._release(lease)

    async def resume_unfinished(self) -> Dict[str, Optional[RunResult]]:
        """Resume, one after another, every job the store reports as unfinished."""
        try:
            jobs = await self._store.list_unfinished_jobs()
        except Exception as e:
            logger.error(f"Could not list unfinished jobs: {e}")
            return {}

        if jobs:
            logger.info(f"Resuming {len(jobs)} unfinished jobs")

        results: Dict[str, Optional[RunResult]] = {}
        for job in jobs:
            results[job.id] = await self.resume(job.id)
        return results

    def cancel(self, job_id: str) -> bool:
        """
        Stop the job's active run from starting new waves.

        In-flight calls of the current wave run to completion. Returns False
        when no run is active for the job.
        """
        if not self._registry.is_active(job_id):
            return False
        self._cancelled.add(job_id)
        logger.info(f"Cancellation requested for job {job_id}")
        return True

    def is_active(self, job_id: str) -> bool:
        return self._registry.is_active(job_id)

    def last_result(self, job_id: str) -> Optional[RunResult]:
        return self._results.get(job_id)

    async def progress(self, job_id: str) -> Optional[ProgressSnapshot]:
        """Current estimate for the job's latest run, from the store's counts."""
        estimator = self._estimators.get(job_id)
        if estimator is None:
            return None
        total, completed = await self._store.query_counts(job_id)
        return estimator.snapshot(completed, total)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _execute(
        self,
        lease: Lease,
        scene_ids: List[str],
        include_secondary_analysis: bool,
        on_wave: Optional[WaveCallback],
    ) -> RunResult:
        job_id = lease.job_id
        started = self._clock()
        self._cancelled.discard(job_id)
        self._estimators[job_id] = ProgressEstimator(self.config, clock=self._clock)

        retry_queue = RetryQueue(
            max_attempts=self.config.max_attempts,
            backoff_seconds=self.config.backoff_seconds,
            classifier=self._classifier,
            sleep=self._sleep,
        )
        scheduler = BatchScheduler(self._client, retry_queue, concurrency=self.config.concurrency)

        def report(wave: WaveReport) -> None:
            self._registry.renew(lease)
            logger.info(
                f"Job {job_id} wave {wave.wave}: {wave.succeeded}/{wave.total} succeeded, "
                f"{wave.abandoned} abandoned, {wave.remaining} remaining"
            )
            if on_wave is not None:
                on_wave(wave)

        def before_step(name: str) -> None:
            self._registry.renew(lease)

        schedule: Optional[ScheduleResult] = None
        try:
            schedule = await scheduler.run(
                job_id,
                scene_ids,
                on_wave=report,
                should_continue=lambda: self._should_continue(lease),
            )

            if schedule.cancelled or not self._registry.holds(lease):
                chain = CompletionChain.skipped()
                status = RunStatus.CANCELLED
            else:
                chain = await self._chain.run(
                    job_id, include_secondary_analysis, before_step=before_step
                )
                status = RunStatus.COMPLETED

            result = RunResult(
                job_id=job_id,
                status=status,
                items=schedule.outcomes,
                waves=schedule.waves,
                backoffs=schedule.backoffs,
                chain=chain,
                include_secondary_analysis=include_secondary_analysis,
            )
        except Exception as e:
            logger.error(f"Run for job {job_id} failed unexpectedly: {e}", exc_info=True)
            result = RunResult(
                job_id=job_id,
                status=RunStatus.FAILED,
                chain=CompletionChain.skipped(),
                include_secondary_analysis=include_secondary_analysis,
                error=str(e),
            )
            if schedule is not None:
                result.items = schedule.outcomes
                result.waves = schedule.waves
                result.backoffs = schedule.backoffs

        result.duration_seconds = self._clock() - started
        self._results[job_id] = result
        logger.info(
            f"Run for job {job_id} {result.status.value}: {result.succeeded_count} succeeded, "
            f"{result.abandoned_count} abandoned in {result.duration_seconds:.1f}s"
        )
        return result

    async def _should_continue(self, lease: Lease) -> bool:
        job_id = lease.job_id
        if not self._registry.holds(lease):
            logger.warning(f"Lease for job {job_id} was taken over; no new waves for this run")
            return False
        if job_id in self._cancelled:
            return False
        job = await self._store.get_job(job_id)
        if job is not None and job.status.halts_new_waves:
            logger.info(f"Job {job_id} marked {job.status.value}; no new waves")
            return False
        return True

    def _release(self, lease: Lease) -> None:
        # A superseded run must not clear the cancel request of the run that replaced it
        if self._registry.release(lease):
            self._cancelled.discard(lease.job_id)
