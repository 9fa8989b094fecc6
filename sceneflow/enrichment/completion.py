"""
Sceneflow Completion Chain

Best-effort finishing steps run once a scheduler run drains: Finalize, then
(optionally) Secondary Analysis. A failed Finalize does not stop Secondary
Analysis; gating is solely the run's flag.
"""

import asyncio
from typing import Awaitable, Callable, Optional

from sceneflow.core.exceptions import ChainStepError
from sceneflow.core.logging_config import get_logger
from sceneflow.enrichment.models import (
    CallOutcome,
    ChainResult,
    ChainStepResult,
    StepStatus,
)

logger = get_logger("enrichment.completion")

ChainStep = Callable[[str], Awaitable[CallOutcome]]

FINALIZE = "finalize"
SECONDARY_ANALYSIS = "secondary_analysis"


class CompletionChain:
    """Runs Finalize and Secondary Analysis in strict order."""

    def __init__(
        self,
        finalize: ChainStep,
        secondary_analysis: Optional[ChainStep] = None,
        step_timeout: float = 300.0,
    ):
        self._finalize = finalize
        self._secondary_analysis = secondary_analysis
        self.step_timeout = step_timeout

    async def run(
        self,
        job_id: str,
        include_secondary_analysis: bool,
        before_step: Optional[Callable[[str], None]] = None,
    ) -> ChainResult:
        """
        Run the chain; never raises for step failures.

        ``before_step`` is called with each step name just before the step runs.
        """
        result = ChainResult()

        result.steps.append(await self._run_step(FINALIZE, self._finalize, job_id, before_step))

        if include_secondary_analysis and self._secondary_analysis is not None:
            result.steps.append(
                await self._run_step(
                    SECONDARY_ANALYSIS, self._secondary_analysis, job_id, before_step
                )
            )
        else:
            if include_secondary_analysis:
                logger.warning(f"Secondary analysis requested for job {job_id} but no step is configured")
            result.steps.append(ChainStepResult(SECONDARY_ANALYSIS, StepStatus.SKIPPED))

        return result

    @staticmethod
    def skipped() -> ChainResult:
        """Chain result for a run that never reached the chain."""
        return ChainResult(steps=[
            ChainStepResult(FINALIZE, StepStatus.SKIPPED),
            ChainStepResult(SECONDARY_ANALYSIS, StepStatus.SKIPPED),
        ])

    async def _run_step(
        self,
        name: str,
        step: ChainStep,
        job_id: str,
        before_step: Optional[Callable[[str], None]] = None,
    ) -> ChainStepResult:
        if before_step is not None:
            before_step(name)
        logger.info(f"Running {name} for job {job_id}")
        try:
            outcome = await asyncio.wait_for(step(job_id), timeout=self.step_timeout)
        except asyncio.TimeoutError:
            return self._failed(name, job_id, f"timed out after {self.step_timeout:.0f}s")
        except Exception as e:
            return self._failed(name, job_id, e)

        if not outcome.ok:
            return self._failed(name, job_id, outcome.error)

        logger.info(f"{name} succeeded for job {job_id}")
        return ChainStepResult(name, StepStatus.SUCCEEDED)

    def _failed(self, name: str, job_id: str, cause: object) -> ChainStepResult:
        error = ChainStepError(name, job_id, cause)
        logger.error(str(error))
        return ChainStepResult(name, StepStatus.FAILED, error)
