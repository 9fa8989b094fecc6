"""
Sceneflow Progress Estimator

Phase-gated percentage and time-remaining estimate for an enrichment run.

Before any scene has completed, progress is estimated from wall-clock time
against a fixed early phase (3 steps of 3 seconds), capped at 29%. Once a
scene completes the estimate switches for good to ``30 + 70 * completed /
total``. Time remaining is withheld until more than 3 scenes have completed.
"""

import math
import threading
import time
from dataclasses import dataclass, replace
from enum import Enum
from typing import Callable, Optional

from sceneflow.core.config import OrchestratorConfig

EARLY_PHASE_CAP = 29
COUNT_PHASE_BASE = 30
COUNT_PHASE_SPAN = 70


class ProgressPhase(Enum):
    """Which signal the estimate is derived from."""
    EARLY = "early"
    ENRICHING = "enriching"


@dataclass(frozen=True)
class ProgressSnapshot:
    """Read-only progress view; computed on demand, never stored."""
    percent: int
    phase: ProgressPhase
    completed: int
    total: int
    elapsed_seconds: float
    eta_seconds: Optional[int] = None
    step: Optional[int] = None

    def to_dict(self) -> dict:
        return {
            "percent": self.percent,
            "phase": self.phase.value,
            "completed": self.completed,
            "total": self.total,
            "elapsed_seconds": round(self.elapsed_seconds, 1),
            "eta_seconds": self.eta_seconds,
            "step": self.step,
        }


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def estimate_progress(
    elapsed_seconds: float,
    completed: int,
    total: int,
    phase: ProgressPhase,
    config: OrchestratorConfig = None,
) -> ProgressSnapshot:
    """Pure estimate for one moment of a run."""
    config = config or OrchestratorConfig()
    elapsed_seconds = max(0.0, elapsed_seconds)
    completed = max(0, completed)
    total = max(total, completed)

    if phase == ProgressPhase.EARLY and completed == 0:
        fraction = elapsed_seconds / config.early_phase_seconds
        percent = min(EARLY_PHASE_CAP, _round_half_up(COUNT_PHASE_BASE * fraction))
        step = min(config.early_phase_steps, int(elapsed_seconds // config.early_step_seconds) + 1)
        return ProgressSnapshot(
            percent=percent,
            phase=phase,
            completed=completed,
            total=total,
            elapsed_seconds=elapsed_seconds,
            step=step,
        )

    fraction = completed / total if total else 0.0
    percent = min(100, COUNT_PHASE_BASE + _round_half_up(COUNT_PHASE_SPAN * fraction))

    eta = None
    if completed > config.eta_min_completed:
        eta = max(0, _round_half_up((elapsed_seconds / completed) * (total - completed)))

    return ProgressSnapshot(
        percent=percent,
        phase=ProgressPhase.ENRICHING,
        completed=completed,
        total=total,
        elapsed_seconds=elapsed_seconds,
        eta_seconds=eta,
    )


class ProgressEstimator:
    """
    Per-run estimator that keeps the reported sequence non-decreasing.

    The switch to the count phase is latched on the first completed scene and
    the reported percentage never drops below the highest one reported.
    """

    def __init__(
        self,
        config: OrchestratorConfig = None,
        clock: Callable[[], float] = time.monotonic,
        started_at: Optional[float] = None,
    ):
        self.config = config or OrchestratorConfig()
        self._clock = clock
        self.started_at = clock() if started_at is None else started_at
        self._phase = ProgressPhase.EARLY
        self._high_water = 0
        self._guard = threading.Lock()

    @property
    def phase(self) -> ProgressPhase:
        return self._phase

    def snapshot(self, completed: int, total: int, now: Optional[float] = None) -> ProgressSnapshot:
        now = self._clock() if now is None else now
        with self._guard:
            if completed > 0:
                self._phase = ProgressPhase.ENRICHING

            estimate = estimate_progress(
                now - self.started_at, completed, total, self._phase, self.config
            )
            if estimate.percent < self._high_water:
                estimate = replace(estimate, percent=self._high_water)
            self._high_water = estimate.percent
            return estimate
