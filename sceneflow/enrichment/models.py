"""
Sceneflow Enrichment Models

Data classes shared by the store, the scheduler, the completion chain and the
orchestrator.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from sceneflow.core.constants import JobStatus
from sceneflow.core.exceptions import ExhaustedRetryError


@dataclass
class WorkItem:
    """One parsed scene awaiting (or done with) enrichment."""
    id: str
    job_id: str
    scene_number: int
    enriched: bool = False
    heading: str = ""


@dataclass
class Job:
    """One enrichment run for one script analysis; ``id`` is the analysis id."""
    id: str
    film_id: str
    status: JobStatus = JobStatus.PENDING
    scene_count: Optional[int] = None
    scenes_enriched: int = 0
    error_message: Optional[str] = None


@dataclass
class CallOutcome:
    """Result of one remote call: success, or failure carrying the error value."""
    ok: bool
    error: Any = None
    data: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def success(cls, data: Dict[str, Any] = None) -> "CallOutcome":
        return cls(ok=True, data=data or {})

    @classmethod
    def failure(cls, error: Any) -> "CallOutcome":
        return cls(ok=False, error=error)


class ItemStatus(Enum):
    """Final state of a scene within one run."""
    SUCCEEDED = "succeeded"
    ABANDONED = "abandoned"


@dataclass
class ItemOutcome:
    """How a scene ended in a run."""
    item_id: str
    status: ItemStatus
    attempts: int
    error: Optional[Exception] = None

    @property
    def exhausted(self) -> bool:
        return isinstance(self.error, ExhaustedRetryError)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "item_id": self.item_id,
            "status": self.status.value,
            "attempts": self.attempts,
            "error": str(self.error) if self.error else None,
            "exhausted": self.exhausted,
        }


@dataclass
class WaveReport:
    """Progress notification emitted after each settled wave."""
    job_id: str
    wave: int
    wave_size: int
    succeeded: int
    abandoned: int
    requeued: int
    remaining: int
    total: int


@dataclass
class ScheduleResult:
    """Outcome of one drained (or cancelled) scheduler run."""
    outcomes: Dict[str, ItemOutcome]
    waves: int
    backoffs: int
    cancelled: bool = False

    def with_status(self, status: ItemStatus) -> List[ItemOutcome]:
        return [o for o in self.outcomes.values() if o.status == status]

    @property
    def succeeded_count(self) -> int:
        return len(self.with_status(ItemStatus.SUCCEEDED))

    @property
    def abandoned_count(self) -> int:
        return len(self.with_status(ItemStatus.ABANDONED))


class StepStatus(Enum):
    """Status of one completion chain step."""
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass
class ChainStepResult:
    """Outcome of Finalize or Secondary Analysis."""
    name: str
    status: StepStatus
    error: Optional[Exception] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "status": self.status.value,
            "error": str(self.error) if self.error else None,
        }


@dataclass
class ChainResult:
    """Outcome of the completion chain."""
    steps: List[ChainStepResult] = field(default_factory=list)

    def step(self, name: str) -> Optional[ChainStepResult]:
        for result in self.steps:
            if result.name == name:
                return result
        return None

    @property
    def all_succeeded(self) -> bool:
        return all(s.status != StepStatus.FAILED for s in self.steps)


class RunStatus(Enum):
    """Status of an orchestration run."""
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"


@dataclass
class RunResult:
    """Everything a caller learns about one orchestration run."""
    job_id: str
    status: RunStatus
    items: Dict[str, ItemOutcome] = field(default_factory=dict)
    waves: int = 0
    backoffs: int = 0
    chain: ChainResult = field(default_factory=ChainResult)
    include_secondary_analysis: bool = False
    duration_seconds: float = 0.0
    error: Optional[str] = None

    @property
    def succeeded(self) -> List[str]:
        return [i for i, o in self.items.items() if o.status == ItemStatus.SUCCEEDED]

    @property
    def abandoned(self) -> List[str]:
        return [i for i, o in self.items.items() if o.status == ItemStatus.ABANDONED]

    @property
    def succeeded_count(self) -> int:
        return len(self.succeeded)

    @property
    def abandoned_count(self) -> int:
        return len(self.abandoned)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "job_id": self.job_id,
            "status": self.status.value,
            "succeeded": self.succeeded_count,
            "abandoned": self.abandoned_count,
            "waves": self.waves,
            "backoffs": self.backoffs,
            "include_secondary_analysis": self.include_secondary_analysis,
            "duration_seconds": round(self.duration_seconds, 3),
            "error": self.error,
            "chain": [s.to_dict() for s in self.chain.steps],
            "items": [o.to_dict() for o in self.items.values()],
        }
