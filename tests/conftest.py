"""
Pytest Configuration and Fixtures

Shared fixtures for all tests.
"""

import asyncio
import shutil
import tempfile
from pathlib import Path
from typing import Dict, Iterable, List, Optional

import pytest

from sceneflow.core.config import OrchestratorConfig
from sceneflow.core.constants import JobStatus
from sceneflow.enrichment.client import EnrichmentClient
from sceneflow.enrichment.models import CallOutcome, Job, WorkItem
from sceneflow.enrichment.store import InMemorySceneStore

JOB_ID = "analysis-1"
FILM_ID = "film-1"


class FakeEnrichmentClient(EnrichmentClient):
    """
    Scripted enrichment client.

    ``script`` maps a scene id to the results of its successive calls: None for
    success, an exception instance to raise, anything else as a failure value.
    Calls past the end of a scene's script succeed. A call waits on the
    scene's entry in ``item_gates``, else on ``gate``, when one is given.
    """

    def __init__(
        self,
        store: Optional[InMemorySceneStore] = None,
        script: Optional[Dict[str, List]] = None,
        gate: Optional[asyncio.Event] = None,
        item_gates: Optional[Dict[str, asyncio.Event]] = None,
    ):
        self.store = store
        self.script = {item_id: list(results) for item_id, results in (script or {}).items()}
        self.gate = gate
        self.item_gates = item_gates or {}
        self.calls: List[str] = []
        self.in_flight = 0
        self.max_in_flight = 0
        self.finalize_calls: List[str] = []
        self.secondary_calls: List[str] = []
        self.finalize_outcome = CallOutcome.success()
        self.secondary_outcome = CallOutcome.success()

    async def enrich(self, work_item_id: str, job_id: str) -> CallOutcome:
        self.calls.append(work_item_id)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            gate = self.item_gates.get(work_item_id, self.gate)
            if gate is not None:
                await gate.wait()
            else:
                await asyncio.sleep(0)
            planned = self.script.get(work_item_id)
            result = planned.pop(0) if planned else None
        finally:
            self.in_flight -= 1

        if isinstance(result, BaseException):
            raise result
        if result is not None:
            return CallOutcome.failure(result)
        if self.store is not None:
            self.store.mark_enriched(work_item_id)
        return CallOutcome.success({"success": True})

    def attempts_for(self, item_id: str) -> int:
        return self.calls.count(item_id)

    async def finalize(self, job_id: str) -> CallOutcome:
        self.finalize_calls.append(job_id)
        return self.finalize_outcome

    async def secondary_analysis(self, job_id: str) -> CallOutcome:
        self.secondary_calls.append(job_id)
        return self.secondary_outcome


class SleepRecorder:
    """Stand-in for asyncio.sleep that records delays without waiting."""

    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def build_store(
    scene_count: int,
    enriched: Iterable[int] = (),
    job_id: str = JOB_ID,
    status: JobStatus = JobStatus.ENRICHING,
    store: Optional[InMemorySceneStore] = None,
) -> InMemorySceneStore:
    """Store holding one job with scenes ``scene-1`` .. ``scene-N``."""
    store = store or InMemorySceneStore()
    enriched = set(enriched)
    items = [
        WorkItem(
            id=f"{job_id}-scene-{n}" if job_id != JOB_ID else f"scene-{n}",
            job_id=job_id,
            scene_number=n,
            enriched=n in enriched,
            heading=f"INT. LOCATION {n} - DAY",
        )
        for n in range(1, scene_count + 1)
    ]
    store.add_job(
        Job(
            id=job_id,
            film_id=FILM_ID,
            status=status,
            scene_count=scene_count,
            scenes_enriched=len(enriched),
        ),
        items,
    )
    return store


def scene_ids(count: int) -> List[str]:
    return [f"scene-{n}" for n in range(1, count + 1)]


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests."""
    temp_path = tempfile.mkdtemp()
    yield Path(temp_path)
    shutil.rmtree(temp_path, ignore_errors=True)


@pytest.fixture
def sample_config() -> dict:
    """Sample orchestrator configuration for testing."""
    return {
        "concurrency": 3,
        "max_attempts": 2,
        "backoff_seconds": 0.5,
        "lock_timeout_seconds": 60,
        "chain_step_timeout_seconds": 10,
    }


@pytest.fixture
def fast_config() -> OrchestratorConfig:
    """Default tuning; backoff delays are recorded, never slept."""
    return OrchestratorConfig()


@pytest.fixture
def sleeper() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def make_store():
    """Factory for in-memory stores seeded with one job."""
    return build_store


@pytest.fixture
def make_client():
    """Factory for scripted enrichment clients."""
    return FakeEnrichmentClient


@pytest.fixture
def ids():
    """Factory for scene id lists matching the seeded store."""
    return scene_ids
