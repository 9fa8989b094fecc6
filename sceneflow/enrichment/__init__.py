"""
Sceneflow Enrichment Module

Scene enrichment orchestration:
- EnrichmentOrchestrator: single-flight runs, resumption, cancellation
- BatchScheduler: wave-based, concurrency-bounded execution
- CompletionChain: Finalize, then optional Secondary Analysis
- ProgressEstimator: monotonic percentage and time remaining
- SceneStore: Supabase-backed and in-memory scene state
- EdgeFunctionClient: Supabase edge function calls
"""

from .models import (
    WorkItem,
    Job,
    CallOutcome,
    ItemStatus,
    ItemOutcome,
    WaveReport,
    StepStatus,
    ChainStepResult,
    ChainResult,
    RunStatus,
    RunResult,
)
from .store import SceneStore, InMemorySceneStore, SupabaseSceneStore
from .client import EnrichmentClient, EdgeFunctionClient
from .scheduler import BatchScheduler
from .completion import CompletionChain
from .single_flight import SingleFlightRegistry
from .progress import ProgressEstimator, ProgressSnapshot, ProgressPhase, estimate_progress
from .orchestrator import EnrichmentOrchestrator

__all__ = [
    'WorkItem',
    'Job',
    'CallOutcome',
    'ItemStatus',
    'ItemOutcome',
    'WaveReport',
    'StepStatus',
    'ChainStepResult',
    'ChainResult',
    'RunStatus',
    'RunResult',
    'SceneStore',
    'InMemorySceneStore',
    'SupabaseSceneStore',
    'EnrichmentClient',
    'EdgeFunctionClient',
    'BatchScheduler',
    'CompletionChain',
    'SingleFlightRegistry',
    'ProgressEstimator',
    'ProgressSnapshot',
    'ProgressPhase',
    'estimate_progress',
    'EnrichmentOrchestrator',
]
