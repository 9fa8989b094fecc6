"""Jobs router for the Sceneflow API.

Explicit entry points for starting, resuming and cancelling enrichment runs,
and for polling their progress.
"""

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException
from pydantic import BaseModel, Field

from sceneflow.api.deps import get_orchestrator
from sceneflow.core.logging_config import get_logger
from sceneflow.enrichment.orchestrator import EnrichmentOrchestrator

logger = get_logger("api.jobs")

router = APIRouter()


class EnrichRequest(BaseModel):
    scene_ids: List[str] = Field(..., min_length=1)
    include_secondary_analysis: bool = False


class JobActionResponse(BaseModel):
    success: bool
    message: str
    job_id: str


class ProgressResponse(BaseModel):
    job_id: str
    active: bool
    percent: int
    phase: str
    completed: int
    total: int
    elapsed_seconds: float
    eta_seconds: Optional[int] = None
    step: Optional[int] = None


async def _run_in_background(orchestrator: EnrichmentOrchestrator, job_id: str, request: EnrichRequest):
    result = await orchestrator.run(
        job_id,
        request.scene_ids,
        include_secondary_analysis=request.include_secondary_analysis,
    )
    if result is None:
        logger.info(f"Enrich request for job {job_id} did not start a run")


async def _resume_in_background(orchestrator: EnrichmentOrchestrator, job_id: str):
    result = await orchestrator.resume(job_id)
    if result is None:
        logger.info(f"Resume request for job {job_id} did not start a run")


@router.post("/{job_id}/enrich", response_model=JobActionResponse, status_code=202)
async def enrich_job(
    job_id: str,
    request: EnrichRequest,
    background_tasks: BackgroundTasks,
    orchestrator: EnrichmentOrchestrator = Depends(get_orchestrator),
):
    """Start enrichment of the given scenes."""
    if orchestrator.is_active(job_id):
        raise HTTPException(status_code=409, detail=f"Enrichment already running for job {job_id}")

    background_tasks.add_task(_run_in_background, orchestrator, job_id, request)
    return JobActionResponse(
        success=True,
        message=f"Enrichment of {len(request.scene_ids)} scenes scheduled",
        job_id=job_id,
    )


@router.post("/{job_id}/resume", response_model=JobActionResponse, status_code=202)
async def resume_job(
    job_id: str,
    background_tasks: BackgroundTasks,
    orchestrator: EnrichmentOrchestrator = Depends(get_orchestrator),
):
    """Resume a job from its persisted completion flags."""
    if orchestrator.is_active(job_id):
        return JobActionResponse(
            success=False,
            message="Enrichment already running; resume ignored",
            job_id=job_id,
        )

    background_tasks.add_task(_resume_in_background, orchestrator, job_id)
    return JobActionResponse(success=True, message="Resume scheduled", job_id=job_id)


@router.post("/{job_id}/cancel", response_model=JobActionResponse)
async def cancel_job(
    job_id: str,
    orchestrator: EnrichmentOrchestrator = Depends(get_orchestrator),
):
    """Stop a running job from starting new waves."""
    if not orchestrator.cancel(job_id):
        raise HTTPException(status_code=404, detail=f"No active run for job {job_id}")
    return JobActionResponse(
        success=True,
        message="Cancellation requested; the current wave will finish",
        job_id=job_id,
    )


@router.get("/{job_id}/progress", response_model=ProgressResponse)
async def get_progress(
    job_id: str,
    orchestrator: EnrichmentOrchestrator = Depends(get_orchestrator),
):
    """Progress estimate for the job's latest run."""
    snapshot = await orchestrator.progress(job_id)
    if snapshot is None:
        raise HTTPException(status_code=404, detail=f"No run recorded for job {job_id}")
    return ProgressResponse(
        job_id=job_id,
        active=orchestrator.is_active(job_id),
        **snapshot.to_dict(),
    )


@router.get("/{job_id}/result")
async def get_result(
    job_id: str,
    orchestrator: EnrichmentOrchestrator = Depends(get_orchestrator),
) -> Dict[str, Any]:
    """Summary of the job's last finished run."""
    result = orchestrator.last_result(job_id)
    if result is None:
        raise HTTPException(status_code=404, detail=f"No finished run for job {job_id}")
    return result.to_dict()
