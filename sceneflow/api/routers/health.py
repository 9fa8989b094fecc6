"""
Health Check Endpoints
"""

from fastapi import APIRouter, Request

router = APIRouter()


@router.get("/health")
async def health_check(request: Request):
    """Health check endpoint."""
    orchestrator = getattr(request.app.state, "orchestrator", None)
    return {
        "status": "healthy" if orchestrator is not None else "starting",
        "service": "sceneflow",
    }
