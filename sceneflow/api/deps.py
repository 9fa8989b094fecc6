"""
API Dependencies

Common dependencies for route handlers.
"""

from fastapi import HTTPException, Request

from sceneflow.enrichment.orchestrator import EnrichmentOrchestrator


def get_orchestrator(request: Request) -> EnrichmentOrchestrator:
    """Return the process-wide orchestrator created at startup."""
    orchestrator = getattr(request.app.state, "orchestrator", None)
    if orchestrator is None:
        raise HTTPException(status_code=503, detail="Orchestrator not initialized")
    return orchestrator
