"""
Sceneflow FastAPI Application

Hosts the enrichment orchestrator for one process and resumes unfinished jobs
at startup.
"""

import asyncio
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from sceneflow import __version__
from sceneflow.api.routers import health, jobs
from sceneflow.core.config import load_config
from sceneflow.core.logging_config import get_logger
from sceneflow.core.settings import Settings, get_settings
from sceneflow.enrichment.client import EdgeFunctionClient
from sceneflow.enrichment.orchestrator import EnrichmentOrchestrator
from sceneflow.enrichment.store import SupabaseSceneStore

logger = get_logger("api.main")


def build_orchestrator(settings: Settings):
    """Wire the Supabase store and edge-function client into an orchestrator."""
    store = SupabaseSceneStore.from_settings(settings)
    client = EdgeFunctionClient.from_settings(settings, store)
    orchestrator = EnrichmentOrchestrator(
        store=store,
        client=client,
        config=load_config(settings.config_path),
    )
    return orchestrator, client


def create_app(
    orchestrator: Optional[EnrichmentOrchestrator] = None,
    settings: Optional[Settings] = None,
) -> FastAPI:
    """
    Create the API application.

    Args:
        orchestrator: Pre-built orchestrator; built from settings when None
        settings: Settings override; read from the environment when None
    """
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Starting Sceneflow API...")
        client = None
        if getattr(app.state, "orchestrator", None) is None:
            app.state.orchestrator, client = build_orchestrator(settings)

        resume_task = None
        if settings.resume_on_startup:
            resume_task = asyncio.create_task(app.state.orchestrator.resume_unfinished())

        yield

        logger.info("Shutting down Sceneflow API...")
        if resume_task is not None and not resume_task.done():
            resume_task.cancel()
        if client is not None:
            await client.aclose()

    app = FastAPI(
        title="Sceneflow API",
        description="Scene enrichment orchestration for script analyses",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.orchestrator = orchestrator

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(health.router, prefix="/api", tags=["Health"])
    app.include_router(jobs.router, prefix="/api/jobs", tags=["Jobs"])

    return app

