"""
Sceneflow Scene Store

Read side of the persisted scene state. The orchestrator never writes the
``enriched`` flag; only the remote enrichment call does.
"""

import asyncio
import threading
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Tuple

from supabase import create_client

from sceneflow.core.constants import (
    ANALYSES_TABLE,
    JOBS_TABLE,
    SCENES_TABLE,
    UNFINISHED_STATUSES,
    JobStatus,
)
from sceneflow.core.exceptions import StoreError
from sceneflow.core.logging_config import get_logger
from sceneflow.core.retry import BackoffConfig, retry_async_call
from sceneflow.enrichment.models import Job, WorkItem

logger = get_logger("enrichment.store")


class SceneStore(ABC):
    """Interface to the externally persisted jobs and scenes."""

    @abstractmethod
    async def get_job(self, job_id: str) -> Optional[Job]:
        """Return the job, or None when it does not exist."""

    @abstractmethod
    async def list_pending_work_items(self, job_id: str) -> List[WorkItem]:
        """Scenes of the job with ``enriched == False``, by scene number ascending."""

    @abstractmethod
    async def query_counts(self, job_id: str) -> Tuple[int, int]:
        """Return ``(total, completed)`` scene counts for the job."""

    @abstractmethod
    async def list_unfinished_jobs(self) -> List[Job]:
        """Jobs whose status says enrichment has not finished."""


class InMemorySceneStore(SceneStore):
    """Process-local store, used for local runs and tests."""

    def __init__(self):
        self._lock = threading.Lock()
        self._jobs: Dict[str, Job] = {}
        self._items: Dict[str, WorkItem] = {}

    def add_job(self, job: Job, items: List[WorkItem] = None) -> None:
        with self._lock:
            self._jobs[job.id] = job
            for item in items or []:
                self._items[item.id] = item

    def mark_enriched(self, item_id: str) -> None:
        """Flip a scene's flag, as a successful remote enrichment would."""
        with self._lock:
            item = self._items[item_id]
            if not item.enriched:
                item.enriched = True
                job = self._jobs.get(item.job_id)
                if job:
                    job.scenes_enriched += 1

    def set_status(self, job_id: str, status: JobStatus) -> None:
        with self._lock:
            self._jobs[job_id].status = status

    async def get_job(self, job_id: str) -> Optional[Job]:
        with self._lock:
            return self._jobs.get(job_id)

    async def list_pending_work_items(self, job_id: str) -> List[WorkItem]:
        with self._lock:
            pending = [
                item for item in self._items.values()
                if item.job_id == job_id and not item.enriched
            ]
        return sorted(pending, key=lambda item: item.scene_number)

    async def query_counts(self, job_id: str) -> Tuple[int, int]:
        with self._lock:
            items = [item for item in self._items.values() if item.job_id == job_id]
        return len(items), sum(1 for item in items if item.enriched)

    async def list_unfinished_jobs(self) -> List[Job]:
        with self._lock:
            return [job for job in self._jobs.values() if job.status.is_unfinished]


class SupabaseSceneStore(SceneStore):
    """
    Store backed by the Supabase tables written by the edge functions.

    A job id is a ``script_analyses`` id; its scenes are the ``parsed_scenes``
    rows of the analysed film, and its status lives on ``parse_jobs``.
    Reads run in a worker thread because supabase-py's client is synchronous.
    """

    def __init__(self, client: Any, backoff: Optional[BackoffConfig] = None):
        self._client = client
        self._backoff = backoff or BackoffConfig()
        self._film_ids: Dict[str, str] = {}

    @classmethod
    def from_settings(cls, settings) -> "SupabaseSceneStore":
        if not settings.supabase_service_role_key:
            logger.warning("No service role key configured - store reads may be rejected")
        client = create_client(settings.supabase_url, settings.supabase_service_role_key)
        return cls(client)

    async def _execute(self, description: str, build_query) -> Any:
        def run():
            try:
                return build_query().execute()
            except Exception as e:
                raise StoreError(f"{description} failed: {e}") from e

        async def call():
            return await asyncio.to_thread(run)

        return await retry_async_call(call, config=self._backoff)

    async def _film_id(self, job_id: str) -> Optional[str]:
        if job_id in self._film_ids:
            return self._film_ids[job_id]
        response = await self._execute(
            f"Lookup of analysis {job_id}",
            lambda: self._client.table(ANALYSES_TABLE).select("film_id").eq("id", job_id).limit(1),
        )
        rows = response.data or []
        if not rows:
            return None
        self._film_ids[job_id] = rows[0]["film_id"]
        return self._film_ids[job_id]

    async def get_job(self, job_id: str) -> Optional[Job]:
        film_id = await self._film_id(job_id)
        if film_id is None:
            return None
        response = await self._execute(
            f"Lookup of parse job for {job_id}",
            lambda: self._client.table(JOBS_TABLE)
            .select("status, scene_count, scenes_enriched, error_message")
            .eq("analysis_id", job_id)
            .order("created_at", desc=True)
            .limit(1),
        )
        rows = response.data or []
        row = rows[0] if rows else {}
        return Job(
            id=job_id,
            film_id=film_id,
            status=JobStatus.parse(row.get("status", JobStatus.PENDING.value)),
            scene_count=row.get("scene_count"),
            scenes_enriched=row.get("scenes_enriched") or 0,
            error_message=row.get("error_message"),
        )

    async def list_pending_work_items(self, job_id: str) -> List[WorkItem]:
        film_id = await self._film_id(job_id)
        if film_id is None:
            logger.warning(f"No analysis found for job {job_id}; nothing to resume")
            return []
        response = await self._execute(
            f"Pending scene query for {job_id}",
            lambda: self._client.table(SCENES_TABLE)
            .select("id, scene_number, heading, enriched")
            .eq("film_id", film_id)
            .eq("enriched", False)
            .order("scene_number"),
        )
        return [
            WorkItem(
                id=row["id"],
                job_id=job_id,
                scene_number=row.get("scene_number") or 0,
                enriched=bool(row.get("enriched")),
                heading=row.get("heading") or "",
            )
            for row in response.data or []
        ]

    async def query_counts(self, job_id: str) -> Tuple[int, int]:
        film_id = await self._film_id(job_id)
        if film_id is None:
            return 0, 0
        total = await self._execute(
            f"Scene count for {job_id}",
            lambda: self._client.table(SCENES_TABLE)
            .select("id", count="exact")
            .eq("film_id", film_id),
        )
        completed = await self._execute(
            f"Enriched scene count for {job_id}",
            lambda: self._client.table(SCENES_TABLE)
            .select("id", count="exact")
            .eq("film_id", film_id)
            .eq("enriched", True),
        )
        return total.count or 0, completed.count or 0

    async def list_unfinished_jobs(self) -> List[Job]:
        response = await self._execute(
            "Unfinished parse job query",
            lambda: self._client.table(JOBS_TABLE)
            .select("analysis_id, film_id, status, scene_count, scenes_enriched, error_message")
            .in_("status", [status.value for status in UNFINISHED_STATUSES])
            .not_.is_("analysis_id", "null"),
        )
        jobs = []
        for row in response.data or []:
            self._film_ids[row["analysis_id"]] = row["film_id"]
            jobs.append(Job(
                id=row["analysis_id"],
                film_id=row["film_id"],
                status=JobStatus.parse(row.get("status", "")),
                scene_count=row.get("scene_count"),
                scenes_enriched=row.get("scenes_enriched") or 0,
                error_message=row.get("error_message"),
            ))
        return jobs
