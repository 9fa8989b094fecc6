"""
Sceneflow Enrichment Client

Calls the remote enrichment operation for one scene, and the two completion
steps, through the Supabase edge functions.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

import httpx

from sceneflow.core.constants import EdgeFunction
from sceneflow.core.exceptions import RemoteCallError
from sceneflow.core.logging_config import get_logger
from sceneflow.enrichment.models import CallOutcome
from sceneflow.enrichment.store import SceneStore

logger = get_logger("enrichment.client")


class EnrichmentClient(ABC):
    """
    Per-scene enrichment operation.

    Implementations must tolerate up to N concurrent calls and being
    re-invoked for the same scene on retry.
    """

    @abstractmethod
    async def enrich(self, work_item_id: str, job_id: str) -> CallOutcome:
        """Enrich one scene; return success or a failure carrying the error."""


class EdgeFunctionClient(EnrichmentClient):
    """
    Invokes ``enrich-scene``, ``finalize-analysis`` and ``analyze-director-fit``.

    Every call returns a ``CallOutcome``; non-2xx responses and transport
    errors become failures carrying a ``RemoteCallError`` whose rendering
    ("HTTP 429: ...") is what the retry classifier matches on.
    """

    def __init__(
        self,
        functions_url: str,
        service_key: str,
        store: SceneStore,
        timeout: float = 150.0,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self._functions_url = functions_url.rstrip("/")
        self._store = store
        self._owns_client = http_client is None
        self._http = http_client or httpx.AsyncClient(timeout=timeout)
        self._headers = {
            "Authorization": f"Bearer {service_key}",
            "apikey": service_key,
            "Content-Type": "application/json",
        }

    @classmethod
    def from_settings(cls, settings, store: SceneStore) -> "EdgeFunctionClient":
        return cls(
            functions_url=settings.functions_url,
            service_key=settings.supabase_service_role_key,
            store=store,
            timeout=settings.functions_timeout_seconds,
        )

    async def aclose(self) -> None:
        if self._owns_client:
            await self._http.aclose()

    async def _invoke(self, function: EdgeFunction, body: Dict[str, Any]) -> CallOutcome:
        url = f"{self._functions_url}/{function.value}"
        try:
            response = await self._http.post(url, json=body, headers=self._headers)
        except httpx.HTTPError as e:
            logger.warning(f"{function.value} transport error: {e}")
            return CallOutcome.failure(
                RemoteCallError(function.value, f"{type(e).__name__}: {e}")
            )

        payload = _json_or_empty(response)

        if response.is_success and not payload.get("error"):
            return CallOutcome.success(payload)

        message = payload.get("error") or response.reason_phrase or "request failed"
        logger.debug(f"{function.value} failed with {response.status_code}: {message}")
        return CallOutcome.failure(
            RemoteCallError(function.value, str(message), status_code=response.status_code)
        )

    async def enrich(self, work_item_id: str, job_id: str) -> CallOutcome:
        outcome = await self._invoke(
            EdgeFunction.ENRICH_SCENE,
            {"scene_id": work_item_id, "analysis_id": job_id},
        )
        if outcome.ok and outcome.data.get("skipped"):
            logger.debug(
                f"Scene {work_item_id} skipped remotely "
                f"({outcome.data.get('reason', 'already enriched')})"
            )
        return outcome

    async def finalize(self, job_id: str) -> CallOutcome:
        return await self._invoke(EdgeFunction.FINALIZE_ANALYSIS, {"analysis_id": job_id})

    async def secondary_analysis(self, job_id: str) -> CallOutcome:
        """Run the director-fit analysis for the job's film and save the match."""
        job = await self._store.get_job(job_id)
        if job is None:
            return CallOutcome.failure(
                RemoteCallError(EdgeFunction.ANALYZE_DIRECTOR_FIT.value, f"Unknown job '{job_id}'")
            )
        return await self._invoke(
            EdgeFunction.ANALYZE_DIRECTOR_FIT,
            {"film_id": job.film_id, "save": True},
        )


def _json_or_empty(response: httpx.Response) -> Dict[str, Any]:
    try:
        data = response.json()
    except ValueError:
        return {}
    return data if isinstance(data, dict) else {}
