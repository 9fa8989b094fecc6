"""
Tests for Scene Stores

Tests for sceneflow/enrichment/store.py
"""

from types import SimpleNamespace

import pytest

from sceneflow.core.constants import JobStatus
from sceneflow.core.exceptions import StoreError
from sceneflow.core.retry import BackoffConfig
from sceneflow.enrichment.models import Job
from sceneflow.enrichment.store import InMemorySceneStore, SupabaseSceneStore


class FakeQuery:
    """Minimal PostgREST-style query builder over in-memory rows."""

    def __init__(self, rows, fail=None):
        self._rows = list(rows)
        self._count = False
        self._negate = False
        self._fail = fail

    def select(self, columns, count=None):
        self._count = count == "exact"
        return self

    def eq(self, column, value):
        self._rows = [r for r in self._rows if r.get(column) == value]
        return self

    def in_(self, column, values):
        self._rows = [r for r in self._rows if r.get(column) in values]
        return self

    @property
    def not_(self):
        self._negate = True
        return self

    def is_(self, column, value):
        is_null = [r.get(column) is None for r in self._rows]
        keep = [not null if self._negate else null for null in is_null]
        self._rows = [r for r, k in zip(self._rows, keep) if k]
        self._negate = False
        return self

    def order(self, column, desc=False):
        self._rows.sort(key=lambda r: r.get(column) or 0, reverse=desc)
        return self

    def limit(self, n):
        self._rows = self._rows[:n]
        return self

    def execute(self):
        if self._fail:
            raise self._fail
        return SimpleNamespace(
            data=self._rows,
            count=len(self._rows) if self._count else None,
        )


class FakeSupabase:
    """Holds table rows and hands out fresh queries."""

    def __init__(self, tables, fail=None):
        self.tables = tables
        self.fail = fail
        self.queried = []

    def table(self, name):
        self.queried.append(name)
        return FakeQuery(self.tables.get(name, []), fail=self.fail)


@pytest.fixture
def supabase_tables():
    return {
        "script_analyses": [
            {"id": "analysis-1", "film_id": "film-1"},
            {"id": "analysis-2", "film_id": "film-2"},
        ],
        "parse_jobs": [
            {"analysis_id": "analysis-1", "film_id": "film-1", "status": "enriching",
             "scene_count": 3, "scenes_enriched": 1, "error_message": None, "created_at": 2},
            {"analysis_id": "analysis-2", "film_id": "film-2", "status": "complete",
             "scene_count": 1, "scenes_enriched": 1, "error_message": None, "created_at": 1},
            {"analysis_id": None, "film_id": "film-3", "status": "pending",
             "scene_count": None, "scenes_enriched": 0, "error_message": None, "created_at": 3},
        ],
        "parsed_scenes": [
            {"id": "s3", "film_id": "film-1", "scene_number": 3, "heading": "EXT. ROOF", "enriched": False},
            {"id": "s1", "film_id": "film-1", "scene_number": 1, "heading": "INT. LOFT", "enriched": True},
            {"id": "s2", "film_id": "film-1", "scene_number": 2, "heading": "INT. CAR", "enriched": False},
            {"id": "x1", "film_id": "film-2", "scene_number": 1, "heading": "INT. BAR", "enriched": True},
        ],
    }


class TestInMemorySceneStore:
    """Tests for the process-local store."""

    @pytest.mark.asyncio
    async def test_pending_in_scene_order(self, make_store):
        """Test pending scenes come back by scene number."""
        store = make_store(5, enriched=[1, 4])

        pending = await store.list_pending_work_items("analysis-1")

        assert [item.scene_number for item in pending] == [2, 3, 5]

    @pytest.mark.asyncio
    async def test_counts(self, make_store):
        """Test total and completed counts."""
        store = make_store(4, enriched=[2])

        assert await store.query_counts("analysis-1") == (4, 1)

    @pytest.mark.asyncio
    async def test_mark_enriched_is_idempotent(self, make_store):
        """Test repeated completion does not double count."""
        store = make_store(2)

        store.mark_enriched("scene-1")
        store.mark_enriched("scene-1")

        job = await store.get_job("analysis-1")
        assert job.scenes_enriched == 1
        assert await store.query_counts("analysis-1") == (2, 1)

    @pytest.mark.asyncio
    async def test_unfinished_jobs(self, make_store):
        """Test only unfinished statuses are listed."""
        store = make_store(2)
        make_store(1, job_id="analysis-2", status=JobStatus.COMPLETE, store=store)
        make_store(1, job_id="analysis-3", status=JobStatus.PENDING, store=store)

        unfinished = await store.list_unfinished_jobs()

        assert sorted(job.id for job in unfinished) == ["analysis-1", "analysis-3"]

    @pytest.mark.asyncio
    async def test_unknown_job(self):
        """Test unknown jobs read as empty."""
        store = InMemorySceneStore()

        assert await store.get_job("nope") is None
        assert await store.list_pending_work_items("nope") == []
        assert await store.query_counts("nope") == (0, 0)

    @pytest.mark.asyncio
    async def test_set_status(self):
        """Test status updates are visible to readers."""
        store = InMemorySceneStore()
        store.add_job(Job(id="a", film_id="f"))

        store.set_status("a", JobStatus.CANCELLED)

        assert (await store.get_job("a")).status == JobStatus.CANCELLED


class TestSupabaseSceneStore:
    """Tests for the Supabase-backed store."""

    @pytest.mark.asyncio
    async def test_get_job(self, supabase_tables):
        """Test a job is read from its analysis and latest parse job."""
        store = SupabaseSceneStore(FakeSupabase(supabase_tables))

        job = await store.get_job("analysis-1")

        assert job.film_id == "film-1"
        assert job.status == JobStatus.ENRICHING
        assert job.scene_count == 3

    @pytest.mark.asyncio
    async def test_get_unknown_job(self, supabase_tables):
        """Test a missing analysis reads as None."""
        store = SupabaseSceneStore(FakeSupabase(supabase_tables))

        assert await store.get_job("analysis-9") is None

    @pytest.mark.asyncio
    async def test_pending_scenes(self, supabase_tables):
        """Test pending scenes are the film's non-enriched rows in order."""
        store = SupabaseSceneStore(FakeSupabase(supabase_tables))

        pending = await store.list_pending_work_items("analysis-1")

        assert [item.id for item in pending] == ["s2", "s3"]
        assert pending[0].job_id == "analysis-1"
        assert pending[0].heading == "INT. CAR"

    @pytest.mark.asyncio
    async def test_counts(self, supabase_tables):
        """Test exact counts for total and enriched scenes."""
        store = SupabaseSceneStore(FakeSupabase(supabase_tables))

        assert await store.query_counts("analysis-1") == (3, 1)
        assert await store.query_counts("analysis-9") == (0, 0)

    @pytest.mark.asyncio
    async def test_film_id_cached(self, supabase_tables):
        """Test the analysis lookup happens once per job."""
        client = FakeSupabase(supabase_tables)
        store = SupabaseSceneStore(client)

        await store.list_pending_work_items("analysis-1")
        await store.query_counts("analysis-1")

        assert client.queried.count("script_analyses") == 1

    @pytest.mark.asyncio
    async def test_unfinished_jobs(self, supabase_tables):
        """Test unfinished parse jobs with an analysis are listed."""
        store = SupabaseSceneStore(FakeSupabase(supabase_tables))

        jobs = await store.list_unfinished_jobs()

        assert [job.id for job in jobs] == ["analysis-1"]
        assert jobs[0].status == JobStatus.ENRICHING

    @pytest.mark.asyncio
    async def test_query_failure_wrapped(self, supabase_tables):
        """Test client errors surface as StoreError."""
        client = FakeSupabase(supabase_tables, fail=RuntimeError("relation does not exist"))
        store = SupabaseSceneStore(client, backoff=BackoffConfig(max_retries=0))

        with pytest.raises(StoreError):
            await store.list_unfinished_jobs()
