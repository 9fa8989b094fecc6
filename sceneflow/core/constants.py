"""
Sceneflow Constants

Job statuses, edge function names, and table names shared by the store and
the enrichment client.
"""

from enum import Enum


class JobStatus(Enum):
    """Status of a parse job as persisted in ``parse_jobs.status``."""
    PENDING = "pending"
    ANALYZING = "analyzing"
    ENRICHING = "enriching"
    COMPLETE = "complete"
    ERROR = "error"
    CANCELLED = "cancelled"

    @classmethod
    def parse(cls, value: str) -> "JobStatus":
        """Parse a stored status, treating unknown values as pending."""
        try:
            return cls(value)
        except ValueError:
            return cls.PENDING

    @property
    def is_unfinished(self) -> bool:
        return self in UNFINISHED_STATUSES

    @property
    def halts_new_waves(self) -> bool:
        return self in (JobStatus.CANCELLED, JobStatus.ERROR)


UNFINISHED_STATUSES = (JobStatus.PENDING, JobStatus.ANALYZING, JobStatus.ENRICHING)


class EdgeFunction(Enum):
    """Supabase edge functions invoked by the orchestrator."""
    ENRICH_SCENE = "enrich-scene"
    FINALIZE_ANALYSIS = "finalize-analysis"
    ANALYZE_DIRECTOR_FIT = "analyze-director-fit"


# Supabase tables
SCENES_TABLE = "parsed_scenes"
JOBS_TABLE = "parse_jobs"
ANALYSES_TABLE = "script_analyses"
