"""
Sceneflow Single-Flight Registry

Per-job leases guaranteeing at most one active orchestration run per job in
this process. The holder renews its lease whenever it makes progress; a lease
not renewed for ``lease_timeout`` is treated as stale and can be taken over,
so a hung run cannot block a job forever.
"""

import threading
import time
import uuid
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from sceneflow.core.logging_config import get_logger

logger = get_logger("enrichment.single_flight")


@dataclass
class Lease:
    """Proof of holding a job's single-flight slot."""
    job_id: str
    token: str
    acquired_at: float


class SingleFlightRegistry:
    """Thread-safe map of job id to its active lease."""

    def __init__(
        self,
        lease_timeout: float = 900.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.lease_timeout = lease_timeout
        self._clock = clock
        self._guard = threading.Lock()
        self._leases: Dict[str, Lease] = {}

    def try_acquire(self, job_id: str) -> Optional[Lease]:
        """Return a lease, or None when a live run already holds the job."""
        with self._guard:
            now = self._clock()
            current = self._leases.get(job_id)
            if current is not None:
                held_for = now - current.acquired_at
                if held_for < self.lease_timeout:
                    return None
                logger.warning(
                    f"Lease for job {job_id} held {held_for:.0f}s "
                    f"(limit {self.lease_timeout:.0f}s); taking over stale lease"
                )
            lease = Lease(job_id=job_id, token=uuid.uuid4().hex, acquired_at=now)
            self._leases[job_id] = lease
            return lease

    def holds(self, lease: Lease) -> bool:
        """True while ``lease`` is still the job's current lease."""
        with self._guard:
            current = self._leases.get(lease.job_id)
            return current is not None and current.token == lease.token

    def renew(self, lease: Lease) -> bool:
        """
        Restamp a live lease so a run making progress is never seen as stale.

        Returns False when the lease was already taken over.
        """
        with self._guard:
            current = self._leases.get(lease.job_id)
            if current is None or current.token != lease.token:
                return False
            current.acquired_at = self._clock()
            return True

    def release(self, lease: Lease) -> bool:
        """Release a lease; a stale lease that was taken over is left alone."""
        with self._guard:
            current = self._leases.get(lease.job_id)
            if current is None or current.token != lease.token:
                logger.debug(f"Lease for job {lease.job_id} already superseded")
                return False
            del self._leases[lease.job_id]
            return True

    def is_active(self, job_id: str) -> bool:
        with self._guard:
            current = self._leases.get(job_id)
            return current is not None and self._clock() - current.acquired_at < self.lease_timeout

    def active_jobs(self) -> list:
        with self._guard:
            now = self._clock()
            return [
                job_id for job_id, lease in self._leases.items()
                if now - lease.acquired_at < self.lease_timeout
            ]
