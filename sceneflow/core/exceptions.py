"""
Sceneflow Custom Exceptions

Exception classes for error handling throughout the enrichment orchestrator.
"""

from typing import Optional


class SceneflowError(Exception):
    """Base exception for all Sceneflow errors."""

    def __init__(self, message: str, details: dict = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self):
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


# =============================================================================
# CONFIGURATION ERRORS
# =============================================================================

class ConfigurationError(SceneflowError):
    """Raised when there's an issue with configuration."""
    pass


class InvalidConfigError(ConfigurationError):
    """Raised when a configuration value is invalid."""
    pass


# =============================================================================
# REMOTE CALL ERRORS
# =============================================================================

class RemoteCallError(SceneflowError):
    """Raised when an edge function call fails or returns a non-2xx status."""

    def __init__(self, function: str, message: str, status_code: Optional[int] = None):
        self.function = function
        self.status_code = status_code
        super().__init__(message, {"function": function})

    def __str__(self):
        if self.status_code is not None:
            return f"HTTP {self.status_code}: {self.message}"
        return self.message


class StoreError(SceneflowError):
    """Raised when the scene store cannot be queried."""
    pass


# =============================================================================
# ENRICHMENT ERRORS
# =============================================================================

class EnrichmentError(SceneflowError):
    """Base exception for per-item enrichment failures."""

    def __init__(self, item_id: str, cause: object, attempts: int):
        self.item_id = item_id
        self.cause = cause
        self.attempts = attempts
        message = f"Scene '{item_id}' failed on attempt {attempts}: {_render(cause)}"
        super().__init__(message)


class TransientRemoteError(EnrichmentError):
    """A failure classified as retryable; recovered locally via backoff and retry."""
    pass


class TerminalRemoteError(EnrichmentError):
    """A non-transient failure; the item is abandoned without retry."""
    pass


class ExhaustedRetryError(TerminalRemoteError):
    """A transient failure that reached the attempt cap."""

    def __init__(self, item_id: str, cause: object, attempts: int):
        super().__init__(item_id, cause, attempts)
        self.message = f"Scene '{item_id}' exhausted {attempts} attempts: {_render(cause)}"


class CancelledRunError(TerminalRemoteError):
    """Recorded for items still waiting when the job was cancelled."""

    def __init__(self, item_id: str, attempts: int):
        super().__init__(item_id, "job cancelled before the item was scheduled", attempts)


# =============================================================================
# COMPLETION CHAIN ERRORS
# =============================================================================

class ChainStepError(SceneflowError):
    """Raised when Finalize or Secondary Analysis fails."""

    def __init__(self, step: str, job_id: str, cause: object):
        self.step = step
        self.job_id = job_id
        self.cause = cause
        message = f"Completion step '{step}' failed for job '{job_id}': {_render(cause)}"
        super().__init__(message, {"step": step, "job_id": job_id})


def _render(cause: object) -> str:
    try:
        return str(cause)
    except Exception:
        return f"<unrenderable {type(cause).__name__}>"
