"""
Retry classification and per-run attempt tracking.

``is_retryable`` decides whether a failure value looks transient. ``RetryQueue``
counts attempts per scene and decides, after each failure, whether the scene
goes back on the worklist or is abandoned. ``retry_async_call`` is the
exponential-backoff helper used for store reads.
"""

import asyncio
import random
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple, TypeVar

from sceneflow.core.exceptions import (
    EnrichmentError,
    ExhaustedRetryError,
    TerminalRemoteError,
    TransientRemoteError,
)
from sceneflow.core.logging_config import get_logger

logger = get_logger("core.retry")

T = TypeVar("T")

RetryClassifier = Callable[[Any], bool]

TRANSIENT_STATUS_CODES = (429, 503)

# "HTTP 429", "status: 503", "status code 429", or a message that starts with the code
_STATUS_PATTERN = re.compile(
    r"(?:\b(?:HTTP|status(?:[ _]?code)?)[\s:=]*|^\s*)(?:429|503)\b",
    re.IGNORECASE,
)
_TRANSIENT_PHRASES = ("rate limit", "temporarily unavailable")


def describe_error(error: Any) -> Optional[str]:
    """Render an error for matching, or None when it cannot be rendered."""
    try:
        return str(error)
    except Exception:
        return None


def _has_transient_status(error: Any) -> bool:
    try:
        return getattr(error, "status_code", None) in TRANSIENT_STATUS_CODES
    except Exception:
        return False


def is_retryable(error: Any) -> bool:
    """
    Classify a failure value as transient (True) or terminal (False).

    Transient signatures are a ``status_code`` of 429 or 503, the same codes
    in status context ("HTTP 429", "503 Service Unavailable"), "rate limit"
    and "temporarily unavailable" (case-insensitive). Bare digit runs inside
    identifiers do not count. Anything that cannot be rendered is terminal.
    Never raises.
    """
    if _has_transient_status(error):
        return True
    text = describe_error(error)
    if not text:
        return False
    if _STATUS_PATTERN.search(text):
        return True
    lowered = text.lower()
    return any(phrase in lowered for phrase in _TRANSIENT_PHRASES)


class RetryAction(Enum):
    """What to do with a scene after a failed attempt."""
    RETRY = "retry"
    ABANDON = "abandon"


@dataclass
class RetryDecision:
    """Outcome of evaluating one failure."""
    action: RetryAction
    error: EnrichmentError

    @property
    def should_retry(self) -> bool:
        return self.action == RetryAction.RETRY


class RetryQueue:
    """
    Tracks attempts per scene for one orchestration run.

    Attempts are counted when a call is issued (``record_attempt``). After a
    failure, ``evaluate`` re-admits the scene while attempts are below
    ``max_attempts`` and the classifier says the failure is transient.
    """

    def __init__(
        self,
        max_attempts: int = 4,
        backoff_seconds: float = 3.0,
        classifier: RetryClassifier = is_retryable,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.max_attempts = max_attempts
        self.backoff_seconds = backoff_seconds
        self._classifier = classifier
        self._sleep = sleep
        self._attempts: Dict[str, int] = {}
        self.backoff_count = 0

    def record_attempt(self, item_id: str) -> int:
        """Count a new call for the scene and return its attempt number."""
        attempts = self._attempts.get(item_id, 0) + 1
        if attempts > self.max_attempts:
            raise RuntimeError(f"Scene '{item_id}' scheduled beyond {self.max_attempts} attempts")
        self._attempts[item_id] = attempts
        return attempts

    def attempts(self, item_id: str) -> int:
        return self._attempts.get(item_id, 0)

    def _classify(self, error: Any) -> bool:
        try:
            return bool(self._classifier(error))
        except Exception as e:
            logger.warning(f"Retry classifier raised {type(e).__name__}; treating failure as terminal")
            return False

    def evaluate(self, item_id: str, error: Any) -> RetryDecision:
        """Decide whether a failed scene is re-admitted or abandoned."""
        attempts = self.attempts(item_id)

        if not self._classify(error):
            terminal = TerminalRemoteError(item_id, error, attempts)
            logger.error(f"Terminal failure, abandoning: {terminal}")
            return RetryDecision(RetryAction.ABANDON, terminal)

        if attempts >= self.max_attempts:
            exhausted = ExhaustedRetryError(item_id, error, attempts)
            logger.error(f"Retries exhausted, abandoning: {exhausted}")
            return RetryDecision(RetryAction.ABANDON, exhausted)

        transient = TransientRemoteError(item_id, error, attempts)
        logger.warning(
            f"Attempt {attempts}/{self.max_attempts} for scene '{item_id}' failed "
            f"with a transient error, re-queued: {error}"
        )
        return RetryDecision(RetryAction.RETRY, transient)

    async def backoff(self) -> None:
        """Pay the fixed delay once before the wave that follows a retry."""
        self.backoff_count += 1
        logger.info(f"Backing off {self.backoff_seconds:.1f}s before next wave")
        await self._sleep(self.backoff_seconds)


@dataclass
class BackoffConfig:
    """Configuration for exponential backoff on store reads."""
    max_retries: int = 3
    base_delay: float = 1.0  # Base delay in seconds
    max_delay: float = 30.0  # Maximum delay in seconds
    exponential_base: float = 2.0
    jitter: bool = True
    jitter_range: Tuple[float, float] = (0.75, 1.25)


def calculate_delay(attempt: int, config: BackoffConfig) -> float:
    """
    Calculate delay before next retry attempt.

    Args:
        attempt: Current attempt number (0-indexed)
        config: Backoff configuration

    Returns:
        Delay in seconds before next attempt
    """
    delay = config.base_delay * (config.exponential_base ** attempt)
    delay = min(delay, config.max_delay)

    if config.jitter:
        delay *= random.uniform(*config.jitter_range)

    return delay


async def retry_async_call(
    func: Callable[..., Awaitable[T]],
    *args: Any,
    config: Optional[BackoffConfig] = None,
    classifier: RetryClassifier = is_retryable,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    **kwargs: Any
) -> T:
    """
    Retry an async call with exponential backoff while failures are transient.

    Non-transient exceptions propagate immediately; the last transient
    exception propagates once retries run out.
    """
    config = config or BackoffConfig()

    for attempt in range(config.max_retries + 1):
        try:
            return await func(*args, **kwargs)
        except Exception as e:
            if attempt >= config.max_retries or not classifier(e):
                raise
            delay = calculate_delay(attempt, config)
            logger.warning(
                f"Attempt {attempt + 1}/{config.max_retries + 1} failed: {e}. "
                f"Retrying in {delay:.2f}s..."
            )
            await sleep(delay)

    raise RuntimeError("Retry logic failed unexpectedly")
