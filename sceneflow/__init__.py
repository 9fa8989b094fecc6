"""
Sceneflow - Scene Enrichment Orchestrator

Drives per-scene AI enrichment for film pre-production script analyses:
bounded-concurrency waves, selective retry of transient failures,
resumption from persisted completion flags, a best-effort completion chain,
and a phase-gated progress estimate.

Version: 1.0.0
"""

__version__ = "1.0.0"
__author__ = "Sceneflow Team"
__project__ = "Sceneflow"

from pathlib import Path

# Load environment variables early - before settings are read
from sceneflow.core.env_loader import ensure_env_loaded
ensure_env_loaded()

# Package root directory
PACKAGE_ROOT = Path(__file__).parent
PROJECT_ROOT = PACKAGE_ROOT.parent

__all__ = [
    "__version__",
    "__author__",
    "__project__",
    "PACKAGE_ROOT",
    "PROJECT_ROOT",
]
