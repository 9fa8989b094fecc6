"""
Sceneflow Core Module

Configuration, settings, constants, exceptions, logging and retry policy.
"""

from .config import OrchestratorConfig, load_config, save_config
from .constants import *
from .exceptions import *
from .logging_config import setup_logging, get_logger
from .retry import RetryQueue, is_retryable

__all__ = [
    'OrchestratorConfig',
    'load_config',
    'save_config',
    'setup_logging',
    'get_logger',
    'RetryQueue',
    'is_retryable',
]
