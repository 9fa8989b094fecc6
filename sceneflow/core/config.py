"""
Sceneflow Configuration Management

Orchestration tuning loaded from JSON, with validation.
"""

import json
from dataclasses import dataclass, asdict
from pathlib import Path
from typing import Any, Dict, Optional, Union

from .exceptions import ConfigurationError, InvalidConfigError


@dataclass
class OrchestratorConfig:
    """Tuning for waves, retries, the completion chain and progress estimates."""

    # Batch scheduler
    concurrency: int = 5
    max_attempts: int = 4
    backoff_seconds: float = 3.0

    # Single-flight and completion chain
    lock_timeout_seconds: float = 900.0
    chain_step_timeout_seconds: float = 300.0

    # Progress estimator
    early_phase_steps: int = 3
    early_step_seconds: float = 3.0
    eta_min_completed: int = 3

    def __post_init__(self):
        self.validate()

    def validate(self) -> None:
        """Raise InvalidConfigError when a value is out of range."""
        if self.concurrency < 1:
            raise InvalidConfigError(f"concurrency must be >= 1, got {self.concurrency}")
        if self.max_attempts < 1:
            raise InvalidConfigError(f"max_attempts must be >= 1, got {self.max_attempts}")
        if self.backoff_seconds < 0:
            raise InvalidConfigError(f"backoff_seconds must be >= 0, got {self.backoff_seconds}")
        if self.lock_timeout_seconds <= 0:
            raise InvalidConfigError("lock_timeout_seconds must be positive")
        if self.chain_step_timeout_seconds <= 0:
            raise InvalidConfigError("chain_step_timeout_seconds must be positive")
        if self.early_phase_steps < 1 or self.early_step_seconds <= 0:
            raise InvalidConfigError("early phase needs at least one step of positive duration")

    @property
    def early_phase_seconds(self) -> float:
        return self.early_phase_steps * self.early_step_seconds

    @classmethod
    def from_dict(cls, data: dict) -> 'OrchestratorConfig':
        """Create OrchestratorConfig from dictionary, ignoring unknown keys."""
        defaults = cls()
        return cls(
            concurrency=int(data.get('concurrency', defaults.concurrency)),
            max_attempts=int(data.get('max_attempts', defaults.max_attempts)),
            backoff_seconds=float(data.get('backoff_seconds', defaults.backoff_seconds)),
            lock_timeout_seconds=float(data.get('lock_timeout_seconds', defaults.lock_timeout_seconds)),
            chain_step_timeout_seconds=float(
                data.get('chain_step_timeout_seconds', defaults.chain_step_timeout_seconds)
            ),
            early_phase_steps=int(data.get('early_phase_steps', defaults.early_phase_steps)),
            early_step_seconds=float(data.get('early_step_seconds', defaults.early_step_seconds)),
            eta_min_completed=int(data.get('eta_min_completed', defaults.eta_min_completed)),
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def load_config(config_path: Union[str, Path, None] = None) -> OrchestratorConfig:
    """
    Load configuration from JSON file.

    Args:
        config_path: Path to configuration file. If None, uses default.

    Returns:
        Loaded OrchestratorConfig instance
    """
    if config_path is None:
        config_path = Path("config/sceneflow_config.json")
    config_path = Path(config_path)

    if not config_path.exists():
        return OrchestratorConfig()

    try:
        with open(config_path, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise InvalidConfigError(f"Invalid JSON in config file: {e}")
    except OSError as e:
        raise ConfigurationError(f"Failed to load config: {e}")

    if not isinstance(data, dict):
        raise InvalidConfigError("Config file must contain a JSON object")

    try:
        return OrchestratorConfig.from_dict(data)
    except (TypeError, ValueError) as e:
        raise InvalidConfigError(f"Invalid value in config file: {e}")


def save_config(config: OrchestratorConfig, config_path: Union[str, Path]) -> None:
    """Save configuration to a JSON file."""
    config_path = Path(config_path)
    config_path.parent.mkdir(parents=True, exist_ok=True)
    with open(config_path, 'w', encoding='utf-8') as f:
        json.dump(config.to_dict(), f, indent=2)


# Global config instance
_config: Optional[OrchestratorConfig] = None


def get_config() -> OrchestratorConfig:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def set_config(config: OrchestratorConfig) -> None:
    """Set the global configuration instance."""
    global _config
    _config = config
