"""
Provisioning configuration.

Operational knobs for dependency fetching and logging. File layout names
(template.yaml, modules.yaml, ...) are fixed and live in
``modelforge.records.builder``.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field

ENV_PREFIX = "MODELFORGE_"


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(ENV_PREFIX + name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError as e:
        raise ValueError(f"{ENV_PREFIX}{name} must be an integer, got {raw!r}") from e


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(ENV_PREFIX + name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError as e:
        raise ValueError(f"{ENV_PREFIX}{name} must be a number, got {raw!r}") from e


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(ENV_PREFIX + name)
    if raw is None or not raw.strip():
        return default
    value = raw.strip().lower()
    if value in ("1", "true", "yes", "on"):
        return True
    if value in ("0", "false", "no", "off"):
        return False
    raise ValueError(f"{ENV_PREFIX}{name} must be a boolean, got {raw!r}")


@dataclass
class FetchConfig:
    """Remote dependency download settings."""

    max_attempts: int = 10
    request_timeout_s: float = 300.0
    chunk_size: int = 64 * 1024
    max_concurrent: int = 4

    # Exponential backoff between attempts
    backoff_base_ms: int = 500
    backoff_max_ms: int = 30_000
    backoff_jitter: float = 0.5  # 0.5 = +-50%

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {self.max_attempts}")
        if self.request_timeout_s <= 0:
            raise ValueError(f"request_timeout_s must be > 0, got {self.request_timeout_s}")
        if self.chunk_size < 1:
            raise ValueError(f"chunk_size must be >= 1, got {self.chunk_size}")
        if self.max_concurrent < 1:
            raise ValueError(f"max_concurrent must be >= 1, got {self.max_concurrent}")
        if self.backoff_base_ms < 0 or self.backoff_max_ms < 0:
            raise ValueError("backoff delays must be >= 0")
        if not 0.0 <= self.backoff_jitter < 1.0:
            raise ValueError(f"backoff_jitter must be in [0, 1), got {self.backoff_jitter}")


@dataclass
class ProvisionConfig:
    """Top-level configuration for a provisioning process."""

    fetch: FetchConfig = field(default_factory=FetchConfig)
    log_level: str = "INFO"
    log_json: bool = True

    def __post_init__(self) -> None:
        level = self.log_level.upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"Unknown log level: {self.log_level!r}")
        self.log_level = level

    @classmethod
    def from_env(cls) -> ProvisionConfig:
        """Build configuration from MODELFORGE_* environment variables."""
        defaults = FetchConfig()
        fetch = FetchConfig(
            max_attempts=_env_int("FETCH_MAX_ATTEMPTS", defaults.max_attempts),
            request_timeout_s=_env_float("FETCH_TIMEOUT_S", defaults.request_timeout_s),
            max_concurrent=_env_int("FETCH_MAX_CONCURRENT", defaults.max_concurrent),
        )
        return cls(
            fetch=fetch,
            log_level=os.environ.get(ENV_PREFIX + "LOG_LEVEL", "INFO"),
            log_json=_env_bool("LOG_JSON", True),
        )
