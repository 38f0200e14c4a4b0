"""Environment-driven settings for a Taskflow session."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

ENV_PREFIX = "TASKFLOW_"


def _truthy_env(value: Optional[str], default: bool) -> bool:
    if value is None:
        return default
    return value.strip().lower() not in {"0", "false", "no", "off", ""}


def _int_env(env: Mapping[str, str], name: str, default: Optional[int]) -> Optional[int]:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"Environment variable {name} must be an integer, got '{raw}'")


def _float_env(env: Mapping[str, str], name: str, default: float) -> float:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"Environment variable {name} must be a number, got '{raw}'")


@dataclass(slots=True)
class Settings:
    """Runtime configuration.

    Failure injection is off by default and switched on with
    ``TASKFLOW_SIMULATE_FAILURES``.
    """

    log_level: str = "INFO"
    log_file: Optional[Path] = None
    simulate_failures: bool = False
    latency_scale: float = 0.0
    random_seed: Optional[int] = None
    recent_limit: int = 10
    load_sample_data: bool = False

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "Settings":
        env = os.environ if env is None else env

        log_file = env.get(f"{ENV_PREFIX}LOG_FILE")
        settings = cls(
            log_level=env.get(f"{ENV_PREFIX}LOG_LEVEL", "INFO").upper(),
            log_file=Path(log_file).expanduser() if log_file else None,
            simulate_failures=_truthy_env(env.get(f"{ENV_PREFIX}SIMULATE_FAILURES"), False),
            latency_scale=_float_env(env, f"{ENV_PREFIX}LATENCY_SCALE", 0.0),
            random_seed=_int_env(env, f"{ENV_PREFIX}RANDOM_SEED", None),
            recent_limit=_int_env(env, f"{ENV_PREFIX}RECENT_LIMIT", 10),
            load_sample_data=_truthy_env(env.get(f"{ENV_PREFIX}LOAD_SAMPLE_DATA"), False),
        )
        settings.validate()
        return settings

    def validate(self) -> None:
        if self.log_level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Invalid log level: {self.log_level}")
        if self.latency_scale < 0:
            raise ValueError("Latency scale cannot be negative")
        if self.recent_limit < 1:
            raise ValueError("Recent limit must be at least 1")
