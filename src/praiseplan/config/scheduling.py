"""Defaults for setlist commits and roster assignment checks."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal, cast

from .env import env_bool, env_float, env_int, optional_env_var
from .errors import ConfigurationError

type AssignmentScopeName = Literal["loaded", "service"]

DEFAULT_COMMIT_TIMEOUT_SECONDS = 10.0
DEFAULT_WRITE_CONCURRENCY = 1
_SCOPES: frozenset[str] = frozenset({"loaded", "service"})


@dataclass(frozen=True, slots=True)
class SchedulingConfig:
    commit_timeout_seconds: float = DEFAULT_COMMIT_TIMEOUT_SECONDS
    write_concurrency: int = DEFAULT_WRITE_CONCURRENCY
    prefer_transactions: bool = True
    assignment_scope: AssignmentScopeName = "loaded"

    def __post_init__(self) -> None:
        if self.commit_timeout_seconds <= 0:
            raise ConfigurationError("Commit timeout must be positive")
        if self.write_concurrency < 1:
            raise ConfigurationError("Write concurrency must be at least 1")
        if self.assignment_scope not in _SCOPES:
            raise ConfigurationError(f"Unknown assignment scope: {self.assignment_scope}")


def get_scheduling_config() -> SchedulingConfig:
    scope = (optional_env_var("PRAISEPLAN_ASSIGNMENT_SCOPE") or "loaded").lower()
    if scope not in _SCOPES:
        raise ConfigurationError(f"Unknown assignment scope: {scope}")
    return SchedulingConfig(
        commit_timeout_seconds=env_float(
            "PRAISEPLAN_COMMIT_TIMEOUT", DEFAULT_COMMIT_TIMEOUT_SECONDS
        ),
        write_concurrency=env_int("PRAISEPLAN_WRITE_CONCURRENCY", DEFAULT_WRITE_CONCURRENCY),
        prefer_transactions=env_bool("PRAISEPLAN_PREFER_TRANSACTIONS", default=True),
        assignment_scope=cast("AssignmentScopeName", scope),
    )
