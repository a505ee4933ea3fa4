"""Configuration for the test execution engine."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class EngineConfig:
    """Configuration for batch test execution.

    Attributes:
        max_retries: Total attempts per test when the runner raises (initial attempt included).
        timeout_ms: Deadline for a single runner attempt, in milliseconds.
        parallel_execution: Dispatch all tests of a batch concurrently.
        fail_fast: In sequential mode, stop dispatching after the first failure.
        reporting_enabled: Log a detailed report after each batch.
        retry_delay_ms: Base back-off before a retry; attempt n waits n times this value.
    """

    max_retries: int = 3
    timeout_ms: float = 30_000
    parallel_execution: bool = False
    fail_fast: bool = True
    reporting_enabled: bool = True
    retry_delay_ms: float = 100

    def __post_init__(self) -> None:
        """Validate configuration."""
        if isinstance(self.max_retries, bool) or not isinstance(self.max_retries, int):
            raise ValueError(f"max_retries must be an integer, got {self.max_retries!r}")
        for name in ("timeout_ms", "retry_delay_ms"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise ValueError(f"{name} must be a number, got {value!r}")
        for name in ("parallel_execution", "fail_fast", "reporting_enabled"):
            if not isinstance(getattr(self, name), bool):
                raise ValueError(f"{name} must be true or false, got {getattr(self, name)!r}")
        if self.max_retries < 1:
            raise ValueError("max_retries must be at least 1")
        if self.timeout_ms <= 0:
            raise ValueError("timeout_ms must be positive")
        if self.retry_delay_ms < 0:
            raise ValueError("retry_delay_ms must not be negative")

    @property
    def timeout_seconds(self) -> float:
        """Return the per-attempt deadline in seconds."""
        return self.timeout_ms / 1000

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> EngineConfig:
        """Create config from a mapping, e.g. a YAML section.

        Unknown keys are rejected.

        Args:
            data: Mapping of field names to values.

        Returns:
            EngineConfig instance.

        Raises:
            ValueError: If a key is unknown or a value is invalid.
        """
        known = set(cls.__dataclass_fields__)
        unknown = set(data) - known
        if unknown:
            raise ValueError(f"Unknown engine option(s): {', '.join(sorted(unknown))}")
        return cls(**data)
