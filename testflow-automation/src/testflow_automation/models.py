"""Automation configuration, trigger and report types."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from testflow_core.types.common import Timestamp

from testflow_runner.report import TestFailure, TestReport


class TriggerType(str, Enum):
    """Kind of event a trigger reacts to."""

    FILE_CHANGE = "file_change"
    GIT_COMMIT = "git_commit"
    PULL_REQUEST = "pull_request"
    SCHEDULED = "scheduled"
    MANUAL = "manual"


def _str_tuple(value: Any, name: str) -> tuple[str, ...]:
    """Return a list of strings from a YAML value as a tuple."""
    if isinstance(value, str) or not isinstance(value, (list, tuple)):
        raise ValueError(f"{name} must be a list of strings, got {value!r}")
    if not all(isinstance(item, str) for item in value):
        raise ValueError(f"{name} must be a list of strings, got {value!r}")
    return tuple(value)


@dataclass(frozen=True)
class AutomationConfig:
    """Configuration for the automation engine.

    Attributes:
        watch_patterns: Glob patterns an external file watcher should observe.
        exclude_patterns: Glob patterns for files that never select tests.
        coverage_threshold: Minimum batch coverage for deployment readiness.
        slack_notifications: Emit the "Slack notification:" summary line.
        webhook_url: Optional URL that receives every notification line.
    """

    watch_patterns: tuple[str, ...] = ("src/**/*.py", "tests/**/*.py")
    exclude_patterns: tuple[str, ...] = ("**/__pycache__/**", "**/.venv/**")
    coverage_threshold: float = 80.0
    slack_notifications: bool = True
    webhook_url: str | None = None

    def __post_init__(self) -> None:
        """Validate configuration."""
        threshold = self.coverage_threshold
        if isinstance(threshold, bool) or not isinstance(threshold, (int, float)):
            raise ValueError(f"coverage_threshold must be a number, got {threshold!r}")
        if not isinstance(self.slack_notifications, bool):
            raise ValueError(
                f"slack_notifications must be true or false, got {self.slack_notifications!r}"
            )
        if self.webhook_url is not None and not isinstance(self.webhook_url, str):
            raise ValueError(f"webhook_url must be a string, got {self.webhook_url!r}")
        if not 0 <= threshold <= 100:
            raise ValueError("coverage_threshold must be between 0 and 100")

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AutomationConfig:
        """Create config from a mapping, e.g. a YAML section.

        Args:
            data: Mapping of field names to values.

        Returns:
            AutomationConfig instance.

        Raises:
            ValueError: If a key is unknown or a value is invalid.
        """
        unknown = set(data) - set(cls.__dataclass_fields__)
        if unknown:
            raise ValueError(f"Unknown automation option(s): {', '.join(sorted(unknown))}")

        values = dict(data)
        for key in ("watch_patterns", "exclude_patterns"):
            if key in values:
                values[key] = _str_tuple(values[key], key)
        return cls(**values)


@dataclass(frozen=True)
class TestTrigger:
    """A named binding from an event to the test suites it runs.

    Attributes:
        id: Unique trigger identifier.
        type: Kind of event.
        patterns: Glob patterns of files the trigger cares about.
        test_suites: Names of the suites to run.
        enabled: Disabled triggers refuse to execute.
    """

    __test__ = False

    id: str
    type: TriggerType
    patterns: tuple[str, ...] = ("**/*",)
    test_suites: tuple[str, ...] = ()
    enabled: bool = True

    def __post_init__(self) -> None:
        """Normalize field types."""
        object.__setattr__(self, "type", TriggerType(self.type))
        object.__setattr__(self, "patterns", tuple(self.patterns))
        object.__setattr__(self, "test_suites", tuple(self.test_suites))

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TestTrigger:
        """Create a trigger from a mapping.

        Args:
            data: Mapping with ``id`` and ``type`` plus optional ``patterns``,
                ``test_suites`` and ``enabled``.

        Returns:
            TestTrigger instance.

        Raises:
            ValueError: If a required field is missing or the type is unknown.
        """
        for key in ("id", "type"):
            if key not in data:
                raise ValueError(f"Trigger missing '{key}' field")
        enabled = data.get("enabled", True)
        if not isinstance(enabled, bool):
            raise ValueError(f"enabled must be true or false, got {enabled!r}")
        return cls(
            id=str(data["id"]),
            type=TriggerType(data["type"]),
            patterns=_str_tuple(data.get("patterns", ["**/*"]), "patterns"),
            test_suites=_str_tuple(data.get("test_suites", []), "test_suites"),
            enabled=enabled,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "id": self.id,
            "type": self.type.value,
            "patterns": list(self.patterns),
            "test_suites": list(self.test_suites),
            "enabled": self.enabled,
        }


def default_triggers() -> list[TestTrigger]:
    """Return the triggers every automation engine starts with."""
    return [
        TestTrigger(
            id="file_change",
            type=TriggerType.FILE_CHANGE,
            patterns=("src/**/*.py", "tests/**/*.py"),
            test_suites=("unit", "integration"),
        ),
        TestTrigger(
            id="git_commit",
            type=TriggerType.GIT_COMMIT,
            test_suites=("unit", "integration", "e2e"),
        ),
        TestTrigger(
            id="pull_request",
            type=TriggerType.PULL_REQUEST,
            test_suites=("unit", "integration", "e2e"),
        ),
        TestTrigger(
            id="nightly",
            type=TriggerType.SCHEDULED,
            test_suites=("unit", "integration", "e2e", "performance", "security"),
        ),
    ]


@dataclass(frozen=True)
class AutomationReport:
    """Outcome of one automation run with its deployment verdict.

    Attributes:
        id: Report identifier.
        trigger_id: Trigger that produced the run ("all_missions" for mission runs).
        timestamp: When the run finished.
        duration_ms: Wall-clock time for the run.
        total_tests: Number of tests (or missions) in the run.
        passed: Number passed.
        failed: Number failed.
        skipped: Number skipped.
        coverage: Batch coverage (0 for mission runs).
        failures: Failed tests (or missions).
        summary: Human-readable summary line.
        deployment_ready: True if the run allows deployment.
        approval_required: True if a human must approve before deployment.
        test_reports: Underlying execution engine reports.
    """

    id: str
    trigger_id: str
    timestamp: Timestamp
    duration_ms: float
    total_tests: int
    passed: int
    failed: int
    skipped: int
    coverage: float
    failures: tuple[TestFailure, ...]
    summary: str
    deployment_ready: bool
    approval_required: bool
    test_reports: tuple[TestReport, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "id": self.id,
            "trigger_id": self.trigger_id,
            "timestamp": self.timestamp.isoformat(),
            "duration_ms": self.duration_ms,
            "total_tests": self.total_tests,
            "passed": self.passed,
            "failed": self.failed,
            "skipped": self.skipped,
            "coverage": self.coverage,
            "failures": [f.to_dict() for f in self.failures],
            "summary": self.summary,
            "deployment_ready": self.deployment_ready,
            "approval_required": self.approval_required,
            "test_reports": [r.to_dict() for r in self.test_reports],
        }
