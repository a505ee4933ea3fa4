"""Test report types and formatting."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from testflow_core.types.common import ReportId, Timestamp


@dataclass(frozen=True)
class TestFailure:
    """One failed test within a report.

    Attributes:
        test_id: Identifier of the failed test.
        test_title: Title of the failed test.
        error: Error message of the final attempt.
        requirements: Requirement identifiers the test verifies.
        agent_role: Role that authored the test.
        stack_trace: Formatted traceback, if the failure was raised.
    """

    __test__ = False

    test_id: str
    test_title: str
    error: str
    requirements: tuple[str, ...] = ()
    agent_role: str = ""
    stack_trace: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "test_id": self.test_id,
            "test_title": self.test_title,
            "error": self.error,
            "requirements": list(self.requirements),
            "agent_role": self.agent_role,
        }


def format_summary(passed: int, total: int) -> str:
    """Return the human summary line for a batch.

    Args:
        passed: Number of passed tests.
        total: Number of tests in the batch.

    Returns:
        A string like "1/2 tests passed (50.0%)".
    """
    rate = (passed / total * 100) if total else 0.0
    return f"{passed}/{total} tests passed ({rate:.1f}%)"


@dataclass(frozen=True)
class TestReport:
    """Aggregate report for one executed batch.

    Attributes:
        id: Report identifier.
        timestamp: When the batch finished.
        total_tests: Number of tests submitted in the batch.
        passed: Number of passed tests.
        failed: Number of failed tests.
        skipped: Number of skipped tests.
        duration_ms: Wall-clock time for the whole batch.
        coverage: Mean coverage over tests that reported one (0 if none did).
        failures: Failed tests in recording order.
        summary: Human-readable summary line.
    """

    __test__ = False

    id: ReportId
    timestamp: Timestamp
    total_tests: int
    passed: int
    failed: int
    skipped: int
    duration_ms: float
    coverage: float
    failures: tuple[TestFailure, ...] = field(default_factory=tuple)
    summary: str = ""

    @property
    def all_passed(self) -> bool:
        """Return True if no test failed."""
        return self.failed == 0

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "id": self.id,
            "timestamp": self.timestamp.isoformat(),
            "total_tests": self.total_tests,
            "passed": self.passed,
            "failed": self.failed,
            "skipped": self.skipped,
            "duration_ms": self.duration_ms,
            "coverage": self.coverage,
            "failures": [f.to_dict() for f in self.failures],
            "summary": self.summary,
        }


def format_detailed_report(report: TestReport) -> str:
    """Format a report as multi-line text for logs.

    Args:
        report: The report to format.

    Returns:
        The formatted report.
    """
    lines = [
        f"Test Report: {report.id}",
        f"Timestamp: {report.timestamp.isoformat()}",
        f"Duration: {report.duration_ms:.0f}ms",
        f"Coverage: {report.coverage:.1f}%",
        f"Summary: {report.summary}",
    ]

    if report.failures:
        lines.append("")
        lines.append("FAILURES:")
        for failure in report.failures:
            lines.append(f"- {failure.test_title} ({failure.agent_role})")
            lines.append(f"  Requirements: {', '.join(failure.requirements)}")
            lines.append(f"  Error: {failure.error}")
            if failure.stack_trace:
                lines.append(f"  Stack: {failure.stack_trace}")

    return "\n".join(lines)
