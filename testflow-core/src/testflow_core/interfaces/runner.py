"""Test runner interfaces.

This module defines the protocols for the two ways a test's payload gets
executed:

- TestRunner: a named, pluggable executor declaring the test types it
  supports. The execution engine picks the first registered runner whose
  supported types contain the test's type.
- TestCodeExecutor: the low-level callable used by the hierarchical
  framework to run a single test's payload.

Protocols:
    TestRunner: Type-capable executor producing ExecutionResult values.
    TestCodeExecutor: Payload executor producing CodeOutcome values.
"""

# pylint: disable=unnecessary-ellipsis  # Ellipsis required for Protocol method stubs

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from testflow_core.types.common import TestType
from testflow_core.types.definition import ExecutionResult, TestDefinition


class TestRunner(Protocol):
    """Protocol for pluggable test runners.

    Implementations may raise from ``execute``; the execution engine retries
    and converts the final exception into a failed result.
    """

    @property
    def name(self) -> str:
        """Return the runner's unique name."""
        ...

    @property
    def supported_types(self) -> frozenset[TestType]:
        """Return the test types this runner can execute."""
        ...

    def supports(self, test_type: TestType) -> bool:
        """Check whether this runner can execute tests of the given type.

        Args:
            test_type: The test type to check.

        Returns:
            True if the type is supported.
        """
        ...

    async def execute(self, test: TestDefinition) -> ExecutionResult:
        """Execute one test.

        Args:
            test: The test definition to run.

        Returns:
            The execution result.
        """
        ...


@dataclass(frozen=True)
class CodeOutcome:
    """Raw outcome of running a test payload.

    Attributes:
        success: True if the payload passed.
        coverage: Optional coverage percentage.
        logs: Captured log lines.
        error: Error message for a failure.
    """

    success: bool
    coverage: float | None = None
    logs: tuple[str, ...] = ()
    error: str | None = None


class TestCodeExecutor(Protocol):
    """Protocol for the low-level executor of a test's payload."""

    async def __call__(self, test_code: str) -> CodeOutcome:
        """Run a test payload.

        Args:
            test_code: The opaque executable payload of a test definition.

        Returns:
            The raw outcome.
        """
        ...
