"""Test definition and execution result types.

A TestDefinition is the leaf of the Mission -> Suite -> Test hierarchy. Its
``status`` and ``execution_result`` are the only fields mutated after
creation, and only by code that executes the test.

An ExecutionResult is immutable once produced and is attached to the test
definition it was produced for.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from testflow_core.types.common import TestId, TestStatus, TestType, Timestamp, new_id


@dataclass(frozen=True)
class ExecutionResult:
    """Outcome of executing one test.

    Attributes:
        success: True if the test passed.
        duration_ms: Execution time in milliseconds.
        coverage: Optional coverage percentage (0-100) reported by the runner.
        error: Error message for a failed test.
        logs: Log lines captured during execution.
        timestamp: When the result was produced.
        stack_trace: Optional formatted traceback for a failure raised as an exception.
    """

    success: bool
    duration_ms: float = 0.0
    coverage: float | None = None
    error: str | None = None
    logs: tuple[str, ...] = ()
    timestamp: Timestamp = field(default_factory=Timestamp.now)
    stack_trace: str | None = None

    @classmethod
    def failure(
        cls,
        error: str,
        duration_ms: float = 0.0,
        stack_trace: str | None = None,
    ) -> ExecutionResult:
        """Create a failed result with no coverage.

        Args:
            error: Error message to record.
            duration_ms: Time spent before the failure.
            stack_trace: Optional formatted traceback.

        Returns:
            A failed ExecutionResult.
        """
        return cls(success=False, duration_ms=duration_ms, error=error, stack_trace=stack_trace)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "success": self.success,
            "duration_ms": self.duration_ms,
            "coverage": self.coverage,
            "error": self.error,
            "logs": list(self.logs),
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass
class TestDefinition:
    """A single executable test.

    Attributes:
        type: Kind of test; selects the runner.
        title: Short human-readable title.
        description: Longer description of what is verified.
        agent_role: Role that authored the test ("Coordinator" or "Core").
        requirements: Requirement identifiers verified by this test.
        test_code: Opaque executable payload handed to runners.
        created_by: Identifier of the authoring agent.
        id: Unique test identifier.
        status: Current lifecycle status.
        created_at: Creation time.
        execution_result: Result of the most recent execution, if any.
    """

    __test__ = False

    type: TestType
    title: str
    description: str = ""
    agent_role: str = "Core"
    requirements: list[str] = field(default_factory=list)
    test_code: str = ""
    created_by: str = ""
    id: TestId = field(default_factory=lambda: TestId(new_id("test")))
    status: TestStatus = TestStatus.PENDING
    created_at: Timestamp = field(default_factory=Timestamp.now)
    execution_result: ExecutionResult | None = None

    def __post_init__(self) -> None:
        """Normalize the test type."""
        self.type = TestType(self.type)

    @property
    def passed(self) -> bool:
        """Return True if the test's last execution passed."""
        return self.status == TestStatus.PASSED

    def record_result(self, result: ExecutionResult) -> None:
        """Attach an execution result and derive the status from it.

        Args:
            result: The result produced for this test.
        """
        self.execution_result = result
        self.status = TestStatus.PASSED if result.success else TestStatus.FAILED

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "id": self.id,
            "type": self.type.value,
            "title": self.title,
            "description": self.description,
            "agent_role": self.agent_role,
            "requirements": list(self.requirements),
            "created_by": self.created_by,
            "status": self.status.value,
            "created_at": self.created_at.isoformat(),
            "execution_result": (
                self.execution_result.to_dict() if self.execution_result is not None else None
            ),
        }


@dataclass(frozen=True)
class TestSpec:
    """Author-supplied fields for a test added to a suite.

    The framework assigns the identifier, status and creation time.
    """

    __test__ = False

    type: TestType
    title: str
    description: str = ""
    agent_role: str = "Core"
    requirements: tuple[str, ...] = ()
    test_code: str = ""
    created_by: str = ""

    def build(self) -> TestDefinition:
        """Create a pending TestDefinition from this spec."""
        return TestDefinition(
            type=TestType(self.type),
            title=self.title,
            description=self.description,
            agent_role=self.agent_role,
            requirements=list(self.requirements),
            test_code=self.test_code,
            created_by=self.created_by,
        )
