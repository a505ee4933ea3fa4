"""Core library for test orchestration.

This package provides the foundational data types, collaborator interfaces,
and error types shared by the testflow packages. It has no third-party
dependencies so that it can serve as the base layer for all of them.

Key components:
    - Types: identifiers, TestType/TestStatus, Timestamp, TestDefinition,
      TestSpec, ExecutionResult.
    - Interfaces: TestRunner, TestCodeExecutor and Notifier protocols.
    - Errors: Hierarchy of exception types rooted at TestflowError.

Example:
    >>> from testflow_core import TestDefinition, TestType
    >>> test = TestDefinition(type=TestType.UNIT, title="Login rejects bad password")
    >>> test.status
    <TestStatus.PENDING: 'pending'>
"""

from testflow_core.errors import (
    AlreadyRunningError,
    DuplicateApprovalError,
    GateClosedError,
    NoSuitableRunnerError,
    NotFoundError,
    StageFailedError,
    TestflowError,
    TestTimeoutError,
    TriggerDisabledError,
    UnauthorizedApproverError,
)
from testflow_core.interfaces import CodeOutcome, Notifier, TestCodeExecutor, TestRunner
from testflow_core.types import (
    ExecutionResult,
    MissionId,
    ReportId,
    SuiteId,
    TestDefinition,
    TestId,
    TestSpec,
    TestStatus,
    TestType,
    Timestamp,
    new_id,
)

__all__ = [
    # Errors
    "AlreadyRunningError",
    "DuplicateApprovalError",
    "GateClosedError",
    "NoSuitableRunnerError",
    "NotFoundError",
    "StageFailedError",
    "TestflowError",
    "TestTimeoutError",
    "TriggerDisabledError",
    "UnauthorizedApproverError",
    # Interfaces
    "CodeOutcome",
    "Notifier",
    "TestCodeExecutor",
    "TestRunner",
    # Types
    "ExecutionResult",
    "MissionId",
    "ReportId",
    "SuiteId",
    "TestDefinition",
    "TestId",
    "TestSpec",
    "TestStatus",
    "TestType",
    "Timestamp",
    "new_id",
]
