"""Core data types for testflow.

Submodules:
    common: Identifiers, TestType, TestStatus, Timestamp
    definition: TestDefinition, TestSpec, ExecutionResult

All types are exported from this package for convenience.
"""

from testflow_core.types.common import (
    MissionId,
    ReportId,
    SuiteId,
    TestId,
    TestStatus,
    TestType,
    Timestamp,
    new_id,
)
from testflow_core.types.definition import ExecutionResult, TestDefinition, TestSpec

__all__ = [
    # Common
    "MissionId",
    "ReportId",
    "SuiteId",
    "TestId",
    "TestStatus",
    "TestType",
    "Timestamp",
    "new_id",
    # Definition
    "ExecutionResult",
    "TestDefinition",
    "TestSpec",
]
