"""Exception types for testflow-core.

This module defines the exception hierarchy used throughout the testflow
packages. All testflow exceptions inherit from TestflowError, allowing
consumers to catch all framework-specific errors with a single except clause.

Structural errors (bad identifiers, disabled triggers, approval policy
violations) are raised to the caller. Failures local to a single test
(no runner, timeout, a test's own code raising) are converted into failed
execution results and never escape a batch.

Exception hierarchy:
    TestflowError (base)
    +-- NotFoundError: Unknown mission/suite/trigger/gate/execution/environment
    +-- TriggerDisabledError: Trigger exists but is disabled
    +-- AlreadyRunningError: Engine started twice
    +-- UnauthorizedApproverError: Approver not eligible for a gate
    +-- DuplicateApprovalError: Approver already decided on a gate
    +-- GateClosedError: Gate was cancelled with its execution
    +-- NoSuitableRunnerError: No registered runner supports a test type
    +-- TestTimeoutError: Runner did not finish before its deadline
    +-- StageFailedError: A pipeline stage could not complete
"""

from __future__ import annotations


class TestflowError(Exception):
    """Base exception for all testflow errors.

    This is the root of the testflow exception hierarchy. Catch this to handle
    any framework-specific error.
    """

    __test__ = False


class NotFoundError(TestflowError):
    """Raised when an identifier does not refer to a known object.

    Attributes:
        kind: What was looked up (e.g. "mission", "gate").
        identifier: The identifier that was not found.
    """

    def __init__(self, kind: str, identifier: str) -> None:
        super().__init__(f"{kind.capitalize()} {identifier} not found")
        self.kind = kind
        self.identifier = identifier


class TriggerDisabledError(TestflowError):
    """Raised when executing a trigger that exists but is disabled."""

    def __init__(self, trigger_id: str) -> None:
        super().__init__(f"Trigger {trigger_id} is disabled")
        self.trigger_id = trigger_id


class AlreadyRunningError(TestflowError):
    """Raised when starting an engine that is already running."""


class UnauthorizedApproverError(TestflowError):
    """Raised when a user outside a gate's eligible approver set decides on it."""

    def __init__(self, approver_id: str, gate_id: str) -> None:
        super().__init__(f"User {approver_id} is not authorized to approve gate {gate_id}")
        self.approver_id = approver_id
        self.gate_id = gate_id


class DuplicateApprovalError(TestflowError):
    """Raised when an approver records a second decision on the same gate."""

    def __init__(self, approver_id: str, gate_id: str) -> None:
        super().__init__(f"User {approver_id} has already provided a decision on gate {gate_id}")
        self.approver_id = approver_id
        self.gate_id = gate_id


class GateClosedError(TestflowError):
    """Raised when deciding on a gate whose execution was cancelled."""

    def __init__(self, gate_id: str) -> None:
        super().__init__(f"Gate {gate_id} is closed")
        self.gate_id = gate_id


class NoSuitableRunnerError(TestflowError):
    """Raised internally when no registered runner supports a test's type.

    The execution engine converts this into a failed test result.
    """


class TestTimeoutError(TestflowError):
    """Raised internally when a runner misses its deadline.

    The execution engine converts this into a failed test result whose
    error message contains "timed out".
    """

    def __init__(self, timeout_ms: float) -> None:
        super().__init__(f"Test execution timed out after {timeout_ms:g}ms")
        self.timeout_ms = timeout_ms


class StageFailedError(TestflowError):
    """Raised by a pipeline stage handler when the stage cannot complete."""
