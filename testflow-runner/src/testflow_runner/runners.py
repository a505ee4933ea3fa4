"""Test runner implementations.

Runners are registered with the execution engine in order; the first one
whose supported types contain a test's type executes it.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Awaitable, Callable, Iterable

from testflow_core.types.common import TestType
from testflow_core.types.definition import ExecutionResult, TestDefinition

logger = logging.getLogger(__name__)


# Type for an async test execution callback
ExecuteFunc = Callable[[TestDefinition], Awaitable[ExecutionResult]]


class FunctionRunner:
    """Runner that delegates execution to an async callable.

    Example:
        async def run_pytest(test: TestDefinition) -> ExecutionResult:
            ...

        runner = FunctionRunner("pytest", [TestType.UNIT, TestType.INTEGRATION], run_pytest)

    Args:
        name: Unique runner name.
        supported_types: Test types the runner accepts.
        execute_func: Callable that executes one test.
    """

    def __init__(
        self,
        name: str,
        supported_types: Iterable[TestType | str],
        execute_func: ExecuteFunc,
    ) -> None:
        self._name = name
        self._supported_types = frozenset(TestType(t) for t in supported_types)
        self._execute_func = execute_func

    @property
    def name(self) -> str:
        """Return the runner name."""
        return self._name

    @property
    def supported_types(self) -> frozenset[TestType]:
        """Return the supported test types."""
        return self._supported_types

    def supports(self, test_type: TestType) -> bool:
        """Check whether this runner accepts the given test type."""
        return test_type in self._supported_types

    async def execute(self, test: TestDefinition) -> ExecutionResult:
        """Execute a test through the wrapped callable."""
        return await self._execute_func(test)

    def __repr__(self) -> str:
        types = ",".join(sorted(t.value for t in self._supported_types))
        return f"{type(self).__name__}({self._name!r}, [{types}])"


class DryRunRunner(FunctionRunner):
    """Runner that simulates execution from a test's title and payload.

    A test fails if its payload or title contains "failing"; everything else
    passes. Coverage and duration are fixed per runner.

    Args:
        name: Runner name.
        supported_types: Test types the runner accepts.
        duration_ms: Simulated duration reported for each test.
        passing_coverage: Coverage reported for passing tests.
        failing_coverage: Coverage reported for failing tests.
        error_message: Error reported for failing tests.
    """

    def __init__(
        self,
        name: str,
        supported_types: Iterable[TestType | str],
        duration_ms: float = 100.0,
        passing_coverage: float = 85.0,
        failing_coverage: float = 60.0,
        error_message: str = "Test assertion failed",
    ) -> None:
        super().__init__(name, supported_types, self._simulate)
        self._duration_ms = duration_ms
        self._passing_coverage = passing_coverage
        self._failing_coverage = failing_coverage
        self._error_message = error_message

    async def _simulate(self, test: TestDefinition) -> ExecutionResult:
        start = time.monotonic()
        await asyncio.sleep(0)
        success = "failing" not in test.test_code and "failing" not in test.title.lower()
        logger.debug("%s executed %s: %s", self.name, test.id, "pass" if success else "fail")
        return ExecutionResult(
            success=success,
            duration_ms=max(self._duration_ms, (time.monotonic() - start) * 1000),
            coverage=self._passing_coverage if success else self._failing_coverage,
            error=None if success else self._error_message,
            logs=(f"{self.name} executed: {test.title}",),
        )


def default_runners() -> list[FunctionRunner]:
    """Return dry-run runners covering every test type.

    Returns:
        A unit/integration runner followed by an e2e runner.
    """
    return [
        DryRunRunner("unit-integration", [TestType.UNIT, TestType.INTEGRATION]),
        DryRunRunner(
            "e2e",
            [TestType.E2E],
            duration_ms=2000.0,
            passing_coverage=90.0,
            failing_coverage=70.0,
            error_message="E2E test failed",
        ),
    ]
