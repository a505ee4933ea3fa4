"""Batch test execution engine.

The engine executes a batch of test definitions against registered runners
and produces one aggregate TestReport per batch. For each test the first
registered runner that supports the test's type is used.

Each runner attempt has its own deadline. An attempt that raises or misses
its deadline is retried until ``max_retries`` attempts have been made; a
result that the runner returns (successful or not) is final. Whatever the
outcome, a failure local to one test is recorded in the report and never
escapes ``execute_batch``.

Example:
    engine = TestExecutionEngine(
        config=EngineConfig(parallel_execution=True),
        runners=[FunctionRunner("pytest", [TestType.UNIT], run_pytest)],
    )

    report = await engine.execute_batch(tests)
    print(report.summary)
"""

from __future__ import annotations

import asyncio
import logging
import time
import traceback
from typing import Iterable, Sequence

from testflow_core.errors import NoSuitableRunnerError, TestTimeoutError
from testflow_core.interfaces.runner import TestRunner
from testflow_core.types.common import ReportId, TestStatus, Timestamp, new_id
from testflow_core.types.definition import ExecutionResult, TestDefinition

from testflow_runner.config import EngineConfig
from testflow_runner.report import TestFailure, TestReport, format_detailed_report, format_summary

logger = logging.getLogger(__name__)


class TestExecutionEngine:
    """Executes batches of tests with retry, timeout and parallelism policy.

    Args:
        config: Engine configuration. Defaults are used if omitted.
        runners: Runners to register, in selection order.
    """

    __test__ = False

    def __init__(
        self,
        config: EngineConfig | None = None,
        runners: Iterable[TestRunner] | None = None,
    ) -> None:
        self._config = config or EngineConfig()
        self._runners: list[TestRunner] = list(runners or ())
        self._reports: list[TestReport] = []

    @property
    def config(self) -> EngineConfig:
        """Return the engine configuration."""
        return self._config

    @property
    def runners(self) -> tuple[TestRunner, ...]:
        """Return registered runners in selection order."""
        return tuple(self._runners)

    @property
    def reports(self) -> tuple[TestReport, ...]:
        """Return every report produced so far, oldest first."""
        return tuple(self._reports)

    @property
    def latest_report(self) -> TestReport | None:
        """Return the most recent report, or None if no batch has run."""
        return self._reports[-1] if self._reports else None

    def register_runner(self, runner: TestRunner) -> None:
        """Append a runner to the registry.

        Args:
            runner: The runner to register.
        """
        self._runners.append(runner)
        logger.info(
            "Registered test runner %s for %s",
            runner.name,
            ", ".join(sorted(t.value for t in runner.supported_types)),
        )

    def select_runner(self, test: TestDefinition) -> TestRunner:
        """Return the first registered runner that supports the test's type.

        Args:
            test: The test to dispatch.

        Returns:
            The selected runner.

        Raises:
            NoSuitableRunnerError: If no registered runner supports the type.
        """
        for runner in self._runners:
            if runner.supports(test.type):
                return runner
        raise NoSuitableRunnerError(
            f"No suitable test runner found for test type: {test.type.value}"
        )

    # -------------------------------------------------------------------------
    # Execution
    # -------------------------------------------------------------------------

    async def execute_test(self, test: TestDefinition) -> ExecutionResult:
        """Execute a single test with retry and timeout handling.

        The result is attached to the test and its status updated.

        Args:
            test: The test to execute.

        Returns:
            The final ExecutionResult.
        """
        test.status = TestStatus.RUNNING

        try:
            runner = self.select_runner(test)
        except NoSuitableRunnerError as e:
            logger.warning("Test %s (%s): %s", test.title, test.id, e)
            result = ExecutionResult.failure(str(e))
            test.record_result(result)
            return result

        result = await self._execute_with_retry(runner, test)
        test.record_result(result)

        if result.success:
            logger.info("Test %s passed (%.0fms)", test.title, result.duration_ms)
        else:
            logger.warning("Test %s failed: %s", test.title, result.error)

        return result

    async def _execute_with_retry(
        self,
        runner: TestRunner,
        test: TestDefinition,
    ) -> ExecutionResult:
        """Run attempts until one returns or the retry budget is exhausted.

        A returned result, successful or not, ends the loop. A missed
        deadline is retried exactly like a raised exception, and attempt n
        waits ``retry_delay_ms * n`` before the next one.

        The builtin ``TimeoutError`` is an alias of ``asyncio.TimeoutError``
        on Python 3.11+, so a runner that raises it itself is reported as
        "timed out" rather than with its own message.

        Returns:
            The first returned result, or the failure from the last attempt.
        """
        max_retries = self._config.max_retries
        result: ExecutionResult | None = None

        for attempt in range(1, max_retries + 1):
            start = time.monotonic()
            try:
                return await asyncio.wait_for(
                    runner.execute(test), timeout=self._config.timeout_seconds
                )
            except asyncio.TimeoutError:
                error = TestTimeoutError(self._config.timeout_ms)
                result = ExecutionResult.failure(
                    str(error), duration_ms=(time.monotonic() - start) * 1000
                )
            except Exception as e:  # pylint: disable=broad-except
                result = ExecutionResult.failure(
                    str(e) or type(e).__name__,
                    duration_ms=(time.monotonic() - start) * 1000,
                    stack_trace=traceback.format_exc(),
                )

            logger.warning(
                "Test %s attempt %d/%d failed: %s",
                test.id,
                attempt,
                max_retries,
                result.error,
            )

            if attempt < max_retries and self._config.retry_delay_ms > 0:
                await asyncio.sleep(self._config.retry_delay_ms * attempt / 1000)

        assert result is not None
        return result

    async def execute_batch(self, tests: Sequence[TestDefinition]) -> TestReport:
        """Execute a batch of tests and produce an aggregate report.

        Args:
            tests: Tests to execute, in declaration order.

        Returns:
            The TestReport for this batch. It is also appended to the history.
        """
        logger.info(
            "Executing batch of %d test(s) (%s)",
            len(tests),
            "parallel" if self._config.parallel_execution else "sequential",
        )
        start = time.monotonic()

        if self._config.parallel_execution and len(tests) > 1:
            executed = await self._run_parallel(tests)
        else:
            executed = await self._run_sequential(tests)

        report = self._build_report(tests, executed, (time.monotonic() - start) * 1000)
        self._reports.append(report)

        if self._config.reporting_enabled:
            logger.info("%s", format_detailed_report(report))

        return report

    async def _run_sequential(
        self,
        tests: Sequence[TestDefinition],
    ) -> list[tuple[TestDefinition, ExecutionResult]]:
        """Run tests one at a time in declaration order."""
        executed: list[tuple[TestDefinition, ExecutionResult]] = []
        for test in tests:
            result = await self.execute_test(test)
            executed.append((test, result))

            if self._config.fail_fast and not result.success:
                logger.info("Stopping batch after failure of %s (fail_fast=True)", test.id)
                break
        return executed

    async def _run_parallel(
        self,
        tests: Sequence[TestDefinition],
    ) -> list[tuple[TestDefinition, ExecutionResult]]:
        """Dispatch every test concurrently."""
        results = await asyncio.gather(*(self.execute_test(test) for test in tests))
        return list(zip(tests, results))

    def _build_report(
        self,
        tests: Sequence[TestDefinition],
        executed: list[tuple[TestDefinition, ExecutionResult]],
        duration_ms: float,
    ) -> TestReport:
        """Aggregate executed results into a report."""
        passed = sum(1 for _, result in executed if result.success)
        failures = tuple(
            TestFailure(
                test_id=test.id,
                test_title=test.title,
                error=result.error or "Unknown error",
                requirements=tuple(test.requirements),
                agent_role=test.agent_role,
                stack_trace=result.stack_trace,
            )
            for test, result in executed
            if not result.success
        )

        coverages = [result.coverage for _, result in executed if result.coverage is not None]
        coverage = sum(coverages) / len(coverages) if coverages else 0.0

        return TestReport(
            id=ReportId(new_id("report")),
            timestamp=Timestamp.now(),
            total_tests=len(tests),
            passed=passed,
            failed=len(failures),
            skipped=0,
            duration_ms=duration_ms,
            coverage=coverage,
            failures=failures,
            summary=format_summary(passed, len(tests)),
        )
