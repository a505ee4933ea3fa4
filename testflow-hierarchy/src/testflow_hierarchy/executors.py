"""Code executors for the hierarchical framework."""

from __future__ import annotations

import asyncio
import logging

from testflow_core.interfaces.runner import CodeOutcome

logger = logging.getLogger(__name__)


class DryRunCodeExecutor:
    """Code executor that evaluates payloads without running them.

    A payload passes unless it contains the failure marker. Used to wire up
    the framework where no real test harness is attached, e.g. when the
    server is started for a demonstration.

    Args:
        failure_marker: Substring that marks a payload as failing.
        passing_coverage: Coverage reported for passing payloads.
        failing_coverage: Coverage reported for failing payloads.
        delay_seconds: Simulated execution time.
    """

    def __init__(
        self,
        failure_marker: str = "failing",
        passing_coverage: float = 85.0,
        failing_coverage: float = 60.0,
        delay_seconds: float = 0.0,
    ) -> None:
        self._failure_marker = failure_marker
        self._passing_coverage = passing_coverage
        self._failing_coverage = failing_coverage
        self._delay_seconds = delay_seconds

    async def __call__(self, test_code: str) -> CodeOutcome:
        if self._delay_seconds > 0:
            await asyncio.sleep(self._delay_seconds)

        if self._failure_marker in test_code:
            logger.debug("Dry run: payload marked failing")
            return CodeOutcome(
                success=False,
                coverage=self._failing_coverage,
                logs=("dry run: failing payload",),
                error="Test assertion failed",
            )

        return CodeOutcome(
            success=True,
            coverage=self._passing_coverage,
            logs=("dry run: passing payload",),
        )
