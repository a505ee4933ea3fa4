"""Batch test execution engine for testflow.

This package executes batches of test definitions against pluggable
runners with retry, timeout, sequential/parallel and fail-fast policy, and
produces an aggregate TestReport per batch.

Example usage:

    from testflow_runner import EngineConfig, TestExecutionEngine, default_runners

    engine = TestExecutionEngine(
        config=EngineConfig(max_retries=2, timeout_ms=5000),
        runners=default_runners(),
    )

    report = await engine.execute_batch(tests)
    print(report.summary)  # "3/4 tests passed (75.0%)"
"""

from testflow_runner.config import EngineConfig
from testflow_runner.engine import TestExecutionEngine
from testflow_runner.report import TestFailure, TestReport, format_detailed_report, format_summary
from testflow_runner.runners import DryRunRunner, FunctionRunner, default_runners

__all__ = [
    # Configuration
    "EngineConfig",
    # Engine
    "TestExecutionEngine",
    # Reports
    "TestFailure",
    "TestReport",
    "format_detailed_report",
    "format_summary",
    # Runners
    "DryRunRunner",
    "FunctionRunner",
    "default_runners",
]
