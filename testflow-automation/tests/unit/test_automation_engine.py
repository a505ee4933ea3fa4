"""Unit tests for the automation trigger engine."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest

from testflow_core.errors import AlreadyRunningError, NotFoundError, TriggerDisabledError
from testflow_core.types.common import TestType
from testflow_core.types.definition import ExecutionResult, TestDefinition, TestSpec

from testflow_hierarchy.executors import DryRunCodeExecutor
from testflow_hierarchy.framework import HierarchicalFramework
from testflow_runner.config import EngineConfig
from testflow_runner.engine import TestExecutionEngine
from testflow_runner.runners import FunctionRunner

from testflow_automation.catalog import SuiteCatalog
from testflow_automation.engine import ALL_MISSIONS_TRIGGER_ID, AutomationEngine
from testflow_automation.models import AutomationConfig, TestTrigger, TriggerType


def make_test(title: str, coverage: float | None = 90.0, success: bool = True) -> TestDefinition:
    """Create a unit test whose payload encodes the desired outcome."""
    outcome = "pass" if success else "fail"
    return TestDefinition(
        type=TestType.UNIT,
        title=title,
        test_code=f"{outcome}:{coverage if coverage is not None else ''}",
    )


async def scripted_execute(test: TestDefinition) -> ExecutionResult:
    """Runner callback that reads the outcome from the test payload."""
    outcome, _, coverage = test.test_code.partition(":")
    return ExecutionResult(
        success=outcome == "pass",
        coverage=float(coverage) if coverage else None,
        error=None if outcome == "pass" else "assertion failed",
    )


@pytest.fixture
def execution_engine() -> TestExecutionEngine:
    """Create an execution engine with a scripted runner."""
    return TestExecutionEngine(
        config=EngineConfig(fail_fast=False, retry_delay_ms=0),
        runners=[FunctionRunner("scripted", list(TestType), scripted_execute)],
    )


@pytest.fixture
def notifier() -> MagicMock:
    """Create a notifier mock."""
    mock = MagicMock()
    mock.notify = AsyncMock()
    return mock


@pytest.fixture
def catalog() -> SuiteCatalog:
    """Create a catalog whose default suites hold passing tests."""
    catalog = SuiteCatalog()
    catalog.register("unit", [make_test("unit-1"), make_test("unit-2")])
    catalog.register("integration", [make_test("integration-1")])
    return catalog


@pytest.fixture
def automation(
    execution_engine: TestExecutionEngine,
    catalog: SuiteCatalog,
    notifier: MagicMock,
) -> AutomationEngine:
    """Create an automation engine with scripted collaborators."""
    return AutomationEngine(
        execution_engine=execution_engine,
        catalog=catalog,
        notifier=notifier,
    )


class TestTriggerRegistry:
    """Tests for trigger registration and lookup."""

    def test_default_triggers(self, automation: AutomationEngine) -> None:
        ids = [t.id for t in automation.triggers]

        assert ids == ["file_change", "git_commit", "pull_request", "nightly"]
        assert automation.get_trigger("nightly").type is TriggerType.SCHEDULED

    def test_register_overwrites(self, automation: AutomationEngine) -> None:
        automation.register_trigger(
            TestTrigger(id="nightly", type=TriggerType.SCHEDULED, test_suites=("unit",))
        )

        assert automation.get_trigger("nightly").test_suites == ("unit",)
        assert len(automation.triggers) == 4

    async def test_unknown_trigger(self, automation: AutomationEngine) -> None:
        with pytest.raises(NotFoundError, match="Trigger non-existent not found"):
            await automation.execute_trigger("non-existent")

    async def test_disabled_trigger(self, automation: AutomationEngine) -> None:
        automation.register_trigger(
            TestTrigger(id="disabled", type=TriggerType.MANUAL, enabled=False)
        )

        with pytest.raises(TriggerDisabledError, match="Trigger disabled is disabled"):
            await automation.execute_trigger("disabled")


class TestDeploymentVerdict:
    """Tests for deployment readiness and approval requirements."""

    async def test_ready(self, automation: AutomationEngine) -> None:
        report = await automation.execute_trigger("git_commit")

        assert report.trigger_id == "git_commit"
        assert report.total_tests == 3
        assert report.failed == 0
        assert report.coverage == pytest.approx(90.0)
        assert report.deployment_ready
        assert not report.approval_required
        assert len(report.test_reports) == 1

    async def test_low_coverage_blocks(
        self, automation: AutomationEngine, catalog: SuiteCatalog
    ) -> None:
        catalog.register("unit", [make_test("a", coverage=70.0), make_test("b", coverage=80.0)])
        catalog.unregister("integration")

        report = await automation.execute_trigger("git_commit")

        assert report.failed == 0
        assert report.coverage == pytest.approx(75.0)
        assert not report.deployment_ready
        assert not report.approval_required

    async def test_failure_blocks_and_requires_approval(
        self, automation: AutomationEngine, catalog: SuiteCatalog
    ) -> None:
        catalog.register("unit", [make_test("ok"), make_test("broken", success=False)])

        report = await automation.execute_trigger("git_commit")

        assert report.failed == 1
        assert report.failures[0].test_title == "broken"
        assert not report.deployment_ready
        assert report.approval_required

    async def test_pull_request_always_requires_approval(
        self, automation: AutomationEngine, catalog: SuiteCatalog
    ) -> None:
        catalog.register("unit", [make_test("full", coverage=100.0)])
        catalog.unregister("integration")

        report = await automation.execute_trigger("pull_request")

        assert report.failed == 0
        assert report.deployment_ready
        assert report.approval_required

    async def test_custom_threshold(
        self,
        execution_engine: TestExecutionEngine,
        catalog: SuiteCatalog,
        notifier: MagicMock,
    ) -> None:
        automation = AutomationEngine(
            execution_engine=execution_engine,
            catalog=catalog,
            notifier=notifier,
            config=AutomationConfig(coverage_threshold=95.0),
        )

        report = await automation.execute_trigger("git_commit")

        assert not report.deployment_ready

    async def test_history(self, automation: AutomationEngine) -> None:
        assert automation.latest_report is None

        first = await automation.execute_trigger("git_commit")
        second = await automation.execute_trigger("nightly")

        assert automation.reports == (first, second)
        assert automation.latest_report is second


class TestSelection:
    """Tests for payload-driven test selection."""

    async def test_unrelated_changed_files(self, automation: AutomationEngine) -> None:
        report = await automation.execute_trigger(
            "file_change", {"changed_files": ["docs/readme.md"]}
        )

        assert report.total_tests == 0

    async def test_related_changed_files(self, automation: AutomationEngine) -> None:
        report = await automation.execute_trigger(
            "file_change", {"changed_files": ["docs/readme.md", "src/app/login.py"]}
        )

        assert report.total_tests == 3

    async def test_excluded_changed_files(self, automation: AutomationEngine) -> None:
        report = await automation.execute_trigger(
            "file_change", {"changed_files": ["src/app/__pycache__/login.py"]}
        )

        assert report.total_tests == 0

    async def test_manual_suite_override(self, automation: AutomationEngine) -> None:
        automation.register_trigger(
            TestTrigger(id="manual", type=TriggerType.MANUAL, test_suites=("unit",))
        )

        report = await automation.execute_trigger("manual", {"test_suites": ["integration"]})

        assert report.total_tests == 1

    async def test_framework_suites(
        self, execution_engine: TestExecutionEngine, notifier: MagicMock
    ) -> None:
        framework = HierarchicalFramework(code_executor=DryRunCodeExecutor())
        mission = framework.create_mission("Checkout", "Pay", ["REQ-7"], "coordinator-1")
        suite = framework.add_sub_task_suite(mission.id, "Payments", "d", "core-1", ["REQ-7"])
        framework.add_test_to_suite(
            suite.id,
            TestSpec(type=TestType.UNIT, title="Card", test_code="pass:88"),
        )
        automation = AutomationEngine(
            execution_engine=execution_engine, framework=framework, notifier=notifier
        )

        report = await automation.execute_trigger("file_change")

        assert report.total_tests == 1
        assert report.coverage == pytest.approx(88.0)


class TestAllMissions:
    """Tests for the run-all-missions path."""

    async def test_counts_missions(
        self, execution_engine: TestExecutionEngine, notifier: MagicMock
    ) -> None:
        real = HierarchicalFramework(code_executor=DryRunCodeExecutor())
        missions = [real.create_mission(f"M{i}", "d", [], "coordinator-1") for i in range(3)]
        framework = MagicMock()
        framework.get_all_missions.return_value = missions
        framework.execute_mission = AsyncMock(
            side_effect=[True, False, RuntimeError("mission crashed")]
        )
        automation = AutomationEngine(
            execution_engine=execution_engine, framework=framework, notifier=notifier
        )

        report = await automation.execute_all_missions()

        assert report.trigger_id == ALL_MISSIONS_TRIGGER_ID
        assert report.total_tests == 3
        assert report.passed == 1
        assert report.failed == 2
        assert report.coverage == 0.0
        assert not report.deployment_ready
        assert report.approval_required
        assert [f.test_id for f in report.failures] == [missions[1].id, missions[2].id]
        assert report.failures[1].error == "mission crashed"

    async def test_all_complete(
        self, execution_engine: TestExecutionEngine, notifier: MagicMock
    ) -> None:
        framework = HierarchicalFramework(code_executor=DryRunCodeExecutor())
        framework.create_mission("Checkout", "Pay", ["REQ-7"], "coordinator-1")
        automation = AutomationEngine(
            execution_engine=execution_engine, framework=framework, notifier=notifier
        )

        report = await automation.execute_all_missions()

        assert report.passed == 1
        assert report.deployment_ready
        assert automation.latest_report is report

    async def test_without_framework(self, automation: AutomationEngine) -> None:
        report = await automation.execute_all_missions()

        assert report.total_tests == 0
        assert report.deployment_ready


class TestNotifications:
    """Tests for notification lines."""

    async def test_two_lines_per_run(
        self, automation: AutomationEngine, notifier: MagicMock
    ) -> None:
        await automation.execute_trigger("git_commit")

        lines = [call.args[0] for call in notifier.notify.await_args_list]
        assert len(lines) == 2
        assert lines[0].startswith("Slack notification:")
        assert "Tests: 3/3 passed" in lines[0]
        assert lines[1] == "Deployment approved - all tests passed"

    async def test_blocked_line(
        self, automation: AutomationEngine, catalog: SuiteCatalog, notifier: MagicMock
    ) -> None:
        catalog.register("unit", [make_test("broken", success=False)])

        await automation.execute_trigger("git_commit")

        notifier.notify.assert_awaited_with(
            "Deployment blocked - tests failed or approval required"
        )

    async def test_slack_disabled(
        self,
        execution_engine: TestExecutionEngine,
        catalog: SuiteCatalog,
        notifier: MagicMock,
    ) -> None:
        automation = AutomationEngine(
            execution_engine=execution_engine,
            catalog=catalog,
            notifier=notifier,
            config=AutomationConfig(slack_notifications=False),
        )

        await automation.execute_trigger("git_commit")

        notifier.notify.assert_awaited_once_with("Deployment approved - all tests passed")


class TestLifecycle:
    """Tests for start/stop."""

    async def test_start_stop(self, automation: AutomationEngine) -> None:
        assert not automation.is_running

        await automation.start()
        assert automation.is_running

        await automation.stop()
        assert not automation.is_running

    async def test_double_start(self, automation: AutomationEngine) -> None:
        await automation.start()

        with pytest.raises(AlreadyRunningError):
            await automation.start()

    async def test_trigger_runs_while_stopped(self, automation: AutomationEngine) -> None:
        report = await automation.execute_trigger("git_commit")

        assert report.total_tests == 3

    async def test_aclose_releases_built_webhook(
        self, execution_engine: TestExecutionEngine
    ) -> None:
        automation = AutomationEngine(
            execution_engine=execution_engine,
            config=AutomationConfig(webhook_url="https://hooks.example.com/abc"),
        )
        webhook = automation.notifier.notifiers[1]  # type: ignore[attr-defined]
        client = webhook._get_client()  # pylint: disable=protected-access

        await automation.aclose()

        assert client.is_closed

    async def test_aclose_leaves_injected_notifier_open(
        self, automation: AutomationEngine, notifier: MagicMock
    ) -> None:
        notifier.aclose = AsyncMock()

        await automation.aclose()

        notifier.aclose.assert_not_awaited()
