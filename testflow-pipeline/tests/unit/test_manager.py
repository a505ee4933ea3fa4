"""Unit tests for the pipeline manager."""

from __future__ import annotations

import asyncio
import time
from typing import AsyncIterator, Callable
from unittest.mock import AsyncMock, MagicMock

import pytest

from testflow_core.errors import (
    DuplicateApprovalError,
    GateClosedError,
    NotFoundError,
    UnauthorizedApproverError,
)
from testflow_core.types.common import TestType
from testflow_core.types.definition import ExecutionResult, TestDefinition

from testflow_automation.catalog import SuiteCatalog
from testflow_automation.engine import AutomationEngine
from testflow_runner.config import EngineConfig
from testflow_runner.engine import TestExecutionEngine
from testflow_runner.runners import FunctionRunner

from testflow_pipeline.approvals import ApprovalDecision, ApprovalGate, GateStatus
from testflow_pipeline.environments import DeploymentEnvironment, default_environments
from testflow_pipeline.execution import (
    ExecutionStatus,
    PipelineExecution,
    PipelineTriggerType,
    StageStatus,
    build_stages,
    stage_order,
)
from testflow_pipeline.health import StaticHealthProbe
from testflow_pipeline.manager import PipelineManager


def make_test(title: str, success: bool = True) -> TestDefinition:
    """Create a unit test whose payload encodes the desired outcome."""
    return TestDefinition(type=TestType.UNIT, title=title, test_code="pass" if success else "fail")


async def scripted_execute(test: TestDefinition) -> ExecutionResult:
    """Runner callback that reads the outcome from the test payload."""
    success = test.test_code == "pass"
    return ExecutionResult(
        success=success,
        coverage=90.0 if success else 40.0,
        error=None if success else "assertion failed",
    )


def make_automation(unit_passes: bool = True) -> AutomationEngine:
    """Create an automation engine over scripted unit and integration batches."""
    catalog = SuiteCatalog()
    catalog.register("unit", [make_test("unit-1", unit_passes), make_test("unit-2")])
    catalog.register("integration", [make_test("integration-1")])

    notifier = MagicMock()
    notifier.notify = AsyncMock()

    return AutomationEngine(
        execution_engine=TestExecutionEngine(
            config=EngineConfig(fail_fast=False, retry_delay_ms=0, reporting_enabled=False),
            runners=[FunctionRunner("scripted", list(TestType), scripted_execute)],
        ),
        catalog=catalog,
        notifier=notifier,
    )


async def wait_until(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    """Yield to the event loop until the predicate holds."""
    deadline = time.monotonic() + timeout
    while not predicate():
        if time.monotonic() > deadline:
            raise AssertionError("Condition not reached in time")
        await asyncio.sleep(0.005)


async def wait_for_gate(manager: PipelineManager, count: int = 1) -> list[ApprovalGate]:
    """Wait until the given number of gates are pending."""
    await wait_until(lambda: len(manager.get_pending_approvals()) >= count)
    return manager.get_pending_approvals()


@pytest.fixture
async def manager() -> AsyncIterator[PipelineManager]:
    """Create a manager over passing tests with the default environments."""
    manager = PipelineManager(make_automation())
    yield manager
    await manager.shutdown()


def stage_statuses(execution: PipelineExecution) -> dict[str, StageStatus]:
    return {stage_id: stage.status for stage_id, stage in execution.stages.items()}


class TestStageSkeleton:
    """Tests for stage construction and ordering."""

    def test_stage_ids(self) -> None:
        envs = default_environments()
        stages = build_stages([envs["development"], envs["production"]])

        assert list(stages) == [
            "unit_tests",
            "integration_tests",
            "build",
            "security",
            "deploy_development",
            "deploy_production",
            "health_check_development",
            "health_check_production",
        ]
        assert stages["deploy_production"].name == "Deploy to Production"
        assert stages["deploy_production"].dependencies == ("security",)
        assert stages["health_check_production"].name == "Health Check (Production)"
        assert stages["health_check_production"].dependencies == ("deploy_production",)
        assert stages["health_check_production"].environment == "production"

    def test_no_environments(self) -> None:
        stages = build_stages([])

        assert list(stages) == ["unit_tests", "integration_tests", "build", "security"]

    def test_order_follows_dependencies(self) -> None:
        envs = default_environments()
        stages = build_stages(list(envs.values()))
        order = stage_order(stages)

        for stage_id, stage in stages.items():
            for dependency in stage.dependencies:
                assert order.index(dependency) < order.index(stage_id)

    def test_cycle_rejected(self) -> None:
        stages = build_stages([])
        stages["unit_tests"].dependencies = ("security",)

        with pytest.raises(ValueError, match="cycle"):
            stage_order(stages)


class TestCreateExecution:
    """Tests for execution creation."""

    async def test_initial_state(self, manager: PipelineManager) -> None:
        execution = await manager.create_execution(
            "web-app", "alice", PipelineTriggerType.COMMIT, ["development"]
        )

        assert execution.id.startswith("exec_")
        assert execution.pipeline_id == "web-app"
        assert execution.triggered_by == "alice"
        assert execution.trigger_type is PipelineTriggerType.COMMIT
        assert execution.status is ExecutionStatus.RUNNING
        assert manager.get_execution(execution.id) is execution
        assert manager.get_all_executions() == [execution]

    async def test_unknown_environment(self, manager: PipelineManager) -> None:
        with pytest.raises(NotFoundError, match="Environment qa not found"):
            await manager.create_execution("web-app", "alice", "manual", ["development", "qa"])

        assert manager.get_all_executions() == []

    async def test_duplicate_environments_collapsed(self, manager: PipelineManager) -> None:
        execution = await manager.create_execution(
            "web-app", "alice", "manual", ["development", "development"]
        )

        assert execution.environments == ("development",)
        assert "deploy_development" in execution.stages

    async def test_invalid_trigger_type(self, manager: PipelineManager) -> None:
        with pytest.raises(ValueError):
            await manager.create_execution("web-app", "alice", "push")

    async def test_unknown_execution(self, manager: PipelineManager) -> None:
        with pytest.raises(NotFoundError, match="Execution exec_missing not found"):
            manager.get_execution("exec_missing")


class TestStageFlow:
    """Tests for stage scheduling and outcomes."""

    async def test_development_run_passes(self, manager: PipelineManager) -> None:
        execution = await manager.create_execution("web-app", "alice")
        await manager.wait(execution.id)

        assert execution.status is ExecutionStatus.PASSED
        assert set(stage_statuses(execution).values()) == {StageStatus.PASSED}
        assert execution.ended_at is not None
        assert [r.trigger_id for r in execution.test_reports] == ["file_change", "git_commit"]
        for stage in execution.stages.values():
            assert stage.started_at is not None
            assert stage.ended_at is not None

    async def test_failing_tests_skip_dependents(self) -> None:
        manager = PipelineManager(make_automation(unit_passes=False))
        execution = await manager.create_execution("web-app", "alice")
        await manager.wait(execution.id)

        statuses = stage_statuses(execution)
        assert execution.status is ExecutionStatus.FAILED
        assert statuses["unit_tests"] is StageStatus.FAILED
        assert "Tests not ready for deployment" in (execution.stages["unit_tests"].error or "")
        assert all(
            status is StageStatus.SKIPPED
            for stage_id, status in statuses.items()
            if stage_id != "unit_tests"
        )

    async def test_health_check_failure(self) -> None:
        manager = PipelineManager(
            make_automation(),
            health_probe=StaticHealthProbe(failing=["Database Connection"]),
        )
        execution = await manager.create_execution("web-app", "alice")
        await manager.wait(execution.id)

        stage = execution.stages["health_check_development"]
        assert execution.status is ExecutionStatus.FAILED
        assert stage.status is StageStatus.FAILED
        assert "Database Connection" in (stage.error or "")
        assert execution.stages["deploy_development"].status is StageStatus.PASSED

    async def test_build_action_error(self) -> None:
        async def broken_build(execution: PipelineExecution, stage: object) -> None:
            raise RuntimeError("compiler crashed")

        manager = PipelineManager(make_automation(), build_action=broken_build)
        execution = await manager.create_execution("web-app", "alice")
        await manager.wait(execution.id)

        assert execution.stages["build"].status is StageStatus.FAILED
        assert execution.stages["build"].error == "compiler crashed"
        assert execution.stages["security"].status is StageStatus.SKIPPED
        assert execution.status is ExecutionStatus.FAILED

    async def test_unknown_stage_trigger(self) -> None:
        manager = PipelineManager(make_automation(), stage_triggers={"unit_tests": "missing"})
        execution = await manager.create_execution("web-app", "alice")
        await manager.wait(execution.id)

        assert execution.stages["unit_tests"].status is StageStatus.FAILED
        assert execution.stages["unit_tests"].error == "Trigger missing not found"

    async def test_deploy_action_receives_environment(self) -> None:
        deployed: list[str] = []

        async def deploy(execution: PipelineExecution, env: DeploymentEnvironment) -> None:
            deployed.append(env.id)

        manager = PipelineManager(make_automation(), deploy_action=deploy)
        execution = await manager.create_execution("web-app", "alice")
        await manager.wait(execution.id)

        assert deployed == ["development"]


class TestApprovalGates:
    """Tests for quorum approval on deploy stages."""

    async def test_staging_waits_for_approval(self, manager: PipelineManager) -> None:
        execution = await manager.create_execution("web-app", "alice", "commit", ["staging"])
        (gate,) = await wait_for_gate(manager)

        assert gate.id == f"approval_{execution.id}_deploy_staging"
        assert gate.required_approvals == 1
        assert gate.approvers == frozenset({"senior-dev-1", "senior-dev-2"})
        assert execution.stages["deploy_staging"].status is StageStatus.WAITING_APPROVAL
        assert execution.status is ExecutionStatus.RUNNING
        assert execution.approval_gates == {gate.id: gate}

        result = await manager.process_approval(gate.id, "senior-dev-1", "approve", "LGTM")
        await manager.wait(execution.id)

        assert result.status is GateStatus.APPROVED
        assert result.approvals[0].comment == "LGTM"
        assert execution.status is ExecutionStatus.PASSED
        assert manager.get_pending_approvals() == []

    async def test_production_needs_two_approvals(self, manager: PipelineManager) -> None:
        execution = await manager.create_execution("web-app", "alice", "commit", ["production"])
        (gate,) = await wait_for_gate(manager)

        await manager.process_approval(gate.id, "architect-1", ApprovalDecision.APPROVE)
        await asyncio.sleep(0.01)

        assert gate.status is GateStatus.PENDING
        assert gate.approve_count == 1
        assert execution.stages["deploy_production"].status is StageStatus.WAITING_APPROVAL

        await manager.process_approval(gate.id, "architect-2", ApprovalDecision.APPROVE)
        await manager.wait(execution.id)

        assert gate.status is GateStatus.APPROVED
        assert execution.status is ExecutionStatus.PASSED

    async def test_rejection_fails_deploy(self, manager: PipelineManager) -> None:
        execution = await manager.create_execution("web-app", "alice", "commit", ["production"])
        (gate,) = await wait_for_gate(manager)

        await manager.process_approval(gate.id, "architect-1", "reject", "Not during freeze")
        await manager.wait(execution.id)

        deploy = execution.stages["deploy_production"]
        assert gate.status is GateStatus.REJECTED
        assert deploy.status is StageStatus.FAILED
        assert deploy.error == "Deployment to Production rejected by approver"
        assert execution.stages["health_check_production"].status is StageStatus.SKIPPED
        assert execution.status is ExecutionStatus.FAILED

    async def test_decision_after_rejection_recorded_only(self, manager: PipelineManager) -> None:
        execution = await manager.create_execution("web-app", "alice", "commit", ["production"])
        (gate,) = await wait_for_gate(manager)

        await manager.process_approval(gate.id, "architect-1", "reject")
        await manager.wait(execution.id)
        result = await manager.process_approval(gate.id, "architect-2", "approve")

        assert result.status is GateStatus.REJECTED
        assert len(result.approvals) == 2

    async def test_unauthorized_approver(self, manager: PipelineManager) -> None:
        await manager.create_execution("web-app", "alice", "commit", ["production"])
        (gate,) = await wait_for_gate(manager)

        with pytest.raises(UnauthorizedApproverError):
            await manager.process_approval(gate.id, "senior-dev-1", "approve")

        assert gate.approvals == []

    async def test_duplicate_approval(self, manager: PipelineManager) -> None:
        await manager.create_execution("web-app", "alice", "commit", ["production"])
        (gate,) = await wait_for_gate(manager)

        await manager.process_approval(gate.id, "architect-1", "approve")
        with pytest.raises(DuplicateApprovalError):
            await manager.process_approval(gate.id, "architect-1", "approve")

        assert gate.approve_count == 1
        assert gate.is_pending

    async def test_unknown_gate(self, manager: PipelineManager) -> None:
        with pytest.raises(NotFoundError, match="Gate approval_missing not found"):
            await manager.process_approval("approval_missing", "architect-1", "approve")

    async def test_invalid_decision(self, manager: PipelineManager) -> None:
        await manager.create_execution("web-app", "alice", "commit", ["staging"])
        (gate,) = await wait_for_gate(manager)

        with pytest.raises(ValueError):
            await manager.process_approval(gate.id, "senior-dev-1", "maybe")

    async def test_concurrent_approvals_count_once_each(self, manager: PipelineManager) -> None:
        execution = await manager.create_execution("web-app", "alice", "commit", ["production"])
        (gate,) = await wait_for_gate(manager)

        results = await asyncio.gather(
            manager.process_approval(gate.id, "architect-1", "approve"),
            manager.process_approval(gate.id, "architect-1", "approve"),
            manager.process_approval(gate.id, "architect-2", "approve"),
            return_exceptions=True,
        )
        await manager.wait(execution.id)

        assert sum(isinstance(r, DuplicateApprovalError) for r in results) == 1
        assert gate.approve_count == 2
        assert execution.status is ExecutionStatus.PASSED


class TestConcurrency:
    """Tests for independent branches and executions."""

    async def test_independent_environment_proceeds(self, manager: PipelineManager) -> None:
        execution = await manager.create_execution(
            "web-app", "alice", "commit", ["development", "production"]
        )
        await wait_for_gate(manager)
        await wait_until(
            lambda: execution.stages["health_check_development"].status is StageStatus.PASSED
        )

        assert execution.stages["deploy_production"].status is StageStatus.WAITING_APPROVAL
        assert execution.status is ExecutionStatus.RUNNING

    async def test_failure_marks_execution_while_branch_continues(
        self, manager: PipelineManager
    ) -> None:
        execution = await manager.create_execution(
            "web-app", "alice", "commit", ["staging", "production"]
        )
        gates = await wait_for_gate(manager, count=2)
        staging_gate = next(g for g in gates if g.environment == "staging")
        production_gate = next(g for g in gates if g.environment == "production")

        await manager.process_approval(staging_gate.id, "senior-dev-2", "reject")
        await wait_until(lambda: execution.status is ExecutionStatus.FAILED)

        assert not manager.get_execution(execution.id).ended_at
        assert production_gate.is_pending

        await manager.process_approval(production_gate.id, "architect-1", "approve")
        await manager.process_approval(production_gate.id, "architect-2", "approve")
        await manager.wait(execution.id)

        assert execution.stages["health_check_production"].status is StageStatus.PASSED
        assert execution.stages["health_check_staging"].status is StageStatus.SKIPPED
        assert execution.status is ExecutionStatus.FAILED

    async def test_concurrent_executions_are_independent(self, manager: PipelineManager) -> None:
        first = await manager.create_execution("web-app", "alice", "commit", ["staging"])
        second = await manager.create_execution("web-app", "bob", "commit", ["staging"])
        gates = await wait_for_gate(manager, count=2)

        assert len({g.id for g in gates}) == 2
        first_gate = next(g for g in gates if g.execution_id == first.id)

        await manager.process_approval(first_gate.id, "senior-dev-1", "approve")
        await manager.wait(first.id)

        assert first.status is ExecutionStatus.PASSED
        assert second.status is ExecutionStatus.RUNNING
        assert second.stages["deploy_staging"].status is StageStatus.WAITING_APPROVAL

    async def test_shutdown_cancels_running_executions(self, manager: PipelineManager) -> None:
        execution = await manager.create_execution("web-app", "alice", "commit", ["staging"])
        await wait_for_gate(manager)

        await manager.shutdown()

        assert execution.status is ExecutionStatus.CANCELLED
        assert execution.ended_at is not None

    async def test_shutdown_closes_pending_gates(self, manager: PipelineManager) -> None:
        execution = await manager.create_execution("web-app", "alice", "commit", ["staging"])
        (gate,) = await wait_for_gate(manager)

        await manager.shutdown()

        assert gate.status is GateStatus.CANCELLED
        assert manager.get_pending_approvals() == []
        assert execution.to_dict()["approval_gates"][0]["status"] == "cancelled"
        with pytest.raises(GateClosedError, match=f"Gate {gate.id} is closed"):
            await manager.process_approval(gate.id, "senior-dev-1", "approve")
        assert gate.approvals == []
