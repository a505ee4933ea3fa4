"""CI/CD pipeline manager.

The manager creates pipeline executions and drives each one from a single
coordinating asyncio task. The coordinator starts every stage whose
dependencies all passed, waits for any running stage to finish and repeats
until nothing is left to start. Independent executions run concurrently and
share no stage state.

Deploy stages for environments that require approval open an approval gate
and wait for it. Approval decisions arrive through ``process_approval``,
which validates the approver under a lock and then wakes the waiting stage.

Example:
    manager = PipelineManager(automation)

    execution = await manager.create_execution(
        "web-app", "alice", PipelineTriggerType.COMMIT, ["development", "production"]
    )

    gate = manager.get_pending_approvals()[0]
    await manager.process_approval(gate.id, "architect-1", ApprovalDecision.APPROVE)
    await manager.process_approval(gate.id, "architect-2", ApprovalDecision.APPROVE)

    await manager.wait(execution.id)
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Iterable, Mapping

from testflow_core.errors import (
    DuplicateApprovalError,
    GateClosedError,
    NotFoundError,
    StageFailedError,
    UnauthorizedApproverError,
)
from testflow_core.types.common import Timestamp, new_id

from testflow_automation.engine import AutomationEngine

from testflow_pipeline.approvals import (
    Approval,
    ApprovalDecision,
    ApprovalGate,
    ApproverSource,
    GateStatus,
    StaticApproverDirectory,
)
from testflow_pipeline.environments import DeploymentEnvironment, default_environments
from testflow_pipeline.execution import (
    ExecutionStatus,
    PipelineExecution,
    PipelineTriggerType,
    Stage,
    StageStatus,
    StageType,
    build_stages,
    stage_order,
)
from testflow_pipeline.health import HealthProbe, StaticHealthProbe

logger = logging.getLogger(__name__)


# Callback types for pluggable stage work
StageAction = Callable[[PipelineExecution, Stage], Awaitable[None]]
DeployAction = Callable[[PipelineExecution, DeploymentEnvironment], Awaitable[None]]

# Test stage id -> automation trigger id
DEFAULT_STAGE_TRIGGERS: dict[str, str] = {
    "unit_tests": "file_change",
    "integration_tests": "git_commit",
}

# Trigger used by test stages without an explicit mapping
FALLBACK_TRIGGER = "git_commit"


async def _default_build(execution: PipelineExecution, stage: Stage) -> None:
    logger.info("Building %s for execution %s", execution.pipeline_id, execution.id)


async def _default_security_scan(execution: PipelineExecution, stage: Stage) -> None:
    logger.info("Security scan for execution %s: no findings", execution.id)


async def _default_deploy(execution: PipelineExecution, environment: DeploymentEnvironment) -> None:
    logger.info("Deploying %s to %s", execution.pipeline_id, environment.name)


class PipelineManager:
    """Creates and drives pipeline executions.

    Args:
        automation: Automation engine used by test stages.
        environments: Deployment environments by id. Defaults to
            development, staging and production.
        approvers: Source of eligible approvers for gates.
        health_probe: Probe used by health-check stages.
        stage_triggers: Test stage id to automation trigger id mapping.
        build_action: Work performed by the build stage.
        security_action: Work performed by the security stage.
        deploy_action: Work performed by deploy stages once cleared.
    """

    def __init__(
        self,
        automation: AutomationEngine,
        environments: Mapping[str, DeploymentEnvironment] | None = None,
        approvers: ApproverSource | None = None,
        health_probe: HealthProbe | None = None,
        stage_triggers: Mapping[str, str] | None = None,
        build_action: StageAction | None = None,
        security_action: StageAction | None = None,
        deploy_action: DeployAction | None = None,
    ) -> None:
        self._automation = automation
        self._environments = dict(environments or default_environments())
        self._approvers = approvers or StaticApproverDirectory()
        self._health_probe = health_probe or StaticHealthProbe()
        self._stage_triggers = {**DEFAULT_STAGE_TRIGGERS, **(stage_triggers or {})}
        self._build_action = build_action or _default_build
        self._security_action = security_action or _default_security_scan
        self._deploy_action = deploy_action or _default_deploy

        self._executions: dict[str, PipelineExecution] = {}
        self._gates: dict[str, ApprovalGate] = {}
        self._tasks: dict[str, asyncio.Task[None]] = {}
        self._lock = asyncio.Lock()

    @property
    def environments(self) -> dict[str, DeploymentEnvironment]:
        """Return deployment environments by id."""
        return dict(self._environments)

    @property
    def stage_triggers(self) -> dict[str, str]:
        """Return the test stage to trigger mapping."""
        return dict(self._stage_triggers)

    # -------------------------------------------------------------------------
    # Executions
    # -------------------------------------------------------------------------

    async def create_execution(
        self,
        pipeline_id: str,
        triggered_by: str,
        trigger_type: PipelineTriggerType | str = PipelineTriggerType.MANUAL,
        environments: Iterable[str] = ("development",),
    ) -> PipelineExecution:
        """Create an execution and start driving it in the background.

        Args:
            pipeline_id: Pipeline identifier.
            triggered_by: User or system starting the run.
            trigger_type: What started the run.
            environments: Target environment ids in deployment order.

        Returns:
            The new execution, in ``running`` status.

        Raises:
            NotFoundError: If an environment id is unknown.
            ValueError: If the trigger type is invalid.
        """
        trigger_type = PipelineTriggerType(trigger_type)
        env_ids = list(dict.fromkeys(environments))
        targets = []
        for env_id in env_ids:
            environment = self._environments.get(env_id)
            if environment is None:
                raise NotFoundError("environment", env_id)
            targets.append(environment)

        execution = PipelineExecution(
            id=new_id("exec"),
            pipeline_id=pipeline_id,
            triggered_by=triggered_by,
            trigger_type=trigger_type,
            environments=tuple(env_ids),
            stages=build_stages(targets),
        )
        self._executions[execution.id] = execution

        logger.info(
            "Created execution %s of %s by %s (%s) targeting %s",
            execution.id,
            pipeline_id,
            triggered_by,
            trigger_type.value,
            ", ".join(env_ids) or "no environments",
        )

        self._tasks[execution.id] = asyncio.create_task(
            self._run(execution), name=f"pipeline-{execution.id}"
        )
        return execution

    def get_execution(self, execution_id: str) -> PipelineExecution:
        """Return an execution.

        Raises:
            NotFoundError: If the execution id is unknown.
        """
        execution = self._executions.get(execution_id)
        if execution is None:
            raise NotFoundError("execution", execution_id)
        return execution

    def get_all_executions(self) -> list[PipelineExecution]:
        """Return every execution in creation order."""
        return list(self._executions.values())

    async def wait(self, execution_id: str) -> PipelineExecution:
        """Wait for an execution to finish.

        Args:
            execution_id: Execution to wait for.

        Returns:
            The finished execution.

        Raises:
            NotFoundError: If the execution id is unknown.
        """
        execution = self.get_execution(execution_id)
        task = self._tasks.get(execution_id)
        if task is not None and not task.done():
            await asyncio.shield(task)
        return execution

    async def shutdown(self) -> None:
        """Cancel every in-flight execution."""
        tasks = [task for task in self._tasks.values() if not task.done()]
        for task in tasks:
            task.cancel()
        if tasks:
            logger.info("Cancelling %d in-flight execution(s)", len(tasks))
            await asyncio.gather(*tasks, return_exceptions=True)

    # -------------------------------------------------------------------------
    # Approvals
    # -------------------------------------------------------------------------

    def get_gate(self, gate_id: str) -> ApprovalGate:
        """Return an approval gate.

        Raises:
            NotFoundError: If the gate id is unknown.
        """
        gate = self._gates.get(gate_id)
        if gate is None:
            raise NotFoundError("gate", gate_id)
        return gate

    def get_pending_approvals(self) -> list[ApprovalGate]:
        """Return every pending gate across all executions."""
        return [gate for gate in self._gates.values() if gate.is_pending]

    async def process_approval(
        self,
        gate_id: str,
        approver_id: str,
        decision: ApprovalDecision | str,
        comment: str | None = None,
    ) -> ApprovalGate:
        """Record an approver's decision on a gate.

        Args:
            gate_id: Gate to decide.
            approver_id: Deciding user.
            decision: Approve or reject.
            comment: Optional comment.

        Returns:
            The gate after recording the decision.

        Raises:
            NotFoundError: If the gate id is unknown.
            UnauthorizedApproverError: If the user may not decide this gate.
            GateClosedError: If the gate was cancelled with its execution.
            DuplicateApprovalError: If the user already decided this gate.
            ValueError: If the decision is invalid.
        """
        decision = ApprovalDecision(decision)

        async with self._lock:
            gate = self.get_gate(gate_id)
            if gate.status is GateStatus.CANCELLED:
                raise GateClosedError(gate_id)
            if approver_id not in gate.approvers:
                raise UnauthorizedApproverError(approver_id, gate_id)
            if gate.has_decided(approver_id):
                raise DuplicateApprovalError(approver_id, gate_id)

            previous = gate.status
            gate.record(Approval(approver_id, decision, comment))

        logger.info(
            "Approval processed: %s by %s on %s (%d/%d, %s)",
            decision.value,
            approver_id,
            gate_id,
            gate.approve_count,
            gate.required_approvals,
            gate.status.value,
        )
        if previous is not GateStatus.PENDING:
            logger.info("Gate %s already %s; decision recorded only", gate_id, previous.value)

        return gate

    # -------------------------------------------------------------------------
    # Coordination
    # -------------------------------------------------------------------------

    async def _run(self, execution: PipelineExecution) -> None:
        """Drive an execution's stages to completion (coordinator task)."""
        order = stage_order(execution.stages)
        running: dict[asyncio.Task[None], Stage] = {}

        try:
            while True:
                for stage_id in order:
                    stage = execution.stages[stage_id]
                    if stage.status is not StageStatus.PENDING:
                        continue

                    dependencies = [
                        execution.stages[d] for d in stage.dependencies if d in execution.stages
                    ]
                    if any(
                        d.status in (StageStatus.FAILED, StageStatus.SKIPPED) for d in dependencies
                    ):
                        stage.status = StageStatus.SKIPPED
                        stage.ended_at = Timestamp.now()
                        logger.info("Skipping stage %s of %s", stage.id, execution.id)
                    elif all(d.status is StageStatus.PASSED for d in dependencies):
                        stage.status = StageStatus.RUNNING
                        stage.started_at = Timestamp.now()
                        task = asyncio.create_task(self._run_stage(execution, stage))
                        running[task] = stage

                if not running:
                    break

                done, _ = await asyncio.wait(running, return_when=asyncio.FIRST_COMPLETED)
                for task in done:
                    running.pop(task)

        except asyncio.CancelledError:
            for task in running:
                task.cancel()
            await asyncio.gather(*running, return_exceptions=True)
            for gate in execution.approval_gates.values():
                if gate.is_pending:
                    gate.cancel()
                    logger.info("Gate %s cancelled with execution %s", gate.id, execution.id)
            execution.status = ExecutionStatus.CANCELLED
            execution.ended_at = Timestamp.now()
            logger.warning("Execution %s cancelled", execution.id)
            raise

        if execution.status is ExecutionStatus.RUNNING:
            passed = all(s.status is StageStatus.PASSED for s in execution.stages.values())
            execution.status = ExecutionStatus.PASSED if passed else ExecutionStatus.FAILED
        execution.ended_at = Timestamp.now()

        logger.info("Execution %s finished: %s", execution.id, execution.status.value)

    async def _run_stage(self, execution: PipelineExecution, stage: Stage) -> None:
        """Run one stage and record its outcome."""
        logger.info("Executing stage: %s (%s) of %s", stage.name, stage.type.value, execution.id)

        try:
            if stage.type is StageType.TEST:
                await self._run_test_stage(execution, stage)
            elif stage.type is StageType.BUILD:
                await self._build_action(execution, stage)
            elif stage.type is StageType.SECURITY:
                await self._security_action(execution, stage)
            elif stage.type is StageType.DEPLOY:
                await self._run_deploy_stage(execution, stage)
            elif stage.type is StageType.HEALTH_CHECK:
                await self._run_health_check_stage(execution, stage)
            else:
                raise StageFailedError(f"Unknown stage type: {stage.type}")
        except Exception as e:  # pylint: disable=broad-except
            stage.status = StageStatus.FAILED
            stage.error = str(e) or type(e).__name__
            if execution.status is ExecutionStatus.RUNNING:
                execution.status = ExecutionStatus.FAILED
            if isinstance(e, StageFailedError):
                logger.error("Stage %s of %s failed: %s", stage.id, execution.id, stage.error)
            else:
                logger.exception("Stage %s of %s raised", stage.id, execution.id)
        else:
            stage.status = StageStatus.PASSED
            logger.info("Stage %s of %s passed", stage.id, execution.id)
        finally:
            stage.ended_at = Timestamp.now()

    async def _run_test_stage(self, execution: PipelineExecution, stage: Stage) -> None:
        trigger_id = self._stage_triggers.get(stage.id, FALLBACK_TRIGGER)
        report = await self._automation.execute_trigger(trigger_id)
        execution.test_reports.append(report)

        if not report.deployment_ready:
            raise StageFailedError(
                f"Tests not ready for deployment: {report.summary}, "
                f"coverage {report.coverage:.1f}%"
            )

    async def _run_deploy_stage(self, execution: PipelineExecution, stage: Stage) -> None:
        environment = self._get_environment(stage)

        if environment.requires_approval:
            gate = self._open_gate(execution, stage, environment)
            stage.status = StageStatus.WAITING_APPROVAL
            logger.info(
                "Stage %s waiting for %d approval(s) from %s",
                stage.id,
                gate.required_approvals,
                ", ".join(sorted(gate.approvers)) or "nobody",
            )

            status = await gate.wait()
            if status is GateStatus.REJECTED:
                raise StageFailedError(f"Deployment to {environment.name} rejected by approver")
            if status is not GateStatus.APPROVED:
                raise StageFailedError(f"Approval gate for {environment.name} was {status.value}")
            stage.status = StageStatus.RUNNING

        await self._deploy_action(execution, environment)
        logger.info("Deployment to %s completed", environment.name)

    async def _run_health_check_stage(self, execution: PipelineExecution, stage: Stage) -> None:
        environment = self._get_environment(stage)
        logger.info("Running health checks for %s", environment.name)

        failed = []
        for name in environment.health_checks:
            result = await self._health_probe.check(environment, name)
            if result.ok:
                logger.info("%s - OK", name)
            else:
                logger.warning("%s - FAILED: %s", name, result.detail)
                failed.append(name)

        if failed:
            raise StageFailedError(
                f"Health checks failed on {environment.name}: {', '.join(failed)}"
            )

    def _get_environment(self, stage: Stage) -> DeploymentEnvironment:
        if stage.environment is None or stage.environment not in self._environments:
            raise StageFailedError(f"Environment {stage.environment} not found")
        return self._environments[stage.environment]

    def _open_gate(
        self,
        execution: PipelineExecution,
        stage: Stage,
        environment: DeploymentEnvironment,
    ) -> ApprovalGate:
        assert environment.approver_role is not None
        gate = ApprovalGate(
            id=f"approval_{execution.id}_{stage.id}",
            execution_id=execution.id,
            stage_id=stage.id,
            environment=environment.id,
            approver_role=environment.approver_role,
            required_approvals=environment.required_approvals,
        )
        gate.approvers = frozenset(self._approvers.eligible_approvers(gate))

        execution.approval_gates[gate.id] = gate
        self._gates[gate.id] = gate
        logger.info("Approval gate %s created for %s deployment", gate.id, environment.name)
        return gate
