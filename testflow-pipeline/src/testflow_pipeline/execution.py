"""Pipeline execution and stage types.

Every run gets the same stage skeleton::

    unit_tests -> integration_tests -> build -> security
        -> deploy_<env> -> health_check_<env>   (one pair per environment)

A stage starts only after all of its dependencies passed. Stages whose
dependency failed or was skipped are skipped themselves.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping, Sequence

from testflow_core.types.common import Timestamp

from testflow_automation.models import AutomationReport

from testflow_pipeline.approvals import ApprovalGate
from testflow_pipeline.environments import DeploymentEnvironment


class StageStatus(str, Enum):
    """Status of a pipeline stage."""

    PENDING = "pending"
    RUNNING = "running"
    PASSED = "passed"
    FAILED = "failed"
    WAITING_APPROVAL = "waiting_approval"
    SKIPPED = "skipped"


class StageType(str, Enum):
    """Kind of work a stage performs."""

    TEST = "test"
    BUILD = "build"
    SECURITY = "security"
    DEPLOY = "deploy"
    HEALTH_CHECK = "health_check"


class ExecutionStatus(str, Enum):
    """Overall status of a pipeline execution."""

    RUNNING = "running"
    PASSED = "passed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class PipelineTriggerType(str, Enum):
    """What started a pipeline execution."""

    COMMIT = "commit"
    PULL_REQUEST = "pull_request"
    MANUAL = "manual"
    SCHEDULED = "scheduled"


# Stage statuses after which a stage never changes again
TERMINAL_STAGE_STATUSES = frozenset({StageStatus.PASSED, StageStatus.FAILED, StageStatus.SKIPPED})


@dataclass
class Stage:
    """One node of a pipeline execution's dependency graph.

    Attributes:
        id: Stage identifier, unique within the execution.
        name: Human-readable name.
        type: Kind of work.
        dependencies: Stage ids that must pass first.
        environment: Target environment id for deploy and health-check stages.
        status: Current status.
        started_at: When the stage started running.
        ended_at: When the stage reached a terminal status.
        error: Failure reason, if the stage failed.
    """

    id: str
    name: str
    type: StageType
    dependencies: tuple[str, ...] = ()
    environment: str | None = None
    status: StageStatus = StageStatus.PENDING
    started_at: Timestamp | None = None
    ended_at: Timestamp | None = None
    error: str | None = None

    @property
    def is_terminal(self) -> bool:
        """Return True once the stage passed, failed or was skipped."""
        return self.status in TERMINAL_STAGE_STATUSES

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "id": self.id,
            "name": self.name,
            "type": self.type.value,
            "dependencies": list(self.dependencies),
            "environment": self.environment,
            "status": self.status.value,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "ended_at": self.ended_at.isoformat() if self.ended_at else None,
            "error": self.error,
        }


@dataclass
class PipelineExecution:
    """One run of a pipeline.

    Only stage and gate statuses, the execution status and the report list
    change after creation.

    Attributes:
        id: Execution identifier.
        pipeline_id: Pipeline this run belongs to.
        triggered_by: User or system that started the run.
        trigger_type: What started the run.
        environments: Target environment ids in deployment order.
        stages: Stages by id, in declaration order.
        approval_gates: Gates opened by this run, by id.
        test_reports: Automation reports produced by test stages.
        status: Overall status.
        started_at: When the run was created.
        ended_at: When the run finished.
    """

    id: str
    pipeline_id: str
    triggered_by: str
    trigger_type: PipelineTriggerType
    environments: tuple[str, ...]
    stages: dict[str, Stage]
    approval_gates: dict[str, ApprovalGate] = field(default_factory=dict)
    test_reports: list[AutomationReport] = field(default_factory=list)
    status: ExecutionStatus = ExecutionStatus.RUNNING
    started_at: Timestamp = field(default_factory=Timestamp.now)
    ended_at: Timestamp | None = None

    @property
    def is_finished(self) -> bool:
        """Return True once the execution left the running state."""
        return self.status is not ExecutionStatus.RUNNING

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "id": self.id,
            "pipeline_id": self.pipeline_id,
            "triggered_by": self.triggered_by,
            "trigger_type": self.trigger_type.value,
            "environments": list(self.environments),
            "status": self.status.value,
            "started_at": self.started_at.isoformat(),
            "ended_at": self.ended_at.isoformat() if self.ended_at else None,
            "stages": [s.to_dict() for s in self.stages.values()],
            "approval_gates": [g.to_dict() for g in self.approval_gates.values()],
            "test_reports": [r.to_dict() for r in self.test_reports],
        }


def build_stages(environments: Sequence[DeploymentEnvironment]) -> dict[str, Stage]:
    """Create the stage skeleton for a run.

    Args:
        environments: Target environments in deployment order.

    Returns:
        Stages by id, in declaration order.
    """
    stages = [
        Stage("unit_tests", "Unit Tests", StageType.TEST),
        Stage("integration_tests", "Integration Tests", StageType.TEST, ("unit_tests",)),
        Stage("build", "Build Application", StageType.BUILD, ("integration_tests",)),
        Stage("security", "Security Scan", StageType.SECURITY, ("build",)),
    ]

    for env in environments:
        stages.append(
            Stage(
                f"deploy_{env.id}",
                f"Deploy to {env.name}",
                StageType.DEPLOY,
                ("security",),
                environment=env.id,
            )
        )
    for env in environments:
        stages.append(
            Stage(
                f"health_check_{env.id}",
                f"Health Check ({env.name})",
                StageType.HEALTH_CHECK,
                (f"deploy_{env.id}",),
                environment=env.id,
            )
        )

    return {stage.id: stage for stage in stages}


def stage_order(stages: Mapping[str, Stage]) -> list[str]:
    """Order stage ids so that every stage follows its dependencies.

    Unknown dependency ids are ignored.

    Args:
        stages: Stages by id.

    Returns:
        Stage ids in dependency-first order.

    Raises:
        ValueError: If the dependencies form a cycle.
    """
    order: list[str] = []
    visited: set[str] = set()
    visiting: set[str] = set()

    def visit(stage_id: str) -> None:
        if stage_id in visited or stage_id not in stages:
            return
        if stage_id in visiting:
            raise ValueError(f"Stage dependency cycle at {stage_id}")
        visiting.add(stage_id)
        for dependency in stages[stage_id].dependencies:
            visit(dependency)
        visiting.discard(stage_id)
        visited.add(stage_id)
        order.append(stage_id)

    for stage_id in stages:
        visit(stage_id)

    return order
