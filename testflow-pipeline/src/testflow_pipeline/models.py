"""Pydantic models for the testflow REST API.

This module defines request and response models for the pipeline web
service, plus conversions from the domain objects.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel

from testflow_automation.models import AutomationReport
from testflow_core.types.common import TestType
from testflow_core.types.definition import TestDefinition
from testflow_hierarchy.models import Mission, TestSuite

from testflow_pipeline.approvals import ApprovalDecision, ApprovalGate, GateStatus
from testflow_pipeline.execution import (
    ExecutionStatus,
    PipelineExecution,
    PipelineTriggerType,
    Stage,
    StageStatus,
    StageType,
)


# =============================================================================
# Requests
# =============================================================================


class RunRequest(BaseModel):
    """Request to start a pipeline execution.

    Attributes:
        triggered_by: User or system starting the run.
        trigger_type: What started the run.
        environments: Target environment ids in deployment order.
    """

    triggered_by: str
    trigger_type: PipelineTriggerType = PipelineTriggerType.MANUAL
    environments: list[str] = ["development"]


class ApprovalRequest(BaseModel):
    """An approver's decision on a gate.

    Attributes:
        approver_id: Deciding user.
        decision: Approve or reject.
        comment: Optional comment.
    """

    approver_id: str
    decision: ApprovalDecision
    comment: str | None = None


class TriggerRequest(BaseModel):
    """Event details for a trigger execution.

    Attributes:
        changed_files: Files changed by the event (file-change triggers).
        test_suites: Suite override (manual triggers).
    """

    changed_files: list[str] | None = None
    test_suites: list[str] | None = None

    def to_payload(self) -> dict[str, Any]:
        """Return the fields that were set as an automation payload."""
        return self.model_dump(exclude_none=True)


class MissionRequest(BaseModel):
    """Request to create a mission."""

    title: str
    description: str = ""
    requirements: list[str] = []
    coordinator: str


class SuiteRequest(BaseModel):
    """Request to add a sub-task suite to a mission."""

    name: str
    description: str = ""
    owner: str
    requirements: list[str] = []


class TestRequest(BaseModel):
    """Request to add a test to a suite."""

    __test__ = False

    type: TestType
    title: str
    description: str = ""
    agent_role: str = "Core"
    requirements: list[str] = []
    test_code: str = ""
    created_by: str = ""


# =============================================================================
# Responses
# =============================================================================


class StageModel(BaseModel):
    """A pipeline stage."""

    id: str
    name: str
    type: StageType
    status: StageStatus
    dependencies: list[str]
    environment: str | None = None
    started_at: str | None = None
    ended_at: str | None = None
    error: str | None = None

    @classmethod
    def from_stage(cls, stage: Stage) -> StageModel:
        """Build from a domain stage."""
        return cls(**stage.to_dict())


class ApprovalModel(BaseModel):
    """A recorded approval decision."""

    approver_id: str
    decision: ApprovalDecision
    comment: str | None = None
    timestamp: str


class GateModel(BaseModel):
    """An approval gate."""

    id: str
    execution_id: str
    stage_id: str
    environment: str
    approver_role: str
    required_approvals: int
    approvers: list[str]
    status: GateStatus
    approvals: list[ApprovalModel]
    created_at: str

    @classmethod
    def from_gate(cls, gate: ApprovalGate) -> GateModel:
        """Build from a domain gate."""
        return cls(**gate.to_dict())


class FailureModel(BaseModel):
    """A failed test within a report."""

    test_id: str
    test_title: str
    error: str
    requirements: list[str] = []
    agent_role: str = ""


class AutomationReportModel(BaseModel):
    """An automation run report."""

    id: str
    trigger_id: str
    timestamp: str
    duration_ms: float
    total_tests: int
    passed: int
    failed: int
    skipped: int
    coverage: float
    summary: str
    deployment_ready: bool
    approval_required: bool
    failures: list[FailureModel]

    @classmethod
    def from_report(cls, report: AutomationReport) -> AutomationReportModel:
        """Build from a domain automation report."""
        data = report.to_dict()
        data.pop("test_reports")
        return cls(**data)


class ExecutionModel(BaseModel):
    """A pipeline execution."""

    id: str
    pipeline_id: str
    triggered_by: str
    trigger_type: PipelineTriggerType
    environments: list[str]
    status: ExecutionStatus
    started_at: str
    ended_at: str | None = None
    stages: list[StageModel]
    approval_gates: list[GateModel]
    test_reports: list[AutomationReportModel]

    @classmethod
    def from_execution(cls, execution: PipelineExecution) -> ExecutionModel:
        """Build from a domain execution."""
        return cls(
            id=execution.id,
            pipeline_id=execution.pipeline_id,
            triggered_by=execution.triggered_by,
            trigger_type=execution.trigger_type,
            environments=list(execution.environments),
            status=execution.status,
            started_at=execution.started_at.isoformat(),
            ended_at=execution.ended_at.isoformat() if execution.ended_at else None,
            stages=[StageModel.from_stage(s) for s in execution.stages.values()],
            approval_gates=[GateModel.from_gate(g) for g in execution.approval_gates.values()],
            test_reports=[AutomationReportModel.from_report(r) for r in execution.test_reports],
        )


class TestModel(BaseModel):
    """A test definition."""

    __test__ = False

    id: str
    type: TestType
    title: str
    agent_role: str
    requirements: list[str]
    status: str

    @classmethod
    def from_test(cls, test: TestDefinition) -> TestModel:
        """Build from a domain test definition."""
        return cls(
            id=test.id,
            type=test.type,
            title=test.title,
            agent_role=test.agent_role,
            requirements=list(test.requirements),
            status=test.status.value,
        )


class SuiteModel(BaseModel):
    """A sub-task suite."""

    id: str
    name: str
    owner: str
    status: str
    tests: list[TestModel]

    @classmethod
    def from_suite(cls, suite: TestSuite) -> SuiteModel:
        """Build from a domain suite."""
        return cls(
            id=suite.id,
            name=suite.name,
            owner=suite.owner,
            status=suite.status.value,
            tests=[TestModel.from_test(t) for t in suite.tests],
        )


class MissionModel(BaseModel):
    """A mission with its suites and end-to-end test."""

    id: str
    title: str
    coordinator: str
    requirements: list[str]
    status: str
    e2e_test: TestModel
    sub_tasks: list[SuiteModel]

    @classmethod
    def from_mission(cls, mission: Mission) -> MissionModel:
        """Build from a domain mission."""
        return cls(
            id=mission.id,
            title=mission.title,
            coordinator=mission.coordinator,
            requirements=list(mission.requirements),
            status=mission.status.value,
            e2e_test=TestModel.from_test(mission.e2e_test),
            sub_tasks=[SuiteModel.from_suite(s) for s in mission.sub_tasks],
        )
