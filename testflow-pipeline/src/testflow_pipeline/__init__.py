"""CI/CD pipeline manager for testflow.

This package builds staged pipeline executions (tests, build, security
scan, then deploy and health check per environment), gates deployments
behind quorum approval and exposes everything through a REST service.

Example usage:

    from testflow_pipeline import PipelineTriggerType, build_services

    services = build_services()
    execution = await services.manager.create_execution(
        "web-app", "alice", PipelineTriggerType.COMMIT, ["development", "staging"]
    )

    for gate in services.manager.get_pending_approvals():
        await services.manager.process_approval(gate.id, "senior-dev-1", "approve")

    await services.manager.wait(execution.id)
"""

from testflow_pipeline.approvals import (
    Approval,
    ApprovalDecision,
    ApprovalGate,
    ApproverSource,
    GateStatus,
    StaticApproverDirectory,
)
from testflow_pipeline.config import PipelineConfig, load_pipeline_config
from testflow_pipeline.environments import (
    DeploymentEnvironment,
    EnvironmentType,
    default_environments,
)
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
from testflow_pipeline.health import (
    HealthCheckResult,
    HealthProbe,
    HttpHealthProbe,
    StaticHealthProbe,
)
from testflow_pipeline.manager import PipelineManager
from testflow_pipeline.services import PipelineServices, build_services

__all__ = [
    # Manager
    "PipelineManager",
    # Executions
    "ExecutionStatus",
    "PipelineExecution",
    "PipelineTriggerType",
    "Stage",
    "StageStatus",
    "StageType",
    "build_stages",
    "stage_order",
    # Environments
    "DeploymentEnvironment",
    "EnvironmentType",
    "default_environments",
    # Approvals
    "Approval",
    "ApprovalDecision",
    "ApprovalGate",
    "ApproverSource",
    "GateStatus",
    "StaticApproverDirectory",
    # Health checks
    "HealthCheckResult",
    "HealthProbe",
    "HttpHealthProbe",
    "StaticHealthProbe",
    # Configuration
    "PipelineConfig",
    "load_pipeline_config",
    # Services
    "PipelineServices",
    "build_services",
]
