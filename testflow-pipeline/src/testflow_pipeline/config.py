"""Pipeline configuration loading.

A pipeline config gathers the execution engine options, automation options,
deployment environments, approver roles, custom triggers and the test
stage to trigger mapping into a single YAML file. Every section is
optional; missing sections use the built-in defaults.

Example YAML:
    engine:
      max_retries: 2
      timeout_ms: 60000
      parallel_execution: true

    automation:
      coverage_threshold: 85
      webhook_url: "https://hooks.example.com/services/T000/B000"

    environments:
      staging:
        type: staging
        url: "https://staging.example.com"
      production:
        type: production
        required_approvals: 2
        approver_role: architect

    approvers:
      architect: [alice, bob]
      senior_developer: [carol]

    triggers:
      - id: smoke
        type: manual
        test_suites: [unit]

    stage_triggers:
      unit_tests: smoke
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from testflow_automation.models import AutomationConfig, TestTrigger
from testflow_runner.config import EngineConfig

from testflow_pipeline.approvals import StaticApproverDirectory
from testflow_pipeline.environments import DeploymentEnvironment, default_environments


@dataclass(frozen=True)
class PipelineConfig:
    """Complete service configuration.

    Attributes:
        engine: Execution engine options.
        automation: Automation engine options.
        environments: Deployment environments by id.
        approvers: Role name to eligible user ids.
        triggers: Custom triggers registered after the defaults.
        stage_triggers: Test stage id to trigger id overrides.
    """

    engine: EngineConfig = field(default_factory=EngineConfig)
    automation: AutomationConfig = field(default_factory=AutomationConfig)
    environments: dict[str, DeploymentEnvironment] = field(default_factory=default_environments)
    approvers: dict[str, tuple[str, ...]] = field(
        default_factory=lambda: dict(StaticApproverDirectory.DEFAULT_ROLES)
    )
    triggers: tuple[TestTrigger, ...] = ()
    stage_triggers: dict[str, str] = field(default_factory=dict)


def _section(data: dict[str, Any], name: str, kind: type) -> Any:
    """Return a top-level section, checking its YAML type."""
    value = data.get(name)
    if value is None:
        return kind()
    if not isinstance(value, kind):
        raise ValueError(f"{name} must be a {'mapping' if kind is dict else 'list'}")
    return value


def load_pipeline_config(path: str | Path) -> PipelineConfig:
    """Load pipeline configuration from a YAML file.

    Args:
        path: Path to the configuration YAML file.

    Returns:
        Parsed PipelineConfig.

    Raises:
        FileNotFoundError: If the config file doesn't exist.
        ValueError: If a section or field is malformed.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Pipeline config not found: {path}")

    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f)

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ValueError("Pipeline config must be a YAML mapping")

    # Parse engine and automation sections
    engine = EngineConfig.from_dict(_section(data, "engine", dict))
    automation = AutomationConfig.from_dict(_section(data, "automation", dict))

    # Parse environments section
    environments_data = _section(data, "environments", dict)
    environments = default_environments()
    if environments_data:
        environments = {}
        for env_id, env_data in environments_data.items():
            if not isinstance(env_data, dict):
                raise ValueError(f"Environment {env_id} must be a mapping")
            environments[str(env_id)] = DeploymentEnvironment.from_dict(str(env_id), env_data)

    # Parse approvers section
    approvers_data = _section(data, "approvers", dict)
    approvers = dict(StaticApproverDirectory.DEFAULT_ROLES)
    if approvers_data:
        approvers = {}
        for role, users in approvers_data.items():
            if not isinstance(users, list):
                raise ValueError(f"approvers.{role} must be a list")
            approvers[str(role)] = tuple(str(u) for u in users)

    # Parse triggers section
    triggers: list[TestTrigger] = []
    for trigger_data in _section(data, "triggers", list):
        if not isinstance(trigger_data, dict):
            raise ValueError("Each trigger must be a mapping")
        triggers.append(TestTrigger.from_dict(trigger_data))

    # Parse stage_triggers section
    stage_triggers = {
        str(stage_id): str(trigger_id)
        for stage_id, trigger_id in _section(data, "stage_triggers", dict).items()
    }

    return PipelineConfig(
        engine=engine,
        automation=automation,
        environments=environments,
        approvers=approvers,
        triggers=tuple(triggers),
        stage_triggers=stage_triggers,
    )
