"""Assembly of the testflow service graph from a configuration."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from testflow_automation.engine import AutomationEngine
from testflow_hierarchy.executors import DryRunCodeExecutor
from testflow_hierarchy.framework import HierarchicalFramework
from testflow_runner.engine import TestExecutionEngine
from testflow_runner.runners import default_runners

from testflow_pipeline.approvals import StaticApproverDirectory
from testflow_pipeline.config import PipelineConfig
from testflow_pipeline.health import HealthProbe, HttpHealthProbe, StaticHealthProbe
from testflow_pipeline.manager import PipelineManager

logger = logging.getLogger(__name__)


@dataclass
class PipelineServices:
    """The components behind one service instance."""

    config: PipelineConfig
    framework: HierarchicalFramework
    execution_engine: TestExecutionEngine
    automation: AutomationEngine
    manager: PipelineManager
    health_probe: HealthProbe

    async def aclose(self) -> None:
        """Cancel in-flight executions and release HTTP clients."""
        await self.manager.shutdown()
        await self.automation.aclose()
        if isinstance(self.health_probe, HttpHealthProbe):
            await self.health_probe.aclose()


def build_services(config: PipelineConfig | None = None) -> PipelineServices:
    """Build the service graph with dry-run runners.

    Args:
        config: Service configuration. Defaults are used if omitted.

    Returns:
        Wired components.
    """
    config = config or PipelineConfig()

    framework = HierarchicalFramework(code_executor=DryRunCodeExecutor())
    execution_engine = TestExecutionEngine(config=config.engine, runners=default_runners())
    automation = AutomationEngine(
        execution_engine=execution_engine,
        framework=framework,
        config=config.automation,
        triggers=config.triggers,
    )
    health_probe: HealthProbe
    if config.environments and all(env.url for env in config.environments.values()):
        health_probe = HttpHealthProbe()
    else:
        health_probe = StaticHealthProbe()

    manager = PipelineManager(
        automation,
        environments=config.environments,
        approvers=StaticApproverDirectory(config.approvers),
        health_probe=health_probe,
        stage_triggers=config.stage_triggers,
    )

    logger.info(
        "Services ready: %d environment(s), %d trigger(s)",
        len(config.environments),
        len(automation.triggers),
    )
    return PipelineServices(
        config=config,
        framework=framework,
        execution_engine=execution_engine,
        automation=automation,
        manager=manager,
        health_probe=health_probe,
    )
