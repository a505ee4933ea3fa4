"""Hierarchical test framework for testflow.

This package models the Mission -> Suite -> Test hierarchy and executes it
through an injected code executor. Role-aware generators build the test
specs coordinators and core agents add to it.

Example usage:

    from testflow_hierarchy import HierarchicalFramework, DryRunCodeExecutor

    framework = HierarchicalFramework(code_executor=DryRunCodeExecutor())
    mission = framework.create_mission("Checkout", "Pay for a cart", ["REQ-7"], "coordinator-1")

    if await framework.execute_mission(mission.id):
        print("Mission completed")
"""

from testflow_hierarchy.executors import DryRunCodeExecutor
from testflow_hierarchy.framework import HierarchicalFramework
from testflow_hierarchy.generators import (
    CoordinatorTestGenerator,
    CoreTestGenerator,
    GenerationContext,
)
from testflow_hierarchy.models import Mission, MissionStatus, TestSuite

__all__ = [
    "CoordinatorTestGenerator",
    "CoreTestGenerator",
    "DryRunCodeExecutor",
    "GenerationContext",
    "HierarchicalFramework",
    "Mission",
    "MissionStatus",
    "TestSuite",
]
