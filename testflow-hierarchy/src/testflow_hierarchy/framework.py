"""Hierarchical test framework.

The framework builds the Mission -> Suite -> Test hierarchy and executes a
single test, a suite, or a whole mission through an injected low-level code
executor.

A suite always runs every one of its tests, even after a failure, so the
full set of results is available afterwards. The batch execution engine's
fail-fast option does not apply here.

Example:
    framework = HierarchicalFramework(code_executor=my_executor)

    mission = framework.create_mission(
        "User Authentication",
        "Implement secure user login",
        ["REQ-1.1"],
        "coordinator-1",
    )
    suite = framework.add_sub_task_suite(
        mission.id, "Login", "Login form validation", "core-1", ["REQ-1.1"]
    )
    framework.add_test_to_suite(suite.id, TestSpec(type=TestType.UNIT, title="Rejects empty password"))

    completed = await framework.execute_mission(mission.id)
"""

from __future__ import annotations

import logging
import time
import traceback

from testflow_core.errors import NotFoundError
from testflow_core.interfaces.runner import TestCodeExecutor
from testflow_core.types.common import TestStatus, TestType
from testflow_core.types.definition import ExecutionResult, TestDefinition, TestSpec

from testflow_hierarchy.models import Mission, MissionStatus, TestSuite

logger = logging.getLogger(__name__)


class HierarchicalFramework:
    """Builds and executes missions, suites and tests.

    Args:
        code_executor: Async callable that runs a test's payload.
    """

    def __init__(self, code_executor: TestCodeExecutor) -> None:
        self._code_executor = code_executor
        self._missions: dict[str, Mission] = {}
        self._suites: dict[str, TestSuite] = {}

    # -------------------------------------------------------------------------
    # Construction
    # -------------------------------------------------------------------------

    def create_mission(
        self,
        title: str,
        description: str,
        requirements: list[str],
        coordinator: str,
    ) -> Mission:
        """Create a mission with its end-to-end test.

        Args:
            title: Mission title.
            description: Mission description.
            requirements: Requirement identifiers delivered by the mission.
            coordinator: Coordinating agent.

        Returns:
            The new mission, in ``planning`` status.
        """
        e2e_test = TestDefinition(
            type=TestType.E2E,
            title=f"E2E: {title}",
            description=f"End-to-end test defining completion criteria for: {description}",
            agent_role="Coordinator",
            requirements=list(requirements),
            test_code=f"e2e: {title}",
            created_by=coordinator,
        )
        mission = Mission(
            title=title,
            description=description,
            requirements=list(requirements),
            coordinator=coordinator,
            e2e_test=e2e_test,
        )
        self._missions[mission.id] = mission
        logger.info("Created mission %s (%s)", mission.id, title)
        return mission

    def add_sub_task_suite(
        self,
        mission_id: str,
        name: str,
        description: str,
        owner: str,
        requirements: list[str],
    ) -> TestSuite:
        """Append a new sub-task suite to a mission.

        Args:
            mission_id: Owning mission.
            name: Suite name.
            description: Suite description.
            owner: Agent owning the suite.
            requirements: Requirement identifiers covered by the suite.

        Returns:
            The new suite, in ``pending`` status.

        Raises:
            NotFoundError: If the mission is unknown.
        """
        mission = self._require_mission(mission_id)
        suite = TestSuite(
            name=name,
            description=description,
            owner=owner,
            requirements=list(requirements),
        )
        mission.sub_tasks.append(suite)
        self._suites[suite.id] = suite
        logger.info("Added suite %s (%s) to mission %s", suite.id, name, mission_id)
        return suite

    def add_test_to_suite(self, suite_id: str, spec: TestSpec) -> TestDefinition:
        """Append a pending test to a suite.

        Args:
            suite_id: Target suite.
            spec: Author-supplied test fields.

        Returns:
            The new test definition.

        Raises:
            NotFoundError: If the suite is unknown.
        """
        suite = self._suites.get(suite_id)
        if suite is None:
            raise NotFoundError("test suite", suite_id)
        test = spec.build()
        suite.tests.append(test)
        return test

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def get_mission(self, mission_id: str) -> Mission | None:
        """Return a mission by ID, or None if unknown."""
        return self._missions.get(mission_id)

    def get_suite(self, suite_id: str) -> TestSuite | None:
        """Return a suite by ID, or None if unknown."""
        return self._suites.get(suite_id)

    def get_all_missions(self) -> list[Mission]:
        """Return all missions in creation order."""
        return list(self._missions.values())

    def validate_mission_completion(self, mission_id: str) -> bool:
        """Check whether a mission's E2E test and every suite have passed.

        Does not execute anything.

        Raises:
            NotFoundError: If the mission is unknown.
        """
        mission = self._require_mission(mission_id)
        return mission.e2e_test.passed and all(s.passed for s in mission.sub_tasks)

    # -------------------------------------------------------------------------
    # Execution
    # -------------------------------------------------------------------------

    async def execute_test(self, test: TestDefinition) -> ExecutionResult:
        """Execute one test through the code executor.

        Never raises for failures of the test itself; they are recorded on the
        test and returned as a failed result.

        Args:
            test: The test to execute.

        Returns:
            The execution result, also stored on the test.
        """
        test.status = TestStatus.RUNNING
        start = time.monotonic()

        try:
            outcome = await self._code_executor(test.test_code)
        except Exception as e:  # pylint: disable=broad-except
            logger.error("Test %s raised: %s", test.id, e)
            result = ExecutionResult.failure(
                str(e) or type(e).__name__,
                duration_ms=(time.monotonic() - start) * 1000,
                stack_trace=traceback.format_exc(),
            )
        else:
            error = None
            if not outcome.success:
                error = outcome.error or "Test execution failed"
            result = ExecutionResult(
                success=outcome.success,
                duration_ms=(time.monotonic() - start) * 1000,
                coverage=outcome.coverage,
                error=error,
                logs=tuple(outcome.logs),
            )

        test.record_result(result)
        if result.success:
            logger.info("Test %s passed", test.id)
        else:
            logger.error("Test %s failed: %s", test.id, result.error)
        return result

    async def execute_test_suite(self, suite_id: str) -> bool:
        """Execute every test in a suite in declaration order.

        All tests run even after one fails.

        Args:
            suite_id: The suite to execute.

        Returns:
            True if every test passed.

        Raises:
            NotFoundError: If the suite is unknown.
        """
        suite = self._suites.get(suite_id)
        if suite is None:
            raise NotFoundError("test suite", suite_id)

        suite.status = TestStatus.RUNNING
        all_passed = True
        for test in suite.tests:
            result = await self.execute_test(test)
            if not result.success:
                all_passed = False

        suite.status = TestStatus.PASSED if all_passed else TestStatus.FAILED
        logger.info("Suite %s %s", suite.id, suite.status.value)
        return all_passed

    async def execute_mission(self, mission_id: str) -> bool:
        """Execute every sub-task suite, then the mission's E2E test.

        Args:
            mission_id: The mission to execute.

        Returns:
            True if the mission completed (all suites and the E2E test passed).

        Raises:
            NotFoundError: If the mission is unknown.
        """
        mission = self._require_mission(mission_id)
        mission.status = MissionStatus.RUNNING
        logger.info("Executing mission %s (%s)", mission.id, mission.title)

        suites_passed = True
        for suite in mission.sub_tasks:
            if not await self.execute_test_suite(suite.id):
                suites_passed = False

        e2e_result = await self.execute_test(mission.e2e_test)

        completed = suites_passed and e2e_result.success
        mission.status = MissionStatus.COMPLETED if completed else MissionStatus.FAILED
        logger.info("Mission %s %s", mission.id, mission.status.value)
        return completed

    def _require_mission(self, mission_id: str) -> Mission:
        mission = self._missions.get(mission_id)
        if mission is None:
            raise NotFoundError("mission", mission_id)
        return mission
