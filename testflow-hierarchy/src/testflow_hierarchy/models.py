"""Mission and suite types for the hierarchical test model.

A Mission is the root of the hierarchy. It is anchored by exactly one
end-to-end test and owns an ordered sequence of sub-task suites, each of
which owns an ordered sequence of test definitions.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from testflow_core.types.common import MissionId, SuiteId, TestStatus, Timestamp, new_id
from testflow_core.types.definition import TestDefinition


class MissionStatus(str, Enum):
    """Lifecycle status of a mission.

    Attributes:
        PLANNING: Created, not yet executed.
        RUNNING: Execution in progress.
        COMPLETED: All suites and the E2E test passed.
        FAILED: At least one suite or the E2E test failed.
    """

    PLANNING = "planning"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class TestSuite:
    """A named group of tests belonging to a mission's sub-task.

    Attributes:
        name: Suite name.
        description: What the sub-task covers.
        owner: Agent that owns the suite.
        requirements: Requirement identifiers covered by the suite.
        tests: Tests in declaration order.
        id: Unique suite identifier.
        status: Aggregate status; passed only if every test passed.
    """

    __test__ = False

    name: str
    description: str = ""
    owner: str = ""
    requirements: list[str] = field(default_factory=list)
    tests: list[TestDefinition] = field(default_factory=list)
    id: SuiteId = field(default_factory=lambda: SuiteId(new_id("suite")))
    status: TestStatus = TestStatus.PENDING

    @property
    def passed(self) -> bool:
        """Return True if the suite's last execution passed."""
        return self.status == TestStatus.PASSED

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "owner": self.owner,
            "requirements": list(self.requirements),
            "status": self.status.value,
            "tests": [t.to_dict() for t in self.tests],
        }


@dataclass
class Mission:
    """Top-level hierarchical test unit anchored by one end-to-end test.

    Attributes:
        title: Mission title.
        description: Mission description.
        requirements: Requirement identifiers the mission delivers.
        coordinator: Coordinating agent.
        e2e_test: The end-to-end test that defines completion.
        sub_tasks: Sub-task suites in declaration order.
        id: Unique mission identifier.
        status: Lifecycle status.
        created_at: Creation time.
    """

    title: str
    description: str
    requirements: list[str]
    coordinator: str
    e2e_test: TestDefinition
    sub_tasks: list[TestSuite] = field(default_factory=list)
    id: MissionId = field(default_factory=lambda: MissionId(new_id("mission")))
    status: MissionStatus = MissionStatus.PLANNING
    created_at: Timestamp = field(default_factory=Timestamp.now)

    def all_tests(self) -> list[TestDefinition]:
        """Return every test in the mission, sub-task tests first, E2E test last."""
        tests = [test for suite in self.sub_tasks for test in suite.tests]
        tests.append(self.e2e_test)
        return tests

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "requirements": list(self.requirements),
            "coordinator": self.coordinator,
            "status": self.status.value,
            "created_at": self.created_at.isoformat(),
            "e2e_test": self.e2e_test.to_dict(),
            "sub_tasks": [s.to_dict() for s in self.sub_tasks],
        }
