"""Role-aware test spec generators.

Coordinators author the tests that define when a mission is done (E2E and
cross-component integration tests). Core agents author the tests for the
task they were delegated (unit, task integration and property tests).

Each generator returns a TestSpec whose ``test_code`` is a pytest skeleton
derived from a GenerationContext. The spec is added to a suite with
``HierarchicalFramework.add_test_to_suite``, which assigns the identifier.

Example:
    context = GenerationContext(
        requirements=("REQ-1.1",),
        user_story="As a user, I want to log in, so that I can see my account",
        acceptance_criteria=("WHEN credentials are valid THEN login SHALL succeed",),
    )

    spec = CoreTestGenerator().unit_test("AuthService", "login", context, "core-1")
    framework.add_test_to_suite(suite.id, spec)
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable

from testflow_core.types.common import TestType
from testflow_core.types.definition import TestSpec

COORDINATOR_ROLE = "Coordinator"
CORE_ROLE = "Core"

# Preconditions every generated E2E scenario starts from
E2E_PRECONDITIONS = (
    "User is authenticated and has appropriate permissions",
    "System is in a clean, known state",
    "All required dependencies are available",
)

_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")


def snake_case(name: str) -> str:
    """Convert a component name such as ``UserRepository`` to ``user_repository``."""
    return _CAMEL_BOUNDARY.sub("_", name.strip()).replace(" ", "_").replace("-", "_").lower()


@dataclass(frozen=True)
class GenerationContext:
    """What a generated test has to verify.

    Attributes:
        requirements: Requirement identifiers covered by the test.
        user_story: The story the work delivers.
        acceptance_criteria: Criteria the behaviour must meet.
        technical_specs: Optional implementation constraints.
        dependencies: Optional collaborating components.
    """

    requirements: tuple[str, ...] = ()
    user_story: str = ""
    acceptance_criteria: tuple[str, ...] = ()
    technical_specs: tuple[str, ...] = ()
    dependencies: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        for name in (
            "requirements",
            "acceptance_criteria",
            "technical_specs",
            "dependencies",
        ):
            value = getattr(self, name)
            if isinstance(value, str):
                raise ValueError(f"{name} must be a list of strings, got {value!r}")
            object.__setattr__(self, name, tuple(value))


def _requirement_lines(context: GenerationContext, indent: str = "    ") -> list[str]:
    return [f"{indent}# Requirements validation: {', '.join(context.requirements)}"] + [
        f"{indent}# Validates: {req}" for req in context.requirements
    ]


class CoordinatorTestGenerator:
    """Generates the mission-level tests a coordinator owns."""

    def e2e_test(self, title: str, context: GenerationContext, created_by: str) -> TestSpec:
        """Build an E2E test in Given/When/Then form.

        Args:
            title: Mission or feature title.
            context: Story, criteria and requirements to verify.
            created_by: Authoring coordinator.

        Returns:
            An E2E test spec authored by the Coordinator role.
        """
        when = [f"User performs action described in: {c}" for c in context.acceptance_criteria]
        then = [f"System behaves according to: {c}" for c in context.acceptance_criteria]

        lines = [
            f'"""E2E: {title}."""',
            "",
            "",
            f"def test_{snake_case(title)}_end_to_end():",
            f'    """User completes: {context.user_story}"""',
            f"    # Given: {', '.join(E2E_PRECONDITIONS)}",
            *(f"    #   {step}" for step in E2E_PRECONDITIONS),
            f"    # When: {', '.join(when)}",
            *(f"    #   {step}" for step in when),
            f"    # Then: {', '.join(then)}",
            *(f"    #   {step}" for step in then),
            *_requirement_lines(context),
        ]
        return TestSpec(
            type=TestType.E2E,
            title=f"E2E: {title}",
            description=f"End-to-end test defining completion criteria for: {context.user_story}",
            agent_role=COORDINATOR_ROLE,
            requirements=context.requirements,
            test_code="\n".join(lines) + "\n",
            created_by=created_by,
        )

    def integration_test(
        self,
        component_a: str,
        component_b: str,
        interaction: str,
        context: GenerationContext,
        created_by: str,
    ) -> TestSpec:
        """Build an integration test for the interaction of two components."""
        var_a, var_b = snake_case(component_a), snake_case(component_b)
        lines = [
            f'"""Integration: {component_a} <-> {component_b}."""',
            "",
            "import pytest",
            "",
            f"from {var_a} import {component_a}",
            f"from {var_b} import {component_b}",
            "",
            "",
            "@pytest.fixture",
            f"def {var_a}():",
            f"    return {component_a}()",
            "",
            "",
            "@pytest.fixture",
            f"def {var_b}():",
            f"    return {component_b}()",
            "",
            "",
            f"def test_{snake_case(interaction)}({var_a}, {var_b}):",
            f'    """Should {interaction}."""',
            "    # Arrange: set up test data and collaborators",
            "    # Act: perform the interaction between components",
            "    # Assert: verify the interaction produces expected results",
            *_requirement_lines(context),
        ]
        return TestSpec(
            type=TestType.INTEGRATION,
            title=f"Integration: {component_a} <-> {component_b}",
            description=f"Integration test for: {interaction}",
            agent_role=COORDINATOR_ROLE,
            requirements=context.requirements,
            test_code="\n".join(lines) + "\n",
            created_by=created_by,
        )


class CoreTestGenerator:
    """Generates the task-level tests a core agent owns."""

    def unit_test(
        self, component: str, method: str, context: GenerationContext, created_by: str
    ) -> TestSpec:
        """Build a unit test with one case per acceptance criterion.

        Every unit test also checks that ``None`` input raises.

        Args:
            component: Class under test.
            method: Method under test.
            context: Criteria and requirements to verify.
            created_by: Authoring core agent.

        Returns:
            A unit test spec authored by the Core role.
        """
        instance = snake_case(component)
        cases = [
            (f"test_input_{index}", f"expected_output_{index}")
            for index in range(len(context.acceptance_criteria))
        ]
        lines = [
            f'"""Unit: {component}.{method}."""',
            "",
            "import pytest",
            "",
            f"from {instance} import {component}",
            "",
            "",
            "@pytest.fixture",
            f"def {instance}():",
            f"    return {component}()",
            "",
        ]
        if cases:
            lines += [
                "",
                f'@pytest.mark.parametrize(("value", "expected"), {cases!r})',
                f"def test_{snake_case(method)}({instance}, value, expected):",
                f"    assert {instance}.{method}(value) == expected",
                *_requirement_lines(context),
                "",
            ]
        lines += [
            "",
            f"def test_{snake_case(method)}_rejects_none({instance}):",
            "    with pytest.raises((TypeError, ValueError)):",
            f"        {instance}.{method}(None)",
        ]
        return TestSpec(
            type=TestType.UNIT,
            title=f"Unit: {component}.{method}",
            description=f"Unit test for {component}.{method} method",
            agent_role=CORE_ROLE,
            requirements=context.requirements,
            test_code="\n".join(lines) + "\n",
            created_by=created_by,
        )

    def task_integration_test(
        self,
        task_name: str,
        dependencies: Iterable[str],
        context: GenerationContext,
        created_by: str,
    ) -> TestSpec:
        """Build an integration test for a delegated task and its collaborators."""
        deps = list(dependencies)
        names = [snake_case(dep) for dep in deps]
        lines = [
            f'"""{task_name} Task Integration."""',
            "",
            *(f"from {name} import {dep}" for name, dep in zip(names, deps)),
            "",
            "",
            f"def test_{snake_case(task_name)}_completes():",
            *(f"    {name} = {dep}()" for name, dep in zip(names, deps)),
            "    # Act: execute the complete task workflow",
            "    # Assert: verify task completion and all side effects",
            *_requirement_lines(context),
            "",
            "",
            f"def test_{snake_case(task_name)}_recovers_from_errors():",
            "    # Exercise error scenarios and recovery paths",
            "    pass",
        ]
        return TestSpec(
            type=TestType.INTEGRATION,
            title=f"Task Integration: {task_name}",
            description=f"Integration test for task: {task_name}",
            agent_role=CORE_ROLE,
            requirements=context.requirements,
            test_code="\n".join(lines) + "\n",
            created_by=created_by,
        )

    def property_test(
        self, component: str, property_name: str, context: GenerationContext, created_by: str
    ) -> TestSpec:
        """Build a hypothesis-style property test for a component invariant."""
        instance = snake_case(component)
        lines = [
            f'"""{component}.{property_name} Properties."""',
            "",
            "from hypothesis import given, strategies as st",
            "",
            f"from {instance} import {component}",
            "",
            "",
            "@given(st.text())",
            f"def test_{snake_case(property_name)}_holds(value):",
            f"    {instance} = {component}()",
            f"    # Property: {property_name} holds for any input",
            *_requirement_lines(context),
        ]
        return TestSpec(
            type=TestType.UNIT,
            title=f"Property: {component}.{property_name}",
            description=f"Property-based test for {component}.{property_name}",
            agent_role=CORE_ROLE,
            requirements=context.requirements,
            test_code="\n".join(lines) + "\n",
            created_by=created_by,
        )
