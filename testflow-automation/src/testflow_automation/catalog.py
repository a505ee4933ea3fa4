"""Resolution of suite names to test definitions.

A trigger names the suites it runs ("unit", "integration", "Login Suite").
The catalog turns those names into a concrete batch:

1. A batch registered under the name is used as-is.
2. A name equal to a test type selects every test of that type across all
   missions known to the hierarchy framework.
3. Otherwise the name selects the tests of every suite with that name.

Names that resolve to nothing contribute no tests. A test reachable
through several names appears once, at its first position.
"""

from __future__ import annotations

import fnmatch
import logging
from typing import Iterable, Sequence

from testflow_core.types.common import TestType
from testflow_core.types.definition import TestDefinition

from testflow_hierarchy.framework import HierarchicalFramework

logger = logging.getLogger(__name__)


def matches_pattern(path: str, pattern: str) -> bool:
    """Check a path against a glob pattern.

    ``**/`` also matches zero directories, so ``src/**/*.py`` matches
    ``src/app.py`` as well as ``src/pkg/app.py``.

    Args:
        path: Slash-separated file path.
        pattern: Glob pattern.

    Returns:
        True if the path matches.
    """
    path = path.replace("\\", "/")
    if fnmatch.fnmatch(path, pattern):
        return True
    if "**/" in pattern:
        return fnmatch.fnmatch(path, pattern.replace("**/", ""))
    return False


def matches_any(path: str, patterns: Iterable[str]) -> bool:
    """Check a path against any of several glob patterns."""
    return any(matches_pattern(path, pattern) for pattern in patterns)


def filter_paths(
    paths: Iterable[str],
    patterns: Sequence[str],
    exclude_patterns: Sequence[str] = (),
) -> list[str]:
    """Return the paths selected by ``patterns`` and not excluded.

    Args:
        paths: Candidate file paths.
        patterns: Patterns a path must match.
        exclude_patterns: Patterns that reject a path.

    Returns:
        Selected paths in input order.
    """
    return [
        path
        for path in paths
        if matches_any(path, patterns) and not matches_any(path, exclude_patterns)
    ]


class SuiteCatalog:
    """Maps suite names to batches of test definitions.

    Args:
        framework: Optional hierarchy framework used to resolve test types
            and suite names.
    """

    def __init__(self, framework: HierarchicalFramework | None = None) -> None:
        self._framework = framework
        self._batches: dict[str, list[TestDefinition]] = {}

    @property
    def names(self) -> list[str]:
        """Return the explicitly registered batch names."""
        return list(self._batches)

    def register(self, name: str, tests: Iterable[TestDefinition]) -> None:
        """Register a named batch, replacing any batch with the same name.

        Args:
            name: Suite name used by triggers.
            tests: Tests in the batch.
        """
        self._batches[name] = list(tests)
        logger.debug("Registered suite %s with %d test(s)", name, len(self._batches[name]))

    def unregister(self, name: str) -> None:
        """Remove a named batch if present."""
        self._batches.pop(name, None)

    def resolve(self, names: Iterable[str]) -> list[TestDefinition]:
        """Resolve suite names into a single deduplicated batch.

        Args:
            names: Suite names in priority order.

        Returns:
            Tests in resolution order without duplicates.
        """
        selected: list[TestDefinition] = []
        seen: set[str] = set()

        for name in names:
            tests = self._resolve_one(name)
            if not tests:
                logger.debug("Suite %s resolved to no tests", name)
            for test in tests:
                if test.id not in seen:
                    seen.add(test.id)
                    selected.append(test)

        return selected

    def _resolve_one(self, name: str) -> list[TestDefinition]:
        if name in self._batches:
            return list(self._batches[name])
        if self._framework is None:
            return []

        missions = self._framework.get_all_missions()
        try:
            test_type = TestType(name)
        except ValueError:
            return [
                test
                for mission in missions
                for suite in mission.sub_tasks
                if suite.name == name
                for test in suite.tests
            ]

        return [
            test for mission in missions for test in mission.all_tests() if test.type is test_type
        ]
