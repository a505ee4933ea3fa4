"""Automation trigger engine.

The automation engine binds named triggers to suite selections, runs the
selected tests through the execution engine and derives a deployment
verdict from the result:

- ``deployment_ready`` is true when no test failed and batch coverage is at
  least the configured threshold (80% by default).
- ``approval_required`` is true when a test failed or the trigger is a pull
  request.

The "run everything" path executes every mission of the hierarchy framework
instead and counts each mission as one test.

Example:
    automation = AutomationEngine(
        execution_engine=TestExecutionEngine(runners=default_runners()),
        framework=framework,
    )

    report = await automation.execute_trigger("git_commit")
    if report.deployment_ready:
        ...
"""

from __future__ import annotations

import logging
import time
from typing import Any, Iterable, Mapping

from testflow_core.errors import AlreadyRunningError, NotFoundError, TriggerDisabledError
from testflow_core.interfaces.notifier import Notifier
from testflow_core.types.common import Timestamp, new_id
from testflow_core.types.definition import TestDefinition

from testflow_hierarchy.framework import HierarchicalFramework
from testflow_runner.engine import TestExecutionEngine
from testflow_runner.report import TestFailure, format_summary

from testflow_automation.catalog import SuiteCatalog, filter_paths
from testflow_automation.models import (
    AutomationConfig,
    AutomationReport,
    TestTrigger,
    TriggerType,
    default_triggers,
)
from testflow_automation.notifiers import build_notifier

logger = logging.getLogger(__name__)

# Trigger id reported for mission runs
ALL_MISSIONS_TRIGGER_ID = "all_missions"


class AutomationEngine:
    """Executes triggers and produces automation reports.

    Args:
        execution_engine: Engine used to run trigger batches.
        framework: Hierarchy framework holding missions. Required for
            ``execute_all_missions`` and for resolving suites by type or name.
        config: Automation configuration.
        catalog: Suite catalog. Built from ``framework`` if omitted.
        notifier: Notification sink. Defaults to logging, plus the webhook
            from ``config`` if one is set.
        triggers: Extra triggers registered after the defaults.
    """

    def __init__(
        self,
        execution_engine: TestExecutionEngine,
        framework: HierarchicalFramework | None = None,
        config: AutomationConfig | None = None,
        catalog: SuiteCatalog | None = None,
        notifier: Notifier | None = None,
        triggers: Iterable[TestTrigger] | None = None,
    ) -> None:
        self._execution_engine = execution_engine
        self._framework = framework
        self._config = config or AutomationConfig()
        self._catalog = catalog or SuiteCatalog(framework)
        self._notifier = notifier or build_notifier(self._config.webhook_url)
        self._owns_notifier = notifier is None
        self._triggers: dict[str, TestTrigger] = {}
        self._reports: list[AutomationReport] = []
        self._running = False

        for trigger in default_triggers():
            self.register_trigger(trigger)
        for trigger in triggers or ():
            self.register_trigger(trigger)

    @property
    def config(self) -> AutomationConfig:
        """Return the automation configuration."""
        return self._config

    @property
    def notifier(self) -> Notifier:
        """Return the notification sink."""
        return self._notifier

    @property
    def catalog(self) -> SuiteCatalog:
        """Return the suite catalog."""
        return self._catalog

    @property
    def is_running(self) -> bool:
        """Return True between start() and stop()."""
        return self._running

    @property
    def triggers(self) -> list[TestTrigger]:
        """Return registered triggers in registration order."""
        return list(self._triggers.values())

    @property
    def reports(self) -> tuple[AutomationReport, ...]:
        """Return every automation report so far, oldest first."""
        return tuple(self._reports)

    @property
    def latest_report(self) -> AutomationReport | None:
        """Return the most recent automation report, or None."""
        return self._reports[-1] if self._reports else None

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def start(self) -> None:
        """Mark the engine as running.

        Raises:
            AlreadyRunningError: If the engine is already running.
        """
        if self._running:
            raise AlreadyRunningError("Automation engine is already running")
        self._running = True
        logger.info(
            "Test automation engine started (watching %s)",
            ", ".join(self._config.watch_patterns) or "nothing",
        )

    async def stop(self) -> None:
        """Mark the engine as stopped."""
        self._running = False
        logger.info("Test automation engine stopped")

    async def aclose(self) -> None:
        """Release the notifier if this engine built it."""
        if not self._owns_notifier:
            return
        close = getattr(self._notifier, "aclose", None)
        if close is not None:
            await close()

    # -------------------------------------------------------------------------
    # Triggers
    # -------------------------------------------------------------------------

    def register_trigger(self, trigger: TestTrigger) -> None:
        """Register a trigger, replacing any trigger with the same id.

        Args:
            trigger: The trigger to register.
        """
        if trigger.id in self._triggers:
            logger.info("Replacing trigger %s", trigger.id)
        self._triggers[trigger.id] = trigger

    def get_trigger(self, trigger_id: str) -> TestTrigger:
        """Return a registered trigger.

        Raises:
            NotFoundError: If no trigger has this id.
        """
        trigger = self._triggers.get(trigger_id)
        if trigger is None:
            raise NotFoundError("trigger", trigger_id)
        return trigger

    async def execute_trigger(
        self,
        trigger_id: str,
        payload: Mapping[str, Any] | None = None,
    ) -> AutomationReport:
        """Run the tests selected by a trigger and derive the verdict.

        Args:
            trigger_id: Id of a registered trigger.
            payload: Optional event details. ``changed_files`` narrows a
                file-change trigger; ``test_suites`` overrides the suites of a
                manual trigger.

        Returns:
            The automation report for the run.

        Raises:
            NotFoundError: If the trigger is not registered.
            TriggerDisabledError: If the trigger is disabled.
        """
        trigger = self.get_trigger(trigger_id)
        if not trigger.enabled:
            raise TriggerDisabledError(trigger_id)

        logger.info("Executing trigger: %s (%s)", trigger.type.value, trigger_id)
        start = time.monotonic()

        tests = self.select_tests(trigger, payload or {})
        test_report = await self._execution_engine.execute_batch(tests)

        report = AutomationReport(
            id=new_id("automation"),
            trigger_id=trigger_id,
            timestamp=Timestamp.now(),
            duration_ms=(time.monotonic() - start) * 1000,
            total_tests=test_report.total_tests,
            passed=test_report.passed,
            failed=test_report.failed,
            skipped=test_report.skipped,
            coverage=test_report.coverage,
            failures=test_report.failures,
            summary=test_report.summary,
            deployment_ready=(
                test_report.failed == 0
                and test_report.coverage >= self._config.coverage_threshold
            ),
            approval_required=(
                test_report.failed > 0 or trigger.type is TriggerType.PULL_REQUEST
            ),
            test_reports=(test_report,),
        )

        self._reports.append(report)
        await self._send_notifications(report)
        return report

    def select_tests(
        self,
        trigger: TestTrigger,
        payload: Mapping[str, Any],
    ) -> list[TestDefinition]:
        """Resolve the batch a trigger runs for an event payload.

        Args:
            trigger: The trigger being executed.
            payload: Event details.

        Returns:
            Tests to run, possibly empty.
        """
        suites: Iterable[str] = trigger.test_suites

        if trigger.type is TriggerType.MANUAL and payload.get("test_suites"):
            suites = [str(name) for name in payload["test_suites"]]

        if trigger.type is TriggerType.FILE_CHANGE and "changed_files" in payload:
            relevant = filter_paths(
                [str(path) for path in payload["changed_files"]],
                trigger.patterns,
                self._config.exclude_patterns,
            )
            if not relevant:
                logger.info("No changed file matches trigger %s", trigger.id)
                return []
            logger.debug("Changed files selected by %s: %s", trigger.id, relevant)

        return self._catalog.resolve(suites)

    # -------------------------------------------------------------------------
    # Missions
    # -------------------------------------------------------------------------

    async def execute_all_missions(self) -> AutomationReport:
        """Execute every mission and count each one as a test.

        A mission that raises counts as failed; the error is logged.

        Returns:
            The automation report for the run.
        """
        framework = self._framework
        missions = framework.get_all_missions() if framework is not None else []
        logger.info("Executing %d mission(s)", len(missions))
        start = time.monotonic()

        passed = 0
        failures: list[TestFailure] = []

        for mission in missions:
            assert framework is not None
            try:
                completed = await framework.execute_mission(mission.id)
            except Exception as e:  # pylint: disable=broad-except
                logger.exception("Mission %s failed", mission.id)
                failures.append(
                    TestFailure(
                        test_id=mission.id,
                        test_title=mission.title,
                        error=str(e) or type(e).__name__,
                        requirements=tuple(mission.requirements),
                        agent_role="Coordinator",
                    )
                )
                continue

            if completed:
                passed += 1
            else:
                failures.append(
                    TestFailure(
                        test_id=mission.id,
                        test_title=mission.title,
                        error="Mission did not complete",
                        requirements=tuple(mission.requirements),
                        agent_role="Coordinator",
                    )
                )

        report = AutomationReport(
            id=new_id("missions"),
            trigger_id=ALL_MISSIONS_TRIGGER_ID,
            timestamp=Timestamp.now(),
            duration_ms=(time.monotonic() - start) * 1000,
            total_tests=len(missions),
            passed=passed,
            failed=len(failures),
            skipped=0,
            coverage=0.0,
            failures=tuple(failures),
            summary=format_summary(passed, len(missions)),
            deployment_ready=not failures,
            approval_required=bool(failures),
        )

        self._reports.append(report)
        await self._send_notifications(report)
        return report

    # -------------------------------------------------------------------------
    # Notifications
    # -------------------------------------------------------------------------

    async def _send_notifications(self, report: AutomationReport) -> None:
        if self._config.slack_notifications:
            await self._notifier.notify(format_notification(report))

        if report.deployment_ready:
            await self._notifier.notify("Deployment approved - all tests passed")
        else:
            await self._notifier.notify(
                "Deployment blocked - tests failed or approval required"
            )


def format_notification(report: AutomationReport) -> str:
    """Format the summary notification line for a report.

    Args:
        report: The automation report.

    Returns:
        A single line starting with "Slack notification:".
    """
    status = "FAILED" if report.failed > 0 else "PASSED"
    return (
        f"Slack notification: Test Automation Report {status} | "
        f"Tests: {report.passed}/{report.total_tests} passed | "
        f"Coverage: {report.coverage:.1f}% | "
        f"Duration: {report.duration_ms:.0f}ms | "
        f"Deployment Ready: {'yes' if report.deployment_ready else 'no'}"
    )
