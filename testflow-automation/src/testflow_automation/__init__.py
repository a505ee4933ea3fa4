"""Automation trigger engine for testflow.

This package maps named triggers (file change, commit, pull request,
nightly, manual) to batches of tests, runs them through the execution
engine and decides whether the result allows deployment.

Example usage:

    from testflow_automation import AutomationEngine

    automation = AutomationEngine(execution_engine=engine, framework=framework)
    report = await automation.execute_trigger(
        "file_change", {"changed_files": ["src/app/login.py"]}
    )

    if report.approval_required:
        print("Waiting for review")
"""

from testflow_automation.catalog import SuiteCatalog, filter_paths, matches_any, matches_pattern
from testflow_automation.engine import (
    ALL_MISSIONS_TRIGGER_ID,
    AutomationEngine,
    format_notification,
)
from testflow_automation.models import (
    AutomationConfig,
    AutomationReport,
    TestTrigger,
    TriggerType,
    default_triggers,
)
from testflow_automation.notifiers import (
    CompositeNotifier,
    LoggingNotifier,
    WebhookNotifier,
    build_notifier,
)

__all__ = [
    # Engine
    "ALL_MISSIONS_TRIGGER_ID",
    "AutomationEngine",
    "format_notification",
    # Models
    "AutomationConfig",
    "AutomationReport",
    "TestTrigger",
    "TriggerType",
    "default_triggers",
    # Suite selection
    "SuiteCatalog",
    "filter_paths",
    "matches_any",
    "matches_pattern",
    # Notifiers
    "CompositeNotifier",
    "LoggingNotifier",
    "WebhookNotifier",
    "build_notifier",
]
