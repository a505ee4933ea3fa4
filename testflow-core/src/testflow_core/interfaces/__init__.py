"""Protocol-based interface definitions for testflow.

This package defines the collaborator interfaces (using typing.Protocol)
consumed by the orchestration packages. Implementations are injected at
construction time.

Interface Categories:
    Runner: TestRunner, TestCodeExecutor - executing test payloads
    Notifier: Notifier - delivering automation status lines
"""

from testflow_core.interfaces.notifier import Notifier
from testflow_core.interfaces.runner import CodeOutcome, TestCodeExecutor, TestRunner

__all__ = [
    # Runner interfaces
    "CodeOutcome",
    "TestCodeExecutor",
    "TestRunner",
    # Notifier interfaces
    "Notifier",
]
