"""Notification interface.

Automation runs emit formatted status lines (a summary line and a
deployment verdict line). Where they go is up to the Notifier
implementation; the default simply logs them.
"""

# pylint: disable=unnecessary-ellipsis  # Ellipsis required for Protocol method stubs

from __future__ import annotations

from typing import Protocol


class Notifier(Protocol):
    """Protocol for delivering automation status messages."""

    async def notify(self, message: str) -> None:
        """Deliver one formatted status line.

        Implementations should not raise for delivery problems; a lost
        notification must not fail a test run.

        Args:
            message: The formatted message.
        """
        ...
