"""Common types used across testflow modules.

This module provides foundational types used throughout the testflow packages,
including type aliases for identifiers, the test type and status enumerations,
and the Timestamp value used by every result and report.

Type Aliases:
    TestId: Identifies a test definition.
    SuiteId: Identifies a test suite.
    MissionId: Identifies a mission.
    ReportId: Identifies a test or automation report.

Classes:
    TestType: Kind of test (unit, integration, e2e).
    TestStatus: Lifecycle status of a test definition or suite.
    Timestamp: Wall-clock timestamp with nanosecond precision.
"""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import NewType

TestId = NewType("TestId", str)
"""Type alias for test definition identifiers."""

SuiteId = NewType("SuiteId", str)
"""Type alias for test suite identifiers."""

MissionId = NewType("MissionId", str)
"""Type alias for mission identifiers."""

ReportId = NewType("ReportId", str)
"""Type alias for report identifiers."""


def new_id(prefix: str) -> str:
    """Return a process-unique identifier with the given prefix.

    Args:
        prefix: Short label such as "mission" or "exec".

    Returns:
        Identifier of the form "<prefix>_<12 hex chars>".
    """
    return f"{prefix}_{uuid.uuid4().hex[:12]}"


class TestType(str, Enum):
    """Kind of test, used for runner selection.

    Attributes:
        UNIT: Unit test authored by a Core agent.
        INTEGRATION: Integration test authored by a Core or Coordinator agent.
        E2E: End-to-end test authored by a Coordinator agent.
    """

    __test__ = False

    UNIT = "unit"
    INTEGRATION = "integration"
    E2E = "e2e"


class TestStatus(str, Enum):
    """Status of a test definition or test suite."""

    __test__ = False

    PENDING = "pending"
    RUNNING = "running"
    PASSED = "passed"
    FAILED = "failed"


@dataclass(frozen=True)
class Timestamp:
    """Wall-clock timestamp with nanosecond precision.

    Timestamps are stored as nanoseconds since the Unix epoch (1970-01-01 00:00:00 UTC).

    Attributes:
        unix_ns: Nanoseconds since Unix epoch.

    Example:
        >>> ts = Timestamp.now()
        >>> print(f"Time: {ts.isoformat()}")
    """

    unix_ns: int

    @classmethod
    def now(cls) -> Timestamp:
        """Create a timestamp for the current time.

        Returns:
            A new Timestamp with the current time.
        """
        return cls(unix_ns=time.time_ns())

    @classmethod
    def from_datetime(cls, dt: datetime) -> Timestamp:
        """Create a timestamp from a datetime object.

        Args:
            dt: A datetime object to convert. Naive datetimes are assumed
                to be in local time.

        Returns:
            A new Timestamp corresponding to the given datetime.
        """
        return cls(unix_ns=int(dt.timestamp() * 1_000_000_000))

    def to_datetime(self) -> datetime:
        """Convert to a timezone-aware datetime object in UTC."""
        return datetime.fromtimestamp(self.unix_ns / 1_000_000_000, tz=timezone.utc)

    def isoformat(self) -> str:
        """Return the timestamp as an ISO 8601 string in UTC."""
        return self.to_datetime().isoformat()

    @property
    def unix_ms(self) -> int:
        """Return the timestamp as milliseconds since Unix epoch (truncated)."""
        return self.unix_ns // 1_000_000
