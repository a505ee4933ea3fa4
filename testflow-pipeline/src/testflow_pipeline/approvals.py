"""Approval gates for risk-sensitive deployments.

A gate collects decisions from eligible approvers. It becomes ``approved``
once distinct approvals reach the required count and ``rejected`` on the
first rejection. A gate whose execution is cancelled becomes ``cancelled``
and accepts no further decisions. The first terminal transition wins; later
decisions are recorded but do not change the status.
"""

# pylint: disable=unnecessary-ellipsis  # Ellipsis required for Protocol method stubs

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Collection, Mapping, Protocol

from testflow_core.types.common import Timestamp


class GateStatus(str, Enum):
    """Status of an approval gate."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    CANCELLED = "cancelled"


class ApprovalDecision(str, Enum):
    """Decision recorded by an approver."""

    APPROVE = "approve"
    REJECT = "reject"


@dataclass(frozen=True)
class Approval:
    """One approver's decision on a gate."""

    approver_id: str
    decision: ApprovalDecision
    comment: str | None = None
    timestamp: Timestamp = field(default_factory=Timestamp.now)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "approver_id": self.approver_id,
            "decision": self.decision.value,
            "comment": self.comment,
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass
class ApprovalGate:
    """Quorum-based sign-off guarding a deploy stage.

    Attributes:
        id: Unique gate identifier.
        execution_id: Pipeline execution that owns the gate.
        stage_id: Deploy stage waiting on the gate.
        environment: Target environment id.
        approver_role: Role whose members may decide.
        required_approvals: Distinct approvals needed.
        approvers: User ids eligible to decide.
        status: Current gate status.
        approvals: Decisions in the order received.
        created_at: When the gate was opened.
    """

    id: str
    execution_id: str
    stage_id: str
    environment: str
    approver_role: str
    required_approvals: int
    approvers: frozenset[str] = frozenset()
    status: GateStatus = GateStatus.PENDING
    approvals: list[Approval] = field(default_factory=list)
    created_at: Timestamp = field(default_factory=Timestamp.now)
    _decided: asyncio.Event = field(
        default_factory=asyncio.Event, init=False, repr=False, compare=False
    )

    @property
    def approve_count(self) -> int:
        """Return the number of approve decisions."""
        return sum(1 for a in self.approvals if a.decision is ApprovalDecision.APPROVE)

    @property
    def is_pending(self) -> bool:
        """Return True until the gate reaches a terminal status."""
        return self.status is GateStatus.PENDING

    def has_decided(self, approver_id: str) -> bool:
        """Return True if the approver already recorded a decision."""
        return any(a.approver_id == approver_id for a in self.approvals)

    def record(self, approval: Approval) -> None:
        """Append a decision and update the status.

        Eligibility and duplicate checks are the caller's responsibility.

        Args:
            approval: The decision to record.
        """
        self.approvals.append(approval)
        if not self.is_pending:
            return

        if approval.decision is ApprovalDecision.REJECT:
            self.status = GateStatus.REJECTED
        elif self.approve_count >= self.required_approvals:
            self.status = GateStatus.APPROVED

        if not self.is_pending:
            self._decided.set()

    def cancel(self) -> None:
        """Close a pending gate without a decision."""
        if self.is_pending:
            self.status = GateStatus.CANCELLED
            self._decided.set()

    async def wait(self) -> GateStatus:
        """Wait until the gate reaches a terminal status.

        Returns:
            The terminal status.
        """
        await self._decided.wait()
        return self.status

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "id": self.id,
            "execution_id": self.execution_id,
            "stage_id": self.stage_id,
            "environment": self.environment,
            "approver_role": self.approver_role,
            "required_approvals": self.required_approvals,
            "approvers": sorted(self.approvers),
            "status": self.status.value,
            "approvals": [a.to_dict() for a in self.approvals],
            "created_at": self.created_at.isoformat(),
        }


class ApproverSource(Protocol):
    """Source of the users eligible to decide a gate."""

    def eligible_approvers(self, gate: ApprovalGate) -> Collection[str]:
        """Return the user ids allowed to decide the gate.

        Args:
            gate: The gate being opened.

        Returns:
            Eligible user ids.
        """
        ...


class StaticApproverDirectory:
    """Approver source backed by a fixed role to users mapping.

    Args:
        roles: Mapping of role name to user ids. Defaults to two architects
            and two senior developers.
    """

    DEFAULT_ROLES: dict[str, tuple[str, ...]] = {
        "architect": ("architect-1", "architect-2"),
        "senior_developer": ("senior-dev-1", "senior-dev-2"),
    }

    def __init__(self, roles: Mapping[str, Collection[str]] | None = None) -> None:
        source = self.DEFAULT_ROLES if roles is None else roles
        self._roles = {role: frozenset(users) for role, users in source.items()}

    @property
    def roles(self) -> dict[str, frozenset[str]]:
        """Return the role mapping."""
        return dict(self._roles)

    def eligible_approvers(self, gate: ApprovalGate) -> frozenset[str]:
        """Return the members of the gate's approver role."""
        return self._roles.get(gate.approver_role, frozenset())
