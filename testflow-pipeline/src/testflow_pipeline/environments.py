"""Deployment environment definitions."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any


class EnvironmentType(str, Enum):
    """Risk class of a deployment environment."""

    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"


@dataclass(frozen=True)
class DeploymentEnvironment:
    """A deployment target.

    Attributes:
        id: Unique environment identifier, used in stage ids.
        name: Human-readable name.
        type: Risk class of the environment.
        required_approvals: Distinct approvals needed before deploying (0 for none).
        approver_role: Role whose members may approve deployments.
        health_checks: Names of the checks run after deploying.
        url: Optional base URL of the deployed service.
    """

    id: str
    name: str
    type: EnvironmentType
    required_approvals: int = 0
    approver_role: str | None = None
    health_checks: tuple[str, ...] = ("API Health", "Database Connection")
    url: str | None = None

    def __post_init__(self) -> None:
        """Validate and normalize fields."""
        object.__setattr__(self, "type", EnvironmentType(self.type))
        object.__setattr__(self, "health_checks", tuple(self.health_checks))
        if self.required_approvals < 0:
            raise ValueError(f"Environment {self.id}: required_approvals must not be negative")
        if self.required_approvals > 0 and not self.approver_role:
            raise ValueError(f"Environment {self.id}: approver_role is required for approvals")

    @property
    def requires_approval(self) -> bool:
        """Return True if deployments wait for an approval gate."""
        return self.required_approvals > 0

    @classmethod
    def from_dict(cls, env_id: str, data: dict[str, Any]) -> DeploymentEnvironment:
        """Create an environment from a mapping, e.g. a YAML section.

        Missing fields fall back to the defaults for the environment type.

        Args:
            env_id: Environment identifier.
            data: Mapping with ``type`` and optional overrides.

        Returns:
            DeploymentEnvironment instance.

        Raises:
            ValueError: If ``type`` is missing or invalid.
        """
        if "type" not in data:
            raise ValueError(f"Environment {env_id} missing required field: type")
        env_type = EnvironmentType(data["type"])
        base = _DEFAULTS[env_type]
        return cls(
            id=env_id,
            name=str(data.get("name", env_id.capitalize())),
            type=env_type,
            required_approvals=int(data.get("required_approvals", base.required_approvals)),
            approver_role=data.get("approver_role", base.approver_role),
            health_checks=tuple(data.get("health_checks", base.health_checks)),
            url=data.get("url"),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "id": self.id,
            "name": self.name,
            "type": self.type.value,
            "required_approvals": self.required_approvals,
            "approver_role": self.approver_role,
            "health_checks": list(self.health_checks),
            "url": self.url,
        }


_DEFAULTS: dict[EnvironmentType, DeploymentEnvironment] = {
    EnvironmentType.DEVELOPMENT: DeploymentEnvironment(
        id="development",
        name="Development",
        type=EnvironmentType.DEVELOPMENT,
        health_checks=("API Health", "Database Connection"),
    ),
    EnvironmentType.STAGING: DeploymentEnvironment(
        id="staging",
        name="Staging",
        type=EnvironmentType.STAGING,
        required_approvals=1,
        approver_role="senior_developer",
        health_checks=("API Health", "Database Connection", "External Services"),
    ),
    EnvironmentType.PRODUCTION: DeploymentEnvironment(
        id="production",
        name="Production",
        type=EnvironmentType.PRODUCTION,
        required_approvals=2,
        approver_role="architect",
        health_checks=(
            "API Health",
            "Database Connection",
            "External Services",
            "Performance Metrics",
        ),
    ),
}


def default_environments() -> dict[str, DeploymentEnvironment]:
    """Return the development, staging and production environments."""
    return {env.id: env for env in _DEFAULTS.values()}
