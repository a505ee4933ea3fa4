"""Post-deployment health checks.

A health-check stage runs every named check of its environment through a
probe. All checks must report OK for the stage to pass.
"""

# pylint: disable=unnecessary-ellipsis  # Ellipsis required for Protocol method stubs

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Protocol

import httpx

from testflow_pipeline.environments import DeploymentEnvironment

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class HealthCheckResult:
    """Outcome of one named health check."""

    name: str
    ok: bool
    detail: str = ""


class HealthProbe(Protocol):
    """Protocol for running a named health check against an environment."""

    async def check(self, environment: DeploymentEnvironment, name: str) -> HealthCheckResult:
        """Run one health check.

        Args:
            environment: The just-deployed environment.
            name: Name of the check (e.g. "API Health").

        Returns:
            The check outcome.
        """
        ...


class StaticHealthProbe:
    """Probe that reports every check OK except those marked failing.

    Args:
        failing: Check names that report failure.
    """

    def __init__(self, failing: Iterable[str] = ()) -> None:
        self._failing = frozenset(failing)

    async def check(self, environment: DeploymentEnvironment, name: str) -> HealthCheckResult:
        """Report the declared outcome for a check."""
        if name in self._failing:
            return HealthCheckResult(name, False, f"{name} failing on {environment.name}")
        return HealthCheckResult(name, True, "OK")


class HttpHealthProbe:
    """Probe that issues GET requests against the environment URL.

    Each check name maps to a path; unmapped checks use ``default_path``.
    A 2xx response is OK.

    Example:
        >>> probe = HttpHealthProbe({"Database Connection": "/health/db"})
        >>> result = await probe.check(staging, "Database Connection")

    Args:
        paths: Mapping of check name to URL path.
        default_path: Path used for unmapped checks.
        timeout: Request timeout in seconds.
        client: Optional httpx client (for testing).
    """

    def __init__(
        self,
        paths: Mapping[str, str] | None = None,
        default_path: str = "/health",
        timeout: float = 5.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._paths = dict(paths or {})
        self._default_path = default_path
        self._timeout = timeout
        self._client = client
        self._owns_client = client is None

    async def __aenter__(self) -> "HttpHealthProbe":
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Async context manager exit."""
        await self.aclose()

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout)
        return self._client

    async def aclose(self) -> None:
        """Close the HTTP client if this probe created it."""
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None

    async def check(self, environment: DeploymentEnvironment, name: str) -> HealthCheckResult:
        """Run one check as an HTTP GET."""
        if not environment.url:
            return HealthCheckResult(name, False, f"No URL configured for {environment.id}")

        url = environment.url.rstrip("/") + self._paths.get(name, self._default_path)
        try:
            response = await self._get_client().get(url)
        except httpx.HTTPError as e:
            return HealthCheckResult(name, False, f"GET {url} failed: {e}")

        if response.is_success:
            return HealthCheckResult(name, True, f"HTTP {response.status_code}")
        return HealthCheckResult(name, False, f"HTTP {response.status_code} from {url}")
