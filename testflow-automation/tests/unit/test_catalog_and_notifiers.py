"""Unit tests for suite selection, automation models and notifiers."""

from __future__ import annotations

import json
import logging
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from testflow_core.types.common import TestType
from testflow_core.types.definition import TestDefinition, TestSpec

from testflow_hierarchy.executors import DryRunCodeExecutor
from testflow_hierarchy.framework import HierarchicalFramework

from testflow_automation.catalog import SuiteCatalog, filter_paths, matches_pattern
from testflow_automation.models import AutomationConfig, TestTrigger, TriggerType
from testflow_automation.notifiers import (
    CompositeNotifier,
    LoggingNotifier,
    WebhookNotifier,
    build_notifier,
)


@pytest.fixture
def framework() -> HierarchicalFramework:
    """Create a framework with one mission, two suites and three tests."""
    framework = HierarchicalFramework(code_executor=DryRunCodeExecutor())
    mission = framework.create_mission("Auth", "Login", ["REQ-1"], "coordinator-1")
    login = framework.add_sub_task_suite(mission.id, "Login", "d", "core-1", ["REQ-1.1"])
    api = framework.add_sub_task_suite(mission.id, "API", "d", "core-2", ["REQ-1.2"])
    framework.add_test_to_suite(login.id, TestSpec(type=TestType.UNIT, title="form"))
    framework.add_test_to_suite(login.id, TestSpec(type=TestType.INTEGRATION, title="flow"))
    framework.add_test_to_suite(api.id, TestSpec(type=TestType.UNIT, title="token"))
    return framework


class TestPatterns:
    """Tests for glob matching."""

    @pytest.mark.parametrize(
        ("path", "pattern", "expected"),
        [
            ("src/app/login.py", "src/**/*.py", True),
            ("src/login.py", "src/**/*.py", True),
            ("docs/index.md", "src/**/*.py", False),
            ("anything/at/all.txt", "**/*", True),
            ("src\\app\\login.py", "src/**/*.py", True),
        ],
    )
    def test_matches_pattern(self, path: str, pattern: str, expected: bool) -> None:
        assert matches_pattern(path, pattern) is expected

    def test_filter_paths(self) -> None:
        paths = ["src/a.py", "src/__pycache__/a.py", "README.md"]

        assert filter_paths(paths, ["src/**/*.py"], ["**/__pycache__/**"]) == ["src/a.py"]


class TestSuiteCatalog:
    """Tests for suite name resolution."""

    def test_by_type(self, framework: HierarchicalFramework) -> None:
        catalog = SuiteCatalog(framework)

        assert [t.title for t in catalog.resolve(["unit"])] == ["form", "token"]
        assert [t.title for t in catalog.resolve(["e2e"])] == ["E2E: Auth"]

    def test_by_suite_name(self, framework: HierarchicalFramework) -> None:
        catalog = SuiteCatalog(framework)

        assert [t.title for t in catalog.resolve(["Login"])] == ["form", "flow"]

    def test_deduplicates(self, framework: HierarchicalFramework) -> None:
        catalog = SuiteCatalog(framework)

        titles = [t.title for t in catalog.resolve(["Login", "unit", "integration"])]

        assert titles == ["form", "flow", "token"]

    def test_registered_batch_takes_precedence(self, framework: HierarchicalFramework) -> None:
        catalog = SuiteCatalog(framework)
        smoke = TestDefinition(type=TestType.UNIT, title="smoke")
        catalog.register("unit", [smoke])

        assert catalog.resolve(["unit"]) == [smoke]
        assert catalog.names == ["unit"]

    def test_unknown_names_resolve_to_nothing(self) -> None:
        assert SuiteCatalog().resolve(["performance", "security"]) == []


class TestModels:
    """Tests for automation config and trigger models."""

    def test_config_from_dict(self) -> None:
        config = AutomationConfig.from_dict(
            {"watch_patterns": ["app/**/*.py"], "coverage_threshold": 70}
        )

        assert config.watch_patterns == ("app/**/*.py",)
        assert config.coverage_threshold == 70

    def test_config_rejects_unknown(self) -> None:
        with pytest.raises(ValueError, match="Unknown automation option"):
            AutomationConfig.from_dict({"email": True})

    def test_config_threshold_range(self) -> None:
        with pytest.raises(ValueError):
            AutomationConfig(coverage_threshold=120)

    def test_trigger_from_dict(self) -> None:
        trigger = TestTrigger.from_dict(
            {"id": "smoke", "type": "manual", "test_suites": ["unit"], "enabled": False}
        )

        assert trigger.type is TriggerType.MANUAL
        assert trigger.test_suites == ("unit",)
        assert trigger.patterns == ("**/*",)
        assert not trigger.enabled
        assert trigger.to_dict()["type"] == "manual"

    def test_trigger_from_dict_missing_type(self) -> None:
        with pytest.raises(ValueError, match="type"):
            TestTrigger.from_dict({"id": "smoke"})

    def test_trigger_unknown_type(self) -> None:
        with pytest.raises(ValueError):
            TestTrigger.from_dict({"id": "smoke", "type": "cron"})

    @pytest.mark.parametrize(
        ("data", "field_name"),
        [
            ({"coverage_threshold": "high"}, "coverage_threshold"),
            ({"coverage_threshold": None}, "coverage_threshold"),
            ({"slack_notifications": "no"}, "slack_notifications"),
            ({"webhook_url": 42}, "webhook_url"),
            ({"watch_patterns": "src/**/*.py"}, "watch_patterns"),
            ({"exclude_patterns": [1, 2]}, "exclude_patterns"),
        ],
    )
    def test_config_wrong_type(self, data: dict[str, object], field_name: str) -> None:
        with pytest.raises(ValueError, match=field_name):
            AutomationConfig.from_dict(data)

    @pytest.mark.parametrize(
        ("extra", "field_name"),
        [
            ({"patterns": 5}, "patterns"),
            ({"patterns": "src/**"}, "patterns"),
            ({"test_suites": "unit"}, "test_suites"),
            ({"enabled": "yes"}, "enabled"),
        ],
    )
    def test_trigger_wrong_type(self, extra: dict[str, object], field_name: str) -> None:
        with pytest.raises(ValueError, match=field_name):
            TestTrigger.from_dict({"id": "smoke", "type": "manual", **extra})


class TestNotifiers:
    """Tests for notifier implementations."""

    async def test_logging_notifier(self, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.INFO, logger="testflow_automation.notifiers"):
            await LoggingNotifier().notify("Deployment approved - all tests passed")

        assert "Deployment approved - all tests passed" in caplog.text

    async def test_webhook_posts_text(self) -> None:
        received: list[dict[str, str]] = []

        def handler(request: httpx.Request) -> httpx.Response:
            received.append(json.loads(request.content))
            return httpx.Response(200)

        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        notifier = WebhookNotifier("https://hooks.example.com/abc", client=client)

        await notifier.notify("hello")
        await client.aclose()

        assert received == [{"text": "hello"}]

    async def test_webhook_errors_are_logged(self, caplog: pytest.LogCaptureFixture) -> None:
        client = httpx.AsyncClient(
            transport=httpx.MockTransport(lambda request: httpx.Response(500))
        )
        notifier = WebhookNotifier("https://hooks.example.com/abc", client=client)

        with caplog.at_level(logging.WARNING, logger="testflow_automation.notifiers"):
            await notifier.notify("hello")
        await client.aclose()

        assert "Webhook notification" in caplog.text

    async def test_composite(self) -> None:
        first, second = MagicMock(), MagicMock()
        first.notify = AsyncMock()
        second.notify = AsyncMock()

        await CompositeNotifier([first, second]).notify("line")

        first.notify.assert_awaited_once_with("line")
        second.notify.assert_awaited_once_with("line")

    def test_build_notifier(self) -> None:
        assert isinstance(build_notifier(), LoggingNotifier)

        composite = build_notifier("https://hooks.example.com/abc")
        assert isinstance(composite, CompositeNotifier)
        assert isinstance(composite.notifiers[1], WebhookNotifier)

    async def test_webhook_aclose_keeps_injected_client(self) -> None:
        client = httpx.AsyncClient(
            transport=httpx.MockTransport(lambda request: httpx.Response(200))
        )
        notifier = WebhookNotifier("https://hooks.example.com/abc", client=client)

        await notifier.aclose()

        assert not client.is_closed
        await client.aclose()

    async def test_composite_aclose_closes_webhook_client(self) -> None:
        composite = build_notifier("https://hooks.example.com/abc")
        webhook = composite.notifiers[1]
        client = webhook._get_client()  # pylint: disable=protected-access

        await composite.aclose()

        assert client.is_closed

    async def test_composite_aclose_skips_notifiers_without_aclose(self) -> None:
        plain = MagicMock(spec=["notify"])
        closable = MagicMock()
        closable.aclose = AsyncMock()

        await CompositeNotifier([plain, closable]).aclose()

        closable.aclose.assert_awaited_once()
