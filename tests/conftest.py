"""Shared fixtures: a mocked target site and a few registered test components."""

from typing import Callable, Optional

import httpx
import pytest

from scanframe.components.modules import AuditModule, ModuleManager
from scanframe.components.plugins import Plugin, PluginManager
from scanframe.components.timeout import TimeoutCandidate
from scanframe.core.config import Settings
from scanframe.core.framework import Framework
from scanframe.models.issue import Issue, Severity

TARGET = "http://testsite.local/"


def html_links(*links: str) -> str:
    """Minimal HTML page linking to ``links``."""
    anchors = "".join(f'<a href="{link}">{link}</a>' for link in links)
    return f"<html><body>{anchors}</body></html>"


def make_transport(
    routes: dict[str, tuple[int, str]],
    hits: Optional[list[str]] = None,
    headers: Optional[dict[str, str]] = None,
) -> httpx.MockTransport:
    """Transport serving ``{path: (status, body)}``; unknown paths get a 404."""

    def handler(request: httpx.Request) -> httpx.Response:
        if hits is not None:
            hits.append(str(request.url))
        status, body = routes.get(request.url.path, (404, "not found"))
        response_headers = {"content-type": "text/html"}
        response_headers.update(headers or {})
        return httpx.Response(status, text=body, headers=response_headers)

    return httpx.MockTransport(handler)


def unreachable_transport(hits: Optional[list[str]] = None) -> httpx.MockTransport:
    """Transport for which every request fails to connect."""

    def handler(request: httpx.Request) -> httpx.Response:
        if hits is not None:
            hits.append(str(request.url))
        raise httpx.ConnectError("Connection refused", request=request)

    return httpx.MockTransport(handler)


@ModuleManager.register("test_recorder")
class RecorderModule(AuditModule):
    """Records every page it audits."""

    info = {
        "name": "Recorder",
        "description": "Records audited pages.",
        "author": " Test Author ",
        "version": "0.1",
    }
    seen: list[str] = []

    async def run(self) -> None:
        RecorderModule.seen.append(self.page.url)


@ModuleManager.register("test_faulty")
class FaultyModule(AuditModule):
    """Always blows up."""

    priority = -1
    info = {"name": "Faulty", "description": "Raises.", "author": ["A", "B "], "version": "0.1"}

    async def run(self) -> None:
        raise RuntimeError("module exploded")


@ModuleManager.register("test_issue")
class IssueModule(AuditModule):
    """Logs one issue per page."""

    priority = 1
    info = {"name": "Issue logger", "description": "Logs issues.", "author": "", "version": "0.1"}

    async def run(self) -> None:
        self.register_issue(name="Test issue", severity=Severity.LOW, element="body")


@ModuleManager.register("test_timing")
class TimingModule(AuditModule):
    """Defers a timing-based issue whose probe always times out."""

    info = {"name": "Timing", "description": "Timing candidate.", "author": "", "version": "0.1"}

    async def run(self) -> None:
        async def probe() -> None:
            raise httpx.ReadTimeout("payload held the response")

        issue = Issue(name="Blind injection", url=self.page.url, severity=Severity.HIGH, verification=True)
        self.add_timeout_candidate(TimeoutCandidate(issue=issue, delay=5.0, probe=probe))


@ModuleManager.register("test_broken_timing")
class BrokenTimingModule(AuditModule):
    """Defers a timing-based issue whose request has a bug."""

    info = {"name": "Broken timing", "description": "Buggy timing check.", "author": "", "version": "0.1"}

    async def run(self) -> None:
        async def delayed_request() -> None:
            raise ValueError("bad payload")

        issue = Issue(name="Blind injection", url=self.page.url, severity=Severity.HIGH, verification=True)
        self.add_timeout_candidate(TimeoutCandidate(issue=issue, delay=5.0, probe=delayed_request))


@PluginManager.register("test_counter")
class CounterPlugin(Plugin):
    """Stores the option it was given."""

    info = {"name": "Counter", "description": "Counts.", "author": "", "version": "0.1"}

    async def run(self) -> None:
        self.register_results({"start": self.options.get("start", 0)})


@PluginManager.register("test_broken_plugin")
class BrokenPlugin(Plugin):
    info = {"name": "Broken", "description": "Raises.", "author": "", "version": "0.1"}

    async def run(self) -> None:
        raise ValueError("plugin exploded")


@pytest.fixture(autouse=True)
def reset_recorder():
    """Clear the pages recorded by the recorder module."""
    RecorderModule.seen.clear()
    yield
    RecorderModule.seen.clear()


@pytest.fixture
def settings(tmp_path) -> Settings:
    """Settings targeting the mocked site."""
    return Settings(url=TARGET, pause_poll_interval=0.01, output_dir=tmp_path / "output")


@pytest.fixture
def make_framework(settings) -> Callable[..., Framework]:
    """Build a framework against a mocked site."""

    def factory(
        routes: Optional[dict[str, tuple[int, str]]] = None,
        transport: Optional[httpx.MockTransport] = None,
        **kwargs,
    ) -> Framework:
        transport = transport or make_transport(routes or {"/": (200, html_links())})
        return Framework(kwargs.pop("settings", settings), transport=transport, **kwargs)

    return factory
