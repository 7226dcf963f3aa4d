"""Audit modules and the registry that schedules them."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, ClassVar, Iterable, Optional

from scanframe.components.manager import Component, ComponentManager
from scanframe.components.timeout import TimeoutAnalysis, TimeoutCandidate
from scanframe.core.logger import log_issue
from scanframe.models.issue import Issue
from scanframe.models.page import Page

if TYPE_CHECKING:
    from scanframe.core.framework import Framework
    from scanframe.http.client import HttpClient


class AuditModule(Component):
    """
    Base class for audit modules.

    A module is instantiated once per page and run through
    ``prepare`` -> ``run`` -> ``clean_up``. Lower ``priority`` runs first.
    ``info["platforms"]`` restricts the module to pages identified as one of
    the listed platforms; pages with no identified platform are always
    audited.
    """

    priority: ClassVar[int] = 0
    info: ClassVar[dict[str, Any]] = {
        "name": "Base module",
        "description": "",
        "author": "",
        "version": "0.1",
    }

    def __init__(self, page: Page, framework: "Framework"):
        self.page = page
        self.framework = framework

    @property
    def http(self) -> "HttpClient":
        return self.framework.http

    @classmethod
    def is_applicable(cls, page: Page) -> bool:
        """Whether the module should run against ``page``."""
        platforms = set(cls.info.get("platforms", []))
        if not platforms or not page.platforms:
            return True
        return bool(platforms & page.platforms)

    async def prepare(self) -> None:
        """Called before :meth:`run`."""

    async def run(self) -> None:
        """Audit ``self.page``."""
        raise NotImplementedError

    async def clean_up(self) -> None:
        """Called after :meth:`run`."""

    def register_issue(self, issue: Optional[Issue] = None, **fields: Any) -> Issue:
        """
        Log an issue for the page under audit.

        Args:
            issue: A ready-made issue, or
            **fields: Issue fields; ``url`` defaults to the page URL

        Returns:
            The registered issue
        """
        if issue is None:
            fields.setdefault("url", self.page.url)
            issue = Issue(**fields)
        if issue.module is None:
            issue = issue.model_copy(update={"module": self.shortname})
        self.framework.modules.register_results([issue])
        return issue

    def add_timeout_candidate(self, candidate: TimeoutCandidate) -> None:
        """Defer a timing-based issue to the timeout-analysis pass."""
        if candidate.issue.module is None:
            candidate.issue = candidate.issue.model_copy(update={"module": self.shortname})
        self.framework.modules.timeout.add(candidate)


class ModuleManager(ComponentManager):
    """
    Module registry.

    Orders loaded modules for scheduling, runs them against pages and holds
    the issues and timing candidates they produce for the whole scan.
    """

    kind = "module"

    def __init__(self, framework: "Framework"):
        super().__init__()
        self.framework = framework
        self._results: list[Issue] = []
        self._fingerprints: set[str] = set()
        self.timeout = TimeoutAnalysis()

    @property
    def results(self) -> list[Issue]:
        """Issues logged so far, in registration order."""
        return list(self._results)

    def register_results(self, issues: Iterable[Issue]) -> int:
        """
        Store issues, skipping duplicates.

        Returns:
            Number of new issues stored
        """
        only_positives = self.framework.settings.only_positives

        added = 0
        for issue in issues:
            if issue.fingerprint in self._fingerprints:
                continue
            self._fingerprints.add(issue.fingerprint)
            self._results.append(issue)
            added += 1

            if not (only_positives and issue.verification):
                log_issue(issue.name, issue.severity.value, issue.url, module=issue.module)
        return added

    def schedule(self) -> list[type[AuditModule]]:
        """Loaded modules in run order: by priority, then load order."""
        modules = list(self._loaded.values())
        return sorted(modules, key=lambda m: getattr(m, "priority", 0))

    async def run_one(self, module: type[AuditModule], page: Page) -> bool:
        """
        Run ``module`` against ``page``.

        Returns:
            False if the module does not apply to the page, True otherwise
        """
        if not module.is_applicable(page):
            self.logger.debug("Module not applicable", module=module.shortname, url=page.url)
            return False

        instance = module(page, self.framework)
        await instance.prepare()
        await instance.run()
        await instance.clean_up()
        return True

    @property
    def timeout_candidates(self) -> list[TimeoutCandidate]:
        return self.timeout.candidates

    async def timeout_verify(self) -> int:
        """
        Verify pending timing candidates and store the confirmed issues.

        Returns:
            Number of new issues stored
        """
        confirmed = await self.timeout.run()
        return self.register_results(confirmed)

    def reset(self) -> None:
        """Forget scan-global results and timing candidates."""
        self._results.clear()
        self._fingerprints.clear()
        self.timeout.clear()
