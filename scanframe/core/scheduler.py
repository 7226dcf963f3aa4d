"""Runs the loaded audit modules against a page."""

from __future__ import annotations

import inspect
from typing import TYPE_CHECKING, Any, Callable, Optional

from scanframe.core.logger import LoggerMixin, log_module_error
from scanframe.core.pause import PauseCoordinator
from scanframe.core.queues import QueuePipeline
from scanframe.models.page import Page

if TYPE_CHECKING:
    from scanframe.components.modules import ModuleManager
    from scanframe.http.client import HttpClient
    from scanframe.session import SessionProtocol

PageObserver = Callable[[Page], Any]


class ModuleScheduler(LoggerMixin):
    """
    Audits a single page.

    Every on-audit-page observer sees the page before any module runs. Each
    module runs inside its own failure boundary and the pause gate is checked
    before every module, so a pause takes effect between modules.
    """

    def __init__(
        self,
        modules: "ModuleManager",
        queues: QueuePipeline,
        pause: PauseCoordinator,
        http: "HttpClient",
        session: "SessionProtocol",
    ):
        self.modules = modules
        self.queues = queues
        self.pause = pause
        self.http = http
        self.session = session

        self._observers: list[PageObserver] = []
        self.current_url: str = ""

    @property
    def observers(self) -> list[PageObserver]:
        return list(self._observers)

    def add_observer(self, callback: PageObserver) -> None:
        """Call ``callback`` with every page before it is audited."""
        self._observers.append(callback)

    def clear_observers(self) -> None:
        self._observers.clear()

    async def audit_page(self, page: Optional[Page]) -> bool:
        """
        Run the loaded modules against ``page``.

        Args:
            page: The page to audit

        Returns:
            False if there was no page or it matched the exclusion policy,
            True once every module has run
        """
        if page is None:
            return False

        if self.queues.scope.skip_page(page):
            self.logger.info("Ignoring page due to exclusion criteria", url=page.url)
            return False

        self.current_url = page.url
        self.queues.mark_audited(page.url)

        self.logger.info(
            "Auditing",
            url=page.url,
            status=page.code,
            platforms=sorted(page.platforms) or None,
        )

        for observer in list(self._observers):
            result = observer(page)
            if inspect.isawaitable(result):
                await result

        for module in self.modules.schedule():
            await self.pause.wait_if_paused()

            try:
                await self.modules.run_one(module, page)
            except Exception as e:
                log_module_error(module.shortname, e, url=page.url)

        # The second round catches requests queued by callbacks of the first
        await self.http.run()
        await self.http.run()

        await self.session.ensure_logged_in()

        if self.modules.timeout_candidates:
            await self.modules.timeout_verify()

        return True

    def reset(self) -> None:
        self._observers.clear()
        self.current_url = ""
