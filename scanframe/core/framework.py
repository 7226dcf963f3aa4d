"""Scan framework: drives the crawl, the audit and the reports."""

from __future__ import annotations

import copy
import inspect
from typing import Any, Awaitable, Callable, Hashable, Optional, Protocol

import httpx

from scanframe import __version__
from scanframe.components.modules import ModuleManager
from scanframe.components.platforms import PlatformManager
from scanframe.components.plugins import PluginManager
from scanframe.components.reports import ReportManager
from scanframe.core.config import Settings, get_settings
from scanframe.core.errors import FrameworkError, InvalidOptionError
from scanframe.core.logger import LoggerMixin, log_status_change
from scanframe.core.pause import PauseCoordinator
from scanframe.core.queues import QueuePipeline
from scanframe.core.retry import AUDIT_PAGE_MAX_TRIES, RetryController
from scanframe.core.scheduler import ModuleScheduler, PageObserver
from scanframe.core.scope import ScopeValidator
from scanframe.core.stats import ScanClock, ScanStats, average_rate, calculate_progress, eta
from scanframe.http.client import HttpClient
from scanframe.models.audit_store import AuditStore
from scanframe.models.page import Page
from scanframe.models.scan import ScanStatus
from scanframe.session import Session, SessionProtocol
from scanframe.spider import Spider, SpiderProtocol
from scanframe.trainer import Trainer
from scanframe.utils.tempfiles import temp_file_context

REVISION = "0.2.8"

__all__ = ["AUDIT_PAGE_MAX_TRIES", "REVISION", "Fetcher", "Framework"]


class Fetcher(Protocol):
    """Turns a URL into a page; a page with no response signals failure."""

    def __call__(self, url: str) -> Awaitable[Page]: ...


class Framework(LoggerMixin):
    """
    The scan framework.

    Crawls the target, converts discovered URLs into pages, runs the loaded
    modules against every page and feeds pages uncovered by the audit back
    into the pipeline until there's nothing left to audit. Plugins run
    alongside the scan and reports run once it is done.

    ``pause``, ``resume``, ``status`` and ``stats`` may be called from another
    thread while :meth:`run` is in progress.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        http: Optional[HttpClient] = None,
        spider: Optional[SpiderProtocol] = None,
        fetcher: Optional[Fetcher] = None,
        session: Optional[SessionProtocol] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the framework.

        Args:
            settings: Scan settings (defaults to the cached environment settings)
            http: HTTP client, built from ``settings.http`` if not given
            spider: Crawler, :class:`Spider` if not given
            fetcher: URL-to-page fetcher, :meth:`Page.from_url` if not given
            session: Session keeper, :class:`Session` if not given
            transport: httpx transport for the default HTTP client

        Raises:
            ComponentNotFoundError: If a configured component doesn't exist
        """
        self.settings = settings or get_settings()

        # The spider decrements the redundancy counters as it goes
        self._pristine_redundant = [r.model_copy() for r in self.settings.scope.redundant]

        self.http = http or HttpClient(self.settings.http, transport=transport)
        self.scope = ScopeValidator(self.settings.scope, self.settings.url)
        self.queues = QueuePipeline(self.scope)
        self.retry = RetryController(self.queues.requeue_url, AUDIT_PAGE_MAX_TRIES)
        self.clock = ScanClock()

        self.modules = ModuleManager(self)
        self.plugins = PluginManager(self)
        self.reports = ReportManager(self.settings)

        self.spider: SpiderProtocol = spider or Spider(self.settings, self.http, self.scope)
        self.session: SessionProtocol = session or Session(self.settings.session, self.http)
        self._fetcher = fetcher

        self._pause = PauseCoordinator(
            self.settings.pause_poll_interval,
            on_pause=lambda: self.spider.pause(),
            on_resume=lambda: self.spider.resume(),
        )
        self.scheduler = ModuleScheduler(
            self.modules, self.queues, self._pause, self.http, self.session
        )
        self.trainer = Trainer(self)

        self._status = ScanStatus.READY
        self.running = False
        self.errors: list[str] = []

        self.load_components()

    def load_components(self) -> None:
        """Load the modules, plugins and reports named in the settings."""
        self.modules.load(self.settings.modules)
        self.plugins.load(self.settings.plugins)
        self.reports.load(self.settings.reports)

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def version(self) -> str:
        return __version__

    @property
    def revision(self) -> str:
        return REVISION

    @property
    def sitemap(self) -> list[str]:
        return self.queues.sitemap

    @property
    def auditmap(self) -> list[str]:
        return self.queues.auditmap

    @property
    def failures(self) -> list[str]:
        """URLs given up on after ``AUDIT_PAGE_MAX_TRIES`` attempts."""
        return self.retry.failures

    @property
    def page_queue_total_size(self) -> int:
        return self.queues.page_queue_total_size

    @property
    def url_queue_total_size(self) -> int:
        return self.queues.url_queue_total_size

    def link_count_limit_reached(self, count: Optional[int] = None) -> bool:
        """Whether the sitemap (or ``count``) has reached the link count limit."""
        if count is None:
            count = self.queues.sitemap_size
        return self.settings.link_count_limit_reached(count)

    # ------------------------------------------------------------------
    # Pause/status
    # ------------------------------------------------------------------

    def pause(self, caller: Hashable = None) -> bool:
        """Pause the scan on behalf of ``caller``."""
        return self._pause.pause(caller)

    def resume(self, caller: Hashable = None) -> bool:
        """Release the pause held by ``caller``."""
        return self._pause.resume(caller)

    @property
    def paused(self) -> bool:
        return self._pause.paused

    def status(self) -> str:
        """Current scan status; ``paused`` while a scan in progress is paused."""
        if self.paused and self._status not in (ScanStatus.READY, ScanStatus.DONE):
            return str(ScanStatus.PAUSED)
        return str(self._status)

    def _set_status(self, status: ScanStatus) -> None:
        log_status_change(str(self._status), str(status), target=self.settings.url)
        self._status = status

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------

    def push_to_page_queue(self, page: Page) -> bool:
        """
        Push a page to be audited.

        Returns:
            False if the page matched the exclusion policy
        """
        return self.queues.push_page(page)

    def push_to_url_queue(self, url: str) -> bool:
        """
        Push a URL to be fetched and audited.

        Returns:
            False if the URL matched the exclusion policy
        """
        return self.queues.push_url(url)

    def on_audit_page(self, callback: PageObserver) -> None:
        """Call ``callback`` with every page right before it gets audited."""
        self.scheduler.add_observer(callback)

    on_run_mods = on_audit_page

    async def audit_page(self, page: Optional[Page]) -> bool:
        """Run the loaded modules against ``page``."""
        return await self.scheduler.audit_page(page)

    async def fetch(self, url: str) -> Page:
        """Fetch ``url`` through the configured fetcher."""
        if self._fetcher is not None:
            return await self._fetcher(url)
        return await Page.from_url(url, self.http)

    # ------------------------------------------------------------------
    # Scan
    # ------------------------------------------------------------------

    async def run(self, after_audit: Optional[Callable[["Framework"], Any]] = None) -> bool:
        """
        Run the scan.

        Args:
            after_audit: Called (or awaited) with the framework once the audit
                has been cleaned up, right before the reports run

        Returns:
            True

        Raises:
            FrameworkError: If a scan is already running
        """
        if self.running:
            raise FrameworkError("A scan is already running")

        self._set_status(ScanStatus.PREPARING)
        self._prepare()

        try:
            await self._audit()
        except Exception as e:
            self.errors.append(str(e))
            self.logger.exception("Scan failed", target=self.settings.url, error=str(e))

        self._set_status(ScanStatus.CLEANUP)
        await self._clean_up()

        if after_audit is not None:
            try:
                result = after_audit(self)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                self.errors.append(str(e))
                self.logger.exception("after_audit callback failed", error=str(e))

        self._set_status(ScanStatus.DONE)

        if not self.reports.empty:
            self.reports.run(self.audit_store())

        self.logger.info(
            "Scan completed",
            target=self.settings.url,
            pages=self.queues.auditmap_size,
            issues=len(self.modules.results),
            failures=len(self.failures),
            duration=self.clock.delta_time,
        )
        return True

    def _prepare(self) -> None:
        self.running = True
        self.clock.start()
        self.plugins.run()

    async def _audit(self) -> None:
        self._set_status(ScanStatus.CRAWLING)
        await self._pause.wait_if_paused()

        if self.settings.restrict_paths:
            paths = [self.scope.to_absolute(p) or p for p in self.settings.restrict_paths]
            self.queues.add_to_sitemap(*paths)
            for path in paths:
                self.push_to_url_queue(path)
        else:
            await self.spider.run(self._on_spider_page)
            self.queues.add_to_sitemap(*self.spider.sitemap)

            # An unresponsive target never reaches the callback
            target = self.settings.url
            if target and target not in self.queues.sitemap:
                self.push_to_url_queue(target)

        if self.modules.empty:
            self.logger.info("No modules loaded, skipping the audit")
            return

        self._set_status(ScanStatus.AUDITING)
        await self._audit_queues()

    def _on_spider_page(self, page: Page) -> None:
        self.push_to_url_queue(page.url)
        if page.platforms:
            self.logger.info("Identified as", url=page.url, platforms=sorted(page.platforms))

    async def _audit_queues(self) -> None:
        """Audit the queued work until there's none left."""
        if self.modules.empty:
            return

        await self._drain_queues()

        # Verified timing issues may lead to new pages
        if self.modules.timeout_candidates:
            await self.modules.timeout_verify()
        await self._drain_queues()

    async def _drain_queues(self) -> None:
        while not self.queues.empty:
            await self._audit_page_queue()

            url = self.queues.pop_url()
            if url is None or self.retry.has_failed(url):
                continue

            await self._pause.wait_if_paused()

            page = await self.fetch(url)
            if not page.responded:
                self.retry.on_fetch_failure(url)
                continue

            self.push_to_page_queue(page)
            await self._audit_page_queue()

    async def _audit_page_queue(self) -> None:
        while not self.queues.page_queue_empty:
            await self.audit_page(self.queues.pop_page())

    async def _clean_up(self) -> None:
        self.clock.stop()

        # Everything logged so far goes to the reports
        self.settings.only_positives = False

        self.running = False
        await self.plugins.block()

    # ------------------------------------------------------------------
    # Results
    # ------------------------------------------------------------------

    def stats(self, refresh_time: bool = False, override_refresh: bool = False) -> dict[str, Any]:
        """
        Scan statistics.

        Args:
            refresh_time: Update the running time, unless every discovered
                page has already been audited
            override_refresh: Update the running time regardless

        Returns:
            A :class:`ScanStats` as a dict
        """
        audited = self.queues.auditmap_size
        discovered = self.queues.sitemap_size

        refresh = override_refresh or (refresh_time and audited != discovered)
        elapsed = self.clock.elapsed(refresh=refresh)

        progress = calculate_progress(audited, discovered, len(self.spider.redirects))

        return ScanStats(
            requests=self.http.request_count,
            responses=self.http.response_count,
            time_out_count=self.http.time_out_count,
            time=round(elapsed, 2),
            avg=average_rate(self.http.response_count, elapsed),
            sitemap_size=discovered,
            auditmap_size=audited,
            progress=progress,
            curr_res_time=round(self.http.curr_res_time, 4),
            curr_res_cnt=self.http.curr_res_cnt,
            curr_avg=round(self.http.curr_res_per_second, 2),
            average_res_time=round(self.http.average_res_time, 4),
            max_concurrency=self.http.max_concurrency,
            current_page=self.scheduler.current_url,
            eta=eta(progress, self.clock.start_datetime),
        ).model_dump()

    def audit_store(self) -> AuditStore:
        """
        Snapshot of the scan results.

        Every call builds a new store from deep copies, so stores never share
        state with each other or with the framework.
        """
        options = self.settings.model_dump(mode="json")
        options["scope"]["redundant"] = [r.model_dump(mode="json") for r in self._pristine_redundant]
        options["modules"] = self.modules.loaded

        return AuditStore(
            version=self.version,
            revision=self.revision,
            options=options,
            sitemap=sorted(set(self.queues.sitemap)),
            issues=[issue.model_copy(deep=True) for issue in self.modules.results],
            plugins=copy.deepcopy(self.plugins.results),
            start_datetime=self.clock.start_datetime,
            finish_datetime=self.clock.finish_datetime,
            delta_time=self.clock.delta_time or 0.0,
        )

    def report_as(self, name: str, store: Optional[AuditStore] = None) -> str:
        """
        Render an audit store with the report registered under ``name``.

        Args:
            name: Report short name
            store: Store to render, defaults to :meth:`audit_store`

        Returns:
            The report contents

        Raises:
            ComponentNotFoundError: If there's no such report
            InvalidOptionError: If the report can't write to a file
        """
        info = self.reports.info(name)
        if "outfile" not in info.get("options", []):
            raise InvalidOptionError(f"Report '{name}' cannot format the audit results as a string.")

        store = store or self.audit_store()
        loaded = self.reports.loaded

        try:
            with temp_file_context(prefix=f"scanframe_{name}_") as outfile:
                self.reports.run_one(name, store, {"outfile": str(outfile)})
                return outfile.read_text()
        finally:
            self.reports.clear()
            self.reports.load(loaded)

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    def list_modules(self) -> list[dict[str, Any]]:
        """Info on every available module matching the ``lsmod`` filters."""
        return self.modules.list_info(self.settings.lsmod)

    def list_reports(self) -> list[dict[str, Any]]:
        """Info on every available report matching the ``lsrep`` filters."""
        return self.reports.list_info(self.settings.lsrep)

    def list_plugins(self) -> list[dict[str, Any]]:
        """Info on every available plugin matching the ``lsplug`` filters."""
        return self.plugins.list_info(self.settings.lsplug)

    def list_platforms(self) -> dict[str, dict[str, str]]:
        """Known platforms as ``{type full name: {short name: full name}}``."""
        manager = PlatformManager()

        grouped: dict[str, dict[str, str]] = {}
        for platform in manager.valid():
            type_name = manager.TYPES[manager.find_type(platform)]
            grouped.setdefault(type_name, {})[platform] = manager.fullname(platform)
        return grouped

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def reset_spider(self) -> None:
        reset = getattr(self.spider, "reset", None)
        if reset is not None:
            reset()

    def reset_trainer(self) -> None:
        self.trainer = Trainer(self)

    def reset(self) -> None:
        """
        Forget everything about the last scan.

        Unloads every component; call :meth:`load_components` (or load them
        individually) before the next scan.
        """
        self._status = ScanStatus.READY
        self.running = False
        self.errors.clear()

        self.clock.reset()
        self.queues.clear()
        self.retry.clear()
        self._pause.clear()
        self.scheduler.reset()

        self.modules.reset()
        self.modules.clear()
        self.plugins.reset()
        self.plugins.clear()
        self.reports.clear()

        self.settings.scope.redundant = [r.model_copy() for r in self._pristine_redundant]

        self.http.reset()
        self.reset_spider()
        self.reset_trainer()

    async def aclose(self) -> None:
        """Release network resources."""
        await self.http.aclose()

    async def __aenter__(self) -> "Framework":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()
