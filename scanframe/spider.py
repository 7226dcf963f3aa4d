"""Default crawler."""

from __future__ import annotations

import asyncio
import inspect
import re
from collections import deque
from typing import TYPE_CHECKING, Any, Callable, Optional, Protocol, runtime_checkable
from urllib.parse import urljoin

from scanframe.core.logger import LoggerMixin
from scanframe.models.page import Page

if TYPE_CHECKING:
    from scanframe.core.config import Settings
    from scanframe.core.scope import ScopeValidator
    from scanframe.http.client import HttpClient

PageCallback = Callable[[Page], Any]


@runtime_checkable
class SpiderProtocol(Protocol):
    """What the framework needs from a crawler."""

    @property
    def sitemap(self) -> list[str]: ...

    @property
    def redirects(self) -> list[str]: ...

    async def run(self, callback: Optional[PageCallback] = None) -> list[str]: ...

    def pause(self) -> None: ...

    def resume(self) -> None: ...


class Spider(LoggerMixin):
    """
    Breadth-first crawler following in-scope links from the scan target.

    Links are pulled out of ``href``, ``src`` and ``action`` attributes with a
    regular expression. Redirects are recorded and followed but never handed
    to the callback. Redundancy rules and the link count limit from the
    scope configuration bound the crawl.
    """

    LINK_RE = re.compile(r"""(?:href|src|action)\s*=\s*["']([^"'#][^"']*)["']""", re.IGNORECASE)

    def __init__(
        self,
        settings: "Settings",
        http: "HttpClient",
        scope: "ScopeValidator",
        poll_interval: Optional[float] = None,
    ):
        self.settings = settings
        self.http = http
        self.scope = scope
        self.poll_interval = poll_interval or settings.pause_poll_interval
        self._sitemap: dict[str, None] = {}
        self._redirects: list[str] = []
        self._paused = False

    @property
    def sitemap(self) -> list[str]:
        """Every URL the crawl got a response for."""
        return list(self._sitemap)

    @property
    def redirects(self) -> list[str]:
        """URLs which responded with a redirect."""
        return list(self._redirects)

    @property
    def paused(self) -> bool:
        return self._paused

    def pause(self) -> None:
        self._paused = True

    def resume(self) -> None:
        self._paused = False

    def extract_links(self, page: Page) -> list[str]:
        """Absolute, de-duplicated links found in ``page``."""
        links = []
        if page.is_redirect:
            links.append(page.headers["location"])
        links.extend(m.group(1) for m in self.LINK_RE.finditer(page.body))

        absolute = {}
        for link in links:
            resolved = self.scope.to_absolute(urljoin(page.url, link.strip()))
            if resolved:
                absolute.setdefault(resolved, None)
        return list(absolute)

    def redundant(self, url: str) -> bool:
        """
        Whether ``url`` exceeds a redundancy rule.

        Matching rules have their counter decremented for every URL let
        through.
        """
        for rule in self.settings.scope.redundant:
            if not re.search(rule.pattern, url):
                continue
            if rule.count <= 0:
                self.logger.info("Discarding redundant page", url=url, pattern=rule.pattern)
                return True
            rule.count -= 1
        return False

    async def run(self, callback: Optional[PageCallback] = None) -> list[str]:
        """
        Crawl from the scan target.

        Args:
            callback: Called (or awaited) with every non-redirect page

        Returns:
            The sitemap
        """
        seed = self.settings.url
        if not seed:
            return self.sitemap

        queue: deque[str] = deque([seed])
        seen = {seed}

        while queue:
            while self._paused:
                await asyncio.sleep(self.poll_interval)

            if self.settings.link_count_limit_reached(len(self._sitemap)):
                self.logger.info("Link count limit reached", limit=self.settings.scope.link_count_limit)
                break

            url = queue.popleft()
            page = await Page.from_url(url, self.http)
            if not page.responded:
                self.logger.debug("Spider got no response", url=url)
                continue

            self._sitemap.setdefault(url, None)

            if page.is_redirect:
                self._redirects.append(url)
            elif callback is not None:
                result = callback(page)
                if inspect.isawaitable(result):
                    await result

            for link in self.extract_links(page):
                if link in seen or self.scope.skip_path(link) or self.redundant(link):
                    continue
                seen.add(link)
                queue.append(link)

        self.logger.info("Crawl finished", pages=len(self._sitemap), redirects=len(self._redirects))
        return self.sitemap

    def reset(self) -> None:
        self._sitemap.clear()
        self._redirects.clear()
        self._paused = False
