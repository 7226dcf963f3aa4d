"""URL and page work queues with the sitemap and audit map they feed."""

from __future__ import annotations

from collections import deque
from typing import Optional

from scanframe.core.logger import get_logger
from scanframe.core.scope import ScopeValidator
from scanframe.models.page import Page

logger = get_logger(__name__)


class QueuePipeline:
    """
    Two FIFO work queues feeding the audit.

    The URL queue holds paths waiting to be fetched; the page queue holds
    fetched pages waiting for the modules. Both append at the tail, retried
    and re-fed entries included. The cumulative counters count pushes and
    are never decremented on pop.
    """

    def __init__(self, scope: ScopeValidator):
        """
        Initialize the pipeline.

        Args:
            scope: Exclusion policy applied to every push
        """
        self.scope = scope

        self._url_queue: deque[str] = deque()
        self._page_queue: deque[Page] = deque()

        self.url_queue_total_size = 0
        self.page_queue_total_size = 0

        # dict keys keep insertion order and de-duplicate
        self._sitemap: dict[str, None] = {}
        self._auditmap: list[str] = []

    @property
    def sitemap(self) -> list[str]:
        """Every URL seen so far, in discovery order."""
        return list(self._sitemap)

    @property
    def auditmap(self) -> list[str]:
        """URLs that went through the modules, in audit order."""
        return list(self._auditmap)

    @property
    def sitemap_size(self) -> int:
        return len(self._sitemap)

    @property
    def auditmap_size(self) -> int:
        return len(self._auditmap)

    @property
    def url_queue_size(self) -> int:
        """Current depth of the URL queue."""
        return len(self._url_queue)

    @property
    def page_queue_size(self) -> int:
        """Current depth of the page queue."""
        return len(self._page_queue)

    @property
    def url_queue_empty(self) -> bool:
        return not self._url_queue

    @property
    def page_queue_empty(self) -> bool:
        return not self._page_queue

    @property
    def empty(self) -> bool:
        """Whether both queues are drained."""
        return not self._url_queue and not self._page_queue

    def add_to_sitemap(self, *urls: str) -> None:
        """Merge ``urls`` into the sitemap."""
        for url in urls:
            self._sitemap.setdefault(url, None)

    def mark_audited(self, url: str) -> None:
        """Record ``url`` in the audit map (and the sitemap)."""
        self._auditmap.append(url)
        self.add_to_sitemap(url)

    def push_url(self, url: str) -> bool:
        """
        Push a URL to the URL queue.

        Args:
            url: Absolute or relative URL

        Returns:
            True if the URL was enqueued, False if it matched the exclusion
            policy
        """
        if self.scope.skip_path(url):
            return False

        absolute = self.scope.to_absolute(url) or url

        self._url_queue.append(absolute)
        self.url_queue_total_size += 1

        self.add_to_sitemap(absolute)
        return True

    def requeue_url(self, url: str) -> None:
        """Append an already-accepted URL to the tail of the URL queue."""
        self._url_queue.append(url)

    def push_page(self, page: Page) -> bool:
        """
        Push a page to the page queue.

        Args:
            page: Fetched page

        Returns:
            True if the page was enqueued, False if it matched the exclusion
            policy
        """
        if self.scope.skip_page(page):
            return False

        self._page_queue.append(page)
        self.page_queue_total_size += 1

        self.add_to_sitemap(page.url)
        return True

    def pop_url(self) -> Optional[str]:
        """Pop the next URL, or None if the queue is empty."""
        return self._url_queue.popleft() if self._url_queue else None

    def pop_page(self) -> Optional[Page]:
        """Pop the next page, or None if the queue is empty."""
        return self._page_queue.popleft() if self._page_queue else None

    def clear(self) -> None:
        """Drop all queued work, counters, the sitemap and the audit map."""
        self._url_queue.clear()
        self._page_queue.clear()
        self.url_queue_total_size = 0
        self.page_queue_total_size = 0
        self._sitemap.clear()
        self._auditmap.clear()
