"""Default trainer: feeds pages uncovered by module requests back into the audit."""

from __future__ import annotations

import hashlib
from typing import TYPE_CHECKING

import httpx

from scanframe.components.platforms import PlatformManager
from scanframe.core.logger import LoggerMixin
from scanframe.models.page import Page

if TYPE_CHECKING:
    from scanframe.core.framework import Framework


class Trainer(LoggerMixin):
    """
    Learns from responses to module requests issued with ``train=True``.

    A successful response whose content hasn't been seen on an audited page
    is turned into a page and pushed to the page queue, so that new
    attack surface revealed by the audit gets audited too.
    """

    def __init__(self, framework: "Framework"):
        self.framework = framework
        self._seen: set[str] = set()

        framework.on_audit_page(self.observe)
        framework.http.add_on_train(self.on_response)

    @staticmethod
    def signature(url: str, body: str) -> str:
        """Content signature of a page."""
        return hashlib.sha256(f"{url}\n{body}".encode()).hexdigest()[:16]

    @property
    def seen_count(self) -> int:
        return len(self._seen)

    def observe(self, page: Page) -> None:
        """Remember the signature of a page about to be audited."""
        self._seen.add(self.signature(page.url, page.body))

    def on_response(self, response: httpx.Response) -> None:
        """Push the response as a new page if it reveals unseen content."""
        if not self.framework.settings.train:
            return
        if not response.is_success:
            return

        page = Page.from_response(response, platforms=PlatformManager.fingerprint(response))
        signature = self.signature(page.url, page.body)
        if signature in self._seen:
            return
        self._seen.add(signature)

        if self.framework.push_to_page_queue(page):
            self.logger.info("Trainer found new page", url=page.url)

    def reset(self) -> None:
        self._seen.clear()
