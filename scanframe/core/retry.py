"""Bounded per-URL retry bookkeeping for pages that elicit no response."""

from __future__ import annotations

from typing import Callable

from scanframe.core.logger import get_logger
from scanframe.models.page import url_identity

logger = get_logger(__name__)

# How many times to request a page upon failure.
AUDIT_PAGE_MAX_TRIES = 5


class RetryController:
    """
    Tracks fetch attempts per URL and decides between retry and give-up.

    A URL is fetched at most ``max_tries`` times. Once exhausted it is moved
    to the failure set and never re-enqueued.
    """

    def __init__(
        self,
        requeue: Callable[[str], None],
        max_tries: int = AUDIT_PAGE_MAX_TRIES,
    ):
        """
        Initialize the retry controller.

        Args:
            requeue: Appends a URL to the tail of the URL queue
            max_tries: Maximum fetch attempts per URL
        """
        self._requeue = requeue
        self.max_tries = max_tries
        self._attempts: dict[str, int] = {}
        self._failures: list[str] = []
        self._failed: set[str] = set()

    @property
    def failures(self) -> list[str]:
        """URLs which never got a response and were abandoned."""
        return list(self._failures)

    def has_failed(self, url: str) -> bool:
        """Whether ``url`` was already given up on."""
        return url_identity(url) in self._failed

    def attempts(self, url: str) -> int:
        """Failed fetch attempts recorded so far for ``url``."""
        return self._attempts.get(url_identity(url), 0)

    def on_fetch_failure(self, url: str) -> bool:
        """
        Record a failed fetch of ``url``.

        Args:
            url: The URL whose fetch elicited no response

        Returns:
            True if the URL was re-enqueued, False if it was given up on
        """
        identity = url_identity(url)
        if identity in self._failed:
            return False

        attempts = self._attempts.get(identity, 0) + 1
        self._attempts[identity] = attempts

        if attempts >= self.max_tries:
            self._failed.add(identity)
            self._failures.append(url)
            logger.error(
                "Giving up trying to audit",
                url=url,
                reason=f"Couldn't get a response after {self.max_tries} tries",
            )
            return False

        logger.warning("Retrying", url=url, attempt=attempts, max_tries=self.max_tries)
        self._requeue(url)
        return True

    def clear(self) -> None:
        """Forget all attempts and failures."""
        self._attempts.clear()
        self._failures.clear()
        self._failed.clear()
