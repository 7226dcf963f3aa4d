"""Scope validation: decides which URLs and pages a scan may touch."""

from __future__ import annotations

import re
from typing import TYPE_CHECKING, Optional
from urllib.parse import urldefrag, urljoin, urlparse

from scanframe.core.config import ScopeConfig
from scanframe.core.logger import get_logger

if TYPE_CHECKING:
    from scanframe.models.page import Page

logger = get_logger(__name__)


class ScopeValidator:
    """
    Validates URLs against the scan's exclusion policy.

    A URL is in scope when it uses HTTP(S), lives on the target host (or one
    of its subdomains when allowed), matches no exclude pattern or excluded
    extension, and matches at least one include pattern if any are set.
    Exclusion always takes precedence.
    """

    def __init__(self, config: ScopeConfig, target: Optional[str] = None):
        """
        Initialize scope validator.

        Args:
            config: Scope configuration with include/exclude rules
            target: Absolute URL of the scan target, used as the base for
                relative URLs and as the host boundary
        """
        self.config = config
        self.target = target
        self.host = (urlparse(target).hostname or "").lower() if target else ""
        self.include_patterns = [
            re.compile(p, re.IGNORECASE) for p in config.include_patterns
        ]
        self.exclude_patterns = [
            re.compile(p, re.IGNORECASE) for p in config.exclude_patterns
        ]
        self.exclude_extensions = {e.lower().lstrip(".") for e in config.exclude_extensions}

    def to_absolute(self, url: str) -> Optional[str]:
        """
        Resolve ``url`` against the scan target.

        Args:
            url: Absolute or relative URL

        Returns:
            The absolute URL without fragment, or None if it can't be resolved
            to an HTTP(S) URL
        """
        url = url.strip()
        if not url:
            return None

        absolute = urljoin(self.target, url) if self.target else url
        absolute, _ = urldefrag(absolute)

        parsed = urlparse(absolute)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            return None
        return absolute

    def is_in_scope(self, url: str) -> bool:
        """
        Check if a URL is within the scan scope.

        Args:
            url: URL to validate, absolute or relative to the target

        Returns:
            True if the URL is in scope, False otherwise
        """
        absolute = self.to_absolute(url)
        if absolute is None:
            logger.debug("URL rejected - not an HTTP(S) URL", url=url)
            return False

        for pattern in self.exclude_patterns:
            if pattern.search(absolute):
                logger.debug("URL excluded by pattern", url=absolute, pattern=pattern.pattern)
                return False

        parsed = urlparse(absolute)
        path = parsed.path.lower()
        if "." in path.rsplit("/", 1)[-1]:
            extension = path.rsplit(".", 1)[-1]
            if extension in self.exclude_extensions:
                logger.debug("URL excluded by extension", url=absolute, extension=extension)
                return False

        if self.host:
            host = (parsed.hostname or "").lower()
            same_host = host == self.host
            subdomain = self.config.include_subdomains and host.endswith(f".{self.host}")
            if not (same_host or subdomain):
                logger.debug("URL rejected - outside target host", url=absolute, host=host)
                return False

        if self.include_patterns:
            if not any(p.search(absolute) for p in self.include_patterns):
                logger.debug("URL rejected - no include pattern matched", url=absolute)
                return False

        return True

    def skip_path(self, url: str) -> bool:
        """Whether ``url`` matches the exclusion policy."""
        return not self.is_in_scope(url)

    def skip_page(self, page: "Page") -> bool:
        """Whether ``page`` matches the exclusion policy."""
        return self.skip_path(page.url)

    def validate_batch(
        self,
        urls: list[str],
    ) -> tuple[list[str], list[str]]:
        """
        Validate a batch of URLs.

        Args:
            urls: List of URLs to validate

        Returns:
            Tuple of (valid_urls, rejected_urls)
        """
        valid = []
        rejected = []

        for url in urls:
            if self.is_in_scope(url):
                valid.append(url)
            else:
                rejected.append(url)

        if rejected:
            logger.info(
                "Rejected out-of-scope URLs",
                count=len(rejected),
                samples=rejected[:5],
            )

        return valid, rejected


def create_scope_validator(
    target: str,
    include: Optional[list[str]] = None,
    exclude: Optional[list[str]] = None,
    include_subdomains: bool = False,
) -> ScopeValidator:
    """
    Convenience function to create a scope validator.

    Args:
        target: Absolute URL of the scan target
        include: Optional list of include regex patterns
        exclude: Optional list of exclude regex patterns
        include_subdomains: Whether subdomains of the target host are in scope

    Returns:
        Configured ScopeValidator instance
    """
    config = ScopeConfig(
        include_patterns=include or [],
        exclude_patterns=exclude or [],
        include_subdomains=include_subdomains,
    )
    return ScopeValidator(config, target)
