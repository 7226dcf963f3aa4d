"""Fetched page snapshot, the unit of auditing."""

from __future__ import annotations

import hashlib
from typing import TYPE_CHECKING, Any

import httpx
from pydantic import BaseModel, ConfigDict, Field, computed_field

from scanframe.core.logger import get_logger

if TYPE_CHECKING:
    from scanframe.http.client import HttpClient

logger = get_logger(__name__)

# Status code of a page for which no response was received at all.
NO_RESPONSE = 0


def url_identity(url: str) -> str:
    """Stable identity of a URL, used for retry bookkeeping."""
    return hashlib.sha256(url.encode()).hexdigest()[:16]


class Page(BaseModel):
    """
    Immutable snapshot of a fetched resource.

    A ``code`` of ``NO_RESPONSE`` means the request never got a response
    (network failure, timeout), which is distinct from any real status code.
    """

    model_config = ConfigDict(frozen=True)

    url: str = Field(..., description="Absolute URL of the page")
    code: int = NO_RESPONSE
    body: str = ""
    headers: dict[str, str] = Field(default_factory=dict)
    platforms: frozenset[str] = Field(default_factory=frozenset)

    @computed_field
    @property
    def identity(self) -> str:
        """Identity derived from the URL."""
        return url_identity(self.url)

    @property
    def responded(self) -> bool:
        """Whether the server responded at all."""
        return self.code != NO_RESPONSE

    @property
    def is_redirect(self) -> bool:
        """Whether the response is an HTTP redirect."""
        return 300 <= self.code < 400 and "location" in self.headers

    @classmethod
    def from_response(cls, response: httpx.Response, **kwargs: Any) -> "Page":
        """
        Build a page from an HTTP response.

        Args:
            response: The httpx response
            **kwargs: Extra fields (e.g. ``platforms``)

        Returns:
            The page snapshot
        """
        return cls(
            url=str(response.request.url),
            code=response.status_code,
            body=response.text,
            headers={k.lower(): v for k, v in response.headers.items()},
            **kwargs,
        )

    @classmethod
    async def from_url(cls, url: str, http: "HttpClient") -> "Page":
        """
        Fetch ``url`` and return its page.

        Transport failures never raise; they yield a ``NO_RESPONSE`` page.

        Args:
            url: Absolute URL to fetch
            http: HTTP client to fetch with

        Returns:
            The fetched page
        """
        try:
            response = await http.get(url)
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            logger.debug("No response", url=url, error=str(e))
            return cls(url=url, code=NO_RESPONSE)

        from scanframe.components.platforms import PlatformManager

        platforms = PlatformManager.fingerprint(response)
        page = cls.from_response(response, platforms=platforms)
        if page.url != url:
            # Keep the requested URL as the page identity
            page = page.model_copy(update={"url": url})
        return page

    def __str__(self) -> str:
        return f"[HTTP: {self.code}] {self.url}"
