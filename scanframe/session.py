"""Default authenticated-session collaborator."""

from __future__ import annotations

import re
from typing import TYPE_CHECKING, Protocol, runtime_checkable

import httpx

from scanframe.core.logger import LoggerMixin

if TYPE_CHECKING:
    from scanframe.core.config import SessionConfig
    from scanframe.http.client import HttpClient


@runtime_checkable
class SessionProtocol(Protocol):
    """What the framework needs from a session keeper."""

    async def ensure_logged_in(self) -> bool: ...


class Session(LoggerMixin):
    """
    Checks that the scan is still logged in.

    When ``login_check_url`` and ``login_check_pattern`` are configured the
    check URL is fetched and its body matched against the pattern. Logging
    back in is left to subclasses through :meth:`login`.
    """

    def __init__(self, config: "SessionConfig", http: "HttpClient"):
        self.config = config
        self.http = http

    async def logged_in(self) -> bool:
        """Whether the login check passes; always True when unconfigured."""
        if not self.config.enabled:
            return True

        try:
            response = await self.http.get(self.config.login_check_url)
        except httpx.HTTPError as e:
            self.logger.warning("Login check failed", url=self.config.login_check_url, error=str(e))
            return False

        return re.search(self.config.login_check_pattern, response.text) is not None

    async def login(self) -> bool:
        """Log back in. Returns whether it succeeded."""
        return False

    async def ensure_logged_in(self) -> bool:
        """Make sure the session is still valid, trying to log back in if not."""
        if await self.logged_in():
            return True

        self.logger.warning("Session lost, trying to log back in")
        if await self.login():
            self.logger.info("Logged back in")
            return True

        self.logger.error("Could not restore the session")
        return False
