"""Cooperative pause/resume gate shared by the scan driver and its controllers."""

from __future__ import annotations

import asyncio
import threading
from typing import Callable, Hashable, Optional

from scanframe.core.logger import get_logger

logger = get_logger(__name__)


class PauseCoordinator:
    """
    Tracks who is holding the scan paused.

    The scan is paused while at least one caller holds a pause, so independent
    controllers can pause and resume without releasing each other's pause.
    ``pause``/``resume`` are safe to call from any thread; the driver checks
    the gate through :meth:`wait_if_paused` at well-defined points, so a pause
    takes effect on a best-effort basis.
    """

    def __init__(
        self,
        poll_interval: float = 1.0,
        on_pause: Optional[Callable[[], None]] = None,
        on_resume: Optional[Callable[[], None]] = None,
    ):
        """
        Initialize the coordinator.

        Args:
            poll_interval: Seconds between checks while paused
            on_pause: Called on every pause request (suspends the spider)
            on_resume: Called once the last pause is released (resumes the spider)
        """
        self.poll_interval = poll_interval
        self._on_pause = on_pause
        self._on_resume = on_resume
        self._holders: set[Hashable] = set()
        self._lock = threading.Lock()

    @property
    def holders(self) -> frozenset[Hashable]:
        """Callers currently holding a pause."""
        with self._lock:
            return frozenset(self._holders)

    def is_paused(self) -> bool:
        """Whether any caller holds a pause."""
        with self._lock:
            return bool(self._holders)

    @property
    def paused(self) -> bool:
        return self.is_paused()

    def pause(self, caller: Hashable) -> bool:
        """
        Request a pause on behalf of ``caller``.

        Args:
            caller: Opaque identity of the requester

        Returns:
            True
        """
        if self._on_pause:
            self._on_pause()
        with self._lock:
            self._holders.add(caller)
        logger.info("Pause requested", caller=str(caller))
        return True

    def resume(self, caller: Hashable) -> bool:
        """
        Release the pause held by ``caller``; a no-op if it holds none.

        Args:
            caller: Opaque identity of the requester

        Returns:
            True
        """
        with self._lock:
            self._holders.discard(caller)
            still_paused = bool(self._holders)
        if self._on_resume and not still_paused:
            self._on_resume()
        logger.info("Resume requested", caller=str(caller), still_paused=still_paused)
        return True

    async def wait_if_paused(self) -> None:
        """Suspend the caller while the scan is paused."""
        while self.is_paused():
            await asyncio.sleep(self.poll_interval)

    def clear(self) -> None:
        """Release every pause."""
        with self._lock:
            self._holders.clear()
