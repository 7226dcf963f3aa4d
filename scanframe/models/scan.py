"""Scan status model."""

from __future__ import annotations

from enum import Enum


class ScanStatus(str, Enum):
    """
    Scan status values, in lifecycle order.

    ``PAUSED`` is an overlay reported while a pause is held; no transition
    ever assigns it.
    """
    READY = "ready"
    PREPARING = "preparing"
    CRAWLING = "crawling"
    AUDITING = "auditing"
    PAUSED = "paused"
    CLEANUP = "cleanup"
    DONE = "done"

    @property
    def is_active(self) -> bool:
        """Whether a scan is underway in this status."""
        return self not in (ScanStatus.READY, ScanStatus.DONE)

    def __str__(self) -> str:
        return self.value
