"""Scan progress and statistics calculations."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel


def calculate_progress(audited: int, sitemap: int, redirects: int = 0) -> float:
    """
    Audit progress as a percentage.

    Redirecting URLs are valid paths but never pages, so they can't be
    audited and are taken out of the denominator; otherwise progress would
    never reach 100%.

    Args:
        audited: Number of audited pages
        sitemap: Number of discovered URLs
        redirects: Number of discovered URLs that redirect

    Returns:
        Progress in ``[0.0, 100.0]``, rounded to two decimals
    """
    auditable = max(sitemap - redirects, 0)
    if auditable == 0:
        return 0.0

    progress = round(audited / auditable * 100, 2)

    # Can slightly exceed 100% when pages are audited more than once
    return min(max(progress, 0.0), 100.0)


def average_rate(responses: int, elapsed: float) -> int:
    """Average responses per second over ``elapsed`` seconds."""
    if responses <= 0 or elapsed <= 0:
        return 0
    return int(responses / elapsed)


def format_duration(seconds: float) -> str:
    """Format seconds as ``HH:MM:SS``."""
    seconds = max(int(seconds), 0)
    hours, remainder = divmod(seconds, 3600)
    minutes, secs = divmod(remainder, 60)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}"


def eta(progress: float, start: Optional[datetime], now: Optional[datetime] = None) -> str:
    """
    Estimated remaining time given progress so far.

    Args:
        progress: Progress percentage
        start: When the scan started
        now: Reference time (defaults to the current time)

    Returns:
        ``HH:MM:SS``, or ``--:--:--`` when there's nothing to base it on
    """
    if start is None or progress <= 0:
        return "--:--:--"
    if progress >= 100:
        return format_duration(0)

    elapsed = ((now or datetime.now()) - start).total_seconds()
    remaining = elapsed * (100 - progress) / progress
    return format_duration(remaining)


class ScanClock:
    """
    Scan running time.

    Elapsed time is computed once and then frozen until a refresh is
    requested, so stats can be polled while the scan is paused without the
    clock advancing.
    """

    def __init__(self) -> None:
        self.start_datetime: Optional[datetime] = None
        self.finish_datetime: Optional[datetime] = None
        self.delta_time: Optional[float] = None

    def start(self) -> None:
        """Start the clock."""
        self.start_datetime = datetime.now()
        self.finish_datetime = None
        self.delta_time = None

    def stop(self) -> float:
        """Stop the clock and freeze the elapsed time."""
        self.finish_datetime = datetime.now()
        if self.start_datetime is None:
            self.start_datetime = self.finish_datetime
        self.delta_time = (self.finish_datetime - self.start_datetime).total_seconds()
        return self.delta_time

    def elapsed(self, refresh: bool = False) -> float:
        """
        Running time in seconds.

        Args:
            refresh: Recompute instead of returning the frozen value
        """
        if self.start_datetime is None:
            self.start_datetime = datetime.now()

        if refresh or self.delta_time is None:
            self.delta_time = (datetime.now() - self.start_datetime).total_seconds()
        return self.delta_time

    def reset(self) -> None:
        self.start_datetime = None
        self.finish_datetime = None
        self.delta_time = None


class ScanStats(BaseModel):
    """Snapshot of scan statistics as returned by ``Framework.stats``."""

    requests: int = 0
    responses: int = 0
    time_out_count: int = 0
    time: float = 0.0
    avg: int = 0
    sitemap_size: int = 0
    auditmap_size: int = 0
    progress: float = 0.0
    curr_res_time: float = 0.0
    curr_res_cnt: int = 0
    curr_avg: float = 0.0
    average_res_time: float = 0.0
    max_concurrency: int = 0
    current_page: str = ""
    eta: str = "--:--:--"
