"""Deferred verification of timing-based issues."""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional

import httpx

from scanframe.core.logger import get_logger, log_module_error
from scanframe.models.issue import Issue

logger = get_logger(__name__)

Probe = Callable[[], Awaitable[Any]]


async def _timed(probe: Probe) -> float:
    started = time.monotonic()
    await probe()
    return time.monotonic() - started


@dataclass
class TimeoutCandidate:
    """
    A provisional timing-based issue.

    ``probe`` performs the request carrying the delay payload, ``control``
    the same request without it. The issue is confirmed when the probe takes
    at least ``delay`` seconds while the control does not.
    """
    issue: Issue
    delay: float
    probe: Probe
    control: Optional[Probe] = None

    async def verify(self) -> bool:
        """Re-issue the requests and compare their latency against ``delay``."""
        try:
            if self.control is not None:
                control_time = await _timed(self.control)
                if control_time >= self.delay:
                    logger.info(
                        "Server too slow to verify timing candidate",
                        url=self.issue.url,
                        control_time=round(control_time, 3),
                    )
                    return False

            probe_time = await _timed(self.probe)
        except httpx.TimeoutException:
            # The payload held the response past the client timeout
            return True
        except httpx.HTTPError as e:
            logger.debug("Timing candidate request failed", url=self.issue.url, error=str(e))
            return False

        return probe_time >= self.delay


class TimeoutAnalysis:
    """Collects timing candidates during module runs and verifies them later."""

    def __init__(self) -> None:
        self._candidates: list[TimeoutCandidate] = []

    @property
    def candidates(self) -> list[TimeoutCandidate]:
        return list(self._candidates)

    @property
    def empty(self) -> bool:
        return not self._candidates

    def add(self, candidate: TimeoutCandidate) -> None:
        """Queue a candidate for the next verification pass."""
        self._candidates.append(candidate)

    async def run(self) -> list[Issue]:
        """
        Verify every queued candidate.

        Candidates added while verifying wait for the next pass.

        Returns:
            The issues of the confirmed candidates
        """
        batch, self._candidates = self._candidates, []

        confirmed = []
        for candidate in batch:
            try:
                verified = await candidate.verify()
            except Exception as e:
                log_module_error(candidate.issue.module or "unknown", e, url=candidate.issue.url)
                verified = False

            if verified:
                issue = candidate.issue.model_copy(update={"verification": False})
                confirmed.append(issue)
            else:
                logger.debug("Timing candidate rejected", url=candidate.issue.url)

        logger.info(
            "Timeout analysis complete",
            candidates=len(batch),
            confirmed=len(confirmed),
        )
        return confirmed

    def clear(self) -> None:
        self._candidates.clear()
