"""Async HTTP client used by the framework, its modules and its collaborators."""

from __future__ import annotations

import asyncio
import inspect
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

import httpx

from scanframe.core.config import HttpConfig
from scanframe.core.logger import get_logger

logger = get_logger(__name__)

ResponseCallback = Callable[[httpx.Response], Any]


@dataclass
class QueuedRequest:
    """A request waiting for the next :meth:`HttpClient.run`."""
    method: str
    url: str
    callback: Optional[ResponseCallback] = None
    train: bool = False
    kwargs: dict[str, Any] = field(default_factory=dict)


async def _maybe_await(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


class HttpClient:
    """
    Thin wrapper around ``httpx.AsyncClient``.

    Requests can be issued immediately (:meth:`request`, :meth:`get`) or
    queued (:meth:`queue`) and executed concurrently by :meth:`run`, which
    returns once every request of that round has completed. Callbacks may
    queue further requests; those wait for the next round.

    Keeps the counters and timings the framework reports in its stats.
    """

    def __init__(
        self,
        config: Optional[HttpConfig] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the HTTP client.

        Args:
            config: HTTP configuration
            transport: Optional httpx transport (e.g. ``httpx.MockTransport``)
        """
        self.config = config or HttpConfig()
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None
        self._pending: list[QueuedRequest] = []
        self._train_observers: list[ResponseCallback] = []
        self._reset_counters()

    def _reset_counters(self) -> None:
        self.request_count = 0
        self.response_count = 0
        self.time_out_count = 0
        self._total_res_time = 0.0

        # Current burst, i.e. the latest run() round
        self.curr_res_cnt = 0
        self._curr_total_res_time = 0.0
        self._burst_start = time.monotonic()

    @property
    def max_concurrency(self) -> int:
        return self.config.max_concurrency

    @property
    def client(self) -> httpx.AsyncClient:
        """The underlying httpx client, created on first use."""
        if self._client is None:
            headers = {"User-Agent": self.config.user_agent}
            headers.update(self.config.headers)
            self._client = httpx.AsyncClient(
                timeout=self.config.timeout,
                headers=headers,
                follow_redirects=self.config.follow_redirects,
                verify=self.config.verify_tls,
                transport=self._transport,
            )
        return self._client

    @property
    def average_res_time(self) -> float:
        """Average response time in seconds over the whole scan."""
        if not self.response_count:
            return 0.0
        return self._total_res_time / self.response_count

    @property
    def curr_res_time(self) -> float:
        """Average response time in seconds for the current burst."""
        if not self.curr_res_cnt:
            return 0.0
        return self._curr_total_res_time / self.curr_res_cnt

    @property
    def curr_res_per_second(self) -> float:
        """Responses per second for the current burst."""
        elapsed = time.monotonic() - self._burst_start
        if not self.curr_res_cnt or elapsed <= 0:
            return 0.0
        return self.curr_res_cnt / elapsed

    @property
    def pending_count(self) -> int:
        """Number of queued requests waiting for :meth:`run`."""
        return len(self._pending)

    def add_on_train(self, callback: ResponseCallback) -> None:
        """Register a callback for responses of requests issued with ``train=True``."""
        self._train_observers.append(callback)

    async def request(
        self,
        method: str,
        url: str,
        train: bool = False,
        **kwargs: Any,
    ) -> httpx.Response:
        """
        Perform a request right away.

        Args:
            method: HTTP method
            url: Absolute URL
            train: Hand the response to the train observers
            **kwargs: Passed through to ``httpx.AsyncClient.request``

        Returns:
            The response

        Raises:
            httpx.HTTPError: On transport failures and timeouts
        """
        self.request_count += 1
        started = time.monotonic()

        try:
            response = await self.client.request(method, url, **kwargs)
        except httpx.TimeoutException:
            self.time_out_count += 1
            logger.debug("Request timed out", method=method, url=url)
            raise

        elapsed = time.monotonic() - started
        self.response_count += 1
        self.curr_res_cnt += 1
        self._total_res_time += elapsed
        self._curr_total_res_time += elapsed

        if train:
            for observer in self._train_observers:
                await _maybe_await(observer(response))

        return response

    async def get(self, url: str, **kwargs: Any) -> httpx.Response:
        """Perform a GET request right away."""
        return await self.request("GET", url, **kwargs)

    def queue(
        self,
        url: str,
        method: str = "GET",
        callback: Optional[ResponseCallback] = None,
        train: bool = False,
        **kwargs: Any,
    ) -> None:
        """
        Queue a request for the next :meth:`run`.

        Args:
            url: Absolute URL
            method: HTTP method
            callback: Called with the response once it arrives
            train: Hand the response to the train observers
            **kwargs: Passed through to ``httpx.AsyncClient.request``
        """
        self._pending.append(
            QueuedRequest(method=method, url=url, callback=callback, train=train, kwargs=kwargs)
        )

    async def run(self) -> None:
        """Run every queued request concurrently and wait for all of them."""
        batch, self._pending = self._pending, []

        self.curr_res_cnt = 0
        self._curr_total_res_time = 0.0
        self._burst_start = time.monotonic()

        if not batch:
            return

        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def perform(queued: QueuedRequest) -> None:
            async with semaphore:
                try:
                    response = await self.request(
                        queued.method, queued.url, train=queued.train, **queued.kwargs
                    )
                except httpx.HTTPError as e:
                    logger.debug("Queued request failed", url=queued.url, error=str(e))
                    return

            if queued.callback:
                try:
                    await _maybe_await(queued.callback(response))
                except Exception as e:
                    logger.error("HTTP callback failed", url=queued.url, error=str(e))

        logger.debug("Running queued requests", count=len(batch))
        await asyncio.gather(*(perform(q) for q in batch))

    def reset(self) -> None:
        """Drop queued requests, observers and counters."""
        self._pending.clear()
        self._train_observers.clear()
        self._reset_counters()

    async def aclose(self) -> None:
        """Close the underlying connection pool."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None
