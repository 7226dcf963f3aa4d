"""HTTP transport for ScanFrame."""

from scanframe.http.client import HttpClient, QueuedRequest

__all__ = [
    "HttpClient",
    "QueuedRequest",
]
