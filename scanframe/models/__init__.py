"""Data models for ScanFrame."""

from scanframe.models.page import NO_RESPONSE, Page
from scanframe.models.issue import Issue, Severity
from scanframe.models.scan import ScanStatus
from scanframe.models.audit_store import AuditStore

__all__ = [
    "NO_RESPONSE",
    "Page",
    "Issue",
    "Severity",
    "ScanStatus",
    "AuditStore",
]
