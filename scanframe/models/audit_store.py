"""End-of-scan result snapshot."""

from __future__ import annotations

import json
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from scanframe.models.issue import Issue, Severity


class AuditStore(BaseModel):
    """
    Immutable snapshot of scan results, consumed by reports.

    Built by :meth:`Framework.audit_store`; every build deep-copies the
    framework's state so snapshots never share mutable objects.
    """

    model_config = ConfigDict(frozen=True)

    version: str
    revision: str

    # Scan configuration used, with pristine redundancy counters
    options: dict[str, Any] = Field(default_factory=dict)

    # Results
    sitemap: list[str] = Field(default_factory=list)
    issues: list[Issue] = Field(default_factory=list)
    plugins: dict[str, Any] = Field(default_factory=dict)

    # Timing
    start_datetime: Optional[datetime] = None
    finish_datetime: Optional[datetime] = None
    delta_time: float = 0.0

    @property
    def target(self) -> Optional[str]:
        """The scan target URL."""
        return self.options.get("url")

    @property
    def issue_count(self) -> int:
        """Number of logged issues."""
        return len(self.issues)

    def issues_by_severity(self) -> dict[str, list[Issue]]:
        """Group issues by severity value, most severe first."""
        grouped: dict[str, list[Issue]] = {s.value: [] for s in Severity}
        for issue in sorted(self.issues, key=lambda i: i.severity_score, reverse=True):
            grouped[issue.severity.value].append(issue)
        return grouped

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return self.model_dump(mode="json")

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AuditStore":
        """Create an AuditStore from a dictionary produced by :meth:`to_dict`."""
        data = dict(data)
        data["issues"] = [
            i if isinstance(i, Issue) else Issue.from_dict(i)
            for i in data.get("issues", [])
        ]
        return cls.model_validate(data)

    def save(self, path: Path) -> Path:
        """Write the snapshot to ``path`` as JSON."""
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(self.to_dict(), indent=2, default=str))
        return path

    @classmethod
    def load(cls, path: Path) -> "AuditStore":
        """Load a snapshot previously written by :meth:`save`."""
        return cls.from_dict(json.loads(path.read_text()))
