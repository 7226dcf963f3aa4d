"""Vulnerability issue data model."""

from __future__ import annotations

import hashlib
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field, computed_field


class Severity(str, Enum):
    """Issue severity levels."""
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    INFORMATIONAL = "informational"


class Issue(BaseModel):
    """
    A security issue logged by an audit module.

    Issues are accumulated by the module manager for the whole scan and end
    up in the AuditStore.
    """

    # Core fields
    name: str = Field(..., description="Issue title")
    url: str = Field(..., description="URL of the affected page")
    severity: Severity = Severity.INFORMATIONAL

    # Where in the page
    element: Optional[str] = None
    method: Optional[str] = None
    var: Optional[str] = None

    # Description
    description: Optional[str] = None
    remedy_guidance: Optional[str] = None

    # Evidence
    injected: Optional[str] = None
    signature: Optional[str] = None
    proof: Optional[str] = None

    # References
    references: dict[str, str] = Field(default_factory=dict)
    cwe: Optional[int] = None
    tags: list[str] = Field(default_factory=list)

    # Metadata
    module: Optional[str] = None
    discovered_at: datetime = Field(default_factory=datetime.now)
    # Unverified issues need manual confirmation
    verification: bool = False

    extra: dict[str, Any] = Field(default_factory=dict)

    @computed_field
    @property
    def fingerprint(self) -> str:
        """
        Unique fingerprint for deduplication.

        Combines module, name, URL, element and input name.
        """
        components = [
            self.module or "",
            self.name,
            self.url,
            self.element or "",
            self.var or "",
        ]
        content = "|".join(components)
        return hashlib.sha256(content.encode()).hexdigest()[:16]

    @property
    def severity_score(self) -> int:
        """Numeric severity score for sorting."""
        scores = {
            Severity.HIGH: 3,
            Severity.MEDIUM: 2,
            Severity.LOW: 1,
            Severity.INFORMATIONAL: 0,
        }
        return scores.get(self.severity, 0)

    def add_tag(self, tag: str) -> None:
        """Add a tag."""
        if tag and tag not in self.tags:
            self.tags.append(tag)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return self.model_dump(mode="json")

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Issue":
        """
        Create an Issue from a dictionary.

        The computed fingerprint is ignored since it is derived.
        """
        data = {k: v for k, v in data.items() if k != "fingerprint"}
        if isinstance(data.get("severity"), str):
            data["severity"] = Severity(data["severity"].lower())
        return cls.model_validate(data)

    def to_text(self) -> str:
        """Format issue as plain text for reports."""
        lines = [f"[{self.severity.value.upper()}] {self.name}"]
        lines.append(f"  URL:      {self.url}")
        if self.element:
            lines.append(f"  Element:  {self.element}")
        if self.var:
            lines.append(f"  Input:    {self.var}")
        if self.method:
            lines.append(f"  Method:   {self.method}")
        if self.module:
            lines.append(f"  Module:   {self.module}")
        if self.cwe:
            lines.append(f"  CWE:      {self.cwe}")
        if self.injected:
            lines.append(f"  Injected: {self.injected}")
        if self.proof:
            lines.append(f"  Proof:    {self.proof}")
        if self.description:
            lines.append("")
            lines.append(f"  {self.description}")
        return "\n".join(lines)
