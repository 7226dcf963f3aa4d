"""Reports: render an audit store, plus the built-in formats."""

from __future__ import annotations

import json
from pathlib import Path
from typing import TYPE_CHECKING, Any, Optional

import yaml
from rich.console import Console

from scanframe.components.manager import Component, ComponentManager
from scanframe.core.logger import log_module_error
from scanframe.models.audit_store import AuditStore

if TYPE_CHECKING:
    from scanframe.core.config import Settings


class Report(Component):
    """
    Base class for reports.

    Reports listing ``outfile`` among ``info["options"]`` write to a file and
    can therefore be rendered to a string by ``Framework.report_as``.
    """

    info: dict[str, Any] = {
        "name": "Base report",
        "description": "",
        "author": "",
        "version": "0.1",
        "options": [],
    }

    # Used when no outfile option is given
    extension: str = "txt"

    def __init__(self, auditstore: AuditStore, options: Optional[dict[str, Any]] = None):
        self.auditstore = auditstore
        self.options = dict(options or {})

    @classmethod
    def has_outfile(cls) -> bool:
        """Whether the report writes to a configurable output file."""
        return "outfile" in cls.info.get("options", [])

    @property
    def outfile(self) -> Path:
        """Destination file; defaults to a timestamped file named after the target."""
        if self.options.get("outfile"):
            return Path(self.options["outfile"])

        started = self.auditstore.start_datetime
        stamp = started.strftime("%Y%m%d_%H%M%S") if started else "unknown"
        host = (self.auditstore.target or "scan").split("://")[-1].split("/")[0]
        return Path(f"{host}_{stamp}.{self.extension}")

    def render(self) -> str:
        """Report contents as a string."""
        raise NotImplementedError

    def run(self) -> Path:
        """Write the report and return the file it was written to."""
        path = self.outfile
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(self.render())
        return path


class ReportManager(ComponentManager):
    """Report registry; runs the loaded reports against an audit store."""

    kind = "report"

    def __init__(self, settings: "Settings"):
        super().__init__()
        self.settings = settings

    def run(self, store: AuditStore) -> dict[str, Path]:
        """
        Run every loaded report with its configured options.

        A failing report is logged and skipped.

        Returns:
            Written file per report name
        """
        written = {}
        for name in self.loaded:
            options = self.settings.reports.get(name, {})
            try:
                written[name] = self.run_one(name, store, options)
            except Exception as e:
                log_module_error(name, e, component="report")
        return written

    def run_one(
        self,
        name: str,
        store: AuditStore,
        options: Optional[dict[str, Any]] = None,
    ) -> Path:
        """Run the report registered under ``name``."""
        report = self[name](store, options)
        path = report.run()
        self.logger.info("Report written", report=name, outfile=str(path))
        return path


@ReportManager.register("json")
class JsonReport(Report):
    info = {
        "name": "JSON",
        "description": "Exports the audit results as a JSON file.",
        "author": "ScanFrame developers",
        "version": "0.1",
        "options": ["outfile"],
    }
    extension = "json"

    def render(self) -> str:
        return json.dumps(self.auditstore.to_dict(), indent=2, default=str)


@ReportManager.register("yaml")
class YamlReport(Report):
    info = {
        "name": "YAML",
        "description": "Exports the audit results as a YAML file.",
        "author": "ScanFrame developers",
        "version": "0.1",
        "options": ["outfile"],
    }
    extension = "yaml"

    def render(self) -> str:
        return yaml.safe_dump(self.auditstore.to_dict(), default_flow_style=False, sort_keys=False)


@ReportManager.register("txt")
class TextReport(Report):
    """Human-readable summary, most severe issues first."""

    info = {
        "name": "Plain text",
        "description": "Exports a human-readable summary of the audit results.",
        "author": "ScanFrame developers",
        "version": "0.1",
        "options": ["outfile"],
    }

    def render(self) -> str:
        store = self.auditstore
        lines = [
            "=" * 60,
            f"SCAN REPORT - {store.target or 'unknown target'}",
            "=" * 60,
            "",
            f"Version:   {store.version} (revision {store.revision})",
            f"Started:   {store.start_datetime or '-'}",
            f"Finished:  {store.finish_datetime or '-'}",
            f"Duration:  {store.delta_time:.2f}s",
            f"Pages:     {len(store.sitemap)}",
            f"Issues:    {store.issue_count}",
            "",
        ]

        for severity, issues in store.issues_by_severity().items():
            if not issues:
                continue
            lines.append(f"--- {severity.upper()} ({len(issues)}) ---")
            for issue in issues:
                lines.append(issue.to_text())
                lines.append("")

        if store.plugins:
            lines.append("--- PLUGINS ---")
            for name, data in store.plugins.items():
                lines.append(f"{data.get('name', name)}: {data.get('results')}")
            lines.append("")

        lines.append("--- SITEMAP ---")
        lines.extend(store.sitemap)
        return "\n".join(lines) + "\n"


@ReportManager.register("stdout")
class StdoutReport(TextReport):
    """Prints the plain text summary; has no output file."""

    info = {
        "name": "Stdout",
        "description": "Prints the results to standard output.",
        "author": "ScanFrame developers",
        "version": "0.1",
        "options": [],
    }

    def run(self) -> Path:
        Console().print(self.render(), markup=False, highlight=False)
        return Path("-")
