"""Rich CLI interface for ScanFrame."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any, NoReturn, Optional

import typer
from rich.console import Console
from rich.live import Live
from rich.table import Table
from rich.text import Text

from scanframe import __version__
from scanframe.core.config import Settings, load_settings
from scanframe.core.errors import ComponentNotFoundError, ConfigurationError, InvalidOptionError
from scanframe.core.framework import Framework
from scanframe.core.logger import get_logger, setup_logging
from scanframe.models.audit_store import AuditStore

app = typer.Typer(
    name="scanframe",
    help="Web application scanner framework",
    add_completion=False,
)
console = Console()
logger = get_logger(__name__)


class ScanProgress:
    """Single-line live scan status, rendered from framework stats."""

    def __init__(self, framework: Framework):
        self.framework = framework

    def __rich__(self) -> Text:
        return self.render()

    def render(self) -> Text:
        stats = self.framework.stats(refresh_time=True)

        text = Text()
        text.append(f"[{self.framework.status()}] ", style="bold cyan")
        text.append(f"{stats['progress']:.2f}% ", style="bold green")
        text.append(f"pages {stats['auditmap_size']}/{stats['sitemap_size']}  ")
        text.append(f"req {stats['requests']}  res {stats['responses']}  ")
        text.append(f"timeouts {stats['time_out_count']}  ", style="yellow")
        text.append(f"{stats['avg']} res/s  ")
        text.append(f"eta {stats['eta']}", style="dim")
        if stats["current_page"]:
            text.append(f"\n  {stats['current_page']}", style="dim")
        return text


def version_callback(value: bool) -> None:
    """Show version and exit."""
    if value:
        console.print(f"[bold blue]ScanFrame[/bold blue] v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        None, "--version", "-v",
        callback=version_callback,
        is_eager=True,
        help="Show version",
    ),
    debug: bool = typer.Option(
        False, "--debug", "-d",
        help="Enable debug mode",
    ),
) -> None:
    """ScanFrame - Web application scanner framework."""
    # Quiet mode for CLI unless debug
    log_level = "DEBUG" if debug else "WARNING"
    setup_logging(level=log_level)


def _fail(message: str) -> NoReturn:
    console.print(f"[bold red]Error:[/bold red] {message}")
    raise typer.Exit(code=1)


def _build_settings(
    config: Optional[Path],
    url: Optional[str] = None,
    **overrides: Any,
) -> Settings:
    try:
        settings = load_settings(config)
    except ConfigurationError as e:
        _fail(str(e))

    data = settings.model_dump()
    if url:
        data["url"] = url
    for key, value in overrides.items():
        if value:
            data[key] = value

    try:
        return Settings(**data)
    except ValueError as e:
        _fail(str(e))


@app.command()
def scan(
    url: str = typer.Argument(..., help="Target URL"),
    modules: Optional[list[str]] = typer.Option(
        None, "--module", "-m",
        help="Module to load (repeatable, '*' for all)",
    ),
    plugins: Optional[list[str]] = typer.Option(
        None, "--plugin", "-p",
        help="Plugin to load (repeatable)",
    ),
    reports: Optional[list[str]] = typer.Option(
        None, "--report", "-r",
        help="Report to run at the end of the scan (repeatable)",
    ),
    paths: Optional[list[str]] = typer.Option(
        None, "--path",
        help="Only audit these paths, skipping the crawl (repeatable)",
    ),
    exclude: Optional[list[str]] = typer.Option(
        None, "--exclude",
        help="Exclude URLs matching this regex (repeatable)",
    ),
    include: Optional[list[str]] = typer.Option(
        None, "--include",
        help="Only include URLs matching this regex (repeatable)",
    ),
    config: Optional[Path] = typer.Option(
        None, "--config", "-c",
        help="YAML settings file",
    ),
    output_dir: Optional[Path] = typer.Option(
        None, "--output-dir", "-o",
        help="Directory for the saved audit store",
    ),
    quiet: bool = typer.Option(
        False, "--quiet", "-q",
        help="Minimal output",
    ),
    debug: bool = typer.Option(
        False, "--debug", "-d",
        help="Enable debug logging for this scan",
    ),
) -> None:
    """Scan a web application."""
    if debug:
        setup_logging(level="DEBUG")

    settings = _build_settings(
        config,
        url=url,
        modules=modules,
        restrict_paths=paths,
        output_dir=output_dir,
    )
    settings.debug = settings.debug or debug
    if plugins:
        settings.plugins = {name: settings.plugins.get(name, {}) for name in plugins}
    if reports:
        settings.reports = {name: settings.reports.get(name, {}) for name in reports}
    if exclude:
        settings.scope.exclude_patterns = list(exclude)
    if include:
        settings.scope.include_patterns = list(include)

    asyncio.run(_run_scan(settings, quiet))


async def _run_scan(settings: Settings, quiet: bool) -> None:
    """Execute the scan."""
    try:
        framework = Framework(settings)
    except ComponentNotFoundError as e:
        _fail(str(e))

    async with framework:
        if quiet:
            console.print(f"[cyan]Scanning {settings.url}...[/cyan]")
            await framework.run()
        else:
            with Live(ScanProgress(framework), console=console, refresh_per_second=2):
                await framework.run()

        store = framework.audit_store()

    settings.ensure_directories()
    host = (settings.url or "scan").split("://")[-1].split("/")[0].replace(":", "_")
    saved = store.save(settings.output_dir / f"{host}.afs.json")

    _display_results(framework, store, saved)


def _display_results(framework: Framework, store: AuditStore, saved: Path) -> None:
    """Display the scan summary."""
    console.print()

    stats = framework.stats()

    summary = Table(title="[bold]Scan Complete[/bold]", border_style="green", show_header=False)
    summary.add_column("Section", style="cyan", width=24)
    summary.add_column("Details", style="white", width=60)

    summary.add_row("Target", store.target or "-")
    summary.add_row("Duration", f"{store.delta_time:.2f}s")
    summary.add_row("Pages discovered", str(stats["sitemap_size"]))
    summary.add_row("Pages audited", str(stats["auditmap_size"]))
    summary.add_row("Requests", f"{stats['requests']} ({stats['time_out_count']} timed out)")
    summary.add_row("Issues", str(store.issue_count))
    if framework.failures:
        summary.add_row("[red]Unreachable[/red]", "\n".join(framework.failures))
    summary.add_row("Audit store", str(saved))
    console.print(summary)

    if not store.issues:
        return

    issues = Table(title="[bold]Issues[/bold]")
    issues.add_column("Severity", style="bold")
    issues.add_column("Name", style="cyan")
    issues.add_column("URL", style="white")
    issues.add_column("Module", style="dim")

    colors = {"high": "red", "medium": "yellow", "low": "blue", "informational": "dim"}
    for severity, items in store.issues_by_severity().items():
        for issue in items:
            issues.add_row(
                f"[{colors[severity]}]{severity.upper()}[/{colors[severity]}]",
                issue.name,
                issue.url,
                issue.module or "-",
            )
    console.print(issues)


def _component_table(title: str, components: list[dict[str, Any]]) -> Table:
    table = Table(title=f"[bold]{title}[/bold]")
    table.add_column("Name", style="cyan")
    table.add_column("Title", style="bold")
    table.add_column("Description")
    table.add_column("Author", style="dim")
    table.add_column("Version", style="dim")

    for info in components:
        table.add_row(
            info["shortname"],
            info.get("name", ""),
            info.get("description", ""),
            ", ".join(info.get("author", [])),
            str(info.get("version", "")),
        )
    return table


@app.command(name="list-modules")
def list_modules(
    filters: Optional[list[str]] = typer.Argument(None, help="Regexes the module path must match"),
) -> None:
    """List available audit modules."""
    settings = _build_settings(None, lsmod=filters)
    console.print(_component_table("Modules", Framework(settings).list_modules()))


@app.command(name="list-reports")
def list_reports(
    filters: Optional[list[str]] = typer.Argument(None, help="Regexes the report path must match"),
) -> None:
    """List available reports."""
    settings = _build_settings(None, lsrep=filters)
    console.print(_component_table("Reports", Framework(settings).list_reports()))


@app.command(name="list-plugins")
def list_plugins(
    filters: Optional[list[str]] = typer.Argument(None, help="Regexes the plugin path must match"),
) -> None:
    """List available plugins."""
    settings = _build_settings(None, lsplug=filters)
    console.print(_component_table("Plugins", Framework(settings).list_plugins()))


@app.command(name="list-platforms")
def list_platforms() -> None:
    """List known platforms, grouped by type."""
    table = Table(title="[bold]Platforms[/bold]")
    table.add_column("Type", style="bold")
    table.add_column("Name", style="cyan")
    table.add_column("Full name")

    for type_name, platforms in Framework(Settings()).list_platforms().items():
        for shortname, fullname in platforms.items():
            table.add_row(type_name, shortname, fullname)
    console.print(table)


@app.command()
def report(
    name: str = typer.Argument(..., help="Report to render"),
    afs_file: Path = typer.Argument(..., help="Audit store saved by a scan"),
) -> None:
    """Render a saved audit store with the given report."""
    if not afs_file.exists():
        _fail(f"{afs_file} does not exist")

    store = AuditStore.load(afs_file)
    try:
        output = Framework(Settings()).report_as(name, store)
    except (ComponentNotFoundError, InvalidOptionError) as e:
        _fail(str(e))

    console.print(output, markup=False, highlight=False)


if __name__ == "__main__":
    app()
