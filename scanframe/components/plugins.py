"""Plugins: scan-wide components running alongside the audit."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any, Optional

from scanframe.components.manager import Component, ComponentManager
from scanframe.core.logger import log_module_error

if TYPE_CHECKING:
    from scanframe.core.framework import Framework


class Plugin(Component):
    """
    Base class for plugins.

    Plugins are started when the scan is prepared and run concurrently with
    the crawl and audit. Anything passed to :meth:`register_results` ends up
    in the ``plugins`` section of the audit store.
    """

    info: dict[str, Any] = {
        "name": "Base plugin",
        "description": "",
        "author": "",
        "version": "0.1",
    }

    def __init__(self, framework: "Framework", options: Optional[dict[str, Any]] = None):
        self.framework = framework
        self.options = dict(options or {})

    async def prepare(self) -> None:
        """Called before :meth:`run`."""

    async def run(self) -> None:
        raise NotImplementedError

    async def clean_up(self) -> None:
        """Called after :meth:`run`."""

    def register_results(self, results: Any) -> None:
        """Store this plugin's results for the audit store."""
        self.framework.plugins.store_results(self.shortname, self.info, results)


class PluginManager(ComponentManager):
    """Plugin registry; runs the loaded plugins as background tasks."""

    kind = "plugin"

    def __init__(self, framework: "Framework"):
        super().__init__()
        self.framework = framework
        self._tasks: dict[str, asyncio.Task] = {}
        self._results: dict[str, dict[str, Any]] = {}

    @property
    def results(self) -> dict[str, dict[str, Any]]:
        """Plugin results keyed by plugin name."""
        return dict(self._results)

    def store_results(self, name: str, info: dict[str, Any], results: Any) -> None:
        self._results[name] = {"name": info.get("name", name), "results": results}

    def run(self) -> None:
        """Start every loaded plugin; must be called from a running event loop."""
        for name, plugin in self._loaded.items():
            options = self.framework.settings.plugins.get(name, {})
            instance = plugin(self.framework, options)
            self._tasks[name] = asyncio.create_task(self._run_one(name, instance))
            self.logger.info("Plugin started", plugin=name)

    async def _run_one(self, name: str, plugin: Plugin) -> None:
        try:
            await plugin.prepare()
            await plugin.run()
            await plugin.clean_up()
        except Exception as e:
            log_module_error(name, e, component="plugin")

    @property
    def busy(self) -> bool:
        """Whether any plugin is still running."""
        return any(not task.done() for task in self._tasks.values())

    async def block(self) -> None:
        """Wait for every running plugin to finish."""
        if self._tasks:
            await asyncio.gather(*self._tasks.values())
        self._tasks.clear()

    def reset(self) -> None:
        """Cancel running plugins and drop their results."""
        for task in self._tasks.values():
            task.cancel()
        self._tasks.clear()
        self._results.clear()
