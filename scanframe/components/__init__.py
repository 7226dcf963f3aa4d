"""Pluggable scan components: audit modules, plugins, reports and platforms."""

from scanframe.components.manager import Component, ComponentManager
from scanframe.components.modules import AuditModule, ModuleManager
from scanframe.components.platforms import PlatformManager
from scanframe.components.plugins import Plugin, PluginManager
from scanframe.components.reports import Report, ReportManager
from scanframe.components.timeout import TimeoutAnalysis, TimeoutCandidate

__all__ = [
    "AuditModule",
    "Component",
    "ComponentManager",
    "ModuleManager",
    "PlatformManager",
    "Plugin",
    "PluginManager",
    "Report",
    "ReportManager",
    "TimeoutAnalysis",
    "TimeoutCandidate",
]
