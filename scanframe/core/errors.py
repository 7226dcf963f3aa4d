"""Exception hierarchy for ScanFrame.

Only configuration-class errors escape to callers of the framework. Faults
raised while a scan is running are logged and turned into bookkeeping state.
"""

from __future__ import annotations


class ScanFrameError(Exception):
    """Base class for all ScanFrame errors."""
    pass


class FrameworkError(ScanFrameError):
    """Raised by the scan framework itself."""
    pass


class ConfigurationError(ScanFrameError):
    """Raised when settings cannot be loaded or are inconsistent."""
    pass


class ComponentError(ScanFrameError):
    """Base class for component (module, plugin, report) errors."""
    pass


class ComponentNotFoundError(ComponentError):
    """Raised when a component name does not match any registered component."""

    def __init__(self, kind: str, name: str):
        self.kind = kind
        self.name = name
        super().__init__(f"{kind.capitalize()} '{name}' could not be found.")


class InvalidOptionError(ComponentError):
    """Raised when a component does not support a required option."""
    pass
