"""Core modules for ScanFrame."""

from scanframe.core.config import Settings, get_settings
from scanframe.core.errors import (
    ComponentError,
    ComponentNotFoundError,
    ConfigurationError,
    FrameworkError,
    InvalidOptionError,
    ScanFrameError,
)
from scanframe.core.logger import get_logger, setup_logging
from scanframe.core.scope import ScopeValidator

__all__ = [
    "Settings",
    "get_settings",
    "get_logger",
    "setup_logging",
    "ScopeValidator",
    "ScanFrameError",
    "FrameworkError",
    "ComponentError",
    "ComponentNotFoundError",
    "ConfigurationError",
    "InvalidOptionError",
]
