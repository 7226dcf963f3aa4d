"""
ScanFrame v0.3.0 - Web application scanner framework.
"""

__version__ = "0.3.0"
__author__ = "ScanFrame Team"

from scanframe.core.config import Settings, get_settings
from scanframe.core.logger import get_logger, setup_logging
from scanframe.core.framework import Framework

__all__ = [
    "__version__",
    "Framework",
    "Settings",
    "get_settings",
    "get_logger",
    "setup_logging",
]
