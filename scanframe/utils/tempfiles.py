"""Temporary file helpers with guaranteed cleanup."""

from __future__ import annotations

import os
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

from scanframe.core.logger import get_logger

logger = get_logger(__name__)


def secure_temp_file(
    suffix: str = "",
    prefix: str = "scanframe_",
    dir: Optional[Path] = None,
) -> Path:
    """
    Create a secure temporary file.

    Uses tempfile.mkstemp() which atomically creates the file
    with secure permissions (0600).

    Args:
        suffix: File suffix (e.g., ".txt", ".json")
        prefix: File prefix
        dir: Directory to create file in

    Returns:
        Path to created file
    """
    fd, path = tempfile.mkstemp(
        suffix=suffix,
        prefix=prefix,
        dir=str(dir) if dir else None,
        text=True,
    )
    # Close the file descriptor - we just need the path
    os.close(fd)

    logger.debug(f"Created temp file: {path}")
    return Path(path)


def cleanup_file(path: Path) -> bool:
    """
    Remove a temp file.

    Returns:
        True if cleaned up successfully
    """
    try:
        path.unlink(missing_ok=True)
    except OSError as e:
        logger.warning(f"Failed to clean up {path}: {e}")
        return False
    logger.debug(f"Cleaned up temp file: {path}")
    return True


@contextmanager
def temp_file_context(
    suffix: str = "",
    prefix: str = "scanframe_",
    dir: Optional[Path] = None,
) -> Iterator[Path]:
    """
    Context manager for temporary file with automatic cleanup.

    Args:
        suffix: File suffix
        prefix: File prefix
        dir: Directory

    Yields:
        Path to temp file
    """
    path = secure_temp_file(suffix=suffix, prefix=prefix, dir=dir)
    try:
        yield path
    finally:
        cleanup_file(path)
