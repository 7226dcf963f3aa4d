"""Utility helpers."""

from scanframe.utils.tempfiles import temp_file_context

__all__ = ["temp_file_context"]
