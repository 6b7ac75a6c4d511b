"""
Batch input readers.
"""

from .file_reader import SUPPORTED_FORMATS, BatchFileReader

__all__ = [
    "BatchFileReader",
    "SUPPORTED_FORMATS",
]
