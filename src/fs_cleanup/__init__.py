"""Classify empty folders, duplicate files and directory sizes."""

from __future__ import annotations

from .duplicates import HashAlgorithm, find_duplicates
from .empty_dirs import classify_empty
from .errors import ConfigurationError, ScanCancelled
from .exclusion import ExclusionRules
from .finder import find_files
from .models import DuplicateScan, EmptyScan, EntryError, FileRecord, FileScan, SizeScan
from .resolver import KeepPolicy, resolve_duplicate_set
from .sizes import aggregate_sizes
from .walker import walk_files

__version__ = "2.0.0"

__all__ = [
    "ConfigurationError",
    "DuplicateScan",
    "EmptyScan",
    "EntryError",
    "ExclusionRules",
    "FileRecord",
    "FileScan",
    "HashAlgorithm",
    "KeepPolicy",
    "ScanCancelled",
    "SizeScan",
    "aggregate_sizes",
    "classify_empty",
    "find_duplicates",
    "find_files",
    "resolve_duplicate_set",
    "walk_files",
]
