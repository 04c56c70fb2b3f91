"""Find files by size and age."""

from __future__ import annotations

import os
import threading
import time
from datetime import timedelta

from .errors import ConfigurationError
from .exclusion import ExclusionRules
from .models import FileRecord, FileScan
from .walker import ProgressFunc, walk_files

SORT_KEYS = ("path", "size", "age")


def sort_records(records: list[FileRecord], sort_by: str = "path") -> None:
    """Sort in place by path (ascending), size (largest first) or age (oldest first).

    Raises:
        ConfigurationError: If ``sort_by`` is not a known key.

    """
    key = sort_by.lower()
    if key == "size":
        records.sort(key=lambda r: (-r.size, str(r.path)))
    elif key == "age":
        records.sort(key=lambda r: (r.mtime, str(r.path)))
    elif key == "path":
        records.sort(key=lambda r: str(r.path))
    else:
        raise ConfigurationError(f"Invalid sort key {sort_by!r}. Allowed values are: {', '.join(SORT_KEYS)}")


def find_files(
    root: str | os.PathLike[str],
    *,
    files_over: int = 0,
    older_than: timedelta | None = None,
    sort_by: str = "path",
    rules: ExclusionRules | None = None,
    cancel: threading.Event | None = None,
    workers: int | None = None,
    progress: ProgressFunc | None = None,
) -> FileScan:
    """Find regular files at least ``files_over`` bytes or older than ``older_than``.

    A file matching either criterion is included. With no criterion every
    file is included.

    Raises:
        ConfigurationError: If ``sort_by`` is unknown or ``root`` is not a directory.
        ScanCancelled: If ``cancel`` was set before the walk completed.

    """
    if sort_by.lower() not in SORT_KEYS:
        raise ConfigurationError(f"Invalid sort key {sort_by!r}. Allowed values are: {', '.join(SORT_KEYS)}")

    cutoff = time.time() - older_than.total_seconds() if older_than else None
    lock = threading.Lock()
    found: list[FileRecord] = []

    def match(record: FileRecord) -> None:
        by_size = files_over > 0 and record.size >= files_over
        by_age = cutoff is not None and record.mtime < cutoff
        if by_size or by_age or (files_over <= 0 and cutoff is None):
            with lock:
                found.append(record)

    errors = walk_files(root, match, rules=rules, cancel=cancel, workers=workers, progress=progress)
    sort_records(found, sort_by)
    return FileScan(files=found, errors=errors)
