"""Recursive directory sizes computed in one parallel walk."""

from __future__ import annotations

import os
import threading
from collections import defaultdict
from pathlib import Path

from .exclusion import ExclusionRules
from .models import FileRecord, SizeScan
from .walker import ProgressFunc, walk_files


class SizeAggregator:
    """Adds each file's size to every ancestor up to the scan root."""

    def __init__(self, root: Path) -> None:
        self.root = root
        self._lock = threading.Lock()
        self._sizes: dict[Path, int] = defaultdict(int)

    def add(self, record: FileRecord) -> None:
        ancestors: list[Path] = []
        for parent in record.path.parents:
            ancestors.append(parent)
            if parent == self.root:
                break
        with self._lock:
            for directory in ancestors:
                self._sizes[directory] += record.size

    def sizes(self) -> dict[Path, int]:
        with self._lock:
            return dict(self._sizes)


def aggregate_sizes(
    root: str | os.PathLike[str],
    *,
    rules: ExclusionRules | None = None,
    cancel: threading.Event | None = None,
    workers: int | None = None,
    progress: ProgressFunc | None = None,
) -> SizeScan:
    """Compute the recursive size of every directory holding files under ``root``.

    The root itself is included. Directories with no files beneath them do
    not appear.

    Raises:
        ConfigurationError: If ``root`` is not a directory.
        ScanCancelled: If ``cancel`` was set before the walk completed.

    """
    aggregator = SizeAggregator(Path(root))
    errors = walk_files(aggregator.root, aggregator.add, rules=rules, cancel=cancel, workers=workers, progress=progress)
    return SizeScan(sizes=aggregator.sizes(), errors=errors)
