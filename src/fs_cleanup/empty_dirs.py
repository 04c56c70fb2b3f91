"""Find directories that are empty, directly or transitively."""

from __future__ import annotations

import logging
import os
import threading
import time
from collections.abc import Iterable
from datetime import timedelta
from pathlib import Path

from .exclusion import ExclusionRules
from .models import EmptyScan
from .walker import ErrorCollector, check_cancelled, ensure_directory

logger = logging.getLogger(__name__)


def path_depth(path: Path) -> int:
    """Number of components in ``path``."""
    return len(path.parts)


class EmptyDirectoryClassifier:
    """Classifies directories under a root as deletable when empty.

    In deep mode every directory below the root is a candidate, evaluated
    deepest first so that a parent sees the verdict of each child. A
    directory whose only contents are files named in ``ignore_names`` and
    deletable subdirectories is itself deletable. In shallow mode only the
    root's immediate children are candidates and any subdirectory
    disqualifies them.
    """

    def __init__(
        self,
        root: str | os.PathLike[str],
        *,
        recursive: bool = False,
        ignore_names: Iterable[str] = (),
        older_than: timedelta | None = None,
        rules: ExclusionRules | None = None,
        cancel: threading.Event | None = None,
    ) -> None:
        self.root = ensure_directory(root)
        self.recursive = recursive
        self.ignore_names = frozenset(ignore_names)
        self.cutoff = time.time() - older_than.total_seconds() if older_than else None
        self.rules = rules or ExclusionRules()
        self.cancel = cancel
        self._errors = ErrorCollector()

    def _collect_directories(self) -> list[Path]:
        """Every non-excluded directory below the root, excluding the root."""
        found: list[Path] = []
        stack: list[Path] = [self.root]

        while stack:
            directory = stack.pop()
            try:
                with os.scandir(directory) as entries:
                    for entry in entries:
                        check_cancelled(self.cancel)
                        path = Path(entry.path)
                        try:
                            if not entry.is_dir(follow_symlinks=False):
                                continue
                        except OSError as e:
                            self._errors.add(path, e)
                            continue
                        if self.rules.should_exclude(path):
                            logger.debug("Skipping excluded directory: %s", path)
                            continue
                        found.append(path)
                        stack.append(path)
            except OSError as e:
                self._errors.add(directory, e)

        return found

    def _too_new(self, directory: Path) -> bool:
        if self.cutoff is None:
            return False
        if directory.stat().st_mtime > self.cutoff:
            logger.debug("Directory is too new, skipping: %s", directory)
            return True
        return False

    def _is_empty(self, directory: Path, deletable: set[Path] | None) -> bool:
        """Check whether ``directory`` has nothing that keeps it alive.

        With ``deletable`` None any subdirectory disqualifies.

        Raises:
            OSError: If the directory cannot be listed or stat-ed.

        """
        with os.scandir(directory) as entries:
            children = list(entries)

        if self._too_new(directory):
            return False

        for entry in children:
            if not entry.is_dir(follow_symlinks=False):
                if entry.name not in self.ignore_names:
                    logger.debug("Contains non-ignored file %s: %s", entry.name, directory)
                    return False
            elif deletable is None or Path(entry.path) not in deletable:
                logger.debug("Contains non-empty subdirectory %s: %s", entry.name, directory)
                return False

        return True

    def _classify_deep(self) -> list[Path]:
        candidates = self._collect_directories()
        candidates.sort(key=path_depth, reverse=True)
        logger.debug("Evaluating %d directories from deepest to shallowest", len(candidates))

        deletable: set[Path] = set()
        for directory in candidates:
            check_cancelled(self.cancel)
            try:
                empty = self._is_empty(directory, deletable)
            except OSError as e:
                self._errors.add(directory, e)
                continue
            if empty:
                logger.debug("Marked as empty: %s", directory)
                deletable.add(directory)

        return sorted(deletable, key=str)

    def _classify_shallow(self) -> list[Path]:
        try:
            with os.scandir(self.root) as entries:
                children = [Path(entry.path) for entry in entries if entry.is_dir(follow_symlinks=False)]
        except OSError as e:
            self._errors.add(self.root, e)
            return []

        empty: list[Path] = []
        for directory in children:
            check_cancelled(self.cancel)
            if self.rules.should_exclude(directory):
                continue
            try:
                if self._is_empty(directory, None):
                    empty.append(directory)
            except OSError as e:
                self._errors.add(directory, e)

        return sorted(empty, key=str)

    def classify(self) -> EmptyScan:
        """Run the classification.

        Returns:
            Deletable directories in lexicographic order, plus per-path errors.

        Raises:
            ScanCancelled: If the cancellation event was set.

        """
        paths = self._classify_deep() if self.recursive else self._classify_shallow()
        return EmptyScan(paths=paths, errors=self._errors.snapshot())


def classify_empty(
    root: str | os.PathLike[str],
    *,
    recursive: bool = False,
    ignore_names: Iterable[str] = (),
    older_than: timedelta | None = None,
    rules: ExclusionRules | None = None,
    cancel: threading.Event | None = None,
) -> EmptyScan:
    """Find empty directories under ``root``.

    Args:
        root: Directory whose descendants are classified. Never reported itself.
        recursive: Classify the whole tree, cascading through empty children.
        ignore_names: File names that do not count as content.
        older_than: Only directories last modified before ``now - older_than``
            are eligible.
        rules: Exclusion rules; excluded directories are never reported and
            keep their parent non-empty.
        cancel: Event that stops the classification when set.

    """
    classifier = EmptyDirectoryClassifier(
        root,
        recursive=recursive,
        ignore_names=ignore_names,
        older_than=older_than,
        rules=rules,
        cancel=cancel,
    )
    return classifier.classify()
