"""Group regular files by content hash."""

from __future__ import annotations

import hashlib
import logging
import os
import threading
from collections import defaultdict
from enum import Enum
from pathlib import Path

from .errors import ConfigurationError
from .exclusion import ExclusionRules
from .models import DuplicateScan, FileRecord
from .walker import ProgressFunc, walk_files

logger = logging.getLogger(__name__)

CHUNK_SIZE = 1024 * 1024


class HashAlgorithm(Enum):
    """Digest used to compare file contents."""

    MD5 = "md5"  # weak
    SHA1 = "sha1"  # standard
    SHA256 = "sha256"  # strong

    @classmethod
    def parse(cls, value: str | HashAlgorithm) -> HashAlgorithm:
        """Accept a digest name (``sha256``) or a strength (``strong``).

        Raises:
            ConfigurationError: If the name is unknown.

        """
        if isinstance(value, cls):
            return value
        key = str(value).strip().lower()
        if key in _STRENGTHS:
            return _STRENGTHS[key]
        try:
            return cls(key)
        except ValueError:
            allowed = ", ".join(m.value for m in cls)
            raise ConfigurationError(f"Invalid hash algorithm {value!r}. Allowed values are: {allowed}") from None

    def new(self) -> hashlib._Hash:
        """Create a fresh hash object."""
        return hashlib.new(self.value)


_STRENGTHS: dict[str, HashAlgorithm] = {
    "weak": HashAlgorithm.MD5,
    "standard": HashAlgorithm.SHA1,
    "strong": HashAlgorithm.SHA256,
}


def hash_file(path: str | os.PathLike[str], algorithm: HashAlgorithm = HashAlgorithm.SHA256) -> str:
    """Hex digest of a file's full content.

    Raises:
        OSError: If the file cannot be read.

    """
    digest = algorithm.new()
    with open(path, "rb") as f:
        while chunk := f.read(CHUNK_SIZE):
            digest.update(chunk)
    return digest.hexdigest()


class DuplicateGrouper:
    """Accumulates files by hash while the walker feeds it."""

    def __init__(self, algorithm: HashAlgorithm) -> None:
        self.algorithm = algorithm
        self._lock = threading.Lock()
        self._by_hash: dict[str, list[FileRecord]] = defaultdict(list)

    def add(self, record: FileRecord) -> None:
        """Hash one file and file it under its digest. Empty files are ignored."""
        if record.size == 0:
            return
        digest = hash_file(record.path, self.algorithm)
        logger.debug("Hashed %s (%s): %s", record.path, self.algorithm.value, digest)
        with self._lock:
            self._by_hash[digest].append(record)

    def groups(self) -> list[list[FileRecord]]:
        """Buckets holding two or more files, each sorted by path."""
        with self._lock:
            buckets = [
                sorted(records, key=lambda r: str(r.path)) for records in self._by_hash.values() if len(records) > 1
            ]
        buckets.sort(key=lambda group: str(group[0].path))
        return buckets


def find_duplicates(
    root: str | os.PathLike[str],
    algorithm: HashAlgorithm | str = HashAlgorithm.SHA256,
    *,
    rules: ExclusionRules | None = None,
    cancel: threading.Event | None = None,
    workers: int | None = None,
    progress: ProgressFunc | None = None,
) -> DuplicateScan:
    """Find groups of non-empty files with identical content under ``root``.

    Files that cannot be read are reported in ``errors`` and left out of
    every group.

    Raises:
        ConfigurationError: If the algorithm is unknown or ``root`` is not a directory.
        ScanCancelled: If ``cancel`` was set before the walk completed.

    """
    grouper = DuplicateGrouper(HashAlgorithm.parse(algorithm))
    errors = walk_files(Path(root), grouper.add, rules=rules, cancel=cancel, workers=workers, progress=progress)
    groups = grouper.groups()
    logger.debug("Found %d sets of duplicate files", len(groups))
    return DuplicateScan(groups=groups, errors=errors)
