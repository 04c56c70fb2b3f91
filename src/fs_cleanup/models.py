"""Records and result containers returned by the classifiers."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path


@dataclass(frozen=True)
class FileRecord:
    """A regular file seen during a walk, with the metadata collected for it."""

    path: Path
    size: int
    mtime: float

    @classmethod
    def from_stat(cls, path: Path, st: os.stat_result) -> FileRecord:
        """Build a record from an ``os.stat_result``."""
        return cls(path=path, size=st.st_size, mtime=st.st_mtime)

    @property
    def modified(self) -> datetime:
        """Modification time as an aware UTC datetime."""
        return datetime.fromtimestamp(self.mtime, tz=UTC)


@dataclass(frozen=True)
class EntryError:
    """A non-fatal error attributed to a single path."""

    path: Path
    message: str

    def __str__(self) -> str:
        return f"{self.path}: {self.message}"


@dataclass
class EmptyScan:
    """Result of an empty-directory classification."""

    paths: list[Path] = field(default_factory=list)
    errors: list[EntryError] = field(default_factory=list)


@dataclass
class DuplicateScan:
    """Result of a duplicate search: groups of files with identical content."""

    groups: list[list[FileRecord]] = field(default_factory=list)
    errors: list[EntryError] = field(default_factory=list)

    @property
    def duplicate_count(self) -> int:
        """Number of files beyond the first in every group."""
        return sum(len(group) - 1 for group in self.groups)


@dataclass
class SizeScan:
    """Recursive size of every directory under a scan root."""

    sizes: dict[Path, int] = field(default_factory=dict)
    errors: list[EntryError] = field(default_factory=list)

    def largest(self, n: int) -> list[tuple[Path, int]]:
        """Return the ``n`` largest directories, biggest first."""
        ranked = sorted(self.sizes.items(), key=lambda item: (-item[1], str(item[0])))
        return ranked[: max(n, 0)]


@dataclass
class FileScan:
    """Files matching size/age criteria."""

    files: list[FileRecord] = field(default_factory=list)
    errors: list[EntryError] = field(default_factory=list)

    @property
    def total_size(self) -> int:
        """Combined size of all matched files."""
        return sum(record.size for record in self.files)
