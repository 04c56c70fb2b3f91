"""Tests for empty-directory classification."""

from __future__ import annotations

import os
import threading
import time
from datetime import timedelta
from pathlib import Path
from unittest.mock import patch

import pytest

from fs_cleanup.empty_dirs import EmptyDirectoryClassifier, classify_empty, path_depth
from fs_cleanup.errors import ScanCancelled
from fs_cleanup.exclusion import ExclusionRules


def _mkdirs(root: Path, *relative: str) -> None:
    for rel in relative:
        (root / rel).mkdir(parents=True, exist_ok=True)


def _touch(path: Path) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text("content")
    return path


def _age(path: Path, days: float) -> None:
    stamp = time.time() - days * 86400
    os.utime(path, (stamp, stamp))


class TestDeepMode:
    """Tests for recursive (cascading) classification."""

    def test_directory_with_file_is_retained(self, tmp_path: Path) -> None:
        """Test root/a/b (empty) with root/a/file.txt: only b is reported."""
        _mkdirs(tmp_path, "a/b")
        _touch(tmp_path / "a" / "file.txt")

        scan = classify_empty(tmp_path, recursive=True)

        assert scan.paths == [tmp_path / "a" / "b"]
        assert scan.errors == []

    def test_cascade_through_empty_children(self, tmp_path: Path) -> None:
        """Test root/x/y (empty) with no files in x: both are reported."""
        _mkdirs(tmp_path, "x/y")

        scan = classify_empty(tmp_path, recursive=True)

        assert scan.paths == [tmp_path / "x", tmp_path / "x" / "y"]

    def test_root_is_never_reported(self, tmp_path: Path) -> None:
        """Test that an empty root yields nothing."""
        assert classify_empty(tmp_path, recursive=True).paths == []

    def test_deep_file_blocks_every_ancestor(self, tmp_path: Path) -> None:
        """Test that a file deep in the tree keeps all ancestors alive."""
        _touch(tmp_path / "p" / "q" / "r" / "leaf.txt")
        _mkdirs(tmp_path, "p/q/empty", "p/sibling/inner")

        scan = classify_empty(tmp_path, recursive=True)

        assert scan.paths == [
            tmp_path / "p" / "q" / "empty",
            tmp_path / "p" / "sibling",
            tmp_path / "p" / "sibling" / "inner",
        ]

    def test_closure_property(self, tmp_path: Path) -> None:
        """Test that every subdirectory of a reported directory is reported too."""
        _mkdirs(tmp_path, "a/b/c", "a/d", "e/f/g", "h")
        _touch(tmp_path / "e" / "f" / "note.txt")
        _touch(tmp_path / "h" / "data.bin")

        scan = classify_empty(tmp_path, recursive=True)
        reported = set(scan.paths)

        for directory in reported:
            for child in directory.iterdir():
                assert child.is_dir()
                assert child in reported

    @pytest.mark.parametrize("recursive", [True, False])
    def test_results_in_string_order(self, tmp_path: Path, recursive: bool) -> None:
        """Test that output follows full-path string order, not component order."""
        _mkdirs(tmp_path, "a/b", "a.b", "zeta")

        scan = classify_empty(tmp_path, recursive=recursive)

        names = [str(p) for p in scan.paths]
        assert names == sorted(names)
        if recursive:
            assert scan.paths == [tmp_path / "a", tmp_path / "a.b", tmp_path / "a" / "b", tmp_path / "zeta"]

    def test_idempotent(self, tmp_path: Path) -> None:
        """Test that two runs on an unchanged tree agree."""
        _mkdirs(tmp_path, "a/b", "c/d/e")
        _touch(tmp_path / "c" / "keep.txt")

        first = classify_empty(tmp_path, recursive=True)
        second = classify_empty(tmp_path, recursive=True)

        assert first.paths == second.paths


class TestShallowMode:
    """Tests for top-level-only classification."""

    def test_only_immediate_children_considered(self, tmp_path: Path) -> None:
        """Test that nested empty directories are not reported."""
        _mkdirs(tmp_path, "empty", "parent/child")

        scan = classify_empty(tmp_path, recursive=False)

        assert scan.paths == [tmp_path / "empty"]

    def test_any_subdirectory_disqualifies(self, tmp_path: Path) -> None:
        """Test that shallow mode never cascades, whatever the child holds."""
        _mkdirs(tmp_path, "a/b/c")

        assert classify_empty(tmp_path, recursive=False).paths == []

    def test_files_in_root_are_ignored(self, tmp_path: Path) -> None:
        """Test that files directly in the root are not candidates."""
        _touch(tmp_path / "readme.txt")
        _mkdirs(tmp_path, "blank")

        assert classify_empty(tmp_path).paths == [tmp_path / "blank"]


class TestIgnoreFiles:
    """Tests for ignored file names."""

    @pytest.mark.parametrize("recursive", [True, False])
    def test_ignored_files_do_not_count(self, tmp_path: Path, recursive: bool) -> None:
        """Test that a directory holding only ignored files is empty."""
        _touch(tmp_path / "a" / ".DS_Store")
        _touch(tmp_path / "a" / "Thumbs.db")

        scan = classify_empty(tmp_path, recursive=recursive, ignore_names={".DS_Store", "Thumbs.db"})

        assert scan.paths == [tmp_path / "a"]

    def test_without_ignore_list_file_counts(self, tmp_path: Path) -> None:
        """Test that the same file blocks when not ignored."""
        _touch(tmp_path / "a" / ".DS_Store")

        assert classify_empty(tmp_path, recursive=True).paths == []

    def test_ignored_file_cascades(self, tmp_path: Path) -> None:
        """Test that ignored files do not stop a cascade."""
        _touch(tmp_path / "outer" / "inner" / ".DS_Store")
        _touch(tmp_path / "outer" / ".DS_Store")

        scan = classify_empty(tmp_path, recursive=True, ignore_names=[".DS_Store"])

        assert scan.paths == [tmp_path / "outer", tmp_path / "outer" / "inner"]


class TestAgeFilter:
    """Tests for the older_than filter."""

    def test_recent_directories_are_skipped(self, tmp_path: Path) -> None:
        """Test that only directories older than the cutoff qualify."""
        _mkdirs(tmp_path, "old", "new")
        _age(tmp_path / "old", days=10)

        scan = classify_empty(tmp_path, older_than=timedelta(days=1))

        assert scan.paths == [tmp_path / "old"]

    def test_recent_child_blocks_old_parent(self, tmp_path: Path) -> None:
        """Test that an ineligible child keeps its parent in deep mode."""
        _mkdirs(tmp_path, "old/new")
        _age(tmp_path / "old", days=10)

        scan = classify_empty(tmp_path, recursive=True, older_than=timedelta(days=1))

        assert scan.paths == []


class TestExclusion:
    """Tests for exclusion rules during classification."""

    def test_excluded_directory_keeps_parent(self, tmp_path: Path) -> None:
        """Test that excluded directories are pruned, not treated as empty."""
        _mkdirs(tmp_path, "project/.git", "loose")
        rules = ExclusionRules.build(exclude_dirs=[".git"])

        scan = classify_empty(tmp_path, recursive=True, rules=rules)

        assert scan.paths == [tmp_path / "loose"]

    def test_excluded_directory_not_reported_shallow(self, tmp_path: Path) -> None:
        """Test that shallow mode skips excluded candidates."""
        _mkdirs(tmp_path, "cache_dir", "plain")
        rules = ExclusionRules.build(exclude_glob="cache_*")

        assert classify_empty(tmp_path, rules=rules).paths == [tmp_path / "plain"]


class TestErrors:
    """Tests for directories that cannot be read."""

    def test_unreadable_directory_fails_closed(self, tmp_path: Path) -> None:
        """Test that an unlistable directory is neither reported nor cascaded."""
        blocked = tmp_path / "a" / "b"
        _mkdirs(tmp_path, "a/b", "c")
        real_scandir = os.scandir

        def fake_scandir(path: os.PathLike[str] | str) -> object:
            if Path(path) == blocked:
                raise PermissionError(13, "Permission denied")
            return real_scandir(path)

        with patch("fs_cleanup.empty_dirs.os.scandir", side_effect=fake_scandir):
            scan = classify_empty(tmp_path, recursive=True)

        assert scan.paths == [tmp_path / "c"]
        assert any(error.path == blocked for error in scan.errors)


class TestCancellation:
    """Tests for cancellation during classification."""

    @pytest.mark.parametrize("recursive", [True, False])
    def test_cancel_raises(self, tmp_path: Path, recursive: bool) -> None:
        """Test that a set event raises ScanCancelled."""
        _mkdirs(tmp_path, "a/b", "c")
        cancel = threading.Event()
        cancel.set()

        with pytest.raises(ScanCancelled):
            classify_empty(tmp_path, recursive=recursive, cancel=cancel)


class TestHelpers:
    """Tests for classifier helpers."""

    def test_path_depth(self) -> None:
        """Test component counting used for the deepest-first order."""
        assert path_depth(Path("/a/b/c")) > path_depth(Path("/a/b"))

    def test_classifier_stores_cutoff(self, tmp_path: Path) -> None:
        """Test that the age cutoff is computed once at construction."""
        classifier = EmptyDirectoryClassifier(tmp_path, older_than=timedelta(hours=1))

        assert classifier.cutoff is not None
        assert classifier.cutoff <= time.time() - 3600 + 1
