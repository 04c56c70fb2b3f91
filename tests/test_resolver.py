"""Tests for duplicate-set resolution."""

from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path

import pytest

from fs_cleanup.errors import ConfigurationError
from fs_cleanup.models import FileRecord
from fs_cleanup.resolver import KeepPolicy, resolve_duplicate_set, select_survivor

A = FileRecord(path=Path("/data/a.txt"), size=4, mtime=200.0)
B = FileRecord(path=Path("/data/b.txt"), size=4, mtime=300.0)
C = FileRecord(path=Path("/data/c.txt"), size=4, mtime=100.0)


class TestKeepPolicy:
    """Tests for KeepPolicy.parse."""

    @pytest.mark.parametrize(
        "value,expected",
        [
            ("newest", KeepPolicy.NEWEST),
            ("Oldest", KeepPolicy.OLDEST),
            ("first", KeepPolicy.FIRST),
            ("prompt", KeepPolicy.PROMPT),
            ("interactive", KeepPolicy.PROMPT),
        ],
    )
    def test_parse(self, value: str, expected: KeepPolicy) -> None:
        """Test accepted policy names."""
        assert KeepPolicy.parse(value) is expected

    def test_parse_unknown_raises(self) -> None:
        """Test that an unknown policy is a configuration error."""
        with pytest.raises(ConfigurationError, match="Unknown duplicate keep strategy"):
            KeepPolicy.parse("largest")


class TestResolveDuplicateSet:
    """Tests for resolve_duplicate_set."""

    def test_newest_keeps_latest_mtime(self) -> None:
        """Test the newest policy."""
        assert resolve_duplicate_set([A, B, C], KeepPolicy.NEWEST) == [A.path, C.path]

    def test_oldest_keeps_earliest_mtime(self) -> None:
        """Test the oldest policy."""
        assert resolve_duplicate_set([A, B, C], "oldest") == [A.path, B.path]

    def test_first_keeps_lowest_path(self) -> None:
        """Test that first keeps the lexicographically smallest path."""
        assert resolve_duplicate_set([C, B, A], KeepPolicy.FIRST) == [C.path, B.path]

    def test_ties_go_to_earlier_record(self) -> None:
        """Test that equal mtimes keep the first record in the set."""
        twin_a = FileRecord(path=Path("/x/1"), size=1, mtime=50.0)
        twin_b = FileRecord(path=Path("/x/2"), size=1, mtime=50.0)

        assert resolve_duplicate_set([twin_a, twin_b], KeepPolicy.NEWEST) == [twin_b.path]
        assert resolve_duplicate_set([twin_a, twin_b], KeepPolicy.OLDEST) == [twin_b.path]

    @pytest.mark.parametrize("records", [[], [A]])
    def test_small_sets_yield_nothing(self, records: list[FileRecord]) -> None:
        """Test that a set with fewer than two files deletes nothing."""
        assert resolve_duplicate_set(records, KeepPolicy.NEWEST) == []

    def test_survivor_never_listed(self) -> None:
        """Test that exactly one record survives under every automatic policy."""
        for policy in (KeepPolicy.NEWEST, KeepPolicy.OLDEST, KeepPolicy.FIRST):
            doomed = resolve_duplicate_set([A, B, C], policy)
            assert len(doomed) == 2
            assert len(set(doomed)) == 2


class TestPrompt:
    """Tests for the prompt policy."""

    def test_chooser_picks_survivor(self) -> None:
        """Test that the chooser's 1-based index is kept."""
        seen: list[Sequence[FileRecord]] = []

        def chooser(records: Sequence[FileRecord]) -> int:
            seen.append(records)
            return 2

        assert resolve_duplicate_set([A, B, C], "prompt", chooser) == [A.path, C.path]
        assert seen == [[A, B, C]]

    def test_chooser_skip(self) -> None:
        """Test that a None choice skips the set."""
        assert resolve_duplicate_set([A, B], KeepPolicy.PROMPT, lambda records: None) == []

    def test_chooser_out_of_range(self) -> None:
        """Test that an invalid index is rejected."""
        with pytest.raises(ValueError, match="out of range"):
            select_survivor([A, B], KeepPolicy.PROMPT, lambda records: 3)

    def test_prompt_requires_chooser(self) -> None:
        """Test that prompting without a chooser is an error."""
        with pytest.raises(ValueError, match="requires a chooser"):
            select_survivor([A, B], KeepPolicy.PROMPT)
