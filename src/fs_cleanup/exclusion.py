"""Exclusion rules shared by every traversal."""

from __future__ import annotations

import logging
import os
import re
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from .errors import ConfigurationError

if TYPE_CHECKING:
    from .config import CleanupConfig

logger = logging.getLogger(__name__)


def to_slash(path: str | os.PathLike[str]) -> str:
    """Return ``path`` as a string using ``/`` separators."""
    text = os.fspath(path)
    if os.sep != "/":
        text = text.replace(os.sep, "/")
    return text


def compile_glob(pattern: str) -> re.Pattern[str]:
    """Compile a shell glob into a regex that must match the whole string.

    ``*`` and ``?`` never cross a ``/``. Character classes accept ``!`` or
    ``^`` for negation and ``\\`` escapes the next character.

    Raises:
        ConfigurationError: If the pattern is malformed.

    """
    out: list[str] = []
    i, n = 0, len(pattern)

    while i < n:
        char = pattern[i]
        i += 1

        if char == "*":
            out.append("[^/]*")
        elif char == "?":
            out.append("[^/]")
        elif char == "\\":
            if i >= n:
                raise ConfigurationError(f"Invalid glob {pattern!r}: trailing backslash")
            out.append(re.escape(pattern[i]))
            i += 1
        elif char == "[":
            j = i
            negate = j < n and pattern[j] in "!^"
            if negate:
                j += 1
            members: list[str] = []
            # A leading ']' is a literal member of the class
            if j < n and pattern[j] == "]":
                members.append(re.escape("]"))
                j += 1
            while j < n and pattern[j] != "]":
                c = pattern[j]
                if c == "\\":
                    j += 1
                    if j >= n:
                        break
                    members.append(re.escape(pattern[j]))
                else:
                    members.append(c if c == "-" else re.escape(c))
                j += 1
            if j >= n:
                raise ConfigurationError(f"Invalid glob {pattern!r}: unterminated character class")
            body = "".join(members)
            out.append(f"[^/{body}]" if negate else f"[{body}]")
            i = j + 1
        else:
            out.append(re.escape(char))

    try:
        return re.compile("".join(out))
    except re.error as e:
        raise ConfigurationError(f"Invalid glob {pattern!r}: {e}") from e


def compile_regex(pattern: str) -> re.Pattern[str]:
    """Compile a path regex, converting failures to ``ConfigurationError``."""
    try:
        return re.compile(pattern)
    except re.error as e:
        raise ConfigurationError(f"Invalid exclude pattern {pattern!r}: {e}") from e


@dataclass(frozen=True)
class ExclusionRules:
    """Immutable set of name, regex and glob rules.

    Instances are read-only once built and are shared by all walker threads.
    """

    names: frozenset[str] = frozenset()
    pattern: re.Pattern[str] | None = None
    name_glob: re.Pattern[str] | None = None
    path_glob: re.Pattern[str] | None = None

    @classmethod
    def build(
        cls,
        *,
        exclude_dirs: Iterable[str] = (),
        exclude_pattern: str = "",
        exclude_glob: str = "",
        exclude_glob_path: str = "",
    ) -> ExclusionRules:
        """Compile raw rule strings.

        Raises:
            ConfigurationError: If a regex or glob is malformed.

        """
        return cls(
            names=frozenset(name for name in exclude_dirs if name),
            pattern=compile_regex(exclude_pattern) if exclude_pattern else None,
            name_glob=compile_glob(exclude_glob) if exclude_glob else None,
            path_glob=compile_glob(exclude_glob_path) if exclude_glob_path else None,
        )

    @classmethod
    def from_config(cls, config: CleanupConfig) -> ExclusionRules:
        """Build the rules described by a configuration."""
        return cls.build(
            exclude_dirs=config.exclude_dirs,
            exclude_pattern=config.exclude_pattern,
            exclude_glob=config.exclude_glob,
            exclude_glob_path=config.exclude_glob_path,
        )

    @property
    def is_empty(self) -> bool:
        """True when no rule is configured."""
        return not self.names and self.pattern is None and self.name_glob is None and self.path_glob is None

    def should_exclude(self, path: str | os.PathLike[str]) -> bool:
        """Check whether ``path`` is excluded. The first matching rule wins."""
        slashed = to_slash(path)

        if self.names:
            for part in slashed.split("/"):
                if part in self.names:
                    logger.debug("Excluding %s: component %r is in the exclude list", path, part)
                    return True

        if self.pattern is not None and self.pattern.search(slashed):
            logger.debug("Excluding %s: matches exclude pattern", path)
            return True

        if self.name_glob is not None and self.name_glob.fullmatch(Path(path).name):
            logger.debug("Excluding %s: name matches exclude glob", path)
            return True

        if self.path_glob is not None and self.path_glob.fullmatch(slashed):
            logger.debug("Excluding %s: path matches exclude glob", path)
            return True

        return False
