"""Pick which file of a duplicate set survives."""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from enum import Enum
from pathlib import Path

from .errors import ConfigurationError
from .models import FileRecord

logger = logging.getLogger(__name__)

# Receives the set and returns a 1-based index to keep, or None to skip it
Chooser = Callable[[Sequence[FileRecord]], "int | None"]


class KeepPolicy(Enum):
    """Strategy deciding the survivor of a duplicate set."""

    NEWEST = "newest"
    OLDEST = "oldest"
    FIRST = "first"
    PROMPT = "prompt"

    @classmethod
    def parse(cls, value: str | KeepPolicy) -> KeepPolicy:
        """Parse a policy name; ``interactive`` is an alias of ``prompt``.

        Raises:
            ConfigurationError: If the name is unknown.

        """
        if isinstance(value, cls):
            return value
        key = str(value).strip().lower()
        if key == "interactive":
            return cls.PROMPT
        try:
            return cls(key)
        except ValueError:
            allowed = ", ".join(m.value for m in cls)
            raise ConfigurationError(f"Unknown duplicate keep strategy {value!r}. Allowed values are: {allowed}") from None


def select_survivor(
    records: Sequence[FileRecord],
    policy: KeepPolicy,
    chooser: Chooser | None = None,
) -> FileRecord | None:
    """Return the record to keep, or None when the set is skipped or too small.

    ``max``/``min`` return the first of equal candidates, so ties go to the
    earlier record.

    Raises:
        ValueError: If ``prompt`` is used without a chooser or the chooser
            returns an index outside the set.

    """
    if len(records) < 2:
        return None

    if policy is KeepPolicy.NEWEST:
        return max(records, key=lambda r: r.mtime)
    if policy is KeepPolicy.OLDEST:
        return min(records, key=lambda r: r.mtime)
    if policy is KeepPolicy.FIRST:
        return min(records, key=lambda r: str(r.path))

    if chooser is None:
        raise ValueError("The prompt keep strategy requires a chooser")
    choice = chooser(records)
    if choice is None:
        return None
    if not 1 <= choice <= len(records):
        raise ValueError(f"Choice {choice} is out of range 1-{len(records)}")
    return records[choice - 1]


def resolve_duplicate_set(
    records: Sequence[FileRecord],
    policy: KeepPolicy | str,
    chooser: Chooser | None = None,
) -> list[Path]:
    """Return the paths to delete from one duplicate set.

    Every record except the survivor is listed, in input order. A skipped
    set or a set with fewer than two records yields an empty list.

    """
    survivor = select_survivor(records, KeepPolicy.parse(policy), chooser)
    if survivor is None:
        return []
    logger.debug("Keeping %s", survivor.path)
    return [record.path for record in records if record is not survivor]
