"""Delete or trash the paths a classifier reported."""

from __future__ import annotations

import logging
import shutil
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from pathlib import Path

from send2trash import send2trash


@dataclass
class CleanupResult:
    """Result of a cleanup operation."""

    path: Path
    success: bool
    action: str  # "deleted", "trashed", "skipped", "error"
    error: str | None = None


class Cleaner:
    """Removes files and directories, permanently or via the system trash."""

    def __init__(self, logger: logging.Logger, *, use_trash: bool = False) -> None:
        """Initialize the cleaner.

        Args:
            logger: Logger instance.
            use_trash: Move to the system trash instead of deleting.

        """
        self.logger = logger
        self.use_trash = use_trash

    @property
    def action_past(self) -> str:
        """Past-tense verb for summaries."""
        return "Moved to trash" if self.use_trash else "Deleted"

    @property
    def action_verb(self) -> str:
        """Imperative verb for confirmation prompts."""
        return "move to trash" if self.use_trash else "delete"

    def remove(self, path: Path) -> CleanupResult:
        """Remove one file or directory tree.

        Args:
            path: Path to remove.

        Returns:
            CleanupResult with operation details.

        """
        if not path.exists() and not path.is_symlink():
            return CleanupResult(
                path=path,
                success=False,
                action="skipped",
                error="Path no longer exists",
            )

        try:
            if self.use_trash:
                send2trash(str(path))
                self.logger.debug("Moved to trash: %s", path)
                return CleanupResult(path=path, success=True, action="trashed")

            if path.is_dir() and not path.is_symlink():
                shutil.rmtree(path)
            else:
                path.unlink()
            self.logger.debug("Deleted: %s", path)
            return CleanupResult(path=path, success=True, action="deleted")

        except PermissionError as e:
            self.logger.error("Permission denied removing %s: %s", path, e)
            return CleanupResult(
                path=path,
                success=False,
                action="error",
                error=f"Permission denied: {e}",
            )
        except OSError as e:
            self.logger.error("Error removing %s: %s", path, e)
            return CleanupResult(
                path=path,
                success=False,
                action="error",
                error=str(e),
            )

    def remove_all(
        self,
        paths: Iterable[Path],
        on_progress: Callable[[CleanupResult], None] | None = None,
    ) -> list[CleanupResult]:
        """Remove every path in order.

        Args:
            paths: Paths to remove. Directories must come before their parents.
            on_progress: Called after each removal.

        Returns:
            One result per path.

        """
        results: list[CleanupResult] = []
        for path in paths:
            result = self.remove(path)
            results.append(result)
            if on_progress is not None:
                on_progress(result)
        return results
