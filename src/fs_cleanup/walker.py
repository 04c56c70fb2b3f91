"""Parallel file walker: one producer, a bounded queue, a pool of workers."""

from __future__ import annotations

import logging
import os
import queue
import stat
import threading
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

from .errors import ConfigurationError, ScanCancelled
from .exclusion import ExclusionRules
from .models import EntryError, FileRecord

logger = logging.getLogger(__name__)

ProcessFunc = Callable[[FileRecord], None]
ProgressFunc = Callable[[int], None]

# Upper bound on how long any wait may run past a cancellation request
POLL_INTERVAL = 0.05

_DONE = object()


def default_workers() -> int:
    """Default degree of parallelism: one worker per CPU."""
    return os.cpu_count() or 1


def describe_error(error: BaseException) -> str:
    """Short message for an error already attributed to a path."""
    if isinstance(error, OSError) and error.strerror:
        return error.strerror
    return str(error) or type(error).__name__


class ErrorCollector:
    """Thread-safe list of per-path errors."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._errors: list[EntryError] = []

    def add(self, path: Path, error: BaseException | str) -> None:
        """Record an error for ``path`` and log it."""
        message = error if isinstance(error, str) else describe_error(error)
        logger.warning("%s: %s", path, message)
        with self._lock:
            self._errors.append(EntryError(path=path, message=message))

    def snapshot(self) -> list[EntryError]:
        """Return a copy of the errors collected so far."""
        with self._lock:
            return list(self._errors)

    def __len__(self) -> int:
        with self._lock:
            return len(self._errors)


def ensure_directory(root: str | os.PathLike[str]) -> Path:
    """Return ``root`` as a ``Path``, failing if it is not a directory.

    Raises:
        ConfigurationError: If the root does not exist or is not a directory.

    """
    path = Path(root)
    if not path.is_dir():
        raise ConfigurationError(f"The specified path does not exist or is not a directory: {path}")
    return path


def check_cancelled(cancel: threading.Event | None) -> None:
    """Raise ``ScanCancelled`` if ``cancel`` is set."""
    if cancel is not None and cancel.is_set():
        raise ScanCancelled()


class FileWalker:
    """Feeds every regular file under a root to a processing callback.

    The calling thread walks the tree depth-first and puts file paths on a
    bounded queue. A fixed pool of worker threads ``lstat`` each path and
    call ``process`` for regular files. Directories matched by the exclusion
    rules are pruned, never descended.
    """

    def __init__(
        self,
        root: str | os.PathLike[str],
        process: ProcessFunc,
        *,
        rules: ExclusionRules | None = None,
        cancel: threading.Event | None = None,
        workers: int | None = None,
        progress: ProgressFunc | None = None,
    ) -> None:
        """Initialize the walker.

        Args:
            root: Directory to walk.
            process: Called once per regular file, from a worker thread.
            rules: Exclusion rules. Nothing is excluded if None.
            cancel: Event that stops the walk when set.
            workers: Number of worker threads. Defaults to the CPU count.
            progress: Called with 1 for every file taken off the queue.

        """
        self.root = ensure_directory(root)
        self.process = process
        self.rules = rules or ExclusionRules()
        self.cancel = cancel
        self.workers = workers if workers and workers > 0 else default_workers()
        self.progress = progress

        self._queue: queue.Queue[object] = queue.Queue(maxsize=2 * self.workers)
        self._abort = threading.Event()
        self._errors = ErrorCollector()

    def _stopping(self) -> bool:
        return self._abort.is_set() or (self.cancel is not None and self.cancel.is_set())

    def _put(self, item: object) -> bool:
        """Put ``item`` on the queue, giving up if the walk is stopping."""
        while not self._stopping():
            try:
                self._queue.put(item, timeout=POLL_INTERVAL)
            except queue.Full:
                continue
            return True
        return False

    def _produce(self) -> bool:
        """Walk the tree and enqueue file paths.

        Returns:
            False if the walk stopped early.

        """
        stack: list[Path] = [self.root]

        while stack:
            directory = stack.pop()
            try:
                with os.scandir(directory) as entries:
                    for entry in entries:
                        if self._stopping():
                            return False

                        path = Path(entry.path)
                        if self.rules.should_exclude(path):
                            continue

                        try:
                            is_dir = entry.is_dir(follow_symlinks=False)
                        except OSError as e:
                            self._errors.add(path, e)
                            continue

                        if is_dir:
                            stack.append(path)
                        elif not self._put(path):
                            return False
            except OSError as e:
                self._errors.add(directory, e)

        return not self._stopping()

    def _handle(self, path: Path) -> None:
        try:
            st = os.lstat(path)
        except OSError as e:
            self._errors.add(path, e)
        else:
            if stat.S_ISREG(st.st_mode):
                try:
                    self.process(FileRecord.from_stat(path, st))
                except OSError as e:
                    self._errors.add(path, e)
        finally:
            if self.progress is not None:
                self.progress(1)

    def _consume(self) -> None:
        while True:
            if self._stopping():
                return
            try:
                item = self._queue.get(timeout=POLL_INTERVAL)
            except queue.Empty:
                continue
            if item is _DONE or self._stopping():
                return
            try:
                self._handle(item)  # type: ignore[arg-type]
            except Exception:
                self._abort.set()
                raise

    def run(self) -> list[EntryError]:
        """Walk the tree and process every file.

        Returns:
            Errors collected for individual paths.

        Raises:
            ScanCancelled: If the cancellation event was set.

        """
        logger.debug("Walking %s with %d workers", self.root, self.workers)

        with ThreadPoolExecutor(max_workers=self.workers, thread_name_prefix="fs-cleanup-worker") as pool:
            futures = [pool.submit(self._consume) for _ in range(self.workers)]
            try:
                if self._produce():
                    for _ in futures:
                        if not self._put(_DONE):
                            break
            except BaseException:
                self._abort.set()
                raise

        for future in futures:
            future.result()

        check_cancelled(self.cancel)
        return self._errors.snapshot()


def walk_files(
    root: str | os.PathLike[str],
    process: ProcessFunc,
    *,
    rules: ExclusionRules | None = None,
    cancel: threading.Event | None = None,
    workers: int | None = None,
    progress: ProgressFunc | None = None,
) -> list[EntryError]:
    """Run ``process`` on every regular file under ``root`` in parallel.

    Returns:
        Errors collected for individual paths.

    Raises:
        ConfigurationError: If ``root`` is not a directory.
        ScanCancelled: If ``cancel`` was set before the walk completed.

    """
    walker = FileWalker(root, process, rules=rules, cancel=cancel, workers=workers, progress=progress)
    return walker.run()
