"""Error types shared by the classifiers and the command-line layer."""

from __future__ import annotations


class ConfigurationError(ValueError):
    """Invalid configuration detected before any traversal starts."""


class ScanCancelled(Exception):
    """A scan was interrupted through its cancellation event."""

    def __init__(self, message: str = "Scan cancelled") -> None:
        super().__init__(message)
