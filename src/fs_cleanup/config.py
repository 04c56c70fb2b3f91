"""Configuration management for the cleanup utility."""

from __future__ import annotations

import os
import re
from collections.abc import Mapping
from dataclasses import dataclass, field, fields
from datetime import timedelta
from pathlib import Path
from typing import Any

import yaml

from .errors import ConfigurationError

CONFIG_FILE_NAME = ".cleanup.yaml"
ENV_PREFIX = "CLEANUP_"

OUTPUT_FORMATS = ("", "json", "csv")

_TRUE_STRINGS = frozenset({"true", "yes", "on", "1", "y"})
_DURATION_RE = re.compile(r"^(\d+)\s*(w|d|h|m|s)$")
_SIZE_RE = re.compile(r"^([\d.]+)\s*(G|M|K)?B?$")

_DURATION_UNITS = {
    "w": timedelta(weeks=1),
    "d": timedelta(days=1),
    "h": timedelta(hours=1),
    "m": timedelta(minutes=1),
    "s": timedelta(seconds=1),
}
_SIZE_UNITS = {"G": 1024**3, "M": 1024**2, "K": 1024}


def parse_bool(value: Any, default: bool) -> bool:
    """Interpret YAML or environment values as a boolean."""
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return value != 0
    return str(value).strip().lower() in _TRUE_STRINGS


def parse_list(value: Any) -> list[str]:
    """Accept a YAML list or a comma-separated string."""
    if value is None:
        return []
    if isinstance(value, str):
        return [item.strip() for item in value.split(",") if item.strip()]
    return [str(item) for item in value]


def parse_duration(text: str) -> timedelta:
    """Parse durations such as ``30d``, ``4w``, ``12h``, ``90m`` or ``45s``.

    Raises:
        ConfigurationError: If the string is empty or malformed.

    """
    value = text.strip().lower()
    if not value:
        raise ConfigurationError("Duration string cannot be empty")
    match = _DURATION_RE.match(value)
    if not match:
        raise ConfigurationError(f"Invalid duration format: {text!r}. Use formats like '30d', '4w', '12h'")
    return int(match.group(1)) * _DURATION_UNITS[match.group(2)]


def parse_size(text: str) -> int:
    """Parse sizes such as ``100MB``, ``1.5G`` or ``512`` into bytes (binary units).

    Raises:
        ConfigurationError: If the string is empty or malformed.

    """
    value = text.strip().upper()
    if not value:
        raise ConfigurationError("Size string cannot be empty")
    match = _SIZE_RE.match(value)
    if not match:
        raise ConfigurationError(f"Invalid size format: {text!r}")
    try:
        number = float(match.group(1))
    except ValueError:
        raise ConfigurationError(f"Invalid number in size string: {match.group(1)!r}") from None
    multiplier = _SIZE_UNITS.get(match.group(2) or "", 1)
    return int(number * multiplier)


def format_bytes(size: int) -> str:
    """Render a byte count as ``512 B``, ``1.5 KiB``, ``3.2 GiB``..."""
    unit = 1024
    if size < unit:
        return f"{size} B"
    div, exp = unit, 0
    n = size // unit
    while n >= unit:
        div *= unit
        exp += 1
        n //= unit
    return f"{size / div:.1f} {'KMGTPE'[exp]}iB"


@dataclass
class CleanupConfig:
    """Settings for a cleanup run, as read from ``.cleanup.yaml``."""

    # Empty-folder mode
    recursive: bool = False
    ignore_files: list[str] = field(default_factory=list)

    # Deletion behaviour
    dry_run: bool = False
    force: bool = False
    trash: bool = False

    # Output
    verbose: bool = False
    quiet: bool = False
    output_format: str = ""
    log_file: str = ""

    # Exclusion rules, shared by every command
    exclude_dirs: list[str] = field(default_factory=list)
    exclude_pattern: str = ""
    exclude_glob: str = ""
    exclude_glob_path: str = ""

    # Age and size filters ("30d", "100MB")
    older_than: str = ""
    files_over: str = ""

    # Find / large modes
    top_n: int = 10
    duplicate_keep: str = "prompt"
    find_duplicates: bool = False
    hash_algo: str = "sha256"
    sort_by: str = "path"

    # Worker threads for parallel scans; 0 means one per CPU
    workers: int = 0

    # File the settings were read from, if any
    source: Path | None = field(default=None, compare=False)

    @staticmethod
    def key_for(attr: str) -> str:
        """YAML key for a field name (``dry_run`` -> ``dry-run``)."""
        return attr.replace("_", "-")

    @classmethod
    def _settings(cls) -> list[str]:
        return [f.name for f in fields(cls) if f.name != "source"]

    @classmethod
    def get_config_path(cls, *, global_: bool = False) -> Path:
        """Location used by ``config init``: the current or home directory."""
        base = Path.home() if global_ else Path.cwd()
        return base / CONFIG_FILE_NAME

    @classmethod
    def find_config_file(cls) -> Path | None:
        """First existing default config file: ``./.cleanup.yaml`` then ``~/.cleanup.yaml``."""
        for candidate in (Path.cwd() / CONFIG_FILE_NAME, Path.home() / CONFIG_FILE_NAME):
            if candidate.is_file():
                return candidate
        return None

    @classmethod
    def load(cls, config_path: Path | None = None, environ: Mapping[str, str] | None = None) -> CleanupConfig:
        """Load configuration from YAML, then apply environment overrides.

        Args:
            config_path: Explicit config file. Searched for in the default
                locations if None.
            environ: Environment to read ``CLEANUP_*`` overrides from.
                Uses ``os.environ`` if None.

        Returns:
            Loaded configuration.

        Raises:
            ConfigurationError: If an explicit file is missing or any file is invalid.

        """
        if config_path is not None and not config_path.is_file():
            raise ConfigurationError(f"Config file not found: {config_path}")

        path = config_path or cls.find_config_file()
        if path is None:
            config = cls()
        else:
            try:
                with path.open(encoding="utf-8") as f:
                    data = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise ConfigurationError(f"Invalid YAML in {path}: {e}") from e
            if not isinstance(data, dict):
                raise ConfigurationError(f"Config file {path} must contain a mapping")
            config = cls._from_dict(data)
            config.source = path

        config._apply_env(os.environ if environ is None else environ)
        return config

    @classmethod
    def _from_dict(cls, data: Mapping[str, Any]) -> CleanupConfig:
        """Create config from a mapping with hyphenated or underscored keys."""
        config = cls()
        for raw_key, value in data.items():
            attr = str(raw_key).replace("-", "_")
            if attr not in cls._settings():
                continue
            config._set(attr, value)
        return config

    def _set(self, attr: str, value: Any) -> None:
        current = getattr(self, attr)
        try:
            if isinstance(current, bool):
                setattr(self, attr, parse_bool(value, current))
            elif isinstance(current, int):
                setattr(self, attr, int(value))
            elif isinstance(current, list):
                setattr(self, attr, parse_list(value))
            else:
                setattr(self, attr, "" if value is None else str(value))
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"Invalid value for {self.key_for(attr)}: {value!r}") from e

    def _apply_env(self, environ: Mapping[str, str]) -> None:
        for attr in self._settings():
            name = ENV_PREFIX + attr.upper()
            if name in environ:
                self._set(attr, environ[name])

    def apply_overrides(self, overrides: Mapping[str, Any]) -> None:
        """Apply command-line values. ``None`` means the flag was not given."""
        for attr, value in overrides.items():
            if value is None or attr not in self._settings():
                continue
            self._set(attr, value)

    def older_than_delta(self) -> timedelta | None:
        """Parsed ``older-than`` or None when unset."""
        return parse_duration(self.older_than) if self.older_than else None

    def files_over_bytes(self) -> int:
        """Parsed ``files-over`` or 0 when unset."""
        return parse_size(self.files_over) if self.files_over else 0

    def validate(self) -> None:
        """Check every value that can be checked before a scan.

        Raises:
            ConfigurationError: On the first invalid value.

        """
        from .duplicates import HashAlgorithm
        from .exclusion import ExclusionRules
        from .finder import SORT_KEYS
        from .resolver import KeepPolicy

        self.older_than_delta()
        self.files_over_bytes()
        HashAlgorithm.parse(self.hash_algo)
        KeepPolicy.parse(self.duplicate_keep)
        ExclusionRules.from_config(self)
        if self.sort_by.lower() not in SORT_KEYS:
            raise ConfigurationError(
                f"Invalid value for sort-by: {self.sort_by!r}. Allowed values are: {', '.join(SORT_KEYS)}"
            )
        if self.output_format not in OUTPUT_FORMATS:
            raise ConfigurationError(f"Invalid output format: {self.output_format!r}. Use json or csv")
        if self.top_n < 0:
            raise ConfigurationError("top-n must not be negative")

    def to_dict(self) -> dict[str, Any]:
        """Settings keyed by their YAML names."""
        return {self.key_for(attr): getattr(self, attr) for attr in self._settings()}

    @classmethod
    def init_defaults(cls) -> CleanupConfig:
        """Defaults written by ``config init``."""
        return cls(
            ignore_files=[".DS_Store", "Thumbs.db"],
            exclude_dirs=[".git", "node_modules", "vendor", "tmp"],
        )

    def save(self, config_path: Path) -> None:
        """Save configuration to a YAML file."""
        config_path.parent.mkdir(parents=True, exist_ok=True)
        with config_path.open("w", encoding="utf-8") as f:
            yaml.dump(self.to_dict(), f, default_flow_style=False, sort_keys=False)
