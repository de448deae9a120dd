"""
Configuration management for the Unreal project indexer.

Configuration via environment variables:

Project:
- UPROJECT_PATH: Directory containing the project's .uproject file
- INDEXER_AUTO_DETECT_PROJECT: Walk up from the cwd looking for a .uproject
  when UPROJECT_PATH is unset (default: true)

Scanning:
- INDEXER_MAX_FILE_BYTES: Source files larger than this are skipped (default: 4 MiB)
- INDEXER_PARALLEL_SCAN: Run the plugin/source/content scans on worker threads (default: false)

Logging:
- INDEXER_DEBUG: Enable debug logging (default: false)
- INDEXER_LOG_FILE: Optional log file path
"""

import os
from dataclasses import dataclass, field
from pathlib import Path

DEFAULT_MAX_FILE_BYTES = 4 * 1024 * 1024


def _parse_bool(value: str | None, default: bool = True) -> bool:
    """Parse boolean from environment variable."""
    if value is None:
        return default
    return value.lower() in ("true", "1", "yes", "on")


def _parse_int(value: str | None, default: int) -> int:
    """Parse a positive integer from environment variable."""
    if value is None or not value.strip():
        return default
    try:
        parsed = int(value)
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def find_project_root(start: Path | None = None) -> Path | None:
    """
    Find the project root directory by looking for a .uproject file.

    Walks up at most eight levels from `start` (default: cwd).

    Returns:
        Path to project root directory, or None if not found.
    """
    cwd = start or Path.cwd()
    for parent in [cwd, *cwd.parents][:8]:
        try:
            uprojects = list(parent.glob("*.uproject"))
        except OSError:
            uprojects = []
        if uprojects:
            return parent
    return None


def _default_project_path() -> str | None:
    explicit = os.getenv("UPROJECT_PATH")
    if explicit:
        return str(Path(explicit).resolve())
    if _parse_bool(os.getenv("INDEXER_AUTO_DETECT_PROJECT"), True):
        root = find_project_root()
        if root is not None:
            return str(root.resolve())
    return None


@dataclass
class Config:
    """Indexer configuration loaded from environment variables."""

    project_path: str | None = field(default_factory=_default_project_path)

    max_file_bytes: int = field(
        default_factory=lambda: _parse_int(os.getenv("INDEXER_MAX_FILE_BYTES"), DEFAULT_MAX_FILE_BYTES)
    )
    parallel_scan: bool = field(
        default_factory=lambda: _parse_bool(os.getenv("INDEXER_PARALLEL_SCAN"), False)
    )

    debug: bool = field(default_factory=lambda: _parse_bool(os.getenv("INDEXER_DEBUG"), False))
    log_file: str | None = field(default_factory=lambda: os.getenv("INDEXER_LOG_FILE") or None)

    def set_project_path(self, path: str | Path) -> None:
        """Point the configuration at a project directory."""
        self.project_path = str(Path(path).resolve())

    def to_dict(self) -> dict:
        return {
            "project_path": self.project_path,
            "max_file_bytes": self.max_file_bytes,
            "parallel_scan": self.parallel_scan,
            "debug": self.debug,
            "log_file": self.log_file,
        }


# Global config instance
_config: Config | None = None


def get_config() -> Config:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = Config()
    return _config


def set_config(config: Config) -> None:
    """Set the global configuration instance."""
    global _config
    _config = config


def reset_config() -> None:
    """Reset configuration (useful for testing)."""
    global _config
    _config = None
