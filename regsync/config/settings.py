"""Configuration management for regsync."""

import os
from typing import Optional


DEFAULT_MANIFEST_FILE = ".images.yaml"


class Config:
    """Configuration manager for regsync."""

    def __init__(self, manifest_path: Optional[str] = None, show_progress: bool = True):
        self.manifest_path = get_manifest_location(manifest_path)
        self.show_progress = show_progress
        self.timeout = self._int_env('REGSYNC_TIMEOUT', 1800)
        self.retry_attempts = self._int_env('REGSYNC_RETRY_ATTEMPTS', 3)
        self.retry_delay = self._int_env('REGSYNC_RETRY_DELAY', 5)
        self.progress_stride = self._int_env('REGSYNC_PROGRESS_STRIDE', 25)

        self._validate()

    @staticmethod
    def _int_env(name: str, default: int) -> int:
        value = os.environ.get(name)
        if not value:
            return default
        try:
            return int(value)
        except ValueError:
            raise ValueError(f"Environment variable {name} must be an integer, got '{value}'")

    def _validate(self):
        """Validate configured limits."""
        if self.timeout <= 0:
            raise ValueError("REGSYNC_TIMEOUT must be greater than zero")
        if self.retry_attempts < 1:
            raise ValueError("REGSYNC_RETRY_ATTEMPTS must be at least 1")
        if self.retry_delay < 0:
            raise ValueError("REGSYNC_RETRY_DELAY must not be negative")
        if self.progress_stride < 1:
            raise ValueError("REGSYNC_PROGRESS_STRIDE must be at least 1")

    def __repr__(self):
        return (
            f"Config(manifest_path={self.manifest_path}, "
            f"timeout={self.timeout}, "
            f"retry_attempts={self.retry_attempts}, "
            f"retry_delay={self.retry_delay})"
        )


def get_manifest_location(path: Optional[str] = None) -> str:
    """Resolve the manifest file path.

    Paths that do not name a YAML file are treated as directories holding
    the default manifest file.
    """
    if not path:
        return DEFAULT_MANIFEST_FILE
    if ".yaml" in path or ".yml" in path:
        return path
    return os.path.join(path, DEFAULT_MANIFEST_FILE)
