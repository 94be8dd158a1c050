from __future__ import annotations


class StorageError(RuntimeError):
    """Message store could not read or write the underlying sqlite file."""


class ConfigError(ValueError):
    """Startup configuration is malformed. The bot refuses to start."""


class QuotaExhaustedError(RuntimeError):
    """Upstream provider reported a hard quota stop for a metered capability."""

    def __init__(self, message: str = "quota exhausted", *, category: str | None = None):
        super().__init__(message)
        self.category = category


class UpstreamGenerationError(RuntimeError):
    """Network or API failure from the generation backend."""
