"""
Exception types for tikr.

Validation and resource-load failures are surfaced to callers; stale
completions are discarded by whoever detects them.
"""


class TikrError(Exception):
    """Base class for all tikr errors."""


class ValidationError(TikrError):
    """Raised when input is rejected before reaching the registry (e.g. end <= start)."""


class ResourceLoadError(TikrError):
    """Raised when a media resource cannot be opened or decoded."""


class NotFoundError(TikrError):
    """Raised when a track or region id is no longer present."""


class StaleOperationError(TikrError):
    """Raised when an async completion arrives after a newer selection superseded it."""


class StorageError(TikrError):
    """Raised when the record store cannot be read or written."""
