# knowledge_lifecycle/exceptions.py
"""
Operation-level errors raised by the lifecycle engine.

Per-object failures inside a sweep are counted in the result and never
raised. Everything here aborts the whole invocation; ``stage`` names the
part of the operation that failed so callers can report it.
"""


class LifecycleError(Exception):
    """Base class for lifecycle engine errors."""

    stage = "lifecycle"

    def __init__(self, message: str, stage: str | None = None):
        super().__init__(message)
        if stage:
            self.stage = stage


class PolicyError(LifecycleError, ValueError):
    """Raised for malformed retention policies or thresholds."""

    stage = "policy"


class StorageError(LifecycleError):
    """Raised when an object store call fails."""

    stage = "storage"

    def __init__(self, message: str, key: str | None = None, stage: str | None = None):
        super().__init__(message, stage=stage)
        self.key = key


class StoreTimeoutError(StorageError):
    """Raised when an object store call does not finish in time."""


class StorageNotConfiguredError(LifecycleError):
    """Raised when the storage provider cannot be initialized."""

    stage = "configuration"


class PackagingError(LifecycleError):
    """Raised when a bundle cannot be built or finalized."""

    stage = "packaging"


class UploadError(LifecycleError):
    """Raised when a finished bundle cannot be uploaded. Nothing was deleted."""

    stage = "upload"


class SweepInProgressError(LifecycleError):
    """Raised when another sweep holds the lifecycle lease."""

    stage = "lease"


class SweepCancelledError(LifecycleError):
    """Raised when a sweep is stopped before its bundle was uploaded."""

    stage = "cancelled"


class AdminAuthError(LifecycleError):
    """Raised when an admin request carries no valid lifecycle admin key."""

    stage = "auth"
