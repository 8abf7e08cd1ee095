"""Error taxonomy shared by the core and its adapters.

Adapters translate library-specific failures into these types so the core
can decide between sleeping, retrying, skipping, or aborting without knowing
which client produced the error.
"""

from __future__ import annotations


class WardenError(Exception):
    """Base class for all warden errors."""


class ConfigError(WardenError):
    """Missing or invalid configuration. Fatal before any loop starts."""


class BackendError(WardenError):
    """A call to the messaging backend failed."""


class RateLimitError(BackendError):
    """The backend demands a cooldown before the same call may be repeated."""

    def __init__(self, seconds: int, message: str = "") -> None:
        self.seconds = max(0, int(seconds))
        super().__init__(message or f"Rate limited for {self.seconds}s")


class TransientBackendError(BackendError):
    """Timeouts and temporary server failures worth a bounded retry."""


class EntityResolutionError(BackendError):
    """A chat or user reference could not be resolved."""


class DeliveryError(WardenError):
    """A notification could not be delivered or retracted."""
