"""Error kinds raised by the hydration engine."""

from __future__ import annotations


class HydrationError(Exception):
    """Base class for all recoverable engine errors."""


class InvalidInput(HydrationError, ValueError):
    """Raised for non-positive volumes or weights, malformed times and bad signals."""


class NotFound(HydrationError, LookupError):
    """Raised when an entry id is not present in the ledger."""

    def __init__(self, entry_id: str) -> None:
        super().__init__(f"No entry with id {entry_id!r}")
        self.entry_id = entry_id


class ConfigurationConflict(HydrationError):
    """Raised in strict mode when a custom goal coexists with adjustment preferences."""
