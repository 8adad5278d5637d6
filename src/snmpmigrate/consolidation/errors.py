"""Failure kinds raised by the consolidation pass."""

from __future__ import annotations


class ConsolidationError(Exception):
    """Base class for every failure that aborts the consolidation pass."""


class LegacyDataError(ConsolidationError):
    """Raised when legacy rows violate an assumption the pass depends on.

    Out-of-order input or a representative whose identifier disagrees with the
    legacy interface it was filed under both indicate corrupted source data.
    """


class IdAllocationError(ConsolidationError):
    """Raised when no further interface identifiers can be allocated."""


class StatementError(ConsolidationError):
    """Raised when the database rejects a query, insert batch, or update batch."""

    def __init__(self, operation: str, cause: BaseException) -> None:
        super().__init__(f"{operation} failed: {cause}")
        self.operation = operation
