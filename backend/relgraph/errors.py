"""
Error taxonomy for the relationship engine.

  RecordValidationError – a single item is missing a business key (or is
                          otherwise unfit for submission); never retried
  GraphStoreError       – the graph store failed or refused the write
  BulkIngestError       – composite value listing every failed item of a batch

Cancellation is not modelled here: asyncio.CancelledError and
asyncio.TimeoutError propagate untouched and win over any item errors.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional


class RelationshipEngineError(Exception):
    """Base class for every error raised by the engine."""


class RecordValidationError(RelationshipEngineError):
    """An input record failed validation before touching the store."""

    def __init__(self, message: str, key: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.key = key

    def __str__(self) -> str:
        if self.key:
            return f"{self.key}: {self.message}"
        return self.message


class GraphStoreError(RelationshipEngineError):
    """The underlying graph store failed (connectivity, constraint, query)."""

    def __init__(
        self,
        message: str,
        key: Optional[str] = None,
        transient: bool = False,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.key = key
        self.transient = transient

    def with_key(self, key: str) -> "GraphStoreError":
        err = GraphStoreError(self.message, key=key, transient=self.transient)
        err.__cause__ = self.__cause__
        return err

    def __str__(self) -> str:
        if self.key:
            return f"{self.key}: {self.message}"
        return self.message


@dataclass(frozen=True)
class ItemFailure:
    """One failed item of a bulk run."""
    index: int
    key: str
    error: Exception

    def __str__(self) -> str:
        return f"[{self.index}] {self.key or '<missing key>'}: {self.error}"


class BulkIngestError(RelationshipEngineError):
    """Every item failure of one bulk run, in input order."""

    def __init__(self, failures: List[ItemFailure]) -> None:
        self.failures = sorted(failures, key=lambda f: f.index)
        super().__init__(self._summary())

    def _summary(self) -> str:
        if len(self.failures) == 1:
            return str(self.failures[0])
        details = "; ".join(str(f) for f in self.failures)
        return f"{len(self.failures)} items failed: {details}"

    @property
    def keys(self) -> List[str]:
        return [f.key for f in self.failures]

    def __len__(self) -> int:
        return len(self.failures)
