# src/core/errors.py — v1
"""Closed error taxonomy for the ingestion pipeline.

Every error carries an ErrorKind tag. Whether a failure is worth retrying is
decided by the error's type (and, for generation failures, its
GenerationFailure tag), never by inspecting message text.
"""

from __future__ import annotations

from enum import Enum
from typing import ClassVar


class ErrorKind(str, Enum):
    """Top-level error classification, one per pipeline stage."""

    FETCH = "fetch"
    VALIDATION = "validation"
    DUPLICATE = "duplicate"
    GENERATION = "generation"
    POSTPROCESS = "postprocess"
    STORAGE = "storage"


class GenerationFailure(str, Enum):
    """Sub-classification of generation gateway failures."""

    TIMEOUT = "timeout"
    RATE_LIMIT = "rate_limit"
    NETWORK = "network"
    SERVER = "server"
    EMPTY_REPLY = "empty_reply"
    REJECTED = "rejected"  # gateway refused the input; retrying cannot help


_RECOVERABLE_GENERATION = frozenset(
    {
        GenerationFailure.TIMEOUT,
        GenerationFailure.RATE_LIMIT,
        GenerationFailure.NETWORK,
        GenerationFailure.SERVER,
        GenerationFailure.EMPTY_REPLY,
    }
)


class PipelineError(Exception):
    """Base class for all classified pipeline errors."""

    kind: ClassVar[ErrorKind]

    @property
    def recoverable(self) -> bool:
        """Whether a later attempt at the same item may succeed."""
        return False


class FetchError(PipelineError):
    """One or more source endpoints could not be fetched or parsed."""

    kind = ErrorKind.FETCH

    def __init__(
        self,
        message: str,
        url: str | None = None,
        failures: list[FetchError] | None = None,
    ) -> None:
        self.url = url
        self.failures = failures or []
        super().__init__(message)

    @property
    def recoverable(self) -> bool:
        return True

    @classmethod
    def aggregate(cls, failures: list[FetchError], total: int) -> FetchError:
        """Combine per-endpoint failures into one batch-level error."""
        first = failures[0]
        return cls(
            f"{len(failures)} of {total} source(s) failed; first error: {first}",
            url=None,
            failures=list(failures),
        )


class ValidationError(PipelineError):
    """A source item is missing a mandatory field."""

    kind = ErrorKind.VALIDATION

    def __init__(self, guid: str, field: str) -> None:
        self.guid = guid
        self.field = field
        super().__init__(f"invalid source item {guid!r}: missing required field: {field}")


class DuplicateSkip(PipelineError):
    """Control-flow signal: the item's fingerprint is already reserved."""

    kind = ErrorKind.DUPLICATE

    def __init__(self, guid: str, fingerprint: str) -> None:
        self.guid = guid
        self.fingerprint = fingerprint
        super().__init__(f"duplicate item {guid!r} ({fingerprint[:12]})")


class GenerationError(PipelineError):
    """The generation gateway failed to produce a reply."""

    kind = ErrorKind.GENERATION

    def __init__(self, failure: GenerationFailure, message: str) -> None:
        self.failure = failure
        super().__init__(f"{failure.value}: {message}")

    @property
    def recoverable(self) -> bool:
        return self.failure in _RECOVERABLE_GENERATION


class PostprocessError(PipelineError):
    """Generated content cannot be made publishable."""

    kind = ErrorKind.POSTPROCESS

    def __init__(self, item_id: str, reason: str) -> None:
        self.item_id = item_id
        self.reason = reason
        super().__init__(f"error processing item {item_id}: {reason}")


class StorageError(PipelineError):
    """Persisting or reading an item failed."""

    kind = ErrorKind.STORAGE

    @property
    def recoverable(self) -> bool:
        return True


class ItemNotFoundError(StorageError):
    """No stored item has the requested id."""

    def __init__(self, item_id: str) -> None:
        self.item_id = item_id
        super().__init__(f"item with ID {item_id} not found")

    @property
    def recoverable(self) -> bool:
        return False
