# src/retry/models.py — v1
"""Retry queue and dead-letter records."""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

from newsweaver.core.errors import ErrorKind, GenerationFailure, PipelineError
from newsweaver.core.models import SourceItem


class ErrorInfo(BaseModel):
    """Serializable summary of the error that caused a retry."""

    kind: ErrorKind
    failure: GenerationFailure | None = None
    message: str

    @classmethod
    def from_exception(cls, exc: PipelineError) -> ErrorInfo:
        return cls(
            kind=exc.kind,
            failure=getattr(exc, "failure", None),
            message=str(exc),
        )


class RetryRecord(BaseModel):
    """A source item waiting for another enrichment attempt."""

    source_guid: str
    snapshot: SourceItem
    last_error: ErrorInfo
    attempts: int = Field(ge=0)
    next_attempt_at: datetime
    first_failed_at: datetime


class DeadLetterRecord(BaseModel):
    """Terminal record; never retried automatically."""

    source_guid: str
    snapshot: SourceItem
    last_error: ErrorInfo
    attempts: int
    reason: str
    first_failed_at: datetime
    dead_lettered_at: datetime


class RetryQueueFile(BaseModel):
    """On-disk layout of retry/queue.json."""

    version: int = 1
    records: list[RetryRecord] = Field(default_factory=list)


RetryDecision = Literal["queued", "dead_lettered"]
