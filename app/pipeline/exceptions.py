"""Exceptions for the hunter pipeline."""

from __future__ import annotations


class PipelineError(Exception):
    """Base exception for pipeline failures."""


class StageError(PipelineError):
    """Job-level failure inside a stage; the job is marked failed."""

    retryable = False


class RetryableStageError(StageError):
    """Transient job-level failure; the job is re-queued under the retry policy."""

    retryable = True

    def __init__(self, message: str, retry_after: int | float | None = None):
        super().__init__(message)
        self.retry_after = retry_after


class SourceNotConfiguredError(StageError):
    """No content source is available for the platform; the platform fails."""


class ItemProcessingError(PipelineError):
    """One item could not be processed. Never fails the batch."""


class ItemTimeoutError(ItemProcessingError):
    """An oracle call for one item exceeded its time bound."""


class UnsupportedPlatformError(PipelineError):
    """Scan requested a platform that has no source implementation."""


class ScanLimitExceededError(PipelineError):
    """Project already has the maximum number of running scans."""

    def __init__(self, message: str, current: int, limit: int):
        super().__init__(message)
        self.current = current
        self.limit = limit
