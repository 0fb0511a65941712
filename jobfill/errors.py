"""Exception types raised across the pipeline."""
from __future__ import annotations


class JobfillError(Exception):
    """Base class for pipeline errors."""


class BackendError(JobfillError):
    """The generation backend failed for one request."""


class BackendUnreachable(BackendError):
    """The generation backend cannot be reached at all; the run fails."""


class UnknownQuestionError(JobfillError):
    def __init__(self, question_id: str) -> None:
        super().__init__(f"Unknown question id: {question_id}")
        self.question_id = question_id


class FillError(JobfillError):
    """A single form control could not be written."""

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


class CommandError(JobfillError):
    """Malformed or unsupported command-channel message."""
