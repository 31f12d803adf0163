"""Exception types shared across git-retime."""

from typing import Optional


class RetimeError(Exception):
    """Base exception for git-retime failures."""
    pass


class TimeParseError(RetimeError, ValueError):
    """Raised when a time expression cannot be parsed."""
    pass


class PreconditionError(RetimeError):
    """Raised when a flow cannot start (nothing staged, empty history...)."""
    pass


class BackendError(RetimeError):
    """Raised when the version-control system rejects a command."""
    pass


class MutationError(RetimeError):
    """Raised when a commit, push or rewrite fails.

    Carries the stage that failed and, for history rewrites, the backup
    reference that still points at the pre-rewrite HEAD.
    """

    def __init__(self, message: str, stage: str = "", backup_ref: Optional[str] = None):
        super().__init__(message)
        self.stage = stage
        self.backup_ref = backup_ref


class InterviewCancelled(Exception):
    """Raised by UI components when the user escapes out of a question.

    Not a RetimeError: cancellation is a normal outcome, not a failure.
    """

    def __init__(self, key: str = ""):
        super().__init__(f"Cancelled at '{key}'" if key else "Cancelled")
        self.key = key
