"""Typed failures raised by submission tools.

Every ``SubmissionError`` carries the message shown to the submitter. The
pipeline turns them into ``rejected`` outcomes; anything else is treated as an
unexpected fault and reported opaquely.
"""

from __future__ import annotations

from submission_bot.schemas import RejectionKind


GENERIC_FAILURE_MESSAGE = (
    "Something went wrong while processing your submission. "
    "Please contact one of the CSSLoader ThemeDB Admins"
)


class SubmissionError(Exception):
    """Base class for failures that reject a submission."""
    
    kind: RejectionKind = RejectionKind.INTERNAL_ERROR
    
    def __init__(self, user_message: str, *, suppress_mentions: bool = True):
        super().__init__(user_message)
        self.user_message = user_message
        self.suppress_mentions = suppress_mentions


class PolicyViolationError(SubmissionError):
    kind = RejectionKind.POLICY_VIOLATION


class InputTooLargeError(SubmissionError):
    kind = RejectionKind.INPUT_TOO_LARGE
    
    def __init__(self, max_bytes: int):
        super().__init__(f"Theme is too big. Themes can be max {max_bytes // (1024 * 1024)}MB")
        self.max_bytes = max_bytes


class MalformedArchiveError(SubmissionError):
    kind = RejectionKind.MALFORMED_ARCHIVE


class MissingRequiredAssetError(SubmissionError):
    kind = RejectionKind.MISSING_REQUIRED_ASSET


class ToolUnavailableError(SubmissionError):
    """An external program could not be launched or did not finish in time."""
    kind = RejectionKind.TOOL_UNAVAILABLE


class ValidationFailedError(SubmissionError):
    kind = RejectionKind.VALIDATION_FAILED


class NetworkError(SubmissionError):
    kind = RejectionKind.NETWORK_ERROR


class InternalContractViolationError(SubmissionError):
    """The validator accepted a theme but its output could not be read.
    
    ``detail`` is for logs only; submitters get the generic message.
    """
    kind = RejectionKind.INTERNAL_CONTRACT_VIOLATION
    
    def __init__(self, detail: str):
        super().__init__(GENERIC_FAILURE_MESSAGE)
        self.detail = detail
    
    def __str__(self) -> str:
        return self.detail


class GitCommandError(Exception):
    """A git or gh command exited with a nonzero code."""
    
    def __init__(self, args: list[str], exit_code: int, stderr: list[str] | None = None):
        self.command_args = args
        self.exit_code = exit_code
        self.stderr = stderr or []
        last_line = self.stderr[-1] if self.stderr else ""
        super().__init__(
            f"'{' '.join(args)}' failed with exit code {exit_code}"
            + (f": {last_line}" if last_line else "")
        )
