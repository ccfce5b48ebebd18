"""
Core exception classes for stackwright.
"""
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from ..stacks.models import ApplyStackOutput, StackFailure, StackWarning
    from ..stacks.status import ChangeSetStatus, StackStatus


class StackwrightError(Exception):
    """Base exception for all recoverable stackwright errors."""

    def __init__(self, message: str, details: str = None):
        super().__init__(message)
        self.message = message
        self.details = details


class ConfigurationError(StackwrightError):
    """Raised when configuration is invalid or missing."""
    pass


class InvalidStatusError(StackwrightError, ValueError):
    """Raised when a status string is outside the known set of statuses."""

    def __init__(self, kind: str, value: str):
        super().__init__(f"Invalid {kind}: {value!r}")
        self.kind = kind
        self.value = value


class CloudFormationApiError(StackwrightError):
    """Raised when a CloudFormation (or STS) API call fails.

    This is likely to be due to invalid input parameters or missing permissions.
    The original botocore exception is kept on ``error``.
    """

    def __init__(self, operation: str, message: str, code: str = None, error: Exception = None):
        super().__init__(f"CloudFormation API error ({operation}): {message}", details=code)
        self.operation = operation
        self.api_message = message
        self.code = code
        self.error = error


class BlockedStackError(StackwrightError):
    """Raised when the stack is in a status that forbids new operations.

    The caller can wait for the stack to settle and try again.
    """

    def __init__(self, status: "StackStatus"):
        super().__init__(
            f"stack operation failed because the stack is in a blocked state: {status}"
        )
        self.status = status


class ChangeSetFailedError(StackwrightError):
    """Raised when a change set settles in a failed state other than 'no changes'."""

    def __init__(self, change_set_id: str, status: "ChangeSetStatus", status_reason: Optional[str]):
        super().__init__(
            f"Change set {change_set_id} failed to create; terminal status: {status} "
            f"({status_reason or 'no reason reported'})"
        )
        self.change_set_id = change_set_id
        self.status = status
        self.status_reason = status_reason


class StackFailureError(StackwrightError):
    """Raised when a stack operation settles with a failed status."""

    def __init__(self, failure: "StackFailure"):
        super().__init__(str(failure))
        self.failure = failure


class StackWarningError(StackwrightError):
    """Raised when a stack operation succeeded but some resources had errors.

    For apply operations ``output`` holds the usable result of the operation,
    so callers that don't care about resource errors can fall back to it.
    """

    def __init__(self, warning: "StackWarning", output: Optional["ApplyStackOutput"] = None):
        super().__init__(str(warning))
        self.warning = warning
        self.output = output


class UserCancelled(StackwrightError):
    """Raised when user declines to continue an operation."""

    def __init__(self, message: str = "Operation cancelled by user"):
        super().__init__(message)


class InvariantViolation(RuntimeError):
    """Raised when CloudFormation reports something the status model doesn't know.

    Not a StackwrightError: this signals a stale model, and must not be handled
    alongside ordinary operation errors.
    """
    pass
