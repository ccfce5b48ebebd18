"""
Predicates over CloudFormation error messages and status reasons.

CloudFormation has no structured error codes for these conditions, so each is
recognised by matching the human-readable message. Every predicate is kept
separate so it can be tested against captured messages and replaced if the
API ever grows proper codes.
"""
import re
from typing import Optional

from ..core.exceptions import InvariantViolation
from .status import StackStatus

CREATE_BLOCKED = re.compile(
    r'^Stack:[^ ]* is in (?P<status>[_A-Z]+) state and can not be updated', re.IGNORECASE
)
EXECUTE_BLOCKED = re.compile(
    r'^This stack is currently in a non-terminal \[(?P<status>[_A-Z]+)\] state', re.IGNORECASE
)
NO_CHANGES_MESSAGES = (
    "The submitted information didn't contain changes.",
    "No updates are to be performed.",
)


def is_already_exists(message: Optional[str]) -> bool:
    """Whether a CreateChangeSet CREATE failed because the stack already exists."""
    return bool(message) and " already exists " in message


def is_not_exists(message: Optional[str]) -> bool:
    """Whether a stack lookup failed because the stack doesn't exist."""
    return bool(message) and "does not exist" in message


def is_no_changes(status_reason: Optional[str]) -> bool:
    """Whether a failed change set failed only because there was nothing to change."""
    status_reason = status_reason or ""
    return any(message in status_reason for message in NO_CHANGES_MESSAGES)


def is_create_blocked(message: Optional[str]) -> Optional[StackStatus]:
    """The blocking stack status if CreateChangeSet was refused because of it."""
    return _blocked_status(CREATE_BLOCKED, message)


def is_execute_blocked(message: Optional[str]) -> Optional[StackStatus]:
    """The blocking stack status if ExecuteChangeSet was refused because of it."""
    return _blocked_status(EXECUTE_BLOCKED, message)


def _blocked_status(pattern: re.Pattern, message: Optional[str]) -> Optional[StackStatus]:
    if not message:
        return None
    match = pattern.search(message)
    if match is None:
        return None

    captured = match.group('status')
    try:
        status = StackStatus.from_wire(captured.upper())
    except ValueError as e:
        raise InvariantViolation(f"captured invalid stack status: {captured}") from e
    if not status.is_blocked():
        raise InvariantViolation(f"captured non-blocked stack status: {status}")
    return status
