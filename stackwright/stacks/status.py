"""
CloudFormation status taxonomies.

Each status enum mirrors CloudFormation's wire vocabulary and answers two
questions about a status:

- ``is_settled()``: will the status change again during the current operation?
- ``sentiment()``: successful terminal statuses are positive, failed and
  rollback statuses are negative, everything else is neutral.

Parsing goes through ``from_wire`` which rejects unknown values rather than
coercing them, since an unrecognised status means the model is out of date.
"""
from enum import Enum

from ..core.exceptions import InvalidStatusError


class StatusSentiment(Enum):
    """Whether a status is good, bad or indifferent for the affected resource."""

    POSITIVE = "positive"
    NEUTRAL = "neutral"
    NEGATIVE = "negative"

    def is_positive(self) -> bool:
        return self is StatusSentiment.POSITIVE

    def is_neutral(self) -> bool:
        return self is StatusSentiment.NEUTRAL

    def is_negative(self) -> bool:
        return self is StatusSentiment.NEGATIVE


class _Status(str, Enum):
    """Common behaviour for the closed status enums."""

    @classmethod
    def from_wire(cls, value: str):
        """Parse a status string as returned by the API.

        Raises:
            InvalidStatusError: If the value is not a known status
        """
        try:
            return cls(value)
        except ValueError:
            raise InvalidStatusError(cls.__name__, value) from None

    def __str__(self) -> str:
        return self.value

    def is_settled(self) -> bool:
        return self.value in _SETTLED[type(self)]

    def sentiment(self) -> StatusSentiment:
        if self.value in _POSITIVE[type(self)]:
            return StatusSentiment.POSITIVE
        if self.value in _NEGATIVE[type(self)]:
            return StatusSentiment.NEGATIVE
        return StatusSentiment.NEUTRAL


class ChangeSetStatus(_Status):
    """Possible change set statuses."""

    CREATE_PENDING = "CREATE_PENDING"
    CREATE_IN_PROGRESS = "CREATE_IN_PROGRESS"
    CREATE_COMPLETE = "CREATE_COMPLETE"
    DELETE_PENDING = "DELETE_PENDING"
    DELETE_IN_PROGRESS = "DELETE_IN_PROGRESS"
    DELETE_COMPLETE = "DELETE_COMPLETE"
    DELETE_FAILED = "DELETE_FAILED"
    FAILED = "FAILED"


class ExecutionStatus(_Status):
    """Whether a change set can be executed."""

    UNAVAILABLE = "UNAVAILABLE"
    AVAILABLE = "AVAILABLE"
    EXECUTE_IN_PROGRESS = "EXECUTE_IN_PROGRESS"
    EXECUTE_COMPLETE = "EXECUTE_COMPLETE"
    EXECUTE_FAILED = "EXECUTE_FAILED"
    OBSOLETE = "OBSOLETE"


class StackStatus(_Status):
    """Possible stack statuses."""

    CREATE_IN_PROGRESS = "CREATE_IN_PROGRESS"
    CREATE_FAILED = "CREATE_FAILED"
    CREATE_COMPLETE = "CREATE_COMPLETE"
    ROLLBACK_IN_PROGRESS = "ROLLBACK_IN_PROGRESS"
    ROLLBACK_FAILED = "ROLLBACK_FAILED"
    ROLLBACK_COMPLETE = "ROLLBACK_COMPLETE"
    DELETE_IN_PROGRESS = "DELETE_IN_PROGRESS"
    DELETE_FAILED = "DELETE_FAILED"
    DELETE_COMPLETE = "DELETE_COMPLETE"
    UPDATE_IN_PROGRESS = "UPDATE_IN_PROGRESS"
    UPDATE_COMPLETE_CLEANUP_IN_PROGRESS = "UPDATE_COMPLETE_CLEANUP_IN_PROGRESS"
    UPDATE_COMPLETE = "UPDATE_COMPLETE"
    UPDATE_FAILED = "UPDATE_FAILED"
    UPDATE_ROLLBACK_IN_PROGRESS = "UPDATE_ROLLBACK_IN_PROGRESS"
    UPDATE_ROLLBACK_FAILED = "UPDATE_ROLLBACK_FAILED"
    UPDATE_ROLLBACK_COMPLETE_CLEANUP_IN_PROGRESS = "UPDATE_ROLLBACK_COMPLETE_CLEANUP_IN_PROGRESS"
    UPDATE_ROLLBACK_COMPLETE = "UPDATE_ROLLBACK_COMPLETE"
    REVIEW_IN_PROGRESS = "REVIEW_IN_PROGRESS"
    IMPORT_IN_PROGRESS = "IMPORT_IN_PROGRESS"
    IMPORT_COMPLETE = "IMPORT_COMPLETE"
    IMPORT_ROLLBACK_IN_PROGRESS = "IMPORT_ROLLBACK_IN_PROGRESS"
    IMPORT_ROLLBACK_FAILED = "IMPORT_ROLLBACK_FAILED"
    IMPORT_ROLLBACK_COMPLETE = "IMPORT_ROLLBACK_COMPLETE"

    def is_blocked(self) -> bool:
        """Whether CloudFormation refuses new operations while the stack has this status."""
        return not self.is_settled() or self in BLOCKED_SETTLED_STACK_STATUSES


class ResourceStatus(_Status):
    """Possible resource statuses."""

    CREATE_IN_PROGRESS = "CREATE_IN_PROGRESS"
    CREATE_FAILED = "CREATE_FAILED"
    CREATE_COMPLETE = "CREATE_COMPLETE"
    DELETE_IN_PROGRESS = "DELETE_IN_PROGRESS"
    DELETE_FAILED = "DELETE_FAILED"
    DELETE_COMPLETE = "DELETE_COMPLETE"
    DELETE_SKIPPED = "DELETE_SKIPPED"
    UPDATE_IN_PROGRESS = "UPDATE_IN_PROGRESS"
    UPDATE_FAILED = "UPDATE_FAILED"
    UPDATE_COMPLETE = "UPDATE_COMPLETE"
    IMPORT_FAILED = "IMPORT_FAILED"
    IMPORT_COMPLETE = "IMPORT_COMPLETE"
    IMPORT_IN_PROGRESS = "IMPORT_IN_PROGRESS"
    IMPORT_ROLLBACK_IN_PROGRESS = "IMPORT_ROLLBACK_IN_PROGRESS"
    IMPORT_ROLLBACK_FAILED = "IMPORT_ROLLBACK_FAILED"
    IMPORT_ROLLBACK_COMPLETE = "IMPORT_ROLLBACK_COMPLETE"


_SETTLED = {
    ChangeSetStatus: frozenset({
        "CREATE_COMPLETE", "DELETE_COMPLETE", "DELETE_FAILED", "FAILED",
    }),
    ExecutionStatus: frozenset({
        "AVAILABLE", "EXECUTE_COMPLETE", "EXECUTE_FAILED", "OBSOLETE",
    }),
    StackStatus: frozenset({
        "CREATE_FAILED", "CREATE_COMPLETE",
        "ROLLBACK_FAILED", "ROLLBACK_COMPLETE",
        "DELETE_FAILED", "DELETE_COMPLETE",
        "UPDATE_COMPLETE", "UPDATE_FAILED",
        "UPDATE_ROLLBACK_FAILED", "UPDATE_ROLLBACK_COMPLETE",
        "IMPORT_COMPLETE", "IMPORT_ROLLBACK_FAILED", "IMPORT_ROLLBACK_COMPLETE",
    }),
    ResourceStatus: frozenset({
        "CREATE_FAILED", "CREATE_COMPLETE",
        "DELETE_FAILED", "DELETE_COMPLETE", "DELETE_SKIPPED",
        "UPDATE_FAILED", "UPDATE_COMPLETE",
        "IMPORT_FAILED", "IMPORT_COMPLETE",
        "IMPORT_ROLLBACK_FAILED", "IMPORT_ROLLBACK_COMPLETE",
    }),
}

_POSITIVE = {
    ChangeSetStatus: frozenset({"CREATE_COMPLETE", "DELETE_COMPLETE"}),
    ExecutionStatus: frozenset({"AVAILABLE", "EXECUTE_COMPLETE"}),
    StackStatus: frozenset({
        "CREATE_COMPLETE", "DELETE_COMPLETE", "UPDATE_COMPLETE", "IMPORT_COMPLETE",
    }),
    ResourceStatus: frozenset({
        "CREATE_COMPLETE", "DELETE_COMPLETE", "UPDATE_COMPLETE", "IMPORT_COMPLETE",
        # Retained resources settle as skipped, which is what was asked for
        "DELETE_SKIPPED",
    }),
}

_NEGATIVE = {
    ChangeSetStatus: frozenset({"DELETE_FAILED", "FAILED"}),
    ExecutionStatus: frozenset({"EXECUTE_FAILED", "OBSOLETE"}),
    StackStatus: frozenset({
        "CREATE_FAILED",
        "ROLLBACK_IN_PROGRESS", "ROLLBACK_FAILED", "ROLLBACK_COMPLETE",
        "DELETE_FAILED",
        "UPDATE_FAILED",
        "UPDATE_ROLLBACK_IN_PROGRESS", "UPDATE_ROLLBACK_FAILED",
        "UPDATE_ROLLBACK_COMPLETE_CLEANUP_IN_PROGRESS", "UPDATE_ROLLBACK_COMPLETE",
        "IMPORT_ROLLBACK_IN_PROGRESS", "IMPORT_ROLLBACK_FAILED", "IMPORT_ROLLBACK_COMPLETE",
    }),
    ResourceStatus: frozenset({
        "CREATE_FAILED", "DELETE_FAILED", "UPDATE_FAILED", "IMPORT_FAILED",
        "IMPORT_ROLLBACK_IN_PROGRESS", "IMPORT_ROLLBACK_FAILED", "IMPORT_ROLLBACK_COMPLETE",
    }),
}

# Settled statuses that still refuse updates until the stack is repaired or deleted
BLOCKED_SETTLED_STACK_STATUSES = frozenset({
    StackStatus.CREATE_FAILED,
    StackStatus.ROLLBACK_FAILED,
    StackStatus.DELETE_FAILED,
    StackStatus.UPDATE_FAILED,
    StackStatus.UPDATE_ROLLBACK_FAILED,
})
