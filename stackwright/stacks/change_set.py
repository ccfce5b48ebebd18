"""
Change set negotiation.

A change set is created as CREATE first, and retried once as UPDATE if the
stack already exists. It is then polled until it settles.
"""
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from ..core.exceptions import BlockedStackError, CloudFormationApiError, InvariantViolation
from .api_messages import is_already_exists, is_create_blocked, is_no_changes
from .client import CloudFormationClient
from .inputs import ApplyStackInput
from .models import ChangeSet, ChangeSetType
from .status import ChangeSetStatus


logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 1.0


class ChangeSetOutcome(Enum):
    """How a change set settled."""

    AVAILABLE = "available"
    NO_CHANGES = "no_changes"
    FAILED = "failed"


@dataclass
class NegotiatedChangeSet:
    """A settled change set and the kind of operation it performs."""
    change_set: ChangeSet
    change_set_type: ChangeSetType
    outcome: ChangeSetOutcome


def change_set_name() -> str:
    """A fresh change set name, unique per millisecond."""
    return f"apply-stack-{int(time.time() * 1000)}"


class ChangeSetNegotiator:
    """Creates change sets and waits for them to settle."""

    def __init__(
        self,
        client: CloudFormationClient,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.client = client
        self.poll_interval = poll_interval
        self.sleep = sleep

    def negotiate(self, apply_input: ApplyStackInput, name: Optional[str] = None) -> NegotiatedChangeSet:
        """Create a change set for the input and wait for it to settle.

        Args:
            apply_input: The stack to apply
            name: Change set name. Generated if not given.

        Returns:
            The settled change set, classified as available, no changes or failed

        Raises:
            BlockedStackError: If the stack's status forbids a new change set
            CloudFormationApiError: If an API call fails
            InvariantViolation: If the change set reaches an unexpected status
        """
        name = name or change_set_name()
        change_set_type = ChangeSetType.CREATE
        kwargs = apply_input.change_set_kwargs()

        try:
            try:
                change_set_id = self.client.create_change_set(name, change_set_type.value, **kwargs)
            except CloudFormationApiError as e:
                if not is_already_exists(e.api_message):
                    raise
                logger.debug(f"Stack {apply_input.stack_name} already exists, creating an update change set")
                change_set_type = ChangeSetType.UPDATE
                change_set_id = self.client.create_change_set(name, change_set_type.value, **kwargs)
        except CloudFormationApiError as e:
            status = is_create_blocked(e.api_message)
            if status is not None:
                raise BlockedStackError(status) from e
            raise

        logger.info(f"Created {change_set_type} change set {change_set_id}")
        change_set = self.wait(change_set_id)
        outcome = self._classify(change_set)
        logger.info(f"Change set {change_set_id} settled: {outcome.value}")
        return NegotiatedChangeSet(change_set, change_set_type, outcome)

    def wait(self, change_set_id: str) -> ChangeSet:
        """Poll a change set until its status settles.

        Raises:
            CloudFormationApiError: If describing the change set fails
            InvariantViolation: If the change set reaches an unexpected status
        """
        while True:
            self.sleep(self.poll_interval)
            change_set = ChangeSet.from_api(self.client.describe_change_set(change_set_id))
            status = change_set.status
            if status in (ChangeSetStatus.CREATE_PENDING, ChangeSetStatus.CREATE_IN_PROGRESS):
                logger.debug(f"Change set {change_set_id} is {status}")
                continue
            if status in (ChangeSetStatus.CREATE_COMPLETE, ChangeSetStatus.FAILED):
                return change_set
            raise InvariantViolation(f"change set {change_set_id} had unexpected status: {status}")

    @staticmethod
    def _classify(change_set: ChangeSet) -> ChangeSetOutcome:
        if change_set.status is ChangeSetStatus.CREATE_COMPLETE:
            return ChangeSetOutcome.AVAILABLE
        if is_no_changes(change_set.status_reason):
            return ChangeSetOutcome.NO_CHANGES
        return ChangeSetOutcome.FAILED
