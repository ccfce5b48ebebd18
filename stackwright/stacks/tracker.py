"""
Stack event tracking for running stack operations.

``StackEventTracker`` polls DescribeStackEvents for a root stack and every
nested stack discovered along the way, and yields the new events in
chronological order until the root stack settles. It also collects the
evidence needed to report the operation as a success, a warning or a failure.
"""
import logging
import time
from collections import deque
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Deque, Dict, List, Optional, Set

from ..core.exceptions import InvariantViolation, StackFailureError, StackWarningError
from .client import CloudFormationClient
from .models import (
    ResourceError,
    ResourceStatusEvent,
    StackEvent,
    StackFailure,
    StackStatusEvent,
    StackWarning,
)
from .status import StackStatus


logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 5.0


class StackOperationStatus(Enum):
    """How a stack status relates to the operation being tracked."""

    IN_PROGRESS = "in_progress"
    COMPLETE = "complete"
    FAILED = "failed"
    UNEXPECTED = "unexpected"


ProgressCheck = Callable[[StackStatus], StackOperationStatus]


def check_create_progress(stack_status: StackStatus) -> StackOperationStatus:
    if stack_status in (StackStatus.CREATE_IN_PROGRESS, StackStatus.ROLLBACK_IN_PROGRESS):
        return StackOperationStatus.IN_PROGRESS
    if stack_status is StackStatus.CREATE_COMPLETE:
        return StackOperationStatus.COMPLETE
    if stack_status in (
        StackStatus.CREATE_FAILED, StackStatus.ROLLBACK_FAILED, StackStatus.ROLLBACK_COMPLETE
    ):
        return StackOperationStatus.FAILED
    return StackOperationStatus.UNEXPECTED


def check_update_progress(stack_status: StackStatus) -> StackOperationStatus:
    if stack_status in (
        StackStatus.UPDATE_IN_PROGRESS,
        StackStatus.UPDATE_COMPLETE_CLEANUP_IN_PROGRESS,
        StackStatus.UPDATE_ROLLBACK_IN_PROGRESS,
        StackStatus.UPDATE_ROLLBACK_COMPLETE_CLEANUP_IN_PROGRESS,
    ):
        return StackOperationStatus.IN_PROGRESS
    if stack_status is StackStatus.UPDATE_COMPLETE:
        return StackOperationStatus.COMPLETE
    if stack_status in (
        StackStatus.UPDATE_FAILED,
        StackStatus.UPDATE_ROLLBACK_FAILED,
        StackStatus.UPDATE_ROLLBACK_COMPLETE,
    ):
        return StackOperationStatus.FAILED
    return StackOperationStatus.UNEXPECTED


def check_delete_progress(stack_status: StackStatus) -> StackOperationStatus:
    if stack_status is StackStatus.DELETE_IN_PROGRESS:
        return StackOperationStatus.IN_PROGRESS
    if stack_status is StackStatus.DELETE_COMPLETE:
        return StackOperationStatus.COMPLETE
    if stack_status is StackStatus.DELETE_FAILED:
        return StackOperationStatus.FAILED
    return StackOperationStatus.UNEXPECTED


class StackEventTracker:
    """Iterator over the events of one stack operation.

    Each step either returns a buffered event or runs a poll cycle: the root
    stack and all known nested stacks are queried concurrently, new events are
    merged into chronological order and the cursor advances past them before
    any is yielded. Iteration ends once the root stack reaches a settled status
    and the rest of that cycle has been drained.

    Nested stacks are tracked as their resource events are seen. Their events
    carry a ``stack_alias`` of logical IDs from the root, e.g.
    ``"Child/Grandchild"``. A nested stack's own stack events are skipped since
    the parent's resource events report the same transitions.

    Call ``finish()`` once iteration is exhausted to classify the outcome.
    """

    def __init__(
        self,
        client: CloudFormationClient,
        stack_id: str,
        started_at: datetime,
        check_progress: ProgressCheck,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        sleep: Callable[[float], None] = time.sleep,
        max_workers: int = 10,
    ):
        """Initialize the tracker.

        Args:
            client: CloudFormation client
            stack_id: ID of the root stack
            started_at: Only events after this (timezone-aware) time are reported
            check_progress: Classifies root stack statuses for this kind of operation
            poll_interval: Seconds to wait between poll cycles
            sleep: Called to wait between poll cycles
            max_workers: Maximum concurrent DescribeStackEvents calls per cycle
        """
        self.client = client
        self.stack_id = stack_id
        self.check_progress = check_progress
        self.poll_interval = poll_interval
        self.sleep = sleep
        self.max_workers = max_workers

        # Cursor: newest timestamp seen, plus the IDs of events at exactly that time
        self._since = started_at
        self._since_event_ids: Set[str] = set()

        # Nested stack ID -> alias path
        self.nested_stacks: Dict[str, str] = {}

        self._buffer: Deque[Dict[str, Any]] = deque()
        self._polled = False
        self._settled = False
        self._exhausted = False

        self.stack_error_status: Optional[StackStatus] = None
        self.stack_error_status_reason: Optional[str] = None
        self.resource_error_events: List[ResourceError] = []

    def __iter__(self):
        return self

    def __next__(self) -> StackEvent:
        while True:
            while not self._buffer:
                if self._settled:
                    self._exhausted = True
                    raise StopIteration
                self._poll()

            event = self._process(self._buffer.popleft())
            if event is not None:
                return event

    @property
    def exhausted(self) -> bool:
        return self._exhausted

    def finish(self) -> None:
        """Classify the outcome of the tracked operation.

        Raises:
            StackFailureError: If the root stack settled with a failed status
            StackWarningError: If it succeeded but some resources had errors
            RuntimeError: If called before iteration is exhausted
        """
        if not self._exhausted:
            raise RuntimeError("stack events must be exhausted before finishing the operation")

        if self.stack_error_status is not None:
            raise StackFailureError(StackFailure(
                stack_id=self.stack_id,
                stack_status=self.stack_error_status,
                stack_status_reason=self.stack_error_status_reason,
                resource_events=list(self.resource_error_events),
            ))

        if self.resource_error_events:
            raise StackWarningError(StackWarning(
                stack_id=self.stack_id,
                resource_events=list(self.resource_error_events),
            ))

    def _poll(self) -> None:
        if self._polled:
            self.sleep(self.poll_interval)
        self._polled = True

        stack_ids = [self.stack_id, *self.nested_stacks]
        workers = max(1, min(self.max_workers, len(stack_ids)))
        with ThreadPoolExecutor(max_workers=workers) as executor:
            # map re-raises the first failed request once all have finished
            pages = list(executor.map(self._new_events, stack_ids))

        # Stable sort keeps each stack's own order for events sharing a timestamp
        events = sorted(
            (event for page in pages for event in page), key=lambda event: event['Timestamp']
        )
        logger.debug(f"Polled {len(stack_ids)} stack(s) for {self.stack_id}: {len(events)} new event(s)")
        if not events:
            return

        newest = events[-1]['Timestamp']
        newest_ids = {event['EventId'] for event in events if event['Timestamp'] == newest}
        if newest == self._since:
            self._since_event_ids |= newest_ids
        else:
            self._since = newest
            self._since_event_ids = newest_ids

        self._buffer.extend(events)

    def _new_events(self, stack_id: str) -> List[Dict[str, Any]]:
        """Events for one stack newer than the cursor, oldest first."""
        new_events = []
        for page in self.client.describe_stack_events(stack_id):
            for event in page:
                timestamp = event['Timestamp']
                if timestamp < self._since:
                    new_events.reverse()
                    return new_events
                if timestamp == self._since and event['EventId'] in self._since_event_ids:
                    continue
                new_events.append(event)
        new_events.reverse()
        return new_events

    def _process(self, raw_event: Dict[str, Any]) -> Optional[StackEvent]:
        event = StackEvent.from_api(raw_event, self.nested_stacks.get(raw_event['StackId']))

        if isinstance(event, ResourceStatusEvent):
            nested_stack_id = event.nested_stack_id
            if nested_stack_id is not None:
                parent_alias = self.nested_stacks.get(event.stack_id)
                alias = "/".join(
                    ([parent_alias] if parent_alias else []) + [event.details.logical_resource_id]
                )
                if self.nested_stacks.get(nested_stack_id) != alias:
                    logger.debug(f"Tracking nested stack {alias}: {nested_stack_id}")
                self.nested_stacks[nested_stack_id] = alias

            if event.resource_status.sentiment().is_negative():
                self.resource_error_events.append((event.resource_status, event.details))
            return event

        if isinstance(event, StackStatusEvent):
            if event.stack_id != self.stack_id:
                return None
            self._check_stack_event(event)
            return event

        raise InvariantViolation(f"unhandled stack event type: {type(event).__name__}")

    def _check_stack_event(self, event: StackStatusEvent) -> None:
        status = event.resource_status
        if status.sentiment().is_negative() and self.stack_error_status_reason is None:
            self.stack_error_status_reason = event.details.resource_status_reason

        progress = self.check_progress(status)
        if progress is StackOperationStatus.FAILED:
            self.stack_error_status = status
        elif progress is StackOperationStatus.UNEXPECTED:
            raise InvariantViolation(f"stack {self.stack_id} has unexpected status: {status}")

        if event.is_terminal():
            logger.info(f"Stack {self.stack_id} settled with status {status}")
            self._settled = True
