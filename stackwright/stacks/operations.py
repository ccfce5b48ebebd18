"""
Long-running stack operations: apply (create or update) and delete.

Each operation runs once, lazily, as it is consumed. Callers can iterate
``events()`` for progress and then ``wait()`` for the result, or just
``wait()``; both drive the same execution, so no API call is repeated. The
outcome is cached the first time it is reached.
"""
import logging
import time
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Callable, Generator, Iterator, Optional, Union

from ..core.exceptions import (
    BlockedStackError,
    ChangeSetFailedError,
    CloudFormationApiError,
    StackwrightError,
    StackWarningError,
    UserCancelled,
)
from .api_messages import is_execute_blocked
from .change_set import ChangeSetNegotiator, ChangeSetOutcome
from .client import CloudFormationClient
from .inputs import ApplyStackInput, DeleteStackInput
from .models import ApplyStackOutput, ChangeSet, ChangeSetType, StackEvent
from .status import StackStatus
from .tracker import (
    StackEventTracker,
    check_create_progress,
    check_delete_progress,
    check_update_progress,
)


logger = logging.getLogger(__name__)

Step = Union[ChangeSet, StackEvent]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class StackOperation(ABC):
    """Shared driver for a single run of a stack operation.

    Subclasses implement ``_run`` as a generator that yields progress steps
    and returns the operation's output. Recoverable errors (``StackwrightError``)
    end the operation and are raised from ``wait()``. Anything else, including
    ``InvariantViolation``, is raised straight away and again from every later
    ``wait()``.
    """

    def __init__(
        self,
        client: CloudFormationClient,
        stack_event_poll_interval: float = 5.0,
        sleep: Callable[[float], None] = time.sleep,
        max_poll_workers: int = 10,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.client = client
        self.stack_event_poll_interval = stack_event_poll_interval
        self.sleep = sleep
        self.max_poll_workers = max_poll_workers
        self.clock = clock

        self.tracker: Optional[StackEventTracker] = None
        self._steps: Optional[Generator[Step, None, Any]] = None
        self._done = False
        self._output: Any = None
        self._error: Optional[BaseException] = None

    @abstractmethod
    def _run(self) -> Generator[Step, None, Any]:
        """Yield progress steps and return the operation's output."""
        pass

    @property
    def done(self) -> bool:
        return self._done

    def _advance(self) -> Optional[Step]:
        """Run the operation to its next step, or None once it has finished."""
        if self._done:
            return None
        if self._steps is None:
            self._steps = self._run()

        try:
            return next(self._steps)
        except StopIteration as stop:
            self._done = True
            self._output = stop.value
        except StackwrightError as e:
            self._done = True
            self._error = e
        except BaseException as e:
            self._done = True
            self._error = e
            raise
        return None

    def events(self) -> Iterator[StackEvent]:
        """Iterate the stack events of the operation as they happen.

        Iteration ends when the operation finishes, successfully or not; use
        ``wait()`` for the outcome. Stopping early leaves the operation
        paused where it was.
        """
        while True:
            step = self._advance()
            if step is None:
                return
            if isinstance(step, StackEvent):
                yield step

    def wait(self):
        """Run the operation to completion and return its output.

        Raises:
            StackwrightError: The error the operation ended with
        """
        while self._advance() is not None:
            pass
        if self._error is not None:
            raise self._error
        return self._output

    def close(self) -> None:
        """Stop the operation without waiting for it to finish.

        No further API calls are made. A later ``wait()`` raises ``UserCancelled``.
        """
        if self._done:
            return
        if self._steps is not None:
            self._steps.close()
        self._done = True
        self._error = UserCancelled("Stack operation was closed before it finished")

    def _track(self, stack_id: str, started_at: datetime, check_progress) -> Generator[StackEvent, None, None]:
        self.tracker = StackEventTracker(
            self.client,
            stack_id,
            started_at,
            check_progress,
            poll_interval=self.stack_event_poll_interval,
            sleep=self.sleep,
            max_workers=self.max_poll_workers,
        )
        yield from self.tracker


class ApplyStack(StackOperation):
    """Create or update a stack through a change set.

    Steps: negotiate a change set, execute it unless it has no changes, follow
    the stack events until the stack settles, then describe the stack.

    ``wait()`` returns an ``ApplyStackOutput``, or raises:

    - ``BlockedStackError`` if the stack's status forbids the operation
    - ``ChangeSetFailedError`` if the change set failed for a reason other
      than having no changes
    - ``StackFailureError`` if the stack operation failed
    - ``StackWarningError`` if it succeeded but some resources had errors;
      the output is available on the error
    - ``CloudFormationApiError`` if an API call failed
    """

    def __init__(
        self,
        client: CloudFormationClient,
        apply_input: ApplyStackInput,
        change_set_poll_interval: float = 1.0,
        **kwargs,
    ):
        super().__init__(client, **kwargs)
        self.input = apply_input
        self.negotiator = ChangeSetNegotiator(
            client, poll_interval=change_set_poll_interval, sleep=self.sleep
        )
        self._change_set: Optional[ChangeSet] = None

    def change_set(self) -> ChangeSet:
        """Run the operation up to its settled change set and return it.

        The change set is not executed until the operation is consumed further.

        Raises:
            StackwrightError: If the operation failed before the change set settled
        """
        while self._change_set is None:
            if self._advance() is None:
                break
        if self._change_set is None:
            if self._error is not None:
                raise self._error
            raise RuntimeError("stack operation finished without a change set")
        return self._change_set

    def _run(self) -> Generator[Step, None, ApplyStackOutput]:
        negotiated = self.negotiator.negotiate(self.input)
        change_set = negotiated.change_set
        self._change_set = change_set
        yield change_set

        if negotiated.outcome is ChangeSetOutcome.NO_CHANGES:
            logger.info(f"Stack {self.input.stack_name} has no changes to apply")
            return self._describe_output(change_set.stack_id)
        if negotiated.outcome is ChangeSetOutcome.FAILED:
            raise ChangeSetFailedError(
                change_set.change_set_id, change_set.status, change_set.status_reason
            )

        started_at = self.clock()
        try:
            self.client.execute_change_set(
                change_set.change_set_id, disable_rollback=self.input.disable_rollback
            )
        except CloudFormationApiError as e:
            status = is_execute_blocked(e.api_message)
            if status is not None:
                raise BlockedStackError(status) from e
            raise
        logger.info(f"Executing change set {change_set.change_set_id}")

        check_progress = (
            check_create_progress
            if negotiated.change_set_type is ChangeSetType.CREATE
            else check_update_progress
        )
        yield from self._track(change_set.stack_id, started_at, check_progress)

        warning = None
        try:
            self.tracker.finish()
        except StackWarningError as e:
            warning = e.warning

        output = self._describe_output(change_set.stack_id)
        if warning is not None:
            logger.warning(str(warning))
            raise StackWarningError(warning, output)
        return output

    def _describe_output(self, stack_id: str) -> ApplyStackOutput:
        stack = self.client.describe_stack(stack_id)
        if stack is None:
            raise CloudFormationApiError('DescribeStacks', f"Stack with id {stack_id} does not exist")
        return ApplyStackOutput.from_api(stack)


class DeleteStack(StackOperation):
    """Delete a stack, succeeding straight away if it is already gone.

    ``wait()`` returns None, or raises ``StackFailureError``,
    ``StackWarningError`` (without output) or ``CloudFormationApiError``.
    """

    def __init__(self, client: CloudFormationClient, delete_input: DeleteStackInput, **kwargs):
        super().__init__(client, **kwargs)
        self.input = delete_input

    def _run(self) -> Generator[Step, None, None]:
        stack = self.client.describe_stack(self.input.stack_name)
        if stack is None or stack['StackStatus'] == StackStatus.DELETE_COMPLETE.value:
            logger.info(f"Stack {self.input.stack_name} does not exist, nothing to delete")
            return None

        # Deleted stacks are only addressable by ID
        stack_id = stack['StackId']
        kwargs = self.input.delete_kwargs()
        kwargs.pop('StackName')

        started_at = self.clock()
        self.client.delete_stack(stack_id, **kwargs)
        logger.info(f"Deleting stack {stack_id}")

        yield from self._track(stack_id, started_at, check_delete_progress)
        self.tracker.finish()
        return None
