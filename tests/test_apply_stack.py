"""Tests for applying stacks end to end against the scripted client."""

import pytest

from fakes import CHANGE_SET_ID, STACK_ID, api_error, at, change_set_description, resource_event, stack_description, stack_event
from stackwright.core.exceptions import (
    BlockedStackError,
    ChangeSetFailedError,
    CloudFormationApiError,
    InvariantViolation,
    StackFailureError,
    StackWarningError,
    UserCancelled,
)
from stackwright.stacks.models import ApplyStackOutput, ChangeSet
from stackwright.stacks.operations import ApplyStack, StackOperation
from stackwright.stacks.status import ChangeSetStatus, StackStatus

ALREADY_EXISTS = "Stack [my-stack] already exists and cannot be created again with the changeSet [apply-stack-1]."
NO_CHANGES = "The submitted information didn't contain changes. Submit different information to create a change set."


@pytest.fixture
def apply_stack(client, apply_input, operation_kwargs):
    return ApplyStack(client, apply_input, **operation_kwargs)


@pytest.fixture
def existing_stack(client):
    """Make the first CREATE attempt fail because the stack already exists."""
    client.create_change_set_results = [api_error('CreateChangeSet', ALREADY_EXISTS), CHANGE_SET_ID]
    return client


class TestCreate:
    """Applying a template for a new stack."""

    @pytest.fixture
    def created(self, client):
        client.change_set_descriptions = [change_set_description()]
        # Left over from an earlier stack with the same name
        client.add_events(stack_event(STACK_ID, 'DELETE_COMPLETE', at(-300)))
        client.add_events(
            stack_event(STACK_ID, 'CREATE_IN_PROGRESS', at(1), reason="User Initiated"),
            resource_event(STACK_ID, 'Bucket', 'CREATE_IN_PROGRESS', at(2)),
        )
        client.add_events(
            resource_event(STACK_ID, 'Bucket', 'CREATE_COMPLETE', at(6), physical_id='my-bucket'),
            stack_event(STACK_ID, 'CREATE_COMPLETE', at(7)),
            cycle=1,
        )
        client.add_stack(stack_description(
            'CREATE_COMPLETE', outputs=[{'OutputKey': 'BucketName', 'OutputValue': 'my-bucket'}],
        ))
        return client

    def test_wait_returns_output(self, created, apply_stack):
        output = apply_stack.wait()

        assert isinstance(output, ApplyStackOutput)
        assert output.stack_status is StackStatus.CREATE_COMPLETE
        assert output.outputs[0].value == 'my-bucket'
        assert created.calls_to('execute_change_set') == [('execute_change_set', CHANGE_SET_ID, False)]

    def test_events_then_wait(self, created, apply_stack):
        events = list(apply_stack.events())
        output = apply_stack.wait()

        assert [(e.details.logical_resource_id, str(e.resource_status)) for e in events] == [
            ('my-stack', 'CREATE_IN_PROGRESS'),
            ('Bucket', 'CREATE_IN_PROGRESS'),
            ('Bucket', 'CREATE_COMPLETE'),
            ('my-stack', 'CREATE_COMPLETE'),
        ]
        assert output.stack_id == STACK_ID
        # Both consumers drove a single execution
        assert len(created.calls_to('create_change_set')) == 1
        assert len(created.calls_to('execute_change_set')) == 1
        assert len(created.calls_to('describe_stack')) == 1
        assert apply_stack.wait() is output

    def test_sleeps_use_configured_intervals(self, created, client, apply_input):
        operation = ApplyStack(
            client, apply_input, change_set_poll_interval=0.5, stack_event_poll_interval=3.0, sleep=client.sleep,
        )
        operation.wait()

        assert client.sleeps == [0.5, 3.0]

    def test_change_set_is_available_before_execution(self, created, apply_stack):
        change_set = apply_stack.change_set()

        assert isinstance(change_set, ChangeSet)
        assert change_set.status is ChangeSetStatus.CREATE_COMPLETE
        assert created.calls_to('execute_change_set') == []
        assert apply_stack.change_set() is change_set

    def test_close_before_execution(self, created, apply_stack):
        apply_stack.change_set()
        apply_stack.close()

        with pytest.raises(UserCancelled):
            apply_stack.wait()
        assert created.calls_to('execute_change_set') == []
        assert apply_stack.done

    def test_nothing_happens_until_consumed(self, created, apply_stack):
        assert created.calls == []
        assert not apply_stack.done


class TestUpdate:
    """Applying a template to an existing stack."""

    def test_no_changes_is_idempotent(self, existing_stack, apply_stack):
        existing_stack.change_set_descriptions = [change_set_description('FAILED', reason=NO_CHANGES)]
        existing_stack.add_stack(stack_description('UPDATE_COMPLETE'))

        events = list(apply_stack.events())
        output = apply_stack.wait()

        assert events == []
        assert output == ApplyStackOutput.from_api(existing_stack.stacks[STACK_ID])
        assert existing_stack.calls_to('execute_change_set') == []
        assert existing_stack.calls_to('describe_stack_events') == []

    def test_successful_update(self, existing_stack, apply_stack):
        existing_stack.change_set_descriptions = [change_set_description()]
        existing_stack.add_events(
            stack_event(STACK_ID, 'UPDATE_IN_PROGRESS', at(1)),
            stack_event(STACK_ID, 'UPDATE_COMPLETE_CLEANUP_IN_PROGRESS', at(2)),
            stack_event(STACK_ID, 'UPDATE_COMPLETE', at(3)),
        )
        existing_stack.add_stack(stack_description('UPDATE_COMPLETE'))

        output = apply_stack.wait()

        assert output.stack_status is StackStatus.UPDATE_COMPLETE
        assert [call[2] for call in existing_stack.calls_to('create_change_set')] == ["CREATE", "UPDATE"]

    def test_warning_carries_output(self, existing_stack, apply_stack):
        existing_stack.change_set_descriptions = [change_set_description()]
        existing_stack.add_events(
            stack_event(STACK_ID, 'UPDATE_IN_PROGRESS', at(1)),
            stack_event(STACK_ID, 'UPDATE_COMPLETE_CLEANUP_IN_PROGRESS', at(2)),
            resource_event(STACK_ID, 'OldBucket', 'DELETE_FAILED', at(3), reason="The bucket you tried to delete is not empty"),
            stack_event(STACK_ID, 'UPDATE_COMPLETE', at(4)),
        )
        existing_stack.add_stack(stack_description('UPDATE_COMPLETE'))

        with pytest.raises(StackWarningError) as exc_info:
            apply_stack.wait()

        error = exc_info.value
        assert error.output.stack_status is StackStatus.UPDATE_COMPLETE
        [(status, details)] = error.warning.resource_events
        assert details.logical_resource_id == 'OldBucket'

    def test_failed_update(self, existing_stack, apply_stack):
        existing_stack.change_set_descriptions = [change_set_description()]
        existing_stack.add_events(
            stack_event(STACK_ID, 'UPDATE_IN_PROGRESS', at(1)),
            resource_event(STACK_ID, 'Bucket', 'UPDATE_FAILED', at(2), reason="Bucket name taken"),
            stack_event(STACK_ID, 'UPDATE_ROLLBACK_IN_PROGRESS', at(3),
                        reason="The following resource(s) failed to update: [Bucket]."),
        )
        existing_stack.add_events(
            resource_event(STACK_ID, 'Bucket', 'UPDATE_COMPLETE', at(6)),
            stack_event(STACK_ID, 'UPDATE_ROLLBACK_COMPLETE', at(7)),
            cycle=1,
        )

        events = list(apply_stack.events())
        with pytest.raises(StackFailureError) as exc_info:
            apply_stack.wait()

        assert len(events) == 5
        failure = exc_info.value.failure
        assert failure.stack_status is StackStatus.UPDATE_ROLLBACK_COMPLETE
        assert failure.status_reason_detail().logical_resource_ids == ["Bucket"]
        # Nothing to describe after a failure
        assert existing_stack.calls_to('describe_stack') == []

    def test_execute_blocked(self, existing_stack, apply_stack):
        existing_stack.change_set_descriptions = [change_set_description()]
        existing_stack.execute_error = api_error(
            'ExecuteChangeSet',
            "This stack is currently in a non-terminal [UPDATE_IN_PROGRESS] state. To update your stack "
            "from this state, please use the disable-rollback parameter with update-stack API.",
        )

        with pytest.raises(BlockedStackError) as exc_info:
            apply_stack.wait()

        assert exc_info.value.status is StackStatus.UPDATE_IN_PROGRESS

    def test_other_execute_errors_pass_through(self, existing_stack, apply_stack):
        existing_stack.change_set_descriptions = [change_set_description()]
        existing_stack.execute_error = api_error('ExecuteChangeSet', "Rate exceeded", code='Throttling')

        with pytest.raises(CloudFormationApiError, match="Rate exceeded"):
            apply_stack.wait()


class TestChangeSetFailures:

    def test_failed_change_set(self, client, apply_stack):
        client.change_set_descriptions = [change_set_description(
            'FAILED', reason="Template error: instance of Fn::GetAtt references undefined resource Bucket",
        )]

        assert list(apply_stack.events()) == []
        with pytest.raises(ChangeSetFailedError) as exc_info:
            apply_stack.wait()

        assert exc_info.value.change_set_id == CHANGE_SET_ID
        assert exc_info.value.status is ChangeSetStatus.FAILED
        assert apply_stack.change_set().status_reason.startswith("Template error")
        assert client.calls_to('execute_change_set') == []

    def test_negotiation_error_from_change_set(self, client, apply_stack):
        client.create_change_set_results = [api_error('CreateChangeSet', "Template format error: JSON not well-formed.")]

        with pytest.raises(CloudFormationApiError, match="Template format error"):
            apply_stack.change_set()
        with pytest.raises(CloudFormationApiError):
            apply_stack.wait()

    def test_invariant_violations_are_raised_again(self, client, apply_stack):
        client.change_set_descriptions = [change_set_description('DELETE_IN_PROGRESS')]

        with pytest.raises(InvariantViolation):
            apply_stack.wait()
        with pytest.raises(InvariantViolation):
            apply_stack.wait()
        assert len(client.calls_to('describe_change_set')) == 1


class TestStackOperation:

    def test_needs_a_run_implementation(self, client):
        with pytest.raises(TypeError):
            StackOperation(client)

        class Incomplete(StackOperation):
            pass

        with pytest.raises(TypeError):
            Incomplete(client)
