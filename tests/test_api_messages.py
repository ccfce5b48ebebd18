"""Tests for error-message predicates against captured CloudFormation messages."""

import pytest

from stackwright.core.exceptions import InvariantViolation
from stackwright.stacks.api_messages import (
    is_already_exists,
    is_create_blocked,
    is_execute_blocked,
    is_no_changes,
    is_not_exists,
)
from stackwright.stacks.status import StackStatus


class TestAlreadyExists:

    def test_matches_stack_already_exists(self):
        assert is_already_exists("Stack [my-stack] already exists and cannot be created again with the changeSet [apply-stack-1].")

    @pytest.mark.parametrize("message", [
        None,
        "",
        "Template format error: Unresolved resource dependencies [Bucket] in the Resources block of the template",
        "ChangeSet [apply-stack-1] already exists",  # no trailing space
    ])
    def test_other_messages(self, message):
        assert not is_already_exists(message)


class TestNotExists:

    def test_matches_missing_stack(self):
        assert is_not_exists("Stack with id my-stack does not exist")

    def test_other_messages(self):
        assert not is_not_exists("Rate exceeded")
        assert not is_not_exists(None)


class TestNoChanges:

    @pytest.mark.parametrize("reason", [
        "The submitted information didn't contain changes. Submit different information to create a change set.",
        "No updates are to be performed.",
    ])
    def test_matches_no_change_reasons(self, reason):
        assert is_no_changes(reason)

    @pytest.mark.parametrize("reason", [
        None,
        "Template error: instance of Fn::GetAtt references undefined resource Bucket",
    ])
    def test_other_reasons(self, reason):
        assert not is_no_changes(reason)


class TestBlocked:

    def test_create_blocked(self):
        message = (
            "Stack:arn:aws:cloudformation:eu-west-2:123456789012:stack/my-stack/0001 "
            "is in UPDATE_ROLLBACK_FAILED state and can not be updated."
        )
        assert is_create_blocked(message) is StackStatus.UPDATE_ROLLBACK_FAILED

    def test_create_blocked_in_progress(self):
        message = "Stack:arn:aws:cloudformation:eu-west-2:123456789012:stack/my-stack/0001 is in UPDATE_IN_PROGRESS state and can not be updated."
        assert is_create_blocked(message) is StackStatus.UPDATE_IN_PROGRESS

    def test_execute_blocked(self):
        message = "This stack is currently in a non-terminal [UPDATE_IN_PROGRESS] state. To update your stack from this state, please use the disable-rollback parameter with update-stack API."
        assert is_execute_blocked(message) is StackStatus.UPDATE_IN_PROGRESS

    def test_execute_message_is_not_a_create_block(self):
        message = "This stack is currently in a non-terminal [UPDATE_IN_PROGRESS] state."
        assert is_create_blocked(message) is None

    def test_unrelated_message(self):
        assert is_create_blocked("Rate exceeded") is None
        assert is_execute_blocked(None) is None

    def test_captured_unknown_status_is_an_invariant_violation(self):
        message = "Stack:arn:aws:cloudformation:eu-west-2:123456789012:stack/my-stack/0001 is in TELEPORTING state and can not be updated."
        with pytest.raises(InvariantViolation):
            is_create_blocked(message)

    def test_captured_updatable_status_is_an_invariant_violation(self):
        message = "Stack:arn:aws:cloudformation:eu-west-2:123456789012:stack/my-stack/0001 is in CREATE_COMPLETE state and can not be updated."
        with pytest.raises(InvariantViolation):
            is_create_blocked(message)
