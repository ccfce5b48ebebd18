"""
Entry point for running stack operations against one region.
"""
import logging
import time
from typing import Callable, Optional

import boto3

from ..core.config import Config
from .client import CloudFormationClient
from .inputs import ApplyStackInput, DeleteStackInput
from .operations import ApplyStack, DeleteStack


logger = logging.getLogger(__name__)


class StackOrchestrator:
    """Creates apply and delete operations sharing one CloudFormation client."""

    def __init__(
        self,
        session: boto3.Session,
        region: Optional[str] = None,
        role_arn: Optional[str] = None,
        change_set_poll_interval: float = 1.0,
        stack_event_poll_interval: float = 5.0,
        max_poll_workers: int = 10,
        sleep: Callable[[float], None] = time.sleep,
        client: Optional[CloudFormationClient] = None,
    ):
        """Initialize the orchestrator.

        Args:
            session: Authenticated boto3 session
            region: AWS region. If None, uses the session's region.
            role_arn: Default service role for operations that don't set one
            change_set_poll_interval: Seconds between change set polls
            stack_event_poll_interval: Seconds between stack event polls
            max_poll_workers: Maximum concurrent stack event requests per poll
            sleep: Called to wait between polls
            client: CloudFormation client to use instead of one built from the session
        """
        self.session = session
        self.client = client or CloudFormationClient(session, region)
        self.region = self.client.region
        self.role_arn = role_arn
        self.change_set_poll_interval = change_set_poll_interval
        self.stack_event_poll_interval = stack_event_poll_interval
        self.max_poll_workers = max_poll_workers
        self.sleep = sleep

    @classmethod
    def from_config(
        cls, session: boto3.Session, config: Config, region: Optional[str] = None
    ) -> 'StackOrchestrator':
        """Create an orchestrator with settings from the local configuration."""
        return cls(
            session,
            region=region or config.default_region,
            role_arn=config.role_arn,
            change_set_poll_interval=config.change_set_poll_interval,
            stack_event_poll_interval=config.stack_event_poll_interval,
            max_poll_workers=config.max_poll_workers,
        )

    def _operation_kwargs(self):
        return {
            'stack_event_poll_interval': self.stack_event_poll_interval,
            'sleep': self.sleep,
            'max_poll_workers': self.max_poll_workers,
        }

    def apply_stack(self, apply_input: ApplyStackInput) -> ApplyStack:
        """Start applying a stack. Nothing happens until the operation is consumed."""
        if self.role_arn and not apply_input.role_arn:
            apply_input = apply_input.model_copy(update={'role_arn': self.role_arn})
        logger.debug(f"Applying stack {apply_input.stack_name} in {self.region}")
        return ApplyStack(
            self.client,
            apply_input,
            change_set_poll_interval=self.change_set_poll_interval,
            **self._operation_kwargs(),
        )

    def delete_stack(self, delete_input: DeleteStackInput) -> DeleteStack:
        """Start deleting a stack. Nothing happens until the operation is consumed."""
        if self.role_arn and not delete_input.role_arn:
            delete_input = delete_input.model_copy(update={'role_arn': self.role_arn})
        logger.debug(f"Deleting stack {delete_input.stack_name} in {self.region}")
        return DeleteStack(self.client, delete_input, **self._operation_kwargs())
